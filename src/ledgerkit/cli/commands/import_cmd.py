"""Statement import command."""

import click
from ledgerkit.domain.statement_import import StatementImportService


@click.command("import")
@click.argument("statement_file", type=click.Path(exists=True))
@click.option("--account-name", help="Name for the account if the statement creates it")
@click.option("--no-post", "no_post", is_flag=True, help="Import without posting to the ledger")
@click.option(
    "--no-detect-transfers",
    "no_detect_transfers",
    is_flag=True,
    help="Do not match transfers against other accounts",
)
@click.pass_context
def import_statement(ctx, statement_file: str, account_name: str | None, no_post: bool,
                     no_detect_transfers: bool):
    """Import transactions from an OFX/QFX statement file."""
    db = ctx.obj["db"]
    service = StatementImportService(db)

    try:
        result = service.import_file(
            statement_file,
            account_name=account_name,
            post=not no_post,
            detect_transfers=not no_detect_transfers,
        )
    except (ValueError, FileNotFoundError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    click.echo(f"\nImport complete (account ID: {result['account_id']}):")
    start, end = result["date_range"]
    if start is not None and end is not None:
        click.echo(f"  Period: {start.isoformat()} to {end.isoformat()}")
    click.echo(f"  Imported: {result['imported']} transactions")
    click.echo(f"  Skipped: {result['skipped']} duplicates")
    click.echo(f"  Matched by rules: {result['matched']}")
    click.echo(f"  Unmatched: {result['unmatched']}")
    if result["transfers"]:
        click.echo(f"  Transfers detected: {result['transfers']}")
    if not no_post:
        click.echo(f"  Posted: {result['posted']} journal entries")
    if result["posting_skipped"]:
        click.echo(f"  Not posted: {len(result['posting_skipped'])}")
        for reason in result["posting_skipped"]:
            click.echo(f"    {reason}")
    for warning in result["warnings"]:
        click.echo(f"  Warning: {warning}", err=True)
    if result["errors"]:
        click.echo(f"  Errors: {len(result['errors'])}")
        for error in result["errors"]:
            click.echo(f"    {error}", err=True)


def register_commands(cli):
    """Register import command with main CLI."""
    cli.add_command(import_statement)
