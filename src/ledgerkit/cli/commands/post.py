"""Ledger posting command."""

import click
from ledgerkit.cli.account_resolution import resolve_account_or_exit
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.account import AccountService
from ledgerkit.domain.errors import DomainError
from ledgerkit.domain.ledger import LedgerService


@click.command("post")
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def post_account(ctx, account: str):
    """Post categorized, unposted transactions of ACCOUNT to the ledger.

    ACCOUNT can be an account name or ID.
    """
    db = ctx.obj["db"]
    account_id = resolve_account_or_exit(ctx, AccountService(db), account)

    try:
        result = LedgerService(db).post_transactions(account_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Posted {result.posted} journal entries.")
    if result.skipped:
        click.echo(f"Not posted: {len(result.skipped)}")
        for skipped in result.skipped:
            click.echo(f"  {skipped}")
    for duplicate in result.duplicates:
        click.echo(f"  {duplicate}", err=True)


def register_commands(cli):
    """Register post command with main CLI."""
    cli.add_command(post_account)
