"""Chart of accounts commands."""

import click
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.account import AccountService
from ledgerkit.domain.entities import AccountType
from ledgerkit.domain.errors import DomainError

ACCOUNT_TYPES = [t.value.lower() for t in AccountType]


@click.command("init-chart")
@click.pass_context
def init_chart(ctx):
    """Initialize database with the default chart of accounts.

    Existing account codes are left untouched, so running it twice is safe.
    """
    db = ctx.obj["db"]
    service = AccountService(db)

    created = service.init_default_chart()
    if created == 0:
        click.echo("Chart of accounts already initialized.")
    else:
        click.echo(f"Successfully created {created} chart accounts.")


@click.group()
def chart_group():
    """Manage the chart of accounts."""
    pass


@chart_group.command("list")
@click.option("--all", "include_inactive", is_flag=True, help="Include inactive accounts")
@click.pass_context
def list_chart(ctx, include_inactive: bool):
    """List chart accounts, indented under their parents."""
    db = ctx.obj["db"]
    service = AccountService(db)

    accounts = service.list_chart_accounts(include_inactive=include_inactive)
    if not accounts:
        click.echo("No chart accounts found. Run 'init-chart' to create the default chart.")
        return

    by_id = {acc.id: acc for acc in accounts}

    def depth(acc) -> int:
        level = 0
        while acc.parent_id is not None and acc.parent_id in by_id:
            acc = by_id[acc.parent_id]
            level += 1
        return level

    click.echo("\nChart of accounts:")
    click.echo("-" * 60)
    for acc in accounts:
        indent = "  " * depth(acc)
        inactive = " (inactive)" if not acc.is_active else ""
        click.echo(f"{acc.code:6s} | {acc.type.value:9s} | {indent}{acc.name}{inactive}")


@chart_group.command("create")
@click.argument("code")
@click.argument("name")
@click.option(
    "--type",
    "account_type",
    type=click.Choice(ACCOUNT_TYPES, case_sensitive=False),
    required=True,
    help="Account type",
)
@click.option("--parent", help="Parent account code")
@click.option("--description", help="Optional description")
@click.pass_context
def create_chart(ctx, code: str, name: str, account_type: str, parent: str | None,
                 description: str | None):
    """Create a chart account.

    Examples:
        ledgerkit chart create 5150 "Software" --type expense --parent 5000
    """
    db = ctx.obj["db"]
    service = AccountService(db)

    try:
        account_id = service.create_chart_account(
            code=code,
            name=name,
            account_type=AccountType(account_type.upper()),
            parent_id=parent,
            description=description,
        )
        parent_str = f" under '{parent}'" if parent else ""
        click.echo(f"Created chart account {account_id} '{name}'{parent_str}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@chart_group.command("deactivate")
@click.argument("code")
@click.pass_context
def deactivate_chart(ctx, code: str):
    """Deactivate a chart account. Posted history is kept."""
    db = ctx.obj["db"]
    service = AccountService(db)

    try:
        service.deactivate_chart_account(code)
        click.echo(f"Deactivated chart account {code}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@chart_group.command("delete")
@click.argument("code")
@click.option("--yes", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def delete_chart(ctx, code: str, yes: bool):
    """Delete a chart account that has no journal lines or children."""
    db = ctx.obj["db"]
    service = AccountService(db)

    if not yes and not click.confirm(f"Are you sure you want to delete chart account {code}?"):
        click.echo("Deletion cancelled.")
        return

    try:
        service.delete_chart_account(code)
        click.echo(f"Deleted chart account {code}")
    except DomainError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register chart commands with main CLI."""
    cli.add_command(init_chart)
    cli.add_command(chart_group, name="chart")
