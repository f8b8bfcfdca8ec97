"""Bank account commands."""

import click
from ledgerkit.cli.account_resolution import resolve_account_or_exit
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.account import AccountService
from ledgerkit.domain.errors import DomainError
from ledgerkit.utils.amount_parser import parse_amount
from ledgerkit.utils.date_parser import parse_date


@click.group()
def account_group():
    """Manage bank and credit card accounts."""
    pass


@account_group.command("list")
@click.pass_context
def list_accounts(ctx):
    """List all bank accounts."""
    db = ctx.obj["db"]
    service = AccountService(db)

    accounts = service.list_bank_accounts()
    if not accounts:
        click.echo("No accounts found. Import a statement to create one.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 72)
    for acc in accounts:
        chart = acc.chart_account_id or "-"
        click.echo(
            f"ID: {acc.id:3d} | {acc.name:24s} | {acc.account_type.value:10s} | "
            f"{acc.currency} | Chart: {chart}"
        )


@account_group.command("rename")
@click.argument("account", metavar="ACCOUNT")
@click.argument("new_name", metavar="NEW_NAME")
@click.pass_context
def rename_account(ctx, account: str, new_name: str) -> None:
    """Rename an account.

    ACCOUNT can be an account name or ID.

    Examples:
        ledgerkit account rename 1 "Business Checking"
    """
    db = ctx.obj["db"]
    service = AccountService(db)
    account_id = resolve_account_or_exit(ctx, service, account)

    try:
        service.rename_bank_account(account_id, new_name)
        click.echo(f"Renamed account to '{new_name}'")
    except DomainError as e:
        handle_domain_error(ctx, e)


@account_group.command("set-opening")
@click.argument("account", metavar="ACCOUNT")
@click.argument("amount")
@click.option("--as-of", "as_of", required=True, help="Date the balance was held at")
@click.pass_context
def set_opening(ctx, account: str, amount: str, as_of: str) -> None:
    """Set the opening balance of an account.

    Transactions dated after --as-of build on this balance when reconciling.

    Examples:
        ledgerkit account set-opening "Checking" 1000.00 --as-of 2024-01-01
    """
    db = ctx.obj["db"]
    service = AccountService(db)
    account_id = resolve_account_or_exit(ctx, service, account)

    try:
        value = parse_amount(amount)
        as_of_date = parse_date(as_of)
        service.set_opening_balance(account_id, value, as_of_date)
        click.echo(f"Opening balance set to {value:.2f} as of {as_of_date.isoformat()}")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
