"""Reconciliation commands."""

import click
from ledgerkit.cli.account_resolution import resolve_account_or_exit
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.account import AccountService
from ledgerkit.domain.reconciliation import ReconciliationService
from ledgerkit.utils.amount_parser import parse_amount
from ledgerkit.utils.date_parser import parse_date


@click.command("reconcile")
@click.argument("account", metavar="ACCOUNT")
@click.option("--as-of", "as_of", required=True, help="Statement date to reconcile at")
@click.option("--actual", required=True, help="Balance reported by the bank")
@click.option("--no-adjust", "no_adjust", is_flag=True, help="Record the discrepancy only")
@click.option(
    "--adjustment-account",
    "adjustment_account",
    help="Chart account code the adjustment is posted against",
)
@click.option("--notes", default="", help="Notes stored with the reconciliation")
@click.pass_context
def reconcile_account(ctx, account: str, as_of: str, actual: str, no_adjust: bool,
                      adjustment_account: str | None, notes: str):
    """Compare the computed balance of ACCOUNT with the bank's balance.

    When they differ an adjustment transaction is created, unless --no-adjust
    is given. Running it again for the same date does not add a second one.

    Examples:
        ledgerkit reconcile "Checking" --as-of 2024-01-31 --actual 1250.00
    """
    db = ctx.obj["db"]
    account_id = resolve_account_or_exit(ctx, AccountService(db), account)

    try:
        result = ReconciliationService(db).reconcile(
            account_id,
            parse_date(as_of),
            parse_amount(actual),
            create_adjustment=not no_adjust,
            notes=notes,
            adjustment_account_id=adjustment_account,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Expected balance: {result.expected_balance:.2f}")
    click.echo(f"Actual balance:   {result.reconciliation.actual_balance:.2f}")
    click.echo(f"Discrepancy:      {result.discrepancy:.2f}")
    click.echo(result.message)


@click.command("reconciliations")
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def list_reconciliations(ctx, account: str):
    """Show the reconciliation history of ACCOUNT."""
    db = ctx.obj["db"]
    account_id = resolve_account_or_exit(ctx, AccountService(db), account)

    records = ReconciliationService(db).list_reconciliations(account_id)
    if not records:
        click.echo("No reconciliations found.")
        return

    click.echo("\nReconciliations:")
    click.echo("-" * 72)
    for rec in records:
        adjustment = f" | {rec.adjustment_fit_id}" if rec.adjustment_fit_id else ""
        click.echo(
            f"{rec.reconciled_date.isoformat()} | expected {rec.expected_balance:.2f} | "
            f"actual {rec.actual_balance:.2f} | adjustment {rec.adjustment_amount:.2f}{adjustment}"
        )


def register_commands(cli):
    """Register reconciliation commands with main CLI."""
    cli.add_command(reconcile_account)
    cli.add_command(list_reconciliations)
