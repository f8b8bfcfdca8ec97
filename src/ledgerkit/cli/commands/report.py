"""Financial report commands."""

from datetime import date

import click
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.currency import parse_rate_options
from ledgerkit.domain.errors import DomainError
from ledgerkit.domain.reports import ReportService
from ledgerkit.utils.date_parser import parse_date


def currency_options(func):
    """Attach the --currency/--rate/--base-currency options to a report command."""
    func = click.option(
        "--rate",
        "rates",
        multiple=True,
        metavar="CODE=VALUE",
        help="Value of one unit of CODE in the base currency (repeatable)",
    )(func)
    func = click.option("--currency", help="Show totals converted to this currency")(func)
    func = click.option(
        "--base-currency", default="USD", show_default=True, help="Currency the books are kept in"
    )(func)
    return func


def period_options(func):
    """Attach the --year/--month options to a report command."""
    func = click.option("--month", type=click.IntRange(1, 12), help="Month (1-12)")(func)
    func = click.option("--year", type=int, help="Year (default: current year)")(func)
    return func


def _service_and_rates(ctx, base_currency: str, rates: tuple[str, ...]):
    try:
        rate_table = parse_rate_options(list(rates))
    except DomainError as e:
        handle_domain_error(ctx, e)
    return ReportService(ctx.obj["db"], base_currency=base_currency), rate_table


def _money(value) -> str:
    return f"{value:>14,.2f}"


@click.group()
def report_group():
    """Financial reports."""
    pass


@report_group.command("balance-sheet")
@click.option("--as-of", "as_of", help="Report date (default: all entries)")
@currency_options
@click.pass_context
def balance_sheet(ctx, as_of: str | None, base_currency: str, currency: str | None,
                  rates: tuple[str, ...]):
    """Show assets, liabilities and equity."""
    service, rate_table = _service_and_rates(ctx, base_currency, rates)
    try:
        as_of_date = parse_date(as_of) if as_of else None
        report = service.balance_sheet(as_of=as_of_date, currency=currency, rates=rate_table)
    except ValueError as e:
        handle_domain_error(ctx, e)

    title = f"as of {report.as_of.isoformat()}" if report.as_of else "(all entries)"
    click.echo(f"\nBalance sheet {title} [{report.currency}]")
    click.echo("=" * 60)
    for heading, groups in (("Assets", report.asset_groups), ("Liabilities", report.liability_groups)):
        click.echo(f"\n{heading}:")
        for group in groups:
            click.echo(f"  {group.name:40s}{_money(group.total)}")
            for line in group.lines:
                click.echo(f"    {line.code} {line.name:33s}{_money(line.balance)}")
    click.echo("-" * 60)
    click.echo(f"{'Total assets':42s}{_money(report.assets)}")
    click.echo(f"{'Total liabilities':42s}{_money(report.liabilities)}")
    click.echo(f"{'Equity':42s}{_money(report.equity)}")


@report_group.command("cash-flow")
@period_options
@currency_options
@click.pass_context
def cash_flow(ctx, year: int | None, month: int | None, base_currency: str,
              currency: str | None, rates: tuple[str, ...]):
    """Show cash in and out of asset accounts for a month or year."""
    service, rate_table = _service_and_rates(ctx, base_currency, rates)
    try:
        report = service.cash_flow(
            year or date.today().year, month, currency=currency, rates=rate_table
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(
        f"\nCash flow {report.start.isoformat()} to {report.end.isoformat()} [{report.currency}]"
    )
    click.echo("=" * 60)
    click.echo(f"{'Inflows':42s}{_money(report.inflows)}")
    click.echo(f"{'Outflows':42s}{_money(report.outflows)}")
    click.echo("-" * 60)
    click.echo(f"{'Net cash flow':42s}{_money(report.net_cash_flow)}")


@report_group.command("pnl")
@period_options
@currency_options
@click.pass_context
def profit_and_loss(ctx, year: int | None, month: int | None, base_currency: str,
                    currency: str | None, rates: tuple[str, ...]):
    """Show revenue, expenses and net income for a month or year."""
    service, rate_table = _service_and_rates(ctx, base_currency, rates)
    try:
        report = service.profit_and_loss(
            year or date.today().year, month, currency=currency, rates=rate_table
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(
        f"\nProfit and loss {report.start.isoformat()} to {report.end.isoformat()} "
        f"[{report.currency}]"
    )
    click.echo("=" * 60)
    click.echo("\nRevenue:")
    for line in report.revenue_by_account:
        click.echo(f"  {line.code} {line.name:35s}{_money(line.balance)}")
    click.echo(f"{'Total revenue':42s}{_money(report.revenue)}")
    click.echo("\nExpenses:")
    for line in report.expenses_by_account:
        click.echo(f"  {line.code} {line.name:35s}{_money(line.balance)}")
    click.echo(f"{'Total expenses':42s}{_money(report.expenses)}")
    click.echo("-" * 60)
    click.echo(f"{'Net income':42s}{_money(report.net)}")


@report_group.command("spending")
@period_options
@currency_options
@click.pass_context
def spending(ctx, year: int | None, month: int | None, base_currency: str,
             currency: str | None, rates: tuple[str, ...]):
    """Show revenue and expenses broken down by account, largest first."""
    service, rate_table = _service_and_rates(ctx, base_currency, rates)
    try:
        report = service.category_spending(
            year or date.today().year, month, currency=currency, rates=rate_table
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(
        f"\nSpending {report.start.isoformat()} to {report.end.isoformat()} [{report.currency}]"
    )
    click.echo("=" * 72)
    for heading, items, total in (
        ("Expenses", report.expense_items, report.expenses),
        ("Revenue", report.revenue_items, report.revenue),
    ):
        click.echo(f"\n{heading}:")
        if not items:
            click.echo("  (none)")
        for item in items:
            click.echo(
                f"  {item.code} {item.name:30s}{_money(item.amount)} "
                f"{item.percentage:>6.2f}%  ({item.transaction_count} txn)"
            )
        click.echo(f"{'Total ' + heading.lower():42s}{_money(total)}")


def register_commands(cli):
    """Register report commands with main CLI."""
    cli.add_command(report_group, name="report")
