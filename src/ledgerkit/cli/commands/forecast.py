"""Revenue forecast command."""

import click
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.entities import ForecastMethod
from ledgerkit.domain.forecast import ForecastService
from ledgerkit.utils.date_parser import parse_date


@click.command("forecast")
@click.option("--periods", type=int, default=6, show_default=True, help="Months to forecast")
@click.option(
    "--method",
    type=click.Choice([m.value for m in ForecastMethod], case_sensitive=False),
    default=ForecastMethod.WEIGHTED.value,
    show_default=True,
    help="Forecasting method",
)
@click.option("--start", help="First day of history (default: first journal entry)")
@click.option("--end", help="Last day of history (default: last journal entry)")
@click.option("--seasonal", is_flag=True, help="Scale predictions by the yearly pattern, if any")
@click.option(
    "--backtest",
    "holdout",
    type=int,
    help="Also score the method on the last N months of history",
)
@click.pass_context
def forecast_revenue(ctx, periods: int, method: str, start: str | None, end: str | None,
                     seasonal: bool, holdout: int | None):
    """Forecast monthly revenue from posted history."""
    db = ctx.obj["db"]
    service = ForecastService(db)

    forecast_method = ForecastMethod(method.lower())
    try:
        start_date = parse_date(start) if start else None
        end_date = parse_date(end) if end else None
        result = service.forecast(
            periods=periods,
            method=forecast_method,
            start=start_date,
            end=end_date,
            seasonal=seasonal,
        )
        metrics = (
            service.backtest(holdout, forecast_method, start_date, end_date)
            if holdout is not None and result.history
            else None
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not result.history:
        click.echo("No revenue history found.")
        return

    stats = result.statistics
    click.echo(f"\nHistory: {len(result.history)} months")
    click.echo(f"  Mean: {stats.mean:,.2f}  Median: {stats.median:,.2f}  Std dev: {stats.std_dev:,.2f}")
    click.echo(f"  Trend: {result.trend:+.2%} per month")
    if result.seasonality.has_seasonality:
        click.echo("  Seasonality detected")

    adjusted = ", seasonally adjusted" if result.seasonally_adjusted else ""
    click.echo(f"\nForecast ({result.method.value}{adjusted}):")
    for point in result.points:
        click.echo(f"  {point.period}  {point.predicted:>14,.2f}")

    if metrics is not None:
        mape = f"{metrics.mape:.1f}%" if metrics.mape is not None else "n/a"
        click.echo(f"\nBacktest (last {holdout} months):")
        click.echo(f"  MAPE: {mape}  RMSE: {metrics.rmse:,.2f}  MAE: {metrics.mae:,.2f}")


def register_commands(cli):
    """Register forecast command with main CLI."""
    cli.add_command(forecast_revenue)
