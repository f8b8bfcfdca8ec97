"""Revenue forecasting over monthly series.

Forecasts are estimates, so this module works in floats; ledger amounts are
converted once when the series is built.
"""

import logging
import math
import statistics as stats
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import date
from typing import Optional

from ledgerkit.database.base import Database
from ledgerkit.domain.entities import (
    AccountType,
    ForecastMethod,
    ForecastPoint,
    ForecastResult,
    MonthlyTotal,
    SeasonalityResult,
    SeriesStatistics,
)
from ledgerkit.domain.errors import ValidationError
from ledgerkit.domain.ledger import Ledger, LedgerService
from ledgerkit.utils.date_parser import period_key

logger = logging.getLogger(__name__)

DEFAULT_PERIOD = 3
DEFAULT_ALPHA = 0.3
SEASONALITY_THRESHOLD = 0.01


@dataclass(frozen=True)
class AccuracyMetrics:
    """Backtesting error metrics. ``mape`` is None when every actual is 0."""

    mape: Optional[float]
    rmse: float
    mae: float


def moving_average(values: Sequence[float], period: int = DEFAULT_PERIOD) -> float:
    """Mean of the last ``period`` values (of all values if fewer)."""
    if not values:
        return 0.0
    recent = values[-period:]
    return sum(recent) / len(recent)


def weighted_moving_average(values: Sequence[float], period: int = DEFAULT_PERIOD) -> float:
    """Moving average weighting the most recent value highest (weights 1..k)."""
    if not values:
        return 0.0
    recent = values[-period:]
    weights = range(1, len(recent) + 1)
    return sum(v * w for v, w in zip(recent, weights)) / sum(weights)


def exponential_moving_average(values: Sequence[float], alpha: float = DEFAULT_ALPHA) -> float:
    """Exponential moving average seeded with the first value."""
    if not values:
        return 0.0
    ema = values[0]
    for value in values[1:]:
        ema = alpha * value + (1 - alpha) * ema
    return ema


def linear_regression(values: Sequence[float]) -> tuple[float, float]:
    """Least-squares fit of value against index.

    Returns:
        (slope, intercept)
    """
    n = len(values)
    if n == 0:
        return 0.0, 0.0
    if n == 1:
        return 0.0, float(values[0])

    sum_x = sum(range(n))
    sum_y = sum(values)
    sum_xy = sum(i * v for i, v in enumerate(values))
    sum_x2 = sum(i * i for i in range(n))
    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n
    return slope, intercept


def growth_rate(values: Sequence[float]) -> float:
    """Mean period-over-period relative change, skipping zero priors."""
    rates = [
        (current - prior) / prior
        for prior, current in zip(values, values[1:])
        if prior != 0
    ]
    if not rates:
        return 0.0
    return sum(rates) / len(rates)


def add_months(period: str, months: int) -> str:
    """Shift a ``YYYY-MM`` period by a number of months.

    Raises:
        ValidationError: If the period is malformed
    """
    try:
        year_str, month_str = period.split("-")
        year, month = int(year_str), int(month_str)
    except ValueError as e:
        raise ValidationError(f"Invalid period '{period}': expected YYYY-MM") from e
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid period '{period}': expected YYYY-MM")
    index = year * 12 + (month - 1) + months
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def forecast(
    series: Sequence[MonthlyTotal],
    periods: int = 6,
    method: ForecastMethod = ForecastMethod.WEIGHTED,
) -> list[ForecastPoint]:
    """Predict the next ``periods`` months of a series.

    - simple: moving average, flat
    - weighted: weighted moving average compounded by the growth rate
    - exponential: exponential moving average compounded by half the growth
      rate
    - linear: least-squares trend line extrapolated

    Predictions are never negative.

    Raises:
        ValidationError: If periods is negative
    """
    if periods < 0:
        raise ValidationError(f"Forecast periods must be >= 0, got {periods}")
    if not series:
        return []

    values = [point.total for point in series]
    last_period = series[-1].period

    if method == ForecastMethod.LINEAR:
        slope, intercept = linear_regression(values)
        return [
            ForecastPoint(
                period=add_months(last_period, i + 1),
                predicted=max(0.0, slope * (len(values) + i) + intercept),
                method=method,
            )
            for i in range(periods)
        ]

    trend = 0.0
    if method == ForecastMethod.SIMPLE:
        base = moving_average(values)
    elif method == ForecastMethod.EXPONENTIAL:
        base = exponential_moving_average(values)
        trend = growth_rate(values) * 0.5
    else:
        base = weighted_moving_average(values)
        trend = growth_rate(values)

    return [
        ForecastPoint(
            period=add_months(last_period, i + 1),
            predicted=max(0.0, base * (1 + trend) ** (i + 1)),
            method=method,
        )
        for i in range(periods)
    ]


def statistics(values: Sequence[float]) -> SeriesStatistics:
    """Summary statistics; population standard deviation."""
    if not values:
        return SeriesStatistics(min=0.0, max=0.0, mean=0.0, median=0.0, std_dev=0.0, total=0.0)
    return SeriesStatistics(
        min=min(values),
        max=max(values),
        mean=stats.fmean(values),
        median=stats.median(values),
        std_dev=stats.pstdev(values),
        total=sum(values),
    )


def _calendar_month(period: str) -> int:
    try:
        return int(period.split("-")[1]) - 1
    except (IndexError, ValueError) as e:
        raise ValidationError(f"Invalid period '{period}': expected YYYY-MM") from e


def detect_seasonality(series: Sequence[MonthlyTotal]) -> SeasonalityResult:
    """Detect a yearly pattern in a monthly series.

    Each calendar month's factor is its average over the overall average.
    The series is seasonal when the factors' population variance exceeds
    the threshold. Needs at least 12 points.
    """
    if len(series) < 12:
        return SeasonalityResult(has_seasonality=False)
    overall = stats.fmean(point.total for point in series)
    if overall == 0:
        return SeasonalityResult(has_seasonality=False)

    totals = [0.0] * 12
    counts = [0] * 12
    for point in series:
        month = _calendar_month(point.period)
        totals[month] += point.total
        counts[month] += 1

    factors = tuple(
        (totals[i] / counts[i] if counts[i] else overall) / overall for i in range(12)
    )
    return SeasonalityResult(
        has_seasonality=stats.pvariance(factors) > SEASONALITY_THRESHOLD,
        seasonal_factors=factors,
    )


def apply_seasonal_adjustment(value: float, period: str, factors: Sequence[float]) -> float:
    """Scale a value by the factor of the period's calendar month."""
    return value * factors[_calendar_month(period)]


def accuracy(actual: Sequence[float], predicted: Sequence[float]) -> AccuracyMetrics:
    """Compare predictions against actual values.

    Mismatched or empty inputs give zero errors and no MAPE.
    """
    if len(actual) != len(predicted) or not actual:
        return AccuracyMetrics(mape=None, rmse=0.0, mae=0.0)

    errors = [a - p for a, p in zip(actual, predicted)]
    percentage = [abs(e / a) for e, a in zip(errors, actual) if a != 0]
    return AccuracyMetrics(
        mape=(sum(percentage) / len(percentage) * 100) if percentage else None,
        rmse=math.sqrt(sum(e * e for e in errors) / len(errors)),
        mae=sum(abs(e) for e in errors) / len(errors),
    )


def backtest(
    series: Sequence[MonthlyTotal],
    holdout: int = 3,
    method: ForecastMethod = ForecastMethod.WEIGHTED,
) -> AccuracyMetrics:
    """Forecast the last ``holdout`` months from the ones before and score it.

    Raises:
        ValidationError: If holdout is not positive or leaves no history
    """
    if holdout < 1:
        raise ValidationError(f"Backtest holdout must be >= 1, got {holdout}")
    if holdout >= len(series):
        raise ValidationError(
            f"Backtest needs more than {holdout} month(s) of history, got {len(series)}"
        )
    history, actual = series[:-holdout], series[-holdout:]
    predicted = forecast(history, holdout, method)
    return accuracy([point.total for point in actual], [point.predicted for point in predicted])


def summarize(
    series: Sequence[MonthlyTotal],
    periods: int = 6,
    method: ForecastMethod = ForecastMethod.WEIGHTED,
    seasonal: bool = False,
) -> ForecastResult:
    """Forecast plus statistics, trend and seasonality of the history.

    With ``seasonal``, predictions are scaled by the factor of their
    calendar month when the history shows a yearly pattern.
    """
    values = [point.total for point in series]
    seasonality = detect_seasonality(series)
    points = forecast(series, periods, method)
    adjusted = seasonal and seasonality.has_seasonality
    if adjusted:
        points = [
            replace(
                point,
                predicted=apply_seasonal_adjustment(
                    point.predicted, point.period, seasonality.seasonal_factors
                ),
            )
            for point in points
        ]
    return ForecastResult(
        points=tuple(points),
        statistics=statistics(values),
        trend=growth_rate(values),
        seasonality=seasonality,
        method=method,
        history=tuple(series),
        seasonally_adjusted=adjusted,
    )


def monthly_revenue_series(ledger: Ledger, start: date, end: date) -> list[MonthlyTotal]:
    """Build the monthly revenue series from the ledger.

    Revenue is credits minus debits on revenue accounts. Months without
    revenue are present with a zero total.
    """
    if end < start:
        raise ValidationError(f"End date {end} is before start date {start}")

    revenue_accounts = {
        account.id for account in ledger.accounts() if account.type == AccountType.REVENUE
    }
    first = period_key(start)
    last = period_key(end)
    totals: dict[str, float] = {}
    period = first
    while period <= last:
        totals[period] = 0.0
        period = add_months(period, 1)

    for entry in ledger.entries(start, end):
        for line in entry.lines:
            if line.account_id not in revenue_accounts:
                continue
            amount = float(line.amount)
            if line.side == AccountType.REVENUE.normal_side:
                totals[period_key(entry.date)] += amount
            else:
                totals[period_key(entry.date)] -= amount

    return [MonthlyTotal(period=key, total=value) for key, value in totals.items()]


class ForecastService:
    """Service that forecasts revenue from the stored ledger."""

    def __init__(self, db: Database):
        """Initialize forecast service.

        Args:
            db: Database instance
        """
        self.db = db
        self.ledger_service = LedgerService(db)

    def revenue_series(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[MonthlyTotal]:
        """Monthly revenue between two dates (default: the whole journal)."""
        ledger = self.ledger_service.load_ledger()
        dates = [entry.date for entry in ledger.entries()]
        if not dates and (start is None or end is None):
            return []
        start = start or min(dates)
        end = end or max(dates)
        return monthly_revenue_series(ledger, start, end)

    def forecast(
        self,
        periods: int = 6,
        method: ForecastMethod = ForecastMethod.WEIGHTED,
        start: Optional[date] = None,
        end: Optional[date] = None,
        seasonal: bool = False,
    ) -> ForecastResult:
        """Forecast revenue for the next ``periods`` months.

        ``seasonal`` applies the yearly pattern of the history, if any.
        """
        series = self.revenue_series(start, end)
        result = summarize(series, periods, method, seasonal=seasonal)
        logger.info(
            "Forecast %d period(s) with %s method from %d month(s) of history",
            periods,
            method.value,
            len(series),
        )
        return result

    def backtest(
        self,
        holdout: int = 3,
        method: ForecastMethod = ForecastMethod.WEIGHTED,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> AccuracyMetrics:
        """Score a method by forecasting the last ``holdout`` months of revenue."""
        metrics = backtest(self.revenue_series(start, end), holdout, method)
        logger.info(
            "Backtest of %s method over %d month(s): MAE %.2f", method.value, holdout, metrics.mae
        )
        return metrics
