"""Tests for currency conversion."""

import pytest
from decimal import Decimal

from ledgerkit.domain.currency import convert, parse_rate_options
from ledgerkit.domain.errors import ValidationError

RATES = {"USD": Decimal("1"), "EUR": Decimal("1.08"), "GBP": Decimal("1.25")}


def test_convert_between_currencies():
    """Amounts go through the base currency."""
    assert convert(Decimal("100"), "EUR", "USD", RATES) == Decimal("108")
    assert convert(Decimal("125"), "gbp", "usd", RATES) == Decimal("156.25")
    assert convert(Decimal("108"), "USD", "EUR", RATES) == Decimal("100")


def test_convert_same_currency_or_no_rates():
    """Identity conversions return the amount unchanged."""
    assert convert(Decimal("12.34"), "EUR", "eur", RATES) == Decimal("12.34")
    assert convert(Decimal("12.34"), "EUR", "USD") == Decimal("12.34")


def test_missing_code_counts_as_one():
    """A currency missing from the table is valued at 1."""
    assert convert(Decimal("10"), "JPY", "EUR", RATES) == Decimal("10") / Decimal("1.08")


def test_non_positive_rate_rejected():
    """Zero or negative rates are invalid."""
    with pytest.raises(ValidationError, match="must be positive"):
        convert(Decimal("1"), "EUR", "USD", {"EUR": Decimal("0")})


def test_parse_rate_options():
    """CODE=VALUE options become a rate table."""
    assert parse_rate_options(["eur=1.08", "GBP = 1.25"]) == {
        "EUR": Decimal("1.08"),
        "GBP": Decimal("1.25"),
    }
    assert parse_rate_options([]) == {}


def test_parse_rate_options_reports_every_problem():
    """All malformed options are reported together."""
    with pytest.raises(ValidationError) as excinfo:
        parse_rate_options(["EUR", "GBP=abc", "JPY=-1"])

    assert len(excinfo.value.errors) == 3
