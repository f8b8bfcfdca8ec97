"""Currency conversion over a caller-supplied rate table.

Rates are never fetched. A rate table maps a currency code to the value of
one unit of that currency in the base currency, e.g.
``{"USD": Decimal("1"), "EUR": Decimal("1.08")}``.
"""

from collections.abc import Mapping
from decimal import Decimal
from typing import Optional

from ledgerkit.domain.errors import ValidationError
from ledgerkit.utils.money import to_decimal

ONE = Decimal("1")


def _rate(code: str, rates: Mapping[str, Decimal]) -> Decimal:
    for key, value in rates.items():
        if key.upper() == code.upper():
            rate = to_decimal(value)
            if rate <= 0:
                raise ValidationError(f"Rate for {code.upper()} must be positive, got {rate}")
            return rate
    return ONE


def convert(
    amount: Decimal,
    from_currency: str,
    to_currency: str,
    rates: Optional[Mapping[str, Decimal]] = None,
) -> Decimal:
    """Convert an amount between currencies.

    Codes are compared case-insensitively; a code missing from the table is
    valued at 1.

    Args:
        amount: Amount in ``from_currency``
        from_currency: Source currency code
        to_currency: Target currency code
        rates: Rate table (value of one unit in the base currency)

    Returns:
        Unrounded Decimal amount in ``to_currency``

    Raises:
        ValidationError: If a used rate is zero or negative
    """
    amount = to_decimal(amount)
    if not rates or from_currency.upper() == to_currency.upper():
        return amount
    return amount * _rate(from_currency, rates) / _rate(to_currency, rates)


def parse_rate_options(options: list[str]) -> dict[str, Decimal]:
    """Parse ``CODE=VALUE`` strings into a rate table.

    Raises:
        ValidationError: With every malformed option
    """
    rates: dict[str, Decimal] = {}
    errors = []
    for option in options:
        code, sep, value = option.partition("=")
        code = code.strip().upper()
        if not sep or not code:
            errors.append(f"Invalid rate '{option}': expected CODE=VALUE")
            continue
        try:
            rate = to_decimal(value)
        except ValueError:
            errors.append(f"Invalid rate '{option}': '{value}' is not a number")
            continue
        if rate <= 0:
            errors.append(f"Invalid rate '{option}': rate must be positive")
            continue
        rates[code] = rate
    if errors:
        raise ValidationError(errors)
    return rates
