"""Detection of transfers between the user's own accounts.

Money leaving one account and arriving in another shows up twice, once in
each statement. Such pairs are neither revenue nor expense; they are
matched here and categorized as transfers so they are never posted twice.

Direction follows the flow type, so credit cards work too: a card payment
(money into the card) pairs with a debit on the paying account.
"""

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from ledgerkit.domain.currency import convert
from ledgerkit.domain.entities import BankTransaction, FlowType

logger = logging.getLogger(__name__)

MAX_DAYS_DIFFERENCE = 3
SAME_CURRENCY_TOLERANCE = Decimal("0.001")
CROSS_CURRENCY_TOLERANCE = Decimal("0.10")
CLOSE_RATE_TOLERANCE = Decimal("0.02")
MIN_AMOUNT = Decimal("1")

OUTGOING = (FlowType.DEBIT, FlowType.CHARGE)
INCOMING = (FlowType.CREDIT, FlowType.PAYMENT)

TRANSFER_KEYWORDS = (
    "transfer",
    "xfer",
    "trf",
    "trn",
    "internal",
    "inter-account",
    "from account",
    "to account",
    "bank transfer",
    "wire",
)

_ACCOUNT_NUMBER_RE = re.compile(r"\d{4,}")


class TransferConfidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    def raised(self) -> "TransferConfidence":
        return TransferConfidence.HIGH if self != TransferConfidence.LOW else TransferConfidence.MEDIUM


_CONFIDENCE_ORDER = {
    TransferConfidence.HIGH: 0,
    TransferConfidence.MEDIUM: 1,
    TransferConfidence.LOW: 2,
}


@dataclass(frozen=True)
class DetectedTransfer:
    """A pair of transactions that moved the same money between two accounts."""

    source: BankTransaction
    target: BankTransaction
    confidence: TransferConfidence
    days_difference: int
    is_cross_currency: bool = False
    exchange_rate: Optional[Decimal] = None


def has_name_similarity(name_a: str, name_b: str) -> bool:
    """Whether two descriptions both look like transfers.

    True when both mention a transfer keyword, or when an account number in
    one ends with the last four digits of a number in the other.
    """
    lower_a = name_a.lower()
    lower_b = name_b.lower()
    if any(kw in lower_a for kw in TRANSFER_KEYWORDS) and any(
        kw in lower_b for kw in TRANSFER_KEYWORDS
    ):
        return True

    for number_a in _ACCOUNT_NUMBER_RE.findall(lower_a):
        for number_b in _ACCOUNT_NUMBER_RE.findall(lower_b):
            if number_a.endswith(number_b[-4:]) or number_b.endswith(number_a[-4:]):
                return True
    return False


def _same_currency_match(source: Decimal, target: Decimal, days: int) -> Optional[TransferConfidence]:
    if abs(source - target) > max(source, target) * SAME_CURRENCY_TOLERANCE:
        return None
    if days == 0:
        return TransferConfidence.HIGH
    if days <= 1:
        return TransferConfidence.MEDIUM
    return TransferConfidence.LOW


def _cross_currency_match(
    source: Decimal,
    target: Decimal,
    source_currency: str,
    target_currency: str,
    rates: Mapping[str, Decimal],
    days: int,
) -> Optional[TransferConfidence]:
    source_converted = convert(source, source_currency, target_currency, rates)
    average = (source_converted + target) / 2
    difference = abs(source_converted - target) / average
    if difference > CROSS_CURRENCY_TOLERANCE:
        return None
    if difference <= CLOSE_RATE_TOLERANCE and days == 0:
        return TransferConfidence.MEDIUM
    return TransferConfidence.LOW


def detect_transfers(
    transactions: Iterable[BankTransaction],
    currencies: Optional[Mapping[int, str]] = None,
    rates: Optional[Mapping[str, Decimal]] = None,
    max_days: int = MAX_DAYS_DIFFERENCE,
    min_amount: Decimal = MIN_AMOUNT,
) -> list[DetectedTransfer]:
    """Pair outgoing and incoming transactions of different accounts.

    A pair matches when the amounts agree (within 0.1%, or within 10% after
    conversion when the accounts use different currencies) and the dates
    are at most ``max_days`` apart. Each transaction is used at most once;
    sources are taken in the given order and each takes the first target
    that matches.

    Args:
        transactions: Candidate transactions, from any number of accounts
        currencies: Currency code per bank account id (default: all alike)
        rates: Value of one unit of each currency in the base currency
        max_days: Largest date gap of a pair
        min_amount: Smaller amounts are never transfers

    Returns:
        Transfers, most confident first, then by source date
    """
    currencies = currencies or {}
    rates = rates or {}
    candidates = [txn for txn in transactions if abs(txn.amount) >= min_amount]
    used: set[tuple[int, str]] = set()
    transfers: list[DetectedTransfer] = []

    for source in candidates:
        if source.flow_type not in OUTGOING or (source.account_id, source.fit_id) in used:
            continue
        source_currency = currencies.get(source.account_id, "")
        for target in candidates:
            key = (target.account_id, target.fit_id)
            if target.account_id == source.account_id or target.flow_type not in INCOMING:
                continue
            if key in used:
                continue
            days = abs((target.date_posted - source.date_posted).days)
            if days > max_days:
                continue

            source_amount = abs(source.amount)
            target_amount = abs(target.amount)
            target_currency = currencies.get(target.account_id, "")
            cross_currency = source_currency.upper() != target_currency.upper()
            if cross_currency:
                confidence = _cross_currency_match(
                    source_amount, target_amount, source_currency, target_currency, rates, days
                )
            else:
                confidence = _same_currency_match(source_amount, target_amount, days)
            if confidence is None:
                continue

            if has_name_similarity(source.name, target.name):
                confidence = confidence.raised()
            transfers.append(
                DetectedTransfer(
                    source=source,
                    target=target,
                    confidence=confidence,
                    days_difference=days,
                    is_cross_currency=cross_currency,
                    exchange_rate=(target_amount / source_amount) if cross_currency else None,
                )
            )
            used.add((source.account_id, source.fit_id))
            used.add(key)
            break

    transfers.sort(key=lambda t: (_CONFIDENCE_ORDER[t.confidence], t.source.date_posted))
    logger.debug("Detected %d transfer(s)", len(transfers))
    return transfers


def transfer_fit_ids(transfers: Sequence[DetectedTransfer]) -> set[tuple[int, str]]:
    """Return the ``(account_id, fit_id)`` of every transaction in the transfers."""
    keys = set()
    for transfer in transfers:
        keys.add((transfer.source.account_id, transfer.source.fit_id))
        keys.add((transfer.target.account_id, transfer.target.fit_id))
    return keys
