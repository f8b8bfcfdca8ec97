"""Domain model entities for ledgerkit.

These are pure data classes representing business concepts, independent of
database schema. The core engines take and return these records; the
database layer converts them to and from its own models.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional


class AccountType(Enum):
    """Chart of accounts classification."""

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"

    @property
    def normal_side(self) -> "EntrySide":
        """Side on which the account type increases."""
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return EntrySide.DEBIT
        return EntrySide.CREDIT


class EntrySide(Enum):
    """Side of a journal line."""

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class TransactionCategory(Enum):
    """Classification of a bank transaction."""

    REVENUE = "revenue"
    EXPENSE = "expense"
    TRANSFER = "transfer"
    IGNORE = "ignore"
    UNCATEGORIZED = "uncategorized"
    ADJUSTMENT = "adjustment"

    @property
    def is_postable(self) -> bool:
        """Whether transactions in this category may reach the ledger."""
        return self not in (TransactionCategory.TRANSFER, TransactionCategory.IGNORE)


class MatchField(Enum):
    """Transaction field(s) a mapping rule inspects."""

    NAME = "name"
    MEMO = "memo"
    BOTH = "both"


class MatchType(Enum):
    """How a mapping rule pattern is compared (always case-insensitive)."""

    CONTAINS = "contains"
    EXACT = "exact"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    REGEX = "regex"


class StatementAccountType(Enum):
    """Account type as reported by the statement."""

    CHECKING = "CHECKING"
    SAVINGS = "SAVINGS"
    CREDITLINE = "CREDITLINE"
    MONEYMRKT = "MONEYMRKT"
    CREDITCARD = "CREDITCARD"

    @property
    def is_liability(self) -> bool:
        return self in (StatementAccountType.CREDITCARD, StatementAccountType.CREDITLINE)


class StatementTransactionType(Enum):
    """Raw transaction type (TRNTYPE) reported by the statement."""

    CREDIT = "CREDIT"
    DEBIT = "DEBIT"
    INT = "INT"
    DIV = "DIV"
    FEE = "FEE"
    SRVCHG = "SRVCHG"
    DEP = "DEP"
    ATM = "ATM"
    POS = "POS"
    XFER = "XFER"
    CHECK = "CHECK"
    PAYMENT = "PAYMENT"
    CASH = "CASH"
    DIRECTDEP = "DIRECTDEP"
    DIRECTDEBIT = "DIRECTDEBIT"
    REPEATPMT = "REPEATPMT"
    OTHER = "OTHER"


class FlowType(Enum):
    """Direction of money relative to the owning account.

    Asset accounts use credit/debit, liability accounts charge/payment.
    """

    CREDIT = "credit"
    DEBIT = "debit"
    CHARGE = "charge"
    PAYMENT = "payment"


class ForecastMethod(Enum):
    """Revenue forecasting method."""

    SIMPLE = "simple"
    WEIGHTED = "weighted"
    EXPONENTIAL = "exponential"
    LINEAR = "linear"


@dataclass(frozen=True)
class ChartAccount:
    """Chart of accounts entry."""

    id: str
    code: str
    name: str
    type: AccountType
    parent_id: Optional[str] = None
    is_active: bool = True
    description: Optional[str] = None
    bank_account_id: Optional[int] = None


@dataclass(frozen=True)
class JournalLine:
    """Single debit or credit line. Amount is always positive."""

    account_id: str
    amount: Decimal
    side: EntrySide


@dataclass(frozen=True)
class JournalEntry:
    """Balanced double-entry posting for one economic event."""

    id: str
    date: date
    description: str
    lines: tuple[JournalLine, ...]
    bank_transaction_id: Optional[int] = None
    is_reconciled: bool = False

    @property
    def total_debits(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.side == EntrySide.DEBIT),
            Decimal("0"),
        )

    @property
    def total_credits(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.side == EntrySide.CREDIT),
            Decimal("0"),
        )


@dataclass(frozen=True)
class BankAccount:
    """Bank or credit card account that statements are imported into."""

    id: int
    name: str
    bank_id: str
    account_id_masked: str
    account_id_hash: str
    account_type: StatementAccountType
    currency: str
    created_at: datetime
    chart_account_id: Optional[str] = None
    opening_balance: Decimal = Decimal("0")
    opening_balance_date: Optional[date] = None

    @property
    def is_liability(self) -> bool:
        return self.account_type.is_liability


@dataclass(frozen=True)
class BankTransaction:
    """Imported (or synthesized) bank transaction."""

    id: Optional[int]
    account_id: int
    fit_id: str
    amount: Decimal
    date_posted: date
    name: str
    memo: Optional[str] = None
    check_num: Optional[str] = None
    ref_num: Optional[str] = None
    transaction_type: StatementTransactionType = StatementTransactionType.OTHER
    category: TransactionCategory = TransactionCategory.UNCATEGORIZED
    chart_account_id: Optional[str] = None
    subcategory: Optional[str] = None
    revenue_source_id: Optional[int] = None
    flow_type: FlowType = FlowType.CREDIT
    is_ignored: bool = False
    is_reconciled: bool = False
    import_batch_id: str = ""
    journal_entry_id: Optional[str] = None


@dataclass(frozen=True)
class MappingRule:
    """Pattern rule that auto-categorizes imported transactions."""

    id: int
    pattern: str
    category: TransactionCategory
    match_field: MatchField = MatchField.NAME
    match_type: MatchType = MatchType.CONTAINS
    chart_account_id: Optional[str] = None
    subcategory: Optional[str] = None
    revenue_source_id: Optional[int] = None
    priority: int = 0
    is_active: bool = True
    account_id: Optional[int] = None


@dataclass(frozen=True)
class Reconciliation:
    """Audit record of one reconciliation run."""

    id: Optional[int]
    account_id: int
    reconciled_date: date
    expected_balance: Decimal
    actual_balance: Decimal
    adjustment_amount: Decimal
    notes: str = ""
    adjustment_fit_id: Optional[str] = None
    adjustment_transaction_id: Optional[int] = None


@dataclass(frozen=True)
class StatementAccount:
    """Account header decoded from a statement."""

    bank_id: str
    account_id: str
    account_type: StatementAccountType
    currency: str


@dataclass(frozen=True)
class RawTransaction:
    """Transaction record decoded from a statement, before categorization.

    ``amount`` and ``date_posted`` are None when the statement value was
    missing or unparseable; validation reports those records.
    """

    fit_id: str
    amount: Optional[Decimal]
    date_posted: Optional[date]
    name: str
    transaction_type: StatementTransactionType = StatementTransactionType.OTHER
    memo: Optional[str] = None
    check_num: Optional[str] = None
    ref_num: Optional[str] = None
    raw_amount: str = ""
    raw_date: str = ""


@dataclass(frozen=True)
class StatementBalance:
    """Ledger balance reported by the statement."""

    amount: Decimal
    as_of: Optional[date]


@dataclass(frozen=True)
class ParsedStatement:
    """Structured result of decoding a statement."""

    account: StatementAccount
    transactions: tuple[RawTransaction, ...]
    date_range: tuple[Optional[date], Optional[date]]
    balance: Optional[StatementBalance] = None


@dataclass(frozen=True)
class MonthlyTotal:
    """One point of a monthly series; ``period`` is ``YYYY-MM``."""

    period: str
    total: float


@dataclass(frozen=True)
class ForecastPoint:
    """Predicted value for a future period."""

    period: str
    predicted: float
    method: ForecastMethod


@dataclass(frozen=True)
class SeriesStatistics:
    """Summary statistics of a series."""

    min: float
    max: float
    mean: float
    median: float
    std_dev: float
    total: float


@dataclass(frozen=True)
class SeasonalityResult:
    """Seasonality detection output."""

    has_seasonality: bool
    seasonal_factors: Optional[tuple[float, ...]] = None


@dataclass(frozen=True)
class ForecastResult:
    """Forecast points plus the statistics of the history they came from."""

    points: tuple[ForecastPoint, ...]
    statistics: SeriesStatistics
    trend: float
    seasonality: SeasonalityResult
    method: ForecastMethod = ForecastMethod.WEIGHTED
    history: tuple[MonthlyTotal, ...] = field(default_factory=tuple)
    seasonally_adjusted: bool = False
