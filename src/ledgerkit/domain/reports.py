"""Financial reports derived from the ledger.

Every function here is a pure query over a Ledger; nothing is stored. Totals
are rounded to cents at the end, never per line.
"""

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import ClassVar, Optional

from ledgerkit.database.base import Database
from ledgerkit.domain.currency import convert
from ledgerkit.domain.entities import AccountType, ChartAccount, EntrySide, JournalEntry
from ledgerkit.domain.errors import NotFoundError, ValidationError, chart_account_not_found
from ledgerkit.domain.ledger import Ledger, LedgerService
from ledgerkit.utils.date_parser import month_range
from ledgerkit.utils.money import ZERO, quantize


@dataclass(frozen=True)
class AccountBalance:
    """Balance of one chart account in a report breakdown."""

    account_id: str
    code: str
    name: str
    type: AccountType
    balance: Decimal


@dataclass(frozen=True)
class AccountGroup:
    """Breakdown lines grouped under a parent account."""

    group_id: str
    name: str
    lines: tuple[AccountBalance, ...]
    total: Decimal


@dataclass(frozen=True)
class BalanceSheet:
    as_of: Optional[date]
    assets: Decimal
    liabilities: Decimal
    equity: Decimal
    asset_groups: tuple[AccountGroup, ...] = ()
    liability_groups: tuple[AccountGroup, ...] = ()
    currency: Optional[str] = None

    money_fields: ClassVar[tuple[str, ...]] = ("assets", "liabilities")
    difference_field: ClassVar[str] = "equity"


@dataclass(frozen=True)
class CashFlow:
    start: date
    end: date
    inflows: Decimal
    outflows: Decimal
    net_cash_flow: Decimal
    currency: Optional[str] = None

    money_fields: ClassVar[tuple[str, ...]] = ("inflows", "outflows")
    difference_field: ClassVar[str] = "net_cash_flow"


@dataclass(frozen=True)
class ProfitAndLoss:
    start: date
    end: date
    revenue: Decimal
    expenses: Decimal
    net: Decimal
    revenue_by_account: tuple[AccountBalance, ...] = ()
    expenses_by_account: tuple[AccountBalance, ...] = ()
    currency: Optional[str] = None

    money_fields: ClassVar[tuple[str, ...]] = ("revenue", "expenses")
    difference_field: ClassVar[str] = "net"


@dataclass(frozen=True)
class SpendingItem:
    """Share of one account in a spending breakdown."""

    account_id: str
    code: str
    name: str
    amount: Decimal
    percentage: Decimal
    transaction_count: int


@dataclass(frozen=True)
class CategorySpending:
    """Revenue and expenses per account, largest first, with their shares."""

    start: date
    end: date
    revenue: Decimal
    expenses: Decimal
    net: Decimal
    revenue_items: tuple[SpendingItem, ...] = ()
    expense_items: tuple[SpendingItem, ...] = ()
    currency: Optional[str] = None

    money_fields: ClassVar[tuple[str, ...]] = ("revenue", "expenses")
    difference_field: ClassVar[str] = "net"


def period_range(year: int, month: Optional[int] = None) -> tuple[date, date]:
    """Return the first and last day of a month, or of a whole year.

    Raises:
        ValidationError: If the month is outside 1..12
    """
    try:
        return month_range(year, month)
    except ValueError as e:
        raise ValidationError(str(e)) from e


def _signed_line_amounts(
    entries: list[JournalEntry], account: ChartAccount
) -> Decimal:
    balance = ZERO
    for entry in entries:
        for line in entry.lines:
            if line.account_id != account.id:
                continue
            if line.side == account.type.normal_side:
                balance += line.amount
            else:
                balance -= line.amount
    return balance


def account_balance(
    ledger: Ledger,
    account_id: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> Decimal:
    """Return the normal-side balance of one account over ``[start, end]``.

    Debit-normal accounts (asset, expense) are debits minus credits; the
    others are credits minus debits.

    Raises:
        NotFoundError: If the account does not exist
    """
    account = ledger.get_account(account_id)
    if account is None:
        raise NotFoundError(chart_account_not_found(account_id))
    return _signed_line_amounts(ledger.entries(start, end), account)


def _balances_by_type(
    ledger: Ledger,
    account_type: AccountType,
    start: Optional[date],
    end: Optional[date],
    include_inactive: bool = True,
) -> list[AccountBalance]:
    entries = ledger.entries(start, end)
    return [
        AccountBalance(
            account_id=account.id,
            code=account.code,
            name=account.name,
            type=account.type,
            balance=_signed_line_amounts(entries, account),
        )
        for account in ledger.accounts(include_inactive=include_inactive)
        if account.type == account_type
    ]


def _group_by_parent(ledger: Ledger, balances: list[AccountBalance]) -> tuple[AccountGroup, ...]:
    groups: dict[str, list[AccountBalance]] = {}
    names: dict[str, str] = {}
    for line in balances:
        if line.balance == 0:
            continue
        account = ledger.get_account(line.account_id)
        parent = ledger.get_account(account.parent_id) if account.parent_id else None
        group = parent or account
        groups.setdefault(group.id, []).append(line)
        names[group.id] = group.name
    return tuple(
        AccountGroup(
            group_id=group_id,
            name=names[group_id],
            lines=tuple(lines),
            total=quantize(sum((line.balance for line in lines), ZERO)),
        )
        for group_id, lines in groups.items()
    )


def get_balance_sheet(ledger: Ledger, as_of: Optional[date] = None) -> BalanceSheet:
    """Compute the balance sheet at a date (default: all entries).

    Equity is derived as assets minus liabilities, exactly. Zero-balance
    accounts count toward the totals but are left out of the groups.
    """
    asset_lines = _balances_by_type(
        ledger, AccountType.ASSET, None, as_of, include_inactive=False
    )
    liability_lines = _balances_by_type(
        ledger, AccountType.LIABILITY, None, as_of, include_inactive=False
    )
    assets = quantize(sum((line.balance for line in asset_lines), ZERO))
    liabilities = quantize(sum((line.balance for line in liability_lines), ZERO))
    return BalanceSheet(
        as_of=as_of,
        assets=assets,
        liabilities=liabilities,
        equity=assets - liabilities,
        asset_groups=_group_by_parent(ledger, asset_lines),
        liability_groups=_group_by_parent(ledger, liability_lines),
    )


def get_cash_flow(ledger: Ledger, year: int, month: Optional[int] = None) -> CashFlow:
    """Compute cash in and out of asset accounts for a period.

    Debits to an asset account are inflows, credits are outflows. Inactive
    accounts keep their history.
    """
    start, end = period_range(year, month)
    cash_accounts = {
        account.id
        for account in ledger.accounts()
        if account.type == AccountType.ASSET
    }
    inflows = ZERO
    outflows = ZERO
    for entry in ledger.entries(start, end):
        for line in entry.lines:
            if line.account_id not in cash_accounts:
                continue
            if line.side == EntrySide.DEBIT:
                inflows += line.amount
            else:
                outflows += line.amount
    return CashFlow(
        start=start,
        end=end,
        inflows=quantize(inflows),
        outflows=quantize(outflows),
        net_cash_flow=quantize(inflows - outflows),
    )


def get_profit_and_loss(
    ledger: Ledger, year: int, month: Optional[int] = None
) -> ProfitAndLoss:
    """Compute revenue, expenses and net income for a period.

    Every revenue and expense account counts, deactivated ones included;
    accounts without activity in the period are left out of the breakdowns.
    """
    start, end = period_range(year, month)
    revenue_lines = _balances_by_type(ledger, AccountType.REVENUE, start, end)
    expense_lines = _balances_by_type(ledger, AccountType.EXPENSE, start, end)
    revenue = quantize(sum((line.balance for line in revenue_lines), ZERO))
    expenses = quantize(sum((line.balance for line in expense_lines), ZERO))
    return ProfitAndLoss(
        start=start,
        end=end,
        revenue=revenue,
        expenses=expenses,
        net=revenue - expenses,
        revenue_by_account=tuple(line for line in revenue_lines if line.balance != 0),
        expenses_by_account=tuple(line for line in expense_lines if line.balance != 0),
    )


def _spending_items(
    entries: list[JournalEntry], accounts: list[ChartAccount]
) -> tuple[SpendingItem, ...]:
    amounts = {}
    for account in accounts:
        amount = _signed_line_amounts(entries, account)
        if amount != 0:
            amounts[account.id] = (account, amount)
    total = sum((amount for _, amount in amounts.values()), ZERO)

    items = []
    for account, amount in amounts.values():
        count = sum(
            1 for entry in entries if any(line.account_id == account.id for line in entry.lines)
        )
        items.append(
            SpendingItem(
                account_id=account.id,
                code=account.code,
                name=account.name,
                amount=quantize(amount),
                percentage=quantize(amount / total * 100) if total else ZERO,
                transaction_count=count,
            )
        )
    items.sort(key=lambda item: (-item.amount, item.code))
    return tuple(items)


def get_category_spending(
    ledger: Ledger, year: int, month: Optional[int] = None
) -> CategorySpending:
    """Break revenue and expenses for a period down by account.

    Each item carries its share of the type's total as a percentage and
    the number of journal entries behind it. Like the profit and loss,
    deactivated accounts with activity in the period are included.
    """
    start, end = period_range(year, month)
    entries = ledger.entries(start, end)
    accounts = ledger.accounts()
    revenue_items = _spending_items(
        entries, [a for a in accounts if a.type == AccountType.REVENUE]
    )
    expense_items = _spending_items(
        entries, [a for a in accounts if a.type == AccountType.EXPENSE]
    )
    revenue = quantize(sum((item.amount for item in revenue_items), ZERO))
    expenses = quantize(sum((item.amount for item in expense_items), ZERO))
    return CategorySpending(
        start=start,
        end=end,
        revenue=revenue,
        expenses=expenses,
        net=revenue - expenses,
        revenue_items=revenue_items,
        expense_items=expense_items,
    )


def in_currency(report, from_currency: str, to_currency: str, rates: Mapping[str, Decimal]):
    """Return a copy of a report with its totals converted.

    Each headline total is converted once; the net figure is derived again
    from the converted totals so it still equals their difference. Breakdown
    lines stay in the book currency.
    """
    plus, minus = (
        quantize(convert(getattr(report, name), from_currency, to_currency, rates))
        for name in report.money_fields
    )
    converted = dict(zip(report.money_fields, (plus, minus)))
    converted[report.difference_field] = plus - minus
    return replace(report, currency=to_currency.upper(), **converted)


class ReportService:
    """Service for generating reports from the stored ledger."""

    def __init__(self, db: Database, base_currency: str = "USD"):
        """Initialize report service.

        Args:
            db: Database instance
            base_currency: Currency the ledger is kept in
        """
        self.db = db
        self.base_currency = base_currency.upper()
        self.ledger_service = LedgerService(db)

    def _present(self, report, currency: Optional[str], rates: Optional[Mapping[str, Decimal]]):
        if currency is None:
            return replace(report, currency=self.base_currency)
        return in_currency(report, self.base_currency, currency, rates or {})

    def balance_sheet(
        self,
        as_of: Optional[date] = None,
        currency: Optional[str] = None,
        rates: Optional[Mapping[str, Decimal]] = None,
    ) -> BalanceSheet:
        """Balance sheet at ``as_of``, optionally converted to ``currency``."""
        report = get_balance_sheet(self.ledger_service.load_ledger(), as_of)
        return self._present(report, currency, rates)

    def cash_flow(
        self,
        year: int,
        month: Optional[int] = None,
        currency: Optional[str] = None,
        rates: Optional[Mapping[str, Decimal]] = None,
    ) -> CashFlow:
        """Cash flow for a month or year, optionally converted."""
        report = get_cash_flow(self.ledger_service.load_ledger(), year, month)
        return self._present(report, currency, rates)

    def profit_and_loss(
        self,
        year: int,
        month: Optional[int] = None,
        currency: Optional[str] = None,
        rates: Optional[Mapping[str, Decimal]] = None,
    ) -> ProfitAndLoss:
        """Profit and loss for a month or year, optionally converted."""
        report = get_profit_and_loss(self.ledger_service.load_ledger(), year, month)
        return self._present(report, currency, rates)

    def category_spending(
        self,
        year: int,
        month: Optional[int] = None,
        currency: Optional[str] = None,
        rates: Optional[Mapping[str, Decimal]] = None,
    ) -> CategorySpending:
        """Revenue and expense breakdown by account, optionally converted."""
        report = get_category_spending(self.ledger_service.load_ledger(), year, month)
        return self._present(report, currency, rates)
