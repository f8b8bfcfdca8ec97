"""Balance reconciliation.

Compares the balance computed from stored transactions with the balance the
bank reports, records the result, and raises a corrective adjustment
transaction when they differ. Re-running a reconciliation for the same
account and date never creates a second adjustment.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Optional

from ledgerkit.database.base import Database
from ledgerkit.domain.account import flow_type_for
from ledgerkit.domain.entities import (
    BankAccount,
    BankTransaction,
    Reconciliation,
    StatementTransactionType,
    TransactionCategory,
)
from ledgerkit.domain.errors import (
    DomainError,
    NotFoundError,
    ValidationError,
    account_not_found,
    chart_account_inactive,
    chart_account_not_found,
)
from ledgerkit.domain.ledger import LedgerService, post_transaction
from ledgerkit.utils.money import ZERO, quantize, to_decimal, to_fixed

logger = logging.getLogger(__name__)

ADJUSTMENT_NAME = "Balance Adjustment"
ADJUSTMENT_MEMO = "Reconciliation adjustment to match bank balance"


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of one reconciliation run."""

    reconciliation: Reconciliation
    expected_balance: Decimal
    discrepancy: Decimal
    message: str
    adjustment_transaction: Optional[BankTransaction] = None


def expected_balance(
    account: BankAccount, transactions: Iterable[BankTransaction], as_of: date
) -> Decimal:
    """Compute the balance the account should have at ``as_of``.

    The opening balance plus every transaction dated strictly after the
    opening balance date and on or before ``as_of``. Ignored transactions
    count too: the bank reported them.
    """
    opening = to_decimal(account.opening_balance)
    opening_date = account.opening_balance_date
    if opening_date is not None and as_of <= opening_date:
        return quantize(opening)

    balance = opening
    for txn in transactions:
        if txn.account_id != account.id or txn.date_posted > as_of:
            continue
        if opening_date is not None and txn.date_posted <= opening_date:
            continue
        balance += txn.amount
    return quantize(balance)


def discrepancy(expected: Decimal, actual: Decimal) -> Decimal:
    """Return actual minus expected."""
    return quantize(to_decimal(actual) - to_decimal(expected))


def adjustment_fit_id(account_id: int, as_of: date) -> str:
    """Return the deterministic fit id of a reconciliation adjustment."""
    return f"RECONCILE-{account_id}-{as_of.isoformat()}"


def build_adjustment_transaction(
    account: BankAccount,
    as_of: date,
    amount: Decimal,
    chart_account_id: Optional[str] = None,
) -> BankTransaction:
    """Build the bank transaction that corrects a discrepancy."""
    return BankTransaction(
        id=None,
        account_id=account.id,
        fit_id=adjustment_fit_id(account.id, as_of),
        amount=quantize(amount),
        date_posted=as_of,
        name=ADJUSTMENT_NAME,
        memo=ADJUSTMENT_MEMO,
        transaction_type=StatementTransactionType.OTHER,
        category=TransactionCategory.ADJUSTMENT,
        chart_account_id=chart_account_id,
        flow_type=flow_type_for(account.is_liability, amount),
        is_reconciled=True,
        import_batch_id=f"RECONCILE-{as_of.isoformat()}",
    )


def reconcile(
    account: BankAccount,
    transactions: Iterable[BankTransaction],
    as_of: date,
    actual_balance: Decimal,
    create_adjustment: bool = True,
    notes: str = "",
    adjustment_account_id: Optional[str] = None,
) -> ReconciliationResult:
    """Reconcile an account against the balance the bank reports.

    Args:
        account: Bank account being reconciled
        transactions: The account's stored transactions
        as_of: Date of the bank balance
        actual_balance: Balance reported by the bank
        create_adjustment: Whether to raise an adjustment for a discrepancy
        notes: Free-form notes kept on the record
        adjustment_account_id: Chart account the adjustment is booked against

    Returns:
        ReconciliationResult; the record is always produced, even with a
        zero adjustment
    """
    transactions = list(transactions)
    actual = quantize(actual_balance)
    expected = expected_balance(account, transactions, as_of)
    difference = discrepancy(expected, actual)
    fit_id = adjustment_fit_id(account.id, as_of)

    adjustment = None
    if difference == ZERO:
        message = "Balance matches - no adjustment needed"
    elif not create_adjustment:
        message = f"Discrepancy of {to_fixed(difference)} recorded; no adjustment created"
    elif any(txn.account_id == account.id and txn.fit_id == fit_id for txn in transactions):
        message = f"Adjustment {fit_id} already exists; no new adjustment created"
    else:
        adjustment = build_adjustment_transaction(
            account, as_of, difference, adjustment_account_id
        )
        message = f"Balance adjusted by {to_fixed(difference)} to match bank balance"

    record = Reconciliation(
        id=None,
        account_id=account.id,
        reconciled_date=as_of,
        expected_balance=expected,
        actual_balance=actual,
        adjustment_amount=difference,
        notes=notes,
        adjustment_fit_id=adjustment.fit_id if adjustment else None,
    )
    return ReconciliationResult(
        reconciliation=record,
        expected_balance=expected,
        discrepancy=difference,
        message=message,
        adjustment_transaction=adjustment,
    )


class ReconciliationService:
    """Service that runs and records reconciliations."""

    def __init__(self, db: Database):
        """Initialize reconciliation service.

        Args:
            db: Database instance
        """
        self.db = db
        self.ledger_service = LedgerService(db)

    def _get_account(self, account_id: int) -> BankAccount:
        account = self.db.get_bank_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        return account

    def expected_balance(self, account_id: int, as_of: date) -> Decimal:
        """Compute the expected balance of a stored account."""
        account = self._get_account(account_id)
        return expected_balance(
            account, self.db.list_bank_transactions(account_id=account_id), as_of
        )

    def reconcile(
        self,
        account_id: int,
        as_of: date,
        actual_balance: Decimal,
        create_adjustment: bool = True,
        notes: str = "",
        adjustment_account_id: Optional[str] = None,
    ) -> ReconciliationResult:
        """Reconcile a stored account and save the outcome.

        The adjustment transaction (if any) is saved, then posted to the
        ledger when both the bank account's chart account and
        ``adjustment_account_id`` are set. The reconciliation record is saved
        in every case.

        Raises:
            NotFoundError: If the account does not exist
            ValidationError: If the adjustment chart account is unusable
        """
        account = self._get_account(account_id)
        if adjustment_account_id is not None:
            chart_account = self.db.get_chart_account(adjustment_account_id)
            if chart_account is None:
                raise ValidationError(chart_account_not_found(adjustment_account_id))
            if not chart_account.is_active:
                raise ValidationError(chart_account_inactive(adjustment_account_id))

        result = reconcile(
            account,
            self.db.list_bank_transactions(account_id=account_id),
            as_of,
            actual_balance,
            create_adjustment=create_adjustment,
            notes=notes,
            adjustment_account_id=adjustment_account_id,
        )

        adjustment = result.adjustment_transaction
        record = result.reconciliation
        if adjustment is not None and self.db.transaction_exists(account_id, adjustment.fit_id):
            logger.warning("Adjustment %s already stored; not creating another", adjustment.fit_id)
            adjustment = None
            record = replace(record, adjustment_fit_id=None)
        if adjustment is not None:
            adjustment = replace(adjustment, id=self.db.create_bank_transaction(adjustment))
            record = replace(record, adjustment_transaction_id=adjustment.id)
            self._post_adjustment(account, adjustment)

        record = replace(record, id=self.db.create_reconciliation(record))
        logger.info(
            "Reconciled account %s as of %s: expected %s, actual %s",
            account_id,
            as_of,
            record.expected_balance,
            record.actual_balance,
        )
        return replace(result, reconciliation=record, adjustment_transaction=adjustment)

    def _post_adjustment(self, account: BankAccount, adjustment: BankTransaction) -> None:
        if account.chart_account_id is None or adjustment.chart_account_id is None:
            return
        ledger = self.ledger_service.load_ledger()
        try:
            entry = post_transaction(ledger, adjustment, account.chart_account_id)
        except DomainError as e:
            logger.warning("Adjustment %s not posted: %s", adjustment.fit_id, e)
            return
        self.db.save_journal_entries([entry])

    def list_reconciliations(self, account_id: int) -> list[Reconciliation]:
        """List the reconciliation history of an account, newest first."""
        self._get_account(account_id)
        return self.db.list_reconciliations(account_id)
