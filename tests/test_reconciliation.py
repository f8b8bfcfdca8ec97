"""Tests for balance reconciliation."""

import pytest
from dataclasses import replace
from datetime import date
from decimal import Decimal

from conftest import make_bank_account, make_transaction
from ledgerkit.domain.entities import FlowType, TransactionCategory
from ledgerkit.domain.errors import NotFoundError, ValidationError
from ledgerkit.domain.reconciliation import (
    adjustment_fit_id,
    discrepancy,
    expected_balance,
    reconcile,
)

OPENED = date(2024, 1, 1)


@pytest.fixture
def account():
    """Checking account opened with 1000.00 on 2024-01-01."""
    return make_bank_account(opening_balance="1000.00", opening_balance_date=OPENED)


@pytest.fixture
def transactions():
    return [
        make_transaction("T1", "200.00", date(2024, 1, 5)),
        make_transaction("T2", "-50.00", date(2024, 1, 10)),
    ]


def test_expected_balance(account, transactions):
    """Opening balance plus transactions up to the reconciliation date."""
    assert expected_balance(account, transactions, date(2024, 1, 15)) == Decimal("1150.00")
    assert expected_balance(account, transactions, date(2024, 1, 7)) == Decimal("1200.00")


def test_expected_balance_boundaries(account, transactions):
    """Transactions on the opening date are excluded, those on as_of included."""
    on_opening = make_transaction("T0", "999.00", OPENED)
    on_as_of = make_transaction("T3", "1.00", date(2024, 1, 15))

    balance = expected_balance(account, transactions + [on_opening, on_as_of], date(2024, 1, 15))

    assert balance == Decimal("1151.00")
    assert expected_balance(account, transactions, OPENED) == Decimal("1000.00")
    assert expected_balance(account, transactions, date(2023, 12, 1)) == Decimal("1000.00")


def test_expected_balance_without_opening_date(transactions):
    """Without an opening date every transaction up to as_of counts."""
    account = make_bank_account(opening_balance="10.00")

    assert expected_balance(account, transactions, date(2024, 1, 31)) == Decimal("160.00")


def test_expected_balance_ignores_other_accounts(account, transactions):
    """Only the reconciled account's transactions count."""
    other = make_transaction("X1", "500.00", date(2024, 1, 6), account_id=2)

    assert expected_balance(account, transactions + [other], date(2024, 1, 15)) == Decimal("1150.00")


def test_discrepancy_creates_adjustment():
    """A positive discrepancy on an asset account is adjusted upward."""
    account = make_bank_account(opening_balance="1100.00", opening_balance_date=OPENED)

    result = reconcile(account, [], date(2024, 1, 31), Decimal("1200.00"),
                       adjustment_account_id="5900")

    assert result.expected_balance == Decimal("1100.00")
    assert result.discrepancy == Decimal("100.00")
    adjustment = result.adjustment_transaction
    assert adjustment.amount == Decimal("100.00")
    assert adjustment.fit_id == adjustment_fit_id(account.id, date(2024, 1, 31))
    assert adjustment.category == TransactionCategory.ADJUSTMENT
    assert adjustment.chart_account_id == "5900"
    assert adjustment.flow_type == FlowType.CREDIT
    assert adjustment.is_reconciled
    assert result.reconciliation.adjustment_amount == Decimal("100.00")
    assert result.reconciliation.adjustment_fit_id == adjustment.fit_id
    assert result.message == "Balance adjusted by 100.00 to match bank balance"


def test_matching_balance_needs_no_adjustment(account, transactions):
    """A zero discrepancy still produces a record."""
    result = reconcile(account, transactions, date(2024, 1, 15), Decimal("1150"))

    assert result.adjustment_transaction is None
    assert result.reconciliation.adjustment_amount == Decimal("0.00")
    assert result.message == "Balance matches - no adjustment needed"


def test_no_adjust_records_discrepancy_only(account, transactions):
    """With adjustments disabled the discrepancy is only recorded."""
    result = reconcile(account, transactions, date(2024, 1, 15), Decimal("1100.00"),
                       create_adjustment=False)

    assert result.adjustment_transaction is None
    assert result.discrepancy == Decimal("-50.00")
    assert result.message == "Discrepancy of -50.00 recorded; no adjustment created"


def test_existing_adjustment_is_not_recreated(account, transactions):
    """The deterministic fit id makes a rerun a no-op."""
    as_of = date(2024, 1, 15)
    existing = replace(
        make_transaction(adjustment_fit_id(account.id, as_of), "0.00", date(2024, 1, 20)),
        category=TransactionCategory.ADJUSTMENT,
    )

    result = reconcile(account, transactions + [existing], as_of, Decimal("1200.00"))

    assert result.adjustment_transaction is None
    assert "already exists" in result.message


def test_discrepancy_sign():
    """Discrepancy is actual minus expected."""
    assert discrepancy(Decimal("1100"), Decimal("1200")) == Decimal("100.00")
    assert discrepancy(Decimal("1200"), Decimal("1100")) == Decimal("-100.00")


def _store_transactions(temp_db, account_id):
    temp_db.create_bank_transactions(
        [
            make_transaction("T1", "200.00", date(2024, 1, 5), account_id=account_id),
            make_transaction("T2", "-50.00", date(2024, 1, 10), account_id=account_id),
        ]
    )


def test_service_reconcile_is_idempotent(
    temp_db, account_service, reconciliation_service, checking_account
):
    """Reconciling twice creates one adjustment, posted to the ledger."""
    account_service.set_opening_balance(checking_account.id, Decimal("1000.00"), OPENED)
    _store_transactions(temp_db, checking_account.id)
    as_of = date(2024, 1, 15)

    assert reconciliation_service.expected_balance(checking_account.id, as_of) == Decimal("1150.00")

    first = reconciliation_service.reconcile(
        checking_account.id, as_of, Decimal("1250.00"), adjustment_account_id="5900"
    )
    second = reconciliation_service.reconcile(
        checking_account.id, as_of, Decimal("1250.00"), adjustment_account_id="5900"
    )

    assert first.discrepancy == Decimal("100.00")
    assert first.adjustment_transaction.id is not None
    assert first.reconciliation.adjustment_transaction_id == first.adjustment_transaction.id
    assert second.discrepancy == Decimal("0.00")
    assert second.adjustment_transaction is None

    adjustments = [
        txn for txn in temp_db.list_bank_transactions(account_id=checking_account.id)
        if txn.category == TransactionCategory.ADJUSTMENT
    ]
    assert len(adjustments) == 1
    assert adjustments[0].journal_entry_id is not None
    assert len(reconciliation_service.list_reconciliations(checking_account.id)) == 2


def test_service_reconcile_validates_inputs(reconciliation_service, checking_account):
    """Unknown accounts and adjustment accounts are rejected."""
    with pytest.raises(NotFoundError):
        reconciliation_service.reconcile(999, date(2024, 1, 1), Decimal("0"))
    with pytest.raises(ValidationError, match="not found"):
        reconciliation_service.reconcile(
            checking_account.id, date(2024, 1, 1), Decimal("5"), adjustment_account_id="0000"
        )
