"""Tests for ledger posting."""

import pytest
from datetime import date
from decimal import Decimal

from conftest import make_transaction
from ledgerkit.domain.chart_presets import default_chart_accounts
from ledgerkit.domain.entities import (
    AccountType,
    ChartAccount,
    EntrySide,
    JournalEntry,
    JournalLine,
    TransactionCategory,
)
from ledgerkit.domain.errors import (
    ConflictError,
    DuplicateTransactionError,
    NotFoundError,
    PostingSkippedError,
    UnbalancedEntryError,
    ValidationError,
)
from ledgerkit.domain import ledger as ledger_module
from ledgerkit.domain.ledger import Ledger, check_balanced, post_batch, post_transaction

CHECKING = "1110"
CREDIT_CARD = "2110"


@pytest.fixture
def ledger():
    """In-memory ledger holding the default chart of accounts."""
    return Ledger(accounts=default_chart_accounts())


def _expense(fit_id, amount, on=date(2024, 1, 10), account="5140", **kwargs):
    return make_transaction(
        fit_id, amount, on, category=TransactionCategory.EXPENSE, chart_account_id=account, **kwargs
    )


def _sides(entry):
    return {line.side: (line.account_id, line.amount) for line in entry.lines}


def test_credit_card_charge_debits_expense_credits_liability(ledger):
    """A positive amount on a credit card account is a charge."""
    txn = _expense("CC001", "75.00", is_liability=True)

    entry = post_transaction(ledger, txn, CREDIT_CARD)

    assert _sides(entry) == {
        EntrySide.DEBIT: ("5140", Decimal("75.00")),
        EntrySide.CREDIT: (CREDIT_CARD, Decimal("75.00")),
    }


def test_credit_card_payment_debits_liability(ledger):
    """A non-positive amount on a credit card account is a payment."""
    txn = make_transaction(
        "CC002", "-200.00", date(2024, 1, 20), category=TransactionCategory.EXPENSE,
        chart_account_id=CHECKING, is_liability=True,
    )

    entry = post_transaction(ledger, txn, CREDIT_CARD)

    assert _sides(entry)[EntrySide.DEBIT] == (CREDIT_CARD, Decimal("200.00"))
    assert _sides(entry)[EntrySide.CREDIT] == (CHECKING, Decimal("200.00"))


def test_asset_deposit_and_withdrawal(ledger):
    """Deposits debit the bank; withdrawals credit it."""
    deposit = make_transaction(
        "D1", "2000.00", date(2024, 1, 5), category=TransactionCategory.REVENUE,
        chart_account_id="4100",
    )
    withdrawal = _expense("W1", "-150.00", account="5120")

    deposit_entry = post_transaction(ledger, deposit, CHECKING)
    withdrawal_entry = post_transaction(ledger, withdrawal, CHECKING)

    assert _sides(deposit_entry) == {
        EntrySide.DEBIT: (CHECKING, Decimal("2000.00")),
        EntrySide.CREDIT: ("4100", Decimal("2000.00")),
    }
    assert _sides(withdrawal_entry) == {
        EntrySide.DEBIT: ("5120", Decimal("150.00")),
        EntrySide.CREDIT: (CHECKING, Decimal("150.00")),
    }


def test_every_posted_entry_is_balanced(ledger):
    """Debits equal credits for every entry the ledger holds."""
    amounts = ["12.34", "-0.01", "999999.99", "-45.50", "3.00"]
    for index, amount in enumerate(amounts):
        post_transaction(ledger, _expense(f"T{index}", amount), CHECKING)

    for entry in ledger.entries():
        assert len(entry.lines) == 2
        assert entry.total_debits == entry.total_credits
        assert all(line.amount > 0 for line in entry.lines)


def test_entry_id_and_link(ledger):
    """Entries get a deterministic id and remember their bank transaction."""
    entry = post_transaction(ledger, _expense("T1", "-5.00", txn_id=42, account_id=3), CHECKING)

    assert entry.id == "JE-3-T1"
    assert entry.bank_transaction_id == 42
    assert entry.description == "Test"
    assert ledger.has_posting_for(42)


def test_posting_twice_is_a_duplicate(ledger):
    """A transaction is posted at most once."""
    txn = _expense("T1", "-5.00")
    post_transaction(ledger, txn, CHECKING)

    with pytest.raises(DuplicateTransactionError):
        post_transaction(ledger, txn, CHECKING)
    assert len(ledger.entries()) == 1


@pytest.mark.parametrize(
    "txn, bank, reason",
    [
        (make_transaction("T", "-1.00", date(2024, 1, 1)), CHECKING, "no target"),
        (_expense("T", "0.00"), CHECKING, "zero amount"),
        (_expense("T", "-1.00", account=CHECKING), CHECKING, "bank account itself"),
        (_expense("T", "-1.00", account="9999"), CHECKING, "not found"),
        (_expense("T", "-1.00"), None, "no chart account"),
        (_expense("T", "-1.00"), "5100", "EXPENSE"),
        (
            make_transaction("T", "-1.00", date(2024, 1, 1), category=TransactionCategory.TRANSFER),
            CHECKING,
            "not posted",
        ),
    ],
)
def test_unpostable_transactions_are_skipped(ledger, txn, bank, reason):
    """Transactions without a usable target are reported, not posted."""
    with pytest.raises(PostingSkippedError, match=reason):
        post_transaction(ledger, txn, bank)
    assert ledger.entries() == []


def test_inactive_target_is_skipped(ledger):
    """Deactivated accounts receive no new postings."""
    ledger.deactivate_account("5140")

    with pytest.raises(PostingSkippedError, match="inactive"):
        post_transaction(ledger, _expense("T1", "-5.00"), CHECKING)


def test_batch_collects_skips_and_duplicates(ledger):
    """Batch posting continues past skipped and duplicate transactions."""
    txns = [
        _expense("T1", "-5.00"),
        _expense("T2", "0.00"),
        _expense("T1", "-5.00"),
        _expense("T3", "-7.00"),
    ]

    result = post_batch(ledger, txns, CHECKING)

    assert result.posted == 2
    assert [error.fit_id for error in result.skipped] == ["T2"]
    assert [error.fit_id for error in result.duplicates] == ["T1"]
    assert len(ledger.entries()) == 2


def test_unbalanced_entry_mid_batch_posts_nothing(ledger, monkeypatch):
    """An entry that fails to balance aborts the batch before anything is recorded."""
    real_build = ledger_module.build_journal_lines
    calls = []

    def lopsided_second_entry(txn, target, bank):
        calls.append(txn.fit_id)
        debit, credit = real_build(txn, target, bank)
        if len(calls) == 2:
            debit = JournalLine(debit.account_id, debit.amount + 1, EntrySide.DEBIT)
        return debit, credit

    monkeypatch.setattr(ledger_module, "build_journal_lines", lopsided_second_entry)
    txns = [_expense("T1", "-10.00"), _expense("T2", "-20.00"), _expense("T3", "-30.00")]

    with pytest.raises(UnbalancedEntryError):
        post_batch(ledger, txns, CHECKING)

    assert calls == ["T1", "T2"]
    assert ledger.entries() == []
    assert not any(ledger.is_posted(txn) for txn in txns)


def test_check_balanced_rejects_bad_entries():
    """Unbalanced, one-line and non-positive entries break the balancing law."""
    unbalanced = JournalEntry(
        id="E1",
        date=date(2024, 1, 1),
        description="bad",
        lines=(
            JournalLine("5100", Decimal("10.00"), EntrySide.DEBIT),
            JournalLine(CHECKING, Decimal("9.99"), EntrySide.CREDIT),
        ),
    )
    single = JournalEntry("E2", date(2024, 1, 1), "bad", (JournalLine("5100", Decimal("1"), EntrySide.DEBIT),))

    with pytest.raises(UnbalancedEntryError, match="unbalanced"):
        check_balanced(unbalanced)
    with pytest.raises(UnbalancedEntryError):
        check_balanced(single)
    with pytest.raises(UnbalancedEntryError):
        Ledger(accounts=default_chart_accounts(), entries=[unbalanced])


def test_unbalanced_error_is_not_a_domain_error():
    """Unbalanced entries must not be swallowed by per-item handlers."""
    assert not issubclass(UnbalancedEntryError, ValueError)


def test_ledger_account_management(ledger):
    """Accounts can be added and deactivated but parents must exist."""
    ledger.add_account(ChartAccount("5170", "5170", "Training", AccountType.EXPENSE, parent_id="5100"))

    assert ledger.get_account("5170").name == "Training"
    with pytest.raises(ConflictError):
        ledger.add_account(ChartAccount("5170", "5170", "Again", AccountType.EXPENSE))
    with pytest.raises(ValidationError):
        ledger.add_account(ChartAccount("7000", "7000", "Orphan", AccountType.EXPENSE, parent_id="6999"))
    with pytest.raises(NotFoundError):
        ledger.deactivate_account("0000")

    ledger.deactivate_account("5170")
    assert "5170" not in [a.id for a in ledger.accounts(include_inactive=False)]


def test_ledger_rejects_missing_parent():
    """A chart whose parent is missing fails to load."""
    with pytest.raises(ValidationError, match="missing parent"):
        Ledger(accounts=[ChartAccount("1110", "1110", "Checking", AccountType.ASSET, parent_id="1100")])


def test_set_reconciled(ledger):
    """Only the reconciled flag of an entry may change."""
    entry = post_transaction(ledger, _expense("T1", "-5.00"), CHECKING)

    updated = ledger.set_reconciled(entry.id)

    assert updated.is_reconciled
    assert updated.lines == entry.lines
    assert [e.is_reconciled for e in ledger.entries()] == [True]


def test_service_posts_categorized_transactions(
    temp_db, ledger_service, import_service, rule_service, default_chart, fixtures_dir
):
    """The service posts stored transactions and links them to their entries."""
    rule_service.create_rule("utilities", TransactionCategory.EXPENSE, chart_account_id="5120")
    result = import_service.import_file(str(fixtures_dir / "checking.ofx"), post=False)
    account_id = result["account_id"]

    posting = ledger_service.post_transactions(account_id)

    assert posting.posted == 1
    stored = {txn.fit_id: txn for txn in temp_db.list_bank_transactions(account_id=account_id)}
    assert stored["CHK002"].journal_entry_id == f"JE-{account_id}-CHK002"
    entry = ledger_service.get_entry(f"JE-{account_id}-CHK002")
    assert entry.total_debits == Decimal("150.00")

    # Nothing new to post the second time
    assert ledger_service.post_transactions(account_id).posted == 0

    ledger_service.set_entry_reconciled(entry.id)
    assert temp_db.get_journal_entry(entry.id).is_reconciled
    with pytest.raises(NotFoundError):
        ledger_service.get_entry("JE-missing")
