"""Double-entry ledger: chart of accounts, journal, and transaction posting.

Every categorized bank transaction becomes one balanced journal entry with
exactly two lines. The bank account's own chart account is one side, the
category's target account the other:

================  ==========  ==================  ==================
Bank account      Amount      Debit               Credit
================  ==========  ==================  ==================
asset             >= 0        bank                target
asset             < 0         target              bank
liability         > 0         target              bank
liability         <= 0        bank                target
================  ==========  ==================  ==================

Both lines carry ``abs(amount)``.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Optional

from ledgerkit.database.base import Database
from ledgerkit.domain.entities import (
    AccountType,
    BankTransaction,
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
    account_not_found,
    chart_account_inactive,
    chart_account_not_found,
    journal_entry_not_found,
    unbalanced_entry,
)

logger = logging.getLogger(__name__)

BANK_ACCOUNT_TYPES = (AccountType.ASSET, AccountType.LIABILITY)


def journal_entry_id(txn: BankTransaction) -> str:
    """Return the journal entry id for a posted bank transaction."""
    return f"JE-{txn.account_id}-{txn.fit_id}"


class Ledger:
    """In-memory chart of accounts and journal.

    The ledger owns the posting state: which bank transactions already have
    an entry. Journal entries are append-only; only their reconciled flag
    may change.
    """

    def __init__(
        self,
        accounts: Iterable[ChartAccount] = (),
        entries: Iterable[JournalEntry] = (),
        posted_keys: Iterable[tuple[int, str]] = (),
    ):
        """Initialize a ledger from stored records.

        Args:
            accounts: Chart of accounts
            entries: Existing journal entries
            posted_keys: ``(bank_account_id, fit_id)`` of every transaction
                that already has an entry

        Raises:
            ValidationError: If an account references a missing parent
            UnbalancedEntryError: If a stored entry is unbalanced
        """
        self._accounts: dict[str, ChartAccount] = {}
        for account in accounts:
            self._accounts[account.id] = account

        errors = [
            f"Chart account '{account.id}' references missing parent '{account.parent_id}'"
            for account in self._accounts.values()
            if account.parent_id is not None and account.parent_id not in self._accounts
        ]
        if errors:
            raise ValidationError(errors)

        self._entries: list[JournalEntry] = []
        self._posted_transaction_ids: set[int] = set()
        self._posted_keys: set[tuple[int, str]] = set(posted_keys)
        for entry in entries:
            check_balanced(entry)
            self._append(entry)

    def _append(self, entry: JournalEntry) -> None:
        self._entries.append(entry)
        if entry.bank_transaction_id is not None:
            self._posted_transaction_ids.add(entry.bank_transaction_id)

    def accounts(self, include_inactive: bool = True) -> list[ChartAccount]:
        """Return chart accounts ordered by code."""
        accounts = sorted(self._accounts.values(), key=lambda a: (a.code, a.id))
        if include_inactive:
            return accounts
        return [account for account in accounts if account.is_active]

    def get_account(self, account_id: str) -> Optional[ChartAccount]:
        return self._accounts.get(account_id)

    def add_account(self, account: ChartAccount) -> None:
        """Add a chart account.

        Raises:
            ConflictError: If the id is taken
            ValidationError: If the parent does not exist
        """
        if account.id in self._accounts:
            raise ConflictError(f"Chart account '{account.id}' already exists")
        if account.parent_id is not None and account.parent_id not in self._accounts:
            raise ValidationError(chart_account_not_found(account.parent_id))
        self._accounts[account.id] = account

    def deactivate_account(self, account_id: str) -> ChartAccount:
        """Mark a chart account inactive; its history stays intact."""
        account = self._accounts.get(account_id)
        if account is None:
            raise NotFoundError(chart_account_not_found(account_id))
        account = replace(account, is_active=False)
        self._accounts[account_id] = account
        return account

    def entries(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[JournalEntry]:
        """Return journal entries dated within ``[start, end]``."""
        return [
            entry
            for entry in self._entries
            if (start is None or entry.date >= start) and (end is None or entry.date <= end)
        ]

    def has_posting_for(self, bank_transaction_id: int) -> bool:
        return bank_transaction_id in self._posted_transaction_ids

    def is_posted(self, txn: BankTransaction) -> bool:
        """Whether a bank transaction already has a journal entry."""
        if txn.journal_entry_id is not None:
            return True
        if txn.id is not None and self.has_posting_for(txn.id):
            return True
        return (txn.account_id, txn.fit_id) in self._posted_keys

    def record(self, entry: JournalEntry, txn: Optional[BankTransaction] = None) -> None:
        """Append a balanced entry to the journal.

        Raises:
            UnbalancedEntryError: If the entry is unbalanced
            ValidationError: If a line references an unknown account
        """
        check_balanced(entry)
        unknown = [line.account_id for line in entry.lines if line.account_id not in self._accounts]
        if unknown:
            raise ValidationError([chart_account_not_found(account_id) for account_id in unknown])
        self._append(entry)
        if txn is not None:
            self._posted_keys.add((txn.account_id, txn.fit_id))

    def set_reconciled(self, entry_id: str, is_reconciled: bool = True) -> JournalEntry:
        """Flip the reconciled flag of an entry."""
        for index, entry in enumerate(self._entries):
            if entry.id == entry_id:
                updated = replace(entry, is_reconciled=is_reconciled)
                self._entries[index] = updated
                return updated
        raise NotFoundError(journal_entry_not_found(entry_id))


def check_balanced(entry: JournalEntry) -> None:
    """Verify the balancing law of an entry.

    Raises:
        UnbalancedEntryError: If debits and credits differ, the entry has
            fewer than two lines, or a line amount is not positive
    """
    if len(entry.lines) < 2:
        raise UnbalancedEntryError(f"Journal entry '{entry.id}' has fewer than two lines")
    if any(line.amount <= 0 for line in entry.lines):
        raise UnbalancedEntryError(f"Journal entry '{entry.id}' has a non-positive line amount")
    if entry.total_debits != entry.total_credits:
        raise UnbalancedEntryError(
            unbalanced_entry(entry.id, entry.total_debits, entry.total_credits)
        )


def build_journal_lines(
    txn: BankTransaction, target_account: ChartAccount, bank_account: ChartAccount
) -> tuple[JournalLine, JournalLine]:
    """Return the (debit, credit) lines for a bank transaction."""
    amount = abs(txn.amount)
    if bank_account.type == AccountType.LIABILITY:
        bank_is_debited = txn.amount <= 0
    else:
        bank_is_debited = txn.amount >= 0

    if bank_is_debited:
        debit, credit = bank_account, target_account
    else:
        debit, credit = target_account, bank_account
    return (
        JournalLine(account_id=debit.id, amount=amount, side=EntrySide.DEBIT),
        JournalLine(account_id=credit.id, amount=amount, side=EntrySide.CREDIT),
    )


def _active_account(ledger: Ledger, txn: BankTransaction, account_id: str) -> ChartAccount:
    account = ledger.get_account(account_id)
    if account is None:
        raise PostingSkippedError(txn.fit_id, chart_account_not_found(account_id))
    if not account.is_active:
        raise PostingSkippedError(txn.fit_id, chart_account_inactive(account_id))
    return account


def prepare_entry(
    ledger: Ledger, txn: BankTransaction, bank_chart_account_id: Optional[str]
) -> JournalEntry:
    """Build (but do not record) the journal entry for a transaction.

    Raises:
        PostingSkippedError: If the transaction cannot be posted
        UnbalancedEntryError: If the built entry is unbalanced
    """
    if not txn.category.is_postable or txn.is_ignored:
        raise PostingSkippedError(txn.fit_id, f"category '{txn.category.value}' is not posted")
    if txn.chart_account_id is None:
        raise PostingSkippedError(txn.fit_id, "no target chart account")
    if bank_chart_account_id is None:
        raise PostingSkippedError(txn.fit_id, "bank account has no chart account")
    if txn.amount == 0:
        raise PostingSkippedError(txn.fit_id, "zero amount")
    if txn.chart_account_id == bank_chart_account_id:
        raise PostingSkippedError(txn.fit_id, "target is the bank account itself")

    target = _active_account(ledger, txn, txn.chart_account_id)
    bank = _active_account(ledger, txn, bank_chart_account_id)
    if bank.type not in BANK_ACCOUNT_TYPES:
        raise PostingSkippedError(
            txn.fit_id, f"bank chart account '{bank.id}' is {bank.type.value}"
        )

    entry = JournalEntry(
        id=journal_entry_id(txn),
        date=txn.date_posted,
        description=txn.name,
        lines=build_journal_lines(txn, target, bank),
        bank_transaction_id=txn.id,
    )
    check_balanced(entry)
    return entry


def post_transaction(
    ledger: Ledger, txn: BankTransaction, bank_chart_account_id: Optional[str]
) -> JournalEntry:
    """Post one bank transaction to the ledger.

    Args:
        ledger: Ledger to post into
        txn: Categorized bank transaction
        bank_chart_account_id: Chart account of the transaction's bank account

    Returns:
        The recorded journal entry

    Raises:
        DuplicateTransactionError: If the transaction was already posted
        PostingSkippedError: If the transaction cannot be posted
        UnbalancedEntryError: If the built entry is unbalanced
    """
    if ledger.is_posted(txn):
        raise DuplicateTransactionError(txn.fit_id, txn.account_id)
    entry = prepare_entry(ledger, txn, bank_chart_account_id)
    ledger.record(entry, txn)
    logger.debug("Posted %s as %s", txn.fit_id, entry.id)
    return entry


@dataclass
class PostingBatchResult:
    """Outcome of posting a batch of transactions."""

    entries: list[JournalEntry] = field(default_factory=list)
    skipped: list[PostingSkippedError] = field(default_factory=list)
    duplicates: list[DuplicateTransactionError] = field(default_factory=list)

    @property
    def posted(self) -> int:
        return len(self.entries)


def post_batch(
    ledger: Ledger, transactions: Sequence[BankTransaction], bank_chart_account_id: Optional[str]
) -> PostingBatchResult:
    """Post a batch of transactions, all or nothing.

    Skipped and duplicate transactions are collected and the rest of the
    batch continues. Entries are only recorded once the whole batch has been
    built, so an UnbalancedEntryError leaves the ledger untouched.

    Raises:
        UnbalancedEntryError: If any built entry is unbalanced
    """
    result = PostingBatchResult()
    staged: list[tuple[JournalEntry, BankTransaction]] = []
    seen: set[tuple[int, str]] = set()

    for txn in transactions:
        key = (txn.account_id, txn.fit_id)
        try:
            if key in seen or ledger.is_posted(txn):
                raise DuplicateTransactionError(txn.fit_id, txn.account_id)
            entry = prepare_entry(ledger, txn, bank_chart_account_id)
        except DuplicateTransactionError as e:
            logger.warning("%s", e)
            result.duplicates.append(e)
            continue
        except PostingSkippedError as e:
            logger.warning("%s", e)
            result.skipped.append(e)
            continue
        seen.add(key)
        staged.append((entry, txn))

    for entry, txn in staged:
        ledger.record(entry, txn)
        result.entries.append(entry)
    return result


class LedgerService:
    """Service that loads the ledger and persists postings."""

    def __init__(self, db: Database):
        """Initialize ledger service.

        Args:
            db: Database instance
        """
        self.db = db

    def load_ledger(self) -> Ledger:
        """Load the chart of accounts and journal from the database."""
        posted_keys = [
            (txn.account_id, txn.fit_id)
            for txn in self.db.list_bank_transactions()
            if txn.journal_entry_id is not None
        ]
        return Ledger(
            accounts=self.db.list_chart_accounts(),
            entries=self.db.list_journal_entries(),
            posted_keys=posted_keys,
        )

    def post_transactions(
        self, account_id: int, ledger: Optional[Ledger] = None
    ) -> PostingBatchResult:
        """Post every stored, unposted transaction of a bank account.

        Uncategorized, transfer and ignored transactions are left alone; the
        rest are posted or reported as skipped.

        Args:
            account_id: Bank account ID
            ledger: Already loaded ledger (default: load a fresh one)

        Returns:
            PostingBatchResult

        Raises:
            NotFoundError: If the bank account does not exist
        """
        account = self.db.get_bank_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))

        ledger = ledger or self.load_ledger()
        pending = [
            txn
            for txn in self.db.list_bank_transactions(account_id=account_id, unposted_only=True)
            if txn.category.is_postable
            and not txn.is_ignored
            and (
                txn.chart_account_id is not None
                or txn.category != TransactionCategory.UNCATEGORIZED
            )
        ]
        result = post_batch(ledger, pending, account.chart_account_id)
        if result.entries:
            self.db.save_journal_entries(result.entries)
        logger.info(
            "Posted %d transaction(s) for account %s, %d skipped",
            result.posted,
            account_id,
            len(result.skipped),
        )
        return result

    def get_entry(self, entry_id: str) -> JournalEntry:
        entry = self.db.get_journal_entry(entry_id)
        if entry is None:
            raise NotFoundError(journal_entry_not_found(entry_id))
        return entry

    def set_entry_reconciled(self, entry_id: str, is_reconciled: bool = True) -> None:
        """Mark a journal entry reconciled (or not)."""
        self.get_entry(entry_id)
        self.db.set_journal_entry_reconciled(entry_id, is_reconciled)
