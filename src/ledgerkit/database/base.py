"""Abstract database interface."""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional

# Import entities directly; domain/__init__.py resolves services lazily
from ledgerkit.domain.entities import (
    BankAccount,
    BankTransaction,
    ChartAccount,
    JournalEntry,
    MappingRule,
    MatchField,
    MatchType,
    Reconciliation,
    StatementAccountType,
    TransactionCategory,
)


class Database(ABC):
    """Abstract database interface for ledgerkit."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Bank account operations
    @abstractmethod
    def create_bank_account(
        self,
        name: str,
        bank_id: str,
        account_id_masked: str,
        account_id_hash: str,
        account_type: StatementAccountType,
        currency: str,
        chart_account_id: Optional[str] = None,
        opening_balance: Decimal = Decimal("0"),
        opening_balance_date: Optional[date] = None,
    ) -> int:
        """Create a bank account. Returns account ID."""
        pass

    @abstractmethod
    def get_bank_account(self, account_id: int) -> Optional[BankAccount]:
        """Get bank account by ID."""
        pass

    @abstractmethod
    def get_bank_account_by_hash(self, account_id_hash: str) -> Optional[BankAccount]:
        """Get bank account by the hash of its raw account identifier."""
        pass

    @abstractmethod
    def list_bank_accounts(self) -> list[BankAccount]:
        """List all bank accounts."""
        pass

    @abstractmethod
    def update_bank_account(
        self,
        account_id: int,
        name: Optional[str] = None,
        chart_account_id: Optional[str] = None,
        opening_balance: Optional[Decimal] = None,
        opening_balance_date: Optional[date] = None,
    ) -> None:
        """Update the given bank account fields (None leaves a field as is)."""
        pass

    # Chart of accounts operations
    @abstractmethod
    def create_chart_account(self, account: ChartAccount) -> str:
        """Create a chart account. Returns its ID."""
        pass

    @abstractmethod
    def get_chart_account(self, account_id: str) -> Optional[ChartAccount]:
        """Get chart account by ID."""
        pass

    @abstractmethod
    def list_chart_accounts(self, include_inactive: bool = True) -> list[ChartAccount]:
        """List chart accounts ordered by code."""
        pass

    @abstractmethod
    def update_chart_account_active(self, account_id: str, is_active: bool) -> None:
        """Activate or deactivate a chart account."""
        pass

    @abstractmethod
    def get_chart_account_line_count(self, account_id: str) -> int:
        """Get count of journal lines referencing a chart account."""
        pass

    @abstractmethod
    def delete_chart_account(self, account_id: str) -> None:
        """Delete a chart account."""
        pass

    # Bank transaction operations
    @abstractmethod
    def create_bank_transaction(self, transaction: BankTransaction) -> int:
        """Create a bank transaction. Returns transaction ID."""
        pass

    @abstractmethod
    def create_bank_transactions(self, transactions: list[BankTransaction]) -> list[int]:
        """Create bank transactions in one commit. Returns their IDs in order."""
        pass

    @abstractmethod
    def transaction_exists(self, account_id: int, fit_id: str) -> bool:
        """Check if a transaction with given fit_id exists for account."""
        pass

    @abstractmethod
    def list_bank_transactions(
        self,
        account_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category: Optional[TransactionCategory] = None,
        unposted_only: bool = False,
    ) -> list[BankTransaction]:
        """List bank transactions ordered by date, then ID."""
        pass

    @abstractmethod
    def update_transaction_category(
        self,
        transaction_id: int,
        category: TransactionCategory,
        chart_account_id: Optional[str] = None,
        subcategory: Optional[str] = None,
        revenue_source_id: Optional[int] = None,
    ) -> None:
        """Set the categorization of a transaction."""
        pass

    # Journal operations
    @abstractmethod
    def save_journal_entries(self, entries: list[JournalEntry]) -> None:
        """Save journal entries and link their bank transactions, in one commit."""
        pass

    @abstractmethod
    def get_journal_entry(self, entry_id: str) -> Optional[JournalEntry]:
        """Get journal entry by ID."""
        pass

    @abstractmethod
    def list_journal_entries(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> list[JournalEntry]:
        """List journal entries ordered by date."""
        pass

    @abstractmethod
    def set_journal_entry_reconciled(self, entry_id: str, is_reconciled: bool) -> None:
        """Set the reconciled flag of a journal entry."""
        pass

    # Mapping rule operations
    @abstractmethod
    def create_mapping_rule(
        self,
        pattern: str,
        category: TransactionCategory,
        match_field: MatchField = MatchField.NAME,
        match_type: MatchType = MatchType.CONTAINS,
        chart_account_id: Optional[str] = None,
        subcategory: Optional[str] = None,
        revenue_source_id: Optional[int] = None,
        priority: int = 0,
        account_id: Optional[int] = None,
    ) -> int:
        """Create a mapping rule. Returns rule ID."""
        pass

    @abstractmethod
    def get_mapping_rule(self, rule_id: int) -> Optional[MappingRule]:
        """Get mapping rule by ID."""
        pass

    @abstractmethod
    def list_mapping_rules(self, active_only: bool = False) -> list[MappingRule]:
        """List mapping rules ordered by ID."""
        pass

    @abstractmethod
    def update_mapping_rule(
        self, rule_id: int, priority: Optional[int] = None, is_active: Optional[bool] = None
    ) -> None:
        """Update the priority and/or active flag of a rule."""
        pass

    # Reconciliation operations
    @abstractmethod
    def create_reconciliation(self, reconciliation: Reconciliation) -> int:
        """Create a reconciliation record. Returns its ID."""
        pass

    @abstractmethod
    def list_reconciliations(self, account_id: int) -> list[Reconciliation]:
        """List reconciliation records of an account, newest first."""
        pass
