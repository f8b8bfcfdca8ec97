"""Account domain service: bank accounts and the chart of accounts."""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from ledgerkit.database.base import Database
from ledgerkit.domain.chart_presets import (
    CASH_AND_BANK_ID,
    CREDIT_CARDS_ID,
    default_chart_accounts,
)
from ledgerkit.domain.entities import (
    AccountType,
    BankAccount,
    ChartAccount,
    FlowType,
    StatementAccount,
)
from ledgerkit.domain.errors import (
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
    account_not_found,
    chart_account_not_found,
)
from ledgerkit.domain.statement_parser import hash_account_id, mask_account_id
from ledgerkit.utils.money import quantize

logger = logging.getLogger(__name__)


def flow_type_for(is_liability: bool, amount: Decimal) -> FlowType:
    """Derive the flow type of a transaction from its account kind and sign."""
    if is_liability:
        return FlowType.CHARGE if amount > 0 else FlowType.PAYMENT
    return FlowType.CREDIT if amount >= 0 else FlowType.DEBIT


class AccountService:
    """Service for managing bank accounts and chart accounts."""

    def __init__(self, db: Database):
        """Initialize account service.

        Args:
            db: Database instance
        """
        self.db = db

    # Bank accounts

    def get_bank_account(self, account_id: int) -> BankAccount:
        """Get bank account by ID.

        Raises:
            NotFoundError: If the account does not exist
        """
        account = self.db.get_bank_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        return account

    def list_bank_accounts(self) -> list[BankAccount]:
        return self.db.list_bank_accounts()

    def find_or_create_bank_account(
        self, statement_account: StatementAccount, name: Optional[str] = None
    ) -> tuple[BankAccount, bool]:
        """Find the bank account a statement belongs to, creating it if new.

        Accounts are matched by the hash of the raw account id, which is
        never stored in clear.

        Args:
            statement_account: Account header from the statement
            name: Name for a newly created account (default: type and masked id)

        Returns:
            (account, created)

        Raises:
            ConflictError: If an explicitly given name is already used
        """
        account_hash = hash_account_id(statement_account.account_id)
        existing = self.db.get_bank_account_by_hash(account_hash)
        if existing is not None:
            return existing, False

        masked = mask_account_id(statement_account.account_id)
        taken = {account.name for account in self.db.list_bank_accounts()}
        if name:
            if name in taken:
                raise ConflictError(f"Account with name '{name}' already exists")
        else:
            name = self._default_account_name(statement_account, masked, taken)

        account_id = self.db.create_bank_account(
            name=name,
            bank_id=statement_account.bank_id,
            account_id_masked=masked,
            account_id_hash=account_hash,
            account_type=statement_account.account_type,
            currency=statement_account.currency,
        )
        account = self.get_bank_account(account_id)
        self.create_chart_account_for_bank_account(account)
        logger.info("Created bank account %s (%s)", account_id, masked)
        return self.get_bank_account(account_id), True

    @staticmethod
    def _default_account_name(
        statement_account: StatementAccount, masked: str, taken: set[str]
    ) -> str:
        """Name a new account after its type and masked id, made unique.

        Two accounts can share their last four digits; the bank id is added
        first, then a counter.
        """
        base = f"{statement_account.account_type.value.title()} {masked}"
        if base not in taken:
            return base
        if statement_account.bank_id:
            with_bank = f"{base} ({statement_account.bank_id})"
            if with_bank not in taken:
                return with_bank
        counter = 2
        while f"{base} ({counter})" in taken:
            counter += 1
        return f"{base} ({counter})"

    def rename_bank_account(self, account_id: int, name: str) -> None:
        """Rename a bank account.

        Raises:
            NotFoundError: If the account does not exist
            ConflictError: If the name is taken
        """
        self.get_bank_account(account_id)
        for account in self.db.list_bank_accounts():
            if account.id != account_id and account.name == name:
                raise ConflictError(f"Account with name '{name}' already exists")
        self.db.update_bank_account(account_id, name=name)

    def set_opening_balance(self, account_id: int, amount: Decimal, as_of: date) -> None:
        """Set the balance the account had at the end of ``as_of``.

        Only transactions dated after ``as_of`` build on this balance.
        """
        self.get_bank_account(account_id)
        self.db.update_bank_account(
            account_id, opening_balance=quantize(amount), opening_balance_date=as_of
        )
        logger.info("Set opening balance of account %s to %s as of %s", account_id, amount, as_of)

    def create_chart_account_for_bank_account(
        self, account: BankAccount
    ) -> Optional[ChartAccount]:
        """Create and link the chart account a bank account posts to.

        Checking/savings accounts go under Cash & Bank, credit cards and
        credit lines under Credit Cards.

        Returns:
            The new chart account, or None if the account is already linked
        """
        if account.chart_account_id is not None:
            return None
        account_type = AccountType.LIABILITY if account.is_liability else AccountType.ASSET
        parent_id = CREDIT_CARDS_ID if account.is_liability else CASH_AND_BANK_ID
        if self.db.get_chart_account(parent_id) is None:
            parent_id = None

        code = self._next_code(CREDIT_CARDS_ID if account.is_liability else CASH_AND_BANK_ID)
        chart_account = ChartAccount(
            id=code,
            code=code,
            name=account.name,
            type=account_type,
            parent_id=parent_id,
            bank_account_id=account.id,
        )
        self.db.create_chart_account(chart_account)
        self.db.update_bank_account(account.id, chart_account_id=chart_account.id)
        return chart_account

    def _next_code(self, base_code: str) -> str:
        """Next free code in steps of 10 after ``base_code``."""
        taken = {account.code for account in self.db.list_chart_accounts()}
        candidate = int(base_code) + 10
        while str(candidate) in taken:
            candidate += 10
        return str(candidate)

    # Chart of accounts

    def get_chart_account(self, account_id: str) -> ChartAccount:
        account = self.db.get_chart_account(account_id)
        if account is None:
            raise NotFoundError(chart_account_not_found(account_id))
        return account

    def list_chart_accounts(self, include_inactive: bool = False) -> list[ChartAccount]:
        """List chart accounts ordered by code."""
        return self.db.list_chart_accounts(include_inactive=include_inactive)

    def create_chart_account(
        self,
        code: str,
        name: str,
        account_type: AccountType,
        parent_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> str:
        """Create a chart account whose id is its code.

        Raises:
            ValidationError: If code or name is empty, or the parent is missing
            ConflictError: If the code is taken
        """
        code = code.strip()
        name = name.strip()
        errors = []
        if not code:
            errors.append("Account code must not be empty")
        if not name:
            errors.append("Account name must not be empty")
        if errors:
            raise ValidationError(errors)
        if self.db.get_chart_account(code) is not None:
            raise ConflictError(f"Chart account '{code}' already exists")
        if parent_id is not None and self.db.get_chart_account(parent_id) is None:
            raise ValidationError(chart_account_not_found(parent_id))

        return self.db.create_chart_account(
            ChartAccount(
                id=code,
                code=code,
                name=name,
                type=account_type,
                parent_id=parent_id,
                description=description,
            )
        )

    def deactivate_chart_account(self, account_id: str) -> None:
        """Deactivate a chart account. Its posted history is kept."""
        self.get_chart_account(account_id)
        self.db.update_chart_account_active(account_id, False)

    def delete_chart_account(self, account_id: str) -> None:
        """Delete a chart account that nothing references.

        Raises:
            NotFoundError: If the account does not exist
            DependencyError: If journal lines or child accounts reference it
        """
        self.get_chart_account(account_id)
        line_count = self.db.get_chart_account_line_count(account_id)
        children = [a for a in self.db.list_chart_accounts() if a.parent_id == account_id]
        if line_count > 0 or children:
            parts = []
            if line_count > 0:
                parts.append(f"{line_count} journal line{'s' if line_count != 1 else ''}")
            if children:
                parts.append(f"{len(children)} child account{'s' if len(children) != 1 else ''}")
            raise DependencyError(
                f"Cannot delete chart account '{account_id}': it has {', '.join(parts)}. "
                f"Deactivate it instead."
            )
        self.db.delete_chart_account(account_id)

    def init_default_chart(self) -> int:
        """Create the default chart of accounts, skipping existing codes.

        Returns:
            Number of accounts created
        """
        created = 0
        for account in default_chart_accounts():
            if self.db.get_chart_account(account.id) is not None:
                continue
            self.db.create_chart_account(account)
            created += 1
        logger.info("Created %d default chart account(s)", created)
        return created
