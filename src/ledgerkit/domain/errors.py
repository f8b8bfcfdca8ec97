"""Shared domain error messages and error types."""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic.

    Carries every problem found, not only the first one.
    """

    def __init__(self, errors: str | Iterable[str]):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class DependencyError(DomainError):
    """Operation blocked due to dependent domain data."""


class DuplicateTransactionError(ConflictError):
    """A transaction with the same fit id already exists for the account."""

    def __init__(self, fit_id: str, account_id: int):
        self.fit_id = fit_id
        self.account_id = account_id
        super().__init__(duplicate_transaction_fit_id(fit_id, account_id))


class PostingSkippedError(DomainError):
    """A transaction could not be posted to the ledger.

    Not fatal: batch posting records it and moves on.
    """

    def __init__(self, fit_id: str, reason: str):
        self.fit_id = fit_id
        self.reason = reason
        super().__init__(f"Transaction '{fit_id}' not posted: {reason}")


class UnbalancedEntryError(RuntimeError):
    """A journal entry whose debits and credits differ.

    A logic defect, not a user error. Not a DomainError, so per-item
    handlers never collect it.
    """


@dataclass(frozen=True)
class UnmatchedRuleWarning:
    """No active rule matched a transaction; it stays uncategorized."""

    fit_id: str
    name: str
    memo: Optional[str] = None

    @property
    def message(self) -> str:
        return f"No rule matched transaction '{self.fit_id}' ({self.name})"


def account_not_found(account_id: int) -> str:
    """Return message for missing bank account."""
    return f"Account {account_id} not found"


def chart_account_not_found(account_id: str) -> str:
    """Return message for missing chart account."""
    return f"Chart account '{account_id}' not found"


def chart_account_inactive(account_id: str) -> str:
    """Return message for a deactivated chart account."""
    return f"Chart account '{account_id}' is inactive"


def rule_not_found(rule_id: int) -> str:
    """Return message for missing mapping rule."""
    return f"Mapping rule {rule_id} not found"


def journal_entry_not_found(entry_id: str) -> str:
    """Return message for missing journal entry."""
    return f"Journal entry '{entry_id}' not found"


def duplicate_transaction_fit_id(fit_id: str, account_id: int) -> str:
    """Return message for duplicate transaction fit id."""
    return f"Transaction with fit_id '{fit_id}' already exists for account {account_id}"


def unbalanced_entry(entry_id: str, debits, credits) -> str:
    """Return message for an entry that breaks the balancing law."""
    return (
        f"Journal entry '{entry_id}' is unbalanced: "
        f"debits {debits} != credits {credits}"
    )
