"""Shared pytest fixtures for ledgerkit tests."""

import tempfile
import os
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
import pytest

from ledgerkit.database.factories import create_sqlite_database
from ledgerkit.domain.account import AccountService
from ledgerkit.domain.entities import (
    BankAccount,
    BankTransaction,
    FlowType,
    StatementAccount,
    StatementAccountType,
    StatementTransactionType,
    TransactionCategory,
)
from ledgerkit.domain.forecast import ForecastService
from ledgerkit.domain.ledger import LedgerService
from ledgerkit.domain.reconciliation import ReconciliationService
from ledgerkit.domain.reports import ReportService
from ledgerkit.domain.rules import MappingRuleService
from ledgerkit.domain.statement_import import StatementImportService


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def account_service(temp_db):
    """Create an AccountService with a temporary database."""
    return AccountService(temp_db)


@pytest.fixture
def rule_service(temp_db):
    """Create a MappingRuleService with a temporary database."""
    return MappingRuleService(temp_db)


@pytest.fixture
def ledger_service(temp_db):
    """Create a LedgerService with a temporary database."""
    return LedgerService(temp_db)


@pytest.fixture
def report_service(temp_db):
    """Create a ReportService with a temporary database."""
    return ReportService(temp_db)


@pytest.fixture
def reconciliation_service(temp_db):
    """Create a ReconciliationService with a temporary database."""
    return ReconciliationService(temp_db)


@pytest.fixture
def forecast_service(temp_db):
    """Create a ForecastService with a temporary database."""
    return ForecastService(temp_db)


@pytest.fixture
def import_service(temp_db):
    """Create a StatementImportService with a temporary database."""
    return StatementImportService(temp_db)


@pytest.fixture
def default_chart(account_service):
    """Load the default chart of accounts."""
    account_service.init_default_chart()
    return account_service.list_chart_accounts()


@pytest.fixture
def checking_account(account_service, default_chart):
    """Create a checking account linked to a chart account under Cash & Bank."""
    account, _ = account_service.find_or_create_bank_account(
        StatementAccount(
            bank_id="021000021",
            account_id="123456789",
            account_type=StatementAccountType.CHECKING,
            currency="USD",
        ),
        name="Business Checking",
    )
    return account


@pytest.fixture
def credit_card_account(account_service, default_chart):
    """Create a credit card account linked to a chart account under Credit Cards."""
    account, _ = account_service.find_or_create_bank_account(
        StatementAccount(
            bank_id="",
            account_id="4111111111111111",
            account_type=StatementAccountType.CREDITCARD,
            currency="USD",
        ),
        name="Company Visa",
    )
    return account


def make_transaction(
    fit_id: str,
    amount: str,
    on: date,
    account_id: int = 1,
    name: str = "Test",
    category: TransactionCategory = TransactionCategory.UNCATEGORIZED,
    chart_account_id=None,
    txn_id=None,
    memo=None,
    is_liability: bool = False,
) -> BankTransaction:
    """Build an in-memory bank transaction."""
    value = Decimal(amount)
    if is_liability:
        flow_type = FlowType.CHARGE if value > 0 else FlowType.PAYMENT
    else:
        flow_type = FlowType.CREDIT if value >= 0 else FlowType.DEBIT
    return BankTransaction(
        id=txn_id,
        account_id=account_id,
        fit_id=fit_id,
        amount=value,
        date_posted=on,
        name=name,
        memo=memo,
        transaction_type=StatementTransactionType.OTHER,
        category=category,
        chart_account_id=chart_account_id,
        flow_type=flow_type,
    )


def make_bank_account(
    account_id: int = 1,
    chart_account_id="1110",
    account_type: StatementAccountType = StatementAccountType.CHECKING,
    opening_balance: str = "0",
    opening_balance_date=None,
) -> BankAccount:
    """Build an in-memory bank account."""
    return BankAccount(
        id=account_id,
        name=f"Account {account_id}",
        bank_id="",
        account_id_masked="****1234",
        account_id_hash=f"hash-{account_id}",
        account_type=account_type,
        currency="USD",
        created_at=datetime(2024, 1, 1),
        chart_account_id=chart_account_id,
        opening_balance=Decimal(opening_balance),
        opening_balance_date=opening_balance_date,
    )


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"
