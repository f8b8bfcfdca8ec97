"""Tests for Database interface returning domain models."""

import pytest
from datetime import date, datetime
from decimal import Decimal

from ledgerkit.domain import entities
from ledgerkit.domain.errors import DuplicateTransactionError

from conftest import make_transaction


class TestDatabaseInterface:
    """Tests to verify the Database interface round-trips domain models."""

    def test_bank_account_returns_domain_model(self, temp_db):
        """Bank accounts come back as domain entities with Decimal balances."""
        account_id = temp_db.create_bank_account(
            name="Checking",
            bank_id="021000021",
            account_id_masked="****6789",
            account_id_hash="abc",
            account_type=entities.StatementAccountType.CHECKING,
            currency="USD",
        )

        account = temp_db.get_bank_account(account_id)

        assert isinstance(account, entities.BankAccount)
        assert account.account_type == entities.StatementAccountType.CHECKING
        assert account.opening_balance == Decimal("0")
        assert isinstance(account.created_at, datetime)
        assert temp_db.get_bank_account_by_hash("abc").id == account_id
        assert temp_db.get_bank_account_by_hash("missing") is None

    def test_duplicate_fit_id_is_rejected(self, temp_db):
        """A fit id is unique per account."""
        account_id = temp_db.create_bank_account(
            "Checking", "", "****6789", "abc", entities.StatementAccountType.CHECKING, "USD"
        )
        temp_db.create_bank_transaction(
            make_transaction("T1", "-12.34", date(2024, 1, 2), account_id=account_id)
        )

        assert temp_db.transaction_exists(account_id, "T1")
        assert not temp_db.transaction_exists(account_id, "T2")
        with pytest.raises(DuplicateTransactionError):
            temp_db.create_bank_transaction(
                make_transaction("T1", "5.00", date(2024, 1, 3), account_id=account_id)
            )

        [stored] = temp_db.list_bank_transactions(account_id=account_id)
        assert stored.amount == Decimal("-12.34")
        assert stored.flow_type == entities.FlowType.DEBIT
        assert stored.category == entities.TransactionCategory.UNCATEGORIZED

    def test_journal_entry_round_trip(self, temp_db, default_chart):
        """Lines keep their order, sides and exact amounts."""
        account_id = temp_db.create_bank_account(
            "Checking", "", "****6789", "abc", entities.StatementAccountType.CHECKING, "USD"
        )
        [txn_id] = temp_db.create_bank_transactions(
            [make_transaction("T1", "-0.10", date(2024, 1, 2), account_id=account_id)]
        )
        entry = entities.JournalEntry(
            id=f"JE-{account_id}-T1",
            date=date(2024, 1, 2),
            description="Test",
            lines=(
                entities.JournalLine("5120", Decimal("0.10"), entities.EntrySide.DEBIT),
                entities.JournalLine("1110", Decimal("0.10"), entities.EntrySide.CREDIT),
            ),
            bank_transaction_id=txn_id,
        )

        temp_db.save_journal_entries([entry])

        assert temp_db.get_journal_entry(entry.id) == entry
        assert temp_db.get_chart_account_line_count("5120") == 1
        [linked] = temp_db.list_bank_transactions(account_id=account_id)
        assert linked.journal_entry_id == entry.id
        assert temp_db.list_bank_transactions(account_id=account_id, unposted_only=True) == []

    def test_mapping_rules_filter_active(self, temp_db):
        """Inactive rules are excluded when asked."""
        first = temp_db.create_mapping_rule("acme", entities.TransactionCategory.REVENUE)
        second = temp_db.create_mapping_rule("bank fee", entities.TransactionCategory.EXPENSE)
        temp_db.update_mapping_rule(first, is_active=False)

        rules = temp_db.list_mapping_rules(active_only=True)

        assert [rule.id for rule in rules] == [second]
        assert isinstance(rules[0], entities.MappingRule)
        assert rules[0].match_field == entities.MatchField.NAME
        assert rules[0].match_type == entities.MatchType.CONTAINS
        assert temp_db.get_mapping_rule(first).is_active is False
