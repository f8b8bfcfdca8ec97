"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic: enum fields are stored as their
values, money as fixed-point numerics.
"""

from decimal import Decimal

from ledgerkit.domain import entities as domain
from ledgerkit.database.models import (
    BankAccount as ORMBankAccount,
    BankTransaction as ORMBankTransaction,
    ChartAccount as ORMChartAccount,
    JournalEntry as ORMJournalEntry,
    JournalLine as ORMJournalLine,
    MappingRule as ORMMappingRule,
    Reconciliation as ORMReconciliation,
)


def _money(value) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


def chart_account_to_domain(orm_account: ORMChartAccount) -> domain.ChartAccount:
    """Convert SQLAlchemy ChartAccount model to domain ChartAccount entity."""
    return domain.ChartAccount(
        id=orm_account.id,
        code=orm_account.code,
        name=orm_account.name,
        type=domain.AccountType(orm_account.type),
        parent_id=orm_account.parent_id,
        is_active=orm_account.is_active,
        description=orm_account.description,
        bank_account_id=orm_account.bank_account_id,
    )


def bank_account_to_domain(orm_account: ORMBankAccount) -> domain.BankAccount:
    """Convert SQLAlchemy BankAccount model to domain BankAccount entity."""
    return domain.BankAccount(
        id=orm_account.id,
        name=orm_account.name,
        bank_id=orm_account.bank_id,
        account_id_masked=orm_account.account_id_masked,
        account_id_hash=orm_account.account_id_hash,
        account_type=domain.StatementAccountType(orm_account.account_type),
        currency=orm_account.currency,
        created_at=orm_account.created_at,
        chart_account_id=orm_account.chart_account_id,
        opening_balance=_money(orm_account.opening_balance),
        opening_balance_date=orm_account.opening_balance_date,
    )


def bank_transaction_to_domain(orm_txn: ORMBankTransaction) -> domain.BankTransaction:
    """Convert SQLAlchemy BankTransaction model to domain BankTransaction entity."""
    return domain.BankTransaction(
        id=orm_txn.id,
        account_id=orm_txn.account_id,
        fit_id=orm_txn.fit_id,
        amount=_money(orm_txn.amount),
        date_posted=orm_txn.date_posted,
        name=orm_txn.name,
        memo=orm_txn.memo,
        check_num=orm_txn.check_num,
        ref_num=orm_txn.ref_num,
        transaction_type=domain.StatementTransactionType(orm_txn.transaction_type),
        category=domain.TransactionCategory(orm_txn.category),
        chart_account_id=orm_txn.chart_account_id,
        subcategory=orm_txn.subcategory,
        revenue_source_id=orm_txn.revenue_source_id,
        flow_type=domain.FlowType(orm_txn.flow_type),
        is_ignored=orm_txn.is_ignored,
        is_reconciled=orm_txn.is_reconciled,
        import_batch_id=orm_txn.import_batch_id,
        journal_entry_id=orm_txn.journal_entry_id,
    )


def bank_transaction_to_orm(txn: domain.BankTransaction) -> ORMBankTransaction:
    """Build a new SQLAlchemy BankTransaction from a domain entity."""
    return ORMBankTransaction(
        account_id=txn.account_id,
        fit_id=txn.fit_id,
        amount=txn.amount,
        date_posted=txn.date_posted,
        name=txn.name,
        memo=txn.memo,
        check_num=txn.check_num,
        ref_num=txn.ref_num,
        transaction_type=txn.transaction_type.value,
        category=txn.category.value,
        chart_account_id=txn.chart_account_id,
        subcategory=txn.subcategory,
        revenue_source_id=txn.revenue_source_id,
        flow_type=txn.flow_type.value,
        is_ignored=txn.is_ignored,
        is_reconciled=txn.is_reconciled,
        import_batch_id=txn.import_batch_id,
        journal_entry_id=txn.journal_entry_id,
    )


def journal_entry_to_domain(orm_entry: ORMJournalEntry) -> domain.JournalEntry:
    """Convert SQLAlchemy JournalEntry (with its lines) to a domain JournalEntry."""
    return domain.JournalEntry(
        id=orm_entry.id,
        date=orm_entry.date,
        description=orm_entry.description,
        lines=tuple(
            domain.JournalLine(
                account_id=line.account_id,
                amount=_money(line.amount),
                side=domain.EntrySide(line.side),
            )
            for line in orm_entry.lines
        ),
        bank_transaction_id=orm_entry.bank_transaction_id,
        is_reconciled=orm_entry.is_reconciled,
    )


def journal_entry_to_orm(entry: domain.JournalEntry) -> ORMJournalEntry:
    """Build a new SQLAlchemy JournalEntry (with its lines) from a domain entity."""
    return ORMJournalEntry(
        id=entry.id,
        date=entry.date,
        description=entry.description,
        bank_transaction_id=entry.bank_transaction_id,
        is_reconciled=entry.is_reconciled,
        lines=[
            ORMJournalLine(
                position=position,
                account_id=line.account_id,
                amount=line.amount,
                side=line.side.value,
            )
            for position, line in enumerate(entry.lines)
        ],
    )


def mapping_rule_to_domain(orm_rule: ORMMappingRule) -> domain.MappingRule:
    """Convert SQLAlchemy MappingRule model to domain MappingRule entity."""
    return domain.MappingRule(
        id=orm_rule.id,
        pattern=orm_rule.pattern,
        category=domain.TransactionCategory(orm_rule.category),
        match_field=domain.MatchField(orm_rule.match_field),
        match_type=domain.MatchType(orm_rule.match_type),
        chart_account_id=orm_rule.chart_account_id,
        subcategory=orm_rule.subcategory,
        revenue_source_id=orm_rule.revenue_source_id,
        priority=orm_rule.priority,
        is_active=orm_rule.is_active,
        account_id=orm_rule.account_id,
    )


def reconciliation_to_domain(orm_rec: ORMReconciliation) -> domain.Reconciliation:
    """Convert SQLAlchemy Reconciliation model to domain Reconciliation entity."""
    return domain.Reconciliation(
        id=orm_rec.id,
        account_id=orm_rec.account_id,
        reconciled_date=orm_rec.reconciled_date,
        expected_balance=_money(orm_rec.expected_balance),
        actual_balance=_money(orm_rec.actual_balance),
        adjustment_amount=_money(orm_rec.adjustment_amount),
        notes=orm_rec.notes,
        adjustment_fit_id=orm_rec.adjustment_fit_id,
        adjustment_transaction_id=orm_rec.adjustment_transaction_id,
    )
