"""Statement import domain service."""

import logging
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Optional

from ledgerkit.database.base import Database
from ledgerkit.domain.account import AccountService, flow_type_for
from ledgerkit.domain.entities import BankTransaction, RawTransaction, TransactionCategory
from ledgerkit.domain.errors import duplicate_transaction_fit_id
from ledgerkit.domain.ledger import LedgerService
from ledgerkit.domain.rules import RuleAssignment, apply_rules
from ledgerkit.domain.statement_parser import parse_statement
from ledgerkit.domain.transfers import DetectedTransfer, transfer_fit_ids
from ledgerkit.domain.transfers import detect_transfers as find_transfers

logger = logging.getLogger(__name__)


class StatementImportService:
    """Service for importing bank statements."""

    def __init__(self, db: Database):
        """Initialize statement import service.

        Args:
            db: Database instance
        """
        self.db = db
        self.account_service = AccountService(db)
        self.ledger_service = LedgerService(db)

    def import_file(
        self,
        statement_path: str,
        account_name: Optional[str] = None,
        post: bool = True,
        detect_transfers: bool = True,
    ) -> dict[str, Any]:
        """Import a statement file. See import_statement.

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        path = Path(statement_path)
        if not path.exists():
            raise FileNotFoundError(f"Statement file not found: {statement_path}")
        content = path.read_text(encoding="utf-8-sig", errors="replace")
        return self.import_statement(
            content, account_name=account_name, post=post, detect_transfers=detect_transfers
        )

    def import_statement(
        self,
        content: str,
        account_name: Optional[str] = None,
        post: bool = True,
        detect_transfers: bool = True,
    ) -> dict[str, Any]:
        """Import transactions from statement text.

        Args:
            content: Statement text (OFX SGML or XML)
            account_name: Name for the bank account if it is new
            post: Post categorized transactions to the ledger
            detect_transfers: Mark transfers between this and other accounts

        Returns:
            Dict with import statistics:
            - account_id: bank account the statement belongs to
            - imported: number of transactions saved
            - skipped: number of duplicates skipped
            - skipped_details: fit id, name and reason per skipped transaction
            - matched / unmatched: rule engine counts
            - rule_stats: hits per rule id
            - transfers: number of transfers detected
            - posted: number of journal entries created
            - posting_skipped: reasons transactions were not posted
            - errors: row-level error messages
            - warnings: unmatched-transaction messages
            - date_range: (start, end) of the statement

        Raises:
            ValidationError: With every problem found, if the statement is invalid
        """
        parsed = parse_statement(content)
        account, created = self.account_service.find_or_create_bank_account(
            parsed.account, name=account_name
        )

        existing = {txn.fit_id for txn in self.db.list_bank_transactions(account_id=account.id)}
        fresh: list[RawTransaction] = []
        skipped_details = []
        for raw in parsed.transactions:
            if raw.fit_id in existing:
                skipped_details.append(
                    {
                        "fit_id": raw.fit_id,
                        "name": raw.name,
                        "reason": duplicate_transaction_fit_id(raw.fit_id, account.id),
                    }
                )
                continue
            fresh.append(raw)

        application = apply_rules(
            fresh, self.db.list_mapping_rules(active_only=True), account_id=account.id
        )
        batch_id = f"IMPORT-{datetime.now(UTC):%Y%m%d%H%M%S}"
        transactions = [
            self._to_bank_transaction(
                raw,
                account.id,
                account.is_liability,
                application.assignments[raw.fit_id],
                batch_id,
            )
            for raw in fresh
        ]
        transfers: list[DetectedTransfer] = []
        warnings = application.warnings
        unmatched = application.unmatched
        if detect_transfers and transactions:
            transfers = self._detect_transfers(account.id, transactions)
            keys = transfer_fit_ids(transfers)
            transactions = [
                replace(txn, category=TransactionCategory.TRANSFER)
                if (txn.account_id, txn.fit_id) in keys
                else txn
                for txn in transactions
            ]
            fresh_transfer_ids = {
                fit_id for account_id, fit_id in keys if account_id == account.id
            }
            warnings = [w for w in warnings if w.fit_id not in fresh_transfer_ids]
            unmatched -= len(fresh_transfer_ids)

        if transactions:
            ids = self.db.create_bank_transactions(transactions)
            transactions = [replace(txn, id=txn_id) for txn, txn_id in zip(transactions, ids)]

        posted = 0
        posting_skipped: list[str] = []
        errors: list[str] = []
        if post and transactions:
            result = self.ledger_service.post_transactions(account.id)
            posted = result.posted
            posting_skipped = [str(e) for e in result.skipped]
            errors = [str(e) for e in result.duplicates]

        logger.info(
            "Imported %d transaction(s) into account %s (%d duplicate(s) skipped%s)",
            len(transactions),
            account.id,
            len(skipped_details),
            ", new account" if created else "",
        )
        return {
            "account_id": account.id,
            "imported": len(transactions),
            "skipped": len(skipped_details),
            "skipped_details": skipped_details,
            "matched": application.matched,
            "unmatched": unmatched,
            "rule_stats": application.rule_stats,
            "transfers": len(transfers),
            "posted": posted,
            "posting_skipped": posting_skipped,
            "errors": errors,
            "warnings": [warning.message for warning in warnings],
            "date_range": parsed.date_range,
        }

    def _detect_transfers(
        self, account_id: int, transactions: list[BankTransaction]
    ) -> list[DetectedTransfer]:
        """Find transfers between new transactions and other accounts' unposted ones.

        Stored counterparts are recategorized here; the new transactions are
        returned for the caller to mark before saving.
        """
        stored = [
            txn
            for txn in self.db.list_bank_transactions(
                category=TransactionCategory.UNCATEGORIZED, unposted_only=True
            )
            if txn.account_id != account_id
        ]
        candidates = [
            txn for txn in transactions if txn.category == TransactionCategory.UNCATEGORIZED
        ]
        currencies = {acct.id: acct.currency for acct in self.db.list_bank_accounts()}
        found = [
            transfer
            for transfer in find_transfers(candidates + stored, currencies=currencies)
            if account_id in (transfer.source.account_id, transfer.target.account_id)
        ]

        for transfer in found:
            for txn in (transfer.source, transfer.target):
                if txn.id is not None:
                    self.db.update_transaction_category(txn.id, TransactionCategory.TRANSFER)
            logger.info(
                "Transfer detected: %s (account %s) -> %s (account %s), %s confidence",
                transfer.source.fit_id,
                transfer.source.account_id,
                transfer.target.fit_id,
                transfer.target.account_id,
                transfer.confidence.value,
            )
        return found

    @staticmethod
    def _to_bank_transaction(
        raw: RawTransaction,
        account_id: int,
        is_liability: bool,
        assignment: RuleAssignment,
        batch_id: str,
    ) -> BankTransaction:
        return BankTransaction(
            id=None,
            account_id=account_id,
            fit_id=raw.fit_id,
            amount=raw.amount,
            date_posted=raw.date_posted,
            name=raw.name,
            memo=raw.memo,
            check_num=raw.check_num,
            ref_num=raw.ref_num,
            transaction_type=raw.transaction_type,
            category=assignment.category,
            chart_account_id=assignment.chart_account_id,
            subcategory=assignment.subcategory,
            revenue_source_id=assignment.revenue_source_id,
            flow_type=flow_type_for(is_liability, raw.amount),
            is_ignored=assignment.category == TransactionCategory.IGNORE,
            import_batch_id=batch_id,
        )
