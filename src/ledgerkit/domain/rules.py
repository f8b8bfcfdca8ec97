"""Categorization rule engine.

Rules are evaluated in descending priority (ties by ascending id) and the
first match wins. Transactions that no rule matches stay uncategorized and
are reported as warnings for manual review.
"""

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Optional, Union

from ledgerkit.database.base import Database
from ledgerkit.domain.entities import (
    BankTransaction,
    MappingRule,
    MatchField,
    MatchType,
    RawTransaction,
    TransactionCategory,
)
from ledgerkit.domain.errors import (
    NotFoundError,
    UnmatchedRuleWarning,
    ValidationError,
    account_not_found,
    chart_account_inactive,
    chart_account_not_found,
    rule_not_found,
)

logger = logging.getLogger(__name__)

Categorizable = Union[RawTransaction, BankTransaction]


@dataclass(frozen=True)
class RuleAssignment:
    """Category (and chart account) assigned to one transaction."""

    fit_id: str
    category: TransactionCategory
    chart_account_id: Optional[str] = None
    subcategory: Optional[str] = None
    revenue_source_id: Optional[int] = None
    rule_id: Optional[int] = None


@dataclass
class RuleApplication:
    """Outcome of applying a rule set to a batch of transactions."""

    assignments: dict[str, RuleAssignment] = field(default_factory=dict)
    rule_stats: dict[int, int] = field(default_factory=dict)
    matched: int = 0
    unmatched: int = 0
    warnings: list[UnmatchedRuleWarning] = field(default_factory=list)


def sort_rules(rules: Iterable[MappingRule]) -> list[MappingRule]:
    """Return the active rules in evaluation order."""
    active = [rule for rule in rules if rule.is_active]
    return sorted(active, key=lambda rule: (-rule.priority, rule.id))


def _match_text(rule: MappingRule, txn: Categorizable) -> str:
    memo = txn.memo or ""
    if rule.match_field == MatchField.MEMO:
        return memo
    if rule.match_field == MatchField.BOTH:
        return f"{txn.name} {memo}"
    return txn.name


def rule_matches(rule: MappingRule, txn: Categorizable) -> bool:
    """Check whether a rule matches a transaction (case-insensitive).

    An invalid regular expression never matches.
    """
    text = _match_text(rule, txn).lower()
    pattern = rule.pattern.lower()

    if rule.match_type == MatchType.EXACT:
        return text == pattern
    if rule.match_type == MatchType.STARTS_WITH:
        return text.startswith(pattern)
    if rule.match_type == MatchType.ENDS_WITH:
        return text.endswith(pattern)
    if rule.match_type == MatchType.REGEX:
        try:
            return re.search(rule.pattern, text, re.IGNORECASE) is not None
        except re.error:
            logger.debug("Rule %s has an invalid regex %r", rule.id, rule.pattern)
            return False
    return pattern in text


def assignment_for(rule: MappingRule, txn: Categorizable) -> RuleAssignment:
    """Build the assignment a matching rule gives a transaction."""
    if rule.category in (TransactionCategory.TRANSFER, TransactionCategory.IGNORE):
        return RuleAssignment(
            fit_id=txn.fit_id,
            category=rule.category,
            subcategory=rule.subcategory,
            rule_id=rule.id,
        )
    return RuleAssignment(
        fit_id=txn.fit_id,
        category=rule.category,
        chart_account_id=rule.chart_account_id,
        subcategory=rule.subcategory,
        revenue_source_id=(
            rule.revenue_source_id if rule.category == TransactionCategory.REVENUE else None
        ),
        rule_id=rule.id,
    )


def apply_rules(
    transactions: Sequence[Categorizable],
    rules: Iterable[MappingRule],
    account_id: Optional[int] = None,
) -> RuleApplication:
    """Categorize transactions with a rule set.

    Every transaction gets exactly one assignment. Rules scoped to another
    bank account are skipped when ``account_id`` is given.

    Args:
        transactions: Transactions to categorize
        rules: Mapping rules (inactive ones are ignored)
        account_id: Bank account the transactions belong to

    Returns:
        RuleApplication with per-transaction assignments and per-rule hit
        counts (every active rule appears, zero hits included)
    """
    ordered = [
        rule
        for rule in sort_rules(rules)
        if rule.account_id is None or account_id is None or rule.account_id == account_id
    ]
    result = RuleApplication(rule_stats={rule.id: 0 for rule in ordered})

    for txn in transactions:
        matched_rule = next((rule for rule in ordered if rule_matches(rule, txn)), None)
        if matched_rule is None:
            result.assignments[txn.fit_id] = RuleAssignment(
                fit_id=txn.fit_id, category=TransactionCategory.UNCATEGORIZED
            )
            result.unmatched += 1
            result.warnings.append(
                UnmatchedRuleWarning(fit_id=txn.fit_id, name=txn.name, memo=txn.memo)
            )
            continue

        logger.debug("Rule %s matched transaction %s", matched_rule.id, txn.fit_id)
        result.assignments[txn.fit_id] = assignment_for(matched_rule, txn)
        result.rule_stats[matched_rule.id] += 1
        result.matched += 1

    if result.unmatched:
        logger.warning("%d transaction(s) matched no rule", result.unmatched)
    return result


class MappingRuleService:
    """Service for managing and applying mapping rules."""

    def __init__(self, db: Database):
        """Initialize mapping rule service.

        Args:
            db: Database instance
        """
        self.db = db

    def _validate_chart_account(self, chart_account_id: str) -> None:
        account = self.db.get_chart_account(chart_account_id)
        if account is None:
            raise ValidationError(chart_account_not_found(chart_account_id))
        if not account.is_active:
            raise ValidationError(chart_account_inactive(chart_account_id))

    def create_rule(
        self,
        pattern: str,
        category: TransactionCategory,
        match_field: MatchField = MatchField.NAME,
        match_type: MatchType = MatchType.CONTAINS,
        chart_account_id: Optional[str] = None,
        subcategory: Optional[str] = None,
        revenue_source_id: Optional[int] = None,
        priority: Optional[int] = None,
        account_id: Optional[int] = None,
    ) -> int:
        """Create a mapping rule.

        Args:
            pattern: Text or regular expression to match
            category: Category assigned on match
            match_field: Field(s) inspected
            match_type: Comparison applied
            chart_account_id: Target chart account for revenue/expense rules
            subcategory: Optional free-form subcategory
            revenue_source_id: Optional revenue source (revenue rules only)
            priority: Evaluation priority (default: above every existing rule)
            account_id: Restrict the rule to one bank account

        Returns:
            Rule ID

        Raises:
            ValidationError: If the rule is invalid
        """
        errors = []
        if not pattern or not pattern.strip():
            errors.append("Rule pattern must not be empty")
        elif match_type == MatchType.REGEX:
            try:
                re.compile(pattern)
            except re.error as e:
                errors.append(f"Invalid regular expression '{pattern}': {e}")
        if category in (TransactionCategory.UNCATEGORIZED, TransactionCategory.ADJUSTMENT):
            errors.append(f"Rules cannot assign category '{category.value}'")
        if errors:
            raise ValidationError(errors)

        if category in (TransactionCategory.TRANSFER, TransactionCategory.IGNORE):
            chart_account_id = None
        elif chart_account_id is not None:
            self._validate_chart_account(chart_account_id)

        if account_id is not None and self.db.get_bank_account(account_id) is None:
            raise ValidationError(account_not_found(account_id))

        if priority is None:
            existing = self.db.list_mapping_rules()
            priority = max((rule.priority for rule in existing), default=0) + 1

        rule_id = self.db.create_mapping_rule(
            pattern=pattern.strip(),
            category=category,
            match_field=match_field,
            match_type=match_type,
            chart_account_id=chart_account_id,
            subcategory=subcategory,
            revenue_source_id=revenue_source_id,
            priority=priority,
            account_id=account_id,
        )
        logger.info("Created mapping rule %s for pattern %r", rule_id, pattern)
        return rule_id

    def get_rule(self, rule_id: int) -> MappingRule:
        """Get a rule by ID.

        Raises:
            NotFoundError: If the rule does not exist
        """
        rule = self.db.get_mapping_rule(rule_id)
        if rule is None:
            raise NotFoundError(rule_not_found(rule_id))
        return rule

    def list_rules(self, active_only: bool = False) -> list[MappingRule]:
        """List rules in evaluation order (inactive rules last)."""
        rules = self.db.list_mapping_rules(active_only=active_only)
        inactive = sorted((rule for rule in rules if not rule.is_active), key=lambda r: r.id)
        return sort_rules(rules) + inactive

    def set_priority(self, rule_id: int, priority: int) -> None:
        """Change a rule's priority."""
        self.get_rule(rule_id)
        self.db.update_mapping_rule(rule_id, priority=priority)

    def deactivate_rule(self, rule_id: int) -> None:
        """Deactivate a rule; it stays stored for reference."""
        self.get_rule(rule_id)
        self.db.update_mapping_rule(rule_id, is_active=False)

    def activate_rule(self, rule_id: int) -> None:
        """Re-activate a rule."""
        self.get_rule(rule_id)
        self.db.update_mapping_rule(rule_id, is_active=True)

    def _uncategorized(self, account_id: Optional[int]) -> list[BankTransaction]:
        if account_id is not None and self.db.get_bank_account(account_id) is None:
            raise NotFoundError(account_not_found(account_id))
        return [
            txn
            for txn in self.db.list_bank_transactions(
                account_id=account_id, category=TransactionCategory.UNCATEGORIZED
            )
            if txn.journal_entry_id is None
        ]

    def _uncategorized_by_account(
        self, account_id: Optional[int]
    ) -> dict[int, list[BankTransaction]]:
        by_account: dict[int, list[BankTransaction]] = {}
        for txn in self._uncategorized(account_id):
            by_account.setdefault(txn.account_id, []).append(txn)
        return by_account

    def preview(self, account_id: Optional[int] = None) -> RuleApplication:
        """Show what the active rules would do to stored uncategorized
        transactions, without changing anything.
        """
        rules = self.db.list_mapping_rules(active_only=True)
        preview = RuleApplication(rule_stats={rule.id: 0 for rule in sort_rules(rules)})
        for txn_account_id, transactions in self._uncategorized_by_account(account_id).items():
            application = apply_rules(transactions, rules, txn_account_id)
            preview.assignments.update(application.assignments)
            for rule_id, hits in application.rule_stats.items():
                preview.rule_stats[rule_id] += hits
            preview.matched += application.matched
            preview.unmatched += application.unmatched
            preview.warnings.extend(application.warnings)
        return preview

    def apply_to_uncategorized(self, account_id: Optional[int] = None) -> int:
        """Categorize stored uncategorized transactions with the active rules.

        Args:
            account_id: Restrict to one bank account (default: all accounts)

        Returns:
            Number of transactions categorized
        """
        rules = self.db.list_mapping_rules(active_only=True)
        updated = 0
        for txn_account_id, transactions in self._uncategorized_by_account(account_id).items():
            application = apply_rules(transactions, rules, txn_account_id)
            for txn in transactions:
                assignment = application.assignments[txn.fit_id]
                if assignment.category == TransactionCategory.UNCATEGORIZED:
                    continue
                self.db.update_transaction_category(
                    transaction_id=txn.id,
                    category=assignment.category,
                    chart_account_id=assignment.chart_account_id,
                    subcategory=assignment.subcategory,
                    revenue_source_id=assignment.revenue_source_id,
                )
                updated += 1

        logger.info("Categorized %d stored transaction(s)", updated)
        return updated
