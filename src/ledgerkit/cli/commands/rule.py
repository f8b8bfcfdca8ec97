"""Categorization rule commands."""

import click
from ledgerkit.cli.account_resolution import resolve_account_or_exit
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.account import AccountService
from ledgerkit.domain.entities import MatchField, MatchType, TransactionCategory
from ledgerkit.domain.errors import DomainError
from ledgerkit.domain.rules import MappingRuleService

RULE_CATEGORIES = ["revenue", "expense", "transfer", "ignore"]


def _account_id_or_none(ctx, db, account: str | None) -> int | None:
    if account is None:
        return None
    return resolve_account_or_exit(ctx, AccountService(db), account)


@click.group()
def rule_group():
    """Manage categorization rules."""
    pass


@rule_group.command("create")
@click.argument("pattern")
@click.option(
    "--category",
    type=click.Choice(RULE_CATEGORIES, case_sensitive=False),
    required=True,
    help="Category assigned to matching transactions",
)
@click.option("--chart-account", "chart_account", help="Target chart account code")
@click.option(
    "--field",
    "match_field",
    type=click.Choice([f.value for f in MatchField], case_sensitive=False),
    default=MatchField.NAME.value,
    show_default=True,
    help="Transaction field(s) to match",
)
@click.option(
    "--match",
    "match_type",
    type=click.Choice([t.value for t in MatchType], case_sensitive=False),
    default=MatchType.CONTAINS.value,
    show_default=True,
    help="How the pattern is compared",
)
@click.option("--priority", type=int, help="Priority (default: above every existing rule)")
@click.option("--subcategory", help="Optional subcategory label")
@click.option("--account", help="Restrict the rule to one bank account (name or ID)")
@click.pass_context
def create_rule(ctx, pattern: str, category: str, chart_account: str | None, match_field: str,
                match_type: str, priority: int | None, subcategory: str | None,
                account: str | None):
    """Create a categorization rule.

    Examples:
        ledgerkit rule create "AMAZON" --category expense --chart-account 5100
        ledgerkit rule create "^PAYROLL" --match regex --category revenue --chart-account 4000
    """
    db = ctx.obj["db"]
    service = MappingRuleService(db)
    account_id = _account_id_or_none(ctx, db, account)

    try:
        rule_id = service.create_rule(
            pattern=pattern,
            category=TransactionCategory(category.lower()),
            match_field=MatchField(match_field.lower()),
            match_type=MatchType(match_type.lower()),
            chart_account_id=chart_account,
            subcategory=subcategory,
            priority=priority,
            account_id=account_id,
        )
        click.echo(f"Created rule {rule_id}: '{pattern}' -> {category.lower()}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@rule_group.command("list")
@click.option("--active", "active_only", is_flag=True, help="Only show active rules")
@click.pass_context
def list_rules(ctx, active_only: bool):
    """List categorization rules in evaluation order."""
    db = ctx.obj["db"]
    service = MappingRuleService(db)

    rules = service.list_rules(active_only=active_only)
    if not rules:
        click.echo("No rules found.")
        return

    click.echo("\nRules:")
    click.echo("-" * 80)
    for rule in rules:
        target = f" -> {rule.chart_account_id}" if rule.chart_account_id else ""
        scope = f" [account {rule.account_id}]" if rule.account_id is not None else ""
        inactive = " (inactive)" if not rule.is_active else ""
        click.echo(
            f"ID: {rule.id:3d} | P{rule.priority:<3d} | {rule.match_field.value}:"
            f"{rule.match_type.value} '{rule.pattern}' | {rule.category.value}{target}"
            f"{scope}{inactive}"
        )


@rule_group.command("deactivate")
@click.argument("rule_id", type=int)
@click.pass_context
def deactivate_rule(ctx, rule_id: int):
    """Deactivate a rule."""
    db = ctx.obj["db"]
    service = MappingRuleService(db)

    try:
        service.deactivate_rule(rule_id)
        click.echo(f"Deactivated rule {rule_id}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@rule_group.command("activate")
@click.argument("rule_id", type=int)
@click.pass_context
def activate_rule(ctx, rule_id: int):
    """Re-activate a deactivated rule."""
    db = ctx.obj["db"]
    service = MappingRuleService(db)

    try:
        service.activate_rule(rule_id)
        click.echo(f"Activated rule {rule_id}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@rule_group.command("priority")
@click.argument("rule_id", type=int)
@click.argument("priority", type=int)
@click.pass_context
def set_rule_priority(ctx, rule_id: int, priority: int):
    """Change the priority of a rule (higher is tried first)."""
    db = ctx.obj["db"]
    service = MappingRuleService(db)

    try:
        service.set_priority(rule_id, priority)
        click.echo(f"Rule {rule_id} priority set to {priority}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@rule_group.command("preview")
@click.option("--account", help="Only preview one bank account (name or ID)")
@click.pass_context
def preview_rules(ctx, account: str | None):
    """Show how the active rules would categorize uncategorized transactions."""
    db = ctx.obj["db"]
    service = MappingRuleService(db)
    account_id = _account_id_or_none(ctx, db, account)

    try:
        application = service.preview(account_id=account_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not application.assignments:
        click.echo("No uncategorized transactions.")
        return

    for assignment in application.assignments.values():
        if assignment.rule_id is None:
            continue
        target = f" -> {assignment.chart_account_id}" if assignment.chart_account_id else ""
        click.echo(
            f"{assignment.fit_id}: {assignment.category.value}{target} (rule {assignment.rule_id})"
        )
    for warning in application.warnings:
        click.echo(f"Warning: {warning.message}")
    click.echo(f"\nMatched: {application.matched}, unmatched: {application.unmatched}")


@rule_group.command("apply")
@click.option("--account", help="Only apply to one bank account (name or ID)")
@click.pass_context
def apply_rules_cmd(ctx, account: str | None):
    """Categorize stored uncategorized transactions with the active rules."""
    db = ctx.obj["db"]
    service = MappingRuleService(db)
    account_id = _account_id_or_none(ctx, db, account)

    try:
        updated = service.apply_to_uncategorized(account_id=account_id)
        click.echo(f"Categorized {updated} transactions.")
    except DomainError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register rule commands with main CLI."""
    cli.add_command(rule_group, name="rule")
