"""Tests for balance sheet, cash flow and profit and loss reports."""

import pytest
from datetime import date
from decimal import Decimal

from conftest import make_transaction
from ledgerkit.domain.chart_presets import default_chart_accounts
from ledgerkit.domain.entities import TransactionCategory
from ledgerkit.domain.errors import NotFoundError, ValidationError
from ledgerkit.domain.ledger import Ledger, post_transaction
from ledgerkit.domain.reports import (
    account_balance,
    get_balance_sheet,
    get_cash_flow,
    get_category_spending,
    get_profit_and_loss,
    in_currency,
)


@pytest.fixture
def ledger():
    """Ledger with a month of checking and credit card activity."""
    ledger = Ledger(accounts=default_chart_accounts())
    postings = [
        ("1110", make_transaction("R1", "2000.00", date(2024, 1, 5),
                                  category=TransactionCategory.REVENUE, chart_account_id="4100")),
        ("1110", make_transaction("E1", "-150.00", date(2024, 1, 10),
                                  category=TransactionCategory.EXPENSE, chart_account_id="5120")),
        ("2110", make_transaction("C1", "75.00", date(2024, 1, 12), is_liability=True,
                                  category=TransactionCategory.EXPENSE, chart_account_id="5140")),
        ("1110", make_transaction("R2", "500.00", date(2024, 2, 3),
                                  category=TransactionCategory.REVENUE, chart_account_id="4200")),
    ]
    for bank, txn in postings:
        post_transaction(ledger, txn, bank)
    return ledger


def test_balance_sheet_totals(ledger):
    """Assets and liabilities are summed with the normal sign convention."""
    sheet = get_balance_sheet(ledger)

    assert sheet.assets == Decimal("2350.00")
    assert sheet.liabilities == Decimal("75.00")
    assert sheet.equity == Decimal("2275.00")


def test_balance_sheet_additivity(ledger):
    """assets - liabilities == equity at every date."""
    for as_of in (None, date(2024, 1, 1), date(2024, 1, 11), date(2024, 1, 31), date(2024, 12, 31)):
        sheet = get_balance_sheet(ledger, as_of)
        assert sheet.assets - sheet.liabilities == sheet.equity


def test_balance_sheet_as_of_excludes_later_entries(ledger):
    """Entries after the report date do not count."""
    sheet = get_balance_sheet(ledger, date(2024, 1, 31))

    assert sheet.assets == Decimal("1850.00")


def test_balance_sheet_groups_by_parent(ledger):
    """Non-zero accounts are grouped under their parent account."""
    sheet = get_balance_sheet(ledger)

    assert [group.name for group in sheet.asset_groups] == ["Cash & Bank"]
    assert [line.code for line in sheet.asset_groups[0].lines] == ["1110"]
    assert sheet.liability_groups[0].group_id == "2100"
    assert sheet.liability_groups[0].total == Decimal("75.00")


def test_cash_flow_month(ledger):
    """Debits to asset accounts are inflows, credits outflows."""
    flow = get_cash_flow(ledger, 2024, 1)

    assert flow.start == date(2024, 1, 1)
    assert flow.end == date(2024, 1, 31)
    assert flow.inflows == Decimal("2000.00")
    assert flow.outflows == Decimal("150.00")
    assert flow.net_cash_flow == Decimal("1850.00")


def test_profit_and_loss_year(ledger):
    """Revenue minus expenses over the whole year."""
    pnl = get_profit_and_loss(ledger, 2024)

    assert pnl.revenue == Decimal("2500.00")
    assert pnl.expenses == Decimal("225.00")
    assert pnl.net == Decimal("2275.00")
    assert {line.account_id for line in pnl.revenue_by_account} == {"4100", "4200"}
    assert {line.account_id for line in pnl.expenses_by_account} == {"5120", "5140"}


def test_profit_and_loss_leap_february(ledger):
    """A month period covers the whole calendar month."""
    pnl = get_profit_and_loss(ledger, 2024, 2)

    assert pnl.end == date(2024, 2, 29)
    assert pnl.revenue == Decimal("500.00")
    assert pnl.expenses == Decimal("0.00")


def test_deactivated_accounts_keep_their_history(ledger):
    """Deactivating an account after posting to it leaves period reports intact."""
    ledger.deactivate_account("5120")
    ledger.deactivate_account("1110")

    pnl = get_profit_and_loss(ledger, 2024, 1)
    flow = get_cash_flow(ledger, 2024, 1)
    sheet = get_balance_sheet(ledger)

    assert pnl.expenses == Decimal("225.00")
    assert "5120" in {line.account_id for line in pnl.expenses_by_account}
    assert flow.outflows == Decimal("150.00")
    assert flow.inflows == Decimal("2000.00")
    assert sheet.asset_groups == ()
    assert sheet.liabilities == Decimal("75.00")


def test_profit_and_loss_leaves_out_idle_accounts(ledger):
    """Accounts without activity in the period are not listed."""
    pnl = get_profit_and_loss(ledger, 2024, 2)

    assert [line.account_id for line in pnl.revenue_by_account] == ["4200"]
    assert pnl.expenses_by_account == ()


def test_category_spending_month(ledger):
    """Each account's share of the month, largest first."""
    spending = get_category_spending(ledger, 2024, 1)

    assert spending.expenses == Decimal("225.00")
    assert spending.revenue == Decimal("2000.00")
    assert spending.net == Decimal("1775.00")
    assert [item.code for item in spending.expense_items] == ["5120", "5140"]
    assert [item.percentage for item in spending.expense_items] == [
        Decimal("66.67"), Decimal("33.33"),
    ]
    assert spending.expense_items[0].amount == Decimal("150.00")
    assert spending.expense_items[0].transaction_count == 1
    assert [(item.code, item.percentage) for item in spending.revenue_items] == [
        ("4100", Decimal("100.00")),
    ]


def test_category_spending_empty_period(ledger):
    """A period without entries has no items and zero totals."""
    spending = get_category_spending(ledger, 2023)

    assert spending.expense_items == ()
    assert spending.revenue_items == ()
    assert spending.expenses == Decimal("0.00")


def test_invalid_month_rejected(ledger):
    """Months outside 1..12 are a validation error."""
    with pytest.raises(ValidationError):
        get_cash_flow(ledger, 2024, 13)


def test_account_balance(ledger):
    """Balances follow the account's normal side."""
    assert account_balance(ledger, "1110") == Decimal("2350.00")
    assert account_balance(ledger, "2110") == Decimal("75.00")
    assert account_balance(ledger, "4100", end=date(2024, 1, 31)) == Decimal("2000.00")
    with pytest.raises(NotFoundError):
        account_balance(ledger, "0000")


def test_report_in_other_currency(ledger):
    """Converted totals keep the difference exact."""
    sheet = get_balance_sheet(ledger)
    rates = {"USD": Decimal("1"), "EUR": Decimal("1.10")}

    converted = in_currency(sheet, "USD", "eur", rates)

    assert converted.currency == "EUR"
    assert converted.assets == Decimal("2136.36")
    assert converted.liabilities == Decimal("68.18")
    assert converted.equity == converted.assets - converted.liabilities


def test_report_service_end_to_end(report_service, import_service, rule_service, default_chart,
                                   fixtures_dir):
    """Reports read the posted journal from the database."""
    rule_service.create_rule("acme payroll", TransactionCategory.REVENUE, chart_account_id="4100")
    rule_service.create_rule("utilities", TransactionCategory.EXPENSE, chart_account_id="5120")
    rule_service.create_rule("amazon", TransactionCategory.EXPENSE, chart_account_id="5140")
    import_service.import_file(str(fixtures_dir / "checking.ofx"))

    sheet = report_service.balance_sheet()
    pnl = report_service.profit_and_loss(2024, 1)
    flow = report_service.cash_flow(2024)

    assert sheet.currency == "USD"
    assert sheet.assets == Decimal("3804.50")
    assert sheet.assets - sheet.liabilities == sheet.equity
    assert pnl.revenue == Decimal("2000.00")
    assert pnl.expenses == Decimal("195.50")
    assert flow.net_cash_flow == Decimal("3804.50")

    converted = report_service.balance_sheet(currency="EUR", rates={"EUR": Decimal("2")})
    assert converted.assets == Decimal("1902.25")


def test_report_service_category_spending(report_service, import_service, rule_service,
                                          default_chart, fixtures_dir):
    """The spending breakdown reads the posted journal and converts its totals."""
    rule_service.create_rule("utilities", TransactionCategory.EXPENSE, chart_account_id="5120")
    rule_service.create_rule("amazon", TransactionCategory.EXPENSE, chart_account_id="5140")
    import_service.import_file(str(fixtures_dir / "checking.ofx"))

    spending = report_service.category_spending(2024)
    converted = report_service.category_spending(
        2024, 1, currency="EUR", rates={"EUR": Decimal("2")}
    )

    assert spending.currency == "USD"
    assert spending.expenses == Decimal("195.50")
    assert [item.percentage for item in spending.expense_items] == [
        Decimal("76.73"), Decimal("23.27"),
    ]
    assert converted.currency == "EUR"
    assert converted.expenses == Decimal("97.75")
