"""Default chart of accounts."""

from ledgerkit.domain.entities import AccountType, ChartAccount

CASH_AND_BANK_ID = "1100"
CREDIT_CARDS_ID = "2100"

# (code, name, type, parent code); parents come before their children
DEFAULT_CHART_OF_ACCOUNTS = [
    # Assets
    ("1000", "Assets", AccountType.ASSET, None),
    ("1100", "Cash & Bank", AccountType.ASSET, "1000"),
    ("1110", "Checking Account", AccountType.ASSET, "1100"),
    ("1120", "Savings Account", AccountType.ASSET, "1100"),
    # Liabilities
    ("2000", "Liabilities", AccountType.LIABILITY, None),
    ("2100", "Credit Cards", AccountType.LIABILITY, "2000"),
    ("2110", "Credit Card", AccountType.LIABILITY, "2100"),
    ("2200", "Tax Liabilities", AccountType.LIABILITY, "2000"),
    ("2210", "VAT Payable", AccountType.LIABILITY, "2200"),
    # Equity
    ("3000", "Equity", AccountType.EQUITY, None),
    ("3100", "Owner's Equity", AccountType.EQUITY, "3000"),
    ("3200", "Retained Earnings", AccountType.EQUITY, "3000"),
    # Revenue
    ("4000", "Revenue", AccountType.REVENUE, None),
    ("4100", "Service Revenue", AccountType.REVENUE, "4000"),
    ("4200", "Product Revenue", AccountType.REVENUE, "4000"),
    ("4900", "Other Income", AccountType.REVENUE, "4000"),
    # Expenses
    ("5000", "Expenses", AccountType.EXPENSE, None),
    ("5100", "Operating Expenses", AccountType.EXPENSE, "5000"),
    ("5110", "Rent", AccountType.EXPENSE, "5100"),
    ("5120", "Utilities", AccountType.EXPENSE, "5100"),
    ("5130", "Software & Subscriptions", AccountType.EXPENSE, "5100"),
    ("5140", "Office Supplies", AccountType.EXPENSE, "5100"),
    ("5150", "Internet & Phone", AccountType.EXPENSE, "5100"),
    ("5160", "Insurance", AccountType.EXPENSE, "5100"),
    ("5200", "Professional Services", AccountType.EXPENSE, "5000"),
    ("5210", "Legal", AccountType.EXPENSE, "5200"),
    ("5220", "Accounting", AccountType.EXPENSE, "5200"),
    ("5230", "Consulting", AccountType.EXPENSE, "5200"),
    ("5300", "Marketing & Advertising", AccountType.EXPENSE, "5000"),
    ("5310", "Online Advertising", AccountType.EXPENSE, "5300"),
    ("5320", "Content & Design", AccountType.EXPENSE, "5300"),
    ("5400", "Travel & Entertainment", AccountType.EXPENSE, "5000"),
    ("5410", "Travel", AccountType.EXPENSE, "5400"),
    ("5420", "Meals & Entertainment", AccountType.EXPENSE, "5400"),
    ("5500", "Bank Fees & Interest", AccountType.EXPENSE, "5000"),
    ("5510", "Bank Fees", AccountType.EXPENSE, "5500"),
    ("5520", "Interest Expense", AccountType.EXPENSE, "5500"),
    ("5530", "Payment Processing Fees", AccountType.EXPENSE, "5500"),
    ("5600", "Payroll", AccountType.EXPENSE, "5000"),
    ("5610", "Salaries & Wages", AccountType.EXPENSE, "5600"),
    ("5620", "Payroll Taxes", AccountType.EXPENSE, "5600"),
    ("5700", "Cost of Goods Sold", AccountType.EXPENSE, "5000"),
    ("5800", "Taxes", AccountType.EXPENSE, "5000"),
    ("5810", "VAT Expense", AccountType.EXPENSE, "5800"),
    ("5820", "Corporate Tax", AccountType.EXPENSE, "5800"),
    ("5900", "Other Expenses", AccountType.EXPENSE, "5000"),
]


def default_chart_accounts() -> list[ChartAccount]:
    """Return the default chart as ChartAccount records (id == code)."""
    return [
        ChartAccount(id=code, code=code, name=name, type=account_type, parent_id=parent)
        for code, name, account_type, parent in DEFAULT_CHART_OF_ACCOUNTS
    ]
