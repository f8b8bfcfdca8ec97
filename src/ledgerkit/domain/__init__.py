"""Domain layer for ledgerkit application."""

# Services are imported lazily: the database layer imports domain.entities,
# and the services import the database layer.
_SERVICES = {
    "AccountService": "ledgerkit.domain.account",
    "ForecastService": "ledgerkit.domain.forecast",
    "LedgerService": "ledgerkit.domain.ledger",
    "MappingRuleService": "ledgerkit.domain.rules",
    "ReconciliationService": "ledgerkit.domain.reconciliation",
    "ReportService": "ledgerkit.domain.reports",
    "StatementImportService": "ledgerkit.domain.statement_import",
}

__all__ = sorted(_SERVICES)


def __getattr__(name):
    if name in _SERVICES:
        from importlib import import_module
        return getattr(import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
