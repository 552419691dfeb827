"""Domain layer for finstate application.

Services are imported lazily: the database layer imports
``finstate.domain.entities`` and the services import the database layer.
"""

_SERVICES = {
    "TrialBalanceService": "finstate.domain.trial_balance",
    "TrialBalanceImportService": "finstate.domain.csv_import",
    "MappingService": "finstate.domain.mapping",
    "ReportService": "finstate.domain.report",
    "RuleService": "finstate.domain.rules",
}

__all__ = list(_SERVICES)


def __getattr__(name):
    if name in _SERVICES:
        from importlib import import_module
        return getattr(import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
