"""Query execution and report export package."""

from budget_ledger.queries.executor import LedgerQueryExecutor, generate_report_identifier
from budget_ledger.queries.report import render_accountability_report

__all__ = [
    "LedgerQueryExecutor",
    "generate_report_identifier",
    "render_accountability_report",
]
