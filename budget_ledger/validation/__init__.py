"""
Validation Package

Record-level structural validation, independent of request validation.
"""

from budget_ledger.validation.validator import (
    LedgerValidator,
    decimal_places,
    issues_from_pydantic,
)

__all__ = [
    "LedgerValidator",
    "decimal_places",
    "issues_from_pydantic",
]
