"""
Audit Package

Signed, append-only audit trail and structured logging setup.
"""

from budget_ledger.audit.logger import (
    AuditLogger,
    configure_logging,
    create_correlation_id,
    snapshot,
)

__all__ = [
    "AuditLogger",
    "configure_logging",
    "create_correlation_id",
    "snapshot",
]
