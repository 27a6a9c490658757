"""
Data Models Package

This package contains all Pydantic models used in the Project Budget Ledger.
All data flowing through the core must conform to these schemas.
"""

from budget_ledger.models.ledger import (
    AccountingAccount,
    BankAccount,
    Person,
    Project,
    ProjectStatus,
    Transaction,
    TransactionClassification,
    ValidationIssue,
)
from budget_ledger.models.audit import (
    AuditAction,
    AuditEntityType,
    AuditEntry,
)
from budget_ledger.models.commands import (
    AuditTrailQuery,
    CreateAccountingAccountCommand,
    CreateProjectCommand,
    CreateTransactionCommand,
    UpdateProjectCommand,
    UpdateProjectStatusCommand,
)
from budget_ledger.models.reports import (
    AccountabilityReport,
    AccountBalance,
    IntegrityReport,
    TransactionHistory,
)

__all__ = [
    # Ledger models
    "AccountingAccount",
    "BankAccount",
    "Person",
    "Project",
    "ProjectStatus",
    "Transaction",
    "TransactionClassification",
    "ValidationIssue",
    # Audit models
    "AuditAction",
    "AuditEntityType",
    "AuditEntry",
    # Commands and queries
    "AuditTrailQuery",
    "CreateAccountingAccountCommand",
    "CreateProjectCommand",
    "CreateTransactionCommand",
    "UpdateProjectCommand",
    "UpdateProjectStatusCommand",
    # Reports
    "AccountabilityReport",
    "AccountBalance",
    "IntegrityReport",
    "TransactionHistory",
]
