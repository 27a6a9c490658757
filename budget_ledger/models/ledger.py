"""
Core Data Models for Project Budget Ledger

These models define the schemas for all records flowing through the core.
They are designed to:
1. Enforce type safety at runtime
2. Keep financial records immutable once created
3. Be serializable for storage, audit snapshots and logging

DESIGN DECISION: Transactions are frozen pydantic models. Their hash and
signature are computed once, at creation, and a frozen model cannot be
edited in place. Any "edit" produces a new object whose stored hash no
longer matches, which is exactly what integrity verification detects.

All timestamps are timezone-aware. The canonical hash format embeds the
UTC offset, so a naive datetime would have no stable representation.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


ACCOUNT_IDENTIFIER_PATTERN = r"^\d{4}\.\d{2}\.\d{4}$"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionClassification(IntEnum):
    """
    Direction of a transaction.

    The integer values are part of the canonical hash format.
    """
    DEBIT = 0   # money going out
    CREDIT = 1  # money coming in


class ProjectStatus(str, Enum):
    """
    Project lifecycle.

    CRITICAL: No transaction may be recorded once a project is
    COMPLETED or CANCELLED.
    """
    NOT_STARTED = "NotStarted"
    INITIATED = "Initiated"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


CLOSED_PROJECT_STATUSES = frozenset({ProjectStatus.COMPLETED, ProjectStatus.CANCELLED})


# =============================================================================
# PEOPLE, PROJECTS AND ACCOUNTS
# =============================================================================

class Person(BaseModel):
    """A person who can act as a project coordinator."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    identification_number: str = Field(..., min_length=1, max_length=50)
    created_at: AwareDatetime


class BankAccount(BaseModel):
    """
    The bank account owned by a project.

    (account_number, bank_name, branch_number) is unique across the
    whole system. Storage enforces it at commit time.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    account_number: str = Field(
        ...,
        min_length=1,
        max_length=30,
        pattern=r"^\d+$",
        description="Account number (digits only)"
    )
    bank_name: str = Field(..., min_length=1, max_length=200)
    branch_number: str = Field(
        ...,
        min_length=1,
        max_length=10,
        pattern=r"^\d+$",
        description="Branch number (digits only)"
    )
    account_holder_name: str = Field(..., min_length=1, max_length=200)
    project_id: UUID
    created_at: AwareDatetime

    @property
    def unique_key(self) -> tuple[str, str, str]:
        """The system-wide uniqueness triple."""
        return (self.account_number, self.bank_name, self.branch_number)


class Project(BaseModel):
    """
    A project with a budget and at most one bank account.

    Projects are the only mutable entity in the core: their status
    moves through the lifecycle, and every move is audited.
    """
    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    start_date: AwareDatetime
    end_date: AwareDatetime
    status: ProjectStatus = Field(default=ProjectStatus.NOT_STARTED)
    budget_amount: Decimal = Field(..., gt=0, decimal_places=2)
    coordinator_id: UUID
    bank_account: Optional[BankAccount] = None
    created_at: AwareDatetime
    updated_at: AwareDatetime

    @model_validator(mode='after')
    def validate_dates(self) -> 'Project':
        """Validate date relationships."""
        if self.start_date > self.end_date:
            raise ValueError("Project start date must be before or equal to end date")
        return self

    def can_create_transactions(self) -> bool:
        """Transactions are allowed unless the project is closed."""
        return self.status not in CLOSED_PROJECT_STATUSES

    def is_coordinated_by(self, user_id: UUID) -> bool:
        return self.coordinator_id == user_id

    def update_status(self, new_status: ProjectStatus, now: datetime) -> None:
        # Any transition is allowed; the audit trail records each one.
        self.status = new_status
        self.updated_at = now


class AccountingAccount(BaseModel):
    """Categorization dimension for transactions (e.g. 3001.01.0001)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    identifier: str = Field(
        ...,
        pattern=ACCOUNT_IDENTIFIER_PATTERN,
        description="Identifier in the form NNNN.NN.NNNN"
    )
    created_at: AwareDatetime


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    An immutable financial event on a project's bank account.

    CRITICAL: Only the transaction flow creates these. There is no
    update or delete path anywhere in the core.

    Structural rules (amount > 0, at most 2 decimal places, date not in
    the future, hash and signature present) are checked by the domain
    validator, not here, so a violation surfaces as a field-level
    ValidationError instead of a construction failure.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    amount: Decimal
    transaction_date: AwareDatetime
    classification: TransactionClassification
    bank_account_id: UUID
    accounting_account_id: UUID
    created_by: UUID
    created_at: AwareDatetime
    digital_signature: str
    data_hash: str

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign it contributes to the balance."""
        if self.classification is TransactionClassification.CREDIT:
            return self.amount
        return -self.amount


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'future_date')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
