"""
Command and Query Models

These are the inputs handed to the flows by whatever layer wraps the core
(an HTTP controller, a CLI, a test). The acting user's id is always
supplied by that layer; the core never authenticates anyone itself.

Field-level checks here are the request-level layer. The domain validator
re-checks the invariants that matter for financial records independently.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from budget_ledger.models.ledger import (
    ACCOUNT_IDENTIFIER_PATTERN,
    ProjectStatus,
    TransactionClassification,
)


class CreateTransactionCommand(BaseModel):
    """Record a transaction on a project's bank account."""

    project_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    transaction_date: AwareDatetime
    classification: TransactionClassification
    accounting_account_id: UUID
    user_id: UUID


class CreateProjectCommand(BaseModel):
    """Create a project together with its bank account."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: AwareDatetime
    end_date: AwareDatetime
    budget_amount: Decimal = Field(..., gt=0, decimal_places=2)
    coordinator_id: UUID

    account_number: str
    bank_name: str
    branch_number: str
    account_holder_name: str

    user_id: UUID


class UpdateProjectCommand(BaseModel):
    """
    Replace a project's descriptive fields.

    Status, coordinator and bank account are not editable here.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    project_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: AwareDatetime
    end_date: AwareDatetime
    budget_amount: Decimal = Field(..., gt=0, decimal_places=2)
    user_id: UUID


class UpdateProjectStatusCommand(BaseModel):
    """Move a project to another lifecycle status."""

    project_id: UUID
    new_status: ProjectStatus
    user_id: UUID


class CreateAccountingAccountCommand(BaseModel):
    """Register a new accounting account."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    identifier: str = Field(..., pattern=ACCOUNT_IDENTIFIER_PATTERN)
    user_id: UUID


class AuditTrailQuery(BaseModel):
    """
    Filters for reading the audit trail.

    Every filter is optional; results are ordered by timestamp.
    """

    entity_id: Optional[UUID] = None
    entity_type: Optional[str] = None
    user_id: Optional[UUID] = None
    date_from: Optional[AwareDatetime] = None
    date_to: Optional[AwareDatetime] = None
    skip: int = Field(default=0, ge=0)
    take: int = Field(default=100, ge=1, le=1000)
