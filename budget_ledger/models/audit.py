"""
Audit Models for Project Budget Ledger

Every mutating action on a tracked entity is recorded as an AuditEntry.
This provides:
1. Complete traceability of who changed what, and when
2. Before/after snapshots for every change
3. Tamper evidence (hash) and non-repudiation (signature) per entry

DESIGN DECISION: Audit entries are append-only. We never delete or modify them.
"""

import json
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field


class AuditAction:
    """Action type codes written to the audit trail."""
    CREATE = "Create"
    UPDATE = "Update"
    STATUS_CHANGE = "StatusChange"
    CREATE_TRANSACTION = "CreateTransaction"


class AuditEntityType:
    """Entity type names written to the audit trail."""
    PROJECT = "Project"
    TRANSACTION = "Transaction"
    ACCOUNTING_ACCOUNT = "AccountingAccount"
    PERSON = "Person"


class AuditEntry(BaseModel):
    """
    A single, signed audit trail record.

    The hash covers every field except the id, the signature and the
    hash itself. The signature covers action, entity and timestamp and
    is keyed with the acting user.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique entry identifier"
    )
    user_id: UUID = Field(
        ...,
        description="User who performed the action"
    )
    action_type: str = Field(
        ...,
        max_length=50,
        description="Short action code (e.g., 'Create', 'StatusChange')"
    )
    entity_type: str = Field(
        ...,
        max_length=100,
        description="Kind of entity affected (e.g., 'Project', 'Transaction')"
    )
    entity_id: UUID = Field(
        ...,
        description="ID of the affected entity"
    )
    timestamp: AwareDatetime = Field(
        ...,
        description="When the action occurred"
    )

    # Serialized snapshots (JSON)
    previous_value: Optional[str] = None
    new_value: Optional[str] = None

    digital_signature: str
    data_hash: str

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.

        Snapshots are left out; they can be large and may hold
        values that do not belong in operational logs.
        """
        return {
            "audit_entry_id": str(self.id),
            "timestamp": self.timestamp.isoformat(),
            "user_id": str(self.user_id),
            "action_type": self.action_type,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id),
        }

    def previous_snapshot(self) -> Optional[dict[str, Any]]:
        return json.loads(self.previous_value) if self.previous_value else None

    def new_snapshot(self) -> Optional[dict[str, Any]]:
        return json.loads(self.new_value) if self.new_value else None
