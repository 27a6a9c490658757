"""
Audit Logger

DESIGN DECISION: Every mutating action in the ledger is audited.
This provides:
1. Complete traceability of who changed what, and when
2. Before/after snapshots of every change
3. Tamper evidence and non-repudiation for the trail itself

The audit logger:
- Builds signed, hashed AuditEntry records
- Stages them in the SAME unit of work as the change they describe,
  so the change and its audit entry are committed together or not at all
- Never swallows a failure: if the entry cannot be staged, the whole
  operation fails
- Mirrors every entry to the structured local log
"""

import json
import logging
import sys
from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog
from pydantic import BaseModel

from budget_ledger.clock import Clock, SystemClock
from budget_ledger.crypto.hashing import HashingService
from budget_ledger.crypto.signature import SignatureService
from budget_ledger.models.audit import AuditAction, AuditEntityType, AuditEntry
from budget_ledger.models.ledger import ProjectStatus, Transaction
from budget_ledger.services.storage import LedgerStorageInterface
from budget_ledger.validation import LedgerValidator


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog (JSON lines on stdout) and the stdlib root level."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    # basicConfig is a no-op once handlers exist
    logging.getLogger().setLevel(level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Configure structlog for local logging
configure_logging()


def snapshot(value: Any) -> Optional[str]:
    """Serialize an entity (or a plain dict) for an audit snapshot."""
    if value is None:
        return None
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    return json.dumps(value, default=str)


class AuditLogger:
    """
    Central audit trail writer.

    Entries are written to:
    1. The ledger storage, staged in the caller's unit of work
    2. The structured local log (for debugging and log shipping)
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        hashing: HashingService,
        signer: SignatureService,
        clock: Optional[Clock] = None,
        validator: Optional[LedgerValidator] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage whose unit of work receives the entries
            hashing: Computes the tamper-detection hash of each entry
            signer: Signs each entry for the acting user
            clock: Source of entry timestamps
            validator: Record-level checks run before staging
        """
        self._storage = storage
        self._hashing = hashing
        self._signer = signer
        self._clock = clock or SystemClock()
        self._validator = validator or LedgerValidator(clock=self._clock)
        self._logger = structlog.get_logger(__name__)

    def build_entry(
        self,
        user_id: UUID,
        action_type: str,
        entity_type: str,
        entity_id: UUID,
        previous_value: Optional[str] = None,
        new_value: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> AuditEntry:
        """
        Build a signed, hashed, validated entry without staging it.

        Raises:
            ValidationError: If the entry breaks a structural rule
        """
        timestamp = timestamp or self._clock.now()

        signature = self._signer.generate_audit_signature(
            action_type,
            entity_type,
            entity_id,
            timestamp,
            user_id,
        )
        data_hash = self._hashing.compute_audit_entry_hash(
            user_id,
            action_type,
            entity_type,
            entity_id,
            timestamp,
            previous_value,
            new_value,
        )

        entry = AuditEntry(
            id=uuid4(),
            user_id=user_id,
            action_type=action_type,
            entity_type=entity_type,
            entity_id=entity_id,
            timestamp=timestamp,
            previous_value=previous_value,
            new_value=new_value,
            digital_signature=signature,
            data_hash=data_hash,
        )
        self._validator.require_valid_audit_entry(entry)
        return entry

    async def record(
        self,
        user_id: UUID,
        action_type: str,
        entity_type: str,
        entity_id: UUID,
        previous_value: Optional[str] = None,
        new_value: Optional[str] = None,
    ) -> AuditEntry:
        """
        Build an entry and stage it in the storage's unit of work.

        The entry is persisted by the caller's save_changes().
        """
        entry = self.build_entry(
            user_id=user_id,
            action_type=action_type,
            entity_type=entity_type,
            entity_id=entity_id,
            previous_value=previous_value,
            new_value=new_value,
        )
        await self._storage.add_audit_entry(entry)
        self._logger.info("audit_entry_recorded", **entry.to_log_dict())
        return entry

    async def record_create(
        self,
        user_id: UUID,
        entity_type: str,
        entity_id: UUID,
        new_state: Any,
    ) -> AuditEntry:
        """Log creation of an entity."""
        return await self.record(
            user_id=user_id,
            action_type=AuditAction.CREATE,
            entity_type=entity_type,
            entity_id=entity_id,
            new_value=snapshot(new_state),
        )

    async def record_update(
        self,
        user_id: UUID,
        entity_type: str,
        entity_id: UUID,
        old_state: Any,
        new_state: Any,
    ) -> AuditEntry:
        """Log an update with before/after snapshots."""
        return await self.record(
            user_id=user_id,
            action_type=AuditAction.UPDATE,
            entity_type=entity_type,
            entity_id=entity_id,
            previous_value=snapshot(old_state),
            new_value=snapshot(new_state),
        )

    async def record_status_change(
        self,
        user_id: UUID,
        entity_type: str,
        entity_id: UUID,
        old_status: ProjectStatus,
        new_status: ProjectStatus,
    ) -> AuditEntry:
        """Log a lifecycle status change."""
        return await self.record(
            user_id=user_id,
            action_type=AuditAction.STATUS_CHANGE,
            entity_type=entity_type,
            entity_id=entity_id,
            previous_value=snapshot({"Status": old_status.value}),
            new_value=snapshot({"Status": new_status.value}),
        )

    async def record_transaction(self, transaction: Transaction) -> AuditEntry:
        """Log creation of a transaction by its creator."""
        return await self.record(
            user_id=transaction.created_by,
            action_type=AuditAction.CREATE_TRANSACTION,
            entity_type=AuditEntityType.TRANSACTION,
            entity_id=transaction.id,
            new_value=snapshot(transaction),
        )


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a unit of work and bind it to the log
    context of everything that happens inside it.
    """
    return uuid4()
