"""
Tests for the audit logger.
"""

import json
import logging
from datetime import timedelta
from uuid import uuid4

import pytest

from budget_ledger.audit import snapshot
from budget_ledger.models import AuditAction, AuditEntityType, ProjectStatus


class TestSnapshot:
    """Tests for snapshot serialization."""

    def test_none_stays_none(self):
        assert snapshot(None) is None

    def test_models_use_pydantic_json(self, make_transaction):
        transaction = make_transaction("12.30")
        data = json.loads(snapshot(transaction))
        assert data["id"] == str(transaction.id)
        assert data["amount"] == "12.30"

    def test_plain_dicts(self):
        assert json.loads(snapshot({"Status": "Completed"})) == {"Status": "Completed"}


class TestAuditLogger:
    """Tests for building and staging entries."""

    @pytest.mark.asyncio
    async def test_entry_is_staged_not_committed(self, audit_logger, storage):
        entry = await audit_logger.record_create(
            uuid4(), AuditEntityType.PROJECT, uuid4(), {"Name": "Library"}
        )

        assert storage.pending_count == 1
        assert await storage.get_audit_trail(entity_ids=[entry.entity_id]) == []

        await storage.save_changes()
        assert await storage.get_audit_trail(entity_ids=[entry.entity_id]) == [entry]

    @pytest.mark.asyncio
    async def test_update_keeps_both_snapshots(self, audit_logger, verifier):
        entry = await audit_logger.record_update(
            uuid4(),
            AuditEntityType.PROJECT,
            uuid4(),
            old_state={"Name": "Library"},
            new_state={"Name": "Public Library"},
        )

        assert entry.action_type == AuditAction.UPDATE
        assert entry.previous_snapshot() == {"Name": "Library"}
        assert entry.new_snapshot() == {"Name": "Public Library"}
        assert verifier.verify_audit_entry(entry) is True
        assert verifier.verify_audit_entry_signature(entry) is True

    @pytest.mark.asyncio
    async def test_status_change_snapshots(self, audit_logger):
        entry = await audit_logger.record_status_change(
            uuid4(),
            AuditEntityType.PROJECT,
            uuid4(),
            ProjectStatus.NOT_STARTED,
            ProjectStatus.INITIATED,
        )
        assert entry.previous_value == '{"Status": "NotStarted"}'
        assert entry.new_value == '{"Status": "Initiated"}'

    @pytest.mark.asyncio
    async def test_transaction_is_attributed_to_its_creator(self, audit_logger, make_transaction):
        transaction = make_transaction()
        entry = await audit_logger.record_transaction(transaction)

        assert entry.user_id == transaction.created_by
        assert entry.entity_id == transaction.id
        assert entry.action_type == AuditAction.CREATE_TRANSACTION

    def test_timestamps_come_from_the_clock(self, audit_logger, clock):
        clock.advance(90)
        entry = audit_logger.build_entry(
            user_id=uuid4(), action_type="Create", entity_type="Project", entity_id=uuid4()
        )
        assert entry.timestamp == clock.now()

    def test_explicit_timestamp_is_hashed(self, audit_logger, verifier, clock):
        entry = audit_logger.build_entry(
            user_id=uuid4(),
            action_type="Create",
            entity_type="Project",
            entity_id=uuid4(),
            timestamp=clock.now() - timedelta(days=1),
        )
        assert verifier.verify_audit_entry(entry) is True

    @pytest.mark.asyncio
    async def test_entries_are_mirrored_to_the_log(self, audit_logger, caplog):
        with caplog.at_level(logging.INFO):
            entry = await audit_logger.record_create(
                uuid4(), AuditEntityType.PROJECT, uuid4(), {"Secret": "not logged"}
            )
        assert "audit_entry_recorded" in caplog.text
        assert str(entry.id) in caplog.text
        assert "not logged" not in caplog.text
