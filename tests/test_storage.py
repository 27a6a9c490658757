"""
Tests for the in-memory unit of work, listings and audit trail selection.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from budget_ledger.models import AccountingAccount, AuditEntityType, ProjectStatus
from budget_ledger.services.storage import (
    DuplicateError,
    InMemoryLedgerStorage,
    NotFoundError,
    StorageError,
)
from budget_ledger.services.storage.interface import select_audit_entries, select_projects


class TestUnitOfWork:
    """Tests for staging, committing and discarding changes."""

    @pytest.mark.asyncio
    async def test_staged_records_are_invisible_until_commit(self, storage, clock):
        account = AccountingAccount(
            id=uuid4(), name="Supplies", identifier="3001.01.0002", created_at=clock.now()
        )
        await storage.add_accounting_account(account)

        assert await storage.get_accounting_account_by_id(account.id) is None
        assert storage.pending_count == 1

        assert await storage.save_changes() == 1
        assert await storage.get_accounting_account_by_id(account.id) == account
        assert storage.pending_count == 0

    @pytest.mark.asyncio
    async def test_rollback_discards_everything(self, storage, clock):
        account = AccountingAccount(
            id=uuid4(), name="Supplies", identifier="3001.01.0002", created_at=clock.now()
        )
        await storage.add_accounting_account(account)
        await storage.rollback()

        assert storage.pending_count == 0
        assert await storage.save_changes() == 0
        assert await storage.get_accounting_account_by_id(account.id) is None

    @pytest.mark.asyncio
    async def test_failed_commit_applies_nothing(self, storage, accounting_account, clock):
        fresh = AccountingAccount(
            id=uuid4(), name="Fresh", identifier="3001.01.0009", created_at=clock.now()
        )
        clash = AccountingAccount(
            id=uuid4(), name="Clash", identifier=accounting_account.identifier, created_at=clock.now()
        )
        await storage.add_accounting_account(fresh)
        await storage.add_accounting_account(clash)

        with pytest.raises(DuplicateError):
            await storage.save_changes()

        assert await storage.get_accounting_account_by_id(fresh.id) is None

    @pytest.mark.asyncio
    async def test_duplicate_identifier_within_one_batch(self, storage, clock):
        for name in ("First", "Second"):
            await storage.add_accounting_account(
                AccountingAccount(id=uuid4(), name=name, identifier="7001.01.0001", created_at=clock.now())
            )
        with pytest.raises(DuplicateError):
            await storage.save_changes()

    @pytest.mark.asyncio
    async def test_duplicate_id_is_rejected(self, storage, accounting_account):
        await storage.add_accounting_account(
            accounting_account.model_copy(update={"identifier": "9999.99.9999"})
        )
        with pytest.raises(DuplicateError):
            await storage.save_changes()

    @pytest.mark.asyncio
    async def test_duplicate_bank_account_triple(self, storage, project):
        other = project.model_copy(
            update={
                "id": uuid4(),
                "bank_account": project.bank_account.model_copy(update={"id": uuid4()}),
            },
            deep=True,
        )
        await storage.add_project(other)
        with pytest.raises(DuplicateError):
            await storage.save_changes()

    @pytest.mark.asyncio
    async def test_update_of_missing_project(self, storage, project):
        ghost = project.model_copy(update={"id": uuid4()}, deep=True)
        await storage.update_project(ghost)
        with pytest.raises(NotFoundError):
            await storage.save_changes()

    @pytest.mark.asyncio
    async def test_transaction_needs_known_accounts(self, storage, make_transaction):
        await storage.add_transaction(make_transaction())
        with pytest.raises(StorageError):
            await storage.save_changes()

    @pytest.mark.asyncio
    async def test_transaction_with_known_accounts_commits(
        self, storage, project, accounting_account, make_transaction
    ):
        transaction = make_transaction(
            bank_account_id=project.bank_account.id,
            accounting_account_id=accounting_account.id,
        )
        await storage.add_transaction(transaction)
        await storage.save_changes()

        assert await storage.get_transactions_by_bank_account(project.bank_account.id) == [
            transaction
        ]

    @pytest.mark.asyncio
    async def test_read_projects_are_copies(self, storage, project):
        loaded = await storage.get_project_by_id(project.id)
        loaded.status = ProjectStatus.CANCELLED

        reloaded = await storage.get_project_by_id(project.id)
        assert reloaded.status is ProjectStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_bank_account_exists(self, storage, project):
        bank = project.bank_account
        assert await storage.bank_account_exists(
            bank.account_number, bank.bank_name, bank.branch_number
        ) is True
        assert await storage.bank_account_exists(
            bank.account_number, bank.bank_name, "9999"
        ) is False


class TestListings:
    """Tests for list_projects, list_accounting_accounts and select_projects."""

    def test_select_projects_filters_and_orders(self, project):
        later = project.model_copy(
            update={
                "id": uuid4(),
                "status": ProjectStatus.COMPLETED,
                "created_at": project.created_at + timedelta(days=1),
            }
        )
        assert select_projects([later, project]) == [project, later]
        assert select_projects([later, project], status=ProjectStatus.COMPLETED) == [later]
        assert select_projects([later, project], coordinator_id=uuid4()) == []

    @pytest.mark.asyncio
    async def test_list_projects_returns_copies(self, storage, project):
        listed = await storage.list_projects()
        listed[0].status = ProjectStatus.CANCELLED

        assert (await storage.list_projects(status=ProjectStatus.IN_PROGRESS)) == [project]

    @pytest.mark.asyncio
    async def test_staged_projects_are_not_listed(self, storage, project):
        await storage.add_project(
            project.model_copy(update={"id": uuid4(), "bank_account": None}, deep=True)
        )
        assert [p.id for p in await storage.list_projects()] == [project.id]

    @pytest.mark.asyncio
    async def test_accounting_accounts_by_identifier(self, storage, accounting_account, clock):
        earlier = AccountingAccount(
            id=uuid4(), name="Salaries", identifier="1001.01.0001", created_at=clock.now()
        )
        await storage.add_accounting_account(earlier)
        await storage.save_changes()

        assert await storage.list_accounting_accounts() == [earlier, accounting_account]


class TestAuditTrailSelection:
    """Tests for select_audit_entries and get_audit_trail."""

    @pytest.fixture
    def entries(self, audit_logger, clock):
        project_id = uuid4()
        user_id = uuid4()
        built = []
        for minute in (30, 10, 20):
            built.append(audit_logger.build_entry(
                user_id=user_id,
                action_type="Create",
                entity_type=AuditEntityType.PROJECT,
                entity_id=project_id,
                new_value='{"n": %d}' % minute,
                timestamp=clock.now() + timedelta(minutes=minute),
            ))
        built.append(audit_logger.build_entry(
            user_id=uuid4(),
            action_type="Create",
            entity_type=AuditEntityType.ACCOUNTING_ACCOUNT,
            entity_id=uuid4(),
            timestamp=clock.now() + timedelta(minutes=5),
        ))
        return built

    def test_ordered_by_timestamp(self, entries):
        selected = select_audit_entries(entries)
        timestamps = [entry.timestamp for entry in selected]
        assert timestamps == sorted(timestamps)
        assert len(selected) == 4

    def test_filters_combine(self, entries):
        project_entries = select_audit_entries(
            entries,
            entity_ids=[entries[0].entity_id],
            user_id=entries[0].user_id,
        )
        assert [entry.new_value for entry in project_entries] == [
            '{"n": 10}', '{"n": 20}', '{"n": 30}'
        ]

    def test_entity_type_filter(self, entries):
        selected = select_audit_entries(entries, entity_type=AuditEntityType.ACCOUNTING_ACCOUNT)
        assert selected == [entries[3]]

    def test_date_bounds_are_inclusive(self, entries, clock):
        selected = select_audit_entries(
            entries,
            date_from=clock.now() + timedelta(minutes=10),
            date_to=clock.now() + timedelta(minutes=20),
        )
        assert [entry.new_value for entry in selected] == ['{"n": 10}', '{"n": 20}']

    def test_paging(self, entries):
        assert len(select_audit_entries(entries, skip=1, take=2)) == 2
        assert select_audit_entries(entries, skip=3) == [entries[0]]
        assert select_audit_entries(entries, skip=10) == []

    @pytest.mark.asyncio
    async def test_storage_returns_committed_entries_only(self, entries):
        storage = InMemoryLedgerStorage()
        for entry in entries[:2]:
            await storage.add_audit_entry(entry)
        await storage.save_changes()
        await storage.add_audit_entry(entries[2])

        trail = await storage.get_audit_trail()
        assert {entry.id for entry in trail} == {entries[0].id, entries[1].id}
