"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the flows decoupled from storage implementation

The interface is a unit of work. add_* and update_* calls only stage
changes; nothing is visible to other readers until save_changes() commits
every staged change at once. If anything goes wrong before that, the caller
calls rollback() and nothing is written.

Staged changes live on the storage object, which every flow shares. A
unit of work therefore holds write_lock from its first read until its
commit or rollback has finished, so no two units of work stage at once.

There are deliberately no delete methods and no way to update a
transaction or an audit entry.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from budget_ledger.models.audit import AuditEntry
from budget_ledger.models.ledger import (
    AccountingAccount,
    Person,
    Project,
    ProjectStatus,
    Transaction,
)


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    def __init__(self):
        self._write_lock = asyncio.Lock()

    @property
    def write_lock(self) -> asyncio.Lock:
        """Held by the unit of work whose changes are currently staged."""
        return self._write_lock

    # =========================================================================
    # READS
    # =========================================================================

    @abstractmethod
    async def get_person_by_id(self, person_id: UUID) -> Optional[Person]:
        """Return the person, or None if it does not exist."""
        pass

    @abstractmethod
    async def get_project_by_id(self, project_id: UUID) -> Optional[Project]:
        """
        Retrieve a project, with its bank account, by ID.

        Returns:
            The project if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_projects(
        self,
        status: Optional[ProjectStatus] = None,
        coordinator_id: Optional[UUID] = None,
    ) -> list[Project]:
        """
        List projects matching every given filter.

        Returns:
            Projects ordered by creation time
        """
        pass

    @abstractmethod
    async def list_accounting_accounts(self) -> list[AccountingAccount]:
        """All accounting accounts, ordered by identifier."""
        pass

    @abstractmethod
    async def get_accounting_account_by_id(
        self,
        accounting_account_id: UUID,
    ) -> Optional[AccountingAccount]:
        pass

    @abstractmethod
    async def get_accounting_account_by_identifier(
        self,
        identifier: str,
    ) -> Optional[AccountingAccount]:
        pass

    @abstractmethod
    async def bank_account_exists(
        self,
        account_number: str,
        bank_name: str,
        branch_number: str,
    ) -> bool:
        """
        Check whether the uniqueness triple is already taken.

        Advisory only. save_changes() re-checks it at commit time.
        """
        pass

    @abstractmethod
    async def get_transactions_by_bank_account(
        self,
        bank_account_id: UUID,
    ) -> list[Transaction]:
        """
        Get every transaction of a bank account.

        Returns:
            Transactions ordered by transaction date, then creation time
        """
        pass

    @abstractmethod
    async def get_audit_trail(
        self,
        entity_ids: Optional[Iterable[UUID]] = None,
        entity_type: Optional[str] = None,
        user_id: Optional[UUID] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        skip: int = 0,
        take: Optional[int] = None,
    ) -> list[AuditEntry]:
        """
        Get audit entries matching every given filter.

        Args:
            entity_ids: Keep entries about any of these entities
            entity_type: Keep entries about this kind of entity
            user_id: Keep entries by this user
            date_from: Keep entries at or after this instant
            date_to: Keep entries at or before this instant
            skip: Number of results to skip
            take: Maximum number of results (None for all)

        Returns:
            Entries in chronological order
        """
        pass

    # =========================================================================
    # STAGED WRITES
    # =========================================================================

    @abstractmethod
    async def add_person(self, person: Person) -> None:
        pass

    @abstractmethod
    async def add_project(self, project: Project) -> None:
        """Stage a new project together with its bank account."""
        pass

    @abstractmethod
    async def update_project(self, project: Project) -> None:
        """
        Stage an update of an existing project.

        Raises (at commit):
            NotFoundError: If the project does not exist
        """
        pass

    @abstractmethod
    async def add_accounting_account(self, account: AccountingAccount) -> None:
        pass

    @abstractmethod
    async def add_transaction(self, transaction: Transaction) -> None:
        pass

    @abstractmethod
    async def add_audit_entry(self, entry: AuditEntry) -> None:
        pass

    # =========================================================================
    # UNIT OF WORK
    # =========================================================================

    @abstractmethod
    async def save_changes(self) -> int:
        """
        Commit every staged change atomically.

        Returns:
            Number of records written

        Raises:
            DuplicateError: If a uniqueness constraint would be violated
            NotFoundError: If a staged update targets a missing record
            StorageError: If the backend fails; nothing is written
        """
        pass

    @abstractmethod
    async def rollback(self) -> None:
        """Discard every staged change."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


def select_audit_entries(
    entries: Iterable[AuditEntry],
    entity_ids: Optional[Iterable[UUID]] = None,
    entity_type: Optional[str] = None,
    user_id: Optional[UUID] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    skip: int = 0,
    take: Optional[int] = None,
) -> list[AuditEntry]:
    """Filter, order and page audit entries the same way for every backend."""
    wanted_ids = set(entity_ids) if entity_ids is not None else None

    selected = [
        entry for entry in entries
        if (wanted_ids is None or entry.entity_id in wanted_ids)
        and (entity_type is None or entry.entity_type == entity_type)
        and (user_id is None or entry.user_id == user_id)
        and (date_from is None or entry.timestamp >= date_from)
        and (date_to is None or entry.timestamp <= date_to)
    ]
    selected.sort(key=lambda entry: entry.timestamp)

    if take is None:
        return selected[skip:]
    return selected[skip:skip + take]


def select_projects(
    projects: Iterable[Project],
    status: Optional[ProjectStatus] = None,
    coordinator_id: Optional[UUID] = None,
) -> list[Project]:
    """Filter and order projects the same way for every backend."""
    selected = [
        project for project in projects
        if (status is None or project.status == status)
        and (coordinator_id is None or project.coordinator_id == coordinator_id)
    ]
    selected.sort(key=lambda project: project.created_at)
    return selected
