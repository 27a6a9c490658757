"""
In-Memory Storage Implementation

A complete unit-of-work implementation backed by dictionaries. Used by the
test suite and for local runs without a spreadsheet.

Staged changes are kept in order and applied only by save_changes(),
after every constraint has been checked against both the committed data
and the other staged changes. Either all of them are applied or none.

Records handed in and out are copies, so a caller mutating a Project it
read cannot change committed state behind the unit of work's back.
"""

from datetime import datetime
from typing import Iterable, Optional, Union
from uuid import UUID

import structlog

from budget_ledger.models.audit import AuditEntry
from budget_ledger.models.ledger import (
    AccountingAccount,
    Person,
    Project,
    ProjectStatus,
    Transaction,
)
from budget_ledger.services.balance import chronological
from budget_ledger.services.storage.interface import (
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    select_audit_entries,
    select_projects,
)


logger = structlog.get_logger(__name__)

Record = Union[Person, Project, AccountingAccount, Transaction, AuditEntry]

ADD = "add"
UPDATE = "update"


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dictionary-backed ledger storage with staged, atomic commits."""

    def __init__(self):
        super().__init__()
        self._people: dict[UUID, Person] = {}
        self._projects: dict[UUID, Project] = {}
        self._accounting_accounts: dict[UUID, AccountingAccount] = {}
        self._transactions: dict[UUID, Transaction] = {}
        self._audit_entries: dict[UUID, AuditEntry] = {}
        self._pending: list[tuple[str, Record]] = []

    @property
    def pending_count(self) -> int:
        """Number of staged, uncommitted changes."""
        return len(self._pending)

    # =========================================================================
    # READS
    # =========================================================================

    async def get_person_by_id(self, person_id: UUID) -> Optional[Person]:
        person = self._people.get(person_id)
        return person.model_copy(deep=True) if person else None

    async def get_project_by_id(self, project_id: UUID) -> Optional[Project]:
        project = self._projects.get(project_id)
        return project.model_copy(deep=True) if project else None

    async def list_projects(
        self,
        status: Optional[ProjectStatus] = None,
        coordinator_id: Optional[UUID] = None,
    ) -> list[Project]:
        return [
            project.model_copy(deep=True)
            for project in select_projects(self._projects.values(), status, coordinator_id)
        ]

    async def list_accounting_accounts(self) -> list[AccountingAccount]:
        return sorted(self._accounting_accounts.values(), key=lambda account: account.identifier)

    async def get_accounting_account_by_id(
        self,
        accounting_account_id: UUID,
    ) -> Optional[AccountingAccount]:
        return self._accounting_accounts.get(accounting_account_id)

    async def get_accounting_account_by_identifier(
        self,
        identifier: str,
    ) -> Optional[AccountingAccount]:
        for account in self._accounting_accounts.values():
            if account.identifier == identifier:
                return account
        return None

    async def bank_account_exists(
        self,
        account_number: str,
        bank_name: str,
        branch_number: str,
    ) -> bool:
        key = (account_number, bank_name, branch_number)
        return any(
            project.bank_account is not None and project.bank_account.unique_key == key
            for project in self._projects.values()
        )

    async def get_transactions_by_bank_account(
        self,
        bank_account_id: UUID,
    ) -> list[Transaction]:
        return chronological(
            tx for tx in self._transactions.values()
            if tx.bank_account_id == bank_account_id
        )

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
        return select_audit_entries(
            self._audit_entries.values(),
            entity_ids=entity_ids,
            entity_type=entity_type,
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            skip=skip,
            take=take,
        )

    # =========================================================================
    # STAGED WRITES
    # =========================================================================

    async def add_person(self, person: Person) -> None:
        self._pending.append((ADD, person.model_copy(deep=True)))

    async def add_project(self, project: Project) -> None:
        self._pending.append((ADD, project.model_copy(deep=True)))

    async def update_project(self, project: Project) -> None:
        self._pending.append((UPDATE, project.model_copy(deep=True)))

    async def add_accounting_account(self, account: AccountingAccount) -> None:
        self._pending.append((ADD, account))

    async def add_transaction(self, transaction: Transaction) -> None:
        self._pending.append((ADD, transaction))

    async def add_audit_entry(self, entry: AuditEntry) -> None:
        self._pending.append((ADD, entry))

    # =========================================================================
    # UNIT OF WORK
    # =========================================================================

    async def save_changes(self) -> int:
        pending = list(self._pending)
        self._check_constraints(pending)

        for operation, record in pending:
            self._table_for(record)[record.id] = record

        self._pending.clear()
        logger.debug("storage_changes_committed", record_count=len(pending))
        return len(pending)

    async def rollback(self) -> None:
        if self._pending:
            logger.debug("storage_changes_discarded", record_count=len(self._pending))
        self._pending.clear()

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _table_for(self, record: Record) -> dict:
        if isinstance(record, Person):
            return self._people
        if isinstance(record, Project):
            return self._projects
        if isinstance(record, AccountingAccount):
            return self._accounting_accounts
        if isinstance(record, Transaction):
            return self._transactions
        if isinstance(record, AuditEntry):
            return self._audit_entries
        raise StorageError(f"Unsupported record type: {type(record).__name__}")

    def _check_constraints(self, pending: list[tuple[str, Record]]) -> None:
        """Raise if applying the pending changes would break a constraint."""
        ids = {
            "person": set(self._people),
            "project": set(self._projects),
            "accounting_account": set(self._accounting_accounts),
            "transaction": set(self._transactions),
            "audit_entry": set(self._audit_entries),
        }
        bank_keys = {
            project.bank_account.unique_key: project.id
            for project in self._projects.values()
            if project.bank_account is not None
        }
        bank_ids = {
            project.bank_account.id
            for project in self._projects.values()
            if project.bank_account is not None
        }
        identifiers = {account.identifier for account in self._accounting_accounts.values()}

        for operation, record in pending:
            if isinstance(record, Project) and operation == UPDATE:
                if record.id not in ids["project"]:
                    raise NotFoundError(f"Project not found: {record.id}")
                continue

            kind = _kind_of(record)
            if record.id in ids[kind]:
                raise DuplicateError(f"Duplicate {kind} id: {record.id}")
            ids[kind].add(record.id)

            if isinstance(record, Project) and record.bank_account is not None:
                key = record.bank_account.unique_key
                if key in bank_keys:
                    raise DuplicateError(
                        "A bank account with the same account number, bank name "
                        "and branch number already exists."
                    )
                bank_keys[key] = record.id
                bank_ids.add(record.bank_account.id)

            elif isinstance(record, AccountingAccount):
                if record.identifier in identifiers:
                    raise DuplicateError(
                        f"Accounting account with identifier '{record.identifier}' already exists."
                    )
                identifiers.add(record.identifier)

            elif isinstance(record, Transaction):
                if record.bank_account_id not in bank_ids:
                    raise StorageError(f"Unknown bank account: {record.bank_account_id}")
                if record.accounting_account_id not in ids["accounting_account"]:
                    raise StorageError(
                        f"Unknown accounting account: {record.accounting_account_id}"
                    )


def _kind_of(record: Record) -> str:
    if isinstance(record, Person):
        return "person"
    if isinstance(record, Project):
        return "project"
    if isinstance(record, AccountingAccount):
        return "accounting_account"
    if isinstance(record, Transaction):
        return "transaction"
    if isinstance(record, AuditEntry):
        return "audit_entry"
    raise StorageError(f"Unsupported record type: {type(record).__name__}")
