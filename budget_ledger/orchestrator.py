"""
Main Orchestrator for Project Budget Ledger

This module ties together all the components and defines the
end-to-end write flows:
1. Transaction creation (authorize → gate → sign → hash → validate → persist)
2. Project creation, updates and status changes
3. Accounting account registration

DESIGN DECISION: The orchestrator enforces the boundaries:
- Only a project's coordinator may record transactions on it
- No transaction is recorded on a completed or cancelled project
- Every record is signed and hashed before it is validated and staged
- Every change is audited in the SAME unit of work as the change itself:
  the record and its audit entry are committed together or not at all

Each public flow method is one unit of work: reads, staged writes and a
single commit, under the storage write lock so concurrent requests never
share staged writes. Anything that fails before the commit (including task
cancellation) rolls the staged writes back. The commit itself is shielded
from cancellation so it is never interrupted halfway.

Flows raise LedgerError subclasses only. Storage failures are translated:
DuplicateError → ConflictError, anything else → InternalError.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import uuid4

import pydantic
import structlog

from budget_ledger.audit import AuditLogger, configure_logging, create_correlation_id
from budget_ledger.clock import Clock, SystemClock
from budget_ledger.config import get_settings, get_signing_key
from budget_ledger.crypto import HashingService, SignatureService
from budget_ledger.errors import (
    ConflictError,
    InternalError,
    InvalidOperationError,
    LedgerError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from budget_ledger.models.audit import AuditEntityType
from budget_ledger.models.commands import (
    CreateAccountingAccountCommand,
    CreateProjectCommand,
    CreateTransactionCommand,
    UpdateProjectCommand,
    UpdateProjectStatusCommand,
)
from budget_ledger.models.ledger import (
    AccountingAccount,
    BankAccount,
    Project,
    ProjectStatus,
    Transaction,
)
from budget_ledger.queries import LedgerQueryExecutor
from budget_ledger.services import BalanceCalculator, IntegrityVerifier
from budget_ledger.services.storage import (
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)
from budget_ledger.services.storage import NotFoundError as RecordNotFoundError
from budget_ledger.validation import LedgerValidator, issues_from_pydantic


# Strong references to commits that outlived their cancelled request
_detached_commits: set[asyncio.Task] = set()


class UnitOfWork:
    """
    One request's staged writes, committed once.

    Owns the storage write lock from creation until release(). If the
    request is cancelled while its commit is running, the lock is handed
    to the shielded commit and released only when that commit ends, so
    the next unit of work never stages into a half-committed buffer.
    """

    def __init__(self, storage: LedgerStorageInterface, log: structlog.stdlib.BoundLogger):
        self.storage = storage
        self.log = log
        self._commit_task: Optional[asyncio.Future] = None

    @property
    def committing(self) -> bool:
        return self._commit_task is not None

    async def commit(self) -> int:
        self._commit_task = asyncio.ensure_future(self.storage.save_changes())
        return await asyncio.shield(self._commit_task)

    def release(self) -> None:
        """Give the write lock back, or leave it to a commit still running."""
        if self._commit_task is None or self._commit_task.done():
            self.storage.write_lock.release()
            return
        task = asyncio.ensure_future(self._finish_detached_commit())
        _detached_commits.add(task)
        task.add_done_callback(_detached_commits.discard)

    async def _finish_detached_commit(self) -> None:
        try:
            record_count = await self._commit_task
        except Exception as e:
            # Nobody is left to receive the error, so the outcome is logged
            await self.storage.rollback()
            self.log.error("ledger_detached_commit_failed", error=str(e))
        else:
            self.log.info("ledger_detached_commit_finished", record_count=record_count)
        finally:
            self.storage.write_lock.release()


class LedgerFlow:
    """Shared plumbing of the write flows."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: AuditLogger,
        clock: Optional[Clock] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._clock = clock or SystemClock()
        self._logger = structlog.get_logger(__name__)

    @asynccontextmanager
    async def _unit_of_work(self, operation: str, **context) -> AsyncIterator[UnitOfWork]:
        """
        Run a block as one unit of work.

        Holds the storage write lock throughout, rolls back on any failure
        before the commit, and translates storage exceptions into ledger
        errors.
        """
        correlation_id = create_correlation_id()
        log = self._logger.bind(
            operation=operation,
            correlation_id=str(correlation_id),
            **{key: str(value) for key, value in context.items()},
        )
        await self._storage.write_lock.acquire()
        uow = UnitOfWork(self._storage, log)

        try:
            yield uow
        except LedgerError as e:
            await self._storage.rollback()
            log.warning("ledger_operation_rejected", error_kind=e.kind.value, error=e.message)
            raise
        except DuplicateError as e:
            await self._storage.rollback()
            log.warning("ledger_operation_conflict", error=str(e))
            raise ConflictError(str(e)) from e
        except RecordNotFoundError as e:
            await self._storage.rollback()
            raise NotFoundError(str(e)) from e
        except StorageError as e:
            await self._storage.rollback()
            log.error("ledger_storage_failed", error=str(e))
            raise InternalError(f"Failed to persist changes: {e}") from e
        except asyncio.CancelledError:
            # A shielded commit keeps running; its outcome is all or nothing
            if not uow.committing:
                await self._storage.rollback()
            log.warning("ledger_operation_cancelled", committing=uow.committing)
            raise
        except BaseException:
            await self._storage.rollback()
            raise
        finally:
            uow.release()


class TransactionFlow(LedgerFlow):
    """
    Orchestrates transaction creation.

    Flow:
    1. Load project → NotFoundError
    2. Requester must be the coordinator → UnauthorizedError
    3. Project must accept transactions → InvalidOperationError
    4. Load accounting account → NotFoundError
    5. Project must have a bank account → InvalidOperationError
    6. Build the record
    7. Sign and hash the same immutable fields
    8. Structural validation → ValidationError
    9. Stage transaction + audit entry, commit once

    There is no update or delete flow for transactions.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        hashing: HashingService,
        signer: SignatureService,
        audit_logger: AuditLogger,
        validator: Optional[LedgerValidator] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(storage, audit_logger, clock)
        self._hashing = hashing
        self._signer = signer
        self._validator = validator or LedgerValidator(clock=self._clock)

    async def create_transaction(self, command: CreateTransactionCommand) -> Transaction:
        """
        Record a transaction on a project's bank account.

        Returns:
            The persisted transaction

        Raises:
            NotFoundError, UnauthorizedError, InvalidOperationError,
            ValidationError, ConflictError, InternalError
        """
        async with self._unit_of_work(
            "create_transaction",
            project_id=command.project_id,
            user_id=command.user_id,
        ) as uow:
            project = await self._storage.get_project_by_id(command.project_id)
            if project is None:
                raise NotFoundError(f"Project with ID {command.project_id} not found.")

            if not project.is_coordinated_by(command.user_id):
                uow.log.warning("authorization_denied", reason="not_project_coordinator")
                raise UnauthorizedError(
                    f"User {command.user_id} is not the coordinator of project {project.id}."
                )

            if not project.can_create_transactions():
                raise InvalidOperationError(
                    f"Cannot create transactions for projects with status '{project.status.value}'."
                )

            accounting_account = await self._storage.get_accounting_account_by_id(
                command.accounting_account_id
            )
            if accounting_account is None:
                raise NotFoundError(
                    f"Accounting account with ID {command.accounting_account_id} not found."
                )

            if project.bank_account is None:
                raise InvalidOperationError("Project does not have a bank account configured.")

            transaction = self._build_transaction(command, project.bank_account)
            self._validator.require_valid_transaction(transaction)

            await self._storage.add_transaction(transaction)
            await self._audit_logger.record_transaction(transaction)
            await uow.commit()

        uow.log.info(
            "transaction_created",
            transaction_id=str(transaction.id),
            classification=transaction.classification.name,
        )
        return transaction

    def _build_transaction(
        self,
        command: CreateTransactionCommand,
        bank_account: BankAccount,
    ) -> Transaction:
        """Sign and hash the fields once; they are frozen from here on."""
        signature = self._signer.generate_transaction_signature(
            command.amount,
            command.transaction_date,
            command.classification,
            bank_account.id,
            command.accounting_account_id,
            command.user_id,
        )
        data_hash = self._hashing.compute_transaction_hash(
            command.amount,
            command.transaction_date,
            command.classification,
            bank_account.id,
            command.accounting_account_id,
            command.user_id,
        )
        return Transaction(
            id=uuid4(),
            amount=command.amount,
            transaction_date=command.transaction_date,
            classification=command.classification,
            bank_account_id=bank_account.id,
            accounting_account_id=command.accounting_account_id,
            created_by=command.user_id,
            created_at=self._clock.now(),
            digital_signature=signature,
            data_hash=data_hash,
        )


class ProjectFlow(LedgerFlow):
    """Orchestrates project creation, updates and status changes."""

    async def create_project(self, command: CreateProjectCommand) -> Project:
        """
        Create a project with its bank account, in status NotStarted.

        Raises:
            NotFoundError: Coordinator does not exist
            ValidationError: Project or bank account data is invalid
            ConflictError: The bank account triple is already registered
        """
        async with self._unit_of_work(
            "create_project",
            coordinator_id=command.coordinator_id,
            user_id=command.user_id,
        ) as uow:
            coordinator = await self._storage.get_person_by_id(command.coordinator_id)
            if coordinator is None:
                raise NotFoundError(f"Coordinator with ID {command.coordinator_id} not found.")

            project = self._build_project(command)

            if await self._storage.bank_account_exists(
                project.bank_account.account_number,
                project.bank_account.bank_name,
                project.bank_account.branch_number,
            ):
                raise ConflictError(
                    "A bank account with the same account number, bank name "
                    "and branch number already exists."
                )

            await self._storage.add_project(project)
            await self._audit_logger.record_create(
                user_id=command.user_id,
                entity_type=AuditEntityType.PROJECT,
                entity_id=project.id,
                new_state=project,
            )
            await uow.commit()

        uow.log.info("project_created", project_id=str(project.id))
        return project

    async def update_project(self, command: UpdateProjectCommand) -> Project:
        """
        Replace a project's name, description, dates and budget.

        The whole project is re-validated after the change, and the audit
        entry carries both the previous and the new state.

        Raises:
            NotFoundError: Project does not exist
            UnauthorizedError: Requester is not the coordinator
            ValidationError: The updated project breaks a project rule
        """
        async with self._unit_of_work(
            "update_project",
            project_id=command.project_id,
            user_id=command.user_id,
        ) as uow:
            previous = await self._storage.get_project_by_id(command.project_id)
            if previous is None:
                raise NotFoundError(f"Project with ID {command.project_id} not found.")

            if not previous.is_coordinated_by(command.user_id):
                uow.log.warning("authorization_denied", reason="not_project_coordinator")
                raise UnauthorizedError(
                    f"User {command.user_id} is not the coordinator of project {previous.id}."
                )

            changes = command.model_dump(
                include={"name", "description", "start_date", "end_date", "budget_amount"}
            )
            try:
                project = Project.model_validate(
                    {**previous.model_dump(), **changes, "updated_at": self._clock.now()}
                )
            except pydantic.ValidationError as e:
                raise ValidationError("Project failed validation", issues_from_pydantic(e)) from e

            await self._storage.update_project(project)
            await self._audit_logger.record_update(
                user_id=command.user_id,
                entity_type=AuditEntityType.PROJECT,
                entity_id=project.id,
                old_state=previous,
                new_state=project,
            )
            await uow.commit()

        uow.log.info("project_updated", budget_amount=str(project.budget_amount))
        return project

    async def update_project_status(self, command: UpdateProjectStatusCommand) -> Project:
        """
        Move a project to another status. Coordinator only.

        Raises:
            NotFoundError: Project does not exist
            UnauthorizedError: Requester is not the coordinator
        """
        async with self._unit_of_work(
            "update_project_status",
            project_id=command.project_id,
            user_id=command.user_id,
        ) as uow:
            project = await self._storage.get_project_by_id(command.project_id)
            if project is None:
                raise NotFoundError(f"Project with ID {command.project_id} not found.")

            if not project.is_coordinated_by(command.user_id):
                uow.log.warning("authorization_denied", reason="not_project_coordinator")
                raise UnauthorizedError(
                    f"User {command.user_id} is not the coordinator of project {project.id}."
                )

            old_status = project.status
            project.update_status(command.new_status, self._clock.now())

            await self._storage.update_project(project)
            await self._audit_logger.record_status_change(
                user_id=command.user_id,
                entity_type=AuditEntityType.PROJECT,
                entity_id=project.id,
                old_status=old_status,
                new_status=command.new_status,
            )
            await uow.commit()

        uow.log.info(
            "project_status_changed",
            old_status=old_status.value,
            new_status=command.new_status.value,
        )
        return project

    def _build_project(self, command: CreateProjectCommand) -> Project:
        now = self._clock.now()
        project_id = uuid4()
        try:
            bank_account = BankAccount(
                id=uuid4(),
                account_number=command.account_number,
                bank_name=command.bank_name,
                branch_number=command.branch_number,
                account_holder_name=command.account_holder_name,
                project_id=project_id,
                created_at=now,
            )
            return Project(
                id=project_id,
                name=command.name,
                description=command.description,
                start_date=command.start_date,
                end_date=command.end_date,
                status=ProjectStatus.NOT_STARTED,
                budget_amount=command.budget_amount,
                coordinator_id=command.coordinator_id,
                bank_account=bank_account,
                created_at=now,
                updated_at=now,
            )
        except pydantic.ValidationError as e:
            raise ValidationError("Project failed validation", issues_from_pydantic(e)) from e


class AccountingAccountFlow(LedgerFlow):
    """Orchestrates accounting account registration."""

    async def create_accounting_account(
        self,
        command: CreateAccountingAccountCommand,
    ) -> AccountingAccount:
        """
        Register an accounting account.

        Raises:
            ValidationError: Identifier does not match NNNN.NN.NNNN
            ConflictError: Identifier already registered
        """
        async with self._unit_of_work(
            "create_accounting_account",
            user_id=command.user_id,
        ) as uow:
            try:
                account = AccountingAccount(
                    id=uuid4(),
                    name=command.name,
                    identifier=command.identifier,
                    created_at=self._clock.now(),
                )
            except pydantic.ValidationError as e:
                raise ValidationError(
                    "Accounting account failed validation",
                    issues_from_pydantic(e),
                ) from e

            existing = await self._storage.get_accounting_account_by_identifier(account.identifier)
            if existing is not None:
                raise ConflictError(
                    f"Accounting account with identifier '{account.identifier}' already exists."
                )

            await self._storage.add_accounting_account(account)
            await self._audit_logger.record_create(
                user_id=command.user_id,
                entity_type=AuditEntityType.ACCOUNTING_ACCOUNT,
                entity_id=account.id,
                new_state=account,
            )
            await uow.commit()

        uow.log.info("accounting_account_created", accounting_account_id=str(account.id))
        return account


class LedgerComponents:
    """Everything a transport layer needs, wired to one storage."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        transaction_flow: TransactionFlow,
        project_flow: ProjectFlow,
        accounting_account_flow: AccountingAccountFlow,
        query_executor: LedgerQueryExecutor,
    ):
        self.storage = storage
        self.transaction_flow = transaction_flow
        self.project_flow = project_flow
        self.accounting_account_flow = accounting_account_flow
        self.query_executor = query_executor


def create_app_components(
    storage: Optional[LedgerStorageInterface] = None,
    secret_key: Optional[str] = None,
    clock: Optional[Clock] = None,
    use_sheets: bool = False,
) -> LedgerComponents:
    """
    Factory function to create all application components.

    Args:
        storage: Storage to use. When None, Google Sheets if use_sheets,
                 otherwise in-memory storage.
        secret_key: Signing secret. Loaded once from SIGNING_SECRET_KEY
                    when None.
        clock: Time source shared by every component
        use_sheets: Build Google Sheets storage from settings

    Returns:
        LedgerComponents wired together
    """
    app_settings = get_settings().app
    configure_logging(app_settings.log_level)

    clock = clock or SystemClock()
    if storage is None:
        storage = (
            GoogleSheetsLedgerStorage(GoogleSheetsClient())
            if use_sheets
            else InMemoryLedgerStorage()
        )

    hashing = HashingService()
    signer = SignatureService(secret_key if secret_key is not None else get_signing_key())
    validator = LedgerValidator(
        clock=clock,
        future_date_tolerance_seconds=app_settings.future_date_tolerance_seconds,
    )
    audit_logger = AuditLogger(storage, hashing, signer, clock=clock, validator=validator)

    return LedgerComponents(
        storage=storage,
        transaction_flow=TransactionFlow(
            storage,
            hashing,
            signer,
            audit_logger,
            validator=validator,
            clock=clock,
        ),
        project_flow=ProjectFlow(storage, audit_logger, clock=clock),
        accounting_account_flow=AccountingAccountFlow(storage, audit_logger, clock=clock),
        query_executor=LedgerQueryExecutor(
            storage,
            BalanceCalculator(),
            IntegrityVerifier(hashing, signer, clock=clock),
            clock=clock,
            max_page_size=app_settings.max_audit_trail_page_size,
        ),
    )
