"""
Query Execution Engine

DESIGN DECISION: Every figure the read side returns is DERIVED from the
stored records at query time. Balances are recomputed from transactions,
integrity is re-verified from hashes. Nothing is cached, so a query can
never report a balance or an integrity status that the records themselves
no longer support.

Queries never write. They run outside any unit of work.
"""

import functools
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import structlog

from budget_ledger.clock import Clock, SystemClock
from budget_ledger.errors import IntegrityError, InternalError, InvalidOperationError, NotFoundError
from budget_ledger.models.audit import AuditEntry
from budget_ledger.models.commands import AuditTrailQuery
from budget_ledger.models.ledger import (
    AccountingAccount,
    Project,
    ProjectStatus,
    Transaction,
    TransactionClassification,
)
from budget_ledger.models.reports import (
    AccountabilityReport,
    AccountBalance,
    IntegrityReport,
    TransactionHistory,
)
from budget_ledger.services.balance import TWO_PLACES, BalanceCalculator
from budget_ledger.services.integrity import IntegrityVerifier
from budget_ledger.services.storage import LedgerStorageInterface, StorageError


logger = structlog.get_logger(__name__)


def generate_report_identifier(project_id: UUID, generated_at: datetime) -> str:
    """REPORT-{first 8 hex digits of the project id}-{UTC yyyyMMddHHmmss}"""
    prefix = project_id.hex[:8].upper()
    stamp = generated_at.astimezone(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"REPORT-{prefix}-{stamp}"


def translate_storage_errors(method):
    """Surface storage failures as InternalError, cause chained."""

    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except StorageError as e:
            logger.error("ledger_query_failed", query=method.__name__, error=str(e))
            raise InternalError(f"Failed to read ledger data: {e}") from e

    return wrapper


class LedgerQueryExecutor:
    """
    Read side of the ledger.

    GUARANTEES:
    - Only returns real data from storage
    - Balances are always recomputed, never stored
    - Every integrity figure comes from a fresh verification
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        balance_calculator: Optional[BalanceCalculator] = None,
        integrity_verifier: Optional[IntegrityVerifier] = None,
        clock: Optional[Clock] = None,
        max_page_size: int = 1000,
    ):
        self._storage = storage
        self._balance = balance_calculator or BalanceCalculator()
        self._clock = clock or SystemClock()
        self._verifier = integrity_verifier
        self._max_page_size = max_page_size

    @property
    def verifier(self) -> IntegrityVerifier:
        if self._verifier is None:
            raise RuntimeError("LedgerQueryExecutor was built without an IntegrityVerifier")
        return self._verifier

    # =========================================================================
    # PROJECTS AND ACCOUNTS
    # =========================================================================

    @translate_storage_errors
    async def get_project(self, project_id: UUID) -> Project:
        """
        A project with its bank account.

        Raises:
            NotFoundError: Project does not exist
        """
        return await self._require_project(project_id)

    @translate_storage_errors
    async def list_projects(
        self,
        status: Optional[ProjectStatus] = None,
        coordinator_id: Optional[UUID] = None,
    ) -> list[Project]:
        """Projects matching every given filter, oldest first."""
        return await self._storage.list_projects(status=status, coordinator_id=coordinator_id)

    @translate_storage_errors
    async def list_accounting_accounts(self) -> list[AccountingAccount]:
        return await self._storage.list_accounting_accounts()

    # =========================================================================
    # BALANCES AND HISTORY
    # =========================================================================

    @translate_storage_errors
    async def get_account_balance(self, project_id: UUID) -> AccountBalance:
        """
        Current balance of the project's bank account against its budget.

        Raises:
            NotFoundError: Project or bank account does not exist
        """
        project = await self._require_project(project_id)
        if project.bank_account is None:
            raise NotFoundError(f"Project {project_id} does not have a bank account.")

        transactions = await self._storage.get_transactions_by_bank_account(project.bank_account.id)
        balance = self._balance.calculate_balance(transactions)

        return AccountBalance(
            project_id=project.id,
            current_balance=balance.quantize(TWO_PLACES),
            budget_amount=project.budget_amount.quantize(TWO_PLACES),
            is_over_budget=self._balance.is_over_budget(balance, project.budget_amount),
            warning=self._balance.generate_warning(balance, project.budget_amount),
        )

    @translate_storage_errors
    async def get_transaction_history(
        self,
        project_id: UUID,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        classification: Optional[TransactionClassification] = None,
        accounting_account_id: Optional[UUID] = None,
    ) -> TransactionHistory:
        """
        Chronological transactions of a project, optionally filtered.

        Running balances are computed over the FULL history, then the
        filters are applied, so each balance is the real account balance
        right after that transaction.
        """
        project = await self._require_project(project_id)
        if project.bank_account is None:
            raise NotFoundError(f"Project {project_id} does not have a bank account.")

        transactions = await self._storage.get_transactions_by_bank_account(project.bank_account.id)
        running = self._balance.calculate_running_balances(transactions)

        selected = [
            tx for tx in transactions
            if (date_from is None or tx.transaction_date >= date_from)
            and (date_to is None or tx.transaction_date <= date_to)
            and (classification is None or tx.classification == classification)
            and (accounting_account_id is None or tx.accounting_account_id == accounting_account_id)
        ]
        selected_ids = {tx.id for tx in selected}

        return TransactionHistory(
            project_id=project.id,
            bank_account_id=project.bank_account.id,
            transactions=sorted(selected, key=lambda tx: (tx.transaction_date, tx.created_at)),
            running_balances={
                tx_id: balance for tx_id, balance in running.items() if tx_id in selected_ids
            },
        )

    # =========================================================================
    # AUDIT TRAIL AND INTEGRITY
    # =========================================================================

    @translate_storage_errors
    async def get_audit_trail(self, query: AuditTrailQuery) -> list[AuditEntry]:
        """Audit entries matching the query, oldest first, one page."""
        return await self._storage.get_audit_trail(
            entity_ids=[query.entity_id] if query.entity_id is not None else None,
            entity_type=query.entity_type,
            user_id=query.user_id,
            date_from=query.date_from,
            date_to=query.date_to,
            skip=query.skip,
            take=min(query.take, self._max_page_size),
        )

    @translate_storage_errors
    async def verify_project_integrity(
        self,
        project_id: UUID,
        strict: bool = False,
    ) -> IntegrityReport:
        """
        Re-verify every transaction of the project and every audit entry
        about the project or one of its transactions.

        Args:
            project_id: Project to verify
            strict: Also check every transaction signature, and raise
                    instead of returning a report that is not valid

        Raises:
            NotFoundError: Project does not exist
            IntegrityError: In strict mode, if any record is compromised
        """
        project = await self._require_project(project_id)
        transactions, audit_entries = await self._load_project_records(project)

        if strict:
            for transaction in transactions:
                self.verifier.require_valid_transaction(transaction)

        report = self.verifier.generate_integrity_report(transactions, audit_entries)
        if strict and not report.is_valid:
            raise IntegrityError(
                f"Project {project_id} has {report.tampered_count} compromised records: "
                f"transactions {[str(i) for i in report.tampered_transaction_ids]}, "
                f"audit entries {[str(i) for i in report.tampered_audit_entry_ids]}"
            )
        return report

    @translate_storage_errors
    async def generate_accountability_report(self, project_id: UUID) -> AccountabilityReport:
        """
        Build the accountability report of a project.

        Raises:
            NotFoundError: Project does not exist
            InvalidOperationError: Project has no bank account
        """
        project = await self._require_project(project_id)
        if project.bank_account is None:
            raise InvalidOperationError(
                f"Project {project_id} does not have an associated bank account."
            )

        transactions, audit_entries = await self._load_project_records(project)
        integrity_report = self.verifier.generate_integrity_report(transactions, audit_entries)

        balance = self._balance.calculate_balance(transactions)
        coordinator = await self._storage.get_person_by_id(project.coordinator_id)
        generated_at = self._clock.now()

        report = AccountabilityReport(
            report_identifier=generate_report_identifier(project.id, generated_at),
            generated_at=generated_at,
            project_id=project.id,
            project_name=project.name,
            project_description=project.description,
            project_coordinator=coordinator.name if coordinator else "Unknown",
            budget_amount=project.budget_amount,
            current_balance=balance,
            warning=self._balance.generate_warning(balance, project.budget_amount),
            bank_account_number=project.bank_account.account_number,
            bank_name=project.bank_account.bank_name,
            branch_number=project.bank_account.branch_number,
            account_holder_name=project.bank_account.account_holder_name,
            transactions=sorted(transactions, key=lambda tx: (tx.transaction_date, tx.created_at)),
            audit_entries=sorted(audit_entries, key=lambda entry: entry.timestamp),
            integrity_report=integrity_report,
        )

        logger.info(
            "accountability_report_generated",
            report_identifier=report.report_identifier,
            transaction_count=len(report.transactions),
            audit_entry_count=len(report.audit_entries),
            integrity_valid=integrity_report.is_valid,
        )
        return report

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _require_project(self, project_id: UUID) -> Project:
        project = await self._storage.get_project_by_id(project_id)
        if project is None:
            raise NotFoundError(f"Project with ID {project_id} not found.")
        return project

    async def _load_project_records(
        self,
        project: Project,
    ) -> tuple[list[Transaction], list[AuditEntry]]:
        """The project's transactions and the audit entries about them."""
        transactions: list[Transaction] = []
        if project.bank_account is not None:
            transactions = await self._storage.get_transactions_by_bank_account(
                project.bank_account.id
            )

        entity_ids = [project.id] + [tx.id for tx in transactions]
        audit_entries = await self._storage.get_audit_trail(entity_ids=entity_ids)
        return transactions, audit_entries
