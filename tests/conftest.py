"""
Shared fixtures.

Everything runs against in-memory storage and a fixed clock, so hashes,
signatures and timestamps are reproducible. No test touches the network.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio

from budget_ledger.audit import AuditLogger, configure_logging
from budget_ledger.clock import FixedClock
from budget_ledger.crypto import HashingService, SignatureService
from budget_ledger.models import (
    AccountingAccount,
    BankAccount,
    Person,
    Project,
    ProjectStatus,
    Transaction,
    TransactionClassification,
)
from budget_ledger.orchestrator import AccountingAccountFlow, ProjectFlow, TransactionFlow
from budget_ledger.queries import LedgerQueryExecutor
from budget_ledger.services import BalanceCalculator, IntegrityVerifier
from budget_ledger.services.storage import InMemoryLedgerStorage
from budget_ledger.validation import LedgerValidator


configure_logging("DEBUG")

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
SECRET_KEY = "test-signing-secret"


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def hashing():
    return HashingService()


@pytest.fixture
def signer():
    return SignatureService(SECRET_KEY)


@pytest.fixture
def validator(clock):
    return LedgerValidator(clock=clock, future_date_tolerance_seconds=0)


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_logger(storage, hashing, signer, clock, validator):
    return AuditLogger(storage, hashing, signer, clock=clock, validator=validator)


@pytest.fixture
def verifier(hashing, signer, clock):
    return IntegrityVerifier(hashing, signer, clock=clock)


@pytest.fixture
def transaction_flow(storage, hashing, signer, audit_logger, validator, clock):
    return TransactionFlow(storage, hashing, signer, audit_logger, validator=validator, clock=clock)


@pytest.fixture
def project_flow(storage, audit_logger, clock):
    return ProjectFlow(storage, audit_logger, clock=clock)


@pytest.fixture
def accounting_account_flow(storage, audit_logger, clock):
    return AccountingAccountFlow(storage, audit_logger, clock=clock)


@pytest.fixture
def query_executor(storage, verifier, clock):
    return LedgerQueryExecutor(storage, BalanceCalculator(), verifier, clock=clock)


@pytest_asyncio.fixture
async def coordinator(storage):
    person = Person(
        id=uuid4(),
        name="Maria Silva",
        identification_number="123.456.789-00",
        created_at=NOW - timedelta(days=30),
    )
    await storage.add_person(person)
    await storage.save_changes()
    return person


@pytest_asyncio.fixture
async def accounting_account(storage):
    account = AccountingAccount(
        id=uuid4(),
        name="Research Materials",
        identifier="3001.01.0001",
        created_at=NOW - timedelta(days=30),
    )
    await storage.add_accounting_account(account)
    await storage.save_changes()
    return account


@pytest_asyncio.fixture
async def project(storage, coordinator):
    """An in-progress project with a bank account and a 1000.00 budget."""
    project_id = uuid4()
    created_at = NOW - timedelta(days=10)
    project = Project(
        id=project_id,
        name="Community Library",
        description="Books and furniture for the community library",
        start_date=NOW - timedelta(days=10),
        end_date=NOW + timedelta(days=180),
        status=ProjectStatus.IN_PROGRESS,
        budget_amount=Decimal("1000.00"),
        coordinator_id=coordinator.id,
        bank_account=BankAccount(
            id=uuid4(),
            account_number="123456",
            bank_name="Banco Central",
            branch_number="0001",
            account_holder_name="Community Library Association",
            project_id=project_id,
            created_at=created_at,
        ),
        created_at=created_at,
        updated_at=created_at,
    )
    await storage.add_project(project)
    await storage.save_changes()
    return project


@pytest.fixture
def make_transaction(hashing, signer):
    """Build a correctly signed and hashed transaction without any flow."""

    def _make(
        amount="100.00",
        classification=TransactionClassification.CREDIT,
        transaction_date=None,
        created_at=None,
        bank_account_id=None,
        accounting_account_id=None,
        created_by=None,
    ) -> Transaction:
        amount = Decimal(amount)
        transaction_date = transaction_date or NOW - timedelta(days=1)
        bank_account_id = bank_account_id or uuid4()
        accounting_account_id = accounting_account_id or uuid4()
        created_by = created_by or uuid4()
        return Transaction(
            id=uuid4(),
            amount=amount,
            transaction_date=transaction_date,
            classification=classification,
            bank_account_id=bank_account_id,
            accounting_account_id=accounting_account_id,
            created_by=created_by,
            created_at=created_at or NOW,
            digital_signature=signer.generate_transaction_signature(
                amount,
                transaction_date,
                classification,
                bank_account_id,
                accounting_account_id,
                created_by,
            ),
            data_hash=hashing.compute_transaction_hash(
                amount,
                transaction_date,
                classification,
                bank_account_id,
                accounting_account_id,
                created_by,
            ),
        )

    return _make
