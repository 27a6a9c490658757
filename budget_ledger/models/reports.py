"""
Read-side Models

Derived, read-only views: balances, integrity reports and the
accountability report. None of these are ever persisted by the core.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import AwareDatetime, BaseModel, Field

from budget_ledger.models.audit import AuditEntry
from budget_ledger.models.ledger import Transaction


class IntegrityReport(BaseModel):
    """
    Result of re-verifying stored hashes.

    is_valid is True only when no record of either kind was tampered with.
    """

    verified_at: AwareDatetime
    transactions_checked: int = Field(ge=0)
    tampered_transaction_ids: list[UUID] = Field(default_factory=list)
    audit_entries_checked: int = Field(ge=0)
    tampered_audit_entry_ids: list[UUID] = Field(default_factory=list)
    is_valid: bool

    @property
    def tampered_count(self) -> int:
        return len(self.tampered_transaction_ids) + len(self.tampered_audit_entry_ids)


class AccountBalance(BaseModel):
    """Current balance of a project's bank account against its budget."""

    project_id: UUID
    current_balance: Decimal
    budget_amount: Decimal
    is_over_budget: bool
    warning: Optional[str] = None


class TransactionHistory(BaseModel):
    """Chronological transactions with the balance after each one."""

    project_id: UUID
    bank_account_id: UUID
    transactions: list[Transaction] = Field(default_factory=list)
    running_balances: dict[UUID, Decimal] = Field(default_factory=dict)

    @property
    def closing_balance(self) -> Decimal:
        if not self.transactions:
            return Decimal("0")
        return self.running_balances[self.transactions[-1].id]


class AccountabilityReport(BaseModel):
    """
    Accountability summary of a project.

    Bundles the budget position, the full transaction history, the audit
    trail and a fresh integrity verification of both.
    """

    id: UUID = Field(default_factory=uuid4)
    report_identifier: str
    generated_at: AwareDatetime

    project_id: UUID
    project_name: str
    project_description: Optional[str] = None
    project_coordinator: str
    budget_amount: Decimal
    current_balance: Decimal
    warning: Optional[str] = None

    bank_account_number: str
    bank_name: str
    branch_number: str
    account_holder_name: str

    transactions: list[Transaction] = Field(default_factory=list)
    audit_entries: list[AuditEntry] = Field(default_factory=list)
    integrity_report: IntegrityReport
