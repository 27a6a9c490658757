"""
Structural Validation of Ledger Records

DESIGN DECISION: Records are validated twice, by two independent layers:

REQUEST LEVEL (pydantic):
- Type checking and required fields on the command models
- Runs before any flow logic

RECORD LEVEL (this module):
- Runs on the fully built record, after its hash and signature are computed
- Amount positive with at most 2 decimal places
- Transaction date not in the future
- Hash and signature present
- No "|" in audit codes, since the canonical strings are pipe-delimited

WHY TWICE:
1. The request layer may be bypassed (another caller, a future endpoint)
2. A financial record that reaches storage must satisfy its invariants
   no matter how it was built

IMPORTANT: Validation NEVER silently fixes issues. An amount with three
decimal places is rejected, not rounded.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Optional

import pydantic

from budget_ledger.clock import Clock, SystemClock
from budget_ledger.config import get_settings
from budget_ledger.crypto.canonical import SEPARATOR
from budget_ledger.errors import ValidationError
from budget_ledger.models.audit import AuditEntry
from budget_ledger.models.ledger import Transaction, ValidationIssue


MAX_DECIMAL_PLACES = 2


def decimal_places(value: Decimal) -> int:
    """Significant decimal places, ignoring trailing zeros."""
    exponent = value.normalize().as_tuple().exponent
    return -exponent if exponent < 0 else 0


def issues_from_pydantic(error: pydantic.ValidationError) -> list[ValidationIssue]:
    """Translate pydantic's error list into field-level issues."""
    issues = []
    for detail in error.errors():
        field = ".".join(str(part) for part in detail.get("loc", ())) or "__root__"
        issues.append(ValidationIssue(
            field=field,
            issue_type=detail.get("type", "invalid_value"),
            message=detail.get("msg", "Invalid value"),
        ))
    return issues


class LedgerValidator:
    """
    Record-level validation for transactions and audit entries.

    Every check returns a list of issues; an empty list means valid.
    The require_* variants raise ValidationError carrying the issues.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        future_date_tolerance_seconds: Optional[int] = None,
    ):
        """
        Initialize validator.

        Args:
            clock: Source of "now" for the future date check
            future_date_tolerance_seconds: Clock skew allowed for
                transaction dates. Read from AppSettings when None.
        """
        self._clock = clock or SystemClock()
        if future_date_tolerance_seconds is None:
            future_date_tolerance_seconds = get_settings().app.future_date_tolerance_seconds
        self._tolerance = timedelta(seconds=future_date_tolerance_seconds)

    def validate_amount(self, amount: Decimal, field: str = "amount") -> list[ValidationIssue]:
        if not amount.is_finite():
            return [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message="Amount must be a finite number",
            )]

        issues = []
        if amount <= 0:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message="Amount must be greater than zero",
            ))
        if decimal_places(amount) > MAX_DECIMAL_PLACES:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_precision",
                message=f"Amount cannot have more than {MAX_DECIMAL_PLACES} decimal places",
            ))
        return issues

    def validate_transaction(self, transaction: Transaction) -> list[ValidationIssue]:
        issues = self.validate_amount(transaction.amount)

        latest_allowed = self._clock.now() + self._tolerance
        if transaction.transaction_date > latest_allowed:
            issues.append(ValidationIssue(
                field="transaction_date",
                issue_type="future_date",
                message="Transaction date cannot be in the future",
            ))

        if not transaction.digital_signature.strip():
            issues.append(ValidationIssue(
                field="digital_signature",
                issue_type="missing",
                message="Digital signature is required",
            ))

        if not transaction.data_hash.strip():
            issues.append(ValidationIssue(
                field="data_hash",
                issue_type="missing",
                message="Data hash is required",
            ))

        return issues

    def validate_audit_entry(self, entry: AuditEntry) -> list[ValidationIssue]:
        issues = []

        for field, value in (("action_type", entry.action_type), ("entity_type", entry.entity_type)):
            if not value.strip():
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing",
                    message=f"{field} is required",
                ))
            elif SEPARATOR in value:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_character",
                    message=f"{field} cannot contain '{SEPARATOR}'",
                ))

        if not entry.digital_signature.strip():
            issues.append(ValidationIssue(
                field="digital_signature",
                issue_type="missing",
                message="Digital signature is required",
            ))

        if not entry.data_hash.strip():
            issues.append(ValidationIssue(
                field="data_hash",
                issue_type="missing",
                message="Data hash is required",
            ))

        return issues

    def require_valid_transaction(self, transaction: Transaction) -> None:
        issues = self.validate_transaction(transaction)
        if issues:
            raise ValidationError("Transaction failed validation", issues)

    def require_valid_audit_entry(self, entry: AuditEntry) -> None:
        issues = self.validate_audit_entry(entry)
        if issues:
            raise ValidationError("Audit entry failed validation", issues)
