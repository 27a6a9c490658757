"""
Digital Signatures

HMAC-SHA256 signatures binding a record to the user who created it.

The key is the process-wide signing secret. The user id is prefixed to the
signed data, so the same record signed for two different users yields two
different signatures, and a signature cannot be re-attributed to someone
else without the secret.

DESIGN DECISION: This service does not depend on the hashing service.
A hash says "the record has not changed"; a signature says "this user
produced it". Each can be checked on its own.
"""

import hashlib
import hmac
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from budget_ledger.crypto.canonical import (
    audit_signature_data,
    format_uuid,
    transaction_signature_data,
)
from budget_ledger.models.audit import AuditEntry
from budget_ledger.models.ledger import Transaction


class SignatureService:
    """Generates and validates HMAC-SHA256 signatures."""

    def __init__(self, secret_key: str):
        """
        Args:
            secret_key: Process-wide signing secret. Loaded once at startup.

        Raises:
            ValueError: If the key is empty or whitespace
        """
        if not secret_key or not secret_key.strip():
            raise ValueError("Signing secret key is not configured.")
        self._key = secret_key.encode("utf-8")

    def generate(self, data: str, user_id: UUID) -> str:
        """Sign "{user_id}|{data}" and return the uppercase hex digest."""
        if not data:
            raise ValueError("Data cannot be null or empty.")

        message = f"{format_uuid(user_id)}|{data}".encode("utf-8")
        return hmac.new(self._key, message, hashlib.sha256).hexdigest().upper()

    def validate(self, data: str, user_id: UUID, signature: str) -> bool:
        """
        Regenerate the signature and compare in constant time.

        Raises:
            ValueError: If data or signature is empty
        """
        if not data:
            raise ValueError("Data cannot be null or empty.")
        if not signature:
            raise ValueError("Signature cannot be null or empty.")

        expected = self.generate(data, user_id)
        return hmac.compare_digest(
            expected.encode("ascii"),
            signature.upper().encode("ascii", errors="replace"),
        )

    def generate_transaction_signature(
        self,
        amount: Decimal,
        transaction_date: datetime,
        classification: int,
        bank_account_id: UUID,
        accounting_account_id: UUID,
        user_id: UUID,
    ) -> str:
        data = transaction_signature_data(
            amount,
            transaction_date,
            classification,
            bank_account_id,
            accounting_account_id,
        )
        return self.generate(data, user_id)

    def generate_audit_signature(
        self,
        action_type: str,
        entity_type: str,
        entity_id: UUID,
        timestamp: datetime,
        user_id: UUID,
    ) -> str:
        data = audit_signature_data(action_type, entity_type, entity_id, timestamp)
        return self.generate(data, user_id)

    def validate_transaction_signature(self, transaction: Transaction) -> bool:
        """Check a stored transaction's signature against its creator."""
        data = transaction_signature_data(
            transaction.amount,
            transaction.transaction_date,
            transaction.classification,
            transaction.bank_account_id,
            transaction.accounting_account_id,
        )
        return self.validate(data, transaction.created_by, transaction.digital_signature)

    def validate_audit_signature(self, entry: AuditEntry) -> bool:
        """Check a stored audit entry's signature against its actor."""
        data = audit_signature_data(
            entry.action_type,
            entry.entity_type,
            entry.entity_id,
            entry.timestamp,
        )
        return self.validate(data, entry.user_id, entry.digital_signature)
