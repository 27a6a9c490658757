"""
Canonical Hashing

SHA-256 fingerprints of financial records, used to detect tampering after
the fact. Hashing is pure: same canonical string in, same hash out, no
side effects and no key material involved.

Hashes are rendered as uppercase hex; comparisons ignore case so hashes
written by other tools in lowercase still verify.
"""

import hashlib
import hmac
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from budget_ledger.crypto.canonical import audit_hash_input, transaction_hash_input


def hashes_match(left: str, right: str) -> bool:
    """Case-insensitive, constant-time comparison of two hex digests."""
    return hmac.compare_digest(
        left.upper().encode("ascii", errors="replace"),
        right.upper().encode("ascii", errors="replace"),
    )


class HashingService:
    """Computes and verifies SHA-256 hashes over canonical strings."""

    def compute_hash(self, data: str) -> str:
        """
        Hash the UTF-8 bytes of a canonical string.

        Raises:
            ValueError: If data is None or empty
        """
        if not data:
            raise ValueError("Data cannot be null or empty.")

        return hashlib.sha256(data.encode("utf-8")).hexdigest().upper()

    def verify_hash(self, data: str, expected_hash: str) -> bool:
        """
        Recompute the hash of data and compare it with expected_hash.

        Raises:
            ValueError: If data or expected_hash is empty
        """
        if not data:
            raise ValueError("Data cannot be null or empty.")
        if not expected_hash:
            raise ValueError("Expected hash cannot be null or empty.")

        return hashes_match(self.compute_hash(data), expected_hash)

    def compute_transaction_hash(
        self,
        amount: Decimal,
        transaction_date: datetime,
        classification: int,
        bank_account_id: UUID,
        accounting_account_id: UUID,
        created_by: UUID,
    ) -> str:
        return self.compute_hash(
            transaction_hash_input(
                amount,
                transaction_date,
                classification,
                bank_account_id,
                accounting_account_id,
                created_by,
            )
        )

    def compute_audit_entry_hash(
        self,
        user_id: UUID,
        action_type: str,
        entity_type: str,
        entity_id: UUID,
        timestamp: datetime,
        previous_value: Optional[str],
        new_value: Optional[str],
    ) -> str:
        return self.compute_hash(
            audit_hash_input(
                user_id,
                action_type,
                entity_type,
                entity_id,
                timestamp,
                previous_value,
                new_value,
            )
        )
