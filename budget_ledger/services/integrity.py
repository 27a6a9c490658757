"""
Integrity Verification

Recomputes the hash of stored records from their own fields and compares it
with the hash stored at creation time. A mismatch means the record was
changed after it was written.

DESIGN DECISION: Detection is never silent. Every mismatch is logged as a
critical security event, whether or not the caller goes on to raise.
"""

from typing import Iterable, Optional
from uuid import UUID

import structlog

from budget_ledger.clock import Clock, SystemClock
from budget_ledger.crypto.hashing import HashingService, hashes_match
from budget_ledger.crypto.signature import SignatureService
from budget_ledger.errors import IntegrityError
from budget_ledger.models.audit import AuditEntry
from budget_ledger.models.ledger import Transaction
from budget_ledger.models.reports import IntegrityReport


logger = structlog.get_logger(__name__)


class IntegrityVerifier:
    """
    Verifies stored hashes (and optionally signatures) of ledger records.

    Verification is O(n) with one hash per record. Nothing is cached:
    a cached result would hide tampering that happens after the first check.
    """

    def __init__(
        self,
        hashing: HashingService,
        signer: Optional[SignatureService] = None,
        clock: Optional[Clock] = None,
    ):
        self._hashing = hashing
        self._signer = signer
        self._clock = clock or SystemClock()

    # =========================================================================
    # HASH CHECKS
    # =========================================================================

    def verify_transaction(self, transaction: Transaction) -> bool:
        """Recompute the transaction hash and compare with the stored one."""
        if not transaction.data_hash:
            return self._report_mismatch("transaction", transaction.id, "hash")

        computed = self._hashing.compute_transaction_hash(
            transaction.amount,
            transaction.transaction_date,
            transaction.classification,
            transaction.bank_account_id,
            transaction.accounting_account_id,
            transaction.created_by,
        )
        if hashes_match(computed, transaction.data_hash):
            return True
        return self._report_mismatch("transaction", transaction.id, "hash")

    def verify_audit_entry(self, entry: AuditEntry) -> bool:
        """Recompute the audit entry hash and compare with the stored one."""
        if not entry.data_hash:
            return self._report_mismatch("audit_entry", entry.id, "hash")

        computed = self._hashing.compute_audit_entry_hash(
            entry.user_id,
            entry.action_type,
            entry.entity_type,
            entry.entity_id,
            entry.timestamp,
            entry.previous_value,
            entry.new_value,
        )
        if hashes_match(computed, entry.data_hash):
            return True
        return self._report_mismatch("audit_entry", entry.id, "hash")

    def find_tampered_transactions(self, transactions: Iterable[Transaction]) -> list[UUID]:
        """Ids of transactions whose hash no longer matches, in input order."""
        return [tx.id for tx in transactions if not self.verify_transaction(tx)]

    def find_tampered_audit_entries(self, entries: Iterable[AuditEntry]) -> list[UUID]:
        """Ids of audit entries whose hash no longer matches, in input order."""
        return [entry.id for entry in entries if not self.verify_audit_entry(entry)]

    def generate_integrity_report(
        self,
        transactions: Iterable[Transaction],
        audit_entries: Iterable[AuditEntry],
    ) -> IntegrityReport:
        """Verify every record and summarize the outcome."""
        transactions = list(transactions)
        audit_entries = list(audit_entries)

        tampered_transactions = self.find_tampered_transactions(transactions)
        tampered_entries = self.find_tampered_audit_entries(audit_entries)

        report = IntegrityReport(
            verified_at=self._clock.now(),
            transactions_checked=len(transactions),
            tampered_transaction_ids=tampered_transactions,
            audit_entries_checked=len(audit_entries),
            tampered_audit_entry_ids=tampered_entries,
            is_valid=not tampered_transactions and not tampered_entries,
        )

        logger.info(
            "integrity_report_generated",
            transactions_checked=report.transactions_checked,
            audit_entries_checked=report.audit_entries_checked,
            tampered_count=report.tampered_count,
            is_valid=report.is_valid,
        )
        return report

    # =========================================================================
    # SIGNATURE CHECKS
    # =========================================================================

    def verify_transaction_signature(self, transaction: Transaction) -> bool:
        signer = self._require_signer()
        if transaction.digital_signature and signer.validate_transaction_signature(transaction):
            return True
        return self._report_mismatch("transaction", transaction.id, "signature")

    def verify_audit_entry_signature(self, entry: AuditEntry) -> bool:
        signer = self._require_signer()
        if entry.digital_signature and signer.validate_audit_signature(entry):
            return True
        return self._report_mismatch("audit_entry", entry.id, "signature")

    def require_valid_transaction(self, transaction: Transaction) -> None:
        """
        Raise unless both the hash and the signature check out.

        Raises:
            IntegrityError: If either check fails
        """
        hash_ok = self.verify_transaction(transaction)
        signature_ok = self.verify_transaction_signature(transaction)
        if not (hash_ok and signature_ok):
            raise IntegrityError(
                f"Transaction {transaction.id} failed integrity verification "
                f"(hash_ok={hash_ok}, signature_ok={signature_ok})"
            )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _require_signer(self) -> SignatureService:
        if self._signer is None:
            raise RuntimeError("Signature checks need a SignatureService")
        return self._signer

    def _report_mismatch(self, record_type: str, record_id: UUID, check: str) -> bool:
        logger.critical(
            "integrity_violation_detected",
            record_type=record_type,
            record_id=str(record_id),
            check=check,
        )
        return False
