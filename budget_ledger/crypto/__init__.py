"""
Crypto Package

Hashing for tamper detection, HMAC signatures for non-repudiation.
"""

from budget_ledger.crypto.canonical import format_amount, format_timestamp
from budget_ledger.crypto.hashing import HashingService, hashes_match
from budget_ledger.crypto.signature import SignatureService

__all__ = [
    "HashingService",
    "SignatureService",
    "format_amount",
    "format_timestamp",
    "hashes_match",
]
