"""
Services Package

Balance reconciliation, integrity verification and storage.
"""

from budget_ledger.services.balance import BalanceCalculator
from budget_ledger.services.integrity import IntegrityVerifier

__all__ = [
    "BalanceCalculator",
    "IntegrityVerifier",
]
