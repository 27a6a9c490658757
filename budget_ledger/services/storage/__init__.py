"""
Storage Services Package

Provides the abstract ledger storage interface and concrete implementations.
Google Sheets is the persistent backend; the in-memory implementation backs
tests and local runs.
"""

from budget_ledger.services.storage.interface import (
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from budget_ledger.services.storage.memory import InMemoryLedgerStorage
from budget_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interface
    "LedgerStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "InMemoryLedgerStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
