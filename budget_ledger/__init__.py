"""
Project Budget Ledger - Source Package

Transaction integrity and audit core for a project budget
accountability platform.

DESIGN PRINCIPLES:
1. Financial records are written once and never changed
2. Every record carries a hash (tamper detection) and a signature (non-repudiation)
3. Every mutating action leaves an append-only audit entry
4. Fail early, fail visibly - integrity problems are never swallowed
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Project Budget Ledger Team"
