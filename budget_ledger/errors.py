"""
Ledger Error Taxonomy

DESIGN DECISION: The set of failure kinds is closed. Every exception the
flows raise carries exactly one ErrorKind, and the transport status is
derived from the kind alone by a single exhaustive match. Messages never
decide the status.

Authorization and integrity failures expose a generic public message.
The detailed message stays in the exception (and in the server-side log).
"""

from enum import Enum
from typing import Any, Optional

import structlog

from budget_ledger.clock import Clock, SystemClock
from budget_ledger.models.ledger import ValidationIssue


logger = structlog.get_logger(__name__)


class ErrorKind(str, Enum):
    """Closed set of failure kinds raised by the ledger core."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_OPERATION = "invalid_operation"
    CONFLICT = "conflict"
    INTEGRITY = "integrity"
    INTERNAL = "internal"


class LedgerError(Exception):
    """Base class for every failure the ledger core raises."""

    kind: ErrorKind = ErrorKind.INTERNAL
    public_message: Optional[str] = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def user_message(self) -> str:
        """Message that is safe to show to the caller."""
        return self.public_message or self.message


class ValidationError(LedgerError):
    """Malformed input or a violated structural invariant."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.issues = issues or []


class NotFoundError(LedgerError):
    """A referenced entity does not exist."""

    kind = ErrorKind.NOT_FOUND


class UnauthorizedError(LedgerError):
    """The acting user lacks the required relationship to the resource."""

    kind = ErrorKind.UNAUTHORIZED
    public_message = "You are not authorized to perform this action."


class InvalidOperationError(LedgerError):
    """The operation is not allowed in the current state of the resource."""

    kind = ErrorKind.INVALID_OPERATION


class ConflictError(LedgerError):
    """A uniqueness constraint was violated at the storage boundary."""

    kind = ErrorKind.CONFLICT


class IntegrityError(LedgerError):
    """A stored hash or signature no longer matches its record."""

    kind = ErrorKind.INTEGRITY
    public_message = "Data integrity verification failed. This incident has been logged."


class InternalError(LedgerError):
    """Infrastructure or persistence failure. Callers may retry."""

    kind = ErrorKind.INTERNAL
    public_message = "An unexpected error occurred. Please try again later."


def http_status_for(kind: ErrorKind) -> int:
    """Map an error kind to its HTTP status."""
    match kind:
        case ErrorKind.VALIDATION:
            return 400
        case ErrorKind.NOT_FOUND:
            return 404
        case ErrorKind.UNAUTHORIZED:
            return 403
        case ErrorKind.INVALID_OPERATION:
            return 400
        case ErrorKind.CONFLICT:
            return 409
        case ErrorKind.INTEGRITY:
            return 500
        case ErrorKind.INTERNAL:
            return 500
    raise AssertionError(f"Unhandled error kind: {kind!r}")


def error_code_for(kind: ErrorKind) -> str:
    """Stable machine-readable code for the error envelope."""
    return kind.value.upper()


def to_error_response(
    error: LedgerError,
    trace_id: Optional[str] = None,
    clock: Optional[Clock] = None,
) -> tuple[int, dict[str, Any]]:
    """
    Build (status, envelope) for a transport layer wrapping the core.

    Logs the full detail server-side. Integrity violations are logged
    as critical security events. The envelope is stamped with the given
    clock, or the system clock.
    """
    clock = clock or SystemClock()
    status = http_status_for(error.kind)
    log_fields = {
        "error_kind": error.kind.value,
        "error_message": error.message,
        "trace_id": trace_id,
    }

    if error.kind is ErrorKind.INTEGRITY:
        logger.critical("security_alert_integrity_violation", **log_fields)
    elif status >= 500:
        logger.error("ledger_request_failed", **log_fields)
    else:
        logger.warning("ledger_request_rejected", **log_fields)

    body: dict[str, Any] = {
        "code": error_code_for(error.kind),
        "message": error.user_message,
        "timestamp": clock.now().isoformat(),
        "trace_id": trace_id,
    }
    if isinstance(error, ValidationError) and error.issues:
        body["details"] = [
            {"field": issue.field, "issue": issue.message}
            for issue in error.issues
        ]

    return status, {"error": body}
