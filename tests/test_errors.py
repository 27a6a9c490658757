"""
Tests for the error taxonomy and the transport error envelope.
"""

import logging

import pytest

from budget_ledger.errors import (
    ConflictError,
    ErrorKind,
    IntegrityError,
    InternalError,
    InvalidOperationError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    http_status_for,
    to_error_response,
)
from budget_ledger.models import ValidationIssue


class TestStatusMapping:
    """Tests for http_status_for."""

    @pytest.mark.parametrize(
        "kind,status",
        [
            (ErrorKind.VALIDATION, 400),
            (ErrorKind.NOT_FOUND, 404),
            (ErrorKind.UNAUTHORIZED, 403),
            (ErrorKind.INVALID_OPERATION, 400),
            (ErrorKind.CONFLICT, 409),
            (ErrorKind.INTEGRITY, 500),
            (ErrorKind.INTERNAL, 500),
        ],
    )
    def test_every_kind_has_a_status(self, kind, status):
        assert http_status_for(kind) == status

    @pytest.mark.parametrize(
        "error_class,kind",
        [
            (ValidationError, ErrorKind.VALIDATION),
            (NotFoundError, ErrorKind.NOT_FOUND),
            (UnauthorizedError, ErrorKind.UNAUTHORIZED),
            (InvalidOperationError, ErrorKind.INVALID_OPERATION),
            (ConflictError, ErrorKind.CONFLICT),
            (IntegrityError, ErrorKind.INTEGRITY),
            (InternalError, ErrorKind.INTERNAL),
        ],
    )
    def test_each_error_carries_its_kind(self, error_class, kind):
        assert error_class("detail").kind is kind

    def test_status_ignores_message_text(self):
        """Test that a message mentioning 'not found' does not change the status."""
        status, _ = to_error_response(InvalidOperationError("Bank account not found on project"))
        assert status == 400


class TestErrorEnvelope:
    """Tests for to_error_response."""

    def test_validation_envelope_lists_issues(self):
        error = ValidationError(
            "Transaction failed validation",
            [ValidationIssue(field="amount", issue_type="invalid_precision", message="Too many places")],
        )
        status, body = to_error_response(error, trace_id="trace-1")

        assert status == 400
        assert body["error"]["code"] == "VALIDATION"
        assert body["error"]["trace_id"] == "trace-1"
        assert body["error"]["details"] == [{"field": "amount", "issue": "Too many places"}]

    def test_not_found_keeps_its_message(self):
        _, body = to_error_response(NotFoundError("Project with ID 42 not found."))
        assert body["error"]["message"] == "Project with ID 42 not found."
        assert "details" not in body["error"]

    @pytest.mark.parametrize(
        "error",
        [
            UnauthorizedError("User 7 is not the coordinator of project 9."),
            IntegrityError("Hash mismatch on transaction 3"),
            InternalError("Failed to persist changes: disk full"),
        ],
    )
    def test_sensitive_details_stay_server_side(self, error):
        _, body = to_error_response(error)
        assert body["error"]["message"] == error.public_message
        assert error.message not in body["error"]["message"]

    def test_integrity_failures_are_logged_as_critical(self, caplog):
        with caplog.at_level(logging.CRITICAL):
            to_error_response(IntegrityError("Hash mismatch on transaction 3"), trace_id="t-9")
        assert "security_alert_integrity_violation" in caplog.text
        assert "Hash mismatch on transaction 3" in caplog.text

    def test_timestamp_comes_from_the_clock(self, clock):
        _, body = to_error_response(NotFoundError("Project with ID 42 not found."), clock=clock)
        assert body["error"]["timestamp"] == "2024-06-01T12:00:00+00:00"

    def test_two_envelopes_from_a_fixed_clock_are_identical(self, clock):
        error = ConflictError("Accounting account with identifier '3001.01.0001' already exists.")
        assert to_error_response(error, trace_id="t-1", clock=clock) == to_error_response(
            error, trace_id="t-1", clock=clock
        )
