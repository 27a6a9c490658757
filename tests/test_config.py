"""
Tests for configuration loading.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from budget_ledger.config import (
    AppSettings,
    SigningSettings,
    get_settings,
    get_signing_key,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    for name in (
        "SIGNING_SECRET_KEY",
        "GOOGLE_SHEETS_CREDENTIALS_PATH",
        "GOOGLE_SHEETS_SPREADSHEET_ID",
        "FUTURE_DATE_TOLERANCE_SECONDS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    get_signing_key.cache_clear()
    yield
    get_settings.cache_clear()
    get_signing_key.cache_clear()


class TestSigningSettings:
    """Tests for the signing secret."""

    def test_secret_is_read_from_environment(self, monkeypatch):
        monkeypatch.setenv("SIGNING_SECRET_KEY", "from-env")
        assert get_signing_key() == "from-env"

    def test_secret_is_loaded_once(self, monkeypatch):
        monkeypatch.setenv("SIGNING_SECRET_KEY", "first")
        assert get_signing_key() == "first"
        monkeypatch.setenv("SIGNING_SECRET_KEY", "second")
        assert get_signing_key() == "first"

    def test_blank_secret_is_rejected(self, monkeypatch):
        monkeypatch.setenv("SIGNING_SECRET_KEY", "   ")
        with pytest.raises(PydanticValidationError):
            SigningSettings()

    def test_secret_is_not_exposed_in_repr(self, monkeypatch):
        monkeypatch.setenv("SIGNING_SECRET_KEY", "hunter2")
        assert "hunter2" not in repr(SigningSettings())


class TestAppSettings:
    """Tests for application settings."""

    def test_defaults(self):
        settings = AppSettings()
        assert settings.future_date_tolerance_seconds == 0
        assert settings.max_audit_trail_page_size == 1000
        assert settings.log_level == "INFO"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("FUTURE_DATE_TOLERANCE_SECONDS", "30")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        settings = AppSettings()
        assert settings.future_date_tolerance_seconds == 30
        assert settings.log_level == "DEBUG"

    def test_unknown_log_level_is_rejected(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "CHATTY")
        with pytest.raises(PydanticValidationError):
            AppSettings()


class TestValidateAllSettings:
    """Tests for the startup check."""

    def test_reports_each_section(self, monkeypatch):
        monkeypatch.setenv("SIGNING_SECRET_KEY", "configured")
        results = validate_all_settings()

        assert results["signing"] is True
        assert results["app"] is True
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
