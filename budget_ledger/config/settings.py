"""
Configuration Management for Project Budget Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The signing secret in particular is read once at startup and treated as
immutable for the lifetime of the process. Rotating it invalidates every
signature issued before the rotation.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SigningSettings(BaseSettings):
    """Secret key material for HMAC signatures."""

    model_config = SettingsConfigDict(
        env_prefix="SIGNING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    secret_key: SecretStr = Field(
        ...,
        description="Process-wide HMAC secret used to sign transactions and audit entries"
    )

    @field_validator('secret_key')
    @classmethod
    def validate_secret_key(cls, v: SecretStr) -> SecretStr:
        """An empty key would make every signature forgeable."""
        if not v.get_secret_value().strip():
            raise ValueError("Signing secret key cannot be empty")
        return v


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Worksheet names within the spreadsheet
    people_sheet_name: str = Field(default="People")
    projects_sheet_name: str = Field(default="Projects")
    accounting_accounts_sheet_name: str = Field(default="AccountingAccounts")
    transactions_sheet_name: str = Field(default="Transactions")
    audit_sheet_name: str = Field(default="AuditTrail")

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for structured logs"
    )

    # Domain rules
    future_date_tolerance_seconds: int = Field(
        default=0,
        ge=0,
        le=3600,
        description="Clock skew allowed when checking that a transaction date is not in the future"
    )
    max_audit_trail_page_size: int = Field(
        default=1000,
        ge=1,
        le=10000,
        description="Upper bound for a single audit trail page"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def signing(self) -> SigningSettings:
        return SigningSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


@lru_cache()
def get_signing_key() -> str:
    """
    Load the signing secret once per process.

    Raises pydantic's ValidationError if SIGNING_SECRET_KEY is missing or blank.
    """
    return get_settings().signing.secret_key.get_secret_value()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    sections = {
        "signing": lambda: settings.signing,
        "google_sheets": lambda: settings.google_sheets,
        "app": lambda: settings.app,
    }

    for name, load in sections.items():
        try:
            _ = load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
