"""Configuration package."""

from budget_ledger.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    Settings,
    SigningSettings,
    get_settings,
    get_signing_key,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "Settings",
    "SigningSettings",
    "get_settings",
    "get_signing_key",
    "validate_all_settings",
]
