"""Configuration package."""

from ledger_engine.config.settings import (
    AppSettings,
    ExchangeRateApiSettings,
    GoogleSheetsSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ExchangeRateApiSettings",
    "GoogleSheetsSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
