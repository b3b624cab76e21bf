"""Configuration package."""

from billtracker.config.settings import (
    DEFAULT_CATEGORIES,
    AppSettings,
    GoogleSheetsSettings,
    ImportSettings,
    LLMSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "DEFAULT_CATEGORIES",
    "AppSettings",
    "GoogleSheetsSettings",
    "ImportSettings",
    "LLMSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
