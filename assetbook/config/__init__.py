"""Configuration package."""

from assetbook.config.settings import (
    DEFAULT_CHUNK_SIZE,
    AppSettings,
    FirestoreSettings,
    GoogleSheetsSettings,
    Settings,
    StoreSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "AppSettings",
    "FirestoreSettings",
    "GoogleSheetsSettings",
    "Settings",
    "StoreSettings",
    "get_settings",
    "validate_all_settings",
]
