"""
Configuration Management for the Asset Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.

The chunk size is configuration, never persisted state: a ledger
written with one chunk size reads back correctly with any other.
"""

import warnings
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# 250k characters stay below Firestore's 1 MiB document ceiling
# even when every character needs 4 bytes of UTF-8.
DEFAULT_CHUNK_SIZE = 250_000


def _warn_if_missing(path: Optional[str], what: str) -> Optional[str]:
    if path and not Path(path).exists():
        warnings.warn(
            f"{what} credentials file not found at {path}. "
            "Make sure it exists before running the application."
        )
    return path


class StoreSettings(BaseSettings):
    """Chunk store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORE_",
        extra="ignore"
    )

    backend: Literal["firestore", "google_sheets", "memory"] = Field(
        default="firestore",
        description="Document backend holding the ledger chunks"
    )
    chunk_size: int = Field(
        default=DEFAULT_CHUNK_SIZE,
        ge=1,
        le=1_000_000,
        description="Characters per chunk"
    )
    collection_root: str = Field(
        default="users",
        description="Top-level collection holding one document per owner"
    )
    chunk_collection: str = Field(
        default="chunks",
        description="Sub-collection name holding the chunks of one owner"
    )

    def collection_path(self, owner_id: str) -> str:
        """Collection path scoped to one ledger owner."""
        return f"{self.collection_root}/{owner_id}/{self.chunk_collection}"


class FirestoreSettings(BaseSettings):
    """Firestore backend configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FIREBASE_",
        extra="ignore"
    )

    project_id: Optional[str] = Field(
        default=None,
        description="Firebase project id (falls back to the ADC project)"
    )
    credentials_path: Optional[str] = Field(
        default=None,
        description="Service account JSON; Application Default Credentials when unset"
    )

    @field_validator("credentials_path")
    @classmethod
    def validate_credentials_path(cls, v: Optional[str]) -> Optional[str]:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        return _warn_if_missing(v, "Firebase")


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets backend configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
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

    @field_validator("credentials_path")
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        return _warn_if_missing(v, "Google")


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

    default_withdrawal_rate: float = Field(
        default=4.0,
        gt=0,
        le=100,
        description="Withdrawal rate (percent) for ledgers without FIRE settings"
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

    # Sub-settings are loaded lazily to allow partial configuration
    # (a memory-backed setup needs no cloud credentials at all).

    @property
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def firestore(self) -> FirestoreSettings:
        return FirestoreSettings()

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


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus `<name>_error`
    entries for the failing ones. Only the configured backend is checked.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    sections = ["store", "app"]
    try:
        backend = settings.store.backend
    except Exception:
        backend = None
    if backend in ("firestore", "google_sheets"):
        sections.append(backend)

    for name in sections:
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
