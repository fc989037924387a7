"""
Configuration Management for Finance Store

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CURRENCY_RATES: dict[str, float] = {
    "NIS": 1.0,
    "ILS": 1.0,
    "USD": 3.32,
    "EUR": 3.6,
    "GBP": 4.2,
    "IDR": 0.00020,
}


class BlobStorageSettings(BaseSettings):
    """Remote blob storage holding the single JSON document."""

    model_config = SettingsConfigDict(
        env_prefix="BLOB_STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="gcs",
        pattern="^(gcs|memory)$",
        description="Blob backend: Google Cloud Storage or in-process memory"
    )
    bucket_name: Optional[str] = Field(
        default=None,
        description="Bucket holding the document (gcs backend)"
    )
    credentials_path: Optional[str] = Field(
        default=None,
        description="Path to a service account JSON file. Falls back to application default credentials"
    )
    project_id: Optional[str] = Field(
        default=None,
        description="Google Cloud project ID"
    )
    document_name: str = Field(
        default="db.json",
        min_length=1,
        description="Object name of the document"
    )
    content_type: str = Field(
        default="application/json",
        description="Content type written with the document"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Per-request backend timeout"
    )
    create_if_missing: bool = Field(
        default=False,
        description="Treat an absent document as empty instead of failing"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: Optional[str]) -> Optional[str]:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if v and not Path(v).exists():
            import warnings
            warnings.warn(
                f"Storage credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class DocumentStoreSettings(BaseSettings):
    """Read-modify-write behaviour of the document store."""

    model_config = SettingsConfigDict(
        env_prefix="DOCUMENT_STORE_",
        extra="ignore"
    )

    concurrency_mode: str = Field(
        default="optimistic",
        pattern="^(optimistic|legacy)$",
        description="optimistic: reject stale saves. legacy: last writer wins"
    )
    touch_last_update_on_save: bool = Field(
        default=False,
        description="Stamp lastUpdate on every repository mutation"
    )


class CurrencySettings(BaseSettings):
    """Static conversion rates. Each rate is base-currency units per 1 unit."""

    model_config = SettingsConfigDict(
        env_prefix="CURRENCY_",
        extra="ignore"
    )

    base_currency: str = Field(
        default="NIS",
        min_length=1,
        description="Currency all converted totals are expressed in"
    )
    rates: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_CURRENCY_RATES),
        description="Conversion rates keyed by ISO-like currency code"
    )

    @field_validator('rates')
    @classmethod
    def validate_rates(cls, v: dict[str, float]) -> dict[str, float]:
        """Rates must be positive; keys are stored upper-case."""
        normalized = {}
        for code, rate in v.items():
            if rate <= 0:
                raise ValueError(f"Conversion rate for {code} must be positive")
            normalized[code.strip().upper()] = rate
        return normalized


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

    # Logging
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum log level"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON lines (otherwise console format)"
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

    @property
    def blob_storage(self) -> BlobStorageSettings:
        return BlobStorageSettings()

    @property
    def document_store(self) -> DocumentStoreSettings:
        return DocumentStoreSettings()

    @property
    def currency(self) -> CurrencySettings:
        return CurrencySettings()

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

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("blob_storage", "document_store", "currency", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    # A gcs backend is useless without a bucket
    if results.get("blob_storage"):
        storage = settings.blob_storage
        if storage.backend == "gcs" and not storage.bucket_name:
            results["blob_storage"] = False
            results["blob_storage_error"] = "BLOB_STORAGE_BUCKET_NAME is required for the gcs backend"

    return results
