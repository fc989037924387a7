"""Configuration package."""

from finance_store.config.settings import (
    DEFAULT_CURRENCY_RATES,
    AppSettings,
    BlobStorageSettings,
    CurrencySettings,
    DocumentStoreSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "DEFAULT_CURRENCY_RATES",
    "AppSettings",
    "BlobStorageSettings",
    "CurrencySettings",
    "DocumentStoreSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
