"""Services package."""

from finance_store.services.currency import CurrencyConverter
from finance_store.services.storage import (
    BackendUnavailableError,
    BlobStoreInterface,
    ConcurrencyMode,
    ConflictError,
    CorruptDocumentError,
    DocumentStore,
    GCSBlobStore,
    InMemoryBlobStore,
    NotFoundError,
    RecordValidationError,
    StorageError,
    TripNotFoundError,
)

__all__ = [
    # Currency
    "CurrencyConverter",
    # Storage services
    "BackendUnavailableError",
    "BlobStoreInterface",
    "ConcurrencyMode",
    "ConflictError",
    "CorruptDocumentError",
    "DocumentStore",
    "GCSBlobStore",
    "InMemoryBlobStore",
    "NotFoundError",
    "RecordValidationError",
    "StorageError",
    "TripNotFoundError",
]
