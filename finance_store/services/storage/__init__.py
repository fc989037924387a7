"""
Storage Services Package

Provides the blob storage interface, its implementations, and the document
store built on top of them. Google Cloud Storage is the remote backend;
an in-memory backend serves tests and local development.
"""

from finance_store.services.storage.interface import (
    BackendUnavailableError,
    BlobNotFoundError,
    BlobStoreInterface,
    ConflictError,
    CorruptDocumentError,
    NotFoundError,
    RecordValidationError,
    StorageError,
    StoredBlob,
    TripNotFoundError,
)
from finance_store.services.storage.memory import InMemoryBlobStore
from finance_store.services.storage.gcs import GCSBlobStore, GCSClient
from finance_store.services.storage.document_store import (
    ConcurrencyMode,
    DocumentStore,
    repair,
)

__all__ = [
    # Interfaces
    "BlobStoreInterface",
    "StoredBlob",
    # Exceptions
    "BackendUnavailableError",
    "BlobNotFoundError",
    "ConflictError",
    "CorruptDocumentError",
    "NotFoundError",
    "RecordValidationError",
    "StorageError",
    "TripNotFoundError",
    # Implementations
    "GCSBlobStore",
    "GCSClient",
    "InMemoryBlobStore",
    # Document store
    "ConcurrencyMode",
    "DocumentStore",
    "repair",
]
