"""
Abstract Blob Storage Interface

DESIGN DECISION: The document lives in remote object storage, and all the
store needs from that storage is "read one named blob" and "write one
named blob". We define that as an abstract interface so we can:
1. Swap Google Cloud Storage for another object store later
2. Use in-memory storage for testing
3. Keep the document logic decoupled from any SDK

Every blob has a generation number that changes on each write. Passing
it back as if_generation_match turns a write into a compare-and-swap.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class StoredBlob:
    """Raw blob content together with the generation it was read at."""
    content: bytes
    generation: int


class BlobStoreInterface(ABC):
    """
    Abstract interface for blob storage operations.

    Any storage implementation (Google Cloud Storage, memory, ...)
    must implement these methods.
    """

    @abstractmethod
    async def download(self, file_name: str) -> StoredBlob:
        """
        Read a blob and its current generation.

        Raises:
            BlobNotFoundError: If the blob does not exist
            BackendUnavailableError: If the backend could not be reached
        """
        pass

    @abstractmethod
    async def upload_file(
        self,
        content: str,
        file_name: str,
        content_type: str = "application/json",
        if_generation_match: Optional[int] = None,
    ) -> int:
        """
        Write a blob, replacing it entirely.

        Args:
            content: Text to store (encoded as UTF-8)
            file_name: Blob name
            content_type: MIME type stored with the blob
            if_generation_match: Only write if the current generation
                equals this value. 0 means "only if the blob does not exist".
                None writes unconditionally.

        Returns:
            The generation of the newly written blob

        Raises:
            ConflictError: If if_generation_match did not match
            BackendUnavailableError: If the backend could not be reached
        """
        pass

    async def get_file_as_string(self, file_name: str) -> str:
        """Read a blob as UTF-8 text."""
        blob = await self.download(file_name)
        return blob.content.decode("utf-8")


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class BackendUnavailableError(StorageError):
    """The blob backend could not be read or written (including timeouts)."""
    pass


class BlobNotFoundError(StorageError):
    """The requested blob does not exist."""
    pass


class CorruptDocumentError(StorageError):
    """The stored bytes do not parse as the expected document."""
    pass


class ConflictError(StorageError):
    """The document changed between load and save."""

    def __init__(
        self,
        message: str,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
    ):
        super().__init__(message)
        self.expected_version = expected_version
        self.actual_version = actual_version


class NotFoundError(StorageError):
    """Record not found in its collection."""
    pass


class TripNotFoundError(NotFoundError):
    """An operation referenced a trip that does not exist."""
    pass


class RecordValidationError(StorageError):
    """A required field (such as id) is missing or blank."""
    pass
