"""
In-Memory Blob Storage

Same semantics as the remote backend, including generation numbers and
conditional writes. Used by tests and for local development with
BLOB_STORAGE_BACKEND=memory.
"""

import asyncio
from typing import Optional

from finance_store.services.storage.interface import (
    BlobNotFoundError,
    BlobStoreInterface,
    ConflictError,
    StoredBlob,
)


class InMemoryBlobStore(BlobStoreInterface):
    """Blob store backed by a dict of name -> (bytes, generation)."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._blobs: dict[str, StoredBlob] = {}
        self._next_generation = 1
        self.write_count = 0
        for name, content in (initial or {}).items():
            self._put(name, content.encode("utf-8"))

    def _put(self, file_name: str, content: bytes) -> int:
        generation = self._next_generation
        self._next_generation += 1
        self._blobs[file_name] = StoredBlob(content=content, generation=generation)
        return generation

    async def download(self, file_name: str) -> StoredBlob:
        # Yield like a network round-trip would
        await asyncio.sleep(0)
        blob = self._blobs.get(file_name)
        if blob is None:
            raise BlobNotFoundError(f"Blob not found: {file_name}")
        return blob

    async def upload_file(
        self,
        content: str,
        file_name: str,
        content_type: str = "application/json",
        if_generation_match: Optional[int] = None,
    ) -> int:
        await asyncio.sleep(0)
        if if_generation_match is not None:
            current = self._blobs.get(file_name)
            current_generation = current.generation if current else 0
            if current_generation != if_generation_match:
                raise ConflictError(
                    f"Generation mismatch for {file_name}: "
                    f"expected {if_generation_match}, found {current_generation}",
                    expected_version=if_generation_match,
                    actual_version=current_generation,
                )
        self.write_count += 1
        return self._put(file_name, content.encode("utf-8"))

    def peek(self, file_name: str) -> Optional[str]:
        """Current content without counting a read."""
        blob = self._blobs.get(file_name)
        return blob.content.decode("utf-8") if blob else None
