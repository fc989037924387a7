"""
Google Cloud Storage Implementation

DESIGN DECISION: Google Cloud Storage is used as the remote backend because:
1. The whole database is one small JSON object
2. Object generations give us a real compare-and-swap for free
3. No database server to run
4. Built-in durability and backups

TRADEOFFS:
- No transactions or row-level locking (the document store compensates
  with generation preconditions)
- Every save rewrites the whole document
- Queries run in Python over the loaded document

Loads and saves are never retried here: a failed round-trip surfaces as
BackendUnavailableError and the caller decides whether to try again.
Only client construction (credential loading) is retried.
"""

import asyncio
from typing import Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import storage
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_store.config import BlobStorageSettings, get_settings
from finance_store.services.storage.interface import (
    BackendUnavailableError,
    BlobNotFoundError,
    BlobStoreInterface,
    ConflictError,
    StoredBlob,
)


STORAGE_SCOPES = [
    "https://www.googleapis.com/auth/devstorage.read_write",
]


class GCSClient:
    """
    Low-level Google Cloud Storage client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self, settings: Optional[BlobStorageSettings] = None):
        self._client: Optional[storage.Client] = None
        self._bucket: Optional[storage.Bucket] = None
        self._settings = settings or get_settings().blob_storage

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> storage.Client:
        """
        Establish the storage client.

        Uses the configured service account file, or application default
        credentials when none is configured.
        """
        if self._client is None:
            try:
                if self._settings.credentials_path:
                    credentials = Credentials.from_service_account_file(
                        self._settings.credentials_path,
                        scopes=STORAGE_SCOPES,
                    )
                    self._client = storage.Client(
                        project=self._settings.project_id or credentials.project_id,
                        credentials=credentials,
                    )
                else:
                    self._client = storage.Client(project=self._settings.project_id)
            except FileNotFoundError:
                raise BackendUnavailableError(
                    f"Storage credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise BackendUnavailableError(f"Failed to connect to Google Cloud Storage: {e}")

        return self._client

    def get_bucket(self) -> storage.Bucket:
        """Get the configured bucket (no network call)."""
        if self._bucket is None:
            if not self._settings.bucket_name:
                raise BackendUnavailableError("BLOB_STORAGE_BUCKET_NAME is not configured")
            self._bucket = self.connect().bucket(self._settings.bucket_name)
        return self._bucket


class GCSBlobStore(BlobStoreInterface):
    """
    Blob store on a Google Cloud Storage bucket.

    The SDK is synchronous, so every call runs in a worker thread.
    """

    def __init__(
        self,
        client: Optional[GCSClient] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self._client = client or GCSClient()
        self._timeout = timeout_seconds or get_settings().blob_storage.timeout_seconds

    def _download_sync(self, file_name: str) -> StoredBlob:
        bucket = self._client.get_bucket()
        blob = bucket.get_blob(file_name, timeout=self._timeout, retry=None)
        if blob is None:
            raise BlobNotFoundError(f"Blob not found: {file_name}")
        try:
            # The blob handle is pinned to the generation get_blob returned
            content = blob.download_as_bytes(timeout=self._timeout, retry=None)
        except google_exceptions.NotFound:
            raise BackendUnavailableError(
                f"{file_name} was replaced while it was being read"
            )
        return StoredBlob(content=content, generation=int(blob.generation))

    def _upload_sync(
        self,
        content: str,
        file_name: str,
        content_type: str,
        if_generation_match: Optional[int],
    ) -> int:
        blob = self._client.get_bucket().blob(file_name)
        blob.upload_from_string(
            content.encode("utf-8"),
            content_type=content_type,
            if_generation_match=if_generation_match,
            timeout=self._timeout,
            retry=None,
        )
        return int(blob.generation)

    async def download(self, file_name: str) -> StoredBlob:
        """Read the blob and its generation."""
        try:
            return await asyncio.to_thread(self._download_sync, file_name)
        except (BlobNotFoundError, BackendUnavailableError):
            raise
        except google_exceptions.NotFound as e:
            raise BackendUnavailableError(f"Bucket not found: {e}")
        except Exception as e:
            raise BackendUnavailableError(f"Failed to read {file_name}: {e}")

    async def upload_file(
        self,
        content: str,
        file_name: str,
        content_type: str = "application/json",
        if_generation_match: Optional[int] = None,
    ) -> int:
        """Write the blob, optionally conditioned on its generation."""
        try:
            return await asyncio.to_thread(
                self._upload_sync,
                content,
                file_name,
                content_type,
                if_generation_match,
            )
        except google_exceptions.PreconditionFailed:
            raise ConflictError(
                f"{file_name} changed since generation {if_generation_match}",
                expected_version=if_generation_match,
            )
        except BackendUnavailableError:
            raise
        except Exception as e:
            raise BackendUnavailableError(f"Failed to write {file_name}: {e}")
