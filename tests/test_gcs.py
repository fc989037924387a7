"""
Tests for GCSBlobStore.

No real API calls: the bucket is a mock and only the error mapping and
generation handling are exercised.
"""

from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as google_exceptions

from finance_store.config import BlobStorageSettings
from finance_store.services.storage import (
    BackendUnavailableError,
    BlobNotFoundError,
    ConflictError,
    GCSBlobStore,
    GCSClient,
)


@pytest.fixture
def bucket():
    return MagicMock()


@pytest.fixture
def gcs(bucket):
    client = MagicMock(spec=GCSClient)
    client.get_bucket.return_value = bucket
    return GCSBlobStore(client=client, timeout_seconds=5)


class TestDownload:
    """Reading the document blob."""

    async def test_download_returns_generation(self, gcs, bucket):
        """Test that downloads carry the blob generation."""
        blob = MagicMock(generation=42)
        blob.download_as_bytes.return_value = b'{"cardItems": {}}'
        bucket.get_blob.return_value = blob

        stored = await gcs.download("db.json")

        assert stored.generation == 42
        assert stored.content == b'{"cardItems": {}}'
        bucket.get_blob.assert_called_once_with("db.json", timeout=5, retry=None)

    async def test_missing_blob(self, gcs, bucket):
        """Test that a missing blob raises BlobNotFoundError."""
        bucket.get_blob.return_value = None
        with pytest.raises(BlobNotFoundError):
            await gcs.download("db.json")

    async def test_network_error_is_unavailable(self, gcs, bucket):
        """Test that network errors become BackendUnavailableError."""
        bucket.get_blob.side_effect = google_exceptions.ServiceUnavailable("down")
        with pytest.raises(BackendUnavailableError):
            await gcs.download("db.json")

    async def test_get_file_as_string(self, gcs, bucket):
        """Test that blob content is decoded as UTF-8."""
        blob = MagicMock(generation=1)
        blob.download_as_bytes.return_value = "שלום".encode("utf-8")
        bucket.get_blob.return_value = blob
        assert await gcs.get_file_as_string("db.json") == "שלום"


class TestUpload:
    """Writing the document blob."""

    async def test_upload_passes_precondition(self, gcs, bucket):
        """Test that uploads send the generation precondition."""
        blob = MagicMock(generation=43)
        bucket.blob.return_value = blob

        generation = await gcs.upload_file("{}", "db.json", if_generation_match=42)

        assert generation == 43
        kwargs = blob.upload_from_string.call_args.kwargs
        assert kwargs["if_generation_match"] == 42
        assert kwargs["retry"] is None

    async def test_precondition_failure_is_conflict(self, gcs, bucket):
        """Test that a failed precondition becomes ConflictError."""
        blob = MagicMock()
        blob.upload_from_string.side_effect = google_exceptions.PreconditionFailed("stale")
        bucket.blob.return_value = blob

        with pytest.raises(ConflictError) as exc_info:
            await gcs.upload_file("{}", "db.json", if_generation_match=42)
        assert exc_info.value.expected_version == 42

    async def test_timeout_is_unavailable(self, gcs, bucket):
        """Test that timeouts become BackendUnavailableError."""
        blob = MagicMock()
        blob.upload_from_string.side_effect = TimeoutError("slow")
        bucket.blob.return_value = blob

        with pytest.raises(BackendUnavailableError):
            await gcs.upload_file("{}", "db.json")


class TestClient:
    """Client configuration."""

    def test_bucket_name_required(self):
        """Test that asking for the bucket without a bucket name fails."""
        client = GCSClient(BlobStorageSettings(backend="gcs", bucket_name=None))
        with pytest.raises(BackendUnavailableError, match="BUCKET_NAME"):
            client.get_bucket()
