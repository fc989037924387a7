"""
Document Store

Parses the blob into a typed Document and writes Documents back.

Every save re-reads the current document immediately before writing and
replaces only the collections it was given. Nothing is locked between a
caller's load and its save, so two callers can interleave:

    A loads v1      B loads v1      A saves v2      B saves v3

In LEGACY mode B's save overwrites A's collection wholesale and A's
change is lost without a trace. In OPTIMISTIC mode B's save sees that
the document is no longer v1 and fails with ConflictError; the stored
document keeps A's change and B must reload and retry.
"""

import json
from enum import Enum
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from finance_store.audit import AuditLogger
from finance_store.models.items import (
    COLLECTION_ALIASES,
    Document,
    DocumentUpdate,
    utc_now_iso,
)
from finance_store.services.storage.interface import (
    BackendUnavailableError,
    BlobNotFoundError,
    BlobStoreInterface,
    ConflictError,
    CorruptDocumentError,
)


logger = structlog.get_logger(__name__)


class ConcurrencyMode(str, Enum):
    """How a save treats changes made since the caller's load."""
    OPTIMISTIC = "optimistic"  # reject the save with ConflictError
    LEGACY = "legacy"          # last writer wins


def repair(raw: dict[str, Any]) -> dict[str, list[str]]:
    """
    Backfill missing or blank record ids from their map keys, in place.

    Runs once per load on the raw JSON, before validation, so no read
    path ever sees a record without an id.

    Returns:
        Repaired map keys per collection (empty when nothing changed)
    """
    repaired: dict[str, list[str]] = {}

    for collection in COLLECTION_ALIASES:
        records = raw.get(collection)
        if records is None:
            continue
        if not isinstance(records, dict):
            raise CorruptDocumentError(f"{collection} must be an object keyed by id")

        for key, record in records.items():
            if not isinstance(record, dict):
                raise CorruptDocumentError(f"{collection}[{key}] must be an object")
            record_id = record.get("id")
            if record_id is None or (isinstance(record_id, str) and not record_id.strip()):
                record["id"] = key
                repaired.setdefault(collection, []).append(key)
            elif record_id != key:
                logger.warning(
                    "record_id_mismatch",
                    collection=collection,
                    key=key,
                    record_id=record_id,
                )

    return repaired


class DocumentStore:
    """
    Load and save the single JSON document.

    Owns the JSON (de)serialization contract and the concurrency policy.
    """

    def __init__(
        self,
        blob_store: BlobStoreInterface,
        document_name: str = "db.json",
        content_type: str = "application/json",
        concurrency_mode: ConcurrencyMode = ConcurrencyMode.OPTIMISTIC,
        create_if_missing: bool = False,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._blob_store = blob_store
        self._document_name = document_name
        self._content_type = content_type
        self._mode = ConcurrencyMode(concurrency_mode)
        self._create_if_missing = create_if_missing
        self._audit = audit_logger or AuditLogger()

    @property
    def concurrency_mode(self) -> ConcurrencyMode:
        return self._mode

    # -------------------------------------------------------------------------
    # (De)serialization
    # -------------------------------------------------------------------------

    @staticmethod
    def parse(content: bytes) -> tuple[Document, dict[str, list[str]]]:
        """
        Parse stored bytes into a Document.

        Returns:
            (document, repaired_keys)

        Raises:
            CorruptDocumentError: If the bytes are not the expected shape
        """
        try:
            raw = json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorruptDocumentError(f"Document is not valid JSON: {e}")

        if not isinstance(raw, dict):
            raise CorruptDocumentError("Document must be a JSON object")

        repaired = repair(raw)

        try:
            document = Document.model_validate(raw)
        except ValidationError as e:
            raise CorruptDocumentError(f"Document does not match the expected shape: {e}")

        return document, repaired

    @staticmethod
    def serialize(document: Document) -> str:
        return json.dumps(document.to_storage_dict(), indent=2, ensure_ascii=False)

    @staticmethod
    def merge(
        current: Document,
        update: DocumentUpdate,
        touch_last_update: bool = False,
    ) -> Document:
        """Replace the collections present in update; keep everything else."""
        changes: dict[str, Any] = {
            name: getattr(update, name) for name in update.touched_collections()
        }
        if touch_last_update:
            changes["last_update"] = utc_now_iso()
        return current.model_copy(update=changes)

    # -------------------------------------------------------------------------
    # Backend round-trips
    # -------------------------------------------------------------------------

    async def _read(self) -> tuple[Document, dict[str, list[str]]]:
        try:
            blob = await self._blob_store.download(self._document_name)
        except BlobNotFoundError:
            if self._create_if_missing:
                return Document().with_version(0), {}
            raise BackendUnavailableError(f"Document {self._document_name} does not exist")

        document, repaired = self.parse(blob.content)
        return document.with_version(blob.generation), repaired

    async def _write(self, document: Document, if_generation_match: Optional[int]) -> int:
        return await self._blob_store.upload_file(
            content=self.serialize(document),
            file_name=self._document_name,
            content_type=self._content_type,
            if_generation_match=if_generation_match,
        )

    async def load(self) -> Document:
        """
        Load the current document.

        Records repaired by the id backfill are persisted right away. If
        another writer got there first, the repaired copy is still
        returned and the repair is simply applied again on the next load.

        Raises:
            BackendUnavailableError: If the blob cannot be fetched
            CorruptDocumentError: If the blob is not a valid document
        """
        document, repaired = await self._read()

        if repaired:
            persisted = True
            precondition = document.version if self._mode is ConcurrencyMode.OPTIMISTIC else None
            try:
                document.with_version(await self._write(document, precondition))
            except ConflictError:
                persisted = False
            self._audit.log_document_repaired(repaired, persisted)

        return document

    async def get_last_update(self) -> Optional[str]:
        """The lastUpdate stamp of the current document, if one was ever written."""
        document = await self.load()
        return document.last_update

    async def save(
        self,
        update: DocumentUpdate,
        *,
        expected_version: Optional[int] = None,
        touch_last_update: bool = False,
    ) -> Document:
        """
        Merge update into the current document and write it.

        Args:
            update: Collections to replace
            expected_version: Version of the document the caller loaded.
                Checked in OPTIMISTIC mode, ignored in LEGACY mode.
            touch_last_update: Stamp lastUpdate with the current time

        Returns:
            The document as written, carrying its new version

        Raises:
            ConflictError: OPTIMISTIC mode only, if the document changed
            BackendUnavailableError: If the read or the write failed
            CorruptDocumentError: If the current document can't be parsed
        """
        if self._mode is ConcurrencyMode.LEGACY:
            return await self._merge_and_write(
                update,
                expected_version=None,
                guarded=False,
                touch_last_update=touch_last_update,
            )
        return await self._merge_and_write(
            update,
            expected_version=expected_version,
            guarded=True,
            touch_last_update=touch_last_update,
        )

    async def compare_and_save(
        self,
        expected_version: int,
        update: DocumentUpdate,
        *,
        touch_last_update: bool = False,
    ) -> Document:
        """Save only if the stored document is still at expected_version, in any mode."""
        return await self._merge_and_write(
            update,
            expected_version=expected_version,
            guarded=True,
            touch_last_update=touch_last_update,
        )

    async def _merge_and_write(
        self,
        update: DocumentUpdate,
        expected_version: Optional[int],
        guarded: bool,
        touch_last_update: bool,
    ) -> Document:
        current, _ = await self._read()

        if expected_version is not None and current.version != expected_version:
            self._audit.log_save_conflict(expected_version, current.version)
            raise ConflictError(
                "Document was modified by another operation; reload and retry",
                expected_version=expected_version,
                actual_version=current.version,
            )

        merged = self.merge(current, update, touch_last_update)

        try:
            version = await self._write(merged, current.version if guarded else None)
        except ConflictError as e:
            self._audit.log_save_conflict(current.version, e.actual_version)
            raise ConflictError(
                "Document was modified while saving; reload and retry",
                expected_version=current.version,
                actual_version=e.actual_version,
            )

        self._audit.log_document_saved(update.touched_collections(), version)
        return merged.with_version(version)
