"""
Tests for DocumentStore.

Test strategy:
1. Repairs happen once per load and are persisted immediately
2. A save replaces only the collections it names
3. Backend trouble surfaces as typed errors
4. OPTIMISTIC mode rejects stale saves; LEGACY mode loses updates
"""

import json

import pytest

from conftest import DOCUMENT_NAME, card, make_document, stored
from finance_store.models.items import CardItem, DocumentUpdate, Trip
from finance_store.services.storage import (
    BackendUnavailableError,
    ConcurrencyMode,
    ConflictError,
    CorruptDocumentError,
    DocumentStore,
    InMemoryBlobStore,
    repair,
)


class TestRepair:
    """Tests for the id backfill."""

    def test_backfills_blank_and_missing_ids(self):
        """Test that missing and blank ids are filled from their keys."""
        raw = {"cardItems": {"c1": {"id": ""}, "c2": {"Amount": 1}}, "trips": {"t1": {"id": "t1"}}}
        repaired = repair(raw)
        assert repaired == {"cardItems": ["c1", "c2"]}
        assert raw["cardItems"]["c1"]["id"] == "c1"
        assert raw["cardItems"]["c2"]["id"] == "c2"

    def test_leaves_mismatched_ids_alone(self):
        """Test that a non-blank id that differs from its key is kept."""
        raw = {"cardItems": {"c1": {"id": "other"}}}
        assert repair(raw) == {}
        assert raw["cardItems"]["c1"]["id"] == "other"

    def test_rejects_non_object_records(self):
        """Test that a record that is not an object is corrupt."""
        with pytest.raises(CorruptDocumentError):
            repair({"cardItems": {"c1": "not a record"}})

    async def test_repair_is_persisted_on_load(self):
        """Test that a repair is written once, on the load that found it."""
        blob_store = InMemoryBlobStore({DOCUMENT_NAME: make_document(card_items={"c1": {"Amount": -5}})})
        store = DocumentStore(blob_store, document_name=DOCUMENT_NAME)

        document = await store.load()

        assert document.card_items["c1"].id == "c1"
        assert stored(blob_store)["cardItems"]["c1"]["id"] == "c1"
        assert blob_store.write_count == 1

        # A second load finds nothing to repair
        await store.load()
        assert blob_store.write_count == 1


class TestLoad:
    """Tests for reading the document."""

    async def test_load_carries_version(self, store, blob_store):
        """Test that a loaded document carries its backend generation."""
        document = await store.load()
        assert document.version == (await blob_store.download(DOCUMENT_NAME)).generation

    async def test_get_last_update(self):
        """Test that the stored lastUpdate stamp is returned."""
        blob_store = InMemoryBlobStore({DOCUMENT_NAME: make_document(lastUpdate="2024-03-01T08:00:00.000Z")})
        store = DocumentStore(blob_store, document_name=DOCUMENT_NAME)
        assert await store.get_last_update() == "2024-03-01T08:00:00.000Z"

    async def test_null_fields_read_as_absent(self):
        """Test that a null in a non-optional field loads as the default and is not written back."""
        blob_store = InMemoryBlobStore({DOCUMENT_NAME: make_document(
            card_items={"c1": card("c1", "2024-03-01", -5, Category=None, PendingTransaction=None)},
            trips={"t1": {"id": "t1", "name": None}},
        )})
        store = DocumentStore(blob_store, document_name=DOCUMENT_NAME)

        document = await store.load()
        assert document.card_items["c1"].category == ""
        assert document.card_items["c1"].pending_transaction is False
        assert document.trips["t1"].name == ""

        await store.save(DocumentUpdate(trips=document.trips), expected_version=document.version)
        raw = stored(blob_store)
        assert "Category" not in raw["cardItems"]["c1"]
        assert raw["trips"]["t1"] == {"id": "t1"}

    async def test_invalid_json_is_corrupt(self):
        """Test that bytes that are not JSON are corrupt."""
        store = DocumentStore(InMemoryBlobStore({DOCUMENT_NAME: "{not json"}), document_name=DOCUMENT_NAME)
        with pytest.raises(CorruptDocumentError):
            await store.load()

    async def test_non_object_document_is_corrupt(self):
        """Test that a JSON array is not a document."""
        store = DocumentStore(InMemoryBlobStore({DOCUMENT_NAME: "[]"}), document_name=DOCUMENT_NAME)
        with pytest.raises(CorruptDocumentError):
            await store.load()

    async def test_missing_document_is_unavailable(self):
        """Test that a missing blob makes the backend unavailable."""
        store = DocumentStore(InMemoryBlobStore(), document_name=DOCUMENT_NAME)
        with pytest.raises(BackendUnavailableError):
            await store.load()

    async def test_missing_document_created_when_allowed(self):
        """Test that a missing blob starts empty when creation is allowed."""
        blob_store = InMemoryBlobStore()
        store = DocumentStore(blob_store, document_name=DOCUMENT_NAME, create_if_missing=True)

        document = await store.load()
        assert document.card_items == {}

        await store.save(DocumentUpdate(trips={"t1": Trip(id="t1", name="Rome")}), expected_version=0)
        assert stored(blob_store)["trips"]["t1"]["name"] == "Rome"


class TestSave:
    """Tests for merge semantics."""

    async def test_save_replaces_only_named_collections(self, store, blob_store):
        """Test that collections not in the update are kept."""
        document = await store.load()
        trips = {"t1": Trip(id="t1", name="Rome")}

        await store.save(DocumentUpdate(trips=trips), expected_version=document.version)

        raw = stored(blob_store)
        assert raw["trips"] == {"t1": {"id": "t1", "name": "Rome"}}
        assert set(raw["cardItems"]) == {"c1", "c2", "c3", "c4"}
        assert set(raw["bankItems"]) == {"b1", "b2", "b3"}

    async def test_unknown_keys_survive_save(self):
        """Test that unknown top-level keys are written back."""
        blob_store = InMemoryBlobStore({DOCUMENT_NAME: make_document(preferences={"theme": "dark"})})
        store = DocumentStore(blob_store, document_name=DOCUMENT_NAME)

        document = await store.load()
        await store.save(DocumentUpdate(card_items={}), expected_version=document.version)

        assert stored(blob_store)["preferences"] == {"theme": "dark"}

    async def test_touch_last_update(self, store, blob_store):
        """Test that saving can stamp lastUpdate."""
        document = await store.load()
        saved = await store.save(DocumentUpdate(), expected_version=document.version, touch_last_update=True)
        assert saved.last_update is not None
        assert stored(blob_store)["lastUpdate"] == saved.last_update

    async def test_saved_version_matches_backend(self, store, blob_store):
        """Test that a save returns the new backend generation."""
        document = await store.load()
        saved = await store.save(DocumentUpdate(), expected_version=document.version)
        assert saved.version == (await blob_store.download(DOCUMENT_NAME)).generation
        assert saved.version != document.version


class TestConcurrency:
    """Two writers that loaded the same version."""

    async def test_optimistic_rejects_stale_save(self, store, blob_store):
        """Test that the second writer gets a conflict and loses nothing."""
        first = await store.load()
        second = await store.load()

        first_items = dict(first.card_items)
        first_items["n1"] = CardItem(id="n1", amount=-1)
        await store.save(DocumentUpdate(card_items=first_items), expected_version=first.version)

        second_items = dict(second.card_items)
        second_items["n2"] = CardItem(id="n2", amount=-2)
        with pytest.raises(ConflictError) as exc_info:
            await store.save(DocumentUpdate(card_items=second_items), expected_version=second.version)

        assert exc_info.value.expected_version == second.version
        raw = stored(blob_store)
        assert "n1" in raw["cardItems"]
        assert "n2" not in raw["cardItems"]

    async def test_legacy_last_writer_wins(self, legacy_store, blob_store):
        """Test that in legacy mode the second writer overwrites the first."""
        first = await legacy_store.load()
        second = await legacy_store.load()

        first_items = dict(first.card_items)
        first_items["n1"] = CardItem(id="n1", amount=-1)
        await legacy_store.save(DocumentUpdate(card_items=first_items), expected_version=first.version)

        second_items = dict(second.card_items)
        second_items["n2"] = CardItem(id="n2", amount=-2)
        await legacy_store.save(DocumentUpdate(card_items=second_items), expected_version=second.version)

        raw = stored(blob_store)
        # The first writer's item is lost
        assert "n1" not in raw["cardItems"]
        assert "n2" in raw["cardItems"]

    async def test_compare_and_save_guards_in_legacy_mode(self, legacy_store):
        """Test that compare_and_save checks the version in any mode."""
        document = await legacy_store.load()
        await legacy_store.save(DocumentUpdate(trips={}))

        with pytest.raises(ConflictError):
            await legacy_store.compare_and_save(document.version, DocumentUpdate(trips={}))

    async def test_write_precondition_catches_interleaved_write(self, blob_store):
        """Test that a write between read and upload is caught by the precondition."""
        class InterleavingBlobStore(InMemoryBlobStore):
            """Lets another writer in between the save's read and its write."""

            def __init__(self, inner):
                super().__init__()
                self._blobs = inner._blobs
                self._next_generation = inner._next_generation
                self.interleave = False

            async def upload_file(self, content, file_name, content_type="application/json",
                                  if_generation_match=None):
                if self.interleave:
                    self.interleave = False
                    await super().upload_file(make_document(), file_name)
                return await super().upload_file(content, file_name, content_type, if_generation_match)

        racing = InterleavingBlobStore(blob_store)
        store = DocumentStore(racing, document_name=DOCUMENT_NAME)
        document = await store.load()

        racing.interleave = True
        with pytest.raises(ConflictError):
            await store.save(DocumentUpdate(trips={}), expected_version=document.version)

    async def test_mode_from_string(self, blob_store):
        """Test that the concurrency mode accepts its string value."""
        store = DocumentStore(blob_store, concurrency_mode="legacy")
        assert store.concurrency_mode is ConcurrencyMode.LEGACY


class TestUnavailableBackend:
    """Backend failures are typed."""

    async def test_upload_failure_propagates(self):
        """Test that upload failures reach the caller typed."""
        class FailingBlobStore(InMemoryBlobStore):
            async def upload_file(self, *args, **kwargs):
                raise BackendUnavailableError("timeout")

        failing = DocumentStore(
            FailingBlobStore({DOCUMENT_NAME: json.dumps({"cardItems": {"c1": card("c1", "2024-01-01", 1)}})}),
            document_name=DOCUMENT_NAME,
        )
        document = await failing.load()
        with pytest.raises(BackendUnavailableError):
            await failing.save(DocumentUpdate(card_items={}), expected_version=document.version)
