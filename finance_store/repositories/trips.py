"""
Trip Repository

Trips are user-defined groupings of card transactions. The relationship
is stored only on the card side (tripId), so every operation that
affects card items goes through ReferentialIntegrityManager and is
persisted in the SAME save as the trip change:
- delete writes the trip removal and the detached card items together
- assign/unassign write only the card items collection

DESIGN DECISION: A trip's membership, totals and summary are never
stored. They are rebuilt from the card items on every request.
"""

import secrets
import string
import time
from typing import Optional

from finance_store.audit import AuditLogger
from finance_store.models.items import DocumentUpdate, Trip, utc_now_iso
from finance_store.models.requests import (
    AssignCardItemsRequest,
    AssignmentResponse,
    CreateTripRequest,
    DeleteResponse,
    GetTripResponse,
    GetTripSummaryResponse,
    GetTripsRequest,
    GetTripsResponse,
    IdRequest,
    TripMutationResponse,
    TripSummary,
    UnassignCardItemsRequest,
    UpdateTripRequest,
)
from finance_store.queries.aggregation import summarize_trip_items
from finance_store.repositories.base import BaseRepository
from finance_store.repositories.integrity import ReferentialIntegrityManager
from finance_store.services.currency import CurrencyConverter
from finance_store.services.storage import (
    DocumentStore,
    RecordValidationError,
    TripNotFoundError,
)


_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def generate_trip_id() -> str:
    """trip_<8 random base36 chars><current epoch millis in base36>"""
    random_part = "".join(secrets.choice(_BASE36) for _ in range(8))
    return f"trip_{random_part}{_to_base36(int(time.time() * 1000))}"


def _matches(trip: Trip, needle: str) -> bool:
    haystack = f"{trip.name} {trip.location or ''}".lower()
    return needle in haystack


class TripRepository(BaseRepository):
    """Trip CRUD, card item assignment and trip summaries."""

    def __init__(
        self,
        store: DocumentStore,
        integrity: Optional[ReferentialIntegrityManager] = None,
        converter: Optional[CurrencyConverter] = None,
        audit_logger: Optional[AuditLogger] = None,
        touch_last_update: bool = False,
    ):
        super().__init__(store, audit_logger=audit_logger, touch_last_update=touch_last_update)
        self._integrity = integrity or ReferentialIntegrityManager()
        self._converter = converter or CurrencyConverter()

    @staticmethod
    def _require(trips: dict[str, Trip], trip_id: str) -> Trip:
        trip = trips.get(trip_id)
        if trip is None:
            raise TripNotFoundError(f"Trip {trip_id} not found")
        return trip

    # =========================================================================
    # CRUD
    # =========================================================================

    async def get_all(self, request: Optional[GetTripsRequest] = None) -> GetTripsResponse:
        """All trips, optionally narrowed by a case-insensitive search over name and location."""
        request = request or GetTripsRequest()
        try:
            document = await self._store.load()
            needle = ((request.filter.search if request.filter else None) or "").strip().lower()
            if not needle:
                return GetTripsResponse(trips=dict(document.trips))
            return GetTripsResponse(trips={
                key: trip for key, trip in document.trips.items() if _matches(trip, needle)
            })
        except Exception as e:
            return GetTripsResponse(error=self._failure("trips/getAll", e))

    async def get_by_id(self, request: IdRequest) -> GetTripResponse:
        try:
            document = await self._store.load()
            return GetTripResponse(trip=self._require(document.trips, request.id))
        except Exception as e:
            return GetTripResponse(error=self._failure("trips/getById", e))

    async def create(self, request: CreateTripRequest) -> TripMutationResponse:
        """
        Create a trip from a validated draft.

        The id and both timestamps are assigned here; createdAt and
        updatedAt start out equal.
        """
        try:
            document = await self._store.load()

            trip_id = generate_trip_id()
            while trip_id in document.trips:
                trip_id = generate_trip_id()

            now = utc_now_iso()
            trip = Trip(
                id=trip_id,
                created_at=now,
                updated_at=now,
                **request.trip.model_dump(exclude_none=True),
            )

            trips = dict(document.trips)
            trips[trip_id] = trip
            await self._persist(document, DocumentUpdate(trips=trips))

            self._audit.log_trip_created(trip_id, trip.name)
            return TripMutationResponse(success=True, trip=trip)
        except Exception as e:
            return TripMutationResponse(error=self._failure("trips/create", e))

    async def update(self, request: UpdateTripRequest) -> TripMutationResponse:
        """
        Merge the supplied fields onto the stored trip.

        createdAt is kept; updatedAt is refreshed. Supplying a field as
        null clears it.
        """
        try:
            patch = request.trip
            if not patch.id or not patch.id.strip():
                raise RecordValidationError("Invalid trip data: missing ID")

            document = await self._store.load()
            existing = self._require(document.trips, patch.id)

            changes = patch.changes()
            updated = existing.model_copy(update={**changes, "updated_at": utc_now_iso()})

            trips = dict(document.trips)
            trips[patch.id] = updated
            await self._persist(document, DocumentUpdate(trips=trips))

            self._audit.log_trip_updated(patch.id, sorted(changes))
            return TripMutationResponse(success=True, trip=updated)
        except Exception as e:
            return TripMutationResponse(error=self._failure("trips/update", e))

    async def delete(self, request: IdRequest) -> DeleteResponse:
        """Delete a trip and clear tripId on every card item that referenced it."""
        try:
            document = await self._store.load()
            self._require(document.trips, request.id)

            card_items, detached = self._integrity.detach_trip(document.card_items, request.id)
            trips = dict(document.trips)
            del trips[request.id]

            update = DocumentUpdate(trips=trips)
            if detached:
                update.card_items = card_items
            await self._persist(document, update)

            self._audit.log_trip_deleted(request.id, detached)
            return DeleteResponse(success=True)
        except Exception as e:
            return DeleteResponse(error=self._failure("trips/delete", e))

    # =========================================================================
    # ASSIGNMENT
    # =========================================================================

    async def assign_card_items(self, request: AssignCardItemsRequest) -> AssignmentResponse:
        """
        Point the listed card items at a trip.

        The whole operation fails if the trip does not exist. Ids that
        match no card item are skipped and not counted.
        """
        try:
            document = await self._store.load()
            self._require(document.trips, request.trip_id)

            card_items, updated = self._integrity.assign(
                document.card_items, request.trip_id, request.card_item_ids,
            )
            if updated:
                await self._persist(document, DocumentUpdate(card_items=card_items))

            self._audit.log_assignment(request.trip_id, len(request.card_item_ids), updated)
            return AssignmentResponse(success=True, updated_count=updated)
        except Exception as e:
            return AssignmentResponse(error=self._failure("trips/assignCardItems", e))

    async def unassign_card_items(self, request: UnassignCardItemsRequest) -> AssignmentResponse:
        """Clear tripId on the listed card items. Only items that had one are counted."""
        try:
            document = await self._store.load()

            card_items, updated = self._integrity.unassign(document.card_items, request.card_item_ids)
            if updated:
                await self._persist(document, DocumentUpdate(card_items=card_items))

            self._audit.log_assignment(None, len(request.card_item_ids), updated)
            return AssignmentResponse(success=True, updated_count=updated)
        except Exception as e:
            return AssignmentResponse(error=self._failure("trips/unassignCardItems", e))

    # =========================================================================
    # SUMMARY
    # =========================================================================

    async def get_summary(self, request: IdRequest) -> GetTripSummaryResponse:
        try:
            document = await self._store.load()
            trip = self._require(document.trips, request.id)

            items = self._integrity.items_for_trip(document.card_items, request.id)
            totals, categories = summarize_trip_items(items.values(), self._converter)

            return GetTripSummaryResponse(summary=TripSummary(
                trip=trip,
                totals=totals,
                categories=categories,
                items=items,
            ))
        except Exception as e:
            return GetTripSummaryResponse(error=self._failure("trips/getSummary", e))
