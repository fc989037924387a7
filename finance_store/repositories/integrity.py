"""
Referential Integrity

Card items reference trips through the optional tripId field. The trip
side stores nothing, so every trip-related change to card items goes
through this manager:
- deleting a trip clears tripId on every card item that named it
- assigning sets tripId on the named card items that exist
- unassigning clears tripId on the named card items that have one

DESIGN DECISION: The manager is pure. It takes a card item collection and
returns a NEW collection plus the number of items changed; callers persist
the result in the same save as the trip change that caused it. Items are
copied on write, so the input collection is never mutated.
"""

from collections.abc import Iterable, Mapping

from finance_store.models.items import CardItem


class ReferentialIntegrityManager:
    """Keeps card item tripId references consistent with the trips collection."""

    @staticmethod
    def items_for_trip(card_items: Mapping[str, CardItem], trip_id: str) -> dict[str, CardItem]:
        """Card items currently assigned to trip_id."""
        return {key: item for key, item in card_items.items() if item.trip_id == trip_id}

    def detach_trip(
        self,
        card_items: Mapping[str, CardItem],
        trip_id: str,
    ) -> tuple[dict[str, CardItem], int]:
        """Clear tripId on every card item assigned to trip_id."""
        updated = dict(card_items)
        detached = 0

        for key, item in card_items.items():
            if item.trip_id == trip_id:
                updated[key] = item.model_copy(update={"trip_id": None})
                detached += 1

        return updated, detached

    def assign(
        self,
        card_items: Mapping[str, CardItem],
        trip_id: str,
        item_ids: Iterable[str],
    ) -> tuple[dict[str, CardItem], int]:
        """
        Set tripId on the listed card items.

        Unknown ids are skipped. A repeated id counts once.

        Returns:
            (updated collection, number of existing items assigned)
        """
        updated = dict(card_items)
        assigned = 0

        for item_id in dict.fromkeys(item_ids):
            item = updated.get(item_id)
            if item is None:
                continue
            updated[item_id] = item.model_copy(update={"trip_id": trip_id})
            assigned += 1

        return updated, assigned

    def unassign(
        self,
        card_items: Mapping[str, CardItem],
        item_ids: Iterable[str],
    ) -> tuple[dict[str, CardItem], int]:
        """
        Clear tripId on the listed card items.

        Returns:
            (updated collection, number of items that had a tripId)
        """
        updated = dict(card_items)
        cleared = 0

        for item_id in dict.fromkeys(item_ids):
            item = updated.get(item_id)
            if item is None or not item.trip_id:
                continue
            updated[item_id] = item.model_copy(update={"trip_id": None})
            cleared += 1

        return updated, cleared
