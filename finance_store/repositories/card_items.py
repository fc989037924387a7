"""
Card Item Repository

Operations over the cardItems collection. Card items are the richest
collection: they carry the full filter set, optional sorting, currency
conversion for monthly totals, and the tripId reference managed by the
trip repository.
"""

from typing import Optional

from finance_store.models.items import CardItem
from finance_store.models.requests import (
    CardItemFilter,
    DeleteResponse,
    GetCardItemResponse,
    GetCardItemsRequest,
    GetCardItemsResponse,
    GetLastUpdateResponse,
    GetMonthlyTotalsRequest,
    GetMonthlyTotalsResponse,
    IdRequest,
    UpdateCardItemRequest,
    UpdateCardItemResponse,
)
from finance_store.queries.aggregation import filter_card_items, sort_items
from finance_store.repositories.base import TransactionRepository


class CardItemRepository(TransactionRepository[CardItem]):
    """CRUD, filtered listing and monthly totals for card transactions."""

    collection = "card_items"
    collection_alias = "cardItems"
    item_label = "Card item"

    def _apply_filter(
        self,
        items: dict[str, CardItem],
        criteria: Optional[CardItemFilter],
    ) -> dict[str, CardItem]:
        return filter_card_items(items, criteria)

    def _order(self, items: dict[str, CardItem], criteria: Optional[CardItemFilter]) -> list[CardItem]:
        if criteria is None:
            return list(items.values())
        return sort_items(items.values(), criteria.sort_by, criteria.sort_direction)

    async def get_all(self, request: Optional[GetCardItemsRequest] = None) -> GetCardItemsResponse:
        """
        List card items, paged by calendar month.

        The page holds every matching item of the selected months, newest
        month first.
        """
        request = request or GetCardItemsRequest()
        try:
            items, has_more = await self._select_page(request.filter, request.pagination)
            return GetCardItemsResponse(card_items=items, has_more=has_more)
        except Exception as e:
            return GetCardItemsResponse(error=self._failure("cardItems/getAll", e))

    async def get_by_id(self, request: IdRequest) -> GetCardItemResponse:
        try:
            return GetCardItemResponse(card_item=await self._fetch(request.id))
        except Exception as e:
            return GetCardItemResponse(error=self._failure("cardItems/getById", e))

    async def update(self, request: UpdateCardItemRequest) -> UpdateCardItemResponse:
        """Replace the stored card item with the one supplied. Creates it if absent."""
        try:
            stored = await self._replace(request.card_item)
            return UpdateCardItemResponse(success=True, card_item=stored)
        except Exception as e:
            return UpdateCardItemResponse(error=self._failure("cardItems/update", e))

    async def delete(self, request: IdRequest) -> DeleteResponse:
        try:
            await self._remove(request.id)
            return DeleteResponse(success=True)
        except Exception as e:
            return DeleteResponse(error=self._failure("cardItems/delete", e))

    async def get_monthly_totals(
        self,
        request: Optional[GetMonthlyTotalsRequest] = None,
    ) -> GetMonthlyTotalsResponse:
        """
        Per-month totals of card spending, converted to the base currency.

        categories lists every category in the collection, not only those
        of the returned rows.
        """
        request = request or GetMonthlyTotalsRequest()
        try:
            rows, has_more, categories = await self._totals(request)
            return GetMonthlyTotalsResponse(
                monthly_totals=rows,
                has_more=has_more,
                categories=categories,
            )
        except Exception as e:
            return GetMonthlyTotalsResponse(error=self._failure("cardItems/getMonthlyTotals", e))

    async def get_last_update(self) -> GetLastUpdateResponse:
        """The document's lastUpdate stamp, if one was ever written."""
        try:
            return GetLastUpdateResponse(last_update=await self._store.get_last_update())
        except Exception as e:
            return GetLastUpdateResponse(error=self._failure("cardItems/getLastUpdate", e))
