"""
Bank Item Repository

Operations over the bankItems collection. Only records flagged Bank: true
are bank transactions; anything else in the collection is ignored by
every read and cannot be deleted through here.

Monthly totals are summed as stored, without currency conversion, so the
rows carry no currency.
"""

from typing import Optional

from finance_store.models.items import BankItem
from finance_store.models.requests import (
    BankItemFilter,
    DeleteResponse,
    GetBankItemResponse,
    GetBankItemsRequest,
    GetBankItemsResponse,
    GetMonthlyTotalsRequest,
    GetMonthlyTotalsResponse,
    IdRequest,
    UpdateBankItemRequest,
    UpdateBankItemResponse,
)
from finance_store.queries.aggregation import filter_bank_items
from finance_store.repositories.base import TransactionRepository


class BankItemRepository(TransactionRepository[BankItem]):
    """CRUD, filtered listing and monthly totals for bank transactions."""

    collection = "bank_items"
    collection_alias = "bankItems"
    item_label = "Bank item"

    def _visible(self, items: dict[str, BankItem]) -> dict[str, BankItem]:
        return {key: item for key, item in items.items() if item.bank}

    def _apply_filter(
        self,
        items: dict[str, BankItem],
        criteria: Optional[BankItemFilter],
    ) -> dict[str, BankItem]:
        return filter_bank_items(items, criteria)

    def _prepare(self, item: BankItem) -> BankItem:
        # Written records are always flagged as bank transactions
        if item.bank:
            return item
        return item.model_copy(update={"bank": True})

    async def get_all(self, request: Optional[GetBankItemsRequest] = None) -> GetBankItemsResponse:
        request = request or GetBankItemsRequest()
        try:
            items, has_more = await self._select_page(request.filter, request.pagination)
            return GetBankItemsResponse(bank_items=items, has_more=has_more)
        except Exception as e:
            return GetBankItemsResponse(error=self._failure("bankItems/getAll", e))

    async def get_by_id(self, request: IdRequest) -> GetBankItemResponse:
        try:
            return GetBankItemResponse(bank_item=await self._fetch(request.id))
        except Exception as e:
            return GetBankItemResponse(error=self._failure("bankItems/getById", e))

    async def update(self, request: UpdateBankItemRequest) -> UpdateBankItemResponse:
        try:
            stored = await self._replace(request.bank_item)
            return UpdateBankItemResponse(success=True, bank_item=stored)
        except Exception as e:
            return UpdateBankItemResponse(error=self._failure("bankItems/update", e))

    async def delete(self, request: IdRequest) -> DeleteResponse:
        try:
            await self._remove(request.id)
            return DeleteResponse(success=True)
        except Exception as e:
            return DeleteResponse(error=self._failure("bankItems/delete", e))

    async def get_monthly_totals(
        self,
        request: Optional[GetMonthlyTotalsRequest] = None,
    ) -> GetMonthlyTotalsResponse:
        request = request or GetMonthlyTotalsRequest()
        try:
            rows, has_more, categories = await self._totals(request)
            return GetMonthlyTotalsResponse(
                monthly_totals=rows,
                has_more=has_more,
                categories=categories,
            )
        except Exception as e:
            return GetMonthlyTotalsResponse(error=self._failure("bankItems/getMonthlyTotals", e))
