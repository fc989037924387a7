"""
Request and Response Models

One explicit request and one explicit response struct per operation.
Filters and pagination are enumerated field by field rather than passed
around as open-ended dictionaries.

Every response carries an optional `error`. It is populated only on
failure; all other fields then keep their empty defaults ({} maps, []
lists, False flags, 0 counts). Callers check `error` first.
"""

from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from finance_store.models.items import (
    BankItem,
    CardItem,
    Trip,
    TripDraft,
    TripPatch,
    dump_record,
)


# Records leave the store in their stored shape: unset defaults are not echoed.
StoredCardItem = Annotated[CardItem, PlainSerializer(dump_record)]
StoredBankItem = Annotated[BankItem, PlainSerializer(dump_record)]
StoredTrip = Annotated[Trip, PlainSerializer(dump_record)]


class ApiModel(BaseModel):
    """Base for wire models: camelCase aliases, snake_case attributes."""
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# SHARED PARAMETERS
# =============================================================================

class Pagination(ApiModel):
    """
    Pagination window.

    For card/bank get_all the units are MONTH BUCKETS; for
    get_monthly_totals they are aggregate ROWS. A missing or zero limit
    means "everything from offset on".
    """

    limit: Optional[int] = Field(default=None, ge=0)
    offset: Optional[int] = Field(default=None, ge=0)


class MonthlyTotalsFilter(ApiModel):
    """Filter used by monthly totals. Bounds are inclusive."""

    category: Optional[str] = None
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")


class BankItemFilter(MonthlyTotalsFilter):
    """Bank transaction filter (category and inclusive date range)."""


class CardItemFilter(MonthlyTotalsFilter):
    """
    Card transaction filter. All conditions are combined with AND.

    sort_by/sort_direction reorder items inside the result; month buckets
    are always returned newest first.
    """

    categories: Optional[list[str]] = None
    min_amount: Optional[float] = Field(default=None, alias="minAmount")
    max_amount: Optional[float] = Field(default=None, alias="maxAmount")
    search_term: Optional[str] = Field(default=None, alias="searchTerm")
    pending_transaction_only: bool = Field(default=False, alias="pendingTransactionOnly")
    has_version: Optional[bool] = Field(default=None, alias="hasVersion")
    specific_version: Optional[str] = Field(default=None, alias="specificVersion")
    trip_id: Optional[str] = Field(default=None, alias="tripId")
    sort_by: Optional[Literal["date", "amount", "category", "name"]] = Field(default=None, alias="sortBy")
    sort_direction: Optional[Literal["asc", "desc"]] = Field(default=None, alias="sortDirection")


class MonthlyTotal(ApiModel):
    """
    Sum of one calendar month. Derived on demand, never stored.

    month is zero-padded ("03"); currency is set only when amounts were
    converted to a common currency.
    """

    year: int
    month: str = Field(..., pattern=r"^(0[1-9]|1[0-2])$")
    month_name: str = Field(..., alias="monthName")
    total: float = 0.0
    currency: Optional[str] = None


class IdRequest(ApiModel):
    """Request addressing a single record."""

    id: str = ""


class DeleteResponse(ApiModel):
    success: bool = False
    error: Optional[str] = None


# =============================================================================
# CARD ITEMS
# =============================================================================

class GetCardItemsRequest(ApiModel):
    filter: Optional[CardItemFilter] = None
    pagination: Optional[Pagination] = None


class GetCardItemsResponse(ApiModel):
    card_items: dict[str, StoredCardItem] = Field(default_factory=dict, alias="cardItems")
    has_more: bool = Field(default=False, alias="hasMore")
    error: Optional[str] = None


class GetCardItemResponse(ApiModel):
    card_item: Optional[StoredCardItem] = Field(default=None, alias="cardItem")
    error: Optional[str] = None


class UpdateCardItemRequest(ApiModel):
    card_item: Optional[CardItem] = Field(default=None, alias="cardItem")


class UpdateCardItemResponse(ApiModel):
    success: bool = False
    card_item: Optional[StoredCardItem] = Field(default=None, alias="cardItem")
    error: Optional[str] = None


class GetMonthlyTotalsRequest(ApiModel):
    filter: Optional[MonthlyTotalsFilter] = None
    pagination: Optional[Pagination] = None


class GetMonthlyTotalsResponse(ApiModel):
    monthly_totals: list[MonthlyTotal] = Field(default_factory=list, alias="monthlyTotals")
    has_more: bool = Field(default=False, alias="hasMore")
    categories: list[str] = Field(default_factory=list)
    error: Optional[str] = None


class GetLastUpdateResponse(ApiModel):
    last_update: Optional[str] = Field(default=None, alias="lastUpdate")
    error: Optional[str] = None


# =============================================================================
# BANK ITEMS
# =============================================================================

class GetBankItemsRequest(ApiModel):
    filter: Optional[BankItemFilter] = None
    pagination: Optional[Pagination] = None


class GetBankItemsResponse(ApiModel):
    bank_items: dict[str, StoredBankItem] = Field(default_factory=dict, alias="bankItems")
    has_more: bool = Field(default=False, alias="hasMore")
    error: Optional[str] = None


class GetBankItemResponse(ApiModel):
    bank_item: Optional[StoredBankItem] = Field(default=None, alias="bankItem")
    error: Optional[str] = None


class UpdateBankItemRequest(ApiModel):
    bank_item: Optional[BankItem] = Field(default=None, alias="bankItem")


class UpdateBankItemResponse(ApiModel):
    success: bool = False
    bank_item: Optional[StoredBankItem] = Field(default=None, alias="bankItem")
    error: Optional[str] = None


# =============================================================================
# TRIPS
# =============================================================================

class TripFilter(ApiModel):
    search: Optional[str] = None


class GetTripsRequest(ApiModel):
    filter: Optional[TripFilter] = None


class GetTripsResponse(ApiModel):
    trips: dict[str, StoredTrip] = Field(default_factory=dict)
    error: Optional[str] = None


class GetTripResponse(ApiModel):
    trip: Optional[StoredTrip] = None
    error: Optional[str] = None


class CreateTripRequest(ApiModel):
    trip: TripDraft


class UpdateTripRequest(ApiModel):
    trip: TripPatch


class TripMutationResponse(ApiModel):
    success: bool = False
    trip: Optional[StoredTrip] = None
    error: Optional[str] = None


class AssignCardItemsRequest(ApiModel):
    trip_id: str = Field(default="", alias="tripId")
    card_item_ids: list[str] = Field(default_factory=list, alias="cardItemIds")


class UnassignCardItemsRequest(ApiModel):
    card_item_ids: list[str] = Field(default_factory=list, alias="cardItemIds")


class AssignmentResponse(ApiModel):
    success: bool = False
    updated_count: int = Field(default=0, alias="updatedCount")
    error: Optional[str] = None


class TripTotals(ApiModel):
    total_nis: float = Field(default=0.0, alias="totalNis")
    total_by_currency: dict[str, float] = Field(default_factory=dict, alias="totalByCurrency")


class CategoryTotal(ApiModel):
    category: str
    total_nis: float = Field(default=0.0, alias="totalNis")
    count: int = 0


class TripSummary(ApiModel):
    trip: StoredTrip
    totals: TripTotals = Field(default_factory=TripTotals)
    categories: list[CategoryTotal] = Field(default_factory=list)
    items: dict[str, StoredCardItem] = Field(default_factory=dict)


class GetTripSummaryResponse(ApiModel):
    summary: Optional[TripSummary] = None
    error: Optional[str] = None
