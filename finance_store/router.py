"""
Request Router

The thin outer surface of the store. Callers name an operation
("cardItems/getAll", "trips/create", ...) and pass a plain dict of
parameters; they get a plain dict back.

DESIGN DECISION: The router knows the CONTRACT only. It validates the
parameters into the operation's request model, calls the repository, and
serializes the response by alias. All behaviour lives in the
repositories, so the router never touches the document itself.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel, ValidationError

from finance_store.audit import AuditLogger, configure_logging, create_correlation_id
from finance_store.config import Settings, get_settings
from finance_store.models.requests import (
    AssignCardItemsRequest,
    AssignmentResponse,
    CreateTripRequest,
    DeleteResponse,
    GetBankItemResponse,
    GetBankItemsRequest,
    GetBankItemsResponse,
    GetCardItemResponse,
    GetCardItemsRequest,
    GetCardItemsResponse,
    GetLastUpdateResponse,
    GetMonthlyTotalsRequest,
    GetMonthlyTotalsResponse,
    GetTripResponse,
    GetTripSummaryResponse,
    GetTripsRequest,
    GetTripsResponse,
    IdRequest,
    TripMutationResponse,
    UnassignCardItemsRequest,
    UpdateBankItemRequest,
    UpdateBankItemResponse,
    UpdateCardItemRequest,
    UpdateCardItemResponse,
    UpdateTripRequest,
)
from finance_store.repositories import (
    BankItemRepository,
    CardItemRepository,
    ReferentialIntegrityManager,
    TripRepository,
)
from finance_store.services.currency import CurrencyConverter
from finance_store.services.storage import (
    BlobStoreInterface,
    ConcurrencyMode,
    DocumentStore,
    GCSBlobStore,
    GCSClient,
    InMemoryBlobStore,
)


logger = structlog.get_logger(__name__)

EMPTY_DOCUMENT = '{"cardItems": {}, "bankItems": {}, "trips": {}}'


class UnknownOperationError(Exception):
    """Raised when no operation is registered under the requested name."""

    def __init__(self, api_name: str):
        super().__init__(f"Unknown operation: {api_name}")
        self.api_name = api_name


@dataclass(frozen=True)
class Route:
    """One registered operation."""
    request_model: Optional[type[BaseModel]]
    handler: Callable[..., Awaitable[BaseModel]]
    response_model: type[BaseModel]


def _validation_message(error: ValidationError) -> str:
    messages = []
    for detail in error.errors():
        message = detail["msg"].removeprefix("Value error, ")
        location = ".".join(str(part) for part in detail["loc"])
        messages.append(f"{location}: {message}" if location else message)
    return "Invalid request: " + "; ".join(messages)


class RequestRouter:
    """Dispatches named operations to the repositories."""

    def __init__(
        self,
        card_items: CardItemRepository,
        bank_items: BankItemRepository,
        trips: TripRepository,
    ):
        self._routes: dict[str, Route] = {
            # Card items
            "cardItems/getAll": Route(GetCardItemsRequest, card_items.get_all, GetCardItemsResponse),
            "cardItems/getById": Route(IdRequest, card_items.get_by_id, GetCardItemResponse),
            "cardItems/update": Route(UpdateCardItemRequest, card_items.update, UpdateCardItemResponse),
            "cardItems/delete": Route(IdRequest, card_items.delete, DeleteResponse),
            "cardItems/getMonthlyTotals": Route(
                GetMonthlyTotalsRequest, card_items.get_monthly_totals, GetMonthlyTotalsResponse,
            ),
            "cardItems/getLastUpdate": Route(None, card_items.get_last_update, GetLastUpdateResponse),
            # Bank items
            "bankItems/getAll": Route(GetBankItemsRequest, bank_items.get_all, GetBankItemsResponse),
            "bankItems/getById": Route(IdRequest, bank_items.get_by_id, GetBankItemResponse),
            "bankItems/update": Route(UpdateBankItemRequest, bank_items.update, UpdateBankItemResponse),
            "bankItems/delete": Route(IdRequest, bank_items.delete, DeleteResponse),
            "bankItems/getMonthlyTotals": Route(
                GetMonthlyTotalsRequest, bank_items.get_monthly_totals, GetMonthlyTotalsResponse,
            ),
            # Trips
            "trips/getAll": Route(GetTripsRequest, trips.get_all, GetTripsResponse),
            "trips/getById": Route(IdRequest, trips.get_by_id, GetTripResponse),
            "trips/create": Route(CreateTripRequest, trips.create, TripMutationResponse),
            "trips/update": Route(UpdateTripRequest, trips.update, TripMutationResponse),
            "trips/delete": Route(IdRequest, trips.delete, DeleteResponse),
            "trips/assignCardItems": Route(AssignCardItemsRequest, trips.assign_card_items, AssignmentResponse),
            "trips/unassignCardItems": Route(
                UnassignCardItemsRequest, trips.unassign_card_items, AssignmentResponse,
            ),
            "trips/getSummary": Route(IdRequest, trips.get_summary, GetTripSummaryResponse),
        }

    @property
    def operations(self) -> list[str]:
        return sorted(self._routes)

    async def process(self, api_name: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Run one operation.

        Args:
            api_name: Operation name, e.g. "cardItems/getAll"
            params: Request parameters keyed by their wire names

        Returns:
            The response serialized by alias, without null fields

        Raises:
            UnknownOperationError: If api_name is not registered
        """
        route = self._routes.get(api_name)
        if route is None:
            raise UnknownOperationError(api_name)

        log = logger.bind(operation=api_name, correlation_id=str(create_correlation_id()))

        if route.request_model is None:
            response = await route.handler()
        else:
            try:
                request = route.request_model.model_validate(params or {})
            except ValidationError as e:
                log.warning("invalid_request", error_count=e.error_count())
                response = route.response_model(error=_validation_message(e))
            else:
                response = await route.handler(request)

        if getattr(response, "error", None):
            log.info("operation_returned_error", error=response.error)
        else:
            log.debug("operation_completed")

        return response.model_dump(mode="json", by_alias=True, exclude_none=True)


def _create_blob_store(settings: Settings) -> BlobStoreInterface:
    blob_settings = settings.blob_storage
    if blob_settings.backend == "memory":
        return InMemoryBlobStore({blob_settings.document_name: EMPTY_DOCUMENT})
    return GCSBlobStore(
        client=GCSClient(blob_settings),
        timeout_seconds=blob_settings.timeout_seconds,
    )


def create_router(
    settings: Optional[Settings] = None,
    blob_store: Optional[BlobStoreInterface] = None,
) -> RequestRouter:
    """
    Factory function to build the full component graph.

    Args:
        settings: Settings to build from (defaults to get_settings())
        blob_store: Use this backend instead of the configured one

    Returns:
        A router over card, bank and trip repositories sharing one
        document store
    """
    settings = settings or get_settings()
    configure_logging(settings.app)

    blob_settings = settings.blob_storage
    store_settings = settings.document_store
    currency_settings = settings.currency

    audit_logger = AuditLogger()
    store = DocumentStore(
        blob_store or _create_blob_store(settings),
        document_name=blob_settings.document_name,
        content_type=blob_settings.content_type,
        concurrency_mode=ConcurrencyMode(store_settings.concurrency_mode),
        create_if_missing=blob_settings.create_if_missing,
        audit_logger=audit_logger,
    )
    converter = CurrencyConverter(
        rates=currency_settings.rates,
        base_currency=currency_settings.base_currency,
    )
    touch = store_settings.touch_last_update_on_save

    logger.info(
        "router_created",
        backend="custom" if blob_store is not None else blob_settings.backend,
        concurrency_mode=store_settings.concurrency_mode,
    )

    return RequestRouter(
        card_items=CardItemRepository(
            store, converter=converter, audit_logger=audit_logger, touch_last_update=touch,
        ),
        bank_items=BankItemRepository(store, audit_logger=audit_logger, touch_last_update=touch),
        trips=TripRepository(
            store,
            integrity=ReferentialIntegrityManager(),
            converter=converter,
            audit_logger=audit_logger,
            touch_last_update=touch,
        ),
    )
