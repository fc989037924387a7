"""
Repository Base Classes

A repository implements one collection's operations against the in-memory
document obtained from the DocumentStore, then persists through
DocumentStore.save().

DESIGN DECISION: Nothing raises past a repository. Every public operation
catches its failure, audits it, and returns the operation's response with
`error` set and every other field left at its empty default. Callers only
ever check `error`.
"""

from typing import Generic, Optional, TypeVar

import structlog

from finance_store.audit import AuditLogger
from finance_store.models.items import Document, DocumentUpdate, TransactionItem
from finance_store.models.requests import (
    GetMonthlyTotalsRequest,
    MonthlyTotal,
    MonthlyTotalsFilter,
    Pagination,
)
from finance_store.queries.aggregation import (
    calculate_monthly_totals,
    collect_categories,
    paginate,
    select_month_page,
)
from finance_store.services.currency import CurrencyConverter
from finance_store.services.storage import (
    DocumentStore,
    NotFoundError,
    RecordValidationError,
    StorageError,
)


logger = structlog.get_logger(__name__)

ItemT = TypeVar("ItemT", bound=TransactionItem)


class BaseRepository:
    """Shared wiring: the document store, the audit log and error mapping."""

    def __init__(
        self,
        store: DocumentStore,
        audit_logger: Optional[AuditLogger] = None,
        touch_last_update: bool = False,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._touch_last_update = touch_last_update

    async def _persist(self, document: Document, update: DocumentUpdate) -> Document:
        """Save update, guarded by the version the document was loaded at."""
        return await self._store.save(
            update,
            expected_version=document.version,
            touch_last_update=self._touch_last_update,
        )

    def _failure(self, operation: str, error: Exception) -> str:
        """Audit a failed operation and turn it into the response error string."""
        self._audit.log_operation_failed(operation, error)

        if isinstance(error, (NotFoundError, RecordValidationError)):
            return str(error)
        if not isinstance(error, StorageError):
            logger.error("unexpected_repository_error", operation=operation, exc_info=error)
        return f"Error: {error}"


class TransactionRepository(BaseRepository, Generic[ItemT]):
    """
    Operations shared by the card and bank collections.

    The two collections are structurally identical; subclasses name their
    collection and may narrow what is visible, how filters apply, and how
    items are ordered and prepared for storage.
    """

    # Document attribute and wire name of the collection
    collection: str = ""
    collection_alias: str = ""
    # Used in messages: "Card item with ID c1 not found"
    item_label: str = "Item"

    def __init__(
        self,
        store: DocumentStore,
        converter: Optional[CurrencyConverter] = None,
        audit_logger: Optional[AuditLogger] = None,
        touch_last_update: bool = False,
    ):
        super().__init__(store, audit_logger=audit_logger, touch_last_update=touch_last_update)
        self._converter = converter

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def _items(self, document: Document) -> dict[str, ItemT]:
        return getattr(document, self.collection)

    def _visible(self, items: dict[str, ItemT]) -> dict[str, ItemT]:
        return items

    def _apply_filter(self, items: dict[str, ItemT], criteria) -> dict[str, ItemT]:
        raise NotImplementedError

    def _order(self, items: dict[str, ItemT], criteria) -> list[ItemT]:
        return list(items.values())

    def _prepare(self, item: ItemT) -> ItemT:
        return item

    # -------------------------------------------------------------------------
    # Shared operations (raise on failure; subclasses wrap into responses)
    # -------------------------------------------------------------------------

    async def _select_page(
        self,
        criteria,
        pagination: Optional[Pagination],
    ) -> tuple[dict[str, ItemT], bool]:
        """Filter, order, then page over MONTH buckets."""
        document = await self._store.load()
        items = self._apply_filter(self._visible(self._items(document)), criteria)
        return select_month_page(self._order(items, criteria), pagination)

    async def _fetch(self, item_id: str) -> ItemT:
        document = await self._store.load()
        item = self._visible(self._items(document)).get(item_id)
        if item is None:
            raise NotFoundError(f"{self.item_label} with ID {item_id} not found")
        return item

    async def _replace(self, item: Optional[ItemT]) -> ItemT:
        """Full replace of the stored record with the same id."""
        if item is None or not item.id or not item.id.strip():
            raise RecordValidationError(f"Invalid {self.item_label.lower()} data: missing ID")

        document = await self._store.load()
        items = dict(self._items(document))
        stored = self._prepare(item)
        items[stored.id] = stored

        await self._persist(document, DocumentUpdate(**{self.collection: items}))
        self._audit.log_item_updated(self.collection_alias, stored.id)
        return stored

    async def _remove(self, item_id: str) -> None:
        if not item_id or not item_id.strip():
            raise RecordValidationError("Invalid request: missing ID")

        document = await self._store.load()
        if item_id not in self._visible(self._items(document)):
            raise NotFoundError(f"{self.item_label} with ID {item_id} not found")

        items = dict(self._items(document))
        del items[item_id]

        await self._persist(document, DocumentUpdate(**{self.collection: items}))
        self._audit.log_item_deleted(self.collection_alias, item_id)

    async def _totals(
        self,
        request: GetMonthlyTotalsRequest,
    ) -> tuple[list[MonthlyTotal], bool, list[str]]:
        """
        Monthly totals page. Pagination counts ROWS here, not months of items.

        Returns:
            (rows, has_more, categories of the whole collection)
        """
        document = await self._store.load()
        items = self._visible(self._items(document))

        categories = collect_categories(items.values())
        criteria: Optional[MonthlyTotalsFilter] = request.filter
        rows = calculate_monthly_totals(items, criteria, converter=self._converter)
        page, has_more = paginate(rows, request.pagination)
        return page, has_more, categories
