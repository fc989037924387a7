"""
Aggregation Engine

DESIGN DECISION: Aggregation is PURE computation over an in-memory
snapshot of a collection. Nothing here touches storage, so the same
functions serve card items, bank items and trips, and every result is
recomputed from the document it was given.

Month buckets are keyed "YYYY-MM" from each item's Date in local time.
Two kinds of pagination live here and they are deliberately different:
- select_month_page() pages over MONTH BUCKETS and returns every item of
  the selected months (a page holds a variable number of items)
- paginate() over monthly totals pages over ROWS, one row per month
"""

from collections.abc import Iterable, Mapping
from datetime import date, datetime, time
from typing import Optional, TypeVar

import structlog

from finance_store.models.items import CardItem, TransactionItem
from finance_store.models.requests import (
    CardItemFilter,
    CategoryTotal,
    MonthlyTotal,
    MonthlyTotalsFilter,
    Pagination,
    TripTotals,
)
from finance_store.services.currency import CurrencyConverter


logger = structlog.get_logger(__name__)

ItemT = TypeVar("ItemT", bound=TransactionItem)
RowT = TypeVar("RowT")


# =============================================================================
# DATES
# =============================================================================

def parse_item_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO timestamp into a naive local datetime.

    Timestamps with an offset (or "Z") are converted to local time;
    timestamps without one are taken as local already. Returns None when
    the value can't be parsed.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def parse_bound(value: Optional[str], end_of_range: bool = False) -> Optional[datetime]:
    """
    Parse a filter bound. Bounds are inclusive.

    A date-only end bound ("2024-03-31") covers that whole day.

    Raises:
        ValueError: If the bound is set but not a valid ISO date
    """
    if not value:
        return None
    parsed = parse_item_date(value)
    if parsed is None:
        raise ValueError(f"Invalid date bound: {value}")
    if end_of_range and "T" not in value.strip() and parsed.time() == time.min:
        parsed = datetime.combine(parsed.date(), time.max)
    return parsed


def month_key(value: Optional[str]) -> Optional[str]:
    """The "YYYY-MM" bucket a timestamp falls in."""
    parsed = parse_item_date(value)
    if parsed is None:
        return None
    return f"{parsed.year:04d}-{parsed.month:02d}"


def _within(
    item: TransactionItem,
    start: Optional[datetime],
    end: Optional[datetime],
) -> bool:
    if start is None and end is None:
        return True
    item_date = parse_item_date(item.date)
    if item_date is None:
        return False
    if start is not None and item_date < start:
        return False
    if end is not None and item_date > end:
        return False
    return True


# =============================================================================
# FILTERING AND SORTING
# =============================================================================

def filter_by_category_and_dates(
    items: Mapping[str, ItemT],
    category: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> dict[str, ItemT]:
    """Keep items matching the category and the inclusive date range."""
    start = parse_bound(start_date)
    end = parse_bound(end_date, end_of_range=True)

    return {
        key: item
        for key, item in items.items()
        if (not category or item.category == category) and _within(item, start, end)
    }


def filter_bank_items(
    items: Mapping[str, ItemT],
    criteria: Optional[MonthlyTotalsFilter] = None,
) -> dict[str, ItemT]:
    if criteria is None:
        return dict(items)
    return filter_by_category_and_dates(
        items,
        category=criteria.category,
        start_date=criteria.start_date,
        end_date=criteria.end_date,
    )


def _matches_search(item: CardItem, needle: str) -> bool:
    if needle in item.name.lower():
        return True
    if item.display_name and needle in item.display_name.lower():
        return True
    return any(needle in comment.lower() for comment in item.comments or [])


def filter_card_items(
    items: Mapping[str, CardItem],
    criteria: Optional[CardItemFilter] = None,
) -> dict[str, CardItem]:
    """Apply every card filter condition, combined with AND."""
    if criteria is None:
        return dict(items)

    selected = filter_by_category_and_dates(
        items,
        category=criteria.category,
        start_date=criteria.start_date,
        end_date=criteria.end_date,
    )

    needle = (criteria.search_term or "").strip().lower()
    specific_version = (criteria.specific_version or "").strip()

    result = {}
    for key, item in selected.items():
        if criteria.categories and item.category not in criteria.categories:
            continue
        if criteria.min_amount is not None and item.amount < criteria.min_amount:
            continue
        if criteria.max_amount is not None and item.amount > criteria.max_amount:
            continue
        if needle and not _matches_search(item, needle):
            continue
        if criteria.pending_transaction_only and not item.pending_transaction:
            continue
        if criteria.has_version is not None and item.has_version != criteria.has_version:
            continue
        if specific_version and (not item.has_version or str(item.version) != specific_version):
            continue
        if criteria.trip_id and item.trip_id != criteria.trip_id:
            continue
        result[key] = item

    return result


def sort_items(
    items: Iterable[ItemT],
    sort_by: Optional[str],
    direction: Optional[str] = None,
) -> list[ItemT]:
    """
    Sort items by date, amount, category or name.

    Without sort_by the input order is kept. Direction defaults to asc.
    """
    items = list(items)
    if not sort_by:
        return items

    if sort_by == "amount":
        key = lambda item: item.amount
    elif sort_by == "category":
        key = lambda item: item.category.lower()
    elif sort_by == "name":
        key = lambda item: item.label.lower()
    else:
        key = lambda item: parse_item_date(item.date) or datetime.min

    return sorted(items, key=key, reverse=direction == "desc")


# =============================================================================
# GROUPING AND PAGINATION
# =============================================================================

def group_by_month(items: Iterable[ItemT]) -> dict[str, list[ItemT]]:
    """
    Bucket items by calendar month of their Date.

    Items whose Date can't be parsed belong to no month and are skipped.
    """
    grouped: dict[str, list[ItemT]] = {}
    skipped = []

    for item in items:
        key = month_key(item.date)
        if key is None:
            skipped.append(item.id)
            continue
        grouped.setdefault(key, []).append(item)

    if skipped:
        logger.warning("items_without_valid_date", count=len(skipped), ids=skipped[:20])

    return grouped


def paginate(rows: list[RowT], pagination: Optional[Pagination] = None) -> tuple[list[RowT], bool]:
    """
    Slice rows by offset/limit.

    Returns:
        (page, has_more) where has_more means rows remain after the page
    """
    offset = (pagination.offset if pagination else None) or 0
    limit = (pagination.limit if pagination else None) or len(rows)

    page = rows[offset:offset + limit]
    return page, offset + limit < len(rows)


def select_month_page(
    items: Iterable[ItemT],
    pagination: Optional[Pagination] = None,
) -> tuple[dict[str, ItemT], bool]:
    """
    Page over month buckets, newest month first.

    limit/offset count MONTHS. The result holds every item of the selected
    months, keyed by id, in input order within each month.
    """
    grouped = group_by_month(items)
    months = sorted(grouped, reverse=True)
    page, has_more = paginate(months, pagination)

    selected: dict[str, ItemT] = {}
    for month in page:
        for item in grouped[month]:
            selected[item.id] = item

    return selected, has_more


# =============================================================================
# TOTALS
# =============================================================================

def month_name(year: int, month: int) -> str:
    """Human-readable month, e.g. "March 2024"."""
    return date(year, month, 1).strftime("%B %Y")


def calculate_monthly_totals(
    items: Mapping[str, ItemT],
    criteria: Optional[MonthlyTotalsFilter] = None,
    converter: Optional[CurrencyConverter] = None,
) -> list[MonthlyTotal]:
    """
    Sum Amount per calendar month.

    With a converter every amount is converted to its base currency first
    and the rows carry that currency; without one amounts are summed as
    stored.

    Rows are ordered most recent first: year descending, then month
    descending.
    """
    selected = filter_bank_items(items, criteria)
    grouped = group_by_month(selected.values())

    totals = []
    for key, bucket in grouped.items():
        year_str, month_str = key.split("-")
        year, month = int(year_str), int(month_str)

        if converter is not None:
            total = sum(converter.convert_to_base(item.amount, item.currency) for item in bucket)
        else:
            total = sum(item.amount for item in bucket)

        totals.append(MonthlyTotal(
            year=year,
            month=month_str,
            month_name=month_name(year, month),
            total=total,
            currency=converter.base_currency if converter is not None else None,
        ))

    totals.sort(key=lambda row: (row.year, int(row.month)), reverse=True)
    return totals


def collect_categories(items: Iterable[TransactionItem]) -> list[str]:
    """Distinct categories, sorted. Uncategorized items contribute ""."""
    return sorted({item.category for item in items})


def summarize_trip_items(
    items: Iterable[CardItem],
    converter: CurrencyConverter,
) -> tuple[TripTotals, list[CategoryTotal]]:
    """
    Totals for the card items of one trip.

    Returns:
        (totals, categories) where totals holds the base-currency sum and
        the raw sum per normalized currency code, and categories holds the
        base-currency sum and item count per category, largest total first
    """
    total = 0.0
    by_currency: dict[str, float] = {}
    by_category: dict[str, CategoryTotal] = {}

    for item in items:
        converted = converter.convert_to_base(item.amount, item.currency)
        code = converter.normalize_code(item.currency)

        total += converted
        by_currency[code] = by_currency.get(code, 0.0) + item.amount

        bucket = by_category.setdefault(item.category, CategoryTotal(category=item.category))
        bucket.total_nis += converted
        bucket.count += 1

    categories = sorted(by_category.values(), key=lambda c: c.total_nis, reverse=True)
    return TripTotals(total_nis=total, total_by_currency=by_currency), categories
