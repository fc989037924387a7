"""Aggregation package."""

from finance_store.queries.aggregation import (
    calculate_monthly_totals,
    collect_categories,
    filter_bank_items,
    filter_card_items,
    group_by_month,
    month_key,
    paginate,
    parse_item_date,
    select_month_page,
    sort_items,
    summarize_trip_items,
)

__all__ = [
    "calculate_monthly_totals",
    "collect_categories",
    "filter_bank_items",
    "filter_card_items",
    "group_by_month",
    "month_key",
    "paginate",
    "parse_item_date",
    "select_month_page",
    "sort_items",
    "summarize_trip_items",
]
