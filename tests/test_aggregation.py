"""
Tests for the aggregation engine.

Covers filtering, ordering, month bucketing, monthly totals and the two
pagination units (months for item listings, rows for totals).
"""

from datetime import datetime

import pytest

from finance_store.models.items import CardItem
from finance_store.models.requests import CardItemFilter, MonthlyTotalsFilter, Pagination
from finance_store.queries.aggregation import (
    calculate_monthly_totals,
    collect_categories,
    filter_by_category_and_dates,
    filter_card_items,
    group_by_month,
    month_key,
    month_name,
    paginate,
    parse_bound,
    parse_item_date,
    select_month_page,
    sort_items,
    summarize_trip_items,
)


def make_items(*specs) -> dict[str, CardItem]:
    items = {}
    for item_id, date, amount, category, *rest in specs:
        currency = rest[0] if rest else "NIS"
        items[item_id] = CardItem(
            id=item_id,
            date=date,
            name=f"Merchant {item_id}",
            amount=amount,
            category=category,
            currency=currency,
        )
    return items


@pytest.fixture
def items():
    return make_items(
        ("a", "2024-03-05T10:00:00", -50, "Groceries"),
        ("b", "2024-03-20T18:30:00", -20, "Restaurants", "$"),
        ("c", "2024-02-11T09:00:00", -100, "Groceries"),
        ("d", "2023-12-31T23:00:00", -10, "Transport", "EUR"),
    )


class TestDates:
    """Tests for date parsing and bucketing."""

    def test_naive_timestamp_is_local(self):
        """Test that timestamps without an offset are read as local time."""
        assert parse_item_date("2024-03-05T10:00:00") == datetime(2024, 3, 5, 10, 0)

    def test_unparsable_date(self):
        """Test that an unparsable date parses to None."""
        assert parse_item_date("next tuesday") is None
        assert month_key("") is None

    def test_month_key_zero_padded(self):
        """Test that month keys pad single-digit months."""
        assert month_key("2024-03-05") == "2024-03"

    def test_date_only_end_bound_covers_whole_day(self):
        """Test that a date-only end bound includes the whole day."""
        end = parse_bound("2024-03-31", end_of_range=True)
        assert end > datetime(2024, 3, 31, 23, 59)

    def test_invalid_bound_raises(self):
        """Test that a filter bound that is not a date is rejected."""
        with pytest.raises(ValueError):
            parse_bound("31/03/2024")

    def test_month_name(self):
        """Test that month names read like "March 2024"."""
        assert month_name(2024, 3) == "March 2024"


class TestFiltering:
    """Tests for category/date/card filters."""

    def test_inclusive_date_range(self, items):
        """Test that both date bounds are inclusive."""
        selected = filter_by_category_and_dates(
            items, start_date="2024-02-11T09:00:00", end_date="2024-03-05",
        )
        assert set(selected) == {"a", "c"}

    def test_category_filter(self, items):
        """Test that only items of the requested category are kept."""
        assert set(filter_by_category_and_dates(items, category="Groceries")) == {"a", "c"}

    def test_items_without_date_excluded_from_ranges(self):
        """Test that items without a date never match a date range."""
        items = make_items(("x", "garbage", -1, ""))
        assert filter_by_category_and_dates(items, start_date="2020-01-01") == {}
        assert set(filter_by_category_and_dates(items)) == {"x"}

    def test_card_filter_conditions_combine(self, items):
        """Test that card filter conditions are combined with AND."""
        criteria = CardItemFilter(categories=["Groceries", "Transport"], min_amount=-60)
        assert set(filter_card_items(items, criteria)) == {"a", "d"}

    def test_search_term_matches_name_case_insensitively(self, items):
        """Test that search ignores case when matching names."""
        assert set(filter_card_items(items, CardItemFilter(search_term="MERCHANT B"))) == {"b"}

    def test_search_term_matches_comments(self):
        """Test that search also looks inside comments."""
        items = {"x": CardItem(id="x", name="Shop", comments=["Birthday gift"])}
        assert set(filter_card_items(items, CardItemFilter(search_term="gift"))) == {"x"}

    def test_trip_and_version_filters(self):
        """Test that items can be selected by trip and by import version."""
        items = {
            "x": CardItem(id="x", trip_id="trip_1", version=2),
            "y": CardItem(id="y", trip_id="trip_2"),
        }
        assert set(filter_card_items(items, CardItemFilter(trip_id="trip_1"))) == {"x"}
        assert set(filter_card_items(items, CardItemFilter(has_version=False))) == {"y"}
        assert set(filter_card_items(items, CardItemFilter(specific_version="2"))) == {"x"}

    def test_pending_only(self):
        """Test that the pending flag keeps only pending transactions."""
        items = {
            "x": CardItem(id="x", pending_transaction=True),
            "y": CardItem(id="y"),
        }
        assert set(filter_card_items(items, CardItemFilter(pending_transaction_only=True))) == {"x"}


class TestSorting:
    """Tests for item ordering."""

    def test_no_sort_keeps_order(self, items):
        """Test that without sort_by the input order is kept."""
        assert [i.id for i in sort_items(items.values(), None)] == ["a", "b", "c", "d"]

    def test_sort_by_amount_desc(self, items):
        """Test that items sort by amount, largest first."""
        assert [i.id for i in sort_items(items.values(), "amount", "desc")] == ["d", "b", "a", "c"]

    def test_sort_by_date_defaults_to_ascending(self, items):
        """Test that sorting without a direction is ascending."""
        assert [i.id for i in sort_items(items.values(), "date")] == ["d", "c", "a", "b"]


class TestPagination:
    """Month-bucket pagination versus row pagination."""

    def test_paginate_rows(self):
        """Test that row pagination slices and reports hasMore."""
        page, has_more = paginate([1, 2, 3, 4, 5], Pagination(limit=2, offset=2))
        assert page == [3, 4]
        assert has_more is True

    def test_zero_limit_means_all(self):
        """Test that a zero limit returns every row."""
        page, has_more = paginate([1, 2, 3], Pagination(limit=0, offset=1))
        assert page == [2, 3]
        assert has_more is False

    def test_month_page_returns_whole_months(self, items):
        """Test that a month page never splits a month."""
        selected, has_more = select_month_page(items.values(), Pagination(limit=1))
        # March 2024 holds two items; both come back in a one-month page
        assert set(selected) == {"a", "b"}
        assert has_more is True

    def test_month_page_offset(self, items):
        """Test that the offset skips whole months."""
        selected, has_more = select_month_page(items.values(), Pagination(limit=2, offset=1))
        assert set(selected) == {"c", "d"}
        assert has_more is False

    def test_group_by_month_skips_unparsable(self):
        """Test that items with bad dates fall outside every month."""
        items = make_items(("x", "garbage", -1, ""), ("y", "2024-01-01", -1, ""))
        assert group_by_month(items.values()) == {"2024-01": [items["y"]]}


class TestTotals:
    """Tests for monthly totals and trip summaries."""

    def test_totals_order_year_then_month_desc(self, items):
        """Test that totals are ordered newest month first."""
        rows = calculate_monthly_totals(items)
        assert [(r.year, r.month) for r in rows] == [(2024, "03"), (2024, "02"), (2023, "12")]
        assert rows[0].month_name == "March 2024"

    def test_totals_without_converter_are_raw(self, items):
        """Test that without a converter amounts are summed as stored."""
        rows = calculate_monthly_totals(items)
        assert rows[0].total == pytest.approx(-70)
        assert rows[0].currency is None

    def test_totals_with_converter(self, items, converter):
        """Test that with a converter amounts are summed in the base currency."""
        rows = calculate_monthly_totals(items, converter=converter)
        assert rows[0].total == pytest.approx(-50 + -20 * 3.5)
        assert rows[0].currency == "NIS"

    def test_totals_filtered(self, items):
        """Test that totals honour the category filter."""
        rows = calculate_monthly_totals(items, MonthlyTotalsFilter(category="Groceries"))
        assert [r.total for r in rows] == [-50, -100]

    def test_totals_add_up_to_item_amounts(self):
        """Test that month totals add up to the item amounts within float rounding."""
        items = make_items(
            ("a", "2024-03-05", -0.1, "Groceries"),
            ("b", "2024-03-06", -0.2, "Groceries"),
            ("c", "2024-02-11", -19.99, "Restaurants"),
            ("d", "2024-02-12", 1234.56, "Salary"),
        )
        rows = calculate_monthly_totals(items)
        assert sum(r.total for r in rows) == pytest.approx(sum(i.amount for i in items.values()))
        assert rows[0].total == pytest.approx(-0.3)

    def test_collect_categories(self, items):
        """Test that categories are distinct and sorted, blank included."""
        items["e"] = CardItem(id="e", date="2024-01-01")
        assert collect_categories(items.values()) == ["", "Groceries", "Restaurants", "Transport"]

    def test_summarize_trip_items(self, items, converter):
        """Test that trip totals are split by currency and by category."""
        totals, categories = summarize_trip_items(items.values(), converter)
        assert totals.total_nis == pytest.approx(-50 - 70 - 100 - 40)
        assert totals.total_by_currency == {"NIS": -150, "USD": -20, "EUR": -10}
        assert [c.category for c in categories] == ["Transport", "Restaurants", "Groceries"]
        assert categories[-1].count == 2
