"""Filtering and aggregation over a snapshot of transactions.

Everything here is a pure function of ``(records, filters, bucket, tz)``:
no input is mutated, no state is kept, and the output does not depend on the
order in which the store delivered the records. Amounts are ``Decimal`` so
sums are exact regardless of summation order, and every ordering has an
explicit tie-break on the record id.

Pipeline (:func:`aggregate`):

1. date range (inclusive, whole days in ``tz``);
2. category set;
3. free-text search;
4. total spent, excluding ``"Income"``;
5. per-category totals, excluding ``"Income"``;
6. per-bucket (day or month) totals, excluding ``"Income"``, chronological.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, date, datetime, tzinfo
from decimal import Decimal

from .amounts import format_amount
from .categories import INCOME, category_color, effective_category, is_income
from .dates import day_label, end_of_day, local_date, localize, month_label, start_of_day
from .models import (
    AggregateResult,
    Bucket,
    BucketTotal,
    CategoryTotal,
    FilterSpec,
    SortOrder,
    Transaction,
)

_ZERO = Decimal(0)

# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def filter_by_date_range(
    records: Iterable[Transaction],
    start: date | None,
    end: date | None,
    *,
    tz: tzinfo = UTC,
) -> list[Transaction]:
    """Keep records dated within ``[start 00:00, end 23:59:59.999999]``.

    Records with an unknown date are dropped whenever either bound is set and
    kept when neither is.
    """

    if start is None and end is None:
        return list(records)
    lo = start_of_day(start, tz) if start is not None else None
    hi = end_of_day(end, tz) if end is not None else None
    kept: list[Transaction] = []
    for t in records:
        if t.date is None:
            continue
        when = localize(t.date, tz)
        if lo is not None and when < lo:
            continue
        if hi is not None and when > hi:
            continue
        kept.append(t)
    return kept


def filter_by_categories(
    records: Iterable[Transaction], categories: Iterable[str]
) -> list[Transaction]:
    """Keep records whose stored label is in ``categories``; empty set keeps all."""

    wanted = frozenset(categories)
    if not wanted:
        return list(records)
    return [t for t in records if t.category is not None and t.category in wanted]


def matches_search(t: Transaction, query: str) -> bool:
    """Case-insensitive substring match over supplier, category, description, amount."""

    q = query.lower()
    fields = (
        t.supplier_name or "",
        t.category or "",
        t.description,
        format_amount(t.amount),
    )
    return any(q in f.lower() for f in fields)


def filter_by_search(records: Iterable[Transaction], query: str) -> list[Transaction]:
    if not query:
        return list(records)
    return [t for t in records if matches_search(t, query)]


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def _date_desc_key(t: Transaction, tz: tzinfo) -> tuple[int, float, str]:
    # Undated records sort after every dated one.
    if t.date is None:
        return (1, 0.0, t.id)
    return (0, -localize(t.date, tz).timestamp(), t.id)


def sort_transactions(
    records: Iterable[Transaction],
    order: SortOrder = SortOrder.DATE_DESC,
    *,
    tz: tzinfo = UTC,
) -> list[Transaction]:
    if order is SortOrder.AMOUNT_ASC:
        return sorted(records, key=lambda t: (t.amount, t.id))
    if order is SortOrder.AMOUNT_DESC:
        return sorted(records, key=lambda t: (-t.amount, t.id))
    return sorted(records, key=lambda t: _date_desc_key(t, tz))


# ---------------------------------------------------------------------------
# Aggregations
# ---------------------------------------------------------------------------


def _expenses(records: Iterable[Transaction]) -> Iterable[Transaction]:
    return (t for t in records if not is_income(t.category))


def total_expenses(records: Iterable[Transaction]) -> Decimal:
    return sum((t.amount for t in _expenses(records)), _ZERO)


def category_breakdown(records: Iterable[Transaction]) -> tuple[CategoryTotal, ...]:
    """Expense totals per category, largest first (ties by label)."""

    totals: dict[str, Decimal] = {}
    for t in _expenses(records):
        key = effective_category(t.category)
        totals[key] = totals.get(key, _ZERO) + t.amount
    ordered = sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
    return tuple(CategoryTotal(c, amt, category_color(c)) for c, amt in ordered)


def bucket_start(dt: datetime, bucket: Bucket, tz: tzinfo = UTC) -> date:
    day = local_date(dt, tz)
    if bucket is Bucket.MONTH:
        return day.replace(day=1)
    return day


def bucket_label(start: date, bucket: Bucket) -> str:
    if bucket is Bucket.MONTH:
        return month_label(start)
    return day_label(start)


def bucket_breakdown(
    records: Iterable[Transaction],
    bucket: Bucket = Bucket.DAY,
    *,
    tz: tzinfo = UTC,
) -> tuple[BucketTotal, ...]:
    """Expense totals per calendar day or month, oldest first.

    Undated records have no bucket and are skipped.
    """

    totals: dict[date, Decimal] = {}
    for t in _expenses(records):
        if t.date is None:
            continue
        key = bucket_start(t.date, bucket, tz)
        totals[key] = totals.get(key, _ZERO) + t.amount
    return tuple(
        BucketTotal(bucket_label(start, bucket), totals[start], start) for start in sorted(totals)
    )


def available_categories(records: Iterable[Transaction]) -> list[str]:
    """Distinct expense labels present in ``records`` (report-view filter chips)."""

    return sorted({t.category for t in records if t.category and t.category != INCOME})


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def apply_filters(
    records: Iterable[Transaction],
    filters: FilterSpec,
    *,
    tz: tzinfo = UTC,
) -> list[Transaction]:
    """Run the three filter stages and order the survivors."""

    kept = filter_by_date_range(records, filters.start_date, filters.end_date, tz=tz)
    kept = filter_by_categories(kept, filters.categories)
    kept = filter_by_search(kept, filters.search_text)
    return sort_transactions(kept, filters.order, tz=tz)


def aggregate(
    records: Sequence[Transaction],
    filters: FilterSpec | None = None,
    *,
    bucket: Bucket = Bucket.DAY,
    tz: tzinfo = UTC,
) -> AggregateResult:
    """Filter ``records`` and compute every summary view over the survivors."""

    visible = apply_filters(records, filters or FilterSpec(), tz=tz)
    return AggregateResult(
        total_expenses=total_expenses(visible),
        category_breakdown=category_breakdown(visible),
        bucket_breakdown=bucket_breakdown(visible, bucket, tz=tz),
        visible_transactions=tuple(visible),
    )


__all__ = [
    "filter_by_date_range",
    "filter_by_categories",
    "filter_by_search",
    "matches_search",
    "sort_transactions",
    "total_expenses",
    "category_breakdown",
    "bucket_breakdown",
    "bucket_start",
    "bucket_label",
    "available_categories",
    "apply_filters",
    "aggregate",
]
