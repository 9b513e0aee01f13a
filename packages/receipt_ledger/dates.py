"""Timestamp coercion and calendar helpers.

Store documents carry ``date`` in whatever shape the writer produced: a
``datetime`` from the SQL store, an ISO string from a manual edit, epoch
seconds, or a ``{"seconds": ..., "nanoseconds": ...}`` mapping from a
document-store export. :func:`coerce_timestamp` folds all of these into an
aware ``datetime`` or ``None``; it never raises.

Day boundaries and bucket keys are computed in an explicit timezone so the
same snapshot aggregates identically on every host.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from typing import Any

# Values within a day of the datetime range edges overflow when shifted to
# another UTC offset, so they are treated as unusable.
_EARLIEST = datetime.min.replace(tzinfo=UTC) + timedelta(days=1)
_LATEST = datetime.max.replace(tzinfo=UTC) - timedelta(days=1)


def coerce_timestamp(raw: Any, *, tz: tzinfo | None = UTC) -> datetime | None:
    """Return ``raw`` as a ``datetime``, or ``None`` when unusable.

    Naive values are interpreted in ``tz``; with ``tz=None`` they stay naive
    so a later consumer can pick the zone.
    """

    if raw is None or isinstance(raw, bool):
        return None
    try:
        if isinstance(raw, datetime):
            dt = raw
        elif isinstance(raw, date):
            dt = datetime.combine(raw, time.min)
        elif isinstance(raw, int | float):
            dt = datetime.fromtimestamp(raw, tz=UTC)
        elif isinstance(raw, Mapping):
            seconds = raw.get("seconds", raw.get("_seconds"))
            nanos = raw.get("nanoseconds", raw.get("_nanoseconds")) or 0
            if isinstance(seconds, bool) or not isinstance(seconds, int | float):
                return None
            dt = datetime.fromtimestamp(seconds + nanos / 1e9, tz=UTC)
        elif isinstance(raw, str):
            s = raw.strip()
            if not s:
                return None
            dt = datetime.fromisoformat(s)
        else:
            return None
    except (ValueError, OverflowError, OSError, TypeError):
        return None
    if dt.tzinfo is None and tz is not None:
        dt = dt.replace(tzinfo=tz)
    return dt if in_safe_range(dt) else None


def in_safe_range(dt: datetime) -> bool:
    """True when ``dt`` can be shifted to any UTC offset without overflowing.

    Naive values are checked as if they were UTC.
    """

    try:
        utc = dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)
    except OverflowError:
        return False
    return _EARLIEST <= utc <= _LATEST


def localize(dt: datetime, tz: tzinfo = UTC) -> datetime:
    """Attach ``tz`` to a naive ``dt``; aware values are returned unchanged."""

    return dt.replace(tzinfo=tz) if dt.tzinfo is None else dt


def parse_iso_date(text: str | None) -> date | None:
    """Parse ``YYYY-MM-DD``; ``None`` for anything else."""

    if not text:
        return None
    try:
        return date.fromisoformat(text.strip())
    except ValueError:
        return None


def start_of_day(day: date, tz: tzinfo = UTC) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def end_of_day(day: date, tz: tzinfo = UTC) -> datetime:
    """Last representable instant of ``day`` (23:59:59.999999), inclusive."""

    return datetime.combine(day, time.max, tzinfo=tz)


def local_date(dt: datetime, tz: tzinfo = UTC) -> date:
    return localize(dt, tz).astimezone(tz).date()


def format_date(day: date) -> str:
    return day.isoformat()


def day_label(day: date) -> str:
    """``M/D/YYYY`` without zero padding (home-view bar labels)."""

    return f"{day.month}/{day.day}/{day.year}"


def month_label(first: date) -> str:
    """``MM/YY`` (report-view bar labels)."""

    return f"{first.month:02d}/{first.year % 100:02d}"


__all__ = [
    "coerce_timestamp",
    "in_safe_range",
    "localize",
    "parse_iso_date",
    "start_of_day",
    "end_of_day",
    "local_date",
    "format_date",
    "day_label",
    "month_label",
]
