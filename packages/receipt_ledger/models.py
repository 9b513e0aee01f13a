"""Data models for ``receipt_ledger``.

``Transaction`` is the read-through copy of one stored document. It is a
frozen pydantic model whose validators coerce instead of rejecting: a single
malformed historical record must still load, show up in listings, and simply
drop out of date-bounded figures or count as zero. Field names are snake_case
with camelCase aliases matching the stored document keys.

The filter/result types are plain frozen dataclasses; they are produced and
consumed in-process only.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .amounts import normalize_amount
from .dates import coerce_timestamp

# ---------------------------------------------------------------------------
# Persisted record (read-through copy)
# ---------------------------------------------------------------------------


def _str_or_none(v: Any) -> str | None:
    return v if isinstance(v, str) else None


class LineItem(BaseModel):
    """One receipt line. Every field is the string the OCR workflow produced."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str | None = None
    quantity: str | None = None
    unit_price: str | None = Field(None, alias="unitPrice")
    item_total: str | None = Field(None, alias="itemTotal")

    @field_validator("name", "quantity", "unit_price", "item_total", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> str | None:
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, int | float | Decimal):
            return str(v)
        return _str_or_none(v)


class Transaction(BaseModel):
    """A user's transaction as delivered by the store.

    ``total_amount`` is the authoritative raw string; :attr:`amount` re-derives
    the number on every access and is never written back. ``date`` is
    ``None`` when the document's timestamp is missing or unreadable.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    id: str
    user_id: str = Field(alias="userId")
    date: datetime | None = None
    total_amount: str | None = Field(None, alias="totalAmount")
    category: str | None = None
    supplier_name: str | None = Field(None, alias="supplierName")
    full_text: str | None = Field(None, alias="fullText")
    invoice_date: str | None = Field(None, alias="invoiceDate")
    items: tuple[LineItem, ...] = ()

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, v: Any) -> datetime | None:
        # Naive values stay naive; the aggregator localizes them.
        return coerce_timestamp(v, tz=None)

    @field_validator(
        "total_amount", "category", "supplier_name", "full_text", "invoice_date", mode="before"
    )
    @classmethod
    def _coerce_text(cls, v: Any) -> str | None:
        return _str_or_none(v)

    @field_validator("items", mode="before")
    @classmethod
    def _coerce_items(cls, v: Any) -> tuple[Any, ...]:
        if not isinstance(v, list | tuple):
            return ()
        return tuple(it for it in v if isinstance(it, Mapping | LineItem))

    @property
    def amount(self) -> Decimal:
        return normalize_amount(self.total_amount)

    @property
    def description(self) -> str:
        """Joined item names, or the full text when there are no items."""

        if self.items:
            return ", ".join(it.name or "" for it in self.items)
        return self.full_text or ""

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> Transaction:
        """Build a record from a store document (``{"id": ..., **fields}``)."""

        data = dict(doc)
        data["id"] = str(data.get("id") or "")
        data["userId"] = str(data.get("userId") or data.get("user_id") or "")
        data.pop("user_id", None)
        return cls.model_validate(data)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class SortOrder(StrEnum):
    DATE_DESC = "date"
    AMOUNT_DESC = "amount-desc"
    AMOUNT_ASC = "amount-asc"


class Bucket(StrEnum):
    """Calendar grouping for time-series totals."""

    DAY = "day"
    MONTH = "month"


@dataclass(frozen=True, slots=True)
class FilterSpec:
    """Parameters of one aggregation call.

    All fields are optional. An empty ``categories`` set means no category
    restriction; an empty ``search_text`` means no text restriction.
    """

    start_date: date | None = None
    end_date: date | None = None
    categories: frozenset[str] = field(default_factory=frozenset)
    search_text: str = ""
    order: SortOrder = SortOrder.DATE_DESC

    def __post_init__(self) -> None:
        # Accept any iterable of labels from callers; store it frozen.
        if not isinstance(self.categories, frozenset):
            object.__setattr__(self, "categories", frozenset(self.categories))
        if self.search_text is None:
            object.__setattr__(self, "search_text", "")

    @classmethod
    def current_month(cls, today: date, **kwargs: Any) -> FilterSpec:
        """Home-view default: first day of ``today``'s month through ``today``."""

        return cls(start_date=today.replace(day=1), end_date=today, **kwargs)


# ---------------------------------------------------------------------------
# Aggregation results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CategoryTotal:
    category: str
    amount: Decimal
    color: str


@dataclass(frozen=True, slots=True)
class BucketTotal:
    """Expense total for one calendar bucket; ``start`` is its first day."""

    label: str
    amount: Decimal
    start: date


@dataclass(frozen=True, slots=True)
class AggregateResult:
    """Everything a summary screen renders for one snapshot and filter."""

    total_expenses: Decimal
    category_breakdown: tuple[CategoryTotal, ...]
    bucket_breakdown: tuple[BucketTotal, ...]
    visible_transactions: tuple[Transaction, ...]

    @classmethod
    def empty(cls) -> AggregateResult:
        return cls(Decimal(0), (), (), ())


__all__ = [
    "LineItem",
    "Transaction",
    "SortOrder",
    "Bucket",
    "FilterSpec",
    "CategoryTotal",
    "BucketTotal",
    "AggregateResult",
]
