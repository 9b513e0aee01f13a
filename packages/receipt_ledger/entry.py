"""Manual expense entry: validation and store-document builders.

A :class:`ManualEntry` holds the five form fields exactly as typed. Nothing
here talks to the store; :mod:`receipt_ledger.ledger` calls these helpers and
performs the write.

Exports
-------
- ``ManualEntry``
- ``validate_entry(entry, *, allow_income=True)``
- ``build_manual_document(entry, *, user_id, now)``
- ``build_edit_changes(entry, *, tz=UTC)``
- ``edit_form(transaction, *, tz=UTC)``
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, tzinfo
from typing import Any

from .amounts import format_amount, parse_leading_number
from .categories import OTHER, validate_name
from .dates import coerce_timestamp, format_date, local_date, parse_iso_date, start_of_day
from .errors import ValidationError
from .models import Transaction

MANUAL_IMAGE_MARKER = "Manual Entry"
OCR_FAILED_HINT = "OCR scan failed. Please enter details manually."

_ISO_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_REQUIRED_MESSAGE = (
    "Please fill in all required fields (Date, Supplier, Total Amount, Category)."
)


@dataclass(frozen=True, slots=True)
class ManualEntry:
    date: str = ""
    supplier: str = ""
    total: str = ""
    category: str = OTHER
    description: str = ""


def _entry_day(entry: ManualEntry) -> date:
    text = entry.date.strip()
    day = parse_iso_date(text) if _ISO_DAY_RE.match(text) else None
    if day is None:
        raise ValidationError("date", "Date must be in YYYY-MM-DD format.")
    return day


def validate_entry(entry: ManualEntry, *, allow_income: bool = True) -> None:
    """Raise :class:`ValidationError` for the first problem found.

    Required fields are checked in form order (date, supplier, total,
    category) before any format check.
    """

    for name in ("date", "supplier", "total", "category"):
        value = getattr(entry, name)
        if not value or not value.strip():
            raise ValidationError(name, _REQUIRED_MESSAGE)
    _entry_day(entry)
    if parse_leading_number(entry.total) is None:
        raise ValidationError("total", "Total Amount must be a valid number.")
    check = validate_name(entry.category, allow_income=allow_income)
    if not check.ok:
        raise ValidationError("category", check.reason or "Invalid category")


def _single_item(entry: ManualEntry) -> list[dict[str, str]]:
    return [
        {
            "name": entry.description or entry.category,
            "quantity": "1",
            "unitPrice": entry.total,
            "itemTotal": entry.total,
        }
    ]


def build_manual_document(
    entry: ManualEntry, *, user_id: str, now: datetime
) -> dict[str, Any]:
    """Store document for a newly entered expense.

    ``date`` is the save time, not the typed day; the typed day is kept in
    ``invoiceDate``.
    """

    full_text = (
        f"Manual Entry - Date: {entry.date}, Supplier: {entry.supplier}, "
        f"Total: {entry.total}, Category: {entry.category}, "
        f"Description: {entry.description}"
    )
    return {
        "userId": user_id,
        "supplierName": entry.supplier or MANUAL_IMAGE_MARKER,
        "invoiceDate": entry.date or "N/A",
        "totalAmount": entry.total,
        "category": entry.category,
        "fullText": full_text,
        "items": _single_item(entry),
        "date": now,
        "receiptImageBase64": MANUAL_IMAGE_MARKER,
    }


def build_edit_changes(entry: ManualEntry, *, tz: tzinfo = UTC) -> dict[str, Any]:
    """Full-field replacement for an edited record.

    ``date`` moves to the start of the edited day so date-range queries agree
    with ``invoiceDate``.
    """

    return {
        "invoiceDate": entry.date,
        "supplierName": entry.supplier,
        "totalAmount": entry.total,
        "category": entry.category,
        "fullText": entry.description,
        "items": _single_item(entry),
        "date": start_of_day(_entry_day(entry), tz),
    }


def edit_form(transaction: Transaction, *, tz: tzinfo = UTC) -> ManualEntry:
    """Pre-fill the edit form from an existing record."""

    day: date | None = None
    if transaction.invoice_date and transaction.invoice_date != "N/A":
        parsed = coerce_timestamp(transaction.invoice_date, tz=tz)
        day = local_date(parsed, tz) if parsed is not None else None
    if day is None and transaction.date is not None:
        day = local_date(transaction.date, tz)
    amount = transaction.amount
    raw_total = (transaction.total_amount or "").strip()
    if amount:
        total = format_amount(amount)
    elif parse_leading_number(raw_total) is not None:
        # A stored zero ("0.00") is still a number the form can submit.
        total = raw_total
    else:
        total = ""
    return ManualEntry(
        date=format_date(day) if day is not None else "",
        supplier=transaction.supplier_name or "",
        total=total,
        category=transaction.category or OTHER,
        description=transaction.description,
    )


__all__ = [
    "ManualEntry",
    "MANUAL_IMAGE_MARKER",
    "OCR_FAILED_HINT",
    "validate_entry",
    "build_manual_document",
    "build_edit_changes",
    "edit_form",
]
