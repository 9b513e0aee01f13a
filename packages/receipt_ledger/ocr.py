"""Adapter for the external receipt-OCR workflow.

The workflow is an HTTP webhook that accepts ``{"image": <base64>}`` and
answers with a list whose first element carries the extracted invoice under
``"output"``. This module turns that answer into :class:`InvoiceFields`,
fills in a category with the keyword fallback when the workflow was unsure,
and builds the store document for a scanned receipt.

When the workflow cannot be reached or returns something unusable,
:func:`scan_receipt` hands back a pre-filled :class:`ManualEntry` instead so
the user can type the receipt in.

Usage::

    client = WebhookOcrClient(settings.ocr_webhook_url, timeout=30)
    outcome = scan_receipt(image_bytes, client, today=date.today())
"""

from __future__ import annotations

import base64
import json
import re
import urllib.error
import urllib.request
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from .categories import OTHER
from .categorize import resolve_category
from .dates import format_date
from .entry import OCR_FAILED_HINT, ManualEntry
from .errors import OcrError
from .logging_setup import get_logger

logger = get_logger(__name__)

NOT_AVAILABLE = "N/A"
UNKNOWN_ITEM = "Unknown Item"

_TOTAL_RE = re.compile(
    r"(total|amount)[:\s]*(\d{1,3}(?:[.,]\d{3})*(?:[.,]\d{1,2})?)", re.IGNORECASE
)
_NON_US_DIGITS_RE = re.compile(r"[^0-9.]")
_IMAGE_PREVIEW_CHARS = 200

type OcrSubmit = Callable[[str], Any]


# ---------------------------------------------------------------------------
# Parsed result
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class InvoiceFields:
    supplier_name: str
    supplier_address: str
    supplier_phone: str
    invoice_date: str
    invoice_number: str
    total: str
    subtotal: str
    tax_amount: str
    payment_method: str
    category: str
    items: tuple[dict[str, str], ...]
    raw_text: str

    def to_document(
        self, *, user_id: str, now: datetime, image_base64: str | None = None
    ) -> dict[str, Any]:
        """Store document for this scan; ``date`` is the save time."""

        doc: dict[str, Any] = {
            "userId": user_id,
            "supplierName": self.supplier_name,
            "supplierAddress": self.supplier_address,
            "supplierPhone": self.supplier_phone,
            "invoiceDate": self.invoice_date,
            "invoiceNumber": self.invoice_number,
            "fullText": self.raw_text,
            "totalAmount": self.total,
            "subtotal": self.subtotal,
            "taxAmount": self.tax_amount,
            "paymentMethod": self.payment_method,
            "items": [dict(it) for it in self.items],
            "category": self.category,
            "date": now,
        }
        if image_base64:
            doc["receiptImageBase64"] = image_base64[:_IMAGE_PREVIEW_CHARS] + "..."
        return doc


@dataclass(frozen=True, slots=True)
class ScanOutcome:
    """Either a parsed ``invoice`` or a ``manual_draft`` to finish by hand."""

    invoice: InvoiceFields | None = None
    manual_draft: ManualEntry | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.invoice is not None


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def _text(v: Any, default: str = NOT_AVAILABLE) -> str:
    # Empty strings, zero and False all mean "not extracted".
    if v is None or v == "" or v == 0:
        return default
    return v if isinstance(v, str) else str(v)


def _extract_output(payload: Any) -> Mapping[str, Any]:
    if isinstance(payload, list | tuple):
        if not payload or not isinstance(payload[0], Mapping):
            raise OcrError("Invalid OCR result structure. Missing 'output' field.")
        payload = payload[0].get("output")
    if not isinstance(payload, Mapping):
        raise OcrError("Invalid OCR result structure. Missing 'output' field.")
    return payload


def _line_items(raw: Any) -> tuple[dict[str, str], ...]:
    if not isinstance(raw, list):
        return ()
    items = []
    for it in raw:
        if not isinstance(it, Mapping):
            continue
        items.append(
            {
                "name": _text(it.get("description"), UNKNOWN_ITEM),
                "quantity": _text(it.get("quantity")),
                "unitPrice": _text(it.get("unit_price")),
                "itemTotal": _text(it.get("item_total")),
            }
        )
    return tuple(items)


def recover_total(raw_text: str) -> str | None:
    """Pull a total out of free OCR text (``"Total: 1,234.50"`` -> ``"1234.50"``)."""

    m = _TOTAL_RE.search(raw_text)
    if m is None:
        return None
    return _NON_US_DIGITS_RE.sub("", m.group(2))


def compose_raw_text(out: Mapping[str, str], items: tuple[dict[str, str], ...]) -> str:
    item_text = ", ".join(
        f"{it['name']} x{it['quantity']} @{it['unitPrice']} = {it['itemTotal']}" for it in items
    )
    return (
        f"Category: {out['category']}\n"
        f"Supplier: {out['supplier_name']} ({out['supplier_address']}, {out['supplier_phone']})\n"
        f"Date: {out['invoice_date']}\n"
        f"Invoice #: {out['invoice_number']}\n"
        f"Total: {out['total']}\n"
        f"Subtotal: {out['subtotal']}\n"
        f"Tax: {out['tax_amount']}\n"
        f"Payment: {out['payment_method']}\n"
        f"Items: {item_text}"
    )


def parse_ocr_response(payload: Any) -> InvoiceFields:
    """Convert the workflow's JSON answer into :class:`InvoiceFields`.

    Raises :class:`OcrError` when the answer has no invoice object.
    """

    out = _extract_output(payload)
    fields = {
        "category": _text(out.get("category"), OTHER),
        "supplier_name": _text(out.get("supplier_name")),
        "supplier_address": _text(out.get("supplier_address")),
        "supplier_phone": _text(out.get("supplier_phone")),
        "invoice_date": _text(out.get("invoice_date")),
        "invoice_number": _text(out.get("invoice_number")),
        "total": _text(out.get("total_amount")),
        "subtotal": _text(out.get("subtotal")),
        "tax_amount": _text(out.get("tax_amount")),
        "payment_method": _text(out.get("payment_method")),
    }
    items = _line_items(out.get("line_items"))
    raw_text = compose_raw_text(fields, items)

    workflow_text = out.get("rawText")
    total = fields["total"]
    if isinstance(workflow_text, str) and workflow_text and total in (NOT_AVAILABLE, "0"):
        recovered = recover_total(workflow_text)
        if recovered:
            logger.debug("recovered total %r from OCR raw text", recovered)
            total = recovered

    return InvoiceFields(
        supplier_name=fields["supplier_name"],
        supplier_address=fields["supplier_address"],
        supplier_phone=fields["supplier_phone"],
        invoice_date=fields["invoice_date"],
        invoice_number=fields["invoice_number"],
        total=total,
        subtotal=fields["subtotal"],
        tax_amount=fields["tax_amount"],
        payment_method=fields["payment_method"],
        category=resolve_category(fields["category"], raw_text),
        items=items,
        raw_text=raw_text,
    )


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class WebhookOcrClient:
    """POST a base64 image to the OCR webhook and return the decoded JSON."""

    def __init__(self, url: str | None, *, timeout: float = 30.0) -> None:
        self.url = url
        self.timeout = timeout

    def __call__(self, image_base64: str) -> Any:
        if not self.url:
            raise OcrError("OCR webhook URL is not configured")

        data = json.dumps({"image": image_base64}).encode("utf-8")
        req = urllib.request.Request(self.url, data=data, method="POST")
        req.add_header("Content-Type", "application/json")

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = resp.read()
        except urllib.error.HTTPError as e:
            err_body = e.read().decode("utf-8", errors="replace") if e.fp else ""
            raise OcrError(f"OCR workflow returned error: {e.code} {err_body}".rstrip()) from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise OcrError(f"OCR workflow unreachable: {e}") from e

        try:
            return json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise OcrError("OCR workflow returned invalid JSON") from e


# ---------------------------------------------------------------------------
# Scan flow
# ---------------------------------------------------------------------------


def manual_draft(today: date, *, scan_failed: bool = True) -> ManualEntry:
    """Blank manual-entry form dated ``today``."""

    return ManualEntry(
        date=format_date(today),
        category=OTHER,
        description=OCR_FAILED_HINT if scan_failed else "",
    )


def encode_image(image_bytes: bytes) -> str:
    return base64.b64encode(image_bytes).decode("ascii")


def scan_receipt(image_bytes: bytes, submit: OcrSubmit, *, today: date) -> ScanOutcome:
    """Run one image through ``submit`` and parse the answer.

    Any :class:`OcrError` becomes a ``manual_draft`` outcome; nothing is
    raised for workflow failures.
    """

    try:
        payload = submit(encode_image(image_bytes))
        invoice = parse_ocr_response(payload)
    except OcrError as exc:
        logger.warning("OCR scan failed: %s", exc)
        return ScanOutcome(manual_draft=manual_draft(today), error=str(exc))
    logger.info("OCR scan parsed: supplier=%s total=%s", invoice.supplier_name, invoice.total)
    return ScanOutcome(invoice=invoice)


__all__ = [
    "InvoiceFields",
    "ScanOutcome",
    "WebhookOcrClient",
    "parse_ocr_response",
    "recover_total",
    "compose_raw_text",
    "manual_draft",
    "encode_image",
    "scan_receipt",
]
