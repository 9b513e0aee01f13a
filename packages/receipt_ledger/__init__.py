"""Public interface for the ``receipt_ledger`` package.

Personal expense tracking over a per-user transaction store: amount
normalization, keyword categorization, filtering and aggregation for summary
views, a live query that follows the store, and manual entry, edit, and scan
writes. There is no runtime logic here, only symbol re-exports.
"""

from .aggregate import aggregate, apply_filters, available_categories
from .amounts import format_amount, normalize_amount
from .categories import ALL_CATEGORIES, EXPENSE_CATEGORIES, INCOME, OTHER, category_color
from .categorize import categorize, resolve_category
from .charts import bar_series, pie_series
from .entry import ManualEntry, build_edit_changes, build_manual_document, validate_entry
from .errors import LedgerError, OcrError, SubscriptionError, ValidationError, WriteError
from .ledger import Ledger
from .live_query import LiveQuery
from .models import (
    AggregateResult,
    Bucket,
    BucketTotal,
    CategoryTotal,
    FilterSpec,
    LineItem,
    SortOrder,
    Transaction,
)
from .ocr import InvoiceFields, ScanOutcome, WebhookOcrClient, parse_ocr_response, scan_receipt
from .store import Subscription, TransactionStore

__all__ = [
    # Core
    "normalize_amount",
    "format_amount",
    "categorize",
    "resolve_category",
    "aggregate",
    "apply_filters",
    "available_categories",
    "pie_series",
    "bar_series",
    "LiveQuery",
    # Writes
    "Ledger",
    "ManualEntry",
    "validate_entry",
    "build_manual_document",
    "build_edit_changes",
    "InvoiceFields",
    "ScanOutcome",
    "WebhookOcrClient",
    "parse_ocr_response",
    "scan_receipt",
    # Models / types
    "Transaction",
    "LineItem",
    "FilterSpec",
    "SortOrder",
    "Bucket",
    "CategoryTotal",
    "BucketTotal",
    "AggregateResult",
    "TransactionStore",
    "Subscription",
    # Taxonomy
    "EXPENSE_CATEGORIES",
    "ALL_CATEGORIES",
    "INCOME",
    "OTHER",
    "category_color",
    # Errors
    "LedgerError",
    "ValidationError",
    "SubscriptionError",
    "WriteError",
    "OcrError",
]
