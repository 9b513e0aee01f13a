"""Category taxonomy and label helpers.

The taxonomy is fixed: nine expense labels plus the ``"Income"`` sentinel,
which marks a record as revenue and keeps it out of every expense figure.
Records may still carry labels outside the taxonomy (older writers, manual
edits through other clients); those are kept verbatim for filtering and
search and fall into ``"Other"`` only where a taxonomy label is required.

Exports
-------
- ``EXPENSE_CATEGORIES``, ``ALL_CATEGORIES``, ``INCOME``, ``OTHER``,
  ``UNCATEGORIZED``: label constants.
- ``is_income(...)``, ``effective_category(...)``: per-record helpers used by
  the aggregator.
- ``normalize_name(...)`` and ``validate_name(...)``: label hygiene shared by
  manual-entry validation.
- ``category_color(...)``: stable chart color for a label.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

# ---------------------------
# Taxonomy
# ---------------------------

INCOME = "Income"
OTHER = "Other"
# Value the OCR workflow uses when it could not decide.
UNCATEGORIZED = "Uncategorized"

EXPENSE_CATEGORIES: tuple[str, ...] = (
    "Food & Dining",
    "Transportation",
    "Shopping",
    "Utilities",
    "Housing",
    "Entertainment",
    "Health",
    "Education",
    OTHER,
)

ALL_CATEGORIES: tuple[str, ...] = (*EXPENSE_CATEGORIES[:-1], INCOME, OTHER)


def is_income(category: str | None) -> bool:
    return category == INCOME


def effective_category(category: str | None) -> str:
    """Return the label a record is aggregated under.

    Missing or blank labels count as ``"Other"``; anything else, including
    labels outside the taxonomy, is returned verbatim.
    """

    if category is None or not category.strip():
        return OTHER
    return category


# ---------------------------
# Name normalization/validation
# ---------------------------

_ALLOWED_RE = re.compile(r"^[A-Za-z0-9 &\-/]+$")


def normalize_name(name: str) -> str:
    """Return a trimmed, single-spaced representation of ``name``."""

    return " ".join(name.strip().split())


@dataclass(frozen=True, slots=True)
class NameValidation:
    ok: bool
    reason: str | None = None


def validate_name(
    name: str,
    *,
    allow_income: bool = True,
    min_len: int = 1,
    max_len: int = 64,
) -> NameValidation:
    """Check that ``name`` is a usable taxonomy label.

    Rules
    -----
    - Trim whitespace; enforce length bounds 1..64.
    - Allowed characters: letters, numbers, spaces, and ``& - /``.
    - Must be one of ``ALL_CATEGORIES`` (``EXPENSE_CATEGORIES`` when
      ``allow_income`` is false).
    """

    n = normalize_name(name)
    if len(n) < min_len:
        return NameValidation(False, "Category cannot be empty")
    if len(n) > max_len:
        return NameValidation(False, f"Category must be at most {max_len} characters")
    if not _ALLOWED_RE.match(n):
        return NameValidation(False, "Only letters, numbers, spaces, and & - / are allowed")
    allowed = ALL_CATEGORIES if allow_income else EXPENSE_CATEGORIES
    if n not in allowed:
        return NameValidation(False, f"Unknown category: {n!r}")
    return NameValidation(True, None)


# ---------------------------
# Chart colors
# ---------------------------

PALETTE: tuple[str, ...] = (
    "#FF6384",
    "#36A2EB",
    "#FFCE56",
    "#4BC0C0",
    "#9966FF",
    "#FF9F40",
    "#E7E9ED",
    "#8B0000",
    "#008000",
    "#ADD8E6",
)

_TAXONOMY_COLORS: dict[str, str] = {
    c: PALETTE[i % len(PALETTE)] for i, c in enumerate(ALL_CATEGORIES)
}


def category_color(category: str) -> str:
    """Return a stable hex color for ``category``.

    Taxonomy labels get a fixed palette slot; other labels hash into the
    palette so the same label always renders the same way.
    """

    color = _TAXONOMY_COLORS.get(category)
    if color is not None:
        return color
    digest = hashlib.sha256(category.encode("utf-8")).digest()
    return PALETTE[int.from_bytes(digest[:4], "big") % len(PALETTE)]


__all__ = [
    "INCOME",
    "OTHER",
    "UNCATEGORIZED",
    "EXPENSE_CATEGORIES",
    "ALL_CATEGORIES",
    "PALETTE",
    "is_income",
    "effective_category",
    "normalize_name",
    "validate_name",
    "NameValidation",
    "category_color",
]
