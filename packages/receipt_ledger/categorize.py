"""Keyword categorization fallback.

The OCR workflow usually returns a category. When it does not, or returns
``"Uncategorized"`` or ``"Other"``, the composed receipt text is run through
a fixed keyword table instead. Re-attempting ``"Other"`` is intentional: the
workflow answers ``"Other"`` far more often than the keyword table does.

Matching is a lower-cased substring test; tables are checked in order and the
first hit wins, so a receipt mentioning both coffee and a taxi is Food &
Dining. The table never yields ``"Income"``; scanned receipts are expenses.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import NamedTuple

from .categories import OTHER, UNCATEGORIZED


class KeywordRule(NamedTuple):
    category: str
    keywords: tuple[str, ...]


KEYWORD_RULES: Sequence[KeywordRule] = (
    KeywordRule("Food & Dining", ("cafe", "restaurant", "food", "meal", "coffee", "drink")),
    KeywordRule("Transportation", ("gas", "bus", "taxi", "travel", "transport", "fuel")),
    KeywordRule("Shopping", ("supermarket", "shopping", "store", "market", "groceries")),
    KeywordRule("Utilities", ("electricity", "water", "internet", "utilities", "bill")),
    KeywordRule("Housing", ("rent", "housing", "home")),
)


def categorize(text: str) -> str:
    """Map free text to a taxonomy label; ``"Other"`` when nothing matches."""

    lowered = text.lower()
    for rule in KEYWORD_RULES:
        if any(k in lowered for k in rule.keywords):
            return rule.category
    return OTHER


def needs_recategorization(category: str | None) -> bool:
    """True when an upstream category should be replaced by :func:`categorize`."""

    if category is None:
        return True
    c = category.strip()
    return not c or c in (UNCATEGORIZED, OTHER)


def resolve_category(upstream: str | None, text: str) -> str:
    """Keep a confident upstream category, otherwise categorize ``text``."""

    if needs_recategorization(upstream):
        return categorize(text)
    assert upstream is not None
    return upstream


__all__ = [
    "KeywordRule",
    "KEYWORD_RULES",
    "categorize",
    "needs_recategorization",
    "resolve_category",
]
