"""Currency-string normalization.

Receipt totals arrive as whatever the OCR workflow or the user typed:
``"150,000 VND"``, ``"$1,234.50"``, ``"1.234,50"``. The raw string stays the
source of truth; the numeric value is re-derived on every read.

Rules for :func:`normalize_amount`:

- keep only digits, commas and periods (signs and currency markers go);
- both marks, comma first seen after the period → comma is the decimal mark
  (``1.234,50``);
- both marks, period first seen after the comma → commas are thousands
  separators (``1,234.50``);
- only commas in clean 3-digit groups → thousands separators (``150,000``);
- only commas otherwise → the first comma is the decimal mark (``1234,50``);
- only periods in two or more clean 3-digit groups → thousands separators
  (``1.234.567``); a single period is a decimal point (``1234.50``);
- the value is the leading ``digits[.digits]`` prefix; no prefix → ``0``.
"""

from __future__ import annotations

import re
from decimal import Decimal

_ZERO = Decimal(0)

# Anything that is not a digit, comma, or period.
_STRIP_RE = re.compile(r"[^\d.,]")
_COMMA_GROUPS_RE = re.compile(r"\d{1,3}(?:,\d{3})+")
_PERIOD_GROUPS_RE = re.compile(r"\d{1,3}(?:\.\d{3}){2,}")
# Leading real-number prefix of an already-cleaned string.
_PREFIX_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")
# Leading number of user-typed input (whitespace and sign allowed).
_TYPED_RE = re.compile(r"\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+))")


def _canonicalize_separators(s: str) -> str:
    comma = s.find(",")
    period = s.find(".")
    if comma >= 0 and period >= 0:
        if comma > period:
            # 1.234,50 -> 1234.50
            head, _, tail = s.replace(".", "").rpartition(",")
            return head + "." + tail
        # 1,234.50 -> 1234.50
        return s.replace(",", "")
    if comma >= 0:
        if _COMMA_GROUPS_RE.fullmatch(s):
            return s.replace(",", "")
        # 1234,50 -> 1234.50
        return s.replace(",", ".", 1)
    if period >= 0 and _PERIOD_GROUPS_RE.fullmatch(s):
        return s.replace(".", "")
    return s


def normalize_amount(raw: object) -> Decimal:
    """Return the non-negative magnitude encoded in ``raw``.

    Never raises. Non-string input and strings without a numeric prefix
    normalize to ``Decimal(0)``.
    """

    if not isinstance(raw, str):
        return _ZERO
    cleaned = _canonicalize_separators(_STRIP_RE.sub("", raw))
    m = _PREFIX_RE.match(cleaned)
    if m is None:
        return _ZERO
    return Decimal(m.group(0))


def format_amount(value: Decimal) -> str:
    """Render ``value`` as a plain decimal string without trailing zeros.

    ``Decimal("100000")`` → ``"100000"``, ``Decimal("1234.50")`` → ``"1234.5"``.
    This is the text that free-text search matches against.
    """

    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def parse_leading_number(text: str | None) -> Decimal | None:
    """Return the number a typed total starts with, or ``None``.

    Used to reject non-numeric totals in manual entry. ``"12.5 USD"`` is
    accepted as ``12.5``; ``"abc"`` is rejected.
    """

    if not text:
        return None
    m = _TYPED_RE.match(text)
    if m is None:
        return None
    return Decimal(m.group(1))


__all__ = ["normalize_amount", "format_amount", "parse_leading_number"]
