"""Error types raised across ``receipt_ledger``.

Malformed amounts and dates are never errors: they normalize to ``0`` or to an
unknown date. Everything below is a condition the caller has to act on.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all errors surfaced by this package."""


class ValidationError(LedgerError, ValueError):
    """A manual entry or edit was rejected before reaching the store.

    ``field`` names the offending input (``"date"``, ``"supplier"``,
    ``"total"``, ``"category"``) so a form can highlight it.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class SubscriptionError(LedgerError, RuntimeError):
    """The live query could not be established or was terminated by the store."""


class WriteError(LedgerError, RuntimeError):
    """The store rejected a create, update, or delete."""


class OcrError(LedgerError, RuntimeError):
    """The OCR workflow failed or returned something unusable."""


__all__ = [
    "LedgerError",
    "ValidationError",
    "SubscriptionError",
    "WriteError",
    "OcrError",
]
