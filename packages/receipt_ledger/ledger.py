"""Writes against the document store for one signed-in user.

:class:`Ledger` is the only place this package mutates the store. Inputs are
validated before any store call; store failures come back as
:class:`WriteError` carrying the store's message. No local copy is updated:
open :class:`~receipt_ledger.live_query.LiveQuery` instances pick the change
up from the next pushed snapshot.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime, tzinfo
from typing import Any

from .entry import ManualEntry, build_edit_changes, build_manual_document, validate_entry
from .errors import ValidationError, WriteError
from .logging_setup import get_logger
from .ocr import InvoiceFields
from .store import TransactionStore

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Ledger:
    def __init__(
        self,
        store: TransactionStore,
        user_id: str | None,
        *,
        tz: tzinfo = UTC,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._user_id = user_id or ""
        self._tz = tz
        self._clock = clock

    @property
    def user_id(self) -> str:
        return self._user_id

    def _require_user(self, action: str) -> str:
        if not self._user_id:
            raise WriteError(f"You need to be logged in to {action}.")
        return self._user_id

    def _create(self, document: Mapping[str, Any], what: str) -> str:
        try:
            doc_id = self._store.create(document)
        except Exception as exc:
            logger.error("create %s failed for user %s: %s", what, self._user_id, exc)
            raise WriteError(f"Could not save {what}: {exc}") from exc
        logger.info("saved %s %s for user %s", what, doc_id, self._user_id)
        return doc_id

    # ---- operations --------------------------------------------------------

    def add_manual_entry(self, entry: ManualEntry, *, allow_income: bool = True) -> str:
        """Validate and store a manually typed expense; returns the new id."""

        user_id = self._require_user("save manual transactions")
        validate_entry(entry, allow_income=allow_income)
        doc = build_manual_document(entry, user_id=user_id, now=self._clock())
        return self._create(doc, "manual expense")

    def edit_transaction(self, doc_id: str, entry: ManualEntry) -> None:
        """Replace the editable fields of ``doc_id`` with ``entry``."""

        user_id = self._require_user("edit transactions")
        if not doc_id:
            raise ValidationError("id", "No transaction selected.")
        validate_entry(entry)
        changes = build_edit_changes(entry, tz=self._tz)
        try:
            self._store.update(doc_id, changes, user_id=user_id)
        except Exception as exc:
            logger.error("update of %s failed: %s", doc_id, exc)
            raise WriteError(f"Failed to update transaction: {exc}") from exc
        logger.info("updated transaction %s", doc_id)

    def delete_transaction(self, doc_id: str) -> None:
        user_id = self._require_user("delete transactions")
        if not doc_id:
            raise ValidationError("id", "No transaction selected.")
        try:
            self._store.delete(doc_id, user_id=user_id)
        except Exception as exc:
            logger.error("delete of %s failed: %s", doc_id, exc)
            raise WriteError(f"Failed to delete transaction: {exc}") from exc
        logger.info("deleted transaction %s", doc_id)

    def save_scan(self, invoice: InvoiceFields, *, image_base64: str | None = None) -> str:
        """Store a parsed receipt; returns the new id."""

        user_id = self._require_user("save transactions")
        doc = invoice.to_document(user_id=user_id, now=self._clock(), image_base64=image_base64)
        return self._create(doc, "transaction")


__all__ = ["Ledger"]
