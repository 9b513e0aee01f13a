"""SQL-backed transaction document store with in-process push delivery.

``SqlTransactionStore`` keeps each user's documents in ``ledger_transactions``
and notifies subscribers of that user with a fresh snapshot after every
committed write made through the same instance. Writes made by other
processes are picked up with :meth:`SqlTransactionStore.refresh`.

Every read and write is scoped to a single ``user_id``; an update or delete
of a row the caller does not own fails exactly like a missing row.

Documents are plain mappings::

    {"id": "...", "userId": "...", "date": datetime, "totalAmount": "12.50",
     "category": "...", "supplierName": "...", "fullText": "...",
     "invoiceDate": "...", "items": [...], **extra}
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, date, datetime, time, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .client import session_scope
from .models.ledger import LedgerTransaction

logger = logging.getLogger(__name__)

# Document key -> column attribute for the well-known fields.
_COLUMNS: dict[str, str] = {
    "totalAmount": "total_amount",
    "category": "category",
    "supplierName": "supplier_name",
    "fullText": "full_text",
    "invoiceDate": "invoice_date",
}
_RESERVED = frozenset({"id", "userId", "date", "items", *_COLUMNS})
_EARLIEST = datetime.min.replace(tzinfo=UTC) + timedelta(days=1)
_LATEST = datetime.max.replace(tzinfo=UTC) - timedelta(days=1)


def _to_utc(raw: Any) -> datetime | None:
    """Store-side timestamp normalization; unusable values become ``None``."""

    if isinstance(raw, datetime):
        dt = raw
    elif isinstance(raw, date):
        dt = datetime.combine(raw, time.min)
    elif isinstance(raw, str):
        try:
            dt = datetime.fromisoformat(raw.strip())
        except ValueError:
            return None
    else:
        return None
    try:
        utc = dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)
    except OverflowError:
        return None
    # Keep a day of headroom so readers can shift the value to any offset.
    if not _EARLIEST <= utc <= _LATEST:
        return None
    return utc


def _from_db(dt: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back; values were written as UTC.
    if dt is None:
        return None
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt


def _items(raw: Any) -> list[dict[str, Any]]:
    if not isinstance(raw, list | tuple):
        return []
    return [dict(it) for it in raw if isinstance(it, Mapping)]


def _apply(row: LedgerTransaction, fields: Mapping[str, Any]) -> None:
    extra = dict(row.extra or {})
    for key, value in fields.items():
        if key in ("id", "userId"):
            continue
        if key == "date":
            row.date = _to_utc(value)
        elif key == "items":
            row.items = _items(value)
        elif key in _COLUMNS:
            setattr(row, _COLUMNS[key], value if isinstance(value, str) else None)
        else:
            extra[key] = value
    row.extra = extra


def to_document(row: LedgerTransaction) -> dict[str, Any]:
    doc: dict[str, Any] = dict(row.extra or {})
    doc.update(
        {
            "id": row.id,
            "userId": row.user_id,
            "date": _from_db(row.date),
            "totalAmount": row.total_amount,
            "category": row.category,
            "supplierName": row.supplier_name,
            "fullText": row.full_text,
            "invoiceDate": row.invoice_date,
            "items": list(row.items or []),
        }
    )
    return doc


class _Subscription:
    def __init__(
        self,
        store: SqlTransactionStore,
        user_id: str,
        on_snapshot: Callable[[Sequence[Mapping[str, Any]]], None],
        on_error: Callable[[BaseException], None],
    ) -> None:
        self._store = store
        self.user_id = user_id
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._store._remove(self)

    def _push(self, snapshot: list[dict[str, Any]]) -> None:
        if not self.active:
            return
        try:
            self._on_snapshot(snapshot)
        except Exception:
            # The write that triggered this push is already committed.
            logger.exception("snapshot callback for user %s raised", self.user_id)

    def _fail(self, exc: BaseException) -> None:
        if self.active:
            self.unsubscribe()
            self._on_error(exc)


class SqlTransactionStore:
    """Document store over ``ledger_transactions``."""

    def __init__(self, database_url: str | None = None) -> None:
        self._database_url = database_url
        self._lock = threading.RLock()
        self._subscribers: dict[str, list[_Subscription]] = {}

    # ---- reads -------------------------------------------------------------

    def _row(self, session: Session, doc_id: str, user_id: str) -> LedgerTransaction:
        row = session.execute(
            select(LedgerTransaction).where(
                LedgerTransaction.id == doc_id, LedgerTransaction.user_id == user_id
            )
        ).scalar_one_or_none()
        if row is None:
            raise LookupError(f"No transaction {doc_id!r} for this user")
        return row

    def snapshot(self, user_id: str) -> list[dict[str, Any]]:
        """Every document owned by ``user_id``, oldest first."""

        with session_scope(database_url=self._database_url) as session:
            rows = session.execute(
                select(LedgerTransaction)
                .where(LedgerTransaction.user_id == user_id)
                .order_by(LedgerTransaction.created_at, LedgerTransaction.id)
            ).scalars()
            return [to_document(r) for r in rows]

    def get(self, doc_id: str, *, user_id: str) -> dict[str, Any]:
        with session_scope(database_url=self._database_url) as session:
            return to_document(self._row(session, doc_id, user_id))

    # ---- subscriptions -----------------------------------------------------

    def subscribe(
        self,
        user_id: str,
        on_snapshot: Callable[[Sequence[Mapping[str, Any]]], None],
        on_error: Callable[[BaseException], None],
    ) -> _Subscription:
        sub = _Subscription(self, user_id, on_snapshot, on_error)
        with self._lock:
            self._subscribers.setdefault(user_id, []).append(sub)
        logger.debug("subscribed to transactions of user %s", user_id)
        self._deliver(user_id, [sub])
        return sub

    def _remove(self, sub: _Subscription) -> None:
        with self._lock:
            subs = self._subscribers.get(sub.user_id, [])
            if sub in subs:
                subs.remove(sub)
            if not subs:
                self._subscribers.pop(sub.user_id, None)

    def _deliver(self, user_id: str, subs: list[_Subscription]) -> None:
        if not subs:
            return
        try:
            snap = self.snapshot(user_id)
        except (SQLAlchemyError, RuntimeError) as exc:
            logger.error("snapshot for user %s failed: %s", user_id, exc)
            for sub in subs:
                sub._fail(exc)
            return
        for sub in subs:
            sub._push(snap)

    def refresh(self, user_id: str | None = None) -> None:
        """Re-push snapshots (all subscribed users when ``user_id`` is None)."""

        with self._lock:
            users = [user_id] if user_id is not None else list(self._subscribers)
            targets = {u: list(self._subscribers.get(u, [])) for u in users}
        for u, subs in targets.items():
            self._deliver(u, subs)

    # ---- writes ------------------------------------------------------------

    def create(self, document: Mapping[str, Any]) -> str:
        user_id = document.get("userId")
        if not isinstance(user_id, str) or not user_id:
            raise ValueError("document must carry a non-empty 'userId'")
        doc_id = str(uuid.uuid4())
        now = datetime.now(UTC)
        with session_scope(database_url=self._database_url) as session:
            row = LedgerTransaction(
                id=doc_id, user_id=user_id, items=[], extra={}, created_at=now, updated_at=now
            )
            _apply(row, document)
            session.add(row)
        logger.info("created transaction %s for user %s", doc_id, user_id)
        self.refresh(user_id)
        return doc_id

    def update(self, doc_id: str, changes: Mapping[str, Any], *, user_id: str) -> None:
        with session_scope(database_url=self._database_url) as session:
            row = self._row(session, doc_id, user_id)
            _apply(row, changes)
            row.updated_at = datetime.now(UTC)
        logger.info("updated transaction %s", doc_id)
        self.refresh(user_id)

    def delete(self, doc_id: str, *, user_id: str) -> None:
        with session_scope(database_url=self._database_url) as session:
            session.delete(self._row(session, doc_id, user_id))
        logger.info("deleted transaction %s", doc_id)
        self.refresh(user_id)


__all__ = ["SqlTransactionStore", "to_document"]
