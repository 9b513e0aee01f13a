"""Interfaces of the document store this package consumes.

The store owns persistence and delivery; this package only reads snapshots
and issues writes. A snapshot is the complete list of one user's documents,
each a mapping ``{"id": ..., "userId": ..., **fields}``.

``db.store.SqlTransactionStore`` is the SQL-backed implementation shipped in
this repository; tests use an in-memory fake with the same shape.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol

type Document = Mapping[str, Any]
type Snapshot = Sequence[Document]
type SnapshotCallback = Callable[[Snapshot], None]
type ErrorCallback = Callable[[BaseException], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None:
        """Stop delivery. Calling it more than once is allowed."""


class TransactionStore(Protocol):
    def subscribe(
        self,
        user_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        """Deliver ``user_id``'s snapshot now and after every change.

        Failures (unreachable store, permission denied) are reported through
        ``on_error``; delivery stops afterwards.
        """
        ...

    def create(self, document: Document) -> str:
        """Insert ``document`` and return the store-assigned id."""
        ...

    def update(self, doc_id: str, changes: Document, *, user_id: str) -> None:
        """Merge ``changes`` into a document owned by ``user_id``."""
        ...

    def delete(self, doc_id: str, *, user_id: str) -> None:
        """Remove a document owned by ``user_id``."""
        ...


__all__ = [
    "Document",
    "Snapshot",
    "SnapshotCallback",
    "ErrorCallback",
    "Subscription",
    "TransactionStore",
]
