"""In-memory stand-in for the document store.

``FakeStore`` records every call and lets a test drive the subscription by
hand: ``push(user_id, docs)`` delivers a snapshot, ``fail(user_id, exc)``
reports a subscription error. Writes can be made to raise by setting
``write_error``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any


class FakeSubscription:
    def __init__(self, store: FakeStore, user_id: str, on_snapshot, on_error) -> None:
        self.store = store
        self.user_id = user_id
        self.on_snapshot: Callable[[Sequence[Mapping[str, Any]]], None] = on_snapshot
        self.on_error: Callable[[BaseException], None] = on_error
        self.unsubscribe_calls = 0

    @property
    def active(self) -> bool:
        return self in self.store.subscriptions

    def unsubscribe(self) -> None:
        self.unsubscribe_calls += 1
        if self in self.store.subscriptions:
            self.store.subscriptions.remove(self)


class FakeStore:
    def __init__(self, *, subscribe_error: BaseException | None = None) -> None:
        self.subscriptions: list[FakeSubscription] = []
        self.created: list[dict[str, Any]] = []
        self.updated: list[tuple[str, dict[str, Any], str]] = []
        self.deleted: list[tuple[str, str]] = []
        self.subscribe_error = subscribe_error
        self.write_error: BaseException | None = None
        self._next_id = 0

    # ---- store surface ------------------------------------------------------

    def subscribe(self, user_id, on_snapshot, on_error) -> FakeSubscription:
        if self.subscribe_error is not None:
            raise self.subscribe_error
        sub = FakeSubscription(self, user_id, on_snapshot, on_error)
        self.subscriptions.append(sub)
        return sub

    def create(self, document: Mapping[str, Any]) -> str:
        if self.write_error is not None:
            raise self.write_error
        self._next_id += 1
        doc_id = f"doc-{self._next_id}"
        self.created.append(dict(document))
        return doc_id

    def update(self, doc_id: str, changes: Mapping[str, Any], *, user_id: str) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.updated.append((doc_id, dict(changes), user_id))

    def delete(self, doc_id: str, *, user_id: str) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.deleted.append((doc_id, user_id))

    # ---- test controls -----------------------------------------------------

    def push(self, user_id: str, docs: Sequence[Mapping[str, Any]]) -> None:
        for sub in list(self.subscriptions):
            if sub.user_id == user_id:
                sub.on_snapshot(list(docs))

    def push_to_all(self, docs: Sequence[Mapping[str, Any]]) -> None:
        for sub in list(self.subscriptions):
            sub.on_snapshot(list(docs))

    def fail(self, user_id: str, exc: BaseException) -> None:
        for sub in list(self.subscriptions):
            if sub.user_id == user_id:
                sub.on_error(exc)
