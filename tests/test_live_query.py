from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest
from receipt_ledger.errors import SubscriptionError
from receipt_ledger.live_query import LiveQuery
from receipt_ledger.models import Bucket, FilterSpec

from tests.helpers.store_stub import FakeStore

USER = "user-1"


def _doc(doc_id: str, amount: str, category: str, day: int, *, user: str = USER) -> dict:
    return {
        "id": doc_id,
        "userId": user,
        "totalAmount": amount,
        "category": category,
        "date": datetime(2024, 3, day, 12, tzinfo=UTC),
    }


def test_loading_until_first_snapshot() -> None:
    store = FakeStore()
    q = LiveQuery(store, USER).start()

    assert q.loading
    assert q.active
    assert q.records == ()
    assert q.result.total_expenses == 0

    store.push(USER, [_doc("a", "10", "Shopping", 5)])
    assert not q.loading
    assert q.error is None
    assert [t.id for t in q.records] == ["a"]
    assert q.result.total_expenses == Decimal(10)


def test_every_snapshot_replaces_the_previous_one() -> None:
    store = FakeStore()
    q = LiveQuery(store, USER).start()
    store.push(USER, [_doc("a", "10", "Shopping", 5), _doc("b", "5", "Health", 6)])
    store.push(USER, [_doc("b", "7", "Health", 6)])

    assert [t.id for t in q.records] == ["b"]
    assert q.result.total_expenses == Decimal(7)


def test_missing_user_is_an_error_without_subscribing() -> None:
    store = FakeStore()
    q = LiveQuery(store, None).start()

    assert isinstance(q.error, SubscriptionError)
    assert str(q.error) == "User not logged in."
    assert not q.loading
    assert store.subscriptions == []


def test_store_error_becomes_error_state() -> None:
    store = FakeStore()
    q = LiveQuery(store, USER).start()
    store.push(USER, [_doc("a", "10", "Shopping", 5)])
    store.fail(USER, PermissionError("permission denied"))

    assert isinstance(q.error, SubscriptionError)
    assert "permission denied" in str(q.error)
    assert not q.active
    # Last good snapshot stays readable.
    assert [t.id for t in q.records] == ["a"]


def test_subscribe_raising_is_reported_as_error() -> None:
    store = FakeStore(subscribe_error=ConnectionError("unreachable"))
    q = LiveQuery(store, USER).start()
    assert isinstance(q.error, SubscriptionError)
    assert "unreachable" in str(q.error)


def test_cancel_unsubscribes_and_ignores_late_snapshots() -> None:
    store = FakeStore()
    q = LiveQuery(store, USER).start()
    sub = store.subscriptions[0]
    store.push(USER, [_doc("a", "10", "Shopping", 5)])

    q.cancel()
    q.cancel()
    assert sub.unsubscribe_calls == 1
    assert store.subscriptions == []
    assert not q.active

    sub.on_snapshot([_doc("z", "99", "Shopping", 5)])
    assert [t.id for t in q.records] == ["a"]

    with pytest.raises(RuntimeError):
        q.start()


def test_context_manager_tears_down() -> None:
    store = FakeStore()
    with LiveQuery(store, USER) as q:
        assert q.active
        assert len(store.subscriptions) == 1
    assert store.subscriptions == []


def test_start_is_idempotent() -> None:
    store = FakeStore()
    q = LiveQuery(store, USER)
    q.start()
    q.start()
    assert len(store.subscriptions) == 1


def test_set_filters_reaggregates_cached_snapshot() -> None:
    store = FakeStore()
    q = LiveQuery(store, USER).start()
    store.push(USER, [_doc("a", "10", "Shopping", 5), _doc("b", "5", "Health", 6)])

    result = q.set_filters(FilterSpec(categories={"Health"}))
    assert result is q.result
    assert [t.id for t in q.result.visible_transactions] == ["b"]
    assert [t.id for t in q.records] == ["a", "b"]
    assert q.filters.categories == frozenset({"Health"})


def test_set_bucket_switches_labels() -> None:
    store = FakeStore()
    q = LiveQuery(store, USER).start()
    store.push(USER, [_doc("a", "10", "Shopping", 5)])
    q.set_bucket(Bucket.MONTH)
    assert [b.label for b in q.result.bucket_breakdown] == ["03/24"]


def test_current_month_default_filter() -> None:
    store = FakeStore()
    q = LiveQuery(store, USER, filters=FilterSpec.current_month(date(2024, 3, 5))).start()
    store.push(
        USER,
        [_doc("in", "10", "Shopping", 5), _doc("later", "10", "Shopping", 6)],
    )
    assert [t.id for t in q.result.visible_transactions] == ["in"]


def test_foreign_documents_are_dropped_and_logged(caplog: pytest.LogCaptureFixture) -> None:
    store = FakeStore()
    q = LiveQuery(store, USER).start()
    with caplog.at_level(logging.WARNING, logger="receipt_ledger.live_query"):
        store.push_to_all(
            [_doc("mine", "10", "Shopping", 5), _doc("theirs", "99", "Shopping", 5, user="u2")]
        )

    assert [t.id for t in q.records] == ["mine"]
    assert q.result.total_expenses == Decimal(10)
    assert "theirs" in caplog.text


def test_listeners_are_notified_and_removable() -> None:
    store = FakeStore()
    q = LiveQuery(store, USER).start()
    seen: list[int] = []
    remove = q.add_listener(lambda lq: seen.append(len(lq.records)))

    store.push(USER, [_doc("a", "10", "Shopping", 5)])
    q.set_filters(FilterSpec(search_text="x"))
    remove()
    store.push(USER, [])

    assert seen == [1, 1]
