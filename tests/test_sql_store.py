from __future__ import annotations

import logging
from datetime import UTC, date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
from db.client import session_scope
from db.models.ledger import LedgerTransaction
from db.store import SqlTransactionStore
from receipt_ledger.entry import ManualEntry
from receipt_ledger.errors import SubscriptionError, WriteError
from receipt_ledger.ledger import Ledger
from receipt_ledger.live_query import LiveQuery
from receipt_ledger.models import FilterSpec

from tests.helpers.db import bootstrap_sqlite_db


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "ledger.sqlite3")


@pytest.fixture
def store(db_url: str) -> SqlTransactionStore:
    return SqlTransactionStore(db_url)


def _doc(user: str, amount: str, **extra: Any) -> dict[str, Any]:
    doc = {
        "userId": user,
        "totalAmount": amount,
        "category": "Shopping",
        "supplierName": "Big C",
        "date": datetime(2024, 3, 5, 12, tzinfo=UTC),
        "items": [{"name": "Milk", "quantity": "1", "unitPrice": amount, "itemTotal": amount}],
    }
    doc.update(extra)
    return doc


def test_create_and_read_back_round_trip(store: SqlTransactionStore) -> None:
    doc_id = store.create(_doc("u1", "45,000", taxAmount="5,000"))
    doc = store.get(doc_id, user_id="u1")

    assert doc["id"] == doc_id
    assert doc["userId"] == "u1"
    assert doc["totalAmount"] == "45,000"
    assert doc["taxAmount"] == "5,000"
    assert doc["items"][0]["name"] == "Milk"
    # SQLite returns naive values; they come back as UTC.
    assert doc["date"] == datetime(2024, 3, 5, 12, tzinfo=UTC)


def test_dates_are_stored_in_utc(store: SqlTransactionStore) -> None:
    ict = timezone(timedelta(hours=7))
    doc_id = store.create(_doc("u1", "1", date=datetime(2024, 3, 6, 2, tzinfo=ict)))
    assert store.get(doc_id, user_id="u1")["date"] == datetime(2024, 3, 5, 19, tzinfo=UTC)


def test_dates_at_the_calendar_edge_are_stored_as_unknown(store: SqlTransactionStore) -> None:
    doc_id = store.create(_doc("u1", "1", date="9999-12-31T23:00:00-05:00"))
    assert store.get(doc_id, user_id="u1")["date"] is None


def test_create_requires_owner(store: SqlTransactionStore) -> None:
    with pytest.raises(ValueError):
        store.create({"totalAmount": "1"})


def test_snapshot_is_scoped_to_owner(store: SqlTransactionStore) -> None:
    store.create(_doc("u1", "1"))
    store.create(_doc("u2", "2"))
    assert [d["totalAmount"] for d in store.snapshot("u1")] == ["1"]


def test_update_merges_and_is_owner_scoped(store: SqlTransactionStore, db_url: str) -> None:
    doc_id = store.create(_doc("u1", "10", paymentMethod="Cash"))
    store.update(doc_id, {"totalAmount": "12", "category": "Health"}, user_id="u1")

    doc = store.get(doc_id, user_id="u1")
    assert (doc["totalAmount"], doc["category"], doc["paymentMethod"]) == ("12", "Health", "Cash")
    assert doc["supplierName"] == "Big C"

    with pytest.raises(LookupError):
        store.update(doc_id, {"totalAmount": "99"}, user_id="u2")
    with session_scope(database_url=db_url) as s:
        assert s.get(LedgerTransaction, doc_id).total_amount == "12"


def test_delete_is_owner_scoped(store: SqlTransactionStore) -> None:
    doc_id = store.create(_doc("u1", "10"))
    with pytest.raises(LookupError):
        store.delete(doc_id, user_id="u2")
    store.delete(doc_id, user_id="u1")
    assert store.snapshot("u1") == []
    with pytest.raises(LookupError):
        store.delete(doc_id, user_id="u1")


def test_subscribers_receive_initial_and_pushed_snapshots(store: SqlTransactionStore) -> None:
    seen: list[list[str]] = []
    other: list[int] = []
    sub = store.subscribe("u1", lambda snap: seen.append([d["totalAmount"] for d in snap]), _boom)
    store.subscribe("u2", lambda snap: other.append(len(snap)), _boom)

    doc_id = store.create(_doc("u1", "5"))
    store.update(doc_id, {"totalAmount": "6"}, user_id="u1")
    sub.unsubscribe()
    sub.unsubscribe()
    store.delete(doc_id, user_id="u1")

    assert seen == [[], ["5"], ["6"]]
    assert other == [0]


def test_refresh_picks_up_writes_from_another_instance(db_url: str) -> None:
    reader = SqlTransactionStore(db_url)
    writer = SqlTransactionStore(db_url)
    seen: list[int] = []
    reader.subscribe("u1", lambda snap: seen.append(len(snap)), _boom)

    writer.create(_doc("u1", "5"))
    assert seen == [0]
    reader.refresh()
    assert seen == [0, 1]


def test_unreachable_database_reports_through_on_error(tmp_path: Path) -> None:
    store = SqlTransactionStore(f"sqlite+pysqlite:///{tmp_path}/missing-dir/x.db")
    errors: list[BaseException] = []
    sub = store.subscribe("u1", lambda snap: pytest.fail("unexpected snapshot"), errors.append)
    assert len(errors) == 1
    assert not sub.active


def test_live_query_end_to_end_with_ledger(store: SqlTransactionStore) -> None:
    ledger = Ledger(store, "u1", clock=lambda: datetime(2024, 3, 5, 9, tzinfo=UTC))
    with LiveQuery(store, "u1", filters=FilterSpec(start_date=date(2024, 3, 5))) as q:
        assert not q.loading
        assert q.result.total_expenses == 0

        first = ledger.add_manual_entry(
            ManualEntry(date="2024-03-05", supplier="Pho 24", total="100,000",
                        category="Food & Dining", description="Lunch")
        )
        ledger.add_manual_entry(
            ManualEntry(date="2024-03-05", supplier="Salary", total="50.00", category="Income")
        )
        assert q.result.total_expenses == Decimal(100000)
        assert len(q.result.visible_transactions) == 2

        ledger.edit_transaction(
            first,
            ManualEntry(date="2024-03-04", supplier="Pho 24", total="100,000",
                        category="Food & Dining", description="Lunch"),
        )
        # Re-timestamped to 2024-03-04, now outside the filter.
        assert q.result.total_expenses == 0
        assert [t.supplier_name for t in q.result.visible_transactions] == ["Salary"]

        with pytest.raises(WriteError, match="Failed to update transaction"):
            Ledger(store, "u2").edit_transaction(
                first,
                ManualEntry(date="2024-03-04", supplier="x", total="1", category="Other"),
            )


def test_live_query_with_unset_database_url_is_an_error_state() -> None:
    q = LiveQuery(SqlTransactionStore(None), "u1").start()
    assert isinstance(q.error, SubscriptionError)
    assert "DATABASE_URL" in str(q.error)
    assert not q.active


def test_live_query_over_missing_table_is_inactive(tmp_path: Path) -> None:
    store = SqlTransactionStore(f"sqlite+pysqlite:///{tmp_path}/empty.sqlite3")
    q = LiveQuery(store, "u1").start()

    assert isinstance(q.error, SubscriptionError)
    assert not q.active
    assert not q.loading


def test_failing_listener_does_not_fail_a_committed_write(
    store: SqlTransactionStore, caplog: pytest.LogCaptureFixture
) -> None:
    ledger = Ledger(store, "u1")
    with LiveQuery(store, "u1") as q:

        def render(_q: LiveQuery) -> None:
            raise RuntimeError("render failed")

        q.add_listener(render)
        with caplog.at_level(logging.ERROR, logger="db.store"):
            doc_id = ledger.add_manual_entry(
                ManualEntry(date="2024-03-05", supplier="Grab", total="45,000",
                            category="Transportation")
            )

        assert [d["id"] for d in store.snapshot("u1")] == [doc_id]
        assert [t.id for t in q.records] == [doc_id]
        assert "render failed" in caplog.text


def _boom(exc: BaseException) -> None:
    raise AssertionError(f"unexpected store error: {exc}")
