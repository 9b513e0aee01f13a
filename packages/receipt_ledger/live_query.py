"""Standing query over one user's transactions.

A :class:`LiveQuery` subscribes to the store for a single owner and re-runs
the aggregator on every pushed snapshot. State is swapped in one assignment
after the aggregation finishes, so readers never observe a half-updated
result. Filter changes re-aggregate the cached snapshot without touching the
store.

Typical use from a UI shell::

    with LiveQuery(store, user_id, filters=FilterSpec.current_month(today)) as q:
        q.add_listener(render)
        ...
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, tzinfo

from .aggregate import aggregate
from .errors import SubscriptionError
from .logging_setup import get_logger
from .models import AggregateResult, Bucket, FilterSpec, Transaction
from .store import Snapshot, Subscription, TransactionStore

logger = get_logger(__name__)

type Listener = Callable[["LiveQuery"], None]


@dataclass(frozen=True, slots=True)
class _State:
    records: tuple[Transaction, ...]
    result: AggregateResult
    loading: bool
    error: SubscriptionError | None


class LiveQuery:
    """Subscription-backed view of ``user_id``'s filtered transactions."""

    def __init__(
        self,
        store: TransactionStore,
        user_id: str | None,
        *,
        filters: FilterSpec | None = None,
        bucket: Bucket = Bucket.DAY,
        tz: tzinfo = UTC,
    ) -> None:
        self._store = store
        self._user_id = user_id or ""
        self._filters = filters or FilterSpec()
        self._bucket = bucket
        self._tz = tz
        self._subscription: Subscription | None = None
        self._cancelled = False
        self._listeners: list[Listener] = []
        self._state = _State((), AggregateResult.empty(), True, None)

    # ---- read-only state ---------------------------------------------------

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def records(self) -> tuple[Transaction, ...]:
        return self._state.records

    @property
    def result(self) -> AggregateResult:
        return self._state.result

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def error(self) -> SubscriptionError | None:
        return self._state.error

    @property
    def filters(self) -> FilterSpec:
        return self._filters

    @property
    def active(self) -> bool:
        return self._subscription is not None and not self._cancelled

    # ---- lifecycle ---------------------------------------------------------

    def start(self) -> LiveQuery:
        """Open the subscription. Idempotent; a cancelled query cannot restart."""

        if self._cancelled:
            raise RuntimeError("LiveQuery was cancelled; create a new one")
        if self._subscription is not None:
            return self
        if not self._user_id:
            self._fail(SubscriptionError("User not logged in."))
            return self
        try:
            sub = self._store.subscribe(self._user_id, self._on_snapshot, self._on_error)
        except Exception as exc:
            self._on_error(exc)
            return self
        # A store may report failure through on_error before subscribe returns.
        if self._state.error is None:
            self._subscription = sub
        else:
            sub.unsubscribe()
        return self

    def cancel(self) -> None:
        """Tear down the subscription; later snapshots are ignored."""

        self._cancelled = True
        sub, self._subscription = self._subscription, None
        if sub is not None:
            sub.unsubscribe()
            logger.debug("live query for user %s cancelled", self._user_id)

    def __enter__(self) -> LiveQuery:
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.cancel()

    # ---- parameters --------------------------------------------------------

    def set_filters(self, filters: FilterSpec) -> AggregateResult:
        """Replace the filter and re-aggregate the cached snapshot."""

        self._filters = filters
        if not self._state.loading and self._state.error is None:
            self._publish(self._state.records)
        return self._state.result

    def set_bucket(self, bucket: Bucket) -> AggregateResult:
        self._bucket = bucket
        if not self._state.loading and self._state.error is None:
            self._publish(self._state.records)
        return self._state.result

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(self)`` after every state change; returns a remover."""

        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # ---- store callbacks ---------------------------------------------------

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        if self._cancelled:
            return
        records: list[Transaction] = []
        for doc in snapshot:
            owner = doc.get("userId")
            if owner != self._user_id:
                logger.warning(
                    "dropping document %r: owner %r does not match query owner",
                    doc.get("id"),
                    owner,
                )
                continue
            records.append(Transaction.from_document(doc))
        self._publish(tuple(records))

    def _on_error(self, exc: BaseException) -> None:
        if self._cancelled:
            return
        logger.error("live query for user %s failed: %s", self._user_id, exc)
        self._subscription = None
        err = exc if isinstance(exc, SubscriptionError) else None
        self._fail(err or SubscriptionError(f"Failed to load transactions: {exc}"))

    # ---- internals ---------------------------------------------------------

    def _publish(self, records: tuple[Transaction, ...]) -> None:
        result = aggregate(records, self._filters, bucket=self._bucket, tz=self._tz)
        self._state = _State(records, result, False, None)
        self._notify()

    def _fail(self, error: SubscriptionError) -> None:
        self._state = _State(self._state.records, self._state.result, False, error)
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)


__all__ = ["LiveQuery"]
