"""Subscription handles: one ordered stream of snapshots per listener.

A handle moves through ``created -> active`` and then stays active while
snapshots arrive, until it reaches one of two absorbing states:
``errored`` (the store reported a transport failure) or ``closed``
(the owner called ``unsubscribe``).

Deliveries for one handle are queued and drained one at a time, so a
snapshot is fully processed before the next one starts, even when a
callback writes to the store and triggers another delivery.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import deque
from collections.abc import Callable, Iterable, Iterator

from medilink.sync.query import CollectionQuery

logger = logging.getLogger(__name__)

CREATED = "created"
ACTIVE = "active"
ERRORED = "errored"
CLOSED = "closed"

TERMINAL_STATES: frozenset[str] = frozenset({ERRORED, CLOSED})

SnapshotCallback = Callable[[list[dict]], None]
ErrorCallback = Callable[[str], None]


class TransportError(Exception):
    """A store or network failure reported for a query."""


class SubscriptionHandle:
    """One open listener on a collection query.

    Created by ``CollectionSyncReducer.subscribe``; release it with
    ``CollectionSyncReducer.unsubscribe`` (or ``close``).
    """

    def __init__(
        self,
        query: CollectionQuery,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        materialize: Callable[[Iterable], list[dict]],
    ) -> None:
        self.query = query
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._materialize = materialize
        self._lock = threading.Lock()
        self._pending: deque[tuple[str, object]] = deque()
        self._draining = False
        self._state = CREATED
        self._release: Callable[[], None] | None = None
        self._released = False
        self.records: list[dict] = []
        self.snapshot_count = 0
        self.error: str | None = None

    def __repr__(self) -> str:
        return (
            f"SubscriptionHandle({self.query.collection!r}, "
            f"order_by={self.query.order_by!r}, state={self._state!r})"
        )

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == ACTIVE

    # -- lifecycle, driven by the reducer ---------------------------------

    def _activate(self) -> None:
        with self._lock:
            if self._state == CREATED:
                self._state = ACTIVE

    def _attach(self, release: Callable[[], None]) -> None:
        """Store the listener release function returned by the store.

        If the handle was closed while the store was still registering
        (e.g. from inside the initial snapshot callback), release now.
        """
        with self._lock:
            self._release = release
            release_now = self._state == CLOSED and not self._released
            if release_now:
                self._released = True
        if release_now:
            release()

    def close(self) -> bool:
        """Release the listener.  Idempotent.

        Returns ``True`` only for the call that actually released it.
        An errored handle stays ``errored``; its listener is still
        released exactly once.
        """
        with self._lock:
            if self._state not in TERMINAL_STATES:
                self._state = CLOSED
            self._pending.clear()
            release = self._release
            if release is None or self._released:
                return False
            self._released = True
        release()
        logger.debug("released listener on %s", self.query.collection)
        return True

    # -- deliveries, driven by the store ----------------------------------

    def deliver_documents(self, documents: Iterable) -> None:
        """Queue a complete result set for processing."""
        self._enqueue("snapshot", list(documents))

    def deliver_error(self, message: str) -> None:
        """Queue a transport failure.  Terminal once processed."""
        self._enqueue("error", str(message))

    def _enqueue(self, kind: str, payload: object) -> None:
        with self._lock:
            if self._state in TERMINAL_STATES:
                return
            self._pending.append((kind, payload))
            if self._draining:
                return
            self._draining = True
        self._drain()

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._pending or self._state in TERMINAL_STATES:
                    self._pending.clear()
                    self._draining = False
                    return
                kind, payload = self._pending.popleft()
                if kind == "error":
                    self._state = ERRORED
                    self._pending.clear()
                    self.error = payload
            if kind == "error":
                logger.warning("listener on %s failed: %s", self.query.collection, payload)
                self._call(self._on_error, payload)
            else:
                self.records = self._materialize(payload)
                self.snapshot_count += 1
                self._call(self._on_snapshot, self.records)

    def _call(self, callback: Callable, arg: object) -> None:
        try:
            callback(arg)
        except Exception:
            logger.exception("subscription callback failed for %s", self.query.collection)


_CLOSED = object()


class SnapshotStream:
    """A subscription consumed as an iterator of snapshots.

    Iteration is lazy and cannot be restarted: once the stream is closed,
    or the store reports a failure, it is finished for good.  A failure is
    raised from the iterator as ``TransportError``.

    Usage::

        with reducer.stream(query) as snapshots:
            for records in snapshots:
                render(records)
    """

    def __init__(self, subscribe: Callable[..., SubscriptionHandle]) -> None:
        self._queue: queue.Queue = queue.Queue()
        self._finished = False
        self.handle = subscribe(self._queue.put, self._on_error)

    def _on_error(self, message: str) -> None:
        self._queue.put(TransportError(message))

    def close(self) -> None:
        """Release the underlying listener and end iteration.

        Snapshots that arrived but were not yet consumed are discarded.
        """
        self._finished = True
        self.handle.close()
        self._queue.put(_CLOSED)

    def next_snapshot(self, timeout: float | None = None) -> list[dict]:
        """Return the next snapshot, waiting up to *timeout* seconds.

        Raises:
            StopIteration: If the stream is closed.
            TransportError: If the store reported a failure.
            TimeoutError: If nothing arrived within *timeout*.
        """
        if self._finished:
            raise StopIteration
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError(f"No snapshot within {timeout}s") from None
        if item is _CLOSED or self._finished:
            self._finished = True
            raise StopIteration
        if isinstance(item, TransportError):
            self._finished = True
            raise item
        return item

    def __iter__(self) -> Iterator[list[dict]]:
        return self

    def __next__(self) -> list[dict]:
        return self.next_snapshot()

    def __enter__(self) -> SnapshotStream:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
