"""Live collection sync: keep local record lists in step with a store.

``CollectionSyncReducer`` turns store notifications into materialized
record lists.  Every notification carries the complete result set, and
each one replaces the previous list outright; nothing is merged.

``LiveCollection`` wraps one subscription in the state a screen needs:
the current records, a loading flag, and the last error.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from medilink.core.config import (
    default_config,
    get_collection,
    get_statuses,
    validate_collection,
)
from medilink.core.records import materialize, to_document_fields
from medilink.core.views import group_by_status, search
from medilink.sync.query import CollectionQuery, QueryError
from medilink.sync.store import DocumentStore
from medilink.sync.subscription import (
    ErrorCallback,
    SnapshotCallback,
    SnapshotStream,
    SubscriptionHandle,
    TransportError,
)

logger = logging.getLogger(__name__)


class CollectionSyncReducer:
    """Subscribe to collection queries on an injected document store."""

    def __init__(self, store: DocumentStore, config: dict | None = None) -> None:
        self.store = store
        self.config = config if config is not None else dict(default_config())

    def _record_type(self, query: CollectionQuery) -> str:
        return query.validate(self.config)

    def _record_type_for(self, collection: str) -> str:
        if not validate_collection(self.config, collection):
            raise QueryError(f"Unknown collection: '{collection}'")
        return get_collection(self.config, collection).get("record", "")

    # -- subscriptions -------------------------------------------------------

    def subscribe(
        self,
        query: CollectionQuery,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> SubscriptionHandle:
        """Open a listener on *query*.

        *on_snapshot* receives the full materialized record list after
        every change.  *on_error* is called at most once, with the
        store's message, and nothing is delivered after it.

        Raises:
            QueryError: If *query* names an unknown collection or an
                unsortable field.  No listener is opened.
        """
        record_type = self._record_type(query)
        handle = SubscriptionHandle(
            query,
            on_snapshot,
            on_error,
            lambda documents: materialize(record_type, documents),
        )
        handle._activate()
        logger.debug("subscribing to %s ordered by %s", query.collection, query.order_by)
        try:
            release = self.store.listen(
                query.collection,
                query.order_by,
                query.descending,
                handle.deliver_documents,
                handle.deliver_error,
            )
        except TransportError as exc:
            handle.deliver_error(str(exc))
            return handle
        except Exception:
            handle.close()
            raise
        handle._attach(release)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Release *handle*.  Safe to call repeatedly or after an error."""
        handle.close()

    def stream(self, query: CollectionQuery) -> SnapshotStream:
        """Open a listener on *query* consumed as an iterator of snapshots."""
        self._record_type(query)
        return SnapshotStream(
            lambda on_snapshot, on_error: self.subscribe(query, on_snapshot, on_error)
        )

    def fetch(self, query: CollectionQuery) -> list[dict]:
        """Read the current result set once.

        Raises:
            QueryError: On an invalid query.
            TransportError: If the store cannot be read.
        """
        record_type = self._record_type(query)
        try:
            documents = self.store.get(query.collection, query.order_by, query.descending)
        except OSError as exc:
            raise TransportError(str(exc)) from exc
        return materialize(record_type, documents)

    def find(self, collection: str, record_id: str) -> dict | None:
        """Read one record by id, or ``None`` if it is missing or unmappable.

        Unlike ``fetch`` this does not require the ordering field.
        """
        record_type = self._record_type_for(collection)
        try:
            doc = self.store.get_document(collection, record_id)
        except OSError as exc:
            raise TransportError(str(exc)) from exc
        if doc is None:
            return None
        records = materialize(record_type, [doc])
        return records[0] if records else None

    # -- pass-through mutations ----------------------------------------------

    def create(self, collection: str, fields: Mapping[str, object]) -> str:
        """Insert a record; the store assigns and returns its id."""
        document = to_document_fields(self._record_type_for(collection), fields)
        return self.store.add(collection, document)

    def update(self, collection: str, record_id: str, fields: Mapping[str, object]) -> None:
        """Write record-keyed *fields* to one document.

        Subscribers see the change through their next snapshot; the
        reducer keeps no state about the write itself.
        """
        document = to_document_fields(self._record_type_for(collection), fields)
        self.store.update(collection, record_id, document)

    def delete(self, collection: str, record_id: str) -> None:
        """Delete one document."""
        self._record_type_for(collection)
        self.store.delete(collection, record_id)


class LiveCollection:
    """Render-ready state for one collection query.

    Usage::

        with LiveCollection(reducer, query) as live:
            groups = live.grouped()
    """

    def __init__(
        self,
        reducer: CollectionSyncReducer,
        query: CollectionQuery,
        on_change: Callable[[LiveCollection], None] | None = None,
    ) -> None:
        self.reducer = reducer
        self.query = query
        self.on_change = on_change
        self.records: list[dict] = []
        self.loading = False
        self.error: str | None = None
        self.handle: SubscriptionHandle | None = None

    def start(self) -> None:
        """Open the subscription.  No-op while one is already active."""
        if self.handle is not None and self.handle.is_active:
            return
        self.loading = True
        self.handle = self.reducer.subscribe(self.query, self._on_snapshot, self._on_error)

    def stop(self) -> None:
        """Release the subscription.  Safe to call more than once."""
        if self.handle is not None:
            self.reducer.unsubscribe(self.handle)

    def retry(self) -> None:
        """Drop the failed subscription and open a fresh one."""
        self.stop()
        self.handle = None
        self.error = None
        self.start()

    def grouped(self) -> dict[str, list[dict]]:
        """Current records split into the configured status buckets."""
        return group_by_status(self.records, get_statuses(self.reducer.config))

    def search(self, text: str) -> list[dict]:
        """Current records whose name contains *text* (any case)."""
        return search(self.records, text)

    def _on_snapshot(self, records: list[dict]) -> None:
        self.records = records
        self.loading = False
        self.error = None
        self._changed()

    def _on_error(self, message: str) -> None:
        self.error = message
        self.loading = False
        self._changed()

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def __enter__(self) -> LiveCollection:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
