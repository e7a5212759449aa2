"""Document stores the reducer can subscribe to.

``DocumentStore`` is the collaborator the reducer is constructed with.
Two implementations ship here:

- ``MemoryDocumentStore`` keeps collections in process memory.
- ``FileDocumentStore`` keeps one JSON file per document under
  ``.medilink/collections/<collection>/<id>.json`` and polls for writes
  made by other processes.

Both deliver complete, ordered result sets to listeners after every
write.  Deliveries go through a single outbox drained by one thread at a
time, so every listener sees result sets in the order the writes
happened, including writes issued from inside a listener callback.
"""

from __future__ import annotations

import contextlib
import copy
import json
import logging
import threading
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from medilink.core.ids import generate_document_id, is_file_safe_id, is_resolvable_id
from medilink.storage.fs import atomic_write
from medilink.storage.locks import document_lock, lock_key
from medilink.sync.subscription import TransportError

logger = logging.getLogger(__name__)

DocumentsCallback = Callable[[list["DocumentSnapshot"]], None]
FailureCallback = Callable[[str], None]


class DocumentNotFoundError(LookupError):
    """Raised when updating a document that does not exist."""


@dataclass(frozen=True)
class DocumentSnapshot:
    """One stored document as delivered to listeners.

    ``data`` is ``None`` when the stored body could not be read.
    """

    id: str
    data: dict | None


class DocumentStore(Protocol):
    """What the reducer needs from a document database."""

    def collections(self) -> list[str]: ...

    def listen(
        self,
        collection: str,
        order_by: str,
        descending: bool,
        on_documents: DocumentsCallback,
        on_error: FailureCallback,
    ) -> Callable[[], None]: ...

    def get(
        self, collection: str, order_by: str, descending: bool = False
    ) -> list[DocumentSnapshot]: ...

    def get_document(self, collection: str, doc_id: str) -> DocumentSnapshot | None: ...

    def add(self, collection: str, data: dict) -> str: ...

    def set(self, collection: str, doc_id: str, data: dict) -> None: ...

    def update(self, collection: str, doc_id: str, fields: dict) -> None: ...

    def delete(self, collection: str, doc_id: str) -> None: ...


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def _type_rank(value: object) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1
    if isinstance(value, (int, float)):
        return 2
    if isinstance(value, str):
        return 3
    return 4


def _sort_key(value: object) -> tuple[int, object]:
    rank = _type_rank(value)
    if rank == 4:
        return rank, json.dumps(value, sort_keys=True, default=str)
    return rank, value


def order_documents(
    documents: Mapping[str, dict | None],
    order_by: str,
    descending: bool = False,
) -> list[DocumentSnapshot]:
    """Return the documents that carry *order_by*, sorted by it.

    Documents without the field (or with an unreadable body) are not part
    of an ordered result set.  Values sort by type first (null, bool,
    number, string, other), then by value; ties fall back to document id.
    """
    keyed = []
    for doc_id, data in documents.items():
        if not isinstance(data, Mapping):
            continue
        if order_by not in data:
            continue
        keyed.append((_sort_key(data[order_by]), doc_id, data))
    keyed.sort(key=lambda item: (item[0], item[1]), reverse=descending)
    return [DocumentSnapshot(doc_id, copy.deepcopy(data)) for _, doc_id, data in keyed]


# ---------------------------------------------------------------------------
# Listener bookkeeping
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class _Listener:
    collection: str
    order_by: str
    descending: bool
    on_documents: DocumentsCallback
    on_error: FailureCallback
    closed: bool = False
    last: list[DocumentSnapshot] | None = None
    stop: threading.Event = field(default_factory=threading.Event)


class _ListenerStore:
    """Shared listener registry, outbox and write paths."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._listeners: list[_Listener] = []
        self._outbox: deque[tuple[_Listener, str, object]] = deque()
        self._dispatching = False

    # -- storage hooks -----------------------------------------------------

    def collections(self) -> list[str]:
        raise NotImplementedError

    def _load(self, collection: str) -> dict[str, dict | None]:
        raise NotImplementedError

    def _save(self, collection: str, doc_id: str, data: dict) -> None:
        raise NotImplementedError

    def _remove(self, collection: str, doc_id: str) -> None:
        raise NotImplementedError

    def _guard(self, collection: str, doc_id: str) -> contextlib.AbstractContextManager:
        return contextlib.nullcontext()

    def _check_id(self, doc_id: str) -> None:
        if not is_resolvable_id(doc_id):
            raise ValueError(f"Invalid document id: {doc_id!r}")

    # -- reads ---------------------------------------------------------------

    def get(
        self, collection: str, order_by: str, descending: bool = False
    ) -> list[DocumentSnapshot]:
        """One-shot read of the ordered result set."""
        with self._lock:
            return order_documents(self._load(collection), order_by, descending)

    def get_document(self, collection: str, doc_id: str) -> DocumentSnapshot | None:
        """Read one document by id, whatever fields it carries."""
        with self._lock:
            data = self._load(collection).get(doc_id)
        if data is None:
            return None
        return DocumentSnapshot(doc_id, copy.deepcopy(data))

    def listen(
        self,
        collection: str,
        order_by: str,
        descending: bool,
        on_documents: DocumentsCallback,
        on_error: FailureCallback,
    ) -> Callable[[], None]:
        """Register a listener and deliver the current result set to it.

        Returns a function that unregisters the listener; calling it more
        than once is harmless.
        """
        listener = _Listener(collection, order_by, descending, on_documents, on_error)
        with self._lock:
            self._queue_snapshot(listener)
            registered = not listener.stop.is_set()
            if registered:
                self._listeners.append(listener)
        self._dispatch()
        if registered:
            self._start_watch(listener)

        def _unregister() -> None:
            self._drop(listener)

        return _unregister

    def _start_watch(self, listener: _Listener) -> None:
        """Hook for stores that need to watch for outside changes."""

    def _drop(self, listener: _Listener) -> None:
        with self._lock:
            listener.closed = True
            listener.stop.set()
            if listener in self._listeners:
                self._listeners.remove(listener)

    # -- writes --------------------------------------------------------------

    def add(self, collection: str, data: dict) -> str:
        """Insert a document under a new store-assigned id."""
        doc_id = generate_document_id()
        self.set(collection, doc_id, data)
        return doc_id

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        """Create or replace a document."""
        self._check_id(doc_id)
        with self._lock:
            with self._guard(collection, doc_id):
                self._save(collection, doc_id, dict(data))
            self._queue_collection(collection)
        self._dispatch()

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        """Merge *fields* into an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """
        self._check_id(doc_id)
        with self._lock:
            with self._guard(collection, doc_id):
                current = self._load(collection).get(doc_id)
                if current is None:
                    raise DocumentNotFoundError(f"No document '{doc_id}' in '{collection}'")
                merged = {**current, **fields}
                self._save(collection, doc_id, merged)
            self._queue_collection(collection)
        self._dispatch()

    def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document.  Deleting a missing document is a no-op."""
        self._check_id(doc_id)
        with self._lock:
            with self._guard(collection, doc_id):
                self._remove(collection, doc_id)
            self._queue_collection(collection)
        self._dispatch()

    def fail(self, collection: str, message: str) -> None:
        """Report a transport failure to every listener on *collection*.

        Failed listeners are unregistered and receive nothing more.
        """
        with self._lock:
            for listener in [each for each in self._listeners if each.collection == collection]:
                self._fail_listener(listener, message)
        self._dispatch()

    # -- delivery ------------------------------------------------------------

    def _queue_collection(self, collection: str) -> None:
        for listener in self._listeners:
            if listener.collection == collection:
                self._queue_snapshot(listener)

    def _queue_snapshot(self, listener: _Listener) -> None:
        """Queue the listener's current result set.  Caller holds the lock."""
        try:
            documents = order_documents(
                self._load(listener.collection), listener.order_by, listener.descending
            )
        except TransportError as exc:
            self._fail_listener(listener, str(exc))
            return
        listener.last = documents
        self._outbox.append((listener, "documents", documents))

    def _fail_listener(self, listener: _Listener, message: str) -> None:
        self._outbox.append((listener, "error", message))
        listener.stop.set()
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _dispatch(self) -> None:
        with self._lock:
            if self._dispatching:
                return
            self._dispatching = True
        while True:
            with self._lock:
                if not self._outbox:
                    self._dispatching = False
                    return
                listener, kind, payload = self._outbox.popleft()
                if listener.closed:
                    continue
                if kind == "error":
                    listener.closed = True
            callback = listener.on_error if kind == "error" else listener.on_documents
            try:
                callback(payload)
            except Exception:
                logger.exception("listener on %s raised", listener.collection)



class MemoryDocumentStore(_ListenerStore):
    """Collections held in process memory."""

    def __init__(self, collections: Iterable[str] = ()) -> None:
        super().__init__()
        self._docs: dict[str, dict[str, dict]] = {name: {} for name in collections}

    def collections(self) -> list[str]:
        with self._lock:
            return sorted(self._docs)

    def _load(self, collection: str) -> dict[str, dict | None]:
        return dict(self._docs.get(collection, {}))

    def _save(self, collection: str, doc_id: str, data: dict) -> None:
        self._docs.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    def _remove(self, collection: str, doc_id: str) -> None:
        self._docs.get(collection, {}).pop(doc_id, None)


class FileDocumentStore(_ListenerStore):
    """One JSON file per document, shared between processes.

    Writes notify listeners in this process immediately.  Each listener
    also gets a daemon thread that rescans its collection every
    *poll_interval* seconds and delivers a new result set when the
    contents changed.
    """

    def __init__(self, medilink_dir: Path, poll_interval: float = 1.0) -> None:
        super().__init__()
        self.collections_dir = medilink_dir / "collections"
        self.locks_dir = medilink_dir / "locks"
        self.collections_dir.mkdir(parents=True, exist_ok=True)
        self.locks_dir.mkdir(parents=True, exist_ok=True)
        self.poll_interval = poll_interval

    def collections(self) -> list[str]:
        return sorted(p.name for p in self.collections_dir.iterdir() if p.is_dir())

    def _check_id(self, doc_id: str) -> None:
        if not is_file_safe_id(doc_id):
            raise ValueError(f"Invalid document id: {doc_id!r}")

    def _collection_dir(self, collection: str) -> Path:
        if not is_file_safe_id(collection):
            raise ValueError(f"Invalid collection name: {collection!r}")
        return self.collections_dir / collection

    def _load(self, collection: str) -> dict[str, dict | None]:
        directory = self._collection_dir(collection)
        if not directory.exists():
            return {}
        try:
            paths = sorted(
                p for p in directory.iterdir()
                if p.suffix == ".json" and not p.name.startswith(".")
            )
        except OSError as exc:
            raise TransportError(f"Cannot read collection '{collection}': {exc}") from exc
        documents: dict[str, dict | None] = {}
        for path in paths:
            documents[path.stem] = _read_body(path)
        return documents

    def _save(self, collection: str, doc_id: str, data: dict) -> None:
        directory = self._collection_dir(collection)
        directory.mkdir(parents=True, exist_ok=True)
        atomic_write(
            directory / f"{doc_id}.json",
            json.dumps(data, sort_keys=True, indent=2) + "\n",
        )

    def _remove(self, collection: str, doc_id: str) -> None:
        path = self._collection_dir(collection) / f"{doc_id}.json"
        path.unlink(missing_ok=True)

    def _guard(self, collection: str, doc_id: str) -> contextlib.AbstractContextManager:
        return document_lock(self.locks_dir, lock_key(collection, doc_id))

    def _start_watch(self, listener: _Listener) -> None:
        thread = threading.Thread(
            target=self._watch,
            args=(listener,),
            name=f"medilink-watch-{listener.collection}",
            daemon=True,
        )
        thread.start()

    def _watch(self, listener: _Listener) -> None:
        while not listener.stop.wait(self.poll_interval):
            with self._lock:
                if listener.closed or listener not in self._listeners:
                    return
                try:
                    documents = order_documents(
                        self._load(listener.collection),
                        listener.order_by,
                        listener.descending,
                    )
                except TransportError as exc:
                    self._fail_listener(listener, str(exc))
                else:
                    if documents == listener.last:
                        continue
                    listener.last = documents
                    self._outbox.append((listener, "documents", documents))
            self._dispatch()


def _read_body(path: Path) -> dict | None:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        logger.debug("unreadable document file %s", path)
        return None
    return data if isinstance(data, dict) else None

