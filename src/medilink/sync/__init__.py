"""Live collection sync layer.

Subscribes to document collections on an injected ``DocumentStore`` and
keeps materialized record lists up to date.
"""

from __future__ import annotations

from medilink.core.views import group_by_status, project
from medilink.sync.query import CollectionQuery, QueryError
from medilink.sync.reducer import CollectionSyncReducer, LiveCollection
from medilink.sync.store import (
    DocumentSnapshot,
    DocumentStore,
    FileDocumentStore,
    MemoryDocumentStore,
)
from medilink.sync.subscription import SnapshotStream, SubscriptionHandle, TransportError

__all__ = [
    "CollectionQuery",
    "CollectionSyncReducer",
    "DocumentSnapshot",
    "DocumentStore",
    "FileDocumentStore",
    "LiveCollection",
    "MemoryDocumentStore",
    "QueryError",
    "SnapshotStream",
    "SubscriptionHandle",
    "TransportError",
    "group_by_status",
    "project",
]
