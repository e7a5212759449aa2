"""Query descriptors for subscribing to a document collection."""

from __future__ import annotations

from dataclasses import dataclass

from medilink.core.config import get_collection, validate_collection, validate_sort_field


class QueryError(Exception):
    """Raised when a query names an unknown collection or unsortable field."""


@dataclass(frozen=True)
class CollectionQuery:
    """A collection name plus the field its results are ordered by."""

    collection: str
    order_by: str
    descending: bool = False

    def validate(self, config: dict) -> str:
        """Check this query against *config* and return its record type.

        Raises:
            QueryError: If the collection is not configured or
                ``order_by`` is not one of its sortable fields.
        """
        if not validate_collection(config, self.collection):
            raise QueryError(f"Unknown collection: '{self.collection}'")
        if not validate_sort_field(config, self.collection, self.order_by):
            raise QueryError(
                f"Field '{self.order_by}' is not sortable in '{self.collection}'"
            )
        return get_collection(config, self.collection).get("record", "")


def default_query(config: dict, collection: str) -> CollectionQuery:
    """Build the configured default query for *collection*."""
    definition = get_collection(config, collection)
    if definition is None:
        raise QueryError(f"Unknown collection: '{collection}'")
    return CollectionQuery(collection, definition["order_by"])
