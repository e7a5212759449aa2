"""Map stored documents to typed records.

Documents use the store's camelCase field names (``doctorName``,
``appointmentDate``).  Records are plain dicts keyed by snake_case names
plus the store-assigned ``id``.  Missing string fields default to ``""``,
matching how the mobile client decoded documents.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import NamedTuple, Protocol, TypedDict

from medilink.core.ids import is_resolvable_id

logger = logging.getLogger(__name__)


class MappingError(Exception):
    """Raised when a document cannot be decoded into a record."""


def utc_now() -> str:
    """Return the current UTC time as an RFC 3339 string with ``Z`` suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class Appointment(TypedDict):
    id: str
    doctor_name: str
    appointment_date: str
    appointment_time: str
    notes: str
    status: str
    timestamp: int | float | str | None


class Doctor(TypedDict):
    id: str
    name: str
    specialty: str


class FieldSpec(NamedTuple):
    key: str
    document_key: str
    types: tuple[type, ...]
    default: object


_STR = (str,)
_TIMESTAMP = (int, float, str)

APPOINTMENT_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("doctor_name", "doctorName", _STR, ""),
    FieldSpec("appointment_date", "appointmentDate", _STR, ""),
    FieldSpec("appointment_time", "appointmentTime", _STR, ""),
    FieldSpec("notes", "notes", _STR, ""),
    FieldSpec("status", "status", _STR, ""),
    FieldSpec("timestamp", "timestamp", _TIMESTAMP, None),
)

DOCTOR_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("name", "name", _STR, ""),
    FieldSpec("specialty", "specialty", _STR, ""),
)

RECORD_TYPES: dict[str, tuple[FieldSpec, ...]] = {
    "appointment": APPOINTMENT_FIELDS,
    "doctor": DOCTOR_FIELDS,
}


class StoredDocument(Protocol):
    id: object
    data: object


def _fields_for(record_type: str) -> tuple[FieldSpec, ...]:
    try:
        return RECORD_TYPES[record_type]
    except KeyError:
        raise MappingError(f"Unknown record type: '{record_type}'") from None


def _check_type(spec: FieldSpec, value: object) -> None:
    # bool is an int subclass; a boolean timestamp is a malformed document.
    if isinstance(value, bool) or not isinstance(value, spec.types):
        raise MappingError(
            f"Field '{spec.document_key}' has type {type(value).__name__}"
        )


def map_document(record_type: str, doc_id: object, data: object) -> dict:
    """Decode one document body into a record dict.

    Raises:
        MappingError: If the ID is not resolvable, the body is not a
            mapping, or a known field holds a value of the wrong type.
    """
    if not is_resolvable_id(doc_id):
        raise MappingError(f"Document has no resolvable id: {doc_id!r}")
    if not isinstance(data, Mapping):
        raise MappingError(f"Document {doc_id} has no readable body")

    record: dict = {"id": doc_id}
    for spec in _fields_for(record_type):
        value = data.get(spec.document_key)
        if value is None:
            record[spec.key] = spec.default
            continue
        _check_type(spec, value)
        record[spec.key] = value
    return record


def materialize(record_type: str, documents: Iterable[StoredDocument]) -> list[dict]:
    """Map a delivered result set to records, preserving order.

    Documents that fail to map are dropped; one malformed document never
    blocks the rest of the list.
    """
    records: list[dict] = []
    for doc in documents:
        try:
            records.append(map_document(record_type, doc.id, doc.data))
        except MappingError as exc:
            logger.debug("dropping document: %s", exc)
    return records


def to_document_fields(record_type: str, fields: Mapping[str, object]) -> dict:
    """Translate record-keyed *fields* to document field names.

    Used by ``update`` and ``create`` so that callers only ever speak in
    record keys.  ``id`` is never writable.

    Raises:
        MappingError: On an unknown key or a value of the wrong type.
    """
    specs = {spec.key: spec for spec in _fields_for(record_type)}
    result: dict = {}
    for key, value in fields.items():
        spec = specs.get(key)
        if spec is None:
            raise MappingError(f"Unknown {record_type} field: '{key}'")
        if value is not None:
            _check_type(spec, value)
        result[spec.document_key] = value
    return result
