"""Default config generation and validation."""

from __future__ import annotations

import json
from typing import TypedDict


class CollectionDef(TypedDict, total=False):
    record: str
    order_by: str
    sortable: list[str]


class MedilinkConfig(TypedDict, total=False):
    schema_version: int
    collections: dict[str, CollectionDef]
    statuses: list[str]
    default_status: str
    poll_interval: float


def default_config() -> MedilinkConfig:
    """Return the default MediLink configuration.

    The returned dict, when serialized with
    ``json.dumps(data, sort_keys=True, indent=2) + "\\n"``,
    produces the canonical default config.json.
    """
    return {
        "schema_version": 1,
        "collections": {
            "appointments": {
                "record": "appointment",
                "order_by": "timestamp",
                "sortable": [
                    "timestamp",
                    "appointmentDate",
                    "appointmentTime",
                    "doctorName",
                ],
            },
            "doctors": {
                "record": "doctor",
                "order_by": "name",
                "sortable": ["name", "specialty"],
            },
        },
        "statuses": ["upcoming", "past"],
        "default_status": "upcoming",
        "poll_interval": 1.0,
    }


KNOWN_STATUSES: tuple[str, ...] = ("upcoming", "past")


def serialize_config(config: MedilinkConfig | dict[str, object]) -> str:
    """Serialize a config dict to the canonical JSON format."""
    return json.dumps(config, sort_keys=True, indent=2) + "\n"


def load_config(raw: str) -> dict:
    """Parse a JSON config string and return the config dict.

    This is a pure function (no I/O).  The CLI layer reads the file
    and passes the raw string here.
    """
    return json.loads(raw)


def get_collection(config: dict, collection: str) -> CollectionDef | None:
    """Return the definition for *collection*, or ``None`` if not configured."""
    return config.get("collections", {}).get(collection)


def validate_collection(config: dict, collection: str) -> bool:
    """Return ``True`` if *collection* is defined in the config."""
    return get_collection(config, collection) is not None


def validate_sort_field(config: dict, collection: str, field: str) -> bool:
    """Return ``True`` if *field* is listed as sortable for *collection*."""
    definition = get_collection(config, collection)
    if definition is None:
        return False
    return field in definition.get("sortable", [])


def get_statuses(config: dict) -> tuple[str, ...]:
    """Return the recognized status buckets, in display order."""
    statuses = config.get("statuses")
    if not statuses:
        return KNOWN_STATUSES
    return tuple(statuses)


def validate_status(config: dict, status: str) -> bool:
    """Return ``True`` if *status* is one of the recognized buckets."""
    return status in get_statuses(config)
