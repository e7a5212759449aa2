"""Derived views over a materialized record list.

All functions here are pure: they return new lists and never mutate
their input.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence

from medilink.core.config import KNOWN_STATUSES

Predicate = Callable[[dict], bool]

# Fields searched by name_contains(), first present wins.
NAME_FIELDS: tuple[str, ...] = ("name", "doctor_name")


def project(records: Iterable[dict], predicate: Predicate) -> list[dict]:
    """Return the records matching *predicate*, in input order."""
    return [record for record in records if predicate(record)]


def group_by_status(
    records: Iterable[dict],
    statuses: Sequence[str] = KNOWN_STATUSES,
) -> dict[str, list[dict]]:
    """Partition *records* into one bucket per known status.

    Every known status gets a bucket, possibly empty.  Records whose
    status matches no bucket are left out entirely; there is no
    catch-all bucket.
    """
    groups: dict[str, list[dict]] = {status: [] for status in statuses}
    for record in records:
        bucket = groups.get(record.get("status"))
        if bucket is not None:
            bucket.append(record)
    return groups


def status_is(status: str) -> Predicate:
    """Predicate: record status equals *status* exactly."""

    def _match(record: dict) -> bool:
        return record.get("status") == status

    return _match


def _display_name(record: dict) -> str:
    for field in NAME_FIELDS:
        value = record.get(field)
        if isinstance(value, str):
            return value
    return ""


def name_contains(text: str) -> Predicate:
    """Predicate: case-insensitive substring match on the record's name."""
    needle = text.casefold()

    def _match(record: dict) -> bool:
        return needle in _display_name(record).casefold()

    return _match


def search(records: Iterable[dict], text: str) -> list[dict]:
    """Filter *records* by name; blank *text* matches everything."""
    if not text.strip():
        return list(records)
    return project(records, name_contains(text))
