"""Document ID generation and validation."""

from __future__ import annotations

import re

from ulid import ULID

# Crockford Base32 alphabet: 0-9 A-Z excluding I, L, O, U
_CROCKFORD_B32_RE = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$", re.IGNORECASE)

# Document IDs are also file names in the file-backed store.
_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def generate_document_id() -> str:
    """Generate a new document ID with the doc_ prefix."""
    return f"doc_{ULID()}"


def validate_id(id_str: str, expected_prefix: str = "doc") -> bool:
    """Validate a ``<prefix>_<ulid>`` identifier.

    The ULID portion must be exactly 26 characters of valid Crockford
    Base32 (0-9, A-Z excluding I, L, O, U -- case insensitive).
    """
    if not isinstance(id_str, str) or not isinstance(expected_prefix, str):
        return False

    parts = id_str.split("_", maxsplit=1)
    if len(parts) != 2:
        return False

    prefix, ulid_part = parts
    if prefix != expected_prefix:
        return False

    return bool(_CROCKFORD_B32_RE.match(ulid_part))


def is_resolvable_id(value: object) -> bool:
    """Return ``True`` if *value* can key a record in a collection.

    Any non-empty string resolves; stores decide their own id rules.
    """
    return isinstance(value, str) and bool(value)


def is_file_safe_id(value: object) -> bool:
    """Return ``True`` if *value* can be used as a file name in the file store.

    Store-assigned ULIDs pass, as do externally assigned IDs made of
    letters, digits, ``_`` and ``-``.
    """
    return isinstance(value, str) and bool(_SAFE_ID_RE.match(value))
