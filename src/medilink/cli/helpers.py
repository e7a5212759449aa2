"""Shared CLI helpers and output utilities."""

from __future__ import annotations

import json
from pathlib import Path
from typing import NoReturn

import click

from medilink.core.config import load_config
from medilink.storage.fs import MEDILINK_DIR, MedilinkRootError, find_root
from medilink.sync.reducer import CollectionSyncReducer
from medilink.sync.store import FileDocumentStore


# ---------------------------------------------------------------------------
# Root & config
# ---------------------------------------------------------------------------


def require_root(is_json: bool = False) -> Path:
    """Find .medilink/ directory or exit with error."""
    try:
        root = find_root()
    except MedilinkRootError as e:
        output_error(str(e), "NOT_INITIALIZED", is_json)
    if root is None:
        output_error(
            "Not a MediLink project (no .medilink/ found). Run 'medilink init' first.",
            "NOT_INITIALIZED",
            is_json,
        )
    return root / MEDILINK_DIR


def load_project_config(medilink_dir: Path) -> dict:
    """Load and return config.json from the .medilink directory."""
    return load_config((medilink_dir / "config.json").read_text())


def open_reducer(is_json: bool) -> CollectionSyncReducer:
    """Build a reducer over the file store of the current project."""
    medilink_dir = require_root(is_json)
    config = load_project_config(medilink_dir)
    store = FileDocumentStore(medilink_dir, poll_interval=config.get("poll_interval", 1.0))
    return CollectionSyncReducer(store, config)


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def json_envelope(ok: bool, *, data: object = None, error: object = None) -> str:
    """Build a structured JSON output envelope."""
    result: dict = {"ok": ok}
    if data is not None:
        result["data"] = data
    if error is not None:
        result["error"] = error
    return json.dumps(result, sort_keys=True, indent=2) + "\n"


def json_error_obj(code: str, message: str) -> dict:
    """Build an error object for the JSON envelope."""
    return {"code": code, "message": message}


def output_error(message: str, code: str, is_json: bool, exit_code: int = 1) -> NoReturn:
    """Print error and exit. JSON errors go to stdout; human errors to stderr."""
    if is_json:
        click.echo(json_envelope(False, error=json_error_obj(code, message)))
    else:
        click.echo(f"Error: {message}", err=True)
    raise SystemExit(exit_code)


def output_result(
    *,
    data: object,
    human_message: str,
    quiet_value: str,
    is_json: bool,
    is_quiet: bool = False,
) -> None:
    """Print success result in the appropriate format."""
    if is_json:
        click.echo(json_envelope(True, data=data))
    elif is_quiet:
        click.echo(quiet_value)
    else:
        click.echo(human_message)


def format_appointment(record: dict) -> str:
    """One-line human rendering of an appointment record."""
    line = (
        f"Dr. {record['doctor_name']}  {record['appointment_date']} "
        f"{record['appointment_time']}  [{record['status']}]  {record['id']}"
    )
    if record.get("notes"):
        line += f"\n    Notes: {record['notes']}"
    return line


def format_groups(groups: dict[str, list[dict]]) -> str:
    """Render status buckets the way the history screen lists them."""
    blocks = []
    for status, records in groups.items():
        lines = [f"{status.capitalize()} ({len(records)})"]
        if records:
            lines.extend(f"  {format_appointment(r)}" for r in records)
        else:
            lines.append(f"  No {status} appointments.")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)
