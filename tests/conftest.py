"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from medilink.core.config import default_config
from medilink.sync.query import CollectionQuery
from medilink.sync.reducer import CollectionSyncReducer
from medilink.sync.store import MemoryDocumentStore


def _appointment_doc(
    status: str = "upcoming",
    timestamp: object = 1,
    doctor: str = "Jane Mwangi",
    **overrides: object,
) -> dict:
    """Return an appointment document body in the store's field names."""
    doc = {
        "doctorName": doctor,
        "appointmentDate": "2026-11-02",
        "appointmentTime": "10:30",
        "notes": "",
        "status": status,
        "timestamp": timestamp,
    }
    doc.update(overrides)
    return doc


@pytest.fixture()
def make_appointment():
    """Return a factory for appointment document bodies."""
    return _appointment_doc


@pytest.fixture()
def store() -> MemoryDocumentStore:
    """Return an in-memory store with the default collections."""
    return MemoryDocumentStore(["appointments", "doctors"])


@pytest.fixture()
def reducer(store: MemoryDocumentStore) -> CollectionSyncReducer:
    """Return a reducer over the in-memory store."""
    return CollectionSyncReducer(store, dict(default_config()))


@pytest.fixture()
def appointments_query() -> CollectionQuery:
    return CollectionQuery("appointments", "timestamp")


@pytest.fixture()
def initialized_root(tmp_path: Path, cli_runner: CliRunner) -> Path:
    """Return a temporary directory with .medilink/ already initialized."""
    from medilink.cli.main import cli

    result = cli_runner.invoke(cli, ["init", "--path", str(tmp_path)])
    assert result.exit_code == 0, result.output
    return tmp_path


@pytest.fixture()
def cli_runner() -> CliRunner:
    """Return a Click CliRunner for invoking CLI commands."""
    return CliRunner()


@pytest.fixture()
def cli_env(initialized_root: Path) -> dict[str, str]:
    """Return env dict with MEDILINK_ROOT pointing to initialized_root."""
    return {"MEDILINK_ROOT": str(initialized_root)}


@pytest.fixture()
def invoke(cli_runner: CliRunner, cli_env: dict[str, str]):
    """Return a helper that invokes CLI commands with the right environment.

    Usage::

        result = invoke("appointments", "list")
    """
    from medilink.cli.main import cli

    def _invoke(*args: str, **kwargs):
        return cli_runner.invoke(cli, list(args), env=cli_env, **kwargs)

    return _invoke


@pytest.fixture()
def invoke_json(invoke):
    """Like invoke, but appends --json and parses the response.

    Returns (parsed_dict, exit_code) tuple.
    """

    def _invoke_json(*args: str) -> tuple[dict, int]:
        result = invoke(*args, "--json")
        parsed = json.loads(result.output)
        return parsed, result.exit_code

    return _invoke_json
