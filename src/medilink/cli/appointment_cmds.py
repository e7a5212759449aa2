"""Appointment commands: list, book, update, delete, watch."""

from __future__ import annotations

import json

import click

from medilink.cli.helpers import (
    format_appointment,
    format_groups,
    json_envelope,
    open_reducer,
    output_error,
    output_result,
)
from medilink.cli.main import cli
from medilink.core.config import get_statuses, validate_status
from medilink.core.records import MappingError, utc_now
from medilink.core.views import group_by_status, project, search, status_is
from medilink.sync.query import default_query
from medilink.sync.store import DocumentNotFoundError
from medilink.sync.subscription import TransportError

COLLECTION = "appointments"


@cli.group("appointments")
def appointments() -> None:
    """Book, edit and follow appointments."""


def _require_appointment(reducer, appointment_id: str, is_json: bool) -> dict:
    try:
        record = reducer.find(COLLECTION, appointment_id)
    except TransportError as e:
        output_error(str(e), "TRANSPORT_ERROR", is_json)
    if record is not None:
        return record
    output_error(f"Appointment {appointment_id} not found.", "NOT_FOUND", is_json)


# ---------------------------------------------------------------------------
# medilink appointments list
# ---------------------------------------------------------------------------


@appointments.command("list")
@click.option("--status", default=None, help="Only show one status bucket (e.g. upcoming).")
@click.option("--search", "search_text", default="", help="Filter by doctor name.")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
def list_cmd(status: str | None, search_text: str, output_json: bool) -> None:
    """List appointments grouped by status."""
    is_json = output_json
    reducer = open_reducer(is_json)

    if status is not None and not validate_status(reducer.config, status):
        valid = ", ".join(get_statuses(reducer.config))
        output_error(
            f"Invalid status: '{status}'. Valid statuses: {valid}",
            "INVALID_STATUS",
            is_json,
        )

    try:
        records = reducer.fetch(default_query(reducer.config, COLLECTION))
    except TransportError as e:
        output_error(str(e), "TRANSPORT_ERROR", is_json)

    records = search(records, search_text)

    if status is not None:
        selected = project(records, status_is(status))
        if is_json:
            click.echo(json_envelope(True, data=selected))
        elif selected:
            for record in selected:
                click.echo(format_appointment(record))
        else:
            click.echo(f"No {status} appointments.")
        return

    groups = group_by_status(records, get_statuses(reducer.config))
    if is_json:
        click.echo(json_envelope(True, data=groups))
    else:
        click.echo(format_groups(groups))


# ---------------------------------------------------------------------------
# medilink appointments book
# ---------------------------------------------------------------------------


@appointments.command("book")
@click.option("--doctor", "doctor_name", required=True, help="Doctor's name.")
@click.option("--date", "appointment_date", required=True, help="Appointment date.")
@click.option("--time", "appointment_time", required=True, help="Appointment time.")
@click.option("--notes", default="", help="Notes for the doctor.")
@click.option("--status", default=None, help="Status bucket (defaults to config).")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
@click.option("--quiet", is_flag=True, help="Print only the appointment ID.")
def book_cmd(
    doctor_name: str,
    appointment_date: str,
    appointment_time: str,
    notes: str,
    status: str | None,
    output_json: bool,
    quiet: bool,
) -> None:
    """Book a new appointment."""
    is_json = output_json
    reducer = open_reducer(is_json)

    if status is None:
        status = reducer.config.get("default_status", "upcoming")
    if not validate_status(reducer.config, status):
        valid = ", ".join(get_statuses(reducer.config))
        output_error(
            f"Invalid status: '{status}'. Valid statuses: {valid}",
            "INVALID_STATUS",
            is_json,
        )

    fields = {
        "doctor_name": doctor_name,
        "appointment_date": appointment_date,
        "appointment_time": appointment_time,
        "notes": notes,
        "status": status,
        "timestamp": utc_now(),
    }
    appointment_id = reducer.create(COLLECTION, fields)
    record = {"id": appointment_id, **fields}

    output_result(
        data=record,
        human_message=f"Booked appointment {appointment_id} with Dr. {doctor_name}",
        quiet_value=appointment_id,
        is_json=is_json,
        is_quiet=quiet,
    )


# ---------------------------------------------------------------------------
# medilink appointments update
# ---------------------------------------------------------------------------


@appointments.command("update")
@click.argument("appointment_id")
@click.option("--date", "appointment_date", default=None, help="New appointment date.")
@click.option("--time", "appointment_time", default=None, help="New appointment time.")
@click.option("--notes", default=None, help="New notes.")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
def update_cmd(
    appointment_id: str,
    appointment_date: str | None,
    appointment_time: str | None,
    notes: str | None,
    output_json: bool,
) -> None:
    """Change the date, time or notes of an appointment."""
    is_json = output_json
    reducer = open_reducer(is_json)

    fields = {
        key: value
        for key, value in (
            ("appointment_date", appointment_date),
            ("appointment_time", appointment_time),
            ("notes", notes),
        )
        if value is not None
    }
    if not fields:
        output_error(
            "Nothing to update. Pass --date, --time or --notes.",
            "NO_CHANGES",
            is_json,
        )

    record = _require_appointment(reducer, appointment_id, is_json)
    try:
        reducer.update(COLLECTION, appointment_id, fields)
    except DocumentNotFoundError:
        output_error(f"Appointment {appointment_id} not found.", "NOT_FOUND", is_json)
    except (MappingError, ValueError) as e:
        output_error(str(e), "INVALID_FIELD", is_json)

    record.update(fields)
    output_result(
        data=record,
        human_message=f"Updated appointment {appointment_id}",
        quiet_value=appointment_id,
        is_json=is_json,
    )


# ---------------------------------------------------------------------------
# medilink appointments delete
# ---------------------------------------------------------------------------


@appointments.command("delete")
@click.argument("appointment_id")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
def delete_cmd(appointment_id: str, output_json: bool) -> None:
    """Delete an appointment."""
    is_json = output_json
    reducer = open_reducer(is_json)

    _require_appointment(reducer, appointment_id, is_json)
    reducer.delete(COLLECTION, appointment_id)

    output_result(
        data={"id": appointment_id, "deleted": True},
        human_message=f"Deleted appointment {appointment_id}",
        quiet_value=appointment_id,
        is_json=is_json,
    )


# ---------------------------------------------------------------------------
# medilink appointments watch
# ---------------------------------------------------------------------------


@appointments.command("watch")
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after this many snapshots.",
)
@click.option("--json", "output_json", is_flag=True, help="One JSON object per snapshot.")
def watch_cmd(limit: int | None, output_json: bool) -> None:
    """Follow appointments live, printing each new snapshot.

    Runs until interrupted (Ctrl-C) or until --limit snapshots were shown.
    """
    is_json = output_json
    reducer = open_reducer(is_json)
    statuses = get_statuses(reducer.config)

    stream = reducer.stream(default_query(reducer.config, COLLECTION))
    shown = 0
    try:
        for records in stream:
            groups = group_by_status(records, statuses)
            if is_json:
                click.echo(json.dumps(groups, sort_keys=True))
            else:
                click.echo(format_groups(groups))
                click.echo("")
            shown += 1
            if limit is not None and shown >= limit:
                break
    except TransportError as e:
        output_error(str(e), "TRANSPORT_ERROR", is_json)
    except KeyboardInterrupt:
        pass
    finally:
        stream.close()
