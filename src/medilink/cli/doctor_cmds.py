"""Doctor directory commands: add, search."""

from __future__ import annotations

import click

from medilink.cli.helpers import json_envelope, open_reducer, output_error, output_result
from medilink.cli.main import cli
from medilink.core.views import search
from medilink.sync.query import default_query
from medilink.sync.subscription import TransportError

COLLECTION = "doctors"


@cli.group("doctors")
def doctors() -> None:
    """Browse the doctor directory."""


@doctors.command("add")
@click.argument("name")
@click.option("--specialty", default="", help="Doctor's specialty.")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
@click.option("--quiet", is_flag=True, help="Print only the doctor ID.")
def add_cmd(name: str, specialty: str, output_json: bool, quiet: bool) -> None:
    """Add a doctor to the directory."""
    is_json = output_json
    reducer = open_reducer(is_json)

    if not name.strip():
        output_error("Doctor name cannot be empty.", "INVALID_NAME", is_json)

    fields = {"name": name.strip(), "specialty": specialty}
    doctor_id = reducer.create(COLLECTION, fields)

    output_result(
        data={"id": doctor_id, **fields},
        human_message=f"Added Dr. {fields['name']} ({doctor_id})",
        quiet_value=doctor_id,
        is_json=is_json,
        is_quiet=quiet,
    )


@doctors.command("search")
@click.argument("text", default="")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
def search_cmd(text: str, output_json: bool) -> None:
    """List doctors whose name contains TEXT (any case)."""
    is_json = output_json
    reducer = open_reducer(is_json)

    try:
        records = reducer.fetch(default_query(reducer.config, COLLECTION))
    except TransportError as e:
        output_error(str(e), "TRANSPORT_ERROR", is_json)

    matches = search(records, text)
    if is_json:
        click.echo(json_envelope(True, data=matches))
        return
    if not matches:
        click.echo("No doctors found.")
        return
    for doctor in matches:
        specialty = f" - {doctor['specialty']}" if doctor["specialty"] else ""
        click.echo(f"Dr. {doctor['name']}{specialty}  {doctor['id']}")
