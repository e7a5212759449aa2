"""CLI entry point and commands."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from medilink.core.config import default_config, serialize_config
from medilink.storage.fs import MEDILINK_DIR, atomic_write, ensure_medilink_dirs


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log sync activity to stderr.")
def cli(verbose: bool) -> None:
    """MediLink: live appointment and doctor collections."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s: %(message)s")


@cli.command()
@click.option(
    "--path",
    "target_path",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    default=".",
    help="Directory to initialize MediLink in (defaults to current directory).",
)
def init(target_path: str) -> None:
    """Initialize a new MediLink project."""
    root = Path(target_path)
    medilink_dir = root / MEDILINK_DIR

    if medilink_dir.is_dir():
        click.echo(f"MediLink already initialized in {MEDILINK_DIR}/")
        return

    if medilink_dir.exists():
        raise click.ClickException(
            f"Cannot initialize: '{MEDILINK_DIR}' exists but is not a directory. "
            "Remove it and try again."
        )

    config = default_config()
    try:
        ensure_medilink_dirs(root, tuple(config["collections"]))
        atomic_write(medilink_dir / "config.json", serialize_config(config))
    except OSError as e:
        raise click.ClickException(f"Failed to initialize: {e}") from e

    click.echo(f"Initialized empty MediLink project in {MEDILINK_DIR}/")


# ---------------------------------------------------------------------------
# Register command modules (must be after cli group is defined)
# ---------------------------------------------------------------------------
from medilink.cli import appointment_cmds as _appointment_cmds  # noqa: E402, F401
from medilink.cli import doctor_cmds as _doctor_cmds  # noqa: E402, F401

if __name__ == "__main__":
    cli()
