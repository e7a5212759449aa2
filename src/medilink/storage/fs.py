"""Atomic file writes, directory management, and root discovery."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

MEDILINK_DIR = ".medilink"
MEDILINK_ROOT_ENV = "MEDILINK_ROOT"


def _fsync_directory(path: Path) -> None:
    """Fsync a directory so a rename into it survives a crash.

    Platforms that refuse fsync on a directory descriptor raise
    ``OSError``; that is ignored.
    """
    try:
        fd = os.open(str(path), os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except OSError:
        pass


def atomic_write(path: Path, content: str | bytes) -> None:
    """Write content to path atomically via temp file + fsync + rename.

    Raises:
        FileNotFoundError: If the parent directory does not exist.
    """
    parent = path.parent
    if not parent.is_dir():
        raise FileNotFoundError(f"Parent directory does not exist: {parent}")

    data = content.encode("utf-8") if isinstance(content, str) else content

    fd, tmp_path = tempfile.mkstemp(dir=parent, prefix=".tmp.")
    closed = False
    try:
        view = memoryview(data)
        while view:
            written = os.write(fd, view)
            view = view[written:]
        os.fsync(fd)
        os.close(fd)
        closed = True
        os.replace(tmp_path, path)
        _fsync_directory(parent)
    except BaseException:
        if not closed:
            os.close(fd)
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def ensure_medilink_dirs(root: Path, collections: list[str] | tuple[str, ...] = ()) -> Path:
    """Create the .medilink/ directory structure under root.

    Returns the path of the ``.medilink`` directory.
    """
    medilink_dir = root / MEDILINK_DIR
    for subdir in ["collections", "locks"]:
        (medilink_dir / subdir).mkdir(parents=True, exist_ok=True)
    for name in collections:
        (medilink_dir / "collections" / name).mkdir(exist_ok=True)
    return medilink_dir


def find_root(start: Path | None = None) -> Path | None:
    """Find the project root containing .medilink/.

    Checks MEDILINK_ROOT first.  If set, it must point at a directory
    holding ``.medilink/``; there is no fallback to walking up.

    Otherwise, walks up from start (defaults to cwd).

    Raises:
        MedilinkRootError: If MEDILINK_ROOT is set but invalid.
    """
    env_root = os.environ.get(MEDILINK_ROOT_ENV)
    if env_root is not None:
        if not env_root:
            raise MedilinkRootError("MEDILINK_ROOT is set but empty")
        env_path = Path(env_root)
        if not env_path.is_dir():
            raise MedilinkRootError(
                f"MEDILINK_ROOT points to a path that does not exist: {env_root}"
            )
        if not (env_path / MEDILINK_DIR).is_dir():
            raise MedilinkRootError(
                f"MEDILINK_ROOT points to a directory with no {MEDILINK_DIR}/ inside: {env_root}"
            )
        return env_path

    current = (start or Path.cwd()).resolve()
    while True:
        if (current / MEDILINK_DIR).is_dir():
            return current
        parent = current.parent
        if parent == current:
            return None
        current = parent


class MedilinkRootError(Exception):
    """Raised when MEDILINK_ROOT env var is set but invalid."""
