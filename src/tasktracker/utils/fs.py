"""
tasktracker — filesystem utilities

File: src/tasktracker/utils/fs.py

Purpose
- Crash-safe whole-file writes and guarded path helpers for the data directory.

Functional requirements
- Atomic writes go to ``<target>.tmp`` in the destination directory and are
  moved over the target with a single ``os.replace``.
- A failed write never replaces the target and leaves no temp file behind.

Non-functional requirements
- Standard library only and cross-platform behavior where feasible.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import stat
from datetime import datetime
from pathlib import Path

from tasktracker.constants import PRIVATE_DIR_MODE, PRIVATE_FILE_MODE, TEMP_SUFFIX

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "copy_file",
    "ensure_private_directory",
    "is_within",
    "temp_path_for",
    "timestamped_sibling",
]


def temp_path_for(path: PathLike) -> Path:
    """Return the staging path used while ``path`` is being rewritten."""

    target = Path(path)
    return target.with_name(target.name + TEMP_SUFFIX)


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. write + flush + fsync ``<path>.tmp`` in the same directory,
    2. replace target via ``os.replace``,
    3. best-effort fsync of the parent directory.
    """

    target = Path(path)
    parent = target.parent
    if not parent.is_dir():
        raise NotADirectoryError(f"{parent!s} is not a directory")

    payload = data.encode(encoding) if isinstance(data, str) else data
    staging = temp_path_for(target)

    try:
        fd = os.open(staging, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, PRIVATE_FILE_MODE)
        with os.fdopen(fd, "wb") as file_handle:
            file_handle.write(payload)
            file_handle.flush()
            os.fsync(file_handle.fileno())
        os.replace(staging, target)
        _fsync_directory(parent)
    except BaseException:
        with contextlib.suppress(OSError):
            staging.unlink(missing_ok=True)
        raise


def ensure_private_directory(path: PathLike) -> Path:
    """
    Create ``path`` (and parents) owner-only, or tighten an existing directory
    that grants group/other access.
    """

    directory = Path(path)
    if not directory.exists():
        directory.mkdir(parents=True, mode=PRIVATE_DIR_MODE, exist_ok=True)
        return directory
    if not directory.is_dir():
        raise NotADirectoryError(f"{directory!s} is not a directory")
    if os.name != "nt":
        mode = stat.S_IMODE(directory.stat().st_mode)
        if mode & 0o077:
            with contextlib.suppress(PermissionError):
                directory.chmod(PRIVATE_DIR_MODE)
    return directory


def timestamped_sibling(path: PathLike, label: str, *, now: datetime) -> Path:
    """Return ``<path>.<label>.<YYYYmmddTHHMMSSffffffZ>``; never an existing file."""

    target = Path(path)
    stamp = now.strftime("%Y%m%dT%H%M%S%fZ")
    candidate = target.with_name(f"{target.name}.{label}.{stamp}")
    counter = 1
    while candidate.exists():
        candidate = target.with_name(f"{target.name}.{label}.{stamp}-{counter}")
        counter += 1
    return candidate


def copy_file(source: PathLike, destination: PathLike) -> Path:
    """Copy file bytes and metadata; returns the destination path."""

    return Path(shutil.copy2(source, destination))


def is_within(child: PathLike, parent: PathLike) -> bool:
    """Return ``True`` if ``child`` resolves to a location inside ``parent``."""

    resolved_parent = Path(parent).resolve()
    resolved_child = Path(child).resolve()
    try:
        resolved_child.relative_to(resolved_parent)
    except ValueError:
        return False
    return True


def _fsync_directory(path: Path) -> None:
    """
    Best-effort directory fsync for metadata durability after ``os.replace``.

    Some platforms/filesystems do not support fsync on directories.
    """

    if os.name == "nt":
        return

    flags = os.O_RDONLY
    if hasattr(os, "O_DIRECTORY"):
        flags |= os.O_DIRECTORY

    try:
        dir_fd = os.open(path, flags)
    except OSError:
        return
    try:
        with contextlib.suppress(OSError):
            os.fsync(dir_fd)
    finally:
        os.close(dir_fd)
