"""Utility exports for filesystem and hashing helpers."""

from tasktracker.utils.fs import (
    atomic_write,
    copy_file,
    ensure_private_directory,
    is_within,
    temp_path_for,
    timestamped_sibling,
)
from tasktracker.utils.hashing import sha256_bytes, sha256_text

__all__ = [
    "atomic_write",
    "copy_file",
    "ensure_private_directory",
    "is_within",
    "sha256_bytes",
    "sha256_text",
    "temp_path_for",
    "timestamped_sibling",
]
