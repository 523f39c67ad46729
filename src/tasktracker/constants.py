"""Stable constants shared across the storage layer."""

from __future__ import annotations

from typing import Final

# On-disk layout (relative to the project root unless overridden).
DATA_DIR_NAME: Final[str] = ".tasktracker"
TASKS_FILE: Final[str] = "tasks.json"
ARCHIVES_FILE: Final[str] = "archives.json"
DEPENDENCIES_FILE: Final[str] = "dependencies.json"
CONFIG_FILE: Final[str] = "config.json"

TEMP_SUFFIX: Final[str] = ".tmp"
CORRUPT_SUFFIX: Final[str] = "corrupted"
BACKUP_SUFFIX: Final[str] = "backup"

# Field limits, applied after sanitization.
MAX_TITLE_LENGTH: Final[int] = 200
MAX_DESCRIPTION_LENGTH: Final[int] = 5000
MAX_COMMENT_LENGTH: Final[int] = 2000
MAX_CHECKLIST_TEXT_LENGTH: Final[int] = 500
MAX_AUTHOR_LENGTH: Final[int] = 100
MAX_REASON_LENGTH: Final[int] = 1000

DEFAULT_CACHE_TTL_SECONDS: Final[float] = 30.0

DEFAULT_FILE_EXTENSIONS: Final[tuple[str, ...]] = (
    ".js",
    ".ts",
    ".jsx",
    ".tsx",
    ".css",
    ".scss",
    ".html",
    ".md",
    ".json",
    ".txt",
)

# POSIX permission bits for the data directory and freshly written files.
PRIVATE_DIR_MODE: Final[int] = 0o700
PRIVATE_FILE_MODE: Final[int] = 0o600

__all__ = [
    "ARCHIVES_FILE",
    "BACKUP_SUFFIX",
    "CONFIG_FILE",
    "CORRUPT_SUFFIX",
    "DATA_DIR_NAME",
    "DEFAULT_CACHE_TTL_SECONDS",
    "DEFAULT_FILE_EXTENSIONS",
    "DEPENDENCIES_FILE",
    "MAX_AUTHOR_LENGTH",
    "MAX_CHECKLIST_TEXT_LENGTH",
    "MAX_COMMENT_LENGTH",
    "MAX_DESCRIPTION_LENGTH",
    "MAX_REASON_LENGTH",
    "MAX_TITLE_LENGTH",
    "PRIVATE_DIR_MODE",
    "PRIVATE_FILE_MODE",
    "TASKS_FILE",
    "TEMP_SUFFIX",
]
