"""
tasktracker — file-backed task record store.

File: src/tasktracker/__init__.py

Purpose
- Package root. The transactional storage layer behind the task tracker:
  atomic JSON file cache, batch transactions with rollback, task CRUD,
  the dependency side-index, and the archive.

Import boundary rules
- No side effects at import time (no config loading, no logging setup).
- Heavy submodules are imported lazily by callers; only the facade and the
  error types are re-exported here.
"""

from tasktracker.api import TaskTracker
from tasktracker.errors import (
    ConflictError,
    CorruptDataError,
    IOFailure,
    NotFoundError,
    TaskTrackerError,
    ValidationError,
)

__version__ = "0.4.0"

__all__ = [
    "ConflictError",
    "CorruptDataError",
    "IOFailure",
    "NotFoundError",
    "TaskTracker",
    "TaskTrackerError",
    "ValidationError",
    "__version__",
]
