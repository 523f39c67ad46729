"""Typed failures returned by every store operation."""

from __future__ import annotations

from pathlib import Path


class TaskTrackerError(Exception):
    """Base class for all storage-layer failures."""


class NotFoundError(TaskTrackerError):
    """A task, archived task, file reference, or data file does not exist."""

    def __init__(self, kind: str, identifier: object, message: str | None = None) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(message or f"{kind} {identifier!s} not found")


class ValidationError(TaskTrackerError, ValueError):
    """A field failed a length, enum, type, or path rule."""

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class ConflictError(TaskTrackerError):
    """An id collides with one already present in the destination collection."""

    def __init__(self, message: str, *, task_id: int | None = None) -> None:
        self.task_id = task_id
        super().__init__(message)


class CorruptDataError(TaskTrackerError):
    """A data file exists but its content cannot be parsed."""

    def __init__(self, path: Path, detail: str) -> None:
        self.path = Path(path)
        self.detail = detail
        super().__init__(f"corrupt data in {self.path}: {detail}")


class IOFailure(TaskTrackerError):
    """A disk read, write, or rename failed; the original file is untouched."""

    def __init__(self, path: Path, action: str, cause: BaseException | None = None) -> None:
        self.path = Path(path)
        self.action = action
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"unable to {action} {self.path}{detail}")


__all__ = [
    "ConflictError",
    "CorruptDataError",
    "IOFailure",
    "NotFoundError",
    "TaskTrackerError",
    "ValidationError",
]
