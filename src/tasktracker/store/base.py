"""
tasktracker — shared collection-file plumbing for the stores.

File: src/tasktracker/store/base.py

Purpose
- Load a whole-file JSON collection through the file cache and recover from
  corrupt content by quarantining the file and starting over empty.
- Record caller-visible recovery notices alongside warning-level log events.

Functional requirements
- Corrupt content is never fatal: the bad file is copied to
  ``<name>.corrupted.<timestamp>`` before the collection is reset.
- A missing file reads as the empty collection without creating it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from tasktracker.constants import BACKUP_SUFFIX, CORRUPT_SUFFIX
from tasktracker.domain.models import utc_now
from tasktracker.errors import CorruptDataError, IOFailure
from tasktracker.persistence.file_cache import FileCache
from tasktracker.utils.fs import copy_file, timestamped_sibling

Clock = Callable[[], datetime]


@dataclass(frozen=True, slots=True)
class RecoveryNotice:
    """Something the store repaired on its own that the caller should know about."""

    path: Path
    code: str
    message: str
    backup_path: Path | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "path": str(self.path),
            "code": self.code,
            "message": self.message,
            "backup_path": None if self.backup_path is None else str(self.backup_path),
        }


class NoticeLog:
    """Ordered, drainable list of recovery notices shared by one tracker."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[RecoveryNotice] = []

    def add(self, notice: RecoveryNotice) -> None:
        self._items.append(notice)

    def items(self) -> tuple[RecoveryNotice, ...]:
        return tuple(self._items)

    def drain(self) -> tuple[RecoveryNotice, ...]:
        drained = tuple(self._items)
        self._items.clear()
        return drained

    def __len__(self) -> int:
        return len(self._items)


class CollectionFile:
    """One JSON document holding a top-level object, with quarantine-and-reset."""

    def __init__(
        self,
        path: Path,
        cache: FileCache,
        *,
        empty: Callable[[], dict[str, Any]],
        notices: NoticeLog,
        clock: Clock = utc_now,
        logger: Any | None = None,
    ) -> None:
        self._path = Path(path)
        self._cache = cache
        self._empty = empty
        self._notices = notices
        self._clock = clock
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def cache(self) -> FileCache:
        return self._cache

    def empty(self) -> dict[str, Any]:
        return self._empty()

    def load(self) -> dict[str, Any]:
        """Return the document, quarantining it first if it cannot be parsed."""

        try:
            data = self._cache.read(self._path, default_factory=self._empty)
        except CorruptDataError as exc:
            return self.quarantine(exc.detail)
        if not isinstance(data, dict):
            return self.quarantine(f"expected a JSON object, got {type(data).__name__}")
        return data

    def save(self, data: dict[str, Any]) -> bool:
        return self._cache.write(self._path, data)

    def quarantine(self, detail: str) -> dict[str, Any]:
        """Move the bad content aside, reset the file to empty, and raise a notice."""

        backup_path = timestamped_sibling(self._path, CORRUPT_SUFFIX, now=self._clock())
        try:
            copy_file(self._path, backup_path)
        except OSError as exc:
            raise IOFailure(self._path, "back up corrupt file", exc) from exc

        empty = self._empty()
        self._cache.write(self._path, empty, only_if_changed=False)
        self._logger.warning(
            "corrupt_file_quarantined",
            path=str(self._path),
            backup_path=str(backup_path),
            detail=detail,
        )
        self._notices.add(
            RecoveryNotice(
                path=self._path,
                code="corrupt_file_quarantined",
                message=f"corrupt data reset to empty ({detail}); original kept at {backup_path.name}",
                backup_path=backup_path,
            )
        )
        return empty

    def backup(self) -> Path | None:
        """Copy the current file to ``<name>.backup.<timestamp>``; ``None`` if absent."""

        if not self._path.exists():
            return None
        backup_path = timestamped_sibling(self._path, BACKUP_SUFFIX, now=self._clock())
        try:
            copy_file(self._path, backup_path)
        except OSError as exc:
            raise IOFailure(self._path, "back up", exc) from exc
        self._logger.info("collection_backed_up", path=str(self._path), backup_path=str(backup_path))
        return backup_path

    def notice(self, code: str, message: str) -> None:
        """Log a repair at warning level and record it for the caller."""

        self._logger.warning(code, path=str(self._path), detail=message)
        self._notices.add(RecoveryNotice(path=self._path, code=code, message=message))


__all__ = [
    "Clock",
    "CollectionFile",
    "NoticeLog",
    "RecoveryNotice",
]
