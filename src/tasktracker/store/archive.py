"""
tasktracker — archive store.

File: src/tasktracker/store/archive.py

Purpose
- Own ``archives.json`` and move tasks between it and the active collection.

Functional requirements
- ``archive`` and ``restore`` change both files in one batch transaction:
  not-found and id-conflict failures are raised before either file is
  written, and a failed write restores both files.
- Archived tasks are never renumbered; restoring onto an occupied id raises
  ``ConflictError``.
- Listing is sorted by id and filters on status, category, and archive date.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from tasktracker.domain.models import ArchiveInfo, Task, parse_timestamp, utc_now
from tasktracker.domain.validation import validate_reason
from tasktracker.errors import ConflictError, NotFoundError, ValidationError
from tasktracker.persistence.batch import BatchTransaction, UpdateFn
from tasktracker.persistence.file_cache import FileCache
from tasktracker.store.base import Clock, CollectionFile, NoticeLog
from tasktracker.store.tasks import TaskStore, empty_task_root, require_task_id

DEFAULT_ARCHIVE_REASON = "No reason provided"


def empty_archive_root() -> dict[str, Any]:
    return {"archives": []}


@dataclass(frozen=True, slots=True)
class ArchiveFilter:
    """Predicates for ``ArchiveStore.list_archived``; bounds on the archive date are inclusive."""

    status: str | None = None
    category: str | None = None
    archived_after: datetime | None = None
    archived_before: datetime | None = None

    def __post_init__(self) -> None:
        for name in ("status", "category"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise ValidationError(name, f"expected string, got {type(value).__name__}")
        for name in ("archived_after", "archived_before"):
            value = getattr(self, name)
            if value is None:
                continue
            if not isinstance(value, datetime):
                raise ValidationError(name, f"expected datetime, got {type(value).__name__}")
            # naive bounds are read as UTC, matching the stored timestamps
            if value.tzinfo is None or value.utcoffset() is None:
                object.__setattr__(self, name, value.replace(tzinfo=UTC))

    @classmethod
    def from_mapping(cls, criteria: Mapping[str, object]) -> ArchiveFilter:
        known = {item.name for item in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in criteria.items():
            if key not in known:
                raise ValidationError(key, "unknown filter field")
            if key.startswith("archived_") and isinstance(value, str):
                try:
                    value = parse_timestamp(value)
                except ValueError as exc:
                    raise ValidationError(key, f"invalid ISO-8601 timestamp: {value!r}") from exc
            values[key] = value
        return cls(**values)

    def matches(self, task: Task) -> bool:
        if self.status is not None and task.status.lower() != self.status.lower():
            return False
        if self.category is not None and task.category.lower() != self.category.lower():
            return False
        if self.archived_after is None and self.archived_before is None:
            return True
        if task.archived is None or not task.archived.date:
            return False
        try:
            archived_at = parse_timestamp(task.archived.date)
        except ValueError:
            return False
        if self.archived_after is not None and archived_at < self.archived_after:
            return False
        if self.archived_before is not None and archived_at > self.archived_before:
            return False
        return True


class ArchiveStore:
    """Archived task collection plus the cross-store archive/restore moves."""

    def __init__(
        self,
        path: Path,
        cache: FileCache,
        tasks: TaskStore,
        *,
        notices: NoticeLog,
        clock: Clock = utc_now,
        logger: Any | None = None,
    ) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._cache = cache
        self._tasks = tasks
        self._file = CollectionFile(
            path,
            cache,
            empty=empty_archive_root,
            notices=notices,
            clock=clock,
            logger=self._logger,
        )

    @property
    def path(self) -> Path:
        return self._file.path

    def load(self) -> list[Task]:
        root = self._file.load()
        try:
            return self.parse(root)
        except ValueError as exc:
            self._file.quarantine(str(exc))
            return []

    def parse(self, root: Mapping[str, Any]) -> list[Task]:
        raw = root.get("archives", [])
        if not isinstance(raw, list):
            raise ValueError(f"archives: expected array, got {type(raw).__name__}")
        entries = [Task.from_dict(entry, f"archives[{idx}]") for idx, entry in enumerate(raw)]
        seen: set[int] = set()
        for entry in entries:
            if entry.id in seen:
                raise ConflictError(f"duplicate archived task id {entry.id} in {self.path}", task_id=entry.id)
            seen.add(entry.id)
        return entries

    def ids(self) -> set[int]:
        return {task.id for task in self.load()}

    def get(self, task_id: int) -> Task:
        require_task_id(task_id)
        for task in self.load():
            if task.id == task_id:
                return task
        raise NotFoundError("archived task", task_id)

    def list_archived(self, criteria: ArchiveFilter | Mapping[str, object] | None = None) -> list[Task]:
        if criteria is None:
            predicate = ArchiveFilter()
        elif isinstance(criteria, ArchiveFilter):
            predicate = criteria
        else:
            predicate = ArchiveFilter.from_mapping(criteria)
        return sorted((task for task in self.load() if predicate.matches(task)), key=lambda task: task.id)

    def archive(self, task_id: int, reason: str | None = None) -> Task:
        """Move an active task into the archive with ``{date, reason}`` attached."""

        require_task_id(task_id)
        reason_text = validate_reason(reason) if reason is not None else ""
        stamp = ArchiveInfo(date=self._tasks.timestamp(), reason=reason_text or DEFAULT_ARCHIVE_REASON)
        self._recover_both()
        moved: dict[str, Task] = {}

        def take_from_active(root: dict[str, Any]) -> dict[str, Any]:
            collection = self._tasks.parse(root)
            idx = collection.index_of(task_id)
            if idx is None:
                raise NotFoundError("task", task_id)
            moved["task"] = collection.tasks.pop(idx).with_changes(archived=stamp)
            return collection.to_dict()

        def append_to_archive(root: dict[str, Any]) -> dict[str, Any]:
            entries = self.parse(root)
            if any(entry.id == task_id for entry in entries):
                raise ConflictError(f"task {task_id} is already archived", task_id=task_id)
            entries.append(moved["task"])
            return {**root, "archives": [entry.to_dict() for entry in entries]}

        self._run_move(take_from_active, append_to_archive, source=self._tasks.path)
        self._logger.info("task_archived", task_id=task_id, reason=stamp.reason)
        return moved["task"]

    def restore(self, task_id: int) -> Task:
        """Move an archived task back to the active collection without ``archived``."""

        require_task_id(task_id)
        self._recover_both()
        moved: dict[str, Task] = {}

        def take_from_archive(root: dict[str, Any]) -> dict[str, Any]:
            entries = self.parse(root)
            for idx, entry in enumerate(entries):
                if entry.id == task_id:
                    moved["task"] = entries.pop(idx).with_changes(archived=None)
                    return {**root, "archives": [item.to_dict() for item in entries]}
            raise NotFoundError("archived task", task_id)

        def append_to_active(root: dict[str, Any]) -> dict[str, Any]:
            collection = self._tasks.parse(root)
            if collection.index_of(task_id) is not None:
                raise ConflictError(
                    f"task {task_id} already exists in the active collection",
                    task_id=task_id,
                )
            collection.tasks.append(moved["task"])
            collection.last_id = max(collection.last_id, task_id)
            return collection.to_dict()

        self._run_move(take_from_archive, append_to_active, source=self.path)
        self._logger.info("task_restored", task_id=task_id)
        return moved["task"]

    def _recover_both(self) -> None:
        # quarantine corrupt files up front so the batch reads clean content
        self._tasks.load()
        self.load()

    def _run_move(self, take: UpdateFn, put: UpdateFn, *, source: Path) -> None:
        self._tasks.backup_if_enabled()
        if source == self._tasks.path:
            destination, destination_default = self.path, empty_archive_root
            source_default = empty_task_root
        else:
            destination, destination_default = self._tasks.path, empty_task_root
            source_default = empty_archive_root
        batch = BatchTransaction(self._cache, logger=self._logger)
        batch.update(source, take, default_factory=source_default)
        batch.update(destination, put, default_factory=destination_default)
        batch.execute()


__all__ = [
    "ArchiveFilter",
    "ArchiveStore",
    "DEFAULT_ARCHIVE_REASON",
    "empty_archive_root",
]
