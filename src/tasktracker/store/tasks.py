"""
tasktracker — task store.

File: src/tasktracker/store/tasks.py

Purpose
- Own ``tasks.json``: id assignment, validated CRUD, field-specific updates,
  and predicate filtering over the active task collection.

Functional requirements
- Every persisted record passes ``FieldRules`` validation.
- New ids exceed every id ever seen in the active or archived collections;
  ``lastId`` never decreases and is always >= the largest active id.
- Load-time repairs (dropped non-object entries, reassigned ids, recomputed
  ``lastId``) are persisted and reported as recovery notices.
- Duplicate ids on load raise ``ConflictError``; they are never renumbered.

Non-functional requirements
- Each public operation is one whole-file read-modify-write.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import structlog

from tasktracker.domain.models import (
    Checklist,
    ChecklistItem,
    Comment,
    Task,
    TaskCollection,
    coerce_task_id,
    isoformat_z,
    utc_now,
)
from tasktracker.domain.validation import (
    FieldRules,
    default_author,
    validate_author,
    validate_checklist,
    validate_comment_text,
)
from tasktracker.errors import ConflictError, NotFoundError, ValidationError
from tasktracker.persistence.file_cache import FileCache
from tasktracker.store.base import Clock, CollectionFile, NoticeLog


def empty_task_root() -> dict[str, Any]:
    return {"lastId": 0, "tasks": []}


def require_task_id(value: object, field: str = "id") -> int:
    """Return ``value`` if it is a positive integer id; raise ``ValidationError`` otherwise."""

    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(field, f"expected positive integer id, got {value!r}")
    return value


@dataclass(frozen=True, slots=True)
class TaskFilter:
    """
    Predicate set for ``TaskStore.filter``; all given predicates must hold.

    ``status``/``category``/``priority``/``effort`` compare case-insensitively
    for equality. ``title``/``description``/``comment`` are case-insensitive
    substring tests, and ``keyword`` matches any of the three.
    """

    status: str | None = None
    category: str | None = None
    priority: str | None = None
    effort: str | None = None
    title: str | None = None
    description: str | None = None
    comment: str | None = None
    keyword: str | None = None

    @classmethod
    def from_mapping(cls, criteria: Mapping[str, object]) -> TaskFilter:
        known = {item.name for item in fields(cls)}
        values: dict[str, str | None] = {}
        for key, value in criteria.items():
            if key not in known:
                raise ValidationError(key, "unknown filter field")
            if value is not None and not isinstance(value, str):
                raise ValidationError(key, f"expected string, got {type(value).__name__}")
            values[key] = value
        return cls(**values)

    def matches(self, task: Task) -> bool:
        for attr in ("status", "category", "priority", "effort"):
            expected = getattr(self, attr)
            if expected is not None and getattr(task, attr).lower() != expected.lower():
                return False
        if self.title is not None and self.title.lower() not in task.title.lower():
            return False
        if self.description is not None and self.description.lower() not in task.description.lower():
            return False
        if self.comment is not None and not _any_comment_contains(task, self.comment):
            return False
        if self.keyword is not None:
            needle = self.keyword.lower()
            if not (
                needle in task.title.lower()
                or needle in task.description.lower()
                or _any_comment_contains(task, needle)
            ):
                return False
        return True


def _any_comment_contains(task: Task, needle: str) -> bool:
    lowered = needle.lower()
    return any(lowered in comment.text.lower() for comment in task.comments)


class TaskStore:
    """Validated CRUD over the active task collection."""

    def __init__(
        self,
        path: Path,
        cache: FileCache,
        rules: FieldRules,
        *,
        notices: NoticeLog,
        clock: Clock = utc_now,
        environ: Mapping[str, str] | None = None,
        archived_ids: Callable[[], Iterable[int]] | None = None,
        backup_on_write: bool = False,
        logger: Any | None = None,
    ) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._file = CollectionFile(
            path,
            cache,
            empty=empty_task_root,
            notices=notices,
            clock=clock,
            logger=self._logger,
        )
        self._rules = rules
        self._clock = clock
        self._environ = environ
        self._archived_ids = archived_ids
        self._backup_on_write = backup_on_write

    @property
    def path(self) -> Path:
        return self._file.path

    @property
    def rules(self) -> FieldRules:
        return self._rules

    # ------------------------------------------------------------------
    # loading

    def load(self) -> TaskCollection:
        """Read, repair if needed, and parse the active collection."""

        root = self._file.load()
        try:
            repaired_root, repaired = self._repair(root)
            collection = self.parse(repaired_root)
        except ValueError as exc:
            self._file.quarantine(str(exc))
            return TaskCollection()
        if repaired:
            self._file.save(collection.to_dict())
        return collection

    def parse(self, root: Mapping[str, Any]) -> TaskCollection:
        """Parse an already-repaired root; raises ``ValueError`` on malformed records."""

        raw_tasks = root.get("tasks", [])
        if not isinstance(raw_tasks, list):
            raise ValueError(f"tasks: expected array, got {type(raw_tasks).__name__}")
        tasks = [Task.from_dict(entry, f"tasks[{idx}]") for idx, entry in enumerate(raw_tasks)]

        seen: set[int] = set()
        for task in tasks:
            if task.id in seen:
                raise ConflictError(f"duplicate task id {task.id} in {self.path}", task_id=task.id)
            seen.add(task.id)

        last_id = root.get("lastId", 0)
        if isinstance(last_id, bool) or not isinstance(last_id, int):
            raise ValueError(f"lastId: expected integer, got {type(last_id).__name__}")
        return TaskCollection(last_id=last_id, tasks=tasks)

    def _repair(self, root: dict[str, Any]) -> tuple[dict[str, Any], bool]:
        raw_tasks = root.get("tasks", [])
        if not isinstance(raw_tasks, list):
            raise ValueError(f"tasks: expected array, got {type(raw_tasks).__name__}")

        repaired = False
        entries: list[dict[str, Any]] = []
        for idx, entry in enumerate(raw_tasks):
            if not isinstance(entry, dict):
                self._file.notice("record_dropped", f"dropped non-object entry at tasks[{idx}]")
                repaired = True
                continue
            entries.append(dict(entry))

        valid_ids: list[int] = []
        for entry in entries:
            task_id = coerce_task_id(entry.get("id"))
            if task_id is not None:
                if entry.get("id") != task_id:
                    entry["id"] = task_id
                    repaired = True
                valid_ids.append(task_id)
        max_id = max(valid_ids, default=0)

        raw_last = root.get("lastId")
        last_id = raw_last if isinstance(raw_last, int) and not isinstance(raw_last, bool) else None
        if last_id is None or last_id < max_id:
            self._file.notice(
                "last_id_recomputed",
                f"lastId {raw_last!r} is invalid or behind the largest id; reset to {max_id}",
            )
            last_id = max_id
            repaired = True

        for entry in entries:
            if coerce_task_id(entry.get("id")) is None:
                last_id += 1
                self._file.notice(
                    "id_reassigned",
                    f"task {entry.get('title')!r} had invalid id {entry.get('id')!r}; assigned {last_id}",
                )
                entry["id"] = last_id
                repaired = True

        return {**root, "lastId": last_id, "tasks": entries}, repaired

    # ------------------------------------------------------------------
    # queries

    def get(self, task_id: int) -> Task:
        require_task_id(task_id)
        task = self.load().find(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    def list_all(self) -> list[Task]:
        return list(self.load().tasks)

    def ids(self) -> set[int]:
        return {task.id for task in self.load().tasks}

    def last_id(self) -> int:
        return self.load().last_id

    def filter(self, criteria: TaskFilter | Mapping[str, object] | None = None) -> list[Task]:
        """Return matching tasks in stored order."""

        if criteria is None:
            predicate = TaskFilter()
        elif isinstance(criteria, TaskFilter):
            predicate = criteria
        else:
            predicate = TaskFilter.from_mapping(criteria)
        return [task for task in self.load().tasks if predicate.matches(task)]

    # ------------------------------------------------------------------
    # mutations

    def create(self, fields: Mapping[str, object]) -> Task:
        cleaned = self._rules.validate_fields(fields, partial=False)
        collection = self.load()
        task_id = self._next_id(collection)
        now = self._timestamp()
        task = Task(
            id=task_id,
            title=cleaned["title"],
            description=cleaned.get("description", ""),
            category=cleaned["category"],
            status=cleaned["status"],
            priority=cleaned["priority"],
            effort=cleaned["effort"],
            created=now,
            last_updated=now,
            created_by=cleaned.get("created_by") or default_author(self._environ),
            related_files=cleaned.get("related_files", ()),
            checklists=cleaned.get("checklists", ()),
        )
        collection.tasks.append(task)
        collection.last_id = task_id
        self._commit(collection)
        self._logger.info("task_created", task_id=task_id, category=task.category)
        return task

    def update(self, task_id: int, fields: Mapping[str, object]) -> Task:
        require_task_id(task_id)
        cleaned = self._rules.validate_fields(fields, partial=True)
        task = self._mutate(task_id, lambda current: current.with_changes(**cleaned))
        self._logger.info("task_updated", task_id=task_id, fields=sorted(cleaned))
        return task

    def delete(self, task_id: int) -> Task:
        require_task_id(task_id)
        collection = self.load()
        idx = collection.index_of(task_id)
        if idx is None:
            raise NotFoundError("task", task_id)
        removed = collection.tasks.pop(idx)
        self._commit(collection)
        self._logger.info("task_deleted", task_id=task_id)
        return removed

    def add_file(self, task_id: int, path: str) -> Task:
        require_task_id(task_id)
        normalized = self._rules.normalize_path(path)

        def apply(task: Task) -> Task:
            if normalized in task.related_files:
                return task
            return task.with_changes(related_files=(*task.related_files, normalized))

        return self._mutate(task_id, apply)

    def remove_file(self, task_id: int, path: str) -> Task:
        require_task_id(task_id)
        try:
            needle = self._rules.normalize_path(path).lower()
        except ValidationError:
            # entries written before validation tightened may not normalize
            needle = str(path).strip().replace("\\", "/").lower()

        def apply(task: Task) -> Task:
            remaining = tuple(item for item in task.related_files if item.lower() != needle)
            if len(remaining) == len(task.related_files):
                raise NotFoundError("file", path, f"task {task_id} does not reference {path!r}")
            return task.with_changes(related_files=remaining)

        return self._mutate(task_id, apply)

    def add_comment(self, task_id: int, text: str, author: str | None = None) -> Task:
        require_task_id(task_id)
        body = validate_comment_text(text)
        who = default_author(self._environ) if author is None else validate_author(author)
        comment = Comment(author=who, timestamp=self._timestamp(), text=body)
        task = self._mutate(task_id, lambda current: current.with_changes(comments=(*current.comments, comment)))
        self._logger.info("task_commented", task_id=task_id)
        return task

    def add_checklist(self, task_id: int, title: str, items: Iterable[object] = ()) -> Task:
        require_task_id(task_id)
        checklist = validate_checklist({"title": title, "items": list(items)})
        return self._mutate(
            task_id,
            lambda current: current.with_changes(checklists=(*current.checklists, checklist)),
        )

    def set_checklist_item(
        self,
        task_id: int,
        checklist_index: int,
        item_index: int,
        completed: bool = True,
    ) -> Task:
        require_task_id(task_id)
        if not isinstance(completed, bool):
            raise ValidationError("completed", "expected boolean")

        def apply(task: Task) -> Task:
            if not 0 <= checklist_index < len(task.checklists):
                raise NotFoundError("checklist", f"{task_id}[{checklist_index}]")
            checklist = task.checklists[checklist_index]
            if not 0 <= item_index < len(checklist.items):
                raise NotFoundError("checklist item", f"{task_id}[{checklist_index}][{item_index}]")
            items = list(checklist.items)
            items[item_index] = ChecklistItem(text=items[item_index].text, completed=completed)
            checklists = list(task.checklists)
            checklists[checklist_index] = Checklist(title=checklist.title, items=tuple(items))
            return task.with_changes(checklists=tuple(checklists))

        return self._mutate(task_id, apply)

    def backup(self) -> Path | None:
        """Copy ``tasks.json`` to a timestamped ``.backup`` sibling."""

        return self._file.backup()

    def backup_if_enabled(self) -> None:
        if self._backup_on_write:
            self._file.backup()

    # ------------------------------------------------------------------
    # internals

    def timestamp(self) -> str:
        return self._timestamp()

    def _timestamp(self) -> str:
        return isoformat_z(self._clock())

    def _next_id(self, collection: TaskCollection) -> int:
        archived_max = max(self._archived_ids(), default=0) if self._archived_ids else 0
        return max(collection.last_id, collection.max_id(), archived_max) + 1

    def _mutate(self, task_id: int, change: Callable[[Task], Task]) -> Task:
        collection = self.load()
        idx = collection.index_of(task_id)
        if idx is None:
            raise NotFoundError("task", task_id)
        current = collection.tasks[idx]
        changed = change(current)
        if changed is current:
            return current
        updated = changed.with_changes(last_updated=self._timestamp())
        collection.tasks[idx] = updated
        self._commit(collection)
        return updated

    def _commit(self, collection: TaskCollection) -> None:
        self.backup_if_enabled()
        self._file.save(collection.to_dict())


__all__ = [
    "TaskFilter",
    "TaskStore",
    "empty_task_root",
    "require_task_id",
]
