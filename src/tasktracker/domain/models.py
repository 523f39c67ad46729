"""Task record dataclasses with tolerant loading and canonical camelCase serialization."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import NoReturn

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

UNKNOWN_AUTHOR = "Unknown"

# Keys a stored task record may carry that map onto Task attributes.
_TASK_KEYS = frozenset(
    {
        "id",
        "title",
        "description",
        "category",
        "status",
        "priority",
        "effort",
        "created",
        "lastUpdated",
        "createdBy",
        "relatedFiles",
        "comments",
        "checklists",
        "archived",
    }
)


def utc_now() -> datetime:
    return datetime.now(UTC)


def isoformat_z(value: datetime) -> str:
    """Render ``value`` as millisecond-precision ISO-8601 UTC with a ``Z`` suffix."""

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError("datetime must be timezone-aware")
    normalized = value.astimezone(UTC)
    return normalized.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z``."""

    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _expect_object(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    return value


def _as_str(value: object, path: str, *, default: str | None = None) -> str:
    if value is None and default is not None:
        return default
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    return value


def _as_list(value: object, path: str) -> list[object]:
    if value is None:
        return []
    if not isinstance(value, list):
        _fail(path, f"expected array, got {type(value).__name__}")
    return value


def coerce_task_id(value: object) -> int | None:
    """Return ``value`` as a positive task id, or ``None`` if it is not one."""

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
        return parsed if parsed > 0 else None
    return None


@dataclass(frozen=True, slots=True)
class Comment:
    author: str
    timestamp: str
    text: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {"author": self.author, "timestamp": self.timestamp, "text": self.text}

    @classmethod
    def from_dict(cls, data: object, path: str = "comment") -> Comment:
        parsed = _expect_object(data, path)
        # older files stored the timestamp under "date"
        stamp = parsed.get("timestamp", parsed.get("date"))
        return cls(
            author=_as_str(parsed.get("author"), f"{path}.author", default=UNKNOWN_AUTHOR),
            timestamp=_as_str(stamp, f"{path}.timestamp", default=""),
            text=_as_str(parsed.get("text"), f"{path}.text"),
        )


@dataclass(frozen=True, slots=True)
class ChecklistItem:
    text: str
    completed: bool = False

    def to_dict(self) -> dict[str, JSONValue]:
        return {"text": self.text, "completed": self.completed}

    @classmethod
    def from_dict(cls, data: object, path: str = "item") -> ChecklistItem:
        parsed = _expect_object(data, path)
        completed = parsed.get("completed", False)
        if not isinstance(completed, bool):
            _fail(f"{path}.completed", "expected boolean")
        return cls(text=_as_str(parsed.get("text"), f"{path}.text"), completed=completed)


@dataclass(frozen=True, slots=True)
class Checklist:
    title: str
    items: tuple[ChecklistItem, ...] = ()

    def to_dict(self) -> dict[str, JSONValue]:
        return {"title": self.title, "items": [item.to_dict() for item in self.items]}

    @classmethod
    def from_dict(cls, data: object, path: str = "checklist") -> Checklist:
        parsed = _expect_object(data, path)
        items = _as_list(parsed.get("items"), f"{path}.items")
        return cls(
            title=_as_str(parsed.get("title"), f"{path}.title", default=""),
            items=tuple(
                ChecklistItem.from_dict(item, f"{path}.items[{idx}]")
                for idx, item in enumerate(items)
            ),
        )


@dataclass(frozen=True, slots=True)
class ArchiveInfo:
    """Archival stamp: when and why a task left the active collection."""

    date: str
    reason: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {"date": self.date, "reason": self.reason}

    @classmethod
    def from_dict(cls, data: object, path: str = "archived") -> ArchiveInfo:
        parsed = _expect_object(data, path)
        return cls(
            date=_as_str(parsed.get("date"), f"{path}.date", default=""),
            reason=_as_str(parsed.get("reason"), f"{path}.reason", default=""),
        )


@dataclass(frozen=True, slots=True)
class Task:
    """
    One task record.

    Serialized with camelCase keys (``lastUpdated``, ``relatedFiles``,
    ``createdBy``) so the files stay readable by other tools working on the
    same data directory. ``archived`` is present only on archived copies.

    Keys written by other tools (``branch``, ``commits``, ``timeSpent`` and
    the like) are carried in ``extra`` and written back unchanged.
    """

    id: int
    title: str
    description: str
    category: str
    status: str
    priority: str
    effort: str
    created: str
    last_updated: str
    created_by: str = UNKNOWN_AUTHOR
    related_files: tuple[str, ...] = ()
    comments: tuple[Comment, ...] = ()
    checklists: tuple[Checklist, ...] = ()
    archived: ArchiveInfo | None = None
    extra: Mapping[str, JSONValue] = field(default_factory=dict, hash=False)

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "status": self.status,
            "priority": self.priority,
            "effort": self.effort,
            "created": self.created,
            "lastUpdated": self.last_updated,
            "createdBy": self.created_by,
            "relatedFiles": list(self.related_files),
            "comments": [comment.to_dict() for comment in self.comments],
            "checklists": [checklist.to_dict() for checklist in self.checklists],
        }
        for key, value in self.extra.items():
            payload.setdefault(key, copy.deepcopy(value))
        if self.archived is not None:
            payload["archived"] = self.archived.to_dict()
        return payload

    @classmethod
    def from_dict(cls, data: object, path: str = "task") -> Task:
        """
        Build a task from its stored form.

        The id must already be a positive integer; callers repair ids before
        calling this. Missing optional fields fall back to empty values.
        """

        parsed = _expect_object(data, path)
        task_id = parsed.get("id")
        if isinstance(task_id, bool) or not isinstance(task_id, int) or task_id < 1:
            _fail(f"{path}.id", "expected positive integer")

        created = _as_str(parsed.get("created"), f"{path}.created", default="")
        archived_raw = parsed.get("archived")
        return cls(
            id=task_id,
            title=_as_str(parsed.get("title"), f"{path}.title"),
            description=_as_str(parsed.get("description"), f"{path}.description", default=""),
            category=_as_str(parsed.get("category"), f"{path}.category", default=""),
            status=_as_str(parsed.get("status"), f"{path}.status", default=""),
            priority=_as_str(parsed.get("priority"), f"{path}.priority", default=""),
            effort=_as_str(parsed.get("effort"), f"{path}.effort", default=""),
            created=created,
            last_updated=_as_str(parsed.get("lastUpdated"), f"{path}.lastUpdated", default=created),
            created_by=_as_str(parsed.get("createdBy"), f"{path}.createdBy", default=UNKNOWN_AUTHOR),
            related_files=tuple(
                _as_str(item, f"{path}.relatedFiles[{idx}]")
                for idx, item in enumerate(_as_list(parsed.get("relatedFiles"), f"{path}.relatedFiles"))
            ),
            comments=tuple(
                Comment.from_dict(item, f"{path}.comments[{idx}]")
                for idx, item in enumerate(_as_list(parsed.get("comments"), f"{path}.comments"))
            ),
            checklists=tuple(
                Checklist.from_dict(item, f"{path}.checklists[{idx}]")
                for idx, item in enumerate(_as_list(parsed.get("checklists"), f"{path}.checklists"))
            ),
            archived=None if archived_raw is None else ArchiveInfo.from_dict(archived_raw, f"{path}.archived"),
            extra={key: copy.deepcopy(value) for key, value in parsed.items() if key not in _TASK_KEYS},
        )

    def with_changes(self, **changes: object) -> Task:
        return replace(self, **changes)


@dataclass(slots=True)
class TaskCollection:
    """In-memory form of ``tasks.json``: the id counter plus active tasks."""

    last_id: int = 0
    tasks: list[Task] = field(default_factory=list)

    def to_dict(self) -> dict[str, JSONValue]:
        return {"lastId": self.last_id, "tasks": [task.to_dict() for task in self.tasks]}

    def index_of(self, task_id: int) -> int | None:
        for idx, task in enumerate(self.tasks):
            if task.id == task_id:
                return idx
        return None

    def find(self, task_id: int) -> Task | None:
        idx = self.index_of(task_id)
        return None if idx is None else self.tasks[idx]

    def max_id(self) -> int:
        return max((task.id for task in self.tasks), default=0)


__all__ = [
    "ArchiveInfo",
    "Checklist",
    "ChecklistItem",
    "Comment",
    "JSONValue",
    "Task",
    "TaskCollection",
    "UNKNOWN_AUTHOR",
    "coerce_task_id",
    "isoformat_z",
    "parse_timestamp",
    "utc_now",
]
