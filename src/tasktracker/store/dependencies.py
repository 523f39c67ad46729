"""
tasktracker — dependency graph index.

File: src/tasktracker/store/dependencies.py

Purpose
- Persist directed "depends on" edges between task ids in
  ``dependencies.json`` with a forward map and its inverse.

Functional requirements
- Adding or removing an edge updates both maps in one write and is
  idempotent. Self-edges are rejected. Emptied lists are pruned.
- Referenced ids need not exist; ``dangling`` reports edges that point at
  unknown ids instead of deleting them. Cycles are allowed.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from tasktracker.domain.models import coerce_task_id, utc_now
from tasktracker.errors import ValidationError
from tasktracker.persistence.file_cache import FileCache
from tasktracker.store.base import Clock, CollectionFile, NoticeLog
from tasktracker.store.tasks import require_task_id

Adjacency = dict[str, list[str]]


def empty_dependency_root() -> dict[str, Any]:
    return {"dependencies": {}, "blockedBy": {}}


@dataclass(frozen=True, slots=True)
class DependencyEdge:
    task_id: int
    depends_on: int

    def to_dict(self) -> dict[str, int]:
        return {"taskId": self.task_id, "dependsOn": self.depends_on}


class DependencyGraph:
    """Bidirectional adjacency index persisted beside the task collection."""

    def __init__(
        self,
        path: Path,
        cache: FileCache,
        *,
        notices: NoticeLog,
        clock: Clock = utc_now,
        logger: Any | None = None,
    ) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._file = CollectionFile(
            path,
            cache,
            empty=empty_dependency_root,
            notices=notices,
            clock=clock,
            logger=self._logger,
        )

    @property
    def path(self) -> Path:
        return self._file.path

    def load(self) -> tuple[Adjacency, Adjacency]:
        root = self._file.load()
        try:
            forward = _parse_adjacency(root.get("dependencies", {}), "dependencies")
            inverse = _parse_adjacency(root.get("blockedBy", {}), "blockedBy")
        except ValueError as exc:
            self._file.quarantine(str(exc))
            return {}, {}
        return forward, inverse

    def add(self, task_id: int, depends_on: int) -> bool:
        """Record ``task_id`` depends on ``depends_on``; ``False`` if already present."""

        source = str(require_task_id(task_id, "taskId"))
        target = str(require_task_id(depends_on, "dependsOn"))
        if source == target:
            raise ValidationError("dependsOn", f"task {task_id} cannot depend on itself")

        forward, inverse = self.load()
        targets = forward.setdefault(source, [])
        sources = inverse.setdefault(target, [])
        if target in targets and source in sources:
            return False
        if target not in targets:
            targets.append(target)
        if source not in sources:
            sources.append(source)
        self._save(forward, inverse)
        self._logger.info("dependency_added", task_id=task_id, depends_on=depends_on)
        return True

    def remove(self, task_id: int, depends_on: int) -> bool:
        """Drop the edge if present; ``False`` when there was nothing to remove."""

        source = str(require_task_id(task_id, "taskId"))
        target = str(require_task_id(depends_on, "dependsOn"))

        forward, inverse = self.load()
        changed = _discard(forward, source, target)
        changed = _discard(inverse, target, source) or changed
        if not changed:
            return False
        self._save(forward, inverse)
        self._logger.info("dependency_removed", task_id=task_id, depends_on=depends_on)
        return True

    def dependencies_of(self, task_id: int) -> list[int]:
        """Ids that ``task_id`` depends on, in insertion order."""

        forward, _ = self.load()
        return [int(item) for item in forward.get(str(require_task_id(task_id, "taskId")), [])]

    def dependents_of(self, task_id: int) -> list[int]:
        """Ids that depend on ``task_id`` (are blocked by it), in insertion order."""

        _, inverse = self.load()
        return [int(item) for item in inverse.get(str(require_task_id(task_id, "taskId")), [])]

    def edges(self) -> list[DependencyEdge]:
        forward, _ = self.load()
        return [
            DependencyEdge(task_id=int(source), depends_on=int(target))
            for source, targets in forward.items()
            for target in targets
        ]

    def dangling(self, known_ids: Iterable[int]) -> list[DependencyEdge]:
        """Edges where either endpoint is not in ``known_ids``."""

        known = set(known_ids)
        return [
            edge
            for edge in self.edges()
            if edge.task_id not in known or edge.depends_on not in known
        ]

    def snapshot(self) -> dict[str, dict[str, list[int]]]:
        forward, inverse = self.load()
        return {
            "dependencies": {key: [int(item) for item in value] for key, value in forward.items()},
            "blockedBy": {key: [int(item) for item in value] for key, value in inverse.items()},
        }

    def _save(self, forward: Adjacency, inverse: Adjacency) -> None:
        self._file.save(
            {
                "dependencies": {key: value for key, value in forward.items() if value},
                "blockedBy": {key: value for key, value in inverse.items() if value},
            }
        )


def _discard(adjacency: Adjacency, key: str, value: str) -> bool:
    members = adjacency.get(key)
    if members is None or value not in members:
        return False
    members.remove(value)
    if not members:
        del adjacency[key]
    return True


def _parse_adjacency(raw: object, path: str) -> Adjacency:
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: expected object, got {type(raw).__name__}")
    parsed: Adjacency = {}
    for key, values in raw.items():
        if coerce_task_id(key) is None:
            raise ValueError(f"{path}: invalid task id key {key!r}")
        if not isinstance(values, list):
            raise ValueError(f"{path}.{key}: expected array, got {type(values).__name__}")
        members: list[str] = []
        for value in values:
            member = coerce_task_id(value)
            if member is None:
                raise ValueError(f"{path}.{key}: invalid task id {value!r}")
            if str(member) not in members:
                members.append(str(member))
        if members:
            parsed[str(coerce_task_id(key))] = members
    return parsed


__all__ = [
    "DependencyEdge",
    "DependencyGraph",
    "empty_dependency_root",
]
