"""
tasktracker — public facade.

File: src/tasktracker/api.py

Purpose
- One object, constructed with the project root, that wires the file cache,
  config, and the three stores together and exposes the operations used by
  the CLI and reporting layers.

Functional requirements
- Every operation returns a value or raises a ``TaskTrackerError`` subclass;
  nothing prints or exits.
- Config is loaded once per instance and passed to the stores explicitly.
- Recovery notices raised by any store are collected on the instance.

Non-functional requirements
- Single process, single active writer per data directory.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

import structlog

from tasktracker.config.loader import load_config, resolve_data_dir
from tasktracker.config.schema import assert_valid_config, default_config, merge_config
from tasktracker.constants import ARCHIVES_FILE, DEPENDENCIES_FILE, TASKS_FILE
from tasktracker.domain.models import Task, utc_now
from tasktracker.domain.validation import FieldRules
from tasktracker.persistence.file_cache import FileCache
from tasktracker.store.archive import ArchiveFilter, ArchiveStore
from tasktracker.store.base import Clock, NoticeLog, RecoveryNotice
from tasktracker.store.batch_ops import BatchReport, apply_operations
from tasktracker.store.dependencies import DependencyEdge, DependencyGraph
from tasktracker.store.tasks import TaskFilter, TaskStore


class TaskTracker:
    """
    Task store, dependency graph, and archive rooted at one project directory.

    Example::

        tracker = TaskTracker(project_root)
        task = tracker.create_task({"title": "Fix bug", "category": "bug"})
        tracker.archive_task(task.id, "duplicate")
    """

    def __init__(
        self,
        root: str | os.PathLike[str],
        *,
        config: Mapping[str, object] | None = None,
        config_overrides: Mapping[str, object] | None = None,
        environ: Mapping[str, str] | None = None,
        clock: Clock = utc_now,
        cache: FileCache | None = None,
        logger: Any | None = None,
    ) -> None:
        env_map = dict(os.environ if environ is None else environ)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._root = Path(root).expanduser().resolve()
        self._data_dir = resolve_data_dir(self._root, environ=env_map)

        if config is not None:
            merged = merge_config(default_config(), config)
            self._config = assert_valid_config(merge_config(merged, dict(config_overrides or {})))
        else:
            self._config = load_config(self._data_dir, overrides=config_overrides, environ=env_map)

        self._clock = clock
        self._notices = NoticeLog()
        self._cache = cache or FileCache(default_ttl=self._config["cacheTtlSeconds"], logger=logger)
        rules = FieldRules.from_config(self._config, project_root=self._root)

        self._tasks = TaskStore(
            self._data_dir / TASKS_FILE,
            self._cache,
            rules,
            notices=self._notices,
            clock=clock,
            environ=env_map,
            archived_ids=lambda: self._archive.ids(),
            backup_on_write=bool(self._config["backupOnWrite"]),
            logger=logger,
        )
        self._archive = ArchiveStore(
            self._data_dir / ARCHIVES_FILE,
            self._cache,
            self._tasks,
            notices=self._notices,
            clock=clock,
            logger=logger,
        )
        self._dependencies = DependencyGraph(
            self._data_dir / DEPENDENCIES_FILE,
            self._cache,
            notices=self._notices,
            clock=clock,
            logger=logger,
        )
        self._logger.debug("task_tracker_opened", root=str(self._root), data_dir=str(self._data_dir))

    @property
    def root(self) -> Path:
        return self._root

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def config(self) -> dict[str, Any]:
        return dict(self._config)

    @property
    def tasks(self) -> TaskStore:
        return self._tasks

    @property
    def archive(self) -> ArchiveStore:
        return self._archive

    @property
    def dependencies(self) -> DependencyGraph:
        return self._dependencies

    # tasks

    def create_task(self, fields: Mapping[str, object]) -> Task:
        return self._tasks.create(fields)

    def get_task(self, task_id: int) -> Task:
        return self._tasks.get(task_id)

    def update_task(self, task_id: int, fields: Mapping[str, object]) -> Task:
        return self._tasks.update(task_id, fields)

    def delete_task(self, task_id: int) -> Task:
        """Remove a task. Dependency edges that mention it are left in place."""

        return self._tasks.delete(task_id)

    def filter_tasks(self, criteria: TaskFilter | Mapping[str, object] | None = None) -> list[Task]:
        return self._tasks.filter(criteria)

    def list_tasks(self) -> list[Task]:
        return self._tasks.list_all()

    def add_file(self, task_id: int, path: str) -> Task:
        return self._tasks.add_file(task_id, path)

    def remove_file(self, task_id: int, path: str) -> Task:
        return self._tasks.remove_file(task_id, path)

    def add_comment(self, task_id: int, text: str, author: str | None = None) -> Task:
        return self._tasks.add_comment(task_id, text, author)

    def add_checklist(self, task_id: int, title: str, items: Iterable[object] = ()) -> Task:
        return self._tasks.add_checklist(task_id, title, items)

    def set_checklist_item(
        self,
        task_id: int,
        checklist_index: int,
        item_index: int,
        completed: bool = True,
    ) -> Task:
        return self._tasks.set_checklist_item(task_id, checklist_index, item_index, completed)

    def backup(self) -> Path | None:
        return self._tasks.backup()

    def apply_operations(
        self,
        operations: Sequence[Mapping[str, Any]],
        *,
        fail_fast: bool = False,
    ) -> BatchReport:
        return apply_operations(
            self, operations, fail_fast=fail_fast, clock=self._clock, logger=self._logger
        )

    # dependencies

    def add_dependency(self, task_id: int, depends_on: int) -> bool:
        return self._dependencies.add(task_id, depends_on)

    def remove_dependency(self, task_id: int, depends_on: int) -> bool:
        return self._dependencies.remove(task_id, depends_on)

    def get_dependencies(self, task_id: int) -> list[int]:
        return self._dependencies.dependencies_of(task_id)

    def get_blocked_by(self, task_id: int) -> list[int]:
        """Ids of the tasks that depend on ``task_id``."""

        return self._dependencies.dependents_of(task_id)

    def dangling_dependencies(self) -> list[DependencyEdge]:
        """Edges referencing ids that are neither active nor archived."""

        return self._dependencies.dangling(self._tasks.ids() | self._archive.ids())

    def dependency_snapshot(self) -> dict[str, dict[str, list[int]]]:
        return self._dependencies.snapshot()

    # archive

    def archive_task(self, task_id: int, reason: str | None = None) -> Task:
        return self._archive.archive(task_id, reason)

    def restore_task(self, task_id: int) -> Task:
        return self._archive.restore(task_id)

    def get_archived_task(self, task_id: int) -> Task:
        return self._archive.get(task_id)

    def list_archived(self, criteria: ArchiveFilter | Mapping[str, object] | None = None) -> list[Task]:
        return self._archive.list_archived(criteria)

    # housekeeping

    def notices(self) -> tuple[RecoveryNotice, ...]:
        return self._notices.items()

    def drain_notices(self) -> tuple[RecoveryNotice, ...]:
        return self._notices.drain()

    def invalidate_cache(self) -> None:
        """Forget cached file content so the next read goes to disk."""

        self._cache.invalidate()


__all__ = ["TaskTracker"]
