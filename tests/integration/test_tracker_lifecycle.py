"""
tasktracker — integration test for the full task lifecycle

File: tests/integration/test_tracker_lifecycle.py

Purpose
- Drive the public ``TaskTracker`` facade through create, link, archive,
  restore, and recovery against real files, with config loaded from disk
  and the environment.

Functional requirements
- Offline operation; each test owns a project directory under ``tmp_path``.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from structlog.testing import capture_logs

from tasktracker import NotFoundError, TaskTracker, ValidationError
from tasktracker.config.loader import write_default_config


class _Clock:
    def __init__(self) -> None:
        self._now = datetime(2026, 4, 1, 9, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        value = self._now
        self._now += timedelta(minutes=1)
        return value


def _write_project_config(data_dir: Path, **changes: object) -> None:
    config_path = write_default_config(data_dir)
    payload = json.loads(config_path.read_text(encoding="utf-8"))
    payload.update(changes)
    config_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


@pytest.mark.integration
def test_project_lifecycle_with_on_disk_config(tmp_path: Path) -> None:
    project = tmp_path / "project"
    (project / "src").mkdir(parents=True)
    _write_project_config(
        project / ".tasktracker",
        taskCategories=["feature", "bugfix", "ops"],
        defaultCategory="ops",
    )
    tracker = TaskTracker(project, environ={"USER": "integrator"}, clock=_Clock())

    with capture_logs() as logs:
        bug = tracker.create_task({"title": "Fix crash on save", "category": "bugfix"})
        chore = tracker.create_task({"title": "Rotate keys"})
        tracker.add_file(bug.id, str(project / "src" / "save.ts"))
        tracker.add_dependency(chore.id, bug.id)
        tracker.update_task(bug.id, {"status": "done"})
        archived = tracker.archive_task(bug.id, "shipped in 1.2")

    assert chore.category == "ops"
    assert bug.created_by == "integrator"
    assert tracker.get_archived_task(bug.id).related_files == ("src/save.ts",)
    assert archived.archived is not None
    assert archived.archived.reason == "shipped in 1.2"
    assert [task.id for task in tracker.list_tasks()] == [chore.id]
    assert tracker.get_dependencies(chore.id) == [bug.id]
    assert tracker.dangling_dependencies() == []

    events = [entry["event"] for entry in logs]
    assert events.count("task_created") == 2
    assert "dependency_added" in events
    assert "task_archived" in events
    assert "batch_committed" in events

    with pytest.raises(ValidationError):
        tracker.create_task({"title": "Wrong", "category": "feature-request"})

    restored = tracker.restore_task(bug.id)
    assert restored.status == "done"
    assert restored.archived is None
    assert tracker.create_task({"title": "Next"}).id == 3

    reopened = TaskTracker(project, environ={"USER": "integrator"})
    assert [task.id for task in reopened.list_tasks()] == [2, 1, 3]
    assert reopened.list_archived() == []


@pytest.mark.integration
def test_env_relocates_data_dir_and_overrides_config(tmp_path: Path) -> None:
    project = tmp_path / "project"
    project.mkdir()
    environ = {
        "TASKTRACKER_DATA_DIR": "../shared-state",
        "TASKTRACKER_DEFAULT_PRIORITY": "p1-critical",
        "TASKTRACKER_BACKUP_ON_WRITE": "true",
        "USER": "ci",
    }

    tracker = TaskTracker(project, environ=environ, clock=_Clock())
    task = tracker.create_task({"title": "Relocated"})
    tracker.update_task(task.id, {"description": "second write makes a backup"})

    shared = tmp_path.resolve() / "shared-state"
    assert tracker.data_dir == shared
    assert task.priority == "p1-critical"
    assert json.loads((shared / "tasks.json").read_text(encoding="utf-8"))["lastId"] == 1
    assert len(list(shared.glob("tasks.json.backup.*"))) == 1
    assert not (project / ".tasktracker").exists()


@pytest.mark.integration
def test_external_edits_become_visible_after_invalidate(tmp_path: Path) -> None:
    tracker = TaskTracker(tmp_path, environ={}, clock=_Clock())
    tracker.create_task({"title": "Original"})
    tasks_path = tracker.data_dir / "tasks.json"

    payload = json.loads(tasks_path.read_text(encoding="utf-8"))
    payload["tasks"][0]["title"] = "Edited elsewhere"
    tasks_path.write_text(json.dumps(payload), encoding="utf-8")

    assert tracker.get_task(1).title == "Original"
    tracker.invalidate_cache()
    assert tracker.get_task(1).title == "Edited elsewhere"
    assert tracker.get_task(1).created_by == "Unknown"

    tasks_path.write_text("not json at all", encoding="utf-8")
    tracker.invalidate_cache()
    with pytest.raises(NotFoundError):
        tracker.get_task(1)
    assert [notice.code for notice in tracker.drain_notices()] == ["corrupt_file_quarantined"]
    assert len(list(tracker.data_dir.glob("tasks.json.corrupted.*"))) == 1
