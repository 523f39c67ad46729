"""Shared deterministic builders for store tests."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Final

from tasktracker.api import TaskTracker

FIXED_NOW: Final[datetime] = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)

TEST_CONFIG: Final[dict[str, Any]] = {
    "taskCategories": ["feature", "bug", "bugfix", "docs", "test", "refactor", "chore"],
    "taskStatuses": ["todo", "in-progress", "review", "done"],
    "priorityLevels": ["p1-critical", "p2-medium", "p3-low"],
    "effortEstimation": ["1-trivial", "2-small", "3-medium", "5-large", "8-xlarge"],
}

TEST_ENVIRON: Final[dict[str, str]] = {"USER": "tester"}


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime = FIXED_NOW) -> None:
        self._current = start

    def __call__(self) -> datetime:
        value = self._current
        self._current = value + timedelta(seconds=1)
        return value


def make_tracker(root: Path, **overrides: Any) -> TaskTracker:
    kwargs: dict[str, Any] = {
        "config": TEST_CONFIG,
        "environ": TEST_ENVIRON,
        "clock": StepClock(),
    }
    kwargs.update(overrides)
    return TaskTracker(root, **kwargs)


def data_file(root: Path, name: str) -> Path:
    return root / ".tasktracker" / name


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def task_payload(task_id: int, title: str = "Stored task", **fields: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": task_id,
        "title": title,
        "description": "",
        "category": "feature",
        "status": "todo",
        "priority": "p2-medium",
        "effort": "3-medium",
        "created": "2026-01-01T00:00:00.000Z",
        "lastUpdated": "2026-01-01T00:00:00.000Z",
        "createdBy": "tester",
        "relatedFiles": [],
        "comments": [],
        "checklists": [],
    }
    payload.update(fields)
    return payload
