"""
tasktracker — unit tests for the task store

File: tests/unit/store/test_task_store.py

Purpose
- Validate id assignment, validated CRUD, field-specific mutations, filtering,
  and load-time recovery of ``tasks.json``.

Functional requirements
- Offline operation; every test owns its data directory.

Non-functional requirements
- Deterministic timestamps via ``StepClock``.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tasktracker.errors import ConflictError, NotFoundError, ValidationError
from tasktracker.store.tasks import TaskFilter

from . import data_file, make_tracker, read_json, task_payload, write_json


@pytest.mark.unit
def test_create_assigns_sequential_ids_and_filters_by_category(tmp_path: Path) -> None:
    tracker = make_tracker(tmp_path)

    first = tracker.create_task({"title": "Fix bug", "category": "bugfix"})
    second = tracker.create_task({"title": "Write guide", "category": "docs"})

    assert first.id == 1
    assert first.status == "todo"
    assert first.created_by == "tester"
    assert first.created == first.last_updated == "2026-03-01T12:00:00.000Z"
    assert second.id == 2
    assert [task.id for task in tracker.filter_tasks({"category": "bugfix"})] == [1]

    stored = read_json(data_file(tmp_path, "tasks.json"))
    assert stored["lastId"] == 2
    assert [entry["title"] for entry in stored["tasks"]] == ["Fix bug", "Write guide"]


@pytest.mark.unit
@settings(max_examples=25, derandomize=True, deadline=None)
@given(steps=st.lists(st.sampled_from(["create", "delete", "archive"]), min_size=1, max_size=12))
def test_ids_are_unique_and_never_reused(steps: list[str]) -> None:
    with tempfile.TemporaryDirectory() as tmp:
        tracker = make_tracker(Path(tmp))
        issued: list[int] = []
        for step in steps:
            active = [task.id for task in tracker.list_tasks()]
            if step == "create" or not active:
                issued.append(tracker.create_task({"title": f"task {len(issued) + 1}"}).id)
            elif step == "delete":
                tracker.delete_task(active[-1])
            else:
                tracker.archive_task(active[0])

        assert issued == sorted(set(issued))
        assert tracker.tasks.last_id() == max(issued)
        active_ids = [task.id for task in tracker.list_tasks()]
        assert len(active_ids) == len(set(active_ids))
        assert not set(active_ids) & tracker.archive.ids()


@pytest.mark.unit
def test_deleted_and_archived_ids_are_not_reissued(tmp_path: Path) -> None:
    tracker = make_tracker(tmp_path)
    for title in ("one", "two", "three"):
        tracker.create_task({"title": title})

    tracker.delete_task(2)
    tracker.archive_task(3, "parked")

    assert tracker.create_task({"title": "four"}).id == 4


@pytest.mark.unit
def test_next_id_skips_archived_ids_above_last_id(tmp_path: Path) -> None:
    write_json(data_file(tmp_path, "tasks.json"), {"lastId": 1, "tasks": [task_payload(1)]})
    archived = task_payload(7, archived={"date": "2026-02-01T00:00:00.000Z", "reason": "old"})
    write_json(data_file(tmp_path, "archives.json"), {"archives": [archived]})

    assert make_tracker(tmp_path).create_task({"title": "next"}).id == 8


@pytest.mark.unit
def test_update_validates_and_refreshes_last_updated(tmp_path: Path) -> None:
    tracker = make_tracker(tmp_path)
    created = tracker.create_task({"title": "Refactor"})

    updated = tracker.update_task(created.id, {"status": "in-progress", "title": "  Refactor <em>core</em> "})

    assert updated.status == "in-progress"
    assert updated.title == "Refactor core"
    assert updated.created == created.created
    assert updated.last_updated > created.last_updated
    assert tracker.get_task(created.id) == updated


@pytest.mark.unit
def test_rejected_update_leaves_file_untouched(tmp_path: Path) -> None:
    tracker = make_tracker(tmp_path)
    tracker.create_task({"title": "Stable"})
    before = data_file(tmp_path, "tasks.json").read_bytes()

    with pytest.raises(ValidationError):
        tracker.update_task(1, {"priority": "urgent"})
    with pytest.raises(ValidationError):
        tracker.update_task(1, {"id": 9})
    with pytest.raises(NotFoundError):
        tracker.update_task(42, {"status": "done"})

    assert data_file(tmp_path, "tasks.json").read_bytes() == before


@pytest.mark.unit
@pytest.mark.parametrize("bad_id", [0, -1, "1", 1.0, True])
def test_non_positive_integer_ids_are_validation_errors(tmp_path: Path, bad_id: object) -> None:
    tracker = make_tracker(tmp_path)
    with pytest.raises(ValidationError):
        tracker.get_task(bad_id)  # type: ignore[arg-type]


@pytest.mark.unit
def test_get_and_delete_missing_task_raise_not_found(tmp_path: Path) -> None:
    tracker = make_tracker(tmp_path)
    with pytest.raises(NotFoundError) as excinfo:
        tracker.get_task(3)
    assert excinfo.value.kind == "task"
    with pytest.raises(NotFoundError):
        tracker.delete_task(3)


@pytest.mark.unit
def test_delete_returns_removed_task(tmp_path: Path) -> None:
    tracker = make_tracker(tmp_path)
    task = tracker.create_task({"title": "Temporary"})

    assert tracker.delete_task(task.id) == task
    assert tracker.list_tasks() == []
    assert read_json(data_file(tmp_path, "tasks.json"))["lastId"] == 1


@pytest.mark.unit
def test_filter_predicates_combine(tmp_path: Path) -> None:
    tracker = make_tracker(tmp_path)
    tracker.create_task({"title": "Login page", "status": "review", "priority": "p1-critical"})
    tracker.create_task({"title": "Logout", "description": "clear the session cookie"})
    tracker.create_task({"title": "Docs", "category": "docs"})
    tracker.add_comment(3, "mention the session timeout")

    assert [t.id for t in tracker.filter_tasks({"status": "REVIEW"})] == [1]
    assert [t.id for t in tracker.filter_tasks({"title": "log"})] == [1, 2]
    assert [t.id for t in tracker.filter_tasks({"keyword": "session"})] == [2, 3]
    assert [t.id for t in tracker.filter_tasks({"comment": "timeout", "category": "docs"})] == [3]
    assert [t.id for t in tracker.filter_tasks(TaskFilter(priority="p1-critical", title="page"))] == [1]
    assert len(tracker.filter_tasks()) == 3
    with pytest.raises(ValidationError):
        tracker.filter_tasks({"owner": "me"})


@pytest.mark.unit
def test_related_files_are_normalized_and_deduplicated(tmp_path: Path) -> None:
    tracker = make_tracker(tmp_path)
    tracker.create_task({"title": "Wire up"})

    first = tracker.add_file(1, "src\\app.js")
    again = tracker.add_file(1, "./src/app.js")

    assert first.related_files == ("src/app.js",)
    assert again == first
    with pytest.raises(ValidationError):
        tracker.add_file(1, "../outside.js")

    removed = tracker.remove_file(1, "SRC/APP.JS")
    assert removed.related_files == ()
    with pytest.raises(NotFoundError) as excinfo:
        tracker.remove_file(1, "src/app.js")
    assert excinfo.value.kind == "file"


@pytest.mark.unit
def test_remove_file_accepts_any_spelling_that_add_file_accepts(tmp_path: Path) -> None:
    tracker = make_tracker(tmp_path)
    tracker.create_task({"title": "Docs"})
    tracker.add_file(1, "src/a.md")
    tracker.add_file(1, "src/b.md")

    assert tracker.remove_file(1, "./src/a.md").related_files == ("src/b.md",)
    assert tracker.remove_file(1, str(tracker.root / "src" / "b.md")).related_files == ()


@pytest.mark.unit
def test_remove_file_drops_entries_that_no_longer_validate(tmp_path: Path) -> None:
    write_json(
        data_file(tmp_path, "tasks.json"),
        {"lastId": 1, "tasks": [task_payload(1, relatedFiles=["../legacy.js", "src/app.js"])]},
    )
    tracker = make_tracker(tmp_path)

    assert tracker.remove_file(1, "../legacy.js").related_files == ("src/app.js",)


@pytest.mark.unit
def test_unknown_record_keys_survive_rewrites(tmp_path: Path) -> None:
    write_json(
        data_file(tmp_path, "tasks.json"),
        {"lastId": 1, "tasks": [task_payload(1, branch="feature/x", commits=["abc123"])]},
    )
    tracker = make_tracker(tmp_path)

    tracker.create_task({"title": "new"})
    stored = read_json(data_file(tmp_path, "tasks.json"))["tasks"][0]
    assert stored["branch"] == "feature/x"
    assert stored["commits"] == ["abc123"]

    tracker.archive_task(1)
    archived = read_json(data_file(tmp_path, "archives.json"))["archives"][0]
    assert archived["branch"] == "feature/x"
    assert archived["commits"] == ["abc123"]


@pytest.mark.unit
def test_comments_append_with_author_and_timestamp(tmp_path: Path) -> None:
    tracker = make_tracker(tmp_path)
    tracker.create_task({"title": "Review"})

    tracker.add_comment(1, "first pass done")
    task = tracker.add_comment(1, "second\npass", author="alice")

    assert [(c.author, c.text) for c in task.comments] == [
        ("tester", "first pass done"),
        ("alice", "second\npass"),
    ]
    assert task.comments[0].timestamp < task.comments[1].timestamp
    with pytest.raises(ValidationError):
        tracker.add_comment(1, "   ")
    with pytest.raises(NotFoundError):
        tracker.add_comment(99, "nobody home")


@pytest.mark.unit
def test_checklist_items_can_be_toggled(tmp_path: Path) -> None:
    tracker = make_tracker(tmp_path)
    tracker.create_task({"title": "Release"})

    tracker.add_checklist(1, "Steps", ["tag", "publish"])
    task = tracker.set_checklist_item(1, 0, 1)

    assert [item.completed for item in task.checklists[0].items] == [False, True]
    with pytest.raises(NotFoundError):
        tracker.set_checklist_item(1, 1, 0)
    with pytest.raises(NotFoundError):
        tracker.set_checklist_item(1, 0, 5)


@pytest.mark.unit
def test_explicit_creator_is_kept(tmp_path: Path) -> None:
    tracker = make_tracker(tmp_path)
    assert tracker.create_task({"title": "Owned", "createdBy": "bob"}).created_by == "bob"


@pytest.mark.unit
def test_backup_on_write_copies_previous_content(tmp_path: Path) -> None:
    tracker = make_tracker(tmp_path, config_overrides={"backupOnWrite": True})
    tasks_path = data_file(tmp_path, "tasks.json")

    tracker.create_task({"title": "first"})
    after_first = tasks_path.read_bytes()
    tracker.create_task({"title": "second"})

    backups = sorted(tasks_path.parent.glob("tasks.json.backup.*"))
    assert len(backups) == 1
    assert backups[0].read_bytes() == after_first

    explicit = tracker.backup()
    assert explicit is not None
    assert explicit.read_bytes() == tasks_path.read_bytes()


@pytest.mark.unit
def test_corrupt_file_is_quarantined_and_reset(tmp_path: Path) -> None:
    tasks_path = data_file(tmp_path, "tasks.json")
    tasks_path.parent.mkdir(parents=True)
    tasks_path.write_bytes(b'{"lastId": 3, "tasks": [')

    tracker = make_tracker(tmp_path)

    assert tracker.list_tasks() == []
    notices = tracker.drain_notices()
    assert [notice.code for notice in notices] == ["corrupt_file_quarantined"]
    assert notices[0].backup_path is not None
    assert notices[0].backup_path.read_bytes() == b'{"lastId": 3, "tasks": ['
    assert read_json(tasks_path) == {"lastId": 0, "tasks": []}
    assert tracker.notices() == ()


@pytest.mark.unit
def test_malformed_record_quarantines_whole_file(tmp_path: Path) -> None:
    write_json(data_file(tmp_path, "tasks.json"), {"lastId": 1, "tasks": [{"id": 1}]})

    tracker = make_tracker(tmp_path)

    assert tracker.list_tasks() == []
    assert [notice.code for notice in tracker.notices()] == ["corrupt_file_quarantined"]


@pytest.mark.unit
def test_repairs_are_persisted_and_reported(tmp_path: Path) -> None:
    missing_id = task_payload(1, "no id")
    del missing_id["id"]
    write_json(
        data_file(tmp_path, "tasks.json"),
        {"lastId": "x", "tasks": [task_payload("2", "string id"), "junk", missing_id]},  # type: ignore[arg-type]
    )

    tracker = make_tracker(tmp_path)
    tasks = tracker.list_tasks()

    assert [(task.id, task.title) for task in tasks] == [(2, "string id"), (3, "no id")]
    assert [notice.code for notice in tracker.notices()] == [
        "record_dropped",
        "last_id_recomputed",
        "id_reassigned",
    ]
    stored = read_json(data_file(tmp_path, "tasks.json"))
    assert stored["lastId"] == 3
    assert [entry["id"] for entry in stored["tasks"]] == [2, 3]


@pytest.mark.unit
def test_duplicate_ids_raise_conflict_without_rewriting(tmp_path: Path) -> None:
    tasks_path = data_file(tmp_path, "tasks.json")
    write_json(tasks_path, {"lastId": 1, "tasks": [task_payload(1, "a"), task_payload(1, "b")]})
    before = tasks_path.read_bytes()

    with pytest.raises(ConflictError) as excinfo:
        make_tracker(tmp_path).list_tasks()

    assert excinfo.value.task_id == 1
    assert tasks_path.read_bytes() == before
