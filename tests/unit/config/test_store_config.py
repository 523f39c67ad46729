from __future__ import annotations

import json
from pathlib import Path

import pytest

from tasktracker.config.loader import (
    ConfigLoadError,
    env_name_for_key,
    load_config,
    resolve_data_dir,
    write_default_config,
)
from tasktracker.config.schema import (
    ConfigValidationError,
    assert_valid_config,
    default_config,
    merge_config,
    validate_config,
)


def _write_config(data_dir: Path, payload: object) -> None:
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "config.json").write_text(json.dumps(payload), encoding="utf-8")


@pytest.mark.unit
def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path, environ={})

    assert config == assert_valid_config(default_config())
    assert config["defaultStatus"] == "todo"
    assert config["backupOnWrite"] is False


@pytest.mark.unit
def test_file_values_override_defaults_and_keep_foreign_keys(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        {
            "taskStatuses": ["open", "closed"],
            "defaultStatus": "closed",
            "ui": {"theme": "dark"},
        },
    )

    config = load_config(tmp_path, environ={})

    assert config["taskStatuses"] == ["open", "closed"]
    assert config["defaultStatus"] == "closed"
    assert config["ui"] == {"theme": "dark"}
    assert config["taskCategories"] == default_config()["taskCategories"]


@pytest.mark.unit
def test_precedence_overrides_then_env_then_file(tmp_path: Path) -> None:
    _write_config(tmp_path, {"cacheTtlSeconds": 5, "backupOnWrite": False})
    environ = {
        "TASKTRACKER_CACHE_TTL_SECONDS": "12.5",
        "TASKTRACKER_BACKUP_ON_WRITE": "yes",
        "TASKTRACKER_TASK_CATEGORIES": "feature, bug ,,docs",
    }

    config = load_config(tmp_path, environ=environ, overrides={"backupOnWrite": False})

    assert config["cacheTtlSeconds"] == 12.5
    assert config["backupOnWrite"] is False
    assert config["taskCategories"] == ["feature", "bug", "docs"]


@pytest.mark.unit
@pytest.mark.parametrize(
    ("key", "expected"),
    [
        ("taskCategories", "TASKTRACKER_TASK_CATEGORIES"),
        ("cacheTtlSeconds", "TASKTRACKER_CACHE_TTL_SECONDS"),
        ("defaultEffort", "TASKTRACKER_DEFAULT_EFFORT"),
    ],
)
def test_env_names_follow_camel_case_keys(key: str, expected: str) -> None:
    assert env_name_for_key(key) == expected


@pytest.mark.unit
def test_uncoercible_env_values_raise_load_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="TASKTRACKER_CACHE_TTL_SECONDS"):
        load_config(tmp_path, environ={"TASKTRACKER_CACHE_TTL_SECONDS": "soon"})
    with pytest.raises(ConfigLoadError, match="boolean"):
        load_config(tmp_path, environ={"TASKTRACKER_BACKUP_ON_WRITE": "maybe"})


@pytest.mark.unit
@pytest.mark.parametrize("content", ['{"taskStatuses": [', "[1, 2]"])
def test_unreadable_config_file_raises_load_error(tmp_path: Path, content: str) -> None:
    (tmp_path / "config.json").write_text(content, encoding="utf-8")
    with pytest.raises(ConfigLoadError):
        load_config(tmp_path, environ={})


@pytest.mark.unit
def test_validation_reports_every_issue_with_its_path() -> None:
    payload = merge_config(
        default_config(),
        {
            "taskStatuses": [],
            "priorityLevels": ["p1", "p1"],
            "allowedFileExtensions": ["md"],
            "cacheTtlSeconds": -1,
            "backupOnWrite": "sometimes",
        },
    )

    result = validate_config(payload)

    assert not result.is_valid
    paths = {issue.path for issue in result.issues}
    assert paths == {
        "taskStatuses",
        "priorityLevels[1]",
        "allowedFileExtensions[0]",
        "cacheTtlSeconds",
        "backupOnWrite",
    }
    with pytest.raises(ConfigValidationError) as excinfo:
        assert_valid_config(payload)
    assert len(excinfo.value.issues) == 5


@pytest.mark.unit
def test_extensions_are_lowercased_and_stray_default_falls_back() -> None:
    config = assert_valid_config(
        merge_config(
            default_config(),
            {"allowedFileExtensions": [".MD", ".Py"], "priorityLevels": ["high", "low"]},
        )
    )

    assert config["allowedFileExtensions"] == [".md", ".py"]
    assert config["defaultPriority"] == "high"


@pytest.mark.unit
def test_non_object_config_is_rejected() -> None:
    result = validate_config(["not", "an", "object"])
    assert result.config is None
    assert result.issues[0].path == "<root>"


@pytest.mark.unit
def test_write_default_config_respects_existing_file(tmp_path: Path) -> None:
    data_dir = tmp_path / ".tasktracker"
    path = write_default_config(data_dir)
    assert json.loads(path.read_text(encoding="utf-8")) == default_config()

    path.write_text('{"defaultStatus": "done"}', encoding="utf-8")
    write_default_config(data_dir)
    assert json.loads(path.read_text(encoding="utf-8")) == {"defaultStatus": "done"}

    write_default_config(data_dir, overwrite=True)
    assert json.loads(path.read_text(encoding="utf-8")) == default_config()


@pytest.mark.unit
def test_resolve_data_dir_honors_env_override(tmp_path: Path) -> None:
    assert resolve_data_dir(tmp_path, environ={}) == tmp_path / ".tasktracker"
    assert resolve_data_dir(tmp_path, environ={"TASKTRACKER_DATA_DIR": "state/tasks"}) == (
        tmp_path / "state" / "tasks"
    )
    elsewhere = tmp_path.parent / "shared-data"
    assert resolve_data_dir(tmp_path, environ={"TASKTRACKER_DATA_DIR": str(elsewhere)}) == elsewhere
