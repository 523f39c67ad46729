"""
tasktracker — configuration schema and validation.

File: src/tasktracker/config/schema.py

Purpose
- Define built-in defaults for ``config.json`` and strict validation rules for
  the keys the storage core reads.

Functional requirements
- Validate config payloads and return structured issues (key path + message).
- Preserve keys owned by other layers (UI settings and the like) untouched.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, TypedDict

from tasktracker.constants import DEFAULT_CACHE_TTL_SECONDS, DEFAULT_FILE_EXTENSIONS


class StoreConfig(TypedDict):
    taskCategories: list[str]
    taskStatuses: list[str]
    priorityLevels: list[str]
    effortEstimation: list[str]
    defaultCategory: str
    defaultStatus: str
    defaultPriority: str
    defaultEffort: str
    allowedFileExtensions: list[str]
    cacheTtlSeconds: float
    backupOnWrite: bool


DEFAULT_CONFIG: Final[StoreConfig] = {
    "taskCategories": ["feature", "bug", "docs", "test", "refactor", "chore"],
    "taskStatuses": ["todo", "in-progress", "review", "done"],
    "priorityLevels": ["p1-critical", "p2-medium", "p3-low"],
    "effortEstimation": ["1-trivial", "2-small", "3-medium", "5-large", "8-xlarge"],
    "defaultCategory": "feature",
    "defaultStatus": "todo",
    "defaultPriority": "p2-medium",
    "defaultEffort": "3-medium",
    "allowedFileExtensions": list(DEFAULT_FILE_EXTENSIONS),
    "cacheTtlSeconds": DEFAULT_CACHE_TTL_SECONDS,
    "backupOnWrite": False,
}

# (set key, default key) for each enumerated task field.
ENUM_FIELDS: Final[dict[str, tuple[str, str]]] = {
    "category": ("taskCategories", "defaultCategory"),
    "status": ("taskStatuses", "defaultStatus"),
    "priority": ("priorityLevels", "defaultPriority"),
    "effort": ("effortEstimation", "defaultEffort"),
}

LIST_KEYS: Final[tuple[str, ...]] = (
    "taskCategories",
    "taskStatuses",
    "priorityLevels",
    "effortEstimation",
    "allowedFileExtensions",
)


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> dict[str, Any]:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(dict(DEFAULT_CONFIG))


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """
    Return ``base`` with ``overlay`` applied on top.

    Nested objects merge key by key; lists and scalars from ``overlay``
    replace the base value.
    """

    merged = copy.deepcopy(dict(base))
    for key, value in overlay.items():
        existing = merged.get(key)
        if isinstance(value, Mapping) and isinstance(existing, Mapping):
            merged[key] = merge_config(existing, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    if not isinstance(config, Mapping):
        issues.add("<root>", f"expected object, got {type(config).__name__}")
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = copy.deepcopy(dict(config))

    for key in LIST_KEYS:
        normalized[key] = _validate_string_list(config.get(key), key, issues)

    extensions = normalized.get("allowedFileExtensions")
    if isinstance(extensions, list):
        cleaned: list[str] = []
        for idx, ext in enumerate(extensions):
            if not ext.startswith(".") or len(ext) < 2:
                issues.add(f"allowedFileExtensions[{idx}]", "extension must look like '.ext'")
                continue
            cleaned.append(ext.lower())
        normalized["allowedFileExtensions"] = cleaned

    for _field, (set_key, default_key) in sorted(ENUM_FIELDS.items()):
        raw_default = config.get(default_key)
        if not isinstance(raw_default, str):
            issues.add(default_key, f"expected string, got {type(raw_default).__name__}")
            continue
        members = normalized.get(set_key)
        if isinstance(members, list) and members and raw_default not in members:
            # fall back to the first member instead of failing the whole config
            normalized[default_key] = members[0]

    ttl = config.get("cacheTtlSeconds")
    if isinstance(ttl, bool) or not isinstance(ttl, (int, float)):
        issues.add("cacheTtlSeconds", f"expected number, got {type(ttl).__name__}")
    elif not math.isfinite(float(ttl)) or ttl < 0:
        issues.add("cacheTtlSeconds", "must be a finite number >= 0")
    else:
        normalized["cacheTtlSeconds"] = float(ttl)

    if not isinstance(config.get("backupOnWrite"), bool):
        issues.add("backupOnWrite", "expected boolean")

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=issues.items())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_string_list(value: object, path: str, issues: _IssueCollector) -> list[str]:
    if not isinstance(value, list):
        issues.add(path, f"expected array, got {type(value).__name__}")
        return []
    if not value:
        issues.add(path, "must not be empty")
        return []
    seen: set[str] = set()
    out: list[str] = []
    for idx, item in enumerate(value):
        if not isinstance(item, str) or not item.strip():
            issues.add(f"{path}[{idx}]", "expected non-empty string")
            continue
        normalized = item.strip()
        if normalized in seen:
            issues.add(f"{path}[{idx}]", f"duplicate value {normalized!r}")
            continue
        seen.add(normalized)
        out.append(normalized)
    return out


__all__ = [
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "ENUM_FIELDS",
    "LIST_KEYS",
    "StoreConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "validate_config",
]
