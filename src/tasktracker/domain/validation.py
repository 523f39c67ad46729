"""
tasktracker — field sanitization and validation.

File: src/tasktracker/domain/validation.py

Purpose
- Turn caller-supplied task fields into values safe to persist.

Functional requirements
- Titles lose markup and control characters, collapse whitespace, and must be
  1..200 characters afterwards. Longer text is rejected, never truncated.
- Enumerated fields must be members of the configured sets.
- Related file paths are normalized to project-relative POSIX form; parent
  traversal, paths outside the project root, and disallowed extensions are
  rejected.
"""

from __future__ import annotations

import os
import posixpath
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Final

from tasktracker.config.schema import DEFAULT_CONFIG, ENUM_FIELDS
from tasktracker.constants import (
    MAX_AUTHOR_LENGTH,
    MAX_CHECKLIST_TEXT_LENGTH,
    MAX_COMMENT_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MAX_REASON_LENGTH,
    MAX_TITLE_LENGTH,
)
from tasktracker.domain.models import UNKNOWN_AUTHOR, Checklist, ChecklistItem
from tasktracker.errors import ValidationError
from tasktracker.utils.fs import is_within

_TAG_RE: Final = re.compile(r"<[^>]*>?")
_CONTROL_RE: Final = re.compile(r"[\r\n\t\f\v]+")
_UNPRINTABLE_RE: Final = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_MULTI_SPACE_RE: Final = re.compile(r"\s{2,}")
_DRIVE_PREFIX_RE: Final = re.compile(r"^[A-Za-z]:/")

# Accepted spellings for caller-facing field names.
FIELD_ALIASES: Final[dict[str, str]] = {
    "title": "title",
    "description": "description",
    "category": "category",
    "status": "status",
    "priority": "priority",
    "effort": "effort",
    "relatedFiles": "related_files",
    "related_files": "related_files",
    "checklists": "checklists",
    "createdBy": "created_by",
    "created_by": "created_by",
}

# Fields owned by the store; callers may never set them directly.
MANAGED_FIELDS: Final[frozenset[str]] = frozenset(
    {"id", "created", "lastUpdated", "last_updated", "archived", "comments"}
)


def sanitize_string(value: str) -> str:
    """Strip markup and control characters, collapse runs of whitespace, trim."""

    text = _TAG_RE.sub("", value)
    text = _CONTROL_RE.sub(" ", text)
    text = _UNPRINTABLE_RE.sub("", text)
    text = _MULTI_SPACE_RE.sub(" ", text)
    return text.strip()


def strip_markup(value: str) -> str:
    """Strip markup and control characters but keep line breaks and tabs."""

    return _UNPRINTABLE_RE.sub("", _TAG_RE.sub("", value)).strip()


def _require_str(value: object, field: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(field, f"expected string, got {type(value).__name__}")
    return value


def _check_length(text: str, field: str, max_len: int) -> str:
    if len(text) > max_len:
        raise ValidationError(field, f"must be <= {max_len} characters (got {len(text)})")
    return text


def validate_title(value: object) -> str:
    title = sanitize_string(_require_str(value, "title"))
    if not title:
        raise ValidationError("title", "must not be empty")
    return _check_length(title, "title", MAX_TITLE_LENGTH)


def validate_description(value: object) -> str:
    return _check_length(
        strip_markup(_require_str(value, "description")), "description", MAX_DESCRIPTION_LENGTH
    )


def validate_comment_text(value: object) -> str:
    text = strip_markup(_require_str(value, "comment"))
    if not text:
        raise ValidationError("comment", "must not be empty")
    return _check_length(text, "comment", MAX_COMMENT_LENGTH)


def validate_author(value: object) -> str:
    author = sanitize_string(_require_str(value, "author"))
    if not author:
        return UNKNOWN_AUTHOR
    return _check_length(author, "author", MAX_AUTHOR_LENGTH)


def validate_reason(value: object) -> str:
    return _check_length(sanitize_string(_require_str(value, "reason")), "reason", MAX_REASON_LENGTH)


def validate_choice(value: object, field: str, allowed: Sequence[str]) -> str:
    choice = sanitize_string(_require_str(value, field))
    if choice not in allowed:
        raise ValidationError(field, f"invalid value {choice!r}; expected one of: {', '.join(allowed)}")
    return choice


def default_author(environ: Mapping[str, str] | None = None) -> str:
    """Return the current user name from ``USER``/``USERNAME`` or ``"Unknown"``."""

    env_map = os.environ if environ is None else environ
    raw = env_map.get("USER") or env_map.get("USERNAME") or ""
    author = sanitize_string(raw)[:MAX_AUTHOR_LENGTH]
    return author or UNKNOWN_AUTHOR


def normalize_file_path(
    value: object,
    *,
    project_root: Path | None,
    allowed_extensions: Iterable[str],
) -> str:
    """Return ``value`` as a normalized project-relative POSIX path."""

    raw = _require_str(value, "relatedFiles").strip()
    if not raw:
        raise ValidationError("relatedFiles", "path must not be empty")
    text = raw.replace("\\", "/")

    if "\x00" in text:
        raise ValidationError("relatedFiles", "path must not contain NUL bytes")
    if ".." in text.split("/"):
        raise ValidationError("relatedFiles", f"parent-directory traversal is not allowed: {raw!r}")

    has_drive = _DRIVE_PREFIX_RE.match(text) is not None
    if has_drive and os.name != "nt":
        raise ValidationError("relatedFiles", f"drive-letter paths are not allowed here: {raw!r}")
    if text.startswith("/") or has_drive:
        if project_root is None:
            raise ValidationError("relatedFiles", f"absolute paths are not allowed: {raw!r}")
        if not is_within(text, project_root):
            raise ValidationError("relatedFiles", f"path is outside the project root: {raw!r}")
        text = Path(text).resolve().relative_to(project_root.resolve()).as_posix()

    normalized = posixpath.normpath(text)
    if normalized in ("", "."):
        raise ValidationError("relatedFiles", f"path does not name a file: {raw!r}")

    allowed = {ext.lower() for ext in allowed_extensions}
    suffix = PurePosixPath(normalized).suffix.lower()
    if suffix and suffix not in allowed:
        raise ValidationError("relatedFiles", f"file extension {suffix!r} is not allowed")
    return normalized


@dataclass(frozen=True, slots=True)
class FieldRules:
    """Validation rules for task fields, built from the effective config."""

    categories: tuple[str, ...]
    statuses: tuple[str, ...]
    priorities: tuple[str, ...]
    efforts: tuple[str, ...]
    defaults: Mapping[str, str]
    allowed_extensions: tuple[str, ...]
    project_root: Path | None = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any], *, project_root: Path | None = None) -> FieldRules:
        def members(key: str) -> tuple[str, ...]:
            return tuple(config.get(key) or DEFAULT_CONFIG[key])  # type: ignore[literal-required]

        defaults: dict[str, str] = {}
        for field_name, (set_key, default_key) in ENUM_FIELDS.items():
            allowed = members(set_key)
            configured = config.get(default_key)
            defaults[field_name] = configured if configured in allowed else allowed[0]

        return cls(
            categories=members("taskCategories"),
            statuses=members("taskStatuses"),
            priorities=members("priorityLevels"),
            efforts=members("effortEstimation"),
            defaults=defaults,
            allowed_extensions=members("allowedFileExtensions"),
            project_root=project_root,
        )

    def allowed_for(self, field_name: str) -> tuple[str, ...]:
        return {
            "category": self.categories,
            "status": self.statuses,
            "priority": self.priorities,
            "effort": self.efforts,
        }[field_name]

    def normalize_path(self, value: object) -> str:
        return normalize_file_path(
            value,
            project_root=self.project_root,
            allowed_extensions=self.allowed_extensions,
        )

    def validate_related_files(self, value: object) -> tuple[str, ...]:
        if not isinstance(value, (list, tuple)):
            raise ValidationError("relatedFiles", f"expected array, got {type(value).__name__}")
        seen: list[str] = []
        for item in value:
            normalized = self.normalize_path(item)
            if normalized not in seen:
                seen.append(normalized)
        return tuple(seen)

    def validate_checklists(self, value: object) -> tuple[Checklist, ...]:
        if not isinstance(value, (list, tuple)):
            raise ValidationError("checklists", f"expected array, got {type(value).__name__}")
        return tuple(validate_checklist(item) for item in value)

    def validate_fields(self, fields: Mapping[str, object], *, partial: bool) -> dict[str, Any]:
        """
        Validate caller-supplied fields and return them keyed by ``Task`` attribute.

        With ``partial=False`` (create) a title is required and omitted
        enumerated fields receive their configured defaults.
        """

        cleaned: dict[str, Any] = {}
        for key, value in fields.items():
            if key in MANAGED_FIELDS:
                raise ValidationError(key, "field is managed by the store and cannot be set")
            attr = FIELD_ALIASES.get(key)
            if attr is None:
                raise ValidationError(key, "unknown field")
            if attr in cleaned:
                raise ValidationError(key, "field given more than once")
            if attr == "title":
                cleaned[attr] = validate_title(value)
            elif attr == "description":
                cleaned[attr] = validate_description(value)
            elif attr in ENUM_FIELDS:
                cleaned[attr] = validate_choice(value, attr, self.allowed_for(attr))
            elif attr == "related_files":
                cleaned[attr] = self.validate_related_files(value)
            elif attr == "checklists":
                cleaned[attr] = self.validate_checklists(value)
            elif attr == "created_by":
                if partial:
                    raise ValidationError(key, "field cannot be changed after creation")
                cleaned[attr] = validate_author(value)

        if not partial:
            if "title" not in cleaned:
                raise ValidationError("title", "is required")
            for field_name in ENUM_FIELDS:
                cleaned.setdefault(field_name, self.defaults[field_name])
        elif not cleaned:
            raise ValidationError("fields", "no fields to update")
        return cleaned


def validate_checklist_items(value: object) -> tuple[ChecklistItem, ...]:
    if not isinstance(value, (list, tuple)):
        raise ValidationError("checklist.items", f"expected array, got {type(value).__name__}")
    items: list[ChecklistItem] = []
    for raw in value:
        if isinstance(raw, str):
            text, completed = raw, False
        elif isinstance(raw, Mapping):
            text = raw.get("text")
            completed = raw.get("completed", False)
        else:
            raise ValidationError("checklist.items", f"expected string or object, got {type(raw).__name__}")
        if not isinstance(completed, bool):
            raise ValidationError("checklist.items.completed", "expected boolean")
        cleaned = sanitize_string(_require_str(text, "checklist.items.text"))
        if not cleaned:
            raise ValidationError("checklist.items.text", "must not be empty")
        items.append(
            ChecklistItem(
                text=_check_length(cleaned, "checklist.items.text", MAX_CHECKLIST_TEXT_LENGTH),
                completed=completed,
            )
        )
    return tuple(items)


def validate_checklist(value: object) -> Checklist:
    if isinstance(value, Checklist):
        value = value.to_dict()
    if not isinstance(value, Mapping):
        raise ValidationError("checklists", f"expected object, got {type(value).__name__}")
    title = sanitize_string(_require_str(value.get("title", ""), "checklist.title"))
    return Checklist(
        title=_check_length(title, "checklist.title", MAX_CHECKLIST_TEXT_LENGTH),
        items=validate_checklist_items(value.get("items", [])),
    )


__all__ = [
    "FIELD_ALIASES",
    "FieldRules",
    "MANAGED_FIELDS",
    "default_author",
    "normalize_file_path",
    "sanitize_string",
    "strip_markup",
    "validate_author",
    "validate_checklist",
    "validate_checklist_items",
    "validate_choice",
    "validate_comment_text",
    "validate_description",
    "validate_reason",
    "validate_title",
]
