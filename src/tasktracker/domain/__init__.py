"""Domain exports: task records and field validation."""

from tasktracker.domain.models import (
    UNKNOWN_AUTHOR,
    ArchiveInfo,
    Checklist,
    ChecklistItem,
    Comment,
    Task,
    TaskCollection,
    coerce_task_id,
    isoformat_z,
    parse_timestamp,
    utc_now,
)
from tasktracker.domain.validation import (
    FieldRules,
    default_author,
    normalize_file_path,
    sanitize_string,
)

__all__ = [
    "ArchiveInfo",
    "Checklist",
    "ChecklistItem",
    "Comment",
    "FieldRules",
    "Task",
    "TaskCollection",
    "UNKNOWN_AUTHOR",
    "coerce_task_id",
    "default_author",
    "isoformat_z",
    "normalize_file_path",
    "parse_timestamp",
    "sanitize_string",
    "utc_now",
]
