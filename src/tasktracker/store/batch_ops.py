"""
Task-level batch operations.

Runs a list of ``{"type": ..., "taskId": ..., ...}`` operations against a
``TaskTracker`` one at a time and reports per-operation outcomes. Each
operation is its own read-modify-write; a failure is recorded and, unless
``fail_fast`` is set, processing continues with the next operation.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

from tasktracker.domain.models import Task, isoformat_z, utc_now
from tasktracker.errors import TaskTrackerError, ValidationError
from tasktracker.store.base import Clock

if TYPE_CHECKING:
    from tasktracker.api import TaskTracker


class OperationType(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ADD_FILE = "add-file"
    REMOVE_FILE = "remove-file"
    ADD_COMMENT = "add-comment"
    CHANGE_STATUS = "change-status"
    CHANGE_CATEGORY = "change-category"
    CHANGE_PRIORITY = "change-priority"
    CHANGE_EFFORT = "change-effort"


# change-<field> operations and the field each one sets
_FIELD_CHANGES: dict[OperationType, str] = {
    OperationType.CHANGE_STATUS: "status",
    OperationType.CHANGE_CATEGORY: "category",
    OperationType.CHANGE_PRIORITY: "priority",
    OperationType.CHANGE_EFFORT: "effort",
}


@dataclass(frozen=True, slots=True)
class OperationOutcome:
    type: str
    task_id: int | None
    success: bool
    task: Task | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "type": self.type,
            "taskId": self.task_id,
            "success": self.success,
        }
        if self.task is not None:
            payload["result"] = self.task.to_dict()
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class BatchReport:
    operations: list[OperationOutcome] = field(default_factory=list)
    errors: list[OperationOutcome] = field(default_factory=list)
    total: int = 0
    timestamp: str = ""

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, object]:
        return {
            "operations": [item.to_dict() for item in self.operations],
            "errors": [item.to_dict() for item in self.errors] or None,
            "metadata": {
                "total": self.total,
                "successful": len(self.operations),
                "failed": len(self.errors),
                "timestamp": self.timestamp,
            },
        }


def apply_operations(
    tracker: TaskTracker,
    operations: Sequence[Mapping[str, Any]],
    *,
    fail_fast: bool = False,
    clock: Clock = utc_now,
    logger: Any | None = None,
) -> BatchReport:
    """Apply ``operations`` in order and return the combined report."""

    log = logger if logger is not None else structlog.get_logger(__name__)
    report = BatchReport()
    for operation in operations:
        report.total += 1
        raw_type = operation.get("type") if isinstance(operation, Mapping) else None
        task_id = operation.get("taskId") if isinstance(operation, Mapping) else None
        try:
            if not isinstance(operation, Mapping):
                raise ValidationError("operation", "expected object")
            op_type = _parse_type(raw_type)
            task = _apply_one(tracker, op_type, operation)
        except TaskTrackerError as exc:
            report.errors.append(
                OperationOutcome(
                    type=str(raw_type),
                    task_id=task_id if isinstance(task_id, int) else None,
                    success=False,
                    error=str(exc),
                )
            )
            log.warning("batch_operation_failed", type=str(raw_type), task_id=task_id, error=str(exc))
            if fail_fast:
                break
            continue
        report.operations.append(
            OperationOutcome(type=op_type.value, task_id=task.id, success=True, task=task)
        )

    report.timestamp = isoformat_z(clock())
    log.info(
        "batch_operations_applied",
        total=report.total,
        successful=len(report.operations),
        failed=len(report.errors),
    )
    return report


def _parse_type(raw: object) -> OperationType:
    if not isinstance(raw, str):
        raise ValidationError("type", f"unknown operation type: {raw!r}")
    try:
        return OperationType(raw.strip().lower())
    except ValueError as exc:
        raise ValidationError("type", f"unknown operation type: {raw!r}") from exc


def _require(operation: Mapping[str, Any], key: str, op_type: OperationType) -> Any:
    value = operation.get(key)
    if value is None or value == "":
        raise ValidationError(key, f"missing {key} for {op_type.value} operation")
    return value


def _apply_one(tracker: TaskTracker, op_type: OperationType, operation: Mapping[str, Any]) -> Task:
    if op_type is OperationType.CREATE:
        data = _require(operation, "data", op_type)
        if not isinstance(data, Mapping):
            raise ValidationError("data", "expected object")
        return tracker.create_task(data)

    task_id = _require(operation, "taskId", op_type)
    if op_type is OperationType.UPDATE:
        updates = _require(operation, "updates", op_type)
        if not isinstance(updates, Mapping):
            raise ValidationError("updates", "expected object")
        return tracker.update_task(task_id, updates)
    if op_type is OperationType.DELETE:
        return tracker.delete_task(task_id)
    if op_type is OperationType.ADD_FILE:
        return tracker.add_file(task_id, _require(operation, "filePath", op_type))
    if op_type is OperationType.REMOVE_FILE:
        return tracker.remove_file(task_id, _require(operation, "filePath", op_type))
    if op_type is OperationType.ADD_COMMENT:
        return tracker.add_comment(
            task_id,
            _require(operation, "comment", op_type),
            author=operation.get("author"),
        )

    field_name = _FIELD_CHANGES[op_type]
    return tracker.update_task(task_id, {field_name: _require(operation, field_name, op_type)})


__all__ = [
    "BatchReport",
    "OperationOutcome",
    "OperationType",
    "apply_operations",
]
