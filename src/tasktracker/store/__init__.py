"""Stores over the data directory: tasks, dependencies, and the archive."""

from tasktracker.store.archive import ArchiveFilter, ArchiveStore
from tasktracker.store.base import CollectionFile, NoticeLog, RecoveryNotice
from tasktracker.store.batch_ops import BatchReport, OperationOutcome, OperationType, apply_operations
from tasktracker.store.dependencies import DependencyEdge, DependencyGraph
from tasktracker.store.tasks import TaskFilter, TaskStore

__all__ = [
    "ArchiveFilter",
    "ArchiveStore",
    "BatchReport",
    "CollectionFile",
    "DependencyEdge",
    "DependencyGraph",
    "NoticeLog",
    "OperationOutcome",
    "OperationType",
    "RecoveryNotice",
    "TaskFilter",
    "TaskStore",
    "apply_operations",
]
