"""Persistence layer: atomic JSON file cache and batch transactions."""

from tasktracker.persistence.batch import (
    BatchOperation,
    BatchResult,
    BatchTransaction,
    ReadOp,
    UpdateOp,
    WriteOp,
    run_batch,
)
from tasktracker.persistence.file_cache import CacheEntry, FileCache, cache_key, serialize

__all__ = [
    "BatchOperation",
    "BatchResult",
    "BatchTransaction",
    "CacheEntry",
    "FileCache",
    "ReadOp",
    "UpdateOp",
    "WriteOp",
    "cache_key",
    "run_batch",
    "serialize",
]
