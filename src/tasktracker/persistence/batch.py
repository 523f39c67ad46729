"""
tasktracker — batch transaction coordinator

File: src/tasktracker/persistence/batch.py

Purpose
- Group reads, read-modify-write updates, and writes across several JSON
  files into one all-or-nothing unit.

Functional requirements
- Phases run in a fixed order: every read, then every update in submission
  order, then every write.
- Before any file is overwritten, its exact on-disk bytes (or its absence) are
  snapshotted. If any operation fails, every file touched by the write phase
  is restored byte-for-byte (or removed if it did not exist) and the original
  error propagates.
- Several updates against the same path chain: each update function sees the
  value produced by the previous one and the path is written once.

Non-functional requirements
- Single process; concurrent batches from other processes are not isolated.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from tasktracker.errors import TaskTrackerError
from tasktracker.persistence.file_cache import DefaultFactory, FileCache, PathLike, cache_key

UpdateFn = Callable[[Any], Any]


@dataclass(frozen=True, slots=True)
class ReadOp:
    """Read ``path`` into the batch result under ``key`` (defaults to the path)."""

    path: PathLike
    key: str | None = None
    default_factory: DefaultFactory | None = None


@dataclass(frozen=True, slots=True)
class UpdateOp:
    """
    Transform the current content of ``path`` with ``fn``.

    ``fn`` receives a private copy of the content. It may return a new value
    or mutate its argument in place and return ``None``.
    """

    path: PathLike
    fn: UpdateFn
    default_factory: DefaultFactory | None = None


@dataclass(frozen=True, slots=True)
class WriteOp:
    """Replace the content of ``path`` with ``value``."""

    path: PathLike
    value: Any


BatchOperation = ReadOp | UpdateOp | WriteOp


@dataclass(slots=True)
class BatchResult:
    """Outcome of a committed batch."""

    reads: dict[str, Any] = field(default_factory=dict)
    values: dict[Path, Any] = field(default_factory=dict)
    written: list[Path] = field(default_factory=list)
    unchanged: list[Path] = field(default_factory=list)

    def value(self, path: PathLike) -> Any:
        """Return the final committed value for ``path``."""

        return self.values[cache_key(path)]


@dataclass(frozen=True, slots=True)
class _Snapshot:
    raw: bytes | None


class BatchTransaction:
    """
    Builder and executor for one all-or-nothing batch.

    Example::

        batch = BatchTransaction(cache)
        batch.update(tasks_path, drop_task).update(archive_path, add_entry)
        batch.execute()
    """

    def __init__(
        self,
        cache: FileCache,
        operations: Iterable[BatchOperation] = (),
        *,
        logger: Any | None = None,
    ) -> None:
        self._cache = cache
        self._operations: list[BatchOperation] = list(operations)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._executed = False

    @property
    def operations(self) -> tuple[BatchOperation, ...]:
        return tuple(self._operations)

    def read(
        self,
        path: PathLike,
        *,
        key: str | None = None,
        default_factory: DefaultFactory | None = None,
    ) -> BatchTransaction:
        self._operations.append(ReadOp(path, key, default_factory))
        return self

    def update(
        self,
        path: PathLike,
        fn: UpdateFn,
        *,
        default_factory: DefaultFactory | None = None,
    ) -> BatchTransaction:
        self._operations.append(UpdateOp(path, fn, default_factory))
        return self

    def write(self, path: PathLike, value: Any) -> BatchTransaction:
        self._operations.append(WriteOp(path, value))
        return self

    def execute(self) -> BatchResult:
        """
        Run every queued operation and commit, or restore and re-raise.

        Errors raised by reads or update functions abort the batch before any
        file is touched. Errors raised while writing trigger a rollback of the
        files already written.
        """

        if self._executed:
            raise RuntimeError("batch transaction already executed")
        self._executed = True

        result = BatchResult()
        pending: dict[Path, Any] = {}

        for operation in self._operations:
            if isinstance(operation, ReadOp):
                key = operation.key if operation.key is not None else str(cache_key(operation.path))
                result.reads[key] = self._cache.read(
                    operation.path, default_factory=operation.default_factory
                )

        for operation in self._operations:
            if isinstance(operation, UpdateOp):
                path = cache_key(operation.path)
                if path in pending:
                    current = pending[path]
                else:
                    current = self._cache.read(path, default_factory=operation.default_factory)
                working = copy.deepcopy(current)
                returned = operation.fn(working)
                pending[path] = working if returned is None else returned

        for operation in self._operations:
            if isinstance(operation, WriteOp):
                pending[cache_key(operation.path)] = copy.deepcopy(operation.value)

        if not pending:
            self._logger.debug("batch_committed", written=0, unchanged=0)
            return result

        snapshots = {path: _Snapshot(self._cache.read_raw(path)) for path in pending}
        touched: list[Path] = []
        try:
            for path, value in pending.items():
                touched.append(path)
                if self._cache.write(path, value):
                    result.written.append(path)
                else:
                    result.unchanged.append(path)
                result.values[path] = copy.deepcopy(value)
        except BaseException as exc:
            self._rollback(touched, snapshots, exc)
            raise

        self._logger.debug(
            "batch_committed",
            written=len(result.written),
            unchanged=len(result.unchanged),
        )
        return result

    def _rollback(
        self,
        touched: list[Path],
        snapshots: dict[Path, _Snapshot],
        cause: BaseException,
    ) -> None:
        self._logger.warning(
            "batch_rolling_back",
            paths=[str(path) for path in touched],
            error=str(cause),
        )
        for path in reversed(touched):
            snapshot = snapshots[path]
            try:
                if snapshot.raw is None:
                    self._cache.remove(path)
                else:
                    self._cache.write_raw(path, snapshot.raw)
            except TaskTrackerError as restore_exc:
                self._logger.error(
                    "batch_rollback_failed",
                    path=str(path),
                    error=str(restore_exc),
                )
                cause.add_note(f"rollback of {path} failed: {restore_exc}")
            finally:
                self._cache.invalidate(path)


def run_batch(
    cache: FileCache,
    operations: Iterable[BatchOperation],
    *,
    logger: Any | None = None,
) -> BatchResult:
    """Execute ``operations`` as a single all-or-nothing batch."""

    return BatchTransaction(cache, operations, logger=logger).execute()


__all__ = [
    "BatchOperation",
    "BatchResult",
    "BatchTransaction",
    "ReadOp",
    "UpdateFn",
    "UpdateOp",
    "WriteOp",
    "run_batch",
]
