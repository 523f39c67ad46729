"""
tasktracker — atomic JSON file cache

File: src/tasktracker/persistence/file_cache.py

Purpose
- Whole-file JSON reads with a TTL-bounded in-memory cache.
- Whole-file JSON writes that skip unchanged content and replace the target
  atomically (temp file then rename).

Functional requirements
- A reader never observes a partially written file.
- ``write(..., only_if_changed=True)`` performs no I/O when the serialized
  content hashes identically to the cached entry.
- Callers never share mutable state with the cache: values are copied on the
  way in and on the way out.

Non-functional requirements
- The cache is private to one instance; nothing is shared across processes.
"""

from __future__ import annotations

import copy
import json
import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from tasktracker.constants import DEFAULT_CACHE_TTL_SECONDS
from tasktracker.errors import CorruptDataError, IOFailure, NotFoundError, ValidationError
from tasktracker.utils.fs import atomic_write, ensure_private_directory
from tasktracker.utils.hashing import sha256_bytes

PathLike = str | os.PathLike[str]
DefaultFactory = Callable[[], Any]


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """Last known on-disk state of one file."""

    value: Any
    raw: bytes
    digest: str
    read_at: float


def cache_key(path: PathLike) -> Path:
    """Normalize ``path`` into the key used for cache lookups."""

    return Path(os.path.abspath(os.fspath(path)))


def serialize(value: Any, *, pretty: bool = True) -> bytes:
    """Serialize ``value`` to the canonical on-disk JSON bytes."""

    try:
        text = json.dumps(value, indent=2 if pretty else None, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise ValidationError("record", f"not JSON-serializable: {exc}") from exc
    return text.encode("utf-8")


class FileCache:
    """Read-through cache over whole JSON files with crash-safe writes."""

    def __init__(
        self,
        *,
        default_ttl: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        logger: Any | None = None,
    ) -> None:
        if default_ttl < 0:
            raise ValueError("default_ttl must be >= 0")
        self._default_ttl = float(default_ttl)
        self._clock = clock
        self._entries: dict[Path, CacheEntry] = {}
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def read(
        self,
        path: PathLike,
        *,
        ttl: float | None = None,
        default_factory: DefaultFactory | None = None,
        create: bool = False,
    ) -> Any:
        """
        Return the parsed content of ``path``.

        A cached value younger than ``ttl`` seconds is returned without I/O.
        When the file is missing, ``default_factory`` supplies the value; with
        ``create=True`` that default is also written to disk. Without a
        factory a missing file raises ``NotFoundError``.
        """

        key = cache_key(path)
        max_age = self._default_ttl if ttl is None else ttl
        entry = self._entries.get(key)
        if entry is not None and self._clock() - entry.read_at < max_age:
            return copy.deepcopy(entry.value)

        raw = self.read_raw(key)
        if raw is None:
            self._entries.pop(key, None)
            if default_factory is None:
                raise NotFoundError("file", key)
            value = default_factory()
            if create:
                self.write(key, value, only_if_changed=False)
            return copy.deepcopy(value)

        try:
            value = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            self._entries.pop(key, None)
            raise CorruptDataError(key, str(exc)) from exc

        self._entries[key] = CacheEntry(
            value=value,
            raw=raw,
            digest=sha256_bytes(raw),
            read_at=self._clock(),
        )
        self._logger.debug("file_cache_miss", path=str(key), size=len(raw))
        return copy.deepcopy(value)

    def read_raw(self, path: PathLike) -> bytes | None:
        """Return the current bytes on disk, or ``None`` when the file is absent."""

        key = cache_key(path)
        try:
            return key.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise IOFailure(key, "read", exc) from exc

    def write(
        self,
        path: PathLike,
        value: Any,
        *,
        only_if_changed: bool = True,
        atomic: bool = True,
        pretty: bool = True,
    ) -> bool:
        """
        Persist ``value`` to ``path``.

        Returns ``True`` when the file was written and ``False`` when the write
        was skipped because the content is unchanged.
        """

        key = cache_key(path)
        raw = serialize(value, pretty=pretty)
        digest = sha256_bytes(raw)

        entry = self._entries.get(key)
        if only_if_changed and entry is not None and entry.digest == digest and key.exists():
            self._logger.debug("file_cache_write_skipped", path=str(key))
            return False

        self.write_raw(key, raw, atomic=atomic)
        self._entries[key] = CacheEntry(
            value=copy.deepcopy(value),
            raw=raw,
            digest=digest,
            read_at=self._clock(),
        )
        return True

    def write_raw(self, path: PathLike, raw: bytes, *, atomic: bool = True) -> None:
        """Write bytes verbatim and drop any cache entry for ``path``."""

        key = cache_key(path)
        self._entries.pop(key, None)
        try:
            ensure_private_directory(key.parent)
            if atomic:
                atomic_write(key, raw)
            else:
                key.write_bytes(raw)
        except OSError as exc:
            raise IOFailure(key, "write", exc) from exc
        self._logger.debug("file_cache_write", path=str(key), size=len(raw), atomic=atomic)

    def remove(self, path: PathLike) -> None:
        """Delete ``path`` if it exists and drop its cache entry."""

        key = cache_key(path)
        self._entries.pop(key, None)
        try:
            key.unlink(missing_ok=True)
        except OSError as exc:
            raise IOFailure(key, "remove", exc) from exc

    def invalidate(self, path: PathLike | None = None) -> None:
        """Drop the entry for ``path``, or every entry when ``path`` is ``None``."""

        if path is None:
            self._entries.clear()
            return
        self._entries.pop(cache_key(path), None)

    def entry(self, path: PathLike) -> CacheEntry | None:
        """Return the current cache entry for ``path`` without touching disk."""

        return self._entries.get(cache_key(path))


__all__ = [
    "CacheEntry",
    "FileCache",
    "cache_key",
    "serialize",
]
