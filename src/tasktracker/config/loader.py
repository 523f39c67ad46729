"""
tasktracker — runtime config loader.

File: src/tasktracker/config/loader.py

Purpose
- Load the effective store config from defaults, ``config.json``, environment
  variables, and explicit overrides.

Functional requirements
- Precedence: overrides > env (``TASKTRACKER_``) > file > defaults.
- A missing ``config.json`` is not an error; defaults apply.
- ``TASKTRACKER_DATA_DIR`` relocates the data directory.

Non-functional requirements
- Keep loading deterministic; config is read once and passed explicitly.
"""

from __future__ import annotations

import json
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Literal

from tasktracker.config.schema import (
    DEFAULT_CONFIG,
    assert_valid_config,
    default_config,
    merge_config,
)
from tasktracker.constants import CONFIG_FILE, DATA_DIR_NAME
from tasktracker.errors import IOFailure
from tasktracker.utils.fs import atomic_write, ensure_private_directory

ENV_PREFIX: Final[str] = "TASKTRACKER_"
DATA_DIR_ENV: Final[str] = f"{ENV_PREFIX}DATA_DIR"

_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})

ValueKind = Literal["str", "float", "bool", "list"]


@dataclass(frozen=True, slots=True)
class _Binding:
    key: str
    value_type: ValueKind


class ConfigLoadError(ValueError):
    """Raised when config cannot be read or an env value cannot be coerced."""


def resolve_data_dir(root: str | Path, *, environ: Mapping[str, str] | None = None) -> Path:
    """Return the data directory for ``root``, honoring ``TASKTRACKER_DATA_DIR``."""

    env_map = os.environ if environ is None else environ
    project_root = Path(root).expanduser()
    override = env_map.get(DATA_DIR_ENV, "").strip()
    if not override:
        return project_root / DATA_DIR_NAME
    candidate = Path(os.path.expandvars(override)).expanduser()
    if not candidate.is_absolute():
        candidate = project_root / candidate
    return Path(os.path.normpath(candidate))


def load_config(
    data_dir: str | Path,
    *,
    overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Load effective config with precedence: overrides > env > file > defaults."""

    env_map = dict(os.environ if environ is None else environ)
    config_path = Path(data_dir) / CONFIG_FILE

    merged = merge_config(default_config(), _load_json_file(config_path))
    merged = merge_config(merged, _collect_env_overrides(env_map))
    merged = merge_config(merged, dict(overrides or {}))
    return assert_valid_config(merged)


def write_default_config(data_dir: str | Path, *, overwrite: bool = False) -> Path:
    """Create ``config.json`` with built-in defaults; returns its path."""

    directory = ensure_private_directory(data_dir)
    config_path = directory / CONFIG_FILE
    if config_path.exists() and not overwrite:
        return config_path
    payload = json.dumps(default_config(), indent=2, ensure_ascii=False)
    try:
        atomic_write(config_path, payload)
    except OSError as exc:
        raise IOFailure(config_path, "write", exc) from exc
    return config_path


def env_name_for_key(key: str) -> str:
    """Map a camelCase config key to its environment variable name."""

    return ENV_PREFIX + _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key).upper()


def _load_json_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        parsed = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigLoadError(f"invalid JSON in {path}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc

    if not isinstance(parsed, dict):
        raise ConfigLoadError(f"config root must be an object: {path}")
    return parsed


def _build_bindings() -> dict[str, _Binding]:
    bindings: dict[str, _Binding] = {}
    for key, value in DEFAULT_CONFIG.items():
        kind = _kind_for_value(value)
        if kind is None:
            continue
        bindings[env_name_for_key(key)] = _Binding(key=key, value_type=kind)
    return bindings


def _collect_env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for env_name, binding in sorted(_build_bindings().items()):
        raw = environ.get(env_name)
        if raw is None:
            continue
        overrides[binding.key] = _coerce_env(raw, binding.value_type, env_name, binding.key)
    return overrides


def _kind_for_value(value: object) -> ValueKind | None:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "float"
    if isinstance(value, str):
        return "str"
    if isinstance(value, list):
        return "list"
    return None


def _coerce_env(raw: str, value_type: ValueKind, env_name: str, key: str) -> object:
    value = raw.strip()
    if value_type == "str":
        return value
    if value_type == "list":
        return [item.strip() for item in value.split(",") if item.strip()]
    if value_type == "float":
        try:
            return float(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {key} must be a number") from exc

    lowered = value.lower()
    if lowered in _BOOLEAN_TRUE:
        return True
    if lowered in _BOOLEAN_FALSE:
        return False
    raise ConfigLoadError(
        f"{env_name} -> {key} must be a boolean (true/false/1/0/yes/no/on/off)"
    )


__all__ = [
    "ConfigLoadError",
    "DATA_DIR_ENV",
    "ENV_PREFIX",
    "env_name_for_key",
    "load_config",
    "resolve_data_dir",
    "write_default_config",
]
