"""
tasktracker config package public API.

File: src/tasktracker/config/__init__.py

Purpose
- Export config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from ``config.json`` + ``TASKTRACKER_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from tasktracker.config.loader import (
    DATA_DIR_ENV,
    ENV_PREFIX,
    ConfigLoadError,
    env_name_for_key,
    load_config,
    resolve_data_dir,
    write_default_config,
)
from tasktracker.config.schema import (
    DEFAULT_CONFIG,
    ENUM_FIELDS,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    StoreConfig,
    assert_valid_config,
    default_config,
    merge_config,
    validate_config,
)

__all__ = [
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DATA_DIR_ENV",
    "DEFAULT_CONFIG",
    "ENUM_FIELDS",
    "ENV_PREFIX",
    "StoreConfig",
    "assert_valid_config",
    "default_config",
    "env_name_for_key",
    "load_config",
    "merge_config",
    "resolve_data_dir",
    "validate_config",
    "write_default_config",
]
