"""
tasktracker — structured logging setup.

File: src/tasktracker/observability/logging.py

Purpose
- Route structlog events emitted by the store components through the stdlib
  ``logging`` module, rendered as JSON lines or human-readable console text.

Functional requirements
- Never configured implicitly: importing ``tasktracker`` leaves logging alone.
- ``setup_logging`` is idempotent; calling it again replaces prior handlers.

Non-functional requirements
- UTC ISO-8601 timestamps and sorted JSON keys for reproducible output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Final

import structlog

_DEFAULT_LOGGER_NAME: Final[str] = "tasktracker"


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Configuration for structlog-on-stdlib logging."""

    level: int | str = "INFO"
    json_output: bool = True
    log_file: Path | str | None = None
    log_to_stderr: bool = True
    logger_name: str = _DEFAULT_LOGGER_NAME


def setup_logging(config: LoggingConfig | None = None) -> logging.Logger:
    """Configure structlog and the ``tasktracker`` stdlib logger; return the latter."""

    cfg = config or LoggingConfig()
    level = _parse_log_level(cfg.level)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    renderer: structlog.types.Processor
    if cfg.json_output:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )

    handlers: list[logging.Handler] = []
    if cfg.log_file is not None:
        log_path = Path(cfg.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    if cfg.log_to_stderr:
        handlers.append(logging.StreamHandler())

    logger = logging.getLogger(cfg.logger_name)
    logger.setLevel(level)
    logger.propagate = False
    _remove_handlers(logger)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def teardown_logging(logger_name: str = _DEFAULT_LOGGER_NAME) -> None:
    """Detach and close handlers installed by ``setup_logging`` and reset structlog."""

    _remove_handlers(logging.getLogger(logger_name))
    structlog.reset_defaults()


def _remove_handlers(logger: logging.Logger) -> None:
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, bool):
        raise ValueError("level must be int or str, got bool")
    if isinstance(value, int):
        return value

    if not isinstance(value, str):
        raise ValueError(f"level must be int or str, got {type(value).__name__}")

    normalized = value.strip().upper()
    parsed = logging.getLevelName(normalized)
    if isinstance(parsed, int):
        return parsed

    raise ValueError(f"unsupported logging level {value!r}")


__all__ = [
    "LoggingConfig",
    "setup_logging",
    "teardown_logging",
]
