"""Observability exports: structured logging setup."""

from tasktracker.observability.logging import LoggingConfig, setup_logging, teardown_logging

__all__ = [
    "LoggingConfig",
    "setup_logging",
    "teardown_logging",
]
