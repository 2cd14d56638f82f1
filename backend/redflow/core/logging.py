"""Application logging configuration.

This module sets up a structured logging configuration using
``logging.config.dictConfig`` and a context variable that carries the
identity of the flow, task and subtask currently executing. Every log record
is stamped with that identity so entries can be correlated with trace spans.
Log output uses key-value formatting to facilitate downstream parsing.
"""

from __future__ import annotations

import logging
import logging.config
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

# ---------------------------------------------------------------------------
# Context variable used to propagate execution identity to log records
# ---------------------------------------------------------------------------
LOG_FIELDS = ("user_id", "flow_id", "task_id", "subtask_id")

log_context_var: ContextVar[dict[str, Any] | None] = ContextVar("log_context", default=None)


class ExecutionContextFilter(logging.Filter):
    """Inject the ambient flow/task/subtask identity into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        fields = log_context_var.get() or {}
        for name in LOG_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, fields.get(name, "-"))
        return True


def context_fields(ctx: Any) -> dict[str, Any]:
    """Extract the identity fields a context carries (missing levels are skipped)."""
    fields: dict[str, Any] = {}
    for name in LOG_FIELDS:
        value = getattr(ctx, name, None)
        if value is not None:
            fields[name] = value
    return fields


@contextmanager
def bind_log_context(ctx: Any) -> Iterator[dict[str, Any]]:
    """Bind the identity of ``ctx`` to every record logged inside the block."""
    fields = context_fields(ctx) if ctx is not None else {}
    token = log_context_var.set(fields)
    try:
        yield fields
    finally:
        log_context_var.reset(token)


def _build_config(log_level: str) -> dict[str, Any]:
    """Build logging configuration dictionary."""

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"execution_context": {"()": ExecutionContextFilter}},
        "formatters": {
            "kv": {
                "format": (
                    "level=%(levelname)s logger=%(name)s user_id=%(user_id)s "
                    "flow_id=%(flow_id)s task_id=%(task_id)s subtask_id=%(subtask_id)s "
                    "message=%(message)s"
                )
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": "kv",
                "filters": ["execution_context"],
                "level": log_level,
            }
        },
        "root": {"handlers": ["default"], "level": log_level},
    }


def setup_logging(level: str | None = None) -> None:
    """Configure root logging using key-value formatting.

    The log level defaults to the ``LOG_LEVEL`` setting.
    """
    if level is None:
        from redflow.settings import get_settings

        level = get_settings().log_level
    logging.config.dictConfig(_build_config(level.upper()))


__all__ = [
    "ExecutionContextFilter",
    "bind_log_context",
    "context_fields",
    "log_context_var",
    "setup_logging",
]
