"""Structured logging configuration using structlog.

Every event of one extraction run carries the same ``run_id`` and the
target ``service``, so lines from concurrent runs written to one sink can be
told apart.
"""

from __future__ import annotations

import logging
import sys
from typing import Any
from uuid import uuid4

import structlog
from structlog.typing import EventDict, Processor


def new_run_id() -> str:
    return uuid4().hex[:12]


def add_run_context(run_id: str, service: str | None = None) -> Processor:
    """Processor stamping *run_id* (and *service*, when known) on each event.

    Values bound explicitly on a logger win.
    """

    def _processor(_logger: Any, _method: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("run_id", run_id)
        if service:
            event_dict.setdefault("service", service)
        return event_dict

    return _processor


def setup_logging(level: str = "info", run_id: str | None = None, service: str | None = None) -> str:
    """Configure structlog for JSON lines on stderr; returns the run id in use.

    Context bound with ``structlog.contextvars`` (the resource kind, name and
    ancestor chain of a pipeline branch) is merged into every event.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    run_id = run_id or new_run_id()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_run_context(run_id, service),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
    return run_id


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Return a logger bound to *component*."""
    return structlog.get_logger(component=component)  # type: ignore[no-any-return]
