"""Structured logging configuration for Sprintflow.

structlog renders every event; Python's stdlib logging owns the output
handler (stdout or a size-rotated file), so library loggers such as
uvicorn's end up in the same stream.

Context carried on every event:
- ``correlation_id``: set per HTTP request by the request middleware
- ``project_id`` / ``sprint_id``: bound by orchestration services once
  the entity is loaded
- ``user_id``: the acting caller, bound by the request middleware

Example usage:
    >>> from sprintflow.config import LoggingConfig
    >>> from sprintflow.logging import setup_logging, get_logger, bind_workflow_context
    >>>
    >>> setup_logging(LoggingConfig(level="INFO", format="json"))
    >>> logger = get_logger(__name__)
    >>> bind_workflow_context(project_id="P-1", sprint_id="S-3")
    >>> logger.info("sprint_approved", sprint_number=3)
"""

from __future__ import annotations

import contextvars
import logging
import logging.handlers
import sys
from typing import Any

import structlog

from sprintflow.config import LoggingConfig

# Libraries that log every request or statement at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite", "sqlalchemy.engine")

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


def add_correlation_id(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor adding the current correlation ID, if any."""
    correlation_id = _correlation_id.get()
    if correlation_id is not None:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def set_correlation_id(correlation_id: str | None) -> None:
    """Set (or clear, with None) the correlation ID for this context."""
    _correlation_id.set(correlation_id)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def bind_workflow_context(project_id: str, sprint_id: str | None = None) -> None:
    """Bind project and sprint ids to all subsequent logs in this context.

    Args:
        project_id: Project identifier to bind
        sprint_id: Optional sprint identifier to bind
    """
    context: dict[str, Any] = {"project_id": project_id}
    if sprint_id is not None:
        context["sprint_id"] = sprint_id
    structlog.contextvars.bind_contextvars(**context)


def clear_workflow_context() -> None:
    """Drop every id bound with ``bind_workflow_context`` or by the middleware."""
    structlog.contextvars.clear_contextvars()


def _build_handler(config: LoggingConfig) -> logging.Handler:
    if config.file is None:
        return logging.StreamHandler(sys.stdout)

    config.file.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        filename=config.file,
        maxBytes=config.rotation_size_mb * 1024 * 1024,
        backupCount=config.retention_count,
        encoding="utf-8",
    )


def setup_logging(config: LoggingConfig) -> None:
    """Configure stdlib logging and structlog from ``config``.

    Replaces any handlers already installed on the root logger, so calling
    it twice (CLI callback, then uvicorn startup) leaves one handler.

    Args:
        config: Logging configuration from SprintflowConfig
    """
    log_level = getattr(logging, config.level)

    handler = _build_handler(config)
    handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    library_level = logging.DEBUG if log_level == logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    renderer: Any
    if config.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_correlation_id,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Configured structlog BoundLogger instance
    """
    return structlog.get_logger(name)
