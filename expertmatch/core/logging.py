"""Structured logging for expert-match.

Every line is one JSON object: timestamp, level, service, correlation id,
module, logger and message. Records may carry trace fields (step, component,
status, duration_ms), which are copied into the object when present; this is
how execution-trace steps end up in the log stream next to ordinary messages.

The correlation id lives in a ContextVar, so concurrent requests in one event
loop keep their own id. The level comes from EXPERT_MATCH_LOG_LEVEL unless
given explicitly.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from expertmatch.core.tracing import ExecutionTrace

SERVICE_NAME = "expertmatch"
LOG_LEVEL_ENV = "EXPERT_MATCH_LOG_LEVEL"

# Record attributes copied into the JSON object when set via ``extra=``
TRACE_FIELDS = ("step", "component", "operation", "status", "duration_ms", "model")

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id.set(correlation_id)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def clear_correlation_id() -> None:
    _correlation_id.set(None)


class JSONFormatter(logging.Formatter):
    """Renders a record as a single JSON line."""

    def __init__(self, service_name: str = SERVICE_NAME, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "correlation_id": getattr(record, "correlation_id", "-"),
            "module": record.module,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in TRACE_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_data[name] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class CorrelationIdFilter(logging.Filter):
    """Tags records with the correlation id of the current context ("-" if none)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "-"
        return True


def get_log_level_from_env(env_var: str = LOG_LEVEL_ENV) -> int:
    """Level named by ``env_var``; INFO when unset or unknown."""
    level = getattr(logging, os.environ.get(env_var, "INFO").upper(), None)
    return level if isinstance(level, int) else logging.INFO


def create_file_handler(
    log_file_path: str,
    service_name: str = SERVICE_NAME,
    max_bytes: int = 10_485_760,
    backup_count: int = 5,
) -> RotatingFileHandler:
    """Rotating JSON file handler; the parent directory is created if needed."""
    Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        filename=log_file_path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(JSONFormatter(service_name=service_name))
    handler.addFilter(CorrelationIdFilter())
    return handler


def setup_structured_logging(
    service_name: str = SERVICE_NAME,
    log_file_path: str | None = None,
    log_level: int | None = None,
) -> logging.Logger:
    """Attach JSON handlers to the package logger.

    Module loggers are created with ``logging.getLogger(__name__)`` so they
    all live under the ``expertmatch`` hierarchy and inherit these handlers.
    """
    if log_level is None:
        log_level = get_log_level_from_env()

    logger = logging.getLogger(service_name)
    logger.setLevel(log_level)
    logger.handlers.clear()

    # Console goes to stderr so CLI output on stdout stays machine-readable
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(JSONFormatter(service_name=service_name))
    console_handler.addFilter(CorrelationIdFilter())
    logger.addHandler(console_handler)

    if log_file_path:
        try:
            file_handler = create_file_handler(log_file_path, service_name)
            file_handler.setLevel(log_level)
            logger.addHandler(file_handler)
        except PermissionError:
            logger.warning("Cannot write to %s, file logging disabled", log_file_path)

    logger.propagate = False
    return logger


def log_execution_trace(
    trace: ExecutionTrace,
    logger: logging.Logger,
    level: int = logging.DEBUG,
) -> None:
    """Emit one record per trace step, with the step's fields as extras."""
    if not logger.isEnabledFor(level):
        return
    for step in trace.steps:
        logger.log(
            level,
            "%s: %s",
            step.name,
            step.output_summary or step.status.value,
            extra={
                "step": step.name,
                "component": step.component,
                "operation": step.operation,
                "status": step.status.value,
                "duration_ms": round(step.duration_ms, 3),
                "model": step.model,
            },
        )
