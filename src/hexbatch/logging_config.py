"""Logging configuration with per-run correlation.

Each orchestrator run sets a run id in a context variable; the filter below
copies it (and the signing account) onto every record so that the lines of
one batch can be grouped, in plain or JSON output.
"""
from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)
account_var: ContextVar[Optional[str]] = ContextVar("account", default=None)

_RESERVED_ATTRS = frozenset(
    (
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "run_id",
        "account",
    )
)


class RunContextFilter(logging.Filter):
    """Adds run id and account to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_id_var.get()
        record.account = account_var.get()
        return True


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if getattr(record, "run_id", None):
            log_data["run_id"] = record.run_id
        if getattr(record, "account", None):
            log_data["account"] = record.account

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure root logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: JSON structured lines (True) or a plain format (False)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(run_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.addFilter(RunContextFilter())
    root_logger.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def generate_run_id() -> str:
    return f"run_{uuid.uuid4().hex[:16]}"


def set_run_context(run_id: str, account: Optional[str] = None) -> None:
    run_id_var.set(run_id)
    account_var.set(account)


def clear_run_context() -> None:
    run_id_var.set(None)
    account_var.set(None)
