"""
Structured logging for the sync service.

Two output formats, selected by ``LOG_FORMAT``:
  - **json**: one JSON object per line (python-json-logger), for shipping.
  - **console**: pipe-separated text, for local runs.

Each record carries the id of the HTTP request and of the sync run it was
emitted under. Both live in context variables, so two runs sharing the
event loop never see each other's ids. Bind them with ``log_context``:

    with log_context(sync_run_id=run_id):
        logger.info("Page fetched", extra={"page": 3, "record_count": 100})
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Literal

from pythonjsonlogger import json as json_logger

_UNSET = "-"

request_id_var: ContextVar[str] = ContextVar("request_id", default=_UNSET)
sync_run_id_var: ContextVar[str] = ContextVar("sync_run_id", default=_UNSET)

_CONSOLE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(request_id)s/%(sync_run_id)s | %(name)s | %(message)s"
)
_JSON_FIELDS = "%(asctime)s %(levelname)s %(name)s %(request_id)s %(sync_run_id)s %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty at INFO; the PIM traffic is already logged by the RPC client
_QUIET_LOGGERS = ("httpcore", "httpx", "uvicorn.access", "asyncio")


def setup_logging(
    level: str = "INFO",
    log_format: Literal["json", "console"] = "json",
) -> None:
    """
    Install a single stdout handler on the root logger.

    Safe to call more than once: existing root handlers are replaced.
    """
    level = level.upper()
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextFilter())
    if log_format == "json":
        handler.setFormatter(json_logger.JsonFormatter(
            fmt=_JSON_FIELDS,
            datefmt=_DATE_FORMAT,
            rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
        ))
    else:
        handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.debug("Logging configured", extra={"log_level": level, "log_format": log_format})


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_context(
    request_id: str | None = None,
    sync_run_id: str | None = None,
) -> Iterator[None]:
    """Bind request / sync-run ids for the enclosed block, restoring the previous ones after."""
    tokens = []
    if request_id is not None:
        tokens.append((request_id_var, request_id_var.set(request_id)))
    if sync_run_id is not None:
        tokens.append((sync_run_id_var, sync_run_id_var.set(sync_run_id)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


class ContextFilter(logging.Filter):
    """Stamp ``request_id`` and ``sync_run_id`` onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        record.sync_run_id = sync_run_id_var.get()  # type: ignore[attr-defined]
        return True
