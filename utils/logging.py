"""
Process logging for Relay.

Two output shapes share one stdout handler:
- colored single-line console output while developing
- one JSON object per line for log shippers (LOG_JSON=true)

Every record emitted while an HTTP request is being handled carries that
request's ID, taken from the X-Request-ID header or generated.

Usage:
    from utils.logging import configure_logging, get_logger

    configure_logging(settings)
    logger = get_logger(__name__)
    logger.info("[STARTUP] ready", extra={"address": ":3000"})
"""

import json
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

SERVICE_NAME = "relay"
REQUEST_ID_HEADER = "X-Request-ID"

_request_id: ContextVar[Optional[str]] = ContextVar("relay_request_id", default=None)

# Attributes every LogRecord has; anything else came in through extra=
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "request_id",
}

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn.access")


def get_request_id() -> Optional[str]:
    return _request_id.get()


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


@contextmanager
def request_context(request_id: Optional[str] = None) -> Iterator[str]:
    """Bind a request ID to every record logged inside the block."""
    token = _request_id.set(request_id or new_request_id())
    try:
        yield _request_id.get()
    finally:
        _request_id.reset(token)


class JSONFormatter(logging.Formatter):
    """Renders a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.filename}:{record.lineno}",
        }
        request_id = get_request_id()
        if request_id:
            entry["request_id"] = request_id
        entry.update(
            (key, value) for key, value in vars(record).items() if key not in _STANDARD_ATTRS
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored `HH:MM:SS LEVEL [request] logger: message` lines."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        clock = time.strftime("%H:%M:%S", time.localtime(record.created))
        request_id = get_request_id()
        scope = f"[{request_id}] " if request_id else ""
        line = f"{clock} {color}{record.levelname:8}{self.RESET} {scope}{record.name}: {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    module_levels: Optional[dict[str, str]] = None,
) -> None:
    """
    Replace the root handlers with one stdout handler.

    Args:
        level: Root level name; unknown names fall back to INFO.
        json_format: JSON lines instead of colored console output.
        module_levels: Per-logger level overrides, applied after the
            defaults that quiet noisy libraries.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_format else ConsoleFormatter())

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(numeric_level)

    overrides = {name: "WARNING" for name in _QUIET_LOGGERS}
    overrides.update(module_levels or {})
    for name, name_level in overrides.items():
        logging.getLogger(name).setLevel(name_level.upper())


def configure_logging(settings) -> None:
    """setup_logging() driven by the LOG_LEVEL / LOG_JSON settings."""
    setup_logging(level=settings.log_level, json_format=settings.log_json)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


async def logging_middleware_helper(request, call_next):
    """
    Body of the FastAPI `http` middleware: binds the request ID, logs one
    access line per request and echoes the ID back in the response.
    """
    with request_context(request.headers.get(REQUEST_ID_HEADER)) as request_id:
        started = time.monotonic()
        response = await call_next(request)
        duration_ms = (time.monotonic() - started) * 1000

        path = request.url.path
        get_logger("api.request").info(
            f"{request.method} {path} -> {response.status_code} ({duration_ms:.0f}ms)",
            extra={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 1),
            },
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
