"""Structured logging: correlation IDs, a compact console format and JSON for aggregation."""

import contextvars
import logging
import sys
import traceback
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any

from pythonjsonlogger import jsonlogger

from museick.config import ObservabilitySettings

# Hey future me, one correlation ID per user action (a shortlist promote, a search) lets you grep
# every log line belonging to it - including the token refresh it triggered. Tasks created inside
# the action copy the context, so the refresh task logs under the same ID.
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

# Third-party loggers that are chatty at INFO (httpx logs every URL, search terms included).
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def get_correlation_id() -> str:
    """Current correlation ID, or "" outside any action."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set the correlation ID for the current context, generating a UUID for None."""
    correlation_id = correlation_id or str(uuid.uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """Run a block under a correlation ID.

    An ID already set by an enclosing action is kept, so a promote that triggers a
    refresh logs both under one ID. The previous value is restored on exit.
    """
    current = correlation_id_var.get()
    if current and correlation_id is None:
        yield current
        return
    token = correlation_id_var.set(correlation_id or str(uuid.uuid4()))
    try:
        yield correlation_id_var.get()
    finally:
        correlation_id_var.reset(token)


class CorrelationIdFilter(logging.Filter):
    """Stamp every record with the current correlation ID."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


class CompactExceptionFormatter(logging.Formatter):
    """Formatter printing exception chains root-cause first, one ╰─► line per exception.

    Only frames from our own package are shown, so an httpx.ConnectError raised deep
    inside httpcore shows up as:

    ERROR │ museick.infrastructure.integrations.api_client:201 │ GET ... failed
    ╰─► ConnectError: All connection attempts failed
    ╰─► NetworkError: Network error contacting http://127.0.0.1:8080/api/selections/2024-07
        File "api_client.py", line 215, in _send
          raise NetworkError(...) from e
    """

    def formatException(self, ei: Any) -> str:
        _exc_type, exc_value, _exc_tb = ei
        if exc_value is None:
            return ""

        chain: list[BaseException] = []
        current: BaseException | None = exc_value
        while current is not None and current not in chain:
            chain.append(current)
            current = current.__cause__ or current.__context__
        chain.reverse()

        lines: list[str] = []
        for exc in chain:
            lines.append(f"╰─► {exc.__class__.__name__}: {exc}")
            if exc.__traceback__ is None:
                continue
            for frame in traceback.extract_tb(exc.__traceback__):
                if "/site-packages/" in frame.filename or "museick" not in frame.filename:
                    continue
                lines.append(
                    f'    File "{Path(frame.filename).name}", line {frame.lineno}, in {frame.name}'
                )
                if frame.line:
                    lines.append(f"      {frame.line.strip()}")
        return "\n".join(lines)


class JsonLogFormatter(jsonlogger.JsonFormatter):  # type: ignore[misc]
    """One JSON object per line: level, logger, message, correlation_id, plus any extra={...}.

    log_operation() puts its context (slot, catalog_item_id, duration_ms, error) into extra,
    so those arrive as top-level keys you can filter on.
    """

    def __init__(self, app_name: str = "museick", **kwargs: Any) -> None:
        kwargs.setdefault("fmt", "%(asctime)s %(levelname)s %(name)s %(message)s")
        kwargs.setdefault("rename_fields", {"levelname": "level", "name": "logger"})
        super().__init__(**kwargs)
        self.app_name = app_name

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["app"] = self.app_name
        correlation_id = getattr(record, "correlation_id", "")
        if correlation_id:
            log_record["correlation_id"] = correlation_id


# Listen future me, call this ONCE from the embedding app at startup - a library must not
# configure the root logger on import. ServiceContainer(setup_logging=True) does it for you.
def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    app_name: str = "museick",
    stream: IO[str] | None = None,
) -> None:
    """Replace the root handlers with one museick handler.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL (unknown -> INFO)
        json_format: JSON lines for log aggregation, compact text for humans
        app_name: Added to every JSON record as "app"
        stream: Where to write (default stdout)
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    if json_format:
        handler.setFormatter(JsonLogFormatter(app_name=app_name))
    else:
        handler.setFormatter(
            CompactExceptionFormatter(
                fmt="%(asctime)s │ %(levelname)-7s │ %(name)s:%(lineno)d │ %(message)s",
                datefmt="%H:%M:%S",
            )
        )

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logging.getLogger(__name__).debug(
        "Logging configured (level=%s, json=%s)", logging.getLevelName(level), json_format
    )


def configure_logging_from_settings(
    settings: ObservabilitySettings, app_name: str = "museick"
) -> None:
    """configure_logging() driven by the MUSEICK_LOG_* settings."""
    configure_logging(
        log_level=settings.level, json_format=settings.json_format, app_name=app_name
    )
