"""structlog setup for lnbridge.

Every entry passes through a redaction step: wallet credentials (login,
password, bearer tokens) are masked whether they appear as keys, inside a
nested ``context`` dict, or embedded in an ``lndhub://`` URI.
"""

import logging
import re
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, cast

import structlog
from structlog.types import EventDict, Processor

from lnbridge import __version__

_correlation_id: ContextVar[str | None] = ContextVar("lnbridge_correlation_id", default=None)

REDACTED = "***REDACTED***"

SENSITIVE_KEYS = frozenset(
    {"login", "password", "token", "access_token", "credentials_url", "signature", "secret"}
)

# login:password section of a credential URI
_CREDENTIALS_IN_URI = re.compile(r"(lndhub(?:\.go)?://)[^@\s]+@", re.IGNORECASE)


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Tag every entry logged from the current context (one CLI command)."""
    correlation_id = correlation_id or uuid.uuid4().hex
    _correlation_id.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    _correlation_id.set(None)


def _mask(value: Any) -> Any:
    if isinstance(value, str) and "://" in value:
        return _CREDENTIALS_IN_URI.sub(rf"\1{REDACTED}@", value)
    return value


def _redact_mapping(mapping: dict[str, Any]) -> dict[str, Any]:
    return {k: REDACTED if k in SENSITIVE_KEYS else _mask(v) for k, v in mapping.items()}


def add_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    correlation_id = _correlation_id.get()
    if correlation_id and "correlation_id" not in event_dict:
        event_dict["correlation_id"] = correlation_id
    event_dict["app"] = "lnbridge"
    event_dict["version"] = __version__
    return event_dict


def filter_sensitive_data(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Redact wallet credentials, including one level of nested dicts.

    Nested dicts are replaced by redacted copies; the caller's dict is left alone.
    """
    redacted = _redact_mapping(event_dict)
    for name, value in redacted.items():
        if isinstance(value, dict):
            redacted[name] = _redact_mapping(value)
    return redacted


def build_processors() -> list[Processor]:
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_context,
        filter_sensitive_data,
    ]


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    dev_mode: bool = True,
) -> None:
    """
    Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_logs: JSON lines instead of key=value output (ignored in dev mode)
        dev_mode: Colored console output
    """
    if dev_mode:
        renderer: list[Processor] = [structlog.dev.ConsoleRenderer(colors=True)]
    elif json_logs:
        renderer = [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        renderer = [structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"])]

    structlog.configure(
        processors=build_processors() + renderer,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    # stdout carries command output
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


class LogPerformance:
    """
    Time a wallet operation and log its outcome.

    Usage:
        with LogPerformance("wallet_import", logger, wallet_id=wallet.id):
            ...

    Cancellation is logged as ``<operation>_cancelled`` rather than a failure.
    """

    def __init__(self, operation: str, logger: structlog.stdlib.BoundLogger, **context: Any):
        self.operation = operation
        self.logger = logger.bind(operation=operation, **context)
        self.start_time = 0.0

    def __enter__(self) -> "LogPerformance":
        self.start_time = time.perf_counter()
        self.logger.debug(f"{self.operation}_started")
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)

        if exc_type is None:
            self.logger.info(f"{self.operation}_completed", duration_ms=duration_ms)
        elif not issubclass(exc_type, Exception):
            self.logger.warning(f"{self.operation}_cancelled", duration_ms=duration_ms)
        else:
            self.logger.error(
                f"{self.operation}_failed",
                duration_ms=duration_ms,
                error_type=exc_type.__name__,
            )


configure_logging()
