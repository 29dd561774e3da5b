"""
Structured logging for the event ledger.

structlog on top of stdlib logging, with a correlation id carried in a
context variable. LogOperation binds a fresh id for each save or read, so
every line emitted by the allocator, the version reader and the writer during
one operation can be tied together. Callers that already have a request id
bind it with set_correlation_id and it is used instead.
"""

import contextvars
import logging
import os
import secrets
import sys
import time
from typing import Any

import structlog

from event_ledger.kernel.errors import ConcurrencyError

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)


def generate_correlation_id() -> str:
    """Generate a 22-character URL-safe correlation id (128 bits of entropy)."""
    return secrets.token_urlsafe(16)


def get_correlation_id() -> str:
    """Get the correlation ID bound to the current context ("" if none)."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> contextvars.Token[str]:
    """Bind a caller-supplied correlation ID; pass the token to reset_correlation_id."""
    return correlation_id_var.set(correlation_id)


def reset_correlation_id(token: contextvars.Token[str]) -> None:
    """Restore the correlation ID that was bound before set_correlation_id."""
    correlation_id_var.reset(token)


def add_correlation_id(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add correlation ID to log event when one is bound."""
    cid = correlation_id_var.get()
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def configure_logging(
    *,
    json_output: bool = False,
    log_level: str = "INFO",
) -> None:
    """
    Configure structured logging for the application.

    Args:
        json_output: If True, output JSON logs (for production).
                    If False, output human-readable console logs (for development).
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
    )

    # boto3 logs every request at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_correlation_id,
    ]

    if json_output:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.ExceptionRenderer(),
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger for the given module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Structured logger instance
    """
    return structlog.get_logger(name)


def is_production() -> bool:
    """True when ENVIRONMENT is 'production' (defaults to development)."""
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


# Event payloads are opaque and may carry anything; they never reach the logs
REDACTED_FIELDS = {
    "data",
    "metadata",
    "aws_secret_access_key",
    "aws_session_token",
}


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """
    Redact payload and credential fields from log context.

    Example:
        >>> redact_context({"data": b"...", "aggregate_id": "order-1"})
        {"data": "***REDACTED***", "aggregate_id": "order-1"}
    """
    return {
        k: "***REDACTED***" if k in REDACTED_FIELDS else v
        for k, v in context.items()
    }


class LogOperation:
    """
    Context manager for logging operations with automatic timing.

    Binds a fresh correlation id for the duration of the operation unless
    the caller already bound one, so every line a save or read emits carries
    the same id and the next operation gets a new one.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ):
        """
        Initialize operation logger.

        Args:
            logger: Structured logger instance
            operation: Operation name (e.g., "save_events", "get_events")
            **context: Additional context to include in logs
        """
        self.logger = logger
        self.operation = operation
        self.context = context
        self.start_time: float = 0.0
        self._token: contextvars.Token[str] | None = None

    def __enter__(self) -> "LogOperation":
        if not correlation_id_var.get():
            self._token = correlation_id_var.set(generate_correlation_id())
        self.start_time = time.perf_counter()
        self.logger.debug(
            f"{self.operation} started",
            operation=self.operation,
            **redact_context(self.context),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        duration_ms = (time.perf_counter() - self.start_time) * 1000
        redacted = redact_context(self.context)

        try:
            if exc_type is None:
                self.logger.info(
                    f"{self.operation} completed",
                    operation=self.operation,
                    duration_ms=round(duration_ms, 2),
                    **redacted,
                )
            elif isinstance(exc_val, ConcurrencyError):
                # Expected outcome of optimistic concurrency, not a fault
                self.logger.warning(
                    f"{self.operation} rejected",
                    operation=self.operation,
                    duration_ms=round(duration_ms, 2),
                    error=type(exc_val).__name__,
                    **redacted,
                )
            else:
                # Stack traces only in development
                self.logger.error(
                    f"{self.operation} failed",
                    operation=self.operation,
                    duration_ms=round(duration_ms, 2),
                    error=type(exc_val).__name__,
                    exc_info=not is_production(),
                    **redacted,
                )
        finally:
            if self._token is not None:
                correlation_id_var.reset(self._token)
                self._token = None
