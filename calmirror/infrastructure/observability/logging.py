"""
Structured logging setup for the calendar sync client.
Provides JSON-formatted logs with consistent fields for production monitoring.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory

from calmirror.config import settings

# Keys that must never reach a log line (tokens, credentials, addresses)
_REDACTED_KEYS = {"session_token", "access_token", "password", "email", "nonce"}


def setup_logging(log_level: str | None = None) -> None:
    """
    Configure structured logging with JSON output for production.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Defaults to settings.LOG_LEVEL, or DEBUG when settings.debug is set.
    """
    if log_level is None:
        log_level = "DEBUG" if settings.debug else settings.LOG_LEVEL

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _redact_sensitive_fields,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    # Configure stdlib logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _redact_sensitive_fields(
    logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Mask values of keys that could carry PII or credentials."""
    for key in _REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_retry_attempt(operation: str, attempt: int, code: str, delay_ms: int) -> None:
    """Log a scheduled retry with consistent fields."""
    logger = get_logger("retry")
    logger.info(
        "Transient failure, retry scheduled",
        operation=operation,
        attempt=attempt,
        error_code=code,
        delay_ms=delay_ms,
        event_type="retry_scheduled",
    )
