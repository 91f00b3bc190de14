"""
Anonymized error telemetry.
Events carry provider, error code, severity and timestamp only: no tokens,
no email addresses.
"""

from datetime import UTC, datetime
from typing import Protocol

from calmirror.infrastructure.observability.logging import get_logger
from calmirror.models.domain.error_domain import ClassifiedError, ErrorTelemetryEvent

logger = get_logger(__name__)


class TelemetrySink(Protocol):
    """Fire-and-forget destination for error telemetry."""

    def emit(self, event: ErrorTelemetryEvent) -> None: ...


class LoggingTelemetrySink:
    """Default sink: writes each event as a structured log line."""

    def __init__(self, logger_name: str = "telemetry"):
        self._logger = get_logger(logger_name)

    def emit(self, event: ErrorTelemetryEvent) -> None:
        self._logger.info("Onboarding error telemetry", telemetry=event.to_payload())


class MemoryTelemetrySink:
    """Collects events in memory; handy for previews and tests."""

    def __init__(self):
        self.events: list[ErrorTelemetryEvent] = []

    def emit(self, event: ErrorTelemetryEvent) -> None:
        self.events.append(event)


def _utc_timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def create_error_telemetry_event(
    classified: ClassifiedError,
    *,
    retry_count: int | None = None,
    recovered: bool | None = None,
    user_dismissed: bool | None = None,
) -> ErrorTelemetryEvent:
    """
    Create an anonymized error telemetry event.

    Optional fields are only set when explicitly provided, so retry_count=0
    and recovered=False survive into the payload while omitted ones don't.

    Args:
        classified: The classified error
        retry_count: Retry attempts before surfacing (omit for non-retryable errors)
        recovered: Whether the error was eventually recovered from
        user_dismissed: Whether the user dismissed the error

    Returns:
        ErrorTelemetryEvent
    """
    optional = {
        key: value
        for key, value in (
            ("retry_count", retry_count),
            ("recovered", recovered),
            ("user_dismissed", user_dismissed),
        )
        if value is not None
    }

    return ErrorTelemetryEvent(
        provider=classified.provider,
        error_type=classified.code,
        severity=classified.severity,
        timestamp=_utc_timestamp(),
        **optional,
    )


def emit_safely(sink: TelemetrySink | None, event: ErrorTelemetryEvent) -> None:
    """Deliver an event without letting a sink failure reach the caller."""
    if sink is None:
        return
    try:
        sink.emit(event)
    except Exception as e:
        logger.warning(
            "Telemetry sink failed",
            error=str(e),
            error_type=type(e).__name__,
            telemetry_error_type=event.error_type,
        )
