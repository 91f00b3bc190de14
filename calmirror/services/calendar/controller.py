"""
Event list controller: applies optimistic mutations around API calls.

Each mutation snapshots the list, applies the optimistic change, awaits the
API through retry_with_backoff, then either reconciles with the server
result or restores the snapshot and re-raises the OnboardingError.

close() flips a liveness flag; results arriving after close() are dropped
instead of being applied to a view that no longer exists.
"""

from collections.abc import Awaitable, Callable
from typing import TypeVar

from calmirror.infrastructure.observability.logging import get_logger
from calmirror.models.domain.calendar_domain import (
    AccountProvider,
    CalendarEvent,
    CreateEventPayload,
    UpdateEventPayload,
)
from calmirror.models.domain.error_domain import ClassifiedError
from calmirror.services.api_client import CalendarApiClient
from calmirror.services.calendar.optimistic import (
    add_optimistic_event,
    create_optimistic_event,
    delete_optimistic_event,
    replace_optimistic_event,
    update_optimistic_event,
)
from calmirror.services.errors.classifier import make_classifier
from calmirror.services.errors.retry import MAX_RETRIES, OnboardingError, retry_with_backoff
from calmirror.services.errors.telemetry import (
    TelemetrySink,
    create_error_telemetry_event,
    emit_safely,
)

logger = get_logger(__name__)

T = TypeVar("T")


class EventListController:
    """Owns the event list for one calendar view."""

    def __init__(
        self,
        client: CalendarApiClient,
        events: list[CalendarEvent] | None = None,
        provider: AccountProvider = "google",
        max_retries: int = MAX_RETRIES,
        delay_fn: Callable[[int], Awaitable[None]] | None = None,
        telemetry: TelemetrySink | None = None,
        classify_error: Callable[[BaseException], ClassifiedError] | None = None,
    ):
        self._client = client
        self._events: list[CalendarEvent] = list(events or [])
        self._max_retries = max_retries
        self._delay_fn = delay_fn
        self._telemetry = telemetry
        self._classify = classify_error or make_classifier(provider)
        self._alive = True

    @property
    def events(self) -> list[CalendarEvent]:
        return list(self._events)

    @property
    def closed(self) -> bool:
        return not self._alive

    def close(self) -> None:
        """Tear down: later API results are ignored."""
        self._alive = False

    def _set_events(self, events: list[CalendarEvent], reason: str) -> None:
        if not self._alive:
            logger.debug("Dropping event list update after close", reason=reason)
            return
        self._events = events

    async def _call(self, operation: Callable[[], Awaitable[T]], name: str) -> T:
        retries = 0
        last_transient: ClassifiedError | None = None

        def _on_retry(attempt: int, classified: ClassifiedError) -> None:
            nonlocal retries, last_transient
            retries = attempt + 1
            last_transient = classified

        try:
            result = await retry_with_backoff(
                operation,
                self._classify,
                self._max_retries,
                on_retry=_on_retry,
                delay_fn=self._delay_fn,
                operation_name=name,
            )
        except OnboardingError as e:
            emit_safely(
                self._telemetry,
                create_error_telemetry_event(
                    e.classified,
                    retry_count=e.retry_count if e.classified.is_transient else None,
                    recovered=False,
                ),
            )
            raise

        if last_transient is not None:
            emit_safely(
                self._telemetry,
                create_error_telemetry_event(last_transient, retry_count=retries, recovered=True),
            )
        return result

    async def load(self, start: str | None = None, end: str | None = None) -> list[CalendarEvent]:
        """Replace the list with the server's view of the range."""
        events = await self._call(lambda: self._client.fetch_events(start, end), "fetch_events")
        self._set_events(events, "load")
        return self.events

    async def create_event(self, payload: CreateEventPayload) -> CalendarEvent:
        """
        Show a pending placeholder immediately, then swap in the real event.

        Raises:
            OnboardingError: After the placeholder has been rolled back
        """
        snapshot = list(self._events)
        placeholder = create_optimistic_event(payload)
        self._set_events(add_optimistic_event(self._events, placeholder), "create_optimistic")

        try:
            real = await self._call(lambda: self._client.create_event(payload), "create_event")
        except OnboardingError:
            self._set_events(snapshot, "create_rollback")
            raise

        self._set_events(
            replace_optimistic_event(self._events, placeholder.canonical_event_id, real),
            "create_confirmed",
        )
        return real

    async def save_event(self, event_id: str, payload: UpdateEventPayload) -> CalendarEvent:
        """Apply a partial edit optimistically, then take the server's version."""
        snapshot = list(self._events)
        self._set_events(update_optimistic_event(self._events, event_id, payload), "update_optimistic")

        try:
            updated = await self._call(
                lambda: self._client.update_event(event_id, payload), "update_event"
            )
        except OnboardingError:
            self._set_events(snapshot, "update_rollback")
            raise

        self._set_events(replace_optimistic_event(self._events, event_id, updated), "update_confirmed")
        return updated

    async def delete_event(self, event_id: str) -> None:
        """Remove the event optimistically; restore it if the API refuses."""
        snapshot = list(self._events)
        self._set_events(delete_optimistic_event(self._events, event_id), "delete_optimistic")

        try:
            await self._call(lambda: self._client.delete_event(event_id), "delete_event")
        except OnboardingError:
            self._set_events(snapshot, "delete_rollback")
            raise
