"""
Optimistic update helpers for the event list.

Every function takes the current sequence of events and returns a new list.
Inputs are never mutated and nothing here performs I/O, so none of these
functions can fail. Callers sequence them around the network call:
snapshot -> apply -> await -> reconcile, or restore the snapshot on failure.
"""

import secrets
import time
from collections.abc import Sequence

from calmirror.config import settings
from calmirror.infrastructure.observability.logging import get_logger
from calmirror.models.domain.calendar_domain import (
    EDITABLE_EVENT_FIELDS,
    CalendarEvent,
    CreateEventPayload,
    UpdateEventPayload,
)

logger = get_logger(__name__)

TEMP_ID_PREFIX = settings.TEMP_ID_PREFIX

PENDING_STATUS = "pending"


def generate_temp_event_id() -> str:
    """Temporary id: reserved prefix + millisecond timestamp + random suffix."""
    return f"{TEMP_ID_PREFIX}{int(time.time() * 1000)}-{secrets.token_hex(6)}"


def is_temp_event_id(event_id: str) -> bool:
    """Check whether an id belongs to the client-side placeholder namespace."""
    return event_id.startswith(TEMP_ID_PREFIX)


def create_optimistic_event(payload: CreateEventPayload) -> CalendarEvent:
    """
    Build a pending placeholder event from a create payload.

    Args:
        payload: Payload about to be sent to the API

    Returns:
        CalendarEvent with a temporary id and status "pending"
    """
    return CalendarEvent(
        canonical_event_id=generate_temp_event_id(),
        summary=payload.summary,
        description=payload.description,
        location=payload.location,
        start=payload.start,
        end=payload.end,
        status=PENDING_STATUS,
    )


def _index_of(events: Sequence[CalendarEvent], event_id: str) -> int:
    for i, event in enumerate(events):
        if event.canonical_event_id == event_id:
            return i
    return -1


def add_optimistic_event(
    events: Sequence[CalendarEvent], event: CalendarEvent
) -> list[CalendarEvent]:
    """Append a placeholder event."""
    return [*events, event]


def replace_optimistic_event(
    events: Sequence[CalendarEvent], temp_id: str, real: CalendarEvent
) -> list[CalendarEvent]:
    """
    Swap a placeholder for the server-confirmed event at the same position.

    If temp_id is not in the list (already reconciled, or rolled back) the
    list is returned unchanged; the real event is never inserted.
    """
    index = _index_of(events, temp_id)
    if index < 0:
        logger.debug("Optimistic event already resolved", temp_id=temp_id)
        return list(events)

    replaced = list(events)
    replaced[index] = real
    return replaced


def remove_optimistic_event(
    events: Sequence[CalendarEvent], temp_id: str
) -> list[CalendarEvent]:
    """Rollback: drop the placeholder. Safe to call if it is already gone."""
    return [e for e in events if e.canonical_event_id != temp_id]


def update_optimistic_event(
    events: Sequence[CalendarEvent], event_id: str, payload: UpdateEventPayload
) -> list[CalendarEvent]:
    """
    Apply the explicitly provided fields of a partial update to one event.

    Fields the payload leaves unset keep their current values.
    """
    changes = {
        field: value
        for field, value in payload.provided_fields().items()
        if field in EDITABLE_EVENT_FIELDS
    }
    if not changes:
        return list(events)

    return [
        e.model_copy(update=changes) if e.canonical_event_id == event_id else e
        for e in events
    ]


def delete_optimistic_event(
    events: Sequence[CalendarEvent], event_id: str
) -> list[CalendarEvent]:
    """Remove an event; no-op if absent."""
    return [e for e in events if e.canonical_event_id != event_id]
