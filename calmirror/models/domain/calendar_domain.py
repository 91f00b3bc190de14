# calmirror/models/domain/calendar_domain.py
"""
Calendar Domain Models
Canonical events as the client holds them, plus the payloads sent to the API.
Unset optional fields stay out of the wire form entirely.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

AccountProvider = Literal["google", "microsoft", "apple"]

MirrorState = Literal["pending", "active", "error", "deleted"]


class EventMirror(BaseModel):
    """Projected copy of a canonical event on one target account."""

    model_config = ConfigDict(frozen=True)

    target_account_id: str
    target_calendar_id: str | None = None
    state: MirrorState = "pending"
    last_error: str | None = None


class CalendarEvent(BaseModel):
    """Domain model for a canonical calendar event."""

    model_config = ConfigDict(frozen=True)

    canonical_event_id: str
    summary: str | None = None
    description: str | None = None
    location: str | None = None
    start: str
    end: str
    origin_account_id: str | None = None
    origin_account_email: str | None = None
    status: str | None = None
    version: int | None = None
    updated_at: str | None = None
    mirrors: tuple[EventMirror, ...] | None = None

    def is_pending(self) -> bool:
        """Check if this event is still awaiting server confirmation."""
        return self.status == "pending"

    def mirror_states(self) -> dict[str, str]:
        """Map target account id -> mirror state."""
        return {m.target_account_id: m.state for m in self.mirrors or ()}

    def to_payload(self) -> dict[str, Any]:
        """Convert to the wire form, omitting absent optional fields."""
        return self.model_dump(mode="json", exclude_none=True)


class CreateEventPayload(BaseModel):
    """Payload for creating a new event via the API."""

    summary: str
    start: str
    end: str
    timezone: str | None = None
    description: str | None = None
    location: str | None = None
    source: Literal["ui"] = "ui"

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class UpdateEventPayload(BaseModel):
    """
    Partial update for an existing event.

    Only fields explicitly set (and not None) are applied; everything else
    on the target event is left as it was.
    """

    summary: str | None = None
    start: str | None = None
    end: str | None = None
    timezone: str | None = None
    description: str | None = None
    location: str | None = None

    def provided_fields(self) -> dict[str, Any]:
        """Fields the caller actually supplied."""
        return self.model_dump(exclude_unset=True, exclude_none=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True, exclude_none=True)


# Event-level fields an UpdateEventPayload can touch (timezone is request-only)
EDITABLE_EVENT_FIELDS = ("summary", "start", "end", "description", "location")


def parse_events(items: list[dict] | None) -> list[CalendarEvent]:
    """Validate a list of raw event dicts returned by the API."""
    return [CalendarEvent.model_validate(item) for item in items or []]
