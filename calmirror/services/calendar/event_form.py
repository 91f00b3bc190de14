"""
Event creation form helpers: validation, payload construction and defaults.
"""

from datetime import datetime, timedelta

from pydantic import BaseModel

from calmirror.models.domain.calendar_domain import CreateEventPayload


class EventFormValues(BaseModel):
    """Raw values as entered in the event form."""

    title: str = ""
    start_date: str = ""  # YYYY-MM-DD
    start_time: str = ""  # HH:MM
    end_date: str = ""
    end_time: str = ""
    timezone: str = ""
    description: str = ""
    location: str = ""


def _combine(date_str: str, time_str: str) -> datetime | None:
    try:
        return datetime.fromisoformat(f"{date_str}T{time_str}")
    except ValueError:
        return None


def validate_event_form(values: EventFormValues) -> dict[str, str]:
    """
    Validate form values.

    Returns:
        dict: field name -> error message (empty when the form is valid)
    """
    errors: dict[str, str] = {}

    if not values.title.strip():
        errors["title"] = "Title is required"
    if not values.start_date:
        errors["start_date"] = "Start date is required"
    if not values.start_time:
        errors["start_time"] = "Start time is required"
    if not values.end_date:
        errors["end_date"] = "End date is required"
    if not values.end_time:
        errors["end_time"] = "End time is required"

    if values.start_date and values.start_time and values.end_date and values.end_time:
        start = _combine(values.start_date, values.start_time)
        end = _combine(values.end_date, values.end_time)
        if start is None:
            errors["start_time"] = "Start time is not valid"
        elif end is None:
            errors["end_time"] = "End time is not valid"
        elif end <= start:
            errors["end_time"] = "End time must be after start time"

    return errors


def has_errors(errors: dict[str, str]) -> bool:
    return bool(errors)


def build_create_payload(values: EventFormValues) -> CreateEventPayload:
    """
    Build the create payload from validated form values.

    Title is trimmed; blank description, location and timezone are left out.
    """
    optional = {
        key: value.strip()
        for key, value in (
            ("timezone", values.timezone),
            ("description", values.description),
            ("location", values.location),
        )
        if value.strip()
    }

    return CreateEventPayload(
        summary=values.title.strip(),
        start=f"{values.start_date}T{values.start_time}:00",
        end=f"{values.end_date}T{values.end_time}:00",
        source="ui",
        **optional,
    )


def create_default_form_values(
    start: datetime, duration_minutes: int = 60, timezone: str = "UTC"
) -> EventFormValues:
    """Pre-fill the form for a clicked time slot."""
    end = start + timedelta(minutes=duration_minutes)
    return EventFormValues(
        start_date=start.strftime("%Y-%m-%d"),
        start_time=start.strftime("%H:%M"),
        end_date=end.strftime("%Y-%m-%d"),
        end_time=end.strftime("%H:%M"),
        timezone=timezone,
    )
