from calmirror.models.domain.calendar_domain import (
    CalendarEvent,
    CreateEventPayload,
    EventMirror,
    UpdateEventPayload,
)
from calmirror.services.calendar.optimistic import (
    add_optimistic_event,
    create_optimistic_event,
    delete_optimistic_event,
    is_temp_event_id,
    remove_optimistic_event,
    replace_optimistic_event,
    update_optimistic_event,
)


def _payload() -> CreateEventPayload:
    return CreateEventPayload(
        summary="Quick Sync",
        start="2026-02-14T09:00:00",
        end="2026-02-14T09:30:00",
        timezone="UTC",
        description="Brief check-in",
        location="Zoom",
    )


def test_create_optimistic_event_is_pending_with_temp_id():
    event = create_optimistic_event(_payload())

    assert event.canonical_event_id.startswith("temp-")
    assert is_temp_event_id(event.canonical_event_id)
    assert event.status == "pending"
    assert event.summary == "Quick Sync"
    assert event.start == "2026-02-14T09:00:00"
    assert event.end == "2026-02-14T09:30:00"
    assert event.description == "Brief check-in"
    assert event.location == "Zoom"


def test_create_optimistic_event_ids_are_unique_across_rapid_calls():
    ids = {create_optimistic_event(_payload()).canonical_event_id for _ in range(2000)}
    assert len(ids) == 2000


def test_server_ids_are_not_temp_ids():
    assert not is_temp_event_id("evt-1")


def test_add_then_replace_keeps_position(make_event):
    existing = [make_event("evt-1")]
    before = list(existing)
    temp = make_event("temp-abc", status="pending")

    added = add_optimistic_event(existing, temp)
    assert existing == before
    assert [e.canonical_event_id for e in added] == ["evt-1", "temp-abc"]
    assert added[1] is temp

    added_before = list(added)
    real = make_event("evt-2", version=1)
    replaced = replace_optimistic_event(added, "temp-abc", real)
    assert added == added_before
    assert [e.canonical_event_id for e in replaced] == ["evt-1", "evt-2"]
    assert replaced[1].version == 1


def test_replace_in_middle_preserves_order(make_event):
    events = [make_event("evt-1"), make_event("temp-1"), make_event("evt-3")]
    before = list(events)

    result = replace_optimistic_event(events, "temp-1", make_event("evt-2"))

    assert events == before
    assert [e.canonical_event_id for e in result] == ["evt-1", "evt-2", "evt-3"]


def test_replace_missing_temp_id_does_not_insert(make_event):
    events = [make_event("evt-1"), make_event("evt-2")]
    before = list(events)

    result = replace_optimistic_event(events, "temp-gone", make_event("evt-2"))

    assert events == before
    assert result == events
    assert result is not events


def test_double_replace_is_a_no_op(make_event):
    events = [make_event("temp-1")]
    real = make_event("evt-1")

    once = replace_optimistic_event(events, "temp-1", real)
    once_before = list(once)
    twice = replace_optimistic_event(once, "temp-1", real)

    assert once == once_before
    assert twice == once


def test_remove_after_add_round_trips(make_event):
    events = [make_event("evt-1"), make_event("evt-2")]
    before = list(events)
    temp = make_event("temp-xyz", status="pending")

    added = add_optimistic_event(events, temp)
    added_before = list(added)
    result = remove_optimistic_event(added, "temp-xyz")

    assert result == events
    assert events == before
    assert added == added_before


def test_remove_does_not_mutate_and_tolerates_missing(make_event):
    events = [make_event("evt-1"), make_event("temp-123")]
    before = list(events)

    result = remove_optimistic_event(events, "temp-123")
    assert [e.canonical_event_id for e in result] == ["evt-1"]
    assert events == before

    untouched = remove_optimistic_event(events, "temp-999")
    assert untouched == events
    assert events == before


def test_update_changes_only_provided_fields(make_event):
    original = make_event("evt-1")
    other = make_event("evt-2", summary="Other")
    events = [original, other]
    before = list(events)

    result = update_optimistic_event(events, "evt-1", UpdateEventPayload(summary="Renamed"))

    updated = result[0]
    assert updated.summary == "Renamed"
    assert updated.description == original.description
    assert updated.location == original.location
    assert updated.start == original.start
    assert updated.end == original.end
    assert result[1] is other
    assert events == before
    assert events[0].summary == "Standup"


def test_update_with_explicit_none_keeps_existing_value(make_event):
    events = [make_event("evt-1")]
    before = list(events)

    result = update_optimistic_event(
        events, "evt-1", UpdateEventPayload(location=None, end="2026-02-14T10:00:00Z")
    )

    assert result[0].location == "Room 4"
    assert result[0].end == "2026-02-14T10:00:00Z"
    assert events == before


def test_update_ignores_request_only_fields(make_event):
    events = [make_event("evt-1")]
    before = list(events)

    result = update_optimistic_event(events, "evt-1", UpdateEventPayload(timezone="UTC"))

    assert result == events
    assert events == before


def test_update_unknown_id_returns_equal_list(make_event):
    events = [make_event("evt-1")]
    before = list(events)

    result = update_optimistic_event(events, "evt-9", UpdateEventPayload(summary="x"))

    assert result == events
    assert result is not events
    assert events == before


def test_delete_removes_and_is_safe_when_absent(make_event):
    events = [make_event("evt-1"), make_event("evt-2")]
    before = list(events)

    assert [e.canonical_event_id for e in delete_optimistic_event(events, "evt-1")] == ["evt-2"]
    assert events == before
    assert delete_optimistic_event(events, "evt-9") == events
    assert events == before


def test_event_payload_omits_absent_fields():
    event = CalendarEvent(canonical_event_id="evt-1", start="s", end="e")

    assert event.to_payload() == {"canonical_event_id": "evt-1", "start": "s", "end": "e"}


def test_mirror_states_by_target_account(make_event):
    event = make_event(
        "evt-1",
        mirrors=(
            EventMirror(target_account_id="acc-2", state="active"),
            EventMirror(target_account_id="acc-3", state="error", last_error="quota"),
        ),
    )

    assert event.mirror_states() == {"acc-2": "active", "acc-3": "error"}
    assert make_event("evt-2").mirror_states() == {}
