import json

import httpx
import pytest

from calmirror.models.domain.calendar_domain import CreateEventPayload, UpdateEventPayload
from calmirror.services.api_client import ApiError, CalendarApiClient

BASE = "https://api.test/api"


def _event(event_id="evt-1", **overrides):
    data = {
        "canonical_event_id": event_id,
        "summary": "Standup",
        "start": "2026-02-14T09:00:00Z",
        "end": "2026-02-14T09:30:00Z",
        "origin_account_id": "acc-1",
        "status": "confirmed",
        "version": 1,
    }
    data.update(overrides)
    return data


@pytest.mark.asyncio
async def test_fetch_events_unwraps_envelope(httpx_mock):
    httpx_mock.add_response(
        method="GET",
        url=f"{BASE}/v1/events?start=2026-02-01&end=2026-03-01",
        json={"ok": True, "data": [_event("evt-1"), _event("evt-2", summary="Review")]},
    )

    async with CalendarApiClient(token="tok", base_url=BASE) as client:
        events = await client.fetch_events("2026-02-01", "2026-03-01")

    assert [e.canonical_event_id for e in events] == ["evt-1", "evt-2"]
    assert events[1].summary == "Review"
    assert httpx_mock.get_request().headers["Authorization"] == "Bearer tok"


@pytest.mark.asyncio
async def test_fetch_events_without_range_sends_no_params(httpx_mock):
    httpx_mock.add_response(method="GET", url=f"{BASE}/v1/events", json={"ok": True, "data": []})

    async with CalendarApiClient(base_url=BASE) as client:
        events = await client.fetch_events()

    assert events == []
    request = httpx_mock.get_request()
    assert request.url.query == b""
    assert "Authorization" not in request.headers


@pytest.mark.asyncio
async def test_create_event_posts_payload_without_absent_fields(httpx_mock):
    httpx_mock.add_response(
        method="POST",
        url=f"{BASE}/v1/events",
        json={"ok": True, "data": _event("evt-9", summary="Quick Sync")},
    )
    payload = CreateEventPayload(
        summary="Quick Sync", start="2026-02-14T09:00:00", end="2026-02-14T09:30:00"
    )

    async with CalendarApiClient(token="tok", base_url=BASE) as client:
        created = await client.create_event(payload)

    assert created.canonical_event_id == "evt-9"
    body = json.loads(httpx_mock.get_request().content)
    assert body == {
        "summary": "Quick Sync",
        "start": "2026-02-14T09:00:00",
        "end": "2026-02-14T09:30:00",
        "source": "ui",
    }


@pytest.mark.asyncio
async def test_update_event_sends_only_provided_fields(httpx_mock):
    httpx_mock.add_response(
        method="PATCH",
        url=f"{BASE}/v1/events/evt-1",
        json={"ok": True, "data": _event("evt-1", summary="Renamed", version=2)},
    )

    async with CalendarApiClient(token="tok", base_url=BASE) as client:
        updated = await client.update_event("evt-1", UpdateEventPayload(summary="Renamed"))

    assert updated.version == 2
    assert json.loads(httpx_mock.get_request().content) == {"summary": "Renamed"}


@pytest.mark.asyncio
async def test_delete_event(httpx_mock):
    httpx_mock.add_response(
        method="DELETE", url=f"{BASE}/v1/events/evt-1", json={"ok": True, "data": None}
    )

    async with CalendarApiClient(token="tok", base_url=BASE) as client:
        assert await client.delete_event("evt-1") is None


@pytest.mark.asyncio
async def test_structured_error_becomes_api_error(httpx_mock):
    httpx_mock.add_response(
        method="POST",
        url=f"{BASE}/v1/events",
        status_code=403,
        json={"ok": False, "error": {"code": "ACCESS_DENIED", "message": "Nope"}},
    )
    payload = CreateEventPayload(summary="x", start="s", end="e")

    async with CalendarApiClient(token="tok", base_url=BASE) as client:
        with pytest.raises(ApiError) as exc:
            await client.create_event(payload)

    assert exc.value.status == 403
    assert exc.value.code == "ACCESS_DENIED"
    assert str(exc.value) == "Nope"


@pytest.mark.asyncio
async def test_string_error_has_unknown_code(httpx_mock):
    httpx_mock.add_response(
        method="GET",
        url=f"{BASE}/v1/events",
        status_code=500,
        json={"ok": False, "error": "Internal failure"},
    )

    async with CalendarApiClient(base_url=BASE) as client:
        with pytest.raises(ApiError) as exc:
            await client.fetch_events()

    assert exc.value.status == 500
    assert exc.value.code == "UNKNOWN"
    assert str(exc.value) == "Internal failure"


@pytest.mark.asyncio
async def test_ok_false_with_success_status_is_an_error(httpx_mock):
    httpx_mock.add_response(
        method="GET", url=f"{BASE}/v1/events", json={"ok": False, "error": "Bad range"}
    )

    async with CalendarApiClient(base_url=BASE) as client:
        with pytest.raises(ApiError) as exc:
            await client.fetch_events()

    assert exc.value.status == 200


@pytest.mark.asyncio
async def test_non_json_error_body(httpx_mock):
    httpx_mock.add_response(
        method="GET", url=f"{BASE}/v1/events", status_code=502, text="<html>Bad gateway</html>"
    )

    async with CalendarApiClient(base_url=BASE) as client:
        with pytest.raises(ApiError) as exc:
            await client.fetch_events()

    assert exc.value.status == 502
    assert exc.value.code == "UNKNOWN"


@pytest.mark.asyncio
async def test_transport_errors_propagate(httpx_mock):
    httpx_mock.add_exception(httpx.ReadTimeout("timed out"))

    async with CalendarApiClient(base_url=BASE) as client:
        with pytest.raises(httpx.ReadTimeout):
            await client.fetch_events()


@pytest.mark.asyncio
async def test_onboarding_session_round_trip(httpx_mock):
    snapshot = {
        "session_id": "sess-1",
        "user_id": "user-1",
        "step": "welcome",
        "accounts": [],
        "session_token": "tok",
        "created_at": "2026-02-14T09:00:00.000Z",
        "updated_at": "2026-02-14T09:00:00.000Z",
    }
    httpx_mock.add_response(
        method="GET",
        url=f"{BASE}/v1/onboarding/session/sess-1",
        json={"ok": True, "data": snapshot},
    )

    async with CalendarApiClient(token="tok", base_url=BASE) as client:
        assert await client.get_onboarding_session("sess-1") == snapshot


@pytest.mark.asyncio
async def test_fetch_account_status_reads_camel_case_health(httpx_mock):
    httpx_mock.add_response(
        method="GET",
        url=f"{BASE}/v1/accounts/acc-1",
        json={
            "ok": True,
            "data": {
                "account_id": "acc-1",
                "email": "user@example.com",
                "provider": "google",
                "status": "active",
                "health": {
                    "lastSyncTs": "2026-02-14T09:01:00Z",
                    "lastSuccessTs": "2026-02-14T09:01:00Z",
                    "fullSyncNeeded": False,
                },
            },
        },
    )

    async with CalendarApiClient(token="tok", base_url=BASE) as client:
        status = await client.fetch_account_status("acc-1")

    assert status.status == "active"
    assert status.health.last_success_ts == "2026-02-14T09:01:00Z"
    assert status.health.full_sync_needed is False
