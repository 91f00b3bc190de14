import json

import pytest

from calmirror.models.domain.calendar_domain import CalendarEvent
from calmirror.models.domain.onboarding_domain import OnboardingSyncStatus, SessionAccount
from calmirror.services.api_client import ApiError


class ImmediateDelay:
    """Stand-in for the retry sleep: records requested delays, never waits."""

    def __init__(self):
        self.calls: list[int] = []

    async def __call__(self, delay_ms: int) -> None:
        self.calls.append(delay_ms)


class FakeSessionBackend:
    """In-memory session persistence with the CalendarApiClient session methods."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.saves = 0
        self.failures: list[Exception] = []
        self.statuses: list[OnboardingSyncStatus] = []
        self.status_reads = 0

    async def get_onboarding_session(self, session_id: str):
        if self.failures:
            raise self.failures.pop(0)
        raw = self.store.get(session_id)
        if raw is None:
            raise ApiError(404, "NOT_FOUND", "Session not found")
        return json.loads(raw)

    async def save_onboarding_session(self, session) -> dict:
        if self.failures:
            raise self.failures.pop(0)
        self.saves += 1
        self.store[session.session_id] = json.dumps(session.to_payload())
        return session.to_payload()

    async def fetch_account_status(self, account_id: str) -> OnboardingSyncStatus:
        self.status_reads += 1
        if self.failures:
            raise self.failures.pop(0)
        # the last queued status repeats once the queue runs dry
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]


@pytest.fixture
def immediate_delay():
    return ImmediateDelay()


@pytest.fixture
def fake_session_backend():
    return FakeSessionBackend()


@pytest.fixture
def make_event():
    def _make(event_id: str = "evt-1", **overrides) -> CalendarEvent:
        data = {
            "canonical_event_id": event_id,
            "summary": "Standup",
            "description": "Daily sync",
            "location": "Room 4",
            "start": "2026-02-14T09:00:00Z",
            "end": "2026-02-14T09:30:00Z",
        }
        data.update(overrides)
        return CalendarEvent(**data)

    return _make


@pytest.fixture
def make_account():
    def _make(account_id: str = "acc-1", **overrides) -> SessionAccount:
        data = {
            "account_id": account_id,
            "provider": "google",
            "email": "user@example.com",
            "status": "connected",
            "connected_at": "2026-02-14T09:00:00.000Z",
        }
        data.update(overrides)
        return SessionAccount(**data)

    return _make
