"""
Persistence and cross-tab polling for onboarding sessions.

The backend copy is authoritative. Every tab reads it by session_id and
deserializes the latest snapshot; there is no client-side locking, so the
last write wins.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable

from calmirror.infrastructure.observability.logging import get_logger
from calmirror.models.domain.calendar_domain import AccountProvider
from calmirror.models.domain.error_domain import ClassifiedError
from calmirror.models.domain.onboarding_domain import OnboardingSession, OnboardingSyncStatus
from calmirror.services.api_client import ApiError, CalendarApiClient
from calmirror.services.errors.classifier import make_classifier
from calmirror.services.errors.retry import MAX_RETRIES, OnboardingError, retry_with_backoff
from calmirror.services.onboarding.session import (
    SESSION_POLL_INTERVAL_MS,
    deserialize_session,
)

logger = get_logger(__name__)


class OnboardingSessionStore:
    """Load and save sessions through the backend API, retrying transient failures."""

    def __init__(
        self,
        client: CalendarApiClient,
        provider: AccountProvider = "google",
        max_retries: int = MAX_RETRIES,
        delay_fn: Callable[[int], Awaitable[None]] | None = None,
        classify_error: Callable[[BaseException], ClassifiedError] | None = None,
    ):
        self._client = client
        self._max_retries = max_retries
        self._delay_fn = delay_fn
        self._classify = classify_error or make_classifier(provider)

    async def load(self, session_id: str) -> OnboardingSession | None:
        """
        Fetch the latest persisted snapshot.

        Returns:
            OnboardingSession, or None if no session exists or the stored
            snapshot is malformed

        Raises:
            OnboardingError: If the backend keeps failing
        """

        async def _fetch():
            try:
                return await self._client.get_onboarding_session(session_id)
            except ApiError as e:
                if e.status == 404:
                    return None
                raise

        snapshot = await retry_with_backoff(
            _fetch,
            self._classify,
            self._max_retries,
            delay_fn=self._delay_fn,
            operation_name="load_onboarding_session",
        )
        if snapshot is None:
            return None

        raw = snapshot if isinstance(snapshot, str) else json.dumps(snapshot)
        return deserialize_session(raw)

    async def save(self, session: OnboardingSession) -> OnboardingSession:
        """
        Persist a session snapshot (overwrites whatever another tab wrote).

        Raises:
            OnboardingError: If the write cannot be completed
        """
        await retry_with_backoff(
            lambda: self._client.save_onboarding_session(session),
            self._classify,
            self._max_retries,
            delay_fn=self._delay_fn,
            operation_name="save_onboarding_session",
        )
        logger.info(
            "Onboarding session saved",
            session_id=session.session_id,
            step=session.step,
            account_count=len(session.accounts),
        )
        return session

    async def fetch_account_status(self, account_id: str) -> OnboardingSyncStatus:
        """
        Single classified read of an account's sync status.

        Not retried here: the sync poll loop owns the retry cadence.

        Raises:
            OnboardingError: Classified failure of the status read
        """
        return await retry_with_backoff(
            lambda: self._client.fetch_account_status(account_id),
            self._classify,
            0,
            delay_fn=self._delay_fn,
            operation_name="fetch_account_status",
        )


class SessionPoller:
    """
    Polls the persisted session so a second tab picks up changes.

    on_change is called whenever updated_at moves. stop() flips the
    liveness flag; a poll that completes after stop() is dropped.
    """

    def __init__(
        self,
        store: OnboardingSessionStore,
        session_id: str,
        on_change: Callable[[OnboardingSession], None],
        interval_ms: int = SESSION_POLL_INTERVAL_MS,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._store = store
        self._session_id = session_id
        self._on_change = on_change
        self._interval_ms = interval_ms
        self._sleep = sleep_fn
        self._alive = True
        self._last_seen: str | None = None

    @property
    def alive(self) -> bool:
        return self._alive

    def stop(self) -> None:
        self._alive = False

    async def poll_once(self) -> OnboardingSession | None:
        """Run one poll; returns the session if it changed since the last poll."""
        session = await self._store.load(self._session_id)
        if not self._alive or session is None:
            return None
        if session.updated_at == self._last_seen:
            return None

        self._last_seen = session.updated_at
        self._on_change(session)
        return session

    async def run(self) -> None:
        """Poll until stopped. Failed polls are logged and retried next tick."""
        while self._alive:
            try:
                await self.poll_once()
            except OnboardingError as e:
                logger.warning(
                    "Session poll failed",
                    session_id=self._session_id,
                    error_code=e.classified.code,
                    severity=e.classified.severity,
                )
            if not self._alive:
                break
            await self._sleep(self._interval_ms / 1000)
