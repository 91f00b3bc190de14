"""
Onboarding flow: ties the session state machine to persistence and the
OAuth redirect round trip.

Every transition is computed locally with the pure session functions and
then written back through the store, so other tabs see it on their next poll.
"""

import asyncio
import hmac
from collections.abc import Awaitable, Callable

from calmirror.infrastructure.observability.logging import get_logger
from calmirror.models.domain.calendar_domain import AccountProvider
from calmirror.models.domain.onboarding_domain import (
    OnboardingSession,
    ResumeAction,
    SessionAccount,
    SessionAccountStatus,
)
from calmirror.services.errors.classifier import classify_error_code, classify_oauth_error
from calmirror.services.errors.retry import OnboardingError
from calmirror.services.onboarding.oauth_state import (
    build_oauth_state_with_session,
    generate_oauth_nonce,
    parse_oauth_state,
)
from calmirror.services.onboarding.providers import (
    MAX_SYNC_POLL_FAILURES,
    OAUTH_BASE_URL,
    SYNC_POLL_INTERVAL_MS,
    SYNC_POLL_TIMEOUT_MS,
    build_onboarding_oauth_url,
    is_sync_complete,
)
from calmirror.services.onboarding.session import (
    add_account_to_session,
    complete_session,
    create_onboarding_session,
    determine_resume_action,
    update_account_status,
)
from calmirror.services.onboarding.session_store import OnboardingSessionStore

logger = get_logger(__name__)


class OnboardingFlow:
    """Drives one user's onboarding session."""

    def __init__(
        self,
        store: OnboardingSessionStore,
        user_id: str,
        redirect_uri: str,
        oauth_base_url: str = OAUTH_BASE_URL,
    ):
        self._store = store
        self._user_id = user_id
        self._redirect_uri = redirect_uri
        self._oauth_base_url = oauth_base_url

    async def resume(self, session_id: str) -> tuple[ResumeAction, OnboardingSession | None]:
        """Load the persisted session and decide how the view should open."""
        session = await self._store.load(session_id)
        action = determine_resume_action(session)
        logger.info("Onboarding resume decision", session_id=session_id, action=action)
        return action, session

    async def start(self, session_id: str, session_token: str) -> OnboardingSession:
        """Create and persist a fresh session."""
        session = create_onboarding_session(session_id, self._user_id, session_token)
        return await self._store.save(session)

    def begin_oauth(self, session: OnboardingSession, provider: AccountProvider) -> tuple[str, str]:
        """
        Build the redirect URL for an OAuth provider.

        Returns:
            (url, nonce): the caller keeps the nonce to check the callback
        """
        nonce = generate_oauth_nonce()
        state = build_oauth_state_with_session(session.session_id, nonce)
        url = build_onboarding_oauth_url(
            provider,
            self._user_id,
            self._redirect_uri,
            state=state,
            oauth_base_url=self._oauth_base_url,
        )
        return url, nonce

    async def complete_oauth(
        self,
        session: OnboardingSession,
        provider: AccountProvider,
        state: str,
        expected_nonce: str,
        account: SessionAccount,
    ) -> OnboardingSession:
        """
        Record an account returned by the OAuth callback.

        Duplicate callbacks for the same account update it in place.

        Raises:
            OnboardingError: "state_mismatch" when the state does not belong
                to this session or the nonce does not match
        """
        payload = parse_oauth_state(state)
        if (
            payload is None
            or payload.session_id != session.session_id
            or not hmac.compare_digest(payload.nonce, expected_nonce)
        ):
            logger.warning(
                "OAuth callback failed correlation check",
                session_id=session.session_id,
                provider=provider,
                state_parsed=payload is not None,
            )
            raise OnboardingError(classify_oauth_error("state_mismatch", provider))

        updated = add_account_to_session(session, account)
        return await self._store.save(updated)

    async def connect_credential_account(
        self, session: OnboardingSession, account: SessionAccount
    ) -> OnboardingSession:
        """Record an account connected with an app-specific password."""
        return await self._store.save(add_account_to_session(session, account))

    async def record_sync_status(
        self,
        session: OnboardingSession,
        account_id: str,
        status: SessionAccountStatus,
        calendar_count: int | None = None,
    ) -> OnboardingSession:
        updated = update_account_status(session, account_id, status, calendar_count)
        return await self._store.save(updated)

    async def wait_for_initial_sync(
        self,
        session: OnboardingSession,
        account: SessionAccount,
        interval_ms: int = SYNC_POLL_INTERVAL_MS,
        timeout_ms: int = SYNC_POLL_TIMEOUT_MS,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> OnboardingSession:
        """
        Poll a freshly connected account until its first sync succeeds.

        Up to MAX_SYNC_POLL_FAILURES consecutive transient failures are
        absorbed silently; the next one, or any persistent failure, is raised.
        On completion the account is marked connected with its calendar count.

        Raises:
            OnboardingError: On polling failure, or "sync_timeout" once
                timeout_ms has elapsed (the account is marked as errored first)
        """
        account_id = account.account_id
        failures = 0
        waited_ms = 0

        while True:
            try:
                status = await self._store.fetch_account_status(account_id)
            except OnboardingError as e:
                failures += 1
                if not e.classified.is_transient or failures > MAX_SYNC_POLL_FAILURES:
                    raise OnboardingError(e.classified, attempts=failures, state=e.state) from e
                logger.info(
                    "Sync status poll failed, will retry",
                    account_id=account_id,
                    error_code=e.classified.code,
                    consecutive_failures=failures,
                )
            else:
                failures = 0
                if is_sync_complete(status):
                    logger.info("Initial sync complete", account_id=account_id)
                    return await self.record_sync_status(
                        session, account_id, "connected", status.calendar_count
                    )

            if waited_ms >= timeout_ms:
                logger.warning(
                    "Initial sync did not complete in time",
                    account_id=account_id,
                    timeout_ms=timeout_ms,
                )
                await self.record_sync_status(session, account_id, "error")
                raise OnboardingError(classify_error_code("sync_timeout", account.provider))

            await sleep_fn(interval_ms / 1000)
            waited_ms += interval_ms

    async def finish(self, session: OnboardingSession) -> OnboardingSession:
        """Explicit "I'm done" from the user."""
        return await self._store.save(complete_session(session))
