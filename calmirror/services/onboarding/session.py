"""
Onboarding session management for the multi-account connection flow.

- Session creation and serialization for server persistence
- Resume logic: detecting an existing session and restoring its state
- Idempotent account addition (re-connecting an account updates it in place)
- Session completion on explicit user action

Sessions are immutable: every transition returns a new session, so two tabs
holding their own copies never see each other's edits until they poll the
persisted snapshot. Persistence is last-write-wins; two tabs adding
different accounts without polling in between can lose one write.
"""

from datetime import UTC, datetime

from pydantic import ValidationError

from calmirror.config import settings
from calmirror.infrastructure.observability.logging import get_logger
from calmirror.models.domain.onboarding_domain import (
    OnboardingSession,
    ResumeAction,
    SessionAccount,
    SessionAccountStatus,
)

logger = get_logger(__name__)

# Polling interval for cross-tab session status checks (milliseconds)
SESSION_POLL_INTERVAL_MS = settings.SESSION_POLL_INTERVAL_MS


def _now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def create_onboarding_session(
    session_id: str, user_id: str, session_token: str
) -> OnboardingSession:
    """
    Create a new onboarding session record.

    Args:
        session_id: Pre-generated session id
        user_id: The authenticated user's id
        session_token: Random token backing the browser cookie

    Returns:
        OnboardingSession at the welcome step with no accounts
    """
    now = _now_iso()
    return OnboardingSession(
        session_id=session_id,
        user_id=user_id,
        step="welcome",
        accounts=(),
        session_token=session_token,
        created_at=now,
        updated_at=now,
    )


def add_account_to_session(
    session: OnboardingSession, account: SessionAccount
) -> OnboardingSession:
    """
    Add or update an account in the session.

    If the account_id is already present the entry is replaced at the same
    index, which makes duplicate connect callbacks harmless.

    Returns:
        New session with the account merged and step at least "connecting"
    """
    accounts = list(session.accounts)
    existing = next(
        (i for i, a in enumerate(accounts) if a.account_id == account.account_id), None
    )
    if existing is None:
        accounts.append(account)
    else:
        accounts[existing] = account
        logger.debug(
            "Account re-added to onboarding session",
            session_id=session.session_id,
            account_id=account.account_id,
        )

    step = "connecting" if session.step == "welcome" else session.step

    return session.model_copy(
        update={"accounts": tuple(accounts), "step": step, "updated_at": _now_iso()}
    )


def update_account_status(
    session: OnboardingSession,
    account_id: str,
    status: SessionAccountStatus,
    calendar_count: int | None = None,
) -> OnboardingSession:
    """
    Update the status of one account in the session.

    calendar_count is only written when given; otherwise the account keeps
    whatever it had (including no count at all).
    """
    changes: dict = {"status": status}
    if calendar_count is not None:
        changes["calendar_count"] = calendar_count

    accounts = tuple(
        a.model_copy(update=changes) if a.account_id == account_id else a
        for a in session.accounts
    )

    return session.model_copy(update={"accounts": accounts, "updated_at": _now_iso()})


def complete_session(session: OnboardingSession) -> OnboardingSession:
    """Mark the session complete (explicit user action, never a timeout)."""
    now = _now_iso()
    logger.info(
        "Onboarding session completed",
        session_id=session.session_id,
        account_count=len(session.accounts),
    )
    return session.model_copy(
        update={"step": "complete", "completed_at": now, "updated_at": now}
    )


def determine_resume_action(session: OnboardingSession | None) -> ResumeAction:
    """
    Decide what the onboarding view should do with an existing session.

    Returns:
        "redirect" when the session is complete (completed_at set, or step
        "complete"), "resume" when accounts are connected, else "fresh"
    """
    if session is None:
        return "fresh"
    if session.completed_at is not None or session.step == "complete":
        return "redirect"
    if session.accounts:
        return "resume"
    return "fresh"


def serialize_session(session: OnboardingSession) -> str:
    """Serialize a session to JSON; unset optional fields are omitted."""
    return session.model_dump_json(exclude_none=True)


def deserialize_session(raw: str | bytes | None) -> OnboardingSession | None:
    """
    Deserialize a session from JSON.

    Returns:
        OnboardingSession, or None for empty input, invalid JSON or a
        document missing (or mistyping) required fields. Never raises.
    """
    if not raw:
        return None
    try:
        return OnboardingSession.model_validate_json(raw)
    except ValidationError as e:
        logger.warning(
            "Discarding malformed onboarding session snapshot",
            error_count=e.error_count(),
        )
        return None
