# calmirror/models/domain/onboarding_domain.py
"""
Onboarding Domain Models
Resumable multi-account onboarding session and the values exchanged with
OAuth callbacks. Sessions are immutable; transitions build new instances.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, StrictStr
from pydantic.alias_generators import to_camel

from calmirror.models.domain.calendar_domain import AccountProvider

OnboardingStep = Literal["welcome", "connecting", "complete"]

SessionAccountStatus = Literal["connected", "syncing", "error"]

ResumeAction = Literal["fresh", "resume", "redirect"]


class SessionAccount(BaseModel):
    """A connected account entry within the onboarding session."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    account_id: StrictStr
    provider: AccountProvider
    email: StrictStr
    status: SessionAccountStatus
    calendar_count: int | None = None  # populated after sync
    connected_at: StrictStr


class OnboardingSession(BaseModel):
    """
    Onboarding session record, persisted server-side.

    completed_at stays None until the user explicitly completes onboarding
    and is omitted from the serialized form while unset.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    session_id: StrictStr
    user_id: StrictStr
    step: OnboardingStep
    accounts: tuple[SessionAccount, ...]
    session_token: StrictStr
    created_at: StrictStr
    updated_at: StrictStr
    completed_at: StrictStr | None = None

    def find_account(self, account_id: str) -> SessionAccount | None:
        return next((a for a in self.accounts if a.account_id == account_id), None)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    def __repr__(self) -> str:
        return (
            f"OnboardingSession(session_id={self.session_id!r}, step={self.step!r}, "
            f"accounts={len(self.accounts)})"
        )


class OAuthStatePayload(BaseModel):
    """Decoded OAuth state parameter: session correlation plus anti-forgery nonce."""

    model_config = ConfigDict(frozen=True)

    session_id: StrictStr
    nonce: StrictStr


class OAuthCallback(BaseModel):
    """Values read back from the post-OAuth redirect URL."""

    account_id: str | None = None
    reactivated: bool = False


class SyncHealth(BaseModel):
    """Account health as reported by the API (camelCase keys on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    last_sync_ts: str | None = None
    last_success_ts: str | None = None
    full_sync_needed: bool = False


class OnboardingSyncStatus(BaseModel):
    """Account status returned from sync polling."""

    account_id: str
    email: str
    provider: AccountProvider
    status: str
    calendar_count: int | None = None
    health: SyncHealth | None = None
