"""
Provider helpers for the onboarding flow.

- OAuth start URL construction
- Post-callback URL parsing (account_id comes back in the hash query)
- Apple app-specific password validation and masking
- Initial sync completion check
"""

import re
from urllib.parse import parse_qs, urlencode, urljoin, urlsplit

from calmirror.config import settings
from calmirror.models.domain.calendar_domain import AccountProvider
from calmirror.models.domain.onboarding_domain import OAuthCallback, OnboardingSyncStatus

OAUTH_BASE_URL = settings.OAUTH_BASE_URL

# Initial sync polling after an account connects
SYNC_POLL_INTERVAL_MS = settings.SYNC_POLL_INTERVAL_MS
SYNC_POLL_TIMEOUT_MS = settings.SYNC_POLL_TIMEOUT_MS
MAX_SYNC_POLL_FAILURES = 3  # consecutive transient failures tolerated

OAUTH_PROVIDERS: frozenset[str] = frozenset({"google", "microsoft"})
CREDENTIAL_PROVIDERS: frozenset[str] = frozenset({"apple"})

_APPLE_PASSWORD_RE = re.compile(r"^[a-z]{16}$")


def is_oauth_provider(provider: AccountProvider) -> bool:
    """Provider connects through a browser redirect."""
    return provider in OAUTH_PROVIDERS


def is_credential_provider(provider: AccountProvider) -> bool:
    """Provider connects with an app-specific password."""
    return provider in CREDENTIAL_PROVIDERS


def build_onboarding_oauth_url(
    provider: AccountProvider,
    user_id: str,
    redirect_uri: str,
    state: str | None = None,
    oauth_base_url: str = OAUTH_BASE_URL,
) -> str:
    """
    Build the OAuth start URL for the onboarding flow.

    Args:
        provider: "google" or "microsoft"
        user_id: The authenticated user's id
        redirect_uri: Where to return after the provider flow completes
        state: Opaque state string, returned unmodified on callback
        oauth_base_url: Base URL for the OAuth worker

    Returns:
        str: Full URL to send the browser to

    Raises:
        ValueError: If the provider does not use the redirect flow
    """
    if not is_oauth_provider(provider):
        raise ValueError(f"Provider {provider!r} does not use the redirect flow")

    params = {"user_id": user_id, "redirect_uri": redirect_uri}
    if state is not None:
        params["state"] = state

    return f"{urljoin(oauth_base_url, f'/oauth/{provider}/start')}?{urlencode(params)}"


def parse_oauth_callback(url: str) -> OAuthCallback:
    """
    Read account_id and the reactivated flag from the callback URL.

    The redirect target is a hash route, e.g.
    https://app.example.com/#/onboard?account_id=acc-123
    """
    try:
        fragment = urlsplit(url).fragment
    except ValueError:
        return OAuthCallback()

    _, sep, query = fragment.partition("?")
    if not sep:
        return OAuthCallback()

    params = parse_qs(query)
    account_ids = params.get("account_id")
    return OAuthCallback(
        account_id=account_ids[0] if account_ids else None,
        reactivated=params.get("reactivated", [""])[0] == "true",
    )


def is_sync_complete(status: OnboardingSyncStatus) -> bool:
    """Initial sync is done once the account is active and has a successful sync."""
    if status.status != "active":
        return False
    if status.health is None:
        return False
    return bool(status.health.last_success_ts)


def _clean_apple_password(password: str) -> str:
    return password.replace("-", "").lower()


def is_valid_apple_app_password(password: str | None) -> bool:
    """
    Validate the app-specific password format: xxxx-xxxx-xxxx-xxxx.

    Hyphens are optional and case is ignored.
    """
    if not password or not isinstance(password, str):
        return False
    return bool(_APPLE_PASSWORD_RE.match(_clean_apple_password(password)))


def mask_apple_password(password: str) -> str:
    """Masked form for display, e.g. "abcd-****-****-****"."""
    cleaned = _clean_apple_password(password)
    if len(cleaned) < 4:
        return "****-****-****-****"
    return f"{cleaned[:4]}-****-****-****"
