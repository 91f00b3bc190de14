"""
Onboarding error classification.

Maps every OAuth and app-password (CalDAV) failure code to a user-facing
category with a jargon-free message and an actionable recovery path.

- Every error is either "transient" (eligible for automatic retry) or
  "persistent" (needs a user decision, never auto-retried)
- Unknown codes degrade to a generic persistent classification; the raw
  code is kept in `code` but never copied into the message
"""

import httpx

from calmirror.infrastructure.observability.logging import get_logger
from calmirror.models.domain.calendar_domain import AccountProvider
from calmirror.models.domain.error_domain import ClassifiedError
from calmirror.services.api_client import UNKNOWN_API_CODE, ApiError
from calmirror.services.errors.retry import OnboardingError

logger = get_logger(__name__)

# Terms that must never appear in user-facing error messages or labels
JARGON_TERMS = (
    "pkce",
    "state parameter",
    "401",
    "403",
    "404",
    "500",
    "502",
    "oauth",
    "token",
    "scope",
    "grant",
    "propfind",
    "caldav",
    "http",
    "https",
    "cors",
    "csrf",
    "nonce",
    "redirect_uri",
    "client_id",
    "client_secret",
    "code_verifier",
    "code_challenge",
    "authorization_code",
    "bearer",
    "jwt",
    "saml",
    "openid",
)

OAUTH_PROVIDER_NAMES: dict[str, str] = {
    "google": "Google",
    "microsoft": "Microsoft",
}

_TRY_AGAIN = ("try_again", "Try again")
_WAIT_AND_RETRY = ("wait_and_retry", "Try again in a few minutes")

# code -> (message template, severity, (recovery_action, recovery_label))
# "{provider}" in a template is replaced with the provider's display name.
_OAUTH_ERRORS: dict[str, tuple[str, str, tuple[str, str]]] = {
    "access_denied": (
        "You declined the permission. T-Minus needs calendar access to work.",
        "persistent",
        _TRY_AGAIN,
    ),
    "invalid_grant": (
        "The authorization expired. This happens if you took too long.",
        "persistent",
        _TRY_AGAIN,
    ),
    "temporarily_unavailable": (
        "{provider} is temporarily unavailable.",
        "transient",
        _WAIT_AND_RETRY,
    ),
    "server_error": (
        "{provider} is temporarily unavailable.",
        "transient",
        _WAIT_AND_RETRY,
    ),
    "network_timeout": (
        "Connection lost. Check your internet and try again.",
        "transient",
        _TRY_AGAIN,
    ),
    "popup_blocked": (
        "Your browser blocked the sign-in window.",
        "persistent",
        ("allow_popups", "Allow popups for this site"),
    ),
    "state_mismatch": (
        "Something went wrong with the sign-in flow.",
        "persistent",
        ("start_over", "Start over"),
    ),
}

_OAUTH_FALLBACK = ("Something went wrong. Please try again.", "persistent", _TRY_AGAIN)

_CALDAV_ERRORS: dict[str, tuple[str, str, tuple[str, str]]] = {
    "invalid_password": (
        "That password didn't work. Make sure you copied the full password "
        "from appleid.apple.com.",
        "persistent",
        ("show_how", "Show me how"),
    ),
    "two_factor_required": (
        "Apple requires additional verification. Complete it on your Apple "
        "device, then try again.",
        "persistent",
        _TRY_AGAIN,
    ),
    "connection_refused": (
        "Can't reach Apple's calendar server. This may be a temporary issue.",
        "transient",
        _WAIT_AND_RETRY,
    ),
    "auth_failed": (
        "Unable to sign in with those credentials. Please double-check your "
        "Apple ID email and app-specific password.",
        "persistent",
        _TRY_AGAIN,
    ),
    "network_timeout": (
        "Connection lost. Check your internet and try again.",
        "transient",
        _TRY_AGAIN,
    ),
}

_CALDAV_FALLBACK = (
    "Something went wrong connecting to Apple Calendar. Please try again.",
    "persistent",
    _TRY_AGAIN,
)

# Codes we know about, exposed for exhaustive checks
OAUTH_ERROR_CODES = tuple(_OAUTH_ERRORS)
CALDAV_ERROR_CODES = tuple(_CALDAV_ERRORS)


def classify_oauth_error(error_code: str, provider: AccountProvider) -> ClassifiedError:
    """
    Classify an OAuth error response into a user-facing category.

    Args:
        error_code: Error code from the OAuth provider or detection logic
        provider: "google" or "microsoft"

    Returns:
        ClassifiedError with user-facing message and recovery action
    """
    template, severity, (action, label) = _OAUTH_ERRORS.get(error_code, _OAUTH_FALLBACK)
    provider_name = OAUTH_PROVIDER_NAMES.get(provider, "Your calendar provider")

    if error_code not in _OAUTH_ERRORS:
        logger.debug("Unrecognized OAuth error code", error_code=error_code, provider=provider)

    return ClassifiedError(
        code=error_code,
        message=template.format(provider=provider_name),
        severity=severity,
        recovery_action=action,
        recovery_label=label,
        provider=provider,
    )


def classify_caldav_error(error_code: str) -> ClassifiedError:
    """
    Classify an Apple (app-specific password) error into a user-facing category.

    Args:
        error_code: Error code from the credential connection logic

    Returns:
        ClassifiedError with provider "apple"
    """
    message, severity, (action, label) = _CALDAV_ERRORS.get(error_code, _CALDAV_FALLBACK)

    if error_code not in _CALDAV_ERRORS:
        logger.debug("Unrecognized Apple error code", error_code=error_code)

    return ClassifiedError(
        code=error_code,
        message=message,
        severity=severity,
        recovery_action=action,
        recovery_label=label,
        provider="apple",
    )


def classify_error_code(error_code: str, provider: AccountProvider) -> ClassifiedError:
    """Dispatch to the classifier for the provider's origin family."""
    if provider == "apple":
        return classify_caldav_error(error_code)
    return classify_oauth_error(error_code, provider)


def extract_error_code(exc: BaseException, provider: AccountProvider) -> str:
    """
    Pull a provider-specific raw code out of a caught exception.

    API failures carry the envelope code; transport failures are mapped to
    the codes the classifiers understand. Anything else becomes "unknown".
    """
    if isinstance(exc, OnboardingError):
        return exc.classified.code
    if isinstance(exc, ApiError):
        if exc.code and exc.code.upper() != UNKNOWN_API_CODE:
            return exc.code.lower()
        # No provider code: fall back on the status class
        if exc.status == 429 or exc.status >= 500:
            return "connection_refused" if provider == "apple" else "server_error"
        return "unknown"
    if isinstance(exc, httpx.TimeoutException):
        return "network_timeout"
    if isinstance(exc, httpx.ConnectError):
        return "connection_refused" if provider == "apple" else "network_timeout"
    if isinstance(exc, httpx.TransportError):
        return "network_timeout"
    return "unknown"


def classify_exception(exc: BaseException, provider: AccountProvider) -> ClassifiedError:
    """Classify a caught exception for the given provider."""
    return classify_error_code(extract_error_code(exc, provider), provider)


def make_classifier(provider: AccountProvider):
    """Build a one-argument classifier bound to a provider, for retry_with_backoff."""

    def _classify(exc: BaseException) -> ClassifiedError:
        return classify_exception(exc, provider)

    return _classify


def find_jargon(text: str) -> list[str]:
    """
    Check if a string contains technical jargon that should not be shown to users.

    Args:
        text: Text to check

    Returns:
        Jargon terms found (empty if clean)
    """
    lower = text.lower()
    return [term for term in JARGON_TERMS if term in lower]
