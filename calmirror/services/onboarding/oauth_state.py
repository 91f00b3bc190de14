"""
OAuth state parameter helpers.
Embeds the onboarding session id next to the anti-forgery nonce so the
callback can be correlated with the session that started it.
"""

import base64
import binascii
import json
import secrets

from pydantic import ValidationError

from calmirror.infrastructure.observability.logging import get_logger
from calmirror.models.domain.onboarding_domain import OAuthStatePayload

logger = get_logger(__name__)

NONCE_LENGTH = 16  # bytes


def generate_oauth_nonce() -> str:
    """Cryptographically secure, URL-safe nonce."""
    return secrets.token_urlsafe(NONCE_LENGTH)


def build_oauth_state_with_session(session_id: str, nonce: str) -> str:
    """
    Build an OAuth state parameter that includes the session id.

    Args:
        session_id: The onboarding session id
        nonce: Random anti-forgery value

    Returns:
        str: base64-encoded JSON object {"session_id", "nonce"}
    """
    document = json.dumps({"session_id": session_id, "nonce": nonce}, separators=(",", ":"))
    return base64.b64encode(document.encode("utf-8")).decode("ascii")


def parse_oauth_state(state: str) -> OAuthStatePayload | None:
    """
    Parse the OAuth state parameter returned on callback.

    Returns:
        OAuthStatePayload, or None for invalid base64, invalid JSON, or a
        document without string session_id and nonce. Never raises.
    """
    if not state:
        return None
    try:
        decoded = base64.b64decode(state, validate=True)
        return OAuthStatePayload.model_validate_json(decoded)
    except (binascii.Error, ValueError) as e:
        # ValidationError is a ValueError subclass
        logger.warning(
            "Rejected OAuth state parameter",
            reason="invalid_payload" if isinstance(e, ValidationError) else "invalid_encoding",
            state_length=len(state),
        )
        return None
