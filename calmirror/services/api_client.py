"""
Backend API client for calendar events and onboarding sessions.
Unwraps the {ok, data, error} envelope and turns failures into ApiError
carrying the provider-specific code. Retrying is left to the caller
(see services.errors.retry); transport errors propagate as httpx exceptions.
"""

from typing import Any

import httpx

from calmirror.config import settings
from calmirror.infrastructure.observability.logging import get_logger
from calmirror.models.domain.calendar_domain import (
    CalendarEvent,
    CreateEventPayload,
    UpdateEventPayload,
    parse_events,
)
from calmirror.models.domain.onboarding_domain import OnboardingSession, OnboardingSyncStatus

logger = get_logger(__name__)

UNKNOWN_API_CODE = "UNKNOWN"


class ApiError(Exception):
    """Structured failure returned by the backend."""

    def __init__(self, status: int, code: str, message: str):
        super().__init__(message)
        self.status = status
        self.code = code

    def __repr__(self) -> str:
        return f"ApiError(status={self.status}, code={self.code!r})"


class CalendarApiClient:
    """
    Thin async client over the backend command/query API.

    Args:
        token: Bearer credential for authenticated endpoints
        base_url: API base URL (defaults to settings.API_BASE_URL)
        transport: Optional httpx transport, mainly for tests
    """

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._token = token
        self._base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self._client = self._create_client(transport)

    def _create_client(self, transport: httpx.AsyncBaseTransport | None) -> httpx.AsyncClient:
        timeout = httpx.Timeout(settings.REQUEST_TIMEOUT)
        limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
        return httpx.AsyncClient(timeout=timeout, limits=limits, transport=transport)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "CalendarApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        """
        Make an API request and return the envelope's data.

        Raises:
            ApiError: On non-2xx responses or an envelope with ok=false
            httpx.TransportError: On connection failures and timeouts
        """
        url = f"{self._base_url}/{path.lstrip('/')}"
        kwargs: dict[str, Any] = {"headers": self._headers()}
        if body is not None:
            kwargs["json"] = body
        if params:
            kwargs["params"] = params

        response = await self._client.request(method, url, **kwargs)
        return self._handle_envelope(response, f"{method} {path}")

    def _handle_envelope(self, response: httpx.Response, operation: str) -> Any:
        """Validate the response envelope and extract data or raise ApiError."""
        try:
            envelope = response.json() if response.content else {}
        except ValueError:
            envelope = {}

        if not isinstance(envelope, dict):
            envelope = {}

        if response.is_success and envelope.get("ok"):
            return envelope.get("data")

        error = envelope.get("error")
        if isinstance(error, str):
            message, code = error, UNKNOWN_API_CODE
        elif isinstance(error, dict):
            message = error.get("message") or "Request failed"
            code = error.get("code") or UNKNOWN_API_CODE
        else:
            message, code = "Request failed", UNKNOWN_API_CODE

        logger.warning(
            "API request failed",
            operation=operation,
            status_code=response.status_code,
            error_code=code,
        )
        raise ApiError(response.status_code, str(code), message)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def fetch_events(
        self, start: str | None = None, end: str | None = None
    ) -> list[CalendarEvent]:
        """GET /v1/events with optional date range."""
        params = {k: v for k, v in (("start", start), ("end", end)) if v}
        data = await self.request("GET", "/v1/events", params=params)
        return parse_events(data)

    async def create_event(self, payload: CreateEventPayload) -> CalendarEvent:
        """POST /v1/events"""
        data = await self.request("POST", "/v1/events", body=payload.to_payload())
        return CalendarEvent.model_validate(data)

    async def update_event(self, event_id: str, payload: UpdateEventPayload) -> CalendarEvent:
        """PATCH /v1/events/{id}"""
        data = await self.request("PATCH", f"/v1/events/{event_id}", body=payload.to_payload())
        return CalendarEvent.model_validate(data)

    async def delete_event(self, event_id: str) -> None:
        """DELETE /v1/events/{id}"""
        await self.request("DELETE", f"/v1/events/{event_id}")

    # ------------------------------------------------------------------
    # Onboarding session
    # ------------------------------------------------------------------

    async def get_onboarding_session(self, session_id: str) -> Any:
        """GET /v1/onboarding/session/{id}; returns the raw snapshot (None if absent)."""
        return await self.request("GET", f"/v1/onboarding/session/{session_id}")

    async def save_onboarding_session(self, session: OnboardingSession) -> Any:
        """PUT /v1/onboarding/session/{id}"""
        return await self.request(
            "PUT", f"/v1/onboarding/session/{session.session_id}", body=session.to_payload()
        )

    async def fetch_account_status(self, account_id: str) -> OnboardingSyncStatus:
        """GET /v1/accounts/{id}; status and health for sync polling."""
        data = await self.request("GET", f"/v1/accounts/{account_id}")
        return OnboardingSyncStatus.model_validate(data)
