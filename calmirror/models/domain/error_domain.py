# calmirror/models/domain/error_domain.py
"""
Error Domain Models
Classified provider failures and the anonymized telemetry derived from them.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from calmirror.models.domain.calendar_domain import AccountProvider

ErrorSeverity = Literal["transient", "persistent"]

RecoveryAction = Literal[
    "try_again",
    "start_over",
    "allow_popups",
    "show_how",
    "wait_and_retry",
]


class ClassifiedError(BaseModel):
    """Provider failure mapped to a user-facing message and recovery path."""

    model_config = ConfigDict(frozen=True)

    code: str  # raw code from the provider or detection logic
    message: str  # user-facing, jargon-free
    severity: ErrorSeverity
    recovery_action: RecoveryAction
    recovery_label: str
    provider: AccountProvider

    @property
    def is_transient(self) -> bool:
        return self.severity == "transient"


class ErrorTelemetryEvent(BaseModel):
    """
    Anonymized error telemetry event.

    Optional fields stay None until explicitly supplied and are dropped from
    the payload, so "not applicable" is distinct from "zero attempts".
    """

    model_config = ConfigDict(frozen=True)

    provider: AccountProvider
    error_type: str
    severity: ErrorSeverity
    timestamp: str
    retry_count: int | None = None
    recovered: bool | None = None
    user_dismissed: bool | None = None

    def to_payload(self) -> dict[str, Any]:
        """Wire form for the telemetry sink."""
        return self.model_dump(mode="json", exclude_none=True)
