"""
Error classification, retry orchestration and anonymized error telemetry.
"""

from calmirror.services.errors.classifier import (
    classify_caldav_error,
    classify_exception,
    classify_oauth_error,
    find_jargon,
)
from calmirror.services.errors.retry import (
    OnboardingError,
    calculate_backoff_delay,
    retry_with_backoff,
)
from calmirror.services.errors.telemetry import create_error_telemetry_event

__all__ = [
    "OnboardingError",
    "calculate_backoff_delay",
    "classify_caldav_error",
    "classify_exception",
    "classify_oauth_error",
    "create_error_telemetry_event",
    "find_jargon",
    "retry_with_backoff",
]
