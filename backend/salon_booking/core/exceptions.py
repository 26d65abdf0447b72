"""
Custom exceptions for the scheduling core.

Every error raised across a service boundary derives from SchedulingError
so controllers can translate them with a single error handler.
"""

from typing import Any, Dict, Optional


class SchedulingError(Exception):
    """Base class for scheduling errors.

    Attributes:
        message: Human-readable, user-facing message
        error_code: Stable machine-readable identifier
        status_code: HTTP status used by the API layer
        details: Optional structured context for logs and API payloads
    """

    error_code = "scheduling_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.error_code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(SchedulingError):
    """Malformed or missing input, rejected before any write."""

    error_code = "validation_error"
    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        if self.field:
            payload["field"] = self.field
        return payload


class RecordNotFoundError(ValidationError):
    """A referenced record does not exist."""

    error_code = "not_found"
    status_code = 404


class UnsupportedCombinationError(SchedulingError):
    """No duration is defined for the subject type at this resource.

    Recoverable: the caller may retry with ``manual_override`` set.
    """

    error_code = "unsupported_combination"
    status_code = 422


class OverlapConflictError(SchedulingError):
    """The requested window collides with an existing commitment."""

    error_code = "overlap_conflict"
    status_code = 409


class InvalidStateTransitionError(SchedulingError):
    """The record is not in a state that allows the requested operation."""

    error_code = "invalid_state"
    status_code = 409


class ConfigurationUnavailableError(SchedulingError):
    """Calendar settings or required reference data are missing."""

    error_code = "configuration_unavailable"
    status_code = 503


class DurationLookupError(SchedulingError):
    """Duration rules could not be read; the lookup is safe to retry."""

    error_code = "duration_lookup_failed"
    status_code = 503
    retryable = True


class DeliveryError(SchedulingError):
    """An invite notification could not be delivered."""

    error_code = "delivery_failed"
    status_code = 502
