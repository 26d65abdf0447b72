"""
Common API utilities for consistent response formatting across all controllers.
"""

from datetime import date, datetime, time
from typing import Any, Optional

from flask import jsonify, request

from salon_booking.core.config import APP_TZ
from salon_booking.core.exceptions import ValidationError


def api_response(
    success: bool, message: str, data: Optional[Any] = None, status_code: int = 200
) -> tuple:
    """
    Standardized API response format for all endpoints.

    Args:
        success: Whether the operation was successful
        message: Human-readable message about the operation
        data: Optional data payload
        status_code: HTTP status code

    Returns:
        Tuple of (json_response, status_code)
    """
    response = {"success": success, "message": message}

    if data is not None:
        response["data"] = data

    return jsonify(response), status_code


def get_json_body() -> dict:
    """Return the request JSON object or raise ValidationError."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def require_int_arg(name: str) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        raise ValidationError(f"{name} is required", field=name)
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", field=name)


def parse_date(value: Any, field: str) -> date:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO date string", field=field)
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)", field=field)


def parse_datetime(value: Any, field: str) -> datetime:
    """Parse an ISO datetime into naive business-local wall-clock time."""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO datetime string", field=field)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO datetime", field=field)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(APP_TZ).replace(tzinfo=None)
    return parsed


def parse_time(value: Any, field: str) -> time:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a HH:MM string", field=field)
    try:
        return time.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field} must be a HH:MM time", field=field)
