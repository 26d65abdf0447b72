"""
Scheduling read endpoints: stations, durations, availability and the
calendar window settings.

Service errors propagate as SchedulingError subclasses and are rendered by
the handler registered in ``create_app``.
"""

import logging

from flask import Blueprint, request

from salon_booking.controllers.dependencies import (
    get_availability_service,
    get_calendar_policy,
    get_duration_resolver,
    get_resource_directory,
)
from salon_booking.core.api_utils import (
    api_response,
    get_json_body,
    parse_date,
    parse_time,
    require_int_arg,
)
from salon_booking.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

scheduling_bp = Blueprint("scheduling", __name__, url_prefix="/api")


def _settings_payload(settings) -> dict:
    return {
        "open_days_ahead": settings.open_days_ahead,
        "display_start_time": settings.display_start_time.strftime("%H:%M"),
        "display_end_time": settings.display_end_time.strftime("%H:%M"),
        "updated_at": settings.updated_at.isoformat() if settings.updated_at else None,
    }


@scheduling_bp.route("/resources", methods=["GET"])
def list_resources():
    """List stations, optionally filtered by service category.

    Query Parameters:
        service_category (str): grooming, daycare or event (optional)
        include_inactive (str): "1"/"true" to include inactive stations
    """
    include_inactive = request.args.get("include_inactive", "").lower() in ("1", "true")
    resources = get_resource_directory().list_resources(
        request.args.get("service_category"), include_inactive
    )
    return api_response(
        True,
        "Resources retrieved",
        [
            {
                "id": r.id,
                "name": r.name,
                "service_category": r.service_category,
                "is_active": r.is_active,
                "slot_interval_minutes": r.slot_interval_minutes,
                "buffer_minutes": r.buffer_minutes,
            }
            for r in resources
        ],
    )


@scheduling_bp.route("/durations", methods=["GET"])
def get_duration():
    result = get_duration_resolver().resolve_duration(
        require_int_arg("subject_type_id"), require_int_arg("resource_id")
    )
    return api_response(True, "Duration resolved", result.to_dict())


@scheduling_bp.route("/availability/dates", methods=["GET"])
def available_dates():
    """Bookable dates for a subject.

    Query Parameters:
        subject_id (int): required
        service_category (str): required
    """
    service_category = request.args.get("service_category")
    if not service_category:
        raise ValidationError("service_category is required", field="service_category")
    dates = get_availability_service().get_available_dates(
        require_int_arg("subject_id"), service_category
    )
    return api_response(True, "Available dates", [d.to_dict() for d in dates])


@scheduling_bp.route("/availability/times", methods=["GET"])
def available_times():
    """Start times for a subject on one date (``date=YYYY-MM-DD``)."""
    subject_id = require_int_arg("subject_id")
    day = parse_date(request.args.get("date"), "date")
    slots = get_availability_service().get_available_times(
        subject_id, day, request.args.get("service_category")
    )
    return api_response(True, "Available times", [s.to_dict() for s in slots])


@scheduling_bp.route("/settings/calendar", methods=["GET"])
def get_calendar_settings():
    settings = get_calendar_policy().get_settings()
    return api_response(True, "Calendar settings", _settings_payload(settings))


@scheduling_bp.route("/settings/calendar", methods=["PUT"])
def update_calendar_settings():
    payload = get_json_body()
    start = payload.get("display_start_time")
    end = payload.get("display_end_time")
    settings = get_calendar_policy().update_settings(
        open_days_ahead=payload.get("open_days_ahead"),
        display_start_time=parse_time(start, "display_start_time") if start else None,
        display_end_time=parse_time(end, "display_end_time") if end else None,
    )
    return api_response(True, "Calendar settings updated", _settings_payload(settings))
