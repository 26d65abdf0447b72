"""
Appointment endpoints: create, approve, cancel and move.
"""

import logging

from flask import Blueprint, request

from salon_booking.controllers.dependencies import get_booking_service
from salon_booking.core.api_utils import api_response, get_json_body, parse_datetime
from salon_booking.core.exceptions import ValidationError
from salon_booking.schemas.dtos import AppointmentResponse, BookingRequest

logger = logging.getLogger(__name__)

appointment_bp = Blueprint("appointments", __name__, url_prefix="/api/appointments")


@appointment_bp.route("", methods=["POST"])
def create_appointment():
    """Create an appointment, or a group when several resource_ids are sent.

    Expected JSON payload:
        {
            "kind": "business",
            "start_at": "2025-01-02T10:00:00",
            "end_at": "2025-01-02T10:45:00",
            "resource_ids": [1],
            "customer_id": 7,
            "subject_ids": [12],
            "manual_override": false
        }
    """
    booking_request = BookingRequest.from_dict(get_json_body())
    result = get_booking_service().create_appointment(booking_request)
    return api_response(True, "Appointment created", result.to_dict(), 201)


@appointment_bp.route("/<int:appointment_id>/approve", methods=["POST"])
def approve_appointment(appointment_id: int):
    approved = get_booking_service().approve_appointment(appointment_id)
    return api_response(
        True,
        "Appointment approved",
        [AppointmentResponse.from_domain(a).to_dict() for a in approved],
    )


@appointment_bp.route("/<int:appointment_id>/cancel", methods=["POST"])
def cancel_appointment(appointment_id: int):
    payload = get_json_body() if _has_body() else {}
    cancelled = get_booking_service().cancel_appointment(
        appointment_id, cascade_group=bool(payload.get("cascade_group", False))
    )
    return api_response(True, "Appointment cancelled", {"appointment_ids": cancelled})


@appointment_bp.route("/<int:appointment_id>/move", methods=["POST"])
def move_appointment(appointment_id: int):
    payload = get_json_body()
    end_at = payload.get("end_at")
    resource_id = payload.get("resource_id")
    if resource_id is not None and (
        isinstance(resource_id, bool) or not isinstance(resource_id, int)
    ):
        raise ValidationError("resource_id must be an integer", field="resource_id")
    moved = get_booking_service().move_appointment(
        appointment_id,
        parse_datetime(payload.get("start_at"), "start_at"),
        parse_datetime(end_at, "end_at") if end_at else None,
        resource_id=resource_id,
    )
    return api_response(
        True, "Appointment moved", AppointmentResponse.from_domain(moved).to_dict()
    )


def _has_body() -> bool:
    return bool(request.get_data())
