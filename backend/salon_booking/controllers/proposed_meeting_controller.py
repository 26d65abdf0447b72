"""
Proposed meeting endpoints: creation, invite delivery, acceptance and
deletion.
"""

import logging

from flask import Blueprint

from salon_booking.controllers.dependencies import get_proposed_meeting_service
from salon_booking.core.api_utils import api_response, get_json_body, parse_datetime
from salon_booking.core.exceptions import ValidationError
from salon_booking.domain.entities import ProposedMeeting, ProposedMeetingInvite
from salon_booking.schemas.dtos import ProposedMeetingCreateRequest

logger = logging.getLogger(__name__)

proposed_meeting_bp = Blueprint(
    "proposed_meetings", __name__, url_prefix="/api/proposed-meetings"
)


def _invite_payload(invite: ProposedMeetingInvite) -> dict:
    return {
        "id": invite.id,
        "customer_id": invite.customer_id,
        "status": invite.status,
        "source": invite.source,
        "source_category_id": invite.source_category_id,
        "notification_count": invite.notification_count,
        "last_notified_at": (
            invite.last_notified_at.isoformat() if invite.last_notified_at else None
        ),
        "last_delivery_status": invite.last_delivery_status,
    }


def _meeting_payload(meeting: ProposedMeeting) -> dict:
    return {
        "id": meeting.id,
        "resource_id": meeting.resource_id,
        "start_at": meeting.start_at.isoformat(),
        "end_at": meeting.end_at.isoformat(),
        "service_category": meeting.service_category,
        "title": meeting.title,
        "summary": meeting.summary,
        "code": meeting.code,
        "status": meeting.status,
        "appointment_id": meeting.appointment_id,
        "category_ids": meeting.category_ids,
        "reschedule_appointment_id": meeting.reschedule_appointment_id,
        "reschedule_customer_id": meeting.reschedule_customer_id,
        "reschedule_subject_id": meeting.reschedule_subject_id,
        "invites": [_invite_payload(i) for i in meeting.invites],
    }


def _require_int(payload: dict, name: str) -> int:
    value = payload.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer", field=name)
    return value


def _optional_int(payload: dict, name: str):
    if payload.get(name) is None:
        return None
    return _require_int(payload, name)


def _int_list(payload: dict, name: str) -> list:
    values = payload.get(name) or []
    if not isinstance(values, list) or not all(
        isinstance(v, int) and not isinstance(v, bool) for v in values
    ):
        raise ValidationError(f"{name} must be a list of integers", field=name)
    return values


@proposed_meeting_bp.route("", methods=["POST"])
def create_proposed_meeting():
    """Offer one slot to individual customers and/or customer categories.

    Expected JSON payload:
        {
            "resource_id": 1,
            "start_at": "2025-01-03T09:00:00",
            "end_at": "2025-01-03T10:00:00",
            "title": "Open slot",
            "customer_ids": [4, 5],
            "customer_type_ids": [2]
        }

    Sending "reschedule_appointment_id" instead offers the slot to that
    appointment's customer; acceptance moves the appointment.
    """
    payload = get_json_body()
    create_request = ProposedMeetingCreateRequest(
        resource_id=_require_int(payload, "resource_id"),
        start_at=parse_datetime(payload.get("start_at"), "start_at"),
        end_at=parse_datetime(payload.get("end_at"), "end_at"),
        title=payload.get("title"),
        summary=payload.get("summary"),
        notes=payload.get("notes"),
        service_category=payload.get("service_category"),
        customer_ids=_int_list(payload, "customer_ids"),
        customer_type_ids=_int_list(payload, "customer_type_ids"),
        reschedule_appointment_id=_optional_int(payload, "reschedule_appointment_id"),
    )
    meeting = get_proposed_meeting_service().create_proposed_meeting(create_request)
    return api_response(True, "Proposed meeting created", _meeting_payload(meeting), 201)


@proposed_meeting_bp.route("/<int:meeting_id>", methods=["DELETE"])
def delete_proposed_meeting(meeting_id: int):
    get_proposed_meeting_service().delete_proposed_meeting(meeting_id)
    return api_response(True, "Proposed meeting deleted")


@proposed_meeting_bp.route("/<int:meeting_id>/send-all", methods=["POST"])
def send_all_invites(meeting_id: int):
    report = get_proposed_meeting_service().send_all_invites(meeting_id)
    return api_response(True, "Invites processed", report.to_dict())


@proposed_meeting_bp.route(
    "/<int:meeting_id>/send-category/<int:category_id>", methods=["POST"]
)
def send_category_invites(meeting_id: int, category_id: int):
    report = get_proposed_meeting_service().send_category_invites(meeting_id, category_id)
    return api_response(True, "Invites processed", report.to_dict())


@proposed_meeting_bp.route("/invites/<int:invite_id>/send", methods=["POST"])
def send_invite(invite_id: int):
    invite = get_proposed_meeting_service().send_invite(invite_id)
    return api_response(True, "Invite sent", _invite_payload(invite))


@proposed_meeting_bp.route("/invites/<int:invite_id>/accept", methods=["POST"])
def accept_invite(invite_id: int):
    payload = get_json_body()
    meeting = get_proposed_meeting_service().accept_invite(
        invite_id, _require_int(payload, "subject_id")
    )
    return api_response(True, "Proposed meeting booked", _meeting_payload(meeting))


@proposed_meeting_bp.route("/<int:meeting_id>/accept", methods=["POST"])
def accept_as_customer(meeting_id: int):
    payload = get_json_body()
    meeting = get_proposed_meeting_service().accept_as_customer(
        meeting_id,
        _require_int(payload, "customer_id"),
        _require_int(payload, "subject_id"),
    )
    return api_response(True, "Proposed meeting booked", _meeting_payload(meeting))


@proposed_meeting_bp.route("/<int:meeting_id>/accept-code", methods=["POST"])
def accept_with_code(meeting_id: int):
    payload = get_json_body()
    meeting = get_proposed_meeting_service().accept_with_code(
        meeting_id,
        str(payload.get("code") or ""),
        _require_int(payload, "customer_id"),
        _require_int(payload, "subject_id"),
    )
    return api_response(True, "Proposed meeting booked", _meeting_payload(meeting))
