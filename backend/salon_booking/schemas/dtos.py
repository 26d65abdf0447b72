"""
Data Transfer Objects (DTOs) and validation schemas.

Requests validate their own shape (required fields, ordering of times)
before any store access; services validate everything that needs data.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from salon_booking.core.api_utils import parse_datetime
from salon_booking.core.exceptions import ValidationError
from salon_booking.domain.entities import (
    APPOINTMENT_KINDS,
    RESOURCELESS_CATEGORIES,
    SERVICE_CATEGORIES,
)

CREATABLE_STATUSES = ("pending", "approved")


@dataclass
class BookingRequest:
    """DTO for appointment creation requests.

    ``kind`` selects which party fields are required:

    - ``private``: staff-only booking; customer and subjects are ignored and
      the internal sentinel party is used
    - ``business`` / ``event``: ``customer_id`` and at least one subject
    """

    kind: str
    start_at: datetime
    end_at: datetime
    resource_ids: List[int] = field(default_factory=list)
    customer_id: Optional[int] = None
    subject_ids: List[int] = field(default_factory=list)
    manual_override: bool = False
    service_category: Optional[str] = None
    group_id: Optional[str] = None
    status: str = "pending"
    customer_notes: Optional[str] = None
    internal_notes: Optional[str] = None

    def validate(self) -> None:
        """Validate the request data."""
        if self.kind not in APPOINTMENT_KINDS:
            raise ValidationError(
                f"kind must be one of {', '.join(APPOINTMENT_KINDS)}", field="kind"
            )
        if self.start_at is None:
            raise ValidationError("start_at is required", field="start_at")
        if self.end_at is None:
            raise ValidationError("end_at is required", field="end_at")
        if self.service_category is not None and (
            self.service_category not in SERVICE_CATEGORIES
        ):
            raise ValidationError(
                f"Unknown service category: {self.service_category}",
                field="service_category",
            )
        if not self.resource_ids and self.service_category not in RESOURCELESS_CATEGORIES:
            raise ValidationError(
                "At least one resource is required", field="resource_ids"
            )
        if self.kind != "private":
            if not self.customer_id:
                raise ValidationError(
                    f"customer_id is required for {self.kind} appointments",
                    field="customer_id",
                )
            if not self.subject_ids:
                raise ValidationError(
                    f"At least one subject is required for {self.kind} appointments",
                    field="subject_ids",
                )
        if self.status not in CREATABLE_STATUSES:
            raise ValidationError(
                "New appointments must be pending or approved", field="status"
            )
        if self.end_at <= self.start_at:
            raise ValidationError("End time must be after start time", field="end_at")
        if (self.end_at - self.start_at) % timedelta(minutes=1):
            raise ValidationError(
                "Appointment length must be a whole number of minutes", field="end_at"
            )

    @property
    def duration_minutes(self) -> int:
        return int((self.end_at - self.start_at).total_seconds() // 60)

    @classmethod
    def from_dict(cls, payload: dict) -> "BookingRequest":
        resource_ids = payload.get("resource_ids")
        if resource_ids is None and payload.get("resource_id") is not None:
            resource_ids = [payload["resource_id"]]
        subject_ids = payload.get("subject_ids")
        if subject_ids is None and payload.get("subject_id") is not None:
            subject_ids = [payload["subject_id"]]
        for name, values in (("resource_ids", resource_ids), ("subject_ids", subject_ids)):
            if values is not None and (
                not isinstance(values, list)
                or not all(isinstance(v, int) and not isinstance(v, bool) for v in values)
            ):
                raise ValidationError(f"{name} must be a list of integers", field=name)
        customer_id = payload.get("customer_id")
        if customer_id is not None and (
            isinstance(customer_id, bool) or not isinstance(customer_id, int)
        ):
            raise ValidationError("customer_id must be an integer", field="customer_id")
        manual_override = payload.get("manual_override")
        if manual_override is None:
            manual_override = False
        elif not isinstance(manual_override, bool):
            raise ValidationError(
                "manual_override must be true or false", field="manual_override"
            )
        if payload.get("start_at") is None:
            raise ValidationError("start_at is required", field="start_at")
        if payload.get("end_at") is None:
            raise ValidationError("end_at is required", field="end_at")

        return cls(
            kind=payload.get("kind") or "business",
            start_at=parse_datetime(payload.get("start_at"), "start_at"),
            end_at=parse_datetime(payload.get("end_at"), "end_at"),
            resource_ids=resource_ids or [],
            customer_id=customer_id,
            subject_ids=subject_ids or [],
            manual_override=manual_override,
            service_category=payload.get("service_category"),
            group_id=payload.get("group_id"),
            status=payload.get("status") or "pending",
            customer_notes=payload.get("customer_notes"),
            internal_notes=payload.get("internal_notes"),
        )


@dataclass
class BookingResult:
    appointment_ids: List[int]
    group_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {"appointment_ids": self.appointment_ids, "group_id": self.group_id}


@dataclass
class AppointmentResponse:
    """DTO for appointment API responses."""

    id: int
    resource_id: Optional[int]
    start_at: datetime
    end_at: datetime
    status: str
    kind: str
    customer_id: int
    subject_ids: List[int]
    group_id: Optional[str]
    manual_override: bool

    @classmethod
    def from_domain(cls, appointment) -> "AppointmentResponse":
        """Create response from domain entity."""
        return cls(
            id=appointment.id,
            resource_id=appointment.resource_id,
            start_at=appointment.start_at,
            end_at=appointment.end_at,
            status=appointment.status,
            kind=appointment.kind,
            customer_id=appointment.customer_id,
            subject_ids=list(appointment.subject_ids),
            group_id=appointment.group_id,
            manual_override=appointment.manual_override,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "start_at": self.start_at.isoformat(),
            "end_at": self.end_at.isoformat(),
            "status": self.status,
            "kind": self.kind,
            "customer_id": self.customer_id,
            "subject_ids": self.subject_ids,
            "group_id": self.group_id,
            "manual_override": self.manual_override,
        }


@dataclass
class ProposedMeetingCreateRequest:
    """DTO for proposing a slot to several customers."""

    resource_id: int
    start_at: datetime
    end_at: datetime
    title: Optional[str] = None
    summary: Optional[str] = None
    notes: Optional[str] = None
    service_category: Optional[str] = None
    customer_ids: List[int] = field(default_factory=list)
    customer_type_ids: List[int] = field(default_factory=list)
    reschedule_appointment_id: Optional[int] = None

    def validate(self) -> None:
        if not self.resource_id:
            raise ValidationError("resource_id is required", field="resource_id")
        if self.start_at is None or self.end_at is None:
            raise ValidationError("start_at and end_at are required", field="start_at")
        if self.end_at <= self.start_at:
            raise ValidationError("End time must be after start time", field="end_at")
        if self.service_category is not None and (
            self.service_category not in SERVICE_CATEGORIES
        ):
            raise ValidationError(
                f"Unknown service category: {self.service_category}",
                field="service_category",
            )
        if (self.end_at - self.start_at) % timedelta(minutes=1):
            raise ValidationError(
                "Meeting length must be a whole number of minutes", field="end_at"
            )
        if self.reschedule_appointment_id is not None and self.customer_type_ids:
            raise ValidationError(
                "Reschedule proposals are offered to the appointment's customer only",
                field="customer_type_ids",
            )


@dataclass
class DeliveryResult:
    """Outcome of sending one invite."""

    invite_id: int
    customer_id: Optional[int]
    success: bool
    notification_count: int
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "invite_id": self.invite_id,
            "customer_id": self.customer_id,
            "success": self.success,
            "notification_count": self.notification_count,
            "error": self.error,
        }


@dataclass
class BatchDeliveryReport:
    meeting_id: int
    results: List[DeliveryResult] = field(default_factory=list)

    @property
    def sent_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> dict:
        return {
            "meeting_id": self.meeting_id,
            "sent": self.sent_count,
            "failed": self.failed_count,
            "results": [r.to_dict() for r in self.results],
        }
