"""
Booking transaction manager.

Validates a booking request and hands the rows to the appointment
repository, which overlap-checks and inserts the whole group in a single
database transaction.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from salon_booking.core.exceptions import (
    InvalidStateTransitionError,
    RecordNotFoundError,
    ValidationError,
)
from salon_booking.domain.entities import Appointment as DomainAppointment
from salon_booking.domain.entities import Customer, Resource, Subject
from salon_booking.domain.interfaces import IAppointmentRepository, ISubjectRepository
from salon_booking.schemas.dtos import BookingRequest, BookingResult
from salon_booking.services.duration_resolver import DurationResolver
from salon_booking.services.resource_directory import ResourceDirectory

logger = logging.getLogger(__name__)


class BookingService:
    """Application service for appointment creation and status changes."""

    def __init__(
        self,
        appointment_repo: IAppointmentRepository,
        subject_repo: ISubjectRepository,
        resource_directory: ResourceDirectory,
        duration_resolver: DurationResolver,
    ):
        self.appointment_repo = appointment_repo
        self.subject_repo = subject_repo
        self.resource_directory = resource_directory
        self.duration_resolver = duration_resolver
        self._party_resolvers = {
            "private": self._internal_party,
            "business": self._customer_party,
            "event": self._customer_party,
        }

    def create_appointment(self, request: BookingRequest) -> BookingResult:
        """Create one appointment per requested resource, all or nothing.

        Business Rules:
        - Required fields present and end after start
        - Party resolved by kind (internal sentinel for private bookings)
        - Without manual override the window must match the resolved duration
        - No buffer-aware overlap on any target resource
        """
        request.validate()

        customer, subjects = self._party_resolvers[request.kind](request)
        resources = self.resource_directory.require_active_many(request.resource_ids)
        service_category = request.service_category or (
            resources[0].service_category if resources else None
        )

        if resources and not request.manual_override and request.kind != "private":
            self._check_duration(subjects[0], resources[0], request)

        group_id = self._resolve_group(request, len(resources))

        primary_subject_id = subjects[0].id if subjects else None
        subject_ids = [s.id for s in subjects]
        appointments = [
            DomainAppointment(
                start_at=request.start_at,
                end_at=request.end_at,
                customer_id=customer.id,
                resource_id=resource_id,
                status=request.status,
                kind=request.kind,
                service_category=service_category,
                subject_id=primary_subject_id,
                subject_ids=subject_ids,
                group_id=group_id,
                manual_override=request.manual_override,
                customer_notes=request.customer_notes,
                internal_notes=request.internal_notes,
            )
            for resource_id in ([r.id for r in resources] or [None])
        ]

        created = self.appointment_repo.create_batch(
            appointments, {r.id: r.buffer_minutes for r in resources}
        )
        logger.info(
            "Appointments created",
            extra={
                "context": {
                    "appointment_ids": [a.id for a in created],
                    "group_id": group_id,
                    "kind": request.kind,
                    "resource_ids": [r.id for r in resources],
                    "manual_override": request.manual_override,
                }
            },
        )
        return BookingResult(appointment_ids=[a.id for a in created], group_id=group_id)

    def approve_appointment(self, appointment_id: int) -> List[DomainAppointment]:
        """Move a pending appointment (and its group) to approved."""
        appointment = self._require(appointment_id)
        if appointment.status != "pending":
            raise InvalidStateTransitionError(
                f"Cannot approve an appointment that is {appointment.status}",
                details={"appointment_id": appointment_id, "status": appointment.status},
            )
        members = self._members(appointment)
        self.appointment_repo.update_status(
            [a.id for a in members if a.status == "pending"], "approved"
        )
        logger.info(
            "Appointment approved",
            extra={"context": {"appointment_id": appointment_id}},
        )
        return [self.appointment_repo.get_by_id(a.id) for a in members]

    def cancel_appointment(
        self, appointment_id: int, cascade_group: bool = False
    ) -> List[int]:
        """Cancel the appointment, or every member of its group when cascading.

        Cancelled rows stop blocking their resource immediately.
        """
        appointment = self._require(appointment_id)
        if appointment.status == "cancelled":
            raise InvalidStateTransitionError(
                "Appointment is already cancelled",
                details={"appointment_id": appointment_id},
            )
        targets = self._members(appointment) if cascade_group else [appointment]
        ids = [a.id for a in targets if a.status != "cancelled"]
        self.appointment_repo.update_status(ids, "cancelled")
        logger.info(
            "Appointments cancelled",
            extra={
                "context": {
                    "appointment_ids": ids,
                    "group_id": appointment.group_id,
                    "cascade_group": cascade_group,
                }
            },
        )
        return ids

    def move_appointment(
        self,
        appointment_id: int,
        start_at: datetime,
        end_at: Optional[datetime] = None,
        resource_id: Optional[int] = None,
    ) -> DomainAppointment:
        """Reschedule a single appointment, keeping its length when end is omitted.

        A ``resource_id`` moves it to another active resource; the overlap
        check then uses that resource and its buffer.
        """
        appointment = self._require(appointment_id)
        if appointment.status == "cancelled":
            raise InvalidStateTransitionError(
                "Cannot move a cancelled appointment",
                details={"appointment_id": appointment_id},
            )
        if appointment.group_id:
            raise ValidationError(
                "Grouped appointments share one start time and cannot be moved individually",
                field="appointment_id",
            )
        if end_at is None:
            end_at = start_at + (appointment.end_at - appointment.start_at)
        if end_at <= start_at:
            raise ValidationError("End time must be after start time", field="end_at")
        if (end_at - start_at) % timedelta(minutes=1):
            raise ValidationError(
                "Appointment length must be a whole number of minutes", field="end_at"
            )

        buffer_minutes = 0
        if resource_id is not None and resource_id != appointment.resource_id:
            buffer_minutes = self.resource_directory.require_active(resource_id).buffer_minutes
        elif appointment.resource_id is not None:
            resource_id = None
            buffer_minutes = self.resource_directory.get_resource(
                appointment.resource_id
            ).buffer_minutes
        moved = self.appointment_repo.move(
            appointment_id, start_at, end_at, buffer_minutes, resource_id=resource_id
        )
        logger.info(
            "Appointment moved",
            extra={
                "context": {
                    "appointment_id": appointment_id,
                    "resource_id": moved.resource_id,
                    "start_at": start_at,
                    "end_at": end_at,
                }
            },
        )
        return moved

    def _internal_party(self, request: BookingRequest) -> Tuple[Customer, List[Subject]]:
        customer, subject = self.subject_repo.get_or_create_internal_party()
        return customer, [subject]

    def _customer_party(self, request: BookingRequest) -> Tuple[Customer, List[Subject]]:
        customer = self.subject_repo.get_customer(request.customer_id)
        if customer is None:
            raise RecordNotFoundError(
                f"Customer {request.customer_id} not found", field="customer_id"
            )
        if len(set(request.subject_ids)) != len(request.subject_ids):
            raise ValidationError("Duplicate subject ids", field="subject_ids")
        found = {s.id: s for s in self.subject_repo.get_subjects(request.subject_ids)}
        subjects = []
        for subject_id in request.subject_ids:
            subject = found.get(subject_id)
            if subject is None:
                raise RecordNotFoundError(
                    f"Subject {subject_id} not found", field="subject_ids"
                )
            if subject.customer_id != customer.id:
                raise ValidationError(
                    f"Subject {subject_id} does not belong to customer {customer.id}",
                    field="subject_ids",
                )
            subjects.append(subject)
        return customer, subjects

    def _check_duration(
        self, subject: Subject, resource: Resource, request: BookingRequest
    ) -> None:
        expected = self.duration_resolver.resolve_for_subject(
            subject.id, resource.id
        ).require_minutes()
        if request.duration_minutes != expected:
            raise ValidationError(
                f"Duration must be {expected} minutes for this breed at {resource.name}; "
                "use a manual override to book a different length",
                field="end_at",
                details={"expected_minutes": expected, "requested_minutes": request.duration_minutes},
            )

    def _resolve_group(self, request: BookingRequest, resource_count: int) -> Optional[str]:
        if request.group_id:
            existing = self.appointment_repo.get_by_group(request.group_id)
            if existing and existing[0].start_at != request.start_at:
                raise ValidationError(
                    "Every appointment in a group must share the same start time",
                    field="group_id",
                )
            return request.group_id
        if resource_count > 1:
            return str(uuid.uuid4())
        return None

    def _require(self, appointment_id: int) -> DomainAppointment:
        appointment = self.appointment_repo.get_by_id(appointment_id)
        if appointment is None:
            raise RecordNotFoundError(
                f"Appointment {appointment_id} not found", field="appointment_id"
            )
        return appointment

    def _members(self, appointment: DomainAppointment) -> List[DomainAppointment]:
        if not appointment.group_id:
            return [appointment]
        return self.appointment_repo.get_by_group(appointment.group_id)
