"""
Proposed meetings: one tentative slot offered to several customers.

Lifecycle of a meeting::

    proposed --(accept: compare-and-set)--> locking --(booked)--> booked
                      ^                          |
                      +----(booking failed)------+

Only one acceptance can hold the ``locking`` state, so at most one
appointment is ever created per meeting.
"""

import hmac
import logging
import secrets
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from salon_booking.core.exceptions import (
    DeliveryError,
    InvalidStateTransitionError,
    RecordNotFoundError,
    SchedulingError,
    ValidationError,
)
from salon_booking.domain.entities import (
    Appointment,
    Customer,
    ProposedMeeting,
    ProposedMeetingInvite,
)
from salon_booking.domain.interfaces import (
    IAppointmentReader,
    INotificationDispatcher,
    IProposedMeetingRepository,
    ISubjectReader,
)
from salon_booking.schemas.dtos import (
    BatchDeliveryReport,
    BookingRequest,
    DeliveryResult,
    ProposedMeetingCreateRequest,
)
from salon_booking.services.booking_service import BookingService
from salon_booking.services.resource_directory import ResourceDirectory

logger = logging.getLogger(__name__)

CODE_LENGTH = 6
MAX_CODE_ATTEMPTS = 5
SENDABLE_INVITE_STATUSES = ("uninvited", "sent")


def generate_meeting_code() -> str:
    return f"{secrets.randbelow(10 ** CODE_LENGTH):0{CODE_LENGTH}d}"


class ProposedMeetingService:
    def __init__(
        self,
        meeting_repo: IProposedMeetingRepository,
        subject_repo: ISubjectReader,
        appointment_repo: IAppointmentReader,
        resource_directory: ResourceDirectory,
        booking_service: BookingService,
        dispatcher: INotificationDispatcher,
    ):
        self.meeting_repo = meeting_repo
        self.subject_repo = subject_repo
        self.appointment_repo = appointment_repo
        self.resource_directory = resource_directory
        self.booking_service = booking_service
        self.dispatcher = dispatcher

    def create_proposed_meeting(self, request: ProposedMeetingCreateRequest) -> ProposedMeeting:
        """Create the meeting with one uninvited invite per recipient.

        Individually chosen customers come first; customers of the requested
        categories follow, skipping anyone already on the list.
        """
        request.validate()
        resource = self.resource_directory.require_active(request.resource_id)
        reschedule = self._reschedule_target(request)
        if reschedule is not None:
            invites = self._plan_invites([reschedule.customer_id], [])
        else:
            invites = self._plan_invites(request.customer_ids, request.customer_type_ids)

        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            code = generate_meeting_code()
            if self.meeting_repo.code_exists(code):
                continue
            meeting = ProposedMeeting(
                resource_id=resource.id,
                start_at=request.start_at,
                end_at=request.end_at,
                code=code,
                service_category=request.service_category or resource.service_category,
                title=request.title,
                summary=request.summary,
                notes=request.notes,
                category_ids=list(dict.fromkeys(request.customer_type_ids)),
            )
            if reschedule is not None:
                meeting.reschedule_appointment_id = reschedule.id
                meeting.reschedule_customer_id = reschedule.customer_id
                meeting.reschedule_subject_id = reschedule.subject_id
            try:
                created = self.meeting_repo.create(meeting, invites)
            except IntegrityError:
                logger.warning(
                    "Meeting code collision, retrying",
                    extra={"context": {"attempt": attempt}},
                )
                continue
            logger.info(
                "Proposed meeting created",
                extra={
                    "context": {
                        "meeting_id": created.id,
                        "resource_id": created.resource_id,
                        "invites": len(created.invites),
                    }
                },
            )
            return created

        raise SchedulingError("Could not allocate a unique meeting code, please retry")

    def send_invite(self, invite_id: int) -> ProposedMeetingInvite:
        """Deliver one invite; re-sending is allowed and counts again.

        Raises DeliveryError when the dispatcher fails. The failure is
        recorded on the invite and the counter is left unchanged.
        """
        invite = self._require_invite(invite_id)
        if invite.status not in SENDABLE_INVITE_STATUSES:
            raise InvalidStateTransitionError(
                f"Cannot send an invite that is {invite.status}",
                details={"invite_id": invite_id},
            )
        meeting = self._require_open_meeting(invite.meeting_id)
        customer = self.subject_repo.get_customer(invite.customer_id)
        if customer is None:
            raise RecordNotFoundError(
                f"Customer {invite.customer_id} not found", field="customer_id"
            )

        try:
            receipt = self.dispatcher.send_invite(customer, meeting)
        except DeliveryError as e:
            invite.last_delivery_status = f"ERR:{e.message}"
            self.meeting_repo.update_invite(invite)
            logger.warning(
                "Invite delivery failed",
                extra={
                    "context": {
                        "invite_id": invite_id,
                        "meeting_id": meeting.id,
                        "error": e.message,
                    }
                },
            )
            raise

        invite.notification_count += 1
        invite.status = "sent"
        invite.last_notified_at = receipt.sent_at
        invite.last_delivery_status = f"OK:{receipt.status_code}"
        updated = self.meeting_repo.update_invite(invite)
        logger.info(
            "Invite sent",
            extra={
                "context": {
                    "invite_id": invite_id,
                    "meeting_id": meeting.id,
                    "notification_count": updated.notification_count,
                }
            },
        )
        return updated

    def send_all_invites(self, meeting_id: int) -> BatchDeliveryReport:
        meeting = self._require_open_meeting(meeting_id)
        return self._send_batch(meeting, meeting.invites)

    def send_category_invites(self, meeting_id: int, category_id: int) -> BatchDeliveryReport:
        meeting = self._require_open_meeting(meeting_id)
        invites = [i for i in meeting.invites if i.source_category_id == category_id]
        return self._send_batch(meeting, invites)

    def accept_invite(self, invite_id: int, subject_id: int) -> ProposedMeeting:
        """Convert the meeting into an approved appointment for the invitee.

        Reschedule proposals move the bound appointment to the meeting's
        window and resource instead of booking a new one.
        """
        invite = self._require_invite(invite_id)
        if invite.status not in SENDABLE_INVITE_STATUSES:
            raise InvalidStateTransitionError(
                f"Cannot accept an invite that is {invite.status}",
                details={"invite_id": invite_id},
            )
        meeting = self._require_meeting(invite.meeting_id)
        if meeting.is_reschedule:
            self._check_reschedule_party(meeting, invite.customer_id, subject_id)
        if not self.meeting_repo.transition_status(meeting.id, "proposed", "locking"):
            raise InvalidStateTransitionError(
                "This meeting has already been claimed",
                details={"meeting_id": meeting.id},
            )

        try:
            if meeting.is_reschedule:
                appointment_id = self._move_bound_appointment(meeting)
            else:
                appointment_id = self._book(meeting, invite, subject_id)
        except Exception:
            self.meeting_repo.transition_status(meeting.id, "locking", "proposed")
            logger.warning(
                "Meeting acceptance failed, lock released",
                extra={"context": {"meeting_id": meeting.id, "invite_id": invite_id}},
                exc_info=True,
            )
            raise

        converted = self.meeting_repo.mark_converted(meeting.id, appointment_id, invite.id)
        logger.info(
            "Proposed meeting booked",
            extra={
                "context": {
                    "meeting_id": meeting.id,
                    "invite_id": invite_id,
                    "appointment_id": converted.appointment_id,
                    "reschedule": meeting.is_reschedule,
                }
            },
        )
        return converted

    def accept_as_customer(
        self, meeting_id: int, customer_id: int, subject_id: int
    ) -> ProposedMeeting:
        """Accept as an invited customer or a member of an invited category.

        Category membership is read at acceptance time, so customers who
        joined a category after the meeting was proposed still qualify.
        """
        meeting = self._require_claimable_meeting(meeting_id)
        customer = self._require_customer(customer_id)
        invite = self._invite_for(meeting, customer_id)
        if invite is None:
            if customer.customer_type_id is None or (
                customer.customer_type_id not in meeting.category_ids
            ):
                raise ValidationError(
                    "Customer is not invited to this meeting", field="customer_id"
                )
            invite = self.meeting_repo.add_invite(
                ProposedMeetingInvite(
                    meeting_id=meeting.id,
                    customer_id=customer_id,
                    source="category",
                    source_category_id=customer.customer_type_id,
                )
            )
        return self.accept_invite(invite.id, subject_id)

    def accept_with_code(
        self, meeting_id: int, code: str, customer_id: int, subject_id: int
    ) -> ProposedMeeting:
        """Accept on behalf of a customer holding the meeting code.

        Customers without an invite get one added before acceptance.
        """
        meeting = self._require_claimable_meeting(meeting_id)
        if not code or not hmac.compare_digest(str(code), meeting.code):
            raise ValidationError("Invalid meeting code", field="code")
        self._require_customer(customer_id)

        invite = self._invite_for(meeting, customer_id)
        if invite is None:
            invite = self.meeting_repo.add_invite(
                ProposedMeetingInvite(meeting_id=meeting.id, customer_id=customer_id)
            )
        return self.accept_invite(invite.id, subject_id)

    def delete_proposed_meeting(self, meeting_id: int) -> None:
        meeting = self._require_meeting(meeting_id)
        if meeting.status == "locking":
            raise InvalidStateTransitionError(
                "Meeting is being accepted right now", details={"meeting_id": meeting_id}
            )
        if meeting.appointment_id is not None:
            appointment = self.appointment_repo.get_by_id(meeting.appointment_id)
            if appointment is not None and appointment.is_active:
                raise InvalidStateTransitionError(
                    "Cancel the booked appointment before deleting this meeting",
                    details={
                        "meeting_id": meeting_id,
                        "appointment_id": meeting.appointment_id,
                    },
                )
        self.meeting_repo.delete(meeting_id)
        logger.info("Proposed meeting deleted", extra={"context": {"meeting_id": meeting_id}})

    def _reschedule_target(
        self, request: ProposedMeetingCreateRequest
    ) -> Optional[Appointment]:
        if request.reschedule_appointment_id is None:
            return None
        appointment = self.appointment_repo.get_by_id(request.reschedule_appointment_id)
        if appointment is None:
            raise RecordNotFoundError(
                f"Appointment {request.reschedule_appointment_id} not found",
                field="reschedule_appointment_id",
            )
        if not appointment.is_active:
            raise InvalidStateTransitionError(
                "Cannot reschedule a cancelled appointment",
                details={"appointment_id": appointment.id},
            )
        if appointment.group_id:
            raise ValidationError(
                "Grouped appointments cannot be rescheduled individually",
                field="reschedule_appointment_id",
            )
        strangers = [c for c in request.customer_ids if c != appointment.customer_id]
        if strangers:
            raise ValidationError(
                "Reschedule proposals are offered to the appointment's customer only",
                field="customer_ids",
            )
        return appointment

    def _check_reschedule_party(
        self, meeting: ProposedMeeting, customer_id: int, subject_id: int
    ) -> None:
        if customer_id != meeting.reschedule_customer_id:
            raise ValidationError(
                "This proposal is reserved for another customer", field="customer_id"
            )
        bound_subject = meeting.reschedule_subject_id
        if bound_subject is not None and subject_id != bound_subject:
            raise ValidationError(
                "This proposal is reserved for another subject", field="subject_id"
            )

    def _move_bound_appointment(self, meeting: ProposedMeeting) -> int:
        moved = self.booking_service.move_appointment(
            meeting.reschedule_appointment_id,
            meeting.start_at,
            meeting.end_at,
            resource_id=meeting.resource_id,
        )
        if moved.status == "pending":
            self.booking_service.approve_appointment(moved.id)
        return moved.id

    def _book(
        self, meeting: ProposedMeeting, invite: ProposedMeetingInvite, subject_id: int
    ) -> int:
        result = self.booking_service.create_appointment(
            BookingRequest(
                kind="business",
                start_at=meeting.start_at,
                end_at=meeting.end_at,
                resource_ids=[meeting.resource_id],
                customer_id=invite.customer_id,
                subject_ids=[subject_id],
                manual_override=True,
                service_category=meeting.service_category,
                status="approved",
                customer_notes=meeting.summary,
                internal_notes=meeting.notes,
            )
        )
        return result.appointment_ids[0]

    def _plan_invites(
        self, customer_ids: List[int], customer_type_ids: List[int]
    ) -> List[ProposedMeetingInvite]:
        invites: List[ProposedMeetingInvite] = []
        seen = set()
        for customer_id in customer_ids:
            if customer_id in seen:
                continue
            if self.subject_repo.get_customer(customer_id) is None:
                raise RecordNotFoundError(
                    f"Customer {customer_id} not found", field="customer_ids"
                )
            seen.add(customer_id)
            invites.append(
                ProposedMeetingInvite(meeting_id=0, customer_id=customer_id, source="individual")
            )
        for type_id in customer_type_ids:
            for customer in self.subject_repo.list_customers_by_types([type_id]):
                if customer.id in seen:
                    continue
                seen.add(customer.id)
                invites.append(
                    ProposedMeetingInvite(
                        meeting_id=0,
                        customer_id=customer.id,
                        source="category",
                        source_category_id=type_id,
                    )
                )
        return invites

    def _send_batch(
        self, meeting: ProposedMeeting, invites: List[ProposedMeetingInvite]
    ) -> BatchDeliveryReport:
        report = BatchDeliveryReport(meeting_id=meeting.id)
        for invite in invites:
            if invite.status not in SENDABLE_INVITE_STATUSES:
                continue
            try:
                sent = self.send_invite(invite.id)
            except SchedulingError as e:
                # DeliveryError is already logged by send_invite
                if not isinstance(e, DeliveryError):
                    logger.warning(
                        "Invite skipped in batch",
                        extra={
                            "context": {
                                "invite_id": invite.id,
                                "meeting_id": meeting.id,
                                "error_code": e.error_code,
                                "error": e.message,
                            }
                        },
                    )
                report.results.append(self._failed_result(invite, e.message))
                continue
            except Exception as e:
                logger.error(
                    "Unexpected error while sending invite",
                    extra={"context": {"invite_id": invite.id, "meeting_id": meeting.id}},
                    exc_info=True,
                )
                report.results.append(self._failed_result(invite, str(e) or type(e).__name__))
                continue
            report.results.append(
                DeliveryResult(
                    invite_id=sent.id,
                    customer_id=sent.customer_id,
                    success=True,
                    notification_count=sent.notification_count,
                )
            )
        logger.info(
            "Invite batch finished",
            extra={
                "context": {
                    "meeting_id": meeting.id,
                    "sent": report.sent_count,
                    "failed": report.failed_count,
                }
            },
        )
        return report

    @staticmethod
    def _failed_result(invite: ProposedMeetingInvite, error: str) -> DeliveryResult:
        return DeliveryResult(
            invite_id=invite.id,
            customer_id=invite.customer_id,
            success=False,
            notification_count=invite.notification_count,
            error=error,
        )

    def _require_meeting(self, meeting_id: int) -> ProposedMeeting:
        meeting = self.meeting_repo.get_by_id(meeting_id)
        if meeting is None:
            raise RecordNotFoundError(
                f"Proposed meeting {meeting_id} not found", field="meeting_id"
            )
        return meeting

    def _require_open_meeting(self, meeting_id: int) -> ProposedMeeting:
        meeting = self._require_meeting(meeting_id)
        if meeting.status != "proposed":
            raise InvalidStateTransitionError(
                f"Meeting is {meeting.status}; invites can no longer be sent",
                details={"meeting_id": meeting_id},
            )
        return meeting

    def _require_claimable_meeting(self, meeting_id: int) -> ProposedMeeting:
        meeting = self._require_meeting(meeting_id)
        if meeting.status != "proposed":
            raise InvalidStateTransitionError(
                "This meeting has already been claimed",
                details={"meeting_id": meeting_id},
            )
        return meeting

    def _require_customer(self, customer_id: int) -> Customer:
        customer = self.subject_repo.get_customer(customer_id)
        if customer is None:
            raise RecordNotFoundError(f"Customer {customer_id} not found", field="customer_id")
        return customer

    @staticmethod
    def _invite_for(
        meeting: ProposedMeeting, customer_id: int
    ) -> Optional[ProposedMeetingInvite]:
        return next((i for i in meeting.invites if i.customer_id == customer_id), None)

    def _require_invite(self, invite_id: int) -> ProposedMeetingInvite:
        invite = self.meeting_repo.get_invite(invite_id)
        if invite is None:
            raise RecordNotFoundError(f"Invite {invite_id} not found", field="invite_id")
        return invite
