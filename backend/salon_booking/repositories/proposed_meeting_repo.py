"""Proposed meeting and invite repository."""

from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from salon_booking.core.exceptions import RecordNotFoundError
from salon_booking.db.base import ProposedMeeting as DbProposedMeeting
from salon_booking.db.base import ProposedMeetingCategory as DbProposedMeetingCategory
from salon_booking.db.base import ProposedMeetingInvite as DbProposedMeetingInvite
from salon_booking.domain.entities import ProposedMeeting as DomainProposedMeeting
from salon_booking.domain.entities import (
    ProposedMeetingInvite as DomainProposedMeetingInvite,
)
from salon_booking.domain.interfaces import IProposedMeetingRepository


class ProposedMeetingRepository(IProposedMeetingRepository):
    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_by_id(self, meeting_id: int) -> Optional[DomainProposedMeeting]:
        row = (
            self.db.query(DbProposedMeeting)
            .populate_existing()
            .filter_by(id=meeting_id)
            .first()
        )
        return self._to_domain(row) if row else None

    def get_invite(self, invite_id: int) -> Optional[DomainProposedMeetingInvite]:
        row = self.db.query(DbProposedMeetingInvite).filter_by(id=invite_id).first()
        return self._invite_to_domain(row) if row else None

    def code_exists(self, code: str) -> bool:
        return (
            self.db.query(DbProposedMeeting.id).filter_by(code=code).first() is not None
        )

    def create(
        self,
        meeting: DomainProposedMeeting,
        invites: Sequence[DomainProposedMeetingInvite],
    ) -> DomainProposedMeeting:
        row = DbProposedMeeting(
            resource_id=meeting.resource_id,
            start_at=meeting.start_at,
            end_at=meeting.end_at,
            service_category=meeting.service_category,
            title=meeting.title,
            summary=meeting.summary,
            notes=meeting.notes,
            code=meeting.code,
            status=meeting.status,
            reschedule_appointment_id=meeting.reschedule_appointment_id,
            reschedule_customer_id=meeting.reschedule_customer_id,
            reschedule_subject_id=meeting.reschedule_subject_id,
        )
        try:
            self.db.add(row)
            self.db.flush()
            for customer_type_id in meeting.category_ids:
                self.db.add(
                    DbProposedMeetingCategory(
                        meeting_id=row.id, customer_type_id=customer_type_id
                    )
                )
            for invite in invites:
                self.db.add(
                    DbProposedMeetingInvite(
                        meeting_id=row.id,
                        customer_id=invite.customer_id,
                        status=invite.status,
                        source=invite.source,
                        source_category_id=invite.source_category_id,
                    )
                )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        self.db.refresh(row)
        return self._to_domain(row)

    def add_invite(
        self, invite: DomainProposedMeetingInvite
    ) -> DomainProposedMeetingInvite:
        row = DbProposedMeetingInvite(
            meeting_id=invite.meeting_id,
            customer_id=invite.customer_id,
            status=invite.status,
            source=invite.source,
            source_category_id=invite.source_category_id,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        self.db.refresh(row)
        return self._invite_to_domain(row)

    def update_invite(
        self, invite: DomainProposedMeetingInvite
    ) -> DomainProposedMeetingInvite:
        row = self.db.query(DbProposedMeetingInvite).filter_by(id=invite.id).first()
        if row is None:
            raise RecordNotFoundError(f"Invite {invite.id} not found", field="invite_id")
        row.status = invite.status
        row.notification_count = invite.notification_count
        row.last_notified_at = invite.last_notified_at
        row.last_delivery_status = (invite.last_delivery_status or "")[:255] or None
        self.db.commit()
        self.db.refresh(row)
        return self._invite_to_domain(row)

    def transition_status(self, meeting_id: int, from_status: str, to_status: str) -> bool:
        updated = (
            self.db.query(DbProposedMeeting)
            .filter_by(id=meeting_id, status=from_status)
            .update({DbProposedMeeting.status: to_status}, synchronize_session=False)
        )
        self.db.commit()
        return updated == 1

    def mark_converted(
        self,
        meeting_id: int,
        appointment_id: int,
        accepted_invite_id: Optional[int],
    ) -> DomainProposedMeeting:
        try:
            row = self.db.query(DbProposedMeeting).filter_by(id=meeting_id).one()
            row.status = "booked"
            row.appointment_id = appointment_id
            for invite in self._invite_rows(meeting_id):
                invite.status = "accepted" if invite.id == accepted_invite_id else "stale"
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(row)
        return self._to_domain(row)

    def delete(self, meeting_id: int) -> bool:
        row = self.db.query(DbProposedMeeting).filter_by(id=meeting_id).first()
        if row is None:
            return False
        try:
            for invite in self._invite_rows(meeting_id):
                self.db.delete(invite)
            for category in self._category_rows(meeting_id):
                self.db.delete(category)
            self.db.flush()
            self.db.delete(row)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return True

    def _to_domain(self, row: DbProposedMeeting) -> DomainProposedMeeting:
        return DomainProposedMeeting(
            id=row.id,
            resource_id=row.resource_id,
            start_at=row.start_at,
            end_at=row.end_at,
            service_category=row.service_category,
            title=row.title,
            summary=row.summary,
            notes=row.notes,
            code=row.code,
            status=row.status,
            appointment_id=row.appointment_id,
            invites=[self._invite_to_domain(i) for i in self._invite_rows(row.id)],
            category_ids=[c.customer_type_id for c in self._category_rows(row.id)],
            reschedule_appointment_id=row.reschedule_appointment_id,
            reschedule_customer_id=row.reschedule_customer_id,
            reschedule_subject_id=row.reschedule_subject_id,
        )

    def _category_rows(self, meeting_id: int):
        return (
            self.db.query(DbProposedMeetingCategory)
            .filter_by(meeting_id=meeting_id)
            .order_by(DbProposedMeetingCategory.id)
            .all()
        )

    def _invite_rows(self, meeting_id: int):
        return (
            self.db.query(DbProposedMeetingInvite)
            .filter_by(meeting_id=meeting_id)
            .order_by(DbProposedMeetingInvite.id)
            .all()
        )

    def _invite_to_domain(
        self, row: DbProposedMeetingInvite
    ) -> DomainProposedMeetingInvite:
        return DomainProposedMeetingInvite(
            id=row.id,
            meeting_id=row.meeting_id,
            customer_id=row.customer_id,
            status=row.status,
            source=row.source,
            source_category_id=row.source_category_id,
            notification_count=row.notification_count,
            last_notified_at=row.last_notified_at,
            last_delivery_status=row.last_delivery_status,
        )

