"""
Proposed meeting repository tests against an in-memory SQLite database.
"""

from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from salon_booking.db.base import ProposedMeetingCategory as CategoryModel
from salon_booking.db.base import ProposedMeetingInvite as InviteModel
from salon_booking.domain.entities import (
    Appointment,
    Customer,
    ProposedMeeting,
    ProposedMeetingInvite,
)
from salon_booking.repositories import (
    AppointmentRepository,
    ProposedMeetingRepository,
    SubjectRepository,
)

pytestmark = [pytest.mark.unit, pytest.mark.repositories, pytest.mark.database]


@pytest.fixture
def meeting(db_session, catalog):
    second_customer = SubjectRepository(db_session).create_customer(
        Customer(full_name="Bea Lima", phone="5550002")
    )
    repo = ProposedMeetingRepository(db_session)
    return repo.create(
        ProposedMeeting(
            resource_id=catalog.station.id,
            start_at=datetime(2025, 1, 3, 9, 0),
            end_at=datetime(2025, 1, 3, 10, 0),
            code="123456",
        ),
        [
            ProposedMeetingInvite(meeting_id=0, customer_id=catalog.customer.id),
            ProposedMeetingInvite(
                meeting_id=0,
                customer_id=second_customer.id,
                source="category",
                source_category_id=2,
            ),
        ],
    )


def test_create_persists_invites(db_session, meeting):
    repo = ProposedMeetingRepository(db_session)

    fetched = repo.get_by_id(meeting.id)

    assert fetched.status == "proposed"
    assert [i.status for i in fetched.invites] == ["uninvited", "uninvited"]
    assert fetched.invites[1].source_category_id == 2
    assert repo.code_exists("123456")
    assert not repo.code_exists("654321")


def test_duplicate_code_raises_integrity_error(db_session, catalog, meeting):
    repo = ProposedMeetingRepository(db_session)

    with pytest.raises(IntegrityError):
        repo.create(
            ProposedMeeting(
                resource_id=catalog.station.id,
                start_at=datetime(2025, 1, 4, 9, 0),
                end_at=datetime(2025, 1, 4, 10, 0),
                code="123456",
            ),
            [],
        )


def test_transition_status_is_compare_and_set(db_session, meeting):
    repo = ProposedMeetingRepository(db_session)

    assert repo.transition_status(meeting.id, "proposed", "locking") is True
    assert repo.transition_status(meeting.id, "proposed", "locking") is False
    assert repo.get_by_id(meeting.id).status == "locking"


def test_mark_converted_accepts_one_and_stales_the_rest(db_session, meeting):
    repo = ProposedMeetingRepository(db_session)
    accepted = meeting.invites[0]

    converted = repo.mark_converted(meeting.id, 300, accepted.id)

    assert converted.status == "booked"
    assert converted.appointment_id == 300
    assert [i.status for i in converted.invites] == ["accepted", "stale"]


def test_update_invite_round_trips_delivery_fields(db_session, meeting):
    repo = ProposedMeetingRepository(db_session)
    invite = meeting.invites[0]
    invite.status = "sent"
    invite.notification_count = 2
    invite.last_notified_at = datetime(2025, 1, 1, 9, 0)
    invite.last_delivery_status = "OK:200"

    repo.update_invite(invite)

    stored = repo.get_invite(invite.id)
    assert (stored.status, stored.notification_count, stored.last_delivery_status) == (
        "sent",
        2,
        "OK:200",
    )


def test_delete_removes_meeting_and_invites(db_session, meeting):
    repo = ProposedMeetingRepository(db_session)

    assert repo.delete(meeting.id) is True

    assert repo.get_by_id(meeting.id) is None
    assert db_session.query(InviteModel).count() == 0
    assert repo.delete(meeting.id) is False


def test_categories_and_reschedule_target_round_trip(db_session, catalog):
    repo = ProposedMeetingRepository(db_session)
    booked = AppointmentRepository(db_session).create_batch(
        [
            Appointment(
                start_at=datetime(2025, 1, 3, 9, 0),
                end_at=datetime(2025, 1, 3, 9, 45),
                resource_id=catalog.station.id,
                customer_id=catalog.customer.id,
                subject_id=catalog.dog.id,
                subject_ids=[catalog.dog.id],
            )
        ],
        {},
    )[0]

    created = repo.create(
        ProposedMeeting(
            resource_id=catalog.second.id,
            start_at=datetime(2025, 1, 3, 14, 0),
            end_at=datetime(2025, 1, 3, 14, 45),
            code="222333",
            category_ids=[3, 2],
            reschedule_appointment_id=booked.id,
            reschedule_customer_id=catalog.customer.id,
            reschedule_subject_id=catalog.dog.id,
        ),
        [ProposedMeetingInvite(meeting_id=0, customer_id=catalog.customer.id)],
    )

    fetched = repo.get_by_id(created.id)
    assert fetched.category_ids == [3, 2]
    assert fetched.is_reschedule
    assert (
        fetched.reschedule_appointment_id,
        fetched.reschedule_customer_id,
        fetched.reschedule_subject_id,
    ) == (booked.id, catalog.customer.id, catalog.dog.id)

    assert repo.delete(created.id) is True
    assert db_session.query(CategoryModel).count() == 0
