"""
Unit tests for BookingService.

Customer 5 owns dog 20 (breed 10); breed 10 takes 45 minutes at station 1.
"""

from datetime import datetime

import pytest

from salon_booking.core.exceptions import (
    InvalidStateTransitionError,
    OverlapConflictError,
    RecordNotFoundError,
    UnsupportedCombinationError,
    ValidationError,
)
from salon_booking.schemas.dtos import BookingRequest
from tests.factories.repository_factories import (
    make_appointment,
    make_customer,
    make_resource,
    make_rule,
    make_subject,
    make_subject_type,
)


def _request(start=(10, 0), end=(10, 45), **overrides) -> BookingRequest:
    values = {
        "kind": "business",
        "start_at": datetime(2025, 1, 6, *start),
        "end_at": datetime(2025, 1, 6, *end),
        "resource_ids": [1],
        "customer_id": 5,
        "subject_ids": [20],
    }
    values.update(overrides)
    return BookingRequest(**values)


@pytest.fixture
def catalog_mocks(mock_subject_repo, mock_resource_repo, mock_rule_repo):
    station = make_resource()
    mock_subject_repo.get_customer.return_value = make_customer()
    mock_subject_repo.get_subjects.return_value = [make_subject()]
    mock_subject_repo.get_subject.return_value = make_subject()
    mock_subject_repo.get_subject_type.return_value = make_subject_type()
    mock_resource_repo.get_by_id.return_value = station
    mock_resource_repo.get_many.return_value = [station]
    mock_rule_repo.get_rule.return_value = make_rule(duration_minutes=45)
    return station


@pytest.mark.unit
@pytest.mark.services
@pytest.mark.appointment
class TestCreateAppointment:
    def test_matching_duration_is_booked(
        self, booking_service, catalog_mocks, mock_appointment_repo
    ):
        """A window matching the resolved 45 minutes is created."""
        result = booking_service.create_appointment(_request())

        assert result.appointment_ids == [101]
        assert result.group_id is None
        (appointments, buffers), _ = mock_appointment_repo.create_batch.call_args
        assert len(appointments) == 1
        assert appointments[0].resource_id == 1
        assert appointments[0].subject_id == 20
        assert appointments[0].service_category == "grooming"
        assert buffers == {1: 0}

    def test_mismatched_duration_rejected(
        self, booking_service, catalog_mocks, mock_appointment_repo
    ):
        """10:00-11:30 is 90 minutes where the rule says 45."""
        with pytest.raises(ValidationError, match="Duration must be 45 minutes") as exc_info:
            booking_service.create_appointment(_request(end=(11, 30)))

        assert exc_info.value.details == {"expected_minutes": 45, "requested_minutes": 90}
        mock_appointment_repo.create_batch.assert_not_called()

    def test_manual_override_accepts_any_length(
        self, booking_service, catalog_mocks, mock_appointment_repo, mock_rule_repo
    ):
        """With manual override the requested window is used as-is."""
        result = booking_service.create_appointment(
            _request(end=(11, 30), manual_override=True)
        )

        assert result.appointment_ids == [101]
        mock_rule_repo.get_rule.assert_not_called()
        appointment = mock_appointment_repo.create_batch.call_args[0][0][0]
        assert appointment.manual_override is True
        assert appointment.duration_minutes == 90

    def test_unsupported_combination_requires_override(
        self, booking_service, catalog_mocks, mock_rule_repo
    ):
        mock_rule_repo.get_rule.return_value = make_rule(is_supported=False, duration_minutes=None)

        with pytest.raises(UnsupportedCombinationError):
            booking_service.create_appointment(_request())

        result = booking_service.create_appointment(_request(manual_override=True))
        assert result.appointment_ids == [101]

    def test_private_booking_uses_internal_party(
        self, booking_service, catalog_mocks, mock_appointment_repo, mock_subject_repo
    ):
        """Staff-only bookings need no customer and skip the duration check."""
        booking_service.create_appointment(
            _request(kind="private", customer_id=None, subject_ids=[], end=(12, 0))
        )

        appointment = mock_appointment_repo.create_batch.call_args[0][0][0]
        assert appointment.customer_id == 999
        assert appointment.subject_id == 998
        assert appointment.kind == "private"
        mock_subject_repo.get_customer.assert_not_called()

    def test_several_resources_form_one_group(
        self, booking_service, catalog_mocks, mock_resource_repo, mock_appointment_repo
    ):
        """One row per station, all sharing a generated group ID."""
        mock_resource_repo.get_many.return_value = [
            make_resource(id=2, name="Station 2", buffer_minutes=15),
            catalog_mocks,
        ]

        result = booking_service.create_appointment(_request(resource_ids=[1, 2]))

        assert result.appointment_ids == [101, 102]
        assert result.group_id
        appointments, buffers = mock_appointment_repo.create_batch.call_args[0]
        assert [a.resource_id for a in appointments] == [1, 2]
        assert {a.group_id for a in appointments} == {result.group_id}
        assert buffers == {1: 0, 2: 15}

    def test_group_start_must_match(
        self, booking_service, catalog_mocks, mock_appointment_repo
    ):
        mock_appointment_repo.get_by_group.return_value = [
            make_appointment(datetime(2025, 1, 6, 9, 0), datetime(2025, 1, 6, 9, 45), group_id="g-1")
        ]

        with pytest.raises(ValidationError, match="same start time"):
            booking_service.create_appointment(_request(group_id="g-1"))

    def test_daycare_has_no_resource(self, booking_service, catalog_mocks, mock_appointment_repo):
        booking_service.create_appointment(
            _request(resource_ids=[], service_category="daycare", start=(8, 0), end=(18, 0))
        )

        appointment = mock_appointment_repo.create_batch.call_args[0][0][0]
        assert appointment.resource_id is None
        assert appointment.service_category == "daycare"

    def test_subject_of_another_customer(self, booking_service, catalog_mocks, mock_subject_repo):
        mock_subject_repo.get_subjects.return_value = [make_subject(customer_id=6)]

        with pytest.raises(ValidationError, match="does not belong to customer 5"):
            booking_service.create_appointment(_request())

    def test_unknown_customer(self, booking_service, catalog_mocks, mock_subject_repo):
        mock_subject_repo.get_customer.return_value = None

        with pytest.raises(RecordNotFoundError, match="Customer 5 not found"):
            booking_service.create_appointment(_request())

    def test_inactive_resource(self, booking_service, catalog_mocks, mock_resource_repo):
        mock_resource_repo.get_many.return_value = [make_resource(is_active=False)]

        with pytest.raises(ValidationError, match="is not active"):
            booking_service.create_appointment(_request())

    def test_missing_fields_rejected_before_store_access(
        self, booking_service, mock_subject_repo
    ):
        with pytest.raises(ValidationError, match="customer_id is required"):
            booking_service.create_appointment(_request(customer_id=None))
        mock_subject_repo.get_customer.assert_not_called()

    def test_overlap_conflict_propagates(
        self, booking_service, catalog_mocks, mock_appointment_repo
    ):
        mock_appointment_repo.create_batch.side_effect = OverlapConflictError(
            "Station 1 is already booked"
        )

        with pytest.raises(OverlapConflictError):
            booking_service.create_appointment(_request())


@pytest.mark.unit
@pytest.mark.services
@pytest.mark.appointment
class TestAppointmentTransitions:
    def _existing(self, **overrides):
        return make_appointment(
            datetime(2025, 1, 6, 10, 0), datetime(2025, 1, 6, 10, 45), **overrides
        )

    def test_approve_pending(self, booking_service, mock_appointment_repo):
        mock_appointment_repo.get_by_id.return_value = self._existing(status="pending")

        booking_service.approve_appointment(50)

        mock_appointment_repo.update_status.assert_called_once_with([50], "approved")

    def test_approve_requires_pending(self, booking_service, mock_appointment_repo):
        mock_appointment_repo.get_by_id.return_value = self._existing(status="approved")

        with pytest.raises(InvalidStateTransitionError, match="approved"):
            booking_service.approve_appointment(50)

    def test_cancel_single(self, booking_service, mock_appointment_repo):
        mock_appointment_repo.get_by_id.return_value = self._existing()

        assert booking_service.cancel_appointment(50) == [50]
        mock_appointment_repo.update_status.assert_called_once_with([50], "cancelled")

    def test_cancel_cascades_to_active_group_members(self, booking_service, mock_appointment_repo):
        mock_appointment_repo.get_by_id.return_value = self._existing(group_id="g-1")
        mock_appointment_repo.get_by_group.return_value = [
            self._existing(group_id="g-1"),
            self._existing(id=51, resource_id=2, group_id="g-1"),
            self._existing(id=52, resource_id=3, group_id="g-1", status="cancelled"),
        ]

        assert booking_service.cancel_appointment(50, cascade_group=True) == [50, 51]

    def test_cancel_twice_rejected(self, booking_service, mock_appointment_repo):
        mock_appointment_repo.get_by_id.return_value = self._existing(status="cancelled")

        with pytest.raises(InvalidStateTransitionError, match="already cancelled"):
            booking_service.cancel_appointment(50)

    def test_move_keeps_duration(
        self, booking_service, mock_appointment_repo, mock_resource_repo
    ):
        mock_appointment_repo.get_by_id.return_value = self._existing()
        mock_resource_repo.get_by_id.return_value = make_resource(buffer_minutes=15)

        booking_service.move_appointment(50, datetime(2025, 1, 6, 14, 0))

        mock_appointment_repo.move.assert_called_once_with(
            50, datetime(2025, 1, 6, 14, 0), datetime(2025, 1, 6, 14, 45), 15, resource_id=None
        )

    def test_move_to_another_resource_uses_its_buffer(
        self, booking_service, mock_appointment_repo, mock_resource_repo
    ):
        mock_appointment_repo.get_by_id.return_value = self._existing()
        mock_resource_repo.get_by_id.return_value = make_resource(
            id=2, name="Station 2", buffer_minutes=30
        )

        booking_service.move_appointment(
            50, datetime(2025, 1, 6, 14, 0), datetime(2025, 1, 6, 15, 0), resource_id=2
        )

        mock_resource_repo.get_by_id.assert_called_once_with(2)
        mock_appointment_repo.move.assert_called_once_with(
            50, datetime(2025, 1, 6, 14, 0), datetime(2025, 1, 6, 15, 0), 30, resource_id=2
        )

    def test_move_rejects_fractional_minutes(self, booking_service, mock_appointment_repo):
        mock_appointment_repo.get_by_id.return_value = self._existing()

        with pytest.raises(ValidationError, match="whole number of minutes"):
            booking_service.move_appointment(
                50, datetime(2025, 1, 6, 14, 0), datetime(2025, 1, 6, 14, 45, 30)
            )
        mock_appointment_repo.move.assert_not_called()

    def test_move_grouped_rejected(self, booking_service, mock_appointment_repo):
        mock_appointment_repo.get_by_id.return_value = self._existing(group_id="g-1")

        with pytest.raises(ValidationError, match="cannot be moved individually"):
            booking_service.move_appointment(50, datetime(2025, 1, 6, 14, 0))

    def test_unknown_appointment(self, booking_service):
        with pytest.raises(RecordNotFoundError, match="Appointment 50 not found"):
            booking_service.cancel_appointment(50)
