"""
Unit tests for AvailabilityService.

Business hours are 09:00-17:00 every day (see ScheduleRepositoryFactory)
and the subject's breed takes 45 minutes at station 1 unless a test says
otherwise.
"""

from datetime import date, datetime, time

import pytest

from salon_booking.core.exceptions import (
    RecordNotFoundError,
    UnsupportedCombinationError,
    ValidationError,
)
from salon_booking.domain.entities import CalendarSettings, OpeningInterval, ResourceConstraint
from salon_booking.services.availability_service import UNLIMITED_CAPACITY
from tests.factories.repository_factories import (
    make_appointment,
    make_resource,
    make_rule,
    make_subject,
)

MONDAY = date(2025, 1, 6)


def _settings(days: int) -> CalendarSettings:
    return CalendarSettings(
        id=1,
        open_days_ahead=days,
        display_start_time=time(8, 0),
        display_end_time=time(20, 0),
    )


@pytest.fixture
def groomable(mock_subject_repo, mock_rule_repo, mock_resource_repo):
    """Dog 20 of breed 10, serviced at station 1 in 45 minutes."""
    mock_subject_repo.get_subject.return_value = make_subject()
    mock_rule_repo.list_for_subject_type.return_value = [make_rule()]
    mock_resource_repo.get_many.return_value = [make_resource()]


@pytest.mark.unit
@pytest.mark.services
@pytest.mark.availability
class TestAvailableTimes:
    def test_slides_duration_over_opening_hours(self, availability_service, groomable):
        """45-minute window, 60-minute step, 09:00-17:00 gives 09:00 through 16:00."""
        slots = availability_service.get_available_times(20, MONDAY, today=MONDAY)

        assert [s.time for s in slots] == [time(h, 0) for h in range(9, 17)]
        assert all(s.is_available for s in slots)
        assert all(s.duration_minutes == 45 and s.resource_id == 1 for s in slots)

    def test_existing_appointment_blocks_with_buffer(
        self, availability_service, groomable, mock_resource_repo, mock_appointment_repo
    ):
        """A 15-minute buffer blocks only the overlapping start."""
        mock_resource_repo.get_many.return_value = [make_resource(buffer_minutes=15)]
        mock_appointment_repo.get_active_for_resources.return_value = [
            make_appointment(datetime(2025, 1, 6, 10, 0), datetime(2025, 1, 6, 10, 45))
        ]

        slots = {s.time: s.is_available for s in availability_service.get_available_times(
            20, MONDAY, today=MONDAY
        )}

        assert slots[time(10, 0)] is False
        assert slots[time(9, 0)] is True
        assert slots[time(11, 0)] is True

    def test_past_starts_are_skipped(self, availability_service, groomable):
        """Starts before ``now`` are not offered."""
        slots = availability_service.get_available_times(
            20, MONDAY, today=MONDAY, now=datetime(2025, 1, 6, 12, 0)
        )

        assert [s.time.hour for s in slots] == [12, 13, 14, 15, 16]

    def test_ordered_by_time_then_resource(
        self, availability_service, mock_subject_repo, mock_rule_repo, mock_resource_repo
    ):
        """Candidates from several stations interleave by time, ties by station ID."""
        mock_subject_repo.get_subject.return_value = make_subject()
        mock_rule_repo.list_for_subject_type.return_value = [
            make_rule(resource_id=2),
            make_rule(resource_id=1),
        ]
        mock_resource_repo.get_many.return_value = [
            make_resource(id=2, name="Station 2", slot_interval_minutes=30),
            make_resource(id=1),
        ]

        slots = availability_service.get_available_times(20, MONDAY, today=MONDAY)

        keys = [(s.time, s.resource_id) for s in slots]
        assert keys == sorted(keys)
        assert keys[:3] == [(time(9, 0), 1), (time(9, 0), 2), (time(9, 30), 2)]

    def test_negative_constraint_removes_slots(
        self, availability_service, groomable, mock_schedule_repo
    ):
        """A blocked window on the station removes the starts it covers."""
        mock_schedule_repo.get_constraints.return_value = [
            ResourceConstraint(
                resource_id=1,
                start_at=datetime(2025, 1, 6, 9, 0),
                end_at=datetime(2025, 1, 6, 12, 0),
            )
        ]

        slots = availability_service.get_available_times(20, MONDAY, today=MONDAY)

        assert slots[0].time == time(12, 0)

    def test_station_hours_narrow_business_hours(
        self, availability_service, groomable, mock_schedule_repo
    ):
        mock_schedule_repo.get_resource_hours.return_value = [
            OpeningInterval(weekday=0, open_time=time(8, 0), close_time=time(11, 0), resource_id=1)
        ]

        slots = availability_service.get_available_times(20, MONDAY, today=MONDAY)

        assert [s.time for s in slots] == [time(9, 0), time(10, 0)]

    def test_date_outside_horizon_is_empty(self, availability_service, groomable):
        assert availability_service.get_available_times(20, date(2025, 3, 1), today=MONDAY) == []

    def test_unsupported_breed_raises(self, availability_service, mock_subject_repo):
        """No station services the breed: the caller must fall back to manual duration."""
        mock_subject_repo.get_subject.return_value = make_subject()

        with pytest.raises(UnsupportedCombinationError, match="manual duration"):
            availability_service.get_available_times(20, MONDAY, today=MONDAY)

    def test_unknown_subject(self, availability_service):
        with pytest.raises(RecordNotFoundError):
            availability_service.get_available_times(20, MONDAY, today=MONDAY)

    def test_daycare_has_no_time_slots(self, availability_service, groomable):
        with pytest.raises(ValidationError, match="per day"):
            availability_service.get_available_times(20, MONDAY, "daycare", today=MONDAY)


@pytest.mark.unit
@pytest.mark.services
@pytest.mark.availability
class TestAvailableDates:
    def test_every_horizon_day_reports_free_slots(
        self, availability_service, groomable, mock_settings_repo
    ):
        """Dates are ascending and inclusive of today + open_days_ahead."""
        mock_settings_repo.get_or_create.return_value = _settings(2)

        dates = availability_service.get_available_dates(20, "grooming", today=MONDAY)

        assert [d.date for d in dates] == [date(2025, 1, 6), date(2025, 1, 7), date(2025, 1, 8)]
        assert all(d.is_available and d.remaining_capacity == 8 for d in dates)

    def test_closed_booking_returns_empty(
        self, availability_service, mock_settings_repo, mock_subject_repo
    ):
        """open_days_ahead == 0 closes booking before any other lookup."""
        mock_settings_repo.get_or_create.return_value = _settings(0)

        assert availability_service.get_available_dates(20, "grooming", today=MONDAY) == []
        mock_subject_repo.get_subject.assert_not_called()

    def test_closed_day_is_unavailable(
        self, availability_service, groomable, mock_settings_repo, mock_schedule_repo
    ):
        mock_settings_repo.get_or_create.return_value = _settings(1)
        mock_schedule_repo.get_business_hours.side_effect = lambda weekday: (
            [] if weekday == 1 else [OpeningInterval(weekday, time(9, 0), time(17, 0))]
        )

        dates = availability_service.get_available_dates(20, "grooming", today=MONDAY)

        assert [(d.is_available, d.remaining_capacity) for d in dates] == [(True, 8), (False, 0)]

    def test_unknown_category(self, availability_service, groomable):
        with pytest.raises(ValidationError, match="Unknown service category"):
            availability_service.get_available_dates(20, "spa", today=MONDAY)

    def test_daycare_without_limit_is_unlimited(
        self, availability_service, groomable, mock_settings_repo
    ):
        mock_settings_repo.get_or_create.return_value = _settings(1)

        dates = availability_service.get_available_dates(20, "daycare", today=MONDAY)

        assert {d.remaining_capacity for d in dates} == {UNLIMITED_CAPACITY}

    def test_daycare_capacity_is_limit_minus_bookings(
        self,
        availability_service,
        groomable,
        mock_settings_repo,
        mock_schedule_repo,
        mock_appointment_repo,
    ):
        mock_settings_repo.get_or_create.return_value = _settings(1)
        mock_schedule_repo.get_daycare_limit.return_value = 12
        mock_appointment_repo.count_active_for_category.side_effect = [5, 12]

        dates = availability_service.get_available_dates(20, "daycare", today=MONDAY)

        assert [(d.remaining_capacity, d.is_available) for d in dates] == [(7, True), (0, False)]

    def test_daycare_zero_limit_means_no_cap(
        self,
        availability_service,
        groomable,
        mock_settings_repo,
        mock_schedule_repo,
        mock_appointment_repo,
    ):
        mock_settings_repo.get_or_create.return_value = _settings(1)
        mock_schedule_repo.get_daycare_limit.return_value = 0
        mock_appointment_repo.count_active_for_category.return_value = 40

        dates = availability_service.get_available_dates(20, "daycare", today=MONDAY)

        assert [(d.remaining_capacity, d.is_available) for d in dates] == [
            (UNLIMITED_CAPACITY, True),
            (UNLIMITED_CAPACITY, True),
        ]
        mock_appointment_repo.count_active_for_category.assert_not_called()
