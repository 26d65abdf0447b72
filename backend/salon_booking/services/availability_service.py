"""
Availability engine.

Computes which dates inside the booking horizon have at least one free slot
and, per date, every candidate start time on every station able to service
the subject. Results are advisory: booking re-validates against the store.

Per station and day:

    open hours = (station hours & business hours)        (business hours when
                                                          the station has none)
               + (positive constraints & business hours)
               - negative constraints

A window of the resolved duration slides over each open interval in steps
of the station's slot interval. A position is unavailable when it overlaps a
non-cancelled appointment on the station, widened by the station buffer.
"""

import logging
import time as perf_time
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

from salon_booking.core.exceptions import (
    RecordNotFoundError,
    UnsupportedCombinationError,
    ValidationError,
)
from salon_booking.core.logging_config import log_performance
from salon_booking.domain.entities import SERVICE_CATEGORIES, Subject
from salon_booking.domain.interfaces import (
    IAppointmentReader,
    IScheduleReader,
    ISubjectReader,
)
from salon_booking.services import intervals
from salon_booking.services.calendar_window import CalendarWindowPolicy, business_now
from salon_booking.services.duration_resolver import DurationResolver, ResolvedResource
from salon_booking.services.intervals import Interval

logger = logging.getLogger(__name__)

DAYCARE_CATEGORY = "daycare"
# Reported capacity when no daycare limit has ever been configured
UNLIMITED_CAPACITY = 99


@dataclass(frozen=True)
class DateAvailability:
    date: date
    is_available: bool
    remaining_capacity: int

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "is_available": self.is_available,
            "remaining_capacity": self.remaining_capacity,
        }


@dataclass(frozen=True)
class TimeAvailability:
    time: time
    is_available: bool
    duration_minutes: int
    resource_id: int
    requires_staff_approval: bool = False

    def to_dict(self) -> dict:
        return {
            "time": self.time.strftime("%H:%M"),
            "is_available": self.is_available,
            "duration_minutes": self.duration_minutes,
            "resource_id": self.resource_id,
            "requires_staff_approval": self.requires_staff_approval,
        }


class AvailabilityService:
    def __init__(
        self,
        calendar_policy: CalendarWindowPolicy,
        duration_resolver: DurationResolver,
        subject_repo: ISubjectReader,
        schedule_repo: IScheduleReader,
        appointment_repo: IAppointmentReader,
    ):
        self.calendar_policy = calendar_policy
        self.duration_resolver = duration_resolver
        self.subject_repo = subject_repo
        self.schedule_repo = schedule_repo
        self.appointment_repo = appointment_repo

    def get_available_dates(
        self,
        subject_id: int,
        service_category: str,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> List[DateAvailability]:
        """Every date of the horizon, ascending, with its free-slot count.

        An empty list means booking is closed (open_days_ahead == 0).
        """
        started = perf_time.perf_counter()
        horizon = self.calendar_policy.horizon(today)
        if horizon.is_empty:
            return []
        if service_category not in SERVICE_CATEGORIES:
            raise ValidationError(
                f"Unknown service category: {service_category}",
                field="service_category",
            )
        now = self._resolve_now(horizon.first_day, today, now)
        subject = self._require_subject(subject_id)

        if service_category == DAYCARE_CATEGORY:
            result = [self._daycare_date(day) for day in horizon.days()]
        else:
            resolved = self._resolve_resources(subject, service_category)
            result = []
            for day in horizon.days():
                free = sum(
                    1 for slot in self._day_slots(day, resolved, now) if slot.is_available
                )
                result.append(
                    DateAvailability(date=day, is_available=free > 0, remaining_capacity=free)
                )

        log_performance(
            "get_available_dates",
            (perf_time.perf_counter() - started) * 1000,
            subject_id=subject_id,
            service_category=service_category,
            days=len(result),
        )
        return result

    def get_available_times(
        self,
        subject_id: int,
        day: date,
        service_category: Optional[str] = None,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> List[TimeAvailability]:
        """Candidate start times on ``day`` ordered by time, then resource ID.

        Dates outside the horizon yield an empty list.
        """
        horizon = self.calendar_policy.horizon(today)
        if not horizon.contains(day):
            return []
        if service_category == DAYCARE_CATEGORY:
            raise ValidationError(
                "Daycare is booked per day, not per time slot",
                field="service_category",
            )
        now = self._resolve_now(horizon.first_day, today, now)
        subject = self._require_subject(subject_id)
        resolved = self._resolve_resources(subject, service_category)
        slots = self._day_slots(day, resolved, now)
        return sorted(slots, key=lambda slot: (slot.time, slot.resource_id))

    def _resolve_now(
        self, first_day: date, today: Optional[date], now: Optional[datetime]
    ) -> datetime:
        if now is not None:
            return now
        if today is not None:
            return datetime.combine(first_day, time.min)
        return business_now()

    def _require_subject(self, subject_id: int) -> Subject:
        subject = self.subject_repo.get_subject(subject_id)
        if subject is None:
            raise RecordNotFoundError(f"Subject {subject_id} not found", field="subject_id")
        return subject

    def _resolve_resources(
        self, subject: Subject, service_category: Optional[str]
    ) -> List[ResolvedResource]:
        if subject.subject_type_id is None:
            raise UnsupportedCombinationError(
                "Subject has no breed on record; book with a manual duration",
                details={"subject_id": subject.id},
            )
        resolved = self.duration_resolver.supporting_resources(
            subject.subject_type_id, service_category, remote_only=True
        )
        if not resolved:
            raise UnsupportedCombinationError(
                "No station services this breed; book with a manual duration",
                details={
                    "subject_id": subject.id,
                    "subject_type_id": subject.subject_type_id,
                    "service_category": service_category,
                },
            )
        return resolved

    def _day_slots(
        self, day: date, resolved: List[ResolvedResource], now: datetime
    ) -> List[TimeAvailability]:
        weekday = day.weekday()
        business = [
            Interval.from_times(h.open_time, h.close_time)
            for h in self.schedule_repo.get_business_hours(weekday)
        ]
        if not business:
            return []

        day_start = datetime.combine(day, time.min)
        day_end = day_start + timedelta(days=1)
        max_buffer = timedelta(minutes=max(r.resource.buffer_minutes for r in resolved))
        booked: Dict[int, list] = defaultdict(list)
        for appointment in self.appointment_repo.get_active_for_resources(
            [r.resource.id for r in resolved], day_start - max_buffer, day_end + max_buffer
        ):
            booked[appointment.resource_id].append(appointment)

        slots: List[TimeAvailability] = []
        for item in resolved:
            resource = item.resource
            duration = item.duration.minutes
            open_intervals = self._open_intervals(resource.id, weekday, business, day_start, day_end)
            buffer = timedelta(minutes=resource.buffer_minutes)
            blocks = [
                Interval.from_datetimes(a.start_at - buffer, a.end_at + buffer, day_start)
                for a in booked[resource.id]
            ]
            for start in intervals.slot_starts(
                open_intervals, duration, resource.slot_interval_minutes
            ):
                if day_start + timedelta(minutes=start) < now:
                    continue
                slots.append(
                    TimeAvailability(
                        time=intervals.to_time(start),
                        is_available=not intervals.overlaps_any(
                            start, start + duration, blocks
                        ),
                        duration_minutes=duration,
                        resource_id=resource.id,
                        requires_staff_approval=item.duration.requires_staff_approval,
                    )
                )
        return slots

    def _open_intervals(
        self,
        resource_id: int,
        weekday: int,
        business: List[Interval],
        day_start: datetime,
        day_end: datetime,
    ) -> List[Interval]:
        station_hours = [
            Interval.from_times(h.open_time, h.close_time)
            for h in self.schedule_repo.get_resource_hours(resource_id, weekday)
        ]
        base = intervals.intersect(station_hours, business) if station_hours else business

        positives: List[Interval] = []
        negatives: List[Interval] = []
        for constraint in self.schedule_repo.get_constraints(resource_id, day_start, day_end):
            interval = Interval.from_datetimes(constraint.start_at, constraint.end_at, day_start)
            (positives if constraint.is_positive else negatives).append(interval)

        opened = intervals.union(base, intervals.intersect(positives, business))
        return intervals.subtract(opened, negatives)

    def _daycare_date(self, day: date) -> DateAvailability:
        if not self.schedule_repo.get_business_hours(day.weekday()):
            return DateAvailability(date=day, is_available=False, remaining_capacity=0)
        limit = self.schedule_repo.get_daycare_limit(day)
        # a zero limit means no cap
        if not limit:
            return DateAvailability(
                date=day, is_available=True, remaining_capacity=UNLIMITED_CAPACITY
            )
        day_start = datetime.combine(day, time.min)
        booked = self.appointment_repo.count_active_for_category(
            DAYCARE_CATEGORY, day_start, day_start + timedelta(days=1)
        )
        remaining = max(limit - booked, 0)
        return DateAvailability(date=day, is_available=remaining > 0, remaining_capacity=remaining)
