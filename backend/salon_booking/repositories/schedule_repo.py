"""Opening hours, dated resource constraints and daycare capacity."""

from datetime import date, datetime
from typing import List, Optional

from salon_booking.db.base import BusinessHours as DbBusinessHours
from salon_booking.db.base import DaycareCapacityLimit as DbDaycareCapacityLimit
from salon_booking.db.base import ResourceConstraint as DbResourceConstraint
from salon_booking.db.base import ResourceOperatingHours as DbResourceOperatingHours
from salon_booking.domain.entities import OpeningInterval, ResourceConstraint
from salon_booking.domain.interfaces import IScheduleRepository


class ScheduleRepository(IScheduleRepository):
    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_business_hours(self, weekday: int) -> List[OpeningInterval]:
        rows = (
            self.db.query(DbBusinessHours)
            .filter_by(weekday=weekday)
            .order_by(DbBusinessHours.open_time)
            .all()
        )
        return [
            OpeningInterval(weekday=r.weekday, open_time=r.open_time, close_time=r.close_time)
            for r in rows
        ]

    def get_resource_hours(self, resource_id: int, weekday: int) -> List[OpeningInterval]:
        rows = (
            self.db.query(DbResourceOperatingHours)
            .filter_by(resource_id=resource_id, weekday=weekday)
            .order_by(DbResourceOperatingHours.open_time)
            .all()
        )
        return [
            OpeningInterval(
                weekday=r.weekday,
                open_time=r.open_time,
                close_time=r.close_time,
                resource_id=r.resource_id,
            )
            for r in rows
        ]

    def get_constraints(
        self, resource_id: int, window_start: datetime, window_end: datetime
    ) -> List[ResourceConstraint]:
        rows = (
            self.db.query(DbResourceConstraint)
            .filter(
                DbResourceConstraint.resource_id == resource_id,
                DbResourceConstraint.start_at < window_end,
                DbResourceConstraint.end_at > window_start,
            )
            .order_by(DbResourceConstraint.start_at)
            .all()
        )
        return [self._constraint_to_domain(r) for r in rows]

    def get_daycare_limit(self, day: date) -> Optional[int]:
        row = (
            self.db.query(DbDaycareCapacityLimit)
            .filter(DbDaycareCapacityLimit.effective_date <= day)
            .order_by(DbDaycareCapacityLimit.effective_date.desc())
            .first()
        )
        return row.total_limit if row else None

    def add_business_hours(self, interval: OpeningInterval) -> OpeningInterval:
        self.db.add(
            DbBusinessHours(
                weekday=interval.weekday,
                open_time=interval.open_time,
                close_time=interval.close_time,
            )
        )
        self.db.commit()
        return interval

    def add_resource_hours(self, interval: OpeningInterval) -> OpeningInterval:
        if interval.resource_id is None:
            raise ValueError("resource_id is required for resource hours")
        self.db.add(
            DbResourceOperatingHours(
                resource_id=interval.resource_id,
                weekday=interval.weekday,
                open_time=interval.open_time,
                close_time=interval.close_time,
            )
        )
        self.db.commit()
        return interval

    def add_constraint(self, constraint: ResourceConstraint) -> ResourceConstraint:
        row = DbResourceConstraint(
            resource_id=constraint.resource_id,
            start_at=constraint.start_at,
            end_at=constraint.end_at,
            is_positive=constraint.is_positive,
            reason=constraint.reason,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return self._constraint_to_domain(row)

    def set_daycare_limit(self, effective_date: date, total_limit: int) -> None:
        row = (
            self.db.query(DbDaycareCapacityLimit)
            .filter_by(effective_date=effective_date)
            .first()
        )
        if row is None:
            row = DbDaycareCapacityLimit(effective_date=effective_date)
            self.db.add(row)
        row.total_limit = total_limit
        self.db.commit()

    def _constraint_to_domain(self, row: DbResourceConstraint) -> ResourceConstraint:
        return ResourceConstraint(
            id=row.id,
            resource_id=row.resource_id,
            start_at=row.start_at,
            end_at=row.end_at,
            is_positive=row.is_positive,
            reason=row.reason,
        )
