"""
Calendar window policy: booking horizon and manager display hours.

Settings are read from the store on every call; nothing is cached between
computations so an operator change applies to the very next request.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from salon_booking.core.config import APP_TZ
from salon_booking.core.exceptions import ConfigurationUnavailableError, ValidationError
from salon_booking.domain.entities import CalendarSettings
from salon_booking.domain.interfaces import ICalendarSettingsRepository

logger = logging.getLogger(__name__)


def business_now() -> datetime:
    """Current naive wall-clock time in the business timezone."""
    return datetime.now(APP_TZ).replace(tzinfo=None)


@dataclass(frozen=True)
class BookingHorizon:
    """Inclusive range of bookable dates; empty when booking is closed."""

    first_day: date
    last_day: Optional[date]

    @property
    def is_empty(self) -> bool:
        return self.last_day is None

    def contains(self, day: date) -> bool:
        return not self.is_empty and self.first_day <= day <= self.last_day

    def days(self) -> List[date]:
        if self.is_empty:
            return []
        count = (self.last_day - self.first_day).days + 1
        return [self.first_day + timedelta(days=offset) for offset in range(count)]


class CalendarWindowPolicy:
    def __init__(self, settings_repo: ICalendarSettingsRepository):
        self.settings_repo = settings_repo

    def get_settings(self) -> CalendarSettings:
        try:
            return self.settings_repo.get_or_create()
        except SQLAlchemyError as e:
            logger.error(
                "Calendar settings unavailable",
                extra={"context": {"error": str(e)}},
                exc_info=True,
            )
            raise ConfigurationUnavailableError(
                "Calendar settings are temporarily unavailable"
            )

    def update_settings(
        self,
        open_days_ahead: Optional[int] = None,
        display_start_time: Optional[time] = None,
        display_end_time: Optional[time] = None,
    ) -> CalendarSettings:
        """Apply a partial update and return the committed settings."""
        current = self.get_settings()
        if open_days_ahead is not None and (
            isinstance(open_days_ahead, bool) or not isinstance(open_days_ahead, int)
        ):
            raise ValidationError(
                "open_days_ahead must be an integer", field="open_days_ahead"
            )
        try:
            updated = CalendarSettings(
                id=current.id,
                open_days_ahead=(
                    current.open_days_ahead if open_days_ahead is None else open_days_ahead
                ),
                display_start_time=display_start_time or current.display_start_time,
                display_end_time=display_end_time or current.display_end_time,
            )
        except ValueError as e:
            raise ValidationError(str(e))

        saved = self.settings_repo.update(updated)
        logger.info(
            "Calendar settings updated",
            extra={
                "context": {
                    "open_days_ahead": saved.open_days_ahead,
                    "display_start": saved.display_start_time.isoformat("minutes"),
                    "display_end": saved.display_end_time.isoformat("minutes"),
                }
            },
        )
        return saved

    def horizon(self, today: Optional[date] = None) -> BookingHorizon:
        """Today (inclusive) through today + open_days_ahead (inclusive)."""
        today = today or business_now().date()
        settings = self.get_settings()
        if settings.is_closed:
            return BookingHorizon(first_day=today, last_day=None)
        return BookingHorizon(
            first_day=today, last_day=today + timedelta(days=settings.open_days_ahead)
        )
