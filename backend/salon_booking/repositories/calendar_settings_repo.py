"""Calendar settings repository (singleton row with id 1)."""

import logging

from sqlalchemy.exc import IntegrityError

from salon_booking.core import config
from salon_booking.db.base import CalendarSettings as DbCalendarSettings
from salon_booking.domain.entities import CalendarSettings as DomainCalendarSettings
from salon_booking.domain.interfaces import ICalendarSettingsRepository

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1


class CalendarSettingsRepository(ICalendarSettingsRepository):
    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_or_create(self) -> DomainCalendarSettings:
        row = self._load()
        if row is None:
            row = DbCalendarSettings(
                id=SETTINGS_ROW_ID,
                open_days_ahead=config.DEFAULT_OPEN_DAYS_AHEAD,
                display_start_time=config.DEFAULT_DISPLAY_START,
                display_end_time=config.DEFAULT_DISPLAY_END,
            )
            self.db.add(row)
            try:
                self.db.commit()
            except IntegrityError:
                # Another request materialized the defaults first
                self.db.rollback()
                row = self._load()
            else:
                logger.info(
                    "Calendar settings created with defaults",
                    extra={"context": {"open_days_ahead": row.open_days_ahead}},
                )
        return self._to_domain(row)

    def update(self, settings: DomainCalendarSettings) -> DomainCalendarSettings:
        self.get_or_create()
        row = self._load()
        row.open_days_ahead = settings.open_days_ahead
        row.display_start_time = settings.display_start_time
        row.display_end_time = settings.display_end_time
        self.db.commit()
        self.db.refresh(row)
        return self._to_domain(row)

    def _load(self):
        # populate_existing so a long-lived session still sees the latest commit
        return (
            self.db.query(DbCalendarSettings)
            .populate_existing()
            .filter_by(id=SETTINGS_ROW_ID)
            .first()
        )

    def _to_domain(self, row: DbCalendarSettings) -> DomainCalendarSettings:
        return DomainCalendarSettings(
            id=row.id,
            open_days_ahead=row.open_days_ahead,
            display_start_time=row.display_start_time,
            display_end_time=row.display_end_time,
            updated_at=row.updated_at,
        )
