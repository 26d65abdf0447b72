"""
Per-request dependency wiring for the API blueprints.

One SQLAlchemy session is opened lazily per request and stored on
``flask.g``; ``close_db_session`` is registered as an app-context teardown
in ``create_app``. Safe methods get a read session whose SQLite
transactions begin deferred, so concurrent lookups do not serialize.
"""

from flask import current_app, g, request

from salon_booking.db.session import ReadSessionLocal, SessionLocal
from salon_booking.domain.interfaces import INotificationDispatcher
from salon_booking.repositories import (
    AppointmentRepository,
    CalendarSettingsRepository,
    DurationRuleRepository,
    ProposedMeetingRepository,
    ResourceRepository,
    ScheduleRepository,
    SubjectRepository,
)
from salon_booking.services.availability_service import AvailabilityService
from salon_booking.services.booking_service import BookingService
from salon_booking.services.calendar_window import CalendarWindowPolicy
from salon_booking.services.duration_resolver import DurationResolver
from salon_booking.services.notification_service import WebhookNotificationDispatcher
from salon_booking.services.proposed_meeting_service import ProposedMeetingService
from salon_booking.services.resource_directory import ResourceDirectory


READ_ONLY_METHODS = ("GET", "HEAD", "OPTIONS")


def get_db_session():
    if "db" not in g:
        g.db = ReadSessionLocal() if request.method in READ_ONLY_METHODS else SessionLocal()
    return g.db


def close_db_session(exc=None) -> None:
    db = g.pop("db", None)
    if db is not None:
        db.close()


def get_resource_directory() -> ResourceDirectory:
    return ResourceDirectory(ResourceRepository(get_db_session()))


def get_calendar_policy() -> CalendarWindowPolicy:
    return CalendarWindowPolicy(CalendarSettingsRepository(get_db_session()))


def get_duration_resolver() -> DurationResolver:
    db = get_db_session()
    return DurationResolver(
        DurationRuleRepository(db), ResourceRepository(db), SubjectRepository(db)
    )


def get_availability_service() -> AvailabilityService:
    db = get_db_session()
    return AvailabilityService(
        calendar_policy=get_calendar_policy(),
        duration_resolver=get_duration_resolver(),
        subject_repo=SubjectRepository(db),
        schedule_repo=ScheduleRepository(db),
        appointment_repo=AppointmentRepository(db),
    )


def get_booking_service() -> BookingService:
    db = get_db_session()
    return BookingService(
        appointment_repo=AppointmentRepository(db),
        subject_repo=SubjectRepository(db),
        resource_directory=get_resource_directory(),
        duration_resolver=get_duration_resolver(),
    )


def get_notification_dispatcher() -> INotificationDispatcher:
    """Dispatcher from app config (NOTIFICATION_DISPATCHER) or the webhook default."""
    dispatcher = current_app.config.get("NOTIFICATION_DISPATCHER")
    return dispatcher or WebhookNotificationDispatcher()


def get_proposed_meeting_service() -> ProposedMeetingService:
    db = get_db_session()
    return ProposedMeetingService(
        meeting_repo=ProposedMeetingRepository(db),
        subject_repo=SubjectRepository(db),
        appointment_repo=AppointmentRepository(db),
        resource_directory=get_resource_directory(),
        booking_service=get_booking_service(),
        dispatcher=get_notification_dispatcher(),
    )
