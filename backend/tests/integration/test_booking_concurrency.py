"""
Concurrent sessions on a file-backed SQLite database: writers racing for
the same slot, and readers that must not wait for each other.
"""

import threading
from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from salon_booking.core.exceptions import OverlapConflictError
from salon_booking.db.session import Base, build_engine, read_only_engine
from salon_booking.repositories import (
    AppointmentRepository,
    DurationRuleRepository,
    ResourceRepository,
    SubjectRepository,
)
from salon_booking.schemas.dtos import BookingRequest
from salon_booking.services.booking_service import BookingService
from salon_booking.services.duration_resolver import DurationResolver
from salon_booking.services.resource_directory import ResourceDirectory
from tests.fixtures.database_fixtures import seed_catalog

pytestmark = [pytest.mark.integration, pytest.mark.concurrency, pytest.mark.slow]


@pytest.fixture
def file_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


def _booking_service(session) -> BookingService:
    resources = ResourceRepository(session)
    subjects = SubjectRepository(session)
    return BookingService(
        AppointmentRepository(session),
        subjects,
        ResourceDirectory(resources),
        DurationResolver(DurationRuleRepository(session), resources, subjects),
    )


def test_only_one_of_two_concurrent_bookings_wins(file_engine):
    Session = sessionmaker(bind=file_engine, expire_on_commit=False)
    seed_session = Session()
    try:
        catalog = seed_catalog(seed_session)
    finally:
        seed_session.close()

    start = datetime.combine(datetime.now().date() + timedelta(days=1), datetime.min.time())
    request = BookingRequest(
        kind="business",
        start_at=start.replace(hour=10),
        end_at=start.replace(hour=10, minute=45),
        resource_ids=[catalog.station.id],
        customer_id=catalog.customer.id,
        subject_ids=[catalog.dog.id],
    )
    barrier = threading.Barrier(2)
    outcomes = []

    def attempt():
        session = Session()
        try:
            service = _booking_service(session)
            barrier.wait()
            outcomes.append(service.create_appointment(request))
        except OverlapConflictError as e:
            outcomes.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=attempt) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    conflicts = [o for o in outcomes if isinstance(o, OverlapConflictError)]
    assert len(outcomes) == 2
    assert len(conflicts) == 1

    check = Session()
    try:
        window = (start, start + timedelta(days=1))
        booked = AppointmentRepository(check).get_active_for_resources(
            [catalog.station.id], *window
        )
    finally:
        check.close()
    assert len(booked) == 1


def test_read_sessions_do_not_wait_for_each_other(file_engine):
    Session = sessionmaker(bind=file_engine, expire_on_commit=False)
    ReadSession = sessionmaker(bind=read_only_engine(file_engine), expire_on_commit=False)
    seed_session = Session()
    try:
        catalog = seed_catalog(seed_session)
    finally:
        seed_session.close()

    start = datetime.combine(datetime.now().date() + timedelta(days=1), datetime.min.time())
    window = (start, start + timedelta(days=1))
    results = []

    def read():
        session = ReadSession()
        try:
            results.append(
                AppointmentRepository(session).get_active_for_resources(
                    [catalog.station.id], *window
                )
            )
        finally:
            session.close()

    thread = threading.Thread(target=read)
    holder = ReadSession()
    try:
        AppointmentRepository(holder).get_active_for_resources([catalog.station.id], *window)
        assert holder.in_transaction()

        thread.start()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert results == [[]]
    finally:
        holder.close()
        if thread.is_alive():
            thread.join(timeout=60)
