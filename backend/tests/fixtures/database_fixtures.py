"""
Database test fixtures and utilities.

Every test gets its own in-memory SQLite database built through the same
``build_engine`` the application uses, so engine listeners are exercised.
"""

from datetime import time
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import sessionmaker

from salon_booking.db import base  # noqa: F401
from salon_booking.db.session import Base, build_engine
from salon_booking.domain.entities import (
    Customer,
    DurationRule,
    OpeningInterval,
    Resource,
    Subject,
    SubjectType,
)
from salon_booking.repositories import (
    DurationRuleRepository,
    ResourceRepository,
    ScheduleRepository,
    SubjectRepository,
)


@pytest.fixture
def db_engine():
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Provide an isolated database session."""
    TestSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=db_engine
    )
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


def seed_catalog(session, rule_minutes=45, open_time=time(9, 0), close_time=time(17, 0)):
    """One grooming station open every day, one breed, one customer with a dog.

    Returns a namespace with the created domain objects.
    """
    resources = ResourceRepository(session)
    schedule = ScheduleRepository(session)
    subjects = SubjectRepository(session)
    rules = DurationRuleRepository(session)

    station = resources.create(Resource(name="Station 1", service_category="grooming"))
    second = resources.create(Resource(name="Station 2", service_category="grooming"))
    for weekday in range(7):
        schedule.add_business_hours(
            OpeningInterval(weekday=weekday, open_time=open_time, close_time=close_time)
        )
    breed = subjects.create_subject_type(SubjectType(name="Poodle"))
    rules.upsert(
        DurationRule(
            subject_type_id=breed.id, resource_id=station.id, duration_minutes=rule_minutes
        )
    )
    customer = subjects.create_customer(
        Customer(full_name="Ana Souza", phone="5550001", email="ana@example.com")
    )
    dog = subjects.create_subject(
        Subject(name="Biscuit", customer_id=customer.id, subject_type_id=breed.id)
    )
    return SimpleNamespace(
        station=station, second=second, breed=breed, customer=customer, dog=dog
    )


@pytest.fixture
def catalog(db_session):
    return seed_catalog(db_session)
