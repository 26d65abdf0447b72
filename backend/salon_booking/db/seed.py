"""
Database seeding for local development and demos.

Creates two grooming stations, weekday business hours, a handful of breeds
with duration rules, a daycare limit and a sample customer with one dog.
The function is idempotent: it does nothing once any station exists.
"""

import logging
from datetime import date, time
from typing import Optional

from salon_booking.db.base import Resource as DbResource
from salon_booking.db.session import SessionLocal
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

logger = logging.getLogger(__name__)

DEMO_BREEDS = {
    # breed: (station 1 minutes, station 2 minutes); None means not serviced
    "Poodle": (90, 120),
    "Labrador": (60, None),
    "Shih Tzu": (45, 45),
}


def seed_demo_data(db_session=None) -> bool:
    """Seed demo data; returns False when the database was already seeded."""
    db = db_session or SessionLocal()
    try:
        if db.query(DbResource.id).first() is not None:
            logger.debug("Demo data already present, skipping seed")
            return False

        resources = ResourceRepository(db)
        schedule = ScheduleRepository(db)
        subjects = SubjectRepository(db)
        rules = DurationRuleRepository(db)

        stations = [
            resources.create(Resource(name="Station 1", service_category="grooming")),
            resources.create(
                Resource(
                    name="Station 2",
                    service_category="grooming",
                    slot_interval_minutes=30,
                    buffer_minutes=15,
                )
            ),
        ]

        for weekday in range(0, 6):
            schedule.add_business_hours(
                OpeningInterval(weekday=weekday, open_time=time(8, 0), close_time=time(18, 0))
            )
        # Station 2 only works mornings on Saturdays
        schedule.add_resource_hours(
            OpeningInterval(
                weekday=5,
                open_time=time(8, 0),
                close_time=time(13, 0),
                resource_id=stations[1].id,
            )
        )
        schedule.set_daycare_limit(date.today(), 12)

        first_type: Optional[SubjectType] = None
        for breed, minutes in DEMO_BREEDS.items():
            subject_type = subjects.create_subject_type(SubjectType(name=breed))
            first_type = first_type or subject_type
            for station, duration in zip(stations, minutes):
                rules.upsert(
                    DurationRule(
                        subject_type_id=subject_type.id,
                        resource_id=station.id,
                        duration_minutes=duration,
                        is_supported=duration is not None,
                    )
                )

        customer = subjects.create_customer(
            Customer(full_name="Dana Demo", phone="5550100", email="dana@example.com")
        )
        subjects.create_subject(
            Subject(name="Biscuit", customer_id=customer.id, subject_type_id=first_type.id)
        )

        logger.info(
            "Demo data seeded",
            extra={
                "context": {
                    "stations": [s.id for s in stations],
                    "breeds": list(DEMO_BREEDS),
                }
            },
        )
        return True
    except Exception as e:
        db.rollback()
        logger.error(
            "Failed to seed demo data",
            extra={"context": {"error": str(e)}},
            exc_info=True,
        )
        raise
    finally:
        if db_session is None:
            db.close()
