"""
Appointment repository.

Overlap checks and inserts for a whole group run inside one database
transaction. On PostgreSQL the target resource rows are locked with
SELECT ... FOR UPDATE (in ID order, so concurrent groups cannot deadlock);
on SQLite the engine opens every transaction with BEGIN IMMEDIATE.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from salon_booking.core.exceptions import OverlapConflictError, RecordNotFoundError
from salon_booking.db.base import Appointment as DbAppointment
from salon_booking.db.base import Resource as DbResource
from salon_booking.db.base import Subject as DbSubject
from salon_booking.domain.entities import Appointment as DomainAppointment
from salon_booking.domain.interfaces import IAppointmentRepository

logger = logging.getLogger(__name__)


class AppointmentRepository(IAppointmentRepository):
    """Repository for Appointment persistence operations."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_by_id(self, appointment_id: int) -> Optional[DomainAppointment]:
        db_appointment = self.db.query(DbAppointment).filter_by(id=appointment_id).first()
        return self._to_domain(db_appointment) if db_appointment else None

    def get_by_group(self, group_id: str) -> List[DomainAppointment]:
        rows = (
            self.db.query(DbAppointment)
            .filter_by(group_id=group_id)
            .order_by(DbAppointment.id)
            .all()
        )
        return [self._to_domain(r) for r in rows]

    def get_active_for_resources(
        self, resource_ids: Sequence[int], window_start: datetime, window_end: datetime
    ) -> List[DomainAppointment]:
        if not resource_ids:
            return []
        rows = (
            self.db.query(DbAppointment)
            .filter(
                DbAppointment.resource_id.in_(list(resource_ids)),
                DbAppointment.status != "cancelled",
                DbAppointment.start_at < window_end,
                DbAppointment.end_at > window_start,
            )
            .order_by(DbAppointment.start_at, DbAppointment.id)
            .all()
        )
        return [self._to_domain(r) for r in rows]

    def count_active_for_category(
        self, service_category: str, window_start: datetime, window_end: datetime
    ) -> int:
        return (
            self.db.query(func.count(DbAppointment.id))
            .filter(
                DbAppointment.service_category == service_category,
                DbAppointment.status != "cancelled",
                DbAppointment.start_at >= window_start,
                DbAppointment.start_at < window_end,
            )
            .scalar()
            or 0
        )

    def create_batch(
        self, appointments: Sequence[DomainAppointment], buffers: Dict[int, int]
    ) -> List[DomainAppointment]:
        """Insert every appointment or none of them."""
        try:
            self._lock_resources(
                [a.resource_id for a in appointments if a.resource_id is not None]
            )
            for appointment in appointments:
                if appointment.resource_id is None:
                    continue
                conflict = self._find_conflict(
                    appointment.resource_id,
                    appointment.start_at,
                    appointment.end_at,
                    buffers.get(appointment.resource_id, 0),
                )
                if conflict is not None:
                    raise OverlapConflictError(
                        "This slot was just taken, please choose another time",
                        details={
                            "resource_id": appointment.resource_id,
                            "conflicting_appointment_id": conflict.id,
                        },
                    )

            rows = [self._to_db(a) for a in appointments]
            self.db.add_all(rows)
            self.db.flush()
            self.db.commit()
        except (OverlapConflictError, SQLAlchemyError):
            self.db.rollback()
            raise

        for row in rows:
            self.db.refresh(row)
        return [self._to_domain(r) for r in rows]

    def update_status(self, appointment_ids: Sequence[int], status: str) -> int:
        if not appointment_ids:
            return 0
        rows = (
            self.db.query(DbAppointment)
            .filter(DbAppointment.id.in_(list(appointment_ids)))
            .all()
        )
        for row in rows:
            row.status = status
        self.db.commit()
        return len(rows)

    def move(
        self,
        appointment_id: int,
        start_at: datetime,
        end_at: datetime,
        buffer_minutes: int,
        resource_id: Optional[int] = None,
    ) -> DomainAppointment:
        try:
            row = self.db.query(DbAppointment).filter_by(id=appointment_id).first()
            if row is None:
                raise RecordNotFoundError(
                    f"Appointment {appointment_id} not found", field="appointment_id"
                )
            target_resource_id = resource_id if resource_id is not None else row.resource_id
            if target_resource_id is not None:
                self._lock_resources([target_resource_id])
                conflict = self._find_conflict(
                    target_resource_id,
                    start_at,
                    end_at,
                    buffer_minutes,
                    exclude_id=row.id,
                )
                if conflict is not None:
                    raise OverlapConflictError(
                        "This slot was just taken, please choose another time",
                        details={
                            "resource_id": target_resource_id,
                            "conflicting_appointment_id": conflict.id,
                        },
                    )
            row.resource_id = target_resource_id
            row.start_at = start_at
            row.end_at = end_at
            self.db.commit()
        except (OverlapConflictError, RecordNotFoundError, SQLAlchemyError):
            self.db.rollback()
            raise
        self.db.refresh(row)
        return self._to_domain(row)

    def _lock_resources(self, resource_ids: Sequence[int]) -> None:
        ids = sorted(set(resource_ids))
        if not ids:
            return
        # FOR UPDATE is dropped by the SQLite dialect
        self.db.execute(
            select(DbResource.id)
            .where(DbResource.id.in_(ids))
            .order_by(DbResource.id)
            .with_for_update()
        ).all()

    def _find_conflict(
        self,
        resource_id: int,
        start_at: datetime,
        end_at: datetime,
        buffer_minutes: int,
        exclude_id: Optional[int] = None,
    ) -> Optional[DbAppointment]:
        padding = timedelta(minutes=buffer_minutes)
        query = self.db.query(DbAppointment).filter(
            DbAppointment.resource_id == resource_id,
            DbAppointment.status != "cancelled",
            DbAppointment.start_at < end_at + padding,
            DbAppointment.end_at > start_at - padding,
        )
        if exclude_id is not None:
            query = query.filter(DbAppointment.id != exclude_id)
        return query.order_by(DbAppointment.start_at).first()

    def _to_db(self, appointment: DomainAppointment) -> DbAppointment:
        row = DbAppointment(
            resource_id=appointment.resource_id,
            start_at=appointment.start_at,
            end_at=appointment.end_at,
            status=appointment.status,
            payment_status=appointment.payment_status,
            kind=appointment.kind,
            service_category=appointment.service_category,
            customer_id=appointment.customer_id,
            subject_id=appointment.subject_id,
            group_id=appointment.group_id,
            manual_override=appointment.manual_override,
            customer_notes=appointment.customer_notes,
            internal_notes=appointment.internal_notes,
        )
        subject_ids = list(appointment.subject_ids) or (
            [appointment.subject_id] if appointment.subject_id else []
        )
        if subject_ids:
            row.subjects = (
                self.db.query(DbSubject).filter(DbSubject.id.in_(subject_ids)).all()
            )
        return row

    def _to_domain(self, row: DbAppointment) -> DomainAppointment:
        return DomainAppointment(
            id=row.id,
            resource_id=row.resource_id,
            start_at=row.start_at,
            end_at=row.end_at,
            status=row.status,
            payment_status=row.payment_status,
            kind=row.kind,
            service_category=row.service_category,
            customer_id=row.customer_id,
            subject_id=row.subject_id,
            subject_ids=sorted(s.id for s in row.subjects),
            group_id=row.group_id,
            manual_override=row.manual_override,
            customer_notes=row.customer_notes,
            internal_notes=row.internal_notes,
            created_at=row.created_at,
        )
