"""Duration rule repository."""

from typing import List, Optional

from salon_booking.db.base import DurationRule as DbDurationRule
from salon_booking.domain.entities import DurationRule as DomainDurationRule
from salon_booking.domain.interfaces import IDurationRuleRepository


class DurationRuleRepository(IDurationRuleRepository):
    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_rule(
        self, subject_type_id: int, resource_id: int
    ) -> Optional[DomainDurationRule]:
        row = (
            self.db.query(DbDurationRule)
            .filter_by(subject_type_id=subject_type_id, resource_id=resource_id)
            .first()
        )
        return self._to_domain(row) if row else None

    def list_for_subject_type(self, subject_type_id: int) -> List[DomainDurationRule]:
        rows = (
            self.db.query(DbDurationRule)
            .filter_by(subject_type_id=subject_type_id)
            .order_by(DbDurationRule.resource_id)
            .all()
        )
        return [self._to_domain(r) for r in rows]

    def upsert(self, rule: DomainDurationRule) -> DomainDurationRule:
        """Create or replace the single rule for the (subject type, resource) pair."""
        row = (
            self.db.query(DbDurationRule)
            .filter_by(subject_type_id=rule.subject_type_id, resource_id=rule.resource_id)
            .first()
        )
        if row is None:
            row = DbDurationRule(
                subject_type_id=rule.subject_type_id, resource_id=rule.resource_id
            )
            self.db.add(row)
        row.duration_minutes = rule.duration_minutes
        row.is_supported = rule.is_supported
        row.is_active = rule.is_active
        row.remote_booking_allowed = rule.remote_booking_allowed
        row.requires_staff_approval = rule.requires_staff_approval
        self.db.commit()
        self.db.refresh(row)
        return self._to_domain(row)

    def _to_domain(self, row: DbDurationRule) -> DomainDurationRule:
        return DomainDurationRule(
            id=row.id,
            subject_type_id=row.subject_type_id,
            resource_id=row.resource_id,
            duration_minutes=row.duration_minutes,
            is_supported=row.is_supported,
            is_active=row.is_active,
            remote_booking_allowed=row.remote_booking_allowed,
            requires_staff_approval=row.requires_staff_approval,
        )
