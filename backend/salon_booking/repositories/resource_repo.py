"""Resource (station) repository."""

from typing import List, Optional, Sequence

from salon_booking.db.base import Resource as DbResource
from salon_booking.domain.entities import Resource as DomainResource
from salon_booking.domain.interfaces import IResourceRepository


class ResourceRepository(IResourceRepository):
    """Repository for Resource persistence operations."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_by_id(self, resource_id: int) -> Optional[DomainResource]:
        db_resource = self.db.query(DbResource).filter_by(id=resource_id).first()
        return self._to_domain(db_resource) if db_resource else None

    def get_many(self, resource_ids: Sequence[int]) -> List[DomainResource]:
        if not resource_ids:
            return []
        rows = (
            self.db.query(DbResource)
            .filter(DbResource.id.in_(list(resource_ids)))
            .order_by(DbResource.id)
            .all()
        )
        return [self._to_domain(r) for r in rows]

    def list_resources(
        self, service_category: Optional[str] = None, include_inactive: bool = False
    ) -> List[DomainResource]:
        query = self.db.query(DbResource)
        if service_category:
            query = query.filter(DbResource.service_category == service_category)
        if not include_inactive:
            query = query.filter(DbResource.is_active.is_(True))
        rows = query.order_by(DbResource.name, DbResource.id).all()
        return [self._to_domain(r) for r in rows]

    def create(self, resource: DomainResource) -> DomainResource:
        db_resource = DbResource(
            name=resource.name.strip(),
            service_category=resource.service_category,
            is_active=resource.is_active,
            base_duration_minutes=resource.base_duration_minutes,
            slot_interval_minutes=resource.slot_interval_minutes,
            buffer_minutes=resource.buffer_minutes,
        )
        self.db.add(db_resource)
        self.db.commit()
        self.db.refresh(db_resource)
        return self._to_domain(db_resource)

    def _to_domain(self, db_resource: DbResource) -> DomainResource:
        return DomainResource(
            id=db_resource.id,
            name=db_resource.name,
            service_category=db_resource.service_category,
            is_active=db_resource.is_active,
            base_duration_minutes=db_resource.base_duration_minutes,
            slot_interval_minutes=db_resource.slot_interval_minutes,
            buffer_minutes=db_resource.buffer_minutes,
        )
