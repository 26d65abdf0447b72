"""
Resource directory: the queryable list of bookable stations.
"""

from typing import List, Optional

from salon_booking.core.exceptions import RecordNotFoundError, ValidationError
from salon_booking.domain.entities import SERVICE_CATEGORIES, Resource
from salon_booking.domain.interfaces import IResourceReader


class ResourceDirectory:
    def __init__(self, resource_repo: IResourceReader):
        self.resource_repo = resource_repo

    def list_resources(
        self, service_category: Optional[str] = None, include_inactive: bool = False
    ) -> List[Resource]:
        if service_category is not None and service_category not in SERVICE_CATEGORIES:
            raise ValidationError(
                f"Unknown service category: {service_category}",
                field="service_category",
            )
        return self.resource_repo.list_resources(service_category, include_inactive)

    def get_resource(self, resource_id: int) -> Resource:
        resource = self.resource_repo.get_by_id(resource_id)
        if resource is None:
            raise RecordNotFoundError(
                f"Resource {resource_id} not found", field="resource_id"
            )
        return resource

    def require_active(self, resource_id: int) -> Resource:
        resource = self.get_resource(resource_id)
        if not resource.is_active:
            raise ValidationError(
                f"Resource {resource.name} is not active", field="resource_id"
            )
        return resource

    def require_active_many(self, resource_ids: List[int]) -> List[Resource]:
        """Resolve every ID to an active resource, preserving request order."""
        if len(set(resource_ids)) != len(resource_ids):
            raise ValidationError("Duplicate resource ids", field="resource_ids")
        found = {r.id: r for r in self.resource_repo.get_many(resource_ids)}
        resources = []
        for resource_id in resource_ids:
            resource = found.get(resource_id)
            if resource is None:
                raise RecordNotFoundError(
                    f"Resource {resource_id} not found", field="resource_ids"
                )
            if not resource.is_active:
                raise ValidationError(
                    f"Resource {resource.name} is not active", field="resource_ids"
                )
            resources.append(resource)
        return resources
