"""
Duration resolution for (subject type, resource) pairs.

Lookups return a DurationResult with one of three outcomes:

- ``supported``: the exact minutes to book
- ``unsupported``: the resource cannot service this subject type; automatic
  duration must be blocked and a manual override required
- ``error``: the rules could not be read; the caller must surface a retryable
  error and never fall back to a default

Every result carries the SelectionKey it was computed for, so callers that
issue lookups while the user keeps changing the selection can drop responses
for stale selections (see SelectionTracker).
"""

import enum
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from salon_booking.core.exceptions import (
    DurationLookupError,
    RecordNotFoundError,
    UnsupportedCombinationError,
    ValidationError,
)
from salon_booking.domain.entities import Resource
from salon_booking.domain.interfaces import (
    IDurationRuleReader,
    IResourceReader,
    ISubjectReader,
)

logger = logging.getLogger(__name__)


class DurationStatus(str, enum.Enum):
    SUPPORTED = "supported"
    UNSUPPORTED = "unsupported"
    ERROR = "error"


@dataclass(frozen=True)
class SelectionKey:
    subject_type_id: int
    resource_id: int


@dataclass(frozen=True)
class DurationResult:
    status: DurationStatus
    selection_key: SelectionKey
    minutes: Optional[int] = None
    reason: Optional[str] = None
    requires_staff_approval: bool = False

    @property
    def is_supported(self) -> bool:
        return self.status is DurationStatus.SUPPORTED

    def require_minutes(self) -> int:
        """Return the minutes or raise the error matching the outcome."""
        if self.status is DurationStatus.SUPPORTED:
            return self.minutes
        details = {
            "subject_type_id": self.selection_key.subject_type_id,
            "resource_id": self.selection_key.resource_id,
        }
        if self.status is DurationStatus.UNSUPPORTED:
            raise UnsupportedCombinationError(
                self.reason or "This station does not service this breed",
                details=details,
            )
        raise DurationLookupError(
            self.reason or "Duration lookup failed, please retry", details=details
        )

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "minutes": self.minutes,
            "reason": self.reason,
            "requires_staff_approval": self.requires_staff_approval,
            "subject_type_id": self.selection_key.subject_type_id,
            "resource_id": self.selection_key.resource_id,
        }


@dataclass(frozen=True)
class ResolvedResource:
    resource: Resource
    duration: DurationResult


class DurationResolver:
    """Stateless resolver over the current duration rules."""

    def __init__(
        self,
        rule_repo: IDurationRuleReader,
        resource_repo: IResourceReader,
        subject_repo: ISubjectReader,
    ):
        self.rule_repo = rule_repo
        self.resource_repo = resource_repo
        self.subject_repo = subject_repo

    def resolve_duration(
        self, subject_type_id: int, resource_id: int, remote_only: bool = False
    ) -> DurationResult:
        """Resolve minutes for a pair of active entities.

        Raises ValidationError if either ID is unknown or inactive. Store
        failures become an ``error`` result.
        """
        key = SelectionKey(subject_type_id, resource_id)
        try:
            subject_type = self.subject_repo.get_subject_type(subject_type_id)
            resource = self.resource_repo.get_by_id(resource_id)
            if subject_type is None:
                raise RecordNotFoundError(
                    f"Subject type {subject_type_id} not found", field="subject_type_id"
                )
            if not subject_type.is_active:
                raise ValidationError(
                    f"Subject type {subject_type.name} is not active",
                    field="subject_type_id",
                )
            if resource is None:
                raise RecordNotFoundError(
                    f"Resource {resource_id} not found", field="resource_id"
                )
            if not resource.is_active:
                raise ValidationError(
                    f"Resource {resource.name} is not active", field="resource_id"
                )
            rule = self.rule_repo.get_rule(subject_type_id, resource_id)
        except SQLAlchemyError as e:
            logger.error(
                "Duration lookup failed",
                extra={
                    "context": {
                        "subject_type_id": subject_type_id,
                        "resource_id": resource_id,
                        "error": str(e),
                    }
                },
                exc_info=True,
            )
            return DurationResult(
                status=DurationStatus.ERROR,
                selection_key=key,
                reason="Duration lookup failed, please retry",
            )

        return self._evaluate(key, rule, resource, remote_only)

    def resolve_for_subject(
        self, subject_id: int, resource_id: int, remote_only: bool = False
    ) -> DurationResult:
        subject = self.subject_repo.get_subject(subject_id)
        if subject is None:
            raise RecordNotFoundError(f"Subject {subject_id} not found", field="subject_id")
        if subject.subject_type_id is None:
            return DurationResult(
                status=DurationStatus.UNSUPPORTED,
                selection_key=SelectionKey(0, resource_id),
                reason="Subject has no breed on record",
            )
        return self.resolve_duration(subject.subject_type_id, resource_id, remote_only)

    def supporting_resources(
        self,
        subject_type_id: int,
        service_category: Optional[str] = None,
        remote_only: bool = True,
    ) -> List[ResolvedResource]:
        """Active resources that can service the subject type, ordered by ID.

        Raises DurationLookupError when the rules cannot be read.
        """
        try:
            rules = self.rule_repo.list_for_subject_type(subject_type_id)
            resources = {
                r.id: r for r in self.resource_repo.get_many([x.resource_id for x in rules])
            }
        except SQLAlchemyError as e:
            logger.error(
                "Duration rules unavailable",
                extra={"context": {"subject_type_id": subject_type_id, "error": str(e)}},
                exc_info=True,
            )
            raise DurationLookupError(
                "Duration rules are temporarily unavailable, please retry",
                details={"subject_type_id": subject_type_id},
            )

        supported: List[ResolvedResource] = []
        for rule in rules:
            resource = resources.get(rule.resource_id)
            if resource is None or not resource.is_active:
                continue
            if service_category and resource.service_category != service_category:
                continue
            result = self._evaluate(
                SelectionKey(subject_type_id, rule.resource_id), rule, resource, remote_only
            )
            if result.is_supported:
                supported.append(ResolvedResource(resource=resource, duration=result))
        return sorted(supported, key=lambda item: item.resource.id)

    def _evaluate(self, key: SelectionKey, rule, resource: Resource, remote_only: bool) -> DurationResult:
        if rule is None:
            return DurationResult(
                status=DurationStatus.UNSUPPORTED,
                selection_key=key,
                reason="No duration is defined for this breed at this station",
            )
        if not rule.is_active or not rule.is_supported:
            return DurationResult(
                status=DurationStatus.UNSUPPORTED,
                selection_key=key,
                reason="This station does not service this breed",
            )
        if remote_only and not rule.remote_booking_allowed:
            return DurationResult(
                status=DurationStatus.UNSUPPORTED,
                selection_key=key,
                reason="This breed cannot be booked online at this station",
            )
        return DurationResult(
            status=DurationStatus.SUPPORTED,
            selection_key=key,
            minutes=rule.duration_minutes or resource.base_duration_minutes,
            requires_staff_approval=rule.requires_staff_approval,
        )


class SelectionTracker:
    """Caller-side correlation of duration lookups with the current selection.

    Call ``select`` whenever the user changes subject type or resource and
    pass every response through ``accept``; responses issued for an older
    selection are discarded.
    """

    def __init__(self):
        self._current: Optional[SelectionKey] = None

    @property
    def current(self) -> Optional[SelectionKey]:
        return self._current

    def select(self, subject_type_id: int, resource_id: int) -> SelectionKey:
        self._current = SelectionKey(subject_type_id, resource_id)
        return self._current

    def accept(self, result: DurationResult) -> Optional[DurationResult]:
        if result.selection_key != self._current:
            logger.debug(
                "Discarding stale duration result",
                extra={
                    "context": {
                        "result_key": result.selection_key,
                        "current_key": self._current,
                    }
                },
            )
            return None
        return result
