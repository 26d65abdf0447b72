"""
Abstract interfaces for repositories and outbound collaborators.

These interfaces define contracts without implementation details,
enabling dependency injection and easier testing.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Tuple

from .entities import (
    Appointment,
    CalendarSettings,
    Customer,
    DurationRule,
    OpeningInterval,
    ProposedMeeting,
    ProposedMeetingInvite,
    Resource,
    ResourceConstraint,
    Subject,
    SubjectType,
)


class IResourceReader(ABC):
    """Interface for station read operations."""

    @abstractmethod
    def get_by_id(self, resource_id: int) -> Optional[Resource]:
        """Get resource by ID."""
        pass

    @abstractmethod
    def get_many(self, resource_ids: Sequence[int]) -> List[Resource]:
        """Get resources by ID, ordered by ID; missing IDs are skipped."""
        pass

    @abstractmethod
    def list_resources(
        self, service_category: Optional[str] = None, include_inactive: bool = False
    ) -> List[Resource]:
        """List resources ordered by name, then ID."""
        pass


class IResourceWriter(ABC):
    @abstractmethod
    def create(self, resource: Resource) -> Resource:
        """Create a new resource."""
        pass


class IResourceRepository(IResourceReader, IResourceWriter):
    """Complete resource repository interface."""

    pass


class ISubjectReader(ABC):
    """Interface for customer and subject read operations."""

    @abstractmethod
    def get_subject(self, subject_id: int) -> Optional[Subject]:
        pass

    @abstractmethod
    def get_subjects(self, subject_ids: Sequence[int]) -> List[Subject]:
        pass

    @abstractmethod
    def get_subject_type(self, subject_type_id: int) -> Optional[SubjectType]:
        pass

    @abstractmethod
    def get_customer(self, customer_id: int) -> Optional[Customer]:
        pass

    @abstractmethod
    def list_customers_by_types(self, customer_type_ids: Sequence[int]) -> List[Customer]:
        """Customers belonging to any of the given categories, ordered by ID."""
        pass


class ISubjectWriter(ABC):
    @abstractmethod
    def create_customer(self, customer: Customer) -> Customer:
        pass

    @abstractmethod
    def create_subject(self, subject: Subject) -> Subject:
        pass

    @abstractmethod
    def create_subject_type(self, subject_type: SubjectType) -> SubjectType:
        pass

    @abstractmethod
    def get_or_create_internal_party(self) -> Tuple[Customer, Subject]:
        """Return the sentinel customer and subject used for private bookings."""
        pass


class ISubjectRepository(ISubjectReader, ISubjectWriter):
    """Complete customer/subject repository interface."""

    pass


class IDurationRuleReader(ABC):
    """Interface for duration rule lookups."""

    @abstractmethod
    def get_rule(self, subject_type_id: int, resource_id: int) -> Optional[DurationRule]:
        """Get the rule for a (subject type, resource) pair."""
        pass

    @abstractmethod
    def list_for_subject_type(self, subject_type_id: int) -> List[DurationRule]:
        """All rules for a subject type, ordered by resource ID."""
        pass


class IDurationRuleWriter(ABC):
    @abstractmethod
    def upsert(self, rule: DurationRule) -> DurationRule:
        """Create or replace the rule for the rule's pair."""
        pass


class IDurationRuleRepository(IDurationRuleReader, IDurationRuleWriter):
    pass


class ICalendarSettingsRepository(ABC):
    """Settings provider for the booking horizon and display hours."""

    @abstractmethod
    def get_or_create(self) -> CalendarSettings:
        """Latest committed settings, materializing defaults on first read."""
        pass

    @abstractmethod
    def update(self, settings: CalendarSettings) -> CalendarSettings:
        pass


class IScheduleReader(ABC):
    """Opening hours, dated constraints and daycare capacity."""

    @abstractmethod
    def get_business_hours(self, weekday: int) -> List[OpeningInterval]:
        pass

    @abstractmethod
    def get_resource_hours(self, resource_id: int, weekday: int) -> List[OpeningInterval]:
        pass

    @abstractmethod
    def get_constraints(
        self, resource_id: int, window_start: datetime, window_end: datetime
    ) -> List[ResourceConstraint]:
        """Constraints on the resource intersecting the window."""
        pass

    @abstractmethod
    def get_daycare_limit(self, day: date) -> Optional[int]:
        """Daily limit in effect on ``day`` (latest effective_date <= day)."""
        pass


class IScheduleWriter(ABC):
    @abstractmethod
    def add_business_hours(self, interval: OpeningInterval) -> OpeningInterval:
        pass

    @abstractmethod
    def add_resource_hours(self, interval: OpeningInterval) -> OpeningInterval:
        pass

    @abstractmethod
    def add_constraint(self, constraint: ResourceConstraint) -> ResourceConstraint:
        pass

    @abstractmethod
    def set_daycare_limit(self, effective_date: date, total_limit: int) -> None:
        pass


class IScheduleRepository(IScheduleReader, IScheduleWriter):
    pass


class IAppointmentReader(ABC):
    """Interface for appointment read operations."""

    @abstractmethod
    def get_by_id(self, appointment_id: int) -> Optional[Appointment]:
        """Get appointment by ID."""
        pass

    @abstractmethod
    def get_by_group(self, group_id: str) -> List[Appointment]:
        """All members of a group, ordered by ID."""
        pass

    @abstractmethod
    def get_active_for_resources(
        self, resource_ids: Sequence[int], window_start: datetime, window_end: datetime
    ) -> List[Appointment]:
        """Non-cancelled appointments on the resources intersecting the window."""
        pass

    @abstractmethod
    def count_active_for_category(
        self, service_category: str, window_start: datetime, window_end: datetime
    ) -> int:
        """Non-cancelled appointments of a category starting within the window."""
        pass


class IAppointmentWriter(ABC):
    """Interface for appointment write operations."""

    @abstractmethod
    def create_batch(
        self, appointments: Sequence[Appointment], buffers: Dict[int, int]
    ) -> List[Appointment]:
        """Overlap-check and insert all rows in one transaction.

        ``buffers`` maps resource ID to its buffer minutes. Raises
        OverlapConflictError and persists nothing if any row collides.
        """
        pass

    @abstractmethod
    def update_status(self, appointment_ids: Sequence[int], status: str) -> int:
        """Set the status of the given appointments; returns rows updated."""
        pass

    @abstractmethod
    def move(
        self,
        appointment_id: int,
        start_at: datetime,
        end_at: datetime,
        buffer_minutes: int,
        resource_id: Optional[int] = None,
    ) -> Appointment:
        """Change the window (and optionally the resource) after re-checking
        overlap, excluding itself."""
        pass


class IAppointmentRepository(IAppointmentReader, IAppointmentWriter):
    """Complete appointment repository interface."""

    pass


class IProposedMeetingReader(ABC):
    @abstractmethod
    def get_by_id(self, meeting_id: int) -> Optional[ProposedMeeting]:
        """Meeting with its invites loaded."""
        pass

    @abstractmethod
    def get_invite(self, invite_id: int) -> Optional[ProposedMeetingInvite]:
        pass

    @abstractmethod
    def code_exists(self, code: str) -> bool:
        pass


class IProposedMeetingWriter(ABC):
    @abstractmethod
    def create(
        self, meeting: ProposedMeeting, invites: Sequence[ProposedMeetingInvite]
    ) -> ProposedMeeting:
        """Insert meeting and invites together; raises IntegrityError on code reuse."""
        pass

    @abstractmethod
    def add_invite(self, invite: ProposedMeetingInvite) -> ProposedMeetingInvite:
        pass

    @abstractmethod
    def update_invite(self, invite: ProposedMeetingInvite) -> ProposedMeetingInvite:
        pass

    @abstractmethod
    def transition_status(self, meeting_id: int, from_status: str, to_status: str) -> bool:
        """Compare-and-set the meeting status; False when it was not ``from_status``."""
        pass

    @abstractmethod
    def mark_converted(
        self, meeting_id: int, appointment_id: int, accepted_invite_id: Optional[int]
    ) -> ProposedMeeting:
        """Bind the appointment, accept one invite and mark its siblings stale."""
        pass

    @abstractmethod
    def delete(self, meeting_id: int) -> bool:
        """Delete the invites, then the meeting."""
        pass


class IProposedMeetingRepository(IProposedMeetingReader, IProposedMeetingWriter):
    pass


@dataclass
class DeliveryReceipt:
    """Outcome reported by a dispatcher for one successful send."""

    status_code: int
    sent_at: datetime


class INotificationDispatcher(ABC):
    """Outbound invite delivery."""

    @abstractmethod
    def send_invite(self, customer: Customer, meeting: ProposedMeeting) -> DeliveryReceipt:
        """Deliver one invite; raises DeliveryError on failure."""
        pass
