"""
Domain entities - Pure business logic, no framework dependencies.

These dataclasses are what repositories return and services consume; they
never carry SQLAlchemy state.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import List, Optional

SERVICE_CATEGORIES = ("grooming", "daycare", "event")
RESOURCELESS_CATEGORIES = ("daycare",)
APPOINTMENT_STATUSES = ("pending", "approved", "cancelled", "matched")
APPOINTMENT_KINDS = ("private", "business", "event")


@dataclass
class Resource:
    """A bookable station."""

    id: Optional[int] = None
    name: str = ""
    service_category: str = "grooming"
    is_active: bool = True
    base_duration_minutes: int = 60
    slot_interval_minutes: int = 60
    buffer_minutes: int = 0

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Resource name is required")
        if self.service_category not in SERVICE_CATEGORIES:
            raise ValueError(f"Unknown service category: {self.service_category}")
        if self.slot_interval_minutes <= 0:
            raise ValueError("Slot interval must be positive")
        if self.buffer_minutes < 0:
            raise ValueError("Buffer cannot be negative")


@dataclass
class SubjectType:
    id: Optional[int] = None
    name: str = ""
    is_active: bool = True


@dataclass
class Customer:
    id: Optional[int] = None
    full_name: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    customer_type_id: Optional[int] = None

    def __post_init__(self):
        if not self.full_name:
            raise ValueError("Customer name is required")
        if self.email and "@" not in self.email:
            raise ValueError("Invalid email format")


@dataclass
class Subject:
    """The entity being serviced, e.g. a dog."""

    id: Optional[int] = None
    name: str = ""
    customer_id: int = 0
    subject_type_id: Optional[int] = None
    size_class: Optional[str] = None

    def __post_init__(self):
        if self.customer_id <= 0:
            raise ValueError("Valid customer_id is required")


@dataclass
class DurationRule:
    """Duration of servicing a subject type at a resource.

    ``is_supported=False`` is a tombstone: the resource cannot service the
    subject type. ``duration_minutes=None`` on a supported rule means the
    resource's base duration applies.
    """

    subject_type_id: int
    resource_id: int
    duration_minutes: Optional[int] = None
    is_supported: bool = True
    is_active: bool = True
    remote_booking_allowed: bool = True
    requires_staff_approval: bool = False
    id: Optional[int] = None

    def __post_init__(self):
        if self.duration_minutes is not None and self.duration_minutes <= 0:
            raise ValueError("Duration must be positive")


@dataclass
class OpeningInterval:
    """Weekday opening window; ``resource_id`` is None for business hours."""

    weekday: int
    open_time: time
    close_time: time
    resource_id: Optional[int] = None

    def __post_init__(self):
        if not 0 <= self.weekday <= 6:
            raise ValueError("Weekday must be between 0 (Monday) and 6 (Sunday)")
        if self.close_time <= self.open_time:
            raise ValueError("Closing time must be after opening time")


@dataclass
class ResourceConstraint:
    resource_id: int
    start_at: datetime
    end_at: datetime
    is_positive: bool = False
    reason: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self):
        if self.end_at <= self.start_at:
            raise ValueError("Constraint end must be after start")


@dataclass
class CalendarSettings:
    """Booking horizon and manager display hours."""

    open_days_ahead: int
    display_start_time: time
    display_end_time: time
    id: Optional[int] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.open_days_ahead < 0:
            raise ValueError("open_days_ahead cannot be negative")
        if self.display_end_time <= self.display_start_time:
            raise ValueError("Display end time must be after display start time")

    @property
    def is_closed(self) -> bool:
        return self.open_days_ahead == 0


@dataclass
class Appointment:
    """Domain entity for a committed appointment row."""

    start_at: datetime
    end_at: datetime
    customer_id: int
    resource_id: Optional[int] = None
    status: str = "pending"
    payment_status: str = "unpaid"
    kind: str = "business"
    service_category: str = "grooming"
    subject_id: Optional[int] = None
    subject_ids: List[int] = field(default_factory=list)
    group_id: Optional[str] = None
    manual_override: bool = False
    customer_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.end_at <= self.start_at:
            raise ValueError("End time must be after start time")
        if self.status not in APPOINTMENT_STATUSES:
            raise ValueError(f"Invalid status: {self.status}")
        if self.kind not in APPOINTMENT_KINDS:
            raise ValueError(f"Invalid appointment kind: {self.kind}")
        if self.resource_id is None and (
            self.service_category not in RESOURCELESS_CATEGORIES
        ):
            raise ValueError("resource_id is required for this service category")

    @property
    def duration_minutes(self) -> int:
        return int((self.end_at - self.start_at).total_seconds() // 60)

    @property
    def is_active(self) -> bool:
        """Whether the appointment still blocks its resource."""
        return self.status != "cancelled"


@dataclass
class DaycareCapacityLimit:
    effective_date: date
    total_limit: int
    id: Optional[int] = None


@dataclass
class ProposedMeetingInvite:
    meeting_id: int
    customer_id: int
    status: str = "uninvited"
    source: str = "individual"
    source_category_id: Optional[int] = None
    notification_count: int = 0
    last_notified_at: Optional[datetime] = None
    last_delivery_status: Optional[str] = None
    id: Optional[int] = None


@dataclass
class ProposedMeeting:
    """A tentative slot offered to several customers before one claims it.

    ``category_ids`` are customer categories whose members may accept even
    when they joined the category after the meeting was proposed. A meeting
    with ``reschedule_appointment_id`` moves that appointment instead of
    booking a new one, and only its customer and subject may accept.
    """

    resource_id: int
    start_at: datetime
    end_at: datetime
    code: str = ""
    service_category: str = "grooming"
    title: Optional[str] = None
    summary: Optional[str] = None
    notes: Optional[str] = None
    status: str = "proposed"
    appointment_id: Optional[int] = None
    invites: List[ProposedMeetingInvite] = field(default_factory=list)
    category_ids: List[int] = field(default_factory=list)
    reschedule_appointment_id: Optional[int] = None
    reschedule_customer_id: Optional[int] = None
    reschedule_subject_id: Optional[int] = None
    id: Optional[int] = None

    def __post_init__(self):
        if self.end_at <= self.start_at:
            raise ValueError("End time must be after start time")

    @property
    def is_reschedule(self) -> bool:
        return self.reschedule_appointment_id is not None
