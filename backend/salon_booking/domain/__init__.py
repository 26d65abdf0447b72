"""
Domain package - Pure business logic layer.

This package contains:
- entities.py: Domain entities with business rules
- interfaces.py: Repository and collaborator contracts
"""

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
from .interfaces import (
    IAppointmentReader,
    IAppointmentRepository,
    IAppointmentWriter,
    ICalendarSettingsRepository,
    IDurationRuleReader,
    IDurationRuleRepository,
    INotificationDispatcher,
    IProposedMeetingRepository,
    IResourceReader,
    IResourceRepository,
    IScheduleReader,
    IScheduleRepository,
    ISubjectReader,
    ISubjectRepository,
)

__all__ = [
    # Domain entities
    "Appointment",
    "CalendarSettings",
    "Customer",
    "DurationRule",
    "OpeningInterval",
    "ProposedMeeting",
    "ProposedMeetingInvite",
    "Resource",
    "ResourceConstraint",
    "Subject",
    "SubjectType",
    # Repository interfaces
    "IAppointmentRepository",
    "ICalendarSettingsRepository",
    "IDurationRuleRepository",
    "IProposedMeetingRepository",
    "IResourceRepository",
    "IScheduleRepository",
    "ISubjectRepository",
    "INotificationDispatcher",
    # Segregated interfaces
    "IAppointmentReader",
    "IAppointmentWriter",
    "IDurationRuleReader",
    "IResourceReader",
    "IScheduleReader",
    "ISubjectReader",
]
