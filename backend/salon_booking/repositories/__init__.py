# Repositories package initialization
# SQLAlchemy-backed implementations of the domain interfaces

from .appointment_repo import AppointmentRepository
from .calendar_settings_repo import CalendarSettingsRepository
from .duration_rule_repo import DurationRuleRepository
from .proposed_meeting_repo import ProposedMeetingRepository
from .resource_repo import ResourceRepository
from .schedule_repo import ScheduleRepository
from .subject_repo import SubjectRepository

__all__ = [
    "AppointmentRepository",
    "CalendarSettingsRepository",
    "DurationRuleRepository",
    "ProposedMeetingRepository",
    "ResourceRepository",
    "ScheduleRepository",
    "SubjectRepository",
]
