# Services package initialization
# This file makes the services directory a Python package
# and allows importing service modules

from . import availability_service
from . import booking_service
from . import calendar_window
from . import duration_resolver
from . import intervals
from . import notification_service
from . import proposed_meeting_service
from . import resource_directory

__all__ = [
    "availability_service",
    "booking_service",
    "calendar_window",
    "duration_resolver",
    "intervals",
    "notification_service",
    "proposed_meeting_service",
    "resource_directory",
]
