# Controllers package initialization
# This file makes the controllers directory a Python package
# and allows importing controller modules

from . import (
    appointment_controller,
    dependencies,
    proposed_meeting_controller,
    scheduling_controller,
)

__all__ = [
    "appointment_controller",
    "dependencies",
    "proposed_meeting_controller",
    "scheduling_controller",
]
