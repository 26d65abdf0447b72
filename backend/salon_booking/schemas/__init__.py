"""
Schemas package - Data Transfer Objects and validation.

This package contains DTOs that define the API contracts
for bookings and proposed meetings.
"""

from .dtos import (
    AppointmentResponse,
    BatchDeliveryReport,
    BookingRequest,
    BookingResult,
    DeliveryResult,
    ProposedMeetingCreateRequest,
)

__all__ = [
    # Booking DTOs
    "BookingRequest",
    "BookingResult",
    "AppointmentResponse",
    # Proposed meeting DTOs
    "ProposedMeetingCreateRequest",
    "DeliveryResult",
    "BatchDeliveryReport",
]
