from .base import Base
from .provider import Provider
from .service import Service
from .availability import AvailabilityRule, BlackoutDate
from .booking import Booking, BLOCKING_STATUSES
from .booking_link import BookingLink, BookingLinkMember
from .booking_assignment import BookingAssignment
from .resource_pool import ResourcePool, ResourcePoolMember
from .calendar_integration import CalendarIntegration

__all__ = [
    "Base",
    "Provider",
    "Service",
    "AvailabilityRule",
    "BlackoutDate",
    "Booking",
    "BLOCKING_STATUSES",
    "BookingLink",
    "BookingLinkMember",
    "BookingAssignment",
    "ResourcePool",
    "ResourcePoolMember",
    "CalendarIntegration",
]
