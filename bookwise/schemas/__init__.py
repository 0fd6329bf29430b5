# bookwise/schemas/__init__.py
from .availability import (
    AssignmentMode,
    AssignmentReason,
    PoolType,
    ServiceConfig,
    AvailabilityRuleData,
    TimeInterval,
    BookedInterval,
    BusyInterval,
    BlackoutRange,
    Slot,
    TeamMember,
    MemberAvailability,
    AssignmentDecision,
    RecentAssignment,
    StoredAssignment,
)

from .booking import (
    SlotResponse,
    SlotsResponse,
    DatesResponse,
    BookingCreateRequest,
    BookingResponse,
    AssignmentRequest,
    AssignmentResponse,
    StoredAssignmentResponse,
    BookingAssignmentsResponse,
)
