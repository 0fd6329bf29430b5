# bookwise/schemas/availability.py
"""
Value types consumed and produced by the availability core.

Everything here is plain data: the SQLAlchemy repository converts rows into
these models, and the slot/assignment algorithms never touch ORM objects.
"""
from __future__ import annotations
from datetime import date, datetime, time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AssignmentMode(str, Enum):
    ROUND_ROBIN = "round_robin"
    LOAD_BALANCED = "load_balanced"


class AssignmentReason(str, Enum):
    REQUIRED = "required"
    ROUND_ROBIN = "round_robin"
    LOAD_BALANCED = "load_balanced"
    MANUAL = "manual"


class PoolType(str, Enum):
    ROUND_ROBIN = "round_robin"
    LOAD_BALANCED = "load_balanced"
    PRIORITY = "priority"


class ServiceConfig(BaseModel):
    """Slot size and trailing buffer of the thing being booked"""
    model_config = ConfigDict(frozen=True)

    duration_minutes: int = Field(..., description="Length of one slot")
    buffer_minutes: int = Field(0, description="Time blocked after each existing booking")


class AvailabilityRuleData(BaseModel):
    """One weekly working-hour window (0=Monday, 6=Sunday)"""
    model_config = ConfigDict(frozen=True)

    day_of_week: int = Field(..., ge=0, le=6)
    start_time: time
    end_time: time
    is_active: bool = True


class TimeInterval(BaseModel):
    """Half-open [start, end) blocking interval (booking or external busy time)"""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime


# Same shape, named after where they come from
BookedInterval = TimeInterval
BusyInterval = TimeInterval


class BlackoutRange(BaseModel):
    """Inclusive date range with zero availability"""
    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class Slot(BaseModel):
    """Candidate appointment window with its availability flag"""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    available: bool


class TeamMember(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider_id: str
    is_required: bool = False
    priority: int = 0
    max_bookings_per_day: Optional[int] = None


class MemberAvailability(BaseModel):
    """Everything fetched for one member before slot computation starts"""
    provider_id: str
    is_required: bool
    availability_rules: List[AvailabilityRuleData] = Field(default_factory=list)
    bookings: List[TimeInterval] = Field(default_factory=list)
    busy_times: List[TimeInterval] = Field(default_factory=list)
    blackout_dates: List[BlackoutRange] = Field(default_factory=list)


class AssignmentDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider_id: str
    reason: AssignmentReason


class RecentAssignment(BaseModel):
    """Assignment history row joined with its booking's start"""
    model_config = ConfigDict(frozen=True)

    provider_id: str
    assigned_at: datetime
    booking_start: datetime


class StoredAssignment(BaseModel):
    provider_id: str
    assigned_at: datetime
    reason: Optional[str] = None
