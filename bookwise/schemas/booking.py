# bookwise/schemas/booking.py
"""Request/response schemas for the HTTP layer"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from bookwise.schemas.availability import AssignmentMode, Slot


class SlotResponse(BaseModel):
    start: datetime
    end: datetime
    available: bool

    @classmethod
    def from_slot(cls, slot: Slot) -> "SlotResponse":
        return cls(start=slot.start, end=slot.end, available=slot.available)


class SlotsResponse(BaseModel):
    day: date
    timezone: str
    duration_minutes: int
    total_slots: int
    available_slots: int
    slots: List[SlotResponse] = Field(default_factory=list)


class DatesResponse(BaseModel):
    timezone: str
    days_ahead: int
    dates: List[date] = Field(default_factory=list)


class BookingCreateRequest(BaseModel):
    """Booking request coming from the public booking page"""
    provider_id: str = Field(..., description="Provider the booking is made with")
    service_id: str = Field(..., description="Service being booked")
    start_time: datetime = Field(..., description="Slot start (timezone-aware)")
    client_name: str = Field(..., min_length=1, max_length=200)
    client_email: str = Field(..., min_length=3, max_length=320)
    client_phone: Optional[str] = None
    notes: Optional[str] = None
    booking_link_id: Optional[str] = Field(None, description="Team booking link, if any")

    @field_validator("start_time")
    @classmethod
    def start_time_is_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None or v.utcoffset() is None:
            raise ValueError("start_time must include a timezone offset")
        return v


class BookingResponse(BaseModel):
    booking_id: str
    provider_id: str
    status: str
    start_time: datetime
    end_time: datetime
    assigned_provider_ids: List[str] = Field(default_factory=list)


class AssignmentRequest(BaseModel):
    """Assign members to an existing team booking.

    With ``provider_ids`` the assignment is recorded as manual, otherwise the
    booking link's quorum policy picks the members.
    """
    booking_link_id: Optional[str] = None
    min_required: Optional[int] = Field(None, ge=1)
    mode: Optional[AssignmentMode] = None
    provider_ids: Optional[List[str]] = None


class AssignmentResponse(BaseModel):
    booking_id: str
    assigned_provider_ids: List[str] = Field(default_factory=list)


class StoredAssignmentResponse(BaseModel):
    provider_id: str
    assigned_at: datetime
    reason: Optional[str] = None


class BookingAssignmentsResponse(BaseModel):
    booking_id: str
    assignments: List[StoredAssignmentResponse] = Field(default_factory=list)
