# bookwise/api/v1/bookings.py
"""Booking creation and team assignment endpoints"""
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
import logging

from bookwise.api.dependencies import (
    get_assignment_service,
    get_booking_service,
    get_now,
    get_repository,
)
from bookwise.core.exceptions import InvalidInputError, NotFoundError, SlotUnavailableError
from bookwise.schemas.booking import (
    AssignmentRequest,
    AssignmentResponse,
    BookingAssignmentsResponse,
    BookingCreateRequest,
    BookingResponse,
    StoredAssignmentResponse,
)
from bookwise.services.assignment.assignment_service import TeamAssignmentService
from bookwise.services.booking.booking_service import BookingService
from bookwise.services.data.availability_repository import AvailabilityRepository
from bookwise.utils.datetime_utils import as_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
        request: BookingCreateRequest,
        bookings: BookingService = Depends(get_booking_service),
        now: datetime = Depends(get_now),
):
    """Book a slot; the slot is re-checked against current bookings before insert"""
    try:
        booking, assigned = await bookings.create_booking(
            provider_id=request.provider_id,
            service_id=request.service_id,
            start_time=request.start_time,
            client_name=request.client_name,
            client_email=request.client_email,
            client_phone=request.client_phone,
            notes=request.notes,
            booking_link_id=request.booking_link_id,
            now=now,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SlotUnavailableError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return BookingResponse(
        booking_id=booking.id,
        provider_id=booking.provider_id,
        status=booking.status,
        start_time=as_utc(booking.start_time),
        end_time=as_utc(booking.end_time),
        assigned_provider_ids=assigned,
    )


@router.post("/{booking_id}/assignments", response_model=AssignmentResponse)
async def assign_booking(
        booking_id: str,
        request: AssignmentRequest,
        repository: AvailabilityRepository = Depends(get_repository),
        assignments: TeamAssignmentService = Depends(get_assignment_service),
):
    """Assign team members to a booking, or record a manual assignment"""
    booking = repository.get_booking(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")

    try:
        if request.provider_ids:
            assigned = await assignments.assign_manually(booking.id, request.provider_ids)
            return AssignmentResponse(booking_id=booking.id, assigned_provider_ids=assigned)

        link_id = request.booking_link_id or booking.booking_link_id
        if not link_id:
            raise HTTPException(status_code=400, detail="Booking has no booking link to assign from")

        link = repository.get_booking_link(link_id)
        if not link:
            raise HTTPException(status_code=404, detail="Booking link not found")

        min_required = request.min_required or link.min_required_members
        if min_required is None:
            raise HTTPException(status_code=400, detail="min_required is not set for this booking link")

        mode = request.mode or link.assignment_mode or "round_robin"
        assigned = await assignments.assign_members_to_booking(
            booking.id,
            link.id,
            as_utc(booking.start_time),
            as_utc(booking.end_time),
            min_required,
            mode,
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return AssignmentResponse(booking_id=booking.id, assigned_provider_ids=assigned)


@router.get("/{booking_id}/assignments", response_model=BookingAssignmentsResponse)
async def list_booking_assignments(
        booking_id: str,
        repository: AvailabilityRepository = Depends(get_repository),
        assignments: TeamAssignmentService = Depends(get_assignment_service),
):
    booking = repository.get_booking(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")

    stored = await assignments.get_booking_assignments(booking.id)
    return BookingAssignmentsResponse(
        booking_id=booking.id,
        assignments=[
            StoredAssignmentResponse(provider_id=a.provider_id, assigned_at=a.assigned_at, reason=a.reason)
            for a in stored
        ],
    )
