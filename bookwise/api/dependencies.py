# ============================================================================
# FILE: bookwise/api/dependencies.py
# Request-scoped wiring of the repository and services
# ============================================================================
from datetime import datetime, timezone

from fastapi import Depends
from sqlalchemy.orm import Session

from bookwise.config.database import get_db
from bookwise.services.assignment.assignment_service import TeamAssignmentService
from bookwise.services.availability.availability_service import AvailabilityService
from bookwise.services.availability.pool_availability_service import PoolAvailabilityService
from bookwise.services.booking.booking_service import BookingService
from bookwise.services.calendar.busy_time_service import CalendarBusyTimeService
from bookwise.services.data.availability_repository import AvailabilityRepository


def get_now() -> datetime:
    """Current instant; overridden in tests to pin the clock"""
    return datetime.now(timezone.utc)


def get_repository(db: Session = Depends(get_db)) -> AvailabilityRepository:
    return AvailabilityRepository(db)


def get_busy_time_service(db: Session = Depends(get_db)) -> CalendarBusyTimeService:
    return CalendarBusyTimeService(db)


def get_availability_service(
        repository: AvailabilityRepository = Depends(get_repository),
        busy_times: CalendarBusyTimeService = Depends(get_busy_time_service),
) -> AvailabilityService:
    return AvailabilityService(repository, busy_times)


def get_pool_service(
        repository: AvailabilityRepository = Depends(get_repository),
        busy_times: CalendarBusyTimeService = Depends(get_busy_time_service),
) -> PoolAvailabilityService:
    return PoolAvailabilityService(repository, busy_times)


def get_assignment_service(
        repository: AvailabilityRepository = Depends(get_repository),
) -> TeamAssignmentService:
    return TeamAssignmentService(repository)


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    return BookingService(db, CalendarBusyTimeService(db, commit_refreshed_tokens=False))
