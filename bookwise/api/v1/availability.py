# bookwise/api/v1/availability.py
"""Public availability endpoints used by the booking pages"""
from datetime import date, datetime
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from bookwise.api.dependencies import (
    get_availability_service,
    get_now,
    get_pool_service,
    get_repository,
)
from bookwise.config.settings import get_settings
from bookwise.core.exceptions import InvalidInputError
from bookwise.models import Service
from bookwise.schemas.availability import ServiceConfig, Slot
from bookwise.schemas.booking import DatesResponse, SlotResponse, SlotsResponse
from bookwise.services.availability.availability_service import AvailabilityService
from bookwise.services.availability.pool_availability_service import PoolAvailabilityService
from bookwise.services.data.availability_repository import AvailabilityRepository

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/availability", tags=["availability"])


# ============================================================================
# Helper Functions
# ============================================================================

def _service_or_404(repository: AvailabilityRepository, service_id: str) -> Service:
    service = repository.get_service(service_id)
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    return service


def _service_config(service: Service) -> ServiceConfig:
    return ServiceConfig(
        duration_minutes=service.duration_minutes,
        buffer_minutes=service.buffer_minutes or 0,
    )


def _timezone_for(owner, override: Optional[str]) -> str:
    if override:
        return override
    return (owner.timezone if owner is not None else None) or settings.DEFAULT_TIMEZONE


def _slots_response(day: date, tz: str, service: Service, slots: List[Slot], available_only: bool) -> SlotsResponse:
    shown = [s for s in slots if s.available] if available_only else slots
    return SlotsResponse(
        day=day,
        timezone=tz,
        duration_minutes=service.duration_minutes,
        total_slots=len(slots),
        available_slots=sum(1 for s in slots if s.available),
        slots=[SlotResponse.from_slot(s) for s in shown],
    )


async def _team_ids(repository: AvailabilityRepository, booking_link_id: str) -> Tuple[List[str], List[str]]:
    members = await repository.fetch_team_members(booking_link_id)
    member_ids = [m.provider_id for m in members]
    required_ids = [m.provider_id for m in members if m.is_required]
    return member_ids, required_ids


# ============================================================================
# Single provider
# ============================================================================

@router.get("/providers/{provider_id}/slots", response_model=SlotsResponse)
async def get_provider_slots(
        provider_id: str,
        service_id: str,
        day: date = Query(..., alias="date"),
        timezone: Optional[str] = None,
        exclude_booking_id: Optional[str] = None,
        available_only: bool = False,
        repository: AvailabilityRepository = Depends(get_repository),
        availability: AvailabilityService = Depends(get_availability_service),
        now: datetime = Depends(get_now),
):
    """All slots of one provider on one date; ``exclude_booking_id`` for reschedules"""
    provider = repository.get_provider(provider_id)
    if not provider:
        raise HTTPException(status_code=404, detail="Provider not found")
    service = _service_or_404(repository, service_id)
    tz = _timezone_for(provider, timezone)

    try:
        slots = await availability.get_provider_slots(
            provider_id, day, _service_config(service), tz,
            now=now, exclude_booking_id=exclude_booking_id
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return _slots_response(day, tz, service, slots, available_only)


@router.get("/providers/{provider_id}/dates", response_model=DatesResponse)
async def get_provider_dates(
        provider_id: str,
        days_ahead: int = Query(settings.AVAILABLE_DATES_DAYS_AHEAD, ge=0, le=365),
        timezone: Optional[str] = None,
        repository: AvailabilityRepository = Depends(get_repository),
        availability: AvailabilityService = Depends(get_availability_service),
        now: datetime = Depends(get_now),
):
    provider = repository.get_provider(provider_id)
    if not provider:
        raise HTTPException(status_code=404, detail="Provider not found")
    tz = _timezone_for(provider, timezone)

    try:
        dates = await availability.get_provider_available_dates(provider_id, tz, days_ahead, now=now)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return DatesResponse(timezone=tz, days_ahead=days_ahead, dates=dates)


# ============================================================================
# Booking links (teams)
# ============================================================================

@router.get("/links/{booking_link_id}/dates", response_model=DatesResponse)
async def get_link_dates(
        booking_link_id: str,
        days_ahead: int = Query(settings.AVAILABLE_DATES_DAYS_AHEAD, ge=0, le=365),
        timezone: Optional[str] = None,
        repository: AvailabilityRepository = Depends(get_repository),
        availability: AvailabilityService = Depends(get_availability_service),
        now: datetime = Depends(get_now),
):
    """Dates on which every required member works and none is blacked out"""
    link = repository.get_booking_link(booking_link_id)
    if not link:
        raise HTTPException(status_code=404, detail="Booking link not found")
    tz = _timezone_for(link.owner, timezone)

    member_ids, required_ids = await _team_ids(repository, link.id)
    try:
        dates = await availability.list_available_dates(member_ids, required_ids, tz, days_ahead, now=now)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return DatesResponse(timezone=tz, days_ahead=days_ahead, dates=dates)


@router.get("/links/{booking_link_id}/slots", response_model=SlotsResponse)
async def get_link_slots(
        booking_link_id: str,
        service_id: str,
        day: date = Query(..., alias="date"),
        timezone: Optional[str] = None,
        available_only: bool = False,
        repository: AvailabilityRepository = Depends(get_repository),
        availability: AvailabilityService = Depends(get_availability_service),
        now: datetime = Depends(get_now),
):
    """Team slots: strict intersection, or "any N of M" when the link sets a quorum"""
    link = repository.get_booking_link(booking_link_id)
    if not link:
        raise HTTPException(status_code=404, detail="Booking link not found")
    service = _service_or_404(repository, service_id)
    tz = _timezone_for(link.owner, timezone)

    member_ids, required_ids = await _team_ids(repository, link.id)
    try:
        slots = await availability.list_slots_for_date(
            member_ids, required_ids, day, _service_config(service), tz,
            link.min_required_members, now=now
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return _slots_response(day, tz, service, slots, available_only)


# ============================================================================
# Resource pools
# ============================================================================

@router.get("/pools/{pool_id}/dates", response_model=DatesResponse)
async def get_pool_dates(
        pool_id: str,
        days_ahead: int = Query(settings.AVAILABLE_DATES_DAYS_AHEAD, ge=0, le=365),
        timezone: Optional[str] = None,
        repository: AvailabilityRepository = Depends(get_repository),
        pools: PoolAvailabilityService = Depends(get_pool_service),
        now: datetime = Depends(get_now),
):
    pool = repository.get_pool(pool_id)
    if not pool:
        raise HTTPException(status_code=404, detail="Resource pool not found")
    tz = _timezone_for(pool.owner, timezone)

    try:
        dates = await pools.get_pool_available_dates(pool.id, tz, days_ahead, now=now)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return DatesResponse(timezone=tz, days_ahead=days_ahead, dates=dates)


@router.get("/pools/{pool_id}/slots", response_model=SlotsResponse)
async def get_pool_slots(
        pool_id: str,
        service_id: str,
        day: date = Query(..., alias="date"),
        timezone: Optional[str] = None,
        available_only: bool = False,
        repository: AvailabilityRepository = Depends(get_repository),
        pools: PoolAvailabilityService = Depends(get_pool_service),
        now: datetime = Depends(get_now),
):
    """Slots where any active pool member is free"""
    pool = repository.get_pool(pool_id)
    if not pool:
        raise HTTPException(status_code=404, detail="Resource pool not found")
    service = _service_or_404(repository, service_id)
    tz = _timezone_for(pool.owner, timezone)

    try:
        slots = await pools.get_pool_union_availability(pool.id, day, _service_config(service), tz, now=now)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return _slots_response(day, tz, service, slots, available_only)
