from typing import List, Optional, Sequence, Union
from datetime import date, datetime
import logging

from bookwise.config.settings import get_settings
from bookwise.core.exceptions import InvalidInputError
from bookwise.schemas.availability import AssignmentMode, ServiceConfig, Slot
from bookwise.services.assignment.assignment_service import TeamAssignmentService
from bookwise.services.availability.member_loader import MemberDataLoader
from bookwise.services.availability.multi_availability_service import MultiAvailabilityService
from bookwise.services.availability.slot_generator import (
    blackout_covers,
    generate_slots,
    has_rules_for_day,
    validate_service,
)
from bookwise.utils.datetime_utils import day_bounds, require_aware, resolve_timezone

logger = logging.getLogger(__name__)

settings = get_settings()


class AvailabilityService:
    """Entry point for booking-flow callers: one provider or a whole team"""

    def __init__(self, repository, busy_times=None, minimum_notice_hours: Optional[float] = None):
        self.repository = repository
        self.minimum_notice_hours = (
            settings.MINIMUM_NOTICE_HOURS if minimum_notice_hours is None else minimum_notice_hours
        )
        self.loader = MemberDataLoader(repository, busy_times)
        self.multi = MultiAvailabilityService(repository, busy_times, self.minimum_notice_hours)
        self.assignment = TeamAssignmentService(repository)

    async def list_available_dates(
            self,
            member_ids: Sequence[str],
            required_member_ids: Sequence[str],
            timezone: str,
            days_ahead: Optional[int] = None,
            *,
            now: datetime
    ) -> List[date]:
        """Dates worth offering to the client before they pick one"""
        if days_ahead is None:
            days_ahead = settings.AVAILABLE_DATES_DAYS_AHEAD

        return await self.multi.get_intersection_available_dates(
            member_ids, required_member_ids, timezone, days_ahead, now=now
        )

    async def list_slots_for_date(
            self,
            member_ids: Sequence[str],
            required_member_ids: Sequence[str],
            target_date: date,
            service: ServiceConfig,
            timezone: str,
            min_required: Optional[int] = None,
            *,
            now: datetime
    ) -> List[Slot]:
        """
        Slots for one date. A single member is a plain provider booking;
        several members use strict intersection, or the quorum rule when
        ``min_required`` is given.
        """
        unique_ids = list(dict.fromkeys(member_ids))
        if not unique_ids:
            return []

        if len(unique_ids) == 1 and min_required is None:
            return await self.get_provider_slots(unique_ids[0], target_date, service, timezone, now=now)

        if min_required is not None:
            return await self.multi.get_flexible_intersection_availability(
                unique_ids, required_member_ids, min_required, target_date, service, timezone, now=now
            )

        return await self.multi.get_intersection_availability(
            unique_ids, required_member_ids, target_date, service, timezone, now=now
        )

    async def get_provider_slots(
            self,
            provider_id: str,
            target_date: date,
            service: ServiceConfig,
            timezone: str,
            *,
            now: datetime,
            exclude_booking_id: Optional[str] = None
    ) -> List[Slot]:
        """
        All slots for one provider on one date.

        ``exclude_booking_id`` lets a booking being rescheduled ignore itself.
        """
        tz = resolve_timezone(timezone)
        validate_service(service)
        require_aware(now, "now")

        day_start, day_end = day_bounds(target_date, tz)
        member = await self.loader.load_member(
            provider_id, True, target_date, day_start, day_end, exclude_booking_id
        )

        if not has_rules_for_day(member.availability_rules, target_date.weekday()):
            return []
        if blackout_covers(member.blackout_dates, target_date):
            logger.info(f"Provider {provider_id} is blacked out on {target_date}")
            return []

        return generate_slots(
            target_date,
            member.availability_rules,
            service,
            member.bookings,
            timezone,
            self.minimum_notice_hours,
            member.busy_times,
            now=now,
        )

    async def get_provider_available_dates(
            self,
            provider_id: str,
            timezone: str,
            days_ahead: Optional[int] = None,
            *,
            now: datetime
    ) -> List[date]:
        if days_ahead is not None and days_ahead < 0:
            raise InvalidInputError("days_ahead cannot be negative")
        return await self.list_available_dates([provider_id], [provider_id], timezone, days_ahead, now=now)

    async def assign_team_for_booking(
            self,
            booking_id: str,
            team_id: str,
            start: datetime,
            end: datetime,
            min_required: int,
            mode: Union[AssignmentMode, str] = AssignmentMode.ROUND_ROBIN
    ) -> List[str]:
        return await self.assignment.assign_members_to_booking(
            booking_id, team_id, start, end, min_required, mode
        )
