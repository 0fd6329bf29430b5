# bookwise/services/availability/multi_availability_service.py
"""
Team availability: the slots (and dates) at which several providers can be
booked together.

Strict mode keeps a slot only when every required member is free at it.
Flexible mode ("any N of M") keeps a slot when enough members, required or
optional, are free at it. Both modes share one slot grid: the first required
member's slots for the canonical service duration. Members whose own grid
does not line up with it never match.
"""
import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence, Set, Tuple

from bookwise.config.settings import get_settings
from bookwise.core.exceptions import InvalidInputError
from bookwise.schemas.availability import (
    BlackoutRange,
    MemberAvailability,
    ServiceConfig,
    Slot,
)
from bookwise.services.availability.member_loader import MemberDataLoader, fetch_or_empty
from bookwise.services.availability.slot_generator import (
    available_start_times,
    blackout_covers,
    generate_slots,
    has_rules_for_day,
    validate_service,
)
from bookwise.utils.datetime_utils import local_today, require_aware, resolve_timezone

logger = logging.getLogger(__name__)

settings = get_settings()


class MultiAvailabilityService:
    """Intersection and quorum availability across team members"""

    def __init__(self, repository, busy_times=None, minimum_notice_hours: Optional[float] = None):
        self.repository = repository
        self.loader = MemberDataLoader(repository, busy_times)
        self.minimum_notice_hours = (
            settings.MINIMUM_NOTICE_HOURS if minimum_notice_hours is None else minimum_notice_hours
        )

    def _member_slots(
            self,
            member: MemberAvailability,
            target_date: date,
            service: ServiceConfig,
            timezone: str,
            now: datetime
    ) -> List[Slot]:
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

    async def _load_team(
            self,
            member_ids: Sequence[str],
            required_member_ids: Sequence[str],
            target_date: date,
            service: ServiceConfig,
            timezone: str,
            now: datetime
    ) -> Tuple[List[MemberAvailability], List[MemberAvailability]]:
        tz = resolve_timezone(timezone)
        validate_service(service)
        require_aware(now, "now")

        members = await self.loader.load_members(member_ids, required_member_ids, target_date, tz)
        required = [m for m in members.values() if m.is_required]
        optional = [m for m in members.values() if not m.is_required]
        return required, optional

    def _required_members_veto(self, required: List[MemberAvailability], target_date: date) -> bool:
        """True when the day is unbookable because of a required member"""
        if not required:
            logger.info(f"No required members for {target_date}, no team availability")
            return True

        for member in required:
            if blackout_covers(member.blackout_dates, target_date):
                logger.info(f"Required member {member.provider_id} is blacked out on {target_date}")
                return True

        dow = target_date.weekday()
        for member in required:
            if not has_rules_for_day(member.availability_rules, dow):
                logger.info(f"Required member {member.provider_id} has no availability on {target_date}")
                return True

        return False

    async def get_intersection_availability(
            self,
            member_ids: Sequence[str],
            required_member_ids: Sequence[str],
            target_date: date,
            service: ServiceConfig,
            timezone: str,
            *,
            now: datetime
    ) -> List[Slot]:
        """
        Slots where ALL required members are available.

        Slot boundaries come from the first required member; every other
        required member's available start times are AND-ed into the flags.
        """
        required, _ = await self._load_team(
            member_ids, required_member_ids, target_date, service, timezone, now
        )
        if self._required_members_veto(required, target_date):
            return []

        slots = self._member_slots(required[0], target_date, service, timezone, now)

        for member in required[1:]:
            member_starts = available_start_times(
                self._member_slots(member, target_date, service, timezone, now)
            )
            slots = [
                Slot(start=s.start, end=s.end, available=s.available and s.start in member_starts)
                for s in slots
            ]

        return slots

    async def get_flexible_intersection_availability(
            self,
            member_ids: Sequence[str],
            required_member_ids: Sequence[str],
            min_required: int,
            target_date: date,
            service: ServiceConfig,
            timezone: str,
            *,
            now: datetime
    ) -> List[Slot]:
        """
        Slots where at least ``min_required`` members are available.

        Required members keep their veto (blackout, no rules for the day).
        Each slot counts the required members free at its start plus the
        optional members free at its start; which optional members end up
        attending is decided at booking time.
        """
        if min_required < 1:
            raise InvalidInputError("min_required must be at least 1")

        required, optional = await self._load_team(
            member_ids, required_member_ids, target_date, service, timezone, now
        )
        if self._required_members_veto(required, target_date):
            return []

        seed_slots = self._member_slots(required[0], target_date, service, timezone, now)

        dow = target_date.weekday()
        starts_by_member: Dict[str, Set[datetime]] = {}
        for member in required + optional:
            if not member.is_required and (
                    blackout_covers(member.blackout_dates, target_date)
                    or not has_rules_for_day(member.availability_rules, dow)
            ):
                continue
            starts_by_member[member.provider_id] = available_start_times(
                self._member_slots(member, target_date, service, timezone, now)
            )

        slots = []
        for slot in seed_slots:
            free_count = sum(1 for starts in starts_by_member.values() if slot.start in starts)
            slots.append(Slot(start=slot.start, end=slot.end, available=free_count >= min_required))

        return slots

    async def _load_weekly_coverage(
            self,
            provider_id: str,
            today: date
    ) -> Tuple[Set[int], List[BlackoutRange]]:
        rules, blackouts = await asyncio.gather(
            fetch_or_empty(
                self.repository.fetch_availability_rules(provider_id, active_only=True),
                provider_id, "availability rules"
            ),
            fetch_or_empty(
                self.repository.fetch_blackouts(provider_id, start_date=today),
                provider_id, "blackout dates"
            ),
        )
        days = {r.day_of_week for r in rules if r.is_active and r.start_time < r.end_time}
        return days, blackouts

    async def get_intersection_available_dates(
            self,
            member_ids: Sequence[str],
            required_member_ids: Sequence[str],
            timezone: str,
            days_ahead: int = 60,
            *,
            now: datetime
    ) -> List[date]:
        """
        Dates within ``days_ahead`` days on which every required member works
        and none is blacked out.

        Cheap pre-filter: bookings and busy times are not looked at, so a
        returned date can still have no free slot.
        """
        tz = resolve_timezone(timezone)
        require_aware(now, "now")
        if days_ahead < 0:
            raise InvalidInputError("days_ahead cannot be negative")

        required_set = set(required_member_ids)
        required_ids = [pid for pid in dict.fromkeys(member_ids) if pid in required_set]
        if not required_ids:
            return []

        today = local_today(now, tz)
        coverage = await asyncio.gather(*(
            self._load_weekly_coverage(pid, today) for pid in required_ids
        ))

        common_days = set.intersection(*(days for days, _ in coverage))
        if not common_days:
            return []

        blackouts = [b for _, member_blackouts in coverage for b in member_blackouts]

        dates = []
        for offset in range(days_ahead):
            day = today + timedelta(days=offset)
            if day.weekday() not in common_days:
                continue
            if blackout_covers(blackouts, day):
                continue
            dates.append(day)

        return dates
