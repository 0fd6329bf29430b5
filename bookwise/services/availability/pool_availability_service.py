# bookwise/services/availability/pool_availability_service.py
"""
Resource pool availability - the union counterpart of team intersection.
Any one free pool member makes a slot (or a date) bookable.
"""
import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from bookwise.config.settings import get_settings
from bookwise.core.exceptions import InvalidInputError
from bookwise.schemas.availability import ServiceConfig, Slot
from bookwise.services.availability.member_loader import MemberDataLoader, fetch_or_empty
from bookwise.services.availability.slot_generator import (
    blackout_covers,
    generate_slots,
    has_rules_for_day,
    validate_service,
)
from bookwise.utils.datetime_utils import local_today, require_aware, resolve_timezone

logger = logging.getLogger(__name__)

settings = get_settings()


class PoolAvailabilityService:

    def __init__(self, repository, busy_times=None, minimum_notice_hours: Optional[float] = None):
        self.repository = repository
        self.loader = MemberDataLoader(repository, busy_times)
        self.minimum_notice_hours = (
            settings.MINIMUM_NOTICE_HOURS if minimum_notice_hours is None else minimum_notice_hours
        )

    async def get_pool_union_availability(
            self,
            pool_id: str,
            target_date: date,
            service: ServiceConfig,
            timezone: str,
            *,
            now: datetime
    ) -> List[Slot]:
        """Slots where ANY active pool member is available"""
        tz = resolve_timezone(timezone)
        validate_service(service)
        require_aware(now, "now")

        pool_members = await self.repository.fetch_pool_members(pool_id)
        if not pool_members:
            logger.info(f"Pool {pool_id} has no active members")
            return []

        members = await self.loader.load_members(
            [m.provider_id for m in pool_members], [], target_date, tz
        )

        dow = target_date.weekday()
        availability_by_start: Dict[datetime, bool] = {}
        for member in members.values():
            if blackout_covers(member.blackout_dates, target_date):
                continue
            if not has_rules_for_day(member.availability_rules, dow):
                continue

            member_slots = generate_slots(
                target_date,
                member.availability_rules,
                service,
                member.bookings,
                timezone,
                self.minimum_notice_hours,
                member.busy_times,
                now=now,
            )
            for slot in member_slots:
                availability_by_start[slot.start] = availability_by_start.get(slot.start, False) or slot.available

        duration = timedelta(minutes=service.duration_minutes)
        return [
            Slot(start=start, end=start + duration, available=available)
            for start, available in sorted(availability_by_start.items())
        ]

    async def get_pool_available_dates(
            self,
            pool_id: str,
            timezone: str,
            days_ahead: int = 60,
            *,
            now: datetime
    ) -> List[date]:
        """Dates on which at least one pool member works and is not blacked out"""
        tz = resolve_timezone(timezone)
        require_aware(now, "now")
        if days_ahead < 0:
            raise InvalidInputError("days_ahead cannot be negative")

        pool_members = await self.repository.fetch_pool_members(pool_id)
        if not pool_members:
            return []

        today = local_today(now, tz)
        member_ids = list(dict.fromkeys(m.provider_id for m in pool_members))

        rules_per_member, blackouts_per_member = await asyncio.gather(
            asyncio.gather(*(
                fetch_or_empty(
                    self.repository.fetch_availability_rules(pid, active_only=True),
                    pid, "availability rules"
                )
                for pid in member_ids
            )),
            asyncio.gather(*(
                fetch_or_empty(
                    self.repository.fetch_blackouts(pid, start_date=today),
                    pid, "blackout dates"
                )
                for pid in member_ids
            )),
        )

        dates = []
        for offset in range(days_ahead):
            day = today + timedelta(days=offset)
            dow = day.weekday()
            if any(
                    has_rules_for_day(rules, dow) and not blackout_covers(blackouts, day)
                    for rules, blackouts in zip(rules_per_member, blackouts_per_member)
            ):
                dates.append(day)

        return dates
