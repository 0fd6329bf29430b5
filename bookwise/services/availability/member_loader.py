# bookwise/services/availability/member_loader.py
"""Concurrent per-member fetch of rules, bookings, blackouts and busy times"""
import asyncio
import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence

from bookwise.schemas.availability import MemberAvailability, TimeInterval
from bookwise.utils.datetime_utils import day_bounds

logger = logging.getLogger(__name__)


async def fetch_or_empty(awaitable, provider_id: str, what: str) -> list:
    """Await a per-member fetch; a failure means that member has no data"""
    try:
        return await awaitable
    except Exception as e:
        logger.error(f"Failed to fetch {what} for provider {provider_id}: {e}, treating as empty")
        return []


class MemberDataLoader:
    """Scatter-gather of everything slot generation needs for a set of providers.

    ``repository`` answers the storage queries; ``busy_times`` (optional)
    turns an active calendar integration into busy intervals. Data is fetched
    fresh on every call.
    """

    def __init__(self, repository, busy_times=None):
        self.repository = repository
        self.busy_times = busy_times

    async def load_members(
            self,
            member_ids: Sequence[str],
            required_member_ids: Sequence[str],
            target_date: date,
            tz,
            exclude_booking_id: Optional[str] = None
    ) -> Dict[str, MemberAvailability]:
        """Fetch all members concurrently, keyed by provider id in ``member_ids`` order"""
        provider_ids = list(dict.fromkeys(member_ids))
        required = set(required_member_ids)
        day_start, day_end = day_bounds(target_date, tz)

        results = await asyncio.gather(*(
            self.load_member(pid, pid in required, target_date, day_start, day_end, exclude_booking_id)
            for pid in provider_ids
        ))
        return {member.provider_id: member for member in results}

    async def load_member(
            self,
            provider_id: str,
            is_required: bool,
            target_date: date,
            day_start: datetime,
            day_end: datetime,
            exclude_booking_id: Optional[str] = None
    ) -> MemberAvailability:
        rules, bookings, blackouts, busy = await asyncio.gather(
            fetch_or_empty(
                self.repository.fetch_availability_rules(provider_id, active_only=True),
                provider_id, "availability rules"
            ),
            fetch_or_empty(
                self.repository.fetch_bookings(provider_id, day_start, day_end, exclude_booking_id),
                provider_id, "bookings"
            ),
            fetch_or_empty(
                self.repository.fetch_blackouts(provider_id, start_date=target_date, end_date=target_date),
                provider_id, "blackout dates"
            ),
            fetch_or_empty(
                self.fetch_busy_times(provider_id, day_start, day_end),
                provider_id, "calendar busy times"
            ),
        )

        return MemberAvailability(
            provider_id=provider_id,
            is_required=is_required,
            availability_rules=rules,
            bookings=bookings,
            busy_times=busy,
            blackout_dates=blackouts,
        )

    async def fetch_busy_times(
            self,
            provider_id: str,
            range_start: datetime,
            range_end: datetime
    ) -> List[TimeInterval]:
        """External busy times, only for providers with an active calendar connection"""
        if self.busy_times is None:
            return []

        integration = await self.repository.fetch_calendar_integration(provider_id)
        if not integration:
            return []

        return await self.busy_times.fetch_busy_times(integration, range_start, range_end)
