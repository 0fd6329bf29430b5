# bookwise/services/assignment/assignment_service.py
"""
Who actually attends a team booking.

Flexible ("any N of M") booking links only guarantee at slot-query time that
enough members are free. Once the booking exists this service picks the
optional members that fill the quorum and records every decision.
"""
import asyncio
import logging
from datetime import datetime, time, timedelta
from typing import Dict, List, Optional, Sequence, Union

import pytz
from pydantic import BaseModel

from bookwise.core.exceptions import InvalidInputError
from bookwise.schemas.availability import (
    AssignmentDecision,
    AssignmentMode,
    AssignmentReason,
    PoolType,
    RecentAssignment,
    StoredAssignment,
    TeamMember,
)
from bookwise.services.availability.slot_generator import intervals_overlap
from bookwise.utils.datetime_utils import as_utc, require_aware, resolve_timezone

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=pytz.UTC)


class MemberStats(BaseModel):
    provider_id: str
    is_required: bool
    is_available: bool
    bookings_today: int = 0
    bookings_this_week: int = 0
    last_assigned_at: Optional[datetime] = None
    max_bookings_per_day: Optional[int] = None

    @property
    def at_daily_limit(self) -> bool:
        return self.max_bookings_per_day is not None and self.bookings_today >= self.max_bookings_per_day


def week_start(moment: datetime) -> datetime:
    """Monday 00:00 of the ISO week containing ``moment`` (in its own offset)"""
    day = moment - timedelta(days=moment.weekday())
    return day.replace(hour=0, minute=0, second=0, microsecond=0)


def day_window(moment: datetime, timezone: Optional[str] = None):
    """Calendar day containing ``moment``, local to ``timezone`` when given"""
    if timezone is None:
        start = moment.replace(hour=0, minute=0, second=0, microsecond=0)
        return start, start + timedelta(days=1)

    tz = resolve_timezone(timezone)
    local_day = moment.astimezone(tz).date()
    start = tz.localize(datetime.combine(local_day, time.min))
    end = tz.localize(datetime.combine(local_day + timedelta(days=1), time.min))
    return start, end


def sort_by_policy(members: List[MemberStats], mode: Union[AssignmentMode, PoolType]) -> List[MemberStats]:
    """Stable sort: least recently assigned first, or fewest bookings this week first"""
    if mode.value == AssignmentMode.ROUND_ROBIN.value:
        return sorted(members, key=lambda m: as_utc(m.last_assigned_at) if m.last_assigned_at else EPOCH)
    return sorted(members, key=lambda m: m.bookings_this_week)


class TeamAssignmentService:

    def __init__(self, repository):
        self.repository = repository

    @staticmethod
    def _parse_mode(mode) -> AssignmentMode:
        try:
            return AssignmentMode(mode)
        except ValueError:
            raise InvalidInputError(f"Invalid assignment mode: {mode!r}")

    @staticmethod
    def _validate_window(start_time: datetime, end_time: datetime) -> None:
        require_aware(start_time, "start_time")
        require_aware(end_time, "end_time")
        if end_time <= start_time:
            raise InvalidInputError("end_time must be after start_time")

    async def _has_conflict(
            self,
            provider_id: str,
            start_time: datetime,
            end_time: datetime,
            exclude_booking_id: Optional[str]
    ) -> bool:
        try:
            bookings = await self.repository.fetch_bookings(provider_id, start_time, end_time, exclude_booking_id)
        except Exception as e:
            # Unknown schedule: not eligible
            logger.error(f"Conflict check failed for provider {provider_id}: {e}, treating as busy")
            return True
        return any(intervals_overlap(start_time, end_time, b.start, b.end) for b in bookings)

    async def _recent_assignments(self, provider_ids: Sequence[str], since: datetime) -> List[RecentAssignment]:
        try:
            return await self.repository.fetch_recent_assignments(provider_ids, since)
        except Exception as e:
            logger.error(f"Failed to fetch assignment history: {e}, treating as empty")
            return []

    async def _build_stats(
            self,
            members: Sequence[TeamMember],
            start_time: datetime,
            end_time: datetime,
            exclude_booking_id: Optional[str] = None,
            timezone: Optional[str] = None
    ) -> List[MemberStats]:
        provider_ids = [m.provider_id for m in members]
        week = week_start(start_time)
        today_start, today_end = day_window(start_time, timezone)

        # A local day east of UTC can begin before the week does
        conflicts, history = await asyncio.gather(
            asyncio.gather(*(
                self._has_conflict(pid, start_time, end_time, exclude_booking_id) for pid in provider_ids
            )),
            self._recent_assignments(provider_ids, min(week, today_start)),
        )

        by_provider: Dict[str, List[RecentAssignment]] = {}
        for row in history:
            by_provider.setdefault(row.provider_id, []).append(row)

        stats = []
        for member, conflicted in zip(members, conflicts):
            rows = by_provider.get(member.provider_id, [])
            week_rows = [r for r in rows if r.booking_start >= week]
            stats.append(MemberStats(
                provider_id=member.provider_id,
                is_required=member.is_required,
                is_available=not conflicted,
                bookings_today=sum(1 for r in rows if today_start <= r.booking_start < today_end),
                bookings_this_week=len(week_rows),
                last_assigned_at=max((r.assigned_at for r in week_rows), default=None),
                max_bookings_per_day=member.max_bookings_per_day,
            ))
        return stats

    async def assign_members_to_booking(
            self,
            booking_id: str,
            team_id: str,
            start_time: datetime,
            end_time: datetime,
            min_required: int,
            mode: Union[AssignmentMode, str] = AssignmentMode.ROUND_ROBIN
    ) -> List[str]:
        """
        Assign every required member, then fill the quorum gap with the best
        free optional members. Returns the assigned provider ids, required
        members first. An unfillable quorum assigns whoever is available.
        """
        self._validate_window(start_time, end_time)
        if min_required < 1:
            raise InvalidInputError("min_required must be at least 1")
        mode = self._parse_mode(mode)

        members = await self.repository.fetch_team_members(team_id)
        if not members:
            logger.info(f"Booking link {team_id} has no members, nothing to assign")
            return []

        stats = await self._build_stats(members, start_time, end_time, exclude_booking_id=booking_id)

        decisions = [
            AssignmentDecision(provider_id=m.provider_id, reason=AssignmentReason.REQUIRED)
            for m in stats if m.is_required
        ]

        additional_needed = min_required - len(decisions)
        if additional_needed > 0:
            eligible = [m for m in stats if not m.is_required and m.is_available]
            chosen = sort_by_policy(eligible, mode)[:additional_needed]
            decisions.extend(
                AssignmentDecision(provider_id=m.provider_id, reason=AssignmentReason(mode.value))
                for m in chosen
            )
            if len(chosen) < additional_needed:
                logger.warning(
                    f"Booking {booking_id}: quorum of {min_required} not met, "
                    f"assigned {len(decisions)} members"
                )

        if decisions:
            await self.repository.persist_assignments(booking_id, decisions)

        assigned = [d.provider_id for d in decisions]
        logger.info(f"Booking {booking_id} assigned to {assigned} ({mode.value})")
        return assigned

    async def select_pool_member(
            self,
            pool_id: str,
            pool_type: Union[PoolType, str],
            start_time: datetime,
            end_time: datetime,
            timezone: Optional[str] = None
    ) -> Optional[str]:
        """
        Pick one free pool member for [start_time, end_time), or None.

        ``max_bookings_per_day`` counts bookings on the calendar day of
        ``start_time`` in ``timezone`` (the pool owner's), or in the offset
        ``start_time`` carries when no timezone is given.
        """
        self._validate_window(start_time, end_time)
        try:
            pool_type = PoolType(pool_type)
        except ValueError:
            raise InvalidInputError(f"Invalid pool type: {pool_type!r}")

        members = await self.repository.fetch_pool_members(pool_id)
        if not members:
            return None

        stats = await self._build_stats(members, start_time, end_time, timezone=timezone)
        available = [m for m in stats if m.is_available]
        if not available:
            return None

        if pool_type == PoolType.PRIORITY:
            # Members arrive highest priority first
            return available[0].provider_id

        eligible = [m for m in available if not m.at_daily_limit]
        if not eligible:
            logger.info(f"Every free member of pool {pool_id} is at their daily limit")
            return None

        return sort_by_policy(eligible, pool_type)[0].provider_id

    async def get_booking_assignments(self, booking_id: str) -> List[StoredAssignment]:
        return await self.repository.fetch_booking_assignments(booking_id)

    async def assign_manually(self, booking_id: str, provider_ids: Sequence[str]) -> List[str]:
        unique_ids = list(dict.fromkeys(provider_ids))
        if not unique_ids:
            raise InvalidInputError("provider_ids cannot be empty")

        await self.repository.persist_assignments(booking_id, [
            AssignmentDecision(provider_id=pid, reason=AssignmentReason.MANUAL) for pid in unique_ids
        ])
        return unique_ids
