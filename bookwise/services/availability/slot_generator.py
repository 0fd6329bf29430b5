# bookwise/services/availability/slot_generator.py
"""
Single-provider slot generation.

Pure functions only: given one provider's weekly rules and the intervals that
block them on a day, produce the fixed-size slots of that day with an
availability flag each. Nothing here reads the clock, the database or an
external calendar; callers pass ``now`` and pre-fetched intervals in.
"""
import logging
from datetime import date, datetime, timedelta
from itertools import chain
from typing import Iterable, List, Sequence, Set, Tuple

from bookwise.core.exceptions import InvalidInputError
from bookwise.schemas.availability import (
    AvailabilityRuleData,
    BlackoutRange,
    ServiceConfig,
    Slot,
    TimeInterval,
)
from bookwise.utils.datetime_utils import require_aware, resolve_timezone

logger = logging.getLogger(__name__)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval intersection"""
    return a_start < b_end and b_start < a_end


def rules_for_day(rules: Iterable[AvailabilityRuleData], day_of_week: int) -> List[AvailabilityRuleData]:
    """Active rules that apply to a weekday (0=Monday)"""
    return [r for r in rules if r.is_active and r.day_of_week == day_of_week]


def has_rules_for_day(rules: Iterable[AvailabilityRuleData], day_of_week: int) -> bool:
    return any(r.start_time < r.end_time for r in rules_for_day(rules, day_of_week))


def blackout_covers(blackouts: Iterable[BlackoutRange], day: date) -> bool:
    return any(b.covers(day) for b in blackouts)


def available_start_times(slots: Iterable[Slot]) -> Set[datetime]:
    return {s.start for s in slots if s.available}


def validate_service(service: ServiceConfig) -> None:
    if service.duration_minutes <= 0:
        raise InvalidInputError("duration_minutes must be positive")
    if service.buffer_minutes < 0:
        raise InvalidInputError("buffer_minutes cannot be negative")


def _blocking_intervals(
        intervals: Iterable[TimeInterval],
        buffer: timedelta
) -> List[Tuple[datetime, datetime]]:
    # A booking's buffer trails its end; it never blocks time before it starts
    blocking = []
    for interval in intervals:
        start = require_aware(interval.start, "busy interval start")
        end = require_aware(interval.end, "busy interval end")
        blocking.append((start, end + buffer))
    blocking.sort()
    return blocking


def generate_slots(
        target_date: date,
        rules: Sequence[AvailabilityRuleData],
        service: ServiceConfig,
        existing_bookings: Iterable[TimeInterval],
        timezone: str,
        minimum_notice_hours: float,
        external_busy: Iterable[TimeInterval] = (),
        *,
        now: datetime
) -> List[Slot]:
    """
    Generate every slot of ``target_date`` for one provider.

    Each active rule for the weekday is walked from its start in steps of
    ``service.duration_minutes`` while the slot still ends inside the rule.
    Rules whose start is not before their end contribute nothing. Overlapping
    rules are additive; a start time produced twice is kept once.

    A slot is unavailable when it starts before ``now + minimum_notice_hours``
    or when it overlaps a booking or busy interval extended by the service
    buffer. All slots are returned, ordered by start.
    """
    tz = resolve_timezone(timezone)
    validate_service(service)
    if minimum_notice_hours < 0:
        raise InvalidInputError("minimum_notice_hours cannot be negative")
    require_aware(now, "now")

    earliest_start = now + timedelta(hours=minimum_notice_hours)
    duration = timedelta(minutes=service.duration_minutes)
    blocking = _blocking_intervals(
        chain(existing_bookings, external_busy),
        timedelta(minutes=service.buffer_minutes)
    )

    day_rules = sorted(
        rules_for_day(rules, target_date.weekday()),
        key=lambda r: (r.start_time, r.end_time)
    )

    slots: List[Slot] = []
    seen: Set[datetime] = set()

    for rule in day_rules:
        if rule.start_time >= rule.end_time:
            logger.debug(f"Skipping malformed rule {rule.start_time}-{rule.end_time} on {target_date}")
            continue

        # Slots step on absolute time, so a DST change never alters their length
        start_at = tz.normalize(tz.localize(datetime.combine(target_date, rule.start_time)))
        window_end = tz.normalize(tz.localize(datetime.combine(target_date, rule.end_time)))

        while start_at + duration <= window_end:
            end_at = tz.normalize(start_at + duration)

            if start_at not in seen:
                seen.add(start_at)
                too_soon = start_at < earliest_start
                conflict = any(
                    intervals_overlap(start_at, end_at, busy_start, busy_end)
                    for busy_start, busy_end in blocking
                )
                slots.append(Slot(start=start_at, end=end_at, available=not too_soon and not conflict))

            start_at = end_at

    slots.sort(key=lambda s: s.start)
    return slots
