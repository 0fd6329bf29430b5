"""In-memory stand-ins for the repository and calendar collaborators"""
from datetime import date, datetime, time
from typing import Dict, List, Optional, Sequence, Set, Tuple

import pytz

from bookwise.schemas.availability import (
    AssignmentDecision,
    AvailabilityRuleData,
    BlackoutRange,
    RecentAssignment,
    StoredAssignment,
    TeamMember,
    TimeInterval,
)

UTC = pytz.UTC


def at(year, month, day, hour=0, minute=0, tz=UTC) -> datetime:
    return tz.localize(datetime(year, month, day, hour, minute))


def hm(value: str) -> time:
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


def rule(day_of_week: int, start: str, end: str, is_active: bool = True) -> AvailabilityRuleData:
    return AvailabilityRuleData(day_of_week=day_of_week, start_time=hm(start), end_time=hm(end), is_active=is_active)


def weekdays(start: str, end: str, days=range(5)) -> List[AvailabilityRuleData]:
    return [rule(d, start, end) for d in days]


def interval(start: datetime, end: datetime) -> TimeInterval:
    return TimeInterval(start=start, end=end)


class FakeIntegration:
    def __init__(self, provider_id: str, provider: str = "google"):
        self.id = f"integration-{provider_id}"
        self.provider_id = provider_id
        self.provider = provider


class FakeRepository:
    """Dictionary-backed repository. ``fail`` holds (method, provider_id) pairs that raise."""

    def __init__(self):
        self.rules: Dict[str, List[AvailabilityRuleData]] = {}
        self.bookings: Dict[str, List[Tuple[str, TimeInterval]]] = {}
        self.blackouts: Dict[str, List[BlackoutRange]] = {}
        self.integrations: Dict[str, FakeIntegration] = {}
        self.team_members: Dict[str, List[TeamMember]] = {}
        self.pool_members: Dict[str, List[TeamMember]] = {}
        self.history: List[RecentAssignment] = []
        self.persisted: Dict[str, List[AssignmentDecision]] = {}
        self.fail: Set[Tuple[str, str]] = set()
        self.calls: List[Tuple[str, str]] = []

    # ---- setup helpers ----

    def add_booking(self, provider_id: str, start: datetime, end: datetime, booking_id: Optional[str] = None):
        booking_id = booking_id or f"booking-{provider_id}-{start.isoformat()}"
        self.bookings.setdefault(provider_id, []).append((booking_id, interval(start, end)))
        return booking_id

    def add_blackout(self, provider_id: str, start_date: date, end_date: Optional[date] = None):
        self.blackouts.setdefault(provider_id, []).append(
            BlackoutRange(start_date=start_date, end_date=end_date or start_date)
        )

    def _check(self, method: str, provider_id: str):
        self.calls.append((method, provider_id))
        if (method, provider_id) in self.fail:
            raise ConnectionError(f"{method} unavailable for {provider_id}")

    # ---- repository contract ----

    async def fetch_availability_rules(self, provider_id, active_only=True):
        self._check("rules", provider_id)
        rules = self.rules.get(provider_id, [])
        return [r for r in rules if r.is_active] if active_only else list(rules)

    async def fetch_bookings(self, provider_id, range_start, range_end, exclude_booking_id=None):
        self._check("bookings", provider_id)
        return [
            b for booking_id, b in self.bookings.get(provider_id, [])
            if booking_id != exclude_booking_id and b.start <= range_end and b.end >= range_start
        ]

    async def fetch_blackouts(self, provider_id, start_date=None, end_date=None):
        self._check("blackouts", provider_id)
        return [
            b for b in self.blackouts.get(provider_id, [])
            if (start_date is None or b.end_date >= start_date)
            and (end_date is None or b.start_date <= end_date)
        ]

    async def fetch_calendar_integration(self, provider_id):
        self._check("integration", provider_id)
        return self.integrations.get(provider_id)

    async def fetch_team_members(self, team_id):
        return list(self.team_members.get(team_id, []))

    async def fetch_pool_members(self, pool_id):
        return sorted(self.pool_members.get(pool_id, []), key=lambda m: -m.priority)

    async def fetch_recent_assignments(self, provider_ids: Sequence[str], since: datetime):
        return [r for r in self.history if r.provider_id in provider_ids and r.booking_start >= since]

    async def persist_assignments(self, booking_id, decisions):
        self.persisted.setdefault(booking_id, []).extend(decisions)

    async def fetch_booking_assignments(self, booking_id):
        return [
            StoredAssignment(provider_id=d.provider_id, assigned_at=at(2025, 3, 1), reason=d.reason.value)
            for d in self.persisted.get(booking_id, [])
        ]


class FakeBusyTimes:
    """Calendar busy-time source keyed by provider id"""

    def __init__(self, busy: Optional[Dict[str, List[TimeInterval]]] = None, failing: Sequence[str] = ()):
        self.busy = busy or {}
        self.failing = set(failing)
        self.requests: List[Tuple[str, datetime, datetime]] = []

    async def fetch_busy_times(self, integration, start, end):
        self.requests.append((integration.provider_id, start, end))
        if integration.provider_id in self.failing:
            raise TimeoutError("calendar API timed out")
        return [b for b in self.busy.get(integration.provider_id, []) if b.start < end and start < b.end]
