# bookwise/services/data/availability_repository.py
"""
SQLAlchemy-backed reads and writes used by the availability and assignment
services. Rows are converted to the value types in ``bookwise.schemas``
before they leave this module.
"""
import logging
from datetime import date, datetime
from typing import List, Optional, Sequence

from sqlalchemy import and_
from sqlalchemy.orm import Session

from bookwise.models import (
    AvailabilityRule,
    BlackoutDate,
    Booking,
    BookingAssignment,
    BookingLink,
    BookingLinkMember,
    CalendarIntegration,
    Provider,
    ResourcePool,
    ResourcePoolMember,
    Service,
)
from bookwise.schemas.availability import (
    AssignmentDecision,
    AvailabilityRuleData,
    BlackoutRange,
    RecentAssignment,
    StoredAssignment,
    TeamMember,
    TimeInterval,
)
from bookwise.utils.datetime_utils import as_utc, require_aware

logger = logging.getLogger(__name__)


class AvailabilityRepository:
    """Query layer over one request-scoped session"""

    def __init__(self, db: Session, autocommit: bool = True):
        self.db = db
        # Off when the caller owns the surrounding transaction
        self.autocommit = autocommit

    # ---- lookups used by the HTTP layer ----

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        return self.db.query(Provider).filter(Provider.id == provider_id).first()

    def get_service(self, service_id: str) -> Optional[Service]:
        return self.db.query(Service).filter(
            Service.id == service_id,
            Service.is_active == True
        ).first()

    def get_booking_link(self, booking_link_id: str) -> Optional[BookingLink]:
        return self.db.query(BookingLink).filter(
            BookingLink.id == booking_link_id,
            BookingLink.is_active == True
        ).first()

    def get_pool(self, pool_id: str) -> Optional[ResourcePool]:
        return self.db.query(ResourcePool).filter(
            ResourcePool.id == pool_id,
            ResourcePool.is_active == True
        ).first()

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self.db.query(Booking).filter(Booking.id == booking_id).first()

    # ---- per-member fetches ----

    async def fetch_availability_rules(self, provider_id: str, active_only: bool = True) -> List[AvailabilityRuleData]:
        query = self.db.query(AvailabilityRule).filter(AvailabilityRule.provider_id == provider_id)
        if active_only:
            query = query.filter(AvailabilityRule.is_active == True)

        return [
            AvailabilityRuleData(
                day_of_week=rule.day_of_week,
                start_time=rule.start_time,
                end_time=rule.end_time,
                is_active=bool(rule.is_active),
            )
            for rule in query.order_by(AvailabilityRule.day_of_week, AvailabilityRule.start_time).all()
        ]

    async def fetch_bookings(
            self,
            provider_id: str,
            range_start: datetime,
            range_end: datetime,
            exclude_booking_id: Optional[str] = None
    ) -> List[TimeInterval]:
        """Non-cancelled bookings overlapping [range_start, range_end]"""
        range_start = as_utc(require_aware(range_start, "range_start"))
        range_end = as_utc(require_aware(range_end, "range_end"))

        query = self.db.query(Booking).filter(
            and_(
                Booking.provider_id == provider_id,
                Booking.status != "cancelled",
                Booking.start_time <= range_end,
                Booking.end_time >= range_start,
            )
        )
        if exclude_booking_id:
            query = query.filter(Booking.id != exclude_booking_id)

        return [
            TimeInterval(start=as_utc(b.start_time), end=as_utc(b.end_time))
            for b in query.order_by(Booking.start_time).all()
        ]

    async def fetch_blackouts(
            self,
            provider_id: str,
            start_date: Optional[date] = None,
            end_date: Optional[date] = None
    ) -> List[BlackoutRange]:
        """Blackout ranges touching [start_date, end_date]; no bounds means all of them"""
        query = self.db.query(BlackoutDate).filter(BlackoutDate.provider_id == provider_id)
        if start_date is not None:
            query = query.filter(BlackoutDate.end_date >= start_date)
        if end_date is not None:
            query = query.filter(BlackoutDate.start_date <= end_date)

        return [
            BlackoutRange(start_date=b.start_date, end_date=b.end_date)
            for b in query.order_by(BlackoutDate.start_date).all()
        ]

    async def fetch_calendar_integration(self, provider_id: str) -> Optional[CalendarIntegration]:
        return self.db.query(CalendarIntegration).filter(
            CalendarIntegration.provider_id == provider_id,
            CalendarIntegration.is_active == True
        ).first()

    # ---- team and pool membership ----

    async def fetch_team_members(self, team_id: str) -> List[TeamMember]:
        members = self.db.query(BookingLinkMember).filter(
            BookingLinkMember.booking_link_id == team_id
        ).order_by(BookingLinkMember.created_at, BookingLinkMember.id).all()

        return [
            TeamMember(
                provider_id=m.provider_id,
                is_required=bool(m.is_required),
                priority=m.priority or 0,
                max_bookings_per_day=m.max_bookings_per_day,
            )
            for m in members
        ]

    async def fetch_pool_members(self, pool_id: str) -> List[TeamMember]:
        """Active pool members, highest priority first"""
        members = self.db.query(ResourcePoolMember).filter(
            ResourcePoolMember.pool_id == pool_id,
            ResourcePoolMember.is_active == True
        ).order_by(ResourcePoolMember.priority.desc(), ResourcePoolMember.created_at).all()

        return [
            TeamMember(
                provider_id=m.provider_id,
                is_required=False,
                priority=m.priority or 0,
                max_bookings_per_day=m.max_bookings_per_day,
            )
            for m in members
        ]

    # ---- assignment history ----

    async def fetch_recent_assignments(self, provider_ids: Sequence[str], since: datetime) -> List[RecentAssignment]:
        """Assignments of the given providers whose booking starts at or after ``since``"""
        if not provider_ids:
            return []
        since = as_utc(require_aware(since, "since"))

        rows = self.db.query(BookingAssignment, Booking.start_time).join(
            Booking, Booking.id == BookingAssignment.booking_id
        ).filter(
            BookingAssignment.provider_id.in_(list(provider_ids)),
            Booking.start_time >= since
        ).all()

        return [
            RecentAssignment(
                provider_id=assignment.provider_id,
                assigned_at=as_utc(assignment.assigned_at),
                booking_start=as_utc(booking_start),
            )
            for assignment, booking_start in rows
        ]

    async def persist_assignments(self, booking_id: str, decisions: Sequence[AssignmentDecision]) -> None:
        self.db.add_all([
            BookingAssignment(
                booking_id=booking_id,
                provider_id=decision.provider_id,
                assignment_reason=decision.reason.value,
            )
            for decision in decisions
        ])
        self.db.flush()
        if self.autocommit:
            self.db.commit()
        logger.info(f"Persisted {len(decisions)} assignments for booking {booking_id}")

    async def fetch_booking_assignments(self, booking_id: str) -> List[StoredAssignment]:
        rows = self.db.query(BookingAssignment).filter(
            BookingAssignment.booking_id == booking_id
        ).order_by(BookingAssignment.assigned_at, BookingAssignment.id).all()

        return [
            StoredAssignment(
                provider_id=row.provider_id,
                assigned_at=as_utc(row.assigned_at),
                reason=row.assignment_reason,
            )
            for row in rows
        ]
