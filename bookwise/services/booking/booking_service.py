# bookwise/services/booking/booking_service.py
"""
Booking creation.

Availability is computed when the client looks at slots, so by the time a
booking arrives the slot may be gone. ``create_booking`` re-checks it inside
the insert transaction while holding a row lock on the provider, so two
concurrent requests for the same provider are serialized.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.orm import Session

from bookwise.config.settings import get_settings
from bookwise.core.exceptions import InvalidInputError, NotFoundError, SlotUnavailableError
from bookwise.models import Booking, BookingLink, Provider
from bookwise.services.assignment.assignment_service import TeamAssignmentService
from bookwise.services.availability.slot_generator import intervals_overlap
from bookwise.services.data.availability_repository import AvailabilityRepository
from bookwise.utils.datetime_utils import as_utc, require_aware

logger = logging.getLogger(__name__)

settings = get_settings()


class BookingService:

    def __init__(self, db: Session, busy_times=None, minimum_notice_hours: Optional[float] = None):
        self.db = db
        self.busy_times = busy_times
        self.repository = AvailabilityRepository(db, autocommit=False)
        self.assignments = TeamAssignmentService(self.repository)
        self.minimum_notice_hours = (
            settings.MINIMUM_NOTICE_HOURS if minimum_notice_hours is None else minimum_notice_hours
        )

    def _lock_provider(self, provider_id: str) -> Provider:
        provider = self.db.query(Provider).filter(
            Provider.id == provider_id
        ).with_for_update().first()
        if not provider:
            raise NotFoundError(f"Provider {provider_id} not found")
        return provider

    def _has_booking_conflict(self, provider_id: str, start: datetime, end: datetime, buffer: timedelta) -> bool:
        # An existing booking blocks until its end plus the buffer
        conflict = self.db.query(Booking.id).filter(
            and_(
                Booking.provider_id == provider_id,
                Booking.status != "cancelled",
                Booking.start_time < end,
                Booking.end_time > start - buffer,
            )
        ).first()
        return conflict is not None

    async def _has_calendar_conflict(self, provider_id: str, start: datetime, end: datetime, buffer: timedelta) -> bool:
        if self.busy_times is None:
            return False

        integration = await self.repository.fetch_calendar_integration(provider_id)
        if not integration:
            return False

        try:
            busy = await self.busy_times.fetch_busy_times(integration, start, end)
        except Exception as e:
            logger.error(f"Busy time check failed for provider {provider_id}: {e}, ignoring calendar")
            return False

        return any(intervals_overlap(start, end, b.start, b.end + buffer) for b in busy)

    async def _ensure_slot_free(self, provider_ids: List[str], start: datetime, end: datetime, buffer: timedelta):
        for pid in provider_ids:
            if self._has_booking_conflict(pid, start, end, buffer):
                logger.info(f"Provider {pid} already booked at {start.isoformat()}")
                raise SlotUnavailableError(pid)
            if await self._has_calendar_conflict(pid, start, end, buffer):
                logger.info(f"Provider {pid} busy in external calendar at {start.isoformat()}")
                raise SlotUnavailableError(pid)

    async def create_booking(
            self,
            provider_id: str,
            service_id: str,
            start_time: datetime,
            client_name: str,
            client_email: str,
            client_phone: Optional[str] = None,
            notes: Optional[str] = None,
            booking_link_id: Optional[str] = None,
            *,
            now: Optional[datetime] = None
    ) -> Tuple[Booking, List[str]]:
        """
        Insert a booking if its slot is still free.

        Returns the booking and, for flexible booking links, the provider ids
        assigned to it. Raises ``SlotUnavailableError`` when the provider (or
        a required link member) got booked or busy in the meantime.
        """
        require_aware(start_time, "start_time")
        now = now or datetime.now(timezone.utc)
        require_aware(now, "now")

        service = self.repository.get_service(service_id)
        if not service:
            raise NotFoundError(f"Service {service_id} not found")

        link: Optional[BookingLink] = None
        if booking_link_id:
            link = self.repository.get_booking_link(booking_link_id)
            if not link:
                raise NotFoundError(f"Booking link {booking_link_id} not found")

        start = as_utc(start_time)
        end = start + timedelta(minutes=service.duration_minutes)
        buffer = timedelta(minutes=service.buffer_minutes or 0)

        if start < now + timedelta(hours=self.minimum_notice_hours):
            raise InvalidInputError(
                f"Bookings need at least {self.minimum_notice_hours} hours notice"
            )

        try:
            self._lock_provider(provider_id)

            check_ids = [provider_id]
            if link:
                check_ids.extend(m.provider_id for m in link.members if m.is_required)
            await self._ensure_slot_free(list(dict.fromkeys(check_ids)), start, end, buffer)

            booking = Booking(
                provider_id=provider_id,
                service_id=service.id,
                booking_link_id=link.id if link else None,
                client_name=client_name,
                client_email=client_email,
                client_phone=client_phone,
                notes=notes,
                start_time=start,
                end_time=end,
                status="pending" if service.booking_mode == "request" else "confirmed",
            )
            self.db.add(booking)
            self.db.flush()

            assigned: List[str] = []
            if link and link.is_flexible:
                assigned = await self.assignments.assign_members_to_booking(
                    booking.id,
                    link.id,
                    start,
                    end,
                    link.min_required_members,
                    link.assignment_mode or "round_robin",
                )
            self.db.commit()

        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.info(f"Created booking {booking.id} for provider {provider_id} at {start.isoformat()} "
                    f"({booking.status})")
        return booking, assigned
