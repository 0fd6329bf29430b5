# bookwise/models/booking_assignment.py
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, ForeignKey
from bookwise.models.base import Base
import uuid


class BookingAssignment(Base):
    """Who was assigned to a team booking, and why"""
    __tablename__ = "booking_assignments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("providers.id"), nullable=False, index=True)

    assigned_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    assignment_reason = Column(String(20), nullable=True)  # required, round_robin, load_balanced, manual
