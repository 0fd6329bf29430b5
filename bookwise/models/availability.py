# ===== bookwise/models/availability.py =====
from sqlalchemy import Column, String, Integer, Boolean, Time, Date, DateTime, ForeignKey
from sqlalchemy.sql import func
from bookwise.models.base import Base
import uuid


class AvailabilityRule(Base):
    """Weekly working-hour window for one provider"""
    __tablename__ = "availability_rules"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    provider_id = Column(String(36), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True)

    day_of_week = Column(Integer, nullable=False)  # 0=Monday, 6=Sunday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    is_active = Column(Boolean, default=True)


class BlackoutDate(Base):
    """Inclusive date range with no availability (holidays, vacation, etc.)"""
    __tablename__ = "blackout_dates"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    provider_id = Column(String(36), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(String, nullable=True)  # "Holiday", "Vacation", etc.

    created_at = Column(DateTime(timezone=True), server_default=func.now())
