# bookwise/models/booking_link.py
"""
Booking links - team pages where several providers are booked together.
"""
from sqlalchemy import Column, String, Boolean, Integer, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from bookwise.models.base import Base
import uuid


class BookingLink(Base):
    __tablename__ = "booking_links"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(36), ForeignKey("providers.id"), nullable=False)

    name = Column(String(200), nullable=False)
    slug = Column(String(200), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)

    # NULL = every required member must attend, N = "any N of M"
    min_required_members = Column(Integer, nullable=True)
    assignment_mode = Column(String(20), default="round_robin")  # round_robin, load_balanced

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    members = relationship("BookingLinkMember", back_populates="booking_link", cascade="all, delete-orphan")
    owner = relationship("Provider")

    @property
    def is_flexible(self) -> bool:
        return self.min_required_members is not None


class BookingLinkMember(Base):
    __tablename__ = "booking_link_members"
    __table_args__ = (UniqueConstraint("booking_link_id", "provider_id"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    booking_link_id = Column(String(36), ForeignKey("booking_links.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)

    is_required = Column(Boolean, default=True)
    priority = Column(Integer, default=0)
    max_bookings_per_day = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    booking_link = relationship("BookingLink", back_populates="members")
