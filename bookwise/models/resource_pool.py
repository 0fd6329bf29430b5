# bookwise/models/resource_pool.py
from sqlalchemy import Column, String, Boolean, Integer, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from bookwise.models.base import Base
import uuid


class ResourcePool(Base):
    """Interchangeable providers: any one free member makes a slot bookable"""
    __tablename__ = "resource_pools"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(36), ForeignKey("providers.id"), nullable=False)

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    pool_type = Column(String(20), default="round_robin")  # round_robin, load_balanced, priority
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    members = relationship("ResourcePoolMember", back_populates="pool", cascade="all, delete-orphan")
    owner = relationship("Provider")


class ResourcePoolMember(Base):
    __tablename__ = "resource_pool_members"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    pool_id = Column(String(36), ForeignKey("resource_pools.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False)

    priority = Column(Integer, default=0)  # Higher wins in 'priority' pools
    max_bookings_per_day = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    pool = relationship("ResourcePool", back_populates="members")
