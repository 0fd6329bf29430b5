# bookwise/models/provider.py
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func
from bookwise.models.base import Base
import uuid


class Provider(Base):
    """A service professional whose calendar can be booked"""
    __tablename__ = "providers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    email = Column(String(320), nullable=True)
    business_name = Column(String(200), nullable=True)

    timezone = Column(String(50), default="America/New_York")
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Provider(id={self.id}, name={self.name})>"
