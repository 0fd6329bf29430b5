# ===== bookwise/models/calendar_integration.py =====
from sqlalchemy import Column, String, Boolean, DateTime, LargeBinary, ForeignKey, JSON
from sqlalchemy.sql import func
from bookwise.models.base import Base
import uuid


class CalendarIntegration(Base):
    __tablename__ = "calendar_integrations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    provider_id = Column(String(36), ForeignKey("providers.id", ondelete="CASCADE"), index=True)

    provider = Column(String)  # 'google', 'outlook'
    is_active = Column(Boolean, default=True)

    # OAuth tokens, Fernet-encrypted
    access_token_encrypted = Column(LargeBinary)
    refresh_token_encrypted = Column(LargeBinary)
    token_expires_at = Column(DateTime(timezone=True))

    # Provider-specific config (selected_calendar_id, calendar_list, ...)
    provider_config = Column(JSON, default=dict)

    last_sync_at = Column(DateTime(timezone=True))
    last_sync_status = Column(String)  # 'success', 'failed'

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
