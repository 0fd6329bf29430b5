# bookwise/services/calendar/busy_time_service.py
"""Dispatch from a calendar integration row to the matching calendar client"""
import logging
from datetime import datetime
from typing import List

from sqlalchemy.orm import Session

from bookwise.models import CalendarIntegration
from bookwise.schemas.availability import BusyInterval
from bookwise.services.calendar.google_calendar_service import GoogleCalendarService
from bookwise.services.calendar.outlook_service import OutlookCalendarService

logger = logging.getLogger(__name__)


class CalendarBusyTimeService:

    def __init__(self, db: Session, google_service=None, outlook_service=None, commit_refreshed_tokens: bool = True):
        self.db = db
        # Refreshed tokens are only flushed by the clients; a booking transaction commits them itself
        self.commit_refreshed_tokens = commit_refreshed_tokens
        self._google = google_service
        self._outlook = outlook_service

    @property
    def google(self) -> GoogleCalendarService:
        if self._google is None:
            self._google = GoogleCalendarService()
        return self._google

    @property
    def outlook(self) -> OutlookCalendarService:
        if self._outlook is None:
            self._outlook = OutlookCalendarService()
        return self._outlook

    async def fetch_busy_times(
            self,
            integration: CalendarIntegration,
            start: datetime,
            end: datetime
    ) -> List[BusyInterval]:
        if integration.provider == 'google':
            busy = await self.google.get_busy_times(integration, self.db, start, end)
        elif integration.provider == 'outlook':
            busy = await self.outlook.get_busy_times(integration, self.db, start, end)
        else:
            logger.warning(f"Unsupported calendar provider '{integration.provider}' "
                           f"for integration {integration.id}, ignoring")
            return []

        if self.commit_refreshed_tokens and self.db is not None:
            self.db.commit()
        return busy
