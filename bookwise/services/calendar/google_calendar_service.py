# bookwise/services/calendar/google_calendar_service.py
import asyncio
from datetime import timedelta, datetime, timezone
from typing import List

from bookwise.config.settings import get_settings
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from cryptography.fernet import Fernet
from sqlalchemy.orm import Session
import logging
from bookwise.models import CalendarIntegration
from bookwise.schemas.availability import BusyInterval
from bookwise.utils.datetime_utils import as_utc, require_aware

settings = get_settings()

logger = logging.getLogger(__name__)


class GoogleCalendarService:
    TOKEN_URI = "https://oauth2.googleapis.com/token"

    def __init__(self, encryption_key: str = None):
        self.encryption_key = encryption_key or settings.CALENDAR_ENCRYPTION_KEY
        self.fernet = Fernet(self.encryption_key.encode())
        self.client_id = settings.GOOGLE_CLIENT_ID
        self.client_secret = settings.GOOGLE_CLIENT_SECRET

    def get_valid_credentials(self, integration: CalendarIntegration, db: Session) -> Credentials:
        """Get valid credentials, refreshing if necessary"""
        now = datetime.now(timezone.utc)
        expires_at = integration.token_expires_at
        if expires_at is None or as_utc(expires_at) <= now + timedelta(minutes=5):
            return self.refresh_access_token(integration, db)
        access_token = self.fernet.decrypt(integration.access_token_encrypted).decode()
        refresh_token = self.fernet.decrypt(integration.refresh_token_encrypted).decode()
        return Credentials(
            token=access_token,
            refresh_token=refresh_token,
            token_uri=self.TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret
        )

    def refresh_access_token(self, integration: CalendarIntegration, db: Session) -> Credentials:
        """Refresh expired access token using refresh token"""
        refresh_token = self.fernet.decrypt(integration.refresh_token_encrypted).decode()
        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=self.TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret
        )
        credentials.refresh(Request())
        integration.access_token_encrypted = self.fernet.encrypt(credentials.token.encode())
        integration.token_expires_at = credentials.expiry
        db.flush()
        logger.info(f"Refreshed Google access token for provider {integration.provider_id}")
        return credentials

    def _query_freebusy(self, credentials: Credentials, calendar_id: str, start: datetime, end: datetime) -> List[dict]:
        service = build('calendar', 'v3', credentials=credentials, cache_discovery=False)
        body = {
            "timeMin": start.isoformat(),
            "timeMax": end.isoformat(),
            "items": [{"id": calendar_id}],
        }
        result = service.freebusy().query(body=body).execute()
        return result.get('calendars', {}).get(calendar_id, {}).get('busy', [])

    async def get_busy_times(
            self,
            integration: CalendarIntegration,
            db: Session,
            start: datetime,
            end: datetime
    ) -> List[BusyInterval]:
        """Busy blocks of the selected calendar between ``start`` and ``end``"""
        start = as_utc(require_aware(start, "start"))
        end = as_utc(require_aware(end, "end"))

        credentials = self.get_valid_credentials(integration, db)
        calendar_id = (integration.provider_config or {}).get('selected_calendar_id') or 'primary'

        # googleapiclient is blocking
        busy = await asyncio.to_thread(self._query_freebusy, credentials, calendar_id, start, end)

        intervals = [
            BusyInterval(
                start=as_utc(datetime.fromisoformat(block['start'].replace('Z', '+00:00'))),
                end=as_utc(datetime.fromisoformat(block['end'].replace('Z', '+00:00'))),
            )
            for block in busy
        ]
        logger.debug(f"Google calendar {calendar_id}: {len(intervals)} busy blocks")
        return intervals
