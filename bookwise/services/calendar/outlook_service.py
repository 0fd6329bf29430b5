# bookwise/services/calendar/outlook_service.py
from datetime import datetime, timedelta, timezone
from typing import List
import logging

import httpx
import msal
from cryptography.fernet import Fernet
from sqlalchemy.orm import Session

from bookwise.config.settings import get_settings
from bookwise.core.exceptions import CalendarSyncError
from bookwise.models import CalendarIntegration
from bookwise.schemas.availability import BusyInterval
from bookwise.utils.datetime_utils import as_utc, require_aware

settings = get_settings()

logger = logging.getLogger(__name__)


def _parse_graph_datetime(value: str) -> datetime:
    # Graph returns UTC without an offset when asked for outlook.timezone="UTC"
    if not value.endswith('Z') and '+' not in value:
        value += 'Z'
    # Graph uses 7 fractional digits
    head, sep, tail = value.replace('Z', '+00:00').partition('.')
    if sep:
        fraction, _, offset = tail.partition('+')
        value = f"{head}.{fraction[:6]}+{offset}"
    else:
        value = head
    return as_utc(datetime.fromisoformat(value))


class OutlookCalendarService:
    SCOPES = ['Calendars.Read']
    AUTHORITY = 'https://login.microsoftonline.com/common'
    GRAPH_ENDPOINT = 'https://graph.microsoft.com/v1.0'

    def __init__(self, encryption_key: str = None, http_client: httpx.AsyncClient = None):
        self.client_id = settings.MICROSOFT_CLIENT_ID
        self.client_secret = settings.MICROSOFT_CLIENT_SECRET
        self.fernet = Fernet((encryption_key or settings.CALENDAR_ENCRYPTION_KEY).encode())
        self.http_client = http_client

    def _get_valid_access_token(self, integration: CalendarIntegration, db: Session) -> str:
        """Get valid access token, refreshing if necessary"""
        now = datetime.now(timezone.utc)

        # Check if token is expired (with 5 min buffer)
        expires_at = integration.token_expires_at
        if expires_at is None or as_utc(expires_at) <= now + timedelta(minutes=5):
            self.refresh_access_token(integration, db)

        return self.fernet.decrypt(integration.access_token_encrypted).decode()

    def refresh_access_token(self, integration: CalendarIntegration, db: Session):
        """Refresh expired access token"""
        refresh_token = self.fernet.decrypt(integration.refresh_token_encrypted).decode()

        app = msal.ConfidentialClientApplication(
            self.client_id,
            authority=self.AUTHORITY,
            client_credential=self.client_secret
        )

        result = app.acquire_token_by_refresh_token(
            refresh_token=refresh_token,
            scopes=self.SCOPES
        )

        if "error" in result:
            raise CalendarSyncError(f"Token refresh failed: {result.get('error_description')}")

        integration.access_token_encrypted = self.fernet.encrypt(
            result['access_token'].encode()
        )
        integration.token_expires_at = datetime.now(timezone.utc) + timedelta(seconds=result['expires_in'])
        db.flush()

    async def _get_calendar_view(self, url: str, headers: dict, params: dict) -> httpx.Response:
        if self.http_client is not None:
            return await self.http_client.get(url, headers=headers, params=params)
        async with httpx.AsyncClient(timeout=settings.CALENDAR_REQUEST_TIMEOUT_SECONDS) as client:
            return await client.get(url, headers=headers, params=params)

    async def get_busy_times(
            self,
            integration: CalendarIntegration,
            db: Session,
            start: datetime,
            end: datetime
    ) -> List[BusyInterval]:
        """Events of the selected calendar that block time"""
        start = as_utc(require_aware(start, "start"))
        end = as_utc(require_aware(end, "end"))

        access_token = self._get_valid_access_token(integration, db)
        headers = {
            'Authorization': f'Bearer {access_token}',
            'Prefer': 'outlook.timezone="UTC"',
        }

        calendar_id = (integration.provider_config or {}).get('selected_calendar_id')
        if calendar_id:
            url = f"{self.GRAPH_ENDPOINT}/me/calendars/{calendar_id}/calendarView"
        else:
            url = f"{self.GRAPH_ENDPOINT}/me/calendarView"

        params = {
            'startDateTime': start.isoformat(),
            'endDateTime': end.isoformat(),
            '$select': 'start,end,showAs,responseStatus',
        }

        response = await self._get_calendar_view(url, headers, params)

        if response.status_code != 200:
            logger.error(f"Microsoft Graph API error: {response.text}")
            raise CalendarSyncError(f"Failed to fetch calendar events: {response.status_code}")

        busy_periods = []
        for event in response.json().get('value', []):
            if event.get('responseStatus', {}).get('response') == 'declined':
                continue
            if event.get('showAs') == 'free':
                continue

            busy_periods.append(BusyInterval(
                start=_parse_graph_datetime(event['start']['dateTime']),
                end=_parse_graph_datetime(event['end']['dateTime']),
            ))

        busy_periods.sort(key=lambda b: b.start)
        return busy_periods
