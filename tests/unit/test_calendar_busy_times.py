"""Calendar busy-time clients and provider dispatch"""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import httpx
import pytest
from cryptography.fernet import Fernet

from bookwise.core.exceptions import CalendarSyncError
from bookwise.models import CalendarIntegration
from bookwise.services.calendar.busy_time_service import CalendarBusyTimeService
from bookwise.services.calendar.outlook_service import OutlookCalendarService, _parse_graph_datetime
from tests.fakes import at, interval
from tests.integration.factories import make_provider

START = at(2025, 3, 10)
END = at(2025, 3, 10, 23, 59)


@pytest.fixture
def key():
    return Fernet.generate_key().decode()


def outlook_integration(key, calendar_id="cal-1"):
    fernet = Fernet(key.encode())
    return SimpleNamespace(
        id="integration-1",
        provider_id="alice",
        provider="outlook",
        access_token_encrypted=fernet.encrypt(b"access-token"),
        refresh_token_encrypted=fernet.encrypt(b"refresh-token"),
        token_expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        provider_config={"selected_calendar_id": calendar_id},
    )


def graph_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestGraphDatetime:

    def test_seven_digit_fraction(self):
        assert _parse_graph_datetime("2025-03-10T14:00:00.0000000") == at(2025, 3, 10, 14)

    def test_explicit_utc(self):
        assert _parse_graph_datetime("2025-03-10T14:30:00Z") == at(2025, 3, 10, 14, 30)


class TestOutlookBusyTimes:

    def test_declined_and_free_events_are_skipped(self, run, key):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["prefer"] = request.headers["Prefer"]
            return httpx.Response(200, json={"value": [
                {"start": {"dateTime": "2025-03-10T15:00:00.0000000"},
                 "end": {"dateTime": "2025-03-10T16:00:00.0000000"},
                 "showAs": "busy"},
                {"start": {"dateTime": "2025-03-10T09:00:00.0000000"},
                 "end": {"dateTime": "2025-03-10T10:00:00.0000000"},
                 "showAs": "tentative"},
                {"start": {"dateTime": "2025-03-10T11:00:00.0000000"},
                 "end": {"dateTime": "2025-03-10T12:00:00.0000000"},
                 "responseStatus": {"response": "declined"}},
                {"start": {"dateTime": "2025-03-10T12:00:00.0000000"},
                 "end": {"dateTime": "2025-03-10T13:00:00.0000000"},
                 "showAs": "free"},
            ]})

        service = OutlookCalendarService(encryption_key=key, http_client=graph_client(handler))

        busy = run(service.get_busy_times(outlook_integration(key), None, START, END))

        assert [(b.start, b.end) for b in busy] == [
            (at(2025, 3, 10, 9), at(2025, 3, 10, 10)),
            (at(2025, 3, 10, 15), at(2025, 3, 10, 16)),
        ]
        assert "/me/calendars/cal-1/calendarView" in seen["url"]
        assert seen["auth"] == "Bearer access-token"
        assert seen["prefer"] == 'outlook.timezone="UTC"'

    def test_graph_error_raises(self, run, key):
        service = OutlookCalendarService(
            encryption_key=key,
            http_client=graph_client(lambda request: httpx.Response(401, json={"error": "expired"})),
        )

        with pytest.raises(CalendarSyncError):
            run(service.get_busy_times(outlook_integration(key), None, START, END))


class FakeCalendarClient:

    def __init__(self, busy):
        self.busy = busy
        self.calls = []

    async def get_busy_times(self, integration, db, start, end):
        self.calls.append(integration.provider_id)
        return self.busy


class TestBusyTimeDispatch:

    def test_dispatches_on_provider(self, run):
        google = FakeCalendarClient([interval(at(2025, 3, 10, 9), at(2025, 3, 10, 10))])
        outlook = FakeCalendarClient([])
        service = CalendarBusyTimeService(None, google_service=google, outlook_service=outlook)

        busy = run(service.fetch_busy_times(SimpleNamespace(id="i", provider_id="alice", provider="google"), START, END))

        assert len(busy) == 1
        assert google.calls == ["alice"]
        assert outlook.calls == []

    def test_unknown_provider_has_no_busy_time(self, run):
        service = CalendarBusyTimeService(None, google_service=FakeCalendarClient([]), outlook_service=None)

        busy = run(service.fetch_busy_times(SimpleNamespace(id="i", provider_id="alice", provider="calendly"), START, END))

        assert busy == []


class FakeConfidentialClient:

    def __init__(self, client_id, authority=None, client_credential=None):
        pass

    def acquire_token_by_refresh_token(self, refresh_token, scopes):
        return {"access_token": "fresh-token", "expires_in": 3600}


class TestOutlookTokenRefresh:

    def test_refresh_leaves_commit_to_the_caller(self, db, key, monkeypatch):
        monkeypatch.setattr("bookwise.services.calendar.outlook_service.msal.ConfidentialClientApplication",
                            FakeConfidentialClient)
        fernet = Fernet(key.encode())
        provider = make_provider(db, "Alice")
        integration = CalendarIntegration(
            provider_id=provider.id,
            provider="outlook",
            access_token_encrypted=fernet.encrypt(b"stale-token"),
            refresh_token_encrypted=fernet.encrypt(b"refresh-token"),
        )
        db.add(integration)
        db.commit()
        service = OutlookCalendarService(encryption_key=key)

        service.refresh_access_token(integration, db)
        assert fernet.decrypt(integration.access_token_encrypted) == b"fresh-token"

        db.rollback()

        assert fernet.decrypt(integration.access_token_encrypted) == b"stale-token"
