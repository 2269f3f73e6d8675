"""
Google Calendar sync for tasks.

Two transports talk to the same Calendar v3 API: plain REST calls with the
session's provider token (default) and the Google API client library.
"""

import asyncio
import logging
import os
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol

import httpx
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from auth.session import Session
from repositories.tasks import TaskRepository
from smart_todo.models import IN_PROGRESS, PENDING, Task, to_utc

logger = logging.getLogger(__name__)

GCAL_API_BASE = "https://www.googleapis.com/calendar/v3"
CALENDAR_TRANSPORT = os.getenv("CALENDAR_TRANSPORT", "rest").strip().lower()
CALENDAR_TIMEZONE = os.getenv("CALENDAR_TIMEZONE", "UTC").strip()
SITE_URL = os.getenv("SITE_URL", "http://localhost:3000").strip()
SOURCE_TITLE = "Smart Todo Dashboard"

EVENT_DURATION = timedelta(hours=1)

# Calendar color ids: 11 red, 5 orange/yellow, 2 green
PRIORITY_COLORS = {"High": "11", "Medium": "5", "Low": "2"}

SYNCABLE_STATUSES = {PENDING, IN_PROGRESS}


class CalendarApiError(Exception):
    def __init__(self, status: Optional[int], reason: str, body: str = ""):
        super().__init__(f"{status} {reason}".strip() if status else reason)
        self.status = status
        self.reason = reason
        self.body = body


class CalendarTransport(Protocol):
    async def probe(self) -> int: ...

    async def insert_event(self, event: Dict[str, Any]) -> Dict[str, Any]: ...


class RestCalendarTransport:
    def __init__(
        self,
        access_token: str,
        base_url: str = GCAL_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.headers = {"Authorization": f"Bearer {access_token}"}
        self.base_url = base_url
        self._transport = transport

    async def probe(self) -> int:
        async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
            r = await client.get(
                f"{self.base_url}/calendars/primary", headers=self.headers
            )
        return r.status_code

    async def insert_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            try:
                r = await client.post(
                    f"{self.base_url}/calendars/primary/events",
                    headers=self.headers,
                    json=event,
                )
            except httpx.HTTPError as e:
                raise CalendarApiError(None, str(e) or "Network error") from e
        if r.is_error:
            raise CalendarApiError(r.status_code, r.reason_phrase, r.text)
        return r.json()


class GoogleApiCalendarTransport:
    """Same calls through googleapiclient; blocking, so run in a thread."""

    def __init__(self, credentials: Credentials):
        self.service = build("calendar", "v3", credentials=credentials, cache_discovery=False)

    async def probe(self) -> int:
        try:
            await asyncio.to_thread(
                self.service.calendars().get(calendarId="primary").execute
            )
        except HttpError as e:
            return e.resp.status
        return 200

    async def insert_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return await asyncio.to_thread(
                self.service.events().insert(calendarId="primary", body=event).execute
            )
        except HttpError as e:
            raise CalendarApiError(e.resp.status, e.resp.reason or "", str(e)) from e


def transport_for(session: Session, kind: str = CALENDAR_TRANSPORT) -> CalendarTransport:
    if kind == "sdk":
        credentials = Credentials(
            token=session.provider_token,
            refresh_token=session.provider_refresh_token,
            token_uri="https://oauth2.googleapis.com/token",
            client_id=os.getenv("GOOGLE_CLIENT_ID"),
            client_secret=os.getenv("GOOGLE_CLIENT_SECRET"),
        )
        return GoogleApiCalendarTransport(credentials)
    return RestCalendarTransport(session.provider_token)


def build_event(
    title: str,
    description: str,
    deadline: datetime,
    time_zone: str = CALENDAR_TIMEZONE,
    color_id: Optional[str] = None,
) -> Dict[str, Any]:
    """One-hour event starting at the deadline."""
    start = to_utc(deadline)
    end = start + EVENT_DURATION
    event = {
        "summary": title,
        "description": description,
        "start": {"dateTime": start.isoformat(), "timeZone": time_zone},
        "end": {"dateTime": end.isoformat(), "timeZone": time_zone},
        "source": {"title": SOURCE_TITLE, "url": SITE_URL},
    }
    if color_id:
        event["colorId"] = color_id
    return event


def task_event(task: Task, time_zone: str = CALENDAR_TIMEZONE) -> Dict[str, Any]:
    description = (
        f"{task.description}\n\n"
        f"Priority: {task.priority_label}\n"
        f"Status: {task.status}\n"
        f"Category: {task.category_name or 'None'}"
    )
    return build_event(
        task.title,
        description,
        task.deadline,
        time_zone=time_zone,
        color_id=PRIORITY_COLORS.get(task.priority_label),
    )


class CalendarIntegration:

    def __init__(
        self,
        session: Optional[Session],
        transport: Optional[CalendarTransport] = None,
        time_zone: Optional[str] = None,
    ):
        self.session = session
        self.time_zone = time_zone or CALENDAR_TIMEZONE
        self._transport = transport

    @property
    def can_attempt(self) -> bool:
        return bool(self.session and self.session.is_google and self.session.provider_token)

    @property
    def transport(self) -> CalendarTransport:
        if self._transport is None:
            self._transport = transport_for(self.session)
        return self._transport

    async def status(self) -> dict:
        session = self.session
        logger.debug(
            f"Calendar status check: provider={session.principal.provider if session else None} "
            f"token={bool(session and session.provider_token)} "
            f"refresh={bool(session and session.provider_refresh_token)}"
        )

        if session is None or not session.is_google:
            return {
                "connected": False,
                "canSync": False,
                "message": "Please sign in with Google to enable calendar sync",
            }

        if not session.provider_token:
            return {
                "connected": False,
                "canSync": False,
                "message": "Google access token not available. Please reconnect your Google account.",
            }

        try:
            code = await self.transport.probe()
        except Exception as e:
            logger.error(f"Google Calendar API test failed: {e}")
            return {
                "connected": True,
                "canSync": False,
                "message": "Unable to verify Google Calendar access",
            }

        if 200 <= code < 300:
            return {
                "connected": True,
                "canSync": True,
                "message": "Google Calendar access available",
            }
        if code == 401:
            # Expired token: still linked if a refresh token exists
            return {
                "connected": bool(session.provider_refresh_token),
                "canSync": False,
                "message": "Google Calendar access expired. Please reconnect your account.",
            }
        return {
            "connected": True,
            "canSync": False,
            "message": "Unable to access Google Calendar. Please check permissions.",
        }

    async def create_event(
        self,
        title: str,
        description: str,
        deadline: datetime,
    ) -> dict:
        """Best-effort: never raises, reports the outcome instead."""
        if not self.can_attempt:
            return {"success": False, "message": "Google Calendar not connected"}

        try:
            event = build_event(title, description or "", deadline, time_zone=self.time_zone)
            result = await self.transport.insert_event(event)
        except CalendarApiError as e:
            logger.error(f"Failed to create calendar event: {e} {e.body}")
            return {"success": False, "message": "Failed to create calendar event"}
        except Exception as e:
            logger.error(f"Error creating calendar event: {e}")
            return {"success": False, "message": "Error creating calendar event"}

        return {
            "success": True,
            "eventId": result.get("id"),
            "message": "Event created in Google Calendar",
        }

    async def sync_tasks(self, tasks: TaskRepository) -> dict:
        """Push every Pending/In Progress task as an event, one at a time.

        A failing task is recorded and the batch moves on.
        """
        page = await tasks.list()
        pending = [t for t in page.results if t.status in SYNCABLE_STATUSES]
        logger.info(f"Found {len(pending)} pending tasks to sync")

        results: Dict[str, Any] = {"success": 0, "failed": 0, "errors": []}
        for task in pending:
            error = await self._sync_one(task)
            if error is None:
                results["success"] += 1
            else:
                results["failed"] += 1
                results["errors"].append(f'Failed to sync "{task.title}": {error}')

        return {
            "message": f"Sync completed: {results['success']} tasks synced, {results['failed']} failed",
            "results": results,
            "totalTasks": len(pending),
        }

    async def _sync_one(self, task: Task) -> Optional[str]:
        try:
            event = await self.transport.insert_event(task_event(task, self.time_zone))
        except CalendarApiError as e:
            logger.error(f"Failed to sync task {task.title}: status={e.status} error={e.body}")
            return str(e)
        except Exception as e:
            logger.error(f"Error syncing task {task.title}: {e}")
            return str(e) or "Unknown error"
        logger.info(f"Successfully synced task: {task.title}, Event ID: {event.get('id')}")
        return None
