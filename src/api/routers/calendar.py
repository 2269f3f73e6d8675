import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from api.dependencies import get_calendar_integration, get_task_repository, require_session
from api.metrics import CALENDAR_EVENTS_TOTAL
from auth.session import Session
from integration.calendar_integration import CalendarIntegration
from repositories.tasks import TaskRepository
from smart_todo.errors import ApiError, ValidationFailed

router = APIRouter(prefix="/google-calendar")
logger = logging.getLogger(__name__)


class CreateEventIn(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = ""
    deadline: Optional[datetime] = None
    timeZone: Optional[str] = None


@router.get("/status")
async def calendar_status(
    session: Session = Depends(require_session),
    calendar: CalendarIntegration = Depends(get_calendar_integration),
) -> dict:
    """Whether the session can push events to Google Calendar."""
    return await calendar.status()


@router.post("/create-event")
async def create_event(
    payload: CreateEventIn,
    session: Session = Depends(require_session),
    calendar: CalendarIntegration = Depends(get_calendar_integration),
) -> dict:
    """Best-effort single event; a failure is reported, not raised."""
    if not payload.title or payload.deadline is None:
        raise ValidationFailed("title and deadline are required")

    if payload.timeZone:
        calendar.time_zone = payload.timeZone

    result = await calendar.create_event(payload.title, payload.description or "", payload.deadline)
    CALENDAR_EVENTS_TOTAL.labels(outcome="ok" if result["success"] else "failed").inc()
    return result


@router.post("/sync-tasks")
async def sync_tasks(
    session: Session = Depends(require_session),
    calendar: CalendarIntegration = Depends(get_calendar_integration),
    tasks: TaskRepository = Depends(get_task_repository),
) -> dict:
    """Push every open task to Google Calendar and report the tally."""
    if not calendar.can_attempt:
        raise HTTPException(
            status_code=400,
            detail="Google Calendar access not available. Please reconnect your Google account.",
        )

    try:
        summary = await calendar.sync_tasks(tasks)
    except ApiError as e:
        logger.error(f"Sync tasks error: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to sync tasks with Google Calendar: {e.message}",
        )

    CALENDAR_EVENTS_TOTAL.labels(outcome="ok").inc(summary["results"]["success"])
    CALENDAR_EVENTS_TOTAL.labels(outcome="failed").inc(summary["results"]["failed"])
    return summary
