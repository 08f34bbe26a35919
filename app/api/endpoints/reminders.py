"""
Front desk reminder API endpoints
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import reminder_state_store
from app.core.clock import Clock, get_clock
from app.schemas.reminder import ReminderListResponse, ReminderResponse, ReminderStateResponse
from app.services.reminder_service import Reminder, apply_session_state, get_reminders
from database import get_async_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reminders", tags=["Reminders"])


async def _with_session_state(reminders: List[Reminder], session_id: Optional[str]) -> List[Reminder]:
    if not session_id:
        return list(reminders)
    read_ids = await reminder_state_store.read_ids(session_id)
    dismissed_ids = await reminder_state_store.dismissed_ids(session_id)
    return apply_session_state(reminders, read_ids, dismissed_ids)


def _list_response(reminders: List[Reminder], generated_at) -> ReminderListResponse:
    return ReminderListResponse(
        generated_at=generated_at,
        total=len(reminders),
        unread=sum(1 for r in reminders if not r.read),
        reminders=[ReminderResponse(**r.as_dict()) for r in reminders],
    )


@router.get("", response_model=ReminderListResponse)
async def list_reminders(
    session_id: Optional[str] = Query(None, description="UI session whose read/dismissed state applies"),
    db: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
):
    """
    Run an aggregation pass now and return the prioritized reminders
    """
    now = clock.now()
    reminders = await get_reminders(db, clock)
    return _list_response(await _with_session_state(reminders, session_id), now)


@router.get("/latest", response_model=ReminderListResponse)
async def latest_reminders(
    request: Request,
    session_id: Optional[str] = Query(None),
):
    """
    Reminders from the last background pass (empty until the first pass runs)
    """
    scheduler = getattr(request.app.state, "reminder_scheduler", None)
    if scheduler is None:
        return _list_response([], None)
    reminders = await _with_session_state(scheduler.latest, session_id)
    return _list_response(reminders, scheduler.last_run_at)


@router.post("/read-all", response_model=ReminderListResponse)
async def mark_all_reminders_read(
    session_id: str = Query(...),
    db: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
):
    """
    Mark every reminder of a fresh pass as read for this session
    """
    now = clock.now()
    reminders = await get_reminders(db, clock)
    await reminder_state_store.mark_all_read(session_id, [r.id for r in reminders])
    return _list_response(await _with_session_state(reminders, session_id), now)


@router.post("/{reminder_id}/read", response_model=ReminderStateResponse)
async def mark_reminder_read(
    reminder_id: str,
    session_id: Optional[str] = Query(None),
):
    stored = await reminder_state_store.mark_read(session_id, reminder_id)
    return ReminderStateResponse(reminder_id=reminder_id, stored=stored)


@router.post("/{reminder_id}/dismiss", response_model=ReminderStateResponse)
async def dismiss_reminder(
    reminder_id: str,
    session_id: Optional[str] = Query(None),
):
    stored = await reminder_state_store.dismiss(session_id, reminder_id)
    return ReminderStateResponse(reminder_id=reminder_id, stored=stored)
