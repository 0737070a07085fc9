from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Query, status

from sharecal.db import SessionDep
from sharecal.schemas import ReminderRead
from sharecal.services.reminders import (
    delete_reminder,
    get_pending_reminders,
    get_upcoming_reminders,
    list_all_reminders,
    mark_reminder_sent,
)

router = APIRouter()


@router.get("/", response_model=List[ReminderRead], summary="List all reminders (admin)")
def list_reminders(session: SessionDep) -> List[ReminderRead]:
    return list_all_reminders(session)


@router.get(
    "/user/{user_id}/pending",
    response_model=List[ReminderRead],
    summary="Due reminders that were not sent yet",
)
def read_pending_reminders(
    user_id: int,
    session: SessionDep,
    now: Optional[datetime] = Query(default=None, description="Defaults to server time"),
) -> List[ReminderRead]:
    return get_pending_reminders(session, user_id, now)


@router.get(
    "/user/{user_id}/upcoming",
    response_model=List[ReminderRead],
    summary="Reminders due within a time window",
)
def read_upcoming_reminders(
    user_id: int,
    session: SessionDep,
    minutes: Optional[int] = Query(default=None, ge=0),
) -> List[ReminderRead]:
    return get_upcoming_reminders(session, user_id, window_minutes=minutes)


@router.post("/{reminder_id}/sent", response_model=ReminderRead, summary="Mark reminder sent")
def mark_sent(reminder_id: int, session: SessionDep) -> ReminderRead:
    reminder = mark_reminder_sent(session, reminder_id)
    session.commit()
    session.refresh(reminder)
    return reminder


@router.delete(
    "/{reminder_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete reminder (admin)",
    response_model=None,
)
def remove_reminder(reminder_id: int, session: SessionDep) -> None:
    delete_reminder(session, reminder_id)
    session.commit()
