from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta

from fastapi import HTTPException, status
from sqlmodel import Session, select

from sharecal.core.config import settings
from sharecal.models import Event, Reminder, User

logger = logging.getLogger(__name__)


def _reminders_of(event: Event, user_id: int) -> list[Reminder]:
    return [reminder for reminder in event.reminders if reminder.user_id == user_id]


def set_reminders(
    session: Session,
    event: Event,
    user_id: int,
    minutes_list: Sequence[int] | None,
) -> list[Reminder]:
    """
    Replace the user's reminders on ``event`` with one per offset.

    An empty or missing list leaves existing reminders untouched; use
    :func:`clear_reminders` to drop them. Unknown users are ignored.
    """
    if not minutes_list:
        return []

    if session.get(User, user_id) is None:
        logger.warning(
            "Not setting reminders on event %s: user %s not found", event.id, user_id
        )
        return []

    # Removing from the collection deletes the rows (delete-orphan)
    for reminder in _reminders_of(event, user_id):
        event.reminders.remove(reminder)

    created = [
        Reminder.for_event(event, user_id, minutes) for minutes in minutes_list
    ]
    session.add(event)
    session.flush()

    logger.info(
        "Set %s reminders for user %s on event %s", len(created), user_id, event.id
    )
    return created


def clear_reminders(session: Session, event: Event, user_id: int) -> int:
    stale = _reminders_of(event, user_id)
    for reminder in stale:
        event.reminders.remove(reminder)
    session.add(event)
    session.flush()
    if stale:
        logger.info(
            "Cleared %s reminders for user %s on event %s", len(stale), user_id, event.id
        )
    return len(stale)


def get_reminder_minutes(session: Session, event_id: int, user_id: int) -> list[int]:
    return list(
        session.exec(
            select(Reminder.minutes_before_event)
            .where(Reminder.event_id == event_id, Reminder.user_id == user_id)
            .order_by(Reminder.id)
        ).all()
    )


def get_pending_reminders(
    session: Session,
    user_id: int,
    now: datetime | None = None,
) -> list[Reminder]:
    """Unsent reminders of the user whose trigger time is at or before ``now``."""
    now = now or datetime.utcnow()
    return list(
        session.exec(
            select(Reminder)
            .where(
                Reminder.user_id == user_id,
                Reminder.is_sent == False,  # noqa: E712
                Reminder.reminder_time <= now,
            )
            .order_by(Reminder.reminder_time, Reminder.id)
        ).all()
    )


def get_upcoming_reminders(
    session: Session,
    user_id: int,
    now: datetime | None = None,
    window_minutes: int | None = None,
) -> list[Reminder]:
    """Unsent reminders of the user due within the next ``window_minutes``."""
    now = now or datetime.utcnow()
    if window_minutes is None:
        window_minutes = settings.UPCOMING_REMINDER_WINDOW_MINUTES
    until = now + timedelta(minutes=window_minutes)
    return list(
        session.exec(
            select(Reminder)
            .where(
                Reminder.user_id == user_id,
                Reminder.is_sent == False,  # noqa: E712
                Reminder.reminder_time >= now,
                Reminder.reminder_time <= until,
            )
            .order_by(Reminder.reminder_time, Reminder.id)
        ).all()
    )


def get_reminder_or_404(session: Session, reminder_id: int) -> Reminder:
    reminder = session.get(Reminder, reminder_id)
    if not reminder:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Reminder not found"
        )
    return reminder


def mark_reminder_sent(
    session: Session,
    reminder_id: int,
    now: datetime | None = None,
) -> Reminder:
    reminder = get_reminder_or_404(session, reminder_id)
    if reminder.mark_sent(now):
        session.add(reminder)
        session.flush()
        logger.info("Reminder %s marked as sent at %s", reminder.id, reminder.sent_at)
    return reminder


def list_all_reminders(session: Session) -> list[Reminder]:
    return list(session.exec(select(Reminder).order_by(Reminder.id)).all())


def delete_reminder(session: Session, reminder_id: int) -> None:
    reminder = get_reminder_or_404(session, reminder_id)
    session.delete(reminder)
    session.flush()
    logger.info("Deleted reminder %s", reminder_id)
