"""Event create/update/delete and read-side enrichment.

These are the operations the HTTP layer calls; each one commits its own
transaction. Sharing and reminder work is delegated to
:mod:`sharecal.services.permissions` and :mod:`sharecal.services.reminders`.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import and_, or_
from sqlmodel import Session, select

from sharecal.models import Event, EventSharedUser, User
from sharecal.schemas import EventCreate, EventRead, EventUpdate
from sharecal.services.permissions import (
    apply_permissions,
    get_event_permissions,
    replace_shared_users,
)
from sharecal.services.reminders import (
    clear_reminders,
    get_reminder_minutes,
    set_reminders,
)

logger = logging.getLogger(__name__)

SCALAR_FIELDS = (
    "title",
    "description",
    "location",
    "starts_at",
    "ends_at",
    "all_day",
    "recurrence_type",
    "recurrence_end",
    "priority",
    "color",
)


def get_event_or_404(session: Session, event_id: int) -> Event:
    event = session.get(Event, event_id)
    if not event:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Event not found"
        )
    return event


def get_user_or_404(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
        )
    return user


def _ensure_valid_window(starts_at: datetime, ends_at: datetime) -> None:
    if ends_at <= starts_at:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="ends_at must be after starts_at",
        )


def enrich_event(
    session: Session, event: Event, requesting_user_id: Optional[int]
) -> EventRead:
    """Attach the permission map and the requester's reminder offsets."""
    permissions = get_event_permissions(session, event.id) if event.is_shared else {}
    reminder_minutes = (
        get_reminder_minutes(session, event.id, requesting_user_id)
        if requesting_user_id is not None
        else []
    )
    return EventRead.model_validate(event).model_copy(
        update={
            "shared_with_ids": event.shared_user_ids,
            "user_permissions": permissions,
            "reminder_minutes": reminder_minutes,
        }
    )


def create_event(session: Session, payload: EventCreate, owner_id: int) -> EventRead:
    owner = get_user_or_404(session, owner_id)
    _ensure_valid_window(payload.starts_at, payload.ends_at)

    event = Event(
        **payload.model_dump(exclude={"reminder_minutes"}),
        owner_id=owner.id,
    )
    session.add(event)
    session.flush()

    if payload.reminder_minutes:
        set_reminders(session, event, owner.id, payload.reminder_minutes)

    session.commit()
    session.refresh(event)
    logger.info("Created event %s for user %s", event.id, owner.id)
    return enrich_event(session, event, owner.id)


def update_event(session: Session, event_id: int, payload: EventUpdate) -> EventRead:
    event = get_event_or_404(session, event_id)
    provided = payload.model_dump(exclude_unset=True)

    data = {field: provided[field] for field in SCALAR_FIELDS if field in provided}
    for required in ("title", "starts_at", "ends_at"):
        if required in data and data[required] is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"{required} cannot be null",
            )
    _ensure_valid_window(
        data.get("starts_at", event.starts_at), data.get("ends_at", event.ends_at)
    )

    # Assigning starts_at re-derives reminder times of every loaded reminder
    for field, value in data.items():
        setattr(event, field, value)

    if payload.shared_with_ids is not None:
        replace_shared_users(session, event, payload.shared_with_ids)
    elif payload.is_shared is False:
        event.shared_with = []
    event.is_shared = bool(event.shared_with)
    event.touch()

    session.add(event)
    session.flush()

    if payload.user_permissions:
        apply_permissions(session, event, payload.user_permissions)

    if payload.reminder_minutes is not None:
        if payload.reminder_minutes:
            set_reminders(session, event, event.owner_id, payload.reminder_minutes)
        else:
            clear_reminders(session, event, event.owner_id)

    session.commit()
    session.refresh(event)
    logger.info("Updated event %s", event.id)
    return enrich_event(session, event, event.owner_id)


def delete_event(session: Session, event_id: int) -> None:
    """Delete the event; memberships, permissions and reminders cascade."""
    event = get_event_or_404(session, event_id)
    session.delete(event)
    session.commit()
    logger.info("Deleted event %s", event_id)


def get_event_with_permissions(
    session: Session, event_id: int, requesting_user_id: Optional[int] = None
) -> EventRead:
    event = get_event_or_404(session, event_id)
    if requesting_user_id is None:
        requesting_user_id = event.owner_id
    return enrich_event(session, event, requesting_user_id)


def _shared_event_ids(user_id: int):
    return select(EventSharedUser.event_id).where(EventSharedUser.user_id == user_id)


def _list_events(
    session: Session,
    condition,
    requesting_user_id: int,
    start: Optional[datetime],
    end: Optional[datetime],
) -> List[EventRead]:
    conditions = [condition]
    if start:
        conditions.append(Event.starts_at >= start)
    if end:
        conditions.append(Event.starts_at <= end)
    events = session.exec(
        select(Event).where(and_(*conditions)).order_by(Event.starts_at, Event.id)
    ).all()
    return [enrich_event(session, event, requesting_user_id) for event in events]


def get_user_events(
    session: Session,
    user_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[EventRead]:
    """Events owned by the user."""
    return _list_events(session, Event.owner_id == user_id, user_id, start, end)


def get_shared_events(
    session: Session,
    user_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[EventRead]:
    """Events other users shared with this user."""
    return _list_events(
        session, Event.id.in_(_shared_event_ids(user_id)), user_id, start, end
    )


def get_all_user_events(
    session: Session,
    user_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[EventRead]:
    """Owned and shared events together."""
    condition = or_(Event.owner_id == user_id, Event.id.in_(_shared_event_ids(user_id)))
    return _list_events(session, condition, user_id, start, end)
