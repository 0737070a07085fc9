from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import Index, event as sa_event
from sqlalchemy.orm import object_session
from sqlmodel import Field, Relationship, SQLModel

from sharecal.core.config import settings

from .event import Event

DEFAULT_REMINDER_TYPE = settings.DEFAULT_REMINDER_TYPE


def reminder_time_for(starts_at: datetime, minutes_before_event: int) -> datetime:
    return starts_at - timedelta(minutes=minutes_before_event)


def render_reminder_message(title: str, minutes_before_event: int) -> str:
    return f'Event "{title}" starts in {minutes_before_event} minutes'


class Reminder(SQLModel, table=True):
    """A user's trigger record for an event.

    ``reminder_time`` is derived from ``event.starts_at`` and
    ``minutes_before_event``; attribute listeners below keep it in sync when
    either input is assigned.
    """

    __tablename__ = "reminders"
    __table_args__ = (
        Index("ix_reminders_pending", "user_id", "is_sent", "reminder_time"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: Optional[int] = Field(
        default=None,
        foreign_key="events.id",
        nullable=False,
        index=True,
        ondelete="CASCADE",
    )
    user_id: int = Field(
        foreign_key="users.id", nullable=False, index=True, ondelete="CASCADE"
    )
    reminder_time: datetime = Field(nullable=False)
    minutes_before_event: int = Field(nullable=False)
    is_sent: bool = Field(default=False, nullable=False)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    sent_at: Optional[datetime] = Field(default=None, nullable=True)
    reminder_type: str = Field(default=DEFAULT_REMINDER_TYPE, max_length=50)
    message: Optional[str] = Field(default=None, max_length=500)

    event: Optional[Event] = Relationship(back_populates="reminders")

    @classmethod
    def for_event(
        cls,
        event: Event,
        user_id: int,
        minutes_before_event: int,
        reminder_type: str = DEFAULT_REMINDER_TYPE,
    ) -> "Reminder":
        return cls(
            user_id=user_id,
            minutes_before_event=minutes_before_event,
            reminder_time=reminder_time_for(event.starts_at, minutes_before_event),
            reminder_type=reminder_type,
            message=render_reminder_message(event.title, minutes_before_event),
            event=event,
        )

    def recompute_reminder_time(self, starts_at: datetime | None = None) -> None:
        if starts_at is None and self.event is not None:
            starts_at = self.event.starts_at
        if starts_at is None or self.minutes_before_event is None:
            return
        self.reminder_time = reminder_time_for(starts_at, self.minutes_before_event)

    def mark_sent(self, when: datetime | None = None) -> bool:
        """Flag the reminder as delivered. Returns False if it already was."""
        if self.is_sent and self.sent_at is not None:
            return False
        self.is_sent = True
        if self.sent_at is None:
            self.sent_at = when or datetime.utcnow()
        return True


@sa_event.listens_for(Reminder.minutes_before_event, "set")
def _minutes_changed(target: Reminder, value, oldvalue, initiator) -> None:
    if value is None:
        return
    session = object_session(target)
    if session is None:
        parent = target.event
    else:
        with session.no_autoflush:
            parent = target.event
    if parent is not None and parent.starts_at is not None:
        target.reminder_time = reminder_time_for(parent.starts_at, value)


@sa_event.listens_for(Reminder.event, "set")
def _event_changed(target: Reminder, value, oldvalue, initiator) -> None:
    if value is not None and value.starts_at is not None:
        target.recompute_reminder_time(value.starts_at)


@sa_event.listens_for(Event.starts_at, "set", active_history=True)
def _start_changed(target: Event, value, oldvalue, initiator) -> None:
    if value is None:
        return
    session = object_session(target)
    if session is None:
        # Transient events only know the reminders attached in memory
        for reminder in target.__dict__.get("reminders") or []:
            reminder.recompute_reminder_time(value)
        return
    with session.no_autoflush:
        for reminder in target.reminders:
            reminder.recompute_reminder_time(value)
