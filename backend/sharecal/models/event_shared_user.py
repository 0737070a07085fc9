from __future__ import annotations

from datetime import datetime

from sqlmodel import Field, SQLModel


class EventSharedUser(SQLModel, table=True):
    """Membership row: the event is shared with the user."""

    __tablename__ = "event_shared_users"

    event_id: int = Field(
        foreign_key="events.id", primary_key=True, nullable=False, ondelete="CASCADE"
    )
    user_id: int = Field(
        foreign_key="users.id",
        primary_key=True,
        nullable=False,
        index=True,
        ondelete="CASCADE",
    )
    added_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
