from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel


class PermissionLevel(str, Enum):
    VIEW = "VIEW"
    EDIT = "EDIT"
    ADMIN = "ADMIN"


class EventPermission(SQLModel, table=True):
    """Access level a shared user holds on an event.

    Keyed like ``event_shared_users`` but written separately, so a row can
    outlive its membership. Readers must join through the membership table.
    """

    __tablename__ = "event_permissions"

    event_id: int = Field(
        foreign_key="events.id", primary_key=True, nullable=False, ondelete="CASCADE"
    )
    user_id: int = Field(
        foreign_key="users.id", primary_key=True, nullable=False, ondelete="CASCADE"
    )
    # Free-form on purpose: unknown levels are stored as given
    permission: str = Field(default=PermissionLevel.VIEW.value, max_length=16)
    updated_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
