from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

from .event_shared_user import EventSharedUser
from .user import User

if TYPE_CHECKING:
    from .reminder import Reminder


class Event(SQLModel, table=True):
    """Calendar event owned by a single user."""

    __tablename__ = "events"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=255)
    description: Optional[str] = Field(default=None)
    location: Optional[str] = Field(default=None, max_length=255)
    starts_at: datetime = Field(nullable=False, index=True)
    ends_at: datetime = Field(nullable=False)
    all_day: bool = Field(default=False)
    recurrence_type: Optional[str] = Field(default=None, max_length=20)
    recurrence_end: Optional[datetime] = Field(default=None)
    owner_id: int = Field(
        foreign_key="users.id", nullable=False, index=True, ondelete="CASCADE"
    )
    priority: str = Field(default="MEDIUM", max_length=10)
    color: Optional[str] = Field(default=None, max_length=20)
    is_shared: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)

    shared_with: List[User] = Relationship(link_model=EventSharedUser)
    reminders: List["Reminder"] = Relationship(
        back_populates="event",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "passive_deletes": True,
            "order_by": "Reminder.id",
        },
    )

    def touch(self) -> None:
        self.updated_at = datetime.utcnow()

    @property
    def shared_user_ids(self) -> List[int]:
        return sorted(user.id for user in self.shared_with)
