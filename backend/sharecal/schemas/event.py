from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, NonNegativeInt, field_validator, model_validator


def _to_naive_utc(value: datetime | None) -> datetime | None:
    """Timestamps are stored naive, in UTC."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class EventBase(BaseModel):
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    starts_at: datetime
    ends_at: datetime
    all_day: bool = False
    recurrence_type: Optional[str] = None
    recurrence_end: Optional[datetime] = None
    priority: str = "MEDIUM"
    color: Optional[str] = None

    @field_validator("starts_at", "ends_at", "recurrence_end")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return _to_naive_utc(value)


class EventCreate(EventBase):
    reminder_minutes: Optional[List[NonNegativeInt]] = None

    @field_validator("title")
    @classmethod
    def check_title(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Event title is required")
        if len(value) > 255:
            raise ValueError("Title must be between 1 and 255 characters")
        return value

    @model_validator(mode="after")
    def check_ends_after_start(self) -> "EventCreate":
        if self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        return self


class EventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    all_day: Optional[bool] = None
    recurrence_type: Optional[str] = None
    recurrence_end: Optional[datetime] = None
    priority: Optional[str] = None
    color: Optional[str] = None
    is_shared: Optional[bool] = None
    shared_with_ids: Optional[List[int]] = None
    user_permissions: Optional[Dict[int, str]] = None
    reminder_minutes: Optional[List[NonNegativeInt]] = None

    @field_validator("starts_at", "ends_at", "recurrence_end")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return _to_naive_utc(value)

    @model_validator(mode="after")
    def check_ends_after_start(self) -> "EventUpdate":
        if self.starts_at and self.ends_at and self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        return self


class EventRead(EventBase):
    id: int
    owner_id: int
    is_shared: bool
    created_at: datetime
    updated_at: datetime
    shared_with_ids: List[int] = []
    # Computed per request, never persisted on the event row
    user_permissions: Dict[int, str] = {}
    reminder_minutes: List[int] = []

    model_config = ConfigDict(from_attributes=True)


class PermissionRead(BaseModel):
    permission: str
