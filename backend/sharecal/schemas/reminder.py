from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ReminderRead(BaseModel):
    id: int
    event_id: int
    user_id: int
    reminder_time: datetime
    minutes_before_event: int
    is_sent: bool
    created_at: datetime
    sent_at: Optional[datetime] = None
    reminder_type: str
    message: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
