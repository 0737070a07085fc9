from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class SharedUserRead(BaseModel):
    id: int
    username: str
    email: str
    full_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
