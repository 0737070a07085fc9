from .event import EventCreate, EventRead, EventUpdate, PermissionRead
from .reminder import ReminderRead
from .user import SharedUserRead

__all__ = [
    "EventCreate",
    "EventRead",
    "EventUpdate",
    "PermissionRead",
    "ReminderRead",
    "SharedUserRead",
]
