from .event import Event
from .event_permission import EventPermission, PermissionLevel
from .event_shared_user import EventSharedUser
from .reminder import Reminder
from .user import User

__all__ = [
    "Event",
    "EventPermission",
    "EventSharedUser",
    "PermissionLevel",
    "Reminder",
    "User",
]
