from .events import NotificationKind
from .dispatcher import dispatch_notification

__all__ = [
    "NotificationKind",
    "dispatch_notification",
]
