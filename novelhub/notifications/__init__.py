"""Engagement notifications: comment, reply and like events.

Note: the router is not exported here to avoid circular imports.
"""

from .models import NOTIFICATIONS_TABLES_CQL, Notification, NotificationType
from .service import NotificationFanout


__all__ = [
    "NOTIFICATIONS_TABLES_CQL",
    "Notification",
    "NotificationFanout",
    "NotificationType",
]
