"""
Service layer for the event sync feature.
"""

from .notification_service import NotificationService, notification_service
from .sync_service import EventSyncService, event_sync_service

__all__ = [
    "EventSyncService",
    "event_sync_service",
    "NotificationService",
    "notification_service",
]
