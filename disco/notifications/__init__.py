"""Notification log, batch scheduling and delivery interfaces."""

from disco.notifications.delivery import (
    BadgeDisplay,
    DeliveredNotification,
    DeliveryRequest,
    DeliveryService,
    LocalDeliveryService,
    NullBadgeDisplay,
    RecordingDeliveryService,
)
from disco.notifications.log_store import NotificationLogStore
from disco.notifications.scheduler import BatchScheduler, ScheduledNotification
from disco.notifications.schema import ATTEMPTED, DELIVERED, NotificationLogEntry
from disco.notifications.storage import JsonLogStorageBackend, LogStorageBackend, SaveResult

__all__ = [
    "ATTEMPTED",
    "DELIVERED",
    "BadgeDisplay",
    "BatchScheduler",
    "DeliveredNotification",
    "DeliveryRequest",
    "DeliveryService",
    "JsonLogStorageBackend",
    "LocalDeliveryService",
    "LogStorageBackend",
    "NotificationLogEntry",
    "NotificationLogStore",
    "NullBadgeDisplay",
    "RecordingDeliveryService",
    "SaveResult",
    "ScheduledNotification",
]
