"""
Reminder notifications: deterministic keys, schedulers and the reconciler.
"""

from .reconciler import NotificationReconciler, NotificationSyncError
from .reminder_keys import build_reminder_deterministic_id
from .scheduler import (
    InMemoryNotificationScheduler,
    NotificationScheduler,
    NotificationSchedulerError,
)

__all__ = [
    "NotificationReconciler",
    "NotificationSyncError",
    "build_reminder_deterministic_id",
    "InMemoryNotificationScheduler",
    "NotificationScheduler",
    "NotificationSchedulerError",
]
