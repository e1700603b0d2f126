# rescue_timeline/models/domain/notification_domain.py
"""
Notification Domain Models
Scheduled notifications as the scheduler stores them, and the status a sync
run reports back to the caller.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

# Data payload fields that may carry the deterministic key, newest name last
DETERMINISTIC_KEY_FIELDS = ("deterministicKey", "deterministicId", "reminderId")


class PermissionStatus(StrEnum):
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"


class SyncState(StrEnum):
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


class StatusVariant(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class NotificationContent:
    title: str
    body: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def deterministic_key(self) -> str | None:
        """First legacy-compatible key field present in the data payload."""
        for name in DETERMINISTIC_KEY_FIELDS:
            value = self.data.get(name)
            if value is not None and value != "":
                return str(value)
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "body": self.body, "data": dict(self.data)}


@dataclass(frozen=True, slots=True)
class NotificationRequest:
    content: NotificationContent
    trigger_at: datetime


@dataclass(frozen=True, slots=True)
class ScheduledNotification:
    identifier: str
    content: NotificationContent
    trigger_at: datetime | None = None


@dataclass(slots=True)
class SyncStatus:
    """Outcome of one reconcile run, shaped for display."""

    variant: StatusVariant
    message: str | None
    state: SyncState = SyncState.IDLE
    last_sync_at: datetime | None = None
    window_days: int | None = None
    error_code: str | None = None
    desired: int = 0
    cancelled: int = 0
    scheduled: int = 0
    skipped_past: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "variant": self.variant.value,
            "message": self.message,
            "state": self.state.value,
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "window_days": self.window_days,
            "error_code": self.error_code,
            "desired": self.desired,
            "cancelled": self.cancelled,
            "scheduled": self.scheduled,
            "skipped_past": self.skipped_past,
        }


@dataclass(frozen=True, slots=True)
class DeviceRegistration:
    """A device that receives local reminders for one organization."""

    device_id: str
    org_id: str | None
    platform: str
    permission: PermissionStatus = PermissionStatus.UNDETERMINED
    owner_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "device_id": self.device_id,
            "org_id": self.org_id,
            "platform": self.platform,
            "permission": self.permission.value,
            "owner_id": self.owner_id,
        }
