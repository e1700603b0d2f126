# rescue_timeline/models/api/notification_request.py
"""
Notification API request and response models.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from rescue_timeline.models.domain.notification_domain import PermissionStatus, SyncStatus
from rescue_timeline.models.domain.session_domain import Platform


class NotificationSyncRequest(BaseModel):
    """Request for reconciling one device's reminders."""

    org_id: str | None = Field(default=None, description="Active organization")
    device_id: str | None = Field(default=None, description="Registered device to sync")
    platform: Platform = Field(default=Platform.IOS, description="Client platform")


class RegisterDeviceRequest(BaseModel):
    org_id: str | None = Field(default=None, description="Organization the device syncs for")
    platform: Platform = Field(default=Platform.IOS, description="Client platform")
    permission: PermissionStatus = Field(
        default=PermissionStatus.UNDETERMINED, description="Permission reported by the device"
    )


class DeviceResponse(BaseModel):
    device_id: str
    org_id: str | None
    platform: str
    permission: str
    owner_id: str | None = None


class SyncStatusResponse(BaseModel):
    """Response for a reminder sync run."""

    variant: str = Field(..., description="info, success or error")
    message: str | None = Field(None, description="User-facing status message")
    state: str = Field(..., description="idle, syncing, success or error")
    last_sync_at: datetime | None = Field(None, description="Last successful sync")
    window_days: int | None = Field(None, description="Days ahead covered by the sync")
    error_code: str | None = Field(None, description="Machine-readable failure reason")
    desired: int = 0
    cancelled: int = 0
    scheduled: int = 0
    skipped_past: int = 0

    @classmethod
    def from_status(cls, status: SyncStatus) -> "SyncStatusResponse":
        return cls(
            variant=status.variant.value,
            message=status.message,
            state=status.state.value,
            last_sync_at=status.last_sync_at,
            window_days=status.window_days,
            error_code=status.error_code,
            desired=status.desired,
            cancelled=status.cancelled,
            scheduled=status.scheduled,
            skipped_past=status.skipped_past,
        )
