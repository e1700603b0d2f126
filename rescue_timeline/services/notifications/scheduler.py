"""
Notification scheduler interface.

A scheduler owns the set of pending local notifications for one device. The
reconciler only talks to this interface; the in-memory implementation backs
tests and single-process use, the Redis one backs real devices.
"""

import uuid
from abc import ABC, abstractmethod

from rescue_timeline.models.domain.notification_domain import (
    NotificationRequest,
    PermissionStatus,
    ScheduledNotification,
)


class NotificationSchedulerError(Exception):
    """Raised when the scheduler backend cannot be read or written."""

    def __init__(self, message: str, device_id: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.device_id = device_id
        self.recoverable = recoverable


class NotificationScheduler(ABC):
    @abstractmethod
    async def get_all_scheduled(self) -> list[ScheduledNotification]:
        """All pending notifications for the device."""

    @abstractmethod
    async def cancel(self, identifier: str) -> None:
        """Cancel one pending notification; unknown identifiers are ignored."""

    @abstractmethod
    async def schedule(self, request: NotificationRequest) -> str:
        """Schedule a notification and return its identifier."""

    @abstractmethod
    async def get_permissions(self) -> PermissionStatus: ...

    @abstractmethod
    async def request_permissions(self) -> PermissionStatus: ...


class InMemoryNotificationScheduler(NotificationScheduler):
    """
    Process-local scheduler.

    `grant_on_request` controls what a permission prompt resolves to while the
    status is still undetermined.
    """

    def __init__(
        self,
        permission: PermissionStatus = PermissionStatus.GRANTED,
        grant_on_request: bool = True,
    ):
        self.permission = permission
        self.grant_on_request = grant_on_request
        self.notifications: dict[str, ScheduledNotification] = {}
        self.cancelled: list[str] = []
        self.scheduled: list[str] = []
        self.permission_requests = 0

    async def get_all_scheduled(self) -> list[ScheduledNotification]:
        return list(self.notifications.values())

    async def cancel(self, identifier: str) -> None:
        if self.notifications.pop(identifier, None) is not None:
            self.cancelled.append(identifier)

    async def schedule(self, request: NotificationRequest) -> str:
        identifier = str(uuid.uuid4())
        self.notifications[identifier] = ScheduledNotification(
            identifier=identifier, content=request.content, trigger_at=request.trigger_at
        )
        self.scheduled.append(identifier)
        return identifier

    async def get_permissions(self) -> PermissionStatus:
        return self.permission

    async def request_permissions(self) -> PermissionStatus:
        self.permission_requests += 1
        if self.permission == PermissionStatus.UNDETERMINED:
            self.permission = (
                PermissionStatus.GRANTED if self.grant_on_request else PermissionStatus.DENIED
            )
        return self.permission
