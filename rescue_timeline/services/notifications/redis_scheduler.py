"""
Redis-backed device registry and per-device notification scheduler.

Layout:
    notification:devices           set of registered device ids
    notification:device:<id>       hash {org_id, platform, permission, owner_id}
    notification:scheduled:<id>    hash identifier -> JSON {content, trigger_at}
"""

import json
import uuid
from datetime import datetime

from rescue_timeline.infrastructure.observability.logging import get_logger
from rescue_timeline.models.domain.notification_domain import (
    DeviceRegistration,
    NotificationContent,
    NotificationRequest,
    PermissionStatus,
    ScheduledNotification,
)
from rescue_timeline.services.infrastructure.redis_client import (
    FastRedisClient,
    RedisUnavailableError,
)
from rescue_timeline.services.notifications.scheduler import (
    NotificationScheduler,
    NotificationSchedulerError,
)

logger = get_logger(__name__)

DEVICES_KEY = "notification:devices"
DEVICE_KEY_PREFIX = "notification:device:"
SCHEDULED_KEY_PREFIX = "notification:scheduled:"


def _permission(value: str | None) -> PermissionStatus:
    try:
        return PermissionStatus(value or PermissionStatus.UNDETERMINED.value)
    except ValueError:
        return PermissionStatus.UNDETERMINED


class DeviceRegistry:
    def __init__(self, redis_client: FastRedisClient):
        self.redis = redis_client

    async def register(
        self,
        device_id: str,
        org_id: str | None,
        platform: str,
        permission: PermissionStatus = PermissionStatus.UNDETERMINED,
        owner_id: str | None = None,
    ) -> DeviceRegistration:
        key = f"{DEVICE_KEY_PREFIX}{device_id}"
        try:
            await self.redis.hset(key, "org_id", org_id or "")
            await self.redis.hset(key, "platform", platform)
            await self.redis.hset(key, "permission", permission.value)
            await self.redis.hset(key, "owner_id", owner_id or "")
            await self.redis.sadd(DEVICES_KEY, device_id)
        except RedisUnavailableError as e:
            raise NotificationSchedulerError(
                f"Failed to register device: {e}", device_id=device_id
            ) from e

        logger.info(
            "Notification device registered",
            device_id=device_id,
            org_id=org_id,
            platform=platform,
            permission=permission.value,
        )
        return DeviceRegistration(
            device_id=device_id,
            org_id=org_id,
            platform=platform,
            permission=permission,
            owner_id=owner_id,
        )

    async def get(self, device_id: str) -> DeviceRegistration | None:
        try:
            data = await self.redis.hgetall(f"{DEVICE_KEY_PREFIX}{device_id}")
        except RedisUnavailableError as e:
            raise NotificationSchedulerError(
                f"Failed to read device: {e}", device_id=device_id
            ) from e
        if not data:
            return None
        return DeviceRegistration(
            device_id=device_id,
            org_id=data.get("org_id") or None,
            platform=data.get("platform") or "ios",
            permission=_permission(data.get("permission")),
            owner_id=data.get("owner_id") or None,
        )

    async def list_devices(self) -> list[DeviceRegistration]:
        try:
            device_ids = await self.redis.smembers(DEVICES_KEY)
        except RedisUnavailableError as e:
            raise NotificationSchedulerError(f"Failed to list devices: {e}") from e

        devices = []
        for device_id in sorted(device_ids):
            device = await self.get(device_id)
            if device is not None:
                devices.append(device)
        return devices


class RedisNotificationScheduler(NotificationScheduler):
    """
    Scheduler for one registered device.

    A server cannot prompt the user, so `request_permissions` returns whatever
    the device last reported through registration.
    """

    def __init__(self, redis_client: FastRedisClient, device_id: str):
        self.redis = redis_client
        self.device_id = device_id
        self.registry = DeviceRegistry(redis_client)
        self._key = f"{SCHEDULED_KEY_PREFIX}{device_id}"

    async def get_all_scheduled(self) -> list[ScheduledNotification]:
        try:
            raw = await self.redis.hgetall(self._key)
        except RedisUnavailableError as e:
            raise NotificationSchedulerError(str(e), device_id=self.device_id) from e

        notifications = []
        unreadable = []
        for identifier, value in raw.items():
            try:
                data = json.loads(value)
                content = data.get("content") or {}
                trigger_at = data.get("trigger_at")
                notifications.append(
                    ScheduledNotification(
                        identifier=identifier,
                        content=NotificationContent(
                            title=content.get("title") or "",
                            body=content.get("body"),
                            data=content.get("data") or {},
                        ),
                        trigger_at=datetime.fromisoformat(trigger_at) if trigger_at else None,
                    )
                )
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(
                    "Dropping unreadable scheduled notification",
                    device_id=self.device_id,
                    identifier=identifier,
                    error=str(e),
                )
                unreadable.append(identifier)

        for identifier in unreadable:
            await self.cancel(identifier)
        return notifications

    async def cancel(self, identifier: str) -> None:
        try:
            await self.redis.hdel(self._key, identifier)
        except RedisUnavailableError as e:
            raise NotificationSchedulerError(str(e), device_id=self.device_id) from e

    async def schedule(self, request: NotificationRequest) -> str:
        identifier = str(uuid.uuid4())
        value = json.dumps(
            {"content": request.content.to_dict(), "trigger_at": request.trigger_at.isoformat()}
        )
        try:
            await self.redis.hset(self._key, identifier, value)
        except RedisUnavailableError as e:
            raise NotificationSchedulerError(str(e), device_id=self.device_id) from e
        return identifier

    async def get_permissions(self) -> PermissionStatus:
        device = await self.registry.get(self.device_id)
        if device is None:
            return PermissionStatus.UNDETERMINED
        return device.permission

    async def request_permissions(self) -> PermissionStatus:
        return await self.get_permissions()
