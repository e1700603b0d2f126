"""
Service wiring.

One `ServiceContainer` is built at startup and kept on `app.state.services`;
routes reach it through `get_services`, which tests override.
"""

from fastapi import HTTPException, Request, status

from rescue_timeline.config import settings
from rescue_timeline.infrastructure.observability.logging import get_logger
from rescue_timeline.models.domain.notification_domain import DeviceRegistration, PermissionStatus
from rescue_timeline.services.cache.query_cache import QueryCache
from rescue_timeline.services.data.activity_events import ActivityEventsService
from rescue_timeline.services.data.calendar_events import CalendarEventsService
from rescue_timeline.services.infrastructure.redis_client import FastRedisClient
from rescue_timeline.services.notifications.notifier import (
    NoopToastNotifier,
    RedisToastNotifier,
    SmartNotifier,
    ToastNotifier,
)
from rescue_timeline.services.notifications.reconciler import NotificationReconciler
from rescue_timeline.services.notifications.redis_scheduler import (
    DeviceRegistry,
    RedisNotificationScheduler,
)
from rescue_timeline.services.notifications.scheduler import (
    InMemoryNotificationScheduler,
    NotificationScheduler,
)
from rescue_timeline.services.supabase.client import SupabaseClient
from rescue_timeline.services.timeline.entity_timeline import EntityTimelineService

logger = get_logger(__name__)


class ServiceContainer:
    """
    Holds the long-lived services of one process.

    Without Redis, devices and their scheduled notifications live in memory.
    Each device has its own reconciler and sync status.
    """

    def __init__(
        self,
        supabase: SupabaseClient | None,
        redis_client: FastRedisClient | None = None,
        cache: QueryCache | None = None,
    ):
        self.supabase = supabase
        self.redis = redis_client
        self.cache = (
            cache
            if cache is not None
            else QueryCache(
                stale_seconds=settings.QUERY_STALE_SECONDS,
                max_items=settings.QUERY_CACHE_MAX_ITEMS,
            )
        )

        self.calendar = CalendarEventsService(supabase, self.cache)
        self.activity = ActivityEventsService(supabase)
        self.timeline = EntityTimelineService(self.activity, self.calendar)

        self._toast: ToastNotifier = (
            RedisToastNotifier(redis_client) if redis_client else NoopToastNotifier()
        )
        self._reconcilers: dict[str, NotificationReconciler] = {}

        self.devices = DeviceRegistry(redis_client) if redis_client else None
        self._memory_devices: dict[str, DeviceRegistration] = {}
        self._memory_schedulers: dict[str, InMemoryNotificationScheduler] = {}

    def reconciler_for(self, device_id: str | None) -> NotificationReconciler:
        key = device_id or ""
        reconciler = self._reconcilers.get(key)
        if reconciler is None:
            notifier = SmartNotifier(self._toast, default_toast=self.redis is not None)
            reconciler = NotificationReconciler(self.calendar, notifier=notifier)
            self._reconcilers[key] = reconciler
        return reconciler

    def scheduler_for(self, device_id: str) -> NotificationScheduler:
        if self.redis is not None:
            return RedisNotificationScheduler(self.redis, device_id)
        scheduler = self._memory_schedulers.get(device_id)
        if scheduler is None:
            registration = self._memory_devices.get(device_id)
            scheduler = InMemoryNotificationScheduler(
                permission=(
                    registration.permission if registration else PermissionStatus.UNDETERMINED
                ),
                grant_on_request=False,
            )
            self._memory_schedulers[device_id] = scheduler
        return scheduler

    async def get_device(self, device_id: str) -> DeviceRegistration | None:
        if self.devices is not None:
            return await self.devices.get(device_id)
        return self._memory_devices.get(device_id)

    async def register_device(
        self,
        device_id: str,
        org_id: str | None,
        platform: str,
        permission: PermissionStatus,
        owner_id: str | None = None,
    ) -> DeviceRegistration:
        if self.devices is not None:
            return await self.devices.register(
                device_id, org_id, platform, permission, owner_id=owner_id
            )

        registration = DeviceRegistration(
            device_id=device_id,
            org_id=org_id,
            platform=platform,
            permission=permission,
            owner_id=owner_id,
        )
        self._memory_devices[device_id] = registration
        scheduler = self._memory_schedulers.get(device_id)
        if scheduler is not None:
            scheduler.permission = permission
        return registration

    async def close(self) -> None:
        if self.supabase is not None:
            await self.supabase.close()
        if self.redis is not None:
            await self.redis.close()


def get_services(request: Request) -> ServiceContainer:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Services not initialized"
        )
    return services
