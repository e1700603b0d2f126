"""
Notification Sync Job.
Reconciles scheduled reminders for every registered device on an interval,
reading the calendar with the service-role key.
"""

import asyncio

from rescue_timeline.config import settings
from rescue_timeline.infrastructure.observability.logging import get_logger
from rescue_timeline.models.domain.notification_domain import SyncState
from rescue_timeline.models.domain.session_domain import Platform, SessionContext
from rescue_timeline.services.data.calendar_events import CalendarEventsService
from rescue_timeline.services.infrastructure.redis_client import FastRedisClient, fast_redis
from rescue_timeline.services.notifications.reconciler import NotificationReconciler
from rescue_timeline.services.notifications.redis_scheduler import (
    DeviceRegistry,
    RedisNotificationScheduler,
)
from rescue_timeline.services.supabase.client import SupabaseClient, create_supabase_client

logger = get_logger(__name__)

# Job configuration
SYNC_INTERVAL_MINUTES = 30
ERROR_RETRY_MINUTES = 5


async def run_notification_sync(
    redis_client: FastRedisClient | None = None,
    supabase: SupabaseClient | None = None,
    service_token: str | None = None,
) -> dict:
    """
    Run one reconcile pass over all registered devices.

    Returns:
        Dict of counters; `skipped` is set with a reason when prerequisites are missing
    """
    redis_client = redis_client or fast_redis
    if redis_client is fast_redis and not fast_redis.is_configured():
        logger.warning("Notification sync skipped", reason="redis_not_configured")
        return {"skipped": True, "reason": "redis_not_configured"}

    service_token = service_token or settings.SUPABASE_SERVICE_ROLE_KEY
    if not service_token:
        logger.warning("Notification sync skipped", reason="service_role_key_missing")
        return {"skipped": True, "reason": "service_role_key_missing"}

    owns_client = supabase is None
    supabase = supabase or create_supabase_client()
    if supabase is None:
        return {"skipped": True, "reason": "supabase_not_configured"}

    metrics = {
        "skipped": False,
        "devices": 0,
        "synced": 0,
        "failed": 0,
        "ignored": 0,
        "cancelled": 0,
        "scheduled": 0,
    }

    try:
        calendar = CalendarEventsService(supabase)
        devices = await DeviceRegistry(redis_client).list_devices()
        metrics["devices"] = len(devices)

        for device in devices:
            if not device.org_id or device.platform == Platform.WEB.value:
                metrics["ignored"] += 1
                continue

            context = SessionContext(
                org_id=device.org_id,
                platform=Platform(device.platform),
                device_id=device.device_id,
                access_token=service_token,
            )
            status = await NotificationReconciler(calendar).sync(
                context, RedisNotificationScheduler(redis_client, device.device_id)
            )
            if status.state == SyncState.ERROR:
                metrics["failed"] += 1
                logger.warning(
                    "Device sync failed",
                    device_id=device.device_id,
                    org_id=device.org_id,
                    error_code=status.error_code,
                    job_run="notification_sync",
                )
                continue

            metrics["synced"] += 1
            metrics["cancelled"] += status.cancelled
            metrics["scheduled"] += status.scheduled
    finally:
        if owns_client:
            await supabase.close()

    logger.info("Notification sync job completed", **metrics)
    return metrics


async def start_notification_sync_scheduler(interval_minutes: int = SYNC_INTERVAL_MINUTES):
    """Run the notification sync on a fixed interval until stopped."""
    logger.info("Starting notification sync scheduler", interval_minutes=interval_minutes)

    while True:
        try:
            await run_notification_sync()
            await asyncio.sleep(interval_minutes * 60)

        except KeyboardInterrupt:
            logger.info("Notification sync scheduler stopped by user")
            break
        except Exception as e:
            logger.error(
                "Error in notification sync scheduler", error=str(e), error_type=type(e).__name__
            )
            await asyncio.sleep(ERROR_RETRY_MINUTES * 60)
