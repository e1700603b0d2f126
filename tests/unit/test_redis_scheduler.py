import json
from datetime import UTC, datetime

import pytest

from rescue_timeline.models.domain.notification_domain import (
    NotificationContent,
    NotificationRequest,
    PermissionStatus,
    StatusVariant,
)
from rescue_timeline.services.infrastructure.redis_client import RedisUnavailableError
from rescue_timeline.services.notifications.notifier import RedisToastNotifier, SmartNotifier
from rescue_timeline.services.notifications.redis_scheduler import (
    DeviceRegistry,
    RedisNotificationScheduler,
)
from rescue_timeline.services.notifications.scheduler import NotificationSchedulerError

TRIGGER = datetime(2025, 12, 20, 9, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_registered_devices_are_listed_in_order(fake_redis):
    registry = DeviceRegistry(fake_redis)

    await registry.register("ipad", "org_1", "ios", PermissionStatus.GRANTED, owner_id="user-1")
    await registry.register("android-1", "org_2", "android")

    devices = await registry.list_devices()

    assert [d.device_id for d in devices] == ["android-1", "ipad"]
    assert devices[0].permission == PermissionStatus.UNDETERMINED
    assert devices[0].owner_id is None
    assert devices[1].to_dict() == {
        "device_id": "ipad",
        "org_id": "org_1",
        "platform": "ios",
        "permission": "granted",
        "owner_id": "user-1",
    }


@pytest.mark.asyncio
async def test_unknown_device_is_none(fake_redis):
    assert await DeviceRegistry(fake_redis).get("nope") is None


@pytest.mark.asyncio
async def test_schedule_list_and_cancel(fake_redis):
    scheduler = RedisNotificationScheduler(fake_redis, "ipad")
    content = NotificationContent(
        title="Vaccine booster", body="Clinic A", data={"deterministicKey": "k1"}
    )

    identifier = await scheduler.schedule(NotificationRequest(content=content, trigger_at=TRIGGER))

    [stored] = await scheduler.get_all_scheduled()
    assert stored.identifier == identifier
    assert stored.content.deterministic_key() == "k1"
    assert stored.trigger_at == TRIGGER

    await scheduler.cancel(identifier)

    assert await scheduler.get_all_scheduled() == []


@pytest.mark.asyncio
async def test_unreadable_entries_are_dropped(fake_redis):
    scheduler = RedisNotificationScheduler(fake_redis, "ipad")
    content = NotificationContent(title="Vet", data={"deterministicKey": "k1"})
    identifier = await scheduler.schedule(NotificationRequest(content=content, trigger_at=TRIGGER))
    fake_redis.hashes["notification:scheduled:ipad"]["legacy"] = "not json"
    fake_redis.hashes["notification:scheduled:ipad"]["empty"] = "null"

    [entry] = await scheduler.get_all_scheduled()

    assert entry.identifier == identifier
    assert set(fake_redis.hashes["notification:scheduled:ipad"]) == {identifier}


@pytest.mark.asyncio
async def test_permission_comes_from_registration(fake_redis):
    scheduler = RedisNotificationScheduler(fake_redis, "ipad")
    assert await scheduler.request_permissions() == PermissionStatus.UNDETERMINED

    await DeviceRegistry(fake_redis).register("ipad", "org_1", "ios", PermissionStatus.DENIED)

    assert await scheduler.get_permissions() == PermissionStatus.DENIED
    assert await scheduler.request_permissions() == PermissionStatus.DENIED


@pytest.mark.asyncio
async def test_redis_failure_becomes_scheduler_error(fake_redis, monkeypatch):
    async def broken(key):
        raise RedisUnavailableError("Redis HGETALL failed: connection refused")

    monkeypatch.setattr(fake_redis, "hgetall", broken)

    with pytest.raises(NotificationSchedulerError) as exc_info:
        await RedisNotificationScheduler(fake_redis, "ipad").get_all_scheduled()

    assert exc_info.value.device_id == "ipad"


@pytest.mark.asyncio
async def test_toasts_are_published_per_org(fake_redis):
    notifier = SmartNotifier(RedisToastNotifier(fake_redis), default_toast=True)

    await notifier.notify(StatusVariant.SUCCESS, "Scheduled", org_id="org_1")
    await notifier.notify(StatusVariant.INFO, "quiet", org_id="org_1", toast=False)

    [(channel, message)] = fake_redis.published
    assert channel == "toasts:org_1"
    assert json.loads(message) == {"variant": "success", "text": "Scheduled"}
    assert notifier.message.text == "quiet"


@pytest.mark.asyncio
async def test_failing_toast_does_not_propagate():
    class BrokenToast:
        async def show(self, org_id, variant, text):
            raise RuntimeError("socket closed")

    notifier = SmartNotifier(BrokenToast(), default_toast=True)

    await notifier.notify(StatusVariant.ERROR, "Failed", org_id="org_1")

    assert notifier.message.variant == StatusVariant.ERROR
    notifier.clear()
    assert notifier.message is None
