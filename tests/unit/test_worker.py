import json

import pytest

from rescue_timeline.config import settings
from rescue_timeline.jobs import notification_sync_job, worker
from rescue_timeline.models.domain.notification_domain import PermissionStatus
from rescue_timeline.services.notifications.redis_scheduler import DeviceRegistry


class FakeSupabase:
    def __init__(self, rows):
        self.rows = rows
        self.tokens = []

    async def rpc(self, name, params, *, access_token=None):
        self.tokens.append(access_token)
        return self.rows


def _calendar_rows():
    return [
        {
            "event_id": "med_1",
            "org_id": "org_1",
            "source_type": "medical",
            "source_id": "medrec_1",
            "title": "Vaccine booster",
            "start_at": "2999-01-01T10:00:00Z",
            "end_at": "2999-01-01T11:00:00Z",
            "reminders": [
                {
                    "id": "r1",
                    "offset_minutes": 60,
                    "scheduled_at": "2999-01-01T09:00:00Z",
                    "deterministic_key": "medical_medrec_1_60",
                }
            ],
        }
    ]


@pytest.fixture
def quiet_logging(monkeypatch):
    monkeypatch.setattr(worker, "setup_logging", lambda log_level="INFO": None)


def test_once_prints_metrics(monkeypatch, capsys, quiet_logging):
    async def one_pass():
        return {"skipped": False, "devices": 1, "synced": 1, "failed": 0}

    monkeypatch.setattr(worker, "run_notification_sync", one_pass)

    assert worker.main(["--once"]) == 0
    assert json.loads(capsys.readouterr().out) == {
        "devices": 1,
        "failed": 0,
        "skipped": False,
        "synced": 1,
    }


@pytest.mark.parametrize(
    "metrics",
    [
        {"skipped": False, "devices": 2, "synced": 1, "failed": 1},
        {"skipped": True, "reason": "redis_not_configured"},
    ],
)
def test_once_fails_on_failed_or_skipped_pass(monkeypatch, quiet_logging, metrics):
    async def one_pass():
        return metrics

    monkeypatch.setattr(worker, "run_notification_sync", one_pass)

    assert worker.main(["--once"]) == 1


def test_loop_uses_requested_interval(monkeypatch, quiet_logging):
    intervals = []

    async def loop(interval_minutes):
        intervals.append(interval_minutes)

    monkeypatch.setattr(worker, "start_notification_sync_scheduler", loop)

    assert worker.main(["--interval", "10"]) == 0
    assert worker.main([]) == 0
    assert intervals == [10, notification_sync_job.SYNC_INTERVAL_MINUTES]


def test_interval_must_be_positive(quiet_logging):
    with pytest.raises(SystemExit):
        worker.main(["--interval", "0"])


@pytest.mark.asyncio
async def test_sync_job_reconciles_each_device(fake_redis):
    registry = DeviceRegistry(fake_redis)
    await registry.register("ipad", "org_1", "ios", PermissionStatus.GRANTED)
    await registry.register("denied", "org_1", "android", PermissionStatus.DENIED)
    await registry.register("browser", "org_1", "web", PermissionStatus.GRANTED)
    await registry.register("orphan", None, "ios", PermissionStatus.GRANTED)
    supabase = FakeSupabase(_calendar_rows())

    metrics = await notification_sync_job.run_notification_sync(
        redis_client=fake_redis, supabase=supabase, service_token="service-key"
    )

    assert metrics == {
        "skipped": False,
        "devices": 4,
        "synced": 1,
        "failed": 1,
        "ignored": 2,
        "cancelled": 0,
        "scheduled": 1,
    }
    assert supabase.tokens == ["service-key"]
    assert len(fake_redis.hashes["notification:scheduled:ipad"]) == 1

    again = await notification_sync_job.run_notification_sync(
        redis_client=fake_redis, supabase=supabase, service_token="service-key"
    )
    assert again["scheduled"] == 0
    assert again["cancelled"] == 0


@pytest.mark.asyncio
async def test_sync_job_skips_without_service_key(fake_redis, monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_SERVICE_ROLE_KEY", None)

    metrics = await notification_sync_job.run_notification_sync(redis_client=fake_redis)

    assert metrics == {"skipped": True, "reason": "service_role_key_missing"}


@pytest.mark.asyncio
async def test_sync_job_skips_without_redis(monkeypatch):
    monkeypatch.setattr(notification_sync_job.fast_redis, "is_configured", lambda: False)

    metrics = await notification_sync_job.run_notification_sync()

    assert metrics == {"skipped": True, "reason": "redis_not_configured"}
