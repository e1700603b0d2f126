"""
Tests for reminder reconciliation against an in-memory scheduler.
"""

from datetime import UTC, datetime

import pytest

from rescue_timeline.models.domain.notification_domain import (
    NotificationContent,
    NotificationRequest,
    PermissionStatus,
    StatusVariant,
    SyncState,
)
from rescue_timeline.models.domain.session_domain import Platform, SessionContext
from rescue_timeline.services.cache.query_cache import QueryCache
from rescue_timeline.services.data.calendar_events import CalendarDataError
from rescue_timeline.services.notifications.notifier import SmartNotifier, ToastNotifier
from rescue_timeline.services.notifications.reconciler import (
    NO_ORG_MESSAGE,
    PERMISSION_MISSING_MESSAGE,
    WEB_NOTICE,
    NotificationReconciler,
)
from rescue_timeline.services.notifications.scheduler import (
    InMemoryNotificationScheduler,
    NotificationSchedulerError,
)

NOW = datetime(2025, 12, 18, 12, 0, tzinfo=UTC)
CONTEXT = SessionContext(
    org_id="org_1", platform=Platform.IOS, device_id="dev_1", access_token="jwt"
)


def _event_with_reminders(factory, *reminders, **overrides):
    return factory(reminders=list(reminders), **overrides)


def _reminder(rem_id: str, scheduled_at: str, offset: int = 60, key: str = ""):
    return {
        "id": rem_id,
        "offset_minutes": offset,
        "scheduled_at": scheduled_at,
        "deterministic_key": key,
    }


def _reconciler(calendar, **kwargs) -> NotificationReconciler:
    return NotificationReconciler(calendar, window_days=14, now=lambda: NOW, tz=UTC, **kwargs)


class FailingScheduler(InMemoryNotificationScheduler):
    async def schedule(self, request):
        raise NotificationSchedulerError("scheduler offline")


class ExplodingToast(ToastNotifier):
    async def show(self, org_id, variant, text):
        raise RuntimeError("toast backend down")


@pytest.mark.asyncio
async def test_schedules_future_reminders_with_content(stub_calendar, calendar_event_factory):
    event = _event_with_reminders(
        calendar_event_factory, _reminder("rem_1", "2025-12-20T09:00:00Z")
    )
    calendar = stub_calendar([event])
    scheduler = InMemoryNotificationScheduler()

    status = await _reconciler(calendar).sync(CONTEXT, scheduler)

    assert status.state == SyncState.SUCCESS
    assert status.variant == StatusVariant.SUCCESS
    assert status.message == "Scheduled reminders for the next 14 days."
    assert status.scheduled == 1
    assert status.last_sync_at == NOW

    [note] = await scheduler.get_all_scheduled()
    assert note.trigger_at == datetime(2025, 12, 20, 9, 0, tzinfo=UTC)
    assert note.content.title == "Vaccine booster"
    assert note.content.body == "Clinic A"
    assert note.content.data == {
        "deterministicId": "medical_medrec_1_2025-12-20_60",
        "eventId": "med_1",
        "eventType": "medical",
        "linkId": "dog_1",
        "linkType": "dog",
        "reminderOffset": 60,
    }


@pytest.mark.asyncio
async def test_fetch_requires_live_data_for_window(stub_calendar):
    calendar = stub_calendar([])

    await _reconciler(calendar).sync(CONTEXT, InMemoryNotificationScheduler())

    [(query, token)] = calendar.queries
    assert query.org_id == "org_1"
    assert query.require_live is True
    assert query.fallback_to_mock_on_error is False
    assert query.start_date == "2025-12-18T12:00:00.000Z"
    assert query.end_date == "2026-01-01T12:00:00.000Z"
    assert token == "jwt"


@pytest.mark.asyncio
async def test_second_run_is_a_noop(stub_calendar, calendar_event_factory):
    event = _event_with_reminders(
        calendar_event_factory,
        _reminder("rem_1", "2025-12-20T09:00:00Z"),
        _reminder("rem_2", "2025-12-20T09:45:00Z", offset=15),
    )
    calendar = stub_calendar([event])
    scheduler = InMemoryNotificationScheduler()
    reconciler = _reconciler(calendar)

    first = await reconciler.sync(CONTEXT, scheduler)
    second = await reconciler.sync(CONTEXT, scheduler)

    assert first.scheduled == 2
    assert second.scheduled == 0
    assert second.cancelled == 0
    assert len(scheduler.scheduled) == 2
    assert scheduler.cancelled == []


@pytest.mark.asyncio
async def test_past_and_unparsable_reminders_are_skipped(stub_calendar, calendar_event_factory):
    event = _event_with_reminders(
        calendar_event_factory,
        _reminder("past", "2025-12-18T11:59:59Z"),
        _reminder("now", "2025-12-18T12:00:00Z", offset=30),
        _reminder("bad", "not-a-date", offset=45, key="bad_key"),
    )
    scheduler = InMemoryNotificationScheduler()

    status = await _reconciler(stub_calendar([event])).sync(CONTEXT, scheduler)

    assert status.scheduled == 0
    assert status.skipped_past == 3
    assert await scheduler.get_all_scheduled() == []


@pytest.mark.asyncio
async def test_stale_notifications_are_cancelled_once(stub_calendar):
    scheduler = InMemoryNotificationScheduler()
    stale_id = await scheduler.schedule(
        NotificationRequest(
            content=NotificationContent(title="old", data={"deterministicKey": "gone_key"}),
            trigger_at=NOW,
        )
    )
    foreign_id = await scheduler.schedule(
        NotificationRequest(content=NotificationContent(title="other app"), trigger_at=NOW)
    )
    reconciler = _reconciler(stub_calendar([]))

    await reconciler.sync(CONTEXT, scheduler)
    await reconciler.sync(CONTEXT, scheduler)

    assert scheduler.cancelled == [stale_id]
    remaining = [n.identifier for n in await scheduler.get_all_scheduled()]
    assert remaining == [foreign_id]


@pytest.mark.asyncio
async def test_legacy_reminder_id_key_is_recognized(stub_calendar, calendar_event_factory):
    event = _event_with_reminders(
        calendar_event_factory, _reminder("rem_1", "2025-12-20T09:00:00Z", key="legacy")
    )
    scheduler = InMemoryNotificationScheduler()
    await scheduler.schedule(
        NotificationRequest(
            content=NotificationContent(title="t", data={"reminderId": "legacy"}), trigger_at=NOW
        )
    )

    status = await _reconciler(stub_calendar([event])).sync(CONTEXT, scheduler)

    assert status.scheduled == 0
    assert status.cancelled == 0


@pytest.mark.asyncio
async def test_no_org_fails_fast(stub_calendar):
    calendar = stub_calendar([])

    status = await _reconciler(calendar).sync(
        SessionContext(org_id=None), InMemoryNotificationScheduler()
    )

    assert status.state == SyncState.ERROR
    assert status.message == NO_ORG_MESSAGE
    assert status.error_code == "no_org"
    assert calendar.queries == []


@pytest.mark.asyncio
async def test_web_platform_is_informational(stub_calendar):
    calendar = stub_calendar([])
    reconciler = _reconciler(calendar)

    status = await reconciler.sync(
        SessionContext(org_id="org_1", platform=Platform.WEB), InMemoryNotificationScheduler()
    )

    assert status.variant == StatusVariant.INFO
    assert status.message == WEB_NOTICE
    assert status.error_code is None
    assert reconciler.last_sync_at == NOW
    assert calendar.queries == []


@pytest.mark.asyncio
async def test_permission_is_requested_once_then_reported_missing(stub_calendar):
    calendar = stub_calendar([])
    scheduler = InMemoryNotificationScheduler(
        permission=PermissionStatus.UNDETERMINED, grant_on_request=False
    )

    status = await _reconciler(calendar).sync(CONTEXT, scheduler)

    assert scheduler.permission_requests == 1
    assert status.state == SyncState.ERROR
    assert status.message == PERMISSION_MISSING_MESSAGE
    assert status.error_code == "permission_missing"
    assert calendar.queries == []


@pytest.mark.asyncio
async def test_permission_granted_on_request_continues(stub_calendar):
    scheduler = InMemoryNotificationScheduler(permission=PermissionStatus.UNDETERMINED)

    status = await _reconciler(stub_calendar([])).sync(CONTEXT, scheduler)

    assert status.state == SyncState.SUCCESS


@pytest.mark.asyncio
async def test_backend_unavailable_is_reported(stub_calendar):
    error = CalendarDataError("backend missing", error_code="backend_unavailable")
    reconciler = _reconciler(stub_calendar(error=error))

    status = await reconciler.sync(CONTEXT, InMemoryNotificationScheduler())

    assert status.state == SyncState.ERROR
    assert status.message == "backend missing"
    assert status.error_code == "backend_unavailable"
    assert reconciler.is_syncing is False
    assert reconciler.last_sync_at is None


@pytest.mark.asyncio
async def test_scheduler_failure_aborts_run(stub_calendar, calendar_event_factory):
    event = _event_with_reminders(
        calendar_event_factory, _reminder("rem_1", "2025-12-20T09:00:00Z")
    )

    status = await _reconciler(stub_calendar([event])).sync(CONTEXT, FailingScheduler())

    assert status.state == SyncState.ERROR
    assert status.error_code == "scheduler_error"
    assert status.message == "scheduler offline"


@pytest.mark.asyncio
async def test_failing_toast_does_not_affect_status(stub_calendar):
    notifier = SmartNotifier(ExplodingToast(), default_toast=True)

    status = await _reconciler(stub_calendar([]), notifier=notifier).sync(
        CONTEXT, InMemoryNotificationScheduler()
    )

    assert status.state == SyncState.SUCCESS
    assert notifier.message.variant == StatusVariant.SUCCESS


@pytest.mark.asyncio
async def test_app_resume_invalidates_entity_queries(stub_calendar):
    cache = QueryCache()
    cache.set(("dogs", "org_1"), ["rex"])
    cache.set(("transports", "org_1"), ["tr_1"])
    cache.set(("calendar-events", "org_1"), [])
    cache.set(("contacts", "org_1"), ["c"])

    status = await _reconciler(stub_calendar([])).on_app_resume(
        CONTEXT, InMemoryNotificationScheduler(), cache
    )

    assert status.state == SyncState.SUCCESS
    assert cache.get(("dogs", "org_1")) is None
    assert cache.get(("transports", "org_1")) is None
    assert cache.get(("calendar-events", "org_1")) is None
    assert cache.get(("contacts", "org_1")) == ["c"]
