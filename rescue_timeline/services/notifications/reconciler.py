"""
Notification Reconciler
Brings a device's scheduled local notifications in line with the calendar.

Every reminder in the upcoming window maps to a deterministic key. Scheduled
notifications whose key is no longer desired are cancelled; desired keys that
are not scheduled yet are scheduled when their trigger time is still ahead.
Running the sync twice against unchanged data is a no-op the second time.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, tzinfo

from rescue_timeline.config import settings
from rescue_timeline.infrastructure.observability.logging import get_logger
from rescue_timeline.models.domain.calendar_domain import CalendarEvent, CalendarReminder
from rescue_timeline.models.domain.notification_domain import (
    NotificationContent,
    NotificationRequest,
    PermissionStatus,
    StatusVariant,
    SyncState,
    SyncStatus,
)
from rescue_timeline.models.domain.session_domain import SessionContext
from rescue_timeline.services.cache.query_cache import QueryCache
from rescue_timeline.services.data.calendar_events import (
    CALENDAR_QUERY_PREFIX,
    CalendarDataError,
    CalendarEventsQuery,
    CalendarEventsService,
)
from rescue_timeline.services.notifications.notifier import SmartNotifier
from rescue_timeline.services.notifications.reminder_keys import build_reminder_deterministic_id
from rescue_timeline.services.notifications.scheduler import (
    NotificationScheduler,
    NotificationSchedulerError,
)
from rescue_timeline.utils.dates import format_iso, parse_iso_datetime

logger = get_logger(__name__)

NO_ORG_MESSAGE = "Select an organization before syncing reminders."
WEB_NOTICE = "Reminder notifications are not available on web. Use the mobile app to receive them."
PERMISSION_MISSING_MESSAGE = "Notification permission is required to schedule reminders."
SYNC_FAILURE_MESSAGE = "Failed to sync reminders. Please try again."

RESUME_INVALIDATED_PREFIXES = ("dogs", "transports", CALENDAR_QUERY_PREFIX)


def format_sync_success(window_days: int) -> str:
    return f"Scheduled reminders for the next {window_days} days."


class NotificationSyncError(Exception):
    """Custom exception for notification sync failures."""

    def __init__(self, message: str, error_code: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.recoverable = recoverable


def build_notification_content(
    event: CalendarEvent, reminder: CalendarReminder, deterministic_id: str
) -> NotificationContent:
    return NotificationContent(
        title=event.title,
        body=event.location,
        data={
            "deterministicId": deterministic_id,
            "eventId": event.event_id,
            "eventType": event.source_type,
            "linkId": event.link_id,
            "linkType": event.link_type,
            "reminderOffset": reminder.offset_minutes,
        },
    )


class NotificationReconciler:
    """
    Runs reconcile passes and keeps the last status for display.

    `is_syncing` is only a flag for callers; the reconciler itself does not
    reject overlapping runs.
    """

    def __init__(
        self,
        calendar: CalendarEventsService,
        window_days: int | None = None,
        notifier: SmartNotifier | None = None,
        now: Callable[[], datetime] | None = None,
        tz: tzinfo | None = None,
    ):
        self.calendar = calendar
        self.window_days = (
            window_days if window_days is not None else settings.NOTIFICATION_WINDOW_DAYS
        )
        self.notifier = notifier or SmartNotifier()
        self._now = now or (lambda: datetime.now().astimezone())
        self._tz = tz
        self._is_syncing = False
        self.last_sync_at: datetime | None = None
        self.status = SyncStatus(variant=StatusVariant.INFO, message=None)

    @property
    def is_syncing(self) -> bool:
        return self._is_syncing

    async def sync(self, context: SessionContext, scheduler: NotificationScheduler) -> SyncStatus:
        """
        Reconcile the device behind `scheduler` for the active organization.

        Never raises; failures are reported through the returned status.
        """
        if not context.org_id:
            return await self._finish(
                context,
                SyncStatus(
                    variant=StatusVariant.ERROR,
                    message=NO_ORG_MESSAGE,
                    state=SyncState.ERROR,
                    error_code="no_org",
                ),
            )

        if not context.supports_local_notifications():
            self.last_sync_at = self._now()
            return await self._finish(
                context,
                SyncStatus(
                    variant=StatusVariant.INFO,
                    message=WEB_NOTICE,
                    state=SyncState.SUCCESS,
                    window_days=self.window_days,
                ),
            )

        self._is_syncing = True
        self.status = SyncStatus(
            variant=self.status.variant,
            message=self.status.message,
            state=SyncState.SYNCING,
            last_sync_at=self.last_sync_at,
        )
        logger.info(
            "Notification sync started",
            org_id=context.org_id,
            device_id=context.device_id,
            window_days=self.window_days,
        )

        try:
            status = await self._reconcile(context, scheduler)
            self.last_sync_at = self._now()
            status.last_sync_at = self.last_sync_at
        except NotificationSyncError as e:
            status = self._error_status(e.message, e.error_code)
        except CalendarDataError as e:
            status = self._error_status(str(e), e.error_code or "backend_unavailable")
        except NotificationSchedulerError as e:
            status = self._error_status(str(e), "scheduler_error")
        except Exception as e:
            logger.error(
                "Unexpected notification sync failure",
                org_id=context.org_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            status = self._error_status(str(e), None)
        finally:
            self._is_syncing = False

        return await self._finish(context, status)

    async def on_app_resume(
        self,
        context: SessionContext,
        scheduler: NotificationScheduler,
        cache: QueryCache | None = None,
    ) -> SyncStatus:
        """Refresh cached entity queries and re-run the sync when the app comes back."""
        if cache is not None and context.org_id:
            for prefix in RESUME_INVALIDATED_PREFIXES:
                cache.invalidate(prefix)
        return await self.sync(context, scheduler)

    def _error_status(self, message: str | None, error_code: str | None) -> SyncStatus:
        return SyncStatus(
            variant=StatusVariant.ERROR,
            message=message or SYNC_FAILURE_MESSAGE,
            state=SyncState.ERROR,
            last_sync_at=self.last_sync_at,
            window_days=self.window_days,
            error_code=error_code,
        )

    async def _finish(self, context: SessionContext, status: SyncStatus) -> SyncStatus:
        if status.last_sync_at is None:
            status.last_sync_at = self.last_sync_at
        self.status = status

        log = logger.warning if status.variant == StatusVariant.ERROR else logger.info
        log(
            "Notification sync finished",
            org_id=context.org_id,
            device_id=context.device_id,
            state=status.state.value,
            error_code=status.error_code,
            desired=status.desired,
            cancelled=status.cancelled,
            scheduled=status.scheduled,
            skipped_past=status.skipped_past,
        )
        if status.message:
            await self.notifier.notify(status.variant, status.message, org_id=context.org_id)
        return status

    async def _ensure_permission(self, scheduler: NotificationScheduler) -> None:
        permission = await scheduler.get_permissions()
        if permission != PermissionStatus.GRANTED:
            permission = await scheduler.request_permissions()
        if permission != PermissionStatus.GRANTED:
            raise NotificationSyncError(
                PERMISSION_MISSING_MESSAGE, error_code="permission_missing", recoverable=False
            )

    async def _reconcile(
        self, context: SessionContext, scheduler: NotificationScheduler
    ) -> SyncStatus:
        await self._ensure_permission(scheduler)

        now = self._now()
        events = await self.calendar.fetch_events(
            CalendarEventsQuery(
                org_id=context.org_id,
                start_date=format_iso(now),
                end_date=format_iso(now + timedelta(days=self.window_days)),
                fallback_to_mock_on_error=False,
                require_live=True,
            ),
            access_token=context.access_token,
        )

        pairs = [
            (event, reminder, build_reminder_deterministic_id(event, reminder, self._tz))
            for event in events
            for reminder in event.reminders
        ]
        desired_keys = {key for _, _, key in pairs}

        # Notifications without a key were not created by this sync; leave them
        scheduled_by_key: dict[str, str] = {}
        for note in await scheduler.get_all_scheduled():
            key = note.content.deterministic_key()
            if key:
                scheduled_by_key[key] = note.identifier

        cancelled = 0
        for key, identifier in scheduled_by_key.items():
            if key not in desired_keys:
                await scheduler.cancel(identifier)
                cancelled += 1

        scheduled = 0
        skipped_past = 0
        present_keys = set(scheduled_by_key)
        for event, reminder, key in pairs:
            if key in present_keys:
                continue

            trigger_at = parse_iso_datetime(reminder.scheduled_at)
            if trigger_at is None or trigger_at <= now:
                skipped_past += 1
                continue

            await scheduler.schedule(
                NotificationRequest(
                    content=build_notification_content(event, reminder, key),
                    trigger_at=trigger_at,
                )
            )
            present_keys.add(key)
            scheduled += 1

        return SyncStatus(
            variant=StatusVariant.SUCCESS,
            message=format_sync_success(self.window_days),
            state=SyncState.SUCCESS,
            window_days=self.window_days,
            desired=len(desired_keys),
            cancelled=cancelled,
            scheduled=scheduled,
            skipped_past=skipped_past,
        )
