"""
Entity Timeline Service
Assembles the merged audit + schedule feed for one dog, transport, contact or
membership.
"""

from collections.abc import Callable
from datetime import datetime, timedelta

from rescue_timeline.config import settings
from rescue_timeline.infrastructure.observability.logging import get_logger
from rescue_timeline.models.domain.calendar_domain import CalendarEvent, CalendarLinkType
from rescue_timeline.models.domain.session_domain import SessionContext
from rescue_timeline.models.domain.timeline_domain import (
    DEFAULT_TIMELINE_FILTERS,
    TimelineFilters,
    TimelinePage,
    TimelineScope,
    TimelineScopeKind,
)
from rescue_timeline.services.data.activity_events import ActivityDataError, ActivityEventsService
from rescue_timeline.services.data.calendar_events import CalendarEventsQuery, CalendarEventsService
from rescue_timeline.services.timeline.merger import filter_timeline_items, merge_timeline_items
from rescue_timeline.services.timeline.normalizers import (
    to_audit_timeline_item,
    to_schedule_timeline_item,
)
from rescue_timeline.utils.dates import end_of_day, format_iso, start_of_day

logger = get_logger(__name__)


def calendar_query_for_scope(
    org_id: str, scope: TimelineScope, start: datetime, end: datetime
) -> CalendarEventsQuery:
    """Calendar filters for a scope; transports are matched by link afterwards."""
    kwargs: dict[str, str] = {}
    if scope.kind == TimelineScopeKind.DOG:
        kwargs["dog_id"] = scope.entity_id
    elif scope.kind == TimelineScopeKind.CONTACT:
        kwargs["contact_id"] = scope.entity_id
    elif scope.kind == TimelineScopeKind.MEMBERSHIP:
        kwargs["assigned_membership_id"] = scope.entity_id

    return CalendarEventsQuery(
        org_id=org_id,
        start_date=format_iso(start),
        end_date=format_iso(end),
        fallback_to_mock_on_error=True,
        **kwargs,
    )


def _matches_scope_link(event: CalendarEvent, scope: TimelineScope) -> bool:
    if scope.kind != TimelineScopeKind.TRANSPORT:
        return True
    return event.link_type == CalendarLinkType.TRANSPORT and event.link_id == scope.entity_id


class EntityTimelineService:
    def __init__(
        self,
        activity: ActivityEventsService,
        calendar: CalendarEventsService,
        now: Callable[[], datetime] | None = None,
        lookback_days: int | None = None,
        lookahead_days: int | None = None,
    ):
        self.activity = activity
        self.calendar = calendar
        self._now = now or (lambda: datetime.now().astimezone())
        self.lookback_days = (
            lookback_days if lookback_days is not None else settings.TIMELINE_LOOKBACK_DAYS
        )
        self.lookahead_days = (
            lookahead_days if lookahead_days is not None else settings.TIMELINE_LOOKAHEAD_DAYS
        )

    def window(self) -> tuple[datetime, datetime]:
        now = self._now()
        start = start_of_day(now - timedelta(days=self.lookback_days))
        end = end_of_day(now + timedelta(days=self.lookahead_days))
        return start, end

    async def get_timeline(
        self,
        context: SessionContext,
        scope: TimelineScope,
        filters: TimelineFilters = DEFAULT_TIMELINE_FILTERS,
        limit: int | None = None,
    ) -> TimelinePage:
        """
        Build one page of the merged feed.

        `can_load_more` is set when the audit source returned a full page, so
        the caller can ask again with a larger limit.

        Raises:
            ActivityDataError: If there is no active organization or the audit read fails
            CalendarDataError: If the schedule read fails and cannot fall back
        """
        limit = limit or settings.TIMELINE_PAGE_SIZE
        if not context.org_id:
            raise ActivityDataError(
                "No active organization selected.", error_code="no_org", recoverable=False
            )

        audit_events = await self.activity.fetch_for_scope(context, scope, limit)

        start, end = self.window()
        query = calendar_query_for_scope(context.org_id, scope, start, end)
        calendar_events = await self.calendar.fetch_events(
            query, access_token=context.access_token
        )
        calendar_events = [e for e in calendar_events if _matches_scope_link(e, scope)]

        items = [to_audit_timeline_item(e) for e in audit_events]
        items.extend(to_schedule_timeline_item(e) for e in calendar_events)
        merged = merge_timeline_items(items)
        visible = filter_timeline_items(merged, filters)

        logger.info(
            "Timeline assembled",
            org_id=context.org_id,
            scope=scope.kind.value,
            entity_id=scope.entity_id,
            audit_count=len(audit_events),
            schedule_count=len(calendar_events),
            visible_count=len(visible),
        )

        return TimelinePage(
            items=visible, can_load_more=len(audit_events) >= limit, limit=limit
        )
