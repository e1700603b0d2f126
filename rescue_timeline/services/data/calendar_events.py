"""
Calendar events data source.
Reads schedule events through the `get_calendar_events` RPC and writes new
events/reminders to the `calendar_events` / `calendar_reminders` tables.
Falls back to mock events when no backend is configured, unless the caller
requires live data.
"""

import hashlib
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError

from rescue_timeline.infrastructure.observability.logging import get_logger
from rescue_timeline.models.domain.calendar_domain import (
    CalendarEvent,
    CalendarLinkType,
    normalize_event,
)
from rescue_timeline.services.cache.query_cache import QueryCache
from rescue_timeline.services.data.mocks import get_mock_calendar_events
from rescue_timeline.services.supabase.client import (
    SupabaseClient,
    SupabaseError,
    format_supabase_error,
)
from rescue_timeline.utils.dates import end_of_day, format_iso, parse_iso_datetime, start_of_day

logger = get_logger(__name__)

CALENDAR_QUERY_PREFIX = "calendar-events"
DEFAULT_RANGE_DAYS = 30
DEFAULT_REMINDER_OFFSET = 60


class CalendarDataError(Exception):
    """Custom exception for calendar data operations."""

    def __init__(
        self,
        message: str,
        org_id: str | None = None,
        error_code: str | None = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.org_id = org_id
        self.error_code = error_code
        self.recoverable = recoverable


@dataclass(frozen=True, slots=True)
class CalendarEventsQuery:
    """Filters accepted by the `get_calendar_events` RPC plus fallback switches."""

    org_id: str
    start_date: str | None = None
    end_date: str | None = None
    source_types: tuple[str, ...] | None = None
    dog_id: str | None = None
    contact_id: str | None = None
    stage: str | None = None
    visibility: str | None = None
    search: str | None = None
    assigned_membership_id: str | None = None
    fallback_to_mock_on_error: bool = False
    require_live: bool = False

    def cache_key(self) -> tuple[Any, ...]:
        return (
            CALENDAR_QUERY_PREFIX,
            self.org_id,
            self.start_date or "",
            self.end_date or "",
            ",".join(sorted(self.source_types or ())),
            self.dog_id or "",
            self.contact_id or "",
            self.stage or "",
            self.visibility or "",
            self.search or "",
            self.assigned_membership_id or "",
        )


@dataclass(frozen=True, slots=True)
class NewCalendarReminder:
    offset_minutes: int | None = None
    type: str = "local"
    deterministic_key: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class NewCalendarEvent:
    org_id: str
    title: str
    start_at: str
    end_at: str
    type: str
    status: str | None = None
    location: str | None = None
    link_type: str | None = None
    link_id: str | None = None
    visibility: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)
    reminders: tuple[NewCalendarReminder, ...] = ()


def _caller_fingerprint(access_token: str | None) -> str:
    # Rows are filtered per caller by RLS, so cached results are kept per token
    if not access_token:
        return ""
    return hashlib.sha256(access_token.encode()).hexdigest()[:16]


def resolve_range(
    start_date: str | None, end_date: str | None, now: datetime | None = None
) -> tuple[datetime, datetime]:
    """Start of the start day and end of the end day (defaults: today .. +30 days)."""
    now = (now or datetime.now()).astimezone()
    start = parse_iso_datetime(start_date) or now
    end = parse_iso_datetime(end_date) or now + timedelta(days=DEFAULT_RANGE_DAYS)
    return start_of_day(start), end_of_day(end)


def normalize_calendar_rows(rows: Any, org_id: str | None = None) -> list[CalendarEvent]:
    """
    Normalize upstream rows, dropping malformed ones.

    Returns events sorted ascending by `start_at`. A warning is logged when a
    non-empty batch yields no valid events.
    """
    if not isinstance(rows, list):
        rows = []

    events: list[CalendarEvent] = []
    dropped_events = 0
    dropped_reminders = 0
    for row in rows:
        if not isinstance(row, dict):
            dropped_events += 1
            continue
        try:
            event, dropped = normalize_event(row)
        except ValidationError as e:
            dropped_events += 1
            logger.debug(
                "Dropping malformed calendar event",
                event_id=row.get("event_id"),
                errors=e.error_count(),
            )
            continue
        dropped_reminders += dropped
        events.append(event)

    if dropped_events or dropped_reminders:
        logger.info(
            "Calendar rows dropped during normalization",
            org_id=org_id,
            dropped_events=dropped_events,
            dropped_reminders=dropped_reminders,
        )
    if rows and not events:
        logger.warning(
            "Calendar batch normalized to zero valid events",
            org_id=org_id,
            row_count=len(rows),
        )

    return sorted(events, key=lambda event: event.start_at)


class CalendarEventsService:
    """
    Read/write access to calendar events for one organization at a time.

    Reads are memoized in the query cache unless live data is required.
    """

    def __init__(
        self,
        client: SupabaseClient | None,
        cache: QueryCache | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        self.client = client
        self.cache = cache
        self._now = now or (lambda: datetime.now().astimezone())

    def is_live(self) -> bool:
        return self.client is not None

    def _mock_events(self, query: CalendarEventsQuery, start: datetime, end: datetime):
        rows = get_mock_calendar_events(
            query.org_id,
            start,
            end,
            now=self._now(),
            source_types=query.source_types,
            dog_id=query.dog_id,
        )
        return normalize_calendar_rows(rows, query.org_id)

    async def fetch_events(
        self, query: CalendarEventsQuery, *, access_token: str | None = None
    ) -> list[CalendarEvent]:
        """
        Fetch calendar events for an organization and date range.

        Args:
            query: Filters and fallback switches
            access_token: Caller's JWT, forwarded so RLS applies

        Returns:
            List[CalendarEvent]: Events sorted by start time

        Raises:
            CalendarDataError: If live data is required but unavailable, or the
                RPC fails and mock fallback is not allowed
        """
        if self.cache is None or query.require_live:
            return await self._fetch_events(query, access_token)
        key = (*query.cache_key(), _caller_fingerprint(access_token))
        return await self.cache.get_or_fetch(key, lambda: self._fetch_events(query, access_token))

    async def _fetch_events(
        self, query: CalendarEventsQuery, access_token: str | None
    ) -> list[CalendarEvent]:
        start, end = resolve_range(query.start_date, query.end_date, self._now())

        if self.client is None:
            if query.require_live:
                raise CalendarDataError(
                    "Supabase env vars missing; calendar sync requires a live backend.",
                    org_id=query.org_id,
                    error_code="backend_unavailable",
                    recoverable=False,
                )
            return self._mock_events(query, start, end)

        params = {
            "p_org_id": query.org_id,
            "p_start": format_iso(start),
            "p_end": format_iso(end),
            "p_source_types": list(query.source_types) if query.source_types else None,
            "p_dog_id": query.dog_id,
            "p_contact_id": query.contact_id,
            "p_stage": query.stage,
            "p_visibility": query.visibility,
            "p_search": query.search,
            "p_assigned_membership_id": query.assigned_membership_id,
        }

        try:
            rows = await self.client.rpc("get_calendar_events", params, access_token=access_token)
        except SupabaseError as e:
            message = format_supabase_error(e, "Failed to load calendar events")
            if query.fallback_to_mock_on_error and not query.require_live:
                logger.warning(
                    "Falling back to mock calendar events", org_id=query.org_id, error=message
                )
                return self._mock_events(query, start, end)
            raise CalendarDataError(message, org_id=query.org_id, error_code=e.code) from e

        events = normalize_calendar_rows(rows or [], query.org_id)
        logger.info("Calendar events fetched", org_id=query.org_id, event_count=len(events))
        return events

    async def create_event(
        self, new_event: NewCalendarEvent, *, access_token: str | None = None
    ) -> CalendarEvent:
        """
        Create a calendar event and its reminders.

        Raises:
            CalendarDataError: If no backend is configured or a write fails
        """
        if self.client is None:
            raise CalendarDataError(
                "Supabase env vars missing; creating calendar events requires a live backend.",
                org_id=new_event.org_id,
                error_code="backend_unavailable",
                recoverable=False,
            )

        row = {
            "org_id": new_event.org_id,
            "title": new_event.title,
            "start_at": new_event.start_at,
            "end_at": new_event.end_at,
            "type": new_event.type,
            "status": new_event.status or "scheduled",
            "location": new_event.location,
            "link_type": new_event.link_type or CalendarLinkType.NONE.value,
            "link_id": new_event.link_id,
            "visibility": new_event.visibility or "org",
            "meta": new_event.meta or {},
        }

        try:
            data = await self.client.insert("calendar_events", row, access_token=access_token)
        except SupabaseError as e:
            raise CalendarDataError(
                format_supabase_error(e, "Failed to create calendar event"),
                org_id=new_event.org_id,
                error_code=e.code,
            ) from e

        if not data:
            raise CalendarDataError(
                "Calendar event creation returned no data.", org_id=new_event.org_id
            )

        created_id = str(data["id"])

        if new_event.reminders:
            reminder_rows = []
            for reminder in new_event.reminders:
                offset = (
                    reminder.offset_minutes
                    if reminder.offset_minutes is not None
                    else DEFAULT_REMINDER_OFFSET
                )
                reminder_rows.append(
                    {
                        "org_id": new_event.org_id,
                        "event_id": created_id,
                        "type": reminder.type or "local",
                        "offset_minutes": offset,
                        "deterministic_key": reminder.deterministic_key
                        or f"{new_event.type}_{created_id}_{offset}",
                        "payload": reminder.payload or {},
                    }
                )
            try:
                await self.client.upsert(
                    "calendar_reminders",
                    reminder_rows,
                    on_conflict="org_id,deterministic_key",
                    access_token=access_token,
                )
            except SupabaseError as e:
                raise CalendarDataError(
                    format_supabase_error(e, "Failed to create calendar reminders"),
                    org_id=new_event.org_id,
                    error_code=e.code,
                ) from e

        if self.cache is not None:
            self.cache.invalidate(CALENDAR_QUERY_PREFIX)

        events = await self.fetch_events(
            CalendarEventsQuery(
                org_id=new_event.org_id,
                start_date=new_event.start_at,
                end_date=new_event.end_at,
                require_live=True,
            ),
            access_token=access_token,
        )

        logger.info("Calendar event created", org_id=new_event.org_id, event_id=created_id)

        for event in events:
            if event.source_id == created_id or event.event_id == f"cal_{created_id}":
                return event

        # The RPC may not surface the event yet; build it from the inserted row
        event, _ = normalize_event(
            {
                **data,
                "event_id": f"cal_{created_id}",
                "source_type": new_event.type,
                "reminders": [],
            }
        )
        return event
