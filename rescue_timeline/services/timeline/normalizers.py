"""
Timeline normalizers.

Map one activity event or one calendar event into the shared `TimelineItem`
shape. Both functions are pure; timestamps that fail to parse are kept as the
raw upstream string.
"""

from rescue_timeline.models.domain.activity_domain import ActivityEvent
from rescue_timeline.models.domain.calendar_domain import CalendarEvent
from rescue_timeline.models.domain.timeline_domain import DetailRow, TimelineItem, TimelineKind
from rescue_timeline.services.timeline.activity_details import (
    ARROW,
    format_event_type_label,
    to_activity_event_detail_rows,
)
from rescue_timeline.utils.dates import format_timestamp_short, to_iso

AUDIT_ID_PREFIX = "audit_"
SCHEDULE_ID_PREFIX = "sched_"
SUBTITLE_SEPARATOR = " · "


def to_audit_timeline_item(event: ActivityEvent) -> TimelineItem:
    return TimelineItem(
        id=f"{AUDIT_ID_PREFIX}{event.id}",
        kind=TimelineKind.AUDIT,
        occurred_at=to_iso(event.created_at),
        title=event.summary,
        subtitle=format_event_type_label(event.event_type),
        system=event.is_system(),
        details=tuple(to_activity_event_detail_rows(event)),
        event_type=event.event_type,
    )


def to_schedule_timeline_item(event: CalendarEvent) -> TimelineItem:
    subtitle_parts = [event.source_type]
    if event.status:
        subtitle_parts.append(event.status)

    start = format_timestamp_short(event.start_at)
    when = f"{start} {ARROW} {format_timestamp_short(event.end_at)}"
    details = [DetailRow(label="when", value=when)]
    if event.has_link():
        details.append(DetailRow(label="link", value=f"{event.link_type}:{event.link_id}"))

    return TimelineItem(
        id=f"{SCHEDULE_ID_PREFIX}{event.event_id}",
        kind=TimelineKind.SCHEDULE,
        occurred_at=to_iso(event.start_at),
        title=event.title,
        subtitle=SUBTITLE_SEPARATOR.join(subtitle_parts),
        system=False,
        details=tuple(details),
        source_type=event.source_type,
    )
