"""
Timeline merge and feed filtering.

`merge_timeline_items` orders newest first by plain string comparison of the
normalized ISO timestamps; Python's sort is stable, so equal timestamps keep
their input order. Filtering is a separate step owned by the consuming feed.
"""

from collections.abc import Iterable

from rescue_timeline.models.domain.calendar_domain import CalendarSourceType
from rescue_timeline.models.domain.timeline_domain import (
    TimelineFilterMode,
    TimelineFilters,
    TimelineItem,
    TimelineKind,
)
from rescue_timeline.services.timeline.normalizers import SUBTITLE_SEPARATOR

# Default "Important" filters. Keep these small and high-signal.
IMPORTANT_AUDIT_EVENT_TYPES = frozenset(
    {
        # Dogs
        "dog.created",
        "dog.stage_changed",
        "dog.assignment_changed",
        "dog.archived",
        "dog.restored",
        # Transports
        "transport.created",
        "transport.status_changed",
        "transport.assignee_changed",
        "transport.archived",
        "transport.restored",
        # Files
        "document.uploaded",
        "document.deleted",
        "photo.uploaded",
        "photo.deleted",
    }
)

IMPORTANT_SCHEDULE_SOURCE_TYPES = frozenset(
    {
        CalendarSourceType.TASK.value,
        CalendarSourceType.GENERAL.value,
        CalendarSourceType.TRANSPORT.value,
        CalendarSourceType.MEDICAL.value,
        CalendarSourceType.QUARANTINE.value,
    }
)


def merge_timeline_items(items: Iterable[TimelineItem]) -> list[TimelineItem]:
    return sorted(items, key=lambda item: item.occurred_at or "", reverse=True)


def is_important(item: TimelineItem) -> bool:
    if item.kind == TimelineKind.AUDIT:
        return item.subtitle in IMPORTANT_AUDIT_EVENT_TYPES
    if item.kind == TimelineKind.SCHEDULE:
        leading = (item.subtitle or "").split(SUBTITLE_SEPARATOR)[0]
        return leading in IMPORTANT_SCHEDULE_SOURCE_TYPES
    return True


def is_kind_visible(item: TimelineItem, filters: TimelineFilters) -> bool:
    if item.kind == TimelineKind.AUDIT:
        return filters.show_audit
    if item.kind == TimelineKind.SCHEDULE:
        return filters.show_schedule
    return True


def filter_timeline_items(
    items: Iterable[TimelineItem], filters: TimelineFilters
) -> list[TimelineItem]:
    """Apply the important/all mode and the per-kind visibility toggles."""
    visible = []
    for item in items:
        if not is_kind_visible(item, filters):
            continue
        if filters.mode == TimelineFilterMode.IMPORTANT and not is_important(item):
            continue
        visible.append(item)
    return visible
