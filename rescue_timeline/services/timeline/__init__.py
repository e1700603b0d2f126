"""
Timeline assembly: normalizers, merge/filter and the per-entity feed.
"""

from .entity_timeline import EntityTimelineService
from .merger import filter_timeline_items, is_important, merge_timeline_items
from .normalizers import to_audit_timeline_item, to_schedule_timeline_item

__all__ = [
    "EntityTimelineService",
    "filter_timeline_items",
    "is_important",
    "merge_timeline_items",
    "to_audit_timeline_item",
    "to_schedule_timeline_item",
]
