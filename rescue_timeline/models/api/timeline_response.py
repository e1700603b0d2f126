# rescue_timeline/models/api/timeline_response.py
"""
Timeline and calendar API response models.
Used by routes for output formatting.
"""

from typing import Any

from pydantic import BaseModel, Field

from rescue_timeline.models.domain.calendar_domain import CalendarEvent
from rescue_timeline.models.domain.timeline_domain import TimelineItem, TimelinePage


class DetailRowResponse(BaseModel):
    label: str
    value: str


class TimelineItemResponse(BaseModel):
    """Response model for one merged timeline row."""

    id: str = Field(..., description="Prefixed item ID (audit_/sched_)")
    kind: str = Field(..., description="audit or schedule")
    occurred_at: str = Field(..., description="Normalized ISO timestamp")
    title: str = Field(..., description="Item title")
    subtitle: str = Field(default="", description="Event type or source type and status")
    system: bool = Field(default=False, description="Generated by the system, not a person")
    details: list[DetailRowResponse] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, item: TimelineItem) -> "TimelineItemResponse":
        return cls(
            id=item.id,
            kind=item.kind.value,
            occurred_at=item.occurred_at,
            title=item.title,
            subtitle=item.subtitle,
            system=item.system,
            details=[DetailRowResponse(label=d.label, value=d.value) for d in item.details],
        )


class TimelineResponse(BaseModel):
    """Response for an entity timeline page."""

    scope: str = Field(..., description="Entity kind the timeline is for")
    entity_id: str = Field(..., description="Entity ID")
    items: list[TimelineItemResponse] = Field(default_factory=list)
    total_count: int = Field(..., description="Number of visible items")
    can_load_more: bool = Field(..., description="More audit history is available")
    limit: int = Field(..., description="Audit rows requested")

    @classmethod
    def from_page(cls, scope: str, entity_id: str, page: TimelinePage) -> "TimelineResponse":
        return cls(
            scope=scope,
            entity_id=entity_id,
            items=[TimelineItemResponse.from_domain(item) for item in page.items],
            total_count=len(page.items),
            can_load_more=page.can_load_more,
            limit=page.limit,
        )


class CalendarEventsListResponse(BaseModel):
    """Response for calendar event listing."""

    events: list[dict[str, Any]] = Field(default_factory=list)
    total_count: int = Field(..., description="Number of events returned")
    live: bool = Field(..., description="False when served from mock data")

    @classmethod
    def from_events(cls, events: list[CalendarEvent], live: bool) -> "CalendarEventsListResponse":
        return cls(
            events=[event.model_dump() for event in events],
            total_count=len(events),
            live=live,
        )


class CreateCalendarEventResponse(BaseModel):
    success: bool = Field(..., description="Whether the event was created")
    event: dict[str, Any] = Field(..., description="Created event with its reminders")
    message: str = Field(..., description="Status message")
