# rescue_timeline/models/api/calendar_request.py
"""
Calendar API request models.
Used by routes for input validation.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from rescue_timeline.services.data.calendar_events import NewCalendarEvent, NewCalendarReminder
from rescue_timeline.utils.dates import format_iso


class CreateReminderRequest(BaseModel):
    offset_minutes: int | None = Field(default=None, ge=0, description="Minutes before start")
    type: str = Field(default="local", description="Reminder channel")
    deterministic_key: str | None = Field(default=None, description="Idempotency key override")
    payload: dict[str, Any] = Field(default_factory=dict)


class CreateCalendarEventRequest(BaseModel):
    """Request for creating a calendar event."""

    title: str = Field(..., min_length=1, max_length=200, description="Event title")
    start_at: datetime = Field(..., description="Event start time")
    end_at: datetime = Field(..., description="Event end time")
    type: str = Field(default="general", description="Source type of the event")
    status: str | None = Field(default=None, description="Event status")
    location: str | None = Field(default=None, max_length=500, description="Event location")
    link_type: str | None = Field(default=None, description="dog, transport, profile or contact")
    link_id: str | None = Field(default=None, description="Linked entity ID")
    visibility: str | None = Field(default=None, description="Visibility (org by default)")
    meta: dict[str, Any] = Field(default_factory=dict)
    reminders: list[CreateReminderRequest] = Field(default_factory=list, max_length=10)

    @model_validator(mode="after")
    def _check_range(self) -> "CreateCalendarEventRequest":
        if self.end_at < self.start_at:
            raise ValueError("end_at must not be before start_at")
        return self

    def to_new_event(self, org_id: str) -> NewCalendarEvent:
        return NewCalendarEvent(
            org_id=org_id,
            title=self.title,
            start_at=format_iso(self.start_at.astimezone()),
            end_at=format_iso(self.end_at.astimezone()),
            type=self.type,
            status=self.status,
            location=self.location,
            link_type=self.link_type,
            link_id=self.link_id,
            visibility=self.visibility,
            meta=self.meta,
            reminders=tuple(
                NewCalendarReminder(
                    offset_minutes=r.offset_minutes,
                    type=r.type,
                    deterministic_key=r.deterministic_key,
                    payload=r.payload,
                )
                for r in self.reminders
            ),
        )
