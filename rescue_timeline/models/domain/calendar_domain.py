# rescue_timeline/models/domain/calendar_domain.py
"""
Calendar Domain Models
Schedule events and their reminders as returned by the `get_calendar_events` RPC.
Upstream rows are normalized here before any service sees them.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class CalendarSourceType(StrEnum):
    MEDICAL = "medical"
    TRANSPORT = "transport"
    QUARANTINE = "quarantine"
    GENERAL = "general"
    SYSTEM_TASK = "system_task"
    FINANCE = "finance"
    EXTERNAL = "external"
    QUARANTINE_ARTIFACT = "quarantine_artifact"
    TASK = "task"


class CalendarLinkType(StrEnum):
    DOG = "dog"
    TRANSPORT = "transport"
    PROFILE = "profile"
    CONTACT = "contact"
    NONE = "none"


def _coerce_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


class CalendarReminder(BaseModel):
    """A reminder attached to a calendar event."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    type: str = "local"
    offset_minutes: int = Field(default=0, ge=0)
    scheduled_at: str
    deterministic_key: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> Any:
        return str(value) if value is not None else value


class CalendarEvent(BaseModel):
    """Domain model for a schedule event with its reminders."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    event_id: str
    org_id: str
    # Unknown source/link types are tolerated; the enums document the known ones
    source_type: str
    source_id: str | None = None
    title: str
    start_at: str
    end_at: str
    location: str | None = None
    status: str | None = None
    link_type: str = CalendarLinkType.NONE.value
    link_id: str | None = None
    visibility: str | None = "org"
    meta: dict[str, Any] = Field(default_factory=dict)
    reminders: list[CalendarReminder] = Field(default_factory=list)

    @field_validator("event_id", "org_id", mode="before")
    @classmethod
    def _required_to_str(cls, value: Any) -> Any:
        return str(value) if value is not None else value

    @field_validator("source_id", "link_id", mode="before")
    @classmethod
    def _optional_to_str(cls, value: Any) -> str | None:
        return _coerce_optional_str(value)

    def has_link(self) -> bool:
        return bool(self.link_type and self.link_type != CalendarLinkType.NONE and self.link_id)


def normalize_reminder(raw: dict[str, Any]) -> CalendarReminder:
    """
    Build a reminder from an upstream row, accepting camelCase aliases.

    Raises:
        ValidationError: If the row cannot be turned into a reminder
    """
    offset = raw.get("offset_minutes")
    return CalendarReminder.model_validate(
        {
            **raw,
            "offset_minutes": offset if offset is not None else 0,
            "scheduled_at": raw.get("scheduled_at") or raw.get("scheduledAt") or "",
            "deterministic_key": raw.get("deterministic_key") or raw.get("deterministicKey") or "",
            "payload": raw.get("payload") or {},
        }
    )


def normalize_event(raw: dict[str, Any]) -> tuple[CalendarEvent, int]:
    """
    Build a calendar event from an upstream row.

    Malformed reminders are dropped individually rather than failing the event.

    Returns:
        Tuple of (event, number of dropped reminders)

    Raises:
        ValidationError: If the event itself is malformed
    """
    reminders: list[CalendarReminder] = []
    dropped = 0
    raw_reminders = raw.get("reminders")
    if isinstance(raw_reminders, list):
        for item in raw_reminders:
            if not isinstance(item, dict):
                dropped += 1
                continue
            try:
                reminders.append(normalize_reminder(item))
            except ValidationError:
                dropped += 1

    source_type = raw.get("source_type") or raw.get("type") or CalendarSourceType.GENERAL.value
    source_id = raw.get("source_id")
    if source_id is None:
        source_id = raw.get("id")

    event = CalendarEvent.model_validate(
        {
            **raw,
            "source_type": source_type,
            "source_id": source_id,
            "link_type": raw.get("link_type") or CalendarLinkType.NONE.value,
            "link_id": raw.get("link_id"),
            "visibility": raw.get("visibility") or "org",
            "location": raw.get("location"),
            "status": raw.get("status"),
            "meta": raw.get("meta") or {},
            "reminders": reminders,
        }
    )
    return event, dropped
