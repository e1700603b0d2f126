# rescue_timeline/models/domain/activity_domain.py
"""
Activity Domain Models
Audit/activity records and the tagged payload variants they may carry.

Upstream payloads are heterogeneous: hand-written application payloads carry
`changes` or `from`/`to`, database trigger payloads carry row snapshots
(`before`/`after` or `old`/`new`). Anything else is kept as `OtherPayload`.
"""

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Fields worth diffing per trigger-backed entity type
SNAPSHOT_FIELDS: dict[str, tuple[str, ...]] = {
    "dogs": (
        "name",
        "stage",
        "location",
        "description",
        "foster_contact_id",
        "responsible_contact_id",
        "budget_limit",
        "deleted_at",
    ),
    "transports": (
        "status",
        "from_location",
        "to_location",
        "assigned_contact_id",
        "window_start",
        "window_end",
        "deleted_at",
        "dog_id",
    ),
    "documents": (
        "entity_type",
        "entity_id",
        "filename",
        "mime_type",
        "description",
        "storage_path",
    ),
    "dog_photos": ("caption", "is_primary", "storage_path", "dog_id"),
}


class ActivityEvent(BaseModel):
    """An immutable record of something that happened to a domain entity."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    org_id: str
    created_at: str
    actor_user_id: str | None = None
    actor_membership_id: str | None = None
    entity_type: str
    entity_id: str
    event_type: str
    summary: str
    payload: dict[str, Any] = Field(default_factory=dict)
    related: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", "org_id", "entity_id", mode="before")
    @classmethod
    def _to_str(cls, value: Any) -> Any:
        return str(value) if value is not None else value

    @field_validator("payload", "related", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    def is_system(self) -> bool:
        return bool(self.related.get("system"))


@dataclass(frozen=True, slots=True)
class FieldChangesPayload:
    """`payload.changes[field] = {from, to}` (or a bare value)."""

    changes: dict[str, Any]


@dataclass(frozen=True, slots=True)
class TransitionPayload:
    """`payload = {from, to, ...}` describing a single transition."""

    from_value: Any
    to_value: Any


@dataclass(frozen=True, slots=True)
class RowSnapshotPayload:
    """Trigger payload with before/after row images for a known entity type."""

    before: dict[str, Any]
    after: dict[str, Any]
    fields: tuple[str, ...]
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class OtherPayload:
    raw: dict[str, Any] = field(default_factory=dict)


ActivityPayload = FieldChangesPayload | TransitionPayload | RowSnapshotPayload | OtherPayload


def parse_activity_payload(entity_type: str | None, payload: Any) -> ActivityPayload:
    """Classify a raw payload into the first matching variant."""
    if not isinstance(payload, dict):
        return OtherPayload()

    changes = payload.get("changes")
    if isinstance(changes, dict) and changes:
        return FieldChangesPayload(changes=changes)

    if "from" in payload and "to" in payload:
        return TransitionPayload(from_value=payload["from"], to_value=payload["to"])

    fields = SNAPSHOT_FIELDS.get((entity_type or "").lower())
    if fields:
        before = payload.get("before")
        if before is None:
            before = payload.get("old")
        after = payload.get("after")
        if after is None:
            after = payload.get("new")
        if isinstance(before, dict) and isinstance(after, dict):
            return RowSnapshotPayload(before=before, after=after, fields=fields, raw=payload)

    return OtherPayload(raw=payload)
