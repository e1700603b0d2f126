# rescue_timeline/models/domain/timeline_domain.py
"""
Timeline Domain Models
The merged feed shape shared by audit and schedule sources, plus the feed
filters and entity scopes used to assemble it.
"""

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any


class TimelineKind(StrEnum):
    AUDIT = "audit"
    SCHEDULE = "schedule"


class TimelineFilterMode(StrEnum):
    IMPORTANT = "important"
    ALL = "all"


class TimelineScopeKind(StrEnum):
    DOG = "dog"
    TRANSPORT = "transport"
    CONTACT = "contact"
    MEMBERSHIP = "membership"


@dataclass(frozen=True, slots=True)
class DetailRow:
    label: str
    value: str


@dataclass(frozen=True, slots=True)
class TimelineItem:
    """
    One row of a merged timeline feed.

    Built fresh on every fetch and never mutated. `occurred_at` is the only sort
    key; `event_type` / `source_type` carry the raw upstream classifiers.
    """

    id: str
    kind: TimelineKind
    occurred_at: str
    title: str
    subtitle: str = ""
    system: bool = False
    details: tuple[DetailRow, ...] = ()
    event_type: str | None = None
    source_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


@dataclass(frozen=True, slots=True)
class TimelineFilters:
    mode: TimelineFilterMode = TimelineFilterMode.IMPORTANT
    show_audit: bool = True
    show_schedule: bool = True


DEFAULT_TIMELINE_FILTERS = TimelineFilters()


@dataclass(frozen=True, slots=True)
class TimelineScope:
    """The entity a timeline is assembled for."""

    kind: TimelineScopeKind
    entity_id: str


@dataclass(slots=True)
class TimelinePage:
    items: list[TimelineItem] = field(default_factory=list)
    can_load_more: bool = False
    limit: int = 0
