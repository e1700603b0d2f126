"""
Detail rows and labels for activity events.

Turns a heterogeneous audit payload into at most ten `{label, value}` rows for
an expandable timeline row. Never raises on odd payloads; the worst case is an
empty list.
"""

import json
import math
from typing import Any

from rescue_timeline.models.domain.activity_domain import (
    ActivityEvent,
    FieldChangesPayload,
    RowSnapshotPayload,
    TransitionPayload,
    parse_activity_payload,
)
from rescue_timeline.models.domain.timeline_domain import DetailRow

MAX_DETAIL_ROWS = 10
MAX_VALUE_LENGTH = 120
ARROW = "→"


def _truncate(value: str, limit: int = MAX_VALUE_LENGTH) -> str:
    return f"{value[:limit]}…" if len(value) > limit else value


def _number_to_string(value: int | float) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)


def value_to_string(value: Any) -> str:
    """Render a payload value the way the feed displays it."""
    if value is None:
        return ""
    if isinstance(value, str):
        return _truncate(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return _number_to_string(value)
    try:
        return _truncate(json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str))
    except (TypeError, ValueError):
        return _truncate(str(value))


def _transition(from_value: Any, to_value: Any) -> str:
    return f"{value_to_string(from_value)} {ARROW} {value_to_string(to_value)}".strip()


def _is_object(value: Any) -> bool:
    # Mirrors `typeof value === "object"`: null, arrays and maps all count
    return value is None or isinstance(value, dict | list | tuple)


def _scalar_rows(payload: dict[str, Any]) -> list[DetailRow]:
    rows = [
        DetailRow(label=str(key), value=value_to_string(value))
        for key, value in payload.items()
        if not _is_object(value)
    ]
    return rows[:MAX_DETAIL_ROWS]


def _change_rows(changes: dict[str, Any]) -> list[DetailRow]:
    rows = []
    for key, value in changes.items():
        if isinstance(value, dict) and ("from" in value or "to" in value):
            transition = _transition(value.get("from"), value.get("to"))
            rows.append(DetailRow(label=str(key), value=transition))
        else:
            rows.append(DetailRow(label=str(key), value=value_to_string(value)))
    return rows[:MAX_DETAIL_ROWS]


def _snapshot_rows(snapshot: RowSnapshotPayload) -> list[DetailRow]:
    rows = []
    for key in snapshot.fields:
        before = snapshot.before.get(key)
        after = snapshot.after.get(key)
        if before == after:
            continue
        rows.append(DetailRow(label=key, value=_transition(before, after)))
    return rows[:MAX_DETAIL_ROWS]


def to_activity_event_detail_rows(event: ActivityEvent) -> list[DetailRow]:
    """
    Build detail rows for an activity event.

    Precedence: `changes` map, then a `from`/`to` transition, then an
    allow-listed before/after diff for trigger-backed entities, and finally all
    scalar payload fields.
    """
    payload = event.payload or {}
    parsed = parse_activity_payload(event.entity_type, payload)

    if isinstance(parsed, FieldChangesPayload):
        return _change_rows(parsed.changes)

    if isinstance(parsed, TransitionPayload):
        return [DetailRow(label="change", value=_transition(parsed.from_value, parsed.to_value))]

    if isinstance(parsed, RowSnapshotPayload):
        rows = _snapshot_rows(parsed)
        if rows:
            return rows

    return _scalar_rows(payload)


def format_event_type_label(event_type: str | None) -> str:
    """`dog_created` -> `dog.created`; dotted types unchanged; blank -> `activity`."""
    value = (event_type or "").strip()
    if not value:
        return "activity"
    if "." in value:
        return value
    return value.replace("_", ".")
