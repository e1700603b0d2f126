"""
Static mock records used when no Supabase backend is configured.

Calendar events are built relative to "now" so the demo calendar always has
something upcoming; activity events are fixed.
"""

from datetime import datetime, timedelta
from typing import Any

from rescue_timeline.utils.dates import format_iso, parse_iso_datetime

MOCK_ACTIVITY_EVENTS: list[dict[str, Any]] = [
    {
        "id": "evt_1",
        "org_id": "org_123",
        "created_at": "2025-12-17T15:30:00Z",
        "actor_user_id": "user_123",
        "actor_membership_id": "m_org123_user123",
        "entity_type": "dog",
        "entity_id": "1",
        "event_type": "dog.stage_changed",
        "summary": "Stage changed to In Foster",
        "payload": {"from": "Intake", "to": "In Foster"},
        "related": {"responsible_person": "Maria Garcia"},
    },
    {
        "id": "evt_2",
        "org_id": "org_123",
        "created_at": "2025-12-17T16:10:00Z",
        "actor_user_id": "user_123",
        "actor_membership_id": "m_org123_user123",
        "entity_type": "dog",
        "entity_id": "1",
        "event_type": "dog.note_added",
        "summary": "Added note about diet and medication schedule",
        "payload": {"note": "Twice-daily meds with food."},
        "related": {},
    },
    {
        "id": "evt_3",
        "org_id": "org_123",
        "created_at": "2025-12-17T18:45:00Z",
        "actor_user_id": "user_456",
        "actor_membership_id": "m_org123_user456",
        "entity_type": "dog",
        "entity_id": "2",
        "event_type": "dog.medical_update",
        "summary": "Post-surgery recovery check",
        "payload": {"status": "Stable", "follow_up": "2 days"},
        "related": {},
    },
    {
        "id": "evt_4",
        "org_id": "org_123",
        "created_at": "2025-12-18T08:15:00Z",
        "actor_user_id": "user_123",
        "actor_membership_id": "m_org123_user123",
        "entity_type": "transport",
        "entity_id": "tr_1",
        "event_type": "transport.created",
        "summary": "Transport scheduled for Rocky",
        "payload": {"dog_id": "3", "window_start": "2025-12-18T09:00:00Z"},
        "related": {},
    },
    {
        "id": "evt_5",
        "org_id": "org_123",
        "created_at": "2025-12-18T09:40:00Z",
        "actor_user_id": None,
        "actor_membership_id": None,
        "entity_type": "transport",
        "entity_id": "tr_1",
        "event_type": "transport_status_changed",
        "summary": "Transport status updated",
        "payload": {"changes": {"status": {"from": "Scheduled", "to": "In Progress"}}},
        "related": {"system": True},
    },
    {
        "id": "evt_6",
        "org_id": "org_123",
        "created_at": "2025-12-19T11:05:00Z",
        "actor_user_id": "user_456",
        "actor_membership_id": "m_org123_user456",
        "entity_type": "contact",
        "entity_id": "contact_1",
        "event_type": "contact.updated",
        "summary": "Updated foster contact phone number",
        "payload": {"field": "phone"},
        "related": {},
    },
]


def _at(base: datetime, days: int, hour: int) -> datetime:
    return (base + timedelta(days=days)).replace(hour=hour, minute=0, second=0, microsecond=0)


def build_mock_calendar_events(org_id: str, now: datetime | None = None) -> list[dict[str, Any]]:
    """Medical, transport and quarantine events around `now` for `org_id`."""
    now = (now or datetime.now()).astimezone()
    medical_start = _at(now, 2, 10)
    transport_start = _at(now, 3, 9)
    quarantine_start = _at(now, -1, 8)

    return [
        {
            "event_id": "med_mock_1",
            "org_id": org_id,
            "source_type": "medical",
            "source_id": "medrec_mock_1",
            "title": "Medical: Vaccine booster",
            "start_at": format_iso(medical_start),
            "end_at": format_iso(medical_start + timedelta(hours=1)),
            "location": "Clinic A",
            "status": "scheduled",
            "link_type": "dog",
            "link_id": "dog_med_1",
            "visibility": "org",
            "meta": {"dog_id": "dog_med_1", "record_type": "vaccine"},
            "reminders": [
                {
                    "id": "rem_med_1",
                    "type": "local",
                    "offset_minutes": 60,
                    "scheduled_at": format_iso(medical_start - timedelta(minutes=60)),
                    "deterministic_key": "medical_medrec_mock_1_60",
                    "payload": {"dog_id": "dog_med_1"},
                }
            ],
        },
        {
            "event_id": "trans_mock_1",
            "org_id": org_id,
            "source_type": "transport",
            "source_id": "transport_mock_1",
            "title": "Transport: Shelter -> Foster",
            "start_at": format_iso(transport_start),
            "end_at": format_iso(transport_start + timedelta(minutes=90)),
            "location": "Shelter",
            "status": "Scheduled",
            "link_type": "transport",
            "link_id": "transport_mock_1",
            "visibility": "org",
            "meta": {"dog_id": "dog_trans_1", "from": "Shelter", "to": "Foster"},
            "reminders": [
                {
                    "id": "rem_trans_1",
                    "type": "local",
                    "offset_minutes": 60,
                    "scheduled_at": format_iso(transport_start - timedelta(minutes=60)),
                    "deterministic_key": "transport_transport_mock_1_60",
                    "payload": {"dog_id": "dog_trans_1"},
                }
            ],
        },
        {
            "event_id": "quar_mock_1",
            "org_id": org_id,
            "source_type": "quarantine",
            "source_id": "dog_quarantine_1",
            "title": "Quarantine: Luna",
            "start_at": format_iso(quarantine_start),
            "end_at": format_iso(quarantine_start + timedelta(days=14)),
            "location": "Foster Home",
            "status": "quarantine",
            "link_type": "dog",
            "link_id": "dog_quarantine_1",
            "visibility": "org",
            "meta": {"dog_id": "dog_quarantine_1", "stage": "Medical Hold"},
            "reminders": [
                {
                    "id": "rem_quar_1",
                    "type": "local",
                    "offset_minutes": 0,
                    "scheduled_at": format_iso(quarantine_start),
                    "deterministic_key": "quarantine_dog_quarantine_1_start",
                    "payload": {"dog_id": "dog_quarantine_1"},
                }
            ],
        },
    ]


def get_mock_calendar_events(
    org_id: str,
    start: datetime,
    end: datetime,
    now: datetime | None = None,
    *,
    source_types: tuple[str, ...] | None = None,
    dog_id: str | None = None,
) -> list[dict[str, Any]]:
    """Mock events whose start or end falls inside `[start, end]`, optionally filtered."""
    selected = []
    for event in build_mock_calendar_events(org_id, now):
        if source_types and event["source_type"] not in source_types:
            continue
        if dog_id and event["meta"].get("dog_id") != dog_id:
            continue
        start_at = parse_iso_datetime(event["start_at"])
        end_at = parse_iso_datetime(event["end_at"])
        if start <= start_at <= end or start <= end_at <= end:
            selected.append(event)
    return selected


def get_mock_activity_events(
    org_id: str,
    *,
    entity_type: str | None = None,
    entity_id: str | None = None,
    actor_membership_id: str | None = None,
) -> list[dict[str, Any]]:
    """Mock activity rows for one entity (or one actor), newest first."""
    rows = [
        row
        for row in MOCK_ACTIVITY_EVENTS
        if row["org_id"] == org_id
        and (entity_type is None or row["entity_type"] == entity_type)
        and (entity_id is None or row["entity_id"] == entity_id)
        and (actor_membership_id is None or row["actor_membership_id"] == actor_membership_id)
    ]
    return sorted(rows, key=lambda row: row["created_at"], reverse=True)
