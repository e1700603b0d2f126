"""
Deterministic reminder keys.

A key identifies one (event, reminder) pair across app restarts and devices so
reconciliation can match desired reminders against already-scheduled
notifications without a central allocator.
"""

from datetime import tzinfo

from rescue_timeline.models.domain.calendar_domain import CalendarEvent, CalendarReminder
from rescue_timeline.utils.dates import local_date_key

INVALID_DATE_KEY = "invalid-date"


def build_reminder_deterministic_id(
    event: CalendarEvent, reminder: CalendarReminder, tz: tzinfo | None = None
) -> str:
    """
    Return the idempotency key for a reminder.

    An upstream `deterministic_key` is authoritative. Otherwise the key is
    `<source_type>_<source_id or event_id>_<YYYY-MM-DD>_<offset>`, with the date
    taken from `scheduled_at` (falling back to `start_at`) in `tz`, the local
    zone by default. `source_id` is preferred because it survives changes to
    the synthetic calendar event id format.
    """
    if reminder.deterministic_key:
        return reminder.deterministic_key

    date_source = reminder.scheduled_at or event.start_at
    date_key = local_date_key(date_source, tz) or INVALID_DATE_KEY
    source_id = event.source_id if event.source_id is not None else event.event_id
    offset = reminder.offset_minutes if reminder.offset_minutes is not None else 0
    return f"{event.source_type}_{source_id}_{date_key}_{offset}"
