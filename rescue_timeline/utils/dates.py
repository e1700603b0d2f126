"""
Date helpers shared by normalizers, data sources and the reminder key builder.

All timeline sort keys go through `to_iso`, which renders UTC with millisecond
precision and a trailing `Z` so plain string comparison orders them correctly.
"""

from datetime import UTC, date, datetime, time, timedelta, tzinfo

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def parse_iso_datetime(value: str | None) -> datetime | None:
    """
    Parse an ISO-8601 string into an aware datetime.

    Naive values are interpreted in local time; date-only values as UTC midnight.
    Returns None for empty or unparsable input.
    """
    if not value or not isinstance(value, str):
        return None

    raw = value.strip()
    try:
        if len(raw) == 10:
            return datetime.combine(date.fromisoformat(raw), time(0), tzinfo=UTC)
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None

    if parsed.tzinfo is None:
        return parsed.astimezone()
    return parsed


def format_iso(value: datetime) -> str:
    """Render an aware datetime as `YYYY-MM-DDTHH:MM:SS.mmmZ`."""
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_iso(value: str) -> str:
    """Normalize a timestamp string; unparsable input is returned unchanged."""
    parsed = parse_iso_datetime(value)
    if parsed is None:
        return value
    return format_iso(parsed)


def format_timestamp_short(value: str | None) -> str:
    """Short local-time label such as `Dec 20, 10:00`; raw input when unparsable."""
    if not value:
        return ""
    parsed = parse_iso_datetime(value)
    if parsed is None:
        return value
    local = parsed.astimezone()
    return f"{_MONTHS[local.month - 1]} {local.day}, {local:%H:%M}"


def local_date_key(value: str | None, tz: tzinfo | None = None) -> str | None:
    """`YYYY-MM-DD` of the timestamp in `tz` (local zone when None)."""
    parsed = parse_iso_datetime(value)
    if parsed is None:
        return None
    return parsed.astimezone(tz).strftime("%Y-%m-%d")


def start_of_day(value: datetime) -> datetime:
    local = value.astimezone()
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(value: datetime) -> datetime:
    return start_of_day(value) + timedelta(days=1) - timedelta(milliseconds=1)
