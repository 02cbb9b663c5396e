"""Timezone-aware datetime helpers.

Every timestamp the tracker stores is aware and in UTC. Creation, parsing
and ISO-week bucketing live here so the store and the analytics engine
agree on one calendar.
"""

from datetime import datetime, timezone
from typing import Optional, Union


def now_utc() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a naive datetime; aware values and None pass through."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_iso_string(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 text with offset, or None."""
    return None if dt is None else ensure_aware(dt).isoformat()


def parse_iso(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware datetime.

    Accepts the ``Z`` suffix that browser-produced timestamps carry.

    Raises:
        TypeError: If the value is neither a string nor a datetime
        ValueError: If the string is not a valid ISO-8601 timestamp
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)

    if not isinstance(value, str):
        raise TypeError(f"Expected an ISO-8601 string, got {type(value).__name__}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return ensure_aware(datetime.fromisoformat(text))


def iso_week_key(dt: datetime) -> str:
    """Return the ISO-8601 week key of ``dt`` as ``YYYY-Www``.

    The year is the ISO year (which differs from the calendar year around
    New Year) and the week number is zero-padded, so keys sort lexically in
    chronological order.
    """
    aware = ensure_aware(dt).astimezone(timezone.utc)
    iso_year, iso_week, _ = aware.isocalendar()
    return f"{iso_year:04d}-W{iso_week:02d}"
