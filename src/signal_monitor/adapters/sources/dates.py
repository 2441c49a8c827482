"""Timestamp parsing shared by the sources."""

from datetime import date, datetime, timezone
from typing import Optional, Union


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as returned by the APIs (with trailing Z)."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return date.fromisoformat(value[:10])


def parse_unix_timestamp(value: str) -> datetime:
    """Slack `ts` and WhatsApp `timestamp` values are seconds since the epoch."""
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def parse_unix_millis(value: Optional[Union[str, int]]) -> Optional[datetime]:
    """ClickUp sends dates as millisecond epoch strings."""
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
