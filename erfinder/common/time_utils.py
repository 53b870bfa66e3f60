"""UTC-focused time helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

FEED_TIMESTAMP_FORMATS = ("%Y%m%d%H%M%S", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S")


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_timestamp_iso() -> str:
    return utc_now().isoformat(timespec="milliseconds")


def parse_feed_timestamp(value: object, *, utc_offset_hours: float = 9) -> datetime | None:
    """Parse a feed timestamp given in the provider's local time."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    tz = timezone(timedelta(hours=utc_offset_hours))
    for fmt in FEED_TIMESTAMP_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=tz).astimezone(timezone.utc)
    return None


def parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def age_minutes(then: datetime, now: datetime) -> float:
    return (now - then).total_seconds() / 60.0
