"""
Timezone helpers shared by services and jobs.
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise a stored timestamp to aware UTC.

    SQLite returns naive datetimes for timezone-aware columns; those are
    assumed to already be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def from_unix(seconds: int) -> datetime:
    """Convert a processor epoch timestamp to aware UTC."""
    return datetime.fromtimestamp(int(seconds), tz=timezone.utc)
