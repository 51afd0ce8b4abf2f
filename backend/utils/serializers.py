"""
Datetime helpers shared by snapshots, messages and the session table.

SQLite drops tzinfo on the way back, so every datetime that leaves the
database or a snapshot is normalized to aware UTC here.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def serialize_utc_datetime(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Treat naive datetimes as UTC and convert aware ones to UTC.

    Args:
        dt: Datetime object (naive or timezone-aware), or None

    Returns:
        Timezone-aware UTC datetime, or None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
