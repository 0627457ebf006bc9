"""
Timezone-aware datetime helpers.
- Store and compute in UTC.
- SQLite hands DateTime(timezone=True) columns back naive; treat those as UTC.
"""
from datetime import datetime, timezone
from typing import Optional

UTC = timezone.utc


def now_utc() -> datetime:
    """Current time in UTC (timezone-aware). Use for created_at, expires_at, etc."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """If dt is naive, treat as UTC and return timezone-aware UTC. If already aware, convert to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def is_past(dt: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when dt is at or before now. A missing timestamp counts as past."""
    if dt is None:
        return True
    return ensure_utc(dt) <= (now or now_utc())


def iso_8601_utc(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with Z for UTC. Used for all API response datetime fields."""
    if dt is None:
        return None
    s = ensure_utc(dt).isoformat()
    if s.endswith("+00:00"):
        s = s[:-6] + "Z"
    return s
