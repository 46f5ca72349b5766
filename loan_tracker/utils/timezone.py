from datetime import datetime
from typing import Optional
import pytz

UTC = pytz.utc

def now_utc() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(UTC)

def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise a datetime to aware UTC.

    Naive values are taken as UTC; some stores (SQLite) drop the offset
    on the way back.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return UTC.localize(value)
    return value.astimezone(UTC)
