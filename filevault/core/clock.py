"""Time helpers shared by models and services.

SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
columns, while PostgreSQL returns aware ones. Everything stored is UTC, so
comparisons go through ``as_utc`` to get an aware value either way.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
