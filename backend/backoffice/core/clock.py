"""
Time helpers: timezone-aware UTC for storage, the store's zone for business periods.

Every value written to a datetime column carries tzinfo=UTC. Values read
back may come without tzinfo on backends that drop it (SQLite); ``as_utc``
treats those as UTC.
"""
from datetime import datetime, timezone
from typing import Optional

from dateutil import tz

from backoffice.core.config import settings


def utc_now() -> datetime:
    """Aware UTC timestamp, the format every created_at column stores."""
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Stored or caller-supplied timestamp as aware UTC (naive means UTC)."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def store_tz():
    zone = tz.gettz(settings.TIMEZONE)
    if zone is None:
        raise ValueError(f"Unknown TIMEZONE {settings.TIMEZONE!r}")
    return zone


def to_local(moment: datetime) -> datetime:
    """Convert a stored (UTC) timestamp to the store's zone."""
    return as_utc(moment).astimezone(store_tz())


def to_utc(moment: datetime) -> datetime:
    """Inverse of ``to_local``: local wall time (naive means local) to aware UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=store_tz())
    return moment.astimezone(timezone.utc)


def local_now(now: Optional[datetime] = None) -> datetime:
    return to_local(now or utc_now())
