"""Time helpers. Persisted timestamps are naive UTC."""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from jobboard.config import get_settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_zone() -> ZoneInfo:
    return ZoneInfo(get_settings().local_timezone)


def to_local(moment: datetime) -> datetime:
    """Convert a naive UTC timestamp to an aware local one."""
    return moment.replace(tzinfo=timezone.utc).astimezone(local_zone())


def local_day_bounds(day: date) -> tuple[datetime, datetime]:
    """Naive UTC [start, end) covering one local calendar day."""
    zone = local_zone()
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = start + timedelta(days=1)
    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )
