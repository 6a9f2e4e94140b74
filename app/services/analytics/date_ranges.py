"""
Calendar-day helpers in the viewer's time zone.

A DateRange names local calendar days. The store only understands
instants, so a range becomes the half-open window
[local midnight of start, local midnight of end + 1 day).
"""

from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.models.domain.analytics import DateRange
from app.models.domain.records import Record, record_timestamp


def resolve_timezone(name: str) -> ZoneInfo:
    """ZoneInfo for an IANA name; ValueError for names the tz database does not know."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown time zone: {name}") from e


def local_day_start(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def local_date(instant: datetime, tz: tzinfo) -> date:
    """Calendar day a viewer in `tz` sees for `instant`. Naive instants are UTC."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(tz).date()


def store_window(date_range: DateRange, tz: tzinfo) -> tuple[datetime, datetime]:
    """(inclusive start, exclusive end) instants covering every day of the range."""
    return (
        local_day_start(date_range.start, tz),
        local_day_start(date_range.end + timedelta(days=1), tz),
    )


def default_trend_window(tz: tzinfo, days: int = 7, now: datetime | None = None) -> DateRange:
    """The last `days` local calendar days, today included. Recomputed on every call."""
    if days < 1:
        raise ValueError("days must be at least 1")
    today = local_date(now or datetime.now(UTC), tz)
    return DateRange(start=today - timedelta(days=days - 1), end=today)


def filter_records(
    records: Iterable[Record],
    date_range: DateRange | None,
    tz: tzinfo,
    timestamp: Callable[[Record], datetime] = record_timestamp,
) -> list[Record]:
    """Records inside the range (all of them when no range), newest first."""
    if date_range is None:
        selected = list(records)
    else:
        window_start, window_end = store_window(date_range, tz)
        selected = [record for record in records if window_start <= timestamp(record) < window_end]
    return sorted(selected, key=timestamp, reverse=True)
