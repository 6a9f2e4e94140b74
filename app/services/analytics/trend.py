"""Daily trend bucketing."""

from collections.abc import Callable, Iterable
from datetime import datetime, tzinfo

from app.models.domain.analytics import DateRange, TrendPoint
from app.models.domain.records import Record, record_timestamp

from .date_ranges import local_date


def bucket_by_local_day(
    records: Iterable[Record],
    date_range: DateRange,
    tz: tzinfo,
    timestamp: Callable[[Record], datetime] = record_timestamp,
) -> tuple[TrendPoint, ...]:
    """
    Count records per local calendar day over the whole range.

    Every day of the range gets a point, zero-count days included, in
    ascending order. Records whose local day falls outside the range are
    ignored.
    """
    counts = dict.fromkeys(date_range.dates(), 0)
    for record in records:
        day = local_date(timestamp(record), tz)
        if day in counts:
            counts[day] += 1
    return tuple(TrendPoint(date=day, count=count) for day, count in counts.items())
