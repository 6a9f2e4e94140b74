"""
Pure analytics over record snapshots.

Nothing in this package talks to the store or the cache: every function
takes records already in hand and returns a fresh value, so the services
and dashboards can call them freely and tests need no fixtures.
"""

from .date_ranges import (
    default_trend_window,
    filter_records,
    local_date,
    resolve_timezone,
    store_window,
)
from .grouping import top_n
from .stats import email_stats, publication_stats
from .trend import bucket_by_local_day

__all__ = [
    "bucket_by_local_day",
    "default_trend_window",
    "email_stats",
    "filter_records",
    "local_date",
    "publication_stats",
    "resolve_timezone",
    "store_window",
    "top_n",
]
