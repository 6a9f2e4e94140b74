"""Top-N grouping by a projected key."""

from collections import Counter
from collections.abc import Callable, Iterable
from typing import TypeVar

from app.models.domain.analytics import GroupCount

T = TypeVar("T")


def top_n(items: Iterable[T], projection: Callable[[T], str | None], limit: int) -> list[GroupCount]:
    """
    Rank distinct projected values by how often they occur.

    None and blank values are not counted at all. Ties keep the order in
    which the keys were first seen (Counter preserves insertion order and
    sorted() is stable).
    """
    counts: Counter[str] = Counter()
    for item in items:
        key = projection(item)
        if key is None or not key.strip():
            continue
        counts[key] += 1

    ranked = sorted(counts.items(), key=lambda entry: entry[1], reverse=True)
    return [GroupCount(key=key, count=count) for key, count in ranked[:limit]]
