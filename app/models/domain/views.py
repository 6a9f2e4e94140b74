"""
Names for the cached dashboard views and the mutations that invalidate them.
"""

from dataclasses import dataclass
from enum import StrEnum

from app.models.domain.records import RecordDomain


class ViewKind(StrEnum):
    LIST = "list"
    TREND = "trend"
    STATS = "stats"
    BY_STATE = "by_state"
    TOP_RECIPIENTS = "top_recipients"
    PENDING = "pending"


class ViewState(StrEnum):
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class Mutation(StrEnum):
    CREATE = "create"
    CREATE_MANY = "create_many"
    UPDATE = "update"
    DELETE = "delete"
    BATCH_RECLASSIFY = "batch_reclassify"


@dataclass(frozen=True, slots=True)
class ViewKey:
    """Cache identity of one derived view: (domain, kind, filter signature)."""

    domain: RecordDomain
    kind: ViewKind
    signature: str

    def cache_key(self) -> str:
        return f"views:{self.domain}:{self.kind}:{self.signature}"

    @staticmethod
    def kind_prefix(domain: RecordDomain, kind: ViewKind) -> str:
        return f"views:{domain}:{kind}:"
