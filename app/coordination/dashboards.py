"""
Dashboards: the observer-facing side of the publications and emails views.

A dashboard holds the active filter (date range + time zone), reads each
derived view through the shared ViewCache, and runs mutations inside a
cache mutation scope so the affected views are invalidated and the ones
it is observing are refetched. Nothing here patches a cached value in
place.
"""

import asyncio
import math
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo
from typing import Any, ClassVar

from pydantic import TypeAdapter

from app.config import settings
from app.infrastructure.observability.logging import get_logger, log_mutation
from app.models.domain.analytics import (
    BatchResult,
    DateRange,
    EmailStats,
    GroupCount,
    PublicationStats,
    TrendPoint,
)
from app.models.domain.errors import RecordNotFound, Unauthenticated
from app.models.domain.records import (
    EmailInput,
    EmailMessage,
    EmailPatch,
    Publication,
    PublicationInput,
    PublicationPatch,
    ReclassifyPatch,
    RecordDomain,
)
from app.models.domain.views import Mutation, ViewKey, ViewKind
from app.services.analytics import resolve_timezone
from app.services.email_service import EmailService, email_service
from app.services.publication_service import PublicationService, publication_service
from app.services.report_service import build_publication_report, render

from .view_cache import ViewCache, ViewHandle, view_cache

logger = get_logger(__name__)

Clock = Callable[[], datetime]

_PUBLICATIONS = TypeAdapter(list[Publication])
_EMAILS = TypeAdapter(list[EmailMessage])
_TREND = TypeAdapter(tuple[TrendPoint, ...])
_PUBLICATION_STATS = TypeAdapter(PublicationStats)
_EMAIL_STATS = TypeAdapter(EmailStats)
_GROUPS = TypeAdapter(list[GroupCount])

# Signature of views that ignore the active filter
GLOBAL_SIGNATURE = "global"


def _tz_name(tz: tzinfo) -> str:
    return getattr(tz, "key", None) or str(tz)


@dataclass
class DashboardSnapshot:
    """Values of one refresh, all computed for the same filter."""

    signature: str
    date_range: DateRange | None
    timezone: str
    views: dict[ViewKind, Any] = field(default_factory=dict)


@dataclass
class ListPage:
    """One page of the list view plus the totals of the same read."""

    items: list[Any]
    number: int
    total: int
    total_pages: int


class RecordDashboard:
    DOMAIN: ClassVar[RecordDomain]
    REFRESH_KINDS: ClassVar[tuple[ViewKind, ...]]

    def __init__(
        self,
        cache: ViewCache | None = None,
        tz: tzinfo | None = None,
        page_size: int | None = None,
        clock: Clock | None = None,
    ):
        self.cache = cache or view_cache
        self.tz = tz or resolve_timezone(settings.DEFAULT_TIMEZONE)
        self.page_size = page_size or settings.LIST_PAGE_SIZE
        self.date_range: DateRange | None = None
        self._clock = clock or (lambda: datetime.now(UTC))
        self._filter_generation = 0
        self._observed: set[ViewKind] = set()

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    @property
    def signature(self) -> str:
        range_part = self.date_range.signature() if self.date_range else "all"
        return f"{range_part}@{_tz_name(self.tz)}"

    def apply_filters(self, date_range: DateRange | None, tz: tzinfo | None = None) -> None:
        self.date_range = date_range
        if tz is not None:
            self.tz = tz
        self._filter_generation += 1

    def clear_filters(self) -> None:
        self.apply_filters(None)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def _loader(self, kind: ViewKind) -> tuple[Callable[[], Awaitable[Any]], TypeAdapter]:
        raise NotImplementedError

    def _view_signature(self, kind: ViewKind) -> str:
        if kind == ViewKind.TREND:
            # The default trend window moves with the clock
            return f"{self.trend_range().signature()}@{_tz_name(self.tz)}"
        return self.signature

    def trend_range(self) -> DateRange:
        """Range the trend view covers: the filter, or the last N local days."""
        return self.service.resolve_trend_range(self.date_range, self.tz, self._clock())

    def view_key(self, kind: ViewKind) -> ViewKey:
        return ViewKey(self.DOMAIN, kind, self._view_signature(kind))

    def view(self, kind: ViewKind) -> ViewHandle:
        return self.cache.handle(self.view_key(kind))

    @property
    def list_view(self) -> ViewHandle:
        return self.view(ViewKind.LIST)

    @property
    def trend_view(self) -> ViewHandle:
        return self.view(ViewKind.TREND)

    @property
    def stats_view(self) -> ViewHandle:
        return self.view(ViewKind.STATS)

    async def load(self, kind: ViewKind) -> Any:
        """Current value of one view; the view is observed from then on."""
        self._observed.add(kind)
        loader, adapter = self._loader(kind)
        return await self.cache.read(self.view_key(kind), loader, adapter)

    async def refresh(self) -> DashboardSnapshot | None:
        """
        Load every dashboard view concurrently.

        Returns None when the filter changed while the reads were in flight;
        those results belong to a filter nobody is looking at any more.
        Per-view failures are left on the view handles.
        """
        generation = self._filter_generation
        signature = self.signature
        kinds = self.REFRESH_KINDS

        results = await asyncio.gather(*(self.load(kind) for kind in kinds), return_exceptions=True)

        if generation != self._filter_generation:
            logger.debug("Discarding superseded refresh", domain=str(self.DOMAIN), signature=signature)
            return None

        snapshot = DashboardSnapshot(
            signature=signature, date_range=self.date_range, timezone=_tz_name(self.tz)
        )
        for kind, result in zip(kinds, results):
            if isinstance(result, Exception):
                logger.warning(
                    "View failed to load", domain=str(self.DOMAIN), kind=str(kind), error=str(result)
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                snapshot.views[kind] = result
        return snapshot

    async def list_page(self, number: int) -> ListPage:
        """One page of the filtered list, 1-based, from a single list read."""
        if number < 1:
            raise ValueError("page number must be at least 1")
        records = await self.load(ViewKind.LIST)
        offset = (number - 1) * self.page_size
        return ListPage(
            items=records[offset : offset + self.page_size],
            number=number,
            total=len(records),
            total_pages=max(1, math.ceil(len(records) / self.page_size)),
        )

    async def page(self, number: int) -> list[Any]:
        """Past the end is an empty page."""
        return (await self.list_page(number)).items

    async def get(self, record_id: str) -> Any:
        record = await self.service.get_by_id(record_id)
        if record is None:
            raise RecordNotFound(str(self.DOMAIN), record_id)
        return record

    async def page_count(self) -> int:
        return (await self.list_page(1)).total_pages

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def _mutate(
        self,
        mutation: Mutation,
        action: Callable[[], Awaitable[Any]],
        patch: Any = None,
        committed: Callable[[Any], bool] = lambda _: True,
    ) -> Any:
        kinds = self.service.affected_views(mutation, patch)
        started = time.perf_counter()
        try:
            async with self.cache.mutation(self.DOMAIN, kinds) as scope:
                result = await action()
                scope.committed = committed(result)
        except Exception as e:
            log_mutation(
                str(self.DOMAIN),
                str(mutation),
                ok=False,
                duration_ms=(time.perf_counter() - started) * 1000,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        log_mutation(
            str(self.DOMAIN),
            str(mutation),
            ok=True,
            duration_ms=(time.perf_counter() - started) * 1000,
            invalidated=sorted(str(kind) for kind in kinds),
        )
        await self._refetch(kinds)
        return result

    async def _refetch(self, kinds: frozenset[ViewKind]) -> None:
        targets = [kind for kind in self.REFRESH_KINDS if kind in kinds and kind in self._observed]
        if not targets:
            return

        results = await asyncio.gather(*(self.load(kind) for kind in targets), return_exceptions=True)
        for kind, result in zip(targets, results):
            if isinstance(result, Exception):
                # The mutation itself succeeded; the handle carries the read error
                logger.warning(
                    "Refetch after mutation failed",
                    domain=str(self.DOMAIN),
                    kind=str(kind),
                    error=str(result),
                )
            elif isinstance(result, BaseException):
                raise result

    @staticmethod
    def _require_actor(actor_id: str | None) -> str:
        if not actor_id:
            raise Unauthenticated()
        return actor_id


class PublicationDashboard(RecordDashboard):
    DOMAIN = RecordDomain.PUBLICATIONS
    REFRESH_KINDS = (ViewKind.LIST, ViewKind.TREND, ViewKind.STATS)

    def __init__(self, service: PublicationService | None = None, **kwargs):
        super().__init__(**kwargs)
        self.service = service or publication_service

    def _loader(self, kind: ViewKind):
        date_range, tz = self.date_range, self.tz
        if kind == ViewKind.LIST:
            return (lambda: self.service.get_filtered(date_range, tz)), _PUBLICATIONS
        if kind == ViewKind.TREND:
            now = self._clock()
            return (lambda: self.service.get_trend(date_range, tz, now)), _TREND
        if kind == ViewKind.STATS:
            return (lambda: self.service.get_stats(date_range, tz)), _PUBLICATION_STATS
        raise ValueError(f"Publications have no {kind} view")

    async def create(self, payload: PublicationInput, actor_id: str | None) -> Publication:
        actor = self._require_actor(actor_id)
        return await self._mutate(Mutation.CREATE, lambda: self.service.create(payload, actor))

    async def create_many(
        self, payloads: Sequence[PublicationInput], actor_id: str | None
    ) -> list[Publication]:
        actor = self._require_actor(actor_id)
        return await self._mutate(
            Mutation.CREATE_MANY,
            lambda: self.service.create_many(payloads, actor),
            committed=bool,
        )

    async def update(self, publication_id: str, patch: PublicationPatch) -> Publication:
        return await self._mutate(
            Mutation.UPDATE, lambda: self.service.update(publication_id, patch), patch=patch
        )

    async def delete(self, publication_id: str) -> None:
        await self._mutate(Mutation.DELETE, lambda: self.service.delete(publication_id))

    async def export_report(self, now: datetime | None = None) -> bytes:
        """PDF of every publication in the active filter (not just the current page)."""
        publications = await self.load(ViewKind.LIST)
        document = build_publication_report(
            publications, self.date_range, self.tz, now or self._clock()
        )
        return await asyncio.to_thread(render, document)


class EmailDashboard(RecordDashboard):
    DOMAIN = RecordDomain.EMAILS
    REFRESH_KINDS = (
        ViewKind.LIST,
        ViewKind.TREND,
        ViewKind.STATS,
        ViewKind.BY_STATE,
        ViewKind.TOP_RECIPIENTS,
        ViewKind.PENDING,
    )
    _GLOBAL_KINDS = frozenset(
        {ViewKind.STATS, ViewKind.BY_STATE, ViewKind.TOP_RECIPIENTS, ViewKind.PENDING}
    )

    def __init__(self, service: EmailService | None = None, **kwargs):
        super().__init__(**kwargs)
        self.service = service or email_service

    @property
    def by_state_view(self) -> ViewHandle:
        return self.view(ViewKind.BY_STATE)

    @property
    def top_recipients_view(self) -> ViewHandle:
        return self.view(ViewKind.TOP_RECIPIENTS)

    @property
    def pending_view(self) -> ViewHandle:
        return self.view(ViewKind.PENDING)

    def _view_signature(self, kind: ViewKind) -> str:
        if kind in self._GLOBAL_KINDS:
            return GLOBAL_SIGNATURE
        return super()._view_signature(kind)

    def _loader(self, kind: ViewKind):
        date_range, tz = self.date_range, self.tz
        if kind == ViewKind.LIST:
            return (lambda: self.service.get_filtered(date_range, tz)), _EMAILS
        if kind == ViewKind.TREND:
            now = self._clock()
            return (lambda: self.service.get_trend(date_range, tz, now)), _TREND
        if kind == ViewKind.STATS:
            return self.service.get_stats, _EMAIL_STATS
        if kind == ViewKind.BY_STATE:
            return self.service.get_emails_by_state, _GROUPS
        if kind == ViewKind.TOP_RECIPIENTS:
            return self.service.get_top_recipients, _GROUPS
        if kind == ViewKind.PENDING:
            return self.service.get_pending, _EMAILS
        raise ValueError(f"Emails have no {kind} view")

    async def create(self, payload: EmailInput, actor_id: str | None) -> EmailMessage:
        actor = self._require_actor(actor_id)
        return await self._mutate(Mutation.CREATE, lambda: self.service.create(payload, actor))

    async def create_many(
        self, payloads: Sequence[EmailInput], actor_id: str | None
    ) -> list[EmailMessage]:
        actor = self._require_actor(actor_id)
        return await self._mutate(
            Mutation.CREATE_MANY,
            lambda: self.service.create_many(payloads, actor),
            committed=bool,
        )

    async def update(self, email_id: str, patch: EmailPatch) -> EmailMessage:
        return await self._mutate(
            Mutation.UPDATE, lambda: self.service.update(email_id, patch), patch=patch
        )

    async def delete(self, email_id: str) -> None:
        await self._mutate(Mutation.DELETE, lambda: self.service.delete(email_id))

    async def batch_reclassify(self, patches: Sequence[ReclassifyPatch]) -> BatchResult:
        """
        Reclassify concurrently. Returns the per-item result; call
        `raise_for_failures()` on it to turn failures into PartialBatchFailure.
        """
        return await self._mutate(
            Mutation.BATCH_RECLASSIFY,
            lambda: self.service.batch_reclassify(patches),
            committed=lambda result: result.committed,
        )
