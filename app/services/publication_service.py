"""
Publication analytics & lifecycle service.

Resolves the store query for a filter, derives trend and stats from the
returned snapshot, and declares which dashboard views each mutation
invalidates. It never touches the cache itself; the dashboard does that.
"""

from collections.abc import Sequence
from datetime import datetime, tzinfo

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.analytics import DateRange, PublicationStats, TrendPoint
from app.models.domain.errors import Unauthenticated
from app.models.domain.records import (
    Publication,
    PublicationInput,
    PublicationPatch,
    RecordDomain,
)
from app.models.domain.views import Mutation, ViewKind
from app.repositories.publication_repository import (
    PublicationRepository,
    publication_repository,
)
from app.services.analytics import (
    bucket_by_local_day,
    default_trend_window,
    filter_records,
    publication_stats,
    store_window,
)

logger = get_logger(__name__)

_ALL_VIEWS = frozenset({ViewKind.LIST, ViewKind.TREND, ViewKind.STATS})


class PublicationService:
    DOMAIN = RecordDomain.PUBLICATIONS

    def __init__(
        self,
        repository: PublicationRepository | None = None,
        trend_days: int | None = None,
    ) -> None:
        self.repository = repository or publication_repository
        self.trend_days = trend_days or settings.TREND_DEFAULT_DAYS

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_filtered(self, date_range: DateRange | None, tz: tzinfo) -> list[Publication]:
        """Publications in the range (all when None), newest first."""
        if date_range is None:
            return await self.repository.list()

        window_start, window_end = store_window(date_range, tz)
        publications = await self.repository.list_by_timestamp_range(window_start, window_end)
        return filter_records(publications, date_range, tz)

    async def get_by_id(self, publication_id: str) -> Publication | None:
        return await self.repository.get_by_id(publication_id)

    def resolve_trend_range(
        self, date_range: DateRange | None, tz: tzinfo, now: datetime | None = None
    ) -> DateRange:
        return date_range or default_trend_window(tz, self.trend_days, now)

    async def get_trend(
        self, date_range: DateRange | None, tz: tzinfo, now: datetime | None = None
    ) -> tuple[TrendPoint, ...]:
        trend_range = self.resolve_trend_range(date_range, tz, now)
        publications = await self.get_filtered(trend_range, tz)
        return bucket_by_local_day(publications, trend_range, tz)

    async def get_stats(self, date_range: DateRange | None, tz: tzinfo) -> PublicationStats:
        """Totals over the currently filtered set."""
        return publication_stats(await self.get_filtered(date_range, tz))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, payload: PublicationInput, actor_id: str | None) -> Publication:
        if not actor_id:
            raise Unauthenticated()

        publication = await self.repository.insert({**payload.to_row(), "user_id": actor_id})
        logger.info("Publication created", publication_id=publication.id, user_id=actor_id)
        return publication

    async def create_many(
        self, payloads: Sequence[PublicationInput], actor_id: str | None
    ) -> list[Publication]:
        """Insert all publications atomically, stamped with the same owner."""
        if not actor_id:
            raise Unauthenticated()

        rows = [{**payload.to_row(), "user_id": actor_id} for payload in payloads]
        publications = await self.repository.insert_many(rows)
        logger.info("Publications created", count=len(publications), user_id=actor_id)
        return publications

    async def update(self, publication_id: str, patch: PublicationPatch) -> Publication:
        publication = await self.repository.update(publication_id, patch.to_row())
        logger.info(
            "Publication updated",
            publication_id=publication_id,
            fields=sorted(patch.model_fields_set),
        )
        return publication

    async def delete(self, publication_id: str) -> None:
        await self.repository.delete(publication_id)
        logger.info("Publication deleted", publication_id=publication_id)

    def affected_views(
        self, mutation: Mutation, patch: PublicationPatch | None = None
    ) -> frozenset[ViewKind]:
        """Views whose cached values a mutation can make wrong."""
        if mutation in (Mutation.CREATE, Mutation.CREATE_MANY, Mutation.DELETE):
            return _ALL_VIEWS
        if mutation == Mutation.UPDATE:
            # Moving data_publicacao can move the record in or out of the filtered total
            if patch is None or "data_publicacao" in patch.model_fields_set:
                return _ALL_VIEWS
            return frozenset({ViewKind.LIST, ViewKind.TREND})
        raise ValueError(f"Unsupported publication mutation: {mutation}")


publication_service = PublicationService()
