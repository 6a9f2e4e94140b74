"""
Email analytics & lifecycle service.

Unlike publications, the email KPIs (stats, emails by state, top
recipients) are global: they ignore the active date filter and always
describe the whole mailbox. Only the list and trend views follow the
filter.
"""

import asyncio
from collections.abc import Sequence
from datetime import datetime, tzinfo

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.analytics import (
    BatchItemFailure,
    BatchResult,
    DateRange,
    EmailStats,
    GroupCount,
    TrendPoint,
)
from app.models.domain.errors import Unauthenticated
from app.models.domain.records import (
    EmailInput,
    EmailMessage,
    EmailPatch,
    RecordDomain,
    ReclassifyPatch,
)
from app.models.domain.views import Mutation, ViewKind
from app.repositories.email_repository import EmailRepository, email_repository
from app.services.analytics import (
    bucket_by_local_day,
    default_trend_window,
    email_stats,
    filter_records,
    store_window,
    top_n,
)

logger = get_logger(__name__)

_ALL_VIEWS = frozenset(ViewKind)
# Fields that feed the global KPIs (stats, by_state, top_recipients)
_KPI_FIELDS = frozenset({"estado", "municipio", "classificado", "destinatario"})


class EmailService:
    DOMAIN = RecordDomain.EMAILS

    def __init__(
        self,
        repository: EmailRepository | None = None,
        trend_days: int | None = None,
        top_states_limit: int | None = None,
        top_recipients_limit: int | None = None,
    ) -> None:
        self.repository = repository or email_repository
        self.trend_days = trend_days or settings.TREND_DEFAULT_DAYS
        self.top_states_limit = top_states_limit or settings.TOP_STATES_LIMIT
        self.top_recipients_limit = top_recipients_limit or settings.TOP_RECIPIENTS_LIMIT

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_filtered(self, date_range: DateRange | None, tz: tzinfo) -> list[EmailMessage]:
        if date_range is None:
            return await self.repository.list()

        window_start, window_end = store_window(date_range, tz)
        emails = await self.repository.list_by_timestamp_range(window_start, window_end)
        return filter_records(emails, date_range, tz)

    async def get_pending(self) -> list[EmailMessage]:
        return await self.repository.list_pending()

    async def get_by_id(self, email_id: str) -> EmailMessage | None:
        return await self.repository.get_by_id(email_id)

    def resolve_trend_range(
        self, date_range: DateRange | None, tz: tzinfo, now: datetime | None = None
    ) -> DateRange:
        return date_range or default_trend_window(tz, self.trend_days, now)

    async def get_trend(
        self, date_range: DateRange | None, tz: tzinfo, now: datetime | None = None
    ) -> tuple[TrendPoint, ...]:
        trend_range = self.resolve_trend_range(date_range, tz, now)
        emails = await self.get_filtered(trend_range, tz)
        return bucket_by_local_day(emails, trend_range, tz)

    async def get_stats(self) -> EmailStats:
        """Global classification totals, independent of any filter."""
        emails = await self.repository.list()
        return email_stats(emails)

    async def get_emails_by_state(self) -> list[GroupCount]:
        emails = await self.repository.list()
        return top_n(emails, lambda email: email.estado, self.top_states_limit)

    async def get_top_recipients(self) -> list[GroupCount]:
        emails = await self.repository.list()
        return top_n(emails, lambda email: email.destinatario, self.top_recipients_limit)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, payload: EmailInput, actor_id: str | None) -> EmailMessage:
        if not actor_id:
            raise Unauthenticated()

        email = await self.repository.insert({**payload.to_row(), "user_id": actor_id})
        logger.info("Email created", email_id=email.id, user_id=actor_id)
        return email

    async def create_many(
        self, payloads: Sequence[EmailInput], actor_id: str | None
    ) -> list[EmailMessage]:
        if not actor_id:
            raise Unauthenticated()

        rows = [{**payload.to_row(), "user_id": actor_id} for payload in payloads]
        emails = await self.repository.insert_many(rows)
        logger.info("Emails created", count=len(emails), user_id=actor_id)
        return emails

    async def update(self, email_id: str, patch: EmailPatch) -> EmailMessage:
        email = await self.repository.update(email_id, patch.to_row())
        logger.info("Email updated", email_id=email_id, fields=sorted(patch.model_fields_set))
        return email

    async def delete(self, email_id: str) -> None:
        await self.repository.delete(email_id)
        logger.info("Email deleted", email_id=email_id)

    async def batch_reclassify(self, patches: Sequence[ReclassifyPatch]) -> BatchResult:
        """
        Apply every {id, estado, municipio} patch concurrently.

        Each patch recomputes `classificado` on its own. A failing patch
        does not stop or roll back the others; it is reported in
        `BatchResult.failures` with its id.
        """
        outcomes = await asyncio.gather(
            *(self.repository.update(patch.id, patch.to_row()) for patch in patches),
            return_exceptions=True,
        )

        result = BatchResult()
        for patch, outcome in zip(patches, outcomes):
            if isinstance(outcome, EmailMessage):
                result.succeeded.append(outcome)
            elif isinstance(outcome, Exception):
                result.failures.append(BatchItemFailure(id=patch.id, error=str(outcome)))
            else:
                # CancelledError and friends are not item failures
                raise outcome

        if result.failures:
            logger.warning(
                "Batch reclassification partially failed",
                succeeded=len(result.succeeded),
                failed_ids=result.failed_ids,
            )
        else:
            logger.info("Batch reclassification applied", count=len(result.succeeded))
        return result

    def affected_views(
        self, mutation: Mutation, patch: EmailPatch | None = None
    ) -> frozenset[ViewKind]:
        """Views whose cached values a mutation can make wrong."""
        if mutation in (Mutation.CREATE, Mutation.CREATE_MANY, Mutation.DELETE):
            return _ALL_VIEWS
        if mutation == Mutation.BATCH_RECLASSIFY:
            return frozenset({ViewKind.LIST, ViewKind.PENDING, ViewKind.STATS, ViewKind.BY_STATE})
        if mutation == Mutation.UPDATE:
            if patch is None or patch.model_fields_set & _KPI_FIELDS:
                return _ALL_VIEWS
            return frozenset({ViewKind.LIST, ViewKind.TREND, ViewKind.PENDING})
        raise ValueError(f"Unsupported email mutation: {mutation}")


email_service = EmailService()
