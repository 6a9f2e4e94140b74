"""
Tests for the dashboards: filters, refresh, pagination and the
invalidate-then-refetch cycle around mutations.
"""

import asyncio
from datetime import UTC, date, datetime

import pytest

from app.models.domain.analytics import DateRange
from app.models.domain.errors import StoreUnavailable, Unauthenticated
from app.models.domain.records import EmailPatch, PublicationInput, PublicationPatch, ReclassifyPatch
from app.models.domain.views import ViewKind, ViewState

JUNE_10 = DateRange(start=date(2024, 6, 10), end=date(2024, 6, 10))


def publication_input(published_at: datetime) -> PublicationInput:
    return PublicationInput(
        data_publicacao=published_at,
        link="https://facebook.com/posts/1",
        tema="Infraestrutura",
        texto="Obra da nova ponte concluída",
    )


@pytest.mark.asyncio
async def test_create_then_trend_shows_new_count(publication_dashboard):
    publication_dashboard.apply_filters(JUNE_10)
    before = await publication_dashboard.load(ViewKind.TREND)
    assert [point.count for point in before] == [0]

    await publication_dashboard.create(
        publication_input(datetime(2024, 6, 10, 15, 0, tzinfo=UTC)), "user-1"
    )

    after = await publication_dashboard.load(ViewKind.TREND)
    assert [(point.date, point.count) for point in after] == [(date(2024, 6, 10), 1)]
    assert publication_dashboard.trend_view.state == ViewState.READY
    assert publication_dashboard.trend_view.stale is False


@pytest.mark.asyncio
async def test_mutation_refetches_observed_views(publication_dashboard, publication_repository):
    await publication_dashboard.refresh()
    publication_repository.calls.clear()

    await publication_dashboard.create(
        publication_input(datetime(2024, 6, 9, 15, 0, tzinfo=UTC)), "user-1"
    )

    # insert, then list/trend/stats refetched without any explicit read
    assert publication_repository.calls[0] == "insert"
    assert len(publication_repository.calls) == 4
    assert publication_dashboard.stats_view.value.total == 1
    assert len(publication_dashboard.list_view.value) == 1


@pytest.mark.asyncio
async def test_update_without_date_change_keeps_stats_cached(
    publication_dashboard, publication_repository
):
    created = await publication_dashboard.create(
        publication_input(datetime(2024, 6, 9, 15, 0, tzinfo=UTC)), "user-1"
    )
    await publication_dashboard.refresh()
    publication_repository.calls.clear()

    await publication_dashboard.update(created.id, PublicationPatch(tema="Cultura"))
    await publication_dashboard.load(ViewKind.STATS)

    # update + list and trend refetch; stats came from the cache
    assert publication_repository.calls == ["update", "list", "list_by_timestamp_range"]


@pytest.mark.asyncio
async def test_create_without_actor_touches_nothing(publication_dashboard, publication_repository):
    await publication_dashboard.refresh()
    publication_repository.calls.clear()

    with pytest.raises(Unauthenticated):
        await publication_dashboard.create(
            publication_input(datetime(2024, 6, 9, tzinfo=UTC)), None
        )

    assert publication_repository.calls == []
    assert publication_dashboard.stats_view.stale is False


@pytest.mark.asyncio
async def test_failed_mutation_keeps_cached_views(publication_dashboard, publication_repository):
    await publication_dashboard.refresh()
    publication_repository.unavailable = True

    with pytest.raises(StoreUnavailable):
        await publication_dashboard.delete("pub-404")

    publication_repository.unavailable = False
    publication_repository.calls.clear()
    await publication_dashboard.refresh()

    assert publication_repository.calls == []


@pytest.mark.asyncio
async def test_refresh_records_errors_on_handles(publication_dashboard, publication_repository):
    publication_repository.unavailable = True

    snapshot = await publication_dashboard.refresh()

    assert snapshot.views == {}
    assert publication_dashboard.list_view.state == ViewState.ERROR


@pytest.mark.asyncio
async def test_superseded_refresh_is_discarded(publication_dashboard, publication_repository):
    gate = asyncio.Event()
    original_list = publication_repository.list

    async def slow_list():
        await gate.wait()
        return await original_list()

    publication_repository.list = slow_list
    refresh = asyncio.create_task(publication_dashboard.refresh())
    await asyncio.sleep(0)
    publication_dashboard.apply_filters(JUNE_10)
    gate.set()

    assert await refresh is None


@pytest.mark.asyncio
async def test_pages_hold_ten_records(publication_dashboard):
    await publication_dashboard.create_many(
        [publication_input(datetime(2024, 6, 1, hour, 0, tzinfo=UTC)) for hour in range(23)],
        "user-1",
    )

    assert len(await publication_dashboard.page(1)) == 10
    assert len(await publication_dashboard.page(3)) == 3
    assert await publication_dashboard.page(4) == []
    assert await publication_dashboard.page_count() == 3
    with pytest.raises(ValueError):
        await publication_dashboard.page(0)


@pytest.mark.asyncio
async def test_list_page_totals_come_from_one_store_read(
    publication_dashboard, publication_repository, view_cache
):
    await publication_dashboard.create_many(
        [publication_input(datetime(2024, 6, 1, hour, 0, tzinfo=UTC)) for hour in range(12)],
        "user-1",
    )
    publication_repository.calls.clear()
    # Reads skip the cache while a mutation is in flight
    view_cache.begin_mutation(publication_dashboard.DOMAIN, {ViewKind.STATS})

    listing = await publication_dashboard.list_page(2)

    assert (listing.number, listing.total, listing.total_pages) == (2, 12, 2)
    assert len(listing.items) == 2
    assert publication_repository.calls == ["list"]


@pytest.mark.asyncio
async def test_signature_tracks_filter_and_time_zone(publication_dashboard):
    assert publication_dashboard.signature == "all@America/Sao_Paulo"

    publication_dashboard.apply_filters(JUNE_10)
    assert publication_dashboard.signature == "2024-06-10..2024-06-10@America/Sao_Paulo"

    publication_dashboard.clear_filters()
    assert publication_dashboard.date_range is None


@pytest.mark.asyncio
async def test_email_stats_global_while_publication_stats_filtered(
    publication_dashboard, email_dashboard, email_repository, make_email
):
    await publication_dashboard.create(publication_input(datetime(2024, 6, 10, 15, tzinfo=UTC)), "u")
    await publication_dashboard.create(publication_input(datetime(2024, 5, 2, 15, tzinfo=UTC)), "u")
    email_repository.rows = {
        "e1": make_email("e1", datetime(2024, 6, 10, 15, tzinfo=UTC)),
        "e2": make_email("e2", datetime(2024, 5, 2, 15, tzinfo=UTC)),
    }

    publication_dashboard.apply_filters(JUNE_10)
    email_dashboard.apply_filters(JUNE_10)

    assert (await publication_dashboard.load(ViewKind.STATS)).total == 1
    assert (await email_dashboard.load(ViewKind.STATS)).total == 2
    assert len(await email_dashboard.load(ViewKind.LIST)) == 1


@pytest.mark.asyncio
async def test_batch_reclassify_updates_pending_and_by_state(
    email_dashboard, email_repository, make_email
):
    sent = datetime(2024, 6, 10, 15, tzinfo=UTC)
    email_repository.rows = {email_id: make_email(email_id, sent) for email_id in ("e1", "e2")}
    email_repository.failing_ids = {"e2"}
    await email_dashboard.refresh()
    assert len(email_dashboard.pending_view.value) == 2

    result = await email_dashboard.batch_reclassify(
        [
            ReclassifyPatch(id="e1", estado="SP", municipio="Campinas"),
            ReclassifyPatch(id="e2", estado="RJ", municipio="Rio de Janeiro"),
        ]
    )

    assert result.failed_ids == ["e2"]
    assert [email.id for email in email_dashboard.pending_view.value] == ["e2"]
    assert [group.key for group in email_dashboard.by_state_view.value] == ["SP"]
    assert email_dashboard.stats_view.value.classified == 1


@pytest.mark.asyncio
async def test_email_recipient_update_refreshes_top_recipients(
    email_dashboard, email_repository, make_email
):
    email_repository.rows = {"e1": make_email("e1", datetime(2024, 6, 10, tzinfo=UTC))}
    await email_dashboard.refresh()

    await email_dashboard.update("e1", EmailPatch(destinatario="prefeitura@sp.gov.br"))

    assert [group.key for group in email_dashboard.top_recipients_view.value] == [
        "prefeitura@sp.gov.br"
    ]


@pytest.mark.asyncio
async def test_export_report_returns_pdf(publication_dashboard):
    await publication_dashboard.create(publication_input(datetime(2024, 6, 10, 15, tzinfo=UTC)), "u")

    content = await publication_dashboard.export_report()

    assert content.startswith(b"%PDF")
