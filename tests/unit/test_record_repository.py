"""
Tests for the SQL record repositories with the db helpers mocked out.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock
from uuid import UUID

import pytest

from app.db.helpers import DatabaseError
from app.models.domain.errors import RecordNotFound, StoreUnavailable
from app.repositories import record_repository as module
from app.repositories.email_repository import EmailRepository
from app.repositories.publication_repository import PublicationRepository

ROW = {
    "id": UUID("8a1c2f3e-0000-4000-8000-000000000001"),
    "user_id": UUID("8a1c2f3e-0000-4000-8000-0000000000aa"),
    "data_publicacao": datetime(2024, 6, 10, 15, 0, tzinfo=UTC),
    "link": "https://instagram.com/p/1",
    "tema": "Saúde",
    "texto": "Vacinação",
    "created_at": datetime(2024, 6, 10, 15, 0, tzinfo=UTC),
    "updated_at": datetime(2024, 6, 10, 15, 0, tzinfo=UTC),
}


@pytest.mark.asyncio
async def test_list_converts_rows_to_records(monkeypatch):
    fetch_all = AsyncMock(return_value=[ROW])
    monkeypatch.setattr(module, "fetch_all", fetch_all)

    publications = await PublicationRepository().list()

    assert publications[0].id == "8a1c2f3e-0000-4000-8000-000000000001"
    assert publications[0].domain == "publications"
    query = fetch_all.await_args.args[0]
    assert "FROM social_posts" in query
    assert "ORDER BY data_publicacao DESC" in query


@pytest.mark.asyncio
async def test_range_query_is_half_open(monkeypatch):
    fetch_all = AsyncMock(return_value=[])
    monkeypatch.setattr(module, "fetch_all", fetch_all)
    start = datetime(2024, 6, 1, 3, tzinfo=UTC)
    end = datetime(2024, 6, 2, 3, tzinfo=UTC)

    await PublicationRepository().list_by_timestamp_range(start, end)

    query, params = fetch_all.await_args.args
    assert "data_publicacao >= %s" in query
    assert "data_publicacao < %s" in query
    assert params == (start, end)


@pytest.mark.asyncio
async def test_store_errors_become_store_unavailable(monkeypatch):
    monkeypatch.setattr(
        module, "fetch_all", AsyncMock(side_effect=DatabaseError("boom", operation="fetch_all"))
    )

    with pytest.raises(StoreUnavailable) as excinfo:
        await PublicationRepository().list()

    assert excinfo.value.operation == "social_posts.list"


@pytest.mark.asyncio
async def test_insert_rejects_unknown_columns(monkeypatch):
    fetch_one = AsyncMock()
    monkeypatch.setattr(module, "fetch_one", fetch_one)

    with pytest.raises(ValueError):
        await PublicationRepository().insert({"tema": "x", "admin": True})

    fetch_one.assert_not_awaited()


@pytest.mark.asyncio
async def test_insert_many_runs_in_one_transaction(monkeypatch):
    fetch_many = AsyncMock(return_value=[ROW, {**ROW, "id": "second"}])
    monkeypatch.setattr(module, "fetch_many_in_transaction", fetch_many)
    rows = [
        {"tema": "a", "texto": "t", "link": "l", "data_publicacao": ROW["data_publicacao"], "user_id": "u"},
        {"tema": "b", "texto": "t", "link": "l", "data_publicacao": ROW["data_publicacao"], "user_id": "u"},
    ]

    created = await PublicationRepository().insert_many(rows)

    assert [publication.id for publication in created][1] == "second"
    fetch_many.assert_awaited_once()
    assert len(fetch_many.await_args.args[1]) == 2


@pytest.mark.asyncio
async def test_update_missing_row_is_not_found(monkeypatch):
    monkeypatch.setattr(module, "fetch_one", AsyncMock(return_value=None))

    with pytest.raises(RecordNotFound):
        await PublicationRepository().update("missing", {"tema": "novo"})


@pytest.mark.asyncio
async def test_update_sets_updated_at(monkeypatch):
    fetch_one = AsyncMock(return_value=ROW)
    monkeypatch.setattr(module, "fetch_one", fetch_one)

    await PublicationRepository().update("id-1", {"tema": "novo"})

    query, params = fetch_one.await_args.args
    assert "tema = %s, updated_at = NOW()" in query
    assert params == ("novo", "id-1")


@pytest.mark.asyncio
async def test_delete_missing_row_is_not_found(monkeypatch):
    monkeypatch.setattr(module, "execute_query", AsyncMock(return_value=0))

    with pytest.raises(RecordNotFound):
        await PublicationRepository().delete("missing")


@pytest.mark.asyncio
async def test_email_pending_filters_unclassified(monkeypatch):
    from app.repositories import email_repository as email_module

    fetch_all = AsyncMock(return_value=[])
    monkeypatch.setattr(email_module, "fetch_all", fetch_all)

    await EmailRepository().list_pending()

    assert "classificado = false" in fetch_all.await_args.args[0]
