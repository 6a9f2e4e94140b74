from datetime import UTC, datetime
from itertools import count
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from app.auth.verify import optional_auth_dependency
from app.coordination import EmailDashboard, PublicationDashboard, ViewCache
from app.models.domain.errors import RecordNotFound, StoreUnavailable
from app.models.domain.records import EmailMessage, Publication, record_timestamp
from app.services.email_service import EmailService
from app.services.publication_service import PublicationService

SAO_PAULO = ZoneInfo("America/Sao_Paulo")
# 2024-06-10 09:00 in São Paulo
NOW = datetime(2024, 6, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
def auth_override():
    def _override():
        return {"sub": "user-123"}

    return _override


class FakeRedis:
    def __init__(self):
        self.store: dict[str, str] = {}
        self.fail_incr = False

    async def set_with_ttl(self, key: str, value: str, ttl_s: int | None = None) -> bool:
        self.store[key] = value
        return True

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def incr_with_ttl(self, key: str, ttl_s: int | None = None) -> int | None:
        if self.fail_incr:
            return None
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    def view_entries(self, prefix: str = "views:") -> dict[str, str]:
        return {
            key: value
            for key, value in self.store.items()
            if key.startswith(prefix) and not key.endswith(":generation")
        }


class InMemoryRepository:
    """Record store double with the RecordRepository interface."""

    def __init__(self, model: type, id_prefix: str, records=()):
        self.model = model
        self.id_prefix = id_prefix
        self.rows: dict[str, Any] = {record.id: record for record in records}
        self.calls: list[str] = []
        self.failing_ids: set[str] = set()
        self.unavailable = False
        self._ids = count(len(self.rows) + 1)

    def _call(self, operation: str) -> None:
        self.calls.append(operation)
        if self.unavailable:
            raise StoreUnavailable("connection refused", operation=operation)

    def _newest_first(self, records):
        return sorted(records, key=record_timestamp, reverse=True)

    async def list(self):
        self._call("list")
        return self._newest_first(self.rows.values())

    async def list_by_timestamp_range(self, start: datetime, end_exclusive: datetime):
        self._call("list_by_timestamp_range")
        return self._newest_first(
            record for record in self.rows.values() if start <= record_timestamp(record) < end_exclusive
        )

    async def get_by_id(self, record_id: str):
        self._call("get_by_id")
        return self.rows.get(record_id)

    async def insert(self, row: dict[str, Any]):
        self._call("insert")
        return self._store(row)

    async def insert_many(self, rows):
        self._call("insert_many")
        return [self._store(row) for row in rows]

    async def update(self, record_id: str, patch: dict[str, Any]):
        self._call("update")
        if record_id in self.failing_ids:
            raise StoreUnavailable(f"update of {record_id} rejected", operation="update")
        if record_id not in self.rows:
            raise RecordNotFound(self.id_prefix, record_id)
        record = self.rows[record_id].model_copy(update={**patch, "updated_at": NOW})
        self.rows[record_id] = record
        return record

    async def delete(self, record_id: str) -> None:
        self._call("delete")
        if self.rows.pop(record_id, None) is None:
            raise RecordNotFound(self.id_prefix, record_id)

    async def list_pending(self):
        self._call("list_pending")
        return self._newest_first(record for record in self.rows.values() if not record.classificado)

    def _store(self, row: dict[str, Any]):
        record_id = f"{self.id_prefix}-{next(self._ids)}"
        record = self.model(id=record_id, created_at=NOW, updated_at=NOW, **row)
        self.rows[record_id] = record
        return record


def make_publication(record_id: str, published_at: datetime, **overrides) -> Publication:
    fields = {
        "id": record_id,
        "user_id": "user-123",
        "data_publicacao": published_at,
        "link": "https://example.com/posts/" + record_id,
        "tema": "Saúde",
        "texto": "Campanha de vacinação nas unidades básicas",
    }
    fields.update(overrides)
    return Publication(**fields)


def make_email(record_id: str, sent_at: datetime, **overrides) -> EmailMessage:
    fields = {
        "id": record_id,
        "user_id": "user-123",
        "destinatario": "gabinete@camara.gov.br",
        "data_envio": sent_at,
        "estado": None,
        "municipio": None,
        "classificado": False,
    }
    fields.update(overrides)
    return EmailMessage(**fields)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def view_cache(fake_redis):
    return ViewCache(fake_redis, ttl_seconds=300)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def publication_repository():
    return InMemoryRepository(Publication, "pub")


@pytest.fixture
def email_repository():
    return InMemoryRepository(EmailMessage, "email")


@pytest.fixture
def publication_service(publication_repository):
    return PublicationService(repository=publication_repository, trend_days=7)


@pytest.fixture
def email_service(email_repository):
    return EmailService(
        repository=email_repository, trend_days=7, top_states_limit=5, top_recipients_limit=3
    )


@pytest.fixture
def publication_dashboard(publication_service, view_cache, clock):
    return PublicationDashboard(publication_service, cache=view_cache, tz=SAO_PAULO, clock=clock)


@pytest.fixture
def email_dashboard(email_service, view_cache, clock):
    return EmailDashboard(email_service, cache=view_cache, tz=SAO_PAULO, clock=clock)


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[optional_auth_dependency] = auth_override

    return _apply


@pytest.fixture(name="make_publication")
def make_publication_fixture():
    return make_publication


@pytest.fixture(name="make_email")
def make_email_fixture():
    return make_email
