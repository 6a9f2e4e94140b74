"""
Tests for the publications and emails HTTP routes with in-memory services.
"""

from datetime import UTC, datetime

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

from app.auth.verify import optional_auth_dependency
from app.coordination import EmailDashboard, PublicationDashboard
from app.main import app
from app.routes.dependencies import (
    get_date_range,
    get_email_dashboard,
    get_publication_dashboard,
    get_timezone,
)

PUBLICATION = {
    "data_publicacao": "2024-06-10T15:00:00Z",
    "link": "https://instagram.com/p/xyz",
    "tema": "Saúde",
    "texto": "Mutirão de atendimento",
}


@pytest.fixture
def client(publication_service, email_service, view_cache, clock, apply_auth_override):
    def _publications(date_range=Depends(get_date_range), tz=Depends(get_timezone)):
        dashboard = PublicationDashboard(publication_service, cache=view_cache, tz=tz, clock=clock)
        dashboard.apply_filters(date_range)
        return dashboard

    def _emails(date_range=Depends(get_date_range), tz=Depends(get_timezone)):
        dashboard = EmailDashboard(email_service, cache=view_cache, tz=tz, clock=clock)
        dashboard.apply_filters(date_range)
        return dashboard

    app.dependency_overrides[get_publication_dashboard] = _publications
    app.dependency_overrides[get_email_dashboard] = _emails
    apply_auth_override(app)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_create_and_list_publications(client):
    created = client.post("/publications", json=PUBLICATION)
    assert created.status_code == 201
    assert created.json()["user_id"] == "user-123"

    listed = client.get("/publications", params={"page": 1})
    assert listed.status_code == 200
    body = listed.json()
    assert body["total"] == 1
    assert body["page_size"] == 10
    assert body["items"][0]["tema"] == "Saúde"


def test_create_without_token_is_unauthorized(client, publication_repository):
    app.dependency_overrides[optional_auth_dependency] = lambda: None

    response = client.post("/publications", json=PUBLICATION)

    assert response.status_code == 401
    assert publication_repository.calls == []


def test_invalid_payload_is_rejected(client):
    response = client.post("/publications", json={**PUBLICATION, "tema": ""})

    assert response.status_code == 422


def test_trend_with_filter_and_time_zone(client):
    client.post("/publications", json=PUBLICATION)

    response = client.get(
        "/publications/trend",
        params={"start": "2024-06-09", "end": "2024-06-10", "tz": "America/Sao_Paulo"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["timezone"] == "America/Sao_Paulo"
    assert [point["count"] for point in body["points"]] == [0, 1]


def test_trend_rejects_half_range_and_unknown_zone(client):
    assert client.get("/publications/trend", params={"start": "2024-06-09"}).status_code == 422
    assert client.get("/publications/trend", params={"tz": "Nowhere/City"}).status_code == 422
    assert (
        client.get(
            "/publications/trend", params={"start": "2024-06-10", "end": "2024-06-01"}
        ).status_code
        == 422
    )


def test_update_missing_publication_is_not_found(client):
    response = client.patch("/publications/pub-999", json={"tema": "Outro"})

    assert response.status_code == 404


def test_delete_publication(client):
    created = client.post("/publications", json=PUBLICATION).json()

    assert client.delete(f"/publications/{created['id']}").status_code == 204
    assert client.get(f"/publications/{created['id']}").status_code == 404


def test_report_download(client):
    client.post("/publications", json=PUBLICATION)

    response = client.get("/publications/report.pdf")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert "publicacoes-redes-sociais.pdf" in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")


def test_report_of_empty_set_is_not_found(client):
    assert client.get("/publications/report.pdf").status_code == 404


def test_store_unavailable_maps_to_503(client, publication_repository):
    publication_repository.unavailable = True

    assert client.get("/publications/stats").status_code == 503


def test_partial_reclassification_answers_207(client, email_repository, make_email):
    sent = datetime(2024, 6, 10, tzinfo=UTC)
    email_repository.rows = {email_id: make_email(email_id, sent) for email_id in ("e1", "e2")}
    email_repository.failing_ids = {"e2"}

    response = client.post(
        "/emails/reclassify",
        json={
            "patches": [
                {"id": "e1", "estado": "SP", "municipio": "Santos"},
                {"id": "e2", "estado": "RJ", "municipio": "Niterói"},
            ]
        },
    )

    assert response.status_code == 207
    body = response.json()
    assert body["failed_ids"] == ["e2"]
    assert [email["id"] for email in body["succeeded"]] == ["e1"]


def test_email_kpi_routes(client, email_repository, make_email):
    sent = datetime(2024, 6, 10, tzinfo=UTC)
    email_repository.rows = {
        "e1": make_email("e1", sent, estado="SP", municipio="Santos", classificado=True),
        "e2": make_email("e2", sent, estado="SP", destinatario="x@y.com"),
    }

    stats = client.get("/emails/stats").json()
    by_state = client.get("/emails/by-state").json()
    pending = client.get("/emails/pending").json()
    recipients = client.get("/emails/top-recipients").json()

    assert stats == {"total": 2, "classified": 1, "pending": 1}
    assert by_state == [{"key": "SP", "count": 2}]
    assert [email["id"] for email in pending] == ["e2"]
    assert len(recipients) == 2
