import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.main import create_app


@pytest.mark.smoke
def test_api_health_smoke(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["database"] == "connected"
    assert "timestamp" in body


@pytest.mark.smoke
def test_health_reports_disconnected_store(app, client, monkeypatch):
    monkeypatch.setattr(app.state.database, "check_health", lambda: False)

    resp = client.get("/api/health")

    assert resp.status_code == 200
    assert resp.json()["database"] == "disconnected"


@pytest.mark.smoke
def test_public_dashboard_smoke(client, submit_claim):
    submit_claim()

    resp = client.get("/api/dashboard")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["estadisticas"]["total"] == 1
    assert len(data["pendientes"]) == 1
    assert "firma_digital" not in data["pendientes"][0]


@pytest.mark.smoke
def test_metrics_endpoint_smoke(client, submit_claim):
    submit_claim()

    resp = client.get("/metrics")

    assert resp.status_code == 200
    assert "reclamos_claims_created_total" in resp.text
    assert "reclamos_api_request_duration_seconds" in resp.text


@pytest.mark.smoke
def test_metrics_endpoint_disabled(app, client):
    app.state.settings.metrics_enabled = False

    resp = client.get("/metrics")

    assert resp.status_code == 404
    assert resp.json()["error_code"] == "NOT_FOUND"


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/no-existe")

    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_unhandled_error_returns_generic_500(app):
    @app.get("/api/boom")
    def boom():
        raise RuntimeError("detalle interno")

    with TestClient(app, raise_server_exceptions=False) as client:
        resp = client.get("/api/boom")

    assert resp.status_code == 500
    body = resp.json()
    assert body["message"] == "Error interno del servidor"
    assert "error" not in body
    assert "detalle interno" not in resp.text


def test_development_includes_traceback(settings, database, mail_sender):
    dev = Settings(**{**settings.model_dump(), "environment": "development"})
    app = create_app(settings=dev, database=database, mail_sender=mail_sender)

    with TestClient(app) as client:
        resp = client.get("/api/claims/CODEPLEX-2026-99999")

    assert resp.status_code == 404
    assert "ClaimNotFoundException" in resp.json()["error"]
