"""
Tests de la API pública de reclamos.

Valida endpoints:
- POST /api/claims
- GET /api/claims/{codigo}
- GET /api/claims/{codigo}/signature
"""
import base64
import re
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from app.core.config import get_settings
from app.core.security import limiter
from app.main import create_app
from app.models.claim import Reclamo
from app.services.claim_validator import (
    MSG_EMAIL_INVALIDO,
    MSG_EXCEDE_LIMITE,
    MSG_FIRMA_REQUERIDA,
    MSG_MONTO_INVALIDO,
    MSG_TERMINOS,
)


def _count_claims(database):
    with database.session_scope() as session:
        return session.execute(select(func.count()).select_from(Reclamo)).scalar_one()


def test_create_claim_returns_code_and_deadline(client, make_payload):
    response = client.post("/api/claims", json=make_payload())

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Reclamo registrado exitosamente"

    data = body["data"]
    assert re.match(r"^CODEPLEX-\d{4}-\d{5}$", data["codigo_reclamo"])
    assert data["plazo_dias"] == 15

    registered = datetime.fromisoformat(data["fecha_registro"])
    deadline = datetime.fromisoformat(data["fecha_limite_respuesta"])
    assert deadline - registered == timedelta(days=15)


def test_create_claim_sends_internal_notice(app, client, mail_sender, make_payload):
    code = client.post("/api/claims", json=make_payload()).json()["data"]["codigo_reclamo"]
    app.state.notification_worker.drain(timeout=5)

    internal = mail_sender.sent_to("soporte@test.pe")
    assert len(internal) == 1
    assert internal[0]["subject"] == f"Nuevo RECLAMO - {code}"
    assert mail_sender.sent_to("maria.quispe@example.com") == []


def test_create_claim_with_copy_notifies_consumer(app, client, mail_sender, make_payload):
    client.post("/api/claims", json=make_payload(acepta_copia=True))
    app.state.notification_worker.drain(timeout=5)

    consumer = mail_sender.sent_to("maria.quispe@example.com")
    assert len(consumer) == 1
    assert consumer[0]["subject"].startswith("Confirmación de RECLAMO")


def test_notification_failure_does_not_affect_registration(app, client, mail_sender, database, make_payload):
    mail_sender.fail_all = True

    response = client.post("/api/claims", json=make_payload(acepta_copia=True))
    app.state.notification_worker.drain(timeout=5)

    assert response.status_code == 201
    assert len(mail_sender.attempts) == 2
    assert _count_claims(database) == 1


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"acepta_terminos": False}, MSG_TERMINOS),
        ({"email": "no-valido"}, MSG_EMAIL_INVALIDO),
        ({"firma_digital": None}, MSG_FIRMA_REQUERIDA),
        ({"detalle_reclamo": "x" * 3001}, MSG_EXCEDE_LIMITE),
        ({"telefono": "9" * 21}, MSG_EXCEDE_LIMITE),
        ({"monto_reclamado": 1e30}, MSG_MONTO_INVALIDO),
        ({"monto_reclamado": "123456789012345678901234567890"}, MSG_MONTO_INVALIDO),
    ],
)
def test_invalid_submission_rejected_without_side_effects(
    app, client, mail_sender, database, make_payload, overrides, message
):
    response = client.post("/api/claims", json=make_payload(**overrides))
    app.state.notification_worker.drain(timeout=5)

    assert response.status_code == 400
    body = response.json()
    assert body == {"success": False, "message": message, "error_code": "VALIDATION_ERROR"}
    assert _count_claims(database) == 0
    assert mail_sender.attempts == []


def test_non_object_body_rejected(client):
    response = client.post("/api/claims", json=["no", "es", "objeto"])

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_long_user_agent_is_clipped(client, database, make_payload):
    response = client.post(
        "/api/claims",
        json=make_payload(),
        headers={"User-Agent": "Mozilla/5.0 " + "x" * 1000, "X-Forwarded-For": "1" * 100},
    )

    assert response.status_code == 201
    with database.session_scope() as session:
        reclamo = session.execute(select(Reclamo)).scalar_one()
        assert len(reclamo.user_agent) == 512
        assert reclamo.user_agent.startswith("Mozilla/5.0 ")
        assert len(reclamo.ip_address) == 64


def test_sequential_submissions_get_consecutive_codes(submit_claim):
    first = submit_claim()["codigo_reclamo"]
    second = submit_claim()["codigo_reclamo"]

    assert int(second.rsplit("-", 1)[1]) == int(first.rsplit("-", 1)[1]) + 1


def test_get_claim_by_code_is_redacted(client, submit_claim):
    code = submit_claim(detalle_reclamo="<b>pantalla</b> rota")["codigo_reclamo"]

    response = client.get(f"/api/claims/{code}")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["codigo_reclamo"] == code
    assert data["estado"] == "PENDIENTE"
    assert data["detalle_reclamo"] == "<b>pantalla</b> rota"
    assert data["respuesta"] is None
    for field in ("firma_digital", "ip_address", "user_agent"):
        assert field not in data


def test_get_unknown_claim_returns_404(client):
    response = client.get("/api/claims/CODEPLEX-2026-99999")

    assert response.status_code == 404
    assert response.json()["error_code"] == "CLAIM_NOT_FOUND"


def test_signature_served_as_png(client, submit_claim, make_payload):
    code = submit_claim()["codigo_reclamo"]
    expected = base64.b64decode(make_payload()["firma_digital"].split(",", 1)[1])

    response = client.get(f"/api/claims/{code}/signature")

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content == expected


def test_signature_unknown_claim(client):
    assert client.get("/api/claims/CODEPLEX-2026-99999/signature").status_code == 404


def test_rate_limit_on_public_form(settings, database, mail_sender):
    settings.rate_limit_enabled = True
    app = create_app(settings=settings, database=database, mail_sender=mail_sender)
    per_minute = get_settings().rate_limit_claims_per_minute
    limiter.reset()

    try:
        with TestClient(app) as client:
            statuses = [client.post("/api/claims", json={}).status_code for _ in range(per_minute + 1)]
    finally:
        limiter.reset()
        limiter.enabled = False

    assert statuses[:per_minute] == [400] * per_minute
    assert statuses[-1] == 429
