"""
Tests del repositorio de reclamos: alta atómica, plazo, redacción y lecturas.
"""
import base64
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.core.exceptions import ClaimNotFoundException, NotFoundException
from app.models.claim import Reclamo
from app.models.enums import EstadoReclamo, TipoAccion
from app.models.history import HistorialReclamo
from app.services.claim_repository import (
    ClaimRepository,
    compute_deadline,
    dias_restantes,
    redact_claim,
)
from app.services.claim_validator import validate

REGISTERED_AT = datetime(2026, 3, 1, 10, 30, tzinfo=timezone.utc)


def test_compute_deadline_adds_calendar_days():
    assert compute_deadline(REGISTERED_AT) == datetime(2026, 3, 16, 10, 30, tzinfo=timezone.utc)
    assert compute_deadline(REGISTERED_AT, days=30) == REGISTERED_AT + timedelta(days=30)


def test_dias_restantes():
    deadline = REGISTERED_AT + timedelta(days=15)
    assert dias_restantes(deadline, now=REGISTERED_AT) == 15
    assert dias_restantes(deadline, now=deadline + timedelta(days=2)) == -2


def test_redact_claim_drops_sensitive_fields():
    data = {"codigo_reclamo": "X", "firma_digital": "data:", "ip_address": "1.1.1.1", "user_agent": "ua"}
    assert redact_claim(data) == {"codigo_reclamo": "X"}


def test_create_persists_claim_with_deadline(repository, make_payload):
    persisted = repository.create(
        validate(make_payload()), ip_address="10.0.0.1", user_agent="pytest", now=REGISTERED_AT
    )

    assert persisted.codigo_reclamo == "CODEPLEX-2026-00001"
    assert persisted.fecha_limite_respuesta - persisted.fecha_registro == timedelta(days=15)

    stored = repository.get_by_code(persisted.codigo_reclamo, redact=False)
    assert stored["estado"] == EstadoReclamo.PENDIENTE.value
    assert stored["fecha_registro"] == REGISTERED_AT
    assert stored["fecha_limite_respuesta"] == REGISTERED_AT + timedelta(days=15)
    assert stored["ip_address"] == "10.0.0.1"
    assert stored["user_agent"] == "pytest"
    assert stored["monto_reclamado"] == 150.5
    assert stored["respuesta"] is None


def test_create_writes_creation_history(repository, database, make_payload):
    persisted = repository.create(validate(make_payload()), now=REGISTERED_AT)

    with database.session_scope() as session:
        entries = session.execute(
            select(HistorialReclamo).where(HistorialReclamo.reclamo_id == persisted.id)
        ).scalars().all()

    assert len(entries) == 1
    assert entries[0].tipo_accion == TipoAccion.CREACION.value
    assert entries[0].estado_anterior is None
    assert entries[0].estado_nuevo == EstadoReclamo.PENDIENTE.value
    assert entries[0].usuario_accion == "SISTEMA"


def test_deadline_follows_configured_days(database, settings, make_payload):
    settings.response_deadline_days = 30
    repository = ClaimRepository(database, settings)

    persisted = repository.create(validate(make_payload()), now=REGISTERED_AT)

    assert persisted.fecha_limite_respuesta == REGISTERED_AT + timedelta(days=30)


def test_public_read_is_redacted(repository, make_payload):
    persisted = repository.create(
        validate(make_payload()), ip_address="10.0.0.1", user_agent="pytest"
    )

    data = repository.get_by_code(persisted.codigo_reclamo)

    assert data["codigo_reclamo"] == persisted.codigo_reclamo
    for field in ("firma_digital", "ip_address", "user_agent"):
        assert field not in data


def test_markup_stored_verbatim(repository, make_payload):
    detalle = '<img src=x onerror="alert(1)"> & más'
    persisted = repository.create(validate(make_payload(detalle_reclamo=detalle)))

    assert repository.get_by_code(persisted.codigo_reclamo)["detalle_reclamo"] == detalle


def test_unknown_code_raises_not_found(repository):
    with pytest.raises(ClaimNotFoundException):
        repository.get_by_code("CODEPLEX-2026-99999")


def test_signature_image_bytes(repository, make_payload):
    payload = make_payload()
    persisted = repository.create(validate(payload))

    image = repository.get_signature_image(persisted.codigo_reclamo)

    assert image == base64.b64decode(payload["firma_digital"].split(",", 1)[1])
    assert image.startswith(b"\x89PNG")


def test_unreadable_signature(repository, make_payload):
    persisted = repository.create(validate(make_payload(firma_digital="data:image/png;base64,abc")))

    with pytest.raises(NotFoundException):
        repository.get_signature_image(persisted.codigo_reclamo)


def test_tracking_requires_matching_document(repository, make_payload):
    persisted = repository.create(validate(make_payload(numero_documento="11112222")))

    view = repository.get_tracking(persisted.codigo_reclamo, " 11112222 ")
    assert view["reclamo"]["codigo_reclamo"] == persisted.codigo_reclamo
    assert "firma_digital" not in view["reclamo"]
    assert view["respuesta"] is None
    assert view["mensajes"] == []
    assert [h["tipo_accion"] for h in view["historial"]] == ["CREACION"]
    assert "comentario" not in view["historial"][0]

    with pytest.raises(ClaimNotFoundException):
        repository.get_tracking(persisted.codigo_reclamo, "99998888")


def test_admin_detail_includes_provenance_but_not_signature(repository, make_payload):
    persisted = repository.create(validate(make_payload()), ip_address="10.0.0.9")

    data = repository.get_by_id(persisted.id)

    assert data["ip_address"] == "10.0.0.9"
    assert "firma_digital" not in data
    assert data["total_mensajes"] == 0
    assert "dias_restantes" in data


def test_list_claims_filters_and_paginates(repository, make_payload):
    repository.create(validate(make_payload(numero_documento="10000001", nombre_completo="Ana Torres")))
    repository.create(validate(make_payload(numero_documento="10000002", nombre_completo="Luis Rojas")))
    repository.create(validate(make_payload(numero_documento="10000003", nombre_completo="Ana Vega")))

    result = repository.list_claims(search="ana", limit=1)
    assert result["pagination"]["total"] == 2
    assert result["pagination"]["total_pages"] == 2
    assert result["pagination"]["has_next"] is True
    assert len(result["items"]) == 1

    by_document = repository.list_claims(search="10000002")
    assert [i["nombre_completo"] for i in by_document["items"]] == ["Luis Rojas"]

    assert repository.list_claims(estado="RESUELTO")["pagination"]["total"] == 0


def test_dashboard_stats_and_urgent_pending(repository, database, make_payload):
    now = datetime.now(timezone.utc)
    late = repository.create(validate(make_payload()), now=now - timedelta(days=10))
    recent = repository.create(validate(make_payload()), now=now)
    resolved = repository.create(validate(make_payload()), now=now - timedelta(days=1))

    with database.session_scope() as session:
        reclamo = session.get(Reclamo, resolved.id)
        reclamo.estado = EstadoReclamo.RESUELTO.value
        reclamo.fecha_respuesta = now

    data = repository.dashboard(now=now)
    stats = data["estadisticas"]

    assert stats["total"] == 3
    assert stats["pendientes"] == 2
    assert stats["resueltos"] == 1
    assert stats["semana"] >= 2
    assert stats["promedio_dias_resolucion"] == 1.0
    assert [p["codigo_reclamo"] for p in data["pendientes"]] == [
        late.codigo_reclamo,
        recent.codigo_reclamo,
    ]
