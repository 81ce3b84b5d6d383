"""
Tests del ciclo de vida a nivel de servicio (sin HTTP).
"""
import pytest
from sqlalchemy import select

from app.core.exceptions import (
    ClaimNotFoundException,
    InsufficientPermissionsException,
    ResponseAlreadyExistsException,
    ValidationException,
)
from app.models.audit_log import AuditoriaAdmin
from app.models.claim import Reclamo
from app.services.claim_lifecycle import ClaimLifecycle
from app.services.claim_validator import validate
from app.services.notifications import NotificationDispatcher


class InlineWorker:
    """Worker que ejecuta el trabajo en el acto."""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, *args, **kwargs):
        self.jobs.append(fn)
        fn(*args, **kwargs)


@pytest.fixture
def claim(repository, make_payload):
    return repository.create(validate(make_payload(numero_documento="45678912")))


@pytest.fixture
def lifecycle(db_session):
    return ClaimLifecycle(db_session)


def _actor(db_session, user):
    # Instancia ligada a la sesión del servicio
    return db_session.merge(user)


def test_status_change_by_soporte(lifecycle, db_session, claim, soporte_user):
    result = lifecycle.change_status(claim.id, "EN_PROCESO", actor=_actor(db_session, soporte_user))

    assert result == {
        "id": claim.id,
        "codigo_reclamo": claim.codigo_reclamo,
        "estado_anterior": "PENDIENTE",
        "estado": "EN_PROCESO",
    }


def test_same_state_is_accepted_and_recorded(lifecycle, db_session, claim, soporte_user):
    lifecycle.change_status(claim.id, "PENDIENTE", actor=_actor(db_session, soporte_user))

    history = lifecycle.history(claim.id)
    assert [(h["estado_anterior"], h["estado_nuevo"]) for h in history] == [
        (None, "PENDIENTE"),
        ("PENDIENTE", "PENDIENTE"),
    ]


def test_soporte_close_leaves_claim_untouched(lifecycle, db_session, claim, soporte_user):
    with pytest.raises(InsufficientPermissionsException):
        lifecycle.change_status(claim.id, "CERRADO", actor=_actor(db_session, soporte_user))

    assert db_session.get(Reclamo, claim.id).estado == "PENDIENTE"
    assert len(lifecycle.history(claim.id)) == 1


def test_status_change_unknown_claim(lifecycle, db_session, admin_user):
    with pytest.raises(ClaimNotFoundException):
        lifecycle.change_status("no-existe", "EN_PROCESO", actor=_actor(db_session, admin_user))


def test_status_change_audited(lifecycle, db_session, claim, admin_user):
    lifecycle.change_status(
        claim.id, "CERRADO", actor=_actor(db_session, admin_user), ip_address="10.1.1.1"
    )

    entry = db_session.execute(select(AuditoriaAdmin)).scalar_one()
    assert entry.accion == "CAMBIO_ESTADO"
    assert entry.ip_address == "10.1.1.1"


def test_record_response_resolves_claim(lifecycle, db_session, claim, admin_user):
    actor = _actor(db_session, admin_user)

    respuesta = lifecycle.record_response(
        claim.id,
        "  Procedemos con el reembolso total.  ",
        actor=actor,
        compensacion_ofrecida="S/ 150.50",
    )

    assert respuesta["respuesta_empresa"] == "Procedemos con el reembolso total."
    assert respuesta["compensacion_ofrecida"] == "S/ 150.50"
    assert respuesta["accion_tomada"] is None

    reclamo = db_session.get(Reclamo, claim.id)
    assert reclamo.estado == "RESUELTO"
    assert reclamo.atendido_por == actor.id
    assert reclamo.fecha_respuesta is not None
    assert lifecycle.history(claim.id)[-1]["tipo_accion"] == "RESPUESTA"


def test_response_is_set_once(lifecycle, db_session, claim, admin_user):
    actor = _actor(db_session, admin_user)
    lifecycle.record_response(claim.id, "Primera respuesta válida", actor=actor)

    with pytest.raises(ResponseAlreadyExistsException) as exc_info:
        lifecycle.record_response(claim.id, "Segunda respuesta válida", actor=actor)

    assert exc_info.value.status_code == 409
    assert db_session.get(Reclamo, claim.id).respuesta.respuesta_empresa == "Primera respuesta válida"


@pytest.mark.parametrize("text", ["", "corta", "   nueve      "])
def test_response_minimum_length(lifecycle, db_session, claim, admin_user, text):
    with pytest.raises(ValidationException):
        lifecycle.record_response(claim.id, text, actor=_actor(db_session, admin_user))


def test_messages_append_only_and_ordered(lifecycle, claim):
    lifecycle.add_message(claim.id, "EMPRESA", "uno", autor="Ana")
    lifecycle.add_message(claim.id, "CLIENTE", "dos")
    lifecycle.add_message(claim.id, "EMPRESA", "tres", autor="Ana")

    messages = lifecycle.list_messages(claim.id)

    assert [m["mensaje"] for m in messages] == ["uno", "dos", "tres"]
    ids = [m["id"] for m in messages]
    assert ids == sorted(ids)


@pytest.mark.parametrize(
    "tipo, mensaje",
    [("EMPRESA", "x" * 1001), ("EMPRESA", "   "), ("SISTEMA", "hola")],
)
def test_invalid_messages(lifecycle, claim, tipo, mensaje):
    with pytest.raises(ValidationException):
        lifecycle.add_message(claim.id, tipo, mensaje)

    assert lifecycle.list_messages(claim.id) == []


def test_client_message_notifies_support(db_session, claim, mail_sender, settings):
    worker = InlineWorker()
    lifecycle = ClaimLifecycle(
        db_session, dispatcher=NotificationDispatcher(mail_sender, settings), worker=worker
    )

    created = lifecycle.add_client_message(claim.codigo_reclamo, "45678912", "<b>¿Novedades?</b>")

    assert created["tipo_mensaje"] == "CLIENTE"
    assert created["autor"] == "María Quispe Huamán"
    assert len(worker.jobs) == 1
    notice = mail_sender.sent_to("soporte@test.pe")[0]
    assert "&lt;b&gt;¿Novedades?&lt;/b&gt;" in notice["html_body"]


def test_client_message_requires_matching_document(lifecycle, claim):
    with pytest.raises(ClaimNotFoundException):
        lifecycle.add_client_message(claim.codigo_reclamo, "00000000", "hola")
