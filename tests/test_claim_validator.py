"""
Tests de validación del formulario público.

Las reglas se evalúan en orden: ante varios fallos, el mensaje es el de la
primera regla incumplida.
"""
from datetime import date
from decimal import Decimal

import pytest

from app.core.exceptions import ValidationException
from app.services.claim_validator import (
    MSG_EMAIL_INVALIDO,
    MSG_EXCEDE_LIMITE,
    MSG_FALTAN_DATOS_CONSUMIDOR,
    MSG_FALTAN_DETALLES,
    MSG_FECHA_INCIDENTE,
    MSG_FIRMA_REQUERIDA,
    MSG_MONTO_INVALIDO,
    MSG_TERMINOS,
    MSG_TIPO_BIEN_INVALIDO,
    MSG_TIPO_INVALIDO,
    validate,
)


def _message(payload):
    with pytest.raises(ValidationException) as exc_info:
        validate(payload)
    assert exc_info.value.status_code == 400
    return exc_info.value.message


def test_valid_submission_is_normalized(make_payload):
    claim = validate(make_payload(tipo_solicitud="QUEJA", domicilio="   "))

    assert claim.tipo_solicitud == "QUEJA"
    assert claim.tipo_bien == "PRODUCTO"
    assert claim.monto_reclamado == Decimal("150.50")
    assert claim.fecha_incidente == date(2026, 10, 1)
    assert claim.domicilio is None
    assert claim.acepta_terminos is True
    assert claim.acepta_copia is False


def test_defaults_applied_when_optional_fields_missing(make_payload):
    payload = make_payload()
    for key in ("monto_reclamado", "tipo_bien", "acepta_copia", "distrito"):
        payload.pop(key)

    claim = validate(payload)

    assert claim.monto_reclamado == Decimal("0")
    assert claim.tipo_bien is None
    assert claim.acepta_copia is False
    assert claim.distrito is None


def test_first_failing_rule_wins():
    # Todo inválido: manda el tipo de solicitud
    assert _message({}) == MSG_TIPO_INVALIDO


def test_tipo_solicitud_must_be_known(make_payload):
    assert _message(make_payload(tipo_solicitud="SUGERENCIA")) == MSG_TIPO_INVALIDO
    assert _message(make_payload(tipo_solicitud="reclamo")) == MSG_TIPO_INVALIDO


def test_signature_checked_before_email(make_payload):
    payload = make_payload(firma_digital="", email="no-es-email")
    assert _message(payload) == MSG_FIRMA_REQUERIDA


def test_signature_must_be_image_data_url(make_payload):
    assert _message(make_payload(firma_digital="https://example.com/firma.png")) == MSG_FIRMA_REQUERIDA
    payload = make_payload()
    payload.pop("firma_digital")
    assert _message(payload) == MSG_FIRMA_REQUERIDA


@pytest.mark.parametrize("value", [False, "true", 1, None])
def test_terms_must_be_strictly_true(make_payload, value):
    assert _message(make_payload(acepta_terminos=value)) == MSG_TERMINOS


@pytest.mark.parametrize("value", ["sin-arroba", "a@b", "con espacio@x.pe", ""])
def test_email_format(make_payload, value):
    assert _message(make_payload(email=value)) == MSG_EMAIL_INVALIDO


@pytest.mark.parametrize("field", ["descripcion_bien", "detalle_reclamo", "pedido_consumidor"])
def test_required_text_fields(make_payload, field):
    assert _message(make_payload(**{field: "   "})) == MSG_FALTAN_DETALLES


def test_length_limits(make_payload):
    assert _message(make_payload(detalle_reclamo="x" * 3001)) == MSG_EXCEDE_LIMITE
    assert _message(make_payload(pedido_consumidor="x" * 2001)) == MSG_EXCEDE_LIMITE
    assert _message(make_payload(nombre_completo="x" * 201)) == MSG_EXCEDE_LIMITE
    assert _message(make_payload(descripcion_bien="x" * 601)) == MSG_EXCEDE_LIMITE


def test_length_limits_are_inclusive(make_payload):
    claim = validate(make_payload(detalle_reclamo="x" * 3000, descripcion_bien="y" * 600))
    assert len(claim.detalle_reclamo) == 3000


@pytest.mark.parametrize(
    "field, limit",
    [
        ("telefono", 20),
        ("numero_documento", 20),
        ("domicilio", 255),
        ("distrito", 100),
        ("area_queja", 100),
    ],
)
def test_consumer_field_widths(make_payload, field, limit):
    assert _message(make_payload(**{field: "9" * (limit + 1)})) == MSG_EXCEDE_LIMITE
    assert getattr(validate(make_payload(**{field: "9" * limit})), field) == "9" * limit


def test_email_width(make_payload):
    long_email = "a" * 251 + "@x.pe"
    assert _message(make_payload(email=long_email)) == MSG_EXCEDE_LIMITE


def test_free_text_kept_verbatim(make_payload):
    detalle = "<b>Urgente</b> & <script>alert(1)</script>"
    claim = validate(make_payload(detalle_reclamo=detalle))
    assert claim.detalle_reclamo == detalle


def test_consumer_identity_required(make_payload):
    assert _message(make_payload(numero_documento="")) == MSG_FALTAN_DATOS_CONSUMIDOR


@pytest.mark.parametrize("value", ["01/10/2026", "ayer", None])
def test_incident_date(make_payload, value):
    assert _message(make_payload(fecha_incidente=value)) == MSG_FECHA_INCIDENTE


@pytest.mark.parametrize(
    "value",
    [-1, "abc", "NaN", True, 1e30, "1e30", "123456789012345678901234567890", "10000000000"],
)
def test_invalid_amount(make_payload, value):
    assert _message(make_payload(monto_reclamado=value)) == MSG_MONTO_INVALIDO


def test_amount_accepts_numeric_strings(make_payload):
    assert validate(make_payload(monto_reclamado="99.999")).monto_reclamado == Decimal("100.00")


def test_amount_upper_bound_is_inclusive(make_payload):
    claim = validate(make_payload(monto_reclamado="9999999999.99"))
    assert claim.monto_reclamado == Decimal("9999999999.99")


def test_tipo_bien_must_be_known(make_payload):
    assert _message(make_payload(tipo_bien="INMUEBLE")) == MSG_TIPO_BIEN_INVALIDO


def test_copy_flag_only_true_when_boolean(make_payload):
    assert validate(make_payload(acepta_copia="true")).acepta_copia is False
    assert validate(make_payload(acepta_copia=True)).acepta_copia is True
