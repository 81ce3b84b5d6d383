"""
Validación del formulario público de reclamos.

Las reglas se evalúan en orden y la primera que falla define el único
mensaje que ve el consumidor. No se sanitiza HTML: el texto libre se
guarda tal cual y se escapa en cada punto de renderizado.
"""
import math
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from app.core.exceptions import ValidationException
from app.models.enums import TipoBien, TipoSolicitud

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Límites de caracteres del formulario
MAX_LENGTHS = {
    "detalle_reclamo": 3000,
    "pedido_consumidor": 2000,
    "nombre_completo": 200,
    "descripcion_bien": 600,
}

# Anchos de columna de los datos del consumidor (reclamos)
FIELD_LIMITS = {
    "tipo_documento": 20,
    "numero_documento": 20,
    "telefono": 20,
    "email": 255,
    "domicilio": 255,
    "departamento": 100,
    "provincia": 100,
    "distrito": 100,
    "area_queja": 100,
}

# Numeric(12, 2)
MAX_MONTO = Decimal("9999999999.99")

MSG_TIPO_INVALIDO = "Tipo de solicitud inválido"
MSG_FIRMA_REQUERIDA = "Firma digital requerida"
MSG_TERMINOS = "Debe aceptar los términos y condiciones"
MSG_EMAIL_INVALIDO = "Formato de correo electrónico inválido"
MSG_FALTAN_DETALLES = "Faltan detalles del reclamo o el pedido del consumidor"
MSG_EXCEDE_LIMITE = "Uno de los campos excede el límite permitido de caracteres."
MSG_FALTAN_DATOS_CONSUMIDOR = "Faltan datos de identificación del consumidor"
MSG_FECHA_INCIDENTE = "Fecha del incidente inválida"
MSG_MONTO_INVALIDO = "Monto reclamado inválido"
MSG_TIPO_BIEN_INVALIDO = "Tipo de bien inválido"

_OPTIONAL_TEXT_FIELDS = (
    "domicilio",
    "departamento",
    "provincia",
    "distrito",
    "area_queja",
    "descripcion_situacion",
)


class NormalizedClaim(BaseModel):
    """Envío validado con los valores por defecto aplicados."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    tipo_solicitud: TipoSolicitud
    nombre_completo: str
    tipo_documento: str
    numero_documento: str
    telefono: str
    email: str
    domicilio: Optional[str] = None
    departamento: Optional[str] = None
    provincia: Optional[str] = None
    distrito: Optional[str] = None
    tipo_bien: Optional[TipoBien] = None
    monto_reclamado: Decimal = Decimal("0")
    descripcion_bien: str
    area_queja: Optional[str] = None
    descripcion_situacion: Optional[str] = None
    fecha_incidente: date
    detalle_reclamo: str
    pedido_consumidor: str
    firma_digital: str
    acepta_terminos: bool = True
    acepta_copia: bool = False


def _text(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    return value if isinstance(value, str) else None


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _optional_text(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = _text(payload, key)
    return None if _is_blank(value) else value


def _parse_monto(raw: Any) -> Decimal:
    if raw is None or raw == "":
        return Decimal("0")
    if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
        raise ValidationException(MSG_MONTO_INVALIDO, field="monto_reclamado")
    if isinstance(raw, float) and not math.isfinite(raw):
        raise ValidationException(MSG_MONTO_INVALIDO, field="monto_reclamado")
    try:
        monto = Decimal(str(raw).strip())
        if not monto.is_finite() or monto < 0 or monto > MAX_MONTO:
            raise ValidationException(MSG_MONTO_INVALIDO, field="monto_reclamado")
        return monto.quantize(Decimal("0.01"))
    except InvalidOperation:
        raise ValidationException(MSG_MONTO_INVALIDO, field="monto_reclamado")


def _parse_fecha(raw: Any) -> date:
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationException(MSG_FECHA_INCIDENTE, field="fecha_incidente")
    try:
        # Acepta "YYYY-MM-DD" y también un datetime ISO recortado a fecha
        return date.fromisoformat(raw.strip()[:10])
    except ValueError:
        raise ValidationException(MSG_FECHA_INCIDENTE, field="fecha_incidente")


def validate(payload: Mapping[str, Any]) -> NormalizedClaim:
    """
    Valida un envío del formulario público.

    Args:
        payload: Cuerpo JSON recibido

    Returns:
        NormalizedClaim con defaults aplicados

    Raises:
        ValidationException: Primera regla incumplida (mensaje para el consumidor)
    """
    if not isinstance(payload, Mapping):
        raise ValidationException(MSG_TIPO_INVALIDO, field="tipo_solicitud")

    # 1. Tipo de solicitud
    tipo = payload.get("tipo_solicitud")
    if tipo not in (TipoSolicitud.RECLAMO.value, TipoSolicitud.QUEJA.value):
        raise ValidationException(MSG_TIPO_INVALIDO, field="tipo_solicitud")

    # 2. Firma
    firma = _text(payload, "firma_digital")
    if firma is None or not firma.startswith("data:image"):
        raise ValidationException(MSG_FIRMA_REQUERIDA, field="firma_digital")

    # 3. Términos (estrictamente True)
    if payload.get("acepta_terminos") is not True:
        raise ValidationException(MSG_TERMINOS, field="acepta_terminos")

    # 4. Email
    email = _text(payload, "email")
    if email is None or not EMAIL_RE.match(email):
        raise ValidationException(MSG_EMAIL_INVALIDO, field="email")

    # 5. Texto obligatorio
    descripcion_bien = _text(payload, "descripcion_bien")
    detalle = _text(payload, "detalle_reclamo")
    pedido = _text(payload, "pedido_consumidor")
    if _is_blank(descripcion_bien) or _is_blank(detalle) or _is_blank(pedido):
        raise ValidationException(MSG_FALTAN_DETALLES)

    # 6. Límites de longitud
    for field, limit in MAX_LENGTHS.items():
        value = _text(payload, field)
        if value is not None and len(value) > limit:
            raise ValidationException(MSG_EXCEDE_LIMITE, details={"limits": MAX_LENGTHS})

    # Identidad del consumidor
    identity = {
        key: _text(payload, key)
        for key in ("nombre_completo", "tipo_documento", "numero_documento", "telefono")
    }
    missing = [key for key, value in identity.items() if _is_blank(value)]
    if missing:
        raise ValidationException(MSG_FALTAN_DATOS_CONSUMIDOR, details={"fields": missing})

    for field, limit in FIELD_LIMITS.items():
        value = _text(payload, field)
        if value is not None and len(value) > limit:
            raise ValidationException(MSG_EXCEDE_LIMITE, field=field, details={"limit": limit})

    fecha_incidente = _parse_fecha(payload.get("fecha_incidente"))
    monto = _parse_monto(payload.get("monto_reclamado"))

    tipo_bien = payload.get("tipo_bien")
    if tipo_bien is None or (isinstance(tipo_bien, str) and not tipo_bien.strip()):
        tipo_bien = None
    elif tipo_bien not in (TipoBien.PRODUCTO.value, TipoBien.SERVICIO.value):
        raise ValidationException(MSG_TIPO_BIEN_INVALIDO, field="tipo_bien")

    return NormalizedClaim(
        tipo_solicitud=tipo,
        nombre_completo=identity["nombre_completo"].strip(),
        tipo_documento=identity["tipo_documento"].strip(),
        numero_documento=identity["numero_documento"].strip(),
        telefono=identity["telefono"].strip(),
        email=email,
        tipo_bien=tipo_bien,
        monto_reclamado=monto,
        descripcion_bien=descripcion_bien,
        fecha_incidente=fecha_incidente,
        detalle_reclamo=detalle,
        pedido_consumidor=pedido,
        firma_digital=firma,
        acepta_terminos=True,
        acepta_copia=payload.get("acepta_copia") is True,
        **{key: _optional_text(payload, key) for key in _OPTIONAL_TEXT_FIELDS},
    )
