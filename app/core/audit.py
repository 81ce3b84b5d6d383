"""
Helpers de auditoría de acciones del personal.

Funciones para registrar acciones sensibles en la base de datos.
"""
import json
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.models.audit_log import AuditoriaAdmin

logger = logging.getLogger(__name__)


def log_audit(
    db: Session,
    usuario_id: str,
    accion: str,
    entidad: str,
    entidad_id: Optional[str] = None,
    detalles: Optional[dict] = None,
    ip_address: Optional[str] = None,
    commit: bool = True,
) -> Optional[AuditoriaAdmin]:
    """
    Registra una acción en la auditoría persistente.

    Se llama después del commit de la acción de negocio: un fallo aquí
    solo deshace la entrada de auditoría.

    Args:
        db: Sesión de base de datos
        usuario_id: ID del usuario que realizó la acción
        accion: Tipo de acción ("LOGIN", "CAMBIO_ESTADO", "RESPUESTA", ...)
        entidad: Entidad afectada ("reclamo", "usuario")
        entidad_id: ID de la entidad afectada (opcional)
        detalles: Diccionario con detalles adicionales
        ip_address: IP del cliente
        commit: Si True, hace commit automáticamente

    Returns:
        AuditoriaAdmin creado, o None si falló
    """
    try:
        audit_entry = AuditoriaAdmin(
            usuario_id=usuario_id,
            accion=accion,
            entidad=entidad,
            entidad_id=entidad_id,
            detalles=json.dumps(detalles, default=str) if detalles else None,
            ip_address=ip_address,
        )

        db.add(audit_entry)

        if commit:
            db.commit()

        logger.debug(f"Audit log created: {usuario_id} - {accion} - {entidad_id}")

        return audit_entry

    except Exception as e:
        logger.error(f"Error creating audit log: {e}")
        if commit:
            db.rollback()
        # No fallar por error de auditoría
        return None
