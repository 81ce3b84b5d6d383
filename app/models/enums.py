"""
Conjuntos cerrados del dominio.
"""
from enum import Enum


class TipoSolicitud(str, Enum):
    """RECLAMO: producto/calidad. QUEJA: atención/servicio."""

    RECLAMO = "RECLAMO"
    QUEJA = "QUEJA"


class EstadoReclamo(str, Enum):
    """Estados del ciclo de vida de un reclamo."""

    PENDIENTE = "PENDIENTE"
    EN_PROCESO = "EN_PROCESO"
    RESUELTO = "RESUELTO"
    CERRADO = "CERRADO"


class TipoBien(str, Enum):
    PRODUCTO = "PRODUCTO"
    SERVICIO = "SERVICIO"


class TipoMensaje(str, Enum):
    """Origen de un mensaje del hilo de seguimiento."""

    CLIENTE = "CLIENTE"
    EMPRESA = "EMPRESA"


class TipoAccion(str, Enum):
    """Tipo de entrada en el historial de un reclamo."""

    CREACION = "CREACION"
    CAMBIO_ESTADO = "CAMBIO_ESTADO"
    RESPUESTA = "RESPUESTA"
    MENSAJE_CLIENTE = "MENSAJE_CLIENTE"
    MENSAJE_EMPRESA = "MENSAJE_EMPRESA"


class RolUsuario(str, Enum):
    """Roles del personal administrativo."""

    ADMIN = "ADMIN"
    SOPORTE = "SOPORTE"
