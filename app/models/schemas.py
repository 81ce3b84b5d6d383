"""
Modelos Pydantic de entrada de la API administrativa y del seguimiento.

Las reglas de negocio (longitudes, set-once, roles) se validan en los
servicios para devolver los mensajes propios del dominio.
"""
from typing import Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str
    password: str


class StatusUpdateRequest(BaseModel):
    """Cambio de estado con comentario interno opcional."""

    estado: str
    comentario: Optional[str] = Field(default=None, description="Nota interna, no visible al consumidor")


class ResponseRequest(BaseModel):
    respuesta_empresa: str
    accion_tomada: Optional[str] = None
    compensacion_ofrecida: Optional[str] = None


class MessageRequest(BaseModel):
    mensaje: str


class ClientMessageRequest(BaseModel):
    """Mensaje del consumidor desde la página de seguimiento."""

    numero_documento: str
    mensaje: str


class UserCreateRequest(BaseModel):
    email: str
    nombre_completo: str
    password: str
    rol: str = "SOPORTE"


class UserUpdateRequest(BaseModel):
    nombre_completo: Optional[str] = None
    rol: Optional[str] = None
    activo: Optional[bool] = None


class PasswordChangeRequest(BaseModel):
    password: str
