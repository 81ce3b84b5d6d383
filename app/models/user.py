"""
Modelo de Usuario administrativo para autenticación y autorización.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, String

from app.core.database import Base, UTCDateTime
from app.models.enums import RolUsuario


class UsuarioAdmin(Base):
    """
    Personal que atiende reclamos.

    Tabla: usuarios_admin
    """

    __tablename__ = "usuarios_admin"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    nombre_completo = Column(String(200), nullable=False)
    password_hash = Column(String(255), nullable=False)
    rol = Column(String(20), nullable=False, default=RolUsuario.SOPORTE.value)
    activo = Column(Boolean, default=True, nullable=False)
    debe_cambiar_password = Column(Boolean, default=False, nullable=False)
    ultimo_acceso = Column(UTCDateTime(), nullable=True)
    fecha_creacion = Column(UTCDateTime(), default=lambda: datetime.now(timezone.utc), nullable=False)
    creado_por = Column(String(36), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "nombre_completo": self.nombre_completo,
            "rol": self.rol,
            "activo": self.activo,
            "debe_cambiar_password": self.debe_cambiar_password,
            "ultimo_acceso": self.ultimo_acceso,
            "fecha_creacion": self.fecha_creacion,
        }

    def __repr__(self):
        return f"<UsuarioAdmin(id={self.id}, email={self.email}, rol={self.rol})>"
