"""
Modelo de Auditoría de acciones administrativas.

Registra las acciones sensibles del personal:
- Login
- Cambios de estado
- Respuestas y mensajes
- Gestión de usuarios
"""
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text

from app.core.database import Base, UTCDateTime


class AuditoriaAdmin(Base):
    """
    Registro de auditoría persistente.

    Cada entrada registra:
    - Quién: usuario_id
    - Qué: accion sobre entidad/entidad_id
    - Cuándo: fecha
    - Desde dónde: ip_address
    - Detalles: detalles (JSON)
    """
    __tablename__ = "auditoria_admin"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    usuario_id = Column(String(36), nullable=False, index=True)
    accion = Column(String(50), nullable=False, index=True)
    entidad = Column(String(50), nullable=False)
    entidad_id = Column(String(64), nullable=True, index=True)
    detalles = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    fecha = Column(UTCDateTime(), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditoriaAdmin {self.id}: {self.usuario_id} - {self.accion} @ {self.fecha}>"
