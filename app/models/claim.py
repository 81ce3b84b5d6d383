"""
Modelo de Reclamo (raíz del agregado) y contador de códigos por año.
"""
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, UTCDateTime
from app.models.enums import EstadoReclamo

if TYPE_CHECKING:
    from app.models.history import HistorialReclamo
    from app.models.message import MensajeSeguimiento
    from app.models.response import Respuesta


# Campos write-once que solo ven el endpoint de firma y el detalle admin
SENSITIVE_FIELDS = ("firma_digital", "ip_address", "user_agent")


class Reclamo(Base):
    """
    Reclamo o queja registrado en el Libro de Reclamaciones.

    Tabla: reclamos

    `codigo_reclamo` es único e inmutable. `fecha_limite_respuesta` siempre
    se deriva de `fecha_registro`; nunca viene del cliente.
    """

    __tablename__ = "reclamos"
    __table_args__ = (
        CheckConstraint("tipo_solicitud IN ('RECLAMO', 'QUEJA')", name="ck_reclamos_tipo"),
        CheckConstraint(
            "estado IN ('PENDIENTE', 'EN_PROCESO', 'RESUELTO', 'CERRADO')",
            name="ck_reclamos_estado",
        ),
        CheckConstraint("acepta_terminos = true", name="ck_reclamos_terminos"),
        CheckConstraint("monto_reclamado >= 0", name="ck_reclamos_monto"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    codigo_reclamo: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, index=True
    )
    tipo_solicitud: Mapped[str] = mapped_column(String(10), nullable=False)

    # Consumidor
    nombre_completo: Mapped[str] = mapped_column(String(200), nullable=False)
    tipo_documento: Mapped[str] = mapped_column(String(20), nullable=False)
    numero_documento: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    telefono: Mapped[str] = mapped_column(String(20), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    domicilio: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    departamento: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    provincia: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    distrito: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Bien contratado y detalle
    tipo_bien: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    monto_reclamado: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    descripcion_bien: Mapped[str] = mapped_column(Text, nullable=False)
    area_queja: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    descripcion_situacion: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    fecha_incidente: Mapped[date] = mapped_column(Date, nullable=False)
    detalle_reclamo: Mapped[str] = mapped_column(Text, nullable=False)
    pedido_consumidor: Mapped[str] = mapped_column(Text, nullable=False)

    # Procedencia (write-once)
    firma_digital: Mapped[str] = mapped_column(Text, nullable=False)
    acepta_terminos: Mapped[bool] = mapped_column(Boolean, nullable=False)
    acepta_copia: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    # Tiempos
    fecha_registro: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, index=True
    )
    fecha_limite_respuesta: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False
    )
    fecha_respuesta: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )

    # Ciclo de vida
    estado: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EstadoReclamo.PENDIENTE.value, index=True
    )
    atendido_por: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("usuarios_admin.id"), nullable=True
    )

    respuesta: Mapped[Optional["Respuesta"]] = relationship(
        back_populates="reclamo", uselist=False, cascade="all, delete-orphan"
    )
    mensajes: Mapped[List["MensajeSeguimiento"]] = relationship(
        back_populates="reclamo",
        cascade="all, delete-orphan",
        order_by="(MensajeSeguimiento.fecha_mensaje, MensajeSeguimiento.id)",
    )
    historial: Mapped[List["HistorialReclamo"]] = relationship(
        back_populates="reclamo",
        cascade="all, delete-orphan",
        order_by="(HistorialReclamo.fecha_accion, HistorialReclamo.id)",
    )

    def to_dict(self) -> dict[str, Any]:
        """Serializa todas las columnas (incluye campos sensibles)."""
        data = {column.name: getattr(self, column.name) for column in self.__table__.columns}
        if data.get("monto_reclamado") is not None:
            data["monto_reclamado"] = float(data["monto_reclamado"])
        return data

    def __repr__(self):
        return f"<Reclamo(codigo={self.codigo_reclamo}, estado={self.estado})>"


class SecuenciaReclamo(Base):
    """
    Contador atómico del último número asignado por año.

    Tabla: secuencias_reclamo
    """

    __tablename__ = "secuencias_reclamo"

    anio: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    ultimo_numero: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<SecuenciaReclamo(anio={self.anio}, ultimo={self.ultimo_numero})>"
