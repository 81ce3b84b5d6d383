"""
Respuesta de la empresa a un reclamo (cero o una por reclamo).
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, UTCDateTime

if TYPE_CHECKING:
    from app.models.claim import Reclamo


class Respuesta(Base):
    """
    Tabla: respuestas

    UNIQUE en reclamo_id: la primera respuesta gana y no se reemplaza.
    """

    __tablename__ = "respuestas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reclamo_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("reclamos.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    respuesta_empresa: Mapped[str] = mapped_column(Text, nullable=False)
    accion_tomada: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    compensacion_ofrecida: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    respondido_por: Mapped[str] = mapped_column(String(255), nullable=False)
    fecha_respuesta: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    reclamo: Mapped["Reclamo"] = relationship(back_populates="respuesta")

    def to_dict(self) -> dict[str, Any]:
        return {
            "respuesta_empresa": self.respuesta_empresa,
            "accion_tomada": self.accion_tomada,
            "compensacion_ofrecida": self.compensacion_ofrecida,
            "respondido_por": self.respondido_por,
            "fecha_respuesta": self.fecha_respuesta,
        }
