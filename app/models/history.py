"""
Historial de acciones sobre un reclamo.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, UTCDateTime

if TYPE_CHECKING:
    from app.models.claim import Reclamo


class HistorialReclamo(Base):
    """
    Tabla: historial_reclamos

    `comentario` es interno: no se expone en la vista pública de seguimiento.
    """

    __tablename__ = "historial_reclamos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reclamo_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("reclamos.id", ondelete="CASCADE"), nullable=False, index=True
    )
    estado_anterior: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    estado_nuevo: Mapped[str] = mapped_column(String(20), nullable=False)
    tipo_accion: Mapped[str] = mapped_column(String(30), nullable=False)
    comentario: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    usuario_accion: Mapped[str] = mapped_column(String(255), nullable=False)
    fecha_accion: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    reclamo: Mapped["Reclamo"] = relationship(back_populates="historial")

    def to_dict(self, include_comment: bool = True) -> dict[str, Any]:
        data = {
            "id": self.id,
            "estado_anterior": self.estado_anterior,
            "estado_nuevo": self.estado_nuevo,
            "tipo_accion": self.tipo_accion,
            "usuario_accion": self.usuario_accion,
            "fecha_accion": self.fecha_accion,
        }
        if include_comment:
            data["comentario"] = self.comentario
        return data
