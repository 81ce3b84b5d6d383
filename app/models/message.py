"""
Mensajes del hilo de seguimiento entre consumidor y empresa.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, UTCDateTime

if TYPE_CHECKING:
    from app.models.claim import Reclamo


MAX_MESSAGE_LENGTH = 1000


class MensajeSeguimiento(Base):
    """
    Tabla: mensajes_seguimiento

    Append-only: no hay edición ni borrado. El id autoincremental desempata
    mensajes con el mismo timestamp.
    """

    __tablename__ = "mensajes_seguimiento"
    __table_args__ = (
        CheckConstraint("tipo_mensaje IN ('CLIENTE', 'EMPRESA')", name="ck_mensajes_tipo"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reclamo_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("reclamos.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tipo_mensaje: Mapped[str] = mapped_column(String(10), nullable=False)
    mensaje: Mapped[str] = mapped_column(Text, nullable=False)
    autor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    fecha_mensaje: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    reclamo: Mapped["Reclamo"] = relationship(back_populates="mensajes")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tipo_mensaje": self.tipo_mensaje,
            "mensaje": self.mensaje,
            "autor": self.autor,
            "fecha_mensaje": self.fecha_mensaje,
        }
