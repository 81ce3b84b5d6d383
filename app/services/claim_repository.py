"""
Persistencia de reclamos.

Cada operación abre su propia transacción sobre el `Database` inyectado.
El alta es todo-o-nada: código, plazo, fila del reclamo y entrada de
historial se confirman juntos o no se confirma nada.
"""
import base64
import binascii
import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.database import Database
from app.core.exceptions import (
    ClaimCodeCollisionException,
    ClaimNotFoundException,
    NotFoundException,
    PersistenceException,
)
from app.core.logger import get_logger
from app.core.telemetry import track_claim_created, track_code_collision
from app.models.claim import SENSITIVE_FIELDS, Reclamo
from app.models.enums import EstadoReclamo, TipoAccion
from app.models.history import HistorialReclamo
from app.services.claim_validator import NormalizedClaim
from app.services.code_sequencer import CodeSequencer

logger = get_logger()

SYSTEM_USER = "SISTEMA"

DEFAULT_PAGE_SIZE = 30
MAX_PAGE_SIZE = 100
PENDING_LIST_SIZE = 10

_DATA_URI_PREFIX = re.compile(r"^data:image/\w+;base64,")


@dataclass(frozen=True)
class PersistedClaim:
    """Campos del alta que necesita el caller."""

    id: str
    codigo_reclamo: str
    fecha_registro: datetime
    fecha_limite_respuesta: datetime


def compute_deadline(fecha_registro: datetime, days: int = 15) -> datetime:
    """Plazo legal: registro + N días calendario."""
    return fecha_registro + timedelta(days=days)


def dias_restantes(fecha_limite: datetime, now: Optional[datetime] = None) -> int:
    """Días completos hasta el plazo (negativo si venció)."""
    now = now or datetime.now(timezone.utc)
    return int((fecha_limite - now).total_seconds() // 86400)


def redact_claim(data: dict[str, Any]) -> dict[str, Any]:
    """Quita firma, IP y user agent de un reclamo serializado."""
    return {key: value for key, value in data.items() if key not in SENSITIVE_FIELDS}


class ClaimRepository:
    """
    Repositorio del agregado Reclamo.

    Args:
        database: Handle de base de datos
        settings: Configuración (prefijo, plazo, reintentos)
    """

    def __init__(self, database: Database, settings: Settings):
        self.database = database
        self.settings = settings
        self.sequencer = CodeSequencer(settings.claim_code_prefix)

    # =========================================================
    # ALTA
    # =========================================================

    def create(
        self,
        claim: NormalizedClaim,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PersistedClaim:
        """
        Registra un reclamo validado.

        Una colisión de código (IntegrityError) deshace la transacción
        completa y se reintenta con una lectura fresca hasta
        `claim_code_max_attempts` veces.

        Raises:
            ClaimCodeCollisionException: Colisión en todos los intentos
            PersistenceException: Cualquier otro fallo del store
        """
        attempts = self.settings.claim_code_max_attempts
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                persisted = self._insert(claim, ip_address, user_agent, now)
            except IntegrityError as e:
                last_error = e
                track_code_collision()
                logger.warning(
                    "Claim code collision, retrying",
                    action="claim_code_collision",
                    attempt=attempt,
                    max_attempts=attempts,
                )
                continue
            except SQLAlchemyError as e:
                logger.error("Claim insert failed", action="claim_create_failed", error=e)
                raise PersistenceException(original_error=e)

            track_claim_created(claim.tipo_solicitud)
            logger.info(
                "Claim registered",
                codigo_reclamo=persisted.codigo_reclamo,
                action="claim_created",
                tipo_solicitud=claim.tipo_solicitud,
                attempt=attempt,
            )
            return persisted

        logger.error(
            "Claim code collision on every attempt",
            action="claim_code_exhausted",
            error=last_error,
            attempts=attempts,
        )
        raise ClaimCodeCollisionException(attempts, original_error=last_error)

    def _insert(
        self,
        claim: NormalizedClaim,
        ip_address: Optional[str],
        user_agent: Optional[str],
        now: Optional[datetime],
    ) -> PersistedClaim:
        fecha_registro = now or datetime.now(timezone.utc)
        fecha_limite = compute_deadline(fecha_registro, self.settings.response_deadline_days)

        with self.database.session_scope() as session:
            codigo = self.sequencer.next_code(session, fecha_registro.year)

            reclamo = Reclamo(
                codigo_reclamo=codigo,
                **claim.model_dump(),
                ip_address=ip_address,
                user_agent=user_agent,
                fecha_registro=fecha_registro,
                fecha_limite_respuesta=fecha_limite,
                estado=EstadoReclamo.PENDIENTE.value,
            )
            session.add(reclamo)
            session.flush()

            session.add(
                HistorialReclamo(
                    reclamo_id=reclamo.id,
                    estado_anterior=None,
                    estado_nuevo=EstadoReclamo.PENDIENTE.value,
                    tipo_accion=TipoAccion.CREACION.value,
                    comentario=f"{claim.tipo_solicitud} registrado desde el formulario público",
                    usuario_accion=SYSTEM_USER,
                    fecha_accion=fecha_registro,
                )
            )

            persisted = PersistedClaim(
                id=reclamo.id,
                codigo_reclamo=codigo,
                fecha_registro=fecha_registro,
                fecha_limite_respuesta=fecha_limite,
            )

        return persisted

    # =========================================================
    # LECTURAS PÚBLICAS
    # =========================================================

    def get_by_code(self, codigo: str, redact: bool = True) -> dict[str, Any]:
        """
        Reclamo y su respuesta (si existe) por código público.

        Raises:
            ClaimNotFoundException
        """
        with self._read_scope() as session:
            reclamo = self._find_by_code(session, codigo)
            data = self._serialize(reclamo)
            return redact_claim(data) if redact else data

    def get_signature_image(self, codigo: str) -> bytes:
        """
        Bytes de la imagen de la firma (sin el prefijo data URI).

        Raises:
            ClaimNotFoundException, NotFoundException (firma ilegible)
        """
        with self._read_scope() as session:
            firma = session.execute(
                select(Reclamo.firma_digital).where(Reclamo.codigo_reclamo == codigo)
            ).scalar_one_or_none()

        if firma is None:
            raise ClaimNotFoundException(codigo)

        try:
            return base64.b64decode(_DATA_URI_PREFIX.sub("", firma, count=1))
        except (binascii.Error, ValueError):
            logger.warning("Unreadable signature payload", codigo_reclamo=codigo, action="signature_decode_failed")
            raise NotFoundException("Firma no disponible")

    def get_tracking(self, codigo: str, numero_documento: str) -> dict[str, Any]:
        """
        Vista de seguimiento para el consumidor.

        El documento debe coincidir con el del reclamo; si no, se responde
        igual que a un código inexistente.
        """
        with self._read_scope() as session:
            reclamo = session.execute(
                select(Reclamo).where(
                    Reclamo.codigo_reclamo == codigo,
                    Reclamo.numero_documento == numero_documento.strip(),
                )
            ).scalar_one_or_none()
            if reclamo is None:
                raise ClaimNotFoundException(codigo)

            data = redact_claim(self._serialize(reclamo))
            return {
                "reclamo": {k: v for k, v in data.items() if k != "respuesta"},
                "respuesta": data["respuesta"],
                "historial": [h.to_dict(include_comment=False) for h in reclamo.historial],
                "mensajes": [m.to_dict() for m in reclamo.mensajes],
            }

    def dashboard(self, now: Optional[datetime] = None) -> dict[str, Any]:
        """Estadísticas agregadas y los pendientes más urgentes."""
        now = now or datetime.now(timezone.utc)
        with self._read_scope() as session:
            estadisticas = self._stats(session, now)
            pendientes = session.execute(
                select(Reclamo)
                .where(
                    Reclamo.estado.in_(
                        [EstadoReclamo.PENDIENTE.value, EstadoReclamo.EN_PROCESO.value]
                    )
                )
                .order_by(Reclamo.fecha_limite_respuesta.asc(), Reclamo.codigo_reclamo.asc())
                .limit(PENDING_LIST_SIZE)
            ).scalars().all()

            return {
                "estadisticas": estadisticas,
                "pendientes": [self._summary(r, now) for r in pendientes],
            }

    # =========================================================
    # LECTURAS ADMIN
    # =========================================================

    def get_by_id(self, claim_id: str) -> dict[str, Any]:
        """
        Detalle completo para el panel (IP y user agent incluidos).

        La firma se sirve aparte por su endpoint binario.
        """
        with self._read_scope() as session:
            reclamo = session.get(Reclamo, claim_id)
            if reclamo is None:
                raise ClaimNotFoundException(claim_id)

            data = self._serialize(reclamo)
            data.pop("firma_digital", None)
            data["dias_restantes"] = dias_restantes(reclamo.fecha_limite_respuesta)
            data["total_mensajes"] = len(reclamo.mensajes)
            return data

    def list_claims(
        self,
        estado: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> dict[str, Any]:
        """
        Listado paginado con filtro por estado y búsqueda libre
        (código, nombre, email o documento).
        """
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        now = datetime.now(timezone.utc)

        filters = []
        if estado:
            filters.append(Reclamo.estado == estado)
        if search and search.strip():
            pattern = f"%{search.strip().lower()}%"
            filters.append(
                or_(
                    func.lower(Reclamo.codigo_reclamo).like(pattern),
                    func.lower(Reclamo.nombre_completo).like(pattern),
                    func.lower(Reclamo.email).like(pattern),
                    Reclamo.numero_documento.like(pattern),
                )
            )

        with self._read_scope() as session:
            total = session.execute(
                select(func.count()).select_from(Reclamo).where(*filters)
            ).scalar_one()

            rows = session.execute(
                select(Reclamo)
                .where(*filters)
                .order_by(Reclamo.fecha_registro.desc(), Reclamo.codigo_reclamo.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).scalars().all()

            items = [self._summary(r, now) for r in rows]

        total_pages = math.ceil(total / limit) if total else 0
        return {
            "items": items,
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "total_pages": total_pages,
                "has_next": page < total_pages,
                "has_prev": page > 1,
            },
        }

    # =========================================================
    # HELPERS
    # =========================================================

    def _read_scope(self):
        return self.database.session_scope()

    @staticmethod
    def _find_by_code(session: Session, codigo: str) -> Reclamo:
        reclamo = session.execute(
            select(Reclamo).where(Reclamo.codigo_reclamo == codigo)
        ).scalar_one_or_none()
        if reclamo is None:
            raise ClaimNotFoundException(codigo)
        return reclamo

    @staticmethod
    def _serialize(reclamo: Reclamo) -> dict[str, Any]:
        data = reclamo.to_dict()
        data["respuesta"] = reclamo.respuesta.to_dict() if reclamo.respuesta else None
        return data

    @staticmethod
    def _summary(reclamo: Reclamo, now: datetime) -> dict[str, Any]:
        return {
            "id": reclamo.id,
            "codigo_reclamo": reclamo.codigo_reclamo,
            "tipo_solicitud": reclamo.tipo_solicitud,
            "nombre_completo": reclamo.nombre_completo,
            "numero_documento": reclamo.numero_documento,
            "email": reclamo.email,
            "estado": reclamo.estado,
            "fecha_registro": reclamo.fecha_registro,
            "fecha_limite_respuesta": reclamo.fecha_limite_respuesta,
            "dias_restantes": dias_restantes(reclamo.fecha_limite_respuesta, now),
        }

    @staticmethod
    def _stats(session: Session, now: datetime) -> dict[str, Any]:
        por_estado = dict(
            session.execute(
                select(Reclamo.estado, func.count()).group_by(Reclamo.estado)
            ).all()
        )

        inicio_dia = now.replace(hour=0, minute=0, second=0, microsecond=0)
        inicio_mes = inicio_dia.replace(day=1)

        def _count_since(since: datetime) -> int:
            return session.execute(
                select(func.count()).select_from(Reclamo).where(Reclamo.fecha_registro >= since)
            ).scalar_one()

        resueltos = session.execute(
            select(Reclamo.fecha_registro, Reclamo.fecha_respuesta).where(
                Reclamo.fecha_respuesta.is_not(None)
            )
        ).all()
        promedio = None
        if resueltos:
            total_dias = sum(
                (respuesta - registro).total_seconds() / 86400 for registro, respuesta in resueltos
            )
            promedio = round(total_dias / len(resueltos), 1)

        return {
            "total": sum(por_estado.values()),
            "pendientes": por_estado.get(EstadoReclamo.PENDIENTE.value, 0),
            "en_proceso": por_estado.get(EstadoReclamo.EN_PROCESO.value, 0),
            "resueltos": por_estado.get(EstadoReclamo.RESUELTO.value, 0),
            "cerrados": por_estado.get(EstadoReclamo.CERRADO.value, 0),
            "hoy": _count_since(inicio_dia),
            "semana": _count_since(now - timedelta(days=7)),
            "mes": _count_since(inicio_mes),
            "promedio_dias_resolucion": promedio,
        }
