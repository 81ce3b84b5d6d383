"""
Ciclo de vida del reclamo: estados, respuesta de la empresa y mensajes.

Estados: PENDIENTE -> EN_PROCESO -> RESUELTO -> CERRADO. El panel permite
saltar de cualquier estado a cualquier otro; la única restricción es de
capacidad: solo quien tiene `claim:close` (ADMIN) puede cerrar.
"""
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.audit import log_audit
from app.core.exceptions import (
    ClaimNotFoundException,
    InsufficientPermissionsException,
    ResponseAlreadyExistsException,
    ValidationException,
)
from app.core.logger import StructuredLogger
from app.core.security import Permission, has_permission
from app.core.telemetry import track_status_transition
from app.models.claim import Reclamo
from app.models.enums import EstadoReclamo, TipoAccion, TipoMensaje
from app.models.history import HistorialReclamo
from app.models.message import MAX_MESSAGE_LENGTH, MensajeSeguimiento
from app.models.response import Respuesta
from app.models.user import UsuarioAdmin
from app.services.base import BaseService
from app.services.notifications import NotificationDispatcher, NotificationWorker

MIN_RESPONSE_LENGTH = 10


def allowed_states(rol: str) -> list[EstadoReclamo]:
    """Estados que el rol puede asignar."""
    if has_permission(rol, Permission.CLAIM_CLOSE):
        return list(EstadoReclamo)
    if has_permission(rol, Permission.CLAIM_UPDATE_STATUS):
        return [e for e in EstadoReclamo if e is not EstadoReclamo.CERRADO]
    return []


def check_transition(rol: str, target: str) -> EstadoReclamo:
    """
    Comprueba que el rol puede llevar un reclamo al estado `target`.

    Raises:
        ValidationException: Estado desconocido
        InsufficientPermissionsException: El rol no puede asignar ese estado
    """
    try:
        estado = EstadoReclamo(target)
    except ValueError:
        raise ValidationException("Estado inválido", field="estado")

    if estado not in allowed_states(rol):
        required = (
            Permission.CLAIM_CLOSE if estado is EstadoReclamo.CERRADO else Permission.CLAIM_UPDATE_STATUS
        )
        raise InsufficientPermissionsException(
            required.value,
            message=(
                "Solo un administrador puede cerrar un reclamo"
                if estado is EstadoReclamo.CERRADO
                else None
            ),
        )
    return estado


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ClaimLifecycle(BaseService):
    """
    Acciones del personal (y del consumidor en el seguimiento) sobre un
    reclamo ya registrado.
    """

    def __init__(
        self,
        db: Session,
        dispatcher: Optional[NotificationDispatcher] = None,
        worker: Optional[NotificationWorker] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        super().__init__(db, logger)
        self.dispatcher = dispatcher
        self.worker = worker

    # =========================================================
    # ESTADOS
    # =========================================================

    def change_status(
        self,
        claim_id: str,
        target: str,
        actor: UsuarioAdmin,
        comentario: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Cambia el estado de un reclamo.

        Asignar el estado actual se acepta: no cambia nada pero queda en el
        historial.
        """
        estado = check_transition(actor.rol, target)
        reclamo = self._get_claim(claim_id)
        anterior = reclamo.estado

        reclamo.estado = estado.value
        self._add_history(
            reclamo,
            anterior,
            TipoAccion.CAMBIO_ESTADO,
            actor.nombre_completo,
            comentario.strip() if comentario and comentario.strip() else None,
        )
        self._commit("change_status", reclamo.codigo_reclamo)

        track_status_transition(estado.value)
        self._log_info(
            f"Status changed {anterior} -> {estado.value}",
            codigo_reclamo=reclamo.codigo_reclamo,
            action="status_changed",
            user_id=actor.id,
            rol=actor.rol,
        )
        log_audit(
            self.db,
            usuario_id=actor.id,
            accion="CAMBIO_ESTADO",
            entidad="reclamo",
            entidad_id=reclamo.id,
            detalles={"estado_anterior": anterior, "estado_nuevo": estado.value},
            ip_address=ip_address,
        )

        return {
            "id": reclamo.id,
            "codigo_reclamo": reclamo.codigo_reclamo,
            "estado_anterior": anterior,
            "estado": reclamo.estado,
        }

    # =========================================================
    # RESPUESTA
    # =========================================================

    def record_response(
        self,
        claim_id: str,
        respuesta_empresa: str,
        actor: UsuarioAdmin,
        accion_tomada: Optional[str] = None,
        compensacion_ofrecida: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Registra la respuesta de la empresa (una sola vez por reclamo).

        Deja el reclamo en RESUELTO.

        Raises:
            ValidationException: Respuesta de menos de 10 caracteres
            ResponseAlreadyExistsException: El reclamo ya tiene respuesta
        """
        if not respuesta_empresa or len(respuesta_empresa.strip()) < MIN_RESPONSE_LENGTH:
            raise ValidationException(
                f"La respuesta debe tener al menos {MIN_RESPONSE_LENGTH} caracteres",
                field="respuesta_empresa",
            )

        reclamo = self._get_claim(claim_id)
        if reclamo.respuesta is not None:
            raise ResponseAlreadyExistsException(claim_id)

        now = _now()
        anterior = reclamo.estado
        respuesta = Respuesta(
            reclamo_id=reclamo.id,
            respuesta_empresa=respuesta_empresa.strip(),
            accion_tomada=accion_tomada or None,
            compensacion_ofrecida=compensacion_ofrecida or None,
            respondido_por=actor.nombre_completo,
            fecha_respuesta=now,
        )
        reclamo.respuesta = respuesta

        reclamo.estado = EstadoReclamo.RESUELTO.value
        reclamo.fecha_respuesta = now
        reclamo.atendido_por = actor.id
        self._add_history(
            reclamo, anterior, TipoAccion.RESPUESTA, actor.nombre_completo, "Respuesta registrada"
        )

        try:
            self.db.commit()
        except IntegrityError:
            # Otra respuesta ganó la carrera (UNIQUE en reclamo_id)
            self.db.rollback()
            raise ResponseAlreadyExistsException(claim_id)

        track_status_transition(EstadoReclamo.RESUELTO.value)
        self._log_info(
            "Response recorded",
            codigo_reclamo=reclamo.codigo_reclamo,
            action="response_recorded",
            user_id=actor.id,
        )
        log_audit(
            self.db,
            usuario_id=actor.id,
            accion="RESPUESTA",
            entidad="reclamo",
            entidad_id=reclamo.id,
            ip_address=ip_address,
        )

        return respuesta.to_dict()

    # =========================================================
    # MENSAJES
    # =========================================================

    def add_message(
        self,
        claim_id: str,
        tipo_mensaje: str,
        mensaje: str,
        autor: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Agrega un mensaje al hilo (append-only).

        Raises:
            ValidationException: Mensaje vacío, de más de 1000 caracteres o tipo inválido
        """
        reclamo = self._get_claim(claim_id)
        created = self._append_message(reclamo, tipo_mensaje, mensaje, autor)
        self._commit("add_message", reclamo.codigo_reclamo)

        self._log_info(
            "Message added",
            codigo_reclamo=reclamo.codigo_reclamo,
            action="message_added",
            tipo_mensaje=created.tipo_mensaje,
        )
        return created.to_dict()

    def list_messages(self, claim_id: str) -> list[dict[str, Any]]:
        """Mensajes del reclamo en orden cronológico ascendente."""
        self._get_claim(claim_id)
        mensajes = self.db.execute(
            select(MensajeSeguimiento)
            .where(MensajeSeguimiento.reclamo_id == claim_id)
            .order_by(MensajeSeguimiento.fecha_mensaje.asc(), MensajeSeguimiento.id.asc())
        ).scalars().all()
        return [m.to_dict() for m in mensajes]

    def add_client_message(self, codigo: str, numero_documento: str, mensaje: str) -> dict[str, Any]:
        """
        Mensaje del consumidor desde el seguimiento público.

        Tras el commit se encola el aviso a soporte.
        """
        reclamo = self.db.execute(
            select(Reclamo).where(
                Reclamo.codigo_reclamo == codigo,
                Reclamo.numero_documento == (numero_documento or "").strip(),
            )
        ).scalar_one_or_none()
        if reclamo is None:
            raise ClaimNotFoundException(codigo)

        created = self._append_message(
            reclamo, TipoMensaje.CLIENTE.value, mensaje, reclamo.nombre_completo
        )
        self._commit("add_client_message", reclamo.codigo_reclamo)

        self._log_info(
            "Client message added",
            codigo_reclamo=reclamo.codigo_reclamo,
            action="client_message_added",
        )

        if self.dispatcher is not None and self.worker is not None:
            self.worker.submit(
                self.dispatcher.notify_client_message,
                reclamo.codigo_reclamo,
                reclamo.tipo_solicitud,
                reclamo.nombre_completo,
                reclamo.numero_documento,
                created.mensaje,
            )

        return created.to_dict()

    # =========================================================
    # HISTORIAL
    # =========================================================

    def history(self, claim_id: str) -> list[dict[str, Any]]:
        """Historial completo (con comentarios internos)."""
        self._get_claim(claim_id)
        entries = self.db.execute(
            select(HistorialReclamo)
            .where(HistorialReclamo.reclamo_id == claim_id)
            .order_by(HistorialReclamo.fecha_accion.asc(), HistorialReclamo.id.asc())
        ).scalars().all()
        return [h.to_dict() for h in entries]

    # =========================================================
    # HELPERS
    # =========================================================

    def _commit(self, context: str, codigo_reclamo: Optional[str] = None) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise self._handle_exception(e, context, codigo_reclamo)

    def _get_claim(self, claim_id: str) -> Reclamo:
        reclamo = self.db.get(Reclamo, claim_id)
        if reclamo is None:
            raise ClaimNotFoundException(claim_id)
        return reclamo

    def _append_message(
        self, reclamo: Reclamo, tipo_mensaje: str, mensaje: str, autor: Optional[str]
    ) -> MensajeSeguimiento:
        if tipo_mensaje not in (TipoMensaje.CLIENTE.value, TipoMensaje.EMPRESA.value):
            raise ValidationException("Tipo de mensaje inválido", field="tipo_mensaje")
        if not isinstance(mensaje, str) or not mensaje.strip():
            raise ValidationException("El mensaje no puede estar vacío", field="mensaje")
        if len(mensaje) > MAX_MESSAGE_LENGTH:
            raise ValidationException(
                f"El mensaje no puede superar los {MAX_MESSAGE_LENGTH} caracteres",
                field="mensaje",
            )

        created = MensajeSeguimiento(
            reclamo_id=reclamo.id,
            tipo_mensaje=tipo_mensaje,
            mensaje=mensaje,
            autor=autor,
            fecha_mensaje=_now(),
        )
        self.db.add(created)

        accion = (
            TipoAccion.MENSAJE_CLIENTE
            if tipo_mensaje == TipoMensaje.CLIENTE.value
            else TipoAccion.MENSAJE_EMPRESA
        )
        self._add_history(reclamo, reclamo.estado, accion, autor or tipo_mensaje, None)
        self.db.flush()
        return created

    def _add_history(
        self,
        reclamo: Reclamo,
        anterior: Optional[str],
        accion: TipoAccion,
        usuario: str,
        comentario: Optional[str],
    ) -> None:
        self.db.add(
            HistorialReclamo(
                reclamo_id=reclamo.id,
                estado_anterior=anterior,
                estado_nuevo=reclamo.estado,
                tipo_accion=accion.value,
                comentario=comentario,
                usuario_accion=usuario,
                fecha_accion=_now(),
            )
        )
