"""
Formulario público del Libro de Reclamaciones.

Flujo del alta:
1. Validación (sin tocar la base de datos)
2. Transacción: código + plazo + fila + historial
3. Tras el commit, notificaciones en el worker (nunca se esperan)
"""
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request, Response, status

from app.api.deps import (
    get_app_settings,
    get_claim_repository,
    get_dispatcher,
    get_notification_worker,
)
from app.core.config import Settings
from app.core.exceptions import ValidationException
from app.core.logger import get_logger
from app.core.security import claims_rate_limit, get_client_ip, limiter
from app.core.telemetry import track_validation_rejection
from app.services.claim_repository import ClaimRepository
from app.services.claim_validator import validate
from app.services.notifications import NotificationDispatcher, NotificationWorker

logger = get_logger()

router = APIRouter(prefix="/api/claims", tags=["claims"])

# Ancho de columna de reclamos.user_agent
USER_AGENT_MAX_LENGTH = 512


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Registrar un reclamo o queja",
)
@limiter.limit(claims_rate_limit)
def create_claim(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    repository: ClaimRepository = Depends(get_claim_repository),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    worker: NotificationWorker = Depends(get_notification_worker),
    settings: Settings = Depends(get_app_settings),
):
    """
    Registra un reclamo.

    400 ante cualquier regla incumplida, sin efectos en la base de datos.
    Un fallo de notificación no altera el 201.
    """
    try:
        submission = validate(payload)
    except ValidationException as e:
        track_validation_rejection()
        logger.info("Claim rejected", action="claim_rejected", reason=e.message)
        raise

    persisted = repository.create(
        submission,
        ip_address=get_client_ip(request),
        user_agent=(request.headers.get("user-agent") or "")[:USER_AGENT_MAX_LENGTH] or None,
    )

    worker.submit(dispatcher.dispatch, persisted, submission)

    return {
        "success": True,
        "message": "Reclamo registrado exitosamente",
        "data": {
            "codigo_reclamo": persisted.codigo_reclamo,
            "fecha_registro": persisted.fecha_registro,
            "fecha_limite_respuesta": persisted.fecha_limite_respuesta,
            "plazo_dias": settings.response_deadline_days,
        },
    }


@router.get("/{codigo}", summary="Consultar un reclamo por código")
def get_claim(codigo: str, repository: ClaimRepository = Depends(get_claim_repository)):
    return {"success": True, "data": repository.get_by_code(codigo)}


@router.get(
    "/{codigo}/signature",
    summary="Imagen de la firma digital",
    response_class=Response,
)
def get_signature(codigo: str, repository: ClaimRepository = Depends(get_claim_repository)):
    image = repository.get_signature_image(codigo)
    return Response(content=image, media_type="image/png")
