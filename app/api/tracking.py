"""
Seguimiento público del reclamo por código + número de documento.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_claim_repository, get_lifecycle
from app.core.exceptions import ValidationException
from app.models.schemas import ClientMessageRequest
from app.services.claim_lifecycle import ClaimLifecycle
from app.services.claim_repository import ClaimRepository

router = APIRouter(prefix="/api/tracking", tags=["tracking"])


@router.get("/{codigo}", summary="Estado, respuesta, historial y mensajes de un reclamo")
def get_tracking(
    codigo: str,
    documento: Optional[str] = Query(default=None, description="Número de documento del consumidor"),
    repository: ClaimRepository = Depends(get_claim_repository),
):
    """
    El historial se devuelve sin los comentarios internos del personal.
    """
    if not documento or not documento.strip():
        raise ValidationException("Número de documento requerido", field="documento")

    return {"success": True, "data": repository.get_tracking(codigo, documento)}


@router.post(
    "/{codigo}/messages",
    status_code=status.HTTP_201_CREATED,
    summary="Mensaje del consumidor",
)
def post_client_message(
    codigo: str,
    body: ClientMessageRequest,
    lifecycle: ClaimLifecycle = Depends(get_lifecycle),
):
    message = lifecycle.add_client_message(codigo, body.numero_documento, body.mensaje)
    return {"success": True, "message": "Mensaje enviado", "data": message}
