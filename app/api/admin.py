"""
API del panel administrativo (bearer token).

Cada endpoint declara el permiso que necesita; el cierre de reclamos se
comprueba además dentro de ClaimLifecycle.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from app.api.deps import get_claim_repository, get_lifecycle, get_user_service
from app.core.security import (
    ROLE_PERMISSIONS,
    Permission,
    get_client_ip,
    get_current_user,
    require_permission,
)
from app.models.enums import RolUsuario, TipoMensaje
from app.models.schemas import (
    LoginRequest,
    MessageRequest,
    ResponseRequest,
    StatusUpdateRequest,
)
from app.models.user import UsuarioAdmin
from app.services.claim_lifecycle import ClaimLifecycle, allowed_states
from app.services.claim_repository import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, ClaimRepository
from app.services.user_service import UserService

router = APIRouter(prefix="/api/admin", tags=["admin"])


# =========================================================
# AUTENTICACIÓN
# =========================================================


@router.post("/auth/login", summary="Login del personal")
def login(
    body: LoginRequest,
    request: Request,
    users: UserService = Depends(get_user_service),
):
    result = users.authenticate(body.email, body.password, ip_address=get_client_ip(request))
    return {"success": True, "data": result}


@router.get("/me", summary="Usuario autenticado")
def me(current_user: UsuarioAdmin = Depends(get_current_user)):
    permisos = ROLE_PERMISSIONS.get(RolUsuario(current_user.rol), [])
    return {
        "success": True,
        "data": {
            **current_user.to_dict(),
            "permisos": [p.value for p in permisos],
            "estados_permitidos": [e.value for e in allowed_states(current_user.rol)],
        },
    }


# =========================================================
# RECLAMOS
# =========================================================


@router.get("/claims", summary="Listado paginado de reclamos")
def list_claims(
    estado: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    repository: ClaimRepository = Depends(get_claim_repository),
    current_user: UsuarioAdmin = Depends(require_permission(Permission.CLAIM_READ)),
):
    result = repository.list_claims(estado=estado, search=search, page=page, limit=limit)
    return {"success": True, "data": result["items"], "pagination": result["pagination"]}


@router.get("/claims/{claim_id}", summary="Detalle de un reclamo")
def get_claim(
    claim_id: str,
    repository: ClaimRepository = Depends(get_claim_repository),
    current_user: UsuarioAdmin = Depends(require_permission(Permission.CLAIM_READ)),
):
    return {"success": True, "data": repository.get_by_id(claim_id)}


@router.put("/claims/{claim_id}/status", summary="Cambiar estado")
def update_status(
    claim_id: str,
    body: StatusUpdateRequest,
    request: Request,
    lifecycle: ClaimLifecycle = Depends(get_lifecycle),
    current_user: UsuarioAdmin = Depends(require_permission(Permission.CLAIM_UPDATE_STATUS)),
):
    result = lifecycle.change_status(
        claim_id,
        body.estado,
        actor=current_user,
        comentario=body.comentario,
        ip_address=get_client_ip(request),
    )
    return {"success": True, "message": "Estado actualizado", "data": result}


@router.post(
    "/claims/{claim_id}/response",
    status_code=status.HTTP_201_CREATED,
    summary="Registrar la respuesta de la empresa",
)
def post_response(
    claim_id: str,
    body: ResponseRequest,
    request: Request,
    lifecycle: ClaimLifecycle = Depends(get_lifecycle),
    current_user: UsuarioAdmin = Depends(require_permission(Permission.CLAIM_RESPOND)),
):
    result = lifecycle.record_response(
        claim_id,
        body.respuesta_empresa,
        actor=current_user,
        accion_tomada=body.accion_tomada,
        compensacion_ofrecida=body.compensacion_ofrecida,
        ip_address=get_client_ip(request),
    )
    return {"success": True, "message": "Respuesta registrada", "data": result}


@router.get("/claims/{claim_id}/messages", summary="Mensajes del reclamo")
def list_messages(
    claim_id: str,
    lifecycle: ClaimLifecycle = Depends(get_lifecycle),
    current_user: UsuarioAdmin = Depends(require_permission(Permission.CLAIM_READ)),
):
    return {"success": True, "data": lifecycle.list_messages(claim_id)}


@router.post(
    "/claims/{claim_id}/messages",
    status_code=status.HTTP_201_CREATED,
    summary="Mensaje de la empresa al consumidor",
)
def post_message(
    claim_id: str,
    body: MessageRequest,
    lifecycle: ClaimLifecycle = Depends(get_lifecycle),
    current_user: UsuarioAdmin = Depends(require_permission(Permission.MESSAGE_WRITE)),
):
    message = lifecycle.add_message(
        claim_id, TipoMensaje.EMPRESA.value, body.mensaje, autor=current_user.nombre_completo
    )
    return {"success": True, "data": message}


@router.get("/claims/{claim_id}/history", summary="Historial interno del reclamo")
def get_history(
    claim_id: str,
    lifecycle: ClaimLifecycle = Depends(get_lifecycle),
    current_user: UsuarioAdmin = Depends(require_permission(Permission.CLAIM_READ)),
):
    return {"success": True, "data": lifecycle.history(claim_id)}


# =========================================================
# DASHBOARD
# =========================================================


@router.get("/dashboard/stats", summary="Estadísticas del panel")
def dashboard_stats(
    repository: ClaimRepository = Depends(get_claim_repository),
    current_user: UsuarioAdmin = Depends(require_permission(Permission.CLAIM_READ)),
):
    return {"success": True, "data": repository.dashboard()}
