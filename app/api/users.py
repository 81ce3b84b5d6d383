"""
Gestión de usuarios del panel (solo ADMIN).
"""
from fastapi import APIRouter, Depends, Request, status

from app.api.deps import get_user_service
from app.core.security import get_client_ip, require_role
from app.models.enums import RolUsuario
from app.models.schemas import PasswordChangeRequest, UserCreateRequest, UserUpdateRequest
from app.models.user import UsuarioAdmin
from app.services.user_service import UserService

router = APIRouter(prefix="/api/admin/users", tags=["users"])

require_admin = require_role(RolUsuario.ADMIN)


@router.get("", summary="Listar usuarios")
def list_users(
    users: UserService = Depends(get_user_service),
    current_user: UsuarioAdmin = Depends(require_admin),
):
    return {"success": True, "data": users.list_users()}


@router.post("", status_code=status.HTTP_201_CREATED, summary="Crear usuario")
def create_user(
    body: UserCreateRequest,
    request: Request,
    users: UserService = Depends(get_user_service),
    current_user: UsuarioAdmin = Depends(require_admin),
):
    created = users.create_user(
        email=body.email,
        nombre_completo=body.nombre_completo,
        password=body.password,
        rol=body.rol,
        creado_por=current_user,
        ip_address=get_client_ip(request),
    )
    return {"success": True, "message": "Usuario creado", "data": created}


@router.put("/{user_id}", summary="Editar usuario")
def update_user(
    user_id: str,
    body: UserUpdateRequest,
    request: Request,
    users: UserService = Depends(get_user_service),
    current_user: UsuarioAdmin = Depends(require_admin),
):
    updated = users.update_user(
        user_id,
        actor=current_user,
        nombre_completo=body.nombre_completo,
        rol=body.rol,
        activo=body.activo,
        ip_address=get_client_ip(request),
    )
    return {"success": True, "message": "Usuario actualizado", "data": updated}


@router.put("/{user_id}/password", summary="Cambiar contraseña")
def change_password(
    user_id: str,
    body: PasswordChangeRequest,
    request: Request,
    users: UserService = Depends(get_user_service),
    current_user: UsuarioAdmin = Depends(require_admin),
):
    users.change_password(
        user_id, body.password, actor=current_user, ip_address=get_client_ip(request)
    )
    return {"success": True, "message": "Contraseña actualizada"}
