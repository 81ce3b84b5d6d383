"""
Sistema de seguridad del Libro de Reclamaciones.

Incluye:
- Autenticación JWT del personal (ADMIN / SOPORTE)
- Rate limiting del formulario público
- Validación de tokens
- Gestión de permisos por rol
"""
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

import jwt
from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.core.exceptions import (
    AuthenticationException,
    InactiveUserException,
    InsufficientPermissionsException,
    InvalidTokenException,
    TokenExpiredException,
)
from app.core.logger import get_logger
from app.models.enums import RolUsuario
from app.models.user import UsuarioAdmin

logger = get_logger()


# =========================================================
# CONFIGURACIÓN DE SEGURIDAD
# =========================================================

# Context para hashing de passwords
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer token: la ausencia de credenciales se traduce a 401 propio
security = HTTPBearer(auto_error=False)


# Rate limiter por IP (create_app ajusta `enabled` según Settings)
limiter = Limiter(
    key_func=get_remote_address,
    enabled=get_settings().rate_limit_enabled,
)


def claims_rate_limit() -> str:
    """Límite del formulario público, leído en cada request."""
    return f"{get_settings().rate_limit_claims_per_minute}/minute"


# =========================================================
# ROLES Y PERMISOS
# =========================================================


class Permission(str, Enum):
    """Permisos del sistema."""

    # Reclamos
    CLAIM_READ = "claim:read"
    CLAIM_UPDATE_STATUS = "claim:update_status"
    CLAIM_CLOSE = "claim:close"
    CLAIM_RESPOND = "claim:respond"

    # Mensajes
    MESSAGE_WRITE = "message:write"

    # Usuarios
    USER_MANAGE = "user:manage"


# Mapeo de roles a permisos
ROLE_PERMISSIONS: dict[RolUsuario, list[Permission]] = {
    RolUsuario.ADMIN: [p for p in Permission],  # Todos los permisos
    RolUsuario.SOPORTE: [
        Permission.CLAIM_READ,
        Permission.CLAIM_UPDATE_STATUS,
        Permission.CLAIM_RESPOND,
        Permission.MESSAGE_WRITE,
    ],
}


def has_permission(rol: str, permission: Permission) -> bool:
    try:
        user_role = RolUsuario(rol)
    except ValueError:
        return False
    return permission in ROLE_PERMISSIONS.get(user_role, [])


# =========================================================
# GESTIÓN DE PASSWORDS
# =========================================================


def hash_password(password: str) -> str:
    """
    Hashea un password.

    Args:
        password: Password en texto plano

    Returns:
        Hash bcrypt del password
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verifica un password contra su hash.

    Args:
        plain_password: Password en texto plano
        hashed_password: Hash del password

    Returns:
        True si coincide
    """
    return pwd_context.verify(plain_password, hashed_password)


# =========================================================
# JWT - CREACIÓN Y VALIDACIÓN
# =========================================================


def create_access_token(
    user_id: str,
    email: str,
    rol: str,
    settings: Optional[Settings] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Crea un token JWT de acceso.

    Args:
        user_id: ID del usuario
        email: Email del usuario
        rol: Rol del usuario (ADMIN / SOPORTE)
        settings: Configuración (por defecto la global)
        expires_delta: Tiempo de expiración custom

    Returns:
        Token JWT codificado
    """
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )

    to_encode = {
        "sub": user_id,
        "email": email,
        "rol": rol,
        "type": "access",
        "iat": now,
        "exp": expire,
    }

    encoded_jwt = jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    logger.info(
        "Access token created",
        action="token_create",
        user_id=user_id,
        rol=rol,
        expires_at=expire.isoformat(),
    )

    return encoded_jwt


def decode_token(token: str, settings: Optional[Settings] = None) -> dict[str, Any]:
    """
    Decodifica y valida un token JWT.

    Raises:
        InvalidTokenException: Si el token es inválido
        TokenExpiredException: Si el token expiró
    """
    settings = settings or get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])

    except jwt.ExpiredSignatureError:
        logger.warning("Expired token", action="token_expired")
        raise TokenExpiredException()

    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token", action="token_invalid", reason=str(e))
        raise InvalidTokenException(reason=str(e))


# =========================================================
# DEPENDENCIES PARA FASTAPI
# =========================================================


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    db: Session = Depends(get_db),
) -> UsuarioAdmin:
    """
    Obtiene el usuario actual desde el token JWT.

    Uso en FastAPI:
        @router.get("/protected")
        def protected(user: UsuarioAdmin = Depends(get_current_user)):
            return {"user_id": user.id}

    Raises:
        AuthenticationException: Sin token, token inválido/expirado o usuario inexistente
        InactiveUserException: Usuario desactivado
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationException("Token no proporcionado")

    payload = decode_token(credentials.credentials, request.app.state.settings)

    user_id = payload.get("sub")
    if not user_id:
        raise InvalidTokenException(reason="missing sub")

    user = db.get(UsuarioAdmin, user_id)
    if user is None:
        raise InvalidTokenException(reason="unknown user")
    if not user.activo:
        raise InactiveUserException()

    return user


def require_permission(required_permission: Permission):
    """
    Dependency factory para requerir permisos específicos.

    Uso:
        @router.get("/claims")
        def list_claims(user = Depends(require_permission(Permission.CLAIM_READ))):
            ...
    """

    def permission_checker(current_user: UsuarioAdmin = Depends(get_current_user)) -> UsuarioAdmin:
        if not has_permission(current_user.rol, required_permission):
            logger.warning(
                "Insufficient permissions",
                action="permission_denied",
                user_id=current_user.id,
                rol=current_user.rol,
                required_permission=required_permission.value,
            )
            raise InsufficientPermissionsException(required_permission.value)

        return current_user

    return permission_checker


def require_role(required_role: RolUsuario):
    """
    Dependency factory para requerir roles específicos.

    Uso:
        @router.get("/users", dependencies=[Depends(require_role(RolUsuario.ADMIN))])
    """

    def role_checker(current_user: UsuarioAdmin = Depends(get_current_user)) -> UsuarioAdmin:
        if current_user.rol != required_role.value:
            logger.warning(
                "Insufficient role",
                action="role_denied",
                user_id=current_user.id,
                user_role=current_user.rol,
                required_role=required_role.value,
            )
            raise InsufficientPermissionsException(
                required_role.value,
                message=f"Rol insuficiente. Se requiere: {required_role.value}",
            )

        return current_user

    return role_checker


CLIENT_IP_MAX_LENGTH = 64


def get_client_ip(request: Request) -> Optional[str]:
    """IP del cliente, respetando X-Forwarded-For del proxy (recortada al ancho de columna)."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()[:CLIENT_IP_MAX_LENGTH]
    return request.client.host if request.client else None
