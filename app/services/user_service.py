"""
Gestión del personal administrativo (ADMIN / SOPORTE).
"""
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.audit import log_audit
from app.core.config import Settings
from app.core.exceptions import (
    DuplicateUserException,
    InactiveUserException,
    InvalidCredentialsException,
    UserNotFoundException,
    ValidationException,
)
from app.core.logger import StructuredLogger
from app.core.security import create_access_token, hash_password, verify_password
from app.models.enums import RolUsuario
from app.models.user import UsuarioAdmin
from app.services.base import BaseService

MIN_PASSWORD_LENGTH = 6


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def _validate_password(password: Optional[str]) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationException(
            f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres",
            field="password",
        )
    return password


def _validate_rol(rol: Optional[str]) -> str:
    if rol not in (RolUsuario.ADMIN.value, RolUsuario.SOPORTE.value):
        raise ValidationException("Rol inválido", field="rol")
    return rol


class UserService(BaseService):
    """
    Alta, edición y autenticación de usuarios del panel.

    Args:
        db: Sesión de base de datos
        settings: Configuración (JWT, admin inicial)
    """

    def __init__(self, db: Session, settings: Settings, logger: Optional[StructuredLogger] = None):
        super().__init__(db, logger)
        self.settings = settings

    # =========================================================
    # AUTENTICACIÓN
    # =========================================================

    def authenticate(
        self, email: str, password: str, ip_address: Optional[str] = None
    ) -> dict[str, Any]:
        """
        Valida credenciales y emite un token de acceso.

        Raises:
            InvalidCredentialsException: Email o contraseña incorrectos (401)
            InactiveUserException: Usuario desactivado (403)
        """
        user = self.db.execute(
            select(UsuarioAdmin).where(UsuarioAdmin.email == normalize_email(email))
        ).scalar_one_or_none()

        if user is None or not password or not verify_password(password, user.password_hash):
            self._log_warning("Login failed", action="login_failed")
            raise InvalidCredentialsException()

        if not user.activo:
            self._log_warning("Login of inactive user", action="login_inactive", user_id=user.id)
            raise InactiveUserException()

        user.ultimo_acceso = datetime.now(timezone.utc)
        self.db.commit()

        token = create_access_token(user.id, user.email, user.rol, settings=self.settings)

        self._log_info("Login successful", action="login", user_id=user.id, rol=user.rol)
        log_audit(
            self.db,
            usuario_id=user.id,
            accion="LOGIN",
            entidad="usuario",
            entidad_id=user.id,
            ip_address=ip_address,
        )

        return {
            "token": token,
            "token_type": "bearer",
            "expires_in": self.settings.jwt_access_token_expire_minutes * 60,
            "usuario": user.to_dict(),
        }

    # =========================================================
    # CRUD
    # =========================================================

    def list_users(self) -> list[dict[str, Any]]:
        users = self.db.execute(
            select(UsuarioAdmin).order_by(UsuarioAdmin.fecha_creacion.asc(), UsuarioAdmin.email.asc())
        ).scalars().all()
        return [u.to_dict() for u in users]

    def create_user(
        self,
        email: str,
        nombre_completo: str,
        password: str,
        rol: str = RolUsuario.SOPORTE.value,
        creado_por: Optional[UsuarioAdmin] = None,
        ip_address: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Crea un usuario del panel.

        Raises:
            ValidationException: Datos incompletos, contraseña corta o rol inválido
            DuplicateUserException: Email ya registrado (409)
        """
        email = normalize_email(email)
        if not email or "@" not in email:
            raise ValidationException("Email inválido", field="email")
        if not nombre_completo or not nombre_completo.strip():
            raise ValidationException("El nombre es obligatorio", field="nombre_completo")
        _validate_password(password)
        _validate_rol(rol)

        if self._find_by_email(email) is not None:
            raise DuplicateUserException(email)

        user = UsuarioAdmin(
            email=email,
            nombre_completo=nombre_completo.strip(),
            password_hash=hash_password(password),
            rol=rol,
            activo=True,
            creado_por=creado_por.id if creado_por else None,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateUserException(email)

        self._log_info("User created", action="user_created", user_id=user.id, rol=rol)
        if creado_por is not None:
            log_audit(
                self.db,
                usuario_id=creado_por.id,
                accion="CREAR_USUARIO",
                entidad="usuario",
                entidad_id=user.id,
                detalles={"email": email, "rol": rol},
                ip_address=ip_address,
            )

        return user.to_dict()

    def update_user(
        self,
        user_id: str,
        actor: UsuarioAdmin,
        nombre_completo: Optional[str] = None,
        rol: Optional[str] = None,
        activo: Optional[bool] = None,
        ip_address: Optional[str] = None,
    ) -> dict[str, Any]:
        """Edita nombre, rol y/o estado activo."""
        user = self._get(user_id)
        changes: dict[str, Any] = {}

        if nombre_completo is not None:
            if not nombre_completo.strip():
                raise ValidationException("El nombre es obligatorio", field="nombre_completo")
            user.nombre_completo = nombre_completo.strip()
            changes["nombre_completo"] = user.nombre_completo
        if rol is not None:
            user.rol = _validate_rol(rol)
            changes["rol"] = rol
        if activo is not None:
            if not activo and user.id == actor.id:
                raise ValidationException("No puede desactivar su propio usuario", field="activo")
            user.activo = activo
            changes["activo"] = activo

        self.db.commit()

        self._log_info("User updated", action="user_updated", user_id=user.id, **changes)
        log_audit(
            self.db,
            usuario_id=actor.id,
            accion="EDITAR_USUARIO",
            entidad="usuario",
            entidad_id=user.id,
            detalles=changes,
            ip_address=ip_address,
        )
        return user.to_dict()

    def change_password(
        self,
        user_id: str,
        new_password: str,
        actor: UsuarioAdmin,
        ip_address: Optional[str] = None,
    ) -> None:
        user = self._get(user_id)
        user.password_hash = hash_password(_validate_password(new_password))
        user.debe_cambiar_password = False
        self.db.commit()

        self._log_info("Password changed", action="password_changed", user_id=user.id)
        log_audit(
            self.db,
            usuario_id=actor.id,
            accion="CAMBIAR_PASSWORD",
            entidad="usuario",
            entidad_id=user.id,
            ip_address=ip_address,
        )

    # =========================================================
    # ADMIN INICIAL
    # =========================================================

    def ensure_bootstrap_admin(self) -> Optional[dict[str, Any]]:
        """
        Crea el primer ADMIN desde configuración si no hay usuarios.

        Returns:
            Usuario creado, o None si no correspondía crearlo
        """
        email = self.settings.bootstrap_admin_email
        password = self.settings.bootstrap_admin_password
        if not email or not password:
            return None

        total = self.db.execute(select(func.count()).select_from(UsuarioAdmin)).scalar_one()
        if total:
            return None

        created = self.create_user(
            email=email,
            nombre_completo="Administrador",
            password=password,
            rol=RolUsuario.ADMIN.value,
        )
        self._log_info("Bootstrap admin created", action="bootstrap_admin", user_id=created["id"])
        return created

    # =========================================================
    # HELPERS
    # =========================================================

    def _find_by_email(self, email: str) -> Optional[UsuarioAdmin]:
        return self.db.execute(
            select(UsuarioAdmin).where(UsuarioAdmin.email == email)
        ).scalar_one_or_none()

    def _get(self, user_id: str) -> UsuarioAdmin:
        user = self.db.get(UsuarioAdmin, user_id)
        if user is None:
            raise UserNotFoundException(user_id)
        return user
