"""
Sistema de excepciones estandarizado para el Libro de Reclamaciones.

Todas las excepciones del sistema heredan de ReclamosException y siguen
un formato consistente con:
- Código de error único
- Mensaje seguro para mostrar al usuario
- Detalles adicionales (dict)
- Severity level
- Status HTTP asociado

Esto facilita:
- Logging estructurado
- Respuestas de error homogéneas en la API
- Métricas de errores
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(str, Enum):
    """Niveles de severidad para errores."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ReclamosException(Exception):
    """
    Excepción base del sistema.

    Todas las excepciones custom deben heredar de esta clase.
    """

    status_code: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        original_error: Optional[Exception] = None
    ):
        """
        Args:
            code: Código único del error (ej: "CLAIM_NOT_FOUND")
            message: Mensaje descriptivo para humanos (no debe filtrar internals)
            details: Detalles adicionales (dict)
            severity: Nivel de severidad
            original_error: Excepción original si es un wrap
        """
        self.code = code
        self.message = message
        self.details = details or {}
        self.severity = severity
        self.original_error = original_error

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convierte la excepción a diccionario (para logging).

        Returns:
            Dict con información de la excepción
        """
        result = {
            "error_code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "details": self.details
        }

        if self.original_error:
            result["original_error"] = {
                "type": type(self.original_error).__name__,
                "message": str(self.original_error)
            }

        return result

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base


# =========================================================
# EXCEPCIONES DE VALIDACIÓN (4xx, nunca se reintentan)
# =========================================================

class ValidationException(ReclamosException):
    """Error de validación de datos enviados por el cliente."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {}) or {}
        if field:
            details["field"] = field

        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            details=details,
            severity=ErrorSeverity.LOW,
            **kwargs
        )


# =========================================================
# EXCEPCIONES DE RECURSOS
# =========================================================

class NotFoundException(ReclamosException):
    """Recurso no encontrado."""

    status_code = 404

    def __init__(self, message: str, **kwargs):
        super().__init__(
            code="NOT_FOUND",
            message=message,
            severity=ErrorSeverity.LOW,
            **kwargs
        )


class ClaimNotFoundException(NotFoundException):
    """Reclamo no encontrado por código o id."""

    def __init__(self, reference: str, **kwargs):
        super().__init__(
            message="Reclamo no encontrado",
            details={"reference": reference},
            **kwargs
        )
        self.code = "CLAIM_NOT_FOUND"


class UserNotFoundException(NotFoundException):
    """Usuario administrativo no encontrado."""

    def __init__(self, user_id: str, **kwargs):
        super().__init__(
            message="Usuario no encontrado",
            details={"user_id": user_id},
            **kwargs
        )
        self.code = "USER_NOT_FOUND"


class ConflictException(ReclamosException):
    """La operación choca con el estado actual del recurso."""

    status_code = 409

    def __init__(self, message: str, **kwargs):
        super().__init__(
            code="CONFLICT",
            message=message,
            severity=ErrorSeverity.LOW,
            **kwargs
        )


class ResponseAlreadyExistsException(ConflictException):
    """El reclamo ya tiene respuesta de la empresa (set-once)."""

    def __init__(self, claim_id: str, **kwargs):
        super().__init__(
            message="El reclamo ya tiene una respuesta registrada",
            details={"claim_id": claim_id},
            **kwargs
        )
        self.code = "RESPONSE_ALREADY_EXISTS"


class DuplicateUserException(ConflictException):
    """Email de usuario ya registrado."""

    def __init__(self, email: str, **kwargs):
        super().__init__(
            message="Ya existe un usuario con ese email",
            details={"email": email},
            **kwargs
        )
        self.code = "DUPLICATE_USER"


# =========================================================
# EXCEPCIONES DE PERSISTENCIA (5xx)
# =========================================================

class PersistenceException(ReclamosException):
    """Store no disponible, conflicto de transacción o violación de constraint."""

    status_code = 500

    def __init__(self, message: str = "Error al registrar el reclamo", **kwargs):
        super().__init__(
            code="PERSISTENCE_ERROR",
            message=message,
            severity=ErrorSeverity.HIGH,
            **kwargs
        )


class ClaimCodeCollisionException(PersistenceException):
    """El código generado colisionó en todos los intentos permitidos."""

    def __init__(self, attempts: int, **kwargs):
        super().__init__(
            message="No se pudo asignar un código único al reclamo",
            details={"attempts": attempts},
            **kwargs
        )
        self.code = "CLAIM_CODE_COLLISION"


# =========================================================
# EXCEPCIONES DE AUTENTICACIÓN Y AUTORIZACIÓN
# =========================================================

class AuthenticationException(ReclamosException):
    """Error de autenticación."""

    status_code = 401

    def __init__(self, message: str = "Autenticación requerida", **kwargs):
        super().__init__(
            code="AUTH_ERROR",
            message=message,
            severity=ErrorSeverity.MEDIUM,
            **kwargs
        )


class InvalidTokenException(AuthenticationException):
    """Token JWT inválido."""

    def __init__(self, reason: str = "Token inválido", **kwargs):
        super().__init__(
            message="Token inválido",
            details={"reason": reason},
            **kwargs
        )
        self.code = "INVALID_TOKEN"


class TokenExpiredException(AuthenticationException):
    """Token JWT expirado."""

    def __init__(self, **kwargs):
        super().__init__(message="Token expirado", **kwargs)
        self.code = "TOKEN_EXPIRED"


class InvalidCredentialsException(AuthenticationException):
    """Email o contraseña incorrectos."""

    def __init__(self, **kwargs):
        super().__init__(message="Credenciales inválidas", **kwargs)
        self.code = "INVALID_CREDENTIALS"


class InsufficientPermissionsException(ReclamosException):
    """Permisos insuficientes para la operación solicitada."""

    status_code = 403

    def __init__(self, required_permission: str, message: Optional[str] = None, **kwargs):
        super().__init__(
            code="INSUFFICIENT_PERMISSIONS",
            message=message or f"Permisos insuficientes. Se requiere: {required_permission}",
            details={"required_permission": required_permission},
            severity=ErrorSeverity.MEDIUM,
            **kwargs
        )


class InactiveUserException(InsufficientPermissionsException):
    """Usuario desactivado."""

    def __init__(self, **kwargs):
        super().__init__(required_permission="active_user", message="Usuario inactivo", **kwargs)
        self.code = "INACTIVE_USER"

