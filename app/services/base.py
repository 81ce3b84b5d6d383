"""
Servicio base para toda la aplicación.

Proporciona funcionalidad común a todos los servicios:
- Logging estructurado
- Manejo de excepciones
- Acceso a base de datos
"""
from typing import Optional

from sqlalchemy.orm import Session

from app.core.exceptions import PersistenceException, ReclamosException
from app.core.logger import StructuredLogger, get_logger


class BaseService:
    """
    Clase base para todos los servicios.

    Los servicios encapsulan la lógica de negocio y controlan su propia
    transacción sobre la sesión recibida.
    """

    def __init__(self, db: Session, logger: Optional[StructuredLogger] = None):
        """
        Inicializa el servicio base.

        Args:
            db: Sesión de base de datos
            logger: Logger estructurado (opcional)
        """
        self.db = db
        self.logger = logger or get_logger()

    def _log_info(self, message: str, **kwargs):
        """Log nivel INFO."""
        self.logger.info(message, **kwargs)

    def _log_warning(self, message: str, **kwargs):
        """Log nivel WARNING."""
        self.logger.warning(message, **kwargs)

    def _log_error(self, message: str, error: Optional[Exception] = None, **kwargs):
        """Log nivel ERROR."""
        self.logger.error(message, error=error, **kwargs)

    def _handle_exception(
        self,
        error: Exception,
        context: str,
        codigo_reclamo: Optional[str] = None,
    ) -> ReclamosException:
        """
        Maneja una excepción de manera consistente.

        Args:
            error: Excepción original
            context: Contexto donde ocurrió
            codigo_reclamo: Código del reclamo (si aplica)

        Returns:
            ReclamosException wrapeada
        """
        if isinstance(error, ReclamosException):
            self._log_error(
                f"Service exception in {context}",
                error=error,
                codigo_reclamo=codigo_reclamo,
            )
            return error

        self._log_error(
            f"Unexpected error in {context}",
            error=error,
            codigo_reclamo=codigo_reclamo,
        )

        return PersistenceException(
            message=f"Error interno en {context}",
            details={"context": context},
            original_error=error,
        )
