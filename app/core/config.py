"""
Sistema de configuración con Pydantic Settings.

Centraliza toda la configuración del Libro de Reclamaciones:
- Validación automática de tipos
- Valores por defecto seguros para desarrollo
- Separación por entornos (development/test/staging/production)
"""
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuración global del servicio.

    Todas las variables se pueden sobrescribir con variables de entorno.
    """

    # =========================================================
    # ENTORNO Y DEPLOYMENT
    # =========================================================

    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development", description="Entorno de ejecución"
    )

    app_name: str = Field(default="Libro de Reclamaciones")

    app_version: str = Field(default="1.0.0")

    # =========================================================
    # DATABASE
    # =========================================================

    database_url: str = Field(
        default="sqlite:///./runtime/db/libro_reclamaciones.db",
        description="URL de conexión a base de datos",
    )

    db_pool_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Tamaño del pool de conexiones (solo PostgreSQL)",
    )

    db_max_overflow: int = Field(
        default=20, ge=0, le=100, description="Conexiones adicionales permitidas"
    )

    db_pool_timeout: int = Field(
        default=30, ge=1, description="Timeout para obtener conexión del pool (segundos)"
    )

    auto_create_schema: bool = Field(
        default=True,
        description="Crear tablas al arrancar (desactivar cuando se usan migraciones)",
    )

    # =========================================================
    # RECLAMOS
    # =========================================================

    claim_code_prefix: str = Field(
        default="CODEPLEX",
        min_length=1,
        max_length=20,
        description="Prefijo del código público (PREFIX-YYYY-NNNNN)",
    )

    response_deadline_days: int = Field(
        default=15, ge=1, description="Plazo legal de respuesta en días"
    )

    claim_code_max_attempts: int = Field(
        default=2,
        ge=1,
        le=5,
        description="Intentos de inserción ante colisión del código (2 = un reintento)",
    )

    # =========================================================
    # EMAIL (SMTP)
    # =========================================================

    smtp_host: Optional[str] = Field(default=None)
    smtp_port: int = Field(default=587)
    smtp_user: Optional[str] = Field(default=None)
    smtp_password: Optional[str] = Field(default=None)
    smtp_use_tls: bool = Field(default=True)
    smtp_use_ssl: bool = Field(default=False, description="SMTP sobre SSL (puerto 465)")
    smtp_timeout_seconds: int = Field(default=30, ge=1)
    mail_from: str = Field(default="libro.reclamaciones@codeplex.pe")

    support_email: str = Field(
        default="soporte@codeplex.pe", description="Destinatario fijo del aviso interno"
    )

    notifications_enabled: bool = Field(default=True)

    notification_delay_seconds: float = Field(
        default=0.0,
        ge=0.0,
        le=60.0,
        description="Retraso artificial antes de enviar (evita saturar el SMTP en test)",
    )

    notification_workers: int = Field(default=2, ge=1, le=16)

    backend_url: str = Field(default="http://localhost:8000")
    frontend_url: str = Field(default="http://localhost:4321")

    # =========================================================
    # EMPRESA
    # =========================================================

    company_name: str = Field(default="CODEPLEX SAC")
    company_ruc: str = Field(default="20539782232")
    company_address: str = Field(default="AV. LOS PROCERES MZA. G3 LOTE. 11 - LIMA - LOS OLIVOS")
    company_phone: str = Field(default="+51 936343607")

    # =========================================================
    # SEGURIDAD
    # =========================================================

    jwt_secret_key: str = Field(
        default="change_this_secret_key_in_production", description="Clave secreta para JWT"
    )

    jwt_algorithm: str = Field(default="HS256")

    jwt_access_token_expire_minutes: int = Field(default=60 * 24, ge=5, le=10080)

    bootstrap_admin_email: Optional[str] = Field(
        default=None, description="Admin inicial creado si no hay usuarios"
    )
    bootstrap_admin_password: Optional[str] = Field(default=None)

    rate_limit_enabled: bool = Field(default=True, description="Habilitar rate limiting")

    rate_limit_claims_per_minute: int = Field(
        default=10, ge=1, le=1000, description="Envíos de reclamos por minuto e IP"
    )

    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # =========================================================
    # OBSERVABILIDAD
    # =========================================================

    metrics_enabled: bool = Field(default=True, description="Habilitar métricas Prometheus")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    log_file: Optional[Path] = Field(
        default=Path("runtime/logs/libro_reclamaciones.log"), description="Archivo de log"
    )

    # =========================================================
    # VALIDACIONES CUSTOM
    # =========================================================

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Valida formato de URL de base de datos."""
        if not v.startswith(("sqlite://", "postgresql://", "postgresql+psycopg2://")):
            raise ValueError(
                "database_url debe empezar con sqlite://, postgresql:// o postgresql+psycopg2://"
            )
        return v

    @field_validator("claim_code_prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        """El prefijo no puede contener guiones (separan año y secuencia)."""
        if "-" in v:
            raise ValueError("claim_code_prefix no puede contener '-'")
        return v.upper()

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """El secret JWT no puede quedar por defecto en producción."""
        if self.environment == "production":
            if self.jwt_secret_key == "change_this_secret_key_in_production":
                raise ValueError("JWT_SECRET_KEY debe ser cambiada en producción")
        return self

    # =========================================================
    # PROPIEDADES COMPUTADAS
    # =========================================================

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def smtp_configured(self) -> bool:
        """Verifica si hay un relay SMTP configurado."""
        return bool(self.smtp_host)

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_assignment=True,
        extra="ignore",
    )


# =========================================================
# INSTANCIA GLOBAL (SINGLETON)
# =========================================================

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Obtiene la instancia global de configuración (singleton).

    Returns:
        Settings: Configuración global validada
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


# Atajo para importación
settings = get_settings()
