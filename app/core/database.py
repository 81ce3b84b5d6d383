"""
Acceso a base de datos con SQLAlchemy.

El engine y la session factory viven en un objeto `Database` construido una
vez al arrancar el servicio y liberado al detenerlo (ver app.main). No hay
estado global de conexión: los componentes reciben el `Database` o una
`Session` explícitamente.
"""
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import DateTime, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.types import TypeDecorator

from app.core.config import Settings

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """
    DateTime con zona horaria que siempre devuelve valores UTC aware.

    SQLite no guarda el offset: se persiste en UTC y se restaura al leer.
    """

    impl = DateTime
    cache_ok = True

    def __init__(self):
        super().__init__(timezone=True)

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class Database:
    """
    Handle de base de datos: engine + session factory.

    Args:
        database_url: URL SQLAlchemy
        settings: Configuración (pool sizing); opcional
    """

    def __init__(self, database_url: str, settings: Optional[Settings] = None):
        self.database_url = database_url
        self.engine = self._build_engine(database_url, settings)
        self.session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.database_url, settings)

    @staticmethod
    def _build_engine(database_url: str, settings: Optional[Settings]) -> Engine:
        if database_url.startswith("sqlite"):
            _ensure_sqlite_dir(database_url)
            engine = create_engine(
                database_url,
                echo=False,
                connect_args={"check_same_thread": False, "timeout": 30},
                pool_pre_ping=True,
            )

            @event.listens_for(engine, "connect")
            def set_sqlite_pragma(dbapi_conn, connection_record):
                cursor = dbapi_conn.cursor()
                try:
                    cursor.execute("PRAGMA foreign_keys=ON")
                    cursor.execute("PRAGMA busy_timeout=30000")
                finally:
                    cursor.close()

            return engine

        pool_kwargs = {}
        if settings is not None:
            pool_kwargs = {
                "pool_size": settings.db_pool_size,
                "max_overflow": settings.db_max_overflow,
                "pool_timeout": settings.db_pool_timeout,
            }
        return create_engine(database_url, echo=False, pool_pre_ping=True, **pool_kwargs)

    def create_all(self) -> None:
        """Crea todas las tablas registradas en los modelos."""
        from app.models.audit_log import AuditoriaAdmin  # noqa: F401
        from app.models.claim import Reclamo, SecuenciaReclamo  # noqa: F401
        from app.models.history import HistorialReclamo  # noqa: F401
        from app.models.message import MensajeSeguimiento  # noqa: F401
        from app.models.response import Respuesta  # noqa: F401
        from app.models.user import UsuarioAdmin  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Context manager transaccional.
        Commit al salir sin error, rollback ante cualquier excepción.
        """
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def check_health(self) -> bool:
        """Ejecuta SELECT 1 contra el store."""
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except Exception:
            return False

    def dispose(self) -> None:
        self.engine.dispose()


def _ensure_sqlite_dir(database_url: str) -> None:
    """Crea el directorio del archivo SQLite si no existe."""
    prefix = "sqlite:///"
    if not database_url.startswith(prefix):
        return
    path = database_url[len(prefix):]
    if not path or path.startswith(":memory:"):
        return
    Path(path).parent.mkdir(parents=True, exist_ok=True)


# =========================================================
# FASTAPI DEPENDENCIES
# =========================================================


def get_database(request: Request) -> Database:
    """Dependency: handle de base de datos del servicio."""
    return request.app.state.database


def get_db(request: Request) -> Iterator[Session]:
    """
    Dependency para FastAPI.
    Proporciona una sesión por request.

    NO hace commit automático: los servicios controlan su transacción.
    """
    db = request.app.state.database.session_factory()
    try:
        yield db
    finally:
        db.close()
