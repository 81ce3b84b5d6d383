"""
Aplicación FastAPI del Libro de Reclamaciones.

Los colaboradores (base de datos, envío de email, worker de notificaciones)
se construyen una vez en `create_app` y viven en `app.state`; su ciclo de
vida está atado al lifespan del servicio.
"""
import time
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import admin, claims, public, tracking, users
from app.core.config import Settings, get_settings
from app.core.database import Database
from app.core.exceptions import AuthenticationException, ReclamosException
from app.core.logger import get_logger
from app.core.security import limiter
from app.core.telemetry import observe_request
from app.services.claim_repository import ClaimRepository
from app.services.email_sender import MailSender, SmtpMailSender
from app.services.notifications import NotificationDispatcher, NotificationWorker
from app.services.user_service import UserService

# =========================================================
# CARGA DE ENTORNO
# =========================================================

load_dotenv()

logger = get_logger()


# =========================================================
# LIFESPAN
# =========================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    database: Database = app.state.database
    worker: NotificationWorker = app.state.notification_worker

    if settings.auto_create_schema:
        database.create_all()

    with database.session_scope() as session:
        UserService(session, settings).ensure_bootstrap_admin()

    worker.start()
    logger.info(
        "Service started",
        action="startup",
        environment=settings.environment,
        smtp_configured=settings.smtp_configured,
    )

    yield

    worker.shutdown(wait_pending=True)
    database.dispose()
    logger.info("Service stopped", action="shutdown")


# =========================================================
# MANEJO DE ERRORES
# =========================================================


def _error_body(request: Request, message: str, error_code: str, exc: Exception) -> dict:
    body = {"success": False, "message": message, "error_code": error_code}
    if request.app.state.settings.is_development:
        body["error"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ReclamosException)
    async def reclamos_exception_handler(request: Request, exc: ReclamosException):
        if exc.status_code >= 500:
            logger.error(
                exc.message,
                action="request_failed",
                error=exc.original_error or exc,
                error_code=exc.code,
                path=request.url.path,
            )
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationException) else None
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.message, exc.code, exc),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        body = _error_body(request, "Datos de la solicitud inválidos", "VALIDATION_ERROR", exc)
        body["details"] = jsonable_encoder(exc.errors(), custom_encoder={Exception: str})
        return JSONResponse(status_code=400, content=body)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={
                "success": False,
                "message": "Demasiadas solicitudes, intente nuevamente en unos minutos",
                "error_code": "RATE_LIMITED",
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail), "error_code": "HTTP_ERROR"},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled error",
            action="request_failed",
            error=exc,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(request, "Error interno del servidor", "INTERNAL_ERROR", exc),
        )


# =========================================================
# FACTORY
# =========================================================


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    mail_sender: Optional[MailSender] = None,
) -> FastAPI:
    """
    Construye la aplicación con sus colaboradores.

    Args:
        settings: Configuración (por defecto la global)
        database: Handle de base de datos (por defecto según settings)
        mail_sender: Envío de email (por defecto SMTP)
    """
    settings = settings or get_settings()
    database = database or Database.from_settings(settings)
    mail_sender = mail_sender or SmtpMailSender(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Libro de Reclamaciones virtual: registro, seguimiento y atención de reclamos",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.mail_sender = mail_sender
    app.state.claim_repository = ClaimRepository(database, settings)
    app.state.dispatcher = NotificationDispatcher(mail_sender, settings)
    app.state.notification_worker = NotificationWorker.from_settings(settings)

    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_metrics(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        # El router deja la ruta resuelta en el scope compartido
        route = request.scope.get("route")
        endpoint = getattr(route, "path", "unmatched")
        observe_request(request.method, endpoint, time.perf_counter() - start)
        return response

    register_exception_handlers(app)

    app.include_router(public.router)
    app.include_router(claims.router)
    app.include_router(tracking.router)
    app.include_router(admin.router)
    app.include_router(users.router)

    return app


# =========================================================
# FASTAPI APP (ENTRYPOINT ASGI)
# =========================================================

app = create_app()
