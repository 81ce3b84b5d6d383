"""
Endpoints públicos de operación: salud, dashboard agregado y métricas.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import get_app_settings, get_claim_repository
from app.core.config import Settings
from app.core.exceptions import NotFoundException, PersistenceException
from app.core.logger import get_logger
from app.core.telemetry import get_metrics_response
from app.services.claim_repository import ClaimRepository

logger = get_logger()

router = APIRouter(tags=["public"])


@router.get("/api/health", summary="Liveness y conectividad con la base de datos")
def health(request: Request):
    """
    Siempre responde 200; `database` indica si el store contesta.
    """
    connected = request.app.state.database.check_health()
    if not connected:
        logger.warning("Database health check failed", action="health_check")

    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "connected" if connected else "disconnected",
    }


@router.get("/api/dashboard", summary="Estadísticas y pendientes más urgentes")
def dashboard(repository: ClaimRepository = Depends(get_claim_repository)):
    try:
        data = repository.dashboard()
    except SQLAlchemyError as e:
        logger.error("Dashboard query failed", action="dashboard_failed", error=e)
        raise PersistenceException("Error al obtener estadísticas", original_error=e)

    return {"success": True, "data": data}


@router.get("/metrics", include_in_schema=False)
def metrics(settings: Settings = Depends(get_app_settings)):
    if not settings.metrics_enabled:
        raise NotFoundException("Métricas deshabilitadas")
    content, content_type = get_metrics_response()
    return Response(content=content, media_type=content_type)
