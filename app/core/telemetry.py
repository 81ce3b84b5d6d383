"""
Telemetría y observabilidad del Libro de Reclamaciones.

Incluye:
- Métricas Prometheus de negocio (reclamos, notificaciones, transiciones)
- Métricas de API
- Endpoint /metrics
"""
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    Info,
    generate_latest,
)

from app.core.config import settings


# =========================================================
# REGISTRO DE MÉTRICAS
# =========================================================

# Registro propio: no se mezcla con el global del proceso
registry = CollectorRegistry(auto_describe=True)


# =========================================================
# MÉTRICAS DE RECLAMOS
# =========================================================

claims_created_total = Counter(
    "reclamos_claims_created_total",
    "Total de reclamos registrados",
    ["tipo_solicitud"],
    registry=registry,
)

claim_code_collisions_total = Counter(
    "reclamos_claim_code_collisions_total",
    "Colisiones de código reintentadas",
    registry=registry,
)

validation_rejections_total = Counter(
    "reclamos_validation_rejections_total",
    "Envíos rechazados por validación",
    registry=registry,
)

status_transitions_total = Counter(
    "reclamos_status_transitions_total",
    "Cambios de estado aplicados",
    ["estado_nuevo"],
    registry=registry,
)


# =========================================================
# MÉTRICAS DE NOTIFICACIONES
# =========================================================

notifications_total = Counter(
    "reclamos_notifications_total",
    "Notificaciones enviadas por tipo y resultado",
    ["kind", "status"],  # status: sent, failed
    registry=registry,
)


# =========================================================
# MÉTRICAS DE API
# =========================================================

api_request_duration = Histogram(
    "reclamos_api_request_duration_seconds",
    "Duración de requests HTTP",
    ["method", "endpoint"],
    registry=registry,
    buckets=[0.01, 0.05, 0.1, 0.5, 1, 2, 5],
)

app_info = Info("reclamos_app", "Información de la aplicación", registry=registry)
app_info.info({"version": settings.app_version, "environment": settings.environment})


# =========================================================
# HELPERS DE TRACKING
# =========================================================


def track_claim_created(tipo_solicitud: str) -> None:
    if settings.metrics_enabled:
        claims_created_total.labels(tipo_solicitud=tipo_solicitud).inc()


def track_code_collision() -> None:
    if settings.metrics_enabled:
        claim_code_collisions_total.inc()


def track_validation_rejection() -> None:
    if settings.metrics_enabled:
        validation_rejections_total.inc()


def track_status_transition(estado_nuevo: str) -> None:
    if settings.metrics_enabled:
        status_transitions_total.labels(estado_nuevo=estado_nuevo).inc()


def track_notification(kind: str, status: str) -> None:
    """
    Trackea el resultado de una notificación.

    Args:
        kind: internal, consumer, client_message
        status: sent, failed
    """
    if settings.metrics_enabled:
        notifications_total.labels(kind=kind, status=status).inc()


def observe_request(method: str, endpoint: str, seconds: float) -> None:
    """
    Registra la duración de un request.

    Args:
        method: Método HTTP
        endpoint: Plantilla de la ruta (ej: /api/claims/{codigo}), no la URL concreta
        seconds: Duración medida por el middleware
    """
    if settings.metrics_enabled:
        api_request_duration.labels(method=method, endpoint=endpoint).observe(seconds)


# =========================================================
# ENDPOINT DE MÉTRICAS
# =========================================================


def get_metrics_response():
    """
    Genera respuesta con métricas en formato Prometheus.

    Returns:
        Tuple[bytes, str]: (contenido, content_type)
    """
    if not settings.metrics_enabled:
        return b"Metrics disabled\n", "text/plain"

    return generate_latest(registry), CONTENT_TYPE_LATEST
