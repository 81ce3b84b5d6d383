"""
Notificaciones por email de reclamos.

- Aviso interno a soporte (siempre)
- Copia al consumidor (solo si aceptó recibirla)
- Aviso a soporte cuando el consumidor escribe en el seguimiento

Todo envío pasa por `_send`, que registra y traga los fallos: una
notificación nunca hace fallar ni revierte un reclamo ya confirmado.
Los valores del consumidor se guardan tal cual y se escapan aquí, al
interpolarlos en HTML.
"""
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime
from html import escape
from threading import Lock
from typing import Any, Callable, Optional

from app.core.config import Settings
from app.core.logger import StructuredLogger, get_logger
from app.core.telemetry import track_notification
from app.services.claim_repository import PersistedClaim
from app.services.claim_validator import NormalizedClaim
from app.services.email_sender import MailSender

KIND_INTERNAL = "internal"
KIND_CONSUMER = "consumer"
KIND_CLIENT_MESSAGE = "client_message"

LEGAL_BASIS = "D.S. 011-2011-PCM"


def _fecha(value: datetime) -> str:
    return value.strftime("%d/%m/%Y")


def _fecha_hora(value: datetime) -> str:
    return value.strftime("%d/%m/%Y %H:%M UTC")


def _e(value: Any) -> str:
    """Escapa un valor para HTML (None como cadena vacía)."""
    return escape("" if value is None else str(value))


# =========================================================
# PLANTILLAS
# =========================================================


def render_internal_notice(
    claim: PersistedClaim, submission: NormalizedClaim, settings: Settings
) -> tuple[str, str, str]:
    """Asunto, HTML y texto del aviso interno a soporte."""
    tipo = submission.tipo_solicitud
    signature_url = f"{settings.backend_url.rstrip('/')}/api/claims/{claim.codigo_reclamo}/signature"
    deadline = _fecha(claim.fecha_limite_respuesta)
    tipo_bien = submission.tipo_bien or "SERVICIO"
    plazo = settings.response_deadline_days

    subject = f"Nuevo {tipo} - {claim.codigo_reclamo}"

    fields = [
        ("Tipo de Solicitud", tipo),
        ("Consumidor", submission.nombre_completo),
        ("Documento", f"{submission.tipo_documento} {submission.numero_documento}"),
        ("Teléfono", submission.telefono),
        ("Email", submission.email),
        ("Domicilio", submission.domicilio),
        ("Ubicación", ", ".join(
            p for p in (submission.distrito, submission.provincia, submission.departamento) if p
        ) or None),
        ("Tipo de Bien", tipo_bien),
        ("Monto Reclamado", f"S/ {submission.monto_reclamado}" if submission.monto_reclamado else None),
        ("Descripción del Bien", submission.descripcion_bien),
        ("Área", submission.area_queja),
        ("Situación", submission.descripcion_situacion),
        ("Fecha del Incidente", submission.fecha_incidente.isoformat()),
        ("Detalle", submission.detalle_reclamo),
        ("Pedido del Consumidor", submission.pedido_consumidor),
        ("Copia al consumidor", "Sí" if submission.acepta_copia else "No"),
    ]
    rows = "\n".join(
        f'<div class="field"><div class="label">{_e(label)}:</div><div>{_e(value)}</div></div>'
        for label, value in fields
        if value is not None
    )

    html_body = f"""<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
<div style="max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: #1e40af; color: white; padding: 20px; text-align: center;">
    <h1>Nuevo {_e(tipo)}</h1>
    <p>Código: {_e(claim.codigo_reclamo)}</p>
  </div>
  <div style="background: #fef2f2; border-left: 4px solid #dc2626; padding: 15px; margin: 20px 0;">
    <strong>PLAZO LEGAL:</strong> Debe responder antes del <strong>{deadline}</strong> ({plazo} días)
  </div>
  {rows}
  <div class="field">
    <div class="label">Firma Digital:</div>
    <a href="{_e(signature_url)}" target="_blank">Ver firma del consumidor</a>
  </div>
  <p style="color: #6b7280; font-size: 12px;">Registrado el {_fecha_hora(claim.fecha_registro)}</p>
</div>
</body>
</html>"""

    text_lines = [
        f"Nuevo {tipo} - {claim.codigo_reclamo}",
        f"PLAZO LEGAL: responder antes del {deadline} ({plazo} días)",
        "",
        *(f"{label}: {value}" for label, value in fields if value is not None),
        "",
        f"Firma digital: {signature_url}",
    ]
    return subject, html_body, "\n".join(text_lines)


def render_consumer_ack(
    claim: PersistedClaim, submission: NormalizedClaim, settings: Settings
) -> tuple[str, str, str]:
    """Asunto, HTML y texto de la copia para el consumidor."""
    tipo = submission.tipo_solicitud
    deadline = _fecha(claim.fecha_limite_respuesta)
    tipo_bien = submission.tipo_bien or "SERVICIO"
    plazo = settings.response_deadline_days
    footer = (
        f"{settings.company_name} | RUC: {settings.company_ruc}",
        settings.company_address,
        f"{settings.support_email} | {settings.company_phone}",
    )
    tracking_url = f"{settings.frontend_url.rstrip('/')}/seguimiento/{claim.codigo_reclamo}"
    footer_html = "<br>".join(_e(line) for line in footer)

    subject = f"Confirmación de {tipo} - {claim.codigo_reclamo}"

    html_body = f"""<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
<div style="max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: #1e40af; color: white; padding: 20px; text-align: center;">
    <h1>{_e(tipo)} Registrado</h1>
    <h2>{_e(claim.codigo_reclamo)}</h2>
  </div>
  <div style="background: #f0fdf4; border-left: 4px solid #10b981; padding: 15px; margin: 20px 0;">
    <strong>Estimado/a {_e(submission.nombre_completo)}</strong><br>
    Su {_e(tipo.lower())} ha sido registrado exitosamente en nuestro Libro de Reclamaciones Virtual.
  </div>
  <div style="background: #eff6ff; border-left: 4px solid #3b82f6; padding: 15px; margin: 20px 0;">
    <strong>Plazo de Respuesta:</strong><br>
    Recibirá nuestra respuesta antes del <strong>{deadline}</strong><br><br>
    Plazo legal: <strong>{plazo} días hábiles</strong> (según {LEGAL_BASIS})
  </div>
  <h3>Resumen de su {_e(tipo)}:</h3>
  <ul>
    <li><strong>Código:</strong> {_e(claim.codigo_reclamo)}</li>
    <li><strong>Fecha:</strong> {_fecha_hora(claim.fecha_registro)}</li>
    <li><strong>Tipo:</strong> {_e(tipo)}</li>
    <li><strong>Bien Contratado:</strong> {_e(tipo_bien)}</li>
    <li><strong>Descripción:</strong> {_e(submission.descripcion_bien)}</li>
  </ul>
  <p>Puede consultar el estado en <a href="{_e(tracking_url)}">{_e(tracking_url)}</a>
  con su número de documento. Conserve este email como comprobante.</p>
  <div style="text-align: center; margin-top: 30px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 12px;">
    {footer_html}
  </div>
</div>
</body>
</html>"""

    text_body = "\n".join(
        [
            f"Estimado/a {submission.nombre_completo}:",
            f"Su {tipo.lower()} {claim.codigo_reclamo} ha sido registrado exitosamente.",
            f"Recibirá nuestra respuesta antes del {deadline}.",
            f"Plazo legal: {plazo} días hábiles (según {LEGAL_BASIS}).",
            "",
            f"Fecha: {_fecha_hora(claim.fecha_registro)}",
            f"Bien contratado: {tipo_bien}",
            f"Descripción: {submission.descripcion_bien}",
            f"Seguimiento: {tracking_url}",
            "",
            *footer,
        ]
    )
    return subject, html_body, text_body


def render_client_message_notice(
    codigo_reclamo: str,
    tipo_solicitud: str,
    nombre_completo: str,
    numero_documento: str,
    mensaje: str,
) -> tuple[str, str, str]:
    """Asunto, HTML y texto del aviso de mensaje nuevo del consumidor."""
    subject = f"💬 Nuevo mensaje en {tipo_solicitud} - {codigo_reclamo}"

    html_body = f"""<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"></head>
<body style="font-family: Arial, sans-serif; background-color: #f3f4f6;">
<div style="max-width: 600px; margin: 0 auto; background: #ffffff; padding: 20px;">
  <div style="background: #7c3aed; color: #ffffff; padding: 20px; text-align: center;">
    <h1>Nuevo Mensaje del Cliente</h1>
    <p>Reclamo: <strong>{_e(codigo_reclamo)}</strong></p>
  </div>
  <div style="background-color: #fef3c7; border-left: 4px solid #f59e0b; padding: 12px 15px; margin: 15px 0;">
    <strong>ATENCIÓN REQUERIDA:</strong>
    El cliente ha enviado un mensaje adicional sobre su {_e(tipo_solicitud)}
  </div>
  <div>
    <strong>Cliente:</strong> {_e(nombre_completo)}<br>
    <strong>Documento:</strong> {_e(numero_documento)}<br>
    <strong>Código:</strong> {_e(codigo_reclamo)}
  </div>
  <div style="white-space: pre-wrap; border: 1px solid #e5e7eb; padding: 15px; margin-top: 15px;">{_e(mensaje)}</div>
</div>
</body>
</html>"""

    text_body = "\n".join(
        [
            f"Nuevo mensaje en {tipo_solicitud} - {codigo_reclamo}",
            f"Cliente: {nombre_completo}",
            f"Documento: {numero_documento}",
            "",
            mensaje,
        ]
    )
    return subject, html_body, text_body


# =========================================================
# DISPATCHER
# =========================================================


class NotificationDispatcher:
    """
    Compone y envía las notificaciones de un reclamo.

    Args:
        mail_sender: Capacidad de envío (SMTP en producción)
        settings: Destinatario interno, URLs e identidad fiscal
    """

    def __init__(
        self,
        mail_sender: MailSender,
        settings: Settings,
        logger: Optional[StructuredLogger] = None,
    ):
        self.mail_sender = mail_sender
        self.settings = settings
        self.logger = logger or get_logger()

    def dispatch(self, claim: PersistedClaim, submission: NormalizedClaim) -> None:
        """
        Aviso interno y, si corresponde, copia al consumidor.

        Llamar solo después del commit del alta. Cada envío es independiente:
        si falla el interno, la copia al consumidor se intenta igual.
        """
        if not self.settings.notifications_enabled:
            self.logger.info(
                "Notifications disabled, skipping",
                codigo_reclamo=claim.codigo_reclamo,
                action="notification_skipped",
            )
            return

        subject, html_body, text_body = render_internal_notice(claim, submission, self.settings)
        self._send(KIND_INTERNAL, self.settings.support_email, subject, html_body, text_body, claim.codigo_reclamo)

        if submission.acepta_copia:
            subject, html_body, text_body = render_consumer_ack(claim, submission, self.settings)
            self._send(KIND_CONSUMER, submission.email, subject, html_body, text_body, claim.codigo_reclamo)

    def notify_client_message(
        self,
        codigo_reclamo: str,
        tipo_solicitud: str,
        nombre_completo: str,
        numero_documento: str,
        mensaje: str,
    ) -> None:
        """Avisa a soporte de un mensaje nuevo del consumidor."""
        if not self.settings.notifications_enabled:
            return

        subject, html_body, text_body = render_client_message_notice(
            codigo_reclamo, tipo_solicitud, nombre_completo, numero_documento, mensaje
        )
        self._send(
            KIND_CLIENT_MESSAGE, self.settings.support_email, subject, html_body, text_body, codigo_reclamo
        )

    def _send(
        self,
        kind: str,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
        codigo_reclamo: str,
    ) -> bool:
        try:
            self.mail_sender.send(to=to, subject=subject, html_body=html_body, text_body=text_body)
        except Exception as e:
            track_notification(kind, "failed")
            self.logger.error(
                "Notification failed",
                codigo_reclamo=codigo_reclamo,
                action="notification_failed",
                error=e,
                kind=kind,
            )
            return False

        track_notification(kind, "sent")
        self.logger.info(
            "Notification sent",
            codigo_reclamo=codigo_reclamo,
            action="notification_sent",
            kind=kind,
        )
        return True


# =========================================================
# WORKER EN SEGUNDO PLANO
# =========================================================


class NotificationWorker:
    """
    Ejecuta los envíos fuera del hilo del request.

    `submit` vuelve inmediatamente; cada trabajo aplica el retraso
    configurado y corre dentro de su propio manejo de errores. Arranca y se
    detiene con el lifespan de la aplicación.
    """

    def __init__(
        self,
        max_workers: int = 2,
        delay_seconds: float = 0.0,
        logger: Optional[StructuredLogger] = None,
    ):
        self.max_workers = max_workers
        self.delay_seconds = delay_seconds
        self.logger = logger or get_logger()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: set[Future] = set()
        self._lock = Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "NotificationWorker":
        return cls(
            max_workers=settings.notification_workers,
            delay_seconds=settings.notification_delay_seconds,
        )

    @property
    def running(self) -> bool:
        return self._executor is not None

    def start(self) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="notifications"
            )

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Optional[Future]:
        """
        Encola un trabajo de notificación.

        Nunca lanza: si el executor ya no acepta trabajos se registra y se
        devuelve None.
        """
        if self._executor is None:
            self.start()

        try:
            future = self._executor.submit(self._run, fn, args, kwargs)
        except RuntimeError as e:
            self.logger.error("Notification job rejected", action="notification_failed", error=e)
            return None

        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def drain(self, timeout: Optional[float] = None) -> None:
        """Espera a que terminen los trabajos encolados."""
        with self._lock:
            pending = set(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self, wait_pending: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait_pending)
            self._executor = None

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _run(self, fn: Callable[..., Any], args: tuple, kwargs: dict) -> None:
        if self.delay_seconds:
            time.sleep(self.delay_seconds)
        try:
            fn(*args, **kwargs)
        except Exception as e:
            self.logger.error(
                "Notification job failed",
                action="notification_failed",
                error=e,
                job=getattr(fn, "__name__", repr(fn)),
            )
