"""
Envío de email HTML vía SMTP.

Requisitos del relay:
- STARTTLS en 587 (smtp_use_tls) o SSL directo en 465 (smtp_use_ssl)
- Credenciales opcionales: sin SMTP_USER no se hace login
"""

from __future__ import annotations

import smtplib
from email.message import EmailMessage
from typing import Protocol

from app.core.config import Settings


class EmailSendError(RuntimeError):
    pass


class MailSender(Protocol):
    """Capacidad de envío inyectada en el dispatcher."""

    def send(self, *, to: str, subject: str, html_body: str, text_body: str) -> None:
        ...


class SmtpMailSender:
    """
    MailSender sobre smtplib.

    Se construye una vez al arrancar el servicio; cada envío abre su propia
    conexión al relay.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def send(self, *, to: str, subject: str, html_body: str, text_body: str) -> None:
        settings = self.settings
        if not settings.smtp_host or not settings.smtp_port:
            raise EmailSendError("SMTP_HOST/SMTP_PORT no configurados")
        if not settings.mail_from:
            raise EmailSendError("MAIL_FROM no configurado")

        msg = EmailMessage()
        msg["From"] = settings.mail_from
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(text_body)
        msg.add_alternative(html_body, subtype="html")

        smtp_class = smtplib.SMTP_SSL if settings.smtp_use_ssl else smtplib.SMTP

        try:
            with smtp_class(
                settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout_seconds
            ) as smtp:
                if settings.smtp_use_tls and not settings.smtp_use_ssl:
                    smtp.starttls()
                if settings.smtp_user and settings.smtp_password:
                    smtp.login(settings.smtp_user, settings.smtp_password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailSendError(f"Fallo enviando email SMTP: {e}") from e
