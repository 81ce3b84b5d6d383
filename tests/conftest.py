"""Fixtures pytest del Libro de Reclamaciones."""
import base64
import threading

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.database import Database
from app.core.security import create_access_token, hash_password
from app.main import create_app
from app.models.enums import RolUsuario
from app.models.user import UsuarioAdmin
from app.services.claim_repository import ClaimRepository
from app.services.email_sender import EmailSendError

SIGNATURE_BYTES = b"\x89PNG\r\n\x1a\nfirma-de-prueba"
SIGNATURE_DATA_URL = "data:image/png;base64," + base64.b64encode(SIGNATURE_BYTES).decode()

DEFAULT_PASSWORD = "secreto123"


class RecordingMailSender:
    """MailSender en memoria: guarda lo enviado y puede simular caídas del relay."""

    def __init__(self):
        self.sent = []
        self.attempts = []
        self.fail_all = False
        self.fail_for = set()
        self._lock = threading.Lock()

    def send(self, *, to, subject, html_body, text_body):
        with self._lock:
            self.attempts.append(to)
        if self.fail_all or to in self.fail_for:
            raise EmailSendError(f"relay rechazó el envío a {to}")
        with self._lock:
            self.sent.append(
                {"to": to, "subject": subject, "html_body": html_body, "text_body": text_body}
            )

    def sent_to(self, recipient):
        return [m for m in self.sent if m["to"] == recipient]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        environment="test",
        database_url=f"sqlite:///{tmp_path / 'reclamos.db'}",
        rate_limit_enabled=False,
        jwt_secret_key="clave-de-test",
        claim_code_prefix="CODEPLEX",
        support_email="soporte@test.pe",
        backend_url="http://api.test",
        frontend_url="http://web.test",
        notification_delay_seconds=0,
        bootstrap_admin_email=None,
        bootstrap_admin_password=None,
    )


@pytest.fixture
def database(settings):
    db = Database.from_settings(settings)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def db_session(database):
    session = database.session_factory()
    yield session
    session.close()


@pytest.fixture
def repository(database, settings):
    return ClaimRepository(database, settings)


@pytest.fixture
def mail_sender():
    return RecordingMailSender()


@pytest.fixture
def app(settings, database, mail_sender):
    return create_app(settings=settings, database=database, mail_sender=mail_sender)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_payload():
    """Factory de envíos válidos del formulario público."""

    def _make(**overrides):
        payload = {
            "tipo_solicitud": "RECLAMO",
            "nombre_completo": "María Quispe Huamán",
            "tipo_documento": "DNI",
            "numero_documento": "45678912",
            "telefono": "987654321",
            "email": "maria.quispe@example.com",
            "domicilio": "Av. Los Próceres 123",
            "departamento": "Lima",
            "provincia": "Lima",
            "distrito": "Los Olivos",
            "tipo_bien": "PRODUCTO",
            "monto_reclamado": 150.5,
            "descripcion_bien": "Laptop modelo X",
            "fecha_incidente": "2026-10-01",
            "detalle_reclamo": "El equipo llegó con la pantalla rota.",
            "pedido_consumidor": "Cambio del equipo por uno nuevo.",
            "firma_digital": SIGNATURE_DATA_URL,
            "acepta_terminos": True,
            "acepta_copia": False,
        }
        payload.update(overrides)
        return payload

    return _make


def _create_user(database, email, rol, activo=True, nombre="Usuario Test"):
    with database.session_scope() as session:
        user = UsuarioAdmin(
            email=email,
            nombre_completo=nombre,
            password_hash=hash_password(DEFAULT_PASSWORD),
            rol=rol,
            activo=activo,
        )
        session.add(user)
    return user


@pytest.fixture
def admin_user(database):
    return _create_user(database, "admin@test.pe", RolUsuario.ADMIN.value, nombre="Ana Admin")


@pytest.fixture
def soporte_user(database):
    return _create_user(database, "soporte@test.pe", RolUsuario.SOPORTE.value, nombre="Sergio Soporte")


@pytest.fixture
def inactive_user(database):
    return _create_user(database, "baja@test.pe", RolUsuario.SOPORTE.value, activo=False)


@pytest.fixture
def auth_headers(settings):
    """Factory de cabeceras Authorization para un usuario."""

    def _headers(user):
        token = create_access_token(user.id, user.email, user.rol, settings=settings)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def submit_claim(client, make_payload):
    """Registra un reclamo por la API y devuelve el bloque `data`."""

    def _submit(**overrides):
        response = client.post("/api/claims", json=make_payload(**overrides))
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _submit
