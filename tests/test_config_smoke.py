import io
import json
import logging

import pytest
from pydantic import ValidationError

from app.core.config import Settings
from app.core.logger import JsonFormatter, StructuredLogger


@pytest.mark.smoke
def test_settings_load_smoke():
    from app.core.config import settings

    # Debe poder importarse y tener los campos básicos.
    assert settings is not None
    assert hasattr(settings, "database_url")
    assert settings.response_deadline_days == 15


@pytest.mark.smoke
def test_settings_defaults():
    s = Settings(_env_file=None)

    assert s.claim_code_prefix == "CODEPLEX"
    assert s.claim_code_max_attempts == 2
    assert s.rate_limit_claims_per_minute == 10


def test_settings_reject_bad_database_url():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, database_url="mysql://localhost/reclamos")


def test_settings_prefix_normalized():
    assert Settings(_env_file=None, claim_code_prefix="tienda").claim_code_prefix == "TIENDA"

    with pytest.raises(ValidationError):
        Settings(_env_file=None, claim_code_prefix="MI-TIENDA")


def test_production_requires_real_secret():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, environment="production")

    prod = Settings(_env_file=None, environment="production", jwt_secret_key="s3cr3t-de-verdad")
    assert prod.is_production


def _capture(logger: StructuredLogger) -> io.StringIO:
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter())
    logger.logger.handlers = [handler]
    return stream


def test_structured_logger_emits_json():
    logger = StructuredLogger("reclamos.test.json")
    stream = _capture(logger)

    logger.info("Claim registered", codigo_reclamo="CODEPLEX-2026-00001", action="claim_created", attempt=1)

    line = json.loads(stream.getvalue().strip())
    assert line["message"] == "Claim registered"
    assert line["level"] == "INFO"
    assert line["codigo_reclamo"] == "CODEPLEX-2026-00001"
    assert line["action"] == "claim_created"
    assert line["attempt"] == 1


def test_structured_logger_redacts_provenance():
    logger = StructuredLogger("reclamos.test.redaction")
    stream = _capture(logger)

    logger.warning(
        "Suspicious submission",
        action="claim_rejected",
        firma_digital="data:image/png;base64,AAAA",
        ip_address="10.0.0.1",
        user_agent="curl",
        password="secreto",
    )

    line = json.loads(stream.getvalue().strip())
    for field in ("firma_digital", "ip_address", "user_agent", "password"):
        assert field not in line


def test_structured_logger_error_details():
    logger = StructuredLogger("reclamos.test.error")
    stream = _capture(logger)

    logger.error("Notification failed", action="notification_failed", error=ConnectionError("relay"))

    line = json.loads(stream.getvalue().strip())
    assert line["error_type"] == "ConnectionError"
    assert line["error_message"] == "relay"
