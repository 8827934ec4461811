import logging

from adatickets.core.config import Settings
from adatickets.core.logging import configure_logging, init_tracer, parse_headers


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("ADATICKETS_LOG_LEVEL", "debug")
    monkeypatch.setenv("ADATICKETS_CREATE_SCHEMA_ON_STARTUP", "false")

    settings = Settings()

    assert settings.log_level == "debug"
    assert settings.create_schema_on_startup is False


def test_configure_logging_sets_level():
    logger = configure_logging(Settings(log_level="WARNING"))

    assert logger.name == "adatickets"
    assert logger.level == logging.WARNING


def test_parse_headers_skips_malformed_items():
    assert parse_headers("api-key=secret, broken,=empty, team = ops") == {"api-key": "secret", "team": "ops"}
    assert parse_headers(None) == {}


def test_tracer_disabled_by_default():
    assert init_tracer(Settings(otel_enabled=False)) is None
