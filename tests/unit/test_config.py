"""Unit tests for settings loading and logging setup."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from medsig.core.config import Settings, get_settings
from medsig.core.logging import configure_logging, get_logger


def test_defaults() -> None:
    settings = Settings()

    assert settings.environment == "development"
    assert settings.precision_tolerance == 0.001
    assert settings.enforce_precision is False
    assert settings.max_decimal_places == 4
    assert settings.tracing_enabled is False
    assert settings.template_locale == "en-US"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MEDSIG_PRECISION_TOLERANCE", "0.05")
    monkeypatch.setenv("MEDSIG_TRACING_ENABLED", "true")
    get_settings.cache_clear()

    settings = get_settings()

    assert settings.precision_tolerance == 0.05
    assert settings.tracing_enabled is True


def test_settings_are_cached() -> None:
    assert get_settings() is get_settings()


def test_template_locale_is_trimmed_and_required() -> None:
    assert Settings(template_locale=" es-US ").template_locale == "es-US"
    with pytest.raises(ValidationError):
        Settings(template_locale="   ")


def test_negative_tolerance_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(precision_tolerance=-0.1)


def test_configure_logging_sets_root_level() -> None:
    configure_logging("DEBUG", json_logs=True)

    assert logging.getLogger().level == logging.DEBUG
    get_logger(__name__).debug("logging_configured", test=True)

    configure_logging("WARNING", json_logs=False)
    assert logging.getLogger().level == logging.WARNING
