"""
Pytest fixtures for the signature core.
Provides shared converters, engines and medication factories.
"""

from typing import Any

import pytest

from medsig.core.config import get_settings
from medsig.modules.medication.schemas import Medication, MedicationRequestContext
from medsig.modules.routes.validator import RouteValidator
from medsig.modules.templates.data_builder import TemplateDataBuilder
from medsig.modules.templates.engine import TemplateEngine
from medsig.modules.units.converter import UnitConverter


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep MEDSIG_* variables from the host out of the tests."""
    for name in (
        "MEDSIG_ENVIRONMENT",
        "MEDSIG_LOG_LEVEL",
        "MEDSIG_PRECISION_TOLERANCE",
        "MEDSIG_ENFORCE_PRECISION",
        "MEDSIG_MAX_DECIMAL_PLACES",
        "MEDSIG_TRACING_ENABLED",
        "MEDSIG_TEMPLATE_LOCALE",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()


@pytest.fixture
def converter() -> UnitConverter:
    return UnitConverter()


@pytest.fixture
def routes() -> RouteValidator:
    return RouteValidator()


@pytest.fixture
def engine() -> TemplateEngine:
    return TemplateEngine(locale="en-US")


@pytest.fixture
def builder(converter: UnitConverter, routes: RouteValidator) -> TemplateDataBuilder:
    return TemplateDataBuilder(converter=converter, routes=routes)


def _make_medication(
    dose_form: str = "Tablet",
    *,
    name: str = "",
    strength: tuple[float, str, float, str] | None = (500, "mg", 1, "tablet"),
    **extra: Any,
) -> Medication:
    ingredient = []
    if strength is not None:
        num_value, num_unit, den_value, den_unit = strength
        ingredient.append(
            {
                "name": name,
                "strengthRatio": {
                    "numerator": {"value": num_value, "unit": num_unit},
                    "denominator": {"value": den_value, "unit": den_unit},
                },
            }
        )
    return Medication.model_validate(
        {"name": name, "doseForm": dose_form, "ingredient": ingredient, **extra}
    )


def _make_context(
    medication: Medication,
    dose: tuple[float, str] | None = (1, "tablet"),
    route: str = "by mouth",
    frequency: str = "twice daily",
    **extra: Any,
) -> MedicationRequestContext:
    return MedicationRequestContext(
        medication=medication,
        dose={"value": dose[0], "unit": dose[1]} if dose else None,
        route=route,
        frequency=frequency,
        **extra,
    )


@pytest.fixture
def make_medication() -> Any:
    """Factory: ``make_medication("Tablet", strength=(500, "mg", 1, "tablet"))``."""
    return _make_medication


@pytest.fixture
def make_context() -> Any:
    """Factory: ``make_context(medication, (1, "tablet"), "by mouth", "twice daily")``."""
    return _make_context
