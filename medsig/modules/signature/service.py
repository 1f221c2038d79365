"""Signature generation entry points.

``generate_signature`` is the flat call used by form-style callers; it builds a
``MedicationRequestContext`` and hands it to ``build_signature``, which runs
the strategy dispatcher.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from functools import lru_cache
from typing import Any

from medsig.core.logging import get_logger
from medsig.modules.medication.schemas import Amount, Medication, MedicationRequestContext
from medsig.modules.routes.constants import DOSE_FORMS
from medsig.modules.routes.validator import RouteValidator
from medsig.modules.signature.schemas import DoseValidation, SignatureResult, StrengthMode
from medsig.modules.strategies.dispatcher import StrategyDispatcher
from medsig.modules.strategies.registry import default_registry
from medsig.modules.templates.engine import TemplateEngine
from medsig.modules.units.converter import UnitConverter

logger = get_logger(__name__)

_VOLUME_FORMS = frozenset(
    {
        "solution",
        "suspension",
        "syrup",
        "elixir",
        "liquid",
        "vial",
        "injection",
        "drops",
        "nasal spray",
    }
)
_WEIGHT_FORMS = frozenset({"cream", "gel", "ointment", "foam", "lotion"})
_SCORING_STEPS = {"NONE": 1.0, "HALF": 0.5, "QUARTER": 0.25}
_MIN_SOLID_FRACTION = 0.25


def _form(dose_form: str) -> str:
    return dose_form.strip().casefold()


def is_multi_ingredient(medication: Medication) -> bool:
    """More than one ingredient carries a usable strength."""
    active = [
        item
        for item in medication.ingredient
        if item.strength_ratio is not None
        and item.strength_ratio.numerator.value
        and item.strength_ratio.numerator.unit
    ]
    return len(active) > 1


def get_strength_mode(dose_form: str) -> StrengthMode:
    """``ratio`` for liquids and semi-solids (mg/mL, mg/g), ``quantity`` for solids."""
    form = _form(dose_form)
    if form in _VOLUME_FORMS or form in _WEIGHT_FORMS:
        return "ratio"
    return "quantity"


def get_denominator_unit(dose_form: str) -> str:
    form = _form(dose_form)
    if form in _WEIGHT_FORMS:
        return "g"
    if form in _VOLUME_FORMS:
        return "mL"
    for name, definition in DOSE_FORMS.items():
        if name.casefold() == form:
            return definition.default_unit
    return form


def get_dispensing_unit(medication: Medication) -> str:
    """Unit a dose should be entered in.

    Multi-ingredient products are dosed by product volume or weight; single
    ingredient products by the active ingredient.
    """
    strength = medication.primary_strength
    if strength is None or is_multi_ingredient(medication):
        return get_denominator_unit(medication.dose_form)
    return strength.numerator.unit


def validate_dose(
    medication: Medication,
    dose: Amount,
    *,
    converter: UnitConverter | None = None,
) -> DoseValidation:
    if isinstance(dose.value, bool) or not math.isfinite(dose.value) or dose.value <= 0:
        return DoseValidation(False, "Dose must be a positive number")

    converter = converter or _default_converter()
    if not converter.validate(dose.unit).valid:
        return DoseValidation(False, f"Unknown dose unit: {dose.unit}")

    dimension = _dimension(converter, dose.unit)
    if is_multi_ingredient(medication):
        denominator = get_denominator_unit(medication.dose_form)
        if dimension != _dimension(converter, denominator):
            return DoseValidation(
                False, f"Multi-ingredient medications must be dosed in {denominator}"
            )

    form = _default_routes().get_dose_form(medication.dose_form)
    adapter = converter.device_adapter
    counted = form is not None and form.is_countable
    if counted and adapter.normalize(dose.unit) == adapter.normalize(form.default_unit):
        if dose.value < _MIN_SOLID_FRACTION:
            return DoseValidation(False, f"Doses cannot be less than ¼ {form.default_unit}")
        step = _SCORING_STEPS.get(medication.scoring or "QUARTER", _MIN_SOLID_FRACTION)
        if not _is_multiple(dose.value, step):
            if medication.scoring == "NONE":
                message = f"{form.name} is not scored; only whole {form.plural_unit} can be given"
            elif medication.scoring == "HALF":
                message = f"{form.name} is scored for halves only"
            else:
                message = f"{form.name} doses must be in quarter {form.default_unit} increments"
            return DoseValidation(False, message)
    return DoseValidation(True)


def generate_signature(
    medication: Medication | Mapping[str, Any],
    dose: Amount | Mapping[str, Any],
    route_name: str,
    frequency_name: str,
    special_instructions: str | None = None,
    *,
    converter: UnitConverter | None = None,
    engine: TemplateEngine | None = None,
) -> SignatureResult:
    """Render one signature.

    Route and dose problems are logged, not raised; the instruction is still
    produced so a reviewer can see it.

    Usage::

        result = generate_signature(tablet, {"value": 1, "unit": "tablet"}, "by mouth", "twice daily")
        result.human_readable  # "Take 1 tablet by mouth twice daily."
    """
    medication = (
        medication if isinstance(medication, Medication) else Medication.model_validate(medication)
    )
    dose = dose if isinstance(dose, Amount) else Amount.model_validate(dose)
    context = MedicationRequestContext(
        medication=medication,
        dose=dose,
        route=route_name,
        frequency=frequency_name,
        special_instructions=special_instructions,
    )

    routes = _default_routes()
    route_check = routes.validate_route(route_name, medication.dose_form)
    if not route_check.is_valid:
        logger.warning(
            "signature_route_invalid",
            route=route_name,
            dose_form=medication.dose_form,
            errors=route_check.errors,
        )
    dose_check = validate_dose(medication, dose, converter=converter)
    if not dose_check.valid:
        logger.warning(
            "signature_dose_invalid",
            dose_value=dose.value,
            dose_unit=dose.unit,
            message=dose_check.message,
        )

    if converter is None and engine is None:
        dispatcher = get_default_dispatcher()
    else:
        dispatcher = StrategyDispatcher(
            default_registry(engine=engine, converter=converter, routes=routes)
        )
    return build_signature(context, dispatcher=dispatcher)


def build_signature(
    context: MedicationRequestContext,
    *,
    dispatcher: StrategyDispatcher | None = None,
) -> SignatureResult:
    instruction = (dispatcher or get_default_dispatcher()).dispatch(context)
    return SignatureResult(
        human_readable=instruction.text,
        fhir_representation=instruction.to_fhir(),
        template_variables=instruction.template_variables,
    )


@lru_cache
def get_default_dispatcher() -> StrategyDispatcher:
    """Process-wide dispatcher over the shipped strategies."""
    return StrategyDispatcher(
        default_registry(converter=_default_converter(), routes=_default_routes())
    )


@lru_cache
def _default_converter() -> UnitConverter:
    return UnitConverter()


@lru_cache
def _default_routes() -> RouteValidator:
    return RouteValidator()


def _dimension(converter: UnitConverter, unit: str) -> str | None:
    return converter.device_adapter.dimension_of(unit) or converter.registry.dimension_of(unit)


def _is_multiple(value: float, step: float) -> bool:
    ratio = value / step
    return math.isclose(ratio, round(ratio), abs_tol=1e-9)
