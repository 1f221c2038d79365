"""Modifiers applied after the base strategy, in ascending priority."""

from __future__ import annotations

from medsig.core.logging import get_logger
from medsig.modules.medication.schemas import Amount, MedicationRequestContext
from medsig.modules.strategies import fhir
from medsig.modules.strategies.base import SOLID_FORMS
from medsig.modules.strategies.types import SignatureInstruction, StrategyMetadata
from medsig.modules.templates.catalog import TemplateKey
from medsig.modules.templates.data_builder import TemplateDataBuilder
from medsig.modules.templates.engine import TemplateEngine
from medsig.modules.templates.rendering import format_number
from medsig.modules.units.constants import DIMENSION_ACTIVITY, DIMENSION_MASS

logger = get_logger(__name__)


def strength_display(builder: TemplateDataBuilder, context: MedicationRequestContext) -> str | None:
    """``"1000 mg"`` for 2 tablets of a 500 mg tablet, or ``None`` when it does not apply.

    Only single ingredient solids dosed in their own count unit get a strength,
    and a dose of exactly one unit is already described by the product strength.
    """
    dose = context.dose
    strength = context.medication.primary_strength
    if dose is None or strength is None or dose.value == 1:
        return None
    if context.medication.dose_form.strip().casefold() not in SOLID_FORMS:
        return None
    if sum(1 for item in context.medication.ingredient if item.strength_ratio) > 1:
        return None

    converter = builder.converter
    if converter.device_adapter.normalize(dose.unit) is None:
        return None
    unit = strength.numerator.unit
    if converter.registry.dimension_of(unit) not in (DIMENSION_MASS, DIMENSION_ACTIVITY):
        return None

    result = converter.convert(
        dose.value, dose.unit, unit, context.medication.conversion_context()
    )
    if result.value is None:
        return None
    return f"{format_number(result.value.value)} {unit}"


class TopiclickModifier:
    """Re-expresses a Topiclick dose in clicks (4 clicks = 1 mL unless the dispenser says otherwise)."""

    priority = 10
    metadata = StrategyMetadata(
        id="topiclick-modifier",
        name="Topiclick Modifier",
        description="Converts doses for the Topiclick dispenser into clicks",
        examples=("Estradiol cream via Topiclick",),
        version="2.0.0",
    )

    def __init__(self, engine: TemplateEngine | None = None, builder: TemplateDataBuilder | None = None) -> None:
        self._engine = engine or TemplateEngine()
        self._builder = builder or TemplateDataBuilder()

    def applies_to(self, context: MedicationRequestContext) -> bool:
        return context.medication.is_topiclick and context.dose is not None

    def modify(
        self, instruction: SignatureInstruction, context: MedicationRequestContext
    ) -> SignatureInstruction:
        data = self._builder.for_topiclick(context)
        clicks = data["doseValue"]
        if not clicks:
            logger.warning(
                "topiclick_dose_unconverted",
                medication=context.medication.name,
                unit=context.dose.unit if context.dose else None,
            )
            return instruction
        return instruction.model_copy(
            update={
                "text": self._engine.render(TemplateKey.TOPICLICK_APPLICATION, data),
                "dose_and_rate": fhir.dose_and_rate(Amount(value=clicks, unit="click")),
                "template_variables": data,
            }
        )

    def explain(self) -> str:
        return "Topiclick modifier: doses are dispensed in clicks from the metered dispenser"


class StrengthDisplayModifier:
    """Adds the total strength after a counted dose: ``2 tablets (1000 mg)``."""

    priority = 20
    metadata = StrategyMetadata(
        id="strength-display-modifier",
        name="Strength Display Modifier",
        description="Shows the active ingredient amount next to tablet and capsule counts",
        examples=("Take 2 tablets (1000 mg) by mouth twice daily.",),
    )

    def __init__(self, builder: TemplateDataBuilder | None = None) -> None:
        self._builder = builder or TemplateDataBuilder()

    def applies_to(self, context: MedicationRequestContext) -> bool:
        return strength_display(self._builder, context) is not None

    def modify(
        self, instruction: SignatureInstruction, context: MedicationRequestContext
    ) -> SignatureInstruction:
        strength = strength_display(self._builder, context)
        dose_text = self._builder.for_tablet(context)["doseText"]
        if strength is None or not dose_text or dose_text not in instruction.text:
            return instruction
        variables = dict(instruction.template_variables or {})
        variables["strengthDisplay"] = strength
        return instruction.model_copy(
            update={
                "text": instruction.text.replace(dose_text, f"{dose_text} ({strength})", 1),
                "template_variables": variables,
            }
        )

    def explain(self) -> str:
        return "Strength display modifier: appends the total strength to counted solid doses"


class PrnModifier:
    """Turns a scheduled instruction into an as-needed one."""

    priority = 30
    metadata = StrategyMetadata(
        id="prn-modifier",
        name="PRN Modifier",
        description="Adds as-needed wording, the indication and any maximum dose",
        examples=("Take 1 tablet by mouth every 6 hours as needed for pain.",),
    )

    def __init__(self, engine: TemplateEngine | None = None, builder: TemplateDataBuilder | None = None) -> None:
        self._engine = engine or TemplateEngine()
        self._builder = builder or TemplateDataBuilder()

    def applies_to(self, context: MedicationRequestContext) -> bool:
        return context.is_prn

    def modify(
        self, instruction: SignatureInstruction, context: MedicationRequestContext
    ) -> SignatureInstruction:
        data = self._builder.for_prn(context)
        strength = strength_display(self._builder, context)
        if strength and data["doseText"]:
            data["doseText"] = f"{data['doseText']} ({strength})"

        indication = context.indication
        update = {
            "text": self._engine.render(TemplateKey.PRN_INSTRUCTION, data),
            "max_dose_per_period": fhir.max_dose_per_period(context.max_dose_per_period),
            "template_variables": data,
        }
        if indication:
            update["as_needed_codeable_concept"] = {"text": indication}
        else:
            update["as_needed_boolean"] = True
        return instruction.model_copy(update=update)

    def explain(self) -> str:
        return "PRN modifier: renders the as-needed instruction with indication and maximum dose"
