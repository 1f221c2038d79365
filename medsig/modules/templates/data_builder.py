"""Builds ``TemplateData`` for each template family from a request context.

General templates get ready-made clause slots: ``specialInstructions`` is
``" with food"`` or empty, ``site`` is ``" to the affected area"`` or empty.
Specialised templates (Topiclick, testosterone) get raw values and let the
pattern decide.
"""

from __future__ import annotations

import math

from medsig.core.logging import get_logger
from medsig.modules.medication.schemas import Amount, MaxDosePerPeriod, MedicationRequestContext
from medsig.modules.routes.validator import RouteValidator
from medsig.modules.templates.engine import TemplateData
from medsig.modules.templates.rendering import format_number
from medsig.modules.units.constants import DISPLAY_UNIT_OVERRIDES
from medsig.modules.units.converter import UnitConverter
from medsig.modules.units.models import ConversionOptions

logger = get_logger(__name__)

MIN_TABLET_FRACTION = 0.25
DEFAULT_TOPICAL_AMOUNT = "a thin layer"

_FRACTIONS = {0.25: "¼", 0.5: "½", 0.75: "¾"}
_PERIOD_UNITS = {
    "h": ("hour", "hours"),
    "hr": ("hour", "hours"),
    "hour": ("hour", "hours"),
    "hours": ("hour", "hours"),
    "d": ("day", "days"),
    "day": ("day", "days"),
    "days": ("day", "days"),
    "wk": ("week", "weeks"),
    "week": ("week", "weeks"),
}


def format_tablet_dose(value: float) -> str:
    """``0.5 -> "½"``, ``1.5 -> "1½"``, ``2 -> "2"``. Rounds to the nearest quarter, minimum ¼."""
    quarters = max(round(value * 4), 1)
    whole, remainder = divmod(quarters, 4)
    fraction = _FRACTIONS.get(remainder / 4, "")
    if whole == 0:
        return fraction
    return f"{whole}{fraction}"


def _clause(prefix: str, text: str | None) -> str:
    if text is None:
        return ""
    text = text.strip().rstrip(".")
    if not text:
        return ""
    return f"{prefix}{text}"


class TemplateDataBuilder:
    """Turns a ``MedicationRequestContext`` into template slot values.

    Usage::

        builder = TemplateDataBuilder()
        data = builder.for_tablet(context)
        engine.render(TemplateKey.ORAL_TABLET, data)
    """

    def __init__(
        self,
        converter: UnitConverter | None = None,
        routes: RouteValidator | None = None,
    ) -> None:
        self._converter = converter or UnitConverter()
        self._routes = routes or RouteValidator()

    @property
    def converter(self) -> UnitConverter:
        return self._converter

    @property
    def routes(self) -> RouteValidator:
        return self._routes

    # -- per family --------------------------------------------------------

    def for_tablet(self, context: MedicationRequestContext) -> TemplateData:
        return {
            "verb": self._verb(context),
            "doseText": self._tablet_dose_text(context),
            "route": self._route_phrase(context),
            "frequency": context.frequency,
            "specialInstructions": _clause(" ", context.special_instructions),
        }

    def for_liquid(self, context: MedicationRequestContext) -> TemplateData:
        volume, dual = self._volume_and_dual(context)
        return {
            "verb": self._verb(context),
            "doseValue": format_number(volume.value) if volume else "",
            "doseUnit": volume.unit if volume else "",
            "dualDose": f", as {dual}," if dual else "",
            "route": self._route_phrase(context),
            "frequency": context.frequency,
            "specialInstructions": _clause(" ", context.special_instructions),
        }

    def for_topical(self, context: MedicationRequestContext) -> TemplateData:
        dose = context.dose
        return {
            "verb": self._verb(context),
            "doseText": self._amount_text(dose) if dose else DEFAULT_TOPICAL_AMOUNT,
            "route": self._route_phrase(context),
            "site": _clause(" to ", context.site),
            "frequency": context.frequency,
            "specialInstructions": _clause(" ", context.special_instructions),
        }

    def for_injection(self, context: MedicationRequestContext) -> TemplateData:
        volume, dual = self._volume_and_dual(context)
        return {
            "verb": self._verb(context),
            "doseValue": format_number(volume.value) if volume else "",
            "doseUnit": volume.unit if volume else "",
            "dualDose": f", as {dual}," if dual else "",
            "route": self._route_phrase(context),
            "site": _clause(" into ", context.site),
            "frequency": context.frequency,
            "technique": _clause(". ", context.technique),
        }

    def for_testosterone(self, context: MedicationRequestContext) -> TemplateData:
        volume, dual = self._volume_and_dual(context)
        return {
            "verb": self._verb(context),
            "doseValue": format_number(volume.value) if volume else "",
            "doseUnit": volume.unit if volume else "",
            "dualDose": dual or "",
            "route": self._route_phrase(context),
            "frequency": context.frequency,
            "technique": context.technique,
        }

    def for_topiclick(self, context: MedicationRequestContext) -> TemplateData:
        clicks = self.clicks_for(context)
        return {
            "verb": self._verb(context),
            "doseValue": clicks if clicks is not None else 0,
            "route": self._route_phrase(context),
            "site": context.site,
            "frequency": context.frequency,
            "specialInstructions": context.special_instructions,
        }

    def for_prn(self, context: MedicationRequestContext) -> TemplateData:
        family = context.medication.dose_form.casefold()
        clicks = self.clicks_for(context) if context.medication.is_topiclick else None
        if clicks:
            dose_text = f"{format_number(clicks)} {'click' if clicks == 1 else 'clicks'}"
        elif family in {"tablet", "capsule", "troche", "odt"}:
            dose_text = self._tablet_dose_text(context)
        elif context.dose is not None:
            dose_text = self._amount_text(context.dose)
        else:
            dose_text = ""
        return {
            "verb": self._verb(context),
            "doseText": dose_text,
            "route": self._route_phrase(context),
            "frequencyText": context.frequency,
            "indication": _clause(" for ", context.indication),
            "maxDose": self._max_dose_clause(context.max_dose_per_period),
        }

    def for_default(self, context: MedicationRequestContext) -> TemplateData:
        return {
            "verb": self._verb(context),
            "doseText": self._amount_text(context.dose) if context.dose else "",
            "route": self._route_phrase(context),
            "frequency": context.frequency,
            "specialInstructions": _clause(" ", context.special_instructions),
        }

    # -- conversions -------------------------------------------------------

    def clicks_for(self, context: MedicationRequestContext) -> float | None:
        """Dose expressed in Topiclick clicks, or ``None`` when it cannot be converted."""
        if context.dose is None:
            return None
        result = self._converter.convert(
            context.dose.value,
            context.dose.unit,
            "click",
            context.medication.conversion_context(),
            ConversionOptions(precision=2),
        )
        if result.value is None:
            logger.info(
                "topiclick_conversion_failed",
                unit=context.dose.unit,
                error=result.error.message if result.error else None,
            )
            return None
        return result.value.value

    def _tablet_dose_text(self, context: MedicationRequestContext) -> str:
        dose = context.dose
        if dose is None:
            return ""
        form = self._routes.get_dose_form(context.medication.dose_form)
        unit_symbol = form.default_unit if form else context.medication.dose_form.casefold()

        count = self._count_for(dose, unit_symbol, context)
        if count is None:
            return self._amount_text(dose)
        if count < MIN_TABLET_FRACTION:
            logger.warning(
                "tablet_dose_below_minimum",
                requested=count,
                minimum=MIN_TABLET_FRACTION,
                medication=context.medication.name,
            )
            count = MIN_TABLET_FRACTION

        plural = form.plural_unit if form else f"{unit_symbol}s"
        unit = unit_symbol if count <= 1 else plural
        return f"{format_tablet_dose(count)} {unit}"

    def _count_for(
        self, dose: Amount, unit_symbol: str, context: MedicationRequestContext
    ) -> float | None:
        """Dose as a count of the form's unit, converting mass through the strength."""
        adapter = self._converter.device_adapter
        target = adapter.normalize(unit_symbol)
        if target is None:
            return None
        if adapter.normalize(dose.unit) == target:
            return dose.value
        result = self._converter.convert(
            dose.value,
            dose.unit,
            unit_symbol,
            context.medication.conversion_context(),
            ConversionOptions(precision=4),
        )
        if result.value is None:
            return None
        return result.value.value

    def _volume_and_dual(self, context: MedicationRequestContext) -> tuple[Amount | None, str | None]:
        """Volume to measure plus the active ingredient amount it carries.

        A mass dose is shown as its volume with the mass as the dual dose; a
        volume dose gets its mass from the first ingredient's strength.
        """
        dose = context.dose
        if dose is None:
            return None, None
        strength = context.medication.primary_strength
        if strength is None:
            return dose, None

        registry = self._converter.registry
        dose_dimension = registry.dimension_of(dose.unit)
        volume_unit = strength.denominator.unit
        mass_unit = strength.numerator.unit
        conversion_context = context.medication.conversion_context()

        if dose_dimension == registry.dimension_of(volume_unit):
            result = self._converter.convert(dose.value, dose.unit, mass_unit, conversion_context)
            if result.value is not None:
                return dose, f"{format_number(result.value.value)} {mass_unit}"
            return dose, None

        if dose_dimension == registry.dimension_of(mass_unit):
            result = self._converter.convert(dose.value, dose.unit, volume_unit, conversion_context)
            if result.value is not None:
                volume = Amount(value=result.value.value, unit=volume_unit)
                return volume, f"{format_number(dose.value)} {dose.unit}"
        return dose, None

    # -- text helpers ------------------------------------------------------

    def _verb(self, context: MedicationRequestContext) -> str:
        return self._routes.verb_for(self._route_name(context), context.medication.dose_form)

    def _route_name(self, context: MedicationRequestContext) -> str | None:
        if context.route.strip():
            return context.route
        return self._routes.get_default_route_for_dose_form(context.medication.dose_form)

    def _route_phrase(self, context: MedicationRequestContext) -> str:
        route = self._route_name(context)
        return self._routes.human_readable(route) if route else ""

    def _amount_text(self, amount: Amount) -> str:
        device = self._converter.device_adapter.get_device_unit(amount.unit)
        if device is not None:
            unit = device.display(amount.value)
        else:
            unit = DISPLAY_UNIT_OVERRIDES.get(amount.unit, amount.unit)
        return f"{format_number(amount.value)} {unit}"

    def _max_dose_clause(self, limit: MaxDosePerPeriod | None) -> str:
        if limit is None:
            return ""
        singular, plural = _PERIOD_UNITS.get(
            limit.period.unit.casefold(), (limit.period.unit, limit.period.unit)
        )
        period_unit = singular if math.isclose(limit.period.value, 1) else plural
        return (
            f". Do not exceed {self._amount_text(limit.dose)} "
            f"in {format_number(limit.period.value)} {period_unit}"
        )
