"""Days-supply strategies: tablets, liquids, titration schedules and the fallback."""

from __future__ import annotations

import math
from typing import Protocol, runtime_checkable

from medsig.modules.days_supply.calculations import (
    PRECISION_TOLERANCE,
    PackageDose,
    convert_duration_to_days,
    dose_in_package_units,
    doses_per_day_from_timing,
    is_effectively_zero,
)
from medsig.modules.days_supply.errors import (
    DaysSupplyCalculationError,
    InvalidTitrationScheduleError,
)
from medsig.modules.days_supply.schemas import (
    HIGH_CONFIDENCE,
    LOW_CONFIDENCE,
    MEDIUM_CONFIDENCE,
    CalculationBreakdown,
    ConversionRecord,
    DaysSupplyContext,
    DaysSupplyResult,
    MaintenanceBreakdown,
    PhaseBreakdown,
    TitrationBreakdown,
    TitrationPhase,
)
from medsig.modules.strategies.types import SpecificityLevel, StrategyMetadata
from medsig.modules.templates.rendering import format_number
from medsig.modules.units.constants import DIMENSION_VOLUME
from medsig.modules.units.converter import UnitConverter

SOLID_FORMS = frozenset({"tablet", "capsule", "troche", "odt"})
SOLID_UNITS = frozenset({"tablet", "capsule", "troche"})
LIQUID_FORMS = frozenset(
    {"solution", "suspension", "syrup", "elixir", "liquid", "vial", "injection", "drops"}
)
_SCORING_STEPS = {"NONE": 1.0, "HALF": 0.5, "QUARTER": 0.25}
_MEASURABLE_DECIMALS = 2


@runtime_checkable
class DaysSupplyStrategy(Protocol):
    specificity: SpecificityLevel
    metadata: StrategyMetadata

    def matches(self, context: DaysSupplyContext) -> bool: ...

    def calculate(self, context: DaysSupplyContext) -> DaysSupplyResult: ...

    def explain(self) -> str: ...


def _whole_days(value: float) -> int:
    return max(math.floor(value + 1e-9), 0)


def _dose_form(context: DaysSupplyContext) -> str:
    if context.medication is None:
        return ""
    return context.medication.dose_form.strip().casefold()


class SteadyDoseStrategy:
    """Same dose at the same rate until the package runs out."""

    specificity = SpecificityLevel.DEFAULT
    metadata = StrategyMetadata(
        id="default-days-supply",
        name="Default Days Supply Calculator",
        description="Package quantity divided by daily consumption in the package unit",
    )
    base_confidence = MEDIUM_CONFIDENCE

    def __init__(self, converter: UnitConverter | None = None) -> None:
        self._converter = converter or UnitConverter()

    def matches(self, context: DaysSupplyContext) -> bool:
        return True

    def explain(self) -> str:
        return f"{self.metadata.name}: {self.metadata.description}"

    def calculate(self, context: DaysSupplyContext) -> DaysSupplyResult:
        strategy = self.metadata.id
        if context.timing is None:
            raise DaysSupplyCalculationError("Timing is required", strategy=strategy)
        doses_per_day = doses_per_day_from_timing(context.timing)
        dose = dose_in_package_units(
            self._converter,
            context.dose,
            context.package_unit,
            context.conversion_context(),
            strategy=strategy,
        )
        consumption = dose.amount * doses_per_day
        if is_effectively_zero(consumption):
            raise DaysSupplyCalculationError(
                "Daily consumption rounds to zero", strategy=strategy
            )

        conversions = list(dose.conversions)
        warnings = [*dose.warnings, *self.dose_warnings(context, dose)]
        usable = context.package_quantity
        if dose.prime_loss:
            usable = max(usable - dose.prime_loss, 0.0)
            conversions.append(
                ConversionRecord(
                    source=f"{format_number(context.package_quantity)} {context.package_unit}",
                    target=f"{format_number(usable)} {context.package_unit}",
                    factor=usable / context.package_quantity,
                    reason="air_prime_loss",
                )
            )
            warnings.append(
                f"{format_number(dose.prime_loss)} {context.package_unit} "
                "is lost priming a new dispenser"
            )

        return DaysSupplyResult(
            days_supply=_whole_days(usable / consumption),
            calculation_method=self.metadata.name,
            strategy=strategy,
            breakdown=CalculationBreakdown(
                package_quantity=context.package_quantity,
                package_unit=context.package_unit,
                dose_amount=context.dose.value,
                dose_unit=context.dose.unit,
                doses_per_day=doses_per_day,
                consumption_per_day=consumption,
                conversions=conversions,
            ),
            confidence=self.confidence(dose, warnings),
            warnings=warnings,
        )

    def dose_warnings(self, context: DaysSupplyContext, dose: PackageDose) -> list[str]:
        return []

    def confidence(self, dose: PackageDose, warnings: list[str]) -> float:
        if dose.used_defaults:
            return min(self.base_confidence, LOW_CONFIDENCE)
        if warnings:
            return min(self.base_confidence, MEDIUM_CONFIDENCE)
        return self.base_confidence


class TabletDaysSupplyStrategy(SteadyDoseStrategy):
    specificity = SpecificityLevel.DOSE_FORM
    metadata = StrategyMetadata(
        id="tablet-days-supply",
        name="Tablet/Capsule Days Supply Calculator",
        description="Whole and split solid doses; weight doses go through the strength",
        examples=("30 tablets, 1000 mg twice daily at 500 mg/tablet: 7 days",),
    )
    base_confidence = HIGH_CONFIDENCE

    def matches(self, context: DaysSupplyContext) -> bool:
        if _dose_form(context) in SOLID_FORMS:
            return True
        return self._converter.device_adapter.normalize(context.package_unit) in SOLID_UNITS

    def dose_warnings(self, context: DaysSupplyContext, dose: PackageDose) -> list[str]:
        fraction = dose.amount - math.floor(dose.amount)
        if is_effectively_zero(fraction) or is_effectively_zero(1 - fraction):
            return []
        scoring = context.medication.scoring if context.medication else None
        step = _SCORING_STEPS.get(scoring or "QUARTER", 0.25)
        ratio = dose.amount / step
        if math.isclose(ratio, round(ratio), abs_tol=PRECISION_TOLERANCE):
            return []
        if scoring == "NONE":
            return [
                f"{format_number(dose.amount)} {context.package_unit} per dose "
                "needs a split but the tablet is not scored"
            ]
        return [
            f"{format_number(dose.amount)} {context.package_unit} per dose "
            "is not a common tablet fraction"
        ]


class LiquidDaysSupplyStrategy(SteadyDoseStrategy):
    specificity = SpecificityLevel.DOSE_FORM
    metadata = StrategyMetadata(
        id="liquid-days-supply",
        name="Liquid Medication Days Supply Calculator",
        description="Volume packages; weight doses go through the concentration",
        examples=("120 mL at 50 mg/mL, 250 mg three times daily: 8 days",),
    )
    base_confidence = HIGH_CONFIDENCE

    def matches(self, context: DaysSupplyContext) -> bool:
        if _dose_form(context) in LIQUID_FORMS:
            return True
        return self._dimension(context.package_unit) == DIMENSION_VOLUME

    def dose_warnings(self, context: DaysSupplyContext, dose: PackageDose) -> list[str]:
        if self._dimension(context.package_unit) != DIMENSION_VOLUME:
            return []
        if math.isclose(
            dose.amount, round(dose.amount, _MEASURABLE_DECIMALS), abs_tol=PRECISION_TOLERANCE
        ):
            return []
        return [
            f"{format_number(dose.amount)} {context.package_unit} per dose "
            "is hard to measure accurately"
        ]

    def _dimension(self, unit: str) -> str | None:
        return self._converter.device_adapter.dimension_of(
            unit
        ) or self._converter.registry.dimension_of(unit)


class TitrationDaysSupplyStrategy(SteadyDoseStrategy):
    """Dose-escalation schedules (GLP-1 agonists, insulin titration).

    Each phase consumes ``dose x doses per day x phase days``. A final phase
    without a duration is maintenance and uses up whatever is left.
    """

    specificity = SpecificityLevel.DOSE_FORM_AND_INGREDIENT
    metadata = StrategyMetadata(
        id="titration-days-supply",
        name="Titration Days Supply Calculator",
        description="Phase by phase consumption, then maintenance until the package is empty",
        examples=(
            "1000 units: 12.5 units weekly x4, 25 units weekly x4, then 50 units weekly: 175 days",
        ),
    )
    base_confidence = HIGH_CONFIDENCE

    def matches(self, context: DaysSupplyContext) -> bool:
        return context.is_titration

    def calculate(self, context: DaysSupplyContext) -> DaysSupplyResult:
        self._validate(context.phases)
        strategy = self.metadata.id
        conversion_context = context.conversion_context()

        remaining = context.package_quantity
        titration_days = 0.0
        consumed = 0.0
        phases: list[PhaseBreakdown] = []
        conversions: list[ConversionRecord] = []
        warnings: list[str] = []
        used_defaults = False
        maintenance: MaintenanceBreakdown | None = None
        doses_per_day = 0.0
        consumption = 0.0

        for index, phase in enumerate(context.phases):
            doses_per_day = doses_per_day_from_timing(phase.timing)
            dose = dose_in_package_units(
                self._converter, phase.dose, context.package_unit, conversion_context,
                strategy=strategy,
            )
            conversions.extend(dose.conversions)
            warnings.extend(dose.warnings)
            used_defaults = used_defaults or dose.used_defaults
            if index == 0 and dose.prime_loss:
                remaining = max(remaining - dose.prime_loss, 0.0)
                warnings.append(
                    f"{format_number(dose.prime_loss)} {context.package_unit} "
                    "is lost priming a new dispenser"
                )
            consumption = dose.amount * doses_per_day
            if is_effectively_zero(consumption):
                raise InvalidTitrationScheduleError(
                    f"Phase {index + 1} consumes nothing per day",
                    details={"phase_index": index},
                )

            if phase.duration is None:
                additional = remaining / consumption
                maintenance = MaintenanceBreakdown(
                    dose_amount=dose.amount,
                    doses_per_day=doses_per_day,
                    consumption_per_day=consumption,
                    additional_days=additional,
                )
                remaining = 0.0
                break

            phase_days = convert_duration_to_days(phase.duration.value, phase.duration.unit)
            needed = consumption * phase_days
            if needed > remaining + PRECISION_TOLERANCE:
                covered = remaining / consumption
                warnings.append(
                    f"Package runs out {format_number(round(covered, 1))} days "
                    f"into phase {index + 1}"
                )
                phases.append(
                    self._phase(index, phase, dose, doses_per_day * covered, remaining, covered)
                )
                consumed += remaining
                titration_days += covered
                remaining = 0.0
                break

            phases.append(
                self._phase(index, phase, dose, doses_per_day * phase_days, needed, phase_days)
            )
            consumed += needed
            titration_days += phase_days
            remaining -= needed
        else:
            if not is_effectively_zero(remaining):
                warnings.append(
                    f"{format_number(round(remaining, 3))} {context.package_unit} "
                    "remain after the schedule ends"
                )

        total_days = titration_days + (maintenance.additional_days if maintenance else 0.0)
        confidence = LOW_CONFIDENCE if used_defaults else self.base_confidence
        return DaysSupplyResult(
            days_supply=_whole_days(total_days),
            calculation_method=self.metadata.name,
            strategy=strategy,
            breakdown=CalculationBreakdown(
                package_quantity=context.package_quantity,
                package_unit=context.package_unit,
                dose_amount=context.dose.value,
                dose_unit=context.dose.unit,
                doses_per_day=doses_per_day,
                consumption_per_day=consumption,
                conversions=conversions,
                titration_breakdown=TitrationBreakdown(
                    phases=phases,
                    titration_consumption=consumed,
                    titration_days=titration_days,
                    remaining_quantity=remaining,
                    maintenance_phase=maintenance,
                ),
            ),
            confidence=confidence,
            warnings=warnings,
        )

    @staticmethod
    def _validate(phases: list[TitrationPhase]) -> None:
        if not phases:
            raise InvalidTitrationScheduleError("A titration schedule needs at least one phase")
        for index, phase in enumerate(phases[:-1]):
            if phase.duration is None:
                raise InvalidTitrationScheduleError(
                    f"Only the last phase may be open-ended; phase {index + 1} has no duration",
                    details={"phase_index": index},
                )
        for index, phase in enumerate(phases):
            if phase.duration is not None and phase.duration.value <= 0:
                raise InvalidTitrationScheduleError(
                    f"Phase {index + 1} has a non-positive duration",
                    details={"phase_index": index},
                )

    @staticmethod
    def _phase(
        index: int,
        phase: TitrationPhase,
        dose: PackageDose,
        doses: float,
        consumption: float,
        days: float,
    ) -> PhaseBreakdown:
        description = phase.description or (
            f"{format_number(phase.dose.value)} {phase.dose.unit} for "
            f"{format_number(days)} days"
        )
        return PhaseBreakdown(
            phase_index=index,
            description=description,
            dose_amount=dose.amount,
            dose_unit=dose.unit,
            doses_in_phase=doses,
            total_consumption=consumption,
            phase_duration_days=days,
        )


def default_days_supply_strategies(
    converter: UnitConverter | None = None,
) -> list[DaysSupplyStrategy]:
    converter = converter or UnitConverter()
    return [
        TitrationDaysSupplyStrategy(converter),
        TabletDaysSupplyStrategy(converter),
        LiquidDaysSupplyStrategy(converter),
        SteadyDoseStrategy(converter),
    ]
