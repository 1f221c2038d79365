"""Days-supply request and result schemas.

Field names are snake_case and accept the camelCase keys of the JSON payloads
(``packageQuantity``, ``doseAmount``...). ``timing`` is either a frequency
phrase (``"twice daily"``) or a FHIR ``Timing`` object.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from medsig.modules.medication.schemas import Amount, Medication
from medsig.modules.units.models import ConversionContext

# Confidence attached to each result (0-1).
HIGH_CONFIDENCE = 0.9
MEDIUM_CONFIDENCE = 0.7
LOW_CONFIDENCE = 0.5

Timing = str | dict[str, Any]


class TitrationPhase(BaseModel):
    """One step of a dose-escalation schedule.

    A phase without ``duration`` is the maintenance phase and may only come last.
    """

    dose: Amount
    timing: Timing
    duration: Amount | None = None
    description: str = ""

    model_config = ConfigDict(populate_by_name=True)


class DaysSupplyContext(BaseModel):
    """A package, the dose taken from it and how often.

    A titration context may leave the dose and timing out; they default to the
    first phase.
    """

    package_quantity: float = Field(alias="packageQuantity", gt=0)
    package_unit: str = Field(alias="packageUnit", min_length=1)
    dose_amount: float | None = Field(default=None, alias="doseAmount", gt=0)
    dose_unit: str | None = Field(default=None, alias="doseUnit")
    timing: Timing | None = None
    medication: Medication | None = None
    phases: list[TitrationPhase] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("package_unit", "dose_unit")
    @classmethod
    def _strip_unit(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("unit must not be blank")
        return value

    @model_validator(mode="after")
    def _require_dose_and_timing(self) -> DaysSupplyContext:
        if self.phases:
            first = self.phases[0]
            if self.dose_amount is None and self.dose_unit is None:
                self.dose_amount = first.dose.value
                self.dose_unit = first.dose.unit
            if self.timing is None:
                self.timing = first.timing
        missing = [
            name
            for name, value in (
                ("doseAmount", self.dose_amount),
                ("doseUnit", self.dose_unit),
                ("timing", self.timing),
            )
            if value is None
        ]
        if missing:
            raise ValueError(f"missing required fields: {', '.join(missing)}")
        return self

    @property
    def dose(self) -> Amount:
        return Amount(value=self.dose_amount or 0.0, unit=self.dose_unit or "")

    @property
    def is_titration(self) -> bool:
        return bool(self.phases)

    def conversion_context(self) -> ConversionContext:
        if self.medication is None:
            return ConversionContext()
        return self.medication.conversion_context()


class ConversionRecord(BaseModel):
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    factor: float
    reason: str

    model_config = ConfigDict(populate_by_name=True)


class PhaseBreakdown(BaseModel):
    phase_index: int = Field(alias="phaseIndex")
    description: str
    dose_amount: float = Field(alias="doseAmount")
    dose_unit: str = Field(alias="doseUnit")
    doses_in_phase: float = Field(alias="dosesInPhase")
    total_consumption: float = Field(alias="totalConsumption")
    phase_duration_days: float = Field(alias="phaseDurationDays")

    model_config = ConfigDict(populate_by_name=True)


class MaintenanceBreakdown(BaseModel):
    dose_amount: float = Field(alias="doseAmount")
    doses_per_day: float = Field(alias="dosesPerDay")
    consumption_per_day: float = Field(alias="consumptionPerDay")
    additional_days: float = Field(alias="additionalDays")

    model_config = ConfigDict(populate_by_name=True)


class TitrationBreakdown(BaseModel):
    phases: list[PhaseBreakdown] = Field(default_factory=list)
    titration_consumption: float = Field(alias="titrationConsumption")
    titration_days: float = Field(alias="titrationDays")
    remaining_quantity: float = Field(alias="remainingQuantity")
    maintenance_phase: MaintenanceBreakdown | None = Field(default=None, alias="maintenancePhase")

    model_config = ConfigDict(populate_by_name=True)


class CalculationBreakdown(BaseModel):
    package_quantity: float = Field(alias="packageQuantity")
    package_unit: str = Field(alias="packageUnit")
    dose_amount: float = Field(alias="doseAmount")
    dose_unit: str = Field(alias="doseUnit")
    doses_per_day: float = Field(alias="dosesPerDay")
    consumption_per_day: float = Field(alias="consumptionPerDay")
    conversions: list[ConversionRecord] = Field(default_factory=list)
    titration_breakdown: TitrationBreakdown | None = Field(
        default=None, alias="titrationBreakdown"
    )

    model_config = ConfigDict(populate_by_name=True)


class DaysSupplyResult(BaseModel):
    """Whole days a package lasts, always rounded down."""

    days_supply: int = Field(alias="daysSupply", ge=0)
    calculation_method: str = Field(alias="calculationMethod")
    strategy: str
    breakdown: CalculationBreakdown
    confidence: float = Field(ge=0, le=1)
    warnings: list[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)
