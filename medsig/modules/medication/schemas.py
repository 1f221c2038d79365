"""Pydantic schemas for the medication descriptor and the signature request context.

Field names are snake_case in Python and accept the camelCase keys used by
FHIR-shaped payloads (``doseForm``, ``strengthRatio``...).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from medsig.modules.units.models import (
    ConversionContext,
    DispenserMetadata,
    Quantity,
    StrengthRatio,
)

ScoringType = Literal["NONE", "HALF", "QUARTER"]


class Amount(BaseModel):
    """A numeric value with a unit string, e.g. ``{"value": 500, "unit": "mg"}``."""

    value: float
    unit: str

    def to_quantity(self) -> Quantity:
        return Quantity(value=self.value, unit=self.unit)


class Ratio(BaseModel):
    numerator: Amount
    denominator: Amount

    def to_strength_ratio(self) -> StrengthRatio:
        return StrengthRatio(
            numerator=self.numerator.to_quantity(),
            denominator=self.denominator.to_quantity(),
        )


class Ingredient(BaseModel):
    name: str = ""
    strength_ratio: Ratio | None = Field(default=None, alias="strengthRatio")

    model_config = ConfigDict(populate_by_name=True)


class Dispenser(BaseModel):
    """Dispensing device attached to a product (Topiclick, metered inhaler...)."""

    type: str
    conversion_ratio: float | None = Field(default=None, alias="conversionRatio", gt=0)
    dose_per_actuation: Amount | None = Field(default=None, alias="dosePerActuation")
    air_prime_loss: float | None = Field(default=None, alias="airPrimeLoss", ge=0)

    model_config = ConfigDict(populate_by_name=True)

    def to_metadata(self) -> DispenserMetadata:
        return DispenserMetadata(
            type=self.type,
            conversion_ratio=self.conversion_ratio,
            dose_per_actuation=(
                self.dose_per_actuation.to_quantity() if self.dose_per_actuation else None
            ),
            air_prime_loss=self.air_prime_loss,
        )


class Medication(BaseModel):
    """Medication descriptor supplied by the caller."""

    id: str | None = None
    name: str = ""
    type: Literal["medication", "supplement", "compound"] = "medication"
    dose_form: str = Field(alias="doseForm")
    ingredient: list[Ingredient] = Field(default_factory=list)
    dispenser_metadata: Dispenser | None = Field(default=None, alias="dispenserMetadata")
    scoring: ScoringType | None = None
    sku: str | None = None
    compounding_instructions: str | None = Field(default=None, alias="compoundingInstructions")
    has_lot_specific_data: bool | None = Field(default=None, alias="hasLotSpecificData")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def primary_strength(self) -> Ratio | None:
        for ingredient in self.ingredient:
            if ingredient.strength_ratio is not None:
                return ingredient.strength_ratio
        return None

    @property
    def is_topiclick(self) -> bool:
        if self.dispenser_metadata and self.dispenser_metadata.type.casefold() == "topiclick":
            return True
        return "topiclick" in self.name.casefold()

    def conversion_context(self) -> ConversionContext:
        """Build the per-call context the unit converter needs for this product."""
        strength = self.primary_strength
        return ConversionContext(
            strength_ratio=strength.to_strength_ratio() if strength else None,
            dispenser=self.dispenser_metadata.to_metadata() if self.dispenser_metadata else None,
            has_lot_specific_data=self.has_lot_specific_data,
        )


class MaxDosePerPeriod(BaseModel):
    dose: Amount
    period: Amount


class MedicationRequestContext(BaseModel):
    """Everything a strategy needs to build one signature."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    medication: Medication
    dose: Amount | None = None
    route: str = ""
    frequency: str = ""
    site: str | None = None
    special_instructions: str | None = Field(default=None, alias="specialInstructions")
    as_needed: str | bool | None = Field(default=None, alias="asNeeded")
    max_dose_per_period: MaxDosePerPeriod | None = Field(default=None, alias="maxDosePerPeriod")
    technique: str | None = None

    model_config = ConfigDict(populate_by_name=True)

    @property
    def is_prn(self) -> bool:
        return bool(self.as_needed)

    @property
    def indication(self) -> str | None:
        if isinstance(self.as_needed, str) and self.as_needed.strip():
            return self.as_needed.strip()
        return None
