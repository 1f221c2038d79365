"""Contracts shared by base strategies, modifiers and the dispatcher."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from medsig.modules.medication.schemas import MedicationRequestContext


class SpecificityLevel(IntEnum):
    """Higher values win when several base strategies match."""

    DEFAULT = 0
    DOSE_FORM = 1
    DOSE_FORM_AND_INGREDIENT = 2
    MEDICATION_ID = 3
    MEDICATION_SKU = 4


@dataclass(frozen=True)
class StrategyMetadata:
    id: str
    name: str
    description: str
    examples: tuple[str, ...] = ()
    version: str = "1.0.0"


class SignatureInstruction(BaseModel):
    """One FHIR R4 ``Dosage`` plus the template values that produced its text.

    ``model_dump(by_alias=True, exclude_none=True)`` yields the FHIR shape.
    """

    text: str
    timing: dict[str, Any] | None = None
    as_needed_boolean: bool | None = Field(default=None, alias="asNeededBoolean")
    as_needed_codeable_concept: dict[str, Any] | None = Field(
        default=None, alias="asNeededCodeableConcept"
    )
    site: dict[str, Any] | None = None
    route: dict[str, Any] | None = None
    method: dict[str, Any] | None = None
    dose_and_rate: list[dict[str, Any]] | None = Field(default=None, alias="doseAndRate")
    max_dose_per_period: dict[str, Any] | None = Field(default=None, alias="maxDosePerPeriod")
    additional_instruction: list[dict[str, Any]] | None = Field(
        default=None, alias="additionalInstruction"
    )
    template_variables: dict[str, Any] | None = Field(default=None, exclude=True)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_fhir(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


@runtime_checkable
class BaseStrategy(Protocol):
    specificity: SpecificityLevel
    metadata: StrategyMetadata

    def matches(self, context: MedicationRequestContext) -> bool: ...

    def build_instruction(self, context: MedicationRequestContext) -> SignatureInstruction: ...

    def explain(self) -> str: ...


@runtime_checkable
class ModifierStrategy(Protocol):
    priority: int
    metadata: StrategyMetadata

    def applies_to(self, context: MedicationRequestContext) -> bool: ...

    def modify(
        self, instruction: SignatureInstruction, context: MedicationRequestContext
    ) -> SignatureInstruction: ...

    def explain(self) -> str: ...
