"""Medication descriptor and request context schemas."""

from medsig.modules.medication.schemas import (
    Amount,
    Dispenser,
    Ingredient,
    MaxDosePerPeriod,
    Medication,
    MedicationRequestContext,
    Ratio,
)

__all__ = [
    "Amount",
    "Dispenser",
    "Ingredient",
    "MaxDosePerPeriod",
    "Medication",
    "MedicationRequestContext",
    "Ratio",
]
