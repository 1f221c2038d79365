"""Conversions across dimensions through a strength ratio (mass <-> volume, mass <-> count)."""

from __future__ import annotations

from medsig.modules.units.errors import ConversionError
from medsig.modules.units.models import ConversionStep, Quantity
from medsig.modules.units.registry import DimensionalUnitRegistry


def standard_step(
    registry: DimensionalUnitRegistry,
    value: float,
    from_unit: str,
    to_unit: str,
) -> tuple[float, list[ConversionStep]]:
    """Tier 1 hop; no step is recorded when the units already match."""
    if from_unit == to_unit:
        return value, []
    converted = registry.convert(value, from_unit, to_unit)
    factor = registry.conversion_factor(from_unit, to_unit)
    step = ConversionStep(
        operation="standard_conversion",
        from_value=value,
        from_unit=from_unit,
        to_value=converted,
        to_unit=to_unit,
        factor=factor,
    )
    return converted, [step]


def convert_with_strength_ratio(
    registry: DimensionalUnitRegistry,
    value: float,
    from_unit: str,
    to_unit: str,
    numerator: Quantity,
    denominator: Quantity,
    *,
    operation: str = "strength_ratio",
) -> tuple[float, list[ConversionStep]]:
    """Convert between the numerator and denominator dimensions of a ratio.

    *numerator* and *denominator* must already be expressed in Tier 1 units.
    Works in both directions: ``mL -> mg`` with 100 mg/5 mL multiplies,
    ``mg -> mL`` divides.
    """
    if denominator.value == 0 or numerator.value == 0:
        raise ConversionError.impossible_conversion(
            from_unit, to_unit, "strength ratio has a zero numerator or denominator"
        )

    from_dimension = registry.dimension_of(from_unit)
    to_dimension = registry.dimension_of(to_unit)
    numerator_dimension = registry.dimension_of(numerator.unit)
    denominator_dimension = registry.dimension_of(denominator.unit)
    ratio_text = (
        f"{numerator.value:g} {numerator.unit}/{denominator.value:g} {denominator.unit}"
    )

    steps: list[ConversionStep] = []
    if from_dimension == denominator_dimension and to_dimension == numerator_dimension:
        amount, hop = standard_step(registry, value, from_unit, denominator.unit)
        steps.extend(hop)
        factor = numerator.value / denominator.value
        scaled = amount * factor
        steps.append(
            ConversionStep(
                operation=operation,
                from_value=amount,
                from_unit=denominator.unit,
                to_value=scaled,
                to_unit=numerator.unit,
                factor=factor,
                description=f"applied {ratio_text}",
            )
        )
        result, hop = standard_step(registry, scaled, numerator.unit, to_unit)
        steps.extend(hop)
        return result, steps

    if from_dimension == numerator_dimension and to_dimension == denominator_dimension:
        amount, hop = standard_step(registry, value, from_unit, numerator.unit)
        steps.extend(hop)
        factor = denominator.value / numerator.value
        scaled = amount * factor
        steps.append(
            ConversionStep(
                operation=operation,
                from_value=amount,
                from_unit=numerator.unit,
                to_value=scaled,
                to_unit=denominator.unit,
                factor=factor,
                description=f"applied inverse of {ratio_text}",
            )
        )
        result, hop = standard_step(registry, scaled, denominator.unit, to_unit)
        steps.extend(hop)
        return result, steps

    raise ConversionError.impossible_conversion(
        from_unit,
        to_unit,
        f"strength ratio {ratio_text} does not relate {from_dimension} and {to_dimension}",
    )
