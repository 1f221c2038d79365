"""Arithmetic shared by the days-supply strategies.

Timing phrases resolve through the same FHIR ``Timing`` tables the signature
strategies emit, so ``"every 8 hours"`` means three doses a day in both places.
Dose amounts are brought into the package unit by ``UnitConverter``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from medsig.modules.days_supply.errors import DaysSupplyCalculationError, UnitConversionError
from medsig.modules.days_supply.schemas import ConversionRecord, Timing
from medsig.modules.medication.schemas import Amount
from medsig.modules.strategies import fhir
from medsig.modules.templates.rendering import format_number
from medsig.modules.units.converter import UnitConverter
from medsig.modules.units.models import ConversionContext, ConversionOptions, ConversionSuccess

# Days per FHIR ``periodUnit`` code or spelled-out unit. Months count as 30 days.
DURATION_DAYS: dict[str, float] = {
    "s": 1 / 86400,
    "min": 1 / 1440,
    "h": 1 / 24,
    "hour": 1 / 24,
    "hours": 1 / 24,
    "d": 1.0,
    "day": 1.0,
    "days": 1.0,
    "wk": 7.0,
    "week": 7.0,
    "weeks": 7.0,
    "mo": 30.0,
    "month": 30.0,
    "months": 30.0,
    "a": 365.0,
    "year": 365.0,
    "years": 365.0,
}

# Phrases the signature timing tables leave as free text.
_SIMPLE_TIMING: dict[str, tuple[float, float, str]] = {
    "daily": (1, 1, "d"),
    "every day": (1, 1, "d"),
    "every other day": (1, 2, "d"),
    "weekly": (1, 1, "wk"),
    "monthly": (1, 1, "mo"),
}
_EVERY = re.compile(r"^every\s+(\d+(?:\.\d+)?)\s+(hour|day|week|month)s?$")
_TIMES = re.compile(r"^(\d+)\s+times\s+(daily|a day|weekly|a week)$")
_PERIOD_CODES = {"hour": "h", "day": "d", "week": "wk", "month": "mo"}

_PACKAGE_OPTIONS = ConversionOptions(precision=6, enforce_precision=False)

# Values below this count as zero.
PRECISION_TOLERANCE = 0.001


@dataclass(frozen=True)
class PackageDose:
    """One dose expressed in the package unit."""

    amount: float
    unit: str
    conversions: tuple[ConversionRecord, ...] = ()
    used_defaults: bool = False
    warnings: tuple[str, ...] = ()
    # Package units lost priming a new dispenser.
    prime_loss: float = 0.0


def convert_duration_to_days(value: float, unit: str) -> float:
    factor = DURATION_DAYS.get(unit.strip().casefold())
    if factor is None:
        raise DaysSupplyCalculationError(
            f"Unsupported duration unit: {unit}", details={"unit": unit}
        )
    return value * factor


def calculate_doses_per_day(frequency: float, period: float, period_unit: str) -> float:
    period_days = convert_duration_to_days(period, period_unit)
    if frequency <= 0 or period_days <= 0:
        raise DaysSupplyCalculationError(
            "Timing frequency and period must be positive",
            details={"frequency": frequency, "period": period, "period_unit": period_unit},
        )
    return frequency / period_days


def resolve_timing(timing: Timing) -> dict[str, Any]:
    """FHIR ``Timing`` with a ``repeat`` block for *timing*."""
    if isinstance(timing, Mapping):
        resolved: dict[str, Any] = dict(timing)
    else:
        resolved = (
            fhir.timing(
                timing, fhir.DAILY_TIMING, fhir.INTERVAL_TIMING, fhir.INJECTION_TIMING
            )
            or {}
        )
        if "repeat" not in resolved:
            resolved = _parse_phrase(timing) or resolved
    if not isinstance(resolved.get("repeat"), Mapping):
        raise DaysSupplyCalculationError(
            f"Cannot derive a dosing rate from timing {timing!r}", details={"timing": timing}
        )
    return resolved


def _parse_phrase(phrase: str) -> dict[str, Any] | None:
    text = " ".join(phrase.casefold().split())
    if text in _SIMPLE_TIMING:
        frequency, period, unit = _SIMPLE_TIMING[text]
        return _repeat(frequency, period, unit)
    match = _EVERY.match(text)
    if match:
        return _repeat(1, float(match.group(1)), _PERIOD_CODES[match.group(2)])
    match = _TIMES.match(text)
    if match:
        unit = "d" if match.group(2) in ("daily", "a day") else "wk"
        return _repeat(int(match.group(1)), 1, unit)
    return None


def _repeat(frequency: float, period: float, unit: str) -> dict[str, Any]:
    return {"repeat": {"frequency": frequency, "period": period, "periodUnit": unit}}


def doses_per_day_from_timing(timing: Timing) -> float:
    repeat = resolve_timing(timing)["repeat"]
    frequency = repeat.get("frequency") or len(repeat.get("timeOfDay") or ()) or 1
    return calculate_doses_per_day(
        float(frequency), float(repeat.get("period", 1)), str(repeat.get("periodUnit", "d"))
    )


def dose_in_package_units(
    converter: UnitConverter,
    dose: Amount,
    package_unit: str,
    context: ConversionContext,
    *,
    strategy: str | None = None,
) -> PackageDose:
    """Convert one dose to the unit the package is counted in.

    A Topiclick dose also carries the clicks lost priming a new dispenser,
    converted to package units.
    """
    success = _convert(converter, dose.value, dose.unit, package_unit, context, strategy)
    conversions: tuple[ConversionRecord, ...] = ()
    if any(step.operation != "identity" for step in success.steps):
        conversions = (
            ConversionRecord(
                source=f"{format_number(dose.value)} {dose.unit}",
                target=f"{format_number(success.value)} {success.unit}",
                factor=success.value / dose.value,
                reason=", ".join(step.operation for step in success.steps),
            ),
        )

    prime_loss = 0.0
    loss = success.air_prime_loss
    if loss is not None and loss.value > 0:
        primed = _convert(converter, loss.value, loss.unit, package_unit, context, strategy)
        prime_loss = primed.value

    return PackageDose(
        amount=success.value,
        unit=package_unit,
        conversions=conversions,
        used_defaults=success.used_defaults,
        warnings=success.warnings,
        prime_loss=prime_loss,
    )


def _convert(
    converter: UnitConverter,
    value: float,
    from_unit: str,
    to_unit: str,
    context: ConversionContext,
    strategy: str | None,
) -> ConversionSuccess:
    result = converter.convert(value, from_unit, to_unit, context, _PACKAGE_OPTIONS)
    if result.error is not None:
        raise UnitConversionError(
            f"Cannot express {format_number(value)} {from_unit} in {to_unit}: "
            f"{result.error.message}",
            from_unit,
            to_unit,
            strategy=strategy,
            details={"conversion_error": result.error.to_structured()},
        )
    return result.unwrap()


def is_effectively_zero(value: float) -> bool:
    return abs(value) < PRECISION_TOLERANCE
