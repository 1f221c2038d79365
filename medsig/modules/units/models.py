"""Typed models for unit descriptors, conversion context and conversion traces."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from medsig.modules.confidence.schemas import ConfidenceScore


@dataclass(frozen=True)
class Unit:
    symbol: str
    dimension: str
    display_name: str
    compatible_symbols: tuple[str, ...] = ()


@dataclass(frozen=True)
class DeviceUnit:
    """A non-standard dosing unit tied to a dispenser or dose form.

    ``conversion_ratio`` is how many device units make up one ``base_unit``
    (4 clicks per mL, 20 drops per mL, 1 tablet per each).
    """

    symbol: str
    plural: str
    base_unit: str
    conversion_ratio: float
    granularity: float | None = None
    aliases: tuple[str, ...] = ()
    requires_context: tuple[str, ...] = ()
    ratio_is_default: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> DeviceUnit:
        return cls(
            symbol=str(payload["symbol"]).strip(),
            plural=str(payload.get("plural") or f"{payload['symbol']}s").strip(),
            base_unit=str(payload["base_unit"]).strip(),
            conversion_ratio=float(payload["conversion_ratio"]),
            granularity=_optional_float(payload.get("granularity")),
            aliases=tuple(payload.get("aliases", ())),
            requires_context=tuple(payload.get("requires_context", ())),
            ratio_is_default=bool(payload.get("ratio_is_default", False)),
            metadata=dict(payload.get("metadata") or {}),
        )

    def display(self, value: float) -> str:
        return self.symbol if value == 1 else self.plural


@dataclass(frozen=True)
class Quantity:
    value: float
    unit: str

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Quantity:
        return cls(value=float(payload["value"]), unit=str(payload["unit"]).strip())


@dataclass(frozen=True)
class StrengthRatio:
    """Active ingredient quantity per dispensing quantity, e.g. 500 mg / 1 tablet."""

    numerator: Quantity
    denominator: Quantity

    @property
    def per_denominator_unit(self) -> float:
        return self.numerator.value / self.denominator.value

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> StrengthRatio:
        return cls(
            numerator=Quantity.from_payload(payload["numerator"]),
            denominator=Quantity.from_payload(payload["denominator"]),
        )

    def describe(self) -> str:
        return (
            f"{_format_number(self.numerator.value)} {self.numerator.unit}/"
            f"{_format_number(self.denominator.value)} {self.denominator.unit}"
        )


@dataclass(frozen=True)
class DispenserMetadata:
    type: str
    conversion_ratio: float | None = None
    dose_per_actuation: Quantity | None = None
    air_prime_loss: float | None = None


@dataclass(frozen=True)
class ConversionContext:
    """Per-call inputs that some conversions need. Never persisted."""

    strength_ratio: StrengthRatio | None = None
    dispenser: DispenserMetadata | None = None
    used_defaults: bool = False
    has_lot_specific_data: bool | None = None
    missing_required_context: bool = False

    def available_fields(self) -> list[str]:
        available: list[str] = []
        if self.strength_ratio is not None:
            available.append("strength_ratio")
        if self.dispenser is not None:
            available.append("dispenser")
            if self.dispenser.dose_per_actuation is not None:
                available.append("dose_per_actuation")
        return available


@dataclass(frozen=True)
class ConversionOptions:
    precision: int | None = None
    enforce_precision: bool | None = None
    precision_tolerance: float | None = None
    allow_defaults: bool = True


@dataclass(frozen=True)
class UnitValidation:
    valid: bool
    normalized_form: str | None
    error: str | None = None
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True)
class ConversionStep:
    operation: str
    from_value: float
    from_unit: str
    to_value: float
    to_unit: str
    factor: float
    description: str = ""
    timestamp: float = field(default_factory=lambda: time.perf_counter() * 1000.0)

    def describe(self) -> str:
        text = (
            f"{_format_number(self.from_value)} {self.from_unit} -> "
            f"{_format_number(self.to_value)} {self.to_unit} (x{_format_number(self.factor)})"
        )
        if self.description:
            text = f"{text}: {self.description}"
        return text


@dataclass(frozen=True)
class ConversionRequest:
    value: float
    from_unit: str
    to_unit: str


@dataclass(frozen=True)
class ConversionTrace:
    """Ordered steps of one conversion plus the flags that affect trust in it."""

    request: ConversionRequest
    steps: tuple[ConversionStep, ...]
    used_defaults: bool = False
    has_lot_specific_data: bool | None = None
    missing_required_context: bool = False
    precision_loss: float = 0.0

    @property
    def device_units_involved(self) -> bool:
        return any(step.operation in DEVICE_OPERATIONS for step in self.steps)

    @property
    def concentration_used(self) -> bool:
        return any(step.operation in CONCENTRATION_OPERATIONS for step in self.steps)


@dataclass(frozen=True)
class ConversionSuccess:
    value: float
    unit: str
    steps: tuple[ConversionStep, ...]
    used_defaults: bool = False
    warnings: tuple[str, ...] = ()
    trace: ConversionTrace | None = None
    confidence: ConfidenceScore | None = None
    dry_run: bool = False
    # Clicks (or other device units) lost priming a new dispenser; not part of the dose.
    air_prime_loss: Quantity | None = None


DEVICE_OPERATIONS = frozenset({"device_to_base", "base_to_device"})
CONCENTRATION_OPERATIONS = frozenset({"strength_ratio", "dose_per_actuation"})


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)


def _format_number(value: float) -> str:
    if math.isfinite(value) and float(value).is_integer():
        return str(int(value))
    return f"{value:.6g}"
