"""Tier 2: device unit adapter for clicks, drops, puffs, tablets and similar units."""

from __future__ import annotations

import difflib
import math
from collections.abc import Iterable

from medsig.core.logging import get_logger
from medsig.modules.units.concentration import convert_with_strength_ratio, standard_step
from medsig.modules.units.constants import DEFAULT_DEVICE_UNITS
from medsig.modules.units.errors import ConversionError
from medsig.modules.units.models import (
    ConversionContext,
    ConversionStep,
    ConversionSuccess,
    DeviceUnit,
    Quantity,
)
from medsig.modules.units.registry import DimensionalUnitRegistry

logger = get_logger(__name__)


def default_device_units() -> list[DeviceUnit]:
    return [DeviceUnit.from_payload(payload) for payload in DEFAULT_DEVICE_UNITS]


class DeviceUnitAdapter:
    """Registry and converter for non-standard, context-dependent units.

    Registration is last-write-wins: registering a symbol again replaces the
    earlier entry. Entries are never removed at runtime.
    """

    def __init__(
        self,
        registry: DimensionalUnitRegistry,
        units: Iterable[DeviceUnit] | None = None,
    ) -> None:
        self._registry = registry
        self._units: dict[str, DeviceUnit] = {}
        self._aliases: dict[str, str] = {}
        for unit in default_device_units() if units is None else units:
            self.register_device_unit(unit)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register_device_unit(self, unit: DeviceUnit) -> None:
        symbol = unit.symbol.strip()
        if not symbol:
            raise ValueError("Device unit symbol must not be empty")
        ratio = unit.conversion_ratio
        if not math.isfinite(ratio) or ratio <= 0:
            raise ValueError(
                f"Device unit '{symbol}' needs a positive finite conversion ratio, got {ratio}"
            )
        if unit.granularity is not None and (
            not math.isfinite(unit.granularity) or unit.granularity <= 0
        ):
            raise ValueError(f"Device unit '{symbol}' has invalid granularity {unit.granularity}")
        base = self._registry.normalize(unit.base_unit)
        if base is None:
            raise ValueError(f"Device unit '{symbol}' has unknown base unit '{unit.base_unit}'")

        if symbol in self._units:
            logger.info("device_unit_overwritten", symbol=symbol)

        self._units[symbol] = unit
        for name in (symbol, unit.plural, *unit.aliases):
            if name:
                self._aliases[name.strip().casefold()] = symbol

    def normalize(self, unit: str) -> str | None:
        if not isinstance(unit, str):
            return None
        return self._aliases.get(unit.strip().casefold())

    def is_device_unit(self, unit: str) -> bool:
        return self.normalize(unit) is not None

    def get_device_unit(self, unit: str) -> DeviceUnit | None:
        symbol = self.normalize(unit)
        if symbol is None:
            return None
        return self._units[symbol]

    def list_device_units(self) -> list[DeviceUnit]:
        return list(self._units.values())

    def suggest(self, unit: str, limit: int = 3) -> list[str]:
        matches = difflib.get_close_matches(
            unit.strip().casefold(), list(self._aliases.keys()), n=limit * 2, cutoff=0.6
        )
        suggestions: list[str] = []
        for match in matches:
            symbol = self._aliases[match]
            if symbol not in suggestions:
                suggestions.append(symbol)
        return suggestions[:limit]

    def dimension_of(self, unit: str) -> str | None:
        device = self.get_device_unit(unit)
        if device is None:
            return None
        return self._registry.dimension_of(device.base_unit)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def convert(
        self,
        value: float,
        from_unit: str,
        to_unit: str,
        context: ConversionContext | None = None,
    ) -> ConversionSuccess:
        """Convert when at least one side is a device unit."""
        context = context or ConversionContext()
        source = self.get_device_unit(from_unit)
        target = self.get_device_unit(to_unit)

        if source is not None and target is not None:
            result, steps, used_defaults = self._between_devices(value, source, target, context)
            unit = target.symbol
        elif source is not None:
            result, steps, used_defaults = self._from_device(value, source, to_unit, context)
            unit = self._registry.normalize(to_unit) or to_unit
        elif target is not None:
            result, steps, used_defaults = self._to_device(value, from_unit, target, context)
            unit = target.symbol
        else:
            raise ConversionError.impossible_conversion(
                from_unit, to_unit, "neither unit is a registered device unit"
            )

        return ConversionSuccess(
            value=result,
            unit=unit,
            steps=tuple(steps),
            used_defaults=used_defaults,
        )

    def to_standard_quantity(
        self, quantity: Quantity, context: ConversionContext | None = None
    ) -> Quantity:
        """Express *quantity* in a Tier 1 unit, e.g. ``1 tablet -> 1 each``."""
        device = self.get_device_unit(quantity.unit)
        if device is not None:
            ratio, _ = self._ratio_for(device, context or ConversionContext())
            return Quantity(value=quantity.value / ratio, unit=self._base_symbol(device))

        normalized = self._registry.normalize(quantity.unit)
        if normalized is None:
            validation = self._registry.validate(quantity.unit)
            raise ConversionError.invalid_unit(
                quantity.unit, validation.error, list(validation.suggestions)
            )
        return Quantity(value=quantity.value, unit=normalized)

    def _between_devices(
        self,
        value: float,
        source: DeviceUnit,
        target: DeviceUnit,
        context: ConversionContext,
    ) -> tuple[float, list[ConversionStep], bool]:
        source_dimension = self._registry.dimension_of(source.base_unit)
        target_dimension = self._registry.dimension_of(target.base_unit)
        if source_dimension != target_dimension:
            raise ConversionError.impossible_conversion(
                source.symbol,
                target.symbol,
                (
                    f"device units measure different dimensions "
                    f"({source_dimension} vs {target_dimension})"
                ),
            )

        base_value, steps, source_default = self._device_to_base(value, source, context)
        base_value, hop = standard_step(
            self._registry, base_value, self._base_symbol(source), self._base_symbol(target)
        )
        steps.extend(hop)
        result, step, target_default = self._base_to_device(base_value, target, context)
        steps.append(step)
        return result, steps, source_default or target_default

    def _from_device(
        self,
        value: float,
        source: DeviceUnit,
        to_unit: str,
        context: ConversionContext,
    ) -> tuple[float, list[ConversionStep], bool]:
        target = self._require_standard(to_unit)
        base_value, steps, used_defaults = self._device_to_base(value, source, context)
        base_unit = self._base_symbol(source)

        if self._registry.are_units_compatible(base_unit, target):
            result, hop = standard_step(self._registry, base_value, base_unit, target)
            steps.extend(hop)
            return result, steps, used_defaults

        numerator, denominator, operation = self._context_ratio(
            source, context, f"{source.symbol} -> {target}"
        )
        result, hops = convert_with_strength_ratio(
            self._registry,
            base_value,
            base_unit,
            target,
            numerator,
            denominator,
            operation=operation,
        )
        steps.extend(hops)
        return result, steps, used_defaults

    def _to_device(
        self,
        value: float,
        from_unit: str,
        target: DeviceUnit,
        context: ConversionContext,
    ) -> tuple[float, list[ConversionStep], bool]:
        source = self._require_standard(from_unit)
        base_unit = self._base_symbol(target)
        steps: list[ConversionStep] = []

        if self._registry.are_units_compatible(source, base_unit):
            base_value, hop = standard_step(self._registry, value, source, base_unit)
            steps.extend(hop)
        else:
            numerator, denominator, operation = self._context_ratio(
                target, context, f"{source} -> {target.symbol}"
            )
            base_value, hops = convert_with_strength_ratio(
                self._registry,
                value,
                source,
                base_unit,
                numerator,
                denominator,
                operation=operation,
            )
            steps.extend(hops)

        result, step, used_defaults = self._base_to_device(base_value, target, context)
        steps.append(step)
        return result, steps, used_defaults

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _device_to_base(
        self, value: float, device: DeviceUnit, context: ConversionContext
    ) -> tuple[float, list[ConversionStep], bool]:
        ratio, used_default = self._ratio_for(device, context)
        base_value = value / ratio
        step = ConversionStep(
            operation="device_to_base",
            from_value=value,
            from_unit=device.symbol,
            to_value=base_value,
            to_unit=self._base_symbol(device),
            factor=1 / ratio,
            description=f"{ratio:g} {device.plural} per {device.base_unit}",
        )
        return base_value, [step], used_default

    def _base_to_device(
        self, base_value: float, device: DeviceUnit, context: ConversionContext
    ) -> tuple[float, ConversionStep, bool]:
        ratio, used_default = self._ratio_for(device, context)
        result = base_value * ratio
        step = ConversionStep(
            operation="base_to_device",
            from_value=base_value,
            from_unit=self._base_symbol(device),
            to_value=result,
            to_unit=device.symbol,
            factor=ratio,
            description=f"{ratio:g} {device.plural} per {device.base_unit}",
        )
        return result, step, used_default

    def _ratio_for(self, device: DeviceUnit, context: ConversionContext) -> tuple[float, bool]:
        """Return ``(ratio, used_default)``; a matching dispenser overrides the table."""
        dispenser = context.dispenser
        if self._dispenser_applies(device, context) and dispenser is not None:
            ratio = dispenser.conversion_ratio
            if ratio is not None and math.isfinite(ratio) and ratio > 0:
                return ratio, False
            if ratio is not None:
                logger.warning(
                    "dispenser_ratio_ignored",
                    device=device.symbol,
                    dispenser=dispenser.type,
                    ratio=ratio,
                )
        return device.conversion_ratio, device.ratio_is_default

    def air_prime_loss(self, unit: str, context: ConversionContext | None = None) -> float | None:
        """Device units spent priming a new dispenser (4 clicks for a Topiclick)."""
        device = self.get_device_unit(unit)
        if device is None:
            return None
        context = context or ConversionContext()
        if self._dispenser_applies(device, context) and context.dispenser is not None:
            if context.dispenser.air_prime_loss is not None:
                return context.dispenser.air_prime_loss
        loss = device.metadata.get("air_prime_loss")
        return float(loss) if loss is not None else None

    @staticmethod
    def _dispenser_applies(device: DeviceUnit, context: ConversionContext) -> bool:
        """A dispenser speaks for a device tagged with its type, or one that needs any dispenser."""
        dispenser = context.dispenser
        if dispenser is None or "strength_ratio" in device.requires_context:
            return False
        expected = device.metadata.get("dispenser")
        if expected is not None:
            return str(expected).casefold() == dispenser.type.strip().casefold()
        return "dispenser" in device.requires_context

    def _context_ratio(
        self, device: DeviceUnit, context: ConversionContext, conversion: str
    ) -> tuple[Quantity, Quantity, str]:
        """Pick the ratio that bridges a device's base unit and another dimension."""
        dispenser = context.dispenser
        if (
            "dose_per_actuation" in device.requires_context
            and dispenser is not None
            and dispenser.dose_per_actuation is not None
        ):
            numerator = self.to_standard_quantity(dispenser.dose_per_actuation, context)
            denominator = Quantity(value=1.0, unit=self._base_symbol(device))
            return numerator, denominator, "dose_per_actuation"

        if context.strength_ratio is not None:
            numerator = self.to_standard_quantity(context.strength_ratio.numerator, context)
            denominator = self.to_standard_quantity(context.strength_ratio.denominator, context)
            return numerator, denominator, "strength_ratio"

        if "dose_per_actuation" in device.requires_context:
            required = ["dose_per_actuation"]
        else:
            required = ["strength_ratio"]
        raise ConversionError.missing_context(required, conversion, context.available_fields())

    def _require_standard(self, unit: str) -> str:
        normalized = self._registry.normalize(unit)
        if normalized is None:
            validation = self._registry.validate(unit)
            suggestions = list(validation.suggestions) + self.suggest(unit)
            raise ConversionError.invalid_unit(unit, validation.error, suggestions)
        return normalized

    def _base_symbol(self, device: DeviceUnit) -> str:
        return self._registry.normalize(device.base_unit) or device.base_unit
