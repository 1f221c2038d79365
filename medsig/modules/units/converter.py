"""Unit conversion orchestrator.

``UnitConverter.convert`` decides which tier a request needs:

- identical units after normalisation: a single identity step
- two standard units of one dimension: Tier 1 (pint)
- two standard units of different dimensions: concentration through the
  context's strength ratio, or a typed failure
- anything involving a device unit: Tier 2, which calls back into Tier 1
  for its standard legs

The assembled trace is scored by ``ConfidenceScoreService`` and every stage
is reported to the ``ConversionTracer``. Expected failures come back as
``ConversionResult.failure``; ``convert`` itself never raises them.
"""

from __future__ import annotations

import math
from typing import Any

import structlog

from medsig.core.config import Settings, get_settings
from medsig.core.logging import get_logger
from medsig.modules.confidence.schemas import ConfidenceScore
from medsig.modules.confidence.service import ConfidenceScoreService
from medsig.modules.tracing.schemas import TraceEventType, TracerOptions
from medsig.modules.tracing.tracer import ConversionTracer
from medsig.modules.units.concentration import convert_with_strength_ratio, standard_step
from medsig.modules.units.constants import (
    DIMENSION_ACTIVITY,
    DIMENSION_COUNT,
    DIMENSION_MASS,
    DIMENSION_VOLUME,
)
from medsig.modules.units.devices import DeviceUnitAdapter
from medsig.modules.units.errors import ConversionError, ConversionResult
from medsig.modules.units.models import (
    ConversionContext,
    ConversionOptions,
    ConversionRequest,
    ConversionStep,
    ConversionSuccess,
    ConversionTrace,
    DeviceUnit,
    Quantity,
    Unit,
    UnitValidation,
)
from medsig.modules.units.registry import DimensionalUnitRegistry

# Dimension pairs a strength ratio can bridge (mg/mL, mg/tablet, units/mL).
_CONCENTRATION_DIMENSIONS = frozenset(
    {DIMENSION_MASS, DIMENSION_VOLUME, DIMENSION_COUNT, DIMENSION_ACTIVITY}
)


class UnitConverter:
    """Composes the dimensional registry and the device unit adapter.

    One converter per logical workflow; the tracer buffer and the
    last-conversion slot are instance state.
    """

    def __init__(
        self,
        registry: DimensionalUnitRegistry | None = None,
        device_adapter: DeviceUnitAdapter | None = None,
        *,
        confidence_service: ConfidenceScoreService | None = None,
        tracer: ConversionTracer | None = None,
        tracer_options: TracerOptions | None = None,
        settings: Settings | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._registry = registry or DimensionalUnitRegistry()
        self._devices = device_adapter or DeviceUnitAdapter(self._registry)
        self._confidence = confidence_service or ConfidenceScoreService()
        self._tracer = tracer or ConversionTracer(tracer_options)
        self._logger = logger or get_logger(__name__)
        self._last_request: ConversionRequest | None = None
        self._last_success: ConversionSuccess | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def registry(self) -> DimensionalUnitRegistry:
        return self._registry

    @property
    def device_adapter(self) -> DeviceUnitAdapter:
        return self._devices

    @property
    def tracer(self) -> ConversionTracer:
        return self._tracer

    @property
    def last_confidence(self) -> ConfidenceScore | None:
        if self._last_success is None:
            return None
        return self._last_success.confidence

    def convert(
        self,
        value: float,
        from_unit: str,
        to_unit: str,
        context: ConversionContext | None = None,
        options: ConversionOptions | None = None,
    ) -> ConversionResult:
        request = ConversionRequest(value=value, from_unit=from_unit, to_unit=to_unit)
        description = f"Convert {value} {from_unit} to {to_unit}"
        self._tracer.record(
            TraceEventType.CONVERSION_START,
            description,
            value=value,
            from_unit=from_unit,
            to_unit=to_unit,
        )

        try:
            success = self._convert(request, context or ConversionContext(), options)
        except ConversionError as exc:
            self._tracer.record(TraceEventType.ERROR, description, error=exc.to_structured())
            self._logger.info(
                "conversion_failed",
                from_unit=from_unit,
                to_unit=to_unit,
                error_type=exc.error_type.value,
                error=exc.message,
            )
            return ConversionResult.failure(exc)

        self._tracer.record(
            TraceEventType.CONVERSION_END,
            description,
            result=success.value,
            unit=success.unit,
        )
        self._last_request = request
        self._last_success = success
        return ConversionResult.success(success)

    def validate(self, unit: str) -> UnitValidation:
        symbol = self._devices.normalize(unit)
        if symbol is not None:
            return UnitValidation(valid=True, normalized_form=symbol)
        validation = self._registry.validate(unit)
        if validation.valid or not isinstance(unit, str):
            return validation
        suggestions = _merge(validation.suggestions, self._devices.suggest(unit))
        return UnitValidation(
            valid=False,
            normalized_form=None,
            error=validation.error,
            suggestions=tuple(suggestions),
        )

    def get_compatible_units(self, unit: str) -> list[Unit]:
        """Standard units sharing *unit*'s dimension plus device units based on it."""
        dimension = self._dimension_of(unit)
        if dimension is None:
            return []

        units = [entry for entry in self._registry.list_units() if entry.dimension == dimension]
        for device in self._devices.list_device_units():
            if self._registry.dimension_of(device.base_unit) == dimension:
                units.append(
                    Unit(
                        symbol=device.symbol,
                        dimension=dimension,
                        display_name=device.plural,
                        compatible_symbols=(device.base_unit,),
                    )
                )
        return units

    def register_device_unit(self, unit: DeviceUnit | dict[str, Any]) -> None:
        if isinstance(unit, dict):
            unit = DeviceUnit.from_payload(unit)
        self._devices.register_device_unit(unit)

    def set_tracing_enabled(self, enabled: bool) -> None:
        self._tracer.set_enabled(enabled)

    def export_trace(self, format: str = "json") -> str:
        return self._tracer.export(format)

    def explain(self) -> str:
        """Readable account of the last successful conversion."""
        if self._last_success is None or self._last_request is None:
            return "No conversion has been performed yet."

        request = self._last_request
        success = self._last_success
        lines = [
            f"Converted {request.value} {request.from_unit} to {success.value:g} {success.unit}",
            "",
            "Steps:",
        ]
        lines.extend(
            f"  {index}. {step.operation}: {step.describe()}"
            for index, step in enumerate(success.steps, start=1)
        )
        if success.air_prime_loss is not None:
            loss = success.air_prime_loss
            lines.extend(["", f"Air-prime loss: {loss.value:g} {loss.unit} per new dispenser"])
        if success.warnings:
            lines.extend(["", "Warnings:"])
            lines.extend(f"  - {warning}" for warning in success.warnings)
        if success.confidence is not None:
            lines.extend(["", success.confidence.explanation])
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _convert(
        self,
        request: ConversionRequest,
        context: ConversionContext,
        options: ConversionOptions | None,
    ) -> ConversionSuccess:
        options = options or ConversionOptions()
        precision = (
            options.precision if options.precision is not None else self._settings.max_decimal_places
        )
        tolerance = (
            options.precision_tolerance
            if options.precision_tolerance is not None
            else self._settings.precision_tolerance
        )
        enforce = (
            options.enforce_precision
            if options.enforce_precision is not None
            else self._settings.enforce_precision
        )

        self._tracer.record(TraceEventType.VALIDATION_START, "Validate conversion inputs")
        self._validate_value(request.value)
        if precision < 0 or tolerance < 0 or not math.isfinite(tolerance):
            raise ConversionError.invalid_unit(
                str(request.value),
                f"Precision thresholds must be non-negative (precision={precision}, "
                f"tolerance={tolerance})",
            )
        source = self._normalize(request.from_unit)
        target = self._normalize(request.to_unit)
        self._tracer.record(
            TraceEventType.VALIDATION_END,
            "Validate conversion inputs",
            from_unit=source,
            to_unit=target,
        )

        value = float(request.value)
        used_defaults = context.used_defaults
        air_prime_loss: Quantity | None = None
        if source == target:
            self._tracer.record(TraceEventType.ADAPTER_SELECTION, "identity", unit=source)
            steps = [
                ConversionStep(
                    operation="identity",
                    from_value=value,
                    from_unit=source,
                    to_value=value,
                    to_unit=target,
                    factor=1.0,
                )
            ]
            result = value
        elif self._devices.is_device_unit(source) or self._devices.is_device_unit(target):
            self._tracer.record(
                TraceEventType.ADAPTER_SELECTION, "device_unit_adapter", from_unit=source, to_unit=target
            )
            outcome = self._devices.convert(value, source, target, context)
            if outcome.used_defaults and not options.allow_defaults:
                raise ConversionError.missing_context(
                    ["dispenser"], f"{source} -> {target}", context.available_fields()
                )
            used_defaults = used_defaults or outcome.used_defaults
            steps = list(outcome.steps)
            result = outcome.value
            air_prime_loss = self._air_prime_loss(source, target, context)
        else:
            result, steps = self._convert_standard(value, source, target, context)

        for step in steps:
            self._tracer.record(
                TraceEventType.CONVERSION_STEP,
                step.describe(),
                operation=step.operation,
                factor=step.factor,
            )

        result, loss, warnings = self._apply_precision(
            request, result, target, precision, tolerance, enforce
        )

        trace = ConversionTrace(
            request=request,
            steps=tuple(steps),
            used_defaults=used_defaults,
            has_lot_specific_data=context.has_lot_specific_data,
            missing_required_context=context.missing_required_context,
            precision_loss=loss,
        )
        confidence = self._confidence.calculate(trace)
        self._tracer.record(
            TraceEventType.CONFIDENCE_CALCULATION,
            "Calculate confidence",
            score=confidence.score,
            level=confidence.level.value,
        )
        self._logger.debug(
            "conversion_completed",
            from_unit=source,
            to_unit=target,
            steps=len(steps),
            confidence=confidence.score,
        )

        return ConversionSuccess(
            value=result,
            unit=target,
            steps=tuple(steps),
            used_defaults=used_defaults,
            warnings=tuple(warnings),
            trace=trace,
            confidence=confidence,
            dry_run=self._tracer.is_dry_run,
            air_prime_loss=air_prime_loss,
        )

    def _convert_standard(
        self,
        value: float,
        source: str,
        target: str,
        context: ConversionContext,
    ) -> tuple[float, list[ConversionStep]]:
        if self._registry.are_units_compatible(source, target):
            self._tracer.record(TraceEventType.ADAPTER_SELECTION, "dimensional_registry")
            return standard_step(self._registry, value, source, target)

        source_dimension = self._registry.dimension_of(source)
        target_dimension = self._registry.dimension_of(target)
        if not {source_dimension, target_dimension} <= _CONCENTRATION_DIMENSIONS:
            raise ConversionError.impossible_conversion(
                source,
                target,
                f"incompatible dimensions ({source_dimension} vs {target_dimension})",
            )
        if context.strength_ratio is None:
            raise ConversionError.missing_context(
                ["strength_ratio"], f"{source} -> {target}", context.available_fields()
            )

        self._tracer.record(
            TraceEventType.ADAPTER_SELECTION,
            "concentration",
            strength_ratio=context.strength_ratio.describe(),
        )
        numerator = self._devices.to_standard_quantity(context.strength_ratio.numerator, context)
        denominator = self._devices.to_standard_quantity(
            context.strength_ratio.denominator, context
        )
        return convert_with_strength_ratio(
            self._registry, value, source, target, numerator, denominator
        )

    def _apply_precision(
        self,
        request: ConversionRequest,
        raw: float,
        target: str,
        precision: int,
        tolerance: float,
        enforce: bool,
    ) -> tuple[float, float, list[str]]:
        """Round the result and measure how much was lost.

        Loss is relative: rounding to *precision* decimals, or snapping to the
        target device's granularity (a quarter tablet, a whole click).
        """
        rounded = round(raw, precision)
        loss = _relative_loss(raw, rounded)

        device = self._devices.get_device_unit(target)
        if device is not None and device.granularity:
            snapped = round(raw / device.granularity) * device.granularity
            loss = max(loss, _relative_loss(raw, snapped))

        if loss <= tolerance:
            return rounded, loss, []

        if enforce:
            raise ConversionError.precision_loss(
                request.value, request.from_unit, request.to_unit, tolerance, loss
            )

        warning = (
            f"Converting {request.value} {request.from_unit} to {target} loses "
            f"{loss:.2%} precision (tolerance {tolerance:.2%})"
        )
        self._tracer.record(TraceEventType.WARNING, warning, loss=loss)
        self._logger.warning(
            "conversion_precision_loss",
            from_unit=request.from_unit,
            to_unit=target,
            loss=loss,
            tolerance=tolerance,
        )
        return raw, loss, [warning]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_value(value: Any) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConversionError.invalid_unit(str(value), "Value must be a finite number")
        if not math.isfinite(value):
            raise ConversionError.invalid_unit(str(value), "Value must be a finite number")

    def _normalize(self, unit: str) -> str:
        symbol = self._devices.normalize(unit)
        if symbol is not None:
            return symbol
        symbol = self._registry.normalize(unit)
        if symbol is not None:
            return symbol
        validation = self.validate(unit)
        raise ConversionError.invalid_unit(str(unit), validation.error, list(validation.suggestions))

    def _air_prime_loss(
        self, source: str, target: str, context: ConversionContext
    ) -> Quantity | None:
        for unit in (source, target):
            device = self._devices.get_device_unit(unit)
            loss = self._devices.air_prime_loss(unit, context)
            if device is not None and loss:
                return Quantity(value=loss, unit=device.display(loss))
        return None

    def _dimension_of(self, unit: str) -> str | None:
        return self._devices.dimension_of(unit) or self._registry.dimension_of(unit)


def _relative_loss(raw: float, kept: float) -> float:
    if raw == 0:
        return 0.0
    return abs(raw - kept) / abs(raw)


def _merge(first: tuple[str, ...] | list[str], second: list[str], limit: int = 3) -> list[str]:
    merged: list[str] = []
    for suggestion in (*first, *second):
        if suggestion not in merged:
            merged.append(suggestion)
    return merged[:limit]
