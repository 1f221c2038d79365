"""Confidence scoring for unit conversions.

The score is a pure function of a ``ConversionTrace``: a base score chosen by
how far the conversion had to travel (identity, standard hop, device ratio,
concentration), then a fixed list of adjustments for assumptions, data
quality and precision. Identical traces always get identical scores.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import TYPE_CHECKING

from medsig.modules.confidence.schemas import (
    ConfidenceFactors,
    ConfidenceLevel,
    ConfidenceScore,
    ScoreAdjustment,
)

if TYPE_CHECKING:
    from medsig.modules.units.models import (
        ConversionRequest,
        ConversionStep,
        ConversionTrace,
    )

HIGH_THRESHOLD = 80
MEDIUM_THRESHOLD = 50

_BASE_IDENTITY = 100
_BASE_SINGLE_STANDARD = 100
_BASE_MULTI_STANDARD = 95
_BASE_DEVICE_SHORT = 90
_BASE_DEVICE_LONG = 85
_BASE_CONCENTRATION = 75

_PENALTY_USED_DEFAULTS = -20
_PENALTY_NO_LOT_DATA = -10
_PENALTY_MISSING_CONTEXT = -25
_PENALTY_PRECISION = -10
_PENALTY_PER_EXTRA_STEP = -5
_BONUS_EXACT_MATCH = 5

_STEP_ALLOWANCE = 3
_SMALL_VALUE = 0.001
_MAX_FACTOR_ORDERS = 6

_STANDARD_OPERATIONS = frozenset({"identity", "standard_conversion"})


class ConfidenceScoreService:
    """Scores conversion traces. Stateless; one instance may be shared."""

    def calculate(self, trace: ConversionTrace) -> ConfidenceScore:
        base, base_reason = self._base_score(trace)
        adjustments = self._adjustments(trace)

        score = base + sum(adjustment.delta for adjustment in adjustments)
        score = max(0, min(100, score))
        level = self._level(score)
        factors = self._factors(trace)
        rationale = (base_reason, *(adjustment.reason for adjustment in adjustments))

        return ConfidenceScore(
            level=level,
            score=score,
            rationale=rationale,
            factors=factors,
            explanation=self._explanation(level, score, factors, rationale),
            adjustments=tuple(adjustments),
        )

    def create_trace_from_steps(
        self,
        steps: Iterable[ConversionStep],
        request: ConversionRequest,
        *,
        used_defaults: bool = False,
        has_lot_specific_data: bool | None = None,
        missing_required_context: bool = False,
        precision_loss: float = 0.0,
    ) -> ConversionTrace:
        # units imports this module, so resolve the model lazily
        from medsig.modules.units.models import ConversionTrace

        return ConversionTrace(
            request=request,
            steps=tuple(steps),
            used_defaults=used_defaults,
            has_lot_specific_data=has_lot_specific_data,
            missing_required_context=missing_required_context,
            precision_loss=precision_loss,
        )

    # ------------------------------------------------------------------

    @staticmethod
    def _base_score(trace: ConversionTrace) -> tuple[int, str]:
        steps = trace.steps
        if not steps or all(step.operation == "identity" for step in steps):
            return _BASE_IDENTITY, "Identity conversion"
        if trace.concentration_used:
            return _BASE_CONCENTRATION, "Concentration-based conversion through a strength ratio"
        if trace.device_units_involved:
            if len(steps) <= 2:
                return _BASE_DEVICE_SHORT, "Device unit conversion through a registered ratio"
            return _BASE_DEVICE_LONG, "Multi-step device unit conversion"
        if len(steps) == 1:
            return _BASE_SINGLE_STANDARD, "Single standard unit conversion"
        return _BASE_MULTI_STANDARD, "Multi-step standard unit conversion"

    def _adjustments(self, trace: ConversionTrace) -> list[ScoreAdjustment]:
        adjustments: list[ScoreAdjustment] = []

        if trace.used_defaults:
            adjustments.append(
                ScoreAdjustment(_PENALTY_USED_DEFAULTS, "Default conversion assumptions were used")
            )
        if trace.has_lot_specific_data is False:
            adjustments.append(
                ScoreAdjustment(_PENALTY_NO_LOT_DATA, "No lot-specific product data available")
            )
        if trace.missing_required_context:
            adjustments.append(
                ScoreAdjustment(
                    _PENALTY_MISSING_CONTEXT, "Required context was missing and defaulted"
                )
            )
        if self._is_exact_dimensional_match(trace):
            adjustments.append(
                ScoreAdjustment(_BONUS_EXACT_MATCH, "Exact dimensional match between standard units")
            )
        if self._has_precision_concerns(trace):
            adjustments.append(
                ScoreAdjustment(_PENALTY_PRECISION, "Result may be affected by precision loss")
            )

        extra_steps = len(trace.steps) - _STEP_ALLOWANCE
        if extra_steps > 0:
            adjustments.append(
                ScoreAdjustment(
                    _PENALTY_PER_EXTRA_STEP * extra_steps,
                    f"Conversion needed {len(trace.steps)} steps",
                )
            )
        return adjustments

    @staticmethod
    def _is_exact_dimensional_match(trace: ConversionTrace) -> bool:
        return bool(trace.steps) and all(
            step.operation in _STANDARD_OPERATIONS for step in trace.steps
        )

    @staticmethod
    def _has_precision_concerns(trace: ConversionTrace) -> bool:
        if trace.precision_loss > 0:
            return True
        for step in trace.steps:
            if step.to_value != 0 and abs(step.to_value) < _SMALL_VALUE:
                return True
            if step.factor > 0 and abs(math.log10(step.factor)) > _MAX_FACTOR_ORDERS:
                return True
        return False

    def _factors(self, trace: ConversionTrace) -> ConfidenceFactors:
        complexity = 1.0 - 0.1 * max(0, len(trace.steps) - 1)
        if trace.concentration_used:
            complexity -= 0.15
        data_quality = 1.0
        if trace.has_lot_specific_data is False:
            data_quality -= 0.2
        if trace.missing_required_context:
            data_quality -= 0.4
        return ConfidenceFactors(
            conversion_complexity=round(max(0.3, complexity), 2),
            data_quality=round(max(0.0, data_quality), 2),
            assumptions=0.7 if trace.used_defaults else 1.0,
            precision=0.8 if self._has_precision_concerns(trace) else 1.0,
        )

    @staticmethod
    def _level(score: int) -> ConfidenceLevel:
        if score >= HIGH_THRESHOLD:
            return ConfidenceLevel.HIGH
        if score >= MEDIUM_THRESHOLD:
            return ConfidenceLevel.MEDIUM
        return ConfidenceLevel.LOW

    @staticmethod
    def _explanation(
        level: ConfidenceLevel,
        score: int,
        factors: ConfidenceFactors,
        rationale: tuple[str, ...],
    ) -> str:
        lines = [
            f"Confidence: {level.value.upper()} ({score}/100)",
            "",
            "Factors:",
            f"  - Conversion complexity: {factors.conversion_complexity:.0%}",
            f"  - Data quality: {factors.data_quality:.0%}",
            f"  - Assumptions: {factors.assumptions:.0%}",
            f"  - Precision: {factors.precision:.0%}",
            "",
            "Rationale:",
        ]
        lines.extend(f"  - {reason}" for reason in rationale)
        return "\n".join(lines)
