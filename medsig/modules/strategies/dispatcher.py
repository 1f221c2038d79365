"""Specificity based dispatcher.

Picks the most specific matching base strategy, builds its instruction and
runs every applicable modifier over it in ascending priority. Each dispatch
(successful or not) lands in a bounded audit log used for latency stats.
"""

from __future__ import annotations

import math
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from medsig.core.logging import get_logger
from medsig.modules.medication.schemas import MedicationRequestContext
from medsig.modules.strategies.errors import AmbiguousStrategyError, NoMatchingStrategyError
from medsig.modules.strategies.registry import StrategyRegistry
from medsig.modules.strategies.types import BaseStrategy, SignatureInstruction

DEFAULT_AUDIT_LOG_SIZE = 1000


@dataclass(frozen=True)
class CandidateStrategy:
    name: str
    specificity: int
    matched: bool


@dataclass
class DispatchAudit:
    context_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    candidates: list[CandidateStrategy] = field(default_factory=list)
    selected_strategy: str | None = None
    applied_modifiers: list[str] = field(default_factory=list)
    execution_time_ms: float = 0.0
    error: str | None = None


@dataclass(frozen=True)
class DispatchPreview:
    base_strategy: str | None
    modifiers: tuple[str, ...]
    would_succeed: bool
    error: str | None = None


@dataclass(frozen=True)
class PerformanceStats:
    count: int
    avg_time_ms: float
    p50_ms: float
    p95_ms: float
    p99_ms: float


class StrategyDispatcher:
    """Usage::

        dispatcher = StrategyDispatcher(default_registry())
        instruction = dispatcher.dispatch(context)
    """

    def __init__(
        self,
        registry: StrategyRegistry,
        *,
        max_audit_log_size: int = DEFAULT_AUDIT_LOG_SIZE,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        if max_audit_log_size < 1:
            raise ValueError("max_audit_log_size must be at least 1")
        self._registry = registry
        self._audit: deque[DispatchAudit] = deque(maxlen=max_audit_log_size)
        self._logger = logger or get_logger(__name__)

    @property
    def registry(self) -> StrategyRegistry:
        return self._registry

    def dispatch(self, context: MedicationRequestContext) -> SignatureInstruction:
        started = time.perf_counter()
        audit = DispatchAudit(context_id=context.id)
        try:
            name, strategy = self._select(context, audit)
            audit.selected_strategy = name
            instruction = strategy.build_instruction(context)

            for modifier_name, modifier in self._registry.find_matching_modifiers(context):
                instruction = modifier.modify(instruction, context)
                audit.applied_modifiers.append(modifier_name)
        except (AmbiguousStrategyError, NoMatchingStrategyError) as exc:
            audit.error = exc.message
            self._logger.warning(
                "strategy_dispatch_failed",
                context_id=context.id,
                error_type=type(exc).__name__,
                error=exc.message,
            )
            raise
        finally:
            audit.execution_time_ms = (time.perf_counter() - started) * 1000.0
            self._audit.append(audit)

        self._logger.debug(
            "strategy_dispatched",
            context_id=context.id,
            strategy=audit.selected_strategy,
            modifiers=audit.applied_modifiers,
            duration_ms=round(audit.execution_time_ms, 3),
        )
        return instruction

    def preview(self, context: MedicationRequestContext) -> DispatchPreview:
        """What ``dispatch`` would pick, without building anything."""
        matching = self._matching(context)
        if not matching:
            return DispatchPreview(None, (), False, "No matching strategy found")
        if len(matching) > 1 and matching[0][1].specificity == matching[1][1].specificity:
            return DispatchPreview(matching[0][0], (), False, "Ambiguous strategy match")
        modifiers = tuple(name for name, _ in self._registry.find_matching_modifiers(context))
        return DispatchPreview(matching[0][0], modifiers, True)

    def explain_selection(self, context: MedicationRequestContext) -> str:
        preview = self.preview(context)
        lines = [
            "=== Strategy Selection Explanation ===",
            f"Context: {context.medication.name or 'Unknown medication'}",
            f"Dose Form: {context.medication.dose_form or 'Unknown'}",
            "",
        ]
        if not preview.would_succeed:
            lines.append(f"Selection would fail: {preview.error}")
            return "\n".join(lines)

        lines.append(f"Selected Base Strategy: {preview.base_strategy}")
        if preview.modifiers:
            lines += ["", "Applied Modifiers (in order):"]
            lines += [f"  {index}. {name}" for index, name in enumerate(preview.modifiers, start=1)]
        else:
            lines.append("No modifiers would be applied")
        return "\n".join(lines)

    def get_audit_log(self, limit: int | None = None) -> list[DispatchAudit]:
        entries = list(self._audit)
        if limit:
            return entries[-limit:]
        return entries

    def clear_audit_log(self) -> None:
        self._audit.clear()

    def get_performance_stats(self) -> PerformanceStats:
        times = sorted(entry.execution_time_ms for entry in self._audit)
        if not times:
            return PerformanceStats(0, 0.0, 0.0, 0.0, 0.0)

        def percentile(p: float) -> float:
            index = math.ceil(len(times) * p) - 1
            return times[max(0, min(index, len(times) - 1))]

        return PerformanceStats(
            count=len(times),
            avg_time_ms=sum(times) / len(times),
            p50_ms=percentile(0.5),
            p95_ms=percentile(0.95),
            p99_ms=percentile(0.99),
        )

    # ------------------------------------------------------------------

    def _matching(self, context: MedicationRequestContext) -> list[tuple[str, BaseStrategy]]:
        matching = [
            (name, strategy)
            for name, strategy in self._registry.get_base_strategies().items()
            if strategy.matches(context)
        ]
        # Stable sort keeps registration order within a specificity level.
        return sorted(matching, key=lambda item: item[1].specificity, reverse=True)

    def _select(
        self, context: MedicationRequestContext, audit: DispatchAudit
    ) -> tuple[str, BaseStrategy]:
        strategies = self._registry.get_base_strategies()
        matching: list[tuple[str, BaseStrategy]] = []
        for name, strategy in strategies.items():
            matched = strategy.matches(context)
            audit.candidates.append(CandidateStrategy(name, int(strategy.specificity), matched))
            if matched:
                matching.append((name, strategy))
        matching.sort(key=lambda item: item[1].specificity, reverse=True)

        if not matching:
            raise NoMatchingStrategyError(context, list(strategies))
        top = matching[0][1].specificity
        tied = [name for name, strategy in matching if strategy.specificity == top]
        if len(tied) > 1:
            raise AmbiguousStrategyError(tied, int(top), context)
        return matching[0]
