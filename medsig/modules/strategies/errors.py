"""Strategy selection errors."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from medsig.modules.medication.schemas import MedicationRequestContext
from medsig.modules.strategies.types import SpecificityLevel


class StrategyError(Exception):
    """Base for strategy registration and selection failures."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_structured(self) -> dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "details": dict(self.details),
        }


def _describe(context: MedicationRequestContext) -> dict[str, Any]:
    medication = context.medication
    return {
        "medication": medication.name or "unknown",
        "dose_form": medication.dose_form or "unknown",
        "route": context.route or "unknown",
        "has_ingredients": bool(medication.ingredient),
    }


class AmbiguousStrategyError(StrategyError):
    """Two or more base strategies matched at the top specificity."""

    def __init__(
        self,
        strategies: Sequence[str],
        specificity: int,
        context: MedicationRequestContext,
    ) -> None:
        level = SpecificityLevel(specificity)
        summary = _describe(context)
        message = (
            f"Multiple strategies at specificity level {level.value} ({level.name}): "
            f"[{', '.join(strategies)}]. Context: medication={summary['medication']}, "
            f"doseForm={summary['dose_form']}"
        )
        super().__init__(
            message,
            {"strategies": list(strategies), "specificity": level.value, "context": summary},
        )
        self.strategies = list(strategies)
        self.specificity = level


class NoMatchingStrategyError(StrategyError):
    def __init__(
        self,
        context: MedicationRequestContext,
        available_strategies: Sequence[str] = (),
    ) -> None:
        summary = _describe(context)
        message = (
            f"No strategy matches the given context. Context: {summary}. "
            f"Available strategies: [{', '.join(available_strategies)}]"
        )
        super().__init__(
            message,
            {"available_strategies": list(available_strategies), "context": summary},
        )
        self.available_strategies = list(available_strategies)


class DuplicateStrategyError(StrategyError):
    def __init__(self, strategy_name: str, strategy_type: str) -> None:
        super().__init__(
            f"{strategy_type} strategy '{strategy_name}' is already registered",
            {"strategy_name": strategy_name, "strategy_type": strategy_type},
        )
        self.strategy_name = strategy_name
        self.strategy_type = strategy_type


class PriorityConflictError(StrategyError):
    def __init__(self, conflicting_modifiers: Sequence[tuple[str, int]]) -> None:
        conflicts = ", ".join(f"{name} (priority: {priority})" for name, priority in conflicting_modifiers)
        super().__init__(
            "Modifier priority conflict detected. "
            f"Multiple modifiers share the same priority: [{conflicts}]",
            {
                "conflicting_modifiers": [
                    {"name": name, "priority": priority} for name, priority in conflicting_modifiers
                ]
            },
        )
        self.conflicting_modifiers = list(conflicting_modifiers)
