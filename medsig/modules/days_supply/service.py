"""Days-supply entry points.

``DaysSupplyDispatcher`` picks the most specific matching strategy; within a
specificity level the strategy registered first wins. ``calculate_days_supply``
is the flat call for payload-style callers.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import structlog
from pydantic import ValidationError

from medsig.core.logging import get_logger
from medsig.modules.days_supply.errors import DaysSupplyCalculationError
from medsig.modules.days_supply.schemas import DaysSupplyContext, DaysSupplyResult, Timing
from medsig.modules.days_supply.strategies import (
    DaysSupplyStrategy,
    default_days_supply_strategies,
)
from medsig.modules.strategies.errors import DuplicateStrategyError
from medsig.modules.units.converter import UnitConverter

logger = get_logger(__name__)


@dataclass(frozen=True)
class StrategySelection:
    selected_strategy: str
    all_matches: tuple[str, ...]
    selection_reason: str


class DaysSupplyDispatcher:
    """Usage::

        dispatcher = DaysSupplyDispatcher()
        result = dispatcher.calculate(context)
        result.days_supply  # 15
    """

    def __init__(
        self,
        strategies: Iterable[DaysSupplyStrategy] | None = None,
        *,
        converter: UnitConverter | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._strategies: list[DaysSupplyStrategy] = (
            list(strategies)
            if strategies is not None
            else default_days_supply_strategies(converter)
        )
        self._logger = logger or get_logger(__name__)

    def available_strategies(self) -> list[DaysSupplyStrategy]:
        return list(self._strategies)

    def add_strategy(self, strategy: DaysSupplyStrategy) -> None:
        if any(entry.metadata.id == strategy.metadata.id for entry in self._strategies):
            raise DuplicateStrategyError(strategy.metadata.id, "days-supply")
        self._strategies.append(strategy)

    def remove_strategy(self, strategy_id: str) -> bool:
        for index, entry in enumerate(self._strategies):
            if entry.metadata.id == strategy_id:
                del self._strategies[index]
                return True
        return False

    def get_strategy(self, context: DaysSupplyContext) -> DaysSupplyStrategy:
        matching = self._matching(context)
        if not matching:
            raise DaysSupplyCalculationError(
                "No days-supply strategy matches the given context",
                details={
                    "available_strategies": [entry.metadata.id for entry in self._strategies]
                },
            )
        return matching[0]

    def strategy_info(self, context: DaysSupplyContext) -> StrategySelection:
        matching = self._matching(context)
        if not matching:
            return StrategySelection("none", (), "No strategy matches")
        selected = matching[0]
        reason = f"Highest specificity ({selected.specificity.name})"
        if len(matching) > 1 and matching[1].specificity == selected.specificity:
            reason += "; registered first among equals"
        return StrategySelection(
            selected.metadata.id, tuple(entry.metadata.id for entry in matching), reason
        )

    def calculate(self, context: DaysSupplyContext) -> DaysSupplyResult:
        strategy = self.get_strategy(context)
        try:
            result = strategy.calculate(context)
        except DaysSupplyCalculationError as exc:
            if exc.strategy is None:
                exc.strategy = strategy.metadata.id
            self._logger.warning("days_supply_failed", error=exc.to_structured())
            raise

        self._logger.debug(
            "days_supply_calculated",
            strategy=result.strategy,
            days_supply=result.days_supply,
            confidence=result.confidence,
            warnings=len(result.warnings),
        )
        return result

    def _matching(self, context: DaysSupplyContext) -> list[DaysSupplyStrategy]:
        matching = [entry for entry in self._strategies if entry.matches(context)]
        # Stable sort keeps registration order within a specificity level.
        return sorted(matching, key=lambda entry: entry.specificity, reverse=True)


def calculate_days_supply(
    context: DaysSupplyContext | Mapping[str, Any],
    *,
    dispatcher: DaysSupplyDispatcher | None = None,
) -> DaysSupplyResult:
    """Days a package lasts.

    Usage::

        result = calculate_days_supply(
            {"packageQuantity": 30, "packageUnit": "tablet",
             "doseAmount": 1, "doseUnit": "tablet", "timing": "twice daily"}
        )
        result.days_supply  # 15
    """
    if not isinstance(context, DaysSupplyContext):
        context = DaysSupplyContext.model_validate(context)
    return (dispatcher or get_default_days_supply_dispatcher()).calculate(context)


def quick_days_supply(
    package_quantity: float,
    package_unit: str,
    dose_amount: float,
    dose_unit: str,
    timing: Timing,
) -> int:
    """Whole days, or 0 when the inputs cannot produce a days supply."""
    try:
        context = DaysSupplyContext(
            package_quantity=package_quantity,
            package_unit=package_unit,
            dose_amount=dose_amount,
            dose_unit=dose_unit,
            timing=timing,
        )
        return calculate_days_supply(context).days_supply
    except (DaysSupplyCalculationError, ValidationError) as exc:
        logger.info("days_supply_unavailable", error=str(exc))
        return 0


@lru_cache
def get_default_days_supply_dispatcher() -> DaysSupplyDispatcher:
    """Process-wide dispatcher over the shipped strategies."""
    return DaysSupplyDispatcher()
