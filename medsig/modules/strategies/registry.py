"""Registry of base strategies and modifiers."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field

from medsig.core.logging import get_logger
from medsig.modules.medication.schemas import MedicationRequestContext
from medsig.modules.routes.validator import RouteValidator
from medsig.modules.strategies.base import (
    DefaultStrategy,
    InjectionStrategy,
    LiquidStrategy,
    TabletStrategy,
    TestosteroneCypionateStrategy,
    TopicalStrategy,
)
from medsig.modules.strategies.errors import DuplicateStrategyError, PriorityConflictError
from medsig.modules.strategies.modifiers import (
    PrnModifier,
    StrengthDisplayModifier,
    TopiclickModifier,
)
from medsig.modules.strategies.types import BaseStrategy, ModifierStrategy, SpecificityLevel
from medsig.modules.templates.data_builder import TemplateDataBuilder
from medsig.modules.templates.engine import TemplateEngine
from medsig.modules.units.converter import UnitConverter

logger = get_logger(__name__)


@dataclass(frozen=True)
class EvaluatedStrategy:
    name: str
    kind: str
    matched: bool
    reason: str


@dataclass(frozen=True)
class SelectionExplanation:
    evaluated: tuple[EvaluatedStrategy, ...]
    base: str
    modifiers: tuple[str, ...]
    execution_order: tuple[str, ...] = field(default=())


class StrategyRegistry:
    """Named base strategies and modifiers.

    Base strategy names and modifier names must be unique, and no two
    modifiers may share a priority.
    """

    def __init__(self) -> None:
        self._bases: dict[str, BaseStrategy] = {}
        self._modifiers: dict[str, ModifierStrategy] = {}
        self._order: list[str] = []

    def register_base(self, name: str, strategy: BaseStrategy) -> None:
        if name in self._bases:
            raise DuplicateStrategyError(name, "base")
        self._bases[name] = strategy
        self._order.append(f"base:{name}")
        self._check_specificity()

    def register_modifier(self, name: str, modifier: ModifierStrategy) -> None:
        if name in self._modifiers:
            raise DuplicateStrategyError(name, "modifier")
        conflicts = [
            (existing, other.priority)
            for existing, other in self._modifiers.items()
            if other.priority == modifier.priority
        ]
        if conflicts:
            raise PriorityConflictError([*conflicts, (name, modifier.priority)])
        self._modifiers[name] = modifier
        self._order.append(f"modifier:{name}")

    def unregister_base(self, name: str) -> bool:
        if self._bases.pop(name, None) is None:
            return False
        self._order.remove(f"base:{name}")
        return True

    def unregister_modifier(self, name: str) -> bool:
        if self._modifiers.pop(name, None) is None:
            return False
        self._order.remove(f"modifier:{name}")
        return True

    def get_base_strategies(self) -> dict[str, BaseStrategy]:
        return dict(self._bases)

    def get_modifiers(self) -> dict[str, ModifierStrategy]:
        return dict(self._modifiers)

    def get_registration_order(self) -> list[str]:
        return list(self._order)

    def clear(self) -> None:
        self._bases.clear()
        self._modifiers.clear()
        self._order.clear()

    def find_matching_base(self, context: MedicationRequestContext) -> tuple[str, BaseStrategy] | None:
        best: tuple[str, BaseStrategy] | None = None
        for name, strategy in self._bases.items():
            if strategy.matches(context) and (best is None or strategy.specificity > best[1].specificity):
                best = (name, strategy)
        return best

    def find_matching_modifiers(
        self, context: MedicationRequestContext
    ) -> list[tuple[str, ModifierStrategy]]:
        matching = [(name, mod) for name, mod in self._modifiers.items() if mod.applies_to(context)]
        return sorted(matching, key=lambda item: item[1].priority)

    def explain_selection(self, context: MedicationRequestContext) -> SelectionExplanation:
        evaluated: list[EvaluatedStrategy] = []
        for name, strategy in self._bases.items():
            matched = strategy.matches(context)
            reason = strategy.explain() if matched else "Context did not match strategy criteria"
            evaluated.append(EvaluatedStrategy(name, "base", matched, reason))
        for name, modifier in self._modifiers.items():
            matched = modifier.applies_to(context)
            reason = modifier.explain() if matched else "Context did not match modifier criteria"
            evaluated.append(EvaluatedStrategy(name, "modifier", matched, reason))

        base = self.find_matching_base(context)
        modifiers = tuple(name for name, _ in self.find_matching_modifiers(context))
        order = (base[0], *modifiers) if base else ()
        return SelectionExplanation(
            evaluated=tuple(evaluated),
            base=base[0] if base else "none",
            modifiers=modifiers,
            execution_order=order,
        )

    def visualize(self) -> str:
        lines = ["=== Strategy Registry ===", "", "Base Strategies:"]
        for name, strategy in self._bases.items():
            lines.append(
                f"  - {name} [Specificity: {int(strategy.specificity)}] "
                f"({strategy.metadata.description})"
            )
        lines += ["", "Modifier Strategies:"]
        for name, modifier in sorted(self._modifiers.items(), key=lambda item: item[1].priority):
            lines.append(
                f"  - {name} [Priority: {modifier.priority}] ({modifier.metadata.description})"
            )
        lines += ["", "Registration Order:", *(f"  - {entry}" for entry in self._order)]
        return "\n".join(lines)

    def _check_specificity(self) -> None:
        by_level: dict[int, list[str]] = defaultdict(list)
        for name, strategy in self._bases.items():
            by_level[int(strategy.specificity)].append(name)
        for level, names in by_level.items():
            if len(names) > 1:
                logger.debug(
                    "strategy_specificity_shared",
                    specificity=SpecificityLevel(level).name,
                    strategies=names,
                )


def default_registry(
    engine: TemplateEngine | None = None,
    converter: UnitConverter | None = None,
    routes: RouteValidator | None = None,
) -> StrategyRegistry:
    """Registry with the shipped strategies sharing one engine, converter and route table."""
    engine = engine or TemplateEngine()
    routes = routes or RouteValidator()
    builder = TemplateDataBuilder(converter=converter, routes=routes)

    registry = StrategyRegistry()
    registry.register_base("tablet", TabletStrategy(engine, builder, routes))
    registry.register_base("liquid", LiquidStrategy(engine, builder, routes))
    registry.register_base("topical", TopicalStrategy(engine, builder, routes))
    registry.register_base("injection", InjectionStrategy(engine, builder, routes))
    registry.register_base(
        "testosterone-cypionate", TestosteroneCypionateStrategy(engine, builder, routes)
    )
    registry.register_base("default", DefaultStrategy(engine, builder, routes))
    registry.register_modifier("topiclick", TopiclickModifier(engine, builder))
    registry.register_modifier("strength-display", StrengthDisplayModifier(builder))
    registry.register_modifier("prn", PrnModifier(engine, builder))
    return registry
