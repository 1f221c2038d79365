"""Strategy selection for signature generation."""

from medsig.modules.strategies.base import (
    DefaultStrategy,
    InjectionStrategy,
    LiquidStrategy,
    TabletStrategy,
    TemplateStrategy,
    TestosteroneCypionateStrategy,
    TopicalStrategy,
)
from medsig.modules.strategies.dispatcher import (
    DispatchAudit,
    DispatchPreview,
    PerformanceStats,
    StrategyDispatcher,
)
from medsig.modules.strategies.errors import (
    AmbiguousStrategyError,
    DuplicateStrategyError,
    NoMatchingStrategyError,
    PriorityConflictError,
    StrategyError,
)
from medsig.modules.strategies.modifiers import (
    PrnModifier,
    StrengthDisplayModifier,
    TopiclickModifier,
)
from medsig.modules.strategies.registry import (
    SelectionExplanation,
    StrategyRegistry,
    default_registry,
)
from medsig.modules.strategies.types import (
    BaseStrategy,
    ModifierStrategy,
    SignatureInstruction,
    SpecificityLevel,
    StrategyMetadata,
)

__all__ = [
    "AmbiguousStrategyError",
    "BaseStrategy",
    "DefaultStrategy",
    "DispatchAudit",
    "DispatchPreview",
    "DuplicateStrategyError",
    "InjectionStrategy",
    "LiquidStrategy",
    "ModifierStrategy",
    "NoMatchingStrategyError",
    "PerformanceStats",
    "PriorityConflictError",
    "PrnModifier",
    "SelectionExplanation",
    "SignatureInstruction",
    "SpecificityLevel",
    "StrategyDispatcher",
    "StrategyError",
    "StrategyMetadata",
    "StrategyRegistry",
    "StrengthDisplayModifier",
    "TabletStrategy",
    "TemplateStrategy",
    "TestosteroneCypionateStrategy",
    "TopicalStrategy",
    "TopiclickModifier",
    "default_registry",
]
