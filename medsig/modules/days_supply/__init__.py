"""Days supply: how long a package lasts at a given dose and timing."""

from medsig.modules.days_supply.calculations import (
    calculate_doses_per_day,
    convert_duration_to_days,
    dose_in_package_units,
    doses_per_day_from_timing,
    resolve_timing,
)
from medsig.modules.days_supply.errors import (
    DaysSupplyCalculationError,
    InvalidTitrationScheduleError,
    UnitConversionError,
)
from medsig.modules.days_supply.schemas import (
    CalculationBreakdown,
    ConversionRecord,
    DaysSupplyContext,
    DaysSupplyResult,
    TitrationBreakdown,
    TitrationPhase,
)
from medsig.modules.days_supply.service import (
    DaysSupplyDispatcher,
    StrategySelection,
    calculate_days_supply,
    get_default_days_supply_dispatcher,
    quick_days_supply,
)
from medsig.modules.days_supply.strategies import (
    DaysSupplyStrategy,
    LiquidDaysSupplyStrategy,
    SteadyDoseStrategy,
    TabletDaysSupplyStrategy,
    TitrationDaysSupplyStrategy,
    default_days_supply_strategies,
)

__all__ = [
    "CalculationBreakdown",
    "ConversionRecord",
    "DaysSupplyCalculationError",
    "DaysSupplyContext",
    "DaysSupplyDispatcher",
    "DaysSupplyResult",
    "DaysSupplyStrategy",
    "InvalidTitrationScheduleError",
    "LiquidDaysSupplyStrategy",
    "SteadyDoseStrategy",
    "StrategySelection",
    "TabletDaysSupplyStrategy",
    "TitrationBreakdown",
    "TitrationDaysSupplyStrategy",
    "UnitConversionError",
    "calculate_days_supply",
    "calculate_doses_per_day",
    "convert_duration_to_days",
    "default_days_supply_strategies",
    "dose_in_package_units",
    "doses_per_day_from_timing",
    "get_default_days_supply_dispatcher",
    "quick_days_supply",
    "resolve_timing",
]
