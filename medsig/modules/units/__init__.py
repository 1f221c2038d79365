"""Units module: dimensional registry, device units and the conversion orchestrator."""

from medsig.modules.units.converter import UnitConverter
from medsig.modules.units.devices import DeviceUnitAdapter
from medsig.modules.units.errors import (
    ConversionError,
    ConversionErrorType,
    ConversionResult,
)
from medsig.modules.units.models import (
    ConversionContext,
    ConversionOptions,
    ConversionRequest,
    ConversionStep,
    ConversionSuccess,
    ConversionTrace,
    DeviceUnit,
    DispenserMetadata,
    Quantity,
    StrengthRatio,
    Unit,
    UnitValidation,
)
from medsig.modules.units.registry import DimensionalUnitRegistry, build_unit_indexes

__all__ = [
    "UnitConverter",
    "DeviceUnitAdapter",
    "DimensionalUnitRegistry",
    "build_unit_indexes",
    "ConversionError",
    "ConversionErrorType",
    "ConversionResult",
    "ConversionContext",
    "ConversionOptions",
    "ConversionRequest",
    "ConversionStep",
    "ConversionSuccess",
    "ConversionTrace",
    "DeviceUnit",
    "DispenserMetadata",
    "Quantity",
    "StrengthRatio",
    "Unit",
    "UnitValidation",
]
