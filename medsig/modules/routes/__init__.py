"""Route of administration tables and validation."""

from medsig.modules.routes.constants import (
    DOSE_FORMS,
    ROUTE_ALIASES,
    ROUTES,
    DispenserConversion,
    DoseForm,
    Route,
)
from medsig.modules.routes.validator import (
    AsyncRouteCompatibilityProvider,
    RouteCompatibilityProvider,
    RouteValidationResult,
    RouteValidator,
)

__all__ = [
    "AsyncRouteCompatibilityProvider",
    "DOSE_FORMS",
    "DispenserConversion",
    "DoseForm",
    "ROUTES",
    "ROUTE_ALIASES",
    "Route",
    "RouteCompatibilityProvider",
    "RouteValidationResult",
    "RouteValidator",
]
