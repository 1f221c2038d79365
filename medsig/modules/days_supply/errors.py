"""Days-supply calculation errors."""

from __future__ import annotations

from typing import Any


class DaysSupplyCalculationError(Exception):
    """The package, dose or timing cannot produce a days supply."""

    def __init__(
        self,
        message: str,
        *,
        strategy: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.strategy = strategy
        self.details = details or {}

    def to_structured(self) -> dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "strategy": self.strategy,
            "details": dict(self.details),
        }


class InvalidTitrationScheduleError(DaysSupplyCalculationError):
    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, strategy="titration-days-supply", details=details)


class UnitConversionError(DaysSupplyCalculationError):
    def __init__(
        self,
        message: str,
        from_unit: str,
        to_unit: str,
        *,
        strategy: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            strategy=strategy,
            details={"from_unit": from_unit, "to_unit": to_unit, **(details or {})},
        )
        self.from_unit = from_unit
        self.to_unit = to_unit
