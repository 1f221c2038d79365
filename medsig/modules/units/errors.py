"""Typed failures for unit conversion.

Every expected failure mode is a ``ConversionError`` whose ``error_type``
says which kind it is; callers branch on that instead of on subclasses::

    match err.error_type:
        case ConversionErrorType.MISSING_CONTEXT:
            ask_for(err.details["required_fields"])
        case ConversionErrorType.INVALID_UNIT:
            offer(err.details["suggestions"])
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from medsig.modules.units.models import ConversionSuccess


class ConversionErrorType(str, Enum):
    IMPOSSIBLE_CONVERSION = "IMPOSSIBLE_CONVERSION"
    MISSING_CONTEXT = "MISSING_CONTEXT"
    INVALID_UNIT = "INVALID_UNIT"
    PRECISION_LOSS = "PRECISION_LOSS"


class ConversionError(Exception):
    """A structured, inspectable conversion failure."""

    def __init__(
        self,
        error_type: ConversionErrorType,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.details: dict[str, Any] = details or {}

    @classmethod
    def impossible_conversion(cls, from_unit: str, to_unit: str, reason: str) -> ConversionError:
        return cls(
            ConversionErrorType.IMPOSSIBLE_CONVERSION,
            f"Cannot convert from {from_unit} to {to_unit}: {reason}",
            {"from_unit": from_unit, "to_unit": to_unit, "reason": reason},
        )

    @classmethod
    def missing_context(
        cls,
        required_fields: Sequence[str],
        conversion: str,
        available_context: Sequence[str] | None = None,
    ) -> ConversionError:
        """Name the context fields a conversion could not do without.

        ``required_fields`` uses the snake_case ``ConversionContext`` attribute
        names (``strength_ratio``); ``required_context`` carries the camelCase
        keys a caller sends in a medication payload (``strengthRatio``).
        """
        return cls(
            ConversionErrorType.MISSING_CONTEXT,
            f"Missing required context for {conversion}: {', '.join(required_fields)}",
            {
                "required_fields": list(required_fields),
                "required_context": [_camel(name) for name in required_fields],
                "conversion": conversion,
                "available_context": list(available_context) if available_context else [],
            },
        )

    @classmethod
    def invalid_unit(
        cls,
        unit: str,
        validation_error: str | None = None,
        suggestions: Sequence[str] | None = None,
    ) -> ConversionError:
        message = f"Invalid unit: {unit}"
        if validation_error:
            message = f"{message} - {validation_error}"
        return cls(
            ConversionErrorType.INVALID_UNIT,
            message,
            {
                "unit": unit,
                "validation_error": validation_error,
                "suggestions": list(suggestions) if suggestions else [],
            },
        )

    @classmethod
    def precision_loss(
        cls,
        value: float,
        from_unit: str,
        to_unit: str,
        expected_precision: float,
        actual_precision: float,
    ) -> ConversionError:
        return cls(
            ConversionErrorType.PRECISION_LOSS,
            (
                f"Conversion of {value} {from_unit} to {to_unit} would lose precision: "
                f"expected {expected_precision}, got {actual_precision}"
            ),
            {
                "value": value,
                "from_unit": from_unit,
                "to_unit": to_unit,
                "expected_precision": expected_precision,
                "actual_precision": actual_precision,
            },
        )

    @property
    def required_fields(self) -> list[str]:
        return list(self.details.get("required_fields", []))

    @property
    def suggestions(self) -> list[str]:
        return list(self.details.get("suggestions", []))

    def to_structured(self) -> dict[str, Any]:
        """Serialize for logging and API error bodies."""
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class ConversionResult:
    """Exactly one of ``value`` or ``error`` is set."""

    value: ConversionSuccess | None = None
    error: ConversionError | None = None

    def __post_init__(self) -> None:
        if (self.value is None) == (self.error is None):
            raise ValueError("ConversionResult needs exactly one of value or error")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: ConversionSuccess) -> ConversionResult:
        return cls(value=value)

    @classmethod
    def failure(cls, error: ConversionError) -> ConversionResult:
        return cls(error=error)

    def unwrap(self) -> ConversionSuccess:
        if self.error is not None:
            raise self.error
        assert self.value is not None
        return self.value


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)
