"""Tier 1: dimensional unit registry backed by pint."""

from __future__ import annotations

import difflib
import math
import re
from collections.abc import Iterable

import pint

from medsig.core.logging import get_logger
from medsig.modules.units.constants import (
    CUSTOM_PINT_DEFINITIONS,
    DIMENSION_REFERENCE_UNITS,
    STANDARD_UNITS,
)
from medsig.modules.units.errors import ConversionError
from medsig.modules.units.models import Unit, UnitValidation

logger = get_logger(__name__)

_PINT_EXPRESSION = re.compile(r"^[A-Za-zµ][A-Za-zµ0-9_ ./*^]*$")

StandardUnitRow = tuple[str, str, str, str, tuple[str, ...]]


class DimensionalUnitRegistry:
    """Normalisation, validation and pure numeric conversion of standard units.

    The unit table is built once at construction and never mutated, so one
    instance can be shared between converters.
    """

    def __init__(self, rows: Iterable[StandardUnitRow] = STANDARD_UNITS) -> None:
        self._ureg = pint.UnitRegistry()
        for definition in CUSTOM_PINT_DEFINITIONS:
            self._ureg.define(definition)

        self._pint_names: dict[str, str] = {}
        self._dimensions: dict[str, str] = {}
        display_names: dict[str, str] = {}
        aliases: dict[str, tuple[str, ...]] = {}
        for symbol, pint_name, dimension, display_name, unit_aliases in rows:
            self._pint_names[symbol] = pint_name
            self._dimensions[symbol] = dimension
            display_names[symbol] = display_name
            aliases[symbol] = unit_aliases

        self._units, self._by_alias, self._by_folded = build_unit_indexes(
            self._dimensions, display_names, aliases
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def normalize(self, unit: str) -> str | None:
        """Return the canonical symbol for *unit*, or ``None`` if unknown."""
        resolved = self._resolve(unit)
        return resolved[0] if resolved else None

    def validate(self, unit: str) -> UnitValidation:
        """Validate *unit* without raising."""
        if not isinstance(unit, str) or not unit.strip():
            return UnitValidation(
                valid=False, normalized_form=None, error="Unit must be a non-empty string"
            )

        resolved = self._resolve(unit)
        if resolved is not None:
            return UnitValidation(valid=True, normalized_form=resolved[0])

        return UnitValidation(
            valid=False,
            normalized_form=None,
            error=f"Unrecognized unit '{unit.strip()}'",
            suggestions=tuple(self.suggest(unit)),
        )

    def convert(self, value: float, from_unit: str, to_unit: str) -> float:
        """Convert *value* between two dimensionally compatible units."""
        source = self._require(from_unit)
        target = self._require(to_unit)

        source_dimension = self._dimension_for(source)
        target_dimension = self._dimension_for(target)
        if source_dimension != target_dimension:
            raise ConversionError.impossible_conversion(
                from_unit,
                to_unit,
                f"incompatible dimensions ({source_dimension} vs {target_dimension})",
            )

        try:
            quantity = self._ureg.Quantity(value, source[1]).to(target[1])
        except pint.DimensionalityError as exc:
            raise ConversionError.impossible_conversion(from_unit, to_unit, str(exc)) from exc

        result = float(quantity.magnitude)
        if not math.isfinite(result):
            raise ConversionError.impossible_conversion(
                from_unit, to_unit, "conversion produced a non-finite value"
            )
        return result

    def conversion_factor(self, from_unit: str, to_unit: str) -> float:
        return self.convert(1.0, from_unit, to_unit)

    def dimension_of(self, unit: str) -> str | None:
        resolved = self._resolve(unit)
        if resolved is None:
            return None
        return self._dimension_for(resolved)

    def get_unit(self, unit: str) -> Unit | None:
        resolved = self._resolve(unit)
        if resolved is None:
            return None
        return self._units.get(resolved[0])

    def get_compatible_units(self, unit: str) -> list[Unit]:
        """Return every table unit sharing *unit*'s dimension."""
        dimension = self.dimension_of(unit)
        if dimension is None:
            return []
        return [entry for entry in self._units.values() if entry.dimension == dimension]

    def are_units_compatible(self, unit1: str, unit2: str) -> bool:
        first = self.dimension_of(unit1)
        second = self.dimension_of(unit2)
        return first is not None and first == second

    def list_units(self) -> list[Unit]:
        return list(self._units.values())

    def suggest(self, unit: str, limit: int = 3) -> list[str]:
        """Close matches among symbols and aliases, as canonical symbols."""
        candidates = list(self._by_folded.keys())
        matches = difflib.get_close_matches(unit.strip().casefold(), candidates, n=limit * 2, cutoff=0.5)
        suggestions: list[str] = []
        for match in matches:
            symbol = self._by_folded[match]
            if symbol not in suggestions:
                suggestions.append(symbol)
        return suggestions[:limit]

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve(self, unit: str) -> tuple[str, str] | None:
        """Resolve to ``(normalized_form, pint_expression)``."""
        if not isinstance(unit, str):
            return None
        text = unit.strip()
        if not text:
            return None

        symbol = self._by_alias.get(text) or self._by_folded.get(text.casefold())
        if symbol is not None:
            return symbol, self._pint_names[symbol]

        return self._resolve_with_pint(text)

    def _resolve_with_pint(self, text: str) -> tuple[str, str] | None:
        if not _PINT_EXPRESSION.match(text):
            return None
        try:
            parsed = self._ureg.parse_units(text)
        except (pint.PintError, AttributeError, TypeError, ValueError):
            return None

        expression = str(parsed)
        if self._classify(expression) is None:
            return None
        return f"{parsed:~}", expression

    def _dimension_for(self, resolved: tuple[str, str]) -> str:
        dimension = self._dimensions.get(resolved[0]) or self._classify(resolved[1])
        if dimension is None:
            # _resolve only returns classifiable expressions
            raise RuntimeError(f"unclassifiable unit {resolved[0]!r}")
        return dimension

    def _classify(self, pint_expression: str) -> str | None:
        quantity = self._ureg.Quantity(1, pint_expression)
        for dimension, reference in DIMENSION_REFERENCE_UNITS.items():
            if quantity.is_compatible_with(reference):
                return dimension
        return None

    def _require(self, unit: str) -> tuple[str, str]:
        resolved = self._resolve(unit)
        if resolved is None:
            validation = self.validate(unit)
            raise ConversionError.invalid_unit(
                str(unit), validation.error, list(validation.suggestions)
            )
        return resolved


def build_unit_indexes(
    dimensions: dict[str, str],
    display_names: dict[str, str],
    aliases: dict[str, tuple[str, ...]],
) -> tuple[dict[str, Unit], dict[str, str], dict[str, str]]:
    """Build the unit descriptors plus exact and case-folded alias indexes."""
    by_dimension: dict[str, list[str]] = {}
    for symbol, dimension in dimensions.items():
        by_dimension.setdefault(dimension, []).append(symbol)

    units: dict[str, Unit] = {}
    by_alias: dict[str, str] = {}
    by_folded: dict[str, str] = {}

    for symbol, dimension in dimensions.items():
        units[symbol] = Unit(
            symbol=symbol,
            dimension=dimension,
            display_name=display_names.get(symbol, symbol),
            compatible_symbols=tuple(
                other for other in by_dimension[dimension] if other != symbol
            ),
        )
        by_alias[symbol] = symbol
        for alias in aliases.get(symbol, ()):
            by_alias.setdefault(alias, symbol)

    # Exact symbols win over folded aliases so "mL" never resolves through "ml".
    for alias, symbol in by_alias.items():
        folded = alias.casefold()
        if folded in by_folded and by_folded[folded] != symbol and alias != symbol:
            logger.debug("unit_alias_collision", alias=alias, kept=by_folded[folded], dropped=symbol)
            continue
        by_folded[folded] = symbol

    return units, by_alias, by_folded
