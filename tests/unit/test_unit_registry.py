"""Unit tests for the pint backed dimensional unit registry."""

from __future__ import annotations

import pytest

from medsig.modules.units.errors import ConversionError, ConversionErrorType
from medsig.modules.units.registry import DimensionalUnitRegistry


@pytest.fixture(scope="module")
def registry() -> DimensionalUnitRegistry:
    return DimensionalUnitRegistry()


class TestNormalize:
    def test_symbols_resolve_case_insensitively(self, registry: DimensionalUnitRegistry) -> None:
        assert registry.normalize("ML") == "mL"
        assert registry.normalize("ml") == "mL"
        assert registry.normalize("mL") == "mL"
        assert registry.normalize("MG") == "mg"

    def test_aliases_resolve_to_canonical_symbol(self, registry: DimensionalUnitRegistry) -> None:
        assert registry.normalize("µg") == "mcg"
        assert registry.normalize("ug") == "mcg"
        assert registry.normalize("cc") == "mL"
        assert registry.normalize("units") == "[iU]"
        assert registry.normalize("  grams ") == "g"

    def test_unknown_or_out_of_scope_units_return_none(
        self, registry: DimensionalUnitRegistry
    ) -> None:
        assert registry.normalize("") is None
        assert registry.normalize("zzz") is None
        # Length is a real pint dimension but not a dosing dimension.
        assert registry.normalize("furlong") is None


class TestConvert:
    def test_mass_conversion(self, registry: DimensionalUnitRegistry) -> None:
        assert registry.convert(1, "g", "mg") == pytest.approx(1000)
        assert registry.convert(250, "mcg", "mg") == pytest.approx(0.25)

    def test_household_volume_uses_us_teaspoon(self, registry: DimensionalUnitRegistry) -> None:
        assert registry.convert(1, "tsp", "mL") == pytest.approx(4.92892, rel=1e-4)
        assert registry.convert(1, "tbsp", "tsp") == pytest.approx(3)

    def test_time_conversion(self, registry: DimensionalUnitRegistry) -> None:
        assert registry.convert(2, "wk", "d") == pytest.approx(14)

    def test_cross_dimension_conversion_raises(self, registry: DimensionalUnitRegistry) -> None:
        with pytest.raises(ConversionError) as excinfo:
            registry.convert(1, "mg", "mL")

        assert excinfo.value.error_type is ConversionErrorType.IMPOSSIBLE_CONVERSION
        assert excinfo.value.details["from_unit"] == "mg"

    def test_count_and_activity_never_mix(self, registry: DimensionalUnitRegistry) -> None:
        with pytest.raises(ConversionError) as excinfo:
            registry.convert(1, "each", "[iU]")

        assert excinfo.value.error_type is ConversionErrorType.IMPOSSIBLE_CONVERSION

    def test_unknown_unit_raises_invalid_unit(self, registry: DimensionalUnitRegistry) -> None:
        with pytest.raises(ConversionError) as excinfo:
            registry.convert(1, "zzz", "mg")

        assert excinfo.value.error_type is ConversionErrorType.INVALID_UNIT
        assert excinfo.value.details["unit"] == "zzz"


def test_validate_reports_suggestions_for_typos(registry: DimensionalUnitRegistry) -> None:
    result = registry.validate("mgg")

    assert result.valid is False
    assert result.normalized_form is None
    assert "mg" in result.suggestions


def test_validate_rejects_blank_units(registry: DimensionalUnitRegistry) -> None:
    result = registry.validate("  ")

    assert result.valid is False
    assert result.error == "Unit must be a non-empty string"


def test_validate_returns_normalized_form(registry: DimensionalUnitRegistry) -> None:
    result = registry.validate("milliliters")

    assert result.valid is True
    assert result.normalized_form == "mL"


def test_dimension_lookups(registry: DimensionalUnitRegistry) -> None:
    assert registry.dimension_of("wk") == "time"
    assert registry.dimension_of("[iU]") == "activity"
    assert registry.dimension_of("each") == "count"
    assert registry.are_units_compatible("mg", "kg") is True
    assert registry.are_units_compatible("mg", "mL") is False
    assert registry.are_units_compatible("mg", "zzz") is False


def test_compatible_units_share_a_dimension(registry: DimensionalUnitRegistry) -> None:
    symbols = {unit.symbol for unit in registry.get_compatible_units("mg")}

    assert {"mcg", "mg", "g", "kg"} <= symbols
    assert "mL" not in symbols


def test_unit_descriptor_lists_compatible_symbols(registry: DimensionalUnitRegistry) -> None:
    unit = registry.get_unit("milligram")

    assert unit is not None
    assert unit.symbol == "mg"
    assert unit.dimension == "mass"
    assert "g" in unit.compatible_symbols
    assert "mg" not in unit.compatible_symbols


def test_conversion_factor(registry: DimensionalUnitRegistry) -> None:
    assert registry.conversion_factor("L", "mL") == pytest.approx(1000)
