"""Unit tests for signature generation and dose validation."""

from __future__ import annotations

from typing import Any

import pytest

from medsig.modules.medication.schemas import Amount
from medsig.modules.signature.service import (
    build_signature,
    generate_signature,
    get_denominator_unit,
    get_dispensing_unit,
    get_strength_mode,
    is_multi_ingredient,
    validate_dose,
)
from medsig.modules.strategies.dispatcher import StrategyDispatcher
from medsig.modules.strategies.registry import default_registry
from medsig.modules.templates.engine import TemplateEngine
from medsig.modules.units.converter import UnitConverter

METFORMIN = {
    "doseForm": "Tablet",
    "ingredient": [
        {
            "strengthRatio": {
                "numerator": {"value": 500, "unit": "mg"},
                "denominator": {"value": 1, "unit": "tablet"},
            }
        }
    ],
}


def test_generates_oral_tablet_signature() -> None:
    result = generate_signature(
        METFORMIN, {"value": 1, "unit": "tablet"}, "by mouth", "twice daily"
    )

    assert result.human_readable == "Take 1 tablet by mouth twice daily."
    assert result.fhir_representation["text"] == "Take 1 tablet by mouth twice daily."
    assert result.fhir_representation["route"]["coding"][0]["display"] == "Orally"


def test_result_serializes_with_camel_case_keys() -> None:
    result = generate_signature(METFORMIN, {"value": 1, "unit": "tablet"}, "PO", "once daily")

    payload = result.model_dump(by_alias=True)

    assert set(payload) == {"humanReadable", "fhirRepresentation", "templateVariables"}
    assert payload["templateVariables"]["doseText"] == "1 tablet"


def test_special_instructions_are_appended() -> None:
    result = generate_signature(
        METFORMIN, {"value": 2, "unit": "tablet"}, "by mouth", "twice daily", "with meals"
    )

    assert result.human_readable == "Take 2 tablets (1000 mg) by mouth twice daily with meals."


def test_explicit_converter_and_engine_are_used() -> None:
    result = generate_signature(
        METFORMIN,
        Amount(value=1000, unit="mg"),
        "by mouth",
        "once daily",
        converter=UnitConverter(),
        engine=TemplateEngine(locale="en-US"),
    )

    assert result.human_readable == "Take 2 tablets by mouth once daily."


def test_invalid_route_is_logged_not_raised() -> None:
    result = generate_signature(METFORMIN, {"value": 1, "unit": "tablet"}, "Topically", "daily")

    assert result.human_readable == "Apply 1 tablet topically daily."


def test_build_signature_with_custom_dispatcher(make_medication: Any, make_context: Any) -> None:
    dispatcher = StrategyDispatcher(default_registry(converter=UnitConverter()))

    result = build_signature(
        make_context(make_medication(), (1, "tablet"), "by mouth", "at bedtime"),
        dispatcher=dispatcher,
    )

    assert result.human_readable == "Take 1 tablet by mouth at bedtime."
    assert result.fhir_representation["timing"]["repeat"]["when"] == ["HS"]
    assert len(dispatcher.get_audit_log()) == 1


class TestValidateDose:
    @pytest.mark.parametrize(
        ("scoring", "value", "message"),
        [
            ("NONE", 0.5, "Tablet is not scored; only whole tablets can be given"),
            ("HALF", 0.75, "Tablet is scored for halves only"),
            ("QUARTER", 1.3, "Tablet doses must be in quarter tablet increments"),
            (None, 0.1, "Doses cannot be less than ¼ tablet"),
        ],
    )
    def test_tablet_fractions(
        self,
        make_medication: Any,
        converter: UnitConverter,
        scoring: str | None,
        value: float,
        message: str,
    ) -> None:
        medication = make_medication(scoring=scoring)

        result = validate_dose(medication, Amount(value=value, unit="tablet"), converter=converter)

        assert result.valid is False
        assert result.message == message

    @pytest.mark.parametrize(("scoring", "value"), [("HALF", 1.5), ("QUARTER", 0.75), (None, 2)])
    def test_allowed_fractions(
        self, make_medication: Any, converter: UnitConverter, scoring: str | None, value: float
    ) -> None:
        medication = make_medication(scoring=scoring)

        assert validate_dose(medication, Amount(value=value, unit="tablet"), converter=converter).valid

    def test_mass_doses_skip_fraction_rules(
        self, make_medication: Any, converter: UnitConverter
    ) -> None:
        medication = make_medication(scoring="NONE")

        assert validate_dose(medication, Amount(value=250, unit="mg"), converter=converter).valid

    def test_non_positive_and_unknown_units(
        self, make_medication: Any, converter: UnitConverter
    ) -> None:
        medication = make_medication()

        assert validate_dose(medication, Amount(value=0, unit="mg"), converter=converter).message == (
            "Dose must be a positive number"
        )
        assert validate_dose(medication, Amount(value=1, unit="zzz"), converter=converter).message == (
            "Unknown dose unit: zzz"
        )

    def test_multi_ingredient_products_dose_by_volume(
        self, make_medication: Any, converter: UnitConverter
    ) -> None:
        medication = make_medication("Solution", strength=(10, "mg", 1, "mL"))
        medication.ingredient.append(medication.ingredient[0].model_copy())

        result = validate_dose(medication, Amount(value=5, unit="mg"), converter=converter)

        assert is_multi_ingredient(medication)
        assert result.message == "Multi-ingredient medications must be dosed in mL"
        assert validate_dose(medication, Amount(value=5, unit="mL"), converter=converter).valid


def test_strength_helpers(make_medication: Any) -> None:
    assert get_strength_mode("Cream") == "ratio"
    assert get_strength_mode("Suspension") == "ratio"
    assert get_strength_mode("Tablet") == "quantity"
    assert get_denominator_unit("Gel") == "g"
    assert get_denominator_unit("Syrup") == "mL"
    assert get_denominator_unit("Capsule") == "capsule"
    assert get_dispensing_unit(make_medication()) == "mg"
    assert get_dispensing_unit(make_medication("Cream", strength=None)) == "g"
