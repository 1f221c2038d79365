"""Unit tests for building template slot values from request contexts."""

from __future__ import annotations

from typing import Any

import pytest

from medsig.modules.templates.catalog import TemplateKey
from medsig.modules.templates.data_builder import TemplateDataBuilder, format_tablet_dose
from medsig.modules.templates.engine import TemplateEngine


@pytest.mark.parametrize(
    ("value", "expected"),
    [(0.25, "¼"), (0.5, "½"), (1.5, "1½"), (2, "2"), (2.75, "2¾"), (0.1, "¼")],
)
def test_format_tablet_dose(value: float, expected: str) -> None:
    assert format_tablet_dose(value) == expected


class TestTabletData:
    def test_single_tablet(
        self, builder: TemplateDataBuilder, make_medication: Any, make_context: Any
    ) -> None:
        data = builder.for_tablet(make_context(make_medication()))

        assert data == {
            "verb": "Take",
            "doseText": "1 tablet",
            "route": "by mouth",
            "frequency": "twice daily",
            "specialInstructions": "",
        }

    def test_fractional_tablet(
        self, builder: TemplateDataBuilder, make_medication: Any, make_context: Any
    ) -> None:
        data = builder.for_tablet(make_context(make_medication(), (0.5, "tablet")))

        assert data["doseText"] == "½ tablet"

    def test_mass_dose_is_counted_in_tablets(
        self, builder: TemplateDataBuilder, make_medication: Any, make_context: Any
    ) -> None:
        data = builder.for_tablet(make_context(make_medication(), (1000, "mg")))

        assert data["doseText"] == "2 tablets"

    def test_tiny_mass_dose_is_clamped_to_a_quarter(
        self, builder: TemplateDataBuilder, make_medication: Any, make_context: Any
    ) -> None:
        data = builder.for_tablet(make_context(make_medication(), (50, "mg")))

        assert data["doseText"] == "¼ tablet"

    def test_special_instructions_become_a_clause(
        self, builder: TemplateDataBuilder, make_medication: Any, make_context: Any
    ) -> None:
        context = make_context(make_medication(), special_instructions=" with food. ")

        assert builder.for_tablet(context)["specialInstructions"] == " with food"

    def test_default_route_is_used_when_route_is_blank(
        self, builder: TemplateDataBuilder, make_medication: Any, make_context: Any
    ) -> None:
        data = builder.for_tablet(make_context(make_medication("Troche"), (1, "troche"), route=""))

        assert data["verb"] == "Dissolve"
        assert data["route"] == "under the tongue"


class TestLiquidData:
    def test_volume_dose_gets_mass_as_dual_dose(
        self,
        builder: TemplateDataBuilder,
        engine: TemplateEngine,
        make_medication: Any,
        make_context: Any,
    ) -> None:
        medication = make_medication("Solution", strength=(100, "mg", 5, "mL"))

        data = builder.for_liquid(make_context(medication, (10, "mL")))

        assert data["doseValue"] == "10"
        assert data["doseUnit"] == "mL"
        assert data["dualDose"] == ", as 200 mg,"
        assert engine.render(TemplateKey.LIQUID_DOSE, data) == (
            "Take 10 mL, as 200 mg, by mouth twice daily."
        )

    def test_mass_dose_is_shown_as_volume(
        self, builder: TemplateDataBuilder, make_medication: Any, make_context: Any
    ) -> None:
        medication = make_medication("Solution", strength=(100, "mg", 5, "mL"))

        data = builder.for_liquid(make_context(medication, (200, "mg")))

        assert data["doseValue"] == "10"
        assert data["doseUnit"] == "mL"
        assert data["dualDose"] == ", as 200 mg,"

    def test_no_strength_means_no_dual_dose(
        self, builder: TemplateDataBuilder, make_medication: Any, make_context: Any
    ) -> None:
        medication = make_medication("Syrup", strength=None)

        data = builder.for_liquid(make_context(medication, (5, "mL")))

        assert data["dualDose"] == ""


def test_topical_defaults_to_thin_layer(
    builder: TemplateDataBuilder, make_medication: Any, make_context: Any
) -> None:
    medication = make_medication("Cream", strength=None)
    context = make_context(medication, None, "topically", "twice daily", site="the affected area")

    data = builder.for_topical(context)

    assert data["doseText"] == "a thin layer"
    assert data["site"] == " to the affected area"
    assert data["verb"] == "Apply"


def test_injection_clauses(
    builder: TemplateDataBuilder,
    engine: TemplateEngine,
    make_medication: Any,
    make_context: Any,
) -> None:
    medication = make_medication("Vial", strength=(40, "mg", 1, "mL"))
    context = make_context(
        medication, (0.5, "mL"), "SC", "once daily", site="the abdomen", technique="Pinch the skin"
    )

    data = builder.for_injection(context)

    assert engine.render(TemplateKey.INJECTION, data) == (
        "Inject 0.5 mL, as 20 mg, subcutaneously into the abdomen once daily. Pinch the skin."
    )


def test_topiclick_dose_in_clicks(
    builder: TemplateDataBuilder, make_medication: Any, make_context: Any
) -> None:
    medication = make_medication(
        "Cream",
        name="Estradiol Topiclick",
        strength=(1, "mg", 1, "g"),
        dispenserMetadata={"type": "Topiclick"},
    )

    data = builder.for_topiclick(make_context(medication, (1, "mL"), "topically", "once daily"))

    assert data["doseValue"] == pytest.approx(4)
    assert data["site"] is None


def test_prn_adds_indication_and_max_dose(
    builder: TemplateDataBuilder, make_medication: Any, make_context: Any
) -> None:
    context = make_context(
        make_medication(),
        (1, "tablet"),
        "by mouth",
        "every 6 hours",
        as_needed="pain",
        max_dose_per_period={
            "dose": {"value": 4, "unit": "tablet"},
            "period": {"value": 24, "unit": "h"},
        },
    )

    data = builder.for_prn(context)

    assert data["doseText"] == "1 tablet"
    assert data["frequencyText"] == "every 6 hours"
    assert data["indication"] == " for pain"
    assert data["maxDose"] == ". Do not exceed 4 tablets in 24 hours"


def test_activity_units_read_as_units(
    builder: TemplateDataBuilder, make_medication: Any, make_context: Any
) -> None:
    medication = make_medication("Vial", strength=None)

    data = builder.for_default(make_context(medication, (10, "[iU]"), "SC", "at bedtime"))

    assert data["doseText"] == "10 units"
