"""Unit tests for TemplateEngine rendering, locales and caching."""

from __future__ import annotations

import pytest

from medsig.core.config import Settings
from medsig.modules.templates.catalog import TemplateKey, default_catalogs
from medsig.modules.templates.engine import TemplateEngine
from medsig.modules.templates.rendering import TemplatePatternError

TABLET_DATA = {
    "verb": "Take",
    "doseText": "1 tablet",
    "route": "by mouth",
    "frequency": "twice daily",
    "specialInstructions": "",
}


def test_renders_oral_tablet(engine: TemplateEngine) -> None:
    assert engine.render(TemplateKey.ORAL_TABLET, TABLET_DATA) == "Take 1 tablet by mouth twice daily."


def test_missing_slots_collapse_whitespace(engine: TemplateEngine) -> None:
    text = engine.render(
        TemplateKey.DEFAULT, {"verb": "Take", "route": "by mouth", "frequency": "daily"}
    )

    assert text == "Take by mouth daily."


def test_render_failures_return_error_marker(engine: TemplateEngine) -> None:
    assert engine.render("NO_SUCH_TEMPLATE", {}) == "[Template Error: NO_SUCH_TEMPLATE]"
    assert (
        engine.render(TemplateKey.TOPICLICK_APPLICATION, {"doseValue": "four"})
        == "[Template Error: TOPICLICK_APPLICATION_TEMPLATE]"
    )


@pytest.mark.parametrize("data", [None, ["verb", "Take"], "Take 1 tablet"])
def test_non_mapping_data_returns_error_marker(engine: TemplateEngine, data: object) -> None:
    text = engine.render(TemplateKey.ORAL_TABLET, data)  # type: ignore[arg-type]

    assert text == "[Template Error: ORAL_TABLET_TEMPLATE]"
    assert engine.validate_template(TemplateKey.ORAL_TABLET, data) is False  # type: ignore[arg-type]


def test_topiclick_template_pluralises_clicks(engine: TemplateEngine) -> None:
    data = {
        "verb": "Apply",
        "doseValue": 1,
        "route": "topically",
        "site": "inner wrist",
        "frequency": "once daily",
    }

    assert engine.render(TemplateKey.TOPICLICK_APPLICATION, data) == (
        "Apply 1 click topically to inner wrist once daily."
    )
    data["doseValue"] = 4
    data["site"] = None
    assert engine.render(TemplateKey.TOPICLICK_APPLICATION, data) == (
        "Apply 4 clicks topically once daily."
    )


def test_testosterone_template_defaults_technique(engine: TemplateEngine) -> None:
    data = {
        "verb": "Inject",
        "doseValue": "1",
        "doseUnit": "mL",
        "dualDose": "200 mg",
        "route": "intramuscularly",
        "frequency": "once weekly",
    }

    assert engine.render(TemplateKey.TESTOSTERONE_INJECTION, data) == (
        "Inject 1 mL, as 200 mg, intramuscularly once weekly. Rotate injection sites."
    )
    data["technique"] = "Inject slowly."
    assert engine.render(TemplateKey.TESTOSTERONE_INJECTION, data).endswith(
        "once weekly. Inject slowly."
    )


@pytest.mark.parametrize(
    ("key", "data", "expected"),
    [
        (
            TemplateKey.INSULIN_INJECTION,
            {
                "verb": "Inject",
                "doseValue": 10,
                "doseUnit": "unit",
                "route": "subcutaneously",
                "frequency": "before breakfast",
                "site": "the abdomen",
            },
            "Inject 10 units subcutaneously before breakfast. "
            "Rotate injection sites in the abdomen.",
        ),
        (
            TemplateKey.INSULIN_INJECTION,
            {
                "verb": "Inject",
                "doseValue": 0.5,
                "doseUnit": "mL",
                "route": "subcutaneously",
                "frequency": "daily",
            },
            "Inject 0.5 mL subcutaneously daily.",
        ),
        (
            TemplateKey.INHALER,
            {
                "verb": "Inhale",
                "doseValue": 2,
                "route": "by inhalation",
                "frequency": "every 4 hours",
                "spacerInstructions": "using a spacer",
            },
            "Inhale 2 puffs by inhalation every 4 hours using a spacer.",
        ),
        (
            TemplateKey.DROPS,
            {"verb": "Instill", "doseValue": 1, "site": "the left eye", "frequency": "twice daily"},
            "Instill 1 drop in the left eye twice daily.",
        ),
        (
            TemplateKey.COMPOUNDED_MEDICATION,
            {
                "verb": "Apply",
                "doseValue": 1,
                "doseUnit": "g",
                "medicationName": "progesterone cream",
                "route": "topically",
                "frequency": "at bedtime",
            },
            "Apply 1 g of progesterone cream topically at bedtime.",
        ),
    ],
)
def test_specialised_templates(
    engine: TemplateEngine, key: TemplateKey, data: dict[str, object], expected: str
) -> None:
    assert engine.render(key, data) == expected


def test_spanish_locale_falls_back_to_english_for_missing_keys() -> None:
    engine = TemplateEngine(locale="es-US")
    prn = {
        "verb": "Tome",
        "doseText": "1 tableta",
        "route": "por boca",
        "frequencyText": "cada 6 horas",
    }

    assert "según sea necesario" in engine.render(TemplateKey.PRN_INSTRUCTION, prn)
    assert engine.has_template(TemplateKey.TOPICLICK_APPLICATION)


def test_spanish_templates_translate_english_slots() -> None:
    engine = TemplateEngine(locale="es-US")

    assert engine.render(TemplateKey.ORAL_TABLET, TABLET_DATA) == (
        "Tome 1 tableta por vía oral dos veces al día."
    )
    prn = {
        "verb": "Take",
        "doseText": "2 tablets",
        "route": "by mouth",
        "frequencyText": "every 6 hours",
        "indication": " for pain",
        "maxDose": ". Do not exceed 8 tablets in 24 hours",
    }
    assert engine.render(TemplateKey.PRN_INSTRUCTION, prn) == (
        "Tome 2 tabletas por vía oral cada 6 horas según sea necesario para pain. "
        "No exceda 8 tabletas en 24 horas."
    )


def test_unknown_locale_uses_english() -> None:
    engine = TemplateEngine(locale="de-DE")

    assert engine.render(TemplateKey.ORAL_TABLET, TABLET_DATA) == "Take 1 tablet by mouth twice daily."


def test_set_locale_switches_patterns(engine: TemplateEngine) -> None:
    prn = {"verb": "Take", "doseText": "1 tablet", "route": "by mouth", "frequencyText": "daily"}

    engine.set_locale("es-US")

    assert engine.locale == "es-US"
    assert "según sea necesario" in engine.render(TemplateKey.PRN_INSTRUCTION, prn)


def test_compiled_patterns_are_cached(engine: TemplateEngine) -> None:
    engine.render(TemplateKey.ORAL_TABLET, TABLET_DATA)
    engine.render(TemplateKey.ORAL_TABLET, TABLET_DATA)

    metrics = engine.get_performance_metrics()
    assert metrics.cache_misses == 1
    assert metrics.cache_hits == 1
    assert metrics.templates_loaded == len(default_catalogs()["en-US"])


def test_cache_evicts_first_in_first_out() -> None:
    engine = TemplateEngine(locale="en-US", cache_size=1)

    engine.render(TemplateKey.ORAL_TABLET, TABLET_DATA)
    engine.render(TemplateKey.DEFAULT, TABLET_DATA)
    engine.render(TemplateKey.ORAL_TABLET, TABLET_DATA)

    assert engine.get_performance_metrics().cache_misses == 3


def test_register_template_validates_and_replaces(engine: TemplateEngine) -> None:
    with pytest.raises(TemplatePatternError):
        engine.register_template("en-US", "CUSTOM", "{{ broken")

    engine.register_template("en-US", "CUSTOM", "{{ verb }} it.")

    assert engine.render("CUSTOM", {"verb": "Shake"}) == "Shake it."


def test_validate_template(engine: TemplateEngine) -> None:
    assert engine.validate_template(TemplateKey.DEFAULT, {}) is True
    assert engine.validate_template("NO_SUCH_TEMPLATE", {}) is False
    assert engine.validate_template(TemplateKey.INHALER, {"doseValue": "two"}) is False


def test_engine_reads_locale_and_cache_size_from_settings() -> None:
    engine = TemplateEngine(settings=Settings(template_locale="es-US", template_cache_size=5))

    assert engine.locale == "es-US"


def test_cache_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        TemplateEngine(cache_size=0)
