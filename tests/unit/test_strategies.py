"""Unit tests for strategy selection, modifiers and the FHIR Dosage they produce."""

from __future__ import annotations

from typing import Any

import pytest

from medsig.modules.medication.schemas import MedicationRequestContext
from medsig.modules.strategies.dispatcher import StrategyDispatcher
from medsig.modules.strategies.errors import (
    AmbiguousStrategyError,
    DuplicateStrategyError,
    NoMatchingStrategyError,
    PriorityConflictError,
)
from medsig.modules.strategies.registry import StrategyRegistry, default_registry
from medsig.modules.strategies.types import (
    BaseStrategy,
    ModifierStrategy,
    SignatureInstruction,
    SpecificityLevel,
    StrategyMetadata,
)
from medsig.modules.units.converter import UnitConverter


class _StubBase:
    def __init__(self, name: str, specificity: SpecificityLevel, matches: bool = True) -> None:
        self.specificity = specificity
        self.metadata = StrategyMetadata(id=name, name=name, description=f"{name} stub")
        self._matches = matches

    def matches(self, context: MedicationRequestContext) -> bool:
        return self._matches

    def build_instruction(self, context: MedicationRequestContext) -> SignatureInstruction:
        return SignatureInstruction(text=self.metadata.name)

    def explain(self) -> str:
        return self.metadata.description


class _StubModifier:
    def __init__(self, name: str, priority: int) -> None:
        self.priority = priority
        self.metadata = StrategyMetadata(id=name, name=name, description=f"{name} stub")

    def applies_to(self, context: MedicationRequestContext) -> bool:
        return True

    def modify(
        self, instruction: SignatureInstruction, context: MedicationRequestContext
    ) -> SignatureInstruction:
        return instruction.model_copy(update={"text": f"{instruction.text}+{self.metadata.name}"})

    def explain(self) -> str:
        return self.metadata.description


@pytest.fixture(scope="module")
def dispatcher() -> StrategyDispatcher:
    return StrategyDispatcher(default_registry(converter=UnitConverter()))


def _topiclick_context(make_medication: Any, make_context: Any) -> MedicationRequestContext:
    medication = make_medication(
        "Cream",
        name="Estradiol Topiclick",
        strength=(1, "mg", 1, "g"),
        dispenserMetadata={"type": "Topiclick"},
    )
    return make_context(medication, (1, "mL"), "topically", "once daily", site="inner wrist")


class TestDefaultStrategies:
    def test_single_tablet(
        self, dispatcher: StrategyDispatcher, make_medication: Any, make_context: Any
    ) -> None:
        instruction = dispatcher.dispatch(make_context(make_medication()))

        assert instruction.text == "Take 1 tablet by mouth twice daily."
        fhir = instruction.to_fhir()
        assert fhir["route"]["coding"][0]["code"] == "26643006"
        assert fhir["timing"]["repeat"]["frequency"] == 2
        assert fhir["doseAndRate"][0]["doseQuantity"]["code"] == "{tbl}"
        assert "templateVariables" not in fhir
        assert "template_variables" not in fhir

    def test_multiple_tablets_show_total_strength(
        self, dispatcher: StrategyDispatcher, make_medication: Any, make_context: Any
    ) -> None:
        instruction = dispatcher.dispatch(make_context(make_medication(), (2, "tablet")))

        assert instruction.text == "Take 2 tablets (1000 mg) by mouth twice daily."
        assert instruction.template_variables is not None
        assert instruction.template_variables["strengthDisplay"] == "1000 mg"

    def test_odt_gets_method_coding(
        self, dispatcher: StrategyDispatcher, make_medication: Any, make_context: Any
    ) -> None:
        instruction = dispatcher.dispatch(
            make_context(make_medication("ODT"), (1, "tablet"), "Orally", "once daily")
        )

        assert instruction.text == "Dissolve 1 tablet by mouth once daily."
        assert instruction.method is not None

    def test_suspension_adds_shake_instruction(
        self, dispatcher: StrategyDispatcher, make_medication: Any, make_context: Any
    ) -> None:
        medication = make_medication("Suspension", strength=(250, "mg", 5, "mL"))

        instruction = dispatcher.dispatch(
            make_context(medication, (5, "mL"), "by mouth", "three times daily")
        )

        assert instruction.text == "Take 5 mL, as 250 mg, by mouth three times daily."
        assert instruction.additional_instruction is not None
        assert instruction.additional_instruction[0]["text"] == "Shake well before use"

    def test_topical_site(
        self, dispatcher: StrategyDispatcher, make_medication: Any, make_context: Any
    ) -> None:
        medication = make_medication("Ointment", strength=None)

        instruction = dispatcher.dispatch(
            make_context(medication, None, "topically", "twice daily", site="the affected area")
        )

        assert instruction.text == "Apply a thin layer topically to the affected area twice daily."
        assert instruction.site == {"text": "the affected area"}

    def test_testosterone_cypionate_beats_generic_injection(
        self, dispatcher: StrategyDispatcher, make_medication: Any, make_context: Any
    ) -> None:
        medication = make_medication(
            "Vial", name="Testosterone Cypionate 200mg/mL", strength=(200, "mg", 1, "mL")
        )

        instruction = dispatcher.dispatch(make_context(medication, (1, "mL"), "IM", "once weekly"))

        assert instruction.text == (
            "Inject 1 mL, as 200 mg, intramuscularly once weekly. Rotate injection sites."
        )
        assert instruction.timing == {"repeat": {"frequency": 1, "period": 1, "periodUnit": "wk"}}
        assert dispatcher.get_audit_log(limit=1)[0].selected_strategy == "testosterone-cypionate"

    def test_injectable_solution_uses_injection_strategy(
        self, dispatcher: StrategyDispatcher, make_medication: Any, make_context: Any
    ) -> None:
        medication = make_medication("Solution", strength=(10, "mg", 1, "mL"))

        instruction = dispatcher.dispatch(make_context(medication, (1, "mL"), "IV", "every 8 hours"))

        assert instruction.text == "Inject 1 mL, as 10 mg, intravenously every 8 hours."

    def test_unknown_form_falls_back_to_default(
        self, dispatcher: StrategyDispatcher, make_medication: Any, make_context: Any
    ) -> None:
        medication = make_medication("Powder", strength=None)

        instruction = dispatcher.dispatch(make_context(medication, (1, "g"), "by mouth", "daily"))

        assert instruction.text == "Take 1 g by mouth daily."
        assert instruction.timing == {"code": {"text": "daily"}}


class TestModifiers:
    def test_topiclick_dose_is_rendered_in_clicks(
        self, dispatcher: StrategyDispatcher, make_medication: Any, make_context: Any
    ) -> None:
        instruction = dispatcher.dispatch(_topiclick_context(make_medication, make_context))

        assert instruction.text == "Apply 4 clicks topically to inner wrist once daily."
        assert instruction.dose_and_rate is not None
        assert instruction.dose_and_rate[0]["doseQuantity"]["code"] == "{click}"

    def test_prn_with_indication(
        self, dispatcher: StrategyDispatcher, make_medication: Any, make_context: Any
    ) -> None:
        context = make_context(
            make_medication(), (1, "tablet"), "by mouth", "every 6 hours", as_needed="pain"
        )

        instruction = dispatcher.dispatch(context)

        assert instruction.text == "Take 1 tablet by mouth every 6 hours as needed for pain."
        fhir = instruction.to_fhir()
        assert fhir["asNeededCodeableConcept"] == {"text": "pain"}
        assert "asNeededBoolean" not in fhir

    def test_prn_without_indication_keeps_strength_and_max_dose(
        self, dispatcher: StrategyDispatcher, make_medication: Any, make_context: Any
    ) -> None:
        context = make_context(
            make_medication(),
            (2, "tablet"),
            "by mouth",
            "every 8 hours",
            as_needed=True,
            max_dose_per_period={
                "dose": {"value": 6, "unit": "tablet"},
                "period": {"value": 1, "unit": "d"},
            },
        )

        instruction = dispatcher.dispatch(context)

        assert instruction.text == (
            "Take 2 tablets (1000 mg) by mouth every 8 hours as needed. "
            "Do not exceed 6 tablets in 1 day."
        )
        assert instruction.as_needed_boolean is True
        assert instruction.max_dose_per_period is not None
        assert instruction.max_dose_per_period["denominator"]["value"] == 1

    def test_preview_lists_modifiers_in_priority_order(
        self, dispatcher: StrategyDispatcher, make_medication: Any, make_context: Any
    ) -> None:
        context = make_context(make_medication(), (2, "tablet"), as_needed="pain")

        preview = dispatcher.preview(context)

        assert preview.would_succeed
        assert preview.base_strategy == "tablet"
        assert preview.modifiers == ("strength-display", "prn")


class TestRegistry:
    def test_default_registry_contents(self) -> None:
        registry = default_registry()

        assert set(registry.get_base_strategies()) == {
            "tablet",
            "liquid",
            "topical",
            "injection",
            "testosterone-cypionate",
            "default",
        }
        assert [mod.priority for mod in registry.get_modifiers().values()] == [10, 20, 30]
        assert all(isinstance(s, BaseStrategy) for s in registry.get_base_strategies().values())
        assert all(isinstance(m, ModifierStrategy) for m in registry.get_modifiers().values())

    def test_duplicate_names_are_rejected(self) -> None:
        registry = StrategyRegistry()
        registry.register_base("a", _StubBase("a", SpecificityLevel.DEFAULT))

        with pytest.raises(DuplicateStrategyError, match="base strategy 'a' is already registered"):
            registry.register_base("a", _StubBase("a", SpecificityLevel.DOSE_FORM))

    def test_priority_conflict_leaves_registry_unchanged(self) -> None:
        registry = StrategyRegistry()
        registry.register_modifier("first", _StubModifier("first", 10))

        with pytest.raises(PriorityConflictError) as excinfo:
            registry.register_modifier("second", _StubModifier("second", 10))

        assert excinfo.value.conflicting_modifiers == [("first", 10), ("second", 10)]
        assert list(registry.get_modifiers()) == ["first"]

    def test_unregister_and_order(self) -> None:
        registry = StrategyRegistry()
        registry.register_base("a", _StubBase("a", SpecificityLevel.DEFAULT))
        registry.register_modifier("m", _StubModifier("m", 5))

        assert registry.get_registration_order() == ["base:a", "modifier:m"]
        assert registry.unregister_base("a") is True
        assert registry.unregister_base("a") is False
        assert registry.get_registration_order() == ["modifier:m"]

        registry.clear()
        assert registry.get_modifiers() == {}

    def test_explain_and_visualize(self, make_medication: Any, make_context: Any) -> None:
        registry = StrategyRegistry()
        registry.register_base("low", _StubBase("low", SpecificityLevel.DEFAULT))
        registry.register_base("high", _StubBase("high", SpecificityLevel.DOSE_FORM))
        registry.register_base("off", _StubBase("off", SpecificityLevel.MEDICATION_SKU, False))
        registry.register_modifier("m", _StubModifier("m", 5))

        explanation = registry.explain_selection(make_context(make_medication()))

        assert explanation.base == "high"
        assert explanation.execution_order == ("high", "m")
        assert [item.matched for item in explanation.evaluated] == [True, True, False, True]
        text = registry.visualize()
        assert "  - high [Specificity: 1] (high stub)" in text
        assert "  - m [Priority: 5] (m stub)" in text


class TestDispatcher:
    def test_modifiers_run_in_priority_order(self, make_medication: Any, make_context: Any) -> None:
        registry = StrategyRegistry()
        registry.register_base("base", _StubBase("base", SpecificityLevel.DOSE_FORM))
        registry.register_modifier("late", _StubModifier("late", 20))
        registry.register_modifier("early", _StubModifier("early", 10))

        instruction = StrategyDispatcher(registry).dispatch(make_context(make_medication()))

        assert instruction.text == "base+early+late"

    def test_tie_at_top_specificity_is_ambiguous(
        self, make_medication: Any, make_context: Any
    ) -> None:
        registry = StrategyRegistry()
        registry.register_base("a", _StubBase("a", SpecificityLevel.DOSE_FORM))
        registry.register_base("b", _StubBase("b", SpecificityLevel.DOSE_FORM))
        registry.register_base("fallback", _StubBase("fallback", SpecificityLevel.DEFAULT))
        dispatcher = StrategyDispatcher(registry)

        with pytest.raises(AmbiguousStrategyError) as excinfo:
            dispatcher.dispatch(make_context(make_medication()))

        assert excinfo.value.strategies == ["a", "b"]
        assert excinfo.value.message.startswith(
            "Multiple strategies at specificity level 1 (DOSE_FORM): [a, b]"
        )
        audit = dispatcher.get_audit_log()
        assert len(audit) == 1
        assert audit[0].error == excinfo.value.message
        assert dispatcher.preview(make_context(make_medication())).error == (
            "Ambiguous strategy match"
        )

    def test_lower_specificity_ties_do_not_matter(
        self, make_medication: Any, make_context: Any
    ) -> None:
        registry = StrategyRegistry()
        registry.register_base("a", _StubBase("a", SpecificityLevel.DEFAULT))
        registry.register_base("b", _StubBase("b", SpecificityLevel.DEFAULT))
        registry.register_base("top", _StubBase("top", SpecificityLevel.MEDICATION_ID))

        assert StrategyDispatcher(registry).dispatch(make_context(make_medication())).text == "top"

    def test_no_match(self, make_medication: Any, make_context: Any) -> None:
        registry = StrategyRegistry()
        registry.register_base("never", _StubBase("never", SpecificityLevel.DOSE_FORM, False))
        dispatcher = StrategyDispatcher(registry)

        with pytest.raises(NoMatchingStrategyError) as excinfo:
            dispatcher.dispatch(make_context(make_medication()))

        assert excinfo.value.available_strategies == ["never"]
        assert excinfo.value.to_structured()["error_type"] == "NoMatchingStrategyError"
        explanation = dispatcher.explain_selection(make_context(make_medication()))
        assert "Selection would fail: No matching strategy found" in explanation

    def test_audit_log_is_bounded_and_feeds_stats(
        self, make_medication: Any, make_context: Any
    ) -> None:
        registry = StrategyRegistry()
        registry.register_base("base", _StubBase("base", SpecificityLevel.DEFAULT))
        dispatcher = StrategyDispatcher(registry, max_audit_log_size=2)

        for _ in range(3):
            dispatcher.dispatch(make_context(make_medication()))

        assert len(dispatcher.get_audit_log()) == 2
        stats = dispatcher.get_performance_stats()
        assert stats.count == 2
        assert stats.p50_ms <= stats.p99_ms

        dispatcher.clear_audit_log()
        assert dispatcher.get_performance_stats().count == 0

    def test_explain_selection_names_the_winner(
        self, dispatcher: StrategyDispatcher, make_medication: Any, make_context: Any
    ) -> None:
        text = dispatcher.explain_selection(make_context(make_medication(), (2, "tablet")))

        assert "Selected Base Strategy: tablet" in text
        assert "  1. strength-display" in text

    def test_audit_log_size_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            StrategyDispatcher(StrategyRegistry(), max_audit_log_size=0)
