"""Unit tests for route normalisation and route / dose form compatibility."""

from __future__ import annotations

import pytest

from medsig.modules.routes.constants import DOSE_FORMS, ROUTES
from medsig.modules.routes.validator import RouteValidator


class TestNormalizeRoute:
    @pytest.mark.parametrize(
        ("route", "expected"),
        [
            ("Orally", "Orally"),
            ("orally", "Orally"),
            ("PO", "Orally"),
            ("by  mouth", "Orally"),
            ("sq", "Subcutaneous"),
            ("IM", "Intramuscularly"),
            ("INH", "Inhaled"),
            ("eye", "Ophthalmic"),
        ],
    )
    def test_names_codes_and_aliases(
        self, routes: RouteValidator, route: str, expected: str
    ) -> None:
        assert routes.normalize_route(route) == expected

    def test_unknown_route(self, routes: RouteValidator) -> None:
        assert routes.normalize_route("through the ear canal") is None
        assert routes.normalize_route("   ") is None


class TestValidateRoute:
    def test_alias_is_valid_with_normalization_warning(self, routes: RouteValidator) -> None:
        result = routes.validate_route("po", "Tablet")

        assert result.is_valid
        assert result.errors == []
        assert result.warnings == ['Route "po" normalized to "Orally"']

    def test_incompatible_route_suggests_allowed_routes(self, routes: RouteValidator) -> None:
        result = routes.validate_route("Intramuscularly", "Tablet")

        assert not result.is_valid
        assert result.errors == [
            'Route "Intramuscularly" is not applicable for dose form "Tablet". '
            "Allowed routes: Orally, Sublingually"
        ]
        assert result.suggested_routes == ["Orally", "Sublingually"]

    def test_missing_route(self, routes: RouteValidator) -> None:
        result = routes.validate_route("")

        assert result.to_dict() == {
            "isValid": False,
            "errors": ["Route is required"],
            "warnings": [],
            "suggestedRoutes": [],
        }

    def test_unknown_route_gets_suggestions(self, routes: RouteValidator) -> None:
        result = routes.validate_route("oraly")

        assert not result.is_valid
        assert result.errors == ['Invalid route: "oraly". Route not found in system definitions.']
        assert "Orally" in result.suggested_routes
        assert len(result.suggested_routes) <= 3

    def test_unknown_dose_form_only_warns(self, routes: RouteValidator) -> None:
        result = routes.validate_route("Orally", "Widget")

        assert result.is_valid
        assert result.warnings == ['Unknown dose form "Widget"; route compatibility not checked']

    def test_route_array(self, routes: RouteValidator) -> None:
        assert routes.validate_route_array("po").errors == ["Routes must be an array"]
        assert routes.validate_route_array([]).errors == ["No routes specified"]

        result = routes.validate_route_array(["po", "Topically"], "Tablet")

        assert not result.is_valid
        assert result.errors[0].startswith('Route 2: Route "Topically" is not applicable')
        assert result.warnings == ['Route 1: Route "po" normalized to "Orally"']


def test_allowed_and_default_routes(routes: RouteValidator) -> None:
    assert routes.get_allowed_routes_for_dose_form("vial") == [
        "Intramuscularly",
        "Subcutaneous",
        "Intravenous",
    ]
    assert routes.get_default_route_for_dose_form("Drops") == "Ophthalmic"
    assert routes.get_default_route_for_dose_form("Widget") is None
    with pytest.raises(ValueError, match="Invalid dose form: Widget"):
        routes.get_allowed_routes_for_dose_form("Widget")


def test_special_instructions(routes: RouteValidator) -> None:
    assert routes.requires_special_instructions("IM") is True
    assert routes.requires_special_instructions("PO") is False
    assert routes.get_special_instructions_template("SC") == (
        "Inject {dose} {route} into {site} {frequency}."
    )
    assert routes.get_special_instructions_template("nowhere") is None


@pytest.mark.parametrize(
    ("route", "dose_form", "verb"),
    [
        ("Orally", "Tablet", "Take"),
        ("Orally", "ODT", "Dissolve"),
        ("Sublingually", "Troche", "Dissolve"),
        ("Vaginally", "Cream", "Apply"),
        ("Vaginally", "Suppository", "Insert"),
        ("Intranasal", "Nasal Spray", "Spray"),
        (None, "Inhaler", "Inhale"),
        (None, None, "Take"),
    ],
)
def test_verb_for(routes: RouteValidator, route: str | None, dose_form: str | None, verb: str) -> None:
    assert routes.verb_for(route, dose_form) == verb


def test_human_readable(routes: RouteValidator) -> None:
    assert routes.human_readable("PO") == "by mouth"
    assert routes.human_readable("On Scalp") == "to the scalp"
    assert routes.human_readable("Via G-Tube") == "via g-tube"


def test_tables_agree() -> None:
    for form in DOSE_FORMS.values():
        assert form.default_route in form.applicable_routes
        for route in form.applicable_routes:
            assert form.name in ROUTES[route].applicable_forms

    assert DOSE_FORMS["Cream"].has_special_dispenser
    assert not DOSE_FORMS["Tablet"].has_special_dispenser


def test_custom_tables() -> None:
    validator = RouteValidator(
        routes={"Orally": ROUTES["Orally"]},
        dose_forms={"Tablet": DOSE_FORMS["Tablet"]},
        aliases={"PO": "Orally"},
    )

    assert validator.get_all_routes() == ["Orally"]
    assert validator.normalize_route("po") == "Orally"
    assert validator.get_dose_form("Capsule") is None


def test_suggest_routes_by_similarity(routes: RouteValidator) -> None:
    assert "Intramuscularly" in routes.suggest_routes("intramusculary")
    assert "Subcutaneous" in routes.suggest_routes("subcutanous")
    assert routes.suggest_routes("zzzz") == []
