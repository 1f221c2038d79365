"""Route / dose form compatibility checks."""

from __future__ import annotations

import difflib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from medsig.core.logging import get_logger
from medsig.modules.routes.constants import (
    DOSE_FORMS,
    ROUTE_ALIASES,
    ROUTES,
    DoseForm,
    Route,
)

logger = get_logger(__name__)

_MAX_SUGGESTIONS = 3
_SUGGESTION_CUTOFF = 0.75


@dataclass
class RouteValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggested_routes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "suggestedRoutes": list(self.suggested_routes),
        }


class RouteCompatibilityProvider(Protocol):
    """Anything that can answer route/dose form compatibility synchronously."""

    def validate_route(self, route: str, dose_form: str | None = None) -> RouteValidationResult:
        ...


class AsyncRouteCompatibilityProvider(Protocol):
    """Same contract for an external (database backed) validator."""

    async def validate_route(
        self, route: str, dose_form: str | None = None
    ) -> RouteValidationResult:
        ...


class RouteValidator:
    """Validates routes against the static route and dose form tables.

    Usage::

        validator = RouteValidator()
        result = validator.validate_route("po", "Tablet")
        assert result.is_valid
    """

    def __init__(
        self,
        routes: Mapping[str, Route] | None = None,
        dose_forms: Mapping[str, DoseForm] | None = None,
        aliases: Mapping[str, str] | None = None,
    ) -> None:
        self._routes = dict(routes if routes is not None else ROUTES)
        self._dose_forms = dict(dose_forms if dose_forms is not None else DOSE_FORMS)
        self._aliases = {
            key.casefold(): value
            for key, value in (aliases if aliases is not None else ROUTE_ALIASES).items()
        }
        self._by_casefold = {name.casefold(): name for name in self._routes}
        self._forms_by_casefold = {name.casefold(): name for name in self._dose_forms}

    # -- lookups -----------------------------------------------------------

    def normalize_route(self, route: str) -> str | None:
        """Canonical route name for *route* (name, code or alias), else ``None``."""
        key = " ".join(route.split()).casefold()
        if not key:
            return None
        if key in self._by_casefold:
            return self._by_casefold[key]
        if key in self._aliases:
            return self._aliases[key]
        for name, meta in self._routes.items():
            if meta.code.casefold() == key:
                return name
        return None

    def normalize_dose_form(self, dose_form: str) -> str | None:
        return self._forms_by_casefold.get(dose_form.strip().casefold())

    def is_valid_route(self, route: str) -> bool:
        return self.normalize_route(route) is not None

    def get_route_metadata(self, route: str) -> Route | None:
        name = self.normalize_route(route)
        return self._routes.get(name) if name else None

    def get_dose_form(self, dose_form: str) -> DoseForm | None:
        name = self.normalize_dose_form(dose_form)
        return self._dose_forms.get(name) if name else None

    def get_all_routes(self) -> list[str]:
        return list(self._routes)

    def get_allowed_routes_for_dose_form(self, dose_form: str) -> list[str]:
        form = self.get_dose_form(dose_form)
        if form is None:
            raise ValueError(f"Invalid dose form: {dose_form}")
        return list(form.applicable_routes)

    def get_default_route_for_dose_form(self, dose_form: str) -> str | None:
        form = self.get_dose_form(dose_form)
        return form.default_route if form else None

    def requires_special_instructions(self, route: str) -> bool:
        meta = self.get_route_metadata(route)
        return bool(meta and meta.requires_special_instructions)

    def get_special_instructions_template(self, route: str) -> str | None:
        meta = self.get_route_metadata(route)
        return meta.special_instructions_template if meta else None

    def human_readable(self, route: str) -> str:
        """Phrase used in prose, e.g. ``"by mouth"``; unknown routes pass through lower-cased."""
        meta = self.get_route_metadata(route)
        return meta.human_readable if meta else route.strip().lower()

    def verb_for(self, route: str | None, dose_form: str | None) -> str:
        """Administration verb for a route, refined by dose form when the route maps it."""
        form = self.get_dose_form(dose_form) if dose_form else None
        meta = self.get_route_metadata(route) if route else None
        if meta is not None:
            if form is not None and form.name in meta.verb_map:
                return meta.verb_map[form.name]
            return meta.verb
        if form is not None:
            return form.verb
        return "Take"

    # -- validation --------------------------------------------------------

    def validate_route(self, route: str | None, dose_form: str | None = None) -> RouteValidationResult:
        if route is None or not str(route).strip():
            return RouteValidationResult(is_valid=False, errors=["Route is required"])

        name = self.normalize_route(route)
        if name is None:
            suggestions = self.suggest_routes(route)
            logger.debug("route_not_found", route=route, suggestions=suggestions)
            return RouteValidationResult(
                is_valid=False,
                errors=[f'Invalid route: "{route}". Route not found in system definitions.'],
                suggested_routes=suggestions,
            )

        result = RouteValidationResult(is_valid=True)
        if name != route:
            result.warnings.append(f'Route "{route}" normalized to "{name}"')

        if not dose_form:
            return result

        form = self.get_dose_form(dose_form)
        if form is None:
            result.warnings.append(
                f'Unknown dose form "{dose_form}"; route compatibility not checked'
            )
            return result

        compatibility = self.validate_route_compatibility(name, form.name)
        result.errors.extend(compatibility.errors)
        result.warnings.extend(compatibility.warnings)
        if compatibility.errors:
            result.is_valid = False
            result.suggested_routes = list(form.applicable_routes)
        return result

    def validate_route_compatibility(self, route: str, dose_form: str) -> RouteValidationResult:
        """Both tables must agree that *route* applies to *dose_form*."""
        meta = self._routes[route]
        form = self._dose_forms[dose_form]
        result = RouteValidationResult(is_valid=True)
        if route not in form.applicable_routes:
            result.errors.append(
                f'Route "{route}" is not applicable for dose form "{dose_form}". '
                f"Allowed routes: {', '.join(form.applicable_routes)}"
            )
        elif meta.applicable_forms and dose_form not in meta.applicable_forms:
            result.warnings.append(
                f'Dose form "{dose_form}" is not listed for route "{route}"'
            )
        result.is_valid = not result.errors
        return result

    def validate_route_array(
        self, routes: Any, dose_form: str | None = None
    ) -> RouteValidationResult:
        if not isinstance(routes, Sequence) or isinstance(routes, str):
            return RouteValidationResult(is_valid=False, errors=["Routes must be an array"])
        if not routes:
            return RouteValidationResult(is_valid=False, errors=["No routes specified"])

        combined = RouteValidationResult(is_valid=True)
        for index, route in enumerate(routes):
            result = self.validate_route(route, dose_form)
            combined.errors.extend(f"Route {index + 1}: {error}" for error in result.errors)
            combined.warnings.extend(f"Route {index + 1}: {warning}" for warning in result.warnings)
            for suggestion in result.suggested_routes:
                if suggestion not in combined.suggested_routes:
                    combined.suggested_routes.append(suggestion)
        combined.is_valid = not combined.errors
        return combined

    def suggest_routes(self, route: str) -> list[str]:
        """Up to three canonical routes close to *route* by substring or similarity."""
        needle = " ".join(route.split()).casefold()
        suggestions: list[str] = []

        def add(name: str) -> None:
            if name not in suggestions:
                suggestions.append(name)

        candidates = {name.casefold(): name for name in self._routes}
        candidates.update(self._aliases)
        for key, name in candidates.items():
            if len(needle) >= 3 and (needle in key or key in needle):
                add(name)
        for key in difflib.get_close_matches(
            needle, list(candidates), n=_MAX_SUGGESTIONS * 2, cutoff=_SUGGESTION_CUTOFF
        ):
            add(candidates[key])
        return suggestions[:_MAX_SUGGESTIONS]
