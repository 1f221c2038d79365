"""Jinja2 environment the signature templates render with.

Templates are plain jinja2 text. ``None`` prints as nothing, and optional
clauses sit in ``{% if name %}`` blocks so a missing, ``None`` or empty slot
drops the clause. Filters:

- ``number``: ``2.0 -> "2"``; strings pass through untouched
- ``plural(one=..., other=...)``: ``4 -> "4 clicks"``, picking the form from
  the locale's CLDR plural category (Babel)
- ``t``: swaps known English phrases for the locale's wording
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from functools import lru_cache, partial
from typing import Any

from babel import Locale, UnknownLocaleError
from jinja2 import Environment, Template, TemplateSyntaxError, Undefined


class TemplatePatternError(ValueError):
    """Raised for malformed templates or values a template cannot format."""


def format_number(value: float) -> str:
    """``1.0 -> "1"``, ``2.50 -> "2.5"``; never scientific notation."""
    if isinstance(value, bool):
        raise TemplatePatternError("booleans are not numbers")
    if not math.isfinite(value):
        raise TemplatePatternError(f"cannot format non-finite number {value}")
    rounded = round(float(value), 6)
    if rounded.is_integer():
        return str(int(rounded))
    return f"{rounded:f}".rstrip("0").rstrip(".")


@lru_cache(maxsize=32)
def _locale(locale: str) -> Locale | None:
    try:
        return Locale.parse(locale, sep="-")
    except (UnknownLocaleError, ValueError):
        return None


def plural_category(value: float, locale: str) -> str:
    """CLDR cardinal category (``one``, ``few``, ``other``...) for *value*."""
    parsed = _locale(locale)
    if parsed is None:
        return "other"
    number: int | float = int(value) if float(value).is_integer() else value
    return str(parsed.plural_form(number))


def localize(text: str, phrases: Mapping[str, str]) -> str:
    """Replace every known phrase in *text*, longest match first, in one pass."""
    if not text or not phrases:
        return text
    lookup = {key.casefold(): value for key, value in phrases.items()}
    return _phrase_pattern(tuple(lookup)).sub(
        lambda match: lookup.get(match.group(0).casefold(), match.group(0)), text
    )


@lru_cache(maxsize=8)
def _phrase_pattern(keys: tuple[str, ...]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(key) for key in sorted(keys, key=len, reverse=True))
    return re.compile(rf"(?<!\w)(?:{alternatives})(?!\w)", re.IGNORECASE)


def _finalize(value: Any) -> Any:
    # ``None`` slots print as nothing, like missing ones.
    return "" if value is None else value


def _number_filter(value: Any) -> str:
    if isinstance(value, Undefined) or value is None:
        return ""
    if isinstance(value, str):
        return value
    return format_number(_as_number(value))


def _plural_filter(value: Any, locale: str, *, one: str, other: str, **forms: str) -> str:
    amount = _as_number(value)
    category = plural_category(amount, locale)
    word = {"one": one, "other": other, **forms}.get(category, other)
    return f"{format_number(amount)} {word}"


def _translate_filter(value: Any, phrases: Mapping[str, str]) -> str:
    if isinstance(value, Undefined) or value is None:
        return ""
    return localize(str(value), phrases)


def _as_number(value: Any) -> float:
    if isinstance(value, bool) or isinstance(value, Undefined) or value is None:
        raise TemplatePatternError(f"expected a number, got {value!r}")
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            raise TemplatePatternError(f"expected a number, got {value!r}") from None
    if not isinstance(value, (int, float)):
        raise TemplatePatternError(f"expected a number, got {value!r}")
    return float(value)


def build_environment(locale: str, phrases: Mapping[str, str] | None = None) -> Environment:
    """One environment per locale; filters are bound to its plural rules and phrases."""
    environment = Environment(autoescape=False, keep_trailing_newline=False, finalize=_finalize)
    environment.filters["number"] = _number_filter
    environment.filters["plural"] = partial(_plural_filter, locale=locale)
    environment.filters["t"] = partial(_translate_filter, phrases=dict(phrases or {}))
    return environment


def compile_pattern(
    source: str, locale: str = "en-US", environment: Environment | None = None
) -> Template:
    environment = environment or build_environment(locale)
    try:
        return environment.from_string(source)
    except TemplateSyntaxError as exc:
        raise TemplatePatternError(f"{exc.message} (line {exc.lineno}) in {source!r}") from exc
