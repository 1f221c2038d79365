"""Template engine that renders signature text from jinja2 templates.

Templates are loaded explicitly (at construction and on ``set_locale``) and
compiled on first use into a bounded FIFO cache keyed by ``(locale, key)``.
Rendering sits on a display path, so it never raises: a failure is logged and
the caller gets ``"[Template Error: <KEY>]"``.
"""

from __future__ import annotations

import re
import threading
import time
from collections import OrderedDict
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog
from jinja2 import Template, TemplateError

from medsig.core.config import Settings, get_settings
from medsig.core.logging import get_logger
from medsig.modules.templates.catalog import (
    DEFAULT_LOCALE,
    PHRASES,
    TemplateKey,
    default_catalogs,
)
from medsig.modules.templates.rendering import (
    TemplatePatternError,
    build_environment,
    compile_pattern,
)

_SLOW_RENDER_MS = 1.0
_WHITESPACE = re.compile(r"[ \t]{2,}")
_RENDER_ERRORS = (KeyError, TemplatePatternError, TemplateError, TypeError, ValueError)

TemplateData = dict[str, Any]


@dataclass(frozen=True)
class TemplatePerformanceMetrics:
    render_time: float
    cache_hits: int
    cache_misses: int
    templates_loaded: int


def template_error(key: str) -> str:
    return f"[Template Error: {key}]"


class TemplateEngine:
    """Renders template keys for one active locale.

    Locales other than ``en-US`` fall back to the ``en-US`` pattern for any
    key they do not define.
    """

    def __init__(
        self,
        locale: str | None = None,
        *,
        cache_size: int | None = None,
        enable_performance_logging: bool | None = None,
        catalogs: Mapping[str, Mapping[str, str]] | None = None,
        settings: Settings | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._locale = (locale or settings.template_locale).strip()
        self._cache_size = cache_size if cache_size is not None else settings.template_cache_size
        if self._cache_size < 1:
            raise ValueError("cache_size must be at least 1")
        self._performance_logging = (
            enable_performance_logging
            if enable_performance_logging is not None
            else settings.template_performance_logging
        )
        if catalogs is None:
            self._catalogs = default_catalogs()
        else:
            self._catalogs = {locale: dict(patterns) for locale, patterns in catalogs.items()}
        self._logger = logger or get_logger(__name__)

        self._lock = threading.Lock()
        self._environment = build_environment(self._locale, PHRASES.get(self._locale))
        self._cache: OrderedDict[tuple[str, str], Template] = OrderedDict()
        self._templates: dict[str, str] = {}
        self._cache_hits = 0
        self._cache_misses = 0
        self._last_render_ms = 0.0

        self.load_templates()

    @property
    def locale(self) -> str:
        return self._locale

    @property
    def available_templates(self) -> list[str]:
        return sorted(self._templates)

    def has_template(self, key: str | TemplateKey) -> bool:
        return _key(key) in self._templates

    def load_templates(self) -> None:
        """(Re)load the active locale's patterns from the catalogs."""
        templates = dict(self._catalogs.get(DEFAULT_LOCALE, {}))
        if self._locale != DEFAULT_LOCALE:
            if self._locale not in self._catalogs:
                self._logger.warning(
                    "template_locale_unavailable",
                    locale=self._locale,
                    fallback=DEFAULT_LOCALE,
                )
            templates.update(self._catalogs.get(self._locale, {}))
        with self._lock:
            self._templates = templates
        self._logger.debug("templates_loaded", locale=self._locale, count=len(templates))

    def set_locale(self, locale: str) -> None:
        self._locale = locale.strip()
        self._environment = build_environment(self._locale, PHRASES.get(self._locale))
        self.clear_cache()
        self.load_templates()

    def register_template(self, locale: str, key: str | TemplateKey, pattern: str) -> None:
        """Add or replace a template. Raises ``TemplatePatternError`` for bad syntax."""
        compile_pattern(pattern, locale, build_environment(locale, PHRASES.get(locale)))
        name = _key(key)
        self._catalogs.setdefault(locale, {})[name] = pattern
        with self._lock:
            for cache_key in [entry for entry in self._cache if entry[0] == locale]:
                del self._cache[cache_key]
        if locale in (self._locale, DEFAULT_LOCALE):
            self.load_templates()

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def render(self, key: str | TemplateKey, data: Mapping[str, Any]) -> str:
        name = _key(key)
        if not isinstance(data, Mapping):
            self._logger.warning(
                "template_render_failed",
                template_key=name,
                locale=self._locale,
                error=f"template data must be a mapping, got {type(data).__name__}",
            )
            return template_error(name)
        started = time.perf_counter()
        try:
            text = self._format(name, data)
        except _RENDER_ERRORS as exc:
            self._logger.warning(
                "template_render_failed",
                template_key=name,
                locale=self._locale,
                error=str(exc),
            )
            return template_error(name)
        finally:
            elapsed = (time.perf_counter() - started) * 1000.0
            self._last_render_ms = elapsed
            if self._performance_logging and elapsed > _SLOW_RENDER_MS:
                self._logger.warning(
                    "template_render_slow", template_key=name, duration_ms=round(elapsed, 3)
                )
        return text

    def validate_template(self, key: str | TemplateKey, sample: Mapping[str, Any]) -> bool:
        """True when *key* exists and renders *sample* without error."""
        if not isinstance(sample, Mapping):
            return False
        try:
            self._format(_key(key), sample)
        except _RENDER_ERRORS:
            return False
        return True

    def get_performance_metrics(self) -> TemplatePerformanceMetrics:
        with self._lock:
            return TemplatePerformanceMetrics(
                render_time=self._last_render_ms,
                cache_hits=self._cache_hits,
                cache_misses=self._cache_misses,
                templates_loaded=len(self._templates),
            )

    # ------------------------------------------------------------------

    def _format(self, key: str, data: Mapping[str, Any]) -> str:
        template = self._formatter(key)
        text = template.render(dict(data))
        return _WHITESPACE.sub(" ", text).strip()

    def _formatter(self, key: str) -> Template:
        cache_key = (self._locale, key)
        with self._lock:
            cached = self._cache.get(cache_key)
            if cached is not None:
                self._cache_hits += 1
                return cached
            self._cache_misses += 1
            source = self._templates.get(key)

        if source is None:
            raise KeyError(f"Unknown template '{key}' for locale {self._locale}")
        pattern = compile_pattern(source, self._locale, self._environment)

        with self._lock:
            while len(self._cache) >= self._cache_size:
                self._cache.popitem(last=False)
            self._cache[cache_key] = pattern
        return pattern


def _key(key: str | TemplateKey) -> str:
    return key.value if isinstance(key, TemplateKey) else str(key)
