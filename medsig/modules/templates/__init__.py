"""Signature templates: jinja2 rendering, catalogs, engine and data builder."""

from medsig.modules.templates.catalog import (
    DEFAULT_LOCALE,
    PHRASES,
    SPECIALIZED_TEMPLATES,
    TEMPLATES,
    TemplateKey,
    default_catalogs,
)
from medsig.modules.templates.data_builder import TemplateDataBuilder, format_tablet_dose
from medsig.modules.templates.engine import (
    TemplateData,
    TemplateEngine,
    TemplatePerformanceMetrics,
    template_error,
)
from medsig.modules.templates.rendering import (
    TemplatePatternError,
    build_environment,
    compile_pattern,
    format_number,
    localize,
    plural_category,
)

__all__ = [
    "DEFAULT_LOCALE",
    "PHRASES",
    "SPECIALIZED_TEMPLATES",
    "TEMPLATES",
    "TemplateData",
    "TemplateDataBuilder",
    "TemplateEngine",
    "TemplateKey",
    "TemplatePatternError",
    "TemplatePerformanceMetrics",
    "build_environment",
    "compile_pattern",
    "default_catalogs",
    "format_number",
    "format_tablet_dose",
    "localize",
    "plural_category",
    "template_error",
]
