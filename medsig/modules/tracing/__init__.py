"""Conversion event tracing and performance reporting."""

from medsig.modules.tracing.schemas import (
    PerformanceMetric,
    PerformanceSummary,
    TraceEntry,
    TraceEvent,
    TraceEventType,
    TracerOptions,
)
from medsig.modules.tracing.tracer import EXPORT_FORMATS, ConversionTracer

__all__ = [
    "EXPORT_FORMATS",
    "ConversionTracer",
    "PerformanceMetric",
    "PerformanceSummary",
    "TraceEntry",
    "TraceEvent",
    "TraceEventType",
    "TracerOptions",
]
