"""Tracer models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TraceEventType(str, Enum):
    CONVERSION_START = "conversion_start"
    CONVERSION_END = "conversion_end"
    CONVERSION_STEP = "conversion_step"
    VALIDATION_START = "validation_start"
    VALIDATION_END = "validation_end"
    ADAPTER_SELECTION = "adapter_selection"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    CONFIDENCE_CALCULATION = "confidence_calculation"
    ERROR = "error"
    WARNING = "warning"
    PERFORMANCE_METRIC = "performance_metric"


START_EVENTS = frozenset({TraceEventType.CONVERSION_START, TraceEventType.VALIDATION_START})
END_EVENTS = frozenset({TraceEventType.CONVERSION_END, TraceEventType.VALIDATION_END})


@dataclass(frozen=True)
class TracerOptions:
    enabled: bool = False
    include_memory_metrics: bool = False
    max_trace_entries: int = 1000
    dry_run: bool = False

    def __post_init__(self) -> None:
        if self.max_trace_entries < 1:
            raise ValueError("max_trace_entries must be at least 1")


@dataclass(frozen=True)
class TraceEvent:
    """What a caller reports; the tracer stamps it into a ``TraceEntry``."""

    type: TraceEventType
    description: str
    data: dict[str, Any] = field(default_factory=dict)
    error: dict[str, Any] | None = None


@dataclass(frozen=True)
class TraceEntry:
    type: TraceEventType
    description: str
    timestamp: float
    data: dict[str, Any] = field(default_factory=dict)
    error: dict[str, Any] | None = None
    duration: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type.value,
            "description": self.description,
            "timestamp": self.timestamp,
        }
        if self.data:
            payload["data"] = self.data
        if self.error is not None:
            payload["error"] = self.error
        if self.duration is not None:
            payload["duration"] = self.duration
        if self.metadata:
            payload["metadata"] = self.metadata
        return payload


@dataclass(frozen=True)
class PerformanceMetric:
    operation: str
    count: int
    total_duration: float
    average_duration: float
    min_duration: float
    max_duration: float


@dataclass(frozen=True)
class PerformanceSummary:
    total_duration: float
    operation_count: int
    metrics: tuple[PerformanceMetric, ...]
    bottlenecks: tuple[str, ...]
