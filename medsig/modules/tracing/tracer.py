"""Bounded, exportable event log for unit conversions.

The tracer is diagnostics only: nothing in the conversion path reads it back.
Entries go into a ring buffer (oldest evicted first) and start/end pairs with
the same description accumulate into a per-operation timing table.
"""

from __future__ import annotations

import dataclasses
import json
import threading
import time
import tracemalloc
from collections import deque
from typing import Any

import structlog

from medsig.core.config import get_settings
from medsig.core.logging import get_logger
from medsig.modules.tracing.schemas import (
    END_EVENTS,
    START_EVENTS,
    PerformanceMetric,
    PerformanceSummary,
    TraceEntry,
    TraceEvent,
    TraceEventType,
    TracerOptions,
)

_DOT_COLORS: dict[TraceEventType, str] = {
    TraceEventType.CONVERSION_START: "#90EE90",
    TraceEventType.CONVERSION_END: "#98FB98",
    TraceEventType.CONVERSION_STEP: "#87CEEB",
    TraceEventType.VALIDATION_START: "#FFE4B5",
    TraceEventType.VALIDATION_END: "#FFDEAD",
    TraceEventType.ADAPTER_SELECTION: "#DDA0DD",
    TraceEventType.CACHE_HIT: "#90EE90",
    TraceEventType.CACHE_MISS: "#F0E68C",
    TraceEventType.CONFIDENCE_CALCULATION: "#B0E0E6",
    TraceEventType.ERROR: "#FFA07A",
    TraceEventType.WARNING: "#FFFFE0",
    TraceEventType.PERFORMANCE_METRIC: "#E6E6FA",
}

EXPORT_FORMATS = ("json", "dot", "text")


def default_tracer_options() -> TracerOptions:
    settings = get_settings()
    return TracerOptions(
        enabled=settings.tracing_enabled,
        max_trace_entries=settings.max_trace_entries,
        dry_run=settings.trace_dry_run,
    )


class ConversionTracer:
    """Records conversion events while enabled.

    Usage::

        tracer = ConversionTracer(TracerOptions(enabled=True))
        converter = UnitConverter(tracer=tracer)
        converter.convert(8, "click", "mL")
        print(tracer.export("text"))
    """

    def __init__(
        self,
        options: TracerOptions | None = None,
        *,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._options = options or default_tracer_options()
        self._logger = logger or get_logger(__name__)
        self._lock = threading.Lock()
        self._entries: deque[TraceEntry] = deque(maxlen=self._options.max_trace_entries)
        self._timings: dict[str, list[float]] = {}
        self._open_operations: dict[str, float] = {}
        self._start_time = time.perf_counter()

    @property
    def options(self) -> TracerOptions:
        return self._options

    @property
    def is_enabled(self) -> bool:
        return self._options.enabled

    @property
    def is_dry_run(self) -> bool:
        return self._options.dry_run

    def set_enabled(self, enabled: bool) -> None:
        self._options = dataclasses.replace(self._options, enabled=enabled)

    def trace(self, event: TraceEvent) -> None:
        if not self._options.enabled:
            return

        now = time.perf_counter()
        metadata: dict[str, Any] = {}
        if self._options.include_memory_metrics and tracemalloc.is_tracing():
            metadata["memory"] = tracemalloc.get_traced_memory()[0]

        with self._lock:
            duration = None
            if event.type in START_EVENTS:
                self._open_operations[event.description] = now
            elif event.type in END_EVENTS:
                duration = self._end_operation(event.description, now)
            elif event.type is TraceEventType.ERROR:
                # A failed operation never sees its end event.
                self._open_operations.pop(event.description, None)

            self._entries.append(
                TraceEntry(
                    type=event.type,
                    description=event.description,
                    timestamp=self._elapsed_ms(now),
                    data=dict(event.data),
                    error=event.error,
                    duration=duration,
                    metadata=metadata,
                )
            )

    def record(
        self,
        event_type: TraceEventType,
        description: str,
        *,
        error: dict[str, Any] | None = None,
        **data: Any,
    ) -> None:
        """Shorthand for ``trace(TraceEvent(...))``."""
        if not self._options.enabled:
            return
        self.trace(TraceEvent(type=event_type, description=description, data=data, error=error))

    @property
    def entries(self) -> list[TraceEntry]:
        with self._lock:
            return list(self._entries)

    @property
    def open_operation_count(self) -> int:
        with self._lock:
            return len(self._open_operations)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._timings.clear()
            self._open_operations.clear()
            self._start_time = time.perf_counter()

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def get_performance_metrics(self) -> list[PerformanceMetric]:
        with self._lock:
            timings = {operation: list(values) for operation, values in self._timings.items()}

        metrics: list[PerformanceMetric] = []
        for operation, values in timings.items():
            if not values:
                continue
            total = sum(values)
            metrics.append(
                PerformanceMetric(
                    operation=operation,
                    count=len(values),
                    total_duration=total,
                    average_duration=total / len(values),
                    min_duration=min(values),
                    max_duration=max(values),
                )
            )
        return metrics

    def get_metric(self, operation: str) -> PerformanceMetric | None:
        for metric in self.get_performance_metrics():
            if metric.operation == operation:
                return metric
        return None

    def get_performance_summary(self) -> PerformanceSummary:
        metrics = self.get_performance_metrics()
        with self._lock:
            total = self._elapsed_ms(time.perf_counter())
            count = len(self._entries)

        bottlenecks: tuple[str, ...] = ()
        if count:
            # An operation is a bottleneck when its average exceeds half the
            # overall average time per recorded event.
            threshold = (total / count) * 0.5
            bottlenecks = tuple(
                f"{metric.operation} (avg {metric.average_duration:.2f}ms)"
                for metric in metrics
                if metric.average_duration > threshold
            )
        return PerformanceSummary(
            total_duration=total,
            operation_count=count,
            metrics=tuple(metrics),
            bottlenecks=bottlenecks,
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export(self, format: str = "json") -> str:
        if format == "json":
            return self._to_json()
        if format == "dot":
            return self._to_dot()
        if format == "text":
            return self._to_text()
        raise ValueError(f"Unknown export format: {format}")

    def _to_json(self) -> str:
        summary = self.get_performance_summary()
        payload = {
            "traces": [entry.to_dict() for entry in self.entries],
            "summary": dataclasses.asdict(summary),
            "options": dataclasses.asdict(self._options),
        }
        return json.dumps(payload, indent=2, default=str)

    def _to_dot(self) -> str:
        entries = self.entries
        nodes = []
        for index, entry in enumerate(entries):
            color = _DOT_COLORS.get(entry.type, "#FFFFFF")
            nodes.append(
                f'  n{index} [label="{_dot_label(entry)}", fillcolor="{color}", style="filled"];'
            )
        edges = []
        for index in range(1, len(entries)):
            elapsed = entries[index].timestamp - entries[index - 1].timestamp
            edges.append(f'  n{index - 1} -> n{index} [label="{elapsed:.2f}ms"];')

        lines = [
            "digraph ConversionTrace {",
            "  rankdir=TB;",
            '  node [shape=box, fontname="Arial", fontsize=10];',
            '  edge [fontname="Arial", fontsize=9];',
            "",
            '  label="Unit Conversion Trace";',
            '  labelloc="t";',
            "",
            *nodes,
            "",
            *edges,
            "}",
        ]
        return "\n".join(lines)

    def _to_text(self) -> str:
        entries = self.entries
        with self._lock:
            total = self._elapsed_ms(time.perf_counter())

        lines = [
            "=== Conversion Trace ===",
            f"Total Duration: {total:.2f}ms",
            f"Events: {len(entries)}",
            "",
        ]
        in_operation = False
        for entry in entries:
            if entry.type is TraceEventType.CONVERSION_START:
                if in_operation:
                    lines.append("")
                in_operation = True
                lines.append(f"--- {entry.description} ---")

            indent = "  " if entry.type is TraceEventType.CONVERSION_STEP else ""
            line = f"[{entry.timestamp:.2f}ms] {indent}{entry.description}"
            if entry.duration is not None:
                line += f" ({entry.duration:.2f}ms)"
            if entry.data:
                rendered = ", ".join(
                    f"{key}={json.dumps(value, default=str)}" for key, value in entry.data.items()
                )
                line += f" [{rendered}]"
            if entry.error is not None:
                line += f" ERROR: {entry.error.get('message', '')}"
            lines.append(line)

        summary = self.get_performance_summary()
        lines.extend(["", "=== Performance Summary ==="])
        for metric in summary.metrics:
            lines.extend(
                [
                    f"{metric.operation}:",
                    f"  Count: {metric.count}",
                    f"  Average: {metric.average_duration:.2f}ms",
                    f"  Min: {metric.min_duration:.2f}ms",
                    f"  Max: {metric.max_duration:.2f}ms",
                ]
            )
        if summary.bottlenecks:
            lines.extend(["", "Bottlenecks:"])
            lines.extend(f"  - {bottleneck}" for bottleneck in summary.bottlenecks)
        return "\n".join(lines)

    # ------------------------------------------------------------------

    def _end_operation(self, name: str, now: float) -> float | None:
        started = self._open_operations.pop(name, None)
        if started is None:
            self._logger.debug("trace_end_without_start", operation=name)
            return None
        duration = (now - started) * 1000.0
        self._timings.setdefault(name, []).append(duration)
        return duration

    def _elapsed_ms(self, now: float) -> float:
        return (now - self._start_time) * 1000.0


def _dot_label(entry: TraceEntry) -> str:
    label = entry.description
    if entry.data:
        key, value = next(iter(entry.data.items()))
        if value is not None:
            label += f"\\n{key}: {value}"
    if entry.duration is not None:
        label += f"\\n({entry.duration:.2f}ms)"
    return label.replace('"', '\\"')
