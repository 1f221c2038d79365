"""Confidence score models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class ScoreAdjustment:
    delta: int
    reason: str


@dataclass(frozen=True)
class ConfidenceFactors:
    """Per-aspect reliability, each in 0..1."""

    conversion_complexity: float
    data_quality: float
    assumptions: float
    precision: float


@dataclass(frozen=True)
class ConfidenceScore:
    """Reliability of one conversion; derived from its trace and never mutated."""

    level: ConfidenceLevel
    score: int
    rationale: tuple[str, ...] = ()
    factors: ConfidenceFactors | None = None
    explanation: str = ""
    adjustments: tuple[ScoreAdjustment, ...] = field(default=(), repr=False)
