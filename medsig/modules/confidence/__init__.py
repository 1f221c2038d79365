"""Confidence scoring for completed unit conversions."""

from medsig.modules.confidence.schemas import (
    ConfidenceFactors,
    ConfidenceLevel,
    ConfidenceScore,
    ScoreAdjustment,
)
from medsig.modules.confidence.service import ConfidenceScoreService

__all__ = [
    "ConfidenceFactors",
    "ConfidenceLevel",
    "ConfidenceScore",
    "ConfidenceScoreService",
    "ScoreAdjustment",
]
