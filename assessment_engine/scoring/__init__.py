"""Scoring module: response normalization, section aggregation and score calculation."""

from .normalizer import ResponseNormalizer, normalize, DEFAULT_ANTITHESIS_MARKERS
from .aggregator import SectionAggregator, SectionScore, round_percentage
from .calculator import (
    MIN_ANSWERED_QUESTIONS,
    ScoreCalculator,
    ScoreResult,
    ScoringConfig,
    calculate_scores,
)

__all__ = [
    "ResponseNormalizer",
    "normalize",
    "DEFAULT_ANTITHESIS_MARKERS",
    "SectionAggregator",
    "SectionScore",
    "round_percentage",
    "MIN_ANSWERED_QUESTIONS",
    "ScoreCalculator",
    "ScoreResult",
    "ScoringConfig",
    "calculate_scores",
]
