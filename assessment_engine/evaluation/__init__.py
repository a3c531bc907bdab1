"""Evaluation module for comparative population statistics."""

from .metrics import (
    ComparativeReport,
    PercentilePlacement,
    ScoreDistributionStats,
    compute_score_distribution_stats,
    create_comparative_report,
    describe_percentile,
    percentile_rank,
    profile_distribution,
    results_to_frame,
)

__all__ = [
    "ComparativeReport",
    "PercentilePlacement",
    "ScoreDistributionStats",
    "compute_score_distribution_stats",
    "create_comparative_report",
    "describe_percentile",
    "percentile_rank",
    "profile_distribution",
    "results_to_frame",
]
