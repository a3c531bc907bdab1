"""
Comparative statistics over a population of assessment results.

Used by reports to place one respondent relative to everyone else who
took the assessment:
1. Score distribution (overall and per section)
2. Distribution by gender
3. Percentile rank of one respondent, with a descriptive band
4. Share of respondents per profile

Percentile rank is the share of the population scoring at or below the
respondent ("weak" percentile), rounded half up to an integer.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Any, Optional, Sequence
import json

import numpy as np
import pandas as pd
from scipy.stats import percentileofscore

from ..assessment import AssessmentResult

logger = logging.getLogger(__name__)

UNKNOWN_GENDER = "unknown"

# Lower bound of each band, highest first
PERCENTILE_BANDS = [
    (95, "Much higher than most respondents"),
    (75, "Higher than most respondents"),
    (60, "Somewhat higher than average"),
    (40, "About average"),
    (25, "Somewhat lower than average"),
    (5, "Lower than most respondents"),
]
LOWEST_BAND = "Much lower than most respondents"


@dataclass
class ScoreDistributionStats:
    """Statistics about score distribution."""
    count: int
    mean: float
    median: float
    std: float
    min: float
    max: float
    quantiles: Dict[str, float]  # e.g., {"p10": 62.5, "p50": 78.0, "p90": 91.0}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": int(self.count),
            "mean": float(self.mean),
            "median": float(self.median),
            "std": float(self.std),
            "min": float(self.min),
            "max": float(self.max),
            "quantiles": {k: float(v) for k, v in self.quantiles.items()}
        }


@dataclass
class PercentilePlacement:
    """One respondent's position within a population."""
    score: float
    percentile: int
    description: str
    population: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": float(self.score),
            "percentile": int(self.percentile),
            "description": self.description,
            "population": int(self.population),
        }


@dataclass
class ComparativeReport:
    """
    Respondent placement against the whole population and against the
    same-gender population.
    """
    respondent: str
    overall: PercentilePlacement
    overall_same_gender: Optional[PercentilePlacement]
    sections: Dict[str, PercentilePlacement]
    distribution: ScoreDistributionStats
    distribution_by_gender: Dict[str, ScoreDistributionStats]
    section_means_by_gender: Dict[str, Dict[str, float]]
    profile_distribution: Dict[str, float]
    gender_profile_distribution: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "respondent": self.respondent,
            "overall": self.overall.to_dict(),
            "overall_same_gender": self.overall_same_gender.to_dict() if self.overall_same_gender else None,
            "sections": {k: v.to_dict() for k, v in self.sections.items()},
            "distribution": self.distribution.to_dict(),
            "distribution_by_gender": {k: v.to_dict() for k, v in self.distribution_by_gender.items()},
            "section_means_by_gender": self.section_means_by_gender,
            "profile_distribution": self.profile_distribution,
            "gender_profile_distribution": self.gender_profile_distribution,
        }

    def save(self, filepath: str) -> None:
        """Save report to JSON file."""
        with open(filepath, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Saved comparative report to {filepath}")

    def summary(self) -> str:
        """Generate text summary of the report."""
        lines = [
            f"Comparative Report: {self.respondent}",
            "=" * 50,
            "",
            f"Overall: {self.overall.score:.1f}% "
            f"(percentile {self.overall.percentile}, {self.overall.description})",
        ]
        if self.overall_same_gender:
            lines.append(
                f"Same gender: percentile {self.overall_same_gender.percentile} "
                f"of {self.overall_same_gender.population}"
            )
        lines.extend(["", "Sections:"])
        for label, placement in self.sections.items():
            lines.append(f"  {label}: {placement.score:.1f}% (percentile {placement.percentile})")

        lines.extend([
            "",
            f"Population ({self.distribution.count}):",
            f"  Mean:   {self.distribution.mean:.1f}",
            f"  Median: {self.distribution.median:.1f}",
            f"  Std:    {self.distribution.std:.1f}",
        ])
        return "\n".join(lines)


def percentile_rank(score: float, dataset: Sequence[float]) -> int:
    """
    Share of the dataset at or below score, as an integer percentage.

    Returns 50 for an empty dataset.
    """
    values = np.asarray(dataset, dtype=float)
    if values.size == 0:
        return 50
    rank = percentileofscore(values, score, kind="weak")
    return int(Decimal(str(rank)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def describe_percentile(percentile: float) -> str:
    for lower_bound, description in PERCENTILE_BANDS:
        if percentile >= lower_bound:
            return description
    return LOWEST_BAND


def compute_score_distribution_stats(
    scores: Sequence[float],
    quantiles: List[float] = [0.1, 0.25, 0.5, 0.75, 0.9]
) -> ScoreDistributionStats:
    """
    Compute distribution statistics for scores.

    Args:
        scores: Percentages
        quantiles: Quantile values to compute (default: p10, p25, p50, p75, p90)

    Returns:
        ScoreDistributionStats instance (all zeros for an empty input)
    """
    values = np.asarray(scores, dtype=float)
    if values.size == 0:
        return ScoreDistributionStats(
            count=0, mean=0.0, median=0.0, std=0.0, min=0.0, max=0.0,
            quantiles={f"p{int(q * 100)}": 0.0 for q in quantiles}
        )

    quantile_dict = {
        f"p{int(q * 100)}": float(np.percentile(values, q * 100))
        for q in quantiles
    }

    return ScoreDistributionStats(
        count=int(values.size),
        mean=float(np.mean(values)),
        median=float(np.median(values)),
        std=float(np.std(values)),
        min=float(np.min(values)),
        max=float(np.max(values)),
        quantiles=quantile_dict
    )


def results_to_frame(results: Sequence[AssessmentResult]) -> pd.DataFrame:
    """
    One row per respondent: email, gender, overall, profiles and one
    column per section label.
    """
    rows = []
    for result in results:
        row = {
            "email": result.email,
            "gender": result.demographics.normalized_gender or UNKNOWN_GENDER,
            "overall": result.scores.overall_percentage,
            "primary_profile": result.profiles.primary_profile.name,
            "gender_profile": (result.profiles.gender_profile.name
                               if result.profiles.gender_profile else None),
        }
        for section, score in result.scores.sections.items():
            row[f"section:{section}"] = score.percentage
        rows.append(row)
    return pd.DataFrame(rows)


def profile_distribution(df: pd.DataFrame, column: str = "primary_profile") -> Dict[str, float]:
    """Percentage of respondents per profile, one decimal."""
    counts = df[column].dropna().value_counts(normalize=True) * 100
    return {str(name): round(float(share), 1) for name, share in counts.items()}


def create_comparative_report(
    results: Sequence[AssessmentResult],
    respondent: AssessmentResult,
    quantiles: List[float] = [0.1, 0.25, 0.5, 0.75, 0.9]
) -> ComparativeReport:
    """
    Place one respondent within a population of results.

    Args:
        results: Population (may or may not include the respondent)
        respondent: Respondent to place
        quantiles: Quantiles for the distribution statistics

    Returns:
        ComparativeReport instance
    """
    df = results_to_frame(results)
    if df.empty:
        df = pd.DataFrame(columns=["email", "gender", "overall", "primary_profile", "gender_profile"])
    logger.info(f"Building comparative report for {respondent.email} against {len(df)} results")

    overall_score = respondent.scores.overall_percentage
    overall_pct = percentile_rank(overall_score, df["overall"].tolist())
    overall = PercentilePlacement(overall_score, overall_pct, describe_percentile(overall_pct), len(df))

    gender = respondent.demographics.normalized_gender
    same_gender = None
    if gender:
        peers = df.loc[df["gender"] == gender, "overall"].tolist()
        pct = percentile_rank(overall_score, peers)
        same_gender = PercentilePlacement(overall_score, pct, describe_percentile(pct), len(peers))

    sections: Dict[str, PercentilePlacement] = {}
    for section, score in respondent.scores.sections.items():
        column = f"section:{section}"
        population = df[column].dropna().tolist() if column in df.columns else []
        pct = percentile_rank(score.percentage, population)
        sections[section] = PercentilePlacement(score.percentage, pct, describe_percentile(pct), len(population))

    by_gender = {
        str(g): compute_score_distribution_stats(group["overall"].tolist(), quantiles)
        for g, group in df.groupby("gender")
    }

    section_columns = [c for c in df.columns if c.startswith("section:")]
    section_means: Dict[str, Dict[str, float]] = {}
    if section_columns:
        means = df.groupby("gender")[section_columns].mean()
        for g, row in means.iterrows():
            section_means[str(g)] = {
                c[len("section:"):]: round(float(v), 1) for c, v in row.items() if not pd.isna(v)
            }

    gender_profiles: Dict[str, Dict[str, float]] = {}
    for g, group in df.dropna(subset=["gender_profile"]).groupby("gender"):
        gender_profiles[str(g)] = profile_distribution(group, "gender_profile")

    return ComparativeReport(
        respondent=respondent.email,
        overall=overall,
        overall_same_gender=same_gender,
        sections=sections,
        distribution=compute_score_distribution_stats(df["overall"].tolist(), quantiles),
        distribution_by_gender=by_gender,
        section_means_by_gender=section_means,
        profile_distribution=profile_distribution(df) if len(df) else {},
        gender_profile_distribution=gender_profiles,
    )
