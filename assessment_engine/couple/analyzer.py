"""
Couple compatibility analysis.

Compares two completed assessments that share a couple id.

Compatibility Formula:
    agreement = max(0, 100 - mean(section deltas))
    level     = sqrt(overall_A * overall_B)      (or min(overall_A, overall_B))
    overall   = alpha * agreement + (1 - alpha) * level

Agreement alone would call two low-scoring spouses who happen to agree
fully compatible, so the level term pulls the result toward how high both
spouses scored. The result never increases when a section delta grows and
never decreases when either overall score grows.

Per-question differences are measured on each question's value span:
    magnitude = |value_A - value_B| / span(question)
Questions whose magnitude exceeds the threshold are reported largest
first, ties broken by catalog order.
"""

import logging
import math
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..assessment import AssessmentResult
from ..catalog.schema import QuestionCatalog, section_label
from ..errors import CoupleDataIncomplete, InvalidResponse
from ..profiles import profile_compatibility
from ..scoring.normalizer import DEFAULT_ANTITHESIS_MARKERS, ResponseNormalizer

logger = logging.getLogger(__name__)

BAND_HIGH = "High"
BAND_MODERATE = "Moderate"
BAND_LOW = "Low"


def _round1(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _require_both(primary, spouse, couple_id=None) -> None:
    missing = [side for side, result in (("primary", primary), ("spouse", spouse)) if result is None]
    if missing:
        present = primary or spouse
        if couple_id is None and present is not None:
            couple_id = present.couple_id
        raise CoupleDataIncomplete(couple_id, missing)


@dataclass
class CompatibilityConfig:
    """
    Configuration for couple analysis.

    Attributes:
        close_threshold: Section delta below which a section is a strength area
        far_threshold: Section delta above which a section is a vulnerability area
        major_difference_threshold: Magnitude (0-1) a question must exceed to be reported
        max_major_differences: Cap on the reported major differences
        alpha: Weight of agreement (1-alpha for score level)
        level_mode: "geometric" or "minimum"
    """
    close_threshold: float = 15.0
    far_threshold: float = 25.0
    major_difference_threshold: float = 0.5
    max_major_differences: int = 10
    alpha: float = 0.6
    level_mode: str = "geometric"

    def validate(self) -> None:
        """Validate configuration values."""
        if self.close_threshold < 0 or self.far_threshold < 0:
            raise ValueError("Section thresholds must be >= 0")
        if self.close_threshold > self.far_threshold:
            raise ValueError(
                f"close_threshold ({self.close_threshold}) exceeds far_threshold ({self.far_threshold})"
            )
        if not 0 <= self.major_difference_threshold < 1:
            raise ValueError(f"major_difference_threshold must be in [0, 1), got {self.major_difference_threshold}")
        if self.max_major_differences < 0:
            raise ValueError(f"max_major_differences must be >= 0, got {self.max_major_differences}")
        if not 0 <= self.alpha <= 1:
            raise ValueError(f"alpha must be in [0, 1], got {self.alpha}")
        if self.level_mode not in ["geometric", "minimum"]:
            raise ValueError(f"Unknown level mode: {self.level_mode}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CompatibilityConfig":
        """Create from dictionary."""
        return cls(**d)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "CompatibilityConfig":
        """Create from main config dictionary."""
        couple_config = config.get("couple", {}) or {}
        return cls(
            close_threshold=couple_config.get("close_threshold", 15.0),
            far_threshold=couple_config.get("far_threshold", 25.0),
            major_difference_threshold=couple_config.get("major_difference_threshold", 0.5),
            max_major_differences=couple_config.get("max_major_differences", 10),
            alpha=couple_config.get("alpha", 0.6),
            level_mode=couple_config.get("level_mode", "geometric"),
        )


@dataclass(frozen=True)
class MajorDifference:
    """One question the spouses answered far apart."""
    question_id: int
    section: str
    question_text: str
    primary_response: str
    spouse_response: str
    magnitude: float
    weight: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "section": self.section,
            "question_text": self.question_text,
            "primary_response": self.primary_response,
            "spouse_response": self.spouse_response,
            "magnitude": float(self.magnitude),
            "weight": int(self.weight),
        }


@dataclass(frozen=True)
class SectionComparison:
    """Both spouses' percentages for one section."""
    section: str
    primary: float
    spouse: float
    delta: float
    band: str

    @property
    def label(self) -> str:
        return section_label(self.section)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "section": self.section,
            "label": self.label,
            "primary": float(self.primary),
            "spouse": float(self.spouse),
            "delta": float(self.delta),
            "band": self.band,
        }


@dataclass
class DifferenceAnalysis:
    """
    Section and question level differences between two spouses.

    Attributes:
        strength_areas: Section labels with delta below the close threshold
        vulnerability_areas: Section labels with delta above the far threshold
        major_differences: Per-question differences by magnitude descending, ties in catalog order
        section_comparisons: Every shared section, in catalog order
        different_responses: Questions both answered with different options
    """
    strength_areas: List[str]
    vulnerability_areas: List[str]
    major_differences: List[MajorDifference]
    section_comparisons: List[SectionComparison] = field(default_factory=list)
    different_responses: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strength_areas": list(self.strength_areas),
            "vulnerability_areas": list(self.vulnerability_areas),
            "major_differences": [d.to_dict() for d in self.major_differences],
            "section_comparisons": [c.to_dict() for c in self.section_comparisons],
            "different_responses": int(self.different_responses),
        }


@dataclass
class CoupleComparison:
    """Output of CoupleAnalyzer.compare."""
    difference_analysis: DifferenceAnalysis
    overall_compatibility: float
    compatibility_band: str


@dataclass
class CoupleReport:
    """
    Joint report for two completed assessments.

    Generated once both spouses are complete; a new submission by either
    spouse produces a new report rather than patching this one.
    """
    couple_id: Optional[str]
    primary: AssessmentResult
    spouse: AssessmentResult
    difference_analysis: DifferenceAnalysis
    overall_compatibility: float
    compatibility_band: str
    profile_compatibility: int
    recommendations: List[str]
    generated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "couple_id": self.couple_id,
            "primary_assessment": self.primary.to_dict(),
            "spouse_assessment": self.spouse.to_dict(),
            "difference_analysis": self.difference_analysis.to_dict(),
            "overall_compatibility": float(self.overall_compatibility),
            "compatibility_band": self.compatibility_band,
            "profile_compatibility": int(self.profile_compatibility),
            "recommendations": list(self.recommendations),
            "generated_at": self.generated_at.isoformat(),
        }


def compute_overall_compatibility(
    section_deltas: Sequence[float],
    overall_primary: float,
    overall_spouse: float,
    alpha: float = 0.6,
    level_mode: str = "geometric"
) -> float:
    """
    Blend section agreement and score level into one percentage.

    With no shared sections there is no agreement evidence and only the
    level term is used.

    Args:
        section_deltas: |primary - spouse| per shared section
        overall_primary: Primary spouse overall percentage
        overall_spouse: Other spouse overall percentage
        alpha: Agreement weight
        level_mode: "geometric" or "minimum"

    Returns:
        Compatibility in [0, 100], one decimal
    """
    a = min(max(float(overall_primary), 0.0), 100.0)
    b = min(max(float(overall_spouse), 0.0), 100.0)
    if level_mode == "geometric":
        level = math.sqrt(a * b)
    elif level_mode == "minimum":
        level = min(a, b)
    else:
        raise ValueError(f"Unknown level mode: {level_mode}")

    if len(section_deltas) == 0:
        return _round1(level)

    agreement = max(0.0, 100.0 - float(np.mean(np.abs(section_deltas))))
    return _round1(alpha * agreement + (1 - alpha) * level)


def compatibility_band(score: float) -> str:
    if score >= 80:
        return BAND_HIGH
    if score >= 60:
        return BAND_MODERATE
    return BAND_LOW


class CoupleAnalyzer:
    """
    Compares two assessments answered against the same catalog.

    Attributes:
        catalog: Question catalog used to look up options, weights and order
        config: CompatibilityConfig
        normalizer: ResponseNormalizer used to value each answer
    """

    def __init__(
        self,
        catalog: QuestionCatalog,
        config: Optional[CompatibilityConfig] = None,
        antithesis_markers: Optional[Sequence[str]] = None
    ):
        self.catalog = catalog
        self.config = config or CompatibilityConfig()
        self.config.validate()
        self.normalizer = ResponseNormalizer(
            DEFAULT_ANTITHESIS_MARKERS if antithesis_markers is None else antithesis_markers
        )

    def compare(
        self,
        primary: Optional[AssessmentResult],
        spouse: Optional[AssessmentResult]
    ) -> CoupleComparison:
        """
        Compute the difference analysis and overall compatibility.

        Args:
            primary: First spouse's completed assessment
            spouse: Second spouse's completed assessment

        Returns:
            CoupleComparison

        Raises:
            CoupleDataIncomplete: If either side has no completed result
        """
        _require_both(primary, spouse)
        comparisons = self._compare_sections(primary, spouse)
        major_differences, different_responses = self._compare_questions(primary, spouse)

        analysis = DifferenceAnalysis(
            strength_areas=[c.label for c in comparisons if c.band == BAND_HIGH],
            vulnerability_areas=[c.label for c in comparisons if c.band == BAND_LOW],
            major_differences=major_differences,
            section_comparisons=comparisons,
            different_responses=different_responses,
        )

        overall = compute_overall_compatibility(
            [c.delta for c in comparisons],
            primary.scores.overall_percentage,
            spouse.scores.overall_percentage,
            alpha=self.config.alpha,
            level_mode=self.config.level_mode,
        )
        return CoupleComparison(
            difference_analysis=analysis,
            overall_compatibility=overall,
            compatibility_band=compatibility_band(overall),
        )

    def build_report(
        self,
        primary: Optional[AssessmentResult],
        spouse: Optional[AssessmentResult],
        couple_id: Optional[str] = None,
        generated_at: Optional[datetime] = None
    ) -> CoupleReport:
        """
        Build the full couple report.

        Raises:
            CoupleDataIncomplete: If either side has no completed result
        """
        _require_both(primary, spouse, couple_id)

        if primary.scores.catalog_version != spouse.scores.catalog_version:
            logger.warning(
                f"Couple {couple_id}: comparing results from catalogs "
                f"{primary.scores.catalog_version} and {spouse.scores.catalog_version}"
            )

        comparison = self.compare(primary, spouse)
        analysis = comparison.difference_analysis
        report = CoupleReport(
            couple_id=couple_id if couple_id is not None else primary.couple_id,
            primary=primary,
            spouse=spouse,
            difference_analysis=analysis,
            overall_compatibility=comparison.overall_compatibility,
            compatibility_band=comparison.compatibility_band,
            profile_compatibility=profile_compatibility(
                primary.profiles.primary_profile, spouse.profiles.primary_profile
            ),
            recommendations=self._recommendations(comparison),
            generated_at=generated_at or datetime.now(timezone.utc),
        )
        logger.info(
            f"Couple {report.couple_id}: compatibility {report.overall_compatibility} "
            f"({report.compatibility_band}), {len(analysis.major_differences)} major differences"
        )
        return report

    def _compare_sections(
        self,
        primary: AssessmentResult,
        spouse: AssessmentResult
    ) -> List[SectionComparison]:
        comparisons = []
        for section, score in primary.scores.sections.items():
            other = spouse.scores.sections.get(section)
            if other is None:
                logger.debug(f"Section {section!r} missing from spouse result, not compared")
                continue
            delta = _round1(abs(score.percentage - other.percentage))
            if delta < self.config.close_threshold:
                band = BAND_HIGH
            elif delta > self.config.far_threshold:
                band = BAND_LOW
            else:
                band = BAND_MODERATE
            comparisons.append(SectionComparison(
                section=section,
                primary=score.percentage,
                spouse=other.percentage,
                delta=delta,
                band=band,
            ))
        return comparisons

    def _compare_questions(self, primary: AssessmentResult, spouse: AssessmentResult):
        candidates = []
        different = 0

        for position, question in enumerate(self.catalog):
            if not question.is_scored:
                continue
            response_a = primary.responses.get(question.id)
            response_b = spouse.responses.get(question.id)
            if response_a is None or response_b is None:
                continue

            try:
                label_a = self.normalizer.selected_label(question, response_a.selected_option)
                label_b = self.normalizer.selected_label(question, response_b.selected_option)
                value_a = self.normalizer.normalize(question, response_a.selected_option)
                value_b = self.normalizer.normalize(question, response_b.selected_option)
            except InvalidResponse as e:
                logger.debug(f"Question {question.id} not compared: {e}")
                continue

            if label_a != label_b:
                different += 1

            span = self.normalizer.value_span(question)
            if value_a == value_b or span == 0:
                continue
            magnitude = abs(value_a - value_b) / span
            if magnitude > self.config.major_difference_threshold:
                candidates.append((position, MajorDifference(
                    question_id=question.id,
                    section=question.section,
                    question_text=question.text,
                    primary_response=label_a,
                    spouse_response=label_b,
                    magnitude=round(magnitude, 4),
                    weight=question.weight,
                )))

        candidates.sort(key=lambda item: (-item[1].magnitude, item[0]))
        return [d for _, d in candidates[:self.config.max_major_differences]], different

    def _recommendations(self, comparison: CoupleComparison) -> List[str]:
        analysis = comparison.difference_analysis
        if comparison.compatibility_band == BAND_HIGH:
            recommendations = [
                "You share a strong common foundation. Keep building on the areas where you already agree."
            ]
        elif comparison.compatibility_band == BAND_MODERATE:
            recommendations = [
                "You agree on much, with some areas that deserve deliberate conversation before marriage."
            ]
        else:
            recommendations = [
                "Several expectations differ significantly. Work through them with a counselor or mentor couple."
            ]

        for label in analysis.vulnerability_areas:
            recommendations.append(f"Discuss your expectations for {label} together in detail.")
        if analysis.major_differences:
            recommendations.append(
                f"Review the {len(analysis.major_differences)} questions where your answers differ most."
            )
        return recommendations
