"""
Score calculation for one respondent.

Drives normalization and section aggregation and produces a ScoreResult.

Key Design Decisions:
- The overall percentage is computed from raw point totals, not as an
  average of section percentages (sections carry unequal weight)
- Malformed responses are skipped and reported in diagnostics in batch
  mode, but raise immediately in strict (live submission) mode
- Fewer than MIN_ANSWERED_QUESTIONS valid answers never produce a result
- Identical (catalog, responses) always yield an identical ScoreResult
"""

import logging
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Mapping, Optional

from .. import ENGINE_VERSION
from ..catalog.schema import QuestionCatalog, Response, section_label
from ..errors import InsufficientResponses, InvalidResponse
from .aggregator import SectionAggregator, SectionScore, round_percentage
from .normalizer import DEFAULT_ANTITHESIS_MARKERS, ResponseNormalizer

logger = logging.getLogger(__name__)

# Callers (partial-save UI, admin completeness checks) depend on this value
MIN_ANSWERED_QUESTIONS = 10


@dataclass
class ScoringConfig:
    """
    Configuration for score calculation.

    Attributes:
        min_answered_questions: Valid scored answers required for a result
        strengths_count: Top-ranked sections reported as strengths
        improvement_count: Bottom-ranked sections reported as improvement areas
        antithesis_markers: Negation phrases that score a Declaration as 0
    """
    min_answered_questions: int = MIN_ANSWERED_QUESTIONS
    strengths_count: int = 3
    improvement_count: int = 2
    antithesis_markers: List[str] = field(default_factory=lambda: list(DEFAULT_ANTITHESIS_MARKERS))

    def validate(self) -> None:
        """Validate configuration values."""
        if self.min_answered_questions < 1:
            raise ValueError(f"min_answered_questions must be >= 1, got {self.min_answered_questions}")
        if self.strengths_count < 0 or self.improvement_count < 0:
            raise ValueError("strengths_count and improvement_count must be >= 0")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ScoringConfig":
        """Create from dictionary."""
        return cls(**d)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ScoringConfig":
        """Create from main config dictionary."""
        scoring_config = config.get("scoring", {}) or {}
        return cls(
            min_answered_questions=scoring_config.get("min_answered_questions", MIN_ANSWERED_QUESTIONS),
            strengths_count=scoring_config.get("strengths_count", 3),
            improvement_count=scoring_config.get("improvement_count", 2),
            antithesis_markers=list(scoring_config.get("antithesis_markers", DEFAULT_ANTITHESIS_MARKERS)),
        )


@dataclass
class ScoreResult:
    """
    Scored assessment for one respondent.

    Attributes:
        overall_percentage: 0-100, one decimal
        total_earned: Points earned across all sections
        total_possible: Points obtainable across all sections
        sections: Section name -> SectionScore, in catalog order
        strengths: Labels of the highest-ranked sections
        improvement_areas: Labels of the lowest-ranked sections
        answered_count: Valid scored answers that contributed
        catalog_version: Catalog the result was computed from
        engine_version: Scoring algorithm version
        diagnostics: One message per skipped response
    """
    overall_percentage: float
    total_earned: int
    total_possible: int
    sections: Dict[str, SectionScore]
    strengths: List[str]
    improvement_areas: List[str]
    answered_count: int
    catalog_version: str
    engine_version: str = ENGINE_VERSION
    diagnostics: List[str] = field(default_factory=list)

    def percentage_for(self, section: str) -> Optional[float]:
        """
        Percentage of a section looked up by full name or by label.

        Returns None if the section is not part of this result.
        """
        if section in self.sections:
            return self.sections[section].percentage
        wanted = section_label(section).casefold()
        for name, score in self.sections.items():
            if section_label(name).casefold() == wanted:
                return score.percentage
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "overall_percentage": float(self.overall_percentage),
            "total_earned": int(self.total_earned),
            "total_possible": int(self.total_possible),
            "sections": {name: score.to_dict() for name, score in self.sections.items()},
            "strengths": list(self.strengths),
            "improvement_areas": list(self.improvement_areas),
            "answered_count": int(self.answered_count),
            "catalog_version": self.catalog_version,
            "engine_version": self.engine_version,
            "diagnostics": list(self.diagnostics),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ScoreResult":
        """Create from dictionary."""
        return cls(
            overall_percentage=float(d["overall_percentage"]),
            total_earned=int(d["total_earned"]),
            total_possible=int(d["total_possible"]),
            sections={name: SectionScore.from_dict(s) for name, s in d["sections"].items()},
            strengths=list(d.get("strengths", [])),
            improvement_areas=list(d.get("improvement_areas", [])),
            answered_count=int(d.get("answered_count", 0)),
            catalog_version=str(d.get("catalog_version", "")),
            engine_version=str(d.get("engine_version", "")),
            diagnostics=list(d.get("diagnostics", [])),
        )


class ScoreCalculator:
    """
    Computes ScoreResults against one catalog.

    Attributes:
        catalog: Question catalog
        config: ScoringConfig
        normalizer: ResponseNormalizer built from the config
    """

    def __init__(
        self,
        catalog: QuestionCatalog,
        config: Optional[ScoringConfig] = None,
        engine_version: str = ENGINE_VERSION
    ):
        self.catalog = catalog
        self.config = config or ScoringConfig()
        self.config.validate()
        self.engine_version = engine_version
        self.normalizer = ResponseNormalizer(self.config.antithesis_markers)

        unscored = self.normalizer.declarations_without_antithesis(catalog)
        if unscored:
            logger.warning(
                f"Catalog {catalog.version}: declarations {unscored} have no recognisable antithesis "
                f"and always score full weight"
            )

    def calculate(
        self,
        responses: Mapping[int, Response],
        strict: bool = False,
        context: str = ""
    ) -> ScoreResult:
        """
        Score one respondent.

        Args:
            responses: Question id -> Response (see catalog.parse_response_map)
            strict: Raise on the first invalid response instead of skipping it
            context: Respondent identifier used in log messages

        Returns:
            ScoreResult

        Raises:
            InvalidResponse: In strict mode, for an unknown question or option
            InsufficientResponses: If fewer valid answers than the threshold remain
        """
        aggregator = SectionAggregator(self.catalog)
        diagnostics: List[str] = []
        answered = 0

        for question_id in sorted(responses):
            response = responses[question_id]
            question = self.catalog.get(response.question_id)
            try:
                if question is None:
                    raise InvalidResponse(response.question_id, response.selected_option,
                                          f"unknown question id in catalog {self.catalog.version}")
                value = self.normalizer.normalize(question, response.selected_option)
            except InvalidResponse as e:
                if strict:
                    raise
                logger.warning(f"Skipping response{' for ' + context if context else ''}: {e}")
                diagnostics.append(str(e))
                continue

            if question.is_scored:
                aggregator.add(question, value)
                answered += 1

        if answered < self.config.min_answered_questions:
            raise InsufficientResponses(answered, self.config.min_answered_questions)

        sections = aggregator.section_scores()
        strengths, improvement_areas = self._rank_sections(sections)

        return ScoreResult(
            overall_percentage=round_percentage(aggregator.total_earned, aggregator.total_possible),
            total_earned=aggregator.total_earned,
            total_possible=aggregator.total_possible,
            sections=sections,
            strengths=strengths,
            improvement_areas=improvement_areas,
            answered_count=answered,
            catalog_version=self.catalog.version,
            engine_version=self.engine_version,
            diagnostics=diagnostics,
        )

    def _rank_sections(self, sections: Dict[str, SectionScore]):
        """
        Rank sections by percentage, ties broken by catalog order.

        Improvement areas come from the sections left after strengths
        were taken, so a section is never reported as both.
        """
        ranked = sorted(
            enumerate(sections.items()),
            key=lambda item: (-item[1][1].percentage, item[0])
        )
        labels = [section_label(name) for _, (name, _) in ranked]

        n_strengths = self.config.strengths_count
        strengths = labels[:n_strengths]
        remaining = labels[n_strengths:]
        n_improvement = min(self.config.improvement_count, len(remaining))
        improvement_areas = remaining[len(remaining) - n_improvement:] if n_improvement else []
        return strengths, improvement_areas


def calculate_scores(
    catalog: QuestionCatalog,
    responses: Mapping[int, Response],
    config: Optional[ScoringConfig] = None,
    strict: bool = False
) -> ScoreResult:
    """Score one respondent with a throwaway calculator."""
    return ScoreCalculator(catalog, config).calculate(responses, strict=strict)
