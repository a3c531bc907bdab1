"""
Single-respondent assessment pipeline.

Chains boundary parsing, score calculation and profile matching:

    raw responses -> parse_response_map -> ScoreCalculator -> ProfileMatcher

The scorer holds the loaded catalog and profile set and is shared by live
submissions (strict) and batch recalculation (lenient).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from . import ENGINE_VERSION
from .catalog import Demographics, QuestionCatalog, Response, load_question_catalog, parse_response_map
from .configs import resolve_path
from .profiles import ProfileMatch, ProfileMatcher, ProfileSet, load_profile_set
from .scoring import ScoreCalculator, ScoreResult, ScoringConfig

logger = logging.getLogger(__name__)


@dataclass
class AssessmentResult:
    """
    Demographics, score result and profiles for one respondent.

    Attributes:
        demographics: Respondent demographics
        responses: Parsed responses the scores were computed from
        scores: ScoreResult
        profiles: Assigned unisex and gender profiles
        completed_at: When the assessment was marked complete
        couple_id: Shared identifier linking spouses, if any
    """
    demographics: Demographics
    responses: Dict[int, Response]
    scores: ScoreResult
    profiles: ProfileMatch
    completed_at: Optional[datetime] = None
    couple_id: Optional[str] = None
    diagnostics: List[str] = field(default_factory=list)

    @property
    def email(self) -> str:
        return self.demographics.email

    def to_dict(self, include_responses: bool = False) -> Dict[str, Any]:
        result = {
            "demographics": self.demographics.to_dict(),
            "scores": self.scores.to_dict(),
            "profiles": self.profiles.to_dict(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "couple_id": self.couple_id,
        }
        if include_responses:
            result["responses"] = {str(qid): r.to_dict() for qid, r in sorted(self.responses.items())}
        return result


class AssessmentScorer:
    """
    Scores respondents against one catalog and profile set.

    Attributes:
        catalog: Question catalog
        calculator: ScoreCalculator bound to the catalog
        matcher: ProfileMatcher bound to the profile set
    """

    def __init__(
        self,
        catalog: QuestionCatalog,
        profile_set: ProfileSet,
        scoring_config: Optional[ScoringConfig] = None,
        engine_version: str = ENGINE_VERSION
    ):
        self.catalog = catalog
        self.calculator = ScoreCalculator(catalog, scoring_config, engine_version=engine_version)
        self.matcher = ProfileMatcher(profile_set)
        logger.info(f"Initialized AssessmentScorer (catalog={catalog.version}, engine={engine_version})")

    @property
    def engine_version(self) -> str:
        return self.calculator.engine_version

    @classmethod
    def from_config(cls, config: Dict[str, Any], config_path: str = ".") -> "AssessmentScorer":
        """
        Load catalog and profiles named in the main config.

        Raises:
            FileNotFoundError: If a referenced file is missing
            ProfileConfigurationError: If the profile set has no default for a category
        """
        catalog = load_question_catalog(str(resolve_path(config_path, config["catalog"]["path"])))
        profile_set = load_profile_set(str(resolve_path(config_path, config["profiles"]["path"])))
        engine_version = (config.get("recalculation") or {}).get("engine_version", ENGINE_VERSION)
        return cls(catalog, profile_set, ScoringConfig.from_config(config), engine_version=str(engine_version))

    def score(
        self,
        demographics: Demographics,
        raw_responses: Dict[Any, Any],
        strict: bool = True,
        completed_at: Optional[datetime] = None,
        couple_id: Optional[str] = None
    ) -> AssessmentResult:
        """
        Score one respondent and assign profiles.

        Args:
            demographics: Respondent demographics (gender drives gender profiles)
            raw_responses: Response map in any supported raw shape
            strict: Reject invalid responses instead of skipping them
            completed_at: Completion timestamp carried into the result
            couple_id: Couple identifier carried into the result

        Returns:
            AssessmentResult

        Raises:
            InvalidResponse: In strict mode
            InsufficientResponses: If too few valid answers remain
        """
        diagnostics: List[str] = []
        responses = parse_response_map(raw_responses, strict=strict, diagnostics=diagnostics)
        scores = self.calculator.calculate(responses, strict=strict, context=demographics.email)
        scores.diagnostics = diagnostics + scores.diagnostics
        profiles = self.matcher.match(scores, demographics.normalized_gender)

        return AssessmentResult(
            demographics=demographics,
            responses=responses,
            scores=scores,
            profiles=profiles,
            completed_at=completed_at,
            couple_id=couple_id,
            diagnostics=list(scores.diagnostics),
        )
