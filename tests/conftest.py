"""
Shared fixtures and mock factories for the assessment engine tests.

The mock catalog has three scored sections and one Input question:

    Section I: Your Foundation   Q1 M w4 (4 opts), Q2 D w10, Q3 M w3   possible 17
    Section II: Your Faith Life  Q4 M w4 (4 opts), Q5 D w5,  Q6 M w3   possible 12
    Section III: Your Finances   Q7 M w4, Q8 D w5, Q9 M w3, Q10 M w3  possible 15
    Section IV: Your Vow         Q11 I (never scored)

Ten scored questions in total, so answering all of them exactly meets
the default minimum-answers threshold.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from assessment_engine.assessment import AssessmentScorer
from assessment_engine.catalog import Demographics, Question, QuestionCatalog, QuestionType
from assessment_engine.profiles import ProfileSet
from assessment_engine.scoring import ScoreResult, SectionScore

ANTITHESIS = "I do not agree with this statement"
FOUR = ("Never", "Sometimes", "Often", "Always")
THREE = ("Low", "Mid", "High")

CONFIG_PATH = project_root / "configs" / "config.yaml"
CATALOG_PATH = project_root / "configs" / "catalog.yaml"
PROFILES_PATH = project_root / "configs" / "profiles.yaml"


def _mc(qid, section, weight, options, text=""):
    return Question(id=qid, section=section, type=QuestionType.MULTIPLE_CHOICE,
                    options=tuple(options), weight=weight, text=text or f"Question {qid}")


def _decl(qid, section, weight, statement):
    return Question(id=qid, section=section, type=QuestionType.DECLARATION,
                    options=(statement, ANTITHESIS), weight=weight, text=statement)


def create_mock_catalog(version: str = "test-1") -> QuestionCatalog:
    """Create the three-section mock catalog described in the module docstring."""
    foundation = "Section I: Your Foundation"
    faith = "Section II: Your Faith Life"
    finances = "Section III: Your Finances"
    return QuestionCatalog([
        _mc(1, foundation, 4, FOUR),
        _decl(2, foundation, 10, "Our faith is our foundation."),
        _mc(3, foundation, 3, THREE),
        _mc(4, faith, 4, FOUR),
        _decl(5, faith, 5, "We will worship together."),
        _mc(6, faith, 3, THREE),
        _mc(7, finances, 4, FOUR),
        _decl(8, finances, 5, "We will keep a shared budget."),
        _mc(9, finances, 3, THREE),
        _mc(10, finances, 3, THREE),
        Question(id=11, section="Section IV: Your Vow", type=QuestionType.INPUT,
                 options=(), weight=0, text="Write your vow."),
    ], version=version)


def create_mock_responses(catalog: QuestionCatalog, choice: str = "max",
                          overrides: Optional[Dict[int, object]] = None) -> Dict[str, object]:
    """
    Raw response map answering every question.

    Args:
        catalog: Catalog to answer
        choice: "max" picks the highest-valued option, "min" the lowest
        overrides: Question id -> raw option replacing the generated answer
    """
    responses: Dict[str, object] = {}
    for question in catalog:
        if question.type is QuestionType.INPUT:
            responses[f"Q{question.id}"] = "We promise to keep learning."
        elif question.type is QuestionType.DECLARATION:
            responses[f"Q{question.id}"] = question.options[0] if choice == "max" else ANTITHESIS
        else:
            responses[f"Q{question.id}"] = question.options[-1] if choice == "max" else question.options[0]
    for qid, option in (overrides or {}).items():
        responses[f"Q{qid}"] = option
    return responses


def create_mock_demographics(email: str = "alex@example.com", gender: Optional[str] = "female") -> Demographics:
    """Create mock demographics."""
    return Demographics(gender=gender, first_name="Alex", last_name="Morgan", email=email)


def create_score_result(percentages: Dict[str, float], overall: Optional[float] = None,
                        catalog_version: str = "test-1") -> ScoreResult:
    """
    ScoreResult with the given section percentages (possible fixed at 1000).

    Section keys may be full names or labels.
    """
    sections = {
        name: SectionScore(earned=int(round(pct * 10)), possible=1000, percentage=pct)
        for name, pct in percentages.items()
    }
    earned = sum(s.earned for s in sections.values())
    possible = sum(s.possible for s in sections.values())
    if overall is None:
        overall = round(earned * 100 / possible, 1) if possible else 0.0
    return ScoreResult(
        overall_percentage=overall,
        total_earned=earned,
        total_possible=possible,
        sections=sections,
        strengths=[],
        improvement_areas=[],
        answered_count=10,
        catalog_version=catalog_version,
    )


def create_mock_profile_set() -> ProfileSet:
    """Small profile set with overlapping rules to exercise evaluation order."""
    return ProfileSet.from_dict({
        "defaults": {"unisex": "Balanced", "female": "Communicator", "male": "Provider"},
        "gender_aliases": {"woman": "female", "man": "male"},
        "profiles": {
            "unisex": [
                {"id": 1, "name": "Devoted", "family": "traditional",
                 "criteria": [{"section": "Your Foundation", "min": 90},
                              {"section": "Your Faith Life", "min": 85}],
                 "ideal_matches": ["Protector"]},
                {"id": 2, "name": "Faithful", "family": "traditional",
                 "criteria": [{"section": "Your Faith Life", "min": 80}]},
                {"id": 3, "name": "Seeker", "family": "independent",
                 "criteria": [{"section": "Your Faith Life", "max": 40}]},
                {"id": 4, "name": "Balanced", "family": "moderate",
                 "criteria": [{"section": "Your Finances", "min": 101}]},
            ],
            "female": [
                {"id": 5, "name": "Homemaker", "family": "traditional",
                 "criteria": [{"section": "Your Foundation", "min": 75}]},
                {"id": 6, "name": "Communicator", "family": "moderate",
                 "criteria": [{"section": "Your Finances", "min": 101}]},
            ],
            "male": [
                {"id": 7, "name": "Protector", "family": "traditional",
                 "criteria": [{"section": "Your Foundation", "min": 85}]},
                {"id": 8, "name": "Provider", "family": "moderate",
                 "criteria": [{"section": "Your Finances", "min": 101}]},
            ],
        },
    })


@pytest.fixture
def catalog():
    return create_mock_catalog()


@pytest.fixture
def profile_set():
    return create_mock_profile_set()


@pytest.fixture
def scorer(catalog, profile_set):
    return AssessmentScorer(catalog, profile_set)


@pytest.fixture
def completed_at():
    return datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
