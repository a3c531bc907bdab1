"""
Section aggregation.

Every section with at least one scored question starts at
earned=0, possible=sum(weights), so sections the respondent skipped
entirely still appear with percentage 0. Unanswered questions earn 0.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Any

from ..catalog.schema import Question, QuestionCatalog

logger = logging.getLogger(__name__)


def round_percentage(earned: int, possible: int) -> float:
    """earned / possible as a percentage, rounded half-up to one decimal (0 if possible is 0)."""
    if possible <= 0:
        return 0.0
    ratio = Decimal(earned) * 100 / Decimal(possible)
    return float(ratio.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class SectionScore:
    """Earned/possible points for one section."""
    earned: int
    possible: int
    percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "earned": int(self.earned),
            "possible": int(self.possible),
            "percentage": float(self.percentage),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SectionScore":
        return cls(earned=int(d["earned"]), possible=int(d["possible"]),
                   percentage=float(d["percentage"]))


class SectionAggregator:
    """
    Accumulates earned points per section for one respondent.

    Attributes:
        catalog: Catalog the possible points are derived from
    """

    def __init__(self, catalog: QuestionCatalog):
        self.catalog = catalog
        self._earned: Dict[str, int] = OrderedDict((s, 0) for s in catalog.sections())
        self._possible: Dict[str, int] = OrderedDict((s, 0) for s in catalog.sections())
        for question in catalog.scored_questions():
            self._possible[question.section] += question.weight

    def add(self, question: Question, value: int) -> None:
        """Record the value earned on a scored question."""
        if not question.is_scored:
            return
        if not 0 <= value <= question.weight:
            raise ValueError(f"Value {value} outside [0, {question.weight}] for question {question.id}")
        self._earned[question.section] += value

    @property
    def total_earned(self) -> int:
        return sum(self._earned.values())

    @property
    def total_possible(self) -> int:
        return sum(self._possible.values())

    def section_scores(self) -> Dict[str, SectionScore]:
        """Per-section scores in catalog order."""
        return OrderedDict(
            (section, SectionScore(
                earned=self._earned[section],
                possible=self._possible[section],
                percentage=round_percentage(self._earned[section], self._possible[section]),
            ))
            for section in self._earned
        )
