"""
Response normalization.

Maps a selected option to the numeric value earned for a question:

    MultipleChoice: value = min(option_index + 1, weight)
    Declaration:    value = 0 for the antithesis, weight otherwise
    Input:          value = 0, never counted as possible points

Scoring is index-based rather than label-based so that minor edits to
option wording do not change historical values.
"""

import logging
from typing import Iterable, List, Optional, Union

from ..catalog.schema import Question, QuestionType
from ..errors import InvalidResponse

logger = logging.getLogger(__name__)

DEFAULT_ANTITHESIS_MARKERS = ("I do not agree with this statement",)


def _fold(text: str) -> str:
    return " ".join(str(text).split()).casefold()


class ResponseNormalizer:
    """
    Converts selected options into numeric values.

    Attributes:
        antithesis_markers: Casefolded negation phrases that score a
            Declaration question as 0
    """

    def __init__(self, antithesis_markers: Optional[Iterable[str]] = None):
        markers = DEFAULT_ANTITHESIS_MARKERS if antithesis_markers is None else antithesis_markers
        self.antithesis_markers = frozenset(_fold(m) for m in markers)

    def resolve_option(self, question: Question, selected_option: Union[str, int]) -> int:
        """
        Find the 0-based index of the selected option.

        Exact label matches win; otherwise whitespace and case differences
        are tolerated. Integers are taken as 0-based indexes.

        Raises:
            InvalidResponse: If the option is not part of the question
        """
        if isinstance(selected_option, bool):
            raise InvalidResponse(question.id, selected_option, "boolean is not a valid option")

        if isinstance(selected_option, int):
            if 0 <= selected_option < len(question.options):
                return selected_option
            raise InvalidResponse(
                question.id, selected_option,
                f"option index {selected_option} out of range (0-{len(question.options) - 1})"
            )

        if selected_option in question.options:
            return question.options.index(selected_option)

        folded = _fold(selected_option)
        for index, option in enumerate(question.options):
            if _fold(option) == folded:
                return index

        raise InvalidResponse(question.id, selected_option, "option is not in the catalog entry")

    def is_antithesis(self, question: Question, option: str) -> bool:
        folded = _fold(option)
        if any(folded == _fold(negation) for negation in question.antithesis):
            return True
        return folded in self.antithesis_markers

    def declarations_without_antithesis(self, questions: Iterable[Question]) -> List[int]:
        """Ids of Declaration questions where no option would score 0."""
        return [
            q.id for q in questions
            if q.type is QuestionType.DECLARATION
            and not any(self.is_antithesis(q, option) for option in q.options)
        ]

    def normalize(self, question: Question, selected_option: Union[str, int]) -> int:
        """
        Numeric value earned by a response.

        Args:
            question: Catalog entry
            selected_option: Option label or 0-based index

        Returns:
            Value in [0, question.weight] (always 0 for Input questions)

        Raises:
            InvalidResponse: If the option is not valid for a scored question
        """
        if question.type is QuestionType.INPUT:
            return 0

        index = self.resolve_option(question, selected_option)

        if question.type is QuestionType.DECLARATION:
            if self.is_antithesis(question, question.options[index]):
                return 0
            return question.weight

        return min(index + 1, question.weight)

    def selected_label(self, question: Question, selected_option: Union[str, int]) -> str:
        """Option text for display; free text is returned as given."""
        if question.type is QuestionType.INPUT:
            return str(selected_option)
        return question.options[self.resolve_option(question, selected_option)]

    @staticmethod
    def max_value(question: Question) -> int:
        """Highest value any option can earn for this question."""
        if question.type is QuestionType.INPUT:
            return 0
        if question.type is QuestionType.DECLARATION:
            return question.weight
        return min(len(question.options), question.weight)

    @staticmethod
    def value_span(question: Question) -> int:
        """
        Largest possible difference between two values of this question.

        Used as the scale for comparing two spouses' answers. A
        single-option MultipleChoice question has span 0.
        """
        if question.type is QuestionType.INPUT:
            return 0
        if question.type is QuestionType.DECLARATION:
            return question.weight
        return min(len(question.options), question.weight) - 1


def normalize(
    question: Question,
    selected_option: Union[str, int],
    antithesis_markers: Optional[Iterable[str]] = None
) -> int:
    """Normalize one response with a throwaway normalizer."""
    return ResponseNormalizer(antithesis_markers).normalize(question, selected_option)
