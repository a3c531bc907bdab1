"""
Error taxonomy for the assessment engine.

Recoverable conditions (InvalidResponse, InsufficientResponses,
CoupleDataIncomplete) are raised to the caller, who decides whether to
skip, count or surface them. ProfileConfigurationError is a startup
failure and should never be caught per request.
"""

from typing import Any, Optional, Sequence


class AssessmentError(Exception):
    """Base class for all assessment engine errors."""


class CatalogError(AssessmentError, ValueError):
    """A question catalog entry violates the catalog invariants."""


class InvalidResponse(AssessmentError):
    """
    A response references an unknown question or an option that is not
    part of the question's catalog entry.

    Attributes:
        question_id: Question the response points at (None if the key was unparseable)
        selected_option: The raw selected option
        reason: Human readable explanation
    """

    def __init__(self, question_id: Optional[Any], selected_option: Any, reason: str):
        self.question_id = question_id
        self.selected_option = selected_option
        self.reason = reason
        super().__init__(f"Invalid response for question {question_id}: {reason}")


class InsufficientResponses(AssessmentError):
    """Fewer valid answers than the minimum-answers threshold."""

    def __init__(self, answered: int, required: int):
        self.answered = answered
        self.required = required
        super().__init__(
            f"Only {answered} valid answers, at least {required} are required"
        )


class ProfileConfigurationError(AssessmentError):
    """The profile set cannot guarantee exactly one profile per category."""


class CoupleDataIncomplete(AssessmentError):
    """One or both assessments of a couple have no completed score result."""

    def __init__(self, couple_id: Optional[str], missing: Sequence[str]):
        self.couple_id = couple_id
        self.missing = list(missing)
        super().__init__(
            f"Couple {couple_id} is pending: no score result for {', '.join(self.missing)}"
        )
