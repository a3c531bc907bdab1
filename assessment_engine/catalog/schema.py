"""
Data structures for the question catalog and respondent input.

Everything that arrives from outside the engine (catalog files, stored
response maps, demographic forms) is converted here into typed, immutable
records. The scoring core only ever sees these records.

Raw response maps come in several historical shapes:
- keyed by integer id, by "12" or by "Q12"
- valued by an option label, a 0-based option index, or a mapping with
  "option"/"selectedOption" and an optional precomputed "value"
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from ..errors import CatalogError, InvalidResponse

logger = logging.getLogger(__name__)

_SECTION_PREFIX = re.compile(r"^\s*Section\s+[IVXLC]+\s*:\s*", re.IGNORECASE)
_QUESTION_KEY = re.compile(r"^\s*[Qq]?\s*(\d+)\s*$")


class QuestionType(Enum):
    """Question types and how they are scored."""
    MULTIPLE_CHOICE = "MultipleChoice"  # ordinal, value = option index + 1
    DECLARATION = "Declaration"         # all-or-nothing agree/antithesis
    INPUT = "Input"                     # free text, never scored

    @classmethod
    def parse(cls, value: Union[str, "QuestionType"]) -> "QuestionType":
        """Accept enum members, full names and the single-letter codes M/D/I."""
        if isinstance(value, cls):
            return value
        codes = {"M": cls.MULTIPLE_CHOICE, "D": cls.DECLARATION, "I": cls.INPUT}
        text = str(value).strip()
        if text.upper() in codes:
            return codes[text.upper()]
        for member in cls:
            if member.value.lower() == text.lower():
                return member
        raise CatalogError(f"Unknown question type: {value!r}")

    @property
    def is_scored(self) -> bool:
        return self is not QuestionType.INPUT


def section_label(section: str) -> str:
    """
    Human-readable label for a section name.

    "Section II: Your Faith Life" -> "Your Faith Life"
    """
    return _SECTION_PREFIX.sub("", section).strip()


@dataclass(frozen=True)
class Question:
    """
    Immutable catalog entry.

    Attributes:
        id: Stable identity, unique within a catalog version
        section: Unit of aggregation
        subsection: Finer grouping label, informational only
        type: QuestionType
        text: Question wording shown to respondents
        options: Ordered selectable labels (order matters for MultipleChoice)
        weight: Maximum points obtainable
        antithesis: Explicit negation options of a Declaration question
            (a single label is accepted and stored as a one-element tuple)
    """
    id: int
    section: str
    type: QuestionType
    options: tuple
    weight: int
    subsection: str = ""
    text: str = ""
    antithesis: tuple = ()

    def __post_init__(self):
        """Validate the catalog invariants."""
        if self.type.is_scored:
            if len(self.options) < 1:
                raise CatalogError(f"Question {self.id} has no options")
            if not isinstance(self.weight, int) or self.weight <= 0:
                raise CatalogError(f"Question {self.id} must have a positive integer weight, got {self.weight}")
        if isinstance(self.antithesis, str):
            object.__setattr__(self, "antithesis", (self.antithesis,))
        else:
            object.__setattr__(self, "antithesis", tuple(self.antithesis or ()))
        if self.type is QuestionType.DECLARATION:
            if len(self.options) < 2:
                raise CatalogError(f"Declaration {self.id} needs an affirmative option and an antithesis")
            if len(self.antithesis) >= len(self.options):
                raise CatalogError(f"Declaration {self.id} has no affirmative option left")
        for option in self.antithesis:
            if option not in self.options:
                raise CatalogError(f"Question {self.id} antithesis {option!r} is not one of its options")

    @property
    def is_scored(self) -> bool:
        return self.type.is_scored

    @property
    def label(self) -> str:
        return section_label(self.section)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {
            "id": self.id,
            "section": self.section,
            "subsection": self.subsection,
            "type": self.type.value,
            "text": self.text,
            "options": list(self.options),
            "weight": self.weight,
        }
        if len(self.antithesis) == 1:
            result["antithesis"] = self.antithesis[0]
        elif self.antithesis:
            result["antithesis"] = list(self.antithesis)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        """Create from a raw catalog mapping."""
        try:
            question_id = int(data["id"])
            section = str(data["section"])
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogError(f"Catalog entry is missing a valid id/section: {data!r}") from e

        qtype = QuestionType.parse(data.get("type", "M"))
        options = data.get("options") or []
        if isinstance(options, str):
            options = [opt.strip() for opt in options.split("|") if opt.strip()]
        weight = data.get("weight", 0 if qtype is QuestionType.INPUT else None)
        antithesis = data.get("antithesis") or ()
        if isinstance(antithesis, str):
            antithesis = [opt.strip() for opt in antithesis.split("|") if opt.strip()]

        return cls(
            id=question_id,
            section=section,
            subsection=str(data.get("subsection") or ""),
            type=qtype,
            text=str(data.get("text") or ""),
            options=tuple(str(opt) for opt in options),
            weight=int(weight) if weight is not None else 0,
            antithesis=tuple(str(opt) for opt in antithesis),
        )


class QuestionCatalog:
    """
    Versioned, ordered collection of questions.

    Catalog order is significant: it breaks ties when sections are ranked
    and when major differences have equal magnitude.

    Attributes:
        version: Marker stored alongside every result computed from this catalog
    """

    def __init__(self, questions: Sequence[Question], version: str):
        self.version = str(version)
        self._questions: tuple = tuple(questions)
        self._by_id: Dict[int, Question] = {}
        for question in self._questions:
            if question.id in self._by_id:
                raise CatalogError(f"Duplicate question id {question.id} in catalog {version}")
            self._by_id[question.id] = question

        section_order: List[str] = []
        for question in self._questions:
            if question.is_scored and question.section not in section_order:
                section_order.append(question.section)
        self._sections = tuple(section_order)

        logger.debug(f"Catalog {self.version}: {len(self._questions)} questions, "
                     f"{len(self._sections)} scored sections")

    def __len__(self) -> int:
        return len(self._questions)

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions)

    def __contains__(self, question_id: int) -> bool:
        return question_id in self._by_id

    def get(self, question_id: int) -> Optional[Question]:
        return self._by_id.get(question_id)

    def sections(self) -> List[str]:
        """Sections holding at least one scored question, in catalog order."""
        return list(self._sections)

    def scored_questions(self) -> List[Question]:
        return [q for q in self._questions if q.is_scored]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "questions": [q.to_dict() for q in self._questions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuestionCatalog":
        if "questions" not in data:
            raise CatalogError("Catalog data has no 'questions' list")
        questions = [Question.from_dict(entry) for entry in data["questions"]]
        return cls(questions, version=data.get("version", "unversioned"))


@dataclass(frozen=True)
class Response:
    """
    One respondent's answer to one question.

    Attributes:
        question_id: Foreign key into the catalog
        selected_option: Option label, or 0-based option index
        precomputed_value: Value stored by older releases (informational, never trusted)
    """
    question_id: int
    selected_option: Union[str, int]
    precomputed_value: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {"option": self.selected_option}
        if self.precomputed_value is not None:
            result["value"] = self.precomputed_value
        return result


@dataclass
class Demographics:
    """
    Respondent demographics needed by the engine.

    Only gender influences scoring (gender-specific profiles); the rest is
    carried for reporting.
    """
    gender: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def normalized_gender(self) -> Optional[str]:
        """Gender lowercased and trimmed, None if blank."""
        if self.gender is None:
            return None
        value = str(self.gender).strip().lower()
        return value or None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> Dict[str, Any]:
        result = dict(self.extra)
        result.update({
            "gender": self.gender,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
        })
        return result

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Demographics":
        """Create from a stored form, accepting camelCase and snake_case keys."""
        data = dict(data or {})
        known = {"gender", "first_name", "firstName", "last_name", "lastName", "email"}
        return cls(
            gender=data.get("gender"),
            first_name=data.get("first_name", data.get("firstName", "")) or "",
            last_name=data.get("last_name", data.get("lastName", "")) or "",
            email=data.get("email", "") or "",
            extra={k: v for k, v in data.items() if k not in known},
        )


def parse_question_key(key: Any) -> Optional[int]:
    """Parse 12, "12" or "Q12" into a question id. Returns None if unparseable."""
    if isinstance(key, bool):
        return None
    if isinstance(key, int):
        return key
    match = _QUESTION_KEY.match(str(key))
    if match:
        return int(match.group(1))
    return None


def _parse_value(question_id: int, raw: Any) -> Response:
    if isinstance(raw, bool):
        raise InvalidResponse(question_id, raw, "boolean is not a valid option")
    if isinstance(raw, (str, int)):
        return Response(question_id=question_id, selected_option=raw)
    if isinstance(raw, dict):
        option = None
        for key in ("option", "selectedOption", "selected_option"):
            if raw.get(key) is not None:
                option = raw[key]
                break
        if option is None or isinstance(option, bool) or not isinstance(option, (str, int)):
            raise InvalidResponse(question_id, raw, "no selected option")
        value = raw.get("value")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            value = None
        return Response(question_id=question_id, selected_option=option, precomputed_value=value)
    raise InvalidResponse(question_id, raw, f"unsupported response shape {type(raw).__name__}")


def parse_response_map(
    raw: Optional[Dict[Any, Any]],
    strict: bool = False,
    diagnostics: Optional[List[str]] = None
) -> Dict[int, Response]:
    """
    Convert a raw response map into typed responses keyed by question id.

    Args:
        raw: Stored or submitted response map in any historical shape
        strict: Raise InvalidResponse on the first unparseable entry
        diagnostics: Optional list collecting one message per skipped entry

    Returns:
        Dictionary of question id -> Response

    Raises:
        InvalidResponse: In strict mode, for unparseable keys or values
    """
    responses: Dict[int, Response] = {}
    for key, value in (raw or {}).items():
        try:
            question_id = parse_question_key(key)
            if question_id is None:
                raise InvalidResponse(key, value, "unrecognised question key")
            if question_id in responses:
                raise InvalidResponse(question_id, value, f"duplicate response (key {key!r})")
            responses[question_id] = _parse_value(question_id, value)
        except InvalidResponse as e:
            if strict:
                raise
            logger.warning(f"Skipping response: {e}")
            if diagnostics is not None:
                diagnostics.append(str(e))
    return responses
