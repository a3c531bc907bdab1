"""
Question catalog and respondent input records.

The catalog is static, versioned data loaded once; responses and
demographics are normalized here at the system boundary.
"""

from .schema import (
    QuestionType,
    Question,
    QuestionCatalog,
    Response,
    Demographics,
    parse_response_map,
    parse_question_key,
    section_label,
)
from .loaders import load_question_catalog, catalog_to_frame

__all__ = [
    "QuestionType",
    "Question",
    "QuestionCatalog",
    "Response",
    "Demographics",
    "parse_response_map",
    "parse_question_key",
    "section_label",
    "load_question_catalog",
    "catalog_to_frame",
]
