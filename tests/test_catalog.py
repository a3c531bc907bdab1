"""
Tests for catalog loading and boundary parsing of raw responses.
"""

import pytest

from assessment_engine.catalog import (
    Demographics,
    Question,
    QuestionCatalog,
    QuestionType,
    catalog_to_frame,
    load_question_catalog,
    parse_question_key,
    parse_response_map,
    section_label,
)
from assessment_engine.errors import CatalogError, InvalidResponse

from .conftest import CATALOG_PATH


class TestQuestionInvariants:
    def test_scored_question_needs_options(self):
        with pytest.raises(CatalogError):
            Question(id=1, section="S", type=QuestionType.MULTIPLE_CHOICE, options=(), weight=3)

    def test_scored_question_needs_positive_weight(self):
        with pytest.raises(CatalogError):
            Question(id=1, section="S", type=QuestionType.DECLARATION, options=("Yes", "No"), weight=0)

    def test_declaration_needs_two_options(self):
        with pytest.raises(CatalogError):
            Question(id=1, section="S", type=QuestionType.DECLARATION, options=("We commit.",), weight=5)

    def test_declaration_keeps_an_affirmative_option(self):
        with pytest.raises(CatalogError):
            Question(id=1, section="S", type=QuestionType.DECLARATION,
                     options=("Yes", "No"), weight=5, antithesis=("Yes", "No"))

    def test_antithesis_must_be_an_option(self):
        with pytest.raises(CatalogError):
            Question(id=1, section="S", type=QuestionType.DECLARATION,
                     options=("Yes", "No"), weight=5, antithesis="Maybe")

    def test_antithesis_list_survives_dict_conversion(self):
        question = Question(id=1, section="S", type=QuestionType.DECLARATION,
                            options=("Yes", "No", "Later"), weight=5, antithesis=["No", "Later"])
        assert question.antithesis == ("No", "Later")
        assert Question.from_dict(question.to_dict()) == question

        single = Question(id=2, section="S", type=QuestionType.DECLARATION,
                          options=("Yes", "No"), weight=5, antithesis="No")
        assert single.to_dict()["antithesis"] == "No"
        assert Question.from_dict(single.to_dict()).antithesis == ("No",)

    def test_input_needs_neither(self):
        question = Question(id=1, section="S", type=QuestionType.INPUT, options=(), weight=0)
        assert not question.is_scored

    def test_duplicate_ids_rejected(self):
        q = Question(id=1, section="S", type=QuestionType.MULTIPLE_CHOICE, options=("A",), weight=1)
        with pytest.raises(CatalogError):
            QuestionCatalog([q, q], version="v")

    def test_type_codes(self):
        assert QuestionType.parse("M") is QuestionType.MULTIPLE_CHOICE
        assert QuestionType.parse("d") is QuestionType.DECLARATION
        assert QuestionType.parse("Input") is QuestionType.INPUT
        with pytest.raises(CatalogError):
            QuestionType.parse("X")


class TestCatalog:
    def test_sections_in_catalog_order(self, catalog):
        assert catalog.sections() == [
            "Section I: Your Foundation",
            "Section II: Your Faith Life",
            "Section III: Your Finances",
        ]

    def test_section_label(self):
        assert section_label("Section II: Your Faith Life") == "Your Faith Life"
        assert section_label("Your Faith Life") == "Your Faith Life"

    def test_shipped_catalog_loads(self):
        catalog = load_question_catalog(str(CATALOG_PATH))
        assert catalog.version == "2025.2"
        assert len(catalog) == 99
        assert len(catalog.sections()) == 8
        assert len(catalog.scored_questions()) == 99

    def test_shipped_declarations_carry_antithesis(self):
        catalog = load_question_catalog(str(CATALOG_PATH))
        declarations = [q for q in catalog if q.type is QuestionType.DECLARATION]
        assert len(declarations) == 30
        assert all(q.antithesis for q in declarations)
        assert all(q.options[0] not in q.antithesis for q in declarations)
        assert len(catalog.get(67).antithesis) == 2

    def test_csv_catalog(self, tmp_path):
        path = tmp_path / "catalog.csv"
        path.write_text(
            "id,section,type,options,weight,antithesis,version\n"
            "1,Section I: Your Foundation,M,A|B|C,3,,csv-1\n"
            "2,Section I: Your Foundation,D,Yes|I do not agree with this statement,5,,csv-1\n"
            "3,Section II: Your Vow,I,,,,csv-1\n"
            "4,Section I: Your Foundation,D,Yes|No|Not yet,5,No|Not yet,csv-1\n"
        )
        catalog = load_question_catalog(str(path))
        assert catalog.version == "csv-1"
        assert catalog.get(1).options == ("A", "B", "C")
        assert catalog.get(3).type is QuestionType.INPUT
        assert catalog.get(4).antithesis == ("No", "Not yet")
        assert catalog.sections() == ["Section I: Your Foundation"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_question_catalog(str(tmp_path / "missing.yaml"))

    def test_catalog_to_frame(self, catalog):
        df = catalog_to_frame(catalog)
        assert len(df) == len(catalog)
        assert df.groupby("label")["weight"].sum()["Your Foundation"] == 17


class TestResponseParsing:
    def test_key_shapes(self):
        assert parse_question_key(12) == 12
        assert parse_question_key("12") == 12
        assert parse_question_key("Q12") == 12
        assert parse_question_key("q12") == 12
        assert parse_question_key("abc") is None

    def test_value_shapes(self):
        responses = parse_response_map({
            "Q1": "Always",
            2: 0,
            "3": {"option": "High", "value": 3},
            "Q4": {"selectedOption": "Never"},
        })
        assert responses[1].selected_option == "Always"
        assert responses[2].selected_option == 0
        assert responses[3].precomputed_value == 3
        assert responses[4].selected_option == "Never"

    def test_bad_key_skipped_with_diagnostic(self):
        diagnostics = []
        responses = parse_response_map({"Q1": "A", "bogus": "B"}, diagnostics=diagnostics)
        assert list(responses) == [1]
        assert len(diagnostics) == 1

    def test_bad_key_raises_in_strict_mode(self):
        with pytest.raises(InvalidResponse):
            parse_response_map({"bogus": "B"}, strict=True)

    def test_duplicate_question_rejected(self):
        diagnostics = []
        responses = parse_response_map({"Q1": "A", "1": "B"}, diagnostics=diagnostics)
        assert responses[1].selected_option == "A"
        assert len(diagnostics) == 1

    def test_raw_map_not_mutated(self):
        raw = {"Q1": {"option": "A", "value": 1}}
        parse_response_map(raw)
        assert raw == {"Q1": {"option": "A", "value": 1}}


class TestDemographics:
    def test_camel_case_and_gender_normalization(self):
        demographics = Demographics.from_dict(
            {"firstName": "Sam", "lastName": "Lee", "email": "s@example.com", "gender": "  Male ", "city": "Accra"}
        )
        assert demographics.normalized_gender == "male"
        assert demographics.full_name == "Sam Lee"
        assert demographics.extra == {"city": "Accra"}

    def test_blank_gender(self):
        assert Demographics(gender="  ").normalized_gender is None
