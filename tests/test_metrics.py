"""
Tests for comparative population statistics.
"""

import json

import pytest

from assessment_engine.assessment import AssessmentResult
from assessment_engine.evaluation import (
    compute_score_distribution_stats,
    create_comparative_report,
    describe_percentile,
    percentile_rank,
    profile_distribution,
    results_to_frame,
)
from assessment_engine.profiles import ProfileMatcher

from .conftest import create_mock_demographics, create_score_result

FOUNDATION = "Section I: Your Foundation"


def make_population(profile_set):
    """Four respondents with overall score equal to their Foundation score."""
    matcher = ProfileMatcher(profile_set)
    population = []
    for email, gender, score in [
        ("a@example.com", "female", 20.0),
        ("b@example.com", "male", 40.0),
        ("c@example.com", "female", 60.0),
        ("d@example.com", "male", 80.0),
    ]:
        scores = create_score_result({FOUNDATION: score}, overall=score)
        population.append(AssessmentResult(
            demographics=create_mock_demographics(email, gender),
            responses={},
            scores=scores,
            profiles=matcher.match(scores, gender),
        ))
    return population


class TestPercentileRank:
    def test_share_at_or_below(self):
        assert percentile_rank(20, [10, 20, 30, 40]) == 50
        assert percentile_rank(25, [10, 20, 30, 40]) == 50
        assert percentile_rank(5, [10, 20, 30, 40]) == 0
        assert percentile_rank(40, [10, 20, 30, 40]) == 100

    def test_rounded_half_up(self):
        assert percentile_rank(20, [10, 20, 30]) == 67
        assert percentile_rank(10, [10, 20, 30, 40, 50, 60, 70, 80]) == 13

    def test_empty_population(self):
        assert percentile_rank(72.5, []) == 50


class TestDescribePercentile:
    @pytest.mark.parametrize("percentile,expected", [
        (99, "Much higher than most respondents"),
        (95, "Much higher than most respondents"),
        (94, "Higher than most respondents"),
        (60, "Somewhat higher than average"),
        (50, "About average"),
        (25, "Somewhat lower than average"),
        (5, "Lower than most respondents"),
        (4, "Much lower than most respondents"),
    ])
    def test_bands(self, percentile, expected):
        assert describe_percentile(percentile) == expected


class TestDistributionStats:
    def test_population_statistics(self):
        stats = compute_score_distribution_stats([10, 20, 30, 40])
        assert stats.count == 4
        assert stats.mean == 25.0
        assert stats.median == 25.0
        assert stats.std == pytest.approx(11.1803, abs=1e-4)
        assert stats.quantiles["p50"] == 25.0
        assert stats.min == 10.0 and stats.max == 40.0

    def test_empty(self):
        stats = compute_score_distribution_stats([])
        assert stats.count == 0
        assert stats.mean == 0.0
        assert set(stats.quantiles) == {"p10", "p25", "p50", "p75", "p90"}


class TestComparativeReport:
    def test_frame(self, profile_set):
        df = results_to_frame(make_population(profile_set))
        assert list(df["email"]) == ["a@example.com", "b@example.com", "c@example.com", "d@example.com"]
        assert f"section:{FOUNDATION}" in df.columns
        assert profile_distribution(df) == {"Balanced": 100.0}

    def test_placement(self, profile_set):
        population = make_population(profile_set)
        report = create_comparative_report(population, population[2])

        assert report.overall.percentile == 75
        assert report.overall.description == "Higher than most respondents"
        assert report.overall.population == 4
        assert report.overall_same_gender.percentile == 100
        assert report.overall_same_gender.population == 2
        assert report.sections[FOUNDATION].percentile == 75

    def test_gender_breakdowns(self, profile_set):
        population = make_population(profile_set)
        report = create_comparative_report(population, population[0])

        assert report.distribution_by_gender["female"].mean == 40.0
        assert report.distribution_by_gender["male"].mean == 60.0
        assert report.section_means_by_gender["female"][FOUNDATION] == 40.0
        assert report.gender_profile_distribution["female"] == {"Communicator": 100.0}
        assert report.gender_profile_distribution["male"] == {"Provider": 100.0}

    def test_unknown_gender_has_no_peer_placement(self, profile_set):
        population = make_population(profile_set)
        scores = create_score_result({FOUNDATION: 50.0}, overall=50.0)
        respondent = AssessmentResult(
            demographics=create_mock_demographics("e@example.com", None),
            responses={},
            scores=scores,
            profiles=ProfileMatcher(profile_set).match(scores),
        )
        report = create_comparative_report(population, respondent)
        assert report.overall_same_gender is None
        assert report.overall.percentile == 50

    def test_empty_population(self, profile_set):
        respondent = make_population(profile_set)[0]
        report = create_comparative_report([], respondent)
        assert report.overall.percentile == 50
        assert report.distribution.count == 0
        assert report.profile_distribution == {}

    def test_save_and_summary(self, profile_set, tmp_path):
        population = make_population(profile_set)
        report = create_comparative_report(population, population[3])
        path = tmp_path / "report.json"
        report.save(str(path))

        data = json.loads(path.read_text())
        assert data["respondent"] == "d@example.com"
        assert data["overall"]["percentile"] == 100
        assert "Comparative Report: d@example.com" in report.summary()
