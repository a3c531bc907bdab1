"""
Smoke test for the assessment engine on the shipped configuration.

This script validates that:
1. The config, catalog and profile set load and validate
2. Synthetic respondents score and receive profiles
3. A couple report can be built for every synthetic couple
4. Recalculation is idempotent on an in-memory store
5. Comparative statistics run over the synthetic population

Usage:
    python scripts/smoke_test.py
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import logging
from datetime import datetime, timedelta, timezone

import numpy as np

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def make_synthetic_responses(catalog, rng, agreeableness=0.7, skip_rate=0.05):
    """
    Random response map in the stored "Q<id>" shape.

    Higher agreeableness favours later MultipleChoice options and the
    affirmative side of Declarations.
    """
    responses = {}
    for question in catalog:
        if rng.rand() < skip_rate:
            continue
        if not question.is_scored:
            responses[f"Q{question.id}"] = {"option": "We will keep our promises."}
            continue
        n_options = len(question.options)
        if question.type.value == "Declaration":
            index = 0 if rng.rand() < agreeableness else n_options - 1
        else:
            centre = agreeableness * (n_options - 1)
            index = int(np.clip(np.round(rng.normal(centre, 1.0)), 0, n_options - 1))
        responses[f"Q{question.id}"] = {"option": question.options[index]}
    return responses


def run_smoke_test(n_couples: int = 20, seed: int = 42):
    """Run smoke tests on the full engine."""

    logger.info("=" * 60)
    logger.info("SMOKE TEST: Assessment Engine")
    logger.info("=" * 60)

    from assessment_engine.assessment import AssessmentScorer
    from assessment_engine.configs import load_config, validate_config
    from assessment_engine.couple import CompatibilityConfig, CoupleAnalyzer
    from assessment_engine.evaluation import create_comparative_report
    from assessment_engine.recalculation import (
        InMemoryAssessmentStore,
        RecalculationConfig,
        RecalculationDriver,
        StoredAssessment,
    )
    from assessment_engine.catalog import Demographics

    results = {}

    # =========================================================================
    # TEST 1: Configuration
    # =========================================================================
    config_path = project_root / "configs" / "config.yaml"
    logger.info(f"Loading config from {config_path}")
    config = load_config(str(config_path))
    issues = validate_config(config)
    for issue in issues:
        logger.warning(f"  Config issue: {issue}")
    results["config"] = "PASSED" if not issues else f"FAILED - {len(issues)} issues"

    scorer = AssessmentScorer.from_config(config, str(config_path))
    analyzer = CoupleAnalyzer(scorer.catalog, CompatibilityConfig.from_config(config))
    logger.info(f"  Catalog {scorer.catalog.version}: {len(scorer.catalog)} questions, "
                f"{len(scorer.catalog.sections())} sections")

    # =========================================================================
    # TEST 2: Scoring and profiles
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("TEST 2: Scoring synthetic respondents")
    logger.info("=" * 60)

    rng = np.random.RandomState(seed)
    base_time = datetime(2025, 1, 1, tzinfo=timezone.utc)
    records = []
    scored = []
    try:
        for i in range(n_couples):
            couple_id = f"couple-{i:03d}"
            for j, gender in enumerate(["female", "male"]):
                demographics = {
                    "firstName": f"Respondent{i}{j}",
                    "lastName": "Synthetic",
                    "email": f"r{i}_{j}@example.com",
                    "gender": gender,
                }
                responses = make_synthetic_responses(scorer.catalog, rng, agreeableness=rng.uniform(0.3, 1.0))
                completed_at = base_time + timedelta(days=i, hours=j)
                records.append(StoredAssessment(
                    email=demographics["email"],
                    demographics=demographics,
                    responses=responses,
                    completed_at=completed_at,
                    couple_id=couple_id,
                ))
                scored.append(scorer.score(Demographics.from_dict(demographics), responses,
                                           strict=False, completed_at=completed_at, couple_id=couple_id))

        overall = np.array([r.scores.overall_percentage for r in scored])
        logger.info(f"  Scored {len(scored)} respondents")
        logger.info(f"  Overall range: [{overall.min():.1f}, {overall.max():.1f}]")
        for r in scored:
            assert r.scores.total_earned <= r.scores.total_possible
            assert 0 <= r.scores.overall_percentage <= 100
            assert r.profiles.primary_profile is not None
            assert r.profiles.gender_profile is not None
        results["scoring"] = "PASSED"
    except Exception as e:
        logger.error(f"  SCORING TEST FAILED: {e}")
        results["scoring"] = f"FAILED - {e}"
        import traceback
        traceback.print_exc()

    # =========================================================================
    # TEST 3: Couple reports
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("TEST 3: Couple reports")
    logger.info("=" * 60)

    try:
        for first, second in zip(scored[0::2], scored[1::2]):
            report = analyzer.build_report(first, second, couple_id=first.couple_id)
            assert 0 <= report.overall_compatibility <= 100
        logger.info(f"  Last report: {report.overall_compatibility} ({report.compatibility_band}), "
                    f"{len(report.difference_analysis.major_differences)} major differences")
        results["couple"] = "PASSED"
    except Exception as e:
        logger.error(f"  COUPLE TEST FAILED: {e}")
        results["couple"] = f"FAILED - {e}"
        import traceback
        traceback.print_exc()

    # =========================================================================
    # TEST 4: Recalculation idempotence
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("TEST 4: Recalculation")
    logger.info("=" * 60)

    try:
        store = InMemoryAssessmentStore(records)
        driver = RecalculationDriver(store, scorer, analyzer, RecalculationConfig.from_config(config))
        first_run = driver.run()
        second_run = driver.run()
        logger.info(f"  First run:  updated={first_run.updated}, couples={first_run.couples_regenerated}")
        logger.info(f"  Second run: updated={second_run.updated}, couples={second_run.couples_regenerated}")
        assert second_run.updated == 0
        assert second_run.couples_regenerated == 0
        results["recalculation"] = "PASSED"
    except Exception as e:
        logger.error(f"  RECALCULATION TEST FAILED: {e}")
        results["recalculation"] = f"FAILED - {e}"
        import traceback
        traceback.print_exc()

    # =========================================================================
    # TEST 5: Comparative statistics
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("TEST 5: Comparative statistics")
    logger.info("=" * 60)

    try:
        comparative = create_comparative_report(scored, scored[0])
        logger.info("\n" + comparative.summary())
        results["statistics"] = "PASSED"
    except Exception as e:
        logger.error(f"  STATISTICS TEST FAILED: {e}")
        results["statistics"] = f"FAILED - {e}"
        import traceback
        traceback.print_exc()

    # =========================================================================
    # Summary
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("SMOKE TEST SUMMARY")
    logger.info("=" * 60)

    all_passed = True
    for name, status in results.items():
        logger.info(f"  {name}: {status}")
        if "FAILED" in status:
            all_passed = False

    if all_passed:
        logger.info("\n  ALL TESTS PASSED")
        return 0
    else:
        logger.error("\n  SOME TESTS FAILED")
        return 1


if __name__ == "__main__":
    sys.exit(run_smoke_test())
