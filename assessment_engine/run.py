"""
Administrative batch entry point for recalculating stored assessments.

Usage:
    python -m assessment_engine.run --config configs/config.yaml --store data/assessments.json

Optional filters restrict the run:
    --since 2025-01-01 --until 2025-06-30   completion date range (both inclusive)
    --email a@example.com --email b@example.com
    --force                                   recompute current records too

The run performs the following steps:
1. Load and validate configuration
2. Load the question catalog and profile set
3. Recompute stale individual results
4. Regenerate couple reports whose members changed
5. Write the summary
"""

import argparse
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    """Configure logging level from config."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(level)


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)


def run_recalculation(
    config_path: str,
    store_path: str,
    since: Optional[str] = None,
    until: Optional[str] = None,
    emails: Optional[List[str]] = None,
    force: bool = False,
    summary_out: Optional[str] = None
) -> Dict[str, Any]:
    """
    Recalculate stored assessments against the configured catalog.

    Args:
        config_path: Path to the configuration YAML file
        store_path: Path to the JSON assessment store
        since: First completion date included (YYYY-MM-DD)
        until: Last completion date included (YYYY-MM-DD)
        emails: Restrict the run to these respondents
        force: Recompute records whose result is already current
        summary_out: Where to write the summary JSON (default: config output dir)

    Returns:
        Summary dictionary with aggregate counts and per-record outcomes
    """
    # Import modules here to keep `--help` fast
    from .assessment import AssessmentScorer
    from .configs import load_config, validate_config
    from .couple import CompatibilityConfig, CoupleAnalyzer
    from .recalculation import (
        JsonAssessmentStore,
        RecalculationConfig,
        RecalculationDriver,
        RecalculationFilter,
    )
    from .scoring import ScoringConfig

    logger.info("=" * 60)
    logger.info("ASSESSMENT RECALCULATION")
    logger.info("=" * 60)

    # =========================================================================
    # 1. Load and validate configuration
    # =========================================================================
    config = load_config(config_path)
    issues = validate_config(config)
    if issues:
        for issue in issues:
            logger.warning(f"Config issue: {issue}")

    setup_logging(config.get("global", {}).get("log_level", "INFO"))

    # =========================================================================
    # 2. Catalog, profiles and analyzers
    # =========================================================================
    scorer = AssessmentScorer.from_config(config, config_path)
    analyzer = CoupleAnalyzer(
        scorer.catalog,
        CompatibilityConfig.from_config(config),
        antithesis_markers=ScoringConfig.from_config(config).antithesis_markers,
    )
    recalc_config = RecalculationConfig.from_config(config)

    # =========================================================================
    # 3-4. Recalculate
    # =========================================================================
    store = JsonAssessmentStore(store_path)
    until_exclusive = _parse_date(until) + timedelta(days=1) if until else None
    record_filter = RecalculationFilter(since=_parse_date(since), until=until_exclusive, emails=emails)

    driver = RecalculationDriver(store, scorer, analyzer, recalc_config)
    summary = driver.run(record_filter, force=force)

    # =========================================================================
    # 5. Summary
    # =========================================================================
    if summary_out is None:
        summary_dir = Path(config.get("output", {}).get("summary_dir", "outputs/recalculation"))
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        summary_out = str(summary_dir / f"summary_{timestamp}.json")
    summary.save(summary_out)

    logger.info("\n" + "=" * 60)
    logger.info("RECALCULATION SUMMARY")
    logger.info("=" * 60)
    logger.info(f"  Processed:           {summary.processed}")
    logger.info(f"  Updated:             {summary.updated}")
    logger.info(f"  Unchanged:           {summary.unchanged}")
    logger.info(f"  Skipped:             {summary.skipped}")
    logger.info(f"  Errors:              {summary.errors}")
    logger.info(f"  Couples regenerated: {summary.couples_regenerated}")
    logger.info(f"  Couples pending:     {summary.couples_pending}")

    result = summary.to_dict()
    result["summary_path"] = summary_out
    return result


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for recalculation."""
    parser = argparse.ArgumentParser(
        description="Recalculate stored assessment results and couple reports"
    )
    parser.add_argument(
        "--config",
        type=str,
        default="configs/config.yaml",
        help="Path to configuration file"
    )
    parser.add_argument(
        "--store",
        type=str,
        required=True,
        help="Path to the JSON assessment store"
    )
    parser.add_argument(
        "--since",
        type=str,
        default=None,
        help="First completion date to include (YYYY-MM-DD)"
    )
    parser.add_argument(
        "--until",
        type=str,
        default=None,
        help="Last completion date to include (YYYY-MM-DD)"
    )
    parser.add_argument(
        "--email",
        action="append",
        default=None,
        help="Only recalculate this respondent (repeatable)"
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Recompute results that are already current"
    )
    parser.add_argument(
        "--summary-out",
        type=str,
        default=None,
        help="Path for the summary JSON (overrides config)"
    )

    args = parser.parse_args(argv)

    from .errors import AssessmentError

    try:
        run_recalculation(
            args.config,
            args.store,
            since=args.since,
            until=args.until,
            emails=args.email,
            force=args.force,
            summary_out=args.summary_out,
        )
        logger.info("\nRecalculation completed")
        return 0
    except (AssessmentError, FileNotFoundError, ValueError, KeyError) as e:
        logger.exception(f"Recalculation aborted: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
