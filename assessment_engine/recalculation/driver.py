"""
Recalculation of stored assessments.

Re-runs scoring and profile matching over stored raw responses after the
catalog or the scoring algorithm changed, then regenerates the couple
reports whose members changed.

Key Design Decisions:
- A record is stale when it has no result or its result carries a
  different catalog_version or engine_version; only stale records are
  recomputed unless force is set
- Computation is parallelised per batch with joblib (threads); writes to
  the store happen afterwards, one record at a time
- A record whose recomputed result equals the stored one is not written,
  which makes repeated runs idempotent
- Per-record failures are logged with email and completion time, counted
  and never abort the batch
"""

import json
import logging
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from joblib import Parallel, delayed

from .. import ENGINE_VERSION
from ..assessment import AssessmentResult, AssessmentScorer
from ..catalog import Demographics
from ..couple import CoupleAnalyzer
from ..errors import CoupleDataIncomplete, InsufficientResponses
from .store import AssessmentStore, StoredAssessment, StoredResult, _as_utc

logger = logging.getLogger(__name__)

STATUS_UPDATED = "updated"
STATUS_UNCHANGED = "unchanged"
STATUS_SKIPPED = "skipped"
STATUS_ERROR = "error"


@dataclass
class RecalculationConfig:
    """
    Configuration for batch recalculation.

    Attributes:
        n_jobs: Parallel workers for computation (-1 for all cores)
        batch_size: Records computed per parallel batch
        engine_version: Version stamped on recomputed results
    """
    n_jobs: int = 1
    batch_size: int = 100
    engine_version: str = ENGINE_VERSION

    def validate(self) -> None:
        """Validate configuration values."""
        if self.n_jobs == 0:
            raise ValueError("n_jobs must be non-zero")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RecalculationConfig":
        """Create from dictionary."""
        return cls(**d)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "RecalculationConfig":
        """Create from main config dictionary."""
        recalc_config = config.get("recalculation", {}) or {}
        return cls(
            n_jobs=recalc_config.get("n_jobs", 1),
            batch_size=recalc_config.get("batch_size", 100),
            engine_version=str(recalc_config.get("engine_version", ENGINE_VERSION)),
        )


@dataclass
class RecalculationFilter:
    """
    Selects which stored assessments a run covers.

    Attributes:
        since: Inclusive lower bound on completion time
        until: Exclusive upper bound on completion time
        emails: Only these respondents (case-insensitive)
    """
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    emails: Optional[Sequence[str]] = None

    def matches(self, record: StoredAssessment) -> bool:
        if self.emails:
            wanted = {e.strip().casefold() for e in self.emails}
            if record.email.strip().casefold() not in wanted:
                return False
        if self.since is not None or self.until is not None:
            if record.completed_at is None:
                return False
            completed = _as_utc(record.completed_at)
            if self.since is not None and completed < _as_utc(self.since):
                return False
            if self.until is not None and completed >= _as_utc(self.until):
                return False
        return True


@dataclass
class RecordOutcome:
    """What happened to one record during a run."""
    email: str
    status: str
    completed_at: Optional[datetime] = None
    original_score: Optional[float] = None
    new_score: Optional[float] = None
    original_profile: Optional[str] = None
    new_profile: Optional[str] = None
    error: Optional[str] = None

    @property
    def profile_changed(self) -> bool:
        return self.new_profile is not None and self.new_profile != self.original_profile

    def to_dict(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "status": self.status,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "original_score": self.original_score,
            "new_score": self.new_score,
            "original_profile": self.original_profile,
            "new_profile": self.new_profile,
            "profile_changed": self.profile_changed,
            "error": self.error,
        }


@dataclass
class RecalculationSummary:
    """Aggregate counts for one recalculation run."""
    processed: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    errors: int = 0
    couples_regenerated: int = 0
    couples_pending: int = 0
    couple_errors: int = 0
    outcomes: List[RecordOutcome] = field(default_factory=list)
    catalog_version: str = ""
    engine_version: str = ""
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def record(self, outcome: RecordOutcome) -> None:
        self.outcomes.append(outcome)
        self.processed += 1
        if outcome.status == STATUS_UPDATED:
            self.updated += 1
        elif outcome.status == STATUS_UNCHANGED:
            self.unchanged += 1
        elif outcome.status == STATUS_SKIPPED:
            self.skipped += 1
        else:
            self.errors += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "errors": self.errors,
            "couples_regenerated": self.couples_regenerated,
            "couples_pending": self.couples_pending,
            "couple_errors": self.couple_errors,
            "catalog_version": self.catalog_version,
            "engine_version": self.engine_version,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }

    def save(self, filepath: str) -> None:
        """Save to JSON file."""
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Saved recalculation summary to {filepath}")


class RecalculationDriver:
    """
    Recomputes stored results and couple reports.

    Attributes:
        store: AssessmentStore holding raw responses and results
        scorer: AssessmentScorer for the current catalog and profiles
        analyzer: CoupleAnalyzer, None to leave couple reports alone
        config: RecalculationConfig
    """

    def __init__(
        self,
        store: AssessmentStore,
        scorer: AssessmentScorer,
        analyzer: Optional[CoupleAnalyzer] = None,
        config: Optional[RecalculationConfig] = None
    ):
        self.store = store
        self.scorer = scorer
        self.analyzer = analyzer
        self.config = config or RecalculationConfig()
        self.config.validate()

    def is_stale(self, record: StoredAssessment) -> bool:
        """True if the stored result is missing or was computed by another catalog or engine."""
        if record.result is None:
            return True
        scores = record.result.scores
        return (scores.catalog_version != self.scorer.catalog.version
                or scores.engine_version != self.scorer.engine_version)

    def run(
        self,
        record_filter: Optional[RecalculationFilter] = None,
        force: bool = False
    ) -> RecalculationSummary:
        """
        Recalculate every selected stale record.

        Args:
            record_filter: Restricts the run to a date range or to emails
            force: Recompute current records as well

        Returns:
            RecalculationSummary
        """
        record_filter = record_filter or RecalculationFilter()
        summary = RecalculationSummary(
            catalog_version=self.scorer.catalog.version,
            engine_version=self.scorer.engine_version,
            started_at=datetime.now(timezone.utc),
        )

        selected = [r for r in self.store.list_assessments() if record_filter.matches(r)]
        logger.info(f"Recalculation selected {len(selected)} assessments "
                    f"(catalog={summary.catalog_version}, engine={summary.engine_version}, force={force})")

        pending: List[StoredAssessment] = []
        for record in selected:
            if record.completed_at is None:
                summary.record(RecordOutcome(
                    email=record.email, status=STATUS_SKIPPED,
                    original_score=self._original_score(record),
                    original_profile=self._original_profile(record),
                    error="assessment not completed",
                ))
            elif force or self.is_stale(record):
                pending.append(record)
            else:
                summary.record(RecordOutcome(
                    email=record.email, status=STATUS_UNCHANGED, completed_at=record.completed_at,
                    original_score=self._original_score(record),
                    new_score=self._original_score(record),
                    original_profile=self._original_profile(record),
                    new_profile=self._original_profile(record),
                ))

        fresh: Dict[str, AssessmentResult] = {}
        updated: Set[str] = set()
        batch_size = self.config.batch_size
        for start in range(0, len(pending), batch_size):
            batch = pending[start:start + batch_size]
            computed = Parallel(n_jobs=self.config.n_jobs, prefer="threads")(
                delayed(self._compute)(record) for record in batch
            )
            for record, result, error in computed:
                outcome = self._apply(record, result, error)
                summary.record(outcome)
                if result is not None:
                    fresh[record.email] = result
                if outcome.status == STATUS_UPDATED:
                    updated.add(record.email)
            logger.info(f"Batch {start // batch_size + 1}: {len(batch)} records computed")

        if self.analyzer is not None:
            self._regenerate_couples({r.email for r in selected}, updated, fresh, summary, force)

        summary.finished_at = datetime.now(timezone.utc)
        logger.info(
            f"Recalculation finished: processed={summary.processed}, updated={summary.updated}, "
            f"unchanged={summary.unchanged}, skipped={summary.skipped}, errors={summary.errors}, "
            f"couples_regenerated={summary.couples_regenerated}, couples_pending={summary.couples_pending}"
        )
        return summary

    def _compute(
        self,
        record: StoredAssessment
    ) -> Tuple[StoredAssessment, Optional[AssessmentResult], Optional[Exception]]:
        """Score one record without touching the store. Runs inside joblib workers."""
        try:
            demographics = Demographics.from_dict(record.demographics)
            if not demographics.email:
                demographics.email = record.email
            result = self.scorer.score(
                demographics,
                record.responses,
                strict=False,
                completed_at=record.completed_at,
                couple_id=record.couple_id,
            )
            return record, result, None
        except Exception as e:
            return record, None, e

    def _apply(
        self,
        record: StoredAssessment,
        result: Optional[AssessmentResult],
        error: Optional[Exception]
    ) -> RecordOutcome:
        outcome = RecordOutcome(
            email=record.email,
            status=STATUS_ERROR,
            completed_at=record.completed_at,
            original_score=self._original_score(record),
            original_profile=self._original_profile(record),
        )
        completed = record.completed_at.isoformat() if record.completed_at else "n/a"

        if isinstance(error, InsufficientResponses):
            logger.warning(f"Skipping {record.email} (completed {completed}): {error}")
            outcome.status = STATUS_SKIPPED
            outcome.error = str(error)
            return outcome
        if error is not None:
            logger.error(f"Recalculation failed for {record.email} (completed {completed}): {error}")
            outcome.error = f"{type(error).__name__}: {error}"
            return outcome

        stored = StoredResult(
            scores=result.scores,
            primary_profile=result.profiles.primary_profile.name,
            gender_profile=result.profiles.gender_profile.name if result.profiles.gender_profile else None,
            computed_at=datetime.now(timezone.utc),
        )
        outcome.new_score = result.scores.overall_percentage
        outcome.new_profile = stored.primary_profile

        if stored.same_outcome(record.result):
            outcome.status = STATUS_UNCHANGED
            return outcome

        try:
            self.store.save_result(record.email, stored)
        except (OSError, KeyError, ValueError) as e:
            logger.error(f"Could not store result for {record.email} (completed {completed}): {e}")
            outcome.error = f"{type(e).__name__}: {e}"
            return outcome

        outcome.status = STATUS_UPDATED
        if outcome.profile_changed:
            logger.info(f"{record.email}: profile {outcome.original_profile} -> {outcome.new_profile}")
        return outcome

    def _regenerate_couples(
        self,
        in_scope: Set[str],
        updated: Set[str],
        fresh: Dict[str, AssessmentResult],
        summary: RecalculationSummary,
        force: bool
    ) -> None:
        existing = self.store.couple_reports()
        for couple_id, members in self.store.list_couples().items():
            if not any(m.email in in_scope for m in members):
                continue
            if not (force or couple_id not in existing or any(m.email in updated for m in members)):
                continue

            try:
                if len(members) != 2:
                    raise CoupleDataIncomplete(couple_id, [f"{len(members)} linked assessments, expected 2"])
                bundles = [self._current_result(m, fresh) for m in members]
                missing = [m.email for m, b in zip(members, bundles) if b is None]
                if missing:
                    raise CoupleDataIncomplete(couple_id, missing)
                report = self.analyzer.build_report(bundles[0], bundles[1], couple_id=couple_id)
                self.store.save_couple_report(report)
                summary.couples_regenerated += 1
            except CoupleDataIncomplete as e:
                logger.info(str(e))
                summary.couples_pending += 1
            except (OSError, ValueError) as e:
                logger.error(f"Could not regenerate couple report {couple_id}: {e}")
                summary.couple_errors += 1

    def _current_result(
        self,
        record: StoredAssessment,
        fresh: Dict[str, AssessmentResult]
    ) -> Optional[AssessmentResult]:
        """Result for one spouse under the current catalog, None if incomplete."""
        if record.email in fresh:
            return fresh[record.email]
        if record.completed_at is None or record.result is None:
            return None
        _, result, error = self._compute(record)
        if error is not None:
            logger.warning(f"Spouse {record.email} could not be rescored: {error}")
        return result

    @staticmethod
    def _original_score(record: StoredAssessment) -> Optional[float]:
        return record.result.scores.overall_percentage if record.result else None

    @staticmethod
    def _original_profile(record: StoredAssessment) -> Optional[str]:
        return record.result.primary_profile if record.result else None
