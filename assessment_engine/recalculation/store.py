"""
Persistence contract for stored assessments.

The engine never owns storage; the recalculation driver talks to an
AssessmentStore. Two implementations ship: an in-memory store (tests,
embedding) and a JSON file store (admin batch runs).

Raw responses are read-only from the engine's point of view: only the
derived result and couple reports are ever written. Writes for the same
respondent are serialized with a per-record lock, last write wins.
"""

import copy
import json
import logging
import os
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..scoring.calculator import ScoreResult

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _as_utc(value: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class StoredResult:
    """Score result and profile names persisted for one respondent."""
    scores: ScoreResult
    primary_profile: str
    gender_profile: Optional[str] = None
    computed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scores": self.scores.to_dict(),
            "primary_profile": self.primary_profile,
            "gender_profile": self.gender_profile,
            "computed_at": self.computed_at.isoformat() if self.computed_at else None,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StoredResult":
        return cls(
            scores=ScoreResult.from_dict(d["scores"]),
            primary_profile=d["primary_profile"],
            gender_profile=d.get("gender_profile"),
            computed_at=_parse_timestamp(d.get("computed_at")),
        )

    def same_outcome(self, other: Optional["StoredResult"]) -> bool:
        """True if both hold the same scores and profiles, ignoring when they were computed."""
        if other is None:
            return False
        return (self.scores.to_dict() == other.scores.to_dict()
                and self.primary_profile == other.primary_profile
                and self.gender_profile == other.gender_profile)


@dataclass
class StoredAssessment:
    """
    One respondent's stored assessment.

    Attributes:
        email: Record key
        demographics: Raw demographics form
        responses: Raw response map, never modified by the engine
        completed_at: Completion timestamp (None while in progress)
        couple_id: Shared identifier linking spouses
        result: Last computed result, None if never scored
    """
    email: str
    demographics: Dict[str, Any]
    responses: Dict[str, Any]
    completed_at: Optional[datetime] = None
    couple_id: Optional[str] = None
    result: Optional[StoredResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "demographics": self.demographics,
            "responses": self.responses,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "couple_id": self.couple_id,
            "result": self.result.to_dict() if self.result else None,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StoredAssessment":
        demographics = dict(d.get("demographics") or {})
        email = d.get("email") or demographics.get("email", "")
        return cls(
            email=email,
            demographics=demographics,
            responses=dict(d.get("responses") or {}),
            completed_at=_parse_timestamp(d.get("completed_at")),
            couple_id=d.get("couple_id") or d.get("coupleId"),
            result=StoredResult.from_dict(d["result"]) if d.get("result") else None,
        )


class AssessmentStore:
    """
    Storage contract used by the recalculation driver.

    Subclasses implement list_assessments, _write_result, couple_reports
    and _write_couple_report; locking is handled here.
    """

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def list_assessments(self) -> List[StoredAssessment]:
        """Snapshot of every stored assessment, in insertion order."""
        raise NotImplementedError

    def couple_reports(self) -> Dict[str, Dict[str, Any]]:
        """Stored couple reports keyed by couple id."""
        raise NotImplementedError

    def _write_result(self, email: str, result: StoredResult) -> None:
        raise NotImplementedError

    def _write_couple_report(self, couple_id: str, report: Dict[str, Any]) -> None:
        raise NotImplementedError

    def get_assessment(self, email: str) -> Optional[StoredAssessment]:
        for record in self.list_assessments():
            if record.email == email:
                return record
        return None

    def list_couples(self) -> Dict[str, List[StoredAssessment]]:
        """Assessments grouped by couple id, members ordered by completion time then email."""
        couples: Dict[str, List[StoredAssessment]] = OrderedDict()
        for record in self.list_assessments():
            if record.couple_id:
                couples.setdefault(record.couple_id, []).append(record)
        for members in couples.values():
            members.sort(key=lambda r: (r.completed_at is None,
                                        _as_utc(r.completed_at) if r.completed_at else _EPOCH,
                                        r.email))
        return couples

    def save_result(self, email: str, result: StoredResult) -> None:
        """Replace the stored result for one respondent."""
        with self._lock_for(email):
            self._write_result(email, result)

    def save_couple_report(self, report) -> None:
        """Replace the stored report for report.couple_id."""
        if not report.couple_id:
            raise ValueError("Couple report has no couple_id")
        with self._lock_for(f"couple:{report.couple_id}"):
            self._write_couple_report(report.couple_id, report.to_dict())


class InMemoryAssessmentStore(AssessmentStore):
    """Assessment store held in process memory."""

    def __init__(self, assessments: Optional[List[StoredAssessment]] = None):
        super().__init__()
        self._records: Dict[str, StoredAssessment] = OrderedDict()
        self._couple_reports: Dict[str, Dict[str, Any]] = OrderedDict()
        for record in assessments or []:
            self.add(record)

    def add(self, record: StoredAssessment) -> None:
        if record.email in self._records:
            raise ValueError(f"Duplicate assessment for {record.email}")
        self._records[record.email] = record

    def list_assessments(self) -> List[StoredAssessment]:
        return [copy.deepcopy(r) for r in self._records.values()]

    def couple_reports(self) -> Dict[str, Dict[str, Any]]:
        return copy.deepcopy(self._couple_reports)

    def _write_result(self, email: str, result: StoredResult) -> None:
        if email not in self._records:
            raise KeyError(f"No stored assessment for {email}")
        self._records[email].result = result

    def _write_couple_report(self, couple_id: str, report: Dict[str, Any]) -> None:
        self._couple_reports[couple_id] = report


class JsonAssessmentStore(InMemoryAssessmentStore):
    """
    Assessment store backed by one JSON file.

    File layout:
        {"assessments": [...], "couple_reports": {couple_id: report}}

    Every write rewrites the file through a temporary file and an atomic
    rename, so a crashed run never leaves a truncated store behind.
    """

    def __init__(self, filepath: str):
        self.filepath = Path(filepath)
        if not self.filepath.exists():
            raise FileNotFoundError(f"Assessment store not found: {filepath}")

        with open(self.filepath, "r") as f:
            data = json.load(f)

        super().__init__([StoredAssessment.from_dict(d) for d in data.get("assessments", [])])
        self._couple_reports.update(data.get("couple_reports") or {})
        self._file_lock = threading.Lock()
        logger.info(f"Loaded {len(self._records)} assessments from {filepath}")

    def _write_result(self, email: str, result: StoredResult) -> None:
        super()._write_result(email, result)
        self._persist()

    def _write_couple_report(self, couple_id: str, report: Dict[str, Any]) -> None:
        super()._write_couple_report(couple_id, report)
        self._persist()

    def _persist(self) -> None:
        with self._file_lock:
            data = {
                "assessments": [r.to_dict() for r in self._records.values()],
                "couple_reports": self._couple_reports,
            }
            tmp_path = self.filepath.with_suffix(self.filepath.suffix + ".tmp")
            with open(tmp_path, "w") as f:
                json.dump(data, f, indent=2, default=str)
            os.replace(tmp_path, self.filepath)
