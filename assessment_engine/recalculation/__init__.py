"""Recalculation module: assessment store contract and backfill driver."""

from .store import (
    AssessmentStore,
    InMemoryAssessmentStore,
    JsonAssessmentStore,
    StoredAssessment,
    StoredResult,
)
from .driver import (
    RecalculationConfig,
    RecalculationDriver,
    RecalculationFilter,
    RecalculationSummary,
    RecordOutcome,
)

__all__ = [
    "AssessmentStore",
    "InMemoryAssessmentStore",
    "JsonAssessmentStore",
    "StoredAssessment",
    "StoredResult",
    "RecalculationConfig",
    "RecalculationDriver",
    "RecalculationFilter",
    "RecalculationSummary",
    "RecordOutcome",
]
