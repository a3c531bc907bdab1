"""
Marriage Assessment Scoring Engine

This package turns questionnaire responses into scored assessment results,
psychographic profiles and couple compatibility reports.

Key Design Decisions:
- Scoring, profile matching and couple analysis are pure functions over
  in-memory data; persistence is a collaborator behind AssessmentStore
- The question catalog and the profile rule set are data (YAML), versioned
  and loaded once
- Profile rules are evaluated in a fixed order, first full match wins
- Results are never patched: recalculation replaces them wholesale
"""

__version__ = "1.0.0"

# Bump when the scoring algorithm changes so stored results are recomputed
ENGINE_VERSION = "2"
