"""Couple module: compatibility analysis between two completed assessments."""

from .analyzer import (
    BAND_HIGH,
    BAND_LOW,
    BAND_MODERATE,
    CompatibilityConfig,
    CoupleAnalyzer,
    CoupleComparison,
    CoupleReport,
    DifferenceAnalysis,
    MajorDifference,
    SectionComparison,
    compatibility_band,
    compute_overall_compatibility,
)

__all__ = [
    "BAND_HIGH",
    "BAND_LOW",
    "BAND_MODERATE",
    "CompatibilityConfig",
    "CoupleAnalyzer",
    "CoupleComparison",
    "CoupleReport",
    "DifferenceAnalysis",
    "MajorDifference",
    "SectionComparison",
    "compatibility_band",
    "compute_overall_compatibility",
]
