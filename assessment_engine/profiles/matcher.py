"""
Profile matching.

Assigns each scored respondent one unisex profile and, when a gender is
known, one gender-specific profile. Rules are evaluated first-match-wins
in the order the ProfileSet lists them; the category default applies
when nothing matches.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from ..scoring.calculator import ScoreResult
from .definitions import Profile, ProfileSet, UNISEX

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfileMatch:
    """Profiles assigned to one respondent."""
    primary_profile: Profile
    gender_profile: Optional[Profile] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_profile": self.primary_profile.to_dict(),
            "gender_profile": self.gender_profile.to_dict() if self.gender_profile else None,
        }


def first_match(profiles: Iterable[Profile], scores: ScoreResult) -> Optional[Profile]:
    """First profile whose criteria all hold, or None."""
    for profile in profiles:
        if all(c.is_satisfied(scores.percentage_for(c.section)) for c in profile.criteria):
            return profile
    return None


class ProfileMatcher:
    """
    Evaluates a ProfileSet against ScoreResults.

    Attributes:
        profile_set: Rules and defaults per category
    """

    def __init__(self, profile_set: ProfileSet):
        self.profile_set = profile_set

    def _match_category(self, category: str, scores: ScoreResult) -> Profile:
        matched = first_match(self.profile_set.rules[category], scores)
        if matched is None:
            matched = self.profile_set.defaults[category]
            logger.debug(f"No {category} rule matched, using default {matched.name!r}")
        return matched

    def match(self, scores: ScoreResult, gender: Optional[str] = None) -> ProfileMatch:
        """
        Assign profiles for one ScoreResult.

        Args:
            scores: Result produced by ScoreCalculator
            gender: Declared gender, any spelling the profile set recognizes

        Returns:
            ProfileMatch; gender_profile is None when the gender is absent
            or unrecognized
        """
        primary = self._match_category(UNISEX, scores)

        gender_profile = None
        category = self.profile_set.category_for(gender)
        if category is not None:
            gender_profile = self._match_category(category, scores)
        elif gender:
            logger.info(f"Gender {gender!r} has no profile category, skipping gender profile")

        return ProfileMatch(primary_profile=primary, gender_profile=gender_profile)
