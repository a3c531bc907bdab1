"""
Psychographic profile definitions.

Profiles are data: each carries an ordered list of declarative criteria
(inclusive min/max bounds on section percentages). The rule lists are
kept in evaluation order per category (unisex, then one list per
gender), and every category names a default profile used when no rule
matches. A ProfileSet without a default for some category is a
configuration error, raised when the set is built.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..errors import ProfileConfigurationError

logger = logging.getLogger(__name__)

UNISEX = "unisex"

# Profile families that sit next to each other on the traditional-independent axis
ADJACENT_FAMILIES = {
    frozenset({"traditional", "moderate"}),
    frozenset({"moderate", "independent"}),
}


@dataclass(frozen=True)
class ProfileCriterion:
    """
    Bound on one section percentage.

    Attributes:
        section: Section name or label ("Your Faith Life")
        min: Inclusive lower bound, None for unbounded
        max: Inclusive upper bound, None for unbounded
    """
    section: str
    min: Optional[float] = None
    max: Optional[float] = None

    def __post_init__(self):
        if self.min is None and self.max is None:
            raise ProfileConfigurationError(f"Criterion on {self.section!r} has neither min nor max")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ProfileConfigurationError(f"Criterion on {self.section!r} has min > max")

    def is_satisfied(self, percentage: Optional[float]) -> bool:
        """A section absent from the result never satisfies a criterion."""
        if percentage is None:
            return False
        if self.min is not None and percentage < self.min:
            return False
        if self.max is not None and percentage > self.max:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"section": self.section}
        if self.min is not None:
            result["min"] = self.min
        if self.max is not None:
            result["max"] = self.max
        return result


@dataclass(frozen=True)
class Profile:
    """
    One psychographic profile.

    Attributes:
        id: Stable identity
        name: Display name
        description: Report text
        gender: None for unisex profiles, otherwise the normalized gender
        criteria: All must hold for the profile to match
        family: traditional | moderate | independent
        ideal_matches: Names of profiles this one pairs best with
    """
    id: int
    name: str
    description: str = ""
    gender: Optional[str] = None
    criteria: Tuple[ProfileCriterion, ...] = ()
    family: str = "moderate"
    ideal_matches: Tuple[str, ...] = ()

    @property
    def category(self) -> str:
        return self.gender or UNISEX

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "gender": self.gender,
            "criteria": [c.to_dict() for c in self.criteria],
            "family": self.family,
            "ideal_matches": list(self.ideal_matches),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any], gender: Optional[str] = None) -> "Profile":
        gender = d.get("gender", gender)
        return cls(
            id=int(d["id"]),
            name=str(d["name"]),
            description=str(d.get("description", "")).strip(),
            gender=str(gender).strip().lower() if gender else None,
            criteria=tuple(ProfileCriterion(**c) for c in d.get("criteria", [])),
            family=str(d.get("family", "moderate")),
            ideal_matches=tuple(d.get("ideal_matches", [])),
        )


class ProfileSet:
    """
    Ordered profile rules per category plus one default per category.

    Attributes:
        rules: Category -> profiles in evaluation order
        defaults: Category -> fallback profile
        gender_aliases: Alternative spellings mapped to a gender category
    """

    def __init__(
        self,
        rules: Dict[str, List[Profile]],
        defaults: Dict[str, str],
        gender_aliases: Optional[Dict[str, str]] = None
    ):
        self.rules: Dict[str, Tuple[Profile, ...]] = {k: tuple(v) for k, v in rules.items()}
        self.gender_aliases = {k.strip().lower(): v.strip().lower()
                               for k, v in (gender_aliases or {}).items()}
        self.defaults: Dict[str, Profile] = {}
        self._validate(defaults)

    def _validate(self, defaults: Dict[str, str]) -> None:
        if UNISEX not in self.rules:
            raise ProfileConfigurationError("Profile set has no unisex profiles")

        seen_ids: Dict[int, str] = {}
        for category, profiles in self.rules.items():
            for profile in profiles:
                if profile.id in seen_ids:
                    raise ProfileConfigurationError(
                        f"Profile id {profile.id} used by {seen_ids[profile.id]!r} and {profile.name!r}"
                    )
                seen_ids[profile.id] = profile.name
                if profile.category != category:
                    raise ProfileConfigurationError(
                        f"Profile {profile.name!r} is tagged {profile.category!r} but listed under {category!r}"
                    )

        for category, profiles in self.rules.items():
            default_name = defaults.get(category)
            if default_name is None:
                raise ProfileConfigurationError(f"No default profile for category {category!r}")
            matches = [p for p in profiles if p.name == default_name]
            if not matches:
                raise ProfileConfigurationError(
                    f"Default profile {default_name!r} is not a {category!r} profile"
                )
            self.defaults[category] = matches[0]

    def category_for(self, gender: Optional[str]) -> Optional[str]:
        """Gender category for a declared gender, None if absent or unrecognized."""
        if gender is None:
            return None
        value = str(gender).strip().lower()
        value = self.gender_aliases.get(value, value)
        if value and value != UNISEX and value in self.rules:
            return value
        return None

    def all_profiles(self) -> List[Profile]:
        return [p for profiles in self.rules.values() for p in profiles]

    def get(self, name: str) -> Optional[Profile]:
        for profile in self.all_profiles():
            if profile.name == name:
                return profile
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "defaults": {k: v.name for k, v in self.defaults.items()},
            "gender_aliases": dict(self.gender_aliases),
            "profiles": {k: [p.to_dict() for p in v] for k, v in self.rules.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProfileSet":
        rules: Dict[str, List[Profile]] = {}
        for category, entries in (data.get("profiles") or {}).items():
            category = str(category).strip().lower()
            gender = None if category == UNISEX else category
            rules[category] = [Profile.from_dict(e, gender=gender) for e in entries or []]
        defaults = {str(k).strip().lower(): v for k, v in (data.get("defaults") or {}).items()}
        return cls(rules, defaults, data.get("gender_aliases"))


def load_profile_set(filepath: str) -> ProfileSet:
    """
    Load the profile rule set from YAML.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ProfileConfigurationError: If any category lacks a valid default
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Profile definitions not found: {filepath}")

    with open(path, "r") as f:
        data = yaml.safe_load(f)
    if not data:
        raise ProfileConfigurationError(f"Profile definitions are empty: {filepath}")

    profile_set = ProfileSet.from_dict(data)
    counts = ", ".join(f"{k}={len(v)}" for k, v in profile_set.rules.items())
    logger.info(f"Loaded profile set from {filepath} ({counts})")
    return profile_set


def profile_compatibility(first: Profile, second: Profile) -> int:
    """
    How well two profiles pair, on a 0-100 scale.

    100 same profile, 85 ideal match (either direction), 70 same family,
    55 adjacent families, 40 otherwise.
    """
    if first.id == second.id:
        return 100
    if second.name in first.ideal_matches or first.name in second.ideal_matches:
        return 85
    if first.family == second.family:
        return 70
    if frozenset({first.family, second.family}) in ADJACENT_FAMILIES:
        return 55
    return 40
