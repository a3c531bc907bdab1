"""Profiles module: psychographic profile rules and matching."""

from .definitions import (
    Profile,
    ProfileCriterion,
    ProfileSet,
    UNISEX,
    load_profile_set,
    profile_compatibility,
)
from .matcher import ProfileMatch, ProfileMatcher, first_match

__all__ = [
    "Profile",
    "ProfileCriterion",
    "ProfileSet",
    "UNISEX",
    "load_profile_set",
    "profile_compatibility",
    "ProfileMatch",
    "ProfileMatcher",
    "first_match",
]
