"""
Configuration loading and validation.

This module handles loading of YAML configuration files and
validates that all required fields are present.
"""

import logging
from pathlib import Path
from typing import Dict, Any, List

import yaml

logger = logging.getLogger(__name__)


def load_config(filepath: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        filepath: Path to the YAML configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {filepath}")

    logger.info(f"Loading configuration from {filepath}")
    with open(filepath, "r") as f:
        config = yaml.safe_load(f)

    if config is None:
        raise ValueError(f"Configuration file is empty: {filepath}")

    return config


def resolve_path(config_path: str, target: str) -> Path:
    """
    Resolve a path referenced from a config file.

    Relative paths are tried against the working directory first, then
    against the directory holding the config file and its parent (the
    project root for configs/config.yaml).
    """
    candidate = Path(target)
    if candidate.is_absolute() or candidate.exists():
        return candidate
    config_dir = Path(config_path).parent
    for base in (config_dir, config_dir.parent):
        if (base / candidate).exists():
            return base / candidate
    return candidate


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate configuration and return list of warnings/errors.

    Args:
        config: Configuration dictionary

    Returns:
        List of warning/error messages (empty if valid)
    """
    issues = []

    required_sections = ["global", "catalog", "scoring", "profiles",
                         "couple", "recalculation"]

    for section in required_sections:
        if section not in config:
            issues.append(f"Missing required section: {section}")

    if "catalog" in config and "path" not in (config["catalog"] or {}):
        issues.append("Missing catalog.path")

    if "profiles" in config and "path" not in (config["profiles"] or {}):
        issues.append("Missing profiles.path")

    if "scoring" in config:
        scoring = config["scoring"] or {}
        min_answered = scoring.get("min_answered_questions", 10)
        if not isinstance(min_answered, int) or min_answered < 1:
            issues.append(f"scoring.min_answered_questions must be a positive integer, got {min_answered}")
        if not scoring.get("antithesis_markers", ["default"]):
            issues.append("scoring.antithesis_markers is empty; declarations can never score 0")

    # Thresholds must leave room for a neutral band
    if "couple" in config:
        couple = config["couple"] or {}
        close = couple.get("close_threshold", 15)
        far = couple.get("far_threshold", 25)
        if close > far:
            issues.append(f"couple.close_threshold ({close}) exceeds couple.far_threshold ({far})")
        alpha = couple.get("alpha", 0.6)
        if not 0 <= alpha <= 1:
            issues.append(f"couple.alpha must be in [0, 1], got {alpha}")

    if "recalculation" in config:
        n_jobs = (config["recalculation"] or {}).get("n_jobs", 1)
        if not isinstance(n_jobs, int) or n_jobs == 0:
            issues.append(f"recalculation.n_jobs must be a non-zero integer, got {n_jobs}")

    return issues


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Get a nested configuration value using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "couple.close_threshold")
        default: Default value if path doesn't exist

    Returns:
        Configuration value or default
    """
    keys = path.split(".")
    value = config
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value
