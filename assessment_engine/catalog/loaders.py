"""
Loading functions for the question catalog.

This module reads catalogs from YAML or CSV. No scoring is done here -
that's handled by the scoring module.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd
import yaml

from ..errors import CatalogError
from .schema import Question, QuestionCatalog

logger = logging.getLogger(__name__)


def load_question_catalog(filepath: str) -> QuestionCatalog:
    """
    Load a question catalog from YAML or CSV.

    The YAML form is a mapping with a "version" and a "questions" list.
    The CSV form has one row per question with columns id, section,
    subsection, type, text, options ("|"-separated), weight and optional
    antithesis/version columns.

    Args:
        filepath: Path to the catalog file

    Returns:
        QuestionCatalog

    Raises:
        FileNotFoundError: If the file doesn't exist
        CatalogError: If an entry violates the catalog invariants
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Question catalog not found: {filepath}")

    if path.suffix.lower() == ".csv":
        catalog = _load_csv_catalog(path)
    else:
        catalog = _load_yaml_catalog(path)

    logger.info(f"Loaded catalog {catalog.version} from {filepath}: "
                f"{len(catalog)} questions in {len(catalog.sections())} sections")
    return catalog


def _load_yaml_catalog(path: Path) -> QuestionCatalog:
    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if not data:
        raise CatalogError(f"Question catalog is empty: {path}")
    if isinstance(data, list):
        data = {"version": path.stem, "questions": data}

    return QuestionCatalog.from_dict(data)


def _load_csv_catalog(path: Path) -> QuestionCatalog:
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    if df.empty:
        raise CatalogError(f"Question catalog is empty: {path}")

    missing = [c for c in ("id", "section", "type", "options", "weight") if c not in df.columns]
    if missing:
        raise CatalogError(f"Catalog CSV {path} is missing columns: {missing}")

    version = path.stem
    if "version" in df.columns:
        versions = sorted({v for v in df["version"] if v})
        if len(versions) > 1:
            raise CatalogError(f"Catalog CSV {path} mixes versions: {versions}")
        if versions:
            version = versions[0]

    entries: List[Dict[str, Any]] = []
    for record in df.to_dict(orient="records"):
        entry = {k: v for k, v in record.items() if v != ""}
        if "weight" in entry:
            entry["weight"] = int(float(entry["weight"]))
        entries.append(entry)

    return QuestionCatalog([Question.from_dict(e) for e in entries], version=version)


def catalog_to_frame(catalog: QuestionCatalog) -> pd.DataFrame:
    """
    Flatten a catalog into a DataFrame, one row per question.

    Used by admin tooling to audit weights per section.
    """
    rows = []
    for question in catalog:
        rows.append({
            "id": question.id,
            "section": question.section,
            "label": question.label,
            "subsection": question.subsection,
            "type": question.type.value,
            "n_options": len(question.options),
            "weight": question.weight if question.is_scored else 0,
        })
    return pd.DataFrame(rows)
