"""
Data loading for the 2D, 3D and isotope tables.

Specimen tables are filtered to the three time bins and sorted oldest-first
so every downstream time-series view is monotonic in age.
"""
from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from .config import (
    AGE_COL, SERIES_COL, SERIES,
    MORPHO_2D_CSV, MORPHO_3D_CSV, ISOTOPES_CSV,
)

logger = logging.getLogger(__name__)


def _sort_by_age(df: pd.DataFrame) -> pd.DataFrame:
    return df.sort_values(AGE_COL, ascending=False, kind="mergesort").reset_index(drop=True)


def prepare_specimens(df: pd.DataFrame) -> pd.DataFrame:
    """Row filter + ordered series categorical + descending age sort."""
    keep = df[SERIES_COL].isin(SERIES) & df[AGE_COL].notna()
    n_dropped = int((~keep).sum())
    if n_dropped:
        logger.info(f"Dropping {n_dropped} rows without a valid series label or age")

    out = df.loc[keep].copy()
    out[SERIES_COL] = pd.Categorical(out[SERIES_COL], categories=list(SERIES), ordered=True)
    return _sort_by_age(out)


def load_morphometrics(path: Path) -> pd.DataFrame:
    """Load a 2D or 3D specimen table."""
    df = pd.read_csv(path)
    logger.info(f"Loaded {path.name}: {df.shape[0]} rows x {df.shape[1]} columns")
    return prepare_specimens(df)


def load_isotopes(path: Path) -> pd.DataFrame:
    """Load the isotope record, dropping undated rows."""
    df = pd.read_csv(path)
    logger.info(f"Loaded {path.name}: {df.shape[0]} rows")
    return _sort_by_age(df.dropna(subset=[AGE_COL]))


def load_all() -> dict[str, pd.DataFrame]:
    """Load the three configured datasets."""
    return {
        "2D": load_morphometrics(MORPHO_2D_CSV),
        "3D": load_morphometrics(MORPHO_3D_CSV),
        "isotopes": load_isotopes(ISOTOPES_CSV),
    }
