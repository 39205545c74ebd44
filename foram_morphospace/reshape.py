"""
Wide → long reshaping of per-whorl / per-chamber measurement columns.

Column selection is driven by the anchored regex patterns of the
measurement taxonomy in config.
"""
from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

import numpy as np
import pandas as pd

from .config import SAMPLE_COL, DEPTH_COL, AGE_COL, SERIES_COL, Measurement

ID_COLS = (SAMPLE_COL, DEPTH_COL, AGE_COL, SERIES_COL)

_WHORL_RE = re.compile(r"^[A-Za-z]+(\d+)$")


def select_columns(columns: Iterable[str], pattern: str) -> list[str]:
    """Columns matching `pattern`, in their original order."""
    rx = re.compile(pattern)
    return [c for c in columns if rx.search(c)]


def to_long(df: pd.DataFrame, pattern: str, id_cols: Iterable[str] = ID_COLS) -> pd.DataFrame:
    """One row per (original row, matched column); NaN values are kept."""
    id_cols = [c for c in id_cols if c in df.columns]
    cols = select_columns(df.columns, pattern)
    if not cols:
        return pd.DataFrame(columns=[*id_cols, "variable", "value"])

    long = df[id_cols + cols].melt(
        id_vars=id_cols, value_vars=cols, var_name="variable", value_name="value",
    )
    long["value"] = long["value"].astype(float)
    return long


def taxonomy_buckets(columns: Iterable[str], taxonomy: Mapping[str, Measurement]) -> dict[str, list[str]]:
    """Prefix -> matched columns for every taxonomy entry."""
    columns = list(columns)
    return {prefix: select_columns(columns, m.pattern) for prefix, m in taxonomy.items()}


def whorl_label(variable: str) -> str:
    """'R3' -> 'Whorl 3'; single-column measurements are returned unchanged."""
    return _WHORL_RE.sub(r"Whorl \1", variable)


def _whorl_sort_key(label: str):
    m = re.search(r"(\d+)$", label)
    return (0, int(m.group(1))) if m else (1, 0)


def measurements_long(df: pd.DataFrame, taxonomy: Mapping[str, Measurement]) -> pd.DataFrame:
    """Long table for every taxonomy entry, tagged with prefix and whorl label."""
    frames = []
    for prefix, m in taxonomy.items():
        long = to_long(df, m.pattern)
        if long.empty:
            continue
        long["prefix"] = prefix
        long["label"] = long["variable"].map(whorl_label) if m.per_whorl else m.label
        frames.append(long)

    if not frames:
        return pd.DataFrame(columns=[*ID_COLS, "variable", "value", "prefix", "label"])
    return pd.concat(frames, ignore_index=True)


def ordered_labels(labels: Iterable[str]) -> list[str]:
    """Unique labels with whorls in numeric order (Whorl 2 before Whorl 10)."""
    return sorted(set(labels), key=_whorl_sort_key)


def specimen_means(df: pd.DataFrame, taxonomy: Mapping[str, Measurement],
                   prefixes: Iterable[str]) -> pd.DataFrame:
    """Per-specimen mean over each prefix's matched columns.

    Single-column measurements pass through unchanged; a specimen with no
    values for a prefix gets NaN.
    """
    out = {}
    for prefix in prefixes:
        cols = select_columns(df.columns, taxonomy[prefix].pattern)
        if not cols:
            out[prefix] = pd.Series(np.nan, index=df.index)
        else:
            out[prefix] = df[cols].astype(float).mean(axis=1, skipna=True)
    return pd.DataFrame(out, index=df.index)
