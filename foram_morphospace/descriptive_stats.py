"""
Descriptive statistics per measurement and time bin.

Summary table (n, mean, median, SD, range, CV) for every long-format
variable, split by series.
"""

import numpy as np
import pandas as pd

from .config import SERIES_COL, OUTPUT_DIR


def summarise_by_series(long_df: pd.DataFrame) -> pd.DataFrame:
    """Per (variable, series) summary of the non-missing values."""
    rows = []
    for (variable, series), grp in long_df.groupby(["variable", SERIES_COL], sort=False, observed=True):
        s = grp["value"].dropna()
        if len(s) == 0:
            continue
        mean = s.mean()
        rows.append({
            "variable": variable,
            "label": grp["label"].iloc[0] if "label" in grp else variable,
            SERIES_COL: series,
            "n": len(s),
            "Mean": round(mean, 3),
            "Median": round(s.median(), 3),
            "SD": round(s.std(), 3),
            "Min": round(s.min(), 3),
            "Max": round(s.max(), 3),
            "CV_%": round(s.std() / abs(mean) * 100, 1) if mean != 0 and len(s) > 1 else np.nan,
        })
    return pd.DataFrame(rows)


def run(long_2d: pd.DataFrame, long_3d: pd.DataFrame) -> dict[str, pd.DataFrame]:
    results = {
        "descriptive_2d": summarise_by_series(long_2d),
        "descriptive_3d": summarise_by_series(long_3d),
    }

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    for name, tbl in results.items():
        tbl.to_csv(OUTPUT_DIR / f"{name}.csv", index=False)

    return results
