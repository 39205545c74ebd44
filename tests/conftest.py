"""Pytest configuration and shared fixtures."""
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# (series, n specimens, age range in Ma)
SERIES_LAYOUT = (
    ("Eocene", 40, (34.6, 36.0)),
    ("EOT", 25, (33.7, 34.5)),
    ("Oligocene", 35, (31.0, 33.6)),
)


def _stratigraphy(rng):
    """Identifier, age and isotope columns plus a 0/0.6/1 series shift."""
    frames = []
    for series, n, (lo, hi) in SERIES_LAYOUT:
        age = rng.uniform(lo, hi, n)
        frames.append(pd.DataFrame({
            "Series": series,
            "Age_Ma": age,
            "Age_Ma_alt": age + rng.normal(0, 0.05, n),
            "Depth_m": 100 + (age - 31.0) * 20,
        }))
    strat = pd.concat(frames, ignore_index=True)
    shift = strat["Series"].map({"Eocene": 0.0, "EOT": 0.6, "Oligocene": 1.0})
    n = len(strat)
    strat["d18O_benthic"] = 1.0 + 1.2 * shift + rng.normal(0, 0.15, n)
    strat["d13C_benthic"] = 0.8 + 0.4 * shift + rng.normal(0, 0.15, n)
    strat["d18O_planktic"] = -1.0 + 1.0 * shift + rng.normal(0, 0.2, n)
    strat["d13C_planktic"] = 2.0 + 0.3 * shift + rng.normal(0, 0.2, n)
    strat.insert(0, "Sample", [f"S{i:03d}" for i in range(n)])
    return strat, shift


@pytest.fixture
def synthetic_2d():
    """Wide 2D morphometrics table, unsorted, with missing outer whorls."""
    rng = np.random.default_rng(42)
    df, shift = _stratigraphy(rng)
    n = len(df)
    df["P"] = 120 - 25 * shift + rng.normal(0, 10, n)
    df["D"] = 90 - 15 * shift + rng.normal(0, 8, n)
    df["CA"] = 2.0e5 + 3.0e4 * shift + rng.normal(0, 1.5e4, n)
    for w in (1, 2, 3):
        df[f"R{w}"] = 150 * w + rng.normal(0, 15, n)
        df[f"WT{w}"] = 10 + 2 * w + 3 * shift + rng.normal(0, 1.0, n)
        df[f"CN{w}"] = rng.integers(8 + 4 * w, 12 + 4 * w, n).astype(float)
        df[f"CL{w}"] = 40 + 10 * w + rng.normal(0, 4, n)
        df[f"CW{w}"] = 30 + 6 * w + rng.normal(0, 3, n)
        df[f"CR{w}"] = df[f"CL{w}"] / df[f"CW{w}"]
    missing = rng.random(n) < 0.1
    for col in ("R3", "WT3", "CN3", "CL3", "CW3", "CR3"):
        df.loc[missing, col] = np.nan
    return df.sample(frac=1.0, random_state=7).reset_index(drop=True)


@pytest.fixture
def synthetic_3d():
    """Wide 3D (CT) morphometrics table."""
    rng = np.random.default_rng(43)
    df, shift = _stratigraphy(rng)
    n = len(df)
    df["VP"] = 6.0e5 - 1.5e5 * shift + rng.normal(0, 5.0e4, n)
    for w in (1, 2, 3):
        df[f"V{w}"] = 1.0e6 * w ** 2 + rng.normal(0, 1.5e5 * w, n)
        df[f"N{w}"] = rng.integers(8 + 4 * w, 12 + 4 * w, n).astype(float)
    df["DM"] = 2000 + 200 * shift + rng.normal(0, 100, n)
    df["TH"] = 800 + 50 * shift + rng.normal(0, 40, n)
    return df.sample(frac=1.0, random_state=8).reset_index(drop=True)


@pytest.fixture
def synthetic_isotopes():
    rng = np.random.default_rng(44)
    n = 150
    age = np.sort(rng.uniform(31.0, 36.0, n))[::-1]
    step = (age < 34.0).astype(float)
    return pd.DataFrame({
        "Depth_m": 100 + (age - 31.0) * 20,
        "Age_Ma": age,
        "d13C_planktic": 2.0 + rng.normal(0, 0.2, n),
        "d18O_planktic": -1.0 + step + rng.normal(0, 0.2, n),
        "d13C_benthic": 0.8 + 0.4 * step + rng.normal(0, 0.15, n),
        "d18O_benthic": 1.0 + 1.2 * step + rng.normal(0, 0.15, n),
    })


@pytest.fixture
def prepared_2d(synthetic_2d):
    from foram_morphospace.loaders import prepare_specimens
    return prepare_specimens(synthetic_2d)


@pytest.fixture
def prepared_3d(synthetic_3d):
    from foram_morphospace.loaders import prepare_specimens
    return prepare_specimens(synthetic_3d)


@pytest.fixture
def long_2d(prepared_2d):
    from foram_morphospace.config import TAXONOMY_2D
    from foram_morphospace.reshape import measurements_long
    return measurements_long(prepared_2d, TAXONOMY_2D)


@pytest.fixture
def long_3d(prepared_3d):
    from foram_morphospace.config import TAXONOMY_3D
    from foram_morphospace.reshape import measurements_long
    return measurements_long(prepared_3d, TAXONOMY_3D)
