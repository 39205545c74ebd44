"""
Morphospace analysis: PCA, pairwise PERMANOVA, disparity bootstrap.

- PCA on standardized trait vectors (4 traits in 2D, 7 in 3D). Percent
  variance per component is 100 * singular value / sum of singular values,
  i.e. a ratio of standard deviations rather than of variances; this is the
  convention of the published figures.
- Pairwise PERMANOVA (Euclidean distance, 999 permutations) for each pair
  of series.
- Disparity (sum of per-PC variances) bootstrapped within each series, with
  pairwise t-tests between the bootstrap distributions.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy.spatial.distance import pdist, squareform
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

from .config import (
    SAMPLE_COL, SERIES_COL, SERIES, SERIES_PAIRS,
    PCA_TRAITS_2D, PCA_TRAITS_3D,
    N_PERMUTATIONS, N_BOOTSTRAP, CI_PERCENTILES, SEED, OUTPUT_DIR,
)
from .pairwise_tests import pairwise_ttests, significance_band

logger = logging.getLogger(__name__)


@dataclass
class PcaResult:
    traits: tuple[str, ...]
    scores: pd.DataFrame        # PC1..PCk + Sample + Series
    loadings: pd.DataFrame      # rows = traits, columns = PCs
    variance: pd.DataFrame      # component, singular_value, percent
    standardized: pd.DataFrame  # z-scored traits + Series

    @property
    def components(self) -> list[str]:
        return list(self.loadings.columns)

    def axis_label(self, component: str) -> str:
        pct = self.variance.set_index("component").loc[component, "percent"]
        return f"{component} ({pct:.1f}%)"


# ──────────────────────────────────────────────────────────────────
# PCA
# ──────────────────────────────────────────────────────────────────
def run_pca(df: pd.DataFrame, traits) -> PcaResult:
    """Unweighted PCA of the z-scored traits over complete cases.

    Traits are scaled by their sample SD (ddof 1), as R's ``scale()`` does,
    so the PC score variances sum to the number of traits.
    """
    traits = tuple(traits)
    cases = df.dropna(subset=list(traits))

    centred = StandardScaler(with_std=False).fit_transform(cases[list(traits)].astype(float))
    z = centred / centred.std(axis=0, ddof=1)
    pca = PCA().fit(z)
    pcs = [f"PC{i + 1}" for i in range(pca.n_components_)]

    scores = pd.DataFrame(pca.transform(z), columns=pcs, index=cases.index)
    scores[SAMPLE_COL] = cases[SAMPLE_COL]
    scores[SERIES_COL] = cases[SERIES_COL]

    standardized = pd.DataFrame(z, columns=list(traits), index=cases.index)
    standardized[SERIES_COL] = cases[SERIES_COL]

    sv = pca.singular_values_
    variance = pd.DataFrame({
        "component": pcs,
        "singular_value": sv,
        "percent": 100 * sv / sv.sum(),
    })
    loadings = pd.DataFrame(pca.components_.T, index=list(traits), columns=pcs)
    loadings.index.name = "trait"

    return PcaResult(traits, scores, loadings, variance, standardized)


# ──────────────────────────────────────────────────────────────────
# PERMANOVA
# ──────────────────────────────────────────────────────────────────
def _ss_within(d2: np.ndarray, codes: np.ndarray, n_groups: int) -> float:
    total = 0.0
    for g in range(n_groups):
        idx = np.flatnonzero(codes == g)
        total += d2[np.ix_(idx, idx)].sum() / 2 / len(idx)
    return total


def permanova(X, groups, n_permutations: int = N_PERMUTATIONS, seed=SEED) -> dict:
    """One-factor PERMANOVA on Euclidean distances.

    Returns R2, pseudo-F and the permutation p-value
    (#{F* >= F} + 1) / (n_permutations + 1).
    """
    X = np.asarray(X, dtype=float)
    labels, codes = np.unique(np.asarray(groups), return_inverse=True)
    n, a = len(codes), len(labels)
    if a < 2 or n <= a:
        raise ValueError(f"PERMANOVA needs >= 2 groups and more rows than groups (got {a} groups, {n} rows)")

    d2 = squareform(pdist(X, metric="euclidean")) ** 2
    ss_total = d2[np.triu_indices(n, k=1)].sum() / n

    def pseudo_f(c):
        ss_w = _ss_within(d2, c, a)
        return ((ss_total - ss_w) / (a - 1)) / (ss_w / (n - a)), ss_w

    f_obs, ss_w = pseudo_f(codes)
    rng = np.random.default_rng(seed)
    f_perm = np.array([pseudo_f(rng.permutation(codes))[0] for _ in range(n_permutations)])
    # tolerance for ties against the observed statistic
    n_ge = int(np.sum(f_perm >= f_obs - 1e-8 * abs(f_obs)))

    return {
        "R2": (ss_total - ss_w) / ss_total,
        "F": f_obs,
        "p_value": (n_ge + 1) / (n_permutations + 1),
        "n_permutations": n_permutations,
    }


def pairwise_permanova(pca: PcaResult, pairs=SERIES_PAIRS,
                       n_permutations: int = N_PERMUTATIONS, seed=SEED) -> pd.DataFrame:
    """PERMANOVA on the standardized traits for each series pair."""
    rng = np.random.default_rng(seed)
    z = pca.standardized
    rows = []
    for g1, g2 in pairs:
        sub = z[z[SERIES_COL].isin([g1, g2])]
        res = permanova(sub[list(pca.traits)], sub[SERIES_COL].astype(str),
                        n_permutations=n_permutations, seed=rng)
        rows.append({
            "group1": g1,
            "group2": g2,
            "n1": int((sub[SERIES_COL] == g1).sum()),
            "n2": int((sub[SERIES_COL] == g2).sum()),
            "R2": res["R2"],
            "F": res["F"],
            "p_value": res["p_value"],
            "significance": significance_band(res["p_value"]),
        })
    return pd.DataFrame(rows)


# ──────────────────────────────────────────────────────────────────
# Disparity bootstrap
# ──────────────────────────────────────────────────────────────────
def sum_of_variances(scores: np.ndarray) -> float:
    return float(np.var(scores, axis=0, ddof=1).sum())


def bootstrap_disparity(scores: pd.DataFrame, n_boot: int = N_BOOTSTRAP,
                        seed=SEED, series=SERIES) -> pd.DataFrame:
    """Resample each series with replacement and record its sum of variances."""
    rng = np.random.default_rng(seed)
    pcs = [c for c in scores.columns if str(c).startswith("PC")]
    rows = []
    for s in series:
        vals = scores.loc[scores[SERIES_COL] == s, pcs].to_numpy()
        n = len(vals)
        if n < 2:
            logger.warning(f"Disparity bootstrap skipped for {s}: {n} specimen(s)")
            continue
        for b in range(n_boot):
            idx = rng.integers(0, n, size=n)
            rows.append({SERIES_COL: s, "replicate": b + 1, "disparity": sum_of_variances(vals[idx])})
    return pd.DataFrame(rows, columns=[SERIES_COL, "replicate", "disparity"])


def summarise_disparity(boot: pd.DataFrame) -> pd.DataFrame:
    """Mean and percentile interval of the bootstrap disparity per series."""
    lo, hi = CI_PERCENTILES
    rows = []
    for s, grp in boot.groupby(SERIES_COL, sort=False):
        d = grp["disparity"].to_numpy()
        rows.append({
            SERIES_COL: s,
            "n_boot": len(d),
            "mean": d.mean(),
            "lower_95": np.percentile(d, lo),
            "upper_95": np.percentile(d, hi),
        })
    return pd.DataFrame(rows)


def disparity_ttests(boot: pd.DataFrame) -> pd.DataFrame:
    out = pairwise_ttests(boot, value_col="disparity", by=None)
    out["variable"] = "disparity"
    return out


def analyse_space(df: pd.DataFrame, traits, seed=SEED) -> dict:
    """PCA + PERMANOVA + disparity for one trait space."""
    rng = np.random.default_rng(seed)
    pca = run_pca(df, traits)
    boot = bootstrap_disparity(pca.scores, seed=rng)
    return {
        "pca": pca,
        "permanova": pairwise_permanova(pca, seed=rng),
        "disparity_boot": boot,
        "disparity": summarise_disparity(boot),
        "disparity_ttests": disparity_ttests(boot),
    }


def run(df_2d: pd.DataFrame, df_3d: pd.DataFrame, seed=SEED) -> dict[str, dict]:
    """Morphospace analysis of both trait spaces."""
    rng = np.random.default_rng(seed)
    results = {
        "2d": analyse_space(df_2d, PCA_TRAITS_2D, seed=rng),
        "3d": analyse_space(df_3d, PCA_TRAITS_3D, seed=rng),
    }

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    for tag, res in results.items():
        pca = res["pca"]
        pca.variance.to_csv(OUTPUT_DIR / f"pca_variance_{tag}.csv", index=False)
        pca.loadings.to_csv(OUTPUT_DIR / f"pca_loadings_{tag}.csv")
        for name in ("permanova", "disparity", "disparity_boot", "disparity_ttests"):
            res[name].to_csv(OUTPUT_DIR / f"{name}_{tag}.csv", index=False)

    return results
