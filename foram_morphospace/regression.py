"""
GLS model-selection sweep: morphometric responses vs isotope predictors.

For every response, every predictor subset (intercept-only, singletons,
full set) and every series, a generalized-least-squares model with AR(1)
residual correlation is fitted by maximum likelihood. The AR(1) runs over
row order, which is age order after loading.

A fit either succeeds (GlsFit) or fails (GlsFailure: too few rows, singular
design, non-convergence). Failures collapse to one sentinel row so the
result table has a row for every grid cell.

Within each series the complete-case rows over response + full predictor set
are computed once and reused for every nested model, so the null model is
fitted on exactly the same specimens as the full model and the AIC values
are comparable.
"""
from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.optimize import minimize_scalar

from .config import (
    SERIES, SERIES_COL, AGE_COL, TAXONOMY_2D,
    GLS_RESPONSES, GLS_PREDICTORS, INTERCEPT_TERM, AR1_BOUNDS, OUTPUT_DIR,
)
from .reshape import specimen_means

logger = logging.getLogger(__name__)

RESULT_COLUMNS = [
    "measurement", "model", "predictors", SERIES_COL, "term",
    "estimate", "std_error", "phi", "n", "logLik", "AIC", "converged",
]


@dataclass(frozen=True)
class GlsFit:
    terms: tuple[str, ...]
    params: np.ndarray
    bse: np.ndarray
    phi: float
    n: int
    llf: float
    aic: float


@dataclass(frozen=True)
class GlsFailure:
    reason: str
    n: int


def predictor_subsets(predictors=GLS_PREDICTORS) -> list[tuple[str, ...]]:
    """Intercept-only model first, then every non-empty subset by size."""
    subsets = [()]
    for r in range(1, len(predictors) + 1):
        subsets.extend(itertools.combinations(predictors, r))
    return subsets


def model_formula(response: str, subset: tuple[str, ...]) -> str:
    return f"{response} ~ {' + '.join(subset) if subset else '1'}"


def ar1_correlation(n: int, phi: float) -> np.ndarray:
    """AR(1) correlation matrix: corr(e_i, e_j) = phi^|i-j|."""
    idx = np.arange(n)
    return phi ** np.abs(idx[:, None] - idx[None, :])


def _gls(y: np.ndarray, X: np.ndarray, phi: float):
    return sm.GLS(y, X, sigma=ar1_correlation(len(y), phi)).fit()


def fit_gls_ar1(y, X, terms) -> GlsFit | GlsFailure:
    """ML fit of y ~ X with AR(1) errors; phi is profiled out.

    AIC counts the regression coefficients plus the residual variance and
    phi.
    """
    y = np.asarray(y, dtype=float)
    X = np.asarray(X, dtype=float)
    n, k = X.shape

    if n < k + 3:
        return GlsFailure(f"insufficient data ({n} rows for {k} coefficients)", n)
    if np.linalg.matrix_rank(X) < k:
        return GlsFailure("singular design matrix", n)

    try:
        opt = minimize_scalar(lambda phi: -_gls(y, X, phi).llf,
                              bounds=AR1_BOUNDS, method="bounded")
        if not opt.success:
            return GlsFailure(f"phi optimisation did not converge: {opt.message}", n)
        res = _gls(y, X, opt.x)
    except (np.linalg.LinAlgError, ValueError) as exc:
        return GlsFailure(f"{type(exc).__name__}: {exc}", n)

    if not np.isfinite(res.llf):
        return GlsFailure("non-finite log-likelihood", n)

    llf = float(res.llf)
    return GlsFit(
        terms=tuple(terms),
        params=np.asarray(res.params),
        bse=np.asarray(res.bse),
        phi=float(opt.x),
        n=n,
        llf=llf,
        aic=-2 * llf + 2 * (k + 2),
    )


def collapse(result: GlsFit | GlsFailure, measurement: str,
             subset: tuple[str, ...], series: str) -> list[dict]:
    """Uniform-shape rows for either outcome of a fit."""
    base = {
        "measurement": measurement,
        "model": model_formula(measurement, subset),
        "predictors": " + ".join(subset) if subset else "1",
        SERIES_COL: series,
    }
    if isinstance(result, GlsFailure):
        return [{
            **base,
            "term": INTERCEPT_TERM,
            "estimate": np.nan,
            "std_error": np.nan,
            "phi": np.nan,
            "n": result.n,
            "logLik": np.nan,
            "AIC": np.nan,
            "converged": False,
        }]
    return [{
        **base,
        "term": term,
        "estimate": float(b),
        "std_error": float(se),
        "phi": result.phi,
        "n": result.n,
        "logLik": result.llf,
        "AIC": result.aic,
        "converged": True,
    } for term, b, se in zip(result.terms, result.params, result.bse)]


def design_matrix(sub: pd.DataFrame, subset: tuple[str, ...]) -> pd.DataFrame:
    X = pd.DataFrame({INTERCEPT_TERM: 1.0}, index=sub.index)
    for p in subset:
        X[p] = sub[p].astype(float)
    return X


def regression_table(df: pd.DataFrame, taxonomy=TAXONOMY_2D,
                     responses=GLS_RESPONSES, predictors=GLS_PREDICTORS) -> pd.DataFrame:
    """Response means + predictors + series, in age order."""
    means = specimen_means(df, taxonomy, responses)
    return pd.concat([df[[AGE_COL, SERIES_COL, *predictors]], means], axis=1)


def gls_sweep(df: pd.DataFrame, taxonomy=TAXONOMY_2D, responses=GLS_RESPONSES,
              predictors=GLS_PREDICTORS, series=SERIES) -> pd.DataFrame:
    """Fit every (response, predictor subset, series) combination."""
    data = regression_table(df, taxonomy, responses, predictors)
    subsets = predictor_subsets(predictors)

    rows = []
    for response in responses:
        for s in series:
            cases = data[data[SERIES_COL] == s].dropna(subset=[response, *predictors])
            for subset in subsets:
                X = design_matrix(cases, subset)
                result = fit_gls_ar1(cases[response], X, X.columns)
                if isinstance(result, GlsFailure):
                    logger.warning(f"GLS {model_formula(response, subset)} [{s}] failed: {result.reason}")
                rows.extend(collapse(result, response, subset, s))

    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def add_deltas(results: pd.DataFrame) -> pd.DataFrame:
    """delta_AIC / delta_logLik relative to the best model per (series, measurement)."""
    out = results.copy()
    grp = out.groupby([SERIES_COL, "measurement"], sort=False)
    out["delta_AIC"] = out["AIC"] - grp["AIC"].transform("min")
    out["delta_logLik"] = out["logLik"] - grp["logLik"].transform("max")
    return out


def best_models(results: pd.DataFrame) -> pd.DataFrame:
    """Coefficient rows of the lowest-AIC model per (series, measurement)."""
    return results[results["delta_AIC"] == 0].reset_index(drop=True)


def run(df_2d: pd.DataFrame) -> dict[str, pd.DataFrame]:
    """Run the GLS sweep on the 2D specimen table."""
    sweep = add_deltas(gls_sweep(df_2d))
    results = {
        "gls_model_selection": sweep,
        "gls_best_models": best_models(sweep),
    }

    n_failed = int((~sweep["converged"]).sum())
    if n_failed:
        logger.warning(f"{n_failed} GLS fits replaced by sentinel rows")

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    for name, tbl in results.items():
        tbl.to_csv(OUTPUT_DIR / f"{name}.csv", index=False)

    return results
