"""
Visualization module: all plots for the morphometrics analysis.

Generates:
1. Per-measurement box plots by series with n and significance brackets
2. Per-measurement time series (value vs age)
3. Main-text box plot summary
4. Time series with isotope curves
5. GLS coefficient dot plot
6. PCA morphospace (scores, convex hulls, loadings) + disparity box plots
"""

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import seaborn as sns
from matplotlib.patches import Patch
from scipy.spatial import ConvexHull

from .config import (
    SERIES, SERIES_COL, SERIES_COLORS, AGE_COL, SAMPLE_COL,
    ISOTOPE_LABELS, INTERCEPT_TERM, GLS_RESPONSES, SUMMARY_PANELS,
    TAXONOMY_2D, TAXONOMY_3D, OUTPUT_DIR,
)
from .reshape import ordered_labels, specimen_means

# Global plot style
plt.rcParams.update({
    "figure.dpi": 150,
    "savefig.dpi": 300,
    "savefig.bbox": "tight",
    "font.size": 9,
    "axes.titlesize": 11,
    "axes.labelsize": 10,
})

BOX_WIDTH = 0.8
PALETTE = dict(SERIES_COLORS)


def _save(fig, name: str):
    """Save figure to output directory."""
    out = OUTPUT_DIR / "plots"
    out.mkdir(parents=True, exist_ok=True)
    fig.savefig(out / f"{name}.png")
    plt.close(fig)


def hue_offsets(n_hue: int = len(SERIES), width: float = BOX_WIDTH) -> dict:
    """x offset of each series' box relative to its category centre."""
    return {s: (i - (n_hue - 1) / 2) * width / n_hue for i, s in enumerate(SERIES[:n_hue])}


def _draw_brackets(ax, x_center: float, top: float, step: float, tests: pd.DataFrame):
    offsets = hue_offsets()
    for k, row in enumerate(tests.itertuples(index=False)):
        x1 = x_center + offsets[row.group1]
        x2 = x_center + offsets[row.group2]
        y = top + step * (k + 1)
        ax.plot([x1, x1, x2, x2], [y - step * 0.3, y, y, y - step * 0.3], lw=0.7, color="black")
        ax.text((x1 + x2) / 2, y, row.significance, ha="center", va="bottom", fontsize=6)


# ──────────────────────────────────────────────────────────────────
# 1. Box plots by series
# ──────────────────────────────────────────────────────────────────
def draw_measurement_box(ax, long_sub: pd.DataFrame, tests: pd.DataFrame):
    """Grouped box plot on `ax` with n labels and pairwise brackets."""
    labels = ordered_labels(long_sub["label"])
    sns.boxplot(
        data=long_sub, x="label", y="value", hue=SERIES_COL,
        order=labels, hue_order=list(SERIES), palette=PALETTE,
        width=BOX_WIDTH, fliersize=2, linewidth=0.7, ax=ax,
    )

    values = long_sub["value"].dropna()
    ymin, ymax = values.min(), values.max()
    step = (ymax - ymin) * 0.07 or 1.0
    offsets = hue_offsets()

    for i, label in enumerate(labels):
        sub = long_sub[long_sub["label"] == label]
        for s, off in offsets.items():
            n = int(sub.loc[sub[SERIES_COL] == s, "value"].notna().sum())
            ax.text(i + off, ymin - step * 0.5, f"n={n}", ha="center", va="top", fontsize=5)
        top = sub["value"].max()
        if pd.isna(top):
            continue
        var_tests = tests[tests["variable"].isin(sub["variable"].unique())]
        _draw_brackets(ax, i, top, step, var_tests)

    ax.set_ylim(ymin - step * 2, ymax + step * (len(SERIES) + 1.5))
    ax.set_xlabel("")


def plot_measurement_boxplots(long_df: pd.DataFrame, taxonomy, tests: pd.DataFrame, tag: str):
    """One box plot per taxonomy entry: box_<tag>_<prefix>.png."""
    for prefix, m in taxonomy.items():
        sub = long_df[long_df["prefix"] == prefix]
        if sub["value"].notna().sum() == 0:
            continue
        n_labels = len(ordered_labels(sub["label"]))
        fig, ax = plt.subplots(figsize=(max(4.5, 1.5 * n_labels + 2), 4.5))
        draw_measurement_box(ax, sub, tests)
        ax.set_ylabel(m.axis_label)
        ax.set_title(f"{m.label} by series ({tag})")
        ax.legend(title=None, fontsize=7, loc="upper left", bbox_to_anchor=(1.0, 1.0))
        fig.tight_layout()
        _save(fig, f"box_{tag}_{prefix}")


# ──────────────────────────────────────────────────────────────────
# 2. Time series by measurement
# ──────────────────────────────────────────────────────────────────
def _scatter_by_series(ax, df: pd.DataFrame, y: str, size: float = 10):
    for s in SERIES:
        pts = df[df[SERIES_COL] == s]
        ax.scatter(pts[AGE_COL], pts[y], s=size, color=SERIES_COLORS[s], label=s,
                   alpha=0.8, edgecolors="none")


def plot_measurement_timeseries(long_df: pd.DataFrame, taxonomy, tag: str):
    """Value vs age per whorl label: timeseries_<tag>_<prefix>.png."""
    for prefix, m in taxonomy.items():
        sub = long_df[(long_df["prefix"] == prefix)].dropna(subset=["value"])
        if sub.empty:
            continue
        labels = ordered_labels(sub["label"])
        fig, axes = plt.subplots(1, len(labels), figsize=(3.2 * len(labels), 3.5),
                                 sharey=True, squeeze=False)
        for ax, label in zip(axes[0], labels):
            _scatter_by_series(ax, sub[sub["label"] == label], "value")
            ax.set_title(label)
            ax.set_xlabel("Age (Ma)")
            ax.invert_xaxis()
            ax.grid(True, alpha=0.3)
        axes[0, 0].set_ylabel(m.axis_label)
        axes[0, -1].legend(fontsize=7)
        fig.suptitle(f"{m.label} through time ({tag})", y=1.02)
        fig.tight_layout()
        _save(fig, f"timeseries_{tag}_{prefix}")


# ──────────────────────────────────────────────────────────────────
# 3. Main-text box plot summary
# ──────────────────────────────────────────────────────────────────
def fig_box_summary(longs: dict, tests: dict, panels=SUMMARY_PANELS):
    """Multi-panel box plots for the key measurements."""
    taxonomies = {"2D": TAXONOMY_2D, "3D": TAXONOMY_3D}
    ncols = 3
    nrows = int(np.ceil(len(panels) / ncols))
    fig, axes = plt.subplots(nrows, ncols, figsize=(5 * ncols, 4 * nrows), squeeze=False)
    axes = axes.ravel()

    for ax, (space, prefix) in zip(axes, panels):
        sub = longs[space][longs[space]["prefix"] == prefix]
        if sub["value"].notna().sum() == 0:
            ax.set_visible(False)
            continue
        draw_measurement_box(ax, sub, tests[space])
        ax.set_ylabel(taxonomies[space][prefix].axis_label)
        ax.set_title(f"{taxonomies[space][prefix].label} ({space})")
        if ax.get_legend() is not None:
            ax.get_legend().remove()
    for ax in axes[len(panels):]:
        ax.set_visible(False)

    handles = [Patch(facecolor=SERIES_COLORS[s], label=s) for s in SERIES]
    fig.legend(handles=handles, loc="upper center", ncol=len(SERIES), bbox_to_anchor=(0.5, 1.02))
    fig.tight_layout()
    _save(fig, "fig_boxplot_summary")


# ──────────────────────────────────────────────────────────────────
# 4. Time series with isotope curves
# ──────────────────────────────────────────────────────────────────
def fig_timeseries_isotopes(df_2d: pd.DataFrame, isotopes: pd.DataFrame,
                            isotope_cols=("d18O_benthic", "d13C_benthic"),
                            responses=GLS_RESPONSES):
    """Isotope curves stacked above per-sample mean measurements."""
    means = specimen_means(df_2d, TAXONOMY_2D, responses)
    per_sample = (
        pd.concat([df_2d[[SAMPLE_COL, AGE_COL, SERIES_COL]], means], axis=1)
        .groupby([SAMPLE_COL, AGE_COL, SERIES_COL], observed=True, sort=False)[list(responses)]
        .mean()
        .reset_index()
    )

    n_rows = len(isotope_cols) + len(responses)
    fig, axes = plt.subplots(n_rows, 1, figsize=(8, 1.8 * n_rows), sharex=True)

    eot = df_2d.loc[df_2d[SERIES_COL] == "EOT", AGE_COL]
    for ax in axes:
        if not eot.empty:
            ax.axvspan(eot.min(), eot.max(), color=SERIES_COLORS["EOT"], alpha=0.12, lw=0)
        ax.grid(True, alpha=0.3)

    for ax, col in zip(axes, isotope_cols):
        ax.plot(isotopes[AGE_COL], isotopes[col], color="black", lw=0.8)
        ax.set_ylabel(ISOTOPE_LABELS.get(col, col), fontsize=8)
        if col.startswith("d18O"):
            ax.invert_yaxis()

    for ax, col in zip(axes[len(isotope_cols):], responses):
        _scatter_by_series(ax, per_sample, col, size=14)
        ax.set_ylabel(TAXONOMY_2D[col].axis_label, fontsize=8)

    axes[-1].set_xlabel("Age (Ma)")
    axes[-1].invert_xaxis()
    axes[len(isotope_cols)].legend(fontsize=7, loc="upper left")
    fig.tight_layout()
    _save(fig, "fig_timeseries_isotopes")


# ──────────────────────────────────────────────────────────────────
# 5. GLS coefficient dot plot
# ──────────────────────────────────────────────────────────────────
def fig_regression_coefficients(gls: pd.DataFrame):
    """Slope estimates ± 1.96 SE per model; filled markers = lowest AIC."""
    coefs = gls[gls["converged"] & (gls["term"] != INTERCEPT_TERM)]
    if coefs.empty:
        return

    measurements = list(dict.fromkeys(coefs["measurement"]))
    terms = list(dict.fromkeys(coefs["term"]))
    colors = dict(zip(terms, sns.color_palette("dark", len(terms))))

    fig, axes = plt.subplots(1, len(measurements), figsize=(4.5 * len(measurements), 5),
                             squeeze=False)
    for ax, meas in zip(axes[0], measurements):
        sub = coefs[coefs["measurement"] == meas].reset_index(drop=True)
        rows = list(dict.fromkeys(zip(sub[SERIES_COL], sub["predictors"])))
        y_of = {r: i for i, r in enumerate(rows)}
        for term in terms:
            t = sub[sub["term"] == term]
            for best, marker_face in ((True, None), (False, "none")):
                pts = t[(t["delta_AIC"] == 0) == best]
                if pts.empty:
                    continue
                y = [y_of[(s, p)] + (terms.index(term) - (len(terms) - 1) / 2) * 0.15
                     for s, p in zip(pts[SERIES_COL], pts["predictors"])]
                ax.errorbar(pts["estimate"], y, xerr=1.96 * pts["std_error"], fmt="o",
                            color=colors[term], mfc=marker_face or colors[term],
                            capsize=2, ms=5, label=term if best else None)
        ax.set_yticks(range(len(rows)))
        ax.set_yticklabels([f"{s}: {p}" for s, p in rows], fontsize=7)
        ax.axvline(0, color="gray", lw=0.8, ls="--")
        ax.set_title(meas)
        ax.set_xlabel("Coefficient estimate")
        ax.invert_yaxis()
        ax.grid(True, alpha=0.3, axis="x")
    axes[0, -1].legend(fontsize=7, loc="best")
    fig.suptitle("GLS (AR1) coefficients by series", y=1.02)
    fig.tight_layout()
    _save(fig, "fig_regression_coefficients")


# ──────────────────────────────────────────────────────────────────
# 6. Morphospace
# ──────────────────────────────────────────────────────────────────
def _draw_hull(ax, pts: np.ndarray, color):
    """Convex hull of one series; a segment if collinear, nothing if a single point."""
    centred = pts - pts.mean(axis=0)
    rank = np.linalg.matrix_rank(centred)
    if rank == 2:
        verts = pts[ConvexHull(pts).vertices]
        ax.fill(verts[:, 0], verts[:, 1], color=color, alpha=0.15)
        ax.plot(np.append(verts[:, 0], verts[0, 0]), np.append(verts[:, 1], verts[0, 1]),
                color=color, lw=0.8)
    elif rank == 1:
        # project onto the line through the points and join the extremes
        direction = centred[np.argmax(np.linalg.norm(centred, axis=1))]
        proj = centred @ direction
        ends = pts[[np.argmin(proj), np.argmax(proj)]]
        ax.plot(ends[:, 0], ends[:, 1], color=color, lw=0.8)


def draw_morphospace(ax, pca, x: str = "PC1", y: str = "PC2"):
    """Score scatter with convex hulls per series and loading arrows."""
    scores = pca.scores
    for s in SERIES:
        pts = scores.loc[scores[SERIES_COL] == s, [x, y]].to_numpy()
        if len(pts) == 0:
            continue
        ax.scatter(pts[:, 0], pts[:, 1], s=12, color=SERIES_COLORS[s], label=s, alpha=0.8)
        _draw_hull(ax, pts, SERIES_COLORS[s])

    load = pca.loadings[[x, y]]
    reach = np.abs(scores[[x, y]].to_numpy()).max()
    scale = 0.8 * reach / np.abs(load.to_numpy()).max()
    for trait, (lx, ly) in load.iterrows():
        ax.annotate("", xy=(lx * scale, ly * scale), xytext=(0, 0),
                    arrowprops=dict(arrowstyle="->", color="black", lw=0.8))
        ax.text(lx * scale * 1.1, ly * scale * 1.1, trait, fontsize=7, ha="center", va="center")

    ax.axhline(0, color="gray", lw=0.5)
    ax.axvline(0, color="gray", lw=0.5)
    ax.set_xlabel(pca.axis_label(x))
    ax.set_ylabel(pca.axis_label(y))


def fig_morphospace(space_results: dict, tag: str):
    """PCA score plot with attached disparity box plot."""
    pca = space_results["pca"]
    if len(pca.components) < 2:
        return
    fig, (ax_pca, ax_disp) = plt.subplots(
        1, 2, figsize=(11, 5), gridspec_kw={"width_ratios": [3, 1.2]},
    )
    draw_morphospace(ax_pca, pca)
    ax_pca.legend(fontsize=7)
    ax_pca.set_title(f"Morphospace ({tag})")

    boot = space_results["disparity_boot"]
    sns.boxplot(data=boot, x=SERIES_COL, y="disparity", hue=SERIES_COL,
                order=list(SERIES), hue_order=list(SERIES), palette=PALETTE,
                legend=False, fliersize=2, linewidth=0.7, ax=ax_disp)
    ax_disp.set_xlabel("")
    ax_disp.set_ylabel("Disparity (sum of variances)")
    ax_disp.set_title("Bootstrap disparity")
    fig.tight_layout()
    _save(fig, f"fig_morphospace_{tag}")


# ──────────────────────────────────────────────────────────────────
# Master plot runner
# ──────────────────────────────────────────────────────────────────
def run_all_plots(
    data: dict,
    longs: dict,
    ttests: dict,
    gls: pd.DataFrame = None,
    morpho: dict = None,
):
    """Generate every figure.

    `data` holds the loaded tables ("2D", "3D", "isotopes"); `longs` and
    `ttests` are keyed by trait space ("2D", "3D").
    """
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    (OUTPUT_DIR / "plots").mkdir(exist_ok=True)

    taxonomies = {"2D": TAXONOMY_2D, "3D": TAXONOMY_3D}
    for space, taxonomy in taxonomies.items():
        plot_measurement_boxplots(longs[space], taxonomy, ttests[space], space.lower())
        plot_measurement_timeseries(longs[space], taxonomy, space.lower())

    fig_box_summary(longs, ttests)
    fig_timeseries_isotopes(data["2D"], data["isotopes"])

    if gls is not None:
        fig_regression_coefficients(gls)

    if morpho is not None:
        for tag, res in morpho.items():
            fig_morphospace(res, tag)
