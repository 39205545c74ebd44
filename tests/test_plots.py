"""Smoke tests for plots.py: figures are written where expected."""
from dataclasses import replace

import numpy as np
import pandas as pd
import pytest

from foram_morphospace import plots, pairwise_tests, regression, morphospace
from foram_morphospace.config import TAXONOMY_2D, TAXONOMY_3D, PCA_TRAITS_2D, SERIES


@pytest.fixture
def plot_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(plots, "OUTPUT_DIR", tmp_path)
    return tmp_path / "plots"


def test_hue_offsets_symmetric():
    offsets = plots.hue_offsets()
    assert list(offsets) == list(SERIES)
    assert offsets["EOT"] == pytest.approx(0.0)
    assert offsets["Eocene"] == pytest.approx(-offsets["Oligocene"])


def test_boxplot_per_taxonomy_entry(plot_dir, long_2d):
    tests = pairwise_tests.pairwise_ttests(long_2d)
    plots.plot_measurement_boxplots(long_2d, TAXONOMY_2D, tests, "2d")
    for prefix in TAXONOMY_2D:
        assert (plot_dir / f"box_2d_{prefix}.png").exists()


def test_timeseries_per_taxonomy_entry(plot_dir, long_3d):
    plots.plot_measurement_timeseries(long_3d, TAXONOMY_3D, "3d")
    for prefix in TAXONOMY_3D:
        assert (plot_dir / f"timeseries_3d_{prefix}.png").exists()


def test_empty_measurement_skipped(plot_dir, long_2d):
    sub = long_2d[long_2d["prefix"] != "CA"]
    tests = pairwise_tests.pairwise_ttests(sub)
    plots.plot_measurement_boxplots(sub, TAXONOMY_2D, tests, "2d")
    assert not (plot_dir / "box_2d_CA.png").exists()
    assert (plot_dir / "box_2d_P.png").exists()


def test_composed_figures(plot_dir, prepared_2d, long_2d, long_3d, synthetic_isotopes):
    longs = {"2D": long_2d, "3D": long_3d}
    tests = {k: pairwise_tests.pairwise_ttests(v) for k, v in longs.items()}
    plots.fig_box_summary(longs, tests)
    plots.fig_timeseries_isotopes(prepared_2d, synthetic_isotopes)
    assert (plot_dir / "fig_boxplot_summary.png").exists()
    assert (plot_dir / "fig_timeseries_isotopes.png").exists()


def test_regression_figure(plot_dir, prepared_2d):
    sweep = regression.add_deltas(regression.gls_sweep(prepared_2d))
    plots.fig_regression_coefficients(sweep)
    assert (plot_dir / "fig_regression_coefficients.png").exists()


def test_morphospace_figure(plot_dir, prepared_2d):
    pca = morphospace.run_pca(prepared_2d, PCA_TRAITS_2D)
    res = {"pca": pca, "disparity_boot": morphospace.bootstrap_disparity(pca.scores, n_boot=20, seed=0)}
    plots.fig_morphospace(res, "2d")
    assert (plot_dir / "fig_morphospace_2d.png").exists()


def _with_eot_scores(pca, eot_rows):
    scores = pca.scores
    new_scores = pd.concat([scores[scores["Series"] != "EOT"], eot_rows])
    return replace(pca, scores=new_scores)


def test_morphospace_duplicate_specimens(plot_dir, prepared_2d):
    """Three identical EOT specimens: no hull, figure still written."""
    pca = morphospace.run_pca(prepared_2d, PCA_TRAITS_2D)
    eot = pca.scores[pca.scores["Series"] == "EOT"]
    degenerate = _with_eot_scores(pca, pd.concat([eot.iloc[[0]]] * 3))
    res = {"pca": degenerate,
           "disparity_boot": morphospace.bootstrap_disparity(degenerate.scores, n_boot=20, seed=0)}
    plots.fig_morphospace(res, "2d")
    assert (plot_dir / "fig_morphospace_2d.png").exists()


def test_collinear_series_drawn_as_segment():
    points = np.array([[0.0, 0.0], [1.0, 2.0], [2.0, 4.0], [0.5, 1.0]])
    fig, ax = plots.plt.subplots()
    plots._draw_hull(ax, points, "red")
    assert len(ax.lines) == 1
    xs, ys = ax.lines[0].get_data()
    assert sorted(xs) == [0.0, 2.0]
    assert sorted(ys) == [0.0, 4.0]
    plots.plt.close(fig)


def test_single_point_draws_nothing():
    fig, ax = plots.plt.subplots()
    plots._draw_hull(ax, np.array([[1.0, 1.0], [1.0, 1.0], [1.0, 1.0]]), "red")
    assert len(ax.lines) == 0 and len(ax.patches) == 0
    plots.plt.close(fig)
