"""
Orchestrator: run all analyses and generate the text report.

Usage:
    python -m foram_morphospace.run_all
"""

import logging
import time

import pandas as pd

from .config import (
    OUTPUT_DIR, SERIES_COL, AGE_COL, SERIES, TAXONOMY_2D, TAXONOMY_3D, ALPHA,
)
from . import (
    loaders,
    reshape,
    descriptive_stats,
    pairwise_tests,
    regression,
    morphospace,
    plots,
)


def load_data() -> dict[str, pd.DataFrame]:
    """Load the three datasets and print a short overview."""
    data = loaders.load_all()
    for name in ("2D", "3D"):
        df = data[name]
        counts = df[SERIES_COL].value_counts().reindex(list(SERIES), fill_value=0)
        print(f"  {name}: {len(df)} specimens "
              f"({', '.join(f'{s}={n}' for s, n in counts.items())}), "
              f"age {df[AGE_COL].min():.2f}-{df[AGE_COL].max():.2f} Ma")
    print(f"  Isotopes: {len(data['isotopes'])} rows")
    return data


def _significant(tbl: pd.DataFrame) -> pd.DataFrame:
    return tbl[tbl["p_value"] < ALPHA]


def generate_text_report(all_results: dict) -> str:
    """Generate a human-readable summary of every analysis stage."""
    lines = [
        "=" * 80,
        "MORPHOMETRIC ANALYSIS REPORT",
        "Larger foraminifera across the Eocene-Oligocene transition",
        "=" * 80,
        "",
    ]

    # 1. Descriptive statistics
    lines.append("1. DESCRIPTIVE STATISTICS BY SERIES")
    lines.append("-" * 60)
    desc = all_results.get("descriptive", {})
    for name, tbl in desc.items():
        lines.append(f"[{name}] {tbl['variable'].nunique()} variables")
        lines.append(tbl.to_string(index=False))
        lines.append("")

    # 2. Pairwise t-tests
    lines.append("2. PAIRWISE WELCH T-TESTS (no multiple-comparison correction)")
    lines.append("-" * 60)
    tt = all_results.get("ttests", {})
    for name, tbl in tt.items():
        sig = _significant(tbl)
        lines.append(f"[{name}] {len(sig)}/{len(tbl)} comparisons with p < {ALPHA}")
        if not sig.empty:
            lines.append(sig[["variable", "group1", "group2", "statistic", "p_value", "significance"]]
                         .to_string(index=False))
        lines.append("")

    # 3. GLS sweep
    lines.append("3. GLS (AR1) MODEL SELECTION")
    lines.append("-" * 60)
    reg = all_results.get("regression", {})
    if "gls_model_selection" in reg:
        sweep = reg["gls_model_selection"]
        n_failed = int((~sweep["converged"]).sum())
        lines.append(f"Fits: {sweep.groupby(['measurement', 'model', SERIES_COL]).ngroups}, "
                     f"sentinel rows: {n_failed}")
    if "gls_best_models" in reg:
        lines.append("Lowest-AIC model per series and measurement:")
        lines.append(reg["gls_best_models"][
            ["measurement", SERIES_COL, "model", "term", "estimate", "std_error", "AIC"]
        ].to_string(index=False))
    lines.append("")

    # 4. Morphospace
    lines.append("4. MORPHOSPACE")
    lines.append("-" * 60)
    for tag, res in all_results.get("morphospace", {}).items():
        pca = res["pca"]
        lines.append(f"[{tag.upper()}] traits: {', '.join(pca.traits)}; n = {len(pca.scores)}")
        lines.append("Percent variance (singular value share):")
        lines.append(pca.variance.round(2).to_string(index=False))
        lines.append("Pairwise PERMANOVA:")
        lines.append(res["permanova"].to_string(index=False))
        lines.append("Bootstrap disparity:")
        lines.append(res["disparity"].to_string(index=False))
        lines.append("Disparity t-tests:")
        lines.append(res["disparity_ttests"].to_string(index=False))
        lines.append("")

    lines.append("=" * 80)
    lines.append("NOTES")
    lines.append("=" * 80)
    lines.append("- p-values are uncorrected for multiple comparisons.")
    lines.append("- Bootstrap and permutation draws are unseeded unless config.SEED is set.")

    return "\n".join(lines)


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    t0 = time.time()
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

    print("--- Loading data ---")
    data = load_data()

    print("--- Reshaping measurements ---")
    longs = {
        "2D": reshape.measurements_long(data["2D"], TAXONOMY_2D),
        "3D": reshape.measurements_long(data["3D"], TAXONOMY_3D),
    }

    print("--- Running descriptive statistics ---")
    desc_results = descriptive_stats.run(longs["2D"], longs["3D"])

    print("--- Running pairwise t-tests ---")
    tt_results = pairwise_tests.run(longs["2D"], longs["3D"])

    print("--- Running GLS model-selection sweep ---")
    reg_results = regression.run(data["2D"])

    print("--- Running morphospace analysis ---")
    morpho_results = morphospace.run(data["2D"], data["3D"])

    all_results = {
        "descriptive": desc_results,
        "ttests": tt_results,
        "regression": reg_results,
        "morphospace": morpho_results,
    }

    print("--- Generating plots ---")
    plots.run_all_plots(
        data=data,
        longs=longs,
        ttests={"2D": tt_results["ttests_2d"], "3D": tt_results["ttests_3d"]},
        gls=reg_results["gls_model_selection"],
        morpho=morpho_results,
    )

    print("--- Generating report ---")
    report = generate_text_report(all_results)
    report_path = OUTPUT_DIR / "analysis_report.txt"
    report_path.write_text(report, encoding="utf-8")
    print(f"\nReport saved to: {report_path}")

    elapsed = time.time() - t0
    print(f"\nAll analyses completed in {elapsed:.1f}s")
    print(f"Output directory: {OUTPUT_DIR}")


if __name__ == "__main__":
    main()
