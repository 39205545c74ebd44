"""Shared configuration for the foraminifera morphometrics analysis."""

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

# ── Paths ──────────────────────────────────────────────────────────
ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = ROOT / "data"
MORPHO_2D_CSV = DATA_DIR / "morphometrics_2d.csv"
MORPHO_3D_CSV = DATA_DIR / "morphometrics_3d.csv"
ISOTOPES_CSV = DATA_DIR / "isotopes.csv"
OUTPUT_DIR = ROOT / "output"

# ── Identifier / stratigraphy columns ─────────────────────────────
SAMPLE_COL = "Sample"
DEPTH_COL = "Depth_m"
AGE_COL = "Age_Ma"            # primary age model, used for ordering
SERIES_COL = "Series"

ISOTOPE_COLS = ("d13C_planktic", "d18O_planktic", "d13C_benthic", "d18O_benthic")
ISOTOPE_LABELS = MappingProxyType({
    "d13C_planktic": "δ¹³C planktic (‰)",
    "d18O_planktic": "δ¹⁸O planktic (‰)",
    "d13C_benthic": "δ¹³C benthic (‰)",
    "d18O_benthic": "δ¹⁸O benthic (‰)",
})

# ── Time bins ─────────────────────────────────────────────────────
SERIES = ("Eocene", "EOT", "Oligocene")
SERIES_PAIRS = (("Eocene", "EOT"), ("Eocene", "Oligocene"), ("EOT", "Oligocene"))
SERIES_COLORS = MappingProxyType({
    "Eocene": "#d95f02",
    "EOT": "#7570b3",
    "Oligocene": "#1b9e77",
})


# ── Measurement taxonomy ──────────────────────────────────────────
@dataclass(frozen=True)
class Measurement:
    prefix: str
    label: str
    pattern: str   # anchored regex against column names
    unit: str = ""

    @property
    def per_whorl(self) -> bool:
        return r"\d" in self.pattern

    @property
    def axis_label(self) -> str:
        return f"{self.label} ({self.unit})" if self.unit else self.label


def _taxonomy(*entries: Measurement):
    return MappingProxyType({m.prefix: m for m in entries})


# Anchored patterns keep R/CR, V/VP, and the like disjoint.
TAXONOMY_2D = _taxonomy(
    Measurement("P", "Proloculus length", r"^P$", "µm"),
    Measurement("D", "Deuteroconch length", r"^D$", "µm"),
    Measurement("R", "Whorl radius", r"^R\d+$", "µm"),
    Measurement("WT", "Wall thickness", r"^WT\d+$", "µm"),
    Measurement("CN", "Chambers per whorl", r"^CN\d+$"),
    Measurement("CA", "Calcite area", r"^CA$", "µm²"),
    Measurement("CL", "Chamber length", r"^CL\d+$", "µm"),
    Measurement("CW", "Chamber width", r"^CW\d+$", "µm"),
    Measurement("CR", "Chamber length/width ratio", r"^CR\d+$"),
)

TAXONOMY_3D = _taxonomy(
    Measurement("VP", "Proloculus volume", r"^VP$", "µm³"),
    Measurement("V", "Whorl volume", r"^V\d+$", "µm³"),
    Measurement("N", "Chambers per whorl (CT)", r"^N\d+$"),
    Measurement("DM", "Test diameter", r"^DM$", "µm"),
    Measurement("TH", "Test thickness", r"^TH$", "µm"),
)

# Main-text box plot panels: (trait space, prefix)
SUMMARY_PANELS = (("2D", "P"), ("2D", "D"), ("2D", "WT"), ("2D", "CA"),
                  ("3D", "VP"), ("3D", "V"))

# ── Regression sweep ──────────────────────────────────────────────
GLS_RESPONSES = ("P", "WT", "CA")
GLS_PREDICTORS = ("d18O_benthic", "d13C_benthic")
INTERCEPT_TERM = "(Intercept)"
AR1_BOUNDS = (-0.99, 0.99)

# ── Morphospace ───────────────────────────────────────────────────
PCA_TRAITS_2D = ("P", "D", "CA", "R3")
PCA_TRAITS_3D = ("VP", "V1", "V2", "V3", "N1", "DM", "TH")

# ── Statistical parameters ─────────────────────────────────────────
ALPHA = 0.05
# (threshold, label) from most to least significant
SIGNIFICANCE_THRESHOLDS = ((0.001, "***"), (0.01, "**"), (0.05, "*"))
NOT_SIGNIFICANT = "ns"
N_PERMUTATIONS = 999
N_BOOTSTRAP = 100
CI_PERCENTILES = (2.5, 97.5)
# No seed is fixed for the published run; pass one explicitly to reproduce.
SEED = None
