"""IsoPatFast - Isotope pattern extraction and molecular formula scoring.

Extracts isotope patterns from MS1 spectra, decomposes precursor masses into
candidate molecular formulas, simulates their isotope patterns and ranks the
candidates with statistical scorers. Inner loops are Numba-compiled.
"""

__version__ = "0.1.0"

# Import main submodules for convenient access
from isopatfast import ms
from isopatfast import chem
from isopatfast import decomposition
from isopatfast import isotopes
from isopatfast import features
from isopatfast import scoring
from isopatfast import analysis

from isopatfast.analysis import (
    AnalyzerConfig,
    IsotopePatternAnalysis,
    apply_intensity_cutoff,
    normalize_pattern,
)

__all__ = [
    "ms",
    "chem",
    "decomposition",
    "isotopes",
    "features",
    "scoring",
    "analysis",
    "AnalyzerConfig",
    "IsotopePatternAnalysis",
    "apply_intensity_cutoff",
    "normalize_pattern",
]
