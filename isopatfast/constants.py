"""Physical constants and default parameters for isotope pattern analysis.

This module provides the physical constants, default chemical alphabets and
default analyzer settings used throughout IsoPatFast. Physical values are
sourced from NIST; element isotope masses and abundances are read from
molmass in ``isopatfast.chem.elements``.

Key Features
------------
- Correct PROTON_MASS (1.007276466622 Da, not hydrogen atom mass!)
- Default CHNOPSClNa alphabet with upper bounds for small molecules
- Extended alphabet used for targeted isotope window search
- Default tolerance and cutoff settings for the analyzer

Sources
-------
- NIST physical constants: https://physics.nist.gov/cgi-bin/cuu/Value
"""

# =============================================================================
# Fundamental Physical Constants (NIST values)
# =============================================================================

# Proton mass (NOT hydrogen atom mass!)
# Source: NIST 2018 CODATA
PROTON_MASS = 1.007276466622  # Da

# Electron mass
# Source: NIST 2018 CODATA
ELECTRON_MASS = 0.000548579909  # Da

# Mass difference between C12 and C13
ISOTOPE_MASS_DIFFERENCE = 1.0033548  # Da

# =============================================================================
# Chemical Alphabets
# =============================================================================

# Default alphabet for small molecule formula decomposition
DEFAULT_ALPHABET = ("C", "H", "N", "O", "P", "S", "Cl", "Na")

# Upper bounds for the default alphabet (C and H are bounded by mass only)
DEFAULT_UPPER_BOUNDS = {
    "N": 10,
    "O": 25,
    "P": 3,
    "S": 3,
    "Cl": 1,
    "Na": 1,
}

# Alphabet used to derive isotope mass windows in targeted extraction.
# Wider than the default alphabet so that halogen and metal patterns are
# not cut off before the formula is known.
EXTENDED_ALPHABET = ("C", "H", "N", "O", "P", "S", "F", "Cl", "Br", "I", "Na", "K")

# =============================================================================
# Default Tolerance Settings
# =============================================================================

# Allowed mass deviation for decomposition and precursor lookup (ppm)
DEFAULT_ALLOWED_MASS_DEVIATION_PPM = 10.0

# Standard deviation of MS1/MS2 mass measurements (ppm)
DEFAULT_STANDARD_MS1_DEVIATION_PPM = 5.0
DEFAULT_STANDARD_MS2_DEVIATION_PPM = 5.0

# Standard deviation of isotope peak mass differences (ppm)
DEFAULT_STANDARD_MASS_DIFFERENCE_PPM = 2.5

# Expected absolute deviation of sum-normalized isotope intensities
DEFAULT_INTENSITY_DEVIATION = 0.008

# Median intensity of noise peaks (relative to base peak)
DEFAULT_MEDIAN_NOISE_INTENSITY = 0.02

# =============================================================================
# Analyzer Defaults
# =============================================================================

# Minimum relative intensity for a peak to take part in scoring
DEFAULT_INTENSITY_CUTOFF = 0.01

# Baseline added to every normalized peak before renormalization
DEFAULT_INTENSITY_OFFSET = 0.0

# Maximal number of simulated isotope peaks
DEFAULT_MAX_ISOTOPES = 10

# Trailing simulated peaks below this probability are dropped
DEFAULT_MINIMAL_PROBABILITY = 1e-3

# Precision of the integer mass discretization used by the decomposer (Da)
DEFAULT_DECOMPOSER_PRECISION = 1e-4

# Pattern extraction heuristics
MAX_ISOTOPE_PEAKS_UNTARGETED = 10
MAX_ISOTOPE_PEAKS_TARGETED = 5
ISOTOPE_OVERSHOOT_DA = 0.3
BACKWARD_INTENSITY_RATIO = 0.33

