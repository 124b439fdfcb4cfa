"""Theoretical isotope patterns of molecular formulas.

Each element's isotope distribution is aggregated by nominal mass shift
(0, +1, +2, ... Da relative to its lightest isotope). The distribution of n
atoms is obtained by repeated squaring of the single-atom distribution, and
the distributions of all elements are convolved. Every nominal peak carries
its probability and its probability-weighted mean mass, so fine structure
(e.g. 13C vs 15N at +1) collapses into one peak at the correct centroid.

Performance
-----------
- O(log n) convolutions per element, each O(max_isotopes^2)
- Pure NumPy/Numba, no per-atom Python loops

Examples
--------
>>> generator = IsotopePatternGenerator()
>>> pattern = generator.simulate_pattern(MolecularFormula.parse("C6H12O6"), PROTONATION)
>>> pattern.mz[0]
181.0707...
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from numba import njit

from ..chem.elements import Isotopes, PeriodicTable, get_periodic_table
from ..chem.formula import MolecularFormula
from ..constants import (
    DEFAULT_MAX_ISOTOPES,
    DEFAULT_MINIMAL_PROBABILITY,
    ISOTOPE_MASS_DIFFERENCE,
)
from ..ms.spectrum import Normalization, Spectrum


# =============================================================================
# Convolution kernels
# =============================================================================

@njit
def convolve_distributions(
    probabilities_a: np.ndarray,
    masses_a: np.ndarray,
    probabilities_b: np.ndarray,
    masses_b: np.ndarray,
    max_peaks: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """Convolve two nominal isotope distributions.

    Parameters
    ----------
    probabilities_a, probabilities_b : np.ndarray
        Probability of each nominal shift
    masses_a, masses_b : np.ndarray
        Mean mass of each nominal shift
    max_peaks : int
        Number of nominal shifts to keep

    Returns
    -------
    probabilities : np.ndarray
        Probability of each nominal shift of the sum
    masses : np.ndarray
        Probability-weighted mean mass of each shift. Shifts with zero
        probability get the monoisotopic mass plus the nominal shift times
        the 13C-12C mass difference.
    """
    n = min(len(probabilities_a) + len(probabilities_b) - 1, max_peaks)
    probabilities = np.zeros(n, dtype=np.float64)
    weighted = np.zeros(n, dtype=np.float64)

    for a in range(len(probabilities_a)):
        if a >= n:
            break
        for b in range(len(probabilities_b)):
            s = a + b
            if s >= n:
                break
            w = probabilities_a[a] * probabilities_b[b]
            probabilities[s] += w
            weighted[s] += w * (masses_a[a] + masses_b[b])

    mono = masses_a[0] + masses_b[0]
    masses = np.empty(n, dtype=np.float64)
    for s in range(n):
        if probabilities[s] > 0.0:
            masses[s] = weighted[s] / probabilities[s]
        else:
            masses[s] = mono + s * ISOTOPE_MASS_DIFFERENCE
    return probabilities, masses


@njit
def power_distribution(
    probabilities: np.ndarray,
    masses: np.ndarray,
    count: int,
    max_peaks: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """Distribution of ``count`` independent atoms by repeated squaring."""
    result_p = np.ones(1, dtype=np.float64)
    result_m = np.zeros(1, dtype=np.float64)
    base_p = probabilities
    base_m = masses
    while count > 0:
        if count & 1:
            result_p, result_m = convolve_distributions(
                result_p, result_m, base_p, base_m, max_peaks
            )
        count >>= 1
        if count > 0:
            base_p, base_m = convolve_distributions(base_p, base_m, base_p, base_m, max_peaks)
    return result_p, result_m


@njit
def trim_trailing_peaks(probabilities: np.ndarray, minimal_probability: float) -> int:
    """Number of peaks left after dropping trailing peaks below the floor.

    The floor is relative to the total probability; the first peak always
    survives.
    """
    total = np.sum(probabilities)
    n = len(probabilities)
    while n > 1 and probabilities[n - 1] < minimal_probability * total:
        n -= 1
    return n


# =============================================================================
# Generator
# =============================================================================

def single_atom_distribution(isotopes: Isotopes) -> Tuple[np.ndarray, np.ndarray]:
    """Probabilities and mean masses of one atom, indexed by nominal shift.

    Empty shifts get the monoisotopic mass plus the shift times the 13C-12C
    mass difference.
    """
    shifts = isotopes.nominal_shifts
    n = int(shifts[-1]) + 1
    probabilities = np.zeros(n, dtype=np.float64)
    weighted = np.zeros(n, dtype=np.float64)
    for shift, mass, abundance in zip(shifts, isotopes.masses, isotopes.abundances):
        probabilities[shift] += abundance
        weighted[shift] += abundance * mass
    masses = isotopes.monoisotopic_mass + np.arange(n) * ISOTOPE_MASS_DIFFERENCE
    occupied = probabilities > 0
    masses[occupied] = weighted[occupied] / probabilities[occupied]
    return probabilities, masses


class IsotopePatternGenerator:
    """Simulates isotope patterns of molecular formulas.

    Parameters
    ----------
    normalization : Normalization
        Intensity scaling of the simulated pattern (default: sum to 1)
    max_isotopes : int
        Maximal number of isotope peaks (default: 10)
    minimal_probability : float
        Trailing peaks below this fraction of the total are dropped
        (default: 1e-3)
    periodic_table : PeriodicTable, optional
        Isotope table (default: shared molmass-backed table)
    """

    def __init__(
        self,
        normalization: Normalization = None,
        max_isotopes: int = DEFAULT_MAX_ISOTOPES,
        minimal_probability: float = DEFAULT_MINIMAL_PROBABILITY,
        periodic_table: PeriodicTable = None,
    ):
        if max_isotopes < 1:
            raise ValueError(f"max_isotopes must be >= 1, got {max_isotopes}")
        if not 0.0 <= minimal_probability < 1.0:
            raise ValueError(f"minimal_probability must be in [0, 1), got {minimal_probability}")
        self.normalization = normalization if normalization is not None else Normalization.sum(1.0)
        self.max_isotopes = max_isotopes
        self.minimal_probability = minimal_probability
        self.periodic_table = periodic_table if periodic_table is not None else get_periodic_table()
        self._element_distributions = {
            symbol: single_atom_distribution(self.periodic_table.isotopes(symbol))
            for symbol in self.periodic_table.symbols
        }

    def element_distribution(self, symbol: str) -> Tuple[np.ndarray, np.ndarray]:
        """Single-atom distribution of an element by nominal shift."""
        try:
            return self._element_distributions[symbol]
        except KeyError:
            raise ValueError(f"Unknown element: {symbol!r}") from None

    def neutral_distribution(self, formula: MolecularFormula) -> Tuple[np.ndarray, np.ndarray]:
        """Nominal isotope distribution (probabilities, neutral masses)."""
        if formula.is_empty:
            raise ValueError("Cannot simulate an empty formula")
        if formula.has_negative_counts:
            raise ValueError(f"Cannot simulate formula with negative counts: {formula}")
        probabilities = np.ones(1, dtype=np.float64)
        masses = np.zeros(1, dtype=np.float64)
        for symbol, count in formula:
            element_p, element_m = self.element_distribution(symbol)
            powered_p, powered_m = power_distribution(element_p, element_m, count, self.max_isotopes)
            probabilities, masses = convolve_distributions(
                probabilities, masses, powered_p, powered_m, self.max_isotopes
            )
        n = trim_trailing_peaks(probabilities, self.minimal_probability)
        return probabilities[:n], masses[:n]

    def simulate_pattern(self, formula: MolecularFormula, ionization) -> Spectrum:
        """Theoretical isotope pattern of ``formula`` measured with ``ionization``.

        Parameters
        ----------
        formula : MolecularFormula
            Measured neutral molecule (adducts already applied)
        ionization : Ionization
            Ionization converting neutral masses to m/z

        Returns
        -------
        Spectrum
            Mass-ordered pattern starting at the monoisotopic ion, at least
            one peak, intensities scaled with ``self.normalization``
        """
        probabilities, masses = self.neutral_distribution(formula)
        pattern = Spectrum(ionization.to_measured(masses), probabilities)
        return pattern.normalized(self.normalization)
