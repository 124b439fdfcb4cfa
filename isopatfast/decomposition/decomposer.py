"""Mass decomposition: all molecular formulas within a mass window.

Round-robin algorithm with an extended residue table (Böcker & Lipták, 2007).
Element masses are discretized to integers (``round(mass / precision)``); the
extended residue table (ERT) stores, for every residue modulo the smallest
integer mass, the smallest integer mass decomposable by the first i elements.
Enumeration walks the elements from heaviest to lightest and only descends
into a branch if the remaining mass is decomposable by the lighter elements,
so every visited branch leads to at least one decomposition.

Integer decompositions are mapped back to real masses and filtered against
the exact mass window, so discretization never loses or invents formulas.

Performance
-----------
- Table construction: O(k * a0) with k elements and a0 the smallest weight
- Enumeration: output-sensitive, each visited node yields a decomposition

Examples
--------
>>> decomposer = MassDecomposer(ChemicalAlphabet(("C", "H", "O")))
>>> [str(f) for f in decomposer.decompose_to_formulas(
...     180.0634, Deviation(5), FormulaConstraints.parse("CHO"))]
['C6H12O6', ...]
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional

import numpy as np
from numba import njit

from ..chem.elements import get_periodic_table
from ..chem.formula import ChemicalAlphabet, FormulaConstraints, MolecularFormula
from ..constants import DEFAULT_DECOMPOSER_PRECISION
from ..ms.deviation import Deviation

logger = logging.getLogger(__name__)

# Marks residues that cannot be decomposed
INFINITE_MASS = 2 ** 62

# Effective upper bound for elements without an explicit bound
UNBOUNDED = 2 ** 31


# =============================================================================
# Numba kernels
# =============================================================================

@njit
def _gcd(a: int, b: int) -> int:
    while b != 0:
        a, b = b, a % b
    return a


@njit
def build_extended_residue_table(weights: np.ndarray) -> np.ndarray:
    """Extended residue table for ascending integer weights.

    Parameters
    ----------
    weights : np.ndarray
        Integer element weights (int64), sorted ascending

    Returns
    -------
    np.ndarray
        (k, weights[0]) int64 table; entry [i, r] is the smallest mass with
        residue r modulo weights[0] decomposable by weights[0..i], or
        INFINITE_MASS if there is none.
    """
    k = len(weights)
    a0 = weights[0]
    ert = np.empty((k, a0), dtype=np.int64)
    ert[:, :] = INFINITE_MASS
    ert[0, 0] = 0

    for i in range(1, k):
        ert[i, :] = ert[i - 1, :]
        ai = weights[i]
        d = _gcd(a0, ai)
        for p in range(d):
            # smallest entry in this residue class starts the round
            n = INFINITE_MASS
            for q in range(p, a0, d):
                if ert[i, q] < n:
                    n = ert[i, q]
            if n == INFINITE_MASS:
                continue
            for _ in range(a0 // d - 1):
                n = n + ai
                r = n % a0
                if ert[i, r] < n:
                    n = ert[i, r]
                ert[i, r] = n

    return ert


@njit
def decompose_integer_range(
    start: int,
    end: int,
    weights: np.ndarray,
    masses: np.ndarray,
    ert: np.ndarray,
    lcms: np.ndarray,
    periods: np.ndarray,
    bounds: np.ndarray,
    low_mass: float,
    high_mass: float,
) -> np.ndarray:
    """All compositions with integer mass in [start, end] and real mass in
    [low_mass, high_mass].

    Parameters
    ----------
    start, end : int
        Inclusive integer mass range
    weights : np.ndarray
        Integer element weights, ascending
    masses : np.ndarray
        Real element masses in the same order
    ert : np.ndarray
        Extended residue table from ``build_extended_residue_table``
    lcms, periods : np.ndarray
        Per element: lcm(weights[0], weights[i]) and weights[0] / gcd
    bounds : np.ndarray
        Per element upper bound on the count
    low_mass, high_mass : float
        Inclusive real mass window

    Returns
    -------
    np.ndarray
        (n, k) int64 array of element counts
    """
    k = len(weights)
    a0 = weights[0]
    capacity = 64
    out = np.zeros((capacity, k), dtype=np.int64)
    n_out = 0

    counts = np.zeros(k, dtype=np.int64)
    level_mass = np.zeros(k, dtype=np.int64)
    level_step = np.zeros(k, dtype=np.int64)
    level_rest = np.zeros(k, dtype=np.int64)

    for mass in range(max(start, 0), end + 1):
        if ert[k - 1, mass % a0] > mass:
            continue

        counts[:] = 0
        i = k - 1
        level_mass[i] = mass
        level_step[i] = -1
        level_rest[i] = -1

        while i < k:
            if i == 0:
                count = level_mass[0] // a0
                if count <= bounds[0]:
                    counts[0] = count
                    real_mass = 0.0
                    for e in range(k):
                        real_mass += counts[e] * masses[e]
                    if real_mass >= low_mass and real_mass <= high_mass:
                        if n_out == capacity:
                            capacity *= 2
                            grown = np.zeros((capacity, k), dtype=np.int64)
                            grown[:n_out] = out[:n_out]
                            out = grown
                        out[n_out, :] = counts
                        n_out += 1
                counts[0] = 0
                i = 1
                if i < k:
                    level_rest[i] -= lcms[i]
                    counts[i] += periods[i]
                continue

            rest = level_rest[i]
            if rest >= 0 and counts[i] <= bounds[i] and rest >= ert[i - 1, rest % a0]:
                level_mass[i - 1] = rest
                level_step[i - 1] = -1
                level_rest[i - 1] = -1
                i -= 1
                continue

            # next residue start for this element
            j = level_step[i] + 1
            rest = level_mass[i] - j * weights[i]
            if j >= periods[i] or j > bounds[i] or rest < 0:
                counts[i] = 0
                i += 1
                if i < k:
                    level_rest[i] -= lcms[i]
                    counts[i] += periods[i]
                continue
            level_step[i] = j
            level_rest[i] = rest
            counts[i] = j

    return out[:n_out]


# =============================================================================
# Decomposer
# =============================================================================

class MassDecomposer:
    """Decomposes masses into molecular formulas over a fixed alphabet.

    Parameters
    ----------
    alphabet : ChemicalAlphabet
        Elements the formulas may contain
    precision : float
        Discretization step in Da (default: 1e-4)
    """

    def __init__(
        self,
        alphabet: ChemicalAlphabet,
        precision: float = DEFAULT_DECOMPOSER_PRECISION,
    ):
        if precision <= 0:
            raise ValueError(f"Precision must be positive, got {precision}")
        table = get_periodic_table()
        self.alphabet = alphabet
        self.precision = precision
        self.blowup = 1.0 / precision

        self.masses = np.array([table.mass(s) for s in alphabet.symbols], dtype=np.float64)
        self.weights = np.rint(self.masses * self.blowup).astype(np.int64)
        if np.any(self.weights <= 0):
            raise ValueError(f"Precision {precision} too coarse for alphabet {alphabet}")

        scaled = self.masses * self.blowup
        relative_errors = (self.weights - scaled) / scaled
        self.min_error = float(np.min(relative_errors))
        self.max_error = float(np.max(relative_errors))

        a0 = int(self.weights[0])
        self.periods = np.zeros(len(self.weights), dtype=np.int64)
        self.lcms = np.zeros(len(self.weights), dtype=np.int64)
        for i in range(1, len(self.weights)):
            ai = int(self.weights[i])
            self.periods[i] = a0 // math.gcd(a0, ai)
            self.lcms[i] = self.periods[i] * ai

        self.ert = build_extended_residue_table(self.weights)
        logger.info(
            f"Built residue table for alphabet {alphabet} "
            f"({self.ert.shape[0]} x {self.ert.shape[1]}, precision {precision:g} Da)"
        )

    def integer_mass_range(self, low_mass: float, high_mass: float):
        """Integer masses that can hold a real mass in [low_mass, high_mass]."""
        start = math.ceil((1.0 + self.min_error) * low_mass * self.blowup)
        end = math.floor((1.0 + self.max_error) * high_mass * self.blowup)
        return start, end

    def bounds_for(self, constraints: Optional[FormulaConstraints]) -> np.ndarray:
        """Upper bound per alphabet element (UNBOUNDED if none is given)."""
        bounds = np.full(len(self.masses), UNBOUNDED, dtype=np.int64)
        if constraints is None:
            return bounds
        for symbol in constraints.alphabet:
            if symbol not in self.alphabet:
                raise ValueError(
                    f"Constraint element {symbol} is not part of alphabet {self.alphabet}"
                )
        for index, symbol in enumerate(self.alphabet.symbols):
            if symbol not in constraints.alphabet:
                bounds[index] = 0
                continue
            bound = constraints.upper_bound(symbol)
            if bound is not None:
                bounds[index] = bound
        return bounds

    def decompose(
        self,
        mass: float,
        deviation: Deviation,
        constraints: Optional[FormulaConstraints] = None,
    ) -> np.ndarray:
        """Element count vectors (alphabet order) of all formulas within
        ``deviation`` of ``mass``."""
        tolerance = deviation.absolute_for(mass)
        low_mass = max(mass - tolerance, 0.0)
        high_mass = mass + tolerance
        if high_mass <= 0:
            return np.zeros((0, len(self.masses)), dtype=np.int64)
        start, end = self.integer_mass_range(low_mass, high_mass)
        return decompose_integer_range(
            start,
            end,
            self.weights,
            self.masses,
            self.ert,
            self.lcms,
            self.periods,
            self.bounds_for(constraints),
            low_mass,
            high_mass,
        )

    def decompose_to_formulas(
        self,
        mass: float,
        deviation: Deviation,
        constraints: Optional[FormulaConstraints] = None,
    ) -> List[MolecularFormula]:
        """Molecular formulas within ``deviation`` of the neutral ``mass``.

        Parameters
        ----------
        mass : float
            Neutral monoisotopic mass
        deviation : Deviation
            Allowed deviation, evaluated at ``mass``
        constraints : FormulaConstraints, optional
            Element bounds; elements outside the constraint alphabet are
            excluded

        Returns
        -------
        list of MolecularFormula
            Deterministic order (ascending discretized mass); empty if no
            formula matches
        """
        compositions = self.decompose(mass, deviation, constraints)
        symbols = self.alphabet.symbols
        formulas = [
            MolecularFormula(tuple(zip(symbols, (int(c) for c in row))))
            for row in compositions
        ]
        logger.debug(f"Decomposed {mass:.5f} Da ({deviation}): {len(formulas)} formulas")
        return formulas
