"""Element isotopes and isotope mass windows.

Isotope masses and natural abundances come from ``molmass.ELEMENTS``. Only
isotopes with a non-zero natural abundance are kept, and elements without any
are left out of the table.

The lightest stable isotope of each element is treated as its monoisotopic
isotope; isotope patterns are simulated as shifts relative to it.

Examples
--------
>>> table = get_periodic_table()
>>> table.mass("C")
12.0
>>> low, high = table.isotopic_mass_window(("C", "H"), Deviation(10), 200.0, 1)
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Iterable, Mapping, Tuple

import numpy as np
from molmass import ELEMENTS

from ..constants import ISOTOPE_MASS_DIFFERENCE


def natural_isotope_table() -> Dict[str, Tuple[Tuple[float, float], ...]]:
    """Mapping symbol -> ((mass, abundance), ...) of naturally occurring isotopes."""
    table = {}
    for element in ELEMENTS:
        entries = tuple(
            (isotope.mass, isotope.abundance)
            for isotope in element.isotopes.values()
            if isotope.abundance > 0
        )
        if entries:
            table[element.symbol] = entries
    return table


@dataclass(frozen=True, eq=False)
class Isotopes:
    """Stable isotopes of one element, ordered by mass."""

    symbol: str
    masses: np.ndarray
    abundances: np.ndarray

    @property
    def n_isotopes(self) -> int:
        return len(self.masses)

    @property
    def monoisotopic_mass(self) -> float:
        return float(self.masses[0])

    @property
    def integer_masses(self) -> np.ndarray:
        return np.rint(self.masses).astype(np.int64)

    @property
    def nominal_shifts(self) -> np.ndarray:
        """Integer mass distance of every isotope from the lightest one."""
        integer_masses = self.integer_masses
        return integer_masses - integer_masses[0]


class PeriodicTable:
    """Lookup of element isotopes by symbol.

    Parameters
    ----------
    isotope_table : dict, optional
        Mapping symbol -> ((mass, abundance), ...). Defaults to the
        natural isotopes in ``molmass.ELEMENTS``.
    """

    def __init__(self, isotope_table: Mapping[str, Tuple[Tuple[float, float], ...]] = None):
        if isotope_table is None:
            isotope_table = natural_isotope_table()
        self._isotopes: Dict[str, Isotopes] = {}
        for symbol, entries in isotope_table.items():
            masses = np.array([mass for mass, _ in entries], dtype=np.float64)
            abundances = np.array([abundance for _, abundance in entries], dtype=np.float64)
            order = np.argsort(masses)
            masses = masses[order]
            abundances = abundances[order] / np.sum(abundances)
            masses.flags.writeable = False
            abundances.flags.writeable = False
            self._isotopes[symbol] = Isotopes(symbol, masses, abundances)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._isotopes

    @property
    def symbols(self) -> Tuple[str, ...]:
        return tuple(self._isotopes)

    def isotopes(self, symbol: str) -> Isotopes:
        try:
            return self._isotopes[symbol]
        except KeyError:
            raise ValueError(f"Unknown element: {symbol!r}") from None

    def mass(self, symbol: str) -> float:
        """Monoisotopic mass of an element."""
        return self.isotopes(symbol).monoisotopic_mass

    def max_isotope_mass_defect(self, alphabet: Iterable[str]) -> float:
        """Largest |exact - integer| mass over all heavy isotopes of the alphabet."""
        delta = 0.0
        for symbol in alphabet:
            isotopes = self.isotopes(symbol)
            diffs = isotopes.masses[1:] - isotopes.integer_masses[1:]
            if len(diffs):
                delta = max(delta, float(np.max(np.abs(diffs))))
        return delta

    def isotope_mass_shift_range(self, alphabet: Iterable[str]) -> Tuple[float, float]:
        """Smallest and largest mass gain per nominal mass unit of any isotope.

        Returns (ISOTOPE_MASS_DIFFERENCE, ISOTOPE_MASS_DIFFERENCE) if no element
        of the alphabet has a heavy isotope.
        """
        low = np.inf
        high = -np.inf
        for symbol in alphabet:
            isotopes = self.isotopes(symbol)
            shifts = isotopes.nominal_shifts
            for k in range(1, isotopes.n_isotopes):
                rate = (isotopes.masses[k] - isotopes.masses[0]) / shifts[k]
                low = min(low, rate)
                high = max(high, rate)
        if not np.isfinite(low):
            return ISOTOPE_MASS_DIFFERENCE, ISOTOPE_MASS_DIFFERENCE
        return float(low), float(high)

    def isotopic_mass_window(
        self,
        alphabet: Iterable[str],
        deviation,
        mono_mass: float,
        k: int,
    ) -> Tuple[float, float]:
        """Inclusive m/z interval in which the k-th isotope peak can occur.

        Parameters
        ----------
        alphabet : iterable of str
            Elements that may be present
        deviation : Deviation
            Mass accuracy added on both sides of the window
        mono_mass : float
            Mass of the monoisotopic peak
        k : int
            Isotope index (1 for M+1, 2 for M+2, ...)
        """
        low_rate, high_rate = self.isotope_mass_shift_range(alphabet)
        tolerance = deviation.absolute_for(mono_mass)
        return (
            mono_mass + k * low_rate - tolerance,
            mono_mass + k * high_rate + tolerance,
        )


@lru_cache(maxsize=1)
def get_periodic_table() -> PeriodicTable:
    """Shared read-only periodic table instance."""
    return PeriodicTable()
