"""Mass accuracy windows combining a relative (ppm) and absolute error budget.

A Deviation is used everywhere a tolerance check occurs: precursor lookup,
isotope peak search and formula decomposition. The effective tolerance at a
given mass is the larger of the ppm part and the absolute part.

Examples
--------
>>> dev = Deviation(10)           # 10 ppm, 0.001 Da absolute floor
>>> dev.absolute_for(500.0)
0.005
>>> dev.in_error_window(500.0, 500.004)
True
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from numba import njit


@njit
def absolute_tolerance(ppm: float, absolute: float, mz: float) -> float:
    """Effective tolerance in Da at the given mass."""
    return max(ppm * mz * 1e-6, absolute)


@njit
def in_window(ppm: float, absolute: float, expected: float, observed: float) -> bool:
    """Check whether observed lies within the window around expected.

    The window is computed relative to ``expected`` only, so the check is
    not symmetric in its arguments.
    """
    return abs(expected - observed) <= max(ppm * expected * 1e-6, absolute)


@dataclass(frozen=True)
class Deviation:
    """Mass accuracy window (ppm + absolute Da).

    Parameters
    ----------
    ppm : float
        Relative part in parts per million
    absolute : float, optional
        Absolute part in Da. Defaults to ``ppm * 1e-4`` (the ppm value
        evaluated at 100 Da).
    """

    ppm: float
    absolute: Optional[float] = None

    def __post_init__(self):
        if self.absolute is None:
            object.__setattr__(self, "absolute", self.ppm * 1e-4)
        if self.ppm < 0 or self.absolute < 0:
            raise ValueError(
                f"Deviation must be non-negative, got ppm={self.ppm}, "
                f"absolute={self.absolute}"
            )

    @classmethod
    def from_measurement_and_reference(cls, measured: float, reference: float) -> "Deviation":
        """Deviation that exactly spans the distance between two masses."""
        diff = abs(measured - reference)
        return cls(ppm=diff * 1e6 / reference, absolute=diff)

    def absolute_for(self, mz: float) -> float:
        return absolute_tolerance(self.ppm, self.absolute, mz)

    def in_error_window(self, expected: float, observed: float) -> bool:
        return in_window(self.ppm, self.absolute, expected, observed)

    def multiply(self, factor: float) -> "Deviation":
        return Deviation(self.ppm * factor, self.absolute * factor)

    def __str__(self) -> str:
        return f"{self.ppm:g} ppm ({self.absolute:g} Da)"
