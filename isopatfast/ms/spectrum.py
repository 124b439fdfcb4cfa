"""Immutable peak-list spectra with the operations the isotope pipeline needs.

A Spectrum stores m/z and intensity values as two read-only float64 arrays.
Every transformation (sorting, normalizing, offsetting, truncating) returns a
new Spectrum; the input is never modified.

Two canonical orderings are used by the pipeline:
- ascending m/z (isotope patterns, window searches)
- descending intensity (seed selection during extraction)

Window searches use binary search on mass-ordered spectra (O(log n)).

Examples
--------
>>> spec = Spectrum([100.0, 101.0034], [1.0, 0.011])
>>> spec.normalized(Normalization.sum(1.0)).total_intensity
1.0
>>> spec.most_intense_peak_within(101.0, Deviation(10, 0.01))
1
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, NamedTuple, Tuple

import numpy as np
from numba import njit

from .deviation import Deviation


class Peak(NamedTuple):
    """Single (m/z, intensity) pair."""
    mz: float
    intensity: float


@dataclass(frozen=True)
class Normalization:
    """How intensities are scaled.

    ``mode="sum"`` scales intensities so that they add up to ``base``,
    ``mode="max"`` so that the most intense peak equals ``base``.
    """

    mode: str = "sum"
    base: float = 1.0

    def __post_init__(self):
        if self.mode not in ("sum", "max"):
            raise ValueError(f"Unknown normalization mode: {self.mode}")
        if self.base <= 0:
            raise ValueError(f"Normalization base must be positive, got {self.base}")

    @classmethod
    def sum(cls, base: float = 1.0) -> "Normalization":
        return cls("sum", base)

    @classmethod
    def max(cls, base: float = 1.0) -> "Normalization":
        return cls("max", base)


@njit
def most_intense_peak_in_range(
    mz_array: np.ndarray,
    intensity_array: np.ndarray,
    low_mz: float,
    high_mz: float,
) -> int:
    """Index of the most intense peak with low_mz <= mz <= high_mz.

    Parameters
    ----------
    mz_array : np.ndarray
        Sorted array of m/z values
    intensity_array : np.ndarray
        Corresponding intensities
    low_mz, high_mz : float
        Inclusive m/z range

    Returns
    -------
    int
        Index of the most intense matching peak, -1 if none. Ties are
        resolved in favour of the lower m/z.
    """
    n = len(mz_array)
    if n == 0:
        return -1

    # Binary search for lower bound
    left, right = 0, n
    while left < right:
        mid = (left + right) // 2
        if mz_array[mid] < low_mz:
            left = mid + 1
        else:
            right = mid

    best_idx = -1
    best_intensity = -1.0
    for idx in range(left, n):
        if mz_array[idx] > high_mz:
            break
        if intensity_array[idx] > best_intensity:
            best_intensity = intensity_array[idx]
            best_idx = idx

    return best_idx


class Spectrum:
    """Immutable spectrum backed by float64 numpy arrays.

    Parameters
    ----------
    mz : array-like
        m/z values
    intensity : array-like
        Non-negative intensities, same length as ``mz``
    """

    __slots__ = ("_mz", "_intensity")

    def __init__(self, mz: Iterable[float], intensity: Iterable[float]):
        mz = np.array(mz, dtype=np.float64).ravel()
        intensity = np.array(intensity, dtype=np.float64).ravel()
        if mz.shape != intensity.shape:
            raise ValueError(
                f"m/z and intensity arrays differ in length: {len(mz)} vs {len(intensity)}"
            )
        if np.any(intensity < 0) or np.any(~np.isfinite(intensity)):
            raise ValueError("Intensities must be finite and non-negative")
        mz.flags.writeable = False
        intensity.flags.writeable = False
        self._mz = mz
        self._intensity = intensity

    @classmethod
    def from_peaks(cls, peaks: Iterable[Tuple[float, float]]) -> "Spectrum":
        peaks = list(peaks)
        if not peaks:
            return cls([], [])
        mz, intensity = zip(*peaks)
        return cls(mz, intensity)

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def mz(self) -> np.ndarray:
        return self._mz

    @property
    def intensity(self) -> np.ndarray:
        return self._intensity

    def __len__(self) -> int:
        return len(self._mz)

    def __getitem__(self, index: int) -> Peak:
        return Peak(float(self._mz[index]), float(self._intensity[index]))

    def __iter__(self) -> Iterator[Peak]:
        for i in range(len(self)):
            yield self[i]

    def __eq__(self, other) -> bool:
        if not isinstance(other, Spectrum):
            return NotImplemented
        return (
            np.array_equal(self._mz, other._mz)
            and np.array_equal(self._intensity, other._intensity)
        )

    __hash__ = None

    def __repr__(self) -> str:
        peaks = ", ".join(f"({p.mz:.4f}, {p.intensity:.4g})" for p in self)
        return f"Spectrum([{peaks}])"

    @property
    def total_intensity(self) -> float:
        return float(np.sum(self._intensity))

    @property
    def max_intensity(self) -> float:
        if len(self) == 0:
            return 0.0
        return float(np.max(self._intensity))

    @property
    def is_mass_ordered(self) -> bool:
        return bool(np.all(np.diff(self._mz) >= 0))

    # ------------------------------------------------------------------
    # Transformations (all return new spectra)
    # ------------------------------------------------------------------

    def _take(self, index: np.ndarray) -> "Spectrum":
        return Spectrum(self._mz[index], self._intensity[index])

    def sorted_by_mass(self) -> "Spectrum":
        return self._take(np.argsort(self._mz, kind="stable"))

    def sorted_by_intensity(self) -> "Spectrum":
        """Descending intensity, ties keep their original order."""
        return self._take(np.argsort(-self._intensity, kind="stable"))

    def normalized(self, normalization: Normalization) -> "Spectrum":
        """Scale intensities according to ``normalization``.

        Raises
        ------
        ValueError
            If the spectrum has no positive intensity to scale.
        """
        if normalization.mode == "sum":
            reference = self.total_intensity
        else:
            reference = self.max_intensity
        if reference <= 0:
            raise ValueError("Cannot normalize a spectrum without positive intensity")
        return Spectrum(self._mz, self._intensity * (normalization.base / reference))

    def with_intensity_offset(self, offset: float) -> "Spectrum":
        """Add a constant to every intensity."""
        return Spectrum(self._mz, self._intensity + offset)

    def truncated(self, n_peaks: int) -> "Spectrum":
        """Keep the first ``n_peaks`` peaks."""
        return Spectrum(self._mz[:n_peaks], self._intensity[:n_peaks])

    # ------------------------------------------------------------------
    # Searching
    # ------------------------------------------------------------------

    def most_intense_peak_within(self, mz: float, deviation: Deviation) -> int:
        """Index of the most intense peak within ``deviation`` of ``mz``.

        The spectrum must be mass ordered. Returns -1 if no peak matches.
        """
        tolerance = deviation.absolute_for(mz)
        return most_intense_peak_in_range(
            self._mz, self._intensity, mz - tolerance, mz + tolerance
        )
