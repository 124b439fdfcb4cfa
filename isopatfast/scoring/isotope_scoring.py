"""Scoring of measured against simulated isotope patterns.

Every scorer compares a measured pattern with a theoretical pattern of the
same isotope cluster (index i of both is the i-th isotope peak) and returns a
log-likelihood style score; higher is better and -inf rejects the candidate.

Each peak contributes

    log(erfc(|delta| / (sqrt(2) * sd)))

the log probability of observing a deviation at least as large as ``delta``
under a normal error with standard deviation ``sd``. Scores are accumulated
as a running sum; ``score_peaks`` returns the cumulative score through each
peak and ``score`` the total.

Scorers
-------
- MassDeviationScorer: absolute m/z error of every peak
- MassDifferenceDeviationScorer: error of the m/z offset to the first peak
- LogNormDistributedIntensityScorer: log ratio of normalized intensities
- NormalDistributedIntensityScorer: absolute error of normalized intensities

Examples
--------
>>> scorer = MassDifferenceDeviationScorer()
>>> score = scorer.score(measured, theoretical, Normalization.sum(1.0), experiment, profile)
>>> print(f"Mass difference score: {score:.3f}")
"""

from __future__ import annotations

import math

import numpy as np
from numba import njit

from ..ms.deviation import Deviation
from ..ms.spectrum import Normalization, Spectrum
from .intensity_dependency import (
    ConstantIntensityDependency,
    IntensityDependency,
    LinearIntensityDependency,
    PiecewiseLinearIntensityDependency,
)

SQRT2 = math.sqrt(2.0)


# =============================================================================
# Numba kernels
# =============================================================================

@njit
def log_erfc_score(delta: float, sd: float) -> float:
    """log(erfc(|delta| / (sqrt(2) * sd))); -inf if the probability is zero."""
    if sd <= 0.0:
        if delta == 0.0:
            return 0.0
        return -np.inf
    value = math.erfc(abs(delta) / (SQRT2 * sd))
    if not value > 0.0:
        return -np.inf
    return math.log(value)


@njit
def cumulative_log_erfc_scores(deltas: np.ndarray, sds: np.ndarray, start: int) -> np.ndarray:
    """Running sum of per-peak scores from index ``start`` on.

    Parameters
    ----------
    deltas : np.ndarray
        Deviation of each peak
    sds : np.ndarray
        Standard deviation of each peak
    start : int
        First scored peak; earlier slots stay 0

    Returns
    -------
    np.ndarray
        scores[i] = sum of the terms of peaks start..i
    """
    n = len(deltas)
    scores = np.zeros(n, dtype=np.float64)
    running = 0.0
    for i in range(start, n):
        running += log_erfc_score(deltas[i], sds[i])
        scores[i] += running
    return scores


def _absolute_tolerances(deviation: Deviation, mz: np.ndarray) -> np.ndarray:
    return np.maximum(deviation.ppm * mz * 1e-6, deviation.absolute)


def _check_aligned(measured: Spectrum, theoretical: Spectrum):
    if len(theoretical) < len(measured):
        raise ValueError(
            f"Theoretical pattern has {len(theoretical)} peaks, "
            f"measured pattern has {len(measured)}"
        )


# =============================================================================
# Scorers
# =============================================================================

class IsotopePatternScorer:
    """Common interface of all isotope pattern scorers."""

    def score_peaks(
        self,
        measured: Spectrum,
        theoretical: Spectrum,
        normalization: Normalization,
        experiment,
        profile,
    ) -> np.ndarray:
        raise NotImplementedError

    def score(
        self,
        measured: Spectrum,
        theoretical: Spectrum,
        normalization: Normalization,
        experiment,
        profile,
    ) -> float:
        """Total score of the measured pattern (0 for an empty pattern)."""
        scores = self.score_peaks(measured, theoretical, normalization, experiment, profile)
        if len(scores) == 0:
            return 0.0
        return float(scores[-1])


class MassDeviationScorer(IsotopePatternScorer):
    """Absolute mass error of each peak against its theoretical mass.

    sd = standard MS1 mass deviation at the measured m/z times the
    intensity dependency of the measured intensity.
    """

    def __init__(self, intensity_dependency: IntensityDependency = None):
        if intensity_dependency is None:
            intensity_dependency = PiecewiseLinearIntensityDependency((0.15, 0.05), (1.0, 1.5))
        self.intensity_dependency = intensity_dependency

    def score_peaks(self, measured, theoretical, normalization, experiment, profile):
        _check_aligned(measured, theoretical)
        deviation = profile.require("standard_ms1_mass_deviation")
        n = len(measured)
        deltas = measured.mz - theoretical.mz[:n]
        sds = _absolute_tolerances(deviation, measured.mz) * self.intensity_dependency.values_at(
            measured.intensity
        )
        return cumulative_log_erfc_scores(deltas, sds, 0)


class MassDifferenceDeviationScorer(IsotopePatternScorer):
    """Error of each peak's m/z offset to the monoisotopic peak.

    The first peak is the reference and contributes no term. sd = standard
    mass difference deviation at the measured m/z times the intensity
    dependency; by default peaks below 10% intensity get up to twice the sd.

    Parameters
    ----------
    intensity_dependency : IntensityDependency, optional
        Overrides the default dependency
    lowest_intensity_accuracy : float
        Factor at zero intensity of the default linear dependency
    """

    def __init__(
        self,
        intensity_dependency: IntensityDependency = None,
        lowest_intensity_accuracy: float = 2.0,
    ):
        if intensity_dependency is None:
            intensity_dependency = LinearIntensityDependency(0.1, 1.0, lowest_intensity_accuracy)
        self.intensity_dependency = intensity_dependency

    def score_peaks(self, measured, theoretical, normalization, experiment, profile):
        _check_aligned(measured, theoretical)
        deviation = profile.require("standard_mass_difference_deviation")
        n = len(measured)
        if n == 0:
            return np.zeros(0, dtype=np.float64)
        measured_offsets = measured.mz - measured.mz[0]
        theoretical_offsets = theoretical.mz[:n] - theoretical.mz[0]
        deltas = theoretical_offsets - measured_offsets
        sds = _absolute_tolerances(deviation, measured.mz) * self.intensity_dependency.values_at(
            measured.intensity
        )
        return cumulative_log_erfc_scores(deltas, sds, 1)


def _truncated_theoretical_intensities(
    measured: Spectrum, theoretical: Spectrum, normalization: Normalization
) -> np.ndarray:
    _check_aligned(measured, theoretical)
    return theoretical.truncated(len(measured)).normalized(normalization).intensity


class LogNormDistributedIntensityScorer(IsotopePatternScorer):
    """Log ratio of measured to theoretical intensities.

    The theoretical pattern is cut to the measured length and normalized like
    the measured pattern. sd (in log space) comes from the intensity
    dependency of the measured intensity; non-positive intensities reject
    the candidate.
    """

    def __init__(self, intensity_dependency: IntensityDependency = None):
        if intensity_dependency is None:
            intensity_dependency = PiecewiseLinearIntensityDependency(
                (1.0, 0.3, 0.15, 0.03), (0.7, 0.6, 0.8, 0.5)
            )
        self.intensity_dependency = intensity_dependency

    def score_peaks(self, measured, theoretical, normalization, experiment, profile):
        expected = _truncated_theoretical_intensities(measured, theoretical, normalization)
        with np.errstate(divide="ignore", invalid="ignore"):
            deltas = np.log(measured.intensity / expected)
        deltas[~((measured.intensity > 0) & (expected > 0))] = np.inf
        sds = self.intensity_dependency.values_at(measured.intensity)
        return cumulative_log_erfc_scores(deltas, sds, 0)


class NormalDistributedIntensityScorer(IsotopePatternScorer):
    """Absolute difference of normalized intensities.

    sd = profile intensity deviation times the intensity dependency of the
    measured intensity.
    """

    def __init__(self, intensity_dependency: IntensityDependency = None):
        if intensity_dependency is None:
            intensity_dependency = ConstantIntensityDependency(1.0)
        self.intensity_dependency = intensity_dependency

    def score_peaks(self, measured, theoretical, normalization, experiment, profile):
        expected = _truncated_theoretical_intensities(measured, theoretical, normalization)
        intensity_deviation = profile.require("intensity_deviation")
        deltas = measured.intensity - expected
        sds = intensity_deviation * self.intensity_dependency.values_at(measured.intensity)
        return cumulative_log_erfc_scores(deltas, sds, 0)
