"""Statistical scoring of isotope patterns.

This module provides independent scorers comparing a measured isotope pattern
with the simulated pattern of a candidate formula:
- Mass deviation of each isotope peak
- Mass difference deviation relative to the monoisotopic peak
- Log-normal and normal models of isotope intensities

Key Features
------------
- Numba-accelerated per-peak log(erfc) scoring
- Intensity-dependent standard deviations via piecewise-linear functions
- -inf rejects a candidate

Examples
--------
>>> from isopatfast.scoring import MassDeviationScorer, LogNormDistributedIntensityScorer
>>>
>>> scorers = [MassDeviationScorer(), LogNormDistributedIntensityScorer()]
>>> total = sum(s.score(measured, theoretical, norm, experiment, profile) for s in scorers)
"""

from .intensity_dependency import (
    ConstantIntensityDependency,
    IntensityDependency,
    LinearIntensityDependency,
    PiecewiseLinearIntensityDependency,
)
from .isotope_scoring import (
    IsotopePatternScorer,
    LogNormDistributedIntensityScorer,
    MassDeviationScorer,
    MassDifferenceDeviationScorer,
    NormalDistributedIntensityScorer,
    cumulative_log_erfc_scores,
    log_erfc_score,
)


__all__ = [
    # Intensity dependencies
    "IntensityDependency",
    "ConstantIntensityDependency",
    "PiecewiseLinearIntensityDependency",
    "LinearIntensityDependency",
    # Scorers
    "IsotopePatternScorer",
    "MassDeviationScorer",
    "MassDifferenceDeviationScorer",
    "LogNormDistributedIntensityScorer",
    "NormalDistributedIntensityScorer",
    # Kernels
    "log_erfc_score",
    "cumulative_log_erfc_scores",
]
