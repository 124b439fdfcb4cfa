"""Measurement-side data structures.

This module provides:
- Deviation: ppm + absolute mass accuracy windows
- Spectrum, Peak, Normalization: immutable peak lists and scaling rules
- MeasurementProfile: instrument accuracy and constraints, with pure merging
- Experiment: MS1 spectra of one precursor and its ion type
"""

from .deviation import (
    Deviation,
    absolute_tolerance,
    in_window,
)

from .spectrum import (
    Normalization,
    Peak,
    Spectrum,
    most_intense_peak_in_range,
)

from .profile import (
    InstrumentType,
    MeasurementProfile,
    default_formula_constraints,
    merge,
)

from .experiment import Experiment

__all__ = [
    # Deviation
    'Deviation',
    'absolute_tolerance',
    'in_window',

    # Spectra
    'Normalization',
    'Peak',
    'Spectrum',
    'most_intense_peak_in_range',

    # Profiles
    'InstrumentType',
    'MeasurementProfile',
    'default_formula_constraints',
    'merge',

    # Experiment
    'Experiment',
]
