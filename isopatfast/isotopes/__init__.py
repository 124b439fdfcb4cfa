"""Theoretical isotope pattern simulation."""

from .generator import (
    IsotopePatternGenerator,
    convolve_distributions,
    power_distribution,
    single_atom_distribution,
    trim_trailing_peaks,
)

__all__ = [
    'IsotopePatternGenerator',
    'convolve_distributions',
    'power_distribution',
    'single_atom_distribution',
    'trim_trailing_peaks',
]
