"""Pytest configuration for IsoPatFast tests.

This module provides common fixtures and configuration for all tests.
IsoPatFast is pure computation without I/O dependencies, so fixtures are
small in-memory spectra, formulas and profiles.
"""

import numpy as np
import pytest


@pytest.fixture
def glucose():
    """Glucose, C6H12O6."""
    from isopatfast.chem.formula import MolecularFormula
    return MolecularFormula.parse("C6H12O6")


@pytest.fixture
def protonated():
    """[M+H]+ ion type."""
    from isopatfast.chem.ionization import PrecursorIonType
    return PrecursorIonType.from_string("[M+H]+")


@pytest.fixture
def default_profile():
    """Measurement profile with all defaults set."""
    from isopatfast.ms.profile import MeasurementProfile
    return MeasurementProfile.default()


@pytest.fixture
def two_peak_pattern():
    """Measured two-peak isotope pattern at m/z 100."""
    from isopatfast.ms.spectrum import Spectrum
    return Spectrum([100.000, 101.0034], [1.0, 0.011])


@pytest.fixture
def glucose_spectrum(glucose, protonated):
    """MS1 spectrum: simulated [M+H]+ pattern of glucose plus noise peaks."""
    from isopatfast.isotopes.generator import IsotopePatternGenerator
    from isopatfast.ms.spectrum import Spectrum

    pattern = IsotopePatternGenerator().simulate_pattern(glucose, protonated.ionization)
    mz = np.concatenate([pattern.mz, [150.0321, 175.5512, 230.1178]])
    intensity = np.concatenate([pattern.intensity * 1e6, [2.0e4, 1.5e4, 3.0e4]])
    return Spectrum(mz, intensity)


# Random seed for reproducibility
@pytest.fixture(scope="session", autouse=True)
def set_random_seed():
    """Set random seed for reproducible tests."""
    np.random.seed(42)
