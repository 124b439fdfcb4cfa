"""Measurement profiles: instrument accuracy and formula constraints.

A MeasurementProfile bundles everything scoring and decomposition need to know
about the measurement. Fields are optional so that a partial profile can be
layered over a default one with the pure ``merge`` function.

Examples
--------
>>> base = MeasurementProfile.default()
>>> strict = MeasurementProfile(allowed_mass_deviation=Deviation(3))
>>> merge(base, strict).allowed_mass_deviation.ppm
3
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Optional

from ..chem.formula import ChemicalAlphabet, FormulaConstraints
from ..constants import (
    DEFAULT_ALLOWED_MASS_DEVIATION_PPM,
    DEFAULT_ALPHABET,
    DEFAULT_INTENSITY_DEVIATION,
    DEFAULT_MEDIAN_NOISE_INTENSITY,
    DEFAULT_STANDARD_MASS_DIFFERENCE_PPM,
    DEFAULT_STANDARD_MS1_DEVIATION_PPM,
    DEFAULT_STANDARD_MS2_DEVIATION_PPM,
    DEFAULT_UPPER_BOUNDS,
)
from .deviation import Deviation


class InstrumentType(Enum):
    """Mass spectrometer types with different accuracy characteristics."""
    ORBITRAP = "orbitrap"
    QTOF = "qtof"
    FTICR = "fticr"


def default_formula_constraints() -> FormulaConstraints:
    return FormulaConstraints(ChemicalAlphabet(DEFAULT_ALPHABET), DEFAULT_UPPER_BOUNDS)


@dataclass(frozen=True)
class MeasurementProfile:
    """Measurement accuracy and constraints used by scoring and decomposition.

    Parameters
    ----------
    formula_constraints : FormulaConstraints, optional
        Alphabet and element bounds for decomposition
    allowed_mass_deviation : Deviation, optional
        Maximal deviation of a candidate's mass from the measured mass
    standard_ms1_mass_deviation : Deviation, optional
        Standard deviation of MS1 mass measurements
    standard_ms2_mass_deviation : Deviation, optional
        Standard deviation of MS2 mass measurements
    standard_mass_difference_deviation : Deviation, optional
        Standard deviation of mass differences between isotope peaks
    intensity_deviation : float, optional
        Standard deviation of normalized isotope intensities
    median_noise_intensity : float, optional
        Median intensity of noise peaks
    """

    formula_constraints: Optional[FormulaConstraints] = None
    allowed_mass_deviation: Optional[Deviation] = None
    standard_ms1_mass_deviation: Optional[Deviation] = None
    standard_ms2_mass_deviation: Optional[Deviation] = None
    standard_mass_difference_deviation: Optional[Deviation] = None
    intensity_deviation: Optional[float] = None
    median_noise_intensity: Optional[float] = None

    def __post_init__(self):
        for name in ("intensity_deviation", "median_noise_intensity"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")

    @classmethod
    def default(cls) -> "MeasurementProfile":
        """Profile with every field set to the package defaults."""
        return cls(
            formula_constraints=default_formula_constraints(),
            allowed_mass_deviation=Deviation(DEFAULT_ALLOWED_MASS_DEVIATION_PPM),
            standard_ms1_mass_deviation=Deviation(DEFAULT_STANDARD_MS1_DEVIATION_PPM),
            standard_ms2_mass_deviation=Deviation(DEFAULT_STANDARD_MS2_DEVIATION_PPM),
            standard_mass_difference_deviation=Deviation(DEFAULT_STANDARD_MASS_DIFFERENCE_PPM),
            intensity_deviation=DEFAULT_INTENSITY_DEVIATION,
            median_noise_intensity=DEFAULT_MEDIAN_NOISE_INTENSITY,
        )

    @classmethod
    def for_instrument(cls, instrument: InstrumentType) -> "MeasurementProfile":
        """Complete profile tuned for a specific instrument.

        Parameters
        ----------
        instrument : InstrumentType
            Type of mass spectrometer

        Returns
        -------
        MeasurementProfile
            Profile with instrument-specific mass accuracies
        """
        if instrument == InstrumentType.ORBITRAP:
            allowed, ms1, difference = 5.0, 3.0, 1.5
        elif instrument == InstrumentType.QTOF:
            allowed, ms1, difference = 10.0, 5.0, 2.5
        elif instrument == InstrumentType.FTICR:
            allowed, ms1, difference = 2.0, 1.0, 0.5
        else:
            raise ValueError(f"Unknown instrument type: {instrument}")
        return merge(
            cls.default(),
            cls(
                allowed_mass_deviation=Deviation(allowed),
                standard_ms1_mass_deviation=Deviation(ms1),
                standard_ms2_mass_deviation=Deviation(ms1),
                standard_mass_difference_deviation=Deviation(difference),
            ),
        )

    def require(self, name: str):
        """Value of a field that must be set for the calling computation."""
        value = getattr(self, name)
        if value is None:
            raise ValueError(f"Measurement profile has no {name}")
        return value


def merge(
    base: Optional[MeasurementProfile], override: Optional[MeasurementProfile]
) -> MeasurementProfile:
    """New profile in which every non-None field of ``override`` wins.

    Neither argument is modified.
    """
    if override is None:
        return base if base is not None else MeasurementProfile()
    if base is None:
        return override
    values = {}
    for f in fields(MeasurementProfile):
        value = getattr(override, f.name)
        values[f.name] = value if value is not None else getattr(base, f.name)
    return MeasurementProfile(**values)
