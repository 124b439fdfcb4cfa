"""Experiment container: MS1 spectra of one precursor and its ion type."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ..chem.ionization import PrecursorIonType
from .spectrum import Spectrum


@dataclass
class Experiment:
    """Measured data of a single precursor.

    Parameters
    ----------
    ms1_spectra : list of Spectrum
        MS1 spectra containing the precursor isotope pattern
    precursor_ion_type : PrecursorIonType
        Known ion type, or an unknown ion type carrying only the charge
    ion_mass : float, optional
        Measured precursor m/z, if known
    name : str
        Free-form identifier used in log messages
    """

    ms1_spectra: List[Spectrum] = field(default_factory=list)
    precursor_ion_type: PrecursorIonType = field(
        default_factory=PrecursorIonType.unknown_positive
    )
    ion_mass: Optional[float] = None
    name: str = ""

    @property
    def charge(self) -> int:
        return self.precursor_ion_type.charge

    @property
    def is_ionization_unknown(self) -> bool:
        return self.precursor_ion_type.is_ionization_unknown
