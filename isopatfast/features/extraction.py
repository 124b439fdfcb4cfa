"""Isotope pattern extraction from MS1 spectra.

Untargeted extraction walks the peaks by descending intensity. Every seed
collects peaks at +1, +2, ... Da (forward, claimed) and -1, -2, ... Da
(backward, only above 0.33 of the seed intensity, not claimed) into
one cluster. Clusters with at least two peaks become isotope patterns.

Targeted extraction starts from the most intense peak near a given m/z and
extends it with isotope windows derived from the element alphabet. When an
isotope peak is more intense than its predecessor, a second overlapping
pattern may start there, so the pattern up to that point is kept as an
additional candidate.

Examples
--------
>>> extractor = ExtractAll()
>>> patterns = extractor.extract_pattern(MeasurementProfile.default(), spectrum)
>>> [p.monoisotopic_mass for p in patterns]
[181.0707, 203.0526]
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import numpy as np
from numba import njit

from ..chem.elements import PeriodicTable, get_periodic_table
from ..constants import (
    BACKWARD_INTENSITY_RATIO,
    EXTENDED_ALPHABET,
    ISOTOPE_OVERSHOOT_DA,
    MAX_ISOTOPE_PEAKS_TARGETED,
    MAX_ISOTOPE_PEAKS_UNTARGETED,
)
from ..ms.deviation import Deviation, absolute_tolerance, in_window
from ..ms.profile import MeasurementProfile
from ..ms.spectrum import Spectrum, most_intense_peak_in_range
from .isotope_pattern import IsotopePattern

logger = logging.getLogger(__name__)


# =============================================================================
# Untargeted clustering kernel
# =============================================================================

@njit
def extract_isotope_clusters(
    mz_array: np.ndarray,
    intensity_array: np.ndarray,
    intensity_order: np.ndarray,
    ppm: float,
    absolute: float,
    max_shift: int = 10,
    overshoot: float = 0.3,
    backward_ratio: float = 0.33,
) -> Tuple[np.ndarray, np.ndarray]:
    """Group peaks of a mass-ordered spectrum into isotope clusters.

    Parameters
    ----------
    mz_array : np.ndarray
        Sorted m/z values
    intensity_array : np.ndarray
        Corresponding intensities
    intensity_order : np.ndarray
        Peak indices by descending intensity
    ppm, absolute : float
        Isotope window around each expected isotope mass
    max_shift : int
        Maximal isotope distance in Da searched in each direction
    overshoot : float
        A scan step ends once a peak lies this far beyond the expected mass
    backward_ratio : float
        A backward peak must exceed this fraction of the seed intensity

    Returns
    -------
    members : np.ndarray
        Peak indices of all clusters, concatenated, in collection order
    offsets : np.ndarray
        Cluster boundaries; cluster c is members[offsets[c]:offsets[c + 1]]
    """
    n = len(mz_array)
    used = np.zeros(n, dtype=np.bool_)
    members = []
    offsets = [0]

    for k in range(n):
        seed_mz = mz_array[intensity_order[k]]
        tolerance = absolute_tolerance(ppm, absolute, seed_mz)
        seed = most_intense_peak_in_range(
            mz_array, intensity_array, seed_mz - tolerance, seed_mz + tolerance
        )
        if used[seed]:
            continue

        start = len(members)
        mono = mz_array[seed]
        members.append(seed)

        # forward: +1, +2, ... Da, claimed
        j = seed + 1
        for f in range(1, max_shift + 1):
            expected = mono + f
            found = False
            stop = False
            while j < n:
                if in_window(ppm, absolute, expected, mz_array[j]) and not used[j]:
                    members.append(j)
                    used[j] = True
                    found = True
                elif mz_array[j] > expected + overshoot:
                    stop = not found
                    break
                j += 1
            if stop:
                break

        # backward: -1, -2, ... Da, not claimed
        j = seed - 1
        for f in range(1, max_shift + 1):
            expected = mono - f
            found = False
            stop = False
            while j >= 0:
                if (
                    in_window(ppm, absolute, expected, mz_array[j])
                    and not used[j]
                    and intensity_array[j] > backward_ratio * intensity_array[seed]
                ):
                    members.append(j)
                    found = True
                elif mz_array[j] < expected - overshoot:
                    stop = not found
                    break
                j -= 1
            if stop:
                break

        if len(members) - start >= 2:
            offsets.append(len(members))
        else:
            while len(members) > start:
                members.pop()

    return np.array(members, dtype=np.int64), np.array(offsets, dtype=np.int64)


# =============================================================================
# Extractor
# =============================================================================

class ExtractAll:
    """Extracts every plausible isotope pattern of a spectrum.

    Parameters
    ----------
    periodic_table : PeriodicTable, optional
        Isotope table used for isotope windows (default: shared molmass-backed table)
    """

    def __init__(self, periodic_table: PeriodicTable = None):
        self.periodic_table = periodic_table if periodic_table is not None else get_periodic_table()

    def isotope_window(self, profile: MeasurementProfile) -> Deviation:
        """Window around expected isotope masses in untargeted extraction.

        Doubles the allowed ppm, triples the allowed absolute deviation and
        adds the largest isotope mass defect of the profile alphabet.
        """
        allowed = profile.require("allowed_mass_deviation")
        constraints = profile.require("formula_constraints")
        delta = self.periodic_table.max_isotope_mass_defect(constraints.alphabet)
        return Deviation(2 * allowed.ppm, 3 * allowed.absolute + delta)

    def extract_pattern(
        self,
        profile: MeasurementProfile,
        spectrum: Spectrum,
        target_mz: Optional[float] = None,
        allow_adducts: bool = False,
    ) -> List[IsotopePattern]:
        """Isotope patterns of ``spectrum``.

        Parameters
        ----------
        profile : MeasurementProfile
            Needs ``allowed_mass_deviation`` and ``formula_constraints``
        spectrum : Spectrum
            Measured spectrum, any peak order
        target_mz : float, optional
            If given, only the pattern starting at this m/z is extracted
        allow_adducts : bool
            Accepted for interface compatibility; adduct peaks are not
            searched

        Returns
        -------
        list of IsotopePattern
            Untargeted: patterns in seed order (descending seed intensity).
            Targeted: the full pattern first, then shorter alternatives.
        """
        if target_mz is not None:
            return self.extract_targeted(profile, spectrum, target_mz)
        return self.extract_untargeted(profile, spectrum)

    def extract_untargeted(
        self, profile: MeasurementProfile, spectrum: Spectrum
    ) -> List[IsotopePattern]:
        if len(spectrum) == 0:
            return []
        by_mass = spectrum.sorted_by_mass()
        intensity_order = np.argsort(-by_mass.intensity, kind="stable")
        window = self.isotope_window(profile)
        members, offsets = extract_isotope_clusters(
            by_mass.mz,
            by_mass.intensity,
            intensity_order,
            window.ppm,
            window.absolute,
            MAX_ISOTOPE_PEAKS_UNTARGETED,
            ISOTOPE_OVERSHOOT_DA,
            BACKWARD_INTENSITY_RATIO,
        )
        patterns = []
        for c in range(len(offsets) - 1):
            index = members[offsets[c]:offsets[c + 1]]
            cluster = Spectrum(by_mass.mz[index], by_mass.intensity[index])
            patterns.append(IsotopePattern(cluster.sorted_by_mass()))
        logger.debug(f"Extracted {len(patterns)} isotope patterns from {len(spectrum)} peaks")
        return patterns

    def extract_targeted(
        self, profile: MeasurementProfile, spectrum: Spectrum, target_mz: float
    ) -> List[IsotopePattern]:
        allowed = profile.require("allowed_mass_deviation")
        by_mass = spectrum.sorted_by_mass()
        seed = by_mass.most_intense_peak_within(target_mz, allowed)
        if seed < 0:
            logger.debug(f"No peak within {allowed} of target m/z {target_mz:.4f}")
            return []

        mono_mz = float(by_mass.mz[seed])
        accepted = [seed]
        snapshots = []
        for k in range(1, MAX_ISOTOPE_PEAKS_TARGETED + 1):
            low, high = self.periodic_table.isotopic_mass_window(
                EXTENDED_ALPHABET, allowed, mono_mz, k
            )
            midpoint = (low + high) / 2.0
            window = Deviation.from_measurement_and_reference(midpoint, low)
            index = by_mass.most_intense_peak_within(midpoint, window)
            if index < 0:
                break
            if by_mass.intensity[index] > by_mass.intensity[accepted[-1]]:
                snapshots.append(list(accepted))
            accepted.append(index)

        patterns = [self._pattern_of(by_mass, accepted)]
        patterns.extend(self._pattern_of(by_mass, snapshot) for snapshot in snapshots)
        return patterns

    @staticmethod
    def _pattern_of(spectrum: Spectrum, indices: List[int]) -> IsotopePattern:
        index = np.array(indices, dtype=np.int64)
        return IsotopePattern(Spectrum(spectrum.mz[index], spectrum.intensity[index]))
