"""Isotope pattern analysis: extraction, formula candidates and ranking.

The analyzer ties the pipeline together:

1. Extract isotope patterns from the MS1 spectra of an experiment
2. Normalize each pattern (optionally adding a baseline offset)
3. Reject patterns whose monoisotopic peak is below the intensity cutoff,
   otherwise drop trailing peaks below the cutoff
4. Decompose the neutral monoisotopic mass into candidate formulas
5. Simulate the isotope pattern of every candidate and sum the scorer outputs
6. Rank candidates by descending score

If the ionization of the experiment is unknown, steps 4-6 run once per
ionization compatible with the charge and the finite-scored candidates of all
ionizations are ranked together.

Examples
--------
>>> analyzer = IsotopePatternAnalysis.default_analyzer()
>>> experiment = Experiment([spectrum], PrecursorIonType.from_string("[M+H]+"))
>>> patterns = analyzer.deisotope(experiment, target_mz=181.0707)
>>> best = patterns[0].best_candidate
>>> print(f"{best.value}: {best.score:.2f}")
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from .chem.formula import MolecularFormula
from .chem.ionization import PrecursorIonType, known_ion_modes
from .constants import DEFAULT_INTENSITY_CUTOFF, DEFAULT_INTENSITY_OFFSET
from .decomposition.cache import get_decomposer_cache
from .features.extraction import ExtractAll
from .features.isotope_pattern import IsotopePattern, Scored, sort_by_score
from .isotopes.generator import IsotopePatternGenerator
from .ms.experiment import Experiment
from .ms.profile import MeasurementProfile, merge
from .ms.spectrum import Normalization, Spectrum
from .scoring.isotope_scoring import (
    IsotopePatternScorer,
    LogNormDistributedIntensityScorer,
    MassDeviationScorer,
)

logger = logging.getLogger(__name__)


@dataclass
class AnalyzerConfig:
    """Scoring configuration of an IsotopePatternAnalysis.

    Parameters
    ----------
    cutoff : float
        Minimal normalized intensity of scored peaks (default: 0.01)
    intensity_offset : float
        Baseline added to every normalized peak before renormalizing
        (default: 0.0)
    scorers : list of IsotopePatternScorer
        Scorers whose outputs are summed
    """

    cutoff: float = DEFAULT_INTENSITY_CUTOFF
    intensity_offset: float = DEFAULT_INTENSITY_OFFSET
    scorers: List[IsotopePatternScorer] = field(default_factory=list)

    def __post_init__(self):
        if not 0.0 <= self.cutoff < 1.0:
            raise ValueError(f"cutoff must be in [0, 1), got {self.cutoff}")
        if self.intensity_offset < 0:
            raise ValueError(f"intensity_offset must be non-negative, got {self.intensity_offset}")

    @classmethod
    def default(cls) -> "AnalyzerConfig":
        """Mass deviation and log-normal intensity scoring."""
        return cls(
            scorers=[
                MassDeviationScorer(),
                LogNormDistributedIntensityScorer(),
            ]
        )


# =============================================================================
# Pattern preprocessing
# =============================================================================

def normalize_pattern(
    spectrum: Spectrum, total: float, intensity_offset: float = 0.0
) -> Spectrum:
    """Scale intensities to sum to ``total``; with a non-zero offset, add the
    offset to every peak and scale again."""
    normalization = Normalization.sum(total)
    normalized = spectrum.normalized(normalization)
    if intensity_offset != 0:
        normalized = normalized.with_intensity_offset(intensity_offset).normalized(normalization)
    return normalized


def apply_intensity_cutoff(spectrum: Spectrum, cutoff: float, total: float = 1.0) -> Spectrum:
    """Drop trailing peaks strictly below ``cutoff`` and rescale to ``total``.

    The first peak is never dropped. A spectrum without trailing peaks below
    the cutoff is returned unchanged, so repeated filtering is a no-op.
    """
    n = len(spectrum)
    while n > 1 and spectrum.intensity[n - 1] < cutoff:
        n -= 1
    if n == len(spectrum):
        return spectrum
    return spectrum.truncated(n).normalized(Normalization.sum(total))


# =============================================================================
# Analyzer
# =============================================================================

class IsotopePatternAnalysis:
    """Ranks molecular formulas by how well they explain isotope patterns.

    Parameters
    ----------
    config : AnalyzerConfig, optional
        Scorers, cutoff and offset (default: ``AnalyzerConfig.default()``)
    profile : MeasurementProfile, optional
        Default profile; profiles passed to individual calls are merged over
        it (default: ``MeasurementProfile.default()``)
    decomposer : object, optional
        Provides ``decompose_to_formulas(mass, deviation, constraints)``
        (default: process-wide DecomposerCache)
    generator : object, optional
        Provides ``simulate_pattern(formula, ionization)``
        (default: IsotopePatternGenerator)
    extractor : object, optional
        Provides ``extract_pattern(profile, spectrum, target_mz, allow_adducts)``
        (default: ExtractAll)
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        profile: Optional[MeasurementProfile] = None,
        decomposer=None,
        generator=None,
        extractor=None,
    ):
        self.config = config if config is not None else AnalyzerConfig.default()
        self.default_profile = merge(MeasurementProfile.default(), profile)
        self.decomposer = decomposer if decomposer is not None else get_decomposer_cache()
        self.generator = generator if generator is not None else IsotopePatternGenerator()
        self.extractor = extractor if extractor is not None else ExtractAll()

    @classmethod
    def default_analyzer(cls) -> "IsotopePatternAnalysis":
        return cls(AnalyzerConfig.default(), MeasurementProfile.default())

    def get_profile(self, profile: Optional[MeasurementProfile] = None) -> MeasurementProfile:
        """``profile`` layered over the analyzer's default profile."""
        return merge(self.default_profile, profile)

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def extract_patterns(
        self,
        experiment: Experiment,
        target_mz: Optional[float] = None,
        allow_adducts: bool = False,
        profile: Optional[MeasurementProfile] = None,
    ) -> List[IsotopePattern]:
        """Isotope patterns of all MS1 spectra of the experiment."""
        profile = self.get_profile(profile)
        patterns = []
        for spectrum in experiment.ms1_spectra:
            patterns.extend(
                self.extractor.extract_pattern(profile, spectrum, target_mz, allow_adducts)
            )
        return patterns

    # ------------------------------------------------------------------
    # Deisotoping
    # ------------------------------------------------------------------

    def deisotope(
        self,
        experiment: Experiment,
        target_mz: Optional[float] = None,
        profile: Optional[MeasurementProfile] = None,
        allow_adducts: bool = False,
    ) -> List[IsotopePattern]:
        """Extract isotope patterns and rank formula candidates for each.

        Parameters
        ----------
        experiment : Experiment
            MS1 spectra and precursor ion type
        target_mz : float, optional
            Extract only the pattern starting at this m/z
        profile : MeasurementProfile, optional
            Overrides of the analyzer's default profile
        allow_adducts : bool
            Passed through to the extractor

        Returns
        -------
        list of IsotopePattern
            One pattern per extracted cluster, each with ranked candidates
        """
        profile = self.get_profile(profile)
        patterns = self.extract_patterns(experiment, target_mz, allow_adducts, profile)
        results = [self._deisotope_single(experiment, pattern, profile) for pattern in patterns]
        logger.info(
            f"Deisotoped {len(results)} isotope patterns"
            + (f" of {experiment.name}" if experiment.name else "")
        )
        return results

    def deisotope_single(
        self,
        experiment: Experiment,
        pattern: IsotopePattern,
        profile: Optional[MeasurementProfile] = None,
    ) -> IsotopePattern:
        """Rank formula candidates for one isotope pattern.

        With a known ionization every decomposed formula is returned, even if
        scored -inf. With an unknown ionization the candidates of all known
        ion modes of the charge are merged (ion atoms added to the formula)
        and only finite scores are kept.
        """
        return self._deisotope_single(experiment, pattern, self.get_profile(profile))

    def _deisotope_single(
        self,
        experiment: Experiment,
        pattern: IsotopePattern,
        profile: MeasurementProfile,
    ) -> IsotopePattern:
        ion_type = experiment.precursor_ion_type
        constraints = profile.require("formula_constraints")
        deviation = profile.require("allowed_mass_deviation")
        mono_mass = pattern.monoisotopic_mass

        candidates = []
        if ion_type.is_ionization_unknown:
            for ionization in known_ion_modes(ion_type.charge):
                formulas = self.decomposer.decompose_to_formulas(
                    ionization.to_neutral(mono_mass), deviation, constraints
                )
                scores = self._score_formulas(
                    pattern.pattern,
                    formulas,
                    experiment,
                    profile,
                    1.0,
                    PrecursorIonType.for_ionization(ionization),
                )
                for formula, score in zip(formulas, scores):
                    if not math.isinf(score):
                        candidates.append(Scored(formula + ionization.atoms, float(score)))
        else:
            formulas = self.decomposer.decompose_to_formulas(
                ion_type.precursor_mass_to_neutral_mass(mono_mass), deviation, constraints
            )
            scores = self._score_formulas(
                pattern.pattern, formulas, experiment, profile, 1.0, ion_type
            )
            candidates = [Scored(formula, float(score)) for formula, score in zip(formulas, scores)]

        ranked = sort_by_score(candidates)
        logger.debug(
            f"Pattern at m/z {mono_mass:.4f}: {len(ranked)} candidates"
            + (f", best {ranked[0].value} ({ranked[0].score:.3f})" if ranked else "")
        )
        return pattern.with_candidates(ranked)

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def score_formulas(
        self,
        pattern: Spectrum,
        formulas: Sequence[MolecularFormula],
        experiment: Experiment,
        profile: Optional[MeasurementProfile] = None,
        summed_intensities: float = 1.0,
        ion_type: Optional[PrecursorIonType] = None,
    ) -> np.ndarray:
        """Score of every formula for a measured isotope pattern.

        Parameters
        ----------
        pattern : Spectrum
            Measured isotope pattern, mass ordered
        formulas : sequence of MolecularFormula
            Neutral candidate formulas
        experiment : Experiment
            Supplies the precursor ion type unless ``ion_type`` is given
        profile : MeasurementProfile, optional
            Overrides of the analyzer's default profile
        summed_intensities : float
            Total the pattern is normalized to; <= 0 means the pattern's own
            total intensity
        ion_type : PrecursorIonType, optional
            Ion type used to simulate the candidates

        Returns
        -------
        np.ndarray
            One score per formula; all -inf if the monoisotopic peak is below
            the intensity cutoff
        """
        if ion_type is None:
            ion_type = experiment.precursor_ion_type
        return self._score_formulas(
            pattern, formulas, experiment, self.get_profile(profile), summed_intensities, ion_type
        )

    def _score_formulas(
        self,
        pattern: Spectrum,
        formulas: Sequence[MolecularFormula],
        experiment: Experiment,
        profile: MeasurementProfile,
        summed_intensities: float,
        ion_type: PrecursorIonType,
    ) -> np.ndarray:
        scores = np.full(len(formulas), -np.inf, dtype=np.float64)
        if summed_intensities <= 0:
            summed_intensities = pattern.total_intensity
        normalization = Normalization.sum(summed_intensities)

        spectrum = normalize_pattern(pattern, summed_intensities, self.config.intensity_offset)
        if spectrum.intensity[0] < self.config.cutoff:
            logger.debug(
                f"Monoisotopic peak at m/z {spectrum.mz[0]:.4f} below cutoff "
                f"{self.config.cutoff}; pattern not scored"
            )
            return scores
        spectrum = apply_intensity_cutoff(spectrum, self.config.cutoff, summed_intensities)

        for k, formula in enumerate(formulas):
            measured_formula = ion_type.neutral_molecule_to_measured_neutral_molecule(formula)
            theoretical = self.generator.simulate_pattern(measured_formula, ion_type.ionization)
            measured = spectrum
            if len(theoretical) < len(spectrum):
                logger.warning(
                    f"Simulated pattern of {formula} has {len(theoretical)} peaks, "
                    f"measured {len(spectrum)}; scoring the first {len(theoretical)}"
                )
                measured = spectrum.truncated(len(theoretical)).normalized(Normalization.sum(1.0))
            scores[k] = self._sum_scores(measured, theoretical, normalization, experiment, profile)
        return scores

    def _sum_scores(
        self,
        measured: Spectrum,
        theoretical: Spectrum,
        normalization: Normalization,
        experiment: Experiment,
        profile: MeasurementProfile,
    ) -> float:
        total = 0.0
        for scorer in self.config.scorers:
            total += scorer.score(measured, theoretical, normalization, experiment, profile)
            if math.isinf(total):
                return total
        return total
