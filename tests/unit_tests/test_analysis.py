"""Tests for the isotope pattern analyzer.

This module tests:
- Pattern normalization, intensity offset and cutoff
- Candidate scoring and ranking for known ionizations
- Search over ion modes for unknown ionizations
- Profile layering and scorer short-circuiting
- End-to-end ranking on a simulated glucose spectrum
"""

import logging
import unittest

import numpy as np
import pytest

from isopatfast.analysis import (
    AnalyzerConfig,
    IsotopePatternAnalysis,
    apply_intensity_cutoff,
    normalize_pattern,
)
from isopatfast.chem.formula import MolecularFormula
from isopatfast.chem.ionization import PrecursorIonType, known_ion_modes
from isopatfast.features.isotope_pattern import IsotopePattern
from isopatfast.ms.deviation import Deviation
from isopatfast.ms.experiment import Experiment
from isopatfast.ms.profile import MeasurementProfile
from isopatfast.ms.spectrum import Spectrum
from isopatfast.scoring import (
    IsotopePatternScorer,
    LogNormDistributedIntensityScorer,
    MassDeviationScorer,
)

GOOD_PATTERN = Spectrum([100.0, 101.0034], [0.989, 0.011])
REJECTED_PATTERN = Spectrum([100.0, 101.0034], [1.0, 0.0])


class FakeDecomposer:
    """Returns fixed formulas and records every request."""

    def __init__(self, formulas):
        self.formulas = [MolecularFormula.parse(f) for f in formulas]
        self.calls = []

    def decompose_to_formulas(self, mass, deviation, constraints):
        self.calls.append((mass, deviation, constraints))
        return list(self.formulas)


class FakeGenerator:
    """Looks up simulated patterns by formula and ionization."""

    def __init__(self, patterns=None, default=GOOD_PATTERN, rejected_ionizations=()):
        self.patterns = patterns or {}
        self.default = default
        self.rejected_ionizations = set(rejected_ionizations)
        self.calls = []

    def simulate_pattern(self, formula, ionization):
        self.calls.append((formula, ionization))
        if str(ionization) in self.rejected_ionizations:
            return REJECTED_PATTERN
        return self.patterns.get(str(formula), self.default)


class RejectAll(IsotopePatternScorer):
    def score_peaks(self, measured, theoretical, normalization, experiment, profile):
        return np.full(len(measured), -np.inf)


class RecordingScorer(IsotopePatternScorer):
    def __init__(self):
        self.calls = 0

    def score_peaks(self, measured, theoretical, normalization, experiment, profile):
        self.calls += 1
        return np.zeros(len(measured))


def protonated_experiment(spectra=()):
    return Experiment(list(spectra), PrecursorIonType.from_string("[M+H]+"))


# =============================================================================
# Preprocessing
# =============================================================================


def test_normalize_pattern():
    spectrum = Spectrum([100.0, 101.0], [3.0, 1.0])
    np.testing.assert_allclose(normalize_pattern(spectrum, 1.0).intensity, [0.75, 0.25])
    np.testing.assert_allclose(normalize_pattern(spectrum, 100.0).intensity, [75.0, 25.0])


def test_normalize_pattern_with_offset():
    """Offset is added to the normalized peaks, then normalized again."""
    spectrum = Spectrum([100.0, 101.0], [3.0, 1.0])
    normalized = normalize_pattern(spectrum, 1.0, intensity_offset=0.1)
    np.testing.assert_allclose(normalized.intensity, [0.85 / 1.2, 0.35 / 1.2])


def test_offset_keeps_peak_order():
    spectrum = Spectrum([100.0, 101.0034, 102.0067], [1.0, 0.3, 0.05])
    normalized = normalize_pattern(spectrum, 1.0, intensity_offset=0.02)
    np.testing.assert_array_equal(normalized.mz, spectrum.mz)
    assert normalized.total_intensity == pytest.approx(1.0)
    assert list(np.argsort(-normalized.intensity)) == [0, 1, 2]
    assert normalized.intensity[2] > 0.05 / 1.35


def test_cutoff_drops_trailing_peaks_only():
    spectrum = Spectrum([100.0, 101.0, 102.0, 103.0], [0.6, 0.005, 0.39, 0.005])
    filtered = apply_intensity_cutoff(spectrum, 0.01)
    assert len(filtered) == 3
    assert filtered.total_intensity == pytest.approx(1.0)
    np.testing.assert_allclose(filtered.intensity, np.array([0.6, 0.005, 0.39]) / 0.995)


def test_cutoff_is_idempotent():
    spectrum = Spectrum([100.0, 101.0, 102.0, 103.0], [0.6, 0.005, 0.39, 0.005])
    once = apply_intensity_cutoff(spectrum, 0.01)
    assert apply_intensity_cutoff(once, 0.01) is once


def test_cutoff_keeps_first_peak():
    spectrum = Spectrum([100.0, 101.0], [0.005, 0.001])
    assert len(apply_intensity_cutoff(spectrum, 0.01)) == 1


# =============================================================================
# Configuration
# =============================================================================


def test_default_analyzer():
    analyzer = IsotopePatternAnalysis.default_analyzer()
    assert [type(s) for s in analyzer.config.scorers] == [
        MassDeviationScorer,
        LogNormDistributedIntensityScorer,
    ]
    assert analyzer.config.cutoff == 0.01
    assert analyzer.config.intensity_offset == 0.0
    assert analyzer.default_profile == MeasurementProfile.default()


def test_default_scorer_dependencies():
    mass_scorer, intensity_scorer = AnalyzerConfig.default().scorers
    np.testing.assert_allclose(mass_scorer.intensity_dependency.intensities, [0.15, 0.05])
    np.testing.assert_allclose(mass_scorer.intensity_dependency.values, [1.0, 1.5])
    np.testing.assert_allclose(
        intensity_scorer.intensity_dependency.intensities, [1.0, 0.3, 0.15, 0.03]
    )
    np.testing.assert_allclose(intensity_scorer.intensity_dependency.values, [0.7, 0.6, 0.8, 0.5])
    assert MeasurementProfile.default().intensity_deviation == 0.008
    assert MeasurementProfile.default().median_noise_intensity == 0.02


@pytest.mark.parametrize("kwargs", [{"cutoff": 1.0}, {"cutoff": -0.1}, {"intensity_offset": -1.0}])
def test_invalid_config(kwargs):
    with pytest.raises(ValueError):
        AnalyzerConfig(**kwargs)


def test_partial_default_profile_is_completed():
    analyzer = IsotopePatternAnalysis(profile=MeasurementProfile(allowed_mass_deviation=Deviation(3)))
    profile = analyzer.get_profile()
    assert profile.allowed_mass_deviation == Deviation(3)
    assert profile.formula_constraints == MeasurementProfile.default().formula_constraints


# =============================================================================
# Scoring
# =============================================================================


class TestScoreFormulas(unittest.TestCase):
    """Test scoring of candidate formulas against one pattern."""

    def setUp(self):
        self.experiment = protonated_experiment()
        self.formulas = [MolecularFormula.parse("C5H10"), MolecularFormula.parse("C4H6N")]

    def test_mono_below_cutoff_rejects_all(self):
        generator = FakeGenerator()
        analyzer = IsotopePatternAnalysis(generator=generator)
        pattern = Spectrum([100.0, 101.0034], [0.005, 0.995])
        scores = analyzer.score_formulas(pattern, self.formulas, self.experiment)
        self.assertTrue(np.all(np.isneginf(scores)))
        self.assertEqual(len(scores), 2)
        self.assertEqual(generator.calls, [])

    def test_no_formulas(self):
        analyzer = IsotopePatternAnalysis(generator=FakeGenerator())
        scores = analyzer.score_formulas(GOOD_PATTERN, [], self.experiment)
        self.assertEqual(len(scores), 0)

    def test_scores_are_finite_for_matching_pattern(self):
        analyzer = IsotopePatternAnalysis(generator=FakeGenerator())
        scores = analyzer.score_formulas(
            Spectrum([100.0, 101.0034], [1.0, 0.011]), self.formulas, self.experiment
        )
        self.assertTrue(np.all(np.isfinite(scores)))
        self.assertTrue(np.all(scores <= 0))

    def test_summed_intensities_from_pattern(self):
        """A non-positive total keeps the pattern's own intensity scale."""
        recorded = []

        class Recorder(IsotopePatternScorer):
            def score_peaks(self, measured, theoretical, normalization, experiment, profile):
                recorded.append((measured.total_intensity, normalization.base))
                return np.zeros(len(measured))

        analyzer = IsotopePatternAnalysis(
            config=AnalyzerConfig(cutoff=0.0, scorers=[Recorder()]), generator=FakeGenerator()
        )
        analyzer.score_formulas(
            Spectrum([100.0, 101.0034], [300.0, 100.0]),
            self.formulas[:1],
            self.experiment,
            summed_intensities=0.0,
        )
        self.assertEqual(len(recorded), 1)
        self.assertAlmostEqual(recorded[0][0], 400.0)
        self.assertAlmostEqual(recorded[0][1], 400.0)

    def test_short_theoretical_pattern_workaround(self):
        """A simulated pattern shorter than the measured one is scored on its
        length with the measured pattern renormalized."""
        generator = FakeGenerator(default=Spectrum([100.0], [1.0]))
        analyzer = IsotopePatternAnalysis(generator=generator)
        with self.assertLogs("isopatfast.analysis", level=logging.WARNING):
            scores = analyzer.score_formulas(
                Spectrum([100.0, 101.0034], [1.0, 0.011]), self.formulas[:1], self.experiment
            )
        self.assertEqual(scores[0], 0.0)

    def test_rejection_short_circuits_scorers(self):
        recorder = RecordingScorer()
        analyzer = IsotopePatternAnalysis(
            config=AnalyzerConfig(scorers=[RejectAll(), recorder]), generator=FakeGenerator()
        )
        scores = analyzer.score_formulas(GOOD_PATTERN, self.formulas, self.experiment)
        self.assertTrue(np.all(np.isneginf(scores)))
        self.assertEqual(recorder.calls, 0)

    def test_ion_type_adduct_applied_before_simulation(self):
        generator = FakeGenerator()
        analyzer = IsotopePatternAnalysis(generator=generator)
        ammonium = PrecursorIonType.from_string("[M+NH4]+")
        analyzer.score_formulas(GOOD_PATTERN, self.formulas[:1], self.experiment, ion_type=ammonium)
        formula, ionization = generator.calls[0]
        self.assertEqual(formula, MolecularFormula.parse("C5H13N"))
        self.assertEqual(str(ionization), "[M+H]+")


# =============================================================================
# Deisotoping
# =============================================================================


class TestDeisotope(unittest.TestCase):
    """Test candidate ranking per isotope pattern."""

    def test_two_peak_pattern(self):
        decomposer = FakeDecomposer(["C5H10"])
        analyzer = IsotopePatternAnalysis(decomposer=decomposer, generator=FakeGenerator())
        pattern = IsotopePattern(Spectrum([100.0, 101.0034], [1.0, 0.011]))
        result = analyzer.deisotope_single(protonated_experiment(), pattern)

        self.assertEqual(len(result.candidates), 1)
        self.assertTrue(np.isfinite(result.candidates[0].score))
        self.assertEqual(result.best_candidate.value, MolecularFormula.parse("C5H10"))

        mass, deviation, constraints = decomposer.calls[0]
        self.assertAlmostEqual(mass, 100.0 - 1.00727645232, places=6)
        self.assertEqual(deviation, Deviation(10))
        self.assertEqual(constraints, MeasurementProfile.default().formula_constraints)

    def test_two_peak_scenario_with_single_candidate(self):
        simulated = Spectrum([100.000, 101.0034], [1.0, 0.0108])
        analyzer = IsotopePatternAnalysis(
            decomposer=FakeDecomposer(["C5H10"]), generator=FakeGenerator(default=simulated)
        )
        pattern = IsotopePattern(Spectrum([100.000, 101.0034], [1.0, 0.011]))
        result = analyzer.deisotope_single(protonated_experiment(), pattern)
        self.assertEqual([str(c.value) for c in result.candidates], ["C5H10"])
        self.assertTrue(np.isfinite(result.candidates[0].score))

    def test_no_candidates(self):
        analyzer = IsotopePatternAnalysis(decomposer=FakeDecomposer([]), generator=FakeGenerator())
        result = analyzer.deisotope_single(
            protonated_experiment(), IsotopePattern(GOOD_PATTERN)
        )
        self.assertEqual(result.candidates, [])
        self.assertIsNone(result.best_candidate)

    def test_ranking_keeps_rejected_candidates(self):
        """With a known ionization every formula is returned, best first."""
        generator = FakeGenerator(
            patterns={
                "C5H10": Spectrum([100.0, 101.0034], [0.95, 0.05]),
                "C4H6N": GOOD_PATTERN,
                "C3H2N2": REJECTED_PATTERN,
            }
        )
        analyzer = IsotopePatternAnalysis(
            decomposer=FakeDecomposer(["C3H2N2", "C5H10", "C4H6N"]), generator=generator
        )
        result = analyzer.deisotope_single(protonated_experiment(), IsotopePattern(GOOD_PATTERN))

        values = [str(c.value) for c in result.candidates]
        scores = [c.score for c in result.candidates]
        self.assertEqual(values, ["C4H6N", "C5H10", "C3H2N2"])
        self.assertTrue(all(a >= b for a, b in zip(scores, scores[1:])))
        self.assertEqual(scores[-1], -np.inf)

    def test_unknown_ionization_searches_ion_modes(self):
        decomposer = FakeDecomposer(["C5H10"])
        generator = FakeGenerator(rejected_ionizations={"[M+Na]+"})
        analyzer = IsotopePatternAnalysis(decomposer=decomposer, generator=generator)
        experiment = Experiment([], PrecursorIonType.unknown_positive())
        result = analyzer.deisotope_single(experiment, IsotopePattern(GOOD_PATTERN))

        modes = known_ion_modes(1)
        self.assertEqual(len(decomposer.calls), len(modes))
        for (mass, _, _), ionization in zip(decomposer.calls, modes):
            self.assertAlmostEqual(mass, 100.0 - ionization.mass_shift, places=9)
        # each mode is simulated with its own ionization
        self.assertEqual([str(ion) for _, ion in generator.calls], [str(ion) for ion in modes])

        values = {c.value for c in result.candidates}
        self.assertEqual(
            values, {MolecularFormula.parse("C5H11"), MolecularFormula.parse("C5H10K")}
        )
        self.assertTrue(all(np.isfinite(c.score) for c in result.candidates))

    def test_unknown_negative_ionization(self):
        decomposer = FakeDecomposer(["C5H10"])
        analyzer = IsotopePatternAnalysis(decomposer=decomposer, generator=FakeGenerator())
        experiment = Experiment([], PrecursorIonType.unknown_negative())
        result = analyzer.deisotope_single(experiment, IsotopePattern(GOOD_PATTERN))
        self.assertEqual(len(decomposer.calls), 2)
        self.assertEqual(
            {str(c.value) for c in result.candidates}, {"C5H9", "C5H10Cl"}
        )

    def test_profile_override(self):
        decomposer = FakeDecomposer(["C5H10"])
        analyzer = IsotopePatternAnalysis(decomposer=decomposer, generator=FakeGenerator())
        analyzer.deisotope_single(
            protonated_experiment(),
            IsotopePattern(GOOD_PATTERN),
            profile=MeasurementProfile(allowed_mass_deviation=Deviation(3)),
        )
        _, deviation, constraints = decomposer.calls[0]
        self.assertEqual(deviation, Deviation(3))
        self.assertIsNotNone(constraints)

    def test_deisotope_untargeted(self):
        spectrum = Spectrum(
            [200.0, 201.0034, 202.0067, 300.0, 301.0034], [1000.0, 120.0, 15.0, 500.0, 60.0]
        )
        analyzer = IsotopePatternAnalysis(
            decomposer=FakeDecomposer(["C5H10"]), generator=FakeGenerator()
        )
        results = analyzer.deisotope(protonated_experiment([spectrum]))
        self.assertEqual([round(r.monoisotopic_mass, 4) for r in results], [200.0, 300.0])
        self.assertTrue(all(r.has_candidates for r in results))

    def test_deisotope_without_spectra(self):
        analyzer = IsotopePatternAnalysis(decomposer=FakeDecomposer([]), generator=FakeGenerator())
        self.assertEqual(analyzer.deisotope(protonated_experiment(), target_mz=200.0), [])


# =============================================================================
# End to end
# =============================================================================


def test_glucose_ranks_first(glucose_spectrum, glucose, protonated):
    analyzer = IsotopePatternAnalysis.default_analyzer()
    experiment = Experiment([glucose_spectrum], protonated, name="glucose")
    patterns = analyzer.deisotope(experiment, target_mz=181.0707)

    assert len(patterns) >= 1
    best = patterns[0].best_candidate
    assert best.value == glucose
    assert best.score == pytest.approx(0.0, abs=1e-6)
    scores = [c.score for c in patterns[0].candidates]
    assert all(a >= b for a, b in zip(scores, scores[1:]))
