"""Tests for mass decomposition and the decomposer cache.

This module tests:
- Extended residue table construction
- Completeness against brute-force enumeration
- Element bounds and alphabet restrictions
- Compute-once caching under concurrent access
"""

import threading
import time
import unittest
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from isopatfast.chem.elements import get_periodic_table
from isopatfast.chem.formula import ChemicalAlphabet, FormulaConstraints, MolecularFormula
from isopatfast.decomposition import cache as cache_module
from isopatfast.decomposition.cache import DecomposerCache
from isopatfast.decomposition.decomposer import (
    INFINITE_MASS,
    MassDecomposer,
    build_extended_residue_table,
)
from isopatfast.ms.deviation import Deviation

GLUCOSE_MASS = 180.06338810418


def brute_force(mass, deviation, limits):
    """All formulas within deviation of mass; limits maps element -> max count.

    Hydrogen is solved for directly, all other elements are enumerated.
    """
    table = get_periodic_table()
    tolerance = deviation.absolute_for(mass)
    symbols = [s for s in limits if s != "H"]
    element_masses = [table.mass(s) for s in symbols]
    h_mass = table.mass("H")
    results = set()

    def walk(index, counts, partial):
        if partial > mass + tolerance:
            return
        if index == len(symbols):
            h_estimate = int(round((mass - partial) / h_mass))
            for h in (h_estimate - 1, h_estimate, h_estimate + 1):
                if 0 <= h <= limits["H"] and abs(partial + h * h_mass - mass) <= tolerance:
                    formula_counts = dict(zip(symbols, counts))
                    formula_counts["H"] = h
                    results.add(MolecularFormula.from_counts(formula_counts))
            return
        for n in range(limits[symbols[index]] + 1):
            walk(index + 1, counts + [n], partial + n * element_masses[index])

    walk(0, [], 0.0)
    return results


# =============================================================================
# Extended residue table
# =============================================================================


def test_residue_table_small_weights():
    """Weights 2 and 3: odd residues start at 3."""
    ert = build_extended_residue_table(np.array([2, 3], dtype=np.int64))
    assert ert[0, 0] == 0
    assert ert[0, 1] == INFINITE_MASS
    assert ert[1, 0] == 0
    assert ert[1, 1] == 3


def test_residue_table_entries_are_minimal():
    weights = np.array([5, 7, 11], dtype=np.int64)
    ert = build_extended_residue_table(weights)
    for r in range(5):
        # smallest m = 5a + 7b + 11c with m % 5 == r
        best = min(
            5 * a + 7 * b + 11 * c
            for a in range(6) for b in range(6) for c in range(6)
            if (5 * a + 7 * b + 11 * c) % 5 == r
        )
        assert ert[2, r] == best


# =============================================================================
# Decomposition
# =============================================================================


class TestMassDecomposer(unittest.TestCase):
    """Test decomposition against brute force."""

    @classmethod
    def setUpClass(cls):
        cls.cho = MassDecomposer(ChemicalAlphabet.parse("CHO"))
        cls.chnops = MassDecomposer(ChemicalAlphabet.parse("CHNOPS"))

    def test_glucose_found(self):
        formulas = self.cho.decompose_to_formulas(
            GLUCOSE_MASS, Deviation(5), FormulaConstraints.parse("CHO")
        )
        self.assertIn(MolecularFormula.parse("C6H12O6"), formulas)

    def test_all_results_within_tolerance(self):
        deviation = Deviation(20)
        formulas = self.chnops.decompose_to_formulas(
            250.1, deviation, FormulaConstraints.parse("CHNOPS")
        )
        self.assertGreater(len(formulas), 0)
        for formula in formulas:
            self.assertLessEqual(abs(formula.mass - 250.1), deviation.absolute_for(250.1) + 1e-9)
        self.assertEqual(len(set(formulas)), len(formulas))

    def test_matches_brute_force_cho(self):
        deviation = Deviation(20)
        for mass in (GLUCOSE_MASS, 122.0368, 301.1410):
            expected = brute_force(mass, deviation, {"C": 30, "H": 1000, "O": 20})
            found = set(
                self.cho.decompose_to_formulas(mass, deviation, FormulaConstraints.parse("CHO"))
            )
            self.assertEqual(found, expected, msg=f"mass {mass}")

    def test_matches_brute_force_with_bounds(self):
        deviation = Deviation(10)
        limits = {"C": 30, "H": 1000, "N": 4, "O": 8, "P": 1, "S": 2}
        constraints = FormulaConstraints.parse("CHNOPS", {"N": 4, "O": 8, "P": 1, "S": 2})
        for mass in (300.1, 287.0569):
            expected = brute_force(mass, deviation, limits)
            found = set(self.chnops.decompose_to_formulas(mass, deviation, constraints))
            self.assertEqual(found, expected, msg=f"mass {mass}")

    def test_upper_bounds_respected(self):
        constraints = FormulaConstraints.parse("CHO", {"O": 5})
        formulas = self.cho.decompose_to_formulas(GLUCOSE_MASS, Deviation(5), constraints)
        self.assertNotIn(MolecularFormula.parse("C6H12O6"), formulas)
        self.assertTrue(all(f.number_of("O") <= 5 for f in formulas))

    def test_constraint_alphabet_subset(self):
        """Elements missing from the constraint alphabet are not used."""
        constraints = FormulaConstraints.parse("CHO")
        formulas = self.chnops.decompose_to_formulas(GLUCOSE_MASS, Deviation(20), constraints)
        self.assertIn(MolecularFormula.parse("C6H12O6"), formulas)
        for formula in formulas:
            self.assertEqual(formula.number_of("N"), 0)
            self.assertEqual(formula.number_of("S"), 0)

    def test_foreign_constraint_element_rejected(self):
        with self.assertRaises(ValueError):
            self.cho.decompose_to_formulas(
                GLUCOSE_MASS, Deviation(5), FormulaConstraints.parse("CHNO")
            )

    def test_no_decomposition(self):
        self.assertEqual(self.cho.decompose_to_formulas(0.5, Deviation(5)), [])
        self.assertEqual(self.cho.decompose_to_formulas(-10.0, Deviation(5)), [])

    def test_deterministic(self):
        first = self.chnops.decompose_to_formulas(300.1, Deviation(10))
        second = self.chnops.decompose_to_formulas(300.1, Deviation(10))
        self.assertEqual(first, second)

    def test_count_matrix_matches_alphabet_order(self):
        compositions = self.cho.decompose(GLUCOSE_MASS, Deviation(1))
        self.assertEqual(compositions.shape[1], 3)
        # alphabet order is H, C, O
        self.assertIn([12, 6, 6], compositions.tolist())

    def test_invalid_precision(self):
        with self.assertRaises(ValueError):
            MassDecomposer(ChemicalAlphabet.parse("CHO"), precision=0.0)


# =============================================================================
# Cache
# =============================================================================


def test_cache_returns_same_decomposer():
    cache = DecomposerCache()
    alphabet = ChemicalAlphabet.parse("CHO")
    first = cache.get_decomposer(alphabet)
    assert cache.get_decomposer(ChemicalAlphabet.parse("OHC")) is first
    assert len(cache) == 1
    assert alphabet in cache


def test_cache_separates_alphabets():
    cache = DecomposerCache()
    a = cache.get_decomposer(ChemicalAlphabet.parse("CHO"))
    b = cache.get_decomposer(ChemicalAlphabet.parse("CHNO"))
    assert a is not b
    assert len(cache) == 2
    cache.clear()
    assert len(cache) == 0


def test_cache_decompose_to_formulas():
    cache = DecomposerCache()
    formulas = cache.decompose_to_formulas(
        GLUCOSE_MASS, Deviation(5), FormulaConstraints.parse("CHO")
    )
    assert MolecularFormula.parse("C6H12O6") in formulas


def test_cache_builds_once_under_concurrency(monkeypatch):
    """Concurrent misses on the same alphabet construct one decomposer."""
    constructed = []
    lock = threading.Lock()

    class SlowDecomposer:
        def __init__(self, alphabet, precision):
            time.sleep(0.05)
            with lock:
                constructed.append(alphabet)

    monkeypatch.setattr(cache_module, "MassDecomposer", SlowDecomposer)
    cache = DecomposerCache()
    alphabet = ChemicalAlphabet.parse("CHNOPS")

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: cache.get_decomposer(alphabet), range(32)))

    assert len(constructed) == 1
    assert all(result is results[0] for result in results)
