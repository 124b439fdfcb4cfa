"""Shared decomposers, one per chemical alphabet.

Building a residue table is the expensive part of decomposition, so engines
are built once per alphabet and reused by every analysis. Lookups of already
built engines are lock-free; a miss takes the lock, checks again and builds
the engine, so concurrent callers never build the same alphabet twice.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List

from ..chem.formula import ChemicalAlphabet, FormulaConstraints, MolecularFormula
from ..constants import DEFAULT_DECOMPOSER_PRECISION
from ..ms.deviation import Deviation
from .decomposer import MassDecomposer

logger = logging.getLogger(__name__)


class DecomposerCache:
    """Read-through cache of MassDecomposer instances keyed by alphabet.

    Parameters
    ----------
    precision : float
        Discretization step passed to every decomposer (default: 1e-4 Da)
    """

    def __init__(self, precision: float = DEFAULT_DECOMPOSER_PRECISION):
        self.precision = precision
        self._decomposers: Dict[ChemicalAlphabet, MassDecomposer] = {}
        self._lock = threading.Lock()

    def get_decomposer(self, alphabet: ChemicalAlphabet) -> MassDecomposer:
        decomposer = self._decomposers.get(alphabet)
        if decomposer is not None:
            return decomposer
        with self._lock:
            decomposer = self._decomposers.get(alphabet)
            if decomposer is None:
                logger.info(f"Creating decomposer for alphabet {alphabet}")
                decomposer = MassDecomposer(alphabet, self.precision)
                self._decomposers[alphabet] = decomposer
        return decomposer

    def decompose_to_formulas(
        self,
        mass: float,
        deviation: Deviation,
        constraints: FormulaConstraints,
    ) -> List[MolecularFormula]:
        """Formulas within ``deviation`` of ``mass`` under ``constraints``."""
        return self.get_decomposer(constraints.alphabet).decompose_to_formulas(
            mass, deviation, constraints
        )

    def __len__(self) -> int:
        return len(self._decomposers)

    def __contains__(self, alphabet: ChemicalAlphabet) -> bool:
        return alphabet in self._decomposers

    def clear(self):
        with self._lock:
            self._decomposers = {}


_shared_cache = DecomposerCache()


def get_decomposer_cache() -> DecomposerCache:
    """Process-wide cache used by analyzers that are not given their own."""
    return _shared_cache
