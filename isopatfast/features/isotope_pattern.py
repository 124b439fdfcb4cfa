"""Isotope patterns and scored candidates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Iterable, List, Optional, TypeVar

from ..ms.spectrum import Spectrum

T = TypeVar("T")


@dataclass(frozen=True)
class Scored(Generic[T]):
    """A value with its score (higher is better)."""
    value: T
    score: float


def sort_by_score(candidates: Iterable[Scored]) -> List[Scored]:
    """Candidates by descending score; equal scores keep their input order."""
    return sorted(candidates, key=lambda candidate: candidate.score, reverse=True)


class IsotopePattern:
    """Mass-ordered peak cluster of one isotope pattern.

    Created without candidates by extraction; the analyzer returns a new
    pattern carrying the ranked formula candidates.

    Parameters
    ----------
    pattern : Spectrum
        Isotope peaks; sorted by mass if necessary
    candidates : list of Scored, optional
        Ranked molecular formula candidates
    """

    __slots__ = ("_pattern", "_candidates")

    def __init__(self, pattern: Spectrum, candidates: Optional[List[Scored]] = None):
        if len(pattern) == 0:
            raise ValueError("Isotope pattern needs at least one peak")
        if not pattern.is_mass_ordered:
            pattern = pattern.sorted_by_mass()
        self._pattern = pattern
        self._candidates = candidates

    @property
    def pattern(self) -> Spectrum:
        return self._pattern

    @property
    def candidates(self) -> Optional[List[Scored]]:
        return self._candidates

    @property
    def has_candidates(self) -> bool:
        return self._candidates is not None

    @property
    def monoisotopic_mass(self) -> float:
        return float(self._pattern.mz[0])

    @property
    def best_candidate(self) -> Optional[Scored]:
        if not self._candidates:
            return None
        return self._candidates[0]

    def with_candidates(self, candidates: List[Scored]) -> "IsotopePattern":
        return IsotopePattern(self._pattern, candidates)

    def __len__(self) -> int:
        return len(self._pattern)

    def __repr__(self) -> str:
        n_candidates = "none" if self._candidates is None else len(self._candidates)
        return (
            f"IsotopePattern(mono={self.monoisotopic_mass:.4f}, "
            f"peaks={len(self)}, candidates={n_candidates})"
        )
