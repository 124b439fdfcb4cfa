"""Molecular formulas, chemical alphabets and formula constraints.

MolecularFormula is an immutable element -> count mapping kept in Hill order
(C first, H second, remaining elements alphabetically; purely alphabetical if
the formula has no carbon). Counts may be negative so that ion atoms such as
a removed proton can be expressed as formulas and added to candidates.

Examples
--------
>>> MolecularFormula.parse("C3H6(CH2)8C3H6").format_by_hill()
'C14H28'
>>> (MolecularFormula.parse("C6H12O6") + MolecularFormula.parse("Na")).mass
203.0532...
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple

from molmass import Formula, FormulaError

from .elements import get_periodic_table

_ELEMENT_PATTERN = re.compile(r"[A-Z][a-z]?")
_FORMULA_TOKENS = re.compile(r"(?:[A-Z][a-z]?|\d+|[()])+")


def hill_order(symbols: Iterable[str]) -> Tuple[str, ...]:
    """Sort element symbols in Hill order."""
    symbols = set(symbols)
    if "C" in symbols:
        head = ["C"] + (["H"] if "H" in symbols else [])
        rest = sorted(symbols - {"C", "H"})
        return tuple(head + rest)
    return tuple(sorted(symbols))


@dataclass(frozen=True)
class MolecularFormula:
    """Immutable element -> count mapping.

    Build instances with ``from_counts`` or ``parse``; the constructor
    canonicalizes whatever pairs it receives (zero counts dropped, Hill
    order, unknown elements rejected).
    """

    counts: Tuple[Tuple[str, int], ...] = ()

    def __post_init__(self):
        merged: Dict[str, int] = {}
        table = get_periodic_table()
        for symbol, count in self.counts:
            if symbol not in table:
                raise ValueError(f"Unknown element: {symbol!r}")
            merged[symbol] = merged.get(symbol, 0) + int(count)
        canonical = tuple(
            (symbol, merged[symbol]) for symbol in hill_order(merged) if merged[symbol] != 0
        )
        object.__setattr__(self, "counts", canonical)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_counts(cls, counts: Mapping[str, int]) -> "MolecularFormula":
        return cls(tuple(counts.items()))

    @classmethod
    def empty(cls) -> "MolecularFormula":
        return cls(())

    @classmethod
    def parse(cls, text: str) -> "MolecularFormula":
        """Parse a formula string with ``molmass.Formula``.

        Whitespace is ignored. Groups may be nested and carry a multiplier,
        e.g. ``C3H6(CH2(COH)2)8C3H6``. Charges and isotope labels are not
        accepted.

        Raises
        ------
        ValueError
            On unknown elements, unbalanced parentheses or stray characters.
        """
        text = "".join(text.split())
        if not text:
            return cls.empty()
        if _FORMULA_TOKENS.fullmatch(text) is None:
            raise ValueError(f"Unexpected character in formula {text!r}")
        try:
            composition = Formula(text).composition()
        except FormulaError as e:
            raise ValueError(f"Invalid formula {text!r}: {e}") from e
        return cls.from_counts({symbol: int(item.count) for symbol, item in composition.items()})

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def number_of(self, symbol: str) -> int:
        for element, count in self.counts:
            if element == symbol:
                return count
        return 0

    def as_dict(self) -> Dict[str, int]:
        return dict(self.counts)

    def elements(self) -> Tuple[str, ...]:
        return tuple(symbol for symbol, _ in self.counts)

    def __iter__(self) -> Iterator[Tuple[str, int]]:
        return iter(self.counts)

    def __len__(self) -> int:
        return len(self.counts)

    @property
    def is_empty(self) -> bool:
        return not self.counts

    @property
    def has_negative_counts(self) -> bool:
        return any(count < 0 for _, count in self.counts)

    @property
    def mass(self) -> float:
        """Monoisotopic mass (lightest isotope of every element)."""
        table = get_periodic_table()
        return sum(count * table.mass(symbol) for symbol, count in self.counts)

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def __add__(self, other: "MolecularFormula") -> "MolecularFormula":
        if not isinstance(other, MolecularFormula):
            return NotImplemented
        return MolecularFormula(self.counts + other.counts)

    def __sub__(self, other: "MolecularFormula") -> "MolecularFormula":
        if not isinstance(other, MolecularFormula):
            return NotImplemented
        return MolecularFormula(self.counts + (-other).counts)

    def __neg__(self) -> "MolecularFormula":
        return MolecularFormula(tuple((symbol, -count) for symbol, count in self.counts))

    def __mul__(self, factor: int) -> "MolecularFormula":
        if not isinstance(factor, int):
            return NotImplemented
        return MolecularFormula(tuple((symbol, count * factor) for symbol, count in self.counts))

    __rmul__ = __mul__

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    def format_by_hill(self) -> str:
        parts = []
        for symbol, count in self.counts:
            parts.append(symbol if count == 1 else f"{symbol}{count}")
        return "".join(parts)

    def __str__(self) -> str:
        return self.format_by_hill()

    def __repr__(self) -> str:
        return f"MolecularFormula({self.format_by_hill()!r})"


@dataclass(frozen=True)
class ChemicalAlphabet:
    """Ordered set of elements a decomposition may use.

    Symbols are stored sorted by ascending monoisotopic mass, so two
    alphabets with the same elements compare (and hash) equal.
    """

    symbols: Tuple[str, ...]

    def __post_init__(self):
        table = get_periodic_table()
        symbols = tuple(self.symbols)
        if not symbols:
            raise ValueError("Chemical alphabet must contain at least one element")
        if len(set(symbols)) != len(symbols):
            raise ValueError(f"Duplicate elements in alphabet: {symbols}")
        for symbol in symbols:
            if symbol not in table:
                raise ValueError(f"Unknown element: {symbol!r}")
        object.__setattr__(self, "symbols", tuple(sorted(symbols, key=table.mass)))

    @classmethod
    def parse(cls, text: str) -> "ChemicalAlphabet":
        """Alphabet from a string such as ``"CHNOPSClNa"``."""
        compact = "".join(text.split())
        symbols = _ELEMENT_PATTERN.findall(compact)
        if "".join(symbols) != compact:
            raise ValueError(f"Malformed alphabet string: {text!r}")
        return cls(tuple(symbols))

    def __contains__(self, symbol: str) -> bool:
        return symbol in self.symbols

    def __iter__(self) -> Iterator[str]:
        return iter(self.symbols)

    def __len__(self) -> int:
        return len(self.symbols)

    def __str__(self) -> str:
        return "".join(hill_order(self.symbols))


@dataclass(frozen=True)
class FormulaConstraints:
    """Chemical alphabet plus optional per-element upper bounds.

    Parameters
    ----------
    alphabet : ChemicalAlphabet
        Allowed elements
    upper_bounds : mapping, optional
        Element -> maximal count. Elements without a bound are limited by
        mass only.
    """

    alphabet: ChemicalAlphabet
    upper_bounds: Tuple[Tuple[str, int], ...] = ()

    def __post_init__(self):
        bounds = self.upper_bounds
        if isinstance(bounds, Mapping):
            bounds = bounds.items()
        canonical = []
        for symbol, bound in sorted(bounds):
            if symbol not in self.alphabet:
                raise ValueError(f"Upper bound for element {symbol!r} outside the alphabet")
            if bound < 0:
                raise ValueError(f"Upper bound for {symbol} must be non-negative, got {bound}")
            canonical.append((symbol, int(bound)))
        object.__setattr__(self, "upper_bounds", tuple(canonical))

    @classmethod
    def parse(
        cls, alphabet: str, upper_bounds: Optional[Mapping[str, int]] = None
    ) -> "FormulaConstraints":
        return cls(ChemicalAlphabet.parse(alphabet), tuple((upper_bounds or {}).items()))

    def upper_bound(self, symbol: str) -> Optional[int]:
        for element, bound in self.upper_bounds:
            if element == symbol:
                return bound
        return None

    def is_satisfied(self, formula: MolecularFormula) -> bool:
        for symbol, count in formula:
            if symbol not in self.alphabet or count < 0:
                return False
            bound = self.upper_bound(symbol)
            if bound is not None and count > bound:
                return False
        return True
