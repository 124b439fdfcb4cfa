"""Ionizations and precursor ion types.

An Ionization adds (or removes) atoms and charges the molecule; it converts
between neutral masses and measured m/z. A PrecursorIonType additionally
carries a neutral adduct and an in-source loss, or is marked unknown when only
the charge of the precursor is known.

Mass conversion:
    shift = atoms.mass - charge * ELECTRON_MASS
    m/z = (neutral + shift) / |charge|
    neutral = m/z * |charge| - shift

Examples
--------
>>> ion = PrecursorIonType.from_string("[M+H]+")
>>> round(ion.neutral_mass_to_precursor_mass(180.0634), 4)
181.0707
>>> [str(i) for i in known_ion_modes(-1)]
['[M-H]-', '[M+Cl]-']
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List

from ..constants import ELECTRON_MASS
from .formula import MolecularFormula

_ION_NAME_PATTERN = re.compile(r"^\[M(?P<terms>[^\]]*)\](?P<charge>\d*)(?P<sign>[+-])$")
_ION_TERM_PATTERN = re.compile(r"([+-])(\d*)([A-Za-z0-9()?]+)")

# Atoms that carry the charge when they appear in an ion name
_POSITIVE_CARRIERS = ("H", "Na", "K")
_NEGATIVE_ADDED_CARRIERS = ("Cl",)
_NEGATIVE_REMOVED_CARRIERS = ("H",)


def _charge_label(charge: int) -> str:
    sign = "+" if charge > 0 else "-"
    return sign if abs(charge) == 1 else f"{abs(charge)}{sign}"


@dataclass(frozen=True)
class Ionization:
    """Charge plus the atoms that are added (positive) or removed (negative)."""

    name: str
    charge: int
    atoms: MolecularFormula = field(default_factory=MolecularFormula.empty)

    def __post_init__(self):
        if self.charge == 0:
            raise ValueError(f"Ionization {self.name!r} must carry a charge")

    @property
    def mass_shift(self) -> float:
        return self.atoms.mass - self.charge * ELECTRON_MASS

    def to_measured(self, neutral_mass):
        """Measured m/z of a neutral molecule (scalar or numpy array)."""
        return (neutral_mass + self.mass_shift) / abs(self.charge)

    def to_neutral(self, mz):
        """Neutral mass of a measured m/z (scalar or numpy array)."""
        return mz * abs(self.charge) - self.mass_shift

    def add_to_mass(self, neutral_mass: float) -> float:
        return neutral_mass + self.mass_shift

    def subtract_from_mass(self, ion_mass: float) -> float:
        return ion_mass - self.mass_shift

    def __str__(self) -> str:
        return self.name


def _build_ionization(charge: int, atoms: MolecularFormula) -> Ionization:
    if atoms.is_empty:
        name = f"[M]{_charge_label(charge)}"
    else:
        terms = []
        for symbol, count in atoms:
            sign = "+" if count > 0 else "-"
            multiplier = "" if abs(count) == 1 else str(abs(count))
            terms.append(f"{sign}{multiplier}{symbol}")
        name = f"[M{''.join(terms)}]{_charge_label(charge)}"
    return Ionization(name, charge, atoms)


PROTONATION = _build_ionization(1, MolecularFormula.parse("H"))
DEPROTONATION = _build_ionization(-1, -MolecularFormula.parse("H"))
SODIUM_ADDUCT = _build_ionization(1, MolecularFormula.parse("Na"))
POTASSIUM_ADDUCT = _build_ionization(1, MolecularFormula.parse("K"))
CHLORIDE_ADDUCT = _build_ionization(-1, MolecularFormula.parse("Cl"))

KNOWN_POSITIVE_IONIZATIONS = (PROTONATION, SODIUM_ADDUCT, POTASSIUM_ADDUCT)
KNOWN_NEGATIVE_IONIZATIONS = (DEPROTONATION, CHLORIDE_ADDUCT)


def known_ion_modes(charge: int) -> List[Ionization]:
    """Ionizations searched when only the charge of a precursor is known.

    Single charges map to the common adducts of their polarity. Higher
    charges are covered by (de)protonation with |charge| protons.
    """
    if charge == 0:
        raise ValueError("Charge must be non-zero")
    if charge == 1:
        return list(KNOWN_POSITIVE_IONIZATIONS)
    if charge == -1:
        return list(KNOWN_NEGATIVE_IONIZATIONS)
    hydrogens = MolecularFormula.parse("H") * abs(charge)
    return [_build_ionization(charge, hydrogens if charge > 0 else -hydrogens)]


def ionization_by_name(name: str) -> Ionization:
    """Ionization of an ion name such as ``"[M+Na]+"``."""
    return PrecursorIonType.from_string(name).ionization


@dataclass(frozen=True)
class PrecursorIonType:
    """Ionization together with a neutral adduct and in-source loss.

    ``neutral molecule + adduct - in_source_fragmentation`` is the measured
    neutral molecule, which the ionization then charges.
    """

    ionization: Ionization
    adduct: MolecularFormula = field(default_factory=MolecularFormula.empty)
    in_source_fragmentation: MolecularFormula = field(default_factory=MolecularFormula.empty)
    unknown: bool = False
    name: str = ""

    def __post_init__(self):
        if not self.name:
            object.__setattr__(self, "name", self._default_name())

    def _default_name(self) -> str:
        if self.unknown:
            return f"[M+?]{_charge_label(self.charge)}"
        if self.adduct.is_empty and self.in_source_fragmentation.is_empty:
            return self.ionization.name
        body = self.ionization.name[2:self.ionization.name.index("]")]
        if not self.adduct.is_empty:
            body += f"+{self.adduct.format_by_hill()}"
        if not self.in_source_fragmentation.is_empty:
            body += f"-{self.in_source_fragmentation.format_by_hill()}"
        return f"[M{body}]{_charge_label(self.charge)}"

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def for_ionization(cls, ionization: Ionization) -> "PrecursorIonType":
        return cls(ionization)

    @classmethod
    def unknown_with_charge(cls, charge: int) -> "PrecursorIonType":
        """Unknown ion type; mass conversions fall back to (de)protonation."""
        if charge == 0:
            raise ValueError("Charge must be non-zero")
        hydrogens = MolecularFormula.parse("H") * abs(charge)
        ionization = _build_ionization(charge, hydrogens if charge > 0 else -hydrogens)
        return cls(ionization, unknown=True)

    @classmethod
    def unknown_positive(cls) -> "PrecursorIonType":
        return cls.unknown_with_charge(1)

    @classmethod
    def unknown_negative(cls) -> "PrecursorIonType":
        return cls.unknown_with_charge(-1)

    @classmethod
    def from_string(cls, name: str) -> "PrecursorIonType":
        """Parse ion names such as ``[M+H]+``, ``[M+NH4]+``, ``[M-H2O+H]+``,
        ``[M+2H]2+`` or ``[M+?]-``.

        Raises
        ------
        ValueError
            If the name is malformed or contains unknown elements.
        """
        compact = "".join(name.split())
        match = _ION_NAME_PATTERN.match(compact)
        if match is None:
            raise ValueError(f"Malformed ion name: {name!r}")
        magnitude = int(match.group("charge")) if match.group("charge") else 1
        if magnitude == 0:
            raise ValueError(f"Ion name {name!r} has zero charge")
        charge = magnitude if match.group("sign") == "+" else -magnitude

        terms_text = match.group("terms")
        terms = _ION_TERM_PATTERN.findall(terms_text)
        if "".join(sign + mult + body for sign, mult, body in terms) != terms_text:
            raise ValueError(f"Malformed adduct in ion name: {name!r}")
        if any("?" in body for _, _, body in terms):
            if len(terms) != 1 or terms[0] != ("+", "", "?"):
                raise ValueError(f"Malformed unknown ion name: {name!r}")
            return cls.unknown_with_charge(charge)

        ionization_atoms = None
        adduct = MolecularFormula.empty()
        loss = MolecularFormula.empty()
        for sign, multiplier, body in terms:
            formula = MolecularFormula.parse(body) * (int(multiplier) if multiplier else 1)
            if ionization_atoms is None and _is_charge_carrier(sign, body, charge):
                ionization_atoms = formula if sign == "+" else -formula
            elif sign == "+":
                adduct = adduct + formula
            else:
                loss = loss + formula

        if ionization_atoms is None:
            # ammonium-like adducts: the charge sits on protons inside the adduct
            hydrogens = MolecularFormula.parse("H") * abs(charge)
            if charge > 0 and adduct.number_of("H") >= abs(charge):
                ionization_atoms = hydrogens
                adduct = adduct - hydrogens
            else:
                ionization_atoms = MolecularFormula.empty()

        return cls(
            _build_ionization(charge, ionization_atoms),
            adduct=adduct,
            in_source_fragmentation=loss,
            name=compact,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def charge(self) -> int:
        return self.ionization.charge

    @property
    def is_ionization_unknown(self) -> bool:
        return self.unknown

    @property
    def modification_mass(self) -> float:
        return self.adduct.mass - self.in_source_fragmentation.mass

    # ------------------------------------------------------------------
    # Conversions
    # ------------------------------------------------------------------

    def neutral_molecule_to_measured_neutral_molecule(
        self, formula: MolecularFormula
    ) -> MolecularFormula:
        return formula + self.adduct - self.in_source_fragmentation

    def measured_neutral_molecule_to_neutral_molecule(
        self, formula: MolecularFormula
    ) -> MolecularFormula:
        return formula - self.adduct + self.in_source_fragmentation

    def neutral_mass_to_precursor_mass(self, neutral_mass: float) -> float:
        return self.ionization.to_measured(neutral_mass + self.modification_mass)

    def precursor_mass_to_neutral_mass(self, precursor_mass: float) -> float:
        return self.ionization.to_neutral(precursor_mass) - self.modification_mass

    def __str__(self) -> str:
        return self.name


def _is_charge_carrier(sign: str, body: str, charge: int) -> bool:
    if charge > 0:
        return sign == "+" and body in _POSITIVE_CARRIERS
    if sign == "+":
        return body in _NEGATIVE_ADDED_CARRIERS
    return body in _NEGATIVE_REMOVED_CARRIERS
