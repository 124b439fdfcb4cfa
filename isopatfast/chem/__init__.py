"""Chemistry: elements, molecular formulas and ionization.

This module provides:
- PeriodicTable over the isotope masses and abundances of molmass
- MolecularFormula parsing, arithmetic and Hill formatting
- ChemicalAlphabet and FormulaConstraints for decomposition
- Ionization and PrecursorIonType mass conversions
"""

from .elements import (
    Isotopes,
    PeriodicTable,
    get_periodic_table,
    natural_isotope_table,
)

from .formula import (
    ChemicalAlphabet,
    FormulaConstraints,
    MolecularFormula,
    hill_order,
)

from .ionization import (
    Ionization,
    PrecursorIonType,
    known_ion_modes,
    ionization_by_name,
)

__all__ = [
    # Elements
    'Isotopes',
    'PeriodicTable',
    'get_periodic_table',
    'natural_isotope_table',

    # Formulas
    'ChemicalAlphabet',
    'FormulaConstraints',
    'MolecularFormula',
    'hill_order',

    # Ionization
    'Ionization',
    'PrecursorIonType',
    'known_ion_modes',
    'ionization_by_name',
]
