"""Mass decomposition into molecular formulas.

This module provides:
- MassDecomposer: round-robin extended residue table decomposition
- DecomposerCache: one decomposer per chemical alphabet, built once
"""

from .decomposer import (
    MassDecomposer,
    build_extended_residue_table,
    decompose_integer_range,
)

from .cache import (
    DecomposerCache,
    get_decomposer_cache,
)

__all__ = [
    'MassDecomposer',
    'build_extended_residue_table',
    'decompose_integer_range',
    'DecomposerCache',
    'get_decomposer_cache',
]
