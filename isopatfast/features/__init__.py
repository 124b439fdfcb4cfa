"""MS1 isotope pattern extraction.

This module provides:
- Untargeted extraction of all isotope clusters of a spectrum
- Targeted extraction starting at a precursor m/z
- IsotopePattern and Scored result containers
"""

from .isotope_pattern import (
    IsotopePattern,
    Scored,
    sort_by_score,
)

from .extraction import (
    ExtractAll,
    extract_isotope_clusters,
)

__all__ = [
    # Results
    'IsotopePattern',
    'Scored',
    'sort_by_score',

    # Extraction
    'ExtractAll',
    'extract_isotope_clusters',
]
