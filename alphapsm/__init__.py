"""alphapsm - peptide-spectrum match collections for tandem MS search.

Collects, ranks and truncates peptide-spectrum matches per spectrum,
calibrates XCorr scores with a Weibull fit, estimates decoy and
Benjamini-Hochberg q-values, and persists matches in the binary ``.csm``
format between the search and analysis phases.
"""

__version__ = "0.1.0"

from alphapsm import database
from alphapsm import scoring
from alphapsm import match
from alphapsm import io

from alphapsm.config import SearchParameters
from alphapsm.match import MatchCollection, MatchIterator
from alphapsm.scoring import ScoreType

__all__ = [
    "database",
    "scoring",
    "match",
    "io",
    "SearchParameters",
    "MatchCollection",
    "MatchIterator",
    "ScoreType",
]
