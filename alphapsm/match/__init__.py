"""Match records, match collections and their iterators.

Examples
--------
>>> from alphapsm.match import MatchCollection
>>> collection = MatchCollection(parameters=params)
>>> collection.add_matches(spectrum, 2, supply, scorer)
>>> collection.rank(ScoreType.XCORR)
True
"""

from .match import Match

from .collection import (
    MatchCollection,
    merge_match_collections,
)

from .iterator import (
    MatchIterator,
    SpectrumSortedMatchIterator,
)

__all__ = [
    'Match',
    'MatchCollection',
    'merge_match_collections',
    'MatchIterator',
    'SpectrumSortedMatchIterator',
]
