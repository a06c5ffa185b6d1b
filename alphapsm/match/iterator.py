"""Locked, ordered traversal of a match collection.

Opening an iterator locks its collection: ``sort`` then refuses and
``add``/``merge``/``truncate`` raise until the iterator is closed. Use it as
a context manager so the lock is released on every exit path.

Examples
--------
>>> with collection.iter_matches(ScoreType.XCORR) as matches:
...     for match in matches:
...         if match.get_rank(ScoreType.XCORR) > 5:
...             break
>>> collection.iterator_locked
False
"""

from __future__ import annotations

from typing import Iterator

from ..exceptions import IteratorLockedError, NotScoredError, PreconditionError
from ..scoring.score_types import ScoreType, is_rank_equivalent, score_type_to_string
from .match import Match


class MatchIterator:
    """Best-first traversal of a collection for one score type.

    Parameters
    ----------
    collection : MatchCollection
        Collection to traverse
    score_type : ScoreType
        Type the collection must be scored for
    sort_match : bool
        Sort by ``score_type`` first unless the current order is already
        rank-equivalent

    Raises
    ------
    IteratorLockedError
        If another iterator is open on the collection
    NotScoredError
        If the collection is not scored for ``score_type``
    """

    def __init__(self, collection, score_type: ScoreType, sort_match: bool = True):
        if collection is None:
            raise PreconditionError("Null match collection passed to match iterator.")
        if collection.iterator_locked:
            raise IteratorLockedError()
        if not collection.is_scored(score_type):
            raise NotScoredError(f"Requested score type: {score_type_to_string(score_type)}.")

        self._collection = None
        self.score_type = ScoreType(score_type)
        self._prepare(collection, sort_match)

        self._matches = collection._matches
        self._idx = 0
        self._total = len(collection)
        collection._lock()
        self._collection = collection

    def _prepare(self, collection, sort_match: bool) -> None:
        if sort_match and not is_rank_equivalent(collection.last_sorted, self.score_type):
            if not collection.sort(self.score_type):
                raise PreconditionError("Failed to sort match collection.")

    @property
    def collection(self):
        return self._collection

    def has_next(self) -> bool:
        return self._collection is not None and self._idx < self._total

    def next(self) -> Match:
        if not self.has_next():
            raise StopIteration
        match = self._matches[self._idx]
        self._idx += 1
        return match

    def __iter__(self) -> Iterator[Match]:
        return self

    def __next__(self) -> Match:
        return self.next()

    def close(self) -> None:
        """Release the collection lock (idempotent)."""
        collection = getattr(self, "_collection", None)
        if collection is not None:
            collection._unlock()
            self._collection = None

    def __enter__(self) -> 'MatchIterator':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __del__(self):
        self.close()


class SpectrumSortedMatchIterator(MatchIterator):
    """Traversal grouped by spectrum (scan, then charge), best-first within.

    Used on collections merged from many spectra.
    """

    def __init__(self, collection, score_type: ScoreType):
        super().__init__(collection, score_type, sort_match=True)

    def _prepare(self, collection, sort_match: bool) -> None:
        if not collection.spectrum_sort(self.score_type):
            raise PreconditionError("Failed to sort match collection by spectrum.")
