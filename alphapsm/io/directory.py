"""Iterate over the ``.csm`` files of a search output directory.

A directory holds one target file and up to three decoy sets::

    run1.target.csm
    run1.decoy.csm      (or run1.decoy-1.csm)
    run1.decoy-2.csm
    run1.decoy-3.csm

``MatchCollectionIterator`` yields one post-process collection per set:
the target set first, then decoy sets 1 to ``decoy_count``.

Examples
--------
>>> with MatchCollectionIterator("search-output", database, params) as sets:
...     for collection in sets:
...         print(collection.is_decoy, collection.match_total)
False 1204
True 1187
"""

import logging
from pathlib import Path
from typing import Iterator, List, Optional, Union

from ..config import SearchParameters
from ..exceptions import PreconditionError
from ..match.collection import MatchCollection
from .csm import TARGET_SUFFIX, new_match_collection_from_file

logger = logging.getLogger(__name__)

SET_TARGET = 0
MAX_DECOY_SETS = 3


def classify_csm_file(name: str) -> Optional[int]:
    """Set index of a ``.csm`` file name: 0 for target, 1-3 for decoys.

    Returns None for names that are not ``.csm`` files.

    Examples
    --------
    >>> classify_csm_file("run1.decoy.csm"), classify_csm_file("run1.decoy-3.csm")
    (1, 3)
    >>> classify_csm_file("run1.target.csm"), classify_csm_file("notes.txt")
    (0, None)
    """
    if not name.endswith(".csm"):
        return None
    if name.endswith("decoy-1.csm") or name.endswith("decoy.csm"):
        return 1
    if name.endswith("decoy-2.csm"):
        return 2
    if name.endswith("decoy-3.csm"):
        return 3
    return SET_TARGET


def _matches_set(name: str, set_idx: int) -> bool:
    if set_idx == SET_TARGET:
        return name.endswith(TARGET_SUFFIX)
    if set_idx == 1 and name.endswith("decoy.csm"):
        return True
    return name.endswith(f".decoy-{set_idx}.csm")


class MatchCollectionIterator:
    """One post-process collection per target/decoy set of a directory.

    Parameters
    ----------
    directory : str or Path
        Search output directory
    database : ProteinDatabase
        Database the search ran against
    parameters : SearchParameters, optional
        Run parameters; the modification table must match the files

    Raises
    ------
    PreconditionError
        If the directory does not exist or holds no target ``.csm`` file
    """

    def __init__(
        self,
        directory: Union[str, Path],
        database,
        parameters: Optional[SearchParameters] = None,
    ):
        self.directory = Path(directory)
        if not self.directory.is_dir():
            raise PreconditionError(f"Failed to open directory {self.directory} for reading.")

        self.database = database
        self.parameters = parameters if parameters is not None else SearchParameters()

        self._files: List[str] = sorted(
            entry.name for entry in self.directory.iterdir() if entry.is_file()
        )
        found_target = False
        highest_decoy = 0
        for name in self._files:
            set_idx = classify_csm_file(name)
            if set_idx is None:
                continue
            if set_idx == SET_TARGET:
                found_target = True
            else:
                highest_decoy = max(highest_decoy, set_idx)

        if not found_target:
            raise PreconditionError(f"No target file in directory '{self.directory}'.")

        self.decoy_count = highest_decoy
        self.number_collections = 1 + highest_decoy
        self._collection_idx = 0
        self._closed = False
        logger.debug(
            f"Found target file and {self.decoy_count} decoy sets in {self.directory}"
        )

    def _find_file(self, set_idx: int) -> Path:
        for name in self._files:
            if name.endswith(".csm") and _matches_set(name, set_idx):
                return self.directory / name
        suffix = TARGET_SUFFIX if set_idx == SET_TARGET else f".decoy-{set_idx}.csm"
        raise PreconditionError(f"Could not find file ending in '{suffix}'.")

    def has_next(self) -> bool:
        return not self._closed and self._collection_idx < self.number_collections

    def next(self) -> MatchCollection:
        """Parse and return the next set.

        Raises
        ------
        StopIteration
            When every set has been returned
        """
        if not self.has_next():
            raise StopIteration
        set_idx = self._collection_idx
        self._collection_idx += 1
        path = self._find_file(set_idx)
        return new_match_collection_from_file(
            path, self.database, self.parameters, is_decoy=set_idx != SET_TARGET
        )

    def __iter__(self) -> Iterator[MatchCollection]:
        return self

    def __next__(self) -> MatchCollection:
        return self.next()

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> 'MatchCollectionIterator':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
