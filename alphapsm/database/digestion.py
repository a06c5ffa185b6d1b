"""Enumerate candidate peptides of a protein.

In silico digestion with support for:
- Tryptic, partially tryptic and non-tryptic peptides
- A maximum number of missed cleavages
- Peptide length and neutral mass bounds

Trypsin cleaves after K and R, except when followed by P (proline blocking).

The iterator walks (start, length) pairs in an explicit loop: for each start
position the length grows until the length, mass or missed-cleavage bound is
exceeded, then the next start position is tried.

Examples
--------
>>> from alphapsm.database.protein import Protein
>>> protein = Protein("P1", "MKPEPTIDEKAAR", protein_idx=0)
>>> it = ProteinPeptideIterator(protein, min_length=3, max_length=20)
>>> [p.sequence for p in it]
['MKPEPTIDEK', 'AAR']
"""

import logging
from enum import Enum
from typing import Iterator, Optional, Sequence

import numpy as np

from ..constants import AA_MASSES, H2O_MASS
from ..modifications import AAMod
from .protein import Peptide, Protein

logger = logging.getLogger(__name__)


class PeptideType(Enum):
    """Enzymatic specificity of a peptide's termini."""
    TRYPTIC = "tryptic"                      # both termini tryptic
    PARTIALLY_TRYPTIC = "partially_tryptic"  # at least one terminus tryptic
    NOT_TRYPTIC = "not_tryptic"              # neither terminus tryptic
    ANY = "any"


def _is_cleavage_site(sequence: str, idx: int) -> bool:
    """True if trypsin cuts after 0-based position ``idx``."""
    if idx + 1 >= len(sequence):
        return False
    return sequence[idx] in "KR" and sequence[idx + 1] != "P"


def examine_peptide_type(protein_sequence: str, start_idx: int, length: int) -> PeptideType:
    """Classify a peptide by the tryptic state of its two termini.

    Parameters
    ----------
    protein_sequence : str
        Parent protein sequence
    start_idx : int
        1-based start of the peptide
    length : int
        Peptide length

    Returns
    -------
    PeptideType
        TRYPTIC, PARTIALLY_TRYPTIC or NOT_TRYPTIC

    Examples
    --------
    >>> examine_peptide_type("MKPEPTIDEKAAR", 3, 8)
    <PeptideType.PARTIALLY_TRYPTIC: 'partially_tryptic'>
    >>> examine_peptide_type("MKAEPTIDEKAAR", 3, 8)
    <PeptideType.TRYPTIC: 'tryptic'>
    """
    begin = start_idx - 1
    end = begin + length - 1
    n_term = begin == 0 or _is_cleavage_site(protein_sequence, begin - 1)
    c_term = end == len(protein_sequence) - 1 or _is_cleavage_site(protein_sequence, end)

    if n_term and c_term:
        return PeptideType.TRYPTIC
    if n_term or c_term:
        return PeptideType.PARTIALLY_TRYPTIC
    return PeptideType.NOT_TRYPTIC


def count_missed_cleavages(protein_sequence: str, start_idx: int, length: int) -> int:
    """Number of internal cleavage sites of a peptide (1-based ``start_idx``)."""
    begin = start_idx - 1
    return sum(
        1 for idx in range(begin, begin + length - 1)
        if _is_cleavage_site(protein_sequence, idx)
    )


def _type_allowed(found: PeptideType, wanted: PeptideType) -> bool:
    if wanted == PeptideType.ANY:
        return True
    if wanted == PeptideType.PARTIALLY_TRYPTIC:
        return found in (PeptideType.TRYPTIC, PeptideType.PARTIALLY_TRYPTIC)
    return found == wanted


class ProteinPeptideIterator:
    """Iterate over the peptides of one protein that satisfy all constraints.

    Parameters
    ----------
    protein : Protein
        Parent protein
    min_length, max_length : int
        Peptide length bounds (inclusive)
    min_mass, max_mass : float
        Neutral mass bounds in Da (inclusive)
    peptide_type : PeptideType
        Required enzymatic specificity
    missed_cleavages : int
        Maximum number of internal cleavage sites
    mods : sequence of AAMod
        Modification table (peptides are produced unmodified)

    Notes
    -----
    Supports both the ``has_next()``/``next()`` polling protocol and Python
    iteration.
    """

    def __init__(
        self,
        protein: Protein,
        min_length: int = 6,
        max_length: int = 50,
        min_mass: float = 200.0,
        max_mass: float = 7200.0,
        peptide_type: PeptideType = PeptideType.TRYPTIC,
        missed_cleavages: int = 0,
        mods: Sequence[AAMod] = (),
    ):
        if min_length < 1 or max_length < min_length:
            raise ValueError(f"Invalid length bounds: {min_length}-{max_length}")
        self.protein = protein
        self.min_length = min_length
        self.max_length = max_length
        self.min_mass = min_mass
        self.max_mass = max_mass
        self.peptide_type = peptide_type
        self.missed_cleavages = missed_cleavages
        self.mods = tuple(mods)

        # cumulative residue masses: mass of [a, b) = cum[b] - cum[a]
        residues = np.frombuffer(protein.sequence.encode("ascii"), dtype=np.uint8)
        self._cumulative = np.zeros(len(residues) + 1, dtype=np.float64)
        np.cumsum(AA_MASSES[residues], out=self._cumulative[1:])

        self._start = 1
        self._length = min_length - 1
        self._next: Optional[Peptide] = None
        self._advance()

    def _mass(self, start_idx: int, length: int) -> float:
        begin = start_idx - 1
        return self._cumulative[begin + length] - self._cumulative[begin] + H2O_MASS

    def _next_start(self) -> None:
        self._start += 1
        self._length = self.min_length - 1

    def _advance(self) -> None:
        sequence = self.protein.sequence
        protein_length = len(sequence)
        self._next = None

        while self._start <= protein_length:
            self._length += 1
            begin = self._start - 1

            if self._length > self.max_length or begin + self._length > protein_length:
                self._next_start()
                continue

            mass = self._mass(self._start, self._length)
            if mass > self.max_mass:
                # longer peptides from this start are heavier still
                self._next_start()
                continue
            if mass < self.min_mass:
                continue

            if count_missed_cleavages(sequence, self._start, self._length) > self.missed_cleavages:
                self._next_start()
                continue

            found = examine_peptide_type(sequence, self._start, self._length)
            if not _type_allowed(found, self.peptide_type):
                continue

            self._next = Peptide.from_source(self.protein, self._start, self._length, mods=self.mods)
            return

    def has_next(self) -> bool:
        return self._next is not None

    def next(self) -> Peptide:
        if self._next is None:
            raise StopIteration
        peptide = self._next
        self._advance()
        return peptide

    def __iter__(self) -> Iterator[Peptide]:
        return self

    def __next__(self) -> Peptide:
        return self.next()
