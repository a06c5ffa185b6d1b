"""Protein database with a mass-indexed peptide table.

Holds the proteins of a run, addressed by ``protein_idx``, and resolves
serialized peptide references back to live peptide objects. Candidate
peptides are digested once, deduplicated by sequence (sources of shared
peptides are merged) and sorted by neutral mass for binary search.

Design principles:
1. Proteins addressed by stable index (persisted in .csm files)
2. Lazy peptide index (analysis runs never digest)
3. Numba-accelerated mass window search
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numba
import numpy as np

from ..modifications import AAMod
from .digestion import PeptideType, ProteinPeptideIterator
from .fasta_reader import read_fasta
from .protein import Peptide, Protein

logger = logging.getLogger(__name__)


# =============================================================================
# Numba-Accelerated Binary Search
# =============================================================================

@numba.jit(nopython=True, cache=True)
def search_mass_window_numba(
    masses: np.ndarray,
    min_mass: float,
    max_mass: float,
) -> Tuple[int, int]:
    """Binary search for the index range of masses in [min_mass, max_mass].

    Parameters
    ----------
    masses : np.ndarray (float64)
        Sorted neutral masses
    min_mass, max_mass : float
        Inclusive window bounds

    Returns
    -------
    start_idx : int
        First index in range (inclusive)
    end_idx : int
        Last index in range (exclusive)

    Examples
    --------
    >>> masses = np.array([100.0, 200.0, 200.1, 300.0])
    >>> search_mass_window_numba(masses, 199.9, 200.2)
    (1, 3)
    """
    n = len(masses)
    if n == 0:
        return (0, 0)

    left, right = 0, n
    while left < right:
        mid = (left + right) // 2
        if masses[mid] < min_mass:
            left = mid + 1
        else:
            right = mid
    start_idx = left

    left, right = start_idx, n
    while left < right:
        mid = (left + right) // 2
        if masses[mid] <= max_mass:
            left = mid + 1
        else:
            right = mid
    end_idx = left

    return (start_idx, end_idx)


# =============================================================================
# Peptide Supply
# =============================================================================

class PeptideSupply:
    """Lazy supply of candidate peptides.

    Polled with ``has_next()``/``next()``; also a Python iterator.
    """

    def __init__(self, peptides: Iterable[Peptide]):
        self._iterator = iter(peptides)
        self._next: Optional[Peptide] = None
        self._pull()

    def _pull(self) -> None:
        self._next = next(self._iterator, None)

    def has_next(self) -> bool:
        return self._next is not None

    def next(self) -> Peptide:
        if self._next is None:
            raise StopIteration
        peptide = self._next
        self._pull()
        return peptide

    def __iter__(self) -> Iterator[Peptide]:
        return self

    def __next__(self) -> Peptide:
        return self.next()


# =============================================================================
# Protein Database
# =============================================================================

class ProteinDatabase:
    """Proteins of a run plus a mass-sorted table of their peptides.

    Parameters
    ----------
    proteins : sequence of Protein
        Proteins in database order; ``protein_idx`` is reassigned to position
    min_length, max_length : int
        Peptide length bounds for digestion
    peptide_type : PeptideType
        Enzymatic specificity of candidate peptides
    missed_cleavages : int
        Maximum internal cleavage sites
    mods : sequence of AAMod
        Modification table of the run

    Examples
    --------
    >>> db = ProteinDatabase.from_sequences({"P1": "MKPEPTIDEKAAR"})
    >>> db.num_proteins
    1
    >>> supply = db.peptides_in_mass_window(1100.0, 1300.0)
    >>> [p.sequence for p in supply]
    ['MKPEPTIDEK']
    """

    def __init__(
        self,
        proteins: Sequence[Protein],
        min_length: int = 6,
        max_length: int = 50,
        peptide_type: PeptideType = PeptideType.TRYPTIC,
        missed_cleavages: int = 0,
        mods: Sequence[AAMod] = (),
    ):
        self.proteins: List[Protein] = list(proteins)
        for idx, protein in enumerate(self.proteins):
            protein.protein_idx = idx
        self._by_id: Dict[str, Protein] = {p.protein_id: p for p in self.proteins}

        self.min_length = min_length
        self.max_length = max_length
        self.peptide_type = peptide_type
        self.missed_cleavages = missed_cleavages
        self.mods = tuple(mods)

        self._peptides: Optional[List[Peptide]] = None
        self._masses: Optional[np.ndarray] = None

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_fasta(cls, fasta_path: Union[str, Path], **kwargs) -> 'ProteinDatabase':
        return cls(read_fasta(fasta_path), **kwargs)

    @classmethod
    def from_sequences(cls, sequences: Dict[str, str], **kwargs) -> 'ProteinDatabase':
        proteins = [Protein(pid, seq) for pid, seq in sequences.items()]
        return cls(proteins, **kwargs)

    @classmethod
    def from_tsv(
        cls,
        tsv_path: Union[str, Path],
        id_column: str = 'protein_id',
        sequence_column: str = 'sequence',
        **kwargs
    ) -> 'ProteinDatabase':
        """Create database from a TSV protein table.

        Parameters
        ----------
        tsv_path : str or Path
            Path to TSV file
        id_column, sequence_column : str
            Column names for accession and sequence
        **kwargs
            Additional arguments for __init__
        """
        import pandas as pd

        df = pd.read_csv(tsv_path, sep='\t')
        proteins = [
            Protein(str(pid), str(seq).upper())
            for pid, seq in zip(df[id_column], df[sequence_column])
        ]

        logger.info(f"Loaded {len(proteins):,} proteins from {Path(tsv_path).name}")

        return cls(proteins, **kwargs)

    # -------------------------------------------------------------------------
    # Proteins
    # -------------------------------------------------------------------------

    @property
    def num_proteins(self) -> int:
        return len(self.proteins)

    def get_protein(self, protein_idx: int) -> Protein:
        """Return the protein at ``protein_idx``.

        Raises
        ------
        IndexError
            If the index is outside the database
        """
        if not 0 <= protein_idx < len(self.proteins):
            raise IndexError(
                f"Protein index {protein_idx} outside database of {len(self.proteins)} proteins"
            )
        return self.proteins[protein_idx]

    def get_protein_by_id(self, protein_id: str) -> Protein:
        return self._by_id[protein_id]

    # -------------------------------------------------------------------------
    # Peptides
    # -------------------------------------------------------------------------

    def _build_peptide_index(self) -> None:
        by_sequence: Dict[str, Peptide] = {}
        for protein in self.proteins:
            iterator = ProteinPeptideIterator(
                protein,
                min_length=self.min_length,
                max_length=self.max_length,
                min_mass=0.0,
                max_mass=np.inf,
                peptide_type=self.peptide_type,
                missed_cleavages=self.missed_cleavages,
                mods=self.mods,
            )
            for peptide in iterator:
                existing = by_sequence.get(peptide.sequence)
                if existing is None:
                    by_sequence[peptide.sequence] = peptide
                else:
                    existing.merge_sources(peptide)

        peptides = list(by_sequence.values())
        masses = np.array([p.mass for p in peptides], dtype=np.float64)
        order = np.argsort(masses, kind="stable")
        self._peptides = [peptides[i] for i in order]
        self._masses = masses[order]

        logger.info(
            f"✓ Indexed {len(self._peptides):,} unique peptides "
            f"from {self.num_proteins:,} proteins"
        )

    @property
    def num_peptides(self) -> int:
        if self._peptides is None:
            self._build_peptide_index()
        return len(self._peptides)

    def peptides_in_mass_window(self, min_mass: float, max_mass: float) -> PeptideSupply:
        """Supply of unique peptides with neutral mass in [min_mass, max_mass]."""
        if self._peptides is None:
            self._build_peptide_index()
        start, end = search_mass_window_numba(self._masses, min_mass, max_mass)
        return PeptideSupply(self._peptides[start:end])

    def peptide_supply(self, neutral_mass: float, mass_window: float = 3.0) -> PeptideSupply:
        """Candidates for a precursor of ``neutral_mass`` within ±``mass_window`` Da."""
        return self.peptides_in_mass_window(neutral_mass - mass_window, neutral_mass + mass_window)

    def __len__(self) -> int:
        return self.num_proteins

    def __repr__(self) -> str:
        return f"ProteinDatabase(n_proteins={self.num_proteins:,})"
