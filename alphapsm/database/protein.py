"""Protein, peptide source and peptide records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..modifications import AAMod, modified_peptide_mass


@dataclass
class Protein:
    """A protein sequence with its position in the database."""

    protein_id: str
    sequence: str
    annotation: str = ""
    protein_idx: int = 0

    def __len__(self) -> int:
        return len(self.sequence)


@dataclass(frozen=True, eq=False)
class PeptideSrc:
    """Location of a peptide inside a parent protein.

    ``start_idx`` is 1-based, as in protein coordinates.
    """

    protein: Protein
    start_idx: int

    @property
    def protein_idx(self) -> int:
        return self.protein.protein_idx

    def __eq__(self, other):
        if not isinstance(other, PeptideSrc):
            return NotImplemented
        return self.protein_idx == other.protein_idx and self.start_idx == other.start_idx

    def __hash__(self):
        return hash((self.protein_idx, self.start_idx))


@dataclass
class Peptide:
    """A candidate peptide, possibly modified, with all of its protein sources.

    Examples
    --------
    >>> protein = Protein("P1", "MKPEPTIDEKAAR", protein_idx=0)
    >>> peptide = Peptide.from_source(protein, start_idx=3, length=8)
    >>> peptide.sequence
    'PEPTIDEK'
    >>> peptide.flanking_aa
    'KA'
    """

    sequence: str
    sources: List[PeptideSrc] = field(default_factory=list)
    mod_sequence: Optional[str] = None
    mass: float = 0.0

    def __post_init__(self):
        if self.mod_sequence is None:
            self.mod_sequence = self.sequence

    @classmethod
    def from_source(
        cls,
        protein: Protein,
        start_idx: int,
        length: int,
        mod_sequence: Optional[str] = None,
        mods: Sequence[AAMod] = (),
    ) -> "Peptide":
        """Build a peptide from a protein substring (1-based ``start_idx``)."""
        if start_idx < 1 or start_idx - 1 + length > len(protein.sequence):
            raise ValueError(
                f"Peptide at {start_idx} with length {length} exceeds protein "
                f"{protein.protein_id} of length {len(protein.sequence)}"
            )
        sequence = protein.sequence[start_idx - 1:start_idx - 1 + length]
        mod_sequence = mod_sequence or sequence
        return cls(
            sequence=sequence,
            sources=[PeptideSrc(protein, start_idx)],
            mod_sequence=mod_sequence,
            mass=modified_peptide_mass(mod_sequence, mods),
        )

    @property
    def length(self) -> int:
        return len(self.sequence)

    @property
    def protein_ids(self) -> List[str]:
        return [src.protein.protein_id for src in self.sources]

    @property
    def hash_key(self) -> str:
        """Key identifying the peptide across files."""
        return self.mod_sequence

    @property
    def flanking_aa(self) -> str:
        """Residues before and after the peptide in its first source.

        ``-`` marks a protein terminus.
        """
        if not self.sources:
            return "--"
        src = self.sources[0]
        protein_seq = src.protein.sequence
        before_idx = src.start_idx - 2
        after_idx = src.start_idx - 1 + self.length
        before = protein_seq[before_idx] if before_idx >= 0 else "-"
        after = protein_seq[after_idx] if after_idx < len(protein_seq) else "-"
        return before + after

    def merge_sources(self, other: "Peptide") -> None:
        """Add the protein sources of ``other`` not yet listed here."""
        for src in other.sources:
            if src not in self.sources:
                self.sources.append(src)
