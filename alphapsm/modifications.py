"""Amino acid modification records.

A run is configured with a table of variable modifications. Each modified
residue is written in a peptide's modified sequence as the residue letter
followed by the modification symbol, e.g. ``PEPTM*IDEK``. The table is
persisted in every ``.csm`` header and compared against the current run when
the file is read back.

Examples
--------
>>> ox = AAMod(mass_change=15.994915, aa_list="M", symbol="*")
>>> mods = (ox,)
>>> strip_modifications("PEPTM*IDEK", mods)
'PEPTMIDEK'
>>> round(modification_mass("PEPTM*IDEK", mods), 6)
15.994915
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Sequence, Tuple

from .constants import AA_MASSES_DICT, H2O_MASS
from .exceptions import CsmFormatError

# =============================================================================
# Modification Record
# =============================================================================


class ModPosition(Enum):
    """Where in the peptide a modification may occur."""
    ANY = 0
    C_TERM = 1
    N_TERM = 2


# mass_change, max_per_peptide, max_distance, position, symbol, len(aa_list)
_MOD_STRUCT = struct.Struct("<diiBcI")


@dataclass(frozen=True)
class AAMod:
    """A variable amino acid modification."""

    mass_change: float
    aa_list: str
    symbol: str = "*"
    max_per_peptide: int = 1
    position: ModPosition = ModPosition.ANY
    max_distance: int = 40000

    def __post_init__(self):
        if len(self.symbol) != 1:
            raise ValueError(f"Modification symbol must be one character, got '{self.symbol}'")
        if self.symbol.isalpha():
            raise ValueError(f"Modification symbol cannot be a residue letter: '{self.symbol}'")

    def applies_to(self, residue: str) -> bool:
        return residue in self.aa_list

    def serialize(self, fh: BinaryIO) -> None:
        aa_bytes = self.aa_list.encode("ascii")
        fh.write(_MOD_STRUCT.pack(
            self.mass_change,
            self.max_per_peptide,
            self.max_distance,
            self.position.value,
            self.symbol.encode("ascii"),
            len(aa_bytes),
        ))
        fh.write(aa_bytes)

    @classmethod
    def parse(cls, fh: BinaryIO) -> "AAMod":
        """Read one modification record.

        Raises
        ------
        CsmFormatError
            If the record is truncated or malformed.
        """
        raw = fh.read(_MOD_STRUCT.size)
        if len(raw) != _MOD_STRUCT.size:
            raise CsmFormatError("Could not read modification record.")
        mass_change, max_per_peptide, max_distance, position, symbol, n_aa = _MOD_STRUCT.unpack(raw)
        aa_bytes = fh.read(n_aa)
        if len(aa_bytes) != n_aa:
            raise CsmFormatError("Truncated modification residue list.")
        try:
            return cls(
                mass_change=mass_change,
                aa_list=aa_bytes.decode("ascii"),
                symbol=symbol.decode("ascii"),
                max_per_peptide=max_per_peptide,
                position=ModPosition(position),
                max_distance=max_distance,
            )
        except ValueError as e:
            raise CsmFormatError(f"Invalid modification record: {e}") from e


def compare_mods(file_mods: Sequence[AAMod], run_mods: Sequence[AAMod]) -> bool:
    """True if a persisted modification table matches the run configuration."""
    if len(file_mods) != len(run_mods):
        return False
    return all(a == b for a, b in zip(file_mods, run_mods))


# =============================================================================
# Modified Sequences
# =============================================================================

def _symbol_table(mods: Sequence[AAMod]) -> dict:
    return {mod.symbol: mod for mod in mods}


def split_modified_sequence(
    mod_sequence: str,
    mods: Sequence[AAMod] = (),
) -> Tuple[str, list]:
    """Split a modified sequence into residues and per-residue modifications.

    Parameters
    ----------
    mod_sequence : str
        Sequence with modification symbols after residues
    mods : sequence of AAMod
        Modification table of the run

    Returns
    -------
    sequence : str
        Unmodified residues
    residue_mods : list of list of AAMod
        Modifications on each residue (same length as ``sequence``)

    Raises
    ------
    ValueError
        If a symbol is not in the table or precedes any residue
    """
    table = _symbol_table(mods)
    residues = []
    residue_mods = []
    for char in mod_sequence:
        if char.isalpha():
            residues.append(char)
            residue_mods.append([])
            continue
        if char not in table:
            raise ValueError(f"Unknown modification symbol '{char}' in {mod_sequence}")
        if not residues:
            raise ValueError(f"Modification symbol before first residue in {mod_sequence}")
        residue_mods[-1].append(table[char])
    return "".join(residues), residue_mods


def strip_modifications(mod_sequence: str, mods: Sequence[AAMod] = ()) -> str:
    return split_modified_sequence(mod_sequence, mods)[0]


def modification_mass(mod_sequence: str, mods: Sequence[AAMod] = ()) -> float:
    """Summed mass change of all modifications in a modified sequence."""
    _, residue_mods = split_modified_sequence(mod_sequence, mods)
    return sum(mod.mass_change for per_residue in residue_mods for mod in per_residue)


def residue_masses(mod_sequence: str, mods: Sequence[AAMod] = ()) -> list:
    """Per-residue masses including modification mass changes."""
    sequence, residue_mods = split_modified_sequence(mod_sequence, mods)
    masses = []
    for aa, per_residue in zip(sequence, residue_mods):
        if aa not in AA_MASSES_DICT:
            raise ValueError(f"Unknown amino acid '{aa}' in {mod_sequence}")
        masses.append(AA_MASSES_DICT[aa] + sum(mod.mass_change for mod in per_residue))
    return masses


def modified_peptide_mass(mod_sequence: str, mods: Sequence[AAMod] = ()) -> float:
    """Neutral monoisotopic mass of a (possibly modified) peptide."""
    return sum(residue_masses(mod_sequence, mods)) + H2O_MASS
