"""Protein database, candidate peptides and decoy sequences.

Provides the collaborators a match collection consumes: a lazy peptide
supply for a precursor mass window, and a protein index for resolving
serialized peptide references back to live peptides.
"""

from .protein import (
    Peptide,
    PeptideSrc,
    Protein,
)

from .fasta_reader import (
    iter_fasta,
    parse_protein_id,
    read_fasta,
)

from .digestion import (
    PeptideType,
    ProteinPeptideIterator,
    count_missed_cleavages,
    examine_peptide_type,
)

from .protein_db import (
    PeptideSupply,
    ProteinDatabase,
    search_mass_window_numba,
)

from .decoys import (
    generate_shuffled_decoy,
    tokenize_modified_sequence,
)

__all__ = [
    # Records
    'Protein',
    'PeptideSrc',
    'Peptide',

    # FASTA reading
    'iter_fasta',
    'read_fasta',
    'parse_protein_id',

    # Digestion
    'PeptideType',
    'ProteinPeptideIterator',
    'count_missed_cleavages',
    'examine_peptide_type',

    # Database
    'PeptideSupply',
    'ProteinDatabase',
    'search_mass_window_numba',

    # Decoys
    'generate_shuffled_decoy',
    'tokenize_modified_sequence',
]
