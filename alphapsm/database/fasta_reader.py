"""FASTA file reading and parsing.

Lightweight streaming FASTA parser. Supports:
- UniProt and generic FASTA headers
- Multi-line sequences
- Protein index assignment in file order
"""

import logging
from pathlib import Path
from typing import Iterator, List, Tuple, Union

from .protein import Protein

logger = logging.getLogger(__name__)


def parse_protein_id(header: str) -> Tuple[str, str]:
    """Extract protein ID and annotation from a FASTA header.

    Parameters
    ----------
    header : str
        FASTA header line (without leading '>')

    Returns
    -------
    protein_id : str
        Accession for UniProt headers, else the first token
    annotation : str
        Remainder of the header after the first token

    Examples
    --------
    >>> parse_protein_id("sp|P12345|NAME_HUMAN Some protein")
    ('P12345', 'Some protein')

    >>> parse_protein_id("PROT123 Description here")
    ('PROT123', 'Description here')
    """
    header = header.strip()
    first, _, annotation = header.partition(' ')

    parts = first.split('|')
    if len(parts) >= 2 and parts[1]:
        protein_id = parts[1]
    else:
        protein_id = first

    return protein_id, annotation.strip()


def iter_fasta(fasta_path: Union[str, Path]) -> Iterator[Tuple[str, str, str]]:
    """Yield (protein_id, sequence, annotation) for every record."""
    current_id = None
    current_annotation = ""
    current_seq = []

    with open(fasta_path) as f:
        for line in f:
            if line.startswith('>'):
                if current_id and current_seq:
                    yield current_id, ''.join(current_seq), current_annotation
                current_id, current_annotation = parse_protein_id(line[1:])
                current_seq = []
            else:
                current_seq.append(line.strip().upper())

        if current_id and current_seq:
            yield current_id, ''.join(current_seq), current_annotation


def read_fasta(
    fasta_path: Union[str, Path],
    min_length: int = 0,
) -> List[Protein]:
    """Read a FASTA file into proteins indexed by their position.

    Parameters
    ----------
    fasta_path : str or Path
        Path to FASTA file
    min_length : int
        Minimum protein length (default: 0, no filter)

    Returns
    -------
    proteins : List[Protein]
        Proteins with ``protein_idx`` 0..n-1 in file order

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    """
    fasta_path = Path(fasta_path)

    if not fasta_path.exists():
        raise FileNotFoundError(f"FASTA file not found: {fasta_path}")

    logger.info(f"Reading FASTA file: {fasta_path.name}")

    proteins = []
    for protein_id, sequence, annotation in iter_fasta(fasta_path):
        if len(sequence) < min_length:
            continue
        proteins.append(Protein(protein_id, sequence, annotation, protein_idx=len(proteins)))

    logger.info(f"✓ Read {len(proteins):,} proteins from {fasta_path.name}")

    return proteins
