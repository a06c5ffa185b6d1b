"""Decoy sequence generation for null-distribution matches.

Decoy matches score a scrambled version of a target peptide against the
same spectrum. The scrambled sequence keeps:
- Amino acid composition (same precursor mass)
- Both terminal residues (tryptic C-terminal K/R preserved)
- Modification symbols attached to their residue

Key Features
------------
- Shuffle: random permutation of the interior residues (seedable generator)
"""

import logging
from typing import List, Optional

import numpy as np

logger = logging.getLogger(__name__)


def tokenize_modified_sequence(mod_sequence: str) -> List[str]:
    """Split a modified sequence into residue tokens.

    Examples
    --------
    >>> tokenize_modified_sequence("PEPM*K")
    ['P', 'E', 'P', 'M*', 'K']
    """
    tokens: List[str] = []
    for char in mod_sequence:
        if char.isalpha() or not tokens:
            tokens.append(char)
        else:
            tokens[-1] += char
    return tokens


def generate_shuffled_decoy(
    mod_sequence: str,
    rng: Optional[np.random.Generator] = None,
) -> str:
    """Shuffle the interior residues of a peptide.

    Parameters
    ----------
    mod_sequence : str
        Target sequence, optionally with modification symbols
    rng : np.random.Generator, optional
        Random generator (default: the global numpy random state)

    Returns
    -------
    decoy : str
        Shuffled sequence with first and last residue fixed

    Notes
    -----
    Peptides of length 3 or less are returned unchanged.
    """
    tokens = tokenize_modified_sequence(mod_sequence)
    if len(tokens) <= 3:
        return mod_sequence

    middle = tokens[1:-1]
    if rng is None:
        order = np.random.permutation(len(middle))
    else:
        order = rng.permutation(len(middle))
    shuffled = [middle[i] for i in order]

    return tokens[0] + ''.join(shuffled) + tokens[-1]
