"""Peptide-spectrum match record.

A ``Match`` is one peptide compared against one spectrum at one charge. It
holds a score and a rank slot per ``ScoreType``. Matches are shared between
collections (merging, sampling, post-processing); each holder calls
``retain()`` when it takes a reference and ``release()`` when it drops one.
When the last holder releases a match its peptide and spectrum references
are dropped and the match must not be used again.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..constants import NOT_SCORED
from ..database.decoys import generate_shuffled_decoy
from ..database.protein import Peptide
from ..scoring.score_types import ScoreType, new_rank_array, new_score_array
from ..spectrum import Spectrum


class Match:
    """One scored peptide-spectrum match.

    Parameters
    ----------
    peptide : Peptide
        Candidate peptide (the target sequence for decoy matches)
    spectrum : Spectrum
        Observed spectrum
    charge : int
        Assumed precursor charge
    is_decoy : bool
        Whether the match scores a scrambled version of the peptide
    decoy_sequence : str, optional
        Scrambled modified sequence; generated by shuffling when omitted

    Examples
    --------
    >>> match = Match(peptide, spectrum, charge=2)
    >>> match.set_score(ScoreType.XCORR, 2.5)
    >>> match.get_score(ScoreType.XCORR)
    2.5
    >>> match.is_scored(ScoreType.SP)
    False
    """

    __slots__ = (
        "peptide",
        "spectrum",
        "charge",
        "is_decoy",
        "decoy_sequence",
        "scores",
        "ranks",
        "delta_cn",
        "ln_delta_cn",
        "ln_experiment_size",
        "b_y_ion_matched",
        "b_y_ion_possible",
        "_holder_count",
    )

    def __init__(
        self,
        peptide: Peptide,
        spectrum: Spectrum,
        charge: int,
        is_decoy: bool = False,
        decoy_sequence: Optional[str] = None,
    ):
        self.peptide = peptide
        self.spectrum = spectrum
        self.charge = charge
        self.is_decoy = is_decoy
        if is_decoy and decoy_sequence is None:
            decoy_sequence = generate_shuffled_decoy(peptide.mod_sequence)
        self.decoy_sequence = decoy_sequence

        self.scores = new_score_array()
        self.ranks = new_rank_array()

        self.delta_cn = 0.0
        self.ln_delta_cn = 0.0
        self.ln_experiment_size = 0.0
        self.b_y_ion_matched = 0
        self.b_y_ion_possible = 0

        self._holder_count = 0

    # -------------------------------------------------------------------------
    # Scores
    # -------------------------------------------------------------------------

    def get_score(self, score_type: ScoreType) -> float:
        return float(self.scores[score_type])

    def set_score(self, score_type: ScoreType, value: float) -> None:
        self.scores[score_type] = value

    def is_scored(self, score_type: ScoreType) -> bool:
        return self.scores[score_type] != NOT_SCORED

    def get_rank(self, score_type: ScoreType) -> int:
        return int(self.ranks[score_type])

    def set_rank(self, score_type: ScoreType, rank: int) -> None:
        self.ranks[score_type] = rank

    # -------------------------------------------------------------------------
    # Sequences
    # -------------------------------------------------------------------------

    @property
    def mod_sequence(self) -> str:
        """Modified sequence actually scored (scrambled for decoys)."""
        if self.is_decoy:
            return self.decoy_sequence
        return self.peptide.mod_sequence

    @property
    def unshuffled_sequence(self) -> str:
        return self.peptide.mod_sequence

    @property
    def experiment_size(self) -> int:
        """Candidates considered for this match's spectrum, from the log value."""
        return int(np.exp(self.ln_experiment_size) + 0.5)

    # -------------------------------------------------------------------------
    # Shared ownership
    # -------------------------------------------------------------------------

    @property
    def holder_count(self) -> int:
        return self._holder_count

    @property
    def is_released(self) -> bool:
        return self.peptide is None

    def retain(self) -> "Match":
        if self.peptide is None:
            raise RuntimeError("Cannot retain a match that has already been released")
        self._holder_count += 1
        return self

    def release(self) -> None:
        """Drop one holder; the last release frees the match's references."""
        if self._holder_count <= 0:
            raise RuntimeError("Match released more often than retained")
        self._holder_count -= 1
        if self._holder_count == 0:
            self.peptide = None
            self.spectrum = None

    def __repr__(self) -> str:
        if self.peptide is None:
            return "Match(<released>)"
        return (
            f"Match(seq={self.mod_sequence}, scan={self.spectrum.first_scan}, "
            f"charge={self.charge}, decoy={self.is_decoy})"
        )
