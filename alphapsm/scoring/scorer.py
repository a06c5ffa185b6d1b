"""Scorers that turn a peptide-spectrum pair into a score.

A match collection needs one operation from its scorer: given a spectrum
and a match, return the match's score for a requested ``ScoreType``.
``FragmentScorer`` is the reference implementation used by the search
phase: it generates b/y fragments from the match's modified sequence and
compares them with the observed peaks.

Examples
--------
>>> scorer = FragmentScorer(mods=params.modifications)
>>> xcorr = scorer.score(spectrum, match, ScoreType.XCORR)
>>> match.b_y_ion_matched, match.b_y_ion_possible
(9, 14)
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence, Tuple

import numpy as np

from ..modifications import AAMod, residue_masses
from ..spectrum import Spectrum
from .ions import (
    count_matched_ions,
    generate_by_ions,
    mz_to_bin,
    preprocess_for_xcorr,
    xcorr_from_processed,
)
from .score_types import ScoreType


class Scorer(Protocol):
    """Interface the match collection scores through."""

    def score(self, spectrum: Spectrum, match, score_type: ScoreType) -> float:
        ...


class FragmentScorer:
    """b/y fragment scorer providing SP and XCORR.

    Parameters
    ----------
    mods : sequence of AAMod
        Modification table used to resolve modified sequences
    fragment_tol : float
        Absolute fragment tolerance in Da for peak counting (default: 0.5)
    xcorr_offset : int
        Half-width in bins of the background window for XCORR (default: 75)

    Notes
    -----
    SP is the matched peak intensity times the fraction of fragments
    matched. XCORR is the binned dot product of theoretical and observed
    spectra minus the mean over shifted alignments. Scoring SP also stores
    the matched and possible fragment counts on the match.
    """

    def __init__(
        self,
        mods: Sequence[AAMod] = (),
        fragment_tol: float = 0.5,
        xcorr_offset: int = 75,
    ):
        self.mods = tuple(mods)
        self.fragment_tol = fragment_tol
        self.xcorr_offset = xcorr_offset

        # processed spectrum of the last spectrum scored by XCORR
        self._cached_spectrum: Optional[Spectrum] = None
        self._cached_processed: Optional[np.ndarray] = None

    def _fragments(self, match) -> np.ndarray:
        masses = np.array(residue_masses(match.mod_sequence, self.mods), dtype=np.float64)
        fragment_mz, _, _, _ = generate_by_ions(masses, match.charge)
        return fragment_mz

    def _processed_spectrum(self, spectrum: Spectrum) -> np.ndarray:
        if self._cached_spectrum is not spectrum:
            # fragments beyond the last observed peak cannot contribute
            if spectrum.has_peaks:
                n_bins = mz_to_bin(float(spectrum.mz.max())) + 1
                processed = preprocess_for_xcorr(
                    spectrum.mz, spectrum.intensity, n_bins, self.xcorr_offset
                )
            else:
                processed = np.zeros(1, dtype=np.float64)
            self._cached_spectrum = spectrum
            self._cached_processed = processed
        return self._cached_processed

    def score_sp(self, spectrum: Spectrum, match) -> Tuple[float, int, int]:
        """SP score with matched and possible fragment counts."""
        fragment_mz = self._fragments(match)
        n_possible = len(fragment_mz)
        if n_possible == 0 or not spectrum.has_peaks:
            return 0.0, 0, n_possible
        n_matched, matched_intensity = count_matched_ions(
            fragment_mz, spectrum.mz, spectrum.intensity, self.fragment_tol
        )
        return matched_intensity * n_matched / n_possible, n_matched, n_possible

    def score_xcorr(self, spectrum: Spectrum, match) -> float:
        fragment_mz = self._fragments(match)
        return xcorr_from_processed(fragment_mz, self._processed_spectrum(spectrum))

    def score(self, spectrum: Spectrum, match, score_type: ScoreType) -> float:
        """Score one match.

        Raises
        ------
        ValueError
            If ``score_type`` is not SP or XCORR
        """
        if score_type == ScoreType.SP:
            sp, n_matched, n_possible = self.score_sp(spectrum, match)
            match.b_y_ion_matched = n_matched
            match.b_y_ion_possible = n_possible
            return sp
        if score_type == ScoreType.XCORR:
            return self.score_xcorr(spectrum, match)
        raise ValueError(f"FragmentScorer cannot compute {score_type.name}")
