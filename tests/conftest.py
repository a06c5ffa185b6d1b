"""Pytest configuration for alphapsm tests.

Provides a small protein database, synthetic spectra, a deterministic stub
scorer and factories for hand-scored matches and collections.
"""

import numpy as np
import pytest

from alphapsm.config import SearchParameters
from alphapsm.database import Peptide, PeptideSrc, Protein, ProteinDatabase
from alphapsm.match import Match, MatchCollection
from alphapsm.scoring import ScoreType
from alphapsm.spectrum import Spectrum


PROTEIN_SEQUENCES = {
    "sp|P00001|TEST1": "MKPEPTIDEKAARLGEHNIDVLEGNEQFINAAKYGGFMTSEK",
    "sp|P00002|TEST2": "MSTESTPEPTIDERAAGLGEHNIDVLEGNEQFINAAKWWK",
    "sp|P00003|TEST3": "MAVLDQWKLLSPEPTIDEKGGR",
}


class StubScorer:
    """Deterministic scorer: scores derived from the scored sequence.

    Fixed scores can be given per modified sequence; any other sequence
    gets a score from its residue codes so every candidate is scored.
    """

    def __init__(self, fixed=None):
        self.fixed = dict(fixed or {})
        self.calls = 0

    def score(self, spectrum, match, score_type):
        self.calls += 1
        seq = match.mod_sequence
        if (seq, score_type) in self.fixed:
            return self.fixed[(seq, score_type)]
        base = sum(ord(aa) * (i + 1) for i, aa in enumerate(seq)) % 997
        if score_type == ScoreType.SP:
            match.b_y_ion_matched = base % 7
            match.b_y_ion_possible = 2 * (len(seq) - 1)
            return float(base)
        return base / 250.0


@pytest.fixture
def protein_db():
    """Three-protein database of tryptic peptides."""
    return ProteinDatabase.from_sequences(PROTEIN_SEQUENCES, min_length=4, max_length=30)


@pytest.fixture
def params():
    """Parameters without preliminary scoring."""
    return SearchParameters(max_rank_preliminary=0, psms_per_spectrum_reported=5, top_match=5)


@pytest.fixture
def stub_scorer():
    return StubScorer()


@pytest.fixture
def spectrum():
    """Spectrum with a handful of peaks."""
    mz = np.array([175.119, 304.162, 401.214, 500.250, 629.293, 742.377], dtype=np.float64)
    intensity = np.array([100.0, 350.0, 80.0, 1000.0, 220.0, 60.0], dtype=np.float64)
    return Spectrum(first_scan=1001, precursor_mz=500.77, mz=mz, intensity=intensity)


@pytest.fixture
def test_protein():
    return Protein("sp|P00001|TEST1", PROTEIN_SEQUENCES["sp|P00001|TEST1"], protein_idx=0)


@pytest.fixture
def make_match(test_protein):
    """Factory for matches with given scores.

    The peptide is ``length`` residues of the test protein starting at
    ``start``, so different starts give different sequences.
    """

    def _make(
        xcorr=None,
        sp=None,
        is_decoy=False,
        scan=1,
        charge=2,
        start=3,
        length=8,
        spectrum=None,
        protein=None,
    ):
        protein = protein if protein is not None else test_protein
        peptide = Peptide(
            sequence=protein.sequence[start - 1:start - 1 + length],
            sources=[PeptideSrc(protein, start)],
            mass=1000.0 + start,
        )
        if spectrum is None:
            spectrum = Spectrum(first_scan=scan, precursor_mz=500.0 + scan)
        match = Match(
            peptide,
            spectrum,
            charge,
            is_decoy=is_decoy,
            decoy_sequence=peptide.sequence[::-1] if is_decoy else None,
        )
        if xcorr is not None:
            match.set_score(ScoreType.XCORR, xcorr)
        if sp is not None:
            match.set_score(ScoreType.SP, sp)
        return match

    return _make


@pytest.fixture
def make_collection(make_match):
    """Factory for a collection of XCORR (and optionally SP) scored matches."""

    def _make(xcorrs, sps=None, is_decoy=False, parameters=None, **match_kwargs):
        collection = MatchCollection(is_decoy=is_decoy, parameters=parameters)
        for i, xcorr in enumerate(xcorrs):
            sp = sps[i] if sps is not None else None
            collection.add_match(
                make_match(xcorr=xcorr, sp=sp, is_decoy=is_decoy, start=1 + i, **match_kwargs)
            )
        collection.set_scored(ScoreType.XCORR)
        if sps is not None:
            collection.set_scored(ScoreType.SP)
        collection.experiment_size = len(xcorrs)
        return collection

    return _make


# Random seed for reproducibility
@pytest.fixture(autouse=True)
def set_random_seed():
    """Set random seed for reproducible tests."""
    np.random.seed(42)
