"""Tests for scoring a peptide supply into a collection."""

import pytest

from alphapsm.config import SearchParameters
from alphapsm.exceptions import PreconditionError
from alphapsm.match import MatchCollection
from alphapsm.scoring import ScoreType


def all_peptides(protein_db):
    return protein_db.peptides_in_mass_window(0.0, 1e6)


class TestWithoutPreliminaryScoring:
    """max_rank_preliminary = 0: every candidate gets the final score."""

    def test_candidates_scored_ranked_and_truncated(self, protein_db, params, spectrum, stub_scorer):
        n_candidates = protein_db.num_peptides
        collection = MatchCollection(parameters=params)

        n_added = collection.add_matches(spectrum, 2, all_peptides(protein_db), stub_scorer)

        assert n_added == n_candidates
        assert collection.experiment_size == n_candidates
        assert collection.num_xcorrs == n_candidates
        assert collection.is_scored(ScoreType.XCORR)
        assert not collection.is_scored(ScoreType.SP)
        assert len(collection) <= params.psms_per_spectrum_reported
        assert collection[0].get_rank(ScoreType.XCORR) == 1
        assert collection.charge == 2

    def test_kept_matches_are_the_best(self, protein_db, params, spectrum, stub_scorer):
        collection = MatchCollection(parameters=params)
        collection.add_matches(spectrum, 2, all_peptides(protein_db), stub_scorer)

        best_kept = collection[0].get_score(ScoreType.XCORR)
        assert best_kept == max(collection.xcorr_sample)
        worst_kept = collection[len(collection) - 1].get_score(ScoreType.XCORR)
        n_better = sum(1 for score in collection.xcorr_sample if score > worst_kept)
        assert n_better < params.psms_per_spectrum_reported

    def test_calibration_pool_is_read_only(self, protein_db, params, spectrum, stub_scorer):
        collection = MatchCollection(parameters=params)
        collection.add_matches(spectrum, 2, all_peptides(protein_db), stub_scorer)
        with pytest.raises(ValueError):
            collection.xcorr_sample[0] = 0.0


class TestWithPreliminaryScoring:

    def test_preliminary_cut(self, protein_db, spectrum, stub_scorer):
        params = SearchParameters(max_rank_preliminary=3, psms_per_spectrum_reported=5)
        collection = MatchCollection(parameters=params)

        n_added = collection.add_matches(spectrum, 2, all_peptides(protein_db), stub_scorer)

        assert collection.is_scored(ScoreType.SP)
        assert collection.is_scored(ScoreType.XCORR)
        assert collection.num_xcorrs == n_added
        assert all(m.get_rank(ScoreType.SP) <= 3 for m in collection)
        assert all(m.b_y_ion_possible > 0 for m in collection)
        ranks = sorted(m.get_rank(ScoreType.XCORR) for m in collection)
        assert ranks[0] == 1


class TestDecoyCalibration:

    def test_discarded_decoys_only_feed_the_pool(self, protein_db, params, spectrum, stub_scorer):
        collection = MatchCollection(parameters=params)
        n_targets = collection.add_matches(spectrum, 2, all_peptides(protein_db), stub_scorer)
        kept = list(collection.matches)

        n_decoys = collection.add_matches(
            spectrum, 2, all_peptides(protein_db), stub_scorer, is_decoy=True, keep_matches=False
        )

        assert n_decoys == n_targets
        assert collection.num_xcorrs == n_targets + n_decoys
        assert collection.experiment_size == n_targets
        assert not any(m.is_decoy for m in collection)
        assert list(collection.matches) == kept


class TestPreconditions:

    def test_charge_mismatch(self, protein_db, params, spectrum, stub_scorer):
        collection = MatchCollection(parameters=params)
        collection.add_matches(spectrum, 2, all_peptides(protein_db), stub_scorer)
        with pytest.raises(PreconditionError):
            collection.add_matches(spectrum, 3, all_peptides(protein_db), stub_scorer)

    def test_missing_spectrum(self, protein_db, params, stub_scorer):
        with pytest.raises(PreconditionError):
            MatchCollection(parameters=params).add_matches(
                None, 2, all_peptides(protein_db), stub_scorer
            )

    def test_locked_collection(self, protein_db, params, spectrum, stub_scorer):
        collection = MatchCollection(parameters=params)
        collection.add_matches(spectrum, 2, all_peptides(protein_db), stub_scorer)
        with collection.iter_matches(ScoreType.XCORR):
            with pytest.raises(PreconditionError):
                collection.add_matches(spectrum, 2, all_peptides(protein_db), stub_scorer)
