"""Tests for Weibull calibration and p-values."""

import io
import math

import numpy as np
import pytest

from alphapsm.config import SearchParameters
from alphapsm.constants import P_VALUE_NA
from alphapsm.database import Peptide, PeptideSupply, PeptideSrc
from alphapsm.match import MatchCollection
from alphapsm.exceptions import NotScoredError
from alphapsm.scoring import ScoreType
from alphapsm.scoring.weibull import (
    bonferroni_correction,
    compute_weibull_pvalue,
    fit_three_parameter_weibull,
    fit_two_parameter_weibull,
)


class QueueScorer:
    """Returns preset scores in call order."""

    def __init__(self, values):
        self.values = list(values)
        self.idx = 0

    def score(self, spectrum, match, score_type):
        value = self.values[self.idx]
        self.idx += 1
        return float(value)


def repeated_supply(test_protein, n):
    peptide = Peptide(
        sequence=test_protein.sequence[2:10],
        sources=[PeptideSrc(test_protein, 3)],
        mass=1000.0,
    )
    return PeptideSupply([peptide] * n)


def weibull_scores(n, seed=1):
    rng = np.random.default_rng(seed)
    return 1.5 * rng.weibull(2.0, n)


@pytest.fixture
def calibrated(test_protein, spectrum):
    """Collection whose pool holds 400 Weibull-distributed scores."""
    params = SearchParameters.for_pvalue_search(max_rank_preliminary=0)
    collection = MatchCollection(parameters=params)
    scores = weibull_scores(400)
    collection.add_matches(spectrum, 2, repeated_supply(test_protein, 400), QueueScorer(scores))
    return collection


class TestFit:
    """Rank regression on synthetic Weibull samples."""

    def test_recovers_shape(self):
        scores = np.sort(weibull_scores(2000))[::-1].copy()
        eta, beta, shift, corr = fit_three_parameter_weibull(
            scores, 1000, 2000, -1.0, 1.0, 0.05, 0.0
        )
        assert eta > 0.0
        assert corr > 0.95
        assert 1.0 < beta < 4.0

    def test_two_parameter_needs_points(self):
        scores = np.array([-1.0, -2.0, -3.0])
        eta, beta, corr = fit_two_parameter_weibull(scores, 3, 3, 0.0)
        assert (eta, beta, corr) == (0.0, 0.0, 0.0)

    def test_unacceptable_fit(self):
        scores = np.array([-10.0, -11.0, -12.0])
        assert fit_three_parameter_weibull(scores, 3, 3, -1.0, 1.0, 0.5, 0.0) == (0.0, 0.0, 0.0, 0.0)


class TestPValues:

    def test_pvalue_decreases_with_score(self):
        p_low = compute_weibull_pvalue(1.0, 1.5, 2.0, 0.0)
        p_high = compute_weibull_pvalue(3.0, 1.5, 2.0, 0.0)
        assert 0.0 < p_high < p_low < 1.0

    def test_pvalue_below_shift(self):
        assert compute_weibull_pvalue(-2.0, 1.5, 2.0, 1.0) == 1.0

    def test_bonferroni(self):
        assert bonferroni_correction(0.5, 1) == pytest.approx(0.5)
        assert bonferroni_correction(1e-12, 1000) == pytest.approx(1e-9, rel=1e-6)
        assert bonferroni_correction(1.0, 50) == 1.0
        assert bonferroni_correction(0.1, 2) == pytest.approx(1 - 0.9 ** 2)


class TestEstimateWeibull:

    def test_too_few_samples(self, make_collection):
        collection = make_collection([1.0, 2.0])
        collection.eta = 0.7
        assert not collection.estimate_weibull()
        assert collection.eta == 0.7

    def test_too_few_samples_warns_when_pvalues_requested(self, test_protein, spectrum):
        params = SearchParameters.for_pvalue_search(max_rank_preliminary=0)
        collection = MatchCollection(parameters=params)
        collection.add_matches(spectrum, 2, repeated_supply(test_protein, 10), QueueScorer(range(10)))
        with pytest.warns(UserWarning):
            assert not collection.estimate_weibull()

    def test_fit_on_pool(self, calibrated):
        assert calibrated.estimate_weibull()
        assert calibrated.eta > 0.0
        assert calibrated.beta > 0.0
        assert calibrated.correlation > 0.9
        pool = np.asarray(calibrated.xcorr_sample)
        assert np.all(np.diff(pool) <= 0.0)

    def test_transfer(self, calibrated, make_collection):
        calibrated.estimate_weibull()
        other = make_collection([1.0])
        calibrated.transfer_weibull(other)
        assert (other.eta, other.beta, other.shift, other.correlation) == (
            calibrated.eta, calibrated.beta, calibrated.shift, calibrated.correlation
        )


class TestComputePValues:

    def test_neg_log_pvalues(self, calibrated):
        calibrated.estimate_weibull()
        assert calibrated.compute_p_values()
        assert calibrated.is_scored(ScoreType.LOGP_BONF_WEIBULL_XCORR)
        match = calibrated[0]
        expected = -math.log(bonferroni_correction(
            compute_weibull_pvalue(
                match.get_score(ScoreType.XCORR), calibrated.eta, calibrated.beta, calibrated.shift
            ),
            calibrated.experiment_size,
        ))
        assert match.get_score(ScoreType.LOGP_BONF_WEIBULL_XCORR) == pytest.approx(expected)

    def test_pvalue_file(self, calibrated):
        calibrated.estimate_weibull()
        out = io.StringIO()
        calibrated.compute_p_values(out)
        lines = out.getvalue().splitlines()
        assert lines[0].startswith("# scan: 1001 charge: 2 candidates: 400")
        assert lines[1].startswith("# eta:")
        assert len(lines) == 2 + len(calibrated)

    def test_without_fit(self, make_collection):
        collection = make_collection([2.0, 1.0])
        collection.compute_p_values()
        assert all(m.get_score(ScoreType.LOGP_BONF_WEIBULL_XCORR) == P_VALUE_NA for m in collection)

    def test_requires_main_score(self, make_match):
        collection = MatchCollection()
        collection.add_match(make_match(sp=1.0))
        with pytest.raises(NotScoredError):
            collection.compute_p_values()
