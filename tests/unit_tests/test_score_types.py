"""Tests for score types and their ordering classes."""

import unittest

import numpy as np

from alphapsm.scoring.score_types import (
    CSM_SCORED_FLAG_COUNT,
    NUM_SCORE_TYPES,
    ScoreType,
    is_rank_equivalent,
    lower_is_better,
    new_rank_array,
    new_score_array,
    score_type_to_string,
    sort_key_type,
    string_to_score_type,
)


class TestOrderingClasses(unittest.TestCase):
    """Types that share an ordering need no resort."""

    def test_xcorr_family(self):
        for score_type in (
            ScoreType.LOGP_EVD_XCORR,
            ScoreType.LOGP_BONF_EVD_XCORR,
            ScoreType.LOGP_WEIBULL_XCORR,
        ):
            self.assertEqual(sort_key_type(score_type), ScoreType.XCORR)

    def test_sp_family(self):
        for score_type in (
            ScoreType.LOGP_EXP_SP,
            ScoreType.LOGP_BONF_EXP_SP,
            ScoreType.LOGP_WEIBULL_SP,
            ScoreType.LOGP_BONF_WEIBULL_SP,
        ):
            self.assertEqual(sort_key_type(score_type), ScoreType.SP)

    def test_bonferroni_pvalue_is_its_own_class(self):
        self.assertEqual(
            sort_key_type(ScoreType.LOGP_BONF_WEIBULL_XCORR),
            ScoreType.LOGP_BONF_WEIBULL_XCORR,
        )
        self.assertFalse(is_rank_equivalent(ScoreType.XCORR, ScoreType.LOGP_BONF_WEIBULL_XCORR))

    def test_learned_scores_sort_by_score(self):
        self.assertEqual(sort_key_type(ScoreType.Q_VALUE), ScoreType.PERCOLATOR_SCORE)
        self.assertEqual(sort_key_type(ScoreType.QRANKER_Q_VALUE), ScoreType.QRANKER_SCORE)

    def test_dotp_has_no_ordering(self):
        self.assertIsNone(sort_key_type(ScoreType.DOTP))
        self.assertFalse(is_rank_equivalent(ScoreType.DOTP, ScoreType.DOTP))

    def test_rank_equivalence(self):
        self.assertTrue(is_rank_equivalent(ScoreType.XCORR, ScoreType.LOGP_WEIBULL_XCORR))
        self.assertFalse(is_rank_equivalent(ScoreType.SP, ScoreType.XCORR))
        self.assertFalse(is_rank_equivalent(None, ScoreType.XCORR))

    def test_qvalue_types_ascend(self):
        self.assertTrue(lower_is_better(ScoreType.DECOY_XCORR_QVALUE))
        self.assertTrue(lower_is_better(ScoreType.DECOY_PVALUE_QVALUE))
        self.assertFalse(lower_is_better(ScoreType.XCORR))


class TestStorage(unittest.TestCase):

    def test_score_array_starts_unscored(self):
        scores = new_score_array()
        self.assertEqual(len(scores), NUM_SCORE_TYPES)
        self.assertTrue(np.all(np.isneginf(scores)))

    def test_rank_array_starts_at_zero(self):
        self.assertTrue(np.all(new_rank_array() == 0))

    def test_persisted_flag_count(self):
        self.assertEqual(NUM_SCORE_TYPES, 18)
        self.assertEqual(CSM_SCORED_FLAG_COUNT, 16)

    def test_enum_order_is_fixed(self):
        self.assertEqual(int(ScoreType.SP), 0)
        self.assertEqual(int(ScoreType.LOGP_BONF_WEIBULL_XCORR), 10)
        self.assertEqual(int(ScoreType.DECOY_PVALUE_QVALUE), 15)


class TestNames(unittest.TestCase):

    def test_name_round_trip(self):
        for score_type in ScoreType:
            self.assertEqual(string_to_score_type(score_type_to_string(score_type)), score_type)

    def test_parsing_ignores_case(self):
        self.assertEqual(string_to_score_type(" XCorr "), ScoreType.XCORR)

    def test_unknown_name(self):
        with self.assertRaises(ValueError):
            string_to_score_type("hyperscore")


if __name__ == "__main__":
    unittest.main()
