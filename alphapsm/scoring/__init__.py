"""Score types, scorers and the statistics behind p-values and q-values.

This module provides:
- Score type enumeration with sort-equivalence classes
- b/y fragment scoring (SP and XCORR)
- Three-parameter Weibull calibration with Bonferroni correction
- Decoy-counting and Benjamini-Hochberg q-values

Key Features
------------
- Numba-accelerated kernels for fitting and q-value walks
- Sentinel-aware: unscored and not-applicable values pass through untouched

Examples
--------
>>> from alphapsm.scoring import compute_decoy_qvalues
>>> qvalues = compute_decoy_qvalues(np.array([False, True, False]))
"""

from .score_types import (
    CSM_SCORED_FLAG_COUNT,
    NUM_SCORE_TYPES,
    ScoreType,
    is_rank_equivalent,
    lower_is_better,
    score_type_to_string,
    sort_key_type,
    string_to_score_type,
)
from .weibull import (
    bonferroni_correction,
    compute_neg_log_pvalues,
    compute_weibull_pvalue,
    fit_three_parameter_weibull,
    fit_two_parameter_weibull,
)
from .fdr import (
    calculate_fdr_statistics,
    compute_bh_qvalues,
    compute_decoy_qvalues,
    lookup_bh_qvalue,
)
from .ions import (
    count_matched_ions,
    generate_by_ions,
)
from .scorer import (
    FragmentScorer,
    Scorer,
)

__all__ = [
    # Score types
    "ScoreType",
    "NUM_SCORE_TYPES",
    "CSM_SCORED_FLAG_COUNT",
    "sort_key_type",
    "is_rank_equivalent",
    "lower_is_better",
    "score_type_to_string",
    "string_to_score_type",
    # Weibull calibration
    "fit_two_parameter_weibull",
    "fit_three_parameter_weibull",
    "compute_weibull_pvalue",
    "bonferroni_correction",
    "compute_neg_log_pvalues",
    # Q-values
    "compute_decoy_qvalues",
    "compute_bh_qvalues",
    "lookup_bh_qvalue",
    "calculate_fdr_statistics",
    # Fragment scoring
    "generate_by_ions",
    "count_matched_ions",
    "Scorer",
    "FragmentScorer",
]
