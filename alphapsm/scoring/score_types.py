"""Score types and their ordering relations.

Every match carries one score slot and one rank slot per ``ScoreType``.
Several types share an ordering (a raw score and its log-probability
transform sort identically); ``sort_key_type`` maps each type to the
representative the collection actually sorts by, so a collection sorted for
one member of a class does not need to be resorted for another.

Examples
--------
>>> from alphapsm.scoring.score_types import ScoreType, new_score_array, sort_key_type
>>> sort_key_type(ScoreType.LOGP_WEIBULL_XCORR)
<ScoreType.XCORR: 1>
>>> new_score_array()[ScoreType.SP]
-inf
"""

from enum import IntEnum
from typing import Optional

import numpy as np

from ..constants import NOT_SCORED


class ScoreType(IntEnum):
    """Score slots in persisted order. Do not reorder."""

    SP = 0
    XCORR = 1
    DOTP = 2
    LOGP_EXP_SP = 3
    LOGP_BONF_EXP_SP = 4
    LOGP_EVD_XCORR = 5
    LOGP_BONF_EVD_XCORR = 6
    LOGP_WEIBULL_SP = 7
    LOGP_BONF_WEIBULL_SP = 8
    LOGP_WEIBULL_XCORR = 9
    LOGP_BONF_WEIBULL_XCORR = 10  # -log(Bonferroni corrected p-value)
    Q_VALUE = 11
    PERCOLATOR_SCORE = 12
    LOGP_QVALUE_WEIBULL_XCORR = 13  # -log(BH q-value)
    DECOY_XCORR_QVALUE = 14
    DECOY_PVALUE_QVALUE = 15
    QRANKER_SCORE = 16
    QRANKER_Q_VALUE = 17


NUM_SCORE_TYPES = len(ScoreType)

# .csm format version constant: the two trailing types were added after the
# format was fixed and are never written or read.
CSM_SCORED_FLAG_COUNT = NUM_SCORE_TYPES - 2


# =============================================================================
# Ordering
# =============================================================================

_SORT_KEY_TYPE = {
    ScoreType.SP: ScoreType.SP,
    ScoreType.LOGP_EXP_SP: ScoreType.SP,
    ScoreType.LOGP_BONF_EXP_SP: ScoreType.SP,
    ScoreType.LOGP_WEIBULL_SP: ScoreType.SP,
    ScoreType.LOGP_BONF_WEIBULL_SP: ScoreType.SP,
    ScoreType.XCORR: ScoreType.XCORR,
    ScoreType.LOGP_EVD_XCORR: ScoreType.XCORR,
    ScoreType.LOGP_BONF_EVD_XCORR: ScoreType.XCORR,
    ScoreType.LOGP_WEIBULL_XCORR: ScoreType.XCORR,
    ScoreType.LOGP_BONF_WEIBULL_XCORR: ScoreType.LOGP_BONF_WEIBULL_XCORR,
    ScoreType.LOGP_QVALUE_WEIBULL_XCORR: ScoreType.LOGP_QVALUE_WEIBULL_XCORR,
    ScoreType.DECOY_XCORR_QVALUE: ScoreType.DECOY_XCORR_QVALUE,
    ScoreType.DECOY_PVALUE_QVALUE: ScoreType.DECOY_PVALUE_QVALUE,
    ScoreType.Q_VALUE: ScoreType.PERCOLATOR_SCORE,
    ScoreType.PERCOLATOR_SCORE: ScoreType.PERCOLATOR_SCORE,
    ScoreType.QRANKER_Q_VALUE: ScoreType.QRANKER_SCORE,
    ScoreType.QRANKER_SCORE: ScoreType.QRANKER_SCORE,
}

# Types whose best value is the smallest one
_ASCENDING_TYPES = frozenset({
    ScoreType.DECOY_XCORR_QVALUE,
    ScoreType.DECOY_PVALUE_QVALUE,
})


def sort_key_type(score_type: ScoreType) -> Optional[ScoreType]:
    """Return the type a collection is physically sorted by for ``score_type``.

    Returns None for types that have no ordering (DOTP).
    """
    return _SORT_KEY_TYPE.get(ScoreType(score_type))


def is_rank_equivalent(sorted_by: Optional[ScoreType], score_type: ScoreType) -> bool:
    """True if an order by ``sorted_by`` is also an order by ``score_type``."""
    if sorted_by is None:
        return False
    key = sort_key_type(score_type)
    return key is not None and key == sort_key_type(sorted_by)


def lower_is_better(score_type: ScoreType) -> bool:
    return sort_key_type(score_type) in _ASCENDING_TYPES


# =============================================================================
# Enum-indexed storage
# =============================================================================

def new_score_array() -> np.ndarray:
    """Score slots for every type, initialised to ``NOT_SCORED``."""
    return np.full(NUM_SCORE_TYPES, NOT_SCORED, dtype=np.float64)


def new_rank_array() -> np.ndarray:
    return np.zeros(NUM_SCORE_TYPES, dtype=np.int32)


def new_scored_flags() -> np.ndarray:
    return np.zeros(NUM_SCORE_TYPES, dtype=np.bool_)


# =============================================================================
# Names
# =============================================================================

_SCORE_TYPE_NAMES = {
    ScoreType.SP: "sp",
    ScoreType.XCORR: "xcorr",
    ScoreType.DOTP: "dotp",
    ScoreType.LOGP_EXP_SP: "logp_exp_sp",
    ScoreType.LOGP_BONF_EXP_SP: "logp_bonf_exp_sp",
    ScoreType.LOGP_EVD_XCORR: "logp_evd_xcorr",
    ScoreType.LOGP_BONF_EVD_XCORR: "logp_bonf_evd_xcorr",
    ScoreType.LOGP_WEIBULL_SP: "logp_weibull_sp",
    ScoreType.LOGP_BONF_WEIBULL_SP: "logp_bonf_weibull_sp",
    ScoreType.LOGP_WEIBULL_XCORR: "logp_weibull_xcorr",
    ScoreType.LOGP_BONF_WEIBULL_XCORR: "logp_bonf_weibull_xcorr",
    ScoreType.Q_VALUE: "q_value",
    ScoreType.PERCOLATOR_SCORE: "percolator_score",
    ScoreType.LOGP_QVALUE_WEIBULL_XCORR: "logp_qvalue_weibull_xcorr",
    ScoreType.DECOY_XCORR_QVALUE: "decoy_xcorr_qvalue",
    ScoreType.DECOY_PVALUE_QVALUE: "decoy_pvalue_qvalue",
    ScoreType.QRANKER_SCORE: "qranker_score",
    ScoreType.QRANKER_Q_VALUE: "qranker_q_value",
}

_NAME_TO_SCORE_TYPE = {name: score_type for score_type, name in _SCORE_TYPE_NAMES.items()}


def score_type_to_string(score_type: ScoreType) -> str:
    return _SCORE_TYPE_NAMES[ScoreType(score_type)]


def string_to_score_type(name: str) -> ScoreType:
    """Parse a score type name (case-insensitive).

    Raises
    ------
    ValueError
        If the name is unknown.
    """
    key = name.strip().lower()
    if key not in _NAME_TO_SCORE_TYPE:
        raise ValueError(
            f"Unknown score type: {name}. "
            f"Must be one of {sorted(_NAME_TO_SCORE_TYPE)}"
        )
    return _NAME_TO_SCORE_TYPE[key]
