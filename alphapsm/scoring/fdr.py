"""Q-value estimation from decoys and from calibrated p-values (NumPy/Numba).

Two estimators are provided:

- Decoy counting: walk matches from best to worst score, estimate the local
  FDR as ``decoys_seen / targets_seen`` and enforce monotonicity by taking
  the running minimum from worst to best.
- Benjamini-Hochberg: convert a pooled array of top-match p-values into
  q-values. Works in -log space, where p-values are stored.

Key Features
------------
- Numba-compiled walks
- Sentinel-aware: entries flagged as not applicable are skipped
- Monotone output for both estimators

Examples
--------
>>> import numpy as np
>>> from alphapsm.scoring.fdr import compute_decoy_qvalues, compute_bh_qvalues
>>>
>>> # Labels sorted best to worst: T, D, T, T, D
>>> is_decoy = np.array([False, True, False, False, True])
>>> compute_decoy_qvalues(is_decoy)
array([0.        , 0.33333333, 0.33333333, 0.33333333, 0.66666667])
>>>
>>> # BH on -log(p)
>>> neg_log_p = -np.log(np.array([0.01, 0.04, 0.03]))
>>> pooled, neg_log_q = compute_bh_qvalues(neg_log_p, pi0=1.0)
>>> np.exp(-neg_log_q)
array([0.03, 0.04, 0.04])
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

import numpy as np
from numba import njit

from ..constants import BILLION, EPSILON, P_VALUE_NA


# =============================================================================
# Decoy Q-values
# =============================================================================

@njit
def _decoy_qvalues_core(is_decoy: np.ndarray, skip: np.ndarray, na_value: float) -> np.ndarray:
    """Decoy-counting q-values for matches sorted best to worst.

    Parameters
    ----------
    is_decoy : np.ndarray (bool)
        Decoy label per match, best first
    skip : np.ndarray (bool)
        Matches excluded from counting (receive ``na_value``)
    na_value : float
        Sentinel stored for skipped matches

    Returns
    -------
    qvalues : np.ndarray (float64)

    Notes
    -----
    Local FDR: decoys_seen / targets_seen, or 1.0 before the first target.
    Q-value: minimum local FDR at or below this position (starting from 1.0).
    """
    n = len(is_decoy)
    qvalues = np.empty(n, dtype=np.float64)

    num_targets = 0.0
    num_decoys = 0.0
    for i in range(n):
        if skip[i]:
            qvalues[i] = na_value
            continue
        if is_decoy[i]:
            num_decoys += 1.0
        else:
            num_targets += 1.0
        if num_targets == 0.0:
            qvalues[i] = 1.0
        else:
            qvalues[i] = num_decoys / num_targets

    min_fdr = 1.0
    for i in range(n - 1, -1, -1):
        if skip[i]:
            continue
        if qvalues[i] < min_fdr:
            min_fdr = qvalues[i]
        qvalues[i] = min_fdr

    return qvalues


def compute_decoy_qvalues(
    is_decoy: np.ndarray,
    skip: Optional[np.ndarray] = None,
    na_value: float = P_VALUE_NA,
) -> np.ndarray:
    """Decoy-counting q-values for matches already sorted best to worst.

    Parameters
    ----------
    is_decoy : np.ndarray (bool)
        Decoy label per match, best first
    skip : np.ndarray (bool), optional
        Matches to leave out of the counts (e.g. p-value not available)
    na_value : float
        Value stored for skipped matches (default: P_VALUE_NA)

    Returns
    -------
    qvalues : np.ndarray (float64)
        Non-decreasing from best to worst over non-skipped entries
    """
    is_decoy = np.asarray(is_decoy, dtype=np.bool_)
    if skip is None:
        skip = np.zeros(len(is_decoy), dtype=np.bool_)
    else:
        skip = np.asarray(skip, dtype=np.bool_)
    if len(skip) != len(is_decoy):
        raise ValueError(f"skip has length {len(skip)}, expected {len(is_decoy)}")
    if len(is_decoy) == 0:
        return np.array([], dtype=np.float64)
    return _decoy_qvalues_core(is_decoy, skip, na_value)


# =============================================================================
# Benjamini-Hochberg Q-values
# =============================================================================

@njit
def _bh_qvalues_core(sorted_neg_log_p: np.ndarray, pi0: float) -> np.ndarray:
    """BH q-values in -log space for -log(p) sorted descending.

    For 1-based index i of n::

        -log(q_i) = -log(p_i) - log(n) + log(i) - log(pi0)

    i.e. q_i = p_i * n / i * pi0, then monotonised from the worst entry
    to the best by carrying the running maximum of -log(q).
    """
    n = len(sorted_neg_log_p)
    neg_log_q = np.empty(n, dtype=np.float64)
    log_n = math.log(n)
    log_pi0 = math.log(pi0)

    for idx in range(n):
        neg_log_q[idx] = sorted_neg_log_p[idx] - log_n + math.log(idx + 1) - log_pi0

    max_neg_log_q = -BILLION
    for idx in range(n - 1, -1, -1):
        if neg_log_q[idx] > max_neg_log_q:
            max_neg_log_q = neg_log_q[idx]
        else:
            neg_log_q[idx] = max_neg_log_q

    return neg_log_q


def compute_bh_qvalues(neg_log_pvalues: np.ndarray, pi0: float = 1.0) -> Tuple[np.ndarray, np.ndarray]:
    """Benjamini-Hochberg q-values for a pool of -log(p-values).

    Parameters
    ----------
    neg_log_pvalues : np.ndarray
        Pooled -log(p-value) of top-ranked target matches
    pi0 : float
        Estimated fraction of true nulls (0 < pi0 <= 1)

    Returns
    -------
    pooled : np.ndarray (float64)
        Input sorted descending (ascending p-value)
    neg_log_qvalues : np.ndarray (float64)
        -log(q-value) aligned with ``pooled``

    Notes
    -----
    Q-values are non-decreasing in p-value. Use ``lookup_bh_qvalue`` to map a
    match's stored -log(p-value) back to its q-value.
    """
    if not 0.0 < pi0 <= 1.0:
        raise ValueError(f"pi0 must be in (0, 1], got {pi0}")
    pooled = np.sort(np.asarray(neg_log_pvalues, dtype=np.float64))[::-1].copy()
    if len(pooled) == 0:
        return pooled, np.array([], dtype=np.float64)
    return pooled, _bh_qvalues_core(pooled, pi0)


@njit
def _find_pooled_index(pooled: np.ndarray, value: float, epsilon: float) -> int:
    for idx in range(len(pooled)):
        element = pooled[idx]
        if element - epsilon <= value and element + epsilon >= value:
            return idx
    return -1


def lookup_bh_qvalue(
    pooled: np.ndarray,
    neg_log_qvalues: np.ndarray,
    neg_log_pvalue: float,
    epsilon: float = EPSILON,
) -> float:
    """-log(q-value) for a stored -log(p-value); NaN if absent from the pool."""
    if neg_log_pvalue == P_VALUE_NA:
        return math.nan
    if math.isinf(neg_log_pvalue):
        matches = np.nonzero(pooled == neg_log_pvalue)[0]
        return float(neg_log_qvalues[matches[0]]) if len(matches) else math.nan
    idx = _find_pooled_index(pooled, neg_log_pvalue, epsilon)
    if idx < 0:
        return math.nan
    return float(neg_log_qvalues[idx])


# =============================================================================
# Summary Statistics
# =============================================================================

def calculate_fdr_statistics(qvalues: np.ndarray, is_decoy: np.ndarray) -> dict[str, int | float]:
    """Count identifications at common FDR thresholds.

    Parameters
    ----------
    qvalues : np.ndarray
        Q-values (NaN and sentinel entries never pass)
    is_decoy : np.ndarray
        Decoy status

    Returns
    -------
    dict[str, int | float]
        - n_targets, n_decoys
        - n_targets_fdr01, n_targets_fdr05, n_targets_fdr10

    Examples
    --------
    >>> stats = calculate_fdr_statistics(np.array([0.0, 0.02]), np.array([False, False]))
    >>> stats["n_targets_fdr01"], stats["n_targets_fdr05"]
    (1, 2)
    """
    qvalues = np.asarray(qvalues, dtype=np.float64)
    is_decoy = np.asarray(is_decoy, dtype=np.bool_)
    valid = ~np.isnan(qvalues) & (qvalues >= 0.0)

    stats = {
        "n_targets": int(np.sum(~is_decoy)),
        "n_decoys": int(np.sum(is_decoy)),
    }
    for fdr_threshold in [0.01, 0.05, 0.10]:
        passing = (~is_decoy) & valid & (qvalues <= fdr_threshold)
        stats[f"n_targets_fdr{int(fdr_threshold * 100):02d}"] = int(np.sum(passing))

    return stats
