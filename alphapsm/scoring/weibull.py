"""Three-parameter Weibull calibration of match scores (Numba).

The score distribution of random candidates for one spectrum is modelled by a
shifted Weibull survival function::

    P(S >= s) = exp(-((s + shift) / eta) ** beta)

The fit uses rank regression on Y: for a fixed shift the top-scoring tail
of the descending-sorted sample gives points

    X_i = log(s_i + shift)
    Y_i = log(-log((i + 0.5) / n))

which lie on a line with slope ``beta`` and intercept ``-beta * log(eta)``.
The shift is chosen by grid search as the one maximising the Pearson
correlation of (X, Y).

Examples
--------
>>> import numpy as np
>>> rng = np.random.default_rng(0)
>>> scores = np.sort(rng.weibull(2.0, 500) * 1.5 - 0.3)[::-1]
>>> eta, beta, shift, corr = fit_three_parameter_weibull(
...     scores, 250, 500, -5.0, 5.0, 0.05, 0.0)
>>> pvalue = compute_weibull_pvalue(3.0, eta, beta, shift)
>>> corrected = bonferroni_correction(pvalue, 500)
"""

import math
from typing import Tuple

import numpy as np
from numba import njit


@njit
def _pearson_correlation(x: np.ndarray, y: np.ndarray) -> float:
    n = len(x)
    mean_x = 0.0
    mean_y = 0.0
    for i in range(n):
        mean_x += x[i]
        mean_y += y[i]
    mean_x /= n
    mean_y /= n

    sxy = 0.0
    sxx = 0.0
    syy = 0.0
    for i in range(n):
        dx = x[i] - mean_x
        dy = y[i] - mean_y
        sxy += dx * dy
        sxx += dx * dx
        syy += dy * dy

    if sxx == 0.0 or syy == 0.0:
        return 0.0
    return sxy / math.sqrt(sxx * syy)


@njit
def fit_two_parameter_weibull(
    scores: np.ndarray,
    num_tail: int,
    num_total: int,
    shift: float,
) -> Tuple[float, float, float]:
    """Fit eta and beta for a fixed shift by rank regression on Y.

    Parameters
    ----------
    scores : np.ndarray
        Scores sorted descending
    num_tail : int
        Number of top scores to use
    num_total : int
        Size of the full sample (sets the empirical survival values)
    shift : float
        Location shift added to every score

    Returns
    -------
    eta : float
        Scale parameter (0.0 if fewer than two usable points)
    beta : float
        Shape parameter
    correlation : float
        Pearson correlation of the regression points
    """
    x = np.empty(num_tail, dtype=np.float64)
    y = np.empty(num_tail, dtype=np.float64)
    n = 0
    for idx in range(num_tail):
        shifted = scores[idx] + shift
        if shifted <= 0.0:
            # scores are descending, the rest are out of range too
            break
        x[n] = math.log(shifted)
        y[n] = math.log(-math.log((idx + 0.5) / num_total))
        n += 1

    if n < 2:
        return 0.0, 0.0, 0.0

    xs = x[:n]
    ys = y[:n]

    mean_x = np.mean(xs)
    mean_y = np.mean(ys)
    sxx = np.sum((xs - mean_x) ** 2)
    if sxx == 0.0:
        return 0.0, 0.0, 0.0
    beta = np.sum((xs - mean_x) * (ys - mean_y)) / sxx
    intercept = mean_y - beta * mean_x
    if beta == 0.0:
        return 0.0, 0.0, 0.0
    eta = math.exp(-intercept / beta)

    return eta, beta, _pearson_correlation(xs, ys)


@njit
def fit_three_parameter_weibull(
    scores: np.ndarray,
    num_tail: int,
    num_total: int,
    min_shift: float,
    max_shift: float,
    step: float,
    corr_threshold: float,
) -> Tuple[float, float, float, float]:
    """Grid search over the shift for the best two-parameter fit.

    Parameters
    ----------
    scores : np.ndarray
        Scores sorted descending
    num_tail : int
        Number of top scores to fit
    num_total : int
        Size of the full sample
    min_shift, max_shift : float
        Shift search range (inclusive)
    step : float
        Grid spacing
    corr_threshold : float
        Fits with a lower correlation are rejected

    Returns
    -------
    eta, beta, shift, correlation : float
        Best fit; all zero if no shift produced an acceptable fit
    """
    best_eta = 0.0
    best_beta = 0.0
    best_shift = 0.0
    best_corr = -1.0
    found = False

    n_steps = int(round((max_shift - min_shift) / step))
    for i in range(n_steps + 1):
        shift = max_shift - i * step
        eta, beta, corr = fit_two_parameter_weibull(scores, num_tail, num_total, shift)
        if eta == 0.0:
            continue
        if corr > best_corr:
            best_eta = eta
            best_beta = beta
            best_shift = shift
            best_corr = corr
            found = True

    if not found or best_corr < corr_threshold:
        return 0.0, 0.0, 0.0, 0.0
    return best_eta, best_beta, best_shift, best_corr


@njit
def compute_weibull_pvalue(score: float, eta: float, beta: float, shift: float) -> float:
    """Survival probability of ``score`` under the fitted Weibull.

    Returns 1.0 for scores at or below ``-shift``.
    """
    shifted = score + shift
    if shifted <= 0.0:
        return 1.0
    return math.exp(-((shifted / eta) ** beta))


@njit
def bonferroni_correction(p_value: float, num_tests: int) -> float:
    """Probability of at least one of ``num_tests`` draws reaching ``p_value``.

    Computed as ``1 - (1 - p) ** n`` in a form that stays accurate for
    small p.
    """
    if p_value >= 1.0:
        return 1.0
    if p_value <= 0.0:
        return 0.0
    return -math.expm1(num_tests * math.log1p(-p_value))


@njit
def compute_neg_log_pvalues(
    scores: np.ndarray,
    eta: float,
    beta: float,
    shift: float,
    num_tests: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """Raw p-values and -log(Bonferroni corrected p-value) for many scores."""
    n = len(scores)
    raw = np.empty(n, dtype=np.float64)
    neg_log = np.empty(n, dtype=np.float64)
    for i in range(n):
        p = compute_weibull_pvalue(scores[i], eta, beta, shift)
        raw[i] = p
        corrected = bonferroni_correction(p, num_tests)
        if corrected > 0.0:
            neg_log[i] = -math.log(corrected)
        else:
            neg_log[i] = np.inf
    return raw, neg_log
