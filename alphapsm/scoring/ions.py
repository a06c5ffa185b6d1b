"""b/y fragment ions and spectrum comparison kernels (Numba).

Fragments are generated from per-residue masses rather than residue letters,
so modified residues need no special handling: the caller passes the mass
of each residue including any modification mass change.

Two comparisons back the reference scorer:

1. Peak counting: theoretical fragments are looked up in the observed m/z
   array by binary search within an absolute tolerance (Da)
2. Cross-correlation: both spectra are binned at unit resolution and the
   observed spectrum is background-corrected by subtracting the mean of
   its neighbouring bins, so the score is a dot product minus the mean
   dot product over shifted alignments

Examples
--------
>>> import numpy as np
>>> from alphapsm.modifications import residue_masses
>>> masses = np.array(residue_masses("PEPTIDEK"))
>>> mz, ion_type, position, charge = generate_by_ions(masses, 2)
>>> spectrum_mz = np.sort(mz[:5]).astype(np.float64)
>>> n_matched, intensity = count_matched_ions(
...     mz, spectrum_mz, np.ones(5), 0.5)
"""

import math
from typing import Tuple

import numba
import numpy as np

from ..constants import H2O_MASS, PROTON_MASS

# Unit spacing between peptide peaks, used as the cross-correlation bin width
MASS_BIN_WIDTH = 1.0005079
BIN_OFFSET = 0.4

# Intensity assigned to every theoretical b/y peak
THEORETICAL_PEAK_HEIGHT = 50.0


# =============================================================================
# Fragment Generation
# =============================================================================

@numba.jit(nopython=True, cache=True)
def generate_by_ions(
    residue_masses: np.ndarray,
    precursor_charge: int,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Theoretical b/y fragment m/z values for one peptide.

    Parameters
    ----------
    residue_masses : np.ndarray (float64)
        Mass of each residue, modifications included
    precursor_charge : int
        Precursor charge; fragments carry charge 1 to max(1, charge - 1)

    Returns
    -------
    fragment_mz : np.ndarray (float64)
    fragment_type : np.ndarray (uint8)
        0 = b, 1 = y
    fragment_position : np.ndarray (uint16)
        Residues contained in the fragment
    fragment_charge : np.ndarray (uint8)

    Notes
    -----
    Fragments with charge greater than their position are skipped.
    """
    length = len(residue_masses)
    n_positions = length - 1
    max_fragment_charge = max(1, precursor_charge - 1)
    max_fragments = max(0, n_positions) * 2 * max_fragment_charge

    fragment_mz = np.empty(max_fragments, dtype=np.float64)
    fragment_type = np.empty(max_fragments, dtype=np.uint8)
    fragment_position = np.empty(max_fragments, dtype=np.uint16)
    fragment_charge = np.empty(max_fragments, dtype=np.uint8)

    prefix = np.zeros(length + 1, dtype=np.float64)
    for i in range(length):
        prefix[i + 1] = prefix[i] + residue_masses[i]
    total = prefix[length]

    idx = 0
    for ion_type in range(2):
        for position in range(1, n_positions + 1):
            if ion_type == 0:
                neutral = prefix[position]
            else:
                neutral = total - prefix[length - position] + H2O_MASS
            for charge in range(1, max_fragment_charge + 1):
                if charge > position:
                    continue
                fragment_mz[idx] = (neutral + charge * PROTON_MASS) / charge
                fragment_type[idx] = ion_type
                fragment_position[idx] = position
                fragment_charge[idx] = charge
                idx += 1

    return (
        fragment_mz[:idx],
        fragment_type[:idx],
        fragment_position[:idx],
        fragment_charge[:idx],
    )


# =============================================================================
# Peak Matching
# =============================================================================

@numba.jit(nopython=True, cache=True)
def binary_search_mz(spectrum_mz: np.ndarray, target_mz: float, tol_da: float) -> int:
    """Index of the closest peak within ``tol_da`` of ``target_mz``, or -1.

    ``spectrum_mz`` must be sorted ascending.
    """
    n = len(spectrum_mz)
    if n == 0:
        return -1

    mz_min = target_mz - tol_da
    mz_max = target_mz + tol_da

    left, right = 0, n
    while left < right:
        mid = (left + right) // 2
        if spectrum_mz[mid] < mz_min:
            left = mid + 1
        else:
            right = mid

    if left >= n or spectrum_mz[left] > mz_max:
        return -1

    closest_idx = left
    min_error = abs(spectrum_mz[left] - target_mz)
    idx = left + 1
    while idx < n and spectrum_mz[idx] <= mz_max:
        error = abs(spectrum_mz[idx] - target_mz)
        if error < min_error:
            min_error = error
            closest_idx = idx
        idx += 1

    return closest_idx


@numba.jit(nopython=True, cache=True)
def count_matched_ions(
    fragment_mz: np.ndarray,
    spectrum_mz: np.ndarray,
    spectrum_intensity: np.ndarray,
    tol_da: float,
) -> Tuple[int, float]:
    """Count theoretical fragments found in the spectrum.

    Returns
    -------
    n_matched : int
        Fragments with a peak within tolerance
    matched_intensity : float
        Summed intensity of the matched peaks (each peak counted once per
        fragment that hits it)
    """
    n_matched = 0
    matched_intensity = 0.0
    for i in range(len(fragment_mz)):
        peak_idx = binary_search_mz(spectrum_mz, fragment_mz[i], tol_da)
        if peak_idx >= 0:
            n_matched += 1
            matched_intensity += spectrum_intensity[peak_idx]
    return n_matched, matched_intensity


# =============================================================================
# Cross-Correlation
# =============================================================================

@numba.jit(nopython=True, cache=True)
def mz_to_bin(mz: float) -> int:
    return int(mz / MASS_BIN_WIDTH + 1.0 - BIN_OFFSET)


@numba.jit(nopython=True, cache=True)
def preprocess_for_xcorr(
    spectrum_mz: np.ndarray,
    spectrum_intensity: np.ndarray,
    n_bins: int,
    max_offset: int,
) -> np.ndarray:
    """Binned, normalised and background-subtracted observed spectrum.

    Intensities are square-root transformed, binned (keeping the maximum per
    bin) and scaled to a maximum of 50. From every bin the mean of the bins
    within ``max_offset`` on either side (excluding itself) is subtracted.
    """
    binned = np.zeros(n_bins, dtype=np.float64)
    for i in range(len(spectrum_mz)):
        b = mz_to_bin(spectrum_mz[i])
        if b < 0 or b >= n_bins:
            continue
        value = math.sqrt(max(spectrum_intensity[i], 0.0))
        if value > binned[b]:
            binned[b] = value

    max_value = 0.0
    for b in range(n_bins):
        if binned[b] > max_value:
            max_value = binned[b]
    if max_value > 0.0:
        for b in range(n_bins):
            binned[b] = binned[b] / max_value * 50.0

    # running window sum over [b - max_offset, b + max_offset]
    cumulative = np.zeros(n_bins + 1, dtype=np.float64)
    for b in range(n_bins):
        cumulative[b + 1] = cumulative[b] + binned[b]

    processed = np.empty(n_bins, dtype=np.float64)
    window = 2.0 * max_offset
    for b in range(n_bins):
        lo = max(0, b - max_offset)
        hi = min(n_bins, b + max_offset + 1)
        neighbours = cumulative[hi] - cumulative[lo] - binned[b]
        processed[b] = binned[b] - neighbours / window
    return processed


@numba.jit(nopython=True, cache=True)
def xcorr_from_processed(fragment_mz: np.ndarray, processed: np.ndarray) -> float:
    """Cross-correlation of theoretical fragments against a processed spectrum."""
    n_bins = len(processed)
    total = 0.0
    for i in range(len(fragment_mz)):
        b = mz_to_bin(fragment_mz[i])
        if 0 <= b < n_bins:
            total += THEORETICAL_PEAK_HEIGHT * processed[b]
    return total / 10000.0
