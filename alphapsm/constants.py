"""Constants for match collection scoring, calibration and persistence.

This module collects the physical constants needed to compute peptide and
fragment masses together with the reserved score sentinels, capacity limits
and calibration search bounds used throughout alphapsm.

Constants are provided in both dictionary and ord()-indexed array formats
so they can be used from plain Python and from Numba JIT-compiled code.

Key Features
------------
- Monoisotopic amino acid residue masses (dict and ord()-indexed array)
- Reserved sentinels for "not scored" and "p-value not applicable"
- Per-spectrum match capacity
- Weibull shift search ranges for XCorr and Sp calibration

Sources
-------
- NIST physical constants: https://physics.nist.gov/cgi-bin/cuu/Value
- IUPAC amino acid masses: https://www.unimod.org/masses.html
"""

import math

import numpy as np

# =============================================================================
# Fundamental Physical Constants (NIST values)
# =============================================================================

# Proton mass (NOT hydrogen atom mass!)
PROTON_MASS = 1.007276466622  # Da

# Water mass (H2O)
H2O_MASS = 18.010564684  # Da

# Ammonia mass (NH3)
NH3_MASS = 17.026549101  # Da

# =============================================================================
# Amino Acid Monoisotopic Masses (Da)
# =============================================================================

AA_MASSES_DICT = {
    'A': 71.037114,
    'R': 156.101111,
    'N': 114.042927,
    'D': 115.026943,
    'C': 103.009185,
    'E': 129.042593,
    'Q': 128.058578,
    'G': 57.021464,
    'H': 137.058912,
    'I': 113.084064,
    'L': 113.084064,
    'K': 128.094963,
    'M': 131.040485,
    'F': 147.068414,
    'P': 97.052764,
    'S': 87.032028,
    'T': 101.047679,
    'W': 186.079313,
    'Y': 163.063320,
    'V': 99.068414,
}

# Ambiguous one-letter codes found in sequence databases
AA_MASSES_NONSTANDARD = {
    'X': 113.084064,  # Unknown → Leu/Ile
    'Z': 128.058578,  # Glu/Gln → Gln
    'B': 114.042927,  # Asp/Asn → Asn
    'J': 113.084064,  # Leu/Ile
    'U': 103.009185,  # Selenocysteine → Cys
    'O': 131.040485,  # Pyrrolysine → Met
}

# Access via: AA_MASSES[ord('A')] → 71.037114
AA_MASSES = np.zeros(256, dtype=np.float64)
for aa, mass in AA_MASSES_DICT.items():
    AA_MASSES[ord(aa)] = mass
for aa, mass in AA_MASSES_NONSTANDARD.items():
    AA_MASSES[ord(aa)] = mass

# =============================================================================
# Score Sentinels
# =============================================================================

# Value held by every score slot that has not been computed.
# Survives a float32 round-trip through the .csm format unchanged.
NOT_SCORED = -math.inf

# Stored in the -log(p-value) slot when no calibration was possible.
# -log(p) is never negative, so -1 cannot collide with a real value.
P_VALUE_NA = -1.0

# =============================================================================
# Capacity
# =============================================================================

# Hard upper bound on matches held by one collection
MAX_NUMBER_PEPTIDES = 10_000_000

# Upper bound on pooled p-values in one q-value analysis
MAX_PSMS = 10_000_000

# =============================================================================
# Weibull Calibration
# =============================================================================

MIN_WEIBULL_MATCHES = 40

# Shift search range for XCorr-based fits
MIN_XCORR_SHIFT = -5.0
MAX_XCORR_SHIFT = 5.0
XCORR_SHIFT = 0.05

# Shift search range for Sp-based fits
MIN_SP_SHIFT = -100.0
MAX_SP_SHIFT = 300.0
SP_SHIFT = 5.0

# Minimum correlation for a fit to be accepted
CORR_THRESHOLD = 0.0

# =============================================================================
# FDR
# =============================================================================

# Tolerance when mapping a match back to its pooled -log(p-value)
EPSILON = 1e-14

BILLION = 1_000_000_000.0
