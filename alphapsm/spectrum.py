"""Observed MS/MS spectrum."""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .constants import PROTON_MASS


@dataclass
class Spectrum:
    """One MS/MS spectrum.

    Peak arrays are optional: spectra rebuilt from ``.csm`` files only carry
    the scan number and precursor m/z.
    """

    first_scan: int
    precursor_mz: float
    mz: Optional[np.ndarray] = None
    intensity: Optional[np.ndarray] = None
    last_scan: int = field(default=-1)

    def __post_init__(self):
        if self.last_scan < 0:
            self.last_scan = self.first_scan
        if self.mz is not None:
            self.mz = np.asarray(self.mz, dtype=np.float64)
            self.intensity = np.asarray(self.intensity, dtype=np.float64)
            if self.mz.shape != self.intensity.shape:
                raise ValueError(
                    f"mz and intensity must have the same length: "
                    f"{len(self.mz)} vs {len(self.intensity)}"
                )

    @property
    def has_peaks(self) -> bool:
        return self.mz is not None and len(self.mz) > 0

    def neutral_mass(self, charge: int) -> float:
        """Neutral precursor mass for an assumed charge."""
        return (self.precursor_mz - PROTON_MASS) * charge

    def singly_charged_mass(self, charge: int) -> float:
        return self.neutral_mass(charge) + PROTON_MASS
