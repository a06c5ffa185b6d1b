"""Run parameters for match collection scoring and analysis.

Every collection, codec and analysis entry point receives a
``SearchParameters`` instance explicitly; there is no global parameter table.

Examples
--------
>>> params = SearchParameters(psms_per_spectrum_reported=1)
>>> params.validate()
>>> SearchParameters.for_pvalue_search().compute_p_values
True
"""

from dataclasses import dataclass, field, replace
from typing import Tuple

from .constants import MAX_NUMBER_PEPTIDES
from .modifications import AAMod
from .scoring.score_types import ScoreType


@dataclass
class SearchParameters:
    """Parameters shared by the search and analysis phases."""

    # Ranking and truncation
    max_rank_preliminary: int = 500  # 0 = skip preliminary scoring
    prelim_score_type: ScoreType = ScoreType.SP
    score_type: ScoreType = ScoreType.XCORR
    psms_per_spectrum_reported: int = 5
    top_match: int = 5  # matches serialized per spectrum block

    # Capacity per collection
    max_matches: int = MAX_NUMBER_PEPTIDES

    # Weibull calibration
    compute_p_values: bool = False
    fraction_top_scores_to_fit: float = 0.55

    # FDR
    pi0: float = 1.0

    # Persistence
    num_decoy_files: int = 1
    overwrite: bool = False

    modifications: Tuple[AAMod, ...] = field(default_factory=tuple)

    def validate(self) -> None:
        """Check parameter ranges.

        Raises
        ------
        ValueError
            If any parameter is out of range.
        """
        if self.max_rank_preliminary < 0:
            raise ValueError(f"max_rank_preliminary must be >= 0, got {self.max_rank_preliminary}")
        if self.psms_per_spectrum_reported < 1:
            raise ValueError(
                f"psms_per_spectrum_reported must be >= 1, got {self.psms_per_spectrum_reported}"
            )
        if self.top_match < 1:
            raise ValueError(f"top_match must be >= 1, got {self.top_match}")
        if self.max_matches < 1:
            raise ValueError(f"max_matches must be >= 1, got {self.max_matches}")
        if not 0.0 <= self.fraction_top_scores_to_fit <= 1.0:
            raise ValueError(
                f"fraction_top_scores_to_fit must be in [0, 1], got {self.fraction_top_scores_to_fit}"
            )
        if not 0.0 < self.pi0 <= 1.0:
            raise ValueError(f"pi0 must be in (0, 1], got {self.pi0}")
        if not 0 <= self.num_decoy_files <= 3:
            raise ValueError(f"num_decoy_files must be in [0, 3], got {self.num_decoy_files}")
        if self.prelim_score_type == self.score_type:
            raise ValueError("prelim_score_type and score_type must differ")
        symbols = [mod.symbol for mod in self.modifications]
        if len(symbols) != len(set(symbols)):
            raise ValueError(f"Modification symbols must be unique, got {symbols}")

    @classmethod
    def for_pvalue_search(cls, **overrides) -> 'SearchParameters':
        """Parameters for a search that calibrates XCorr with a Weibull fit.

        Keeps every candidate's XCorr for calibration and reports one
        match per spectrum.
        """
        params = cls(
            compute_p_values=True,
            psms_per_spectrum_reported=1,
            top_match=1,
        )
        return replace(params, **overrides)
