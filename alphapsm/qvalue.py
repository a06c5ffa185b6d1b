"""Experiment-level q-values from a directory of ``.csm`` files.

``run_qvalue`` pools the top-ranked (XCORR rank 1) match of every spectrum
from the target set and at most one decoy set, then computes:

1. Decoy q-values ranked by XCORR (when a decoy set exists)
2. Decoy q-values ranked by -log p-value (when decoys and p-values exist)
3. Benjamini-Hochberg q-values from the pooled target p-values (when the
   search computed p-values)

Examples
--------
>>> params = SearchParameters(pi0=0.9)
>>> collection = run_qvalue("search-output", database, params)
>>> path = write_qvalue_results(collection, "search-output", params)
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from .config import SearchParameters
from .constants import MAX_PSMS, P_VALUE_NA
from .exceptions import CapacityExceededError, InsufficientDataError, PreconditionError
from .io.directory import MatchCollectionIterator
from .io.writers import print_matches_multi_spectra, print_tab_header
from .match.collection import MatchCollection
from .scoring.fdr import calculate_fdr_statistics, compute_bh_qvalues, lookup_bh_qvalue
from .scoring.score_types import ScoreType

logger = logging.getLogger(__name__)


def assign_bh_qvalues(
    collection: MatchCollection,
    neg_log_pvalues: np.ndarray,
    pi0: float = 1.0,
) -> None:
    """Store -log BH q-values of pooled p-values in every match.

    Matches whose p-value is ``P_VALUE_NA`` or absent from the pool get NaN.
    """
    pooled, neg_log_q = compute_bh_qvalues(neg_log_pvalues, pi0)
    for match in collection:
        neg_log_p = match.get_score(ScoreType.LOGP_BONF_WEIBULL_XCORR)
        match.set_score(
            ScoreType.LOGP_QVALUE_WEIBULL_XCORR,
            lookup_bh_qvalue(pooled, neg_log_q, neg_log_p),
        )
    collection.set_scored(ScoreType.LOGP_QVALUE_WEIBULL_XCORR)


def run_qvalue(
    psm_dir: Union[str, Path],
    database,
    parameters: Optional[SearchParameters] = None,
) -> MatchCollection:
    """Pool top matches of a search directory and compute their q-values.

    Parameters
    ----------
    psm_dir : str or Path
        Directory holding one target ``.csm`` file and at most one decoy set
    database : ProteinDatabase
        Database the search ran against
    parameters : SearchParameters, optional
        Run parameters (``pi0`` and the modification table are used)

    Returns
    -------
    MatchCollection
        Target and decoy top matches with their q-values

    Raises
    ------
    PreconditionError
        If more than one decoy set is present or a target file holds decoys
    InsufficientDataError
        If there are neither decoys nor p-values
    """
    parameters = parameters if parameters is not None else SearchParameters()
    logger.info(f"Computing q-values for {psm_dir}")

    all_matches = MatchCollection(is_decoy=False, parameters=parameters)
    all_matches.set_scored(ScoreType.SP)
    all_matches.set_scored(ScoreType.XCORR)
    pvalues: List[float] = []

    with MatchCollectionIterator(psm_dir, database, parameters) as collections:
        num_decoys = collections.decoy_count
        if num_decoys > 1:
            raise PreconditionError(
                f"Only one decoy file per target can be processed but {num_decoys} were found. "
                f"Please move extra decoy files."
            )

        for collection in collections:
            if collection.match_total == 0:
                collection.close()
                continue
            is_decoy_collection = collection.is_decoy
            pvalues_scored = collection.is_scored(ScoreType.LOGP_BONF_WEIBULL_XCORR)
            if pvalues_scored:
                all_matches.set_scored(ScoreType.LOGP_BONF_WEIBULL_XCORR)

            with collection, collection.iter_matches(ScoreType.XCORR, sort=False) as matches:
                for match in matches:
                    if match.is_decoy != is_decoy_collection:
                        raise PreconditionError(
                            "Cannot compute q-values from decoy PSMs in the target PSM file."
                        )
                    if match.get_rank(ScoreType.XCORR) != 1:
                        continue

                    all_matches.add_match(match)

                    if pvalues_scored and not is_decoy_collection:
                        neg_log_p = match.get_score(ScoreType.LOGP_BONF_WEIBULL_XCORR)
                        if neg_log_p != P_VALUE_NA:
                            pvalues.append(neg_log_p)
                        if len(pvalues) >= MAX_PSMS:
                            raise CapacityExceededError(f"Too many psms in directory {psm_dir}")

    if len(pvalues) + num_decoys == 0:
        raise InsufficientDataError("Cannot compute q-values without decoy PSMs or p-values.")
    logger.debug(f"There are {all_matches.match_total} psms for decoy qvalue computation.")

    if num_decoys > 0:
        all_matches.compute_decoy_q_values(ScoreType.XCORR)
        if pvalues:
            all_matches.compute_decoy_q_values(ScoreType.LOGP_BONF_WEIBULL_XCORR)

        qvalues = np.array([m.get_score(ScoreType.DECOY_XCORR_QVALUE) for m in all_matches])
        is_decoy = np.array([m.is_decoy for m in all_matches], dtype=np.bool_)
        stats = calculate_fdr_statistics(qvalues, is_decoy)
        logger.info(
            f"✓ {stats['n_targets_fdr01']:,} of {stats['n_targets']:,} target PSMs "
            f"at 1% FDR (decoy q-value, xcorr)"
        )

    if pvalues:
        assign_bh_qvalues(all_matches, np.array(pvalues, dtype=np.float64), parameters.pi0)

    return all_matches


def write_qvalue_results(
    collection: MatchCollection,
    output_dir: Union[str, Path],
    parameters: Optional[SearchParameters] = None,
    fileroot: str = "",
    filename: str = "qvalues.target.txt",
) -> Path:
    """Write every match of an analysed collection to a tab-delimited file.

    Raises
    ------
    FileExistsError
        If the file exists and ``parameters.overwrite`` is False
    """
    parameters = parameters if parameters is not None else SearchParameters()
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    name = f"{fileroot}.{filename}" if fileroot else filename
    path = output_dir / name

    mode = "w" if parameters.overwrite else "x"
    with open(path, mode) as tab_file:
        print_tab_header(tab_file)
        print_matches_multi_spectra(collection, tab_file, None)

    logger.info(f"✓ Wrote {collection.match_total:,} PSMs to {path}")
    return path
