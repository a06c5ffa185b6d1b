"""Tab-delimited and SQT result files.

Tab-delimited files have one line per match with the columns listed in
``TAB_COLUMNS``; a score column is left empty when the collection was not
scored for that type. SQT files follow the S/M/L line layout:

    S  first scan, last scan, charge, 0.0, singly charged precursor mass,
       0.0, 0.0, candidates compared
    M  xcorr rank, sp rank, peptide mass (MH+), delta Cn, first score,
       second score, b/y ions matched, b/y ions compared, sequence, U
    L  protein id (one line per peptide source)

``load_tab_results`` reads a tab-delimited file back into a DataFrame.
"""

import logging
import math
import time
from pathlib import Path
from typing import Optional, TextIO, Union

from ..config import SearchParameters
from ..constants import P_VALUE_NA, PROTON_MASS
from ..database.digestion import examine_peptide_type
from ..match.collection import MatchCollection
from ..match.match import Match
from ..scoring.score_types import ScoreType, score_type_to_string
from ..spectrum import Spectrum

logger = logging.getLogger(__name__)

TAB_COLUMNS = (
    "scan",
    "charge",
    "spectrum precursor m/z",
    "spectrum neutral mass",
    "peptide mass",
    "delta_cn",
    "sp score",
    "sp rank",
    "xcorr score",
    "xcorr rank",
    "p-value",
    "Weibull est. q-value",
    "decoy q-value (xcorr)",
    "decoy q-value (p-value)",
    "percolator score",
    "percolator rank",
    "percolator q-value",
    "q-ranker score",
    "q-ranker q-value",
    "b/y ions matched",
    "b/y ions total",
    "matches/spectrum",
    "sequence",
    "cleavage type",
    "protein id",
    "flanking aa",
    "unshuffled sequence",
    "eta",
    "beta",
    "shift",
    "corr",
)


# =============================================================================
# Tab-delimited
# =============================================================================

def print_tab_header(output: Optional[TextIO]) -> None:
    if output is None:
        return
    output.write("\t".join(TAB_COLUMNS) + "\n")


def _neg_log_to_probability(value: float) -> float:
    """exp(-x) for -log scores; NaN for ``P_VALUE_NA`` or NaN."""
    if math.isnan(value) or value == P_VALUE_NA:
        return math.nan
    return math.exp(-value)


def print_match_tab(
    collection: MatchCollection,
    match: Match,
    output: TextIO,
    scan_num: int,
    precursor_mz: float,
    neutral_mass: float,
    num_matches: int,
    charge: int,
) -> None:
    """Write one match as a tab-delimited line.

    Score columns are filled only for types the collection is scored for.
    P-value and Weibull q-value columns hold probabilities, converted back
    from the stored -log values. Calibration columns are filled when the
    collection holds p-values.
    """
    scored = collection.scored

    def score(score_type: ScoreType, fmt: str = "%.6g") -> str:
        if not scored[score_type]:
            return ""
        return fmt % match.get_score(score_type)

    def rank(score_type: ScoreType) -> str:
        if not scored[score_type]:
            return ""
        return str(match.get_rank(score_type))

    def probability(score_type: ScoreType) -> str:
        if not scored[score_type]:
            return ""
        return "%.6g" % _neg_log_to_probability(match.get_score(score_type))

    peptide = match.peptide
    first_src = peptide.sources[0]
    cleavage = examine_peptide_type(first_src.protein.sequence, first_src.start_idx, peptide.length)

    if scored[ScoreType.LOGP_BONF_WEIBULL_XCORR]:
        calibration = ["%g" % value for value in (
            collection.eta, collection.beta, collection.shift, collection.correlation
        )]
    else:
        calibration = ["", "", "", ""]

    fields = [
        str(scan_num),
        str(charge),
        "%.4f" % precursor_mz,
        "%.4f" % neutral_mass,
        "%.4f" % peptide.mass,
        "%.4g" % match.delta_cn,
        score(ScoreType.SP),
        rank(ScoreType.SP),
        score(ScoreType.XCORR),
        rank(ScoreType.XCORR),
        probability(ScoreType.LOGP_BONF_WEIBULL_XCORR),
        probability(ScoreType.LOGP_QVALUE_WEIBULL_XCORR),
        score(ScoreType.DECOY_XCORR_QVALUE),
        score(ScoreType.DECOY_PVALUE_QVALUE),
        score(ScoreType.PERCOLATOR_SCORE),
        rank(ScoreType.PERCOLATOR_SCORE),
        score(ScoreType.Q_VALUE),
        score(ScoreType.QRANKER_SCORE),
        score(ScoreType.QRANKER_Q_VALUE),
        str(match.b_y_ion_matched),
        str(match.b_y_ion_possible),
        str(num_matches),
        match.mod_sequence,
        cleavage.value,
        ",".join(peptide.protein_ids),
        peptide.flanking_aa,
        match.unshuffled_sequence if match.is_decoy else "",
        *calibration,
    ]
    output.write("\t".join(fields) + "\n")


def print_match_collection_tab_delimited(
    output: Optional[TextIO],
    top_match: int,
    collection: MatchCollection,
    spectrum: Spectrum,
    main_score: ScoreType = ScoreType.XCORR,
) -> bool:
    """Write the matches of one spectrum ranked at most ``top_match``.

    Returns False if there is no output, collection or spectrum.
    """
    if output is None or collection is None or spectrum is None:
        return False

    charge = collection.charge
    num_matches = collection.experiment_size
    neutral_mass = spectrum.neutral_mass(charge)

    collection.calculate_delta_cn()
    with collection.iter_matches(main_score) as matches:
        for match in matches:
            if match.get_rank(main_score) > top_match:
                break
            print_match_tab(
                collection, match, output, spectrum.first_scan,
                spectrum.precursor_mz, neutral_mass, num_matches, charge,
            )
    return True


def print_matches_multi_spectra(
    collection: MatchCollection,
    tab_file: Optional[TextIO],
    decoy_tab_file: Optional[TextIO] = None,
) -> None:
    """Write every match of a collection merged from many spectra.

    Spectrum information is taken from each match; the candidate count is
    recovered from the match's log experiment size. Decoy matches go to
    ``decoy_tab_file`` and are skipped when it is None.
    """
    logger.debug(f"Writing {collection.match_total:,} matches to file")
    for match in collection:
        output = decoy_tab_file if match.is_decoy else tab_file
        if output is None:
            continue
        spectrum = match.spectrum
        print_match_tab(
            collection,
            match,
            output,
            spectrum.first_scan,
            spectrum.precursor_mz,
            spectrum.neutral_mass(match.charge),
            match.experiment_size,
            match.charge,
        )


def load_tab_results(path: Union[str, Path]):
    """Read a tab-delimited result file into a DataFrame."""
    import pandas as pd

    df = pd.read_csv(path, sep='\t')
    logger.info(f"Loaded {len(df):,} PSMs from {Path(path).name}")
    return df


# =============================================================================
# SQT
# =============================================================================

def _sqt_score_names(parameters: SearchParameters, is_analysis: bool):
    main_score = parameters.score_type
    other_score = parameters.prelim_score_type
    if is_analysis:
        return "q-value", "xcorr"
    if parameters.compute_p_values:
        return "-log(p-value)", "xcorr"
    return score_type_to_string(main_score), score_type_to_string(other_score)


def print_sqt_header(
    output: Optional[TextIO],
    kind: str,
    num_proteins: int,
    parameters: SearchParameters,
    database_name: str = "",
    is_analysis: bool = False,
) -> None:
    """Write the ``H`` lines of an SQT file.

    Parameters
    ----------
    output : text file or None
        Nothing is written when None
    kind : str
        ``"target"`` or ``"decoy"``
    num_proteins : int
        Proteins in the searched database
    parameters : SearchParameters
    database_name : str
        Name of the searched database
    is_analysis : bool
        Header for q-value analysis output rather than search output
    """
    if output is None:
        return

    lines = [
        "H\tSQTGenerator alphapsm",
        "H\tSQTGeneratorVersion 1.0",
        f"H\tStartTime\t{time.ctime()}",
        "H\tEndTime                               ",
        f"H\tDatabase\t{database_name}",
    ]
    if kind == "decoy":
        lines.append("H\tComment\tDatabase shuffled; these are decoy matches")
    lines.extend([
        "H\tDBSeqLength\t?",
        f"H\tDBLocusCount\t{num_proteins}",
        "H\tPrecursorMasses\tmono",
        "H\tFragmentMasses\tmono",
        "H\tAlg-XCorrMode\t0",
        f"H\tComment\tpreliminary algorithm {score_type_to_string(parameters.prelim_score_type)}",
        f"H\tComment\tfinal algorithm {score_type_to_string(parameters.score_type)}",
    ])
    for mod in parameters.modifications:
        lines.append(f"H\tDiffMod\t{mod.aa_list}{mod.symbol}={mod.mass_change:+.2f}")
    lines.append(f"H\tAlg-DisplayTop\t{parameters.top_match}")
    lines.append(
        "H\tLine fields: S, scan number, scan number, "
        "charge, 0, precursor mass, 0, 0, number of matches"
    )

    main_name, other_name = _sqt_score_names(parameters, is_analysis)
    lines.append(
        "H\tLine fields: M, rank by xcorr score, rank by sp score, "
        f"peptide mass, deltaCn, {main_name} score, {other_name} score, "
        "number ions matched, total ions compared, sequence"
    )
    output.write("\n".join(lines) + "\n")


def _print_match_sqt(match: Match, output: TextIO, first: ScoreType, second: ScoreType) -> None:
    peptide = match.peptide
    flanking = peptide.flanking_aa
    output.write(
        "M\t%d\t%d\t%.4f\t%.2f\t%.4g\t%.4g\t%d\t%d\t%s.%s.%s\tU\n" % (
            match.get_rank(ScoreType.XCORR),
            match.get_rank(ScoreType.SP),
            peptide.mass + PROTON_MASS,
            match.delta_cn,
            match.get_score(first),
            match.get_score(second),
            match.b_y_ion_matched,
            match.b_y_ion_possible,
            flanking[0],
            match.mod_sequence,
            flanking[1],
        )
    )
    for protein_id in peptide.protein_ids:
        output.write(f"L\t{'decoy_' if match.is_decoy else ''}{protein_id}\n")


def print_match_collection_sqt(
    output: Optional[TextIO],
    top_match: int,
    collection: MatchCollection,
    spectrum: Spectrum,
    prelim_score: ScoreType = ScoreType.SP,
    main_score: ScoreType = ScoreType.XCORR,
) -> bool:
    """Write one S line and an M line (plus L lines) per top-ranked match.

    With p-values in the run the -log p-value is printed first and the main
    score second.

    Returns False if there is no output, collection or spectrum.
    """
    if output is None or collection is None or spectrum is None:
        return False

    first, second = main_score, prelim_score
    if collection.parameters.compute_p_values:
        first, second = ScoreType.LOGP_BONF_WEIBULL_XCORR, main_score

    collection.calculate_delta_cn()

    charge = collection.charge
    output.write(
        "S\t%d\t%d\t%d\t0.0\t%.4f\t0.0\t0.0\t%d\n" % (
            spectrum.first_scan,
            spectrum.last_scan,
            charge,
            spectrum.singly_charged_mass(charge),
            collection.experiment_size,
        )
    )

    with collection.iter_matches(main_score) as matches:
        for match in matches:
            if match.get_rank(main_score) > top_match:
                break
            _print_match_sqt(match, output, first, second)
    return True


def print_calibration_parameters(collection: MatchCollection, output: TextIO) -> None:
    """Append eta, beta, shift and correlation, each preceded by a tab."""
    output.write(
        "\t%g\t%g\t%g\t%g" % (collection.eta, collection.beta, collection.shift, collection.correlation)
    )
