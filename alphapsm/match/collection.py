"""Match collection: the bounded container of PSMs for one spectrum charge.

A collection is built in one of two ways:

1. Search phase: ``add_matches`` scores a peptide supply against one
   spectrum, ranks and truncates, and keeps the final scores of every
   candidate in a calibration pool for the Weibull fit
2. Analysis phase: ``MatchCollection.new_post_process`` creates an empty
   collection that ``.csm`` parsing fills through
   ``add_post_process_match``; it also counts PSMs and distinct peptides
   per protein

Matches are shared between collections (``merge``, ``random_sample``) and
released when the collection is closed.

State
-----
- ``last_sorted``: the score type the match order currently follows, or None
- iterator lock: while a ``MatchIterator`` is open, ``sort`` returns False
  and every other mutation raises ``IteratorLockedError``

Examples
--------
>>> params = SearchParameters(max_rank_preliminary=0)
>>> collection = MatchCollection(parameters=params)
>>> added = collection.add_matches(
...     spectrum, 2, database.peptide_supply(spectrum.neutral_mass(2)), scorer)
>>> with collection.iter_matches(ScoreType.XCORR) as matches:
...     best = next(matches)
"""

from __future__ import annotations

import logging
import math
import warnings
from typing import Dict, Iterator, List, Optional, Sequence, TextIO

import numpy as np

from ..config import SearchParameters
from ..constants import (
    CORR_THRESHOLD,
    MAX_SP_SHIFT,
    MAX_XCORR_SHIFT,
    MIN_SP_SHIFT,
    MIN_WEIBULL_MATCHES,
    MIN_XCORR_SHIFT,
    NOT_SCORED,
    P_VALUE_NA,
    SP_SHIFT,
    XCORR_SHIFT,
)
from ..exceptions import (
    CapacityExceededError,
    IteratorLockedError,
    NotScoredError,
    PreconditionError,
    ScoreTypeMismatchError,
)
from ..scoring.fdr import compute_decoy_qvalues
from ..scoring.score_types import (
    NUM_SCORE_TYPES,
    ScoreType,
    is_rank_equivalent,
    lower_is_better,
    new_scored_flags,
    score_type_to_string,
    sort_key_type,
)
from ..scoring.weibull import compute_neg_log_pvalues, fit_three_parameter_weibull
from .match import Match

logger = logging.getLogger(__name__)


def _descending_key(score_type: ScoreType):
    def key(match: Match) -> float:
        value = match.scores[score_type]
        return NOT_SCORED if math.isnan(value) else value
    return key


def _ascending_key(score_type: ScoreType):
    def key(match: Match) -> float:
        value = match.scores[score_type]
        if math.isnan(value) or value == P_VALUE_NA or value == NOT_SCORED:
            return math.inf
        return value
    return key


class MatchCollection:
    """Matches of one spectrum charge (or many spectra after merging).

    Parameters
    ----------
    is_decoy : bool
        Whether the collection holds decoy matches
    parameters : SearchParameters, optional
        Run parameters (default: ``SearchParameters()``)
    capacity : int, optional
        Maximum number of matches (default: ``parameters.max_matches``)
    """

    def __init__(
        self,
        is_decoy: bool = False,
        parameters: Optional[SearchParameters] = None,
        capacity: Optional[int] = None,
    ):
        self.parameters = parameters if parameters is not None else SearchParameters()
        self.capacity = capacity if capacity is not None else self.parameters.max_matches

        self._matches: List[Match] = []
        self.experiment_size = 0
        self.charge = 0
        self.is_decoy = is_decoy
        self.scored = new_scored_flags()
        self.last_sorted: Optional[ScoreType] = None
        self._iterator_lock = False

        # Weibull calibration
        self.eta = 0.0
        self.beta = 0.0
        self.shift = 0.0
        self.correlation = 0.0
        self._xcorr_pool = np.empty(1024, dtype=np.float64)
        self._num_xcorrs = 0

        self.delta_cn = 0.0

        # Post-process only
        self.is_post_process = False
        self._protein_counter: Optional[np.ndarray] = None
        self._protein_peptide_counter: Optional[np.ndarray] = None
        self._peptide_counts: Optional[Dict[str, int]] = None
        self._post_scored_type_set = False

    @classmethod
    def new_post_process(
        cls,
        num_proteins: int,
        is_decoy: bool = False,
        parameters: Optional[SearchParameters] = None,
    ) -> 'MatchCollection':
        """Empty collection for matches parsed back from ``.csm`` files.

        Parameters
        ----------
        num_proteins : int
            Size of the protein database (sizes the per-protein counters)
        """
        collection = cls(is_decoy=is_decoy, parameters=parameters)
        collection.is_post_process = True
        collection._protein_counter = np.zeros(num_proteins, dtype=np.int64)
        collection._protein_peptide_counter = np.zeros(num_proteins, dtype=np.int64)
        collection._peptide_counts = {}
        return collection

    # =========================================================================
    # Accessors
    # =========================================================================

    def __len__(self) -> int:
        return len(self._matches)

    def __getitem__(self, idx: int) -> Match:
        return self._matches[idx]

    @property
    def match_total(self) -> int:
        return len(self._matches)

    @property
    def matches(self) -> Sequence[Match]:
        """Read-only view of the matches in current order."""
        return tuple(self._matches)

    @property
    def iterator_locked(self) -> bool:
        return self._iterator_lock

    @property
    def xcorr_sample(self) -> np.ndarray:
        """Final scores kept for calibration (read-only view)."""
        view = self._xcorr_pool[:self._num_xcorrs]
        view.flags.writeable = False
        return view

    @property
    def num_xcorrs(self) -> int:
        return self._num_xcorrs

    def is_scored(self, score_type: ScoreType) -> bool:
        return bool(self.scored[score_type])

    def set_scored(self, score_type: ScoreType, value: bool = True) -> None:
        self.scored[score_type] = value

    def __repr__(self) -> str:
        kind = "decoy" if self.is_decoy else "target"
        return (
            f"MatchCollection({kind}, matches={len(self._matches):,}, "
            f"experiment_size={self.experiment_size:,}, charge={self.charge})"
        )

    # =========================================================================
    # Locking
    # =========================================================================

    def _lock(self) -> None:
        if self._iterator_lock:
            raise IteratorLockedError()
        self._iterator_lock = True

    def _unlock(self) -> None:
        self._iterator_lock = False

    def _check_unlocked(self, operation: str) -> None:
        if self._iterator_lock:
            raise IteratorLockedError(f"Cannot {operation} while a match iterator is open.")

    def iter_matches(self, score_type: ScoreType, sort: bool = True):
        """Open a ``MatchIterator`` (locks the collection until closed)."""
        from .iterator import MatchIterator
        return MatchIterator(self, score_type, sort_match=sort)

    def iter_matches_spectrum_sorted(self, score_type: ScoreType):
        """Open a ``SpectrumSortedMatchIterator``."""
        from .iterator import SpectrumSortedMatchIterator
        return SpectrumSortedMatchIterator(self, score_type)

    # =========================================================================
    # Insertion
    # =========================================================================

    def _append(self, match: Match) -> None:
        if len(self._matches) >= self.capacity:
            raise CapacityExceededError(
                f"Match count {len(self._matches):,} reached the limit of {self.capacity:,}."
            )
        self._matches.append(match.retain())

    def add_match(self, match: Match) -> None:
        """Add one match by reference."""
        if match is None:
            raise PreconditionError("Cannot add a null match to a collection.")
        self._check_unlocked("add matches")
        self._append(match)
        self.last_sorted = None

    def add_matches(
        self,
        spectrum,
        charge: int,
        peptide_supply,
        scorer,
        is_decoy: bool = False,
        keep_matches: bool = True,
    ) -> int:
        """Score candidate peptides against a spectrum and keep the best.

        Parameters
        ----------
        spectrum : Spectrum
            Spectrum to compare against
        charge : int
            Assumed precursor charge (must match the collection's charge)
        peptide_supply : PeptideSupply
            Candidates, polled with ``has_next()``/``next()``
        scorer : Scorer
            Computes the preliminary and final scores
        is_decoy : bool
            Create decoy (shuffled) matches
        keep_matches : bool
            If False, the new matches only contribute their final scores to
            the calibration pool and are then discarded. Only decoy
            candidates scored for calibration may be discarded this way:
            ``experiment_size`` is reduced by one per discarded match.

        Returns
        -------
        n_added : int
            Matches created from the supply (before truncation)

        Notes
        -----
        Steps:
        1. Preliminary scoring of each candidate (or unscored insertion when
           ``max_rank_preliminary`` is 0)
        2. Final scoring of every match lacking the final score
        3. Final scores of the new matches go to the calibration pool
        4. Rank and truncate by the preliminary type, then rank by the final
           type (and truncate by it when there was no preliminary cut)
        """
        if spectrum is None or peptide_supply is None or scorer is None:
            raise PreconditionError(
                "Cannot add matches without a spectrum, peptide supply and scorer."
            )
        self._check_unlocked("add matches")
        if self.charge not in (0, charge):
            raise PreconditionError(
                f"Cannot add charge {charge} matches to a charge {self.charge} collection."
            )
        self.charge = charge
        self.last_sorted = None

        params = self.parameters
        start_index = len(self._matches)

        if params.max_rank_preliminary == 0:
            self._add_unscored_peptides(spectrum, charge, peptide_supply, is_decoy)
        else:
            self._score_peptides(
                params.prelim_score_type, spectrum, charge, peptide_supply, scorer, is_decoy
            )
        n_added = len(self._matches) - start_index

        self._score_matches_one_spectrum(params.score_type, spectrum, charge, scorer)
        self.scored[params.score_type] = True

        self._store_new_xcorrs(start_index, keep_matches)

        if params.max_rank_preliminary > 0:
            self.rank(params.prelim_score_type)
            self.truncate(params.max_rank_preliminary, params.prelim_score_type)

        self.rank(params.score_type)

        if params.max_rank_preliminary == 0:
            self.truncate(params.psms_per_spectrum_reported, params.score_type)

        logger.debug(
            f"Added {n_added:,} {'decoy' if is_decoy else 'target'} matches for "
            f"scan {spectrum.first_scan} charge {charge}, kept {len(self._matches):,}"
        )
        return n_added

    def _add_unscored_peptides(self, spectrum, charge: int, peptide_supply, is_decoy: bool) -> None:
        start = len(self._matches)
        while peptide_supply.has_next():
            peptide = peptide_supply.next()
            self._append(Match(peptide, spectrum, charge, is_decoy=is_decoy))
        self.experiment_size += len(self._matches) - start

    def _score_peptides(
        self,
        score_type: ScoreType,
        spectrum,
        charge: int,
        peptide_supply,
        scorer,
        is_decoy: bool,
    ) -> None:
        start = len(self._matches)
        while peptide_supply.has_next():
            peptide = peptide_supply.next()
            match = Match(peptide, spectrum, charge, is_decoy=is_decoy)
            match.set_score(score_type, scorer.score(spectrum, match, score_type))
            self._append(match)
        self.experiment_size += len(self._matches) - start
        self.scored[score_type] = True

    def _score_matches_one_spectrum(self, score_type: ScoreType, spectrum, charge: int, scorer) -> None:
        for match in self._matches:
            if match.is_scored(score_type):
                continue
            if match.spectrum is not spectrum or match.charge != charge:
                raise PreconditionError(
                    "All matches scored together must share one spectrum and charge."
                )
            match.set_score(score_type, scorer.score(spectrum, match, score_type))

    def _store_new_xcorrs(self, start_index: int, keep_matches: bool) -> None:
        new_matches = self._matches[start_index:]
        n_new = len(new_matches)
        if self._num_xcorrs + n_new > self.capacity:
            raise CapacityExceededError("Too many scores to store for calibration.")

        needed = self._num_xcorrs + n_new
        if needed > len(self._xcorr_pool):
            grown = np.empty(max(needed, 2 * len(self._xcorr_pool)), dtype=np.float64)
            grown[:self._num_xcorrs] = self._xcorr_pool[:self._num_xcorrs]
            self._xcorr_pool = grown

        score_type = self.parameters.score_type
        for i, match in enumerate(new_matches):
            self._xcorr_pool[self._num_xcorrs + i] = match.scores[score_type]
        self._num_xcorrs = needed

        if not keep_matches:
            for match in new_matches:
                match.release()
            self.experiment_size -= n_new
            del self._matches[start_index:]

    # =========================================================================
    # Sorting, Ranking, Truncation
    # =========================================================================

    def sort(self, score_type: ScoreType) -> bool:
        """Order matches best-first by ``score_type``.

        Returns False (without raising) if an iterator is open or the type
        has no ordering.
        """
        if self._iterator_lock:
            logger.error("Cannot sort a match collection while a match iterator is open")
            return False
        key_type = sort_key_type(score_type)
        if key_type is None:
            return False

        if lower_is_better(key_type):
            self._matches.sort(key=_ascending_key(key_type))
        else:
            self._matches.sort(key=_descending_key(key_type), reverse=True)
        self.last_sorted = key_type
        return True

    def spectrum_sort(self, score_type: ScoreType) -> bool:
        """Group matches by spectrum (scan, then charge), best-first within.

        The collection is not globally sorted afterwards, so ``last_sorted``
        is cleared.
        """
        if self._iterator_lock:
            logger.error("Cannot sort a match collection while a match iterator is open")
            return False
        key_type = sort_key_type(score_type)
        if key_type is None:
            return False

        if lower_is_better(key_type):
            score_key = _ascending_key(key_type)
            sign = 1.0
        else:
            score_key = _descending_key(key_type)
            sign = -1.0
        self._matches.sort(
            key=lambda m: (m.spectrum.first_scan, m.charge, sign * score_key(m))
        )
        self.last_sorted = None
        return True

    def _ensure_sorted(self, score_type: ScoreType) -> bool:
        if is_rank_equivalent(self.last_sorted, score_type):
            return True
        return self.sort(score_type)

    def rank(self, score_type: ScoreType) -> bool:
        """Assign ranks for ``score_type``; tied scores share a rank.

        Ranks follow the scheme 1, 1, 3, 4: a rank counts the matches
        ahead of it plus one.
        """
        if not self._ensure_sorted(score_type):
            logger.error("Failed to sort match collection")
            return False

        cur_rank = 0
        cur_score = None
        for idx, match in enumerate(self._matches):
            this_score = match.scores[score_type]
            if this_score == NOT_SCORED:
                seq = match.mod_sequence
                logger.warning(
                    f"PSM spectrum {match.spectrum.first_scan} charge {match.charge} "
                    f"sequence {seq} was NOT scored for type {score_type_to_string(score_type)}"
                )
            if cur_score is None or this_score != cur_score:
                cur_score = this_score
                cur_rank = idx + 1
            match.set_rank(score_type, cur_rank)
        return True

    def truncate(self, max_rank: int, score_type: ScoreType) -> None:
        """Drop matches ranked worse than ``max_rank`` for ``score_type``.

        Ties share a rank, so more than ``max_rank`` matches may remain.
        """
        self._check_unlocked("truncate")
        if not self._matches:
            logger.debug("No matches in collection, so not truncating")
            return
        if not self._ensure_sorted(score_type):
            raise PreconditionError("Failed to sort match collection")

        while self._matches and self._matches[-1].get_rank(score_type) > max_rank:
            self._matches.pop().release()

    def collapse_redundant(self) -> None:
        """Merge matches with identical modified sequences.

        Must be sorted by SP or XCORR so that duplicates (which score
        identically) sit in one run of equal SP scores. Duplicates donate
        their protein sources to the first match of the sequence and are
        removed; ``experiment_size`` drops by the number removed.
        """
        self._check_unlocked("collapse matches")
        n_before = len(self._matches)
        if n_before == 0:
            return
        if self.last_sorted not in (ScoreType.SP, ScoreType.XCORR):
            raise PreconditionError("Collection must be sorted by SP or XCORR to collapse matches.")

        matches: List[Optional[Match]] = list(self._matches)
        run_start = 0
        while run_start < n_before:
            run_score = matches[run_start].scores[ScoreType.SP]
            run_end = run_start
            while run_end + 1 < n_before and matches[run_end + 1].scores[ScoreType.SP] == run_score:
                run_end += 1
            if run_end > run_start:
                self._consolidate(matches, run_start, run_end)
            run_start = run_end + 1

        self._matches = [m for m in matches if m is not None]
        n_removed = n_before - len(self._matches)
        logger.debug(f"Removing duplicates changed count from {n_before} to {len(self._matches)}")
        self.experiment_size -= n_removed

    @staticmethod
    def _consolidate(matches: List[Optional[Match]], start: int, end: int) -> None:
        for cur_idx in range(start, end):
            current = matches[cur_idx]
            if current is None:
                continue
            for next_idx in range(cur_idx + 1, end + 1):
                other = matches[next_idx]
                if other is None or other.mod_sequence != current.mod_sequence:
                    continue
                current.peptide.merge_sources(other.peptide)
                other.release()
                matches[next_idx] = None

    # =========================================================================
    # Merging and Sampling
    # =========================================================================

    def merge(self, source: 'MatchCollection') -> int:
        """Append every match of ``source`` by reference.

        The first merge into an empty collection adopts the source's scored
        types; later merges require identical scored types.

        Returns
        -------
        n_merged : int

        Raises
        ------
        ScoreTypeMismatchError
            If the scored types differ
        CapacityExceededError
            If the merged collection would exceed its capacity
        """
        if source is None:
            raise PreconditionError("Cannot merge a null match collection.")
        self._check_unlocked("merge matches")

        if not self._matches:
            self.scored[:] = source.scored
        else:
            for type_idx in range(NUM_SCORE_TYPES):
                if self.scored[type_idx] != source.scored[type_idx]:
                    name = score_type_to_string(ScoreType(type_idx))
                    src_str = "" if source.scored[type_idx] else " not"
                    dest_str = "" if self.scored[type_idx] else " not"
                    raise ScoreTypeMismatchError(
                        f"Trying to add matches{src_str} scored for {name} "
                        f"to matches{dest_str} scored for {name}."
                    )

        n_source = len(source._matches)
        if len(self._matches) + n_source > self.capacity:
            raise CapacityExceededError(
                "Cannot merge match collections, insufficient capacity in destination collection."
            )
        logger.debug(f"Merging {n_source} matches into a collection of {len(self._matches)}")

        for match in source._matches:
            self._matches.append(match.retain())
        self.experiment_size += source.experiment_size
        self.last_sorted = None
        return n_source

    def random_sample(self, count: int, rng: Optional[np.random.Generator] = None) -> 'MatchCollection':
        """Collection of ``count`` matches drawn with replacement.

        Returns ``self`` when ``count`` is not smaller than the collection.
        Sampled matches are shared, not copied.
        """
        if count >= len(self._matches):
            return self

        if rng is None:
            indices = np.random.randint(0, len(self._matches), size=count)
        else:
            indices = rng.integers(0, len(self._matches), size=count)

        sample = MatchCollection(is_decoy=self.is_decoy, parameters=self.parameters, capacity=self.capacity)
        for idx in indices:
            sample._matches.append(self._matches[idx].retain())
        sample.experiment_size = self.experiment_size
        sample.charge = self.charge
        sample.scored[:] = self.scored
        return sample

    # =========================================================================
    # Delta Cn
    # =========================================================================

    def calculate_delta_cn(self) -> bool:
        """Set each match's delta Cn relative to the best XCORR.

        ``delta_cn = (best - xcorr) / best``. The collection's own
        ``delta_cn`` is that of the second-best match (0 with fewer than
        two matches).

        Returns False if the collection has no XCORR scores.
        """
        if not self.scored[ScoreType.XCORR]:
            logger.warning("Delta_cn not calculated because match collection not scored for xcorr")
            return False
        if not self._matches:
            self.delta_cn = 0.0
            return True
        if not self._ensure_sorted(ScoreType.XCORR):
            return False

        max_xcorr = self._matches[0].scores[ScoreType.XCORR]
        for match in self._matches:
            diff = max_xcorr - match.scores[ScoreType.XCORR]
            delta_cn = diff / max_xcorr if max_xcorr != 0.0 else 0.0
            # no -0.0
            match.delta_cn = delta_cn if delta_cn != 0.0 else 0.0
            match.ln_delta_cn = math.log(match.delta_cn) if match.delta_cn > 0.0 else 0.0

        self.delta_cn = self._matches[1].delta_cn if len(self._matches) > 1 else 0.0
        return True

    # =========================================================================
    # Weibull Calibration
    # =========================================================================

    def _shift_range(self):
        if sort_key_type(self.parameters.score_type) == ScoreType.SP:
            return MIN_SP_SHIFT, MAX_SP_SHIFT, SP_SHIFT
        return MIN_XCORR_SHIFT, MAX_XCORR_SHIFT, XCORR_SHIFT

    def estimate_weibull(self, min_samples: int = MIN_WEIBULL_MATCHES) -> bool:
        """Fit a three-parameter Weibull to the calibration pool.

        Only the top ``fraction_top_scores_to_fit`` of the descending
        pool is fitted.

        Returns
        -------
        success : bool
            False if the pool holds fewer than ``min_samples`` scores; the
            previous parameters are then left unchanged
        """
        n_scores = self._num_xcorrs
        if n_scores < min_samples:
            logger.debug(f"Too few psms ({n_scores}) to estimate p-value parameters")
            if self.parameters.compute_p_values:
                warnings.warn(
                    f"Only {n_scores} calibration scores (need {min_samples}); "
                    f"p-values will not be available for this spectrum."
                )
            return False

        scores = np.sort(self._xcorr_pool[:n_scores])[::-1].copy()
        self._xcorr_pool[:n_scores] = scores

        fraction = self.parameters.fraction_top_scores_to_fit
        num_tail = int(n_scores * fraction)
        logger.debug(f"Estimating Weibull params with {num_tail} psms ({fraction:.2f} of {n_scores})")

        min_shift, max_shift, step = self._shift_range()
        self.eta, self.beta, self.shift, self.correlation = fit_three_parameter_weibull(
            scores, num_tail, n_scores, min_shift, max_shift, step, CORR_THRESHOLD
        )
        logger.debug(
            f"Corr: {self.correlation:.6f}  Eta: {self.eta:.6f}  "
            f"Beta: {self.beta:.6f}  Shift: {self.shift:.6f}"
        )
        return True

    def transfer_weibull(self, to_collection: 'MatchCollection') -> None:
        """Copy the fitted Weibull parameters (no check that they were fitted)."""
        to_collection.eta = self.eta
        to_collection.beta = self.beta
        to_collection.shift = self.shift
        to_collection.correlation = self.correlation

    def compute_p_values(self, pvalue_file: Optional[TextIO] = None) -> bool:
        """Store -log(Bonferroni-corrected Weibull p-value) per match.

        Parameters
        ----------
        pvalue_file : text file, optional
            Receives a two-line ``#`` header per spectrum and the raw p-value
            of each match

        Raises
        ------
        NotScoredError
            If the collection is not scored by the main score type

        Notes
        -----
        Without a successful fit (``eta == 0``) every match gets
        ``P_VALUE_NA``. The collection is re-ranked by the main score.
        """
        main_score = self.parameters.score_type
        if not self.scored[main_score]:
            raise NotScoredError(
                f"Match collection was not scored by {score_type_to_string(main_score)} "
                f"prior to computing p-values."
            )

        scan_number = self._matches[0].spectrum.first_scan if self._matches else -1
        logger.debug(
            f"Computing p-values for {'decoy' if self.is_decoy else 'target'} spectrum "
            f"{scan_number} charge {self.charge} with eta {self.eta:f} beta "
            f"{self.beta:f} shift {self.shift:f}"
        )

        if pvalue_file is not None:
            pvalue_file.write(
                "# scan: %d charge: %d candidates: %d\n"
                % (scan_number, self.charge, self.experiment_size)
            )
            pvalue_file.write(
                "# eta: %g beta: %g shift: %g correlation: %g\n"
                % (self.eta, self.beta, self.shift, self.correlation)
            )

        if self.eta == 0.0:
            for match in self._matches:
                match.set_score(ScoreType.LOGP_BONF_WEIBULL_XCORR, P_VALUE_NA)
        elif self._matches:
            scores = np.array([m.scores[main_score] for m in self._matches], dtype=np.float64)
            raw, neg_log = compute_neg_log_pvalues(
                scores, self.eta, self.beta, self.shift, self.experiment_size
            )
            for match, pvalue, value in zip(self._matches, raw, neg_log):
                if pvalue_file is not None:
                    pvalue_file.write("%g\n" % pvalue)
                match.set_score(ScoreType.LOGP_BONF_WEIBULL_XCORR, float(value))

        logger.debug(f"Computed p-values for {len(self._matches)} PSMs.")
        self.rank(main_score)
        self.scored[ScoreType.LOGP_BONF_WEIBULL_XCORR] = True
        return True

    # =========================================================================
    # Q-values and External Scores
    # =========================================================================

    def compute_decoy_q_values(self, score_type: ScoreType) -> bool:
        """Decoy-counting q-values over all matches, by XCORR or p-value.

        XCORR q-values go to ``DECOY_XCORR_QVALUE``, p-value based ones to
        ``DECOY_PVALUE_QVALUE``; matches with ``P_VALUE_NA`` p-values get
        ``P_VALUE_NA``. Returns False for any other score type.
        """
        if score_type == ScoreType.XCORR:
            qvalue_type = ScoreType.DECOY_XCORR_QVALUE
        elif score_type == ScoreType.LOGP_BONF_WEIBULL_XCORR:
            qvalue_type = ScoreType.DECOY_PVALUE_QVALUE
        else:
            logger.error(
                f"Don't know where to store q-values for score type {score_type_to_string(score_type)}."
            )
            return False

        logger.debug(f"Computing decoy q-values for score type {score_type_to_string(score_type)}.")
        if not self.sort(score_type):
            return False

        is_decoy = np.array([m.is_decoy for m in self._matches], dtype=np.bool_)
        if score_type == ScoreType.LOGP_BONF_WEIBULL_XCORR:
            skip = np.array([m.scores[score_type] == P_VALUE_NA for m in self._matches], dtype=np.bool_)
        else:
            skip = None
        qvalues = compute_decoy_qvalues(is_decoy, skip, P_VALUE_NA)

        for match, qvalue in zip(self._matches, qvalues):
            match.set_score(qvalue_type, float(qvalue))
        self.scored[qvalue_type] = True
        return True

    def fill_result(
        self,
        results: Sequence[float],
        score_type: ScoreType,
        preserve_order: bool = False,
    ) -> bool:
        """Assign externally computed scores, in current match order, then rank.

        Parameters
        ----------
        results : sequence of float
            One score per match
        score_type : ScoreType
            Slot to fill
        preserve_order : bool
            Restore the match order (and ``last_sorted``) after ranking

        Raises
        ------
        ValueError
            If ``results`` does not have one value per match
        IteratorLockedError
            If a match iterator is open; no score is changed
        """
        if len(results) != len(self._matches):
            raise ValueError(f"Got {len(results)} results for {len(self._matches)} matches")
        self._check_unlocked("fill results")

        for match, value in zip(self._matches, results):
            match.set_score(score_type, float(value))

        saved_order = list(self._matches) if preserve_order else None
        saved_sorted = self.last_sorted

        if not self.rank(score_type):
            raise PreconditionError("Failed to populate match rank in match collection")

        if preserve_order:
            self._matches = saved_order
            self.last_sorted = saved_sorted

        self.scored[score_type] = True
        return True

    # =========================================================================
    # Post-process Matches
    # =========================================================================

    def _require_post_process(self) -> None:
        if not self.is_post_process:
            raise PreconditionError("Must be a post process match collection.")

    def set_post_scored_types(self, flags: Sequence[bool]) -> None:
        """Adopt the scored flags of the first parsed block; later calls are ignored."""
        if self._post_scored_type_set:
            return
        for type_idx, flag in enumerate(flags):
            self.scored[type_idx] = bool(flag)
        self._post_scored_type_set = True

    def add_post_process_match(self, match: Match) -> bool:
        """Add a parsed match and update the per-protein counters.

        Returns False if this is not a post-process collection.
        """
        if match is None:
            raise PreconditionError("Cannot add a null match to a collection.")
        if not self.is_post_process:
            logger.error("Must be a post process match collection to add a match.")
            return False

        self._append(match)
        if len(self._matches) % 1000 == 0:
            logger.info(f"parsed PSM: {len(self._matches)}")

        peptide = match.peptide
        self._update_protein_counters(peptide)
        key = peptide.hash_key
        self._peptide_counts[key] = self._peptide_counts.get(key, 0) + 1
        return True

    def _update_protein_counters(self, peptide) -> None:
        unique = self._peptide_counts.get(peptide.hash_key, 0) < 1
        for src in peptide.sources:
            protein_idx = src.protein_idx
            self._protein_counter[protein_idx] += 1
            if unique:
                self._protein_peptide_counter[protein_idx] += 1

    def protein_counter(self, protein_idx: int) -> int:
        """Number of PSMs matching the protein."""
        self._require_post_process()
        return int(self._protein_counter[protein_idx])

    def protein_peptide_counter(self, protein_idx: int) -> int:
        """Number of distinct peptides matching the protein."""
        self._require_post_process()
        return int(self._protein_peptide_counter[protein_idx])

    def peptide_count(self, peptide) -> int:
        """How often the peptide has been seen among parsed matches."""
        self._require_post_process()
        return self._peptide_counts.get(peptide.hash_key, 0)

    @property
    def num_proteins(self) -> int:
        self._require_post_process()
        return len(self._protein_counter)

    # =========================================================================
    # Lifetime
    # =========================================================================

    def close(self) -> None:
        """Release every match and the post-process structures."""
        self._check_unlocked("close the collection")
        for match in self._matches:
            match.release()
        self._matches = []
        self._protein_counter = None
        self._protein_peptide_counter = None
        self._peptide_counts = None

    def __enter__(self) -> 'MatchCollection':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[Match]:
        """Iterate in current order without locking (read-only use)."""
        return iter(tuple(self._matches))


def merge_match_collections(source: MatchCollection, destination: MatchCollection) -> int:
    """Put every match of ``source`` into ``destination``; see ``MatchCollection.merge``."""
    return destination.merge(source)
