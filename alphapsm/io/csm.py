"""Binary ``.csm`` files: matches streamed from the search to the analysis phase.

One file per target/decoy set. All values are little-endian; ``int`` is
int32, ``float`` is float32 and ``bool`` is one byte.

File layout::

    Header  int   total_spectra          (-1 until the file is closed)
            int   num_spectrum_features  (unused, always 0)
            int   matches_per_spectrum
            int   num_mods
            num_mods x modification record (see AAMod.serialize)
    Block   int   charge
            int   match_total            (matches in the collection)
            float delta_cn
            float ln_delta_cn            (0 when delta_cn is 0)
            float ln_experiment_size
            CSM_SCORED_FLAG_COUNT x bool scored flags
            min(match_total, matches_per_spectrum) x match record

Match record::

    int scan, float precursor_mz, bool is_decoy
    int b_y_ion_matched, int b_y_ion_possible
    float peptide_mass, int peptide_length
    int num_sources, num_sources x (int protein_idx, int start_idx)
    str mod_sequence, str decoy_sequence (empty for targets)
    CSM_SCORED_FLAG_COUNT x (double score, int rank)

Strings are an int byte count followed by ASCII bytes.

Examples
--------
>>> with CsmWriter(out_dir, "run1", params) as writer:
...     writer.write(collection)
>>> collection = new_match_collection_from_file(
...     out_dir / "run1.target.csm", database, params)
"""

from __future__ import annotations

import logging
import math
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..config import SearchParameters
from ..database.protein import Peptide, PeptideSrc
from ..exceptions import CsmFormatError
from ..match.collection import MatchCollection
from ..match.match import Match
from ..modifications import AAMod, compare_mods
from ..scoring.score_types import CSM_SCORED_FLAG_COUNT, ScoreType
from ..spectrum import Spectrum

logger = logging.getLogger(__name__)

_INT = struct.Struct("<i")
_HEADER = struct.Struct("<iiii")
_BLOCK = struct.Struct("<iifff")
_FLAGS = struct.Struct(f"<{CSM_SCORED_FLAG_COUNT}?")
_MATCH_HEAD = struct.Struct("<if?iifii")
_SOURCE = struct.Struct("<ii")
_SCORE_RANK = struct.Struct("<di")

TARGET_SUFFIX = ".target.csm"


# =============================================================================
# Low-level Reads
# =============================================================================

def _read_exact(fh: BinaryIO, size: int, what: str) -> bytes:
    raw = fh.read(size)
    if len(raw) != size:
        raise CsmFormatError(f"Serialized file corrupted, could not read {what}.")
    return raw


def _write_str(fh: BinaryIO, value: str) -> None:
    data = value.encode("ascii")
    fh.write(_INT.pack(len(data)))
    fh.write(data)


def _read_str(fh: BinaryIO, what: str) -> str:
    (length,) = _INT.unpack(_read_exact(fh, _INT.size, what))
    if length < 0:
        raise CsmFormatError(f"Serialized file corrupted, negative length for {what}.")
    return _read_exact(fh, length, what).decode("ascii")


# =============================================================================
# Header
# =============================================================================

@dataclass
class CsmHeader:
    total_spectra: int
    num_spectrum_features: int
    matches_per_spectrum: int
    mods: List[AAMod] = field(default_factory=list)


def write_header(fh: BinaryIO, parameters: SearchParameters) -> None:
    """Write a header with a -1 spectrum count placeholder."""
    mods = parameters.modifications
    fh.write(_HEADER.pack(-1, 0, parameters.top_match, len(mods)))
    for mod in mods:
        mod.serialize(fh)


def update_spectrum_count(fh: BinaryIO, total_spectra: int) -> None:
    """Replace the spectrum count placeholder of a finished file."""
    position = fh.tell()
    fh.seek(0)
    fh.write(_INT.pack(total_spectra))
    fh.seek(position)


def parse_header(fh: BinaryIO, run_mods: Sequence[AAMod] = ()) -> CsmHeader:
    """Read a header and check its modification table.

    Raises
    ------
    CsmFormatError
        On a short read, an incomplete header (spectrum count still -1) or
        a modification table different from ``run_mods``
    """
    (total_spectra,) = _INT.unpack(_read_exact(fh, _INT.size, "spectrum count from csm file header"))
    if total_spectra < 0:
        raise CsmFormatError(
            "Header of csm file incomplete, spectrum count missing. Did the search run without error?"
        )
    (num_features,) = _INT.unpack(_read_exact(fh, _INT.size, "number of spectrum features"))
    (top_match,) = _INT.unpack(_read_exact(fh, _INT.size, "number of top match"))
    (num_mods,) = _INT.unpack(_read_exact(fh, _INT.size, "number of modifications"))
    if num_mods < 0:
        raise CsmFormatError(f"Serialized file corrupted, {num_mods} modifications.")

    mods = [AAMod.parse(fh) for _ in range(num_mods)]
    if not compare_mods(mods, run_mods):
        raise CsmFormatError("Modification parameters do not match those in the csm file.")

    logger.debug(f"csm header: {total_spectra} spectra, {top_match} top matches, {num_mods} mods")
    return CsmHeader(total_spectra, num_features, top_match, mods)


# =============================================================================
# Match Records
# =============================================================================

def serialize_match(match: Match, fh: BinaryIO) -> None:
    peptide = match.peptide
    fh.write(_MATCH_HEAD.pack(
        match.spectrum.first_scan,
        match.spectrum.precursor_mz,
        match.is_decoy,
        match.b_y_ion_matched,
        match.b_y_ion_possible,
        peptide.mass,
        peptide.length,
        len(peptide.sources),
    ))
    for src in peptide.sources:
        fh.write(_SOURCE.pack(src.protein_idx, src.start_idx))
    _write_str(fh, peptide.mod_sequence)
    _write_str(fh, match.decoy_sequence if match.is_decoy else "")
    for type_idx in range(CSM_SCORED_FLAG_COUNT):
        fh.write(_SCORE_RANK.pack(match.scores[type_idx], match.ranks[type_idx]))


def parse_match(
    fh: BinaryIO,
    database,
    charge: int,
    spectra: Optional[Dict[Tuple[int, float], Spectrum]] = None,
) -> Match:
    """Read one match record, resolving its peptide through ``database``.

    Parameters
    ----------
    fh : binary file
    database : ProteinDatabase
        Resolves protein indices to proteins
    charge : int
        Charge of the enclosing block
    spectra : dict, optional
        Spectrum cache keyed by (scan, precursor m/z) so matches of one
        spectrum share a ``Spectrum``

    Raises
    ------
    CsmFormatError
        On a short read or a protein reference the database cannot resolve
    """
    (scan, precursor_mz, is_decoy, by_matched, by_possible,
     mass, length, num_sources) = _MATCH_HEAD.unpack(_read_exact(fh, _MATCH_HEAD.size, "match record"))
    if num_sources < 1 or length < 1:
        raise CsmFormatError("Serialized file corrupted, match record without peptide.")

    sources = []
    for _ in range(num_sources):
        protein_idx, start_idx = _SOURCE.unpack(_read_exact(fh, _SOURCE.size, "peptide source"))
        try:
            protein = database.get_protein(protein_idx)
        except IndexError as e:
            raise CsmFormatError(f"Peptide source references unknown protein {protein_idx}.") from e
        sources.append(PeptideSrc(protein, start_idx))

    mod_sequence = _read_str(fh, "peptide sequence")
    decoy_sequence = _read_str(fh, "decoy sequence")

    first = sources[0]
    sequence = first.protein.sequence[first.start_idx - 1:first.start_idx - 1 + length]
    peptide = Peptide(sequence=sequence, sources=sources, mod_sequence=mod_sequence, mass=mass)

    key = (scan, precursor_mz)
    if spectra is not None and key in spectra:
        spectrum = spectra[key]
    else:
        spectrum = Spectrum(first_scan=scan, precursor_mz=precursor_mz)
        if spectra is not None:
            spectra[key] = spectrum

    match = Match(
        peptide,
        spectrum,
        charge,
        is_decoy=bool(is_decoy),
        decoy_sequence=decoy_sequence if is_decoy else None,
    )
    match.b_y_ion_matched = by_matched
    match.b_y_ion_possible = by_possible
    for type_idx in range(CSM_SCORED_FLAG_COUNT):
        score, rank = _SCORE_RANK.unpack(_read_exact(fh, _SCORE_RANK.size, "match score"))
        match.scores[type_idx] = score
        match.ranks[type_idx] = rank
    return match


# =============================================================================
# Spectrum Blocks
# =============================================================================

def _ln_or_zero(value: float) -> float:
    return math.log(value) if value > 0.0 else 0.0


def serialize_psm_features(
    collection: MatchCollection,
    fh: BinaryIO,
    top_match: int,
    main_score: ScoreType = ScoreType.XCORR,
) -> int:
    """Write one spectrum block with up to ``top_match`` best matches.

    Returns
    -------
    n_written : int
        Match records written
    """
    delta_cn = collection.delta_cn if collection.is_scored(ScoreType.XCORR) else 0.0
    ln_delta_cn = _ln_or_zero(delta_cn)
    if collection.experiment_size > 0:
        ln_experiment_size = math.log(collection.experiment_size)
    else:
        ln_experiment_size = -math.inf

    fh.write(_BLOCK.pack(
        collection.charge,
        collection.match_total,
        delta_cn,
        ln_delta_cn,
        ln_experiment_size,
    ))
    fh.write(_FLAGS.pack(*(bool(flag) for flag in collection.scored[:CSM_SCORED_FLAG_COUNT])))

    n_written = 0
    if collection.match_total == 0:
        return n_written
    with collection.iter_matches(main_score) as matches:
        for match in matches:
            serialize_match(match, fh)
            n_written += 1
            if n_written >= top_match:
                break
    return n_written


@dataclass
class CsmBlock:
    charge: int
    match_total: int
    delta_cn: float
    ln_delta_cn: float
    ln_experiment_size: float
    scored_flags: np.ndarray
    matches: List[Match]


def read_block(
    fh: BinaryIO,
    database,
    matches_per_spectrum: int,
    spectra: Optional[Dict[Tuple[int, float], Spectrum]] = None,
) -> CsmBlock:
    """Read one spectrum block.

    Every parsed match takes the block's charge, delta Cn and log values.

    Raises
    ------
    CsmFormatError
        On a short read anywhere in the block
    """
    charge, match_total, delta_cn, ln_delta_cn, ln_experiment_size = _BLOCK.unpack(
        _read_exact(fh, _BLOCK.size, "spectrum block")
    )
    flags = np.array(_FLAGS.unpack(_read_exact(fh, _FLAGS.size, "scored flags")), dtype=np.bool_)

    if spectra is None:
        spectra = {}
    matches = []
    for _ in range(min(match_total, matches_per_spectrum)):
        match = parse_match(fh, database, charge, spectra)
        match.delta_cn = delta_cn
        match.ln_delta_cn = ln_delta_cn
        match.ln_experiment_size = ln_experiment_size
        matches.append(match)

    return CsmBlock(charge, match_total, delta_cn, ln_delta_cn, ln_experiment_size, flags, matches)


def extend_match_collection(collection: MatchCollection, database, fh: BinaryIO) -> bool:
    """Parse every block of an open ``.csm`` file into a post-process collection.

    The scored flags of the first block become the collection's scored
    types.

    Returns
    -------
    success : bool
        False if the collection is not a post-process collection or the
        file is corrupted or was written with other modifications (logged)
    """
    if not collection.is_post_process:
        logger.error("Must be a post process match collection to extend.")
        return False

    try:
        header = parse_header(fh, collection.parameters.modifications)
        spectra: Dict[Tuple[int, float], Spectrum] = {}
        for _ in range(header.total_spectra):
            block = read_block(fh, database, header.matches_per_spectrum, spectra)
            collection.set_post_scored_types(block.scored_flags)
            for match in block.matches:
                collection.add_post_process_match(match)
    except CsmFormatError as e:
        logger.error(f"Failed to parse serialized PSMs: {e}")
        return False

    return True


def new_match_collection_from_file(
    path: Union[str, Path],
    database,
    parameters: Optional[SearchParameters] = None,
    is_decoy: Optional[bool] = None,
) -> MatchCollection:
    """Post-process collection holding every match of one ``.csm`` file.

    ``is_decoy`` defaults to whether the file name is not a target file.

    Raises
    ------
    CsmFormatError
        If the file is corrupted or was written with other modifications;
        the partially parsed collection is released
    """
    path = Path(path)
    if is_decoy is None:
        is_decoy = not path.name.endswith(TARGET_SUFFIX)
    collection = MatchCollection.new_post_process(
        database.num_proteins, is_decoy=is_decoy, parameters=parameters
    )
    logger.info(f"Getting PSMs from {path}")
    with open(path, "rb") as fh:
        parsed = extend_match_collection(collection, database, fh)
    if not parsed:
        collection.close()
        raise CsmFormatError(f"Failed to read PSMs from {path}")
    logger.info(f"✓ Read {collection.match_total:,} PSMs from {path.name}")
    return collection


# =============================================================================
# Writing Result Files
# =============================================================================

def psm_filenames(root_name: str, num_decoy_files: int) -> List[str]:
    """Target file name followed by one name per decoy set.

    Examples
    --------
    >>> psm_filenames("run1", 1)
    ['run1.target.csm', 'run1.decoy.csm']
    >>> psm_filenames("run1", 2)
    ['run1.target.csm', 'run1.decoy-1.csm', 'run1.decoy-2.csm']
    """
    names = [f"{root_name}{TARGET_SUFFIX}"]
    if num_decoy_files == 1:
        names.append(f"{root_name}.decoy.csm")
    else:
        names.extend(f"{root_name}.decoy-{i}.csm" for i in range(1, num_decoy_files + 1))
    return names


def create_psm_files(
    output_dir: Union[str, Path],
    root_name: str,
    parameters: SearchParameters,
) -> List[BinaryIO]:
    """Create the output directory and open one file per target/decoy set.

    Raises
    ------
    FileExistsError
        If a file exists and ``parameters.overwrite`` is False
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    mode = "wb" if parameters.overwrite else "xb"

    handles: List[BinaryIO] = []
    try:
        for name in psm_filenames(root_name, parameters.num_decoy_files):
            handles.append(open(output_dir / name, mode))
    except FileExistsError:
        for fh in handles:
            fh.close()
        raise
    logger.debug(f"Opened {len(handles)} new psm files in {output_dir}")
    return handles


class CsmWriter:
    """Writes target and decoy collections to a set of ``.csm`` files.

    Headers are written on open and their spectrum counts patched on close.

    Parameters
    ----------
    output_dir : str or Path
    root_name : str
        File name stem (e.g. the spectrum file name without extension)
    parameters : SearchParameters
    """

    def __init__(self, output_dir: Union[str, Path], root_name: str, parameters: SearchParameters):
        self.parameters = parameters
        self._handles = create_psm_files(output_dir, root_name, parameters)
        self._counts = [0] * len(self._handles)
        self.paths = [Path(fh.name) for fh in self._handles]
        for fh in self._handles:
            write_header(fh, parameters)

    def write(self, collection: MatchCollection, file_idx: int = 0) -> int:
        """Append one spectrum block (file 0 = target, i = decoy set i)."""
        n_written = serialize_psm_features(
            collection, self._handles[file_idx], self.parameters.top_match, self.parameters.score_type
        )
        self._counts[file_idx] += 1
        return n_written

    def close(self) -> None:
        for fh, count in zip(self._handles, self._counts):
            if not fh.closed:
                update_spectrum_count(fh, count)
                fh.close()

    def __enter__(self) -> 'CsmWriter':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
