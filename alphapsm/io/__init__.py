"""Persistence and reporting of match collections.

- ``csm``: binary ``.csm`` files passed from search to analysis
- ``directory``: iteration over the target/decoy sets of an output directory
- ``writers``: tab-delimited and SQT result files
"""

from .csm import (
    CsmHeader,
    CsmWriter,
    create_psm_files,
    extend_match_collection,
    new_match_collection_from_file,
    parse_header,
    parse_match,
    psm_filenames,
    read_block,
    serialize_match,
    serialize_psm_features,
    update_spectrum_count,
    write_header,
)

from .directory import (
    MatchCollectionIterator,
    classify_csm_file,
)

from .writers import (
    load_tab_results,
    print_calibration_parameters,
    print_match_collection_sqt,
    print_match_collection_tab_delimited,
    print_match_tab,
    print_matches_multi_spectra,
    print_sqt_header,
    print_tab_header,
)

__all__ = [
    # csm
    'CsmHeader',
    'CsmWriter',
    'create_psm_files',
    'extend_match_collection',
    'new_match_collection_from_file',
    'parse_header',
    'parse_match',
    'psm_filenames',
    'read_block',
    'serialize_match',
    'serialize_psm_features',
    'update_spectrum_count',
    'write_header',
    # directory
    'MatchCollectionIterator',
    'classify_csm_file',
    # writers
    'load_tab_results',
    'print_calibration_parameters',
    'print_match_collection_sqt',
    'print_match_collection_tab_delimited',
    'print_match_tab',
    'print_matches_multi_spectra',
    'print_sqt_header',
    'print_tab_header',
]
