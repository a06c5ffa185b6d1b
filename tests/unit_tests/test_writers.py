"""Tests for tab-delimited and SQT output."""

import io
import math

import pytest

from alphapsm.config import SearchParameters
from alphapsm.io.writers import (
    TAB_COLUMNS,
    load_tab_results,
    print_calibration_parameters,
    print_match_collection_sqt,
    print_match_collection_tab_delimited,
    print_matches_multi_spectra,
    print_sqt_header,
    print_tab_header,
)
from alphapsm.match import MatchCollection
from alphapsm.modifications import AAMod
from alphapsm.scoring import ScoreType


@pytest.fixture
def spectrum_collection(make_collection, spectrum):
    collection = make_collection([3.0, 2.0, 1.0], sps=[30.0, 10.0, 20.0], spectrum=spectrum)
    collection.charge = 2
    collection.rank(ScoreType.SP)
    collection.rank(ScoreType.XCORR)
    return collection


def rows(text):
    return [line.split("\t") for line in text.splitlines()]


class TestTabDelimited:

    def test_header(self):
        out = io.StringIO()
        print_tab_header(out)
        assert rows(out.getvalue())[0] == list(TAB_COLUMNS)
        assert len(TAB_COLUMNS) == 31

    def test_top_ranked_matches(self, spectrum_collection, spectrum):
        out = io.StringIO()
        assert print_match_collection_tab_delimited(out, 2, spectrum_collection, spectrum)
        lines = rows(out.getvalue())
        assert len(lines) == 2

        column = {name: idx for idx, name in enumerate(TAB_COLUMNS)}
        best = lines[0]
        assert len(best) == len(TAB_COLUMNS)
        assert best[column["scan"]] == "1001"
        assert best[column["charge"]] == "2"
        assert best[column["xcorr rank"]] == "1"
        assert float(best[column["xcorr score"]]) == 3.0
        assert best[column["sp rank"]] == "1"
        assert best[column["p-value"]] == ""
        assert best[column["matches/spectrum"]] == "3"
        assert best[column["cleavage type"]] in ("tryptic", "partially_tryptic", "not_tryptic")
        assert float(lines[1][column["delta_cn"]]) == pytest.approx(1 / 3, rel=1e-3)

    def test_missing_output(self, spectrum_collection, spectrum):
        assert not print_match_collection_tab_delimited(None, 2, spectrum_collection, spectrum)

    def test_pvalue_columns_hold_probabilities(self, spectrum_collection, spectrum):
        for match in spectrum_collection:
            match.set_score(ScoreType.LOGP_BONF_WEIBULL_XCORR, 2.0)
        spectrum_collection.set_scored(ScoreType.LOGP_BONF_WEIBULL_XCORR)
        spectrum_collection.eta = 1.5

        out = io.StringIO()
        print_match_collection_tab_delimited(out, 1, spectrum_collection, spectrum)
        best = rows(out.getvalue())[0]
        column = {name: idx for idx, name in enumerate(TAB_COLUMNS)}
        assert float(best[column["p-value"]]) == pytest.approx(math.exp(-2.0), rel=1e-5)
        assert float(best[column["eta"]]) == 1.5

    def test_multi_spectra_routes_decoys(self, make_match):
        collection = MatchCollection()
        target = make_match(xcorr=2.0, scan=5)
        decoy = make_match(xcorr=1.0, scan=6, is_decoy=True)
        for match in (target, decoy):
            match.ln_experiment_size = math.log(42)
            collection.add_match(match)
        collection.set_scored(ScoreType.XCORR)

        tab, decoy_tab = io.StringIO(), io.StringIO()
        print_matches_multi_spectra(collection, tab, decoy_tab)

        column = {name: idx for idx, name in enumerate(TAB_COLUMNS)}
        target_row = rows(tab.getvalue())[0]
        decoy_row = rows(decoy_tab.getvalue())[0]
        assert target_row[column["scan"]] == "5"
        assert target_row[column["matches/spectrum"]] == "42"
        assert decoy_row[column["scan"]] == "6"
        assert decoy_row[column["unshuffled sequence"]] == decoy.unshuffled_sequence

    def test_multi_spectra_without_decoy_file(self, make_match):
        collection = MatchCollection()
        collection.add_match(make_match(xcorr=1.0, is_decoy=True))
        tab = io.StringIO()
        print_matches_multi_spectra(collection, tab)
        assert tab.getvalue() == ""

    def test_load_tab_results(self, tmp_path, spectrum_collection, spectrum):
        path = tmp_path / "results.txt"
        with open(path, "w") as out:
            print_tab_header(out)
            print_match_collection_tab_delimited(out, 3, spectrum_collection, spectrum)
        df = load_tab_results(path)
        assert list(df.columns) == list(TAB_COLUMNS)
        assert len(df) == 3
        assert df["xcorr rank"].tolist() == [1, 2, 3]


class TestSqt:

    def test_header(self):
        params = SearchParameters(modifications=(AAMod(15.9949, "M", symbol="*"),))
        out = io.StringIO()
        print_sqt_header(out, "decoy", 3, params, database_name="small.fasta")
        text = out.getvalue()
        assert "H\tDatabase\tsmall.fasta\n" in text
        assert "H\tDBLocusCount\t3\n" in text
        assert "these are decoy matches" in text
        assert "H\tDiffMod\tM*=+15.99\n" in text
        assert "xcorr score, sp score" in text

    def test_header_with_pvalues(self):
        out = io.StringIO()
        print_sqt_header(out, "target", 3, SearchParameters.for_pvalue_search())
        text = out.getvalue()
        assert "-log(p-value) score, xcorr score" in text
        assert "decoy matches" not in text

    def test_spectrum_block(self, spectrum_collection, spectrum):
        out = io.StringIO()
        assert print_match_collection_sqt(out, 2, spectrum_collection, spectrum)
        lines = rows(out.getvalue())

        s_line = lines[0]
        assert s_line[0] == "S"
        assert s_line[1:4] == ["1001", "1001", "2"]
        assert s_line[-1] == "3"

        m_lines = [line for line in lines if line[0] == "M"]
        l_lines = [line for line in lines if line[0] == "L"]
        assert len(m_lines) == 2
        assert m_lines[0][1] == "1"
        assert float(m_lines[0][5]) == 3.0
        assert float(m_lines[0][6]) == 30.0
        assert l_lines[0][1] == "sp|P00001|TEST1"

    def test_pvalue_printed_first(self, spectrum_collection, spectrum):
        spectrum_collection.parameters = SearchParameters.for_pvalue_search()
        for match in spectrum_collection:
            match.set_score(ScoreType.LOGP_BONF_WEIBULL_XCORR, 7.5)
        out = io.StringIO()
        print_match_collection_sqt(out, 1, spectrum_collection, spectrum)
        m_line = [line for line in rows(out.getvalue()) if line[0] == "M"][0]
        assert float(m_line[5]) == 7.5
        assert float(m_line[6]) == 3.0

    def test_missing_spectrum(self, spectrum_collection):
        assert not print_match_collection_sqt(io.StringIO(), 2, spectrum_collection, None)


class TestCalibration:

    def test_parameters(self, make_collection):
        collection = make_collection([1.0])
        collection.eta, collection.beta, collection.shift, collection.correlation = 1.5, 2.0, 0.1, 0.99
        out = io.StringIO()
        print_calibration_parameters(collection, out)
        assert out.getvalue() == "\t1.5\t2\t0.1\t0.99"
