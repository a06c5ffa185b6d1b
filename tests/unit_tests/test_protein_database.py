"""Tests for proteins, digestion, decoy sequences and the protein database."""

import numpy as np
import pytest

from alphapsm.database import (
    Peptide,
    PeptideSrc,
    PeptideSupply,
    PeptideType,
    Protein,
    ProteinDatabase,
    ProteinPeptideIterator,
    count_missed_cleavages,
    examine_peptide_type,
    generate_shuffled_decoy,
    parse_protein_id,
    read_fasta,
    search_mass_window_numba,
    tokenize_modified_sequence,
)
from alphapsm.modifications import modified_peptide_mass


class TestPeptide:

    def test_from_source(self):
        protein = Protein("P1", "MKPEPTIDEKAAR", protein_idx=0)
        peptide = Peptide.from_source(protein, start_idx=3, length=8)
        assert peptide.sequence == "PEPTIDEK"
        assert peptide.mod_sequence == "PEPTIDEK"
        assert peptide.mass == pytest.approx(modified_peptide_mass("PEPTIDEK"))
        assert peptide.protein_ids == ["P1"]

    def test_flanking_at_termini(self):
        protein = Protein("P1", "MKPEPTIDEKAAR", protein_idx=0)
        assert Peptide.from_source(protein, 1, 2).flanking_aa == "-P"
        assert Peptide.from_source(protein, 11, 3).flanking_aa == "K-"

    def test_source_outside_protein(self):
        protein = Protein("P1", "MKPEPTIDEKAAR", protein_idx=0)
        with pytest.raises(ValueError, match="exceeds protein"):
            Peptide.from_source(protein, 10, 8)

    def test_merge_sources_skips_duplicates(self):
        a = Protein("A", "KPEPK", protein_idx=0)
        b = Protein("B", "RPEPK", protein_idx=1)
        first = Peptide.from_source(a, 2, 4)
        second = Peptide.from_source(b, 2, 4)
        first.merge_sources(second)
        first.merge_sources(second)
        assert first.protein_ids == ["A", "B"]
        assert PeptideSrc(a, 2) == first.sources[0]


class TestDigestion:

    def test_tryptic_peptides(self):
        protein = Protein("P1", "MKPEPTIDEKAAR", protein_idx=0)
        peptides = list(ProteinPeptideIterator(protein, min_length=3, max_length=20))
        assert [p.sequence for p in peptides] == ["MKPEPTIDEK", "AAR"]
        assert peptides[1].sources[0].start_idx == 11

    def test_missed_cleavage(self):
        protein = Protein("P1", "MKPEPTIDEKAAR", protein_idx=0)
        it = ProteinPeptideIterator(protein, min_length=3, max_length=20, missed_cleavages=1)
        assert "MKPEPTIDEKAAR" in [p.sequence for p in it]

    def test_partially_tryptic_includes_tryptic(self):
        protein = Protein("P1", "MKPEPTIDEKAAR", protein_idx=0)
        tryptic = {p.sequence for p in ProteinPeptideIterator(protein, min_length=3, max_length=20)}
        partial = {
            p.sequence for p in ProteinPeptideIterator(
                protein, min_length=3, max_length=20,
                peptide_type=PeptideType.PARTIALLY_TRYPTIC,
            )
        }
        assert tryptic < partial
        assert "MKPEP" in partial

    def test_mass_bounds(self):
        protein = Protein("P1", "MKPEPTIDEKAAR", protein_idx=0)
        it = ProteinPeptideIterator(protein, min_length=3, max_length=20, max_mass=500.0)
        assert [p.sequence for p in it] == ["AAR"]

    def test_polling_protocol(self):
        protein = Protein("P1", "MKPEPTIDEKAAR", protein_idx=0)
        it = ProteinPeptideIterator(protein, min_length=3, max_length=20)
        seen = []
        while it.has_next():
            seen.append(it.next().sequence)
        assert seen == ["MKPEPTIDEK", "AAR"]
        with pytest.raises(StopIteration):
            it.next()

    def test_invalid_length_bounds(self):
        protein = Protein("P1", "MKPEPTIDEKAAR", protein_idx=0)
        with pytest.raises(ValueError, match="Invalid length bounds"):
            ProteinPeptideIterator(protein, min_length=10, max_length=5)

    def test_examine_peptide_type(self):
        assert examine_peptide_type("MKPEPTIDEKAAR", 3, 8) == PeptideType.PARTIALLY_TRYPTIC
        assert examine_peptide_type("MKAEPTIDEKAAR", 3, 8) == PeptideType.TRYPTIC
        assert examine_peptide_type("MKPEPTIDEKAAR", 4, 5) == PeptideType.NOT_TRYPTIC

    def test_count_missed_cleavages(self):
        # K before P is not a cleavage site
        assert count_missed_cleavages("MKPEPTIDEKAAR", 1, 13) == 1
        assert count_missed_cleavages("MKPEPTIDEKAAR", 1, 10) == 0


class TestDecoys:

    def test_tokenize(self):
        assert tokenize_modified_sequence("PEPM*K") == ["P", "E", "P", "M*", "K"]

    def test_shuffle_keeps_termini_and_composition(self):
        rng = np.random.default_rng(7)
        decoy = generate_shuffled_decoy("PEPTIDEGLSAK", rng=rng)
        assert decoy[0] == "P" and decoy[-1] == "K"
        assert sorted(decoy) == sorted("PEPTIDEGLSAK")

    def test_shuffle_keeps_modifications_attached(self):
        decoy = generate_shuffled_decoy("PEM*TIDEK", rng=np.random.default_rng(1))
        tokens = tokenize_modified_sequence(decoy)
        assert "M*" in tokens
        assert len(tokens) == 8

    def test_shuffle_reproducible(self):
        a = generate_shuffled_decoy("PEPTIDEGLSAK", rng=np.random.default_rng(3))
        b = generate_shuffled_decoy("PEPTIDEGLSAK", rng=np.random.default_rng(3))
        assert a == b

    def test_short_peptide_unchanged(self):
        assert generate_shuffled_decoy("PEK") == "PEK"


class TestFasta:

    def test_parse_protein_id(self):
        assert parse_protein_id("sp|P12345|NAME_HUMAN Some protein") == ("P12345", "Some protein")
        assert parse_protein_id("PROT123 Description here") == ("PROT123", "Description here")

    def test_read_fasta(self, tmp_path):
        path = tmp_path / "small.fasta"
        path.write_text(
            ">sp|P1|ONE First\nMKPEPTIDE\nKAAR\n"
            ">sp|P2|TWO Second\nGGK\n"
            ">sp|P3|THREE Third\nlleeK\n"
        )
        proteins = read_fasta(path)
        assert [p.protein_id for p in proteins] == ["P1", "P2", "P3"]
        assert proteins[0].sequence == "MKPEPTIDEKAAR"
        assert proteins[2].sequence == "LLEEK"
        assert [p.protein_idx for p in proteins] == [0, 1, 2]

    def test_min_length(self, tmp_path):
        path = tmp_path / "small.fasta"
        path.write_text(">P1\nMKPEPTIDEKAAR\n>P2\nGGK\n")
        proteins = read_fasta(path, min_length=5)
        assert [p.protein_id for p in proteins] == ["P1"]
        assert proteins[0].protein_idx == 0

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_fasta(tmp_path / "missing.fasta")


class TestSearchMassWindow:

    def test_window(self):
        masses = np.array([100.0, 200.0, 200.1, 300.0])
        assert search_mass_window_numba(masses, 199.9, 200.2) == (1, 3)
        assert search_mass_window_numba(masses, 400.0, 500.0) == (4, 4)
        assert search_mass_window_numba(np.empty(0, dtype=np.float64), 0.0, 1.0) == (0, 0)


class TestProteinDatabase:

    def test_protein_indices(self, protein_db):
        assert protein_db.num_proteins == 3
        assert [p.protein_idx for p in protein_db.proteins] == [0, 1, 2]
        assert protein_db.get_protein(2).protein_id == "sp|P00003|TEST3"
        assert protein_db.get_protein_by_id("sp|P00001|TEST1").protein_idx == 0

    def test_get_protein_out_of_range(self, protein_db):
        with pytest.raises(IndexError):
            protein_db.get_protein(3)
        with pytest.raises(IndexError):
            protein_db.get_protein(-1)

    def test_shared_peptide_merged(self):
        db = ProteinDatabase.from_sequences(
            {"A": "GGRSAMPLEPEPKAAR", "B": "LLKSAMPLEPEPK"}, min_length=4,
        )
        assert db.num_peptides == 1
        mass = modified_peptide_mass("SAMPLEPEPK")
        peptides = list(db.peptides_in_mass_window(mass - 0.01, mass + 0.01))
        assert len(peptides) == 1
        assert peptides[0].protein_ids == ["A", "B"]

    def test_mass_window_sorted(self, protein_db):
        supply = protein_db.peptides_in_mass_window(0.0, 1e6)
        assert isinstance(supply, PeptideSupply)
        masses = [p.mass for p in supply]
        assert len(masses) == protein_db.num_peptides
        assert masses == sorted(masses)

    def test_peptide_supply_window(self, protein_db):
        mass = modified_peptide_mass("MKPEPTIDEK")
        sequences = [p.sequence for p in protein_db.peptide_supply(mass, mass_window=0.5)]
        assert "MKPEPTIDEK" in sequences

    def test_empty_database(self):
        db = ProteinDatabase([])
        assert db.num_proteins == 0
        assert not db.peptides_in_mass_window(0.0, 1e6).has_next()

    def test_from_fasta(self, tmp_path):
        path = tmp_path / "db.fasta"
        path.write_text(">sp|P1|ONE\nMKPEPTIDEKAAR\n")
        db = ProteinDatabase.from_fasta(path, min_length=3)
        assert db.num_proteins == 1
        assert db.num_peptides == 2

    def test_from_tsv(self, tmp_path):
        path = tmp_path / "proteins.tsv"
        path.write_text("protein_id\tsequence\nP1\tmkpeptidekaar\nP2\tGGRSAMPLEPEPK\n")
        db = ProteinDatabase.from_tsv(path)
        assert len(db) == 2
        assert db.get_protein(0).sequence == "MKPEPTIDEKAAR"
