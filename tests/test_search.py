"""Tests for mgeconsensus.homology.search.

BLAST+ is never executed; only output parsing and helpers are tested.
"""

import pytest

from mgeconsensus.homology.search import SequenceSearch, SimilarityHit, write_fasta

BLAST_LINE = "ECO1_1\tchr\t98.50\t1600\t24\t0\t1\t1600\t2600\t1001\t0.0\t2850\t1600\t5000"


class TestSimilarityHit:
    """Tests for SimilarityHit parsing."""

    def test_from_blast_line(self):
        hit = SimilarityHit.from_blast_line(BLAST_LINE)
        assert hit.query_id == "ECO1_1"
        assert hit.subject_id == "chr"
        assert hit.identity == pytest.approx(98.5)
        assert hit.alignment_length == 1600
        assert hit.subject_span == (1001, 2600)
        assert hit.subject_length == 5000

    def test_without_length_columns(self):
        hit = SimilarityHit.from_blast_line("\t".join(BLAST_LINE.split("\t")[:12]))
        assert hit.query_length is None
        assert hit.subject_length is None

    def test_too_few_fields(self):
        with pytest.raises(ValueError):
            SimilarityHit.from_blast_line("a\tb\t99")


class TestSequenceSearch:
    """Tests for SequenceSearch without running BLAST+."""

    def test_missing_tool(self):
        with pytest.raises(RuntimeError, match="not found in PATH"):
            SequenceSearch(executable="no-such-blastn-binary")

    def test_parse_results_skips_bad_lines(self, tmp_path):
        results = tmp_path / "hits.tsv"
        results.write_text(f"# header\n{BLAST_LINE}\nbroken\tline\n\n")
        searcher = SequenceSearch(tmp_dir=tmp_path, check_tools=False)
        hits = searcher.parse_results(results)
        assert [h.query_id for h in hits] == ["ECO1_1"]

    def test_parse_results_missing_file(self, tmp_path):
        searcher = SequenceSearch(tmp_dir=tmp_path, check_tools=False)
        with pytest.raises(FileNotFoundError):
            searcher.parse_results(tmp_path / "missing.tsv")

    def test_format_database_missing_fasta(self, tmp_path):
        searcher = SequenceSearch(tmp_dir=tmp_path, check_tools=False)
        with pytest.raises(FileNotFoundError):
            searcher.format_database(tmp_path / "missing.fa")

    def test_format_database_reuses_existing(self, tmp_path, synthetic_fasta):
        searcher = SequenceSearch(tmp_dir=tmp_path, check_tools=False)
        prefix = tmp_path / "db" / "ECO1"
        prefix.parent.mkdir()
        (tmp_path / "db" / "ECO1.nsq").write_text("")
        assert searcher.format_database(synthetic_fasta, prefix) == prefix


class TestWriteFasta:
    """Tests for write_fasta()."""

    def test_wraps_lines(self, tmp_path):
        path = tmp_path / "sub" / "out.fa"
        n_written = write_fasta([("a", "A" * 130), ("b", "CG")], path)
        assert n_written == 2
        assert path.read_text().splitlines() == [
            ">a",
            "A" * 60,
            "A" * 60,
            "A" * 10,
            ">b",
            "CG",
        ]
