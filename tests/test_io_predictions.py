"""Tests for mgeconsensus.io.predictions."""

import io

from mgeconsensus.core.binning import BinnedCatalog
from mgeconsensus.core.models import BinnedPrediction, Cluster, MethodKind, Tier
from mgeconsensus.io.predictions import (
    parse_prediction_line,
    read_predictions,
    write_clusters,
    write_predictions,
)


def make_catalog() -> BinnedCatalog:
    catalog = BinnedCatalog("ECO1")
    catalog.add(
        BinnedPrediction(
            "chr",
            100,
            250,
            [MethodKind.AGENT, MethodKind.VIRSORTER],
            corroborating=[MethodKind.CRISPR],
            tier=Tier.TIER2,
        )
    )
    catalog.add(
        BinnedPrediction("chr", 300, 400, [MethodKind.PHAST], tier=Tier.TIER4, masked=True)
    )
    catalog.add(BinnedPrediction("p1", 900, 950, [MethodKind.CRISPR], tier=Tier.TIER5))
    return catalog


class TestWritePredictions:
    """Tests for write_predictions()."""

    def test_format_and_masking(self):
        buffer = io.StringIO()
        n_written = write_predictions(make_catalog(), buffer)
        assert n_written == 2
        assert buffer.getvalue() == (
            "ECO1_1\tchr\tagent,virsorter,crispr\t100\t250\n"
            "ECO1_3\tp1\tcrispr\t900\t950\n"
        )

    def test_writes_file(self, tmp_path):
        path = tmp_path / "out" / "ECO1.final.tsv"
        write_predictions(make_catalog(), path)
        assert len(path.read_text().splitlines()) == 2

    def test_empty_catalog(self, tmp_path):
        path = tmp_path / "empty.tsv"
        assert write_predictions(BinnedCatalog("ECO1"), path) == 0
        assert path.read_text() == ""

    def test_cache_layout_keeps_masked(self):
        buffer = io.StringIO()
        assert write_predictions(make_catalog(), buffer, include_masked=True) == 3
        assert buffer.getvalue() == (
            "ECO1_1\tchr\tagent,virsorter,crispr\t100\t250\t0\n"
            "ECO1_2\tchr\tphast\t300\t400\t1\n"
            "ECO1_3\tp1\tcrispr\t900\t950\t0\n"
        )


class TestReadPredictions:
    """Tests for read_predictions() and line parsing."""

    def test_parse_line_rederives_tier(self):
        prediction = parse_prediction_line("ECO1_1\tchr\tagent,virsorter,crispr\t100\t250\n")
        assert prediction.name == "ECO1_1"
        assert prediction.methods == (MethodKind.AGENT, MethodKind.VIRSORTER)
        assert prediction.corroborating == (MethodKind.CRISPR,)
        assert prediction.tier is Tier.TIER2

    def test_parse_crispr_only(self):
        prediction = parse_prediction_line("ECO1_3\tp1\tcrispr\t900\t950")
        assert prediction.methods == (MethodKind.CRISPR,)
        assert prediction.tier is Tier.TIER5

    def test_written_table_reads_back(self, tmp_path):
        path = tmp_path / "ECO1.consensus.tsv"
        write_predictions(make_catalog(), path)
        catalog = read_predictions(path, "ECO1")

        assert [(p.name, p.contig, p.start, p.end, p.tier) for p in catalog] == [
            ("ECO1_1", "chr", 100, 250, Tier.TIER2),
            ("ECO1_3", "p1", 900, 950, Tier.TIER5),
        ]
        assert catalog.next_name() == "ECO1_4"

    def test_cache_reads_back_with_masked(self, tmp_path):
        """Masked predictions and their names survive a cache round trip."""
        path = tmp_path / "ECO1.consensus.all.tsv"
        write_predictions(make_catalog(), path, include_masked=True)
        catalog = read_predictions(path, "ECO1")

        assert [(p.name, p.tier, p.masked) for p in catalog] == [
            ("ECO1_1", Tier.TIER2, False),
            ("ECO1_2", Tier.TIER4, True),
            ("ECO1_3", Tier.TIER5, False),
        ]
        assert catalog.overlapping("chr", 350, 360)[0].name == "ECO1_2"
        assert catalog.next_name() == "ECO1_4"

    def test_malformed_lines_skipped(self, tmp_path):
        path = tmp_path / "bad.tsv"
        path.write_text(
            "ECO1_1\tchr\tagent\t100\t200\n"
            "ECO1_2\tchr\tunknown_tool\t300\t400\n"
            "ECO1_3\tchr\tagent\t500\n"
            "ECO1_4\tchr\tagent\tx\t600\n"
            "ECO1_5\tchr\tagent\t700\t650\n"
        )
        catalog = read_predictions(path, "ECO1")
        assert [p.name for p in catalog] == ["ECO1_1"]


class TestWriteClusters:
    """Tests for write_clusters()."""

    def test_format(self):
        buffer = io.StringIO()
        clusters = [Cluster("1", ("ECO1_1", "ECO2_3")), Cluster("2", ("ECO2_1",))]
        assert write_clusters(clusters, buffer) == 2
        assert buffer.getvalue().splitlines() == [
            "cluster_id\tsize\tmembers",
            "1\t2\tECO1_1,ECO2_3",
            "2\t1\tECO2_1",
        ]
