"""Tests for mgeconsensus.io.persistence."""

import json

from mgeconsensus import __version__
from mgeconsensus.core.binning import BinnedCatalog
from mgeconsensus.core.models import BinnedPrediction, Cluster, MethodKind, Tier
from mgeconsensus.io.persistence import catalog_to_dict, save_catalog


def make_result(genome):
    catalog = BinnedCatalog("ECO1")
    catalog.add(BinnedPrediction("chr", 1, 100, [MethodKind.AGENT], tier=Tier.TIER3))
    catalog.add(
        BinnedPrediction("chr", 200, 300, [MethodKind.PHAST], tier=Tier.TIER4, masked=True)
    )
    return {"ECO1": genome}, {"ECO1": catalog}, [Cluster("1", ("ECO1_1",))]


class TestCatalogExport:
    """Tests for the JSON export."""

    def test_catalog_to_dict(self, genome):
        data = catalog_to_dict(*make_result(genome))
        assert data["version"] == __version__
        (exported,) = data["genomes"]
        assert exported["prefix"] == "ECO1"
        assert [c["seqid"] for c in exported["contigs"]] == ["chr", "p1"]
        assert [p["name"] for p in data["predictions"]["ECO1"]] == ["ECO1_1", "ECO1_2"]
        assert data["predictions"]["ECO1"][1]["masked"] is True
        assert data["clusters"] == [{"cluster_id": "1", "members": ["ECO1_1"]}]

    def test_save_catalog(self, tmp_path, genome):
        path = tmp_path / "export" / "catalog.json"
        assert save_catalog(path, *make_result(genome))
        assert json.loads(path.read_text())["genomes"][0]["length"] == 5800

    def test_failed_save_returns_false(self, tmp_path, genome):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        assert not save_catalog(blocker / "catalog.json", *make_result(genome))
