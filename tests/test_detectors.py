"""Tests for mgeconsensus.io.detectors."""

from mgeconsensus.core.models import MethodKind, RawPrediction
from mgeconsensus.io.detectors import DetectorAdapter, TableDetector, collect_predictions


class FailingDetector(DetectorAdapter):
    method = MethodKind.PHAST

    def run(self, prefixes):
        raise RuntimeError("tool crashed")

    def get_predictions(self, prefix):
        raise RuntimeError("tool crashed")


class TestTableDetector:
    """Tests for TableDetector."""

    def test_reads_table(self, predictions_dir):
        detector = TableDetector("agent", predictions_dir)
        predictions = detector.get_predictions("ECO1")
        assert predictions == {"chr": [RawPrediction("chr", 1001, 2500, MethodKind.AGENT)]}

    def test_table_path(self, predictions_dir):
        detector = TableDetector(MethodKind.CRISPR, predictions_dir)
        assert detector.table_path("ECO2") == predictions_dir / "ECO2.crispr.tsv"

    def test_missing_table_is_empty(self, predictions_dir):
        assert TableDetector("phast", predictions_dir).get_predictions("ECO1") == {}

    def test_malformed_and_invalid_lines_skipped(self, tmp_path):
        (tmp_path / "ECO1.phispy.tsv").write_text(
            "# contig\tstart\tend\n"
            "chr\t10\t20\n"
            "chr\tten\t20\n"
            "chr\t5\n"
            "chr\t50\t40\n"
            "p1\t1\t100\n"
        )
        predictions = TableDetector("phispy", tmp_path).get_predictions("ECO1")
        assert predictions == {
            "chr": [RawPrediction("chr", 10, 20, MethodKind.PHISPY)],
            "p1": [RawPrediction("p1", 1, 100, MethodKind.PHISPY)],
        }

    def test_run_reports_without_failing(self, predictions_dir):
        TableDetector("phast", predictions_dir).run(["ECO1", "ECO2"])


class TestCollectPredictions:
    """Tests for collect_predictions()."""

    def test_pools_methods(self, predictions_dir):
        detectors = [
            TableDetector(method, predictions_dir)
            for method in ("agent", "virsorter", "crispr")
        ]
        pooled = collect_predictions(detectors, "ECO1")
        assert sorted(p.method.tag for p in pooled["chr"]) == ["agent", "virsorter"]

    def test_failing_detector_contributes_nothing(self, predictions_dir):
        detectors = [FailingDetector(), TableDetector("phispy", predictions_dir)]
        pooled = collect_predictions(detectors, "ECO2")
        assert pooled == {"chr": [RawPrediction("chr", 3001, 3500, MethodKind.PHISPY)]}
