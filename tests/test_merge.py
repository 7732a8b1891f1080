"""Tests for mgeconsensus.core.merge."""

import random

import pytest

from mgeconsensus.core.merge import PredictionMerger, group_by_contig, merge_predictions
from mgeconsensus.core.models import MethodKind, RawPrediction


def spans(merged):
    return [(m.start, m.end, tuple(k.tag for k in m.methods)) for m in merged]


class TestMergePredictions:
    """Tests for merge_predictions()."""

    def test_overlapping_union(self, raw_predictions):
        merged = merge_predictions(raw_predictions)
        assert spans(merged) == [
            (100, 250, ("agent", "virsorter")),
            (1000, 1500, ("phispy",)),
        ]

    def test_non_extending_excluded(self):
        raw = [RawPrediction("chr", 10, 20, MethodKind.CRISPR)]
        assert merge_predictions(raw) == []

    def test_invalid_dropped(self):
        raw = [
            RawPrediction("chr", 500, 100, MethodKind.AGENT),
            RawPrediction("chr", 10, 20, MethodKind.PHAST),
        ]
        assert spans(merge_predictions(raw)) == [(10, 20, ("phast",))]

    def test_touching_intervals_merge(self):
        raw = [
            RawPrediction("chr", 1, 100, MethodKind.AGENT),
            RawPrediction("chr", 100, 200, MethodKind.PHAST),
        ]
        assert spans(merge_predictions(raw)) == [(1, 200, ("agent", "phast"))]

    def test_proximity(self):
        raw = [
            RawPrediction("chr", 1, 100, MethodKind.AGENT),
            RawPrediction("chr", 150, 200, MethodKind.PHAST),
        ]
        assert len(merge_predictions(raw, proximity=0)) == 2
        assert len(merge_predictions(raw, proximity=49)) == 2
        assert spans(merge_predictions(raw, proximity=50)) == [
            (1, 200, ("agent", "phast"))
        ]

    def test_chain_extends_open_span(self):
        """A later interval joins through the extended end, not the first one."""
        raw = [
            RawPrediction("chr", 1, 100, MethodKind.AGENT),
            RawPrediction("chr", 50, 300, MethodKind.VIRSORTER),
            RawPrediction("chr", 250, 400, MethodKind.PHISPY),
        ]
        assert spans(merge_predictions(raw)) == [
            (1, 400, ("agent", "virsorter", "phispy"))
        ]

    def test_outputs_never_overlap(self):
        rng = random.Random(7)
        methods = [MethodKind.AGENT, MethodKind.VIRSORTER, MethodKind.PHISPY]
        raw = []
        for _ in range(200):
            start = rng.randint(1, 10000)
            raw.append(
                RawPrediction("chr", start, start + rng.randint(0, 300), rng.choice(methods))
            )
        merged = merge_predictions(raw)
        for left, right in zip(merged, merged[1:]):
            assert left.end < right.start

    def test_input_order_does_not_matter(self, raw_predictions):
        expected = spans(merge_predictions(raw_predictions, proximity=10))
        shuffled = list(raw_predictions)
        for seed in range(5):
            random.Random(seed).shuffle(shuffled)
            assert spans(merge_predictions(shuffled, proximity=10)) == expected

    def test_mixed_contigs_rejected(self):
        raw = [
            RawPrediction("chr", 1, 10, MethodKind.AGENT),
            RawPrediction("p1", 1, 10, MethodKind.AGENT),
        ]
        with pytest.raises(ValueError, match="several contigs"):
            merge_predictions(raw)


class TestPredictionMerger:
    """Tests for PredictionMerger."""

    def test_merge_by_contig(self, raw_predictions):
        raw = raw_predictions + [RawPrediction("p1", 5, 50, MethodKind.PHAST)]
        merged = PredictionMerger().merge(group_by_contig(raw))
        assert sorted(merged) == ["chr", "p1"]
        assert spans(merged["p1"]) == [(5, 50, ("phast",))]

    def test_contig_with_only_crispr_omitted(self):
        raw = {"chr": [RawPrediction("chr", 1, 10, MethodKind.CRISPR)]}
        assert PredictionMerger().merge(raw) == {}

    def test_negative_proximity_rejected(self):
        with pytest.raises(ValueError):
            PredictionMerger(proximity=-1)
