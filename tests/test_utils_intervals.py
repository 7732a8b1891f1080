"""Tests for mgeconsensus.utils.intervals (1-based, closed intervals)."""

from mgeconsensus.utils.intervals import (
    Interval,
    clip,
    find_overlaps,
    merge_intervals,
    overlaps,
)


class TestInterval:
    """Tests for the Interval NamedTuple."""

    def test_length_is_inclusive(self):
        assert Interval(100, 200).length == 101
        assert Interval(5, 5).length == 1

    def test_overlaps_shared_base(self):
        """Intervals touching at one base overlap."""
        assert Interval(100, 200).overlaps(Interval(200, 300))
        assert not Interval(100, 199).overlaps(Interval(200, 300))


class TestOverlapFunctions:
    """Tests for overlaps() and find_overlaps()."""

    def test_overlaps(self):
        assert overlaps(1, 10, 10, 20)
        assert overlaps(5, 6, 1, 100)
        assert not overlaps(1, 10, 11, 20)

    def test_find_overlaps_returns_indices(self):
        targets = [Interval(1, 5), Interval(10, 20), Interval(18, 30)]
        result = find_overlaps(Interval(15, 19), targets)
        assert result == [(1, Interval(10, 20)), (2, Interval(18, 30))]

    def test_find_overlaps_empty(self):
        assert find_overlaps(Interval(1, 2), []) == []


class TestClip:
    """Tests for clip()."""

    def test_clip_inside(self):
        assert clip(Interval(50, 60), Interval(1, 100)) == Interval(50, 60)

    def test_clip_partial(self):
        assert clip(Interval(90, 150), Interval(1, 100)) == Interval(90, 100)
        assert clip(Interval(90, 150), Interval(101, 200)) == Interval(101, 150)

    def test_clip_disjoint(self):
        assert clip(Interval(1, 10), Interval(11, 20)) is None


class TestMergeIntervals:
    """Tests for merge_intervals()."""

    def test_merge_overlapping(self):
        merged = merge_intervals([Interval(150, 250), Interval(100, 200)])
        assert merged == [Interval(100, 250)]

    def test_adjacent_not_merged_without_proximity(self):
        merged = merge_intervals([Interval(1, 10), Interval(11, 20)])
        assert merged == [Interval(1, 10), Interval(11, 20)]

    def test_proximity_bridges_gap(self):
        merged = merge_intervals([Interval(1, 10), Interval(20, 30)], proximity=10)
        assert merged == [Interval(1, 30)]

    def test_contained_interval(self):
        merged = merge_intervals([Interval(1, 100), Interval(20, 30)])
        assert merged == [Interval(1, 100)]

    def test_empty(self):
        assert merge_intervals([]) == []
