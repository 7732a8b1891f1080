"""Genomic interval operations.

All intervals in MGEConsensus use 1-based, fully closed coordinates
(the convention of the detector outputs and the mask file), so two
intervals overlap when they share at least one base.

- Overlap detection
- Interval merging with a proximity allowance
- Clipping to a bounding interval

Example:
    >>> from mgeconsensus.utils.intervals import Interval, merge_intervals
    >>> merge_intervals([Interval(100, 200), Interval(150, 250)])
    [Interval(start=100, end=250)]
"""

from typing import NamedTuple

# =============================================================================
# Data Structures
# =============================================================================


class Interval(NamedTuple):
    """A simple genomic interval.

    Attributes:
        start: Start position (1-based, inclusive).
        end: End position (1-based, inclusive).
    """

    start: int
    end: int

    @property
    def length(self) -> int:
        """Get interval length."""
        return self.end - self.start + 1

    def overlaps(self, other: "Interval") -> bool:
        """Check if this interval shares at least one base with another."""
        return self.start <= other.end and other.start <= self.end


# =============================================================================
# Overlap Operations
# =============================================================================


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Check if two closed intervals overlap.

    Args:
        a_start: Start of the first interval.
        a_end: End of the first interval.
        b_start: Start of the second interval.
        b_end: End of the second interval.

    Returns:
        True if intervals share at least one position.
    """
    return a_start <= b_end and b_start <= a_end


def find_overlaps(
    query: Interval,
    targets: list[Interval],
) -> list[tuple[int, Interval]]:
    """Find all intervals that overlap a query.

    Args:
        query: Query interval.
        targets: List of target intervals.

    Returns:
        List of (index, interval) tuples for overlapping intervals.
    """
    return [(i, target) for i, target in enumerate(targets) if query.overlaps(target)]


def clip(interval: Interval, bounds: Interval) -> Interval | None:
    """Clip an interval to a bounding interval.

    Args:
        interval: Interval to clip.
        bounds: Bounding interval.

    Returns:
        The clipped interval, or None if they do not overlap.
    """
    if not interval.overlaps(bounds):
        return None
    return Interval(max(interval.start, bounds.start), min(interval.end, bounds.end))


# =============================================================================
# Merge Operations
# =============================================================================


def merge_intervals(intervals: list[Interval], proximity: int = 0) -> list[Interval]:
    """Merge overlapping or nearby intervals.

    Args:
        intervals: List of intervals to merge.
        proximity: Maximum gap (bp) between two intervals that are still
            merged. 0 merges only intervals sharing a base.

    Returns:
        List of merged intervals in ascending start order.
    """
    if not intervals:
        return []

    sorted_intervals = sorted(intervals)

    merged = [sorted_intervals[0]]
    for current in sorted_intervals[1:]:
        last = merged[-1]
        if current.start <= last.end + proximity:
            merged[-1] = Interval(last.start, max(last.end, current.end))
        else:
            merged.append(current)

    return merged
