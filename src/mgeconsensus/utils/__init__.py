"""Utility functions for MGEConsensus.

- Interval operations (overlap, clip, merge)
- Logging configuration

Example:
    >>> from mgeconsensus.utils import Interval, merge_intervals
    >>> merge_intervals([Interval(1, 10), Interval(5, 20)])
    [Interval(start=1, end=20)]
"""

from mgeconsensus.utils.intervals import (
    Interval,
    clip,
    find_overlaps,
    merge_intervals,
    overlaps,
)

__all__ = [
    "Interval",
    "clip",
    "find_overlaps",
    "merge_intervals",
    "overlaps",
]
