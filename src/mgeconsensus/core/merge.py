"""Merging of overlapping detector predictions.

Predictions from extending methods on the same contig are swept in
coordinate order; each interval either joins the open span (when it
starts inside it, or within ``proximity`` bases of its end) or closes it
and opens a new one. The resulting spans never overlap and record every
method that contributed.

Example:
    >>> from mgeconsensus.core.merge import merge_predictions
    >>> merged = merge_predictions([
    ...     RawPrediction("chr", 100, 200, MethodKind.AGENT),
    ...     RawPrediction("chr", 150, 250, MethodKind.VIRSORTER),
    ... ])
    >>> merged[0].start, merged[0].end
    (100, 250)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Mapping

from mgeconsensus.core.models import MergedPrediction, RawPrediction

logger = logging.getLogger(__name__)

DEFAULT_PROXIMITY = 0


def merge_predictions(
    raw: Iterable[RawPrediction],
    proximity: int = DEFAULT_PROXIMITY,
) -> list[MergedPrediction]:
    """Merge the extending-method predictions of one contig.

    Args:
        raw: Raw predictions for a single contig.
        proximity: Gap (bp) still bridged between neighbouring predictions.

    Returns:
        Non-overlapping merged predictions in ascending start order.

    Raises:
        ValueError: If predictions from several contigs are mixed.
    """
    candidates = []
    for prediction in raw:
        if not prediction.method.extending:
            logger.debug(f"Not merging {prediction.method} prediction {prediction}")
            continue
        if not prediction.is_valid:
            logger.warning(f"Dropping invalid prediction {prediction}")
            continue
        candidates.append(prediction)

    if not candidates:
        return []

    contigs = {p.contig for p in candidates}
    if len(contigs) > 1:
        raise ValueError(f"Predictions span several contigs: {sorted(contigs)}")

    candidates.sort(key=lambda p: (p.start, p.end, p.method.order))

    merged: list[MergedPrediction] = []
    first = candidates[0]
    open_start, open_end, open_methods = first.start, first.end, {first.method}

    for current in candidates[1:]:
        if current.start <= open_end + proximity:
            open_end = max(open_end, current.end)
            open_methods.add(current.method)
        else:
            merged.append(
                MergedPrediction(first.contig, open_start, open_end, open_methods)
            )
            open_start, open_end, open_methods = (
                current.start,
                current.end,
                {current.method},
            )

    merged.append(MergedPrediction(first.contig, open_start, open_end, open_methods))
    return merged


class PredictionMerger:
    """Merge a genome's predictions contig by contig.

    Attributes:
        proximity: Gap (bp) bridged between neighbouring predictions.
    """

    def __init__(self, proximity: int = DEFAULT_PROXIMITY) -> None:
        if proximity < 0:
            raise ValueError(f"Proximity must be >= 0, got {proximity}")
        self.proximity = proximity

    def merge(
        self,
        raw_by_contig: Mapping[str, Iterable[RawPrediction]],
    ) -> dict[str, list[MergedPrediction]]:
        """Merge every contig of a genome.

        Args:
            raw_by_contig: {seqid: [RawPrediction, ...]} from all methods.

        Returns:
            {seqid: [MergedPrediction, ...]}; contigs with nothing to merge
            are omitted.
        """
        merged = {}
        for seqid in sorted(raw_by_contig):
            spans = merge_predictions(raw_by_contig[seqid], self.proximity)
            if spans:
                merged[seqid] = spans

        n_spans = sum(len(v) for v in merged.values())
        logger.debug(f"Merged predictions into {n_spans} spans on {len(merged)} contigs")
        return merged


def group_by_contig(raw: Iterable[RawPrediction]) -> dict[str, list[RawPrediction]]:
    """Group a flat prediction list by contig."""
    grouped: dict[str, list[RawPrediction]] = defaultdict(list)
    for prediction in raw:
        grouped[prediction.contig].append(prediction)
    return dict(grouped)
