"""User-declared exclusion masks.

The mask file is tab-separated with one genome-global, 1-based interval
per line::

    ECO1    120000    135500

Each line is split over the contigs it touches and stored as
contig-local intervals clipped to the contig bounds. Overlapping masks
on one contig are coalesced. Masks never make a
run fail: unknown genomes and malformed lines, including lines that are
not valid UTF-8, are skipped.

Example:
    >>> from mgeconsensus.core.mask import MaskStore
    >>> store = MaskStore.load("masks.tsv", genomes)
    >>> store.is_masked("ECO1", "chr", 100, 250)
    True
"""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Iterable, Mapping

from mgeconsensus.core.models import Genome, MaskInterval, MergedPrediction
from mgeconsensus.utils.intervals import Interval, clip, find_overlaps, merge_intervals

logger = logging.getLogger(__name__)


class MaskStore:
    """Per-genome, per-contig masked intervals.

    An empty store (no mask file) answers False to every query.
    """

    def __init__(self) -> None:
        self._masks: dict[str, dict[str, list[MaskInterval]]] = defaultdict(dict)

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def load(
        cls,
        path: Path | str | None,
        genomes: Mapping[str, Genome],
    ) -> MaskStore:
        """Load a mask file.

        Args:
            path: Mask file path, or None for an empty store.
            genomes: Known genomes keyed by prefix.

        Returns:
            Populated MaskStore.
        """
        store = cls()
        if path is None:
            return store

        with open(path, encoding="utf-8", errors="replace") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                fields = line.split("\t")
                if len(fields) < 3:
                    logger.debug(f"Skipping malformed mask line {line_no}: {line!r}")
                    continue
                try:
                    start = int(fields[1])
                    end = int(fields[2])
                except ValueError:
                    logger.debug(f"Skipping malformed mask line {line_no}: {line!r}")
                    continue

                prefix = fields[0].strip()
                genome = genomes.get(prefix)
                if genome is None:
                    logger.debug(f"Mask line {line_no} names unknown genome {prefix}")
                    continue

                store.add_global(genome, start, end)

        logger.info(f"Loaded masks for {len(store._masks)} genomes from {path}")
        return store

    def add_global(self, genome: Genome, start: int, end: int) -> int:
        """Record a genome-global mask on every contig it overlaps.

        Args:
            genome: Genome the mask belongs to.
            start: Global start (1-based).
            end: Global end (inclusive).

        Returns:
            Number of contig-local masks recorded.
        """
        if start > end:
            logger.warning(
                f"Dropping mask {genome.prefix}:{start}-{end}: start exceeds end"
            )
            return 0

        recorded = 0
        for contig in genome.contigs_overlapping(start, end):
            clipped = clip(Interval(start, end), contig.span)
            if clipped is None:
                continue
            self.add_local(
                genome.prefix,
                contig.seqid,
                contig.to_local(clipped.start),
                contig.to_local(clipped.end),
            )
            recorded += 1

        if recorded == 0:
            logger.debug(f"Mask {genome.prefix}:{start}-{end} lies outside all contigs")
        return recorded

    def add_local(self, prefix: str, seqid: str, start: int, end: int) -> None:
        """Record a contig-local mask."""
        spans = [m.span for m in self._masks[prefix].get(seqid, [])]
        spans.append(Interval(start, end))
        self._masks[prefix][seqid] = [
            MaskInterval(prefix, seqid, span.start, span.end)
            for span in merge_intervals(spans)
        ]

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def __bool__(self) -> bool:
        return any(self._masks.values())

    def masks_for(self, prefix: str, seqid: str) -> list[MaskInterval]:
        """Get the masks of one contig in ascending start order."""
        return list(self._masks.get(prefix, {}).get(seqid, []))

    def is_masked(self, prefix: str, seqid: str, start: int, end: int) -> bool:
        """Check whether a contig-local span overlaps any mask."""
        spans = [m.span for m in self.masks_for(prefix, seqid)]
        return bool(find_overlaps(Interval(start, end), spans))

    def apply(self, prefix: str, predictions: Iterable[MergedPrediction]) -> int:
        """Set the ``masked`` flag of each prediction from the store.

        Flags are recomputed rather than toggled, so applying the store
        repeatedly gives the same result.

        Args:
            prefix: Genome the predictions belong to.
            predictions: Predictions to flag.

        Returns:
            Number of masked predictions.
        """
        n_masked = 0
        for prediction in predictions:
            prediction.masked = self.is_masked(
                prefix, prediction.contig, prediction.start, prediction.end
            )
            n_masked += prediction.masked
        return n_masked
