"""Consensus binning of merged predictions into confidence tiers.

Tiers are decided by the number and class of the extending methods
behind a prediction (first match wins):

==========  ===================================================
Tier        Rule
==========  ===================================================
TIER1       more than two extending methods
TIER2       exactly two extending methods
TIER3       one primary extending method
TIER4       one secondary extending method
TIER5       a lone protospacer match with no merged span
==========  ===================================================

Protospacer matches overlapping a merged span corroborate it without
changing its tier. Masked predictions stay in the catalogue, flagged, so
later stages still see them.

Example:
    >>> from mgeconsensus.core.binning import ConsensusBinner
    >>> binner = ConsensusBinner(mask_store)
    >>> catalog = binner.bin_genome(genome, merged, raw)
    >>> [p.name for p in catalog[Tier.TIER2]]
    ['ECO1_1']
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, Mapping

from mgeconsensus.core.mask import MaskStore
from mgeconsensus.core.models import (
    BinnedPrediction,
    Genome,
    MergedPrediction,
    MethodKind,
    RawPrediction,
    Tier,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Tiering
# =============================================================================


def assign_tier(methods: Iterable[MethodKind]) -> Tier:
    """Classify a method set into a consensus tier.

    Args:
        methods: Methods supporting a prediction. Duplicates are ignored.

    Returns:
        The first tier whose rule matches.

    Raises:
        ValueError: If no method is given.
    """
    methods = set(methods)
    if not methods:
        raise ValueError("Cannot tier a prediction without methods")

    extending = [m for m in methods if m.extending]
    if len(extending) > 2:
        return Tier.TIER1
    if len(extending) == 2:
        return Tier.TIER2
    if len(extending) == 1:
        return Tier.TIER3 if extending[0].primary else Tier.TIER4
    return Tier.TIER5


# =============================================================================
# Catalogue
# =============================================================================


class BinnedCatalog:
    """Tiered predictions of one genome.

    Every prediction lives in exactly one tier. The catalogue only grows:
    predictions are added, never removed or moved between tiers.

    Attributes:
        prefix: Owning genome.
    """

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix
        self._tiers: dict[Tier, list[BinnedPrediction]] = {tier: [] for tier in Tier}
        self._counter = 0

    def __getitem__(self, tier: Tier) -> list[BinnedPrediction]:
        return list(self._tiers[tier])

    def __len__(self) -> int:
        return sum(len(v) for v in self._tiers.values())

    def __iter__(self) -> Iterator[BinnedPrediction]:
        return self.iter_predictions(include_masked=True)

    def next_name(self) -> str:
        self._counter += 1
        return f"{self.prefix}_{self._counter}"

    def add(self, prediction: BinnedPrediction) -> BinnedPrediction:
        """Append a prediction to its tier, naming it if needed."""
        if prediction.name is None:
            prediction.name = self.next_name()
        else:
            head, _, number = prediction.name.rpartition("_")
            if head == self.prefix and number.isdigit():
                self._counter = max(self._counter, int(number))
        self._tiers[prediction.tier].append(prediction)
        return prediction

    def iter_predictions(self, include_masked: bool = False) -> Iterator[BinnedPrediction]:
        """Iterate predictions in tier order, then insertion order."""
        for tier in Tier:
            for prediction in self._tiers[tier]:
                if include_masked or not prediction.masked:
                    yield prediction

    def overlapping(
        self,
        seqid: str,
        start: int,
        end: int,
        include_masked: bool = True,
    ) -> list[BinnedPrediction]:
        """Find predictions overlapping a contig-local span."""
        return [
            p
            for p in self.iter_predictions(include_masked=include_masked)
            if p.overlaps(seqid, start, end)
        ]

    def get(self, name: str) -> BinnedPrediction | None:
        for prediction in self.iter_predictions(include_masked=True):
            if prediction.name == name:
                return prediction
        return None

    def counts(self) -> dict[Tier, int]:
        """Number of unmasked predictions per tier."""
        return {
            tier: sum(1 for p in self._tiers[tier] if not p.masked) for tier in Tier
        }


# =============================================================================
# Binner
# =============================================================================


class ConsensusBinner:
    """Assign tiers to a genome's merged predictions and apply masks.

    Example:
        >>> binner = ConsensusBinner(MaskStore())
        >>> catalog = binner.bin_genome(genome, merged_by_contig, raw_by_contig)
    """

    def __init__(self, mask_store: MaskStore | None = None) -> None:
        self.mask_store = mask_store if mask_store is not None else MaskStore()

    def bin_contig(
        self,
        merged: Iterable[MergedPrediction],
        raw: Iterable[RawPrediction],
    ) -> list[BinnedPrediction]:
        """Tier the predictions of a single contig.

        Args:
            merged: Merged spans of the contig.
            raw: All raw predictions of the contig, any method.

        Returns:
            Binned predictions (unnamed, unmasked).
        """
        binned = [
            BinnedPrediction(
                contig=m.contig,
                start=m.start,
                end=m.end,
                methods=m.methods,
                corroborating=m.corroborating,
                tier=assign_tier(m.methods),
            )
            for m in merged
        ]

        standalone: dict[tuple[int, int], BinnedPrediction] = {}
        for prediction in raw:
            if prediction.method.extending:
                continue
            if not prediction.is_valid:
                logger.warning(f"Dropping invalid prediction {prediction}")
                continue

            hosts = [
                b
                for b in binned
                if b.overlaps(prediction.contig, prediction.start, prediction.end)
            ]
            if hosts:
                for host in hosts:
                    host.corroborating = host.corroborating + (prediction.method,)
                continue

            key = (prediction.start, prediction.end)
            if key in standalone:
                continue
            standalone[key] = BinnedPrediction(
                contig=prediction.contig,
                start=prediction.start,
                end=prediction.end,
                methods=(prediction.method,),
                tier=assign_tier([prediction.method]),
            )

        binned.extend(standalone[key] for key in sorted(standalone))
        return binned

    def bin_genome(
        self,
        genome: Genome,
        merged_by_contig: Mapping[str, Iterable[MergedPrediction]],
        raw_by_contig: Mapping[str, Iterable[RawPrediction]],
    ) -> BinnedCatalog:
        """Build the tiered catalogue of one genome.

        Contigs the genome does not declare are dropped with a warning.

        Args:
            genome: Genome being binned.
            merged_by_contig: {seqid: [MergedPrediction, ...]}.
            raw_by_contig: {seqid: [RawPrediction, ...]} for all methods.

        Returns:
            BinnedCatalog with masks applied.
        """
        binned: list[BinnedPrediction] = []
        for contig in genome.contigs:
            binned.extend(
                self.bin_contig(
                    merged_by_contig.get(contig.seqid, []),
                    raw_by_contig.get(contig.seqid, []),
                )
            )

        unknown = (set(merged_by_contig) | set(raw_by_contig)) - {
            c.seqid for c in genome.contigs
        }
        for seqid in sorted(unknown):
            logger.warning(
                f"Dropping predictions on unknown contig {seqid} of {genome.prefix}"
            )

        n_masked = self.mask_store.apply(genome.prefix, binned)

        # Stable sort keeps contig and coordinate order within a tier
        catalog = BinnedCatalog(genome.prefix)
        for prediction in sorted(binned, key=lambda p: p.tier.value):
            catalog.add(prediction)

        counts = catalog.counts()
        logger.info(
            f"{genome.prefix}: "
            + ", ".join(f"{tier.label}={counts[tier]}" for tier in Tier)
            + f" ({n_masked} masked)"
        )
        return catalog
