"""Data structures shared by the consensus stages.

Coordinates are 1-based and inclusive. Genomes lay their contigs out
contiguously in file order, so a genome-global position maps onto exactly
one contig and a contig-local position.

Example:
    >>> from mgeconsensus.core.models import Genome, MethodKind, RawPrediction
    >>> genome = Genome.from_lengths("ECO1", [("chr", 5000), ("p1", 800)])
    >>> genome.contig("p1").start
    5001
    >>> raw = RawPrediction("chr", 100, 200, MethodKind.AGENT)
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Iterator

import attrs

from mgeconsensus.utils.intervals import Interval, overlaps

# =============================================================================
# Enums
# =============================================================================


class MethodKind(Enum):
    """Detection methods known to the consensus engine.

    Each member carries its class as data: whether its predictions take
    part in interval merging (``extending``) and whether a lone prediction
    from it counts as higher confidence (``primary``).
    """

    # value, extending, primary
    AGENT = ("agent", True, True)  # comparative genomics
    VIRSORTER = ("virsorter", True, False)  # sequence composition
    PHISPY = ("phispy", True, False)  # composition and gene features
    PHAST = ("phast", True, False)  # similarity to known prophage types
    CRISPR = ("crispr", False, False)  # protospacer matches
    REBLAST = ("reblast", True, False)  # recovered by reconciliation

    def __init__(self, tag: str, extending: bool, primary: bool) -> None:
        self.tag = tag
        self.extending = extending
        self.primary = primary

    def __str__(self) -> str:
        return self.tag

    @property
    def order(self) -> int:
        """Declaration order, used to keep method sets deterministic."""
        return list(MethodKind).index(self)

    @classmethod
    def parse(cls, tag: str) -> MethodKind:
        """Look up a method by its lower-case tag.

        Raises:
            ValueError: If the tag names no known method.
        """
        for kind in cls:
            if kind.tag == tag.strip().lower():
                return kind
        raise ValueError(f"Unknown detection method: '{tag}'")


def sort_methods(methods: Iterable[MethodKind]) -> tuple[MethodKind, ...]:
    """Deduplicate methods and order them by declaration."""
    return tuple(sorted(set(methods), key=lambda m: m.order))


class Tier(Enum):
    """Consensus confidence tiers, TIER1 being the most confident."""

    TIER1 = 1
    TIER2 = 2
    TIER3 = 3
    TIER4 = 4
    TIER5 = 5

    def __lt__(self, other: Tier) -> bool:
        return self.value < other.value

    @property
    def label(self) -> str:
        return f"tier{self.value}"


# =============================================================================
# Genome Layout
# =============================================================================


@attrs.define(frozen=True)
class Contig:
    """A sequence record of a genome.

    Attributes:
        genome: Prefix of the owning genome.
        seqid: Sequence identifier from the input file.
        start: First genome-global position covered (1-based).
        end: Last genome-global position covered (inclusive).
    """

    genome: str
    seqid: str
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def span(self) -> Interval:
        return Interval(self.start, self.end)

    def to_local(self, position: int) -> int:
        """Translate a genome-global position to a contig-local one."""
        return position - self.start + 1


@attrs.define(frozen=True)
class Genome:
    """An ingested genome and its contig layout.

    Attributes:
        prefix: Short identifier used in file names and prediction names.
        name: Display name.
        length: Total sequence length.
        n_scaffolds: Number of contigs.
        source_format: Format the genome was ingested from.
        contigs: Contigs in file order.
    """

    prefix: str
    name: str
    length: int
    n_scaffolds: int
    source_format: str = "fasta"
    contigs: tuple[Contig, ...] = ()

    @classmethod
    def from_lengths(
        cls,
        prefix: str,
        lengths: Iterable[tuple[str, int]],
        name: str | None = None,
        source_format: str = "fasta",
    ) -> Genome:
        """Build a genome by laying contigs end to end in the given order.

        Args:
            prefix: Genome identifier.
            lengths: (seqid, length) pairs in file order.
            name: Display name (defaults to the prefix).
            source_format: Input format label.

        Returns:
            Genome with computed contig offsets.
        """
        contigs = []
        offset = 0
        for seqid, length in lengths:
            contigs.append(Contig(prefix, seqid, offset + 1, offset + length))
            offset += length

        return cls(
            prefix=prefix,
            name=name or prefix,
            length=offset,
            n_scaffolds=len(contigs),
            source_format=source_format,
            contigs=tuple(contigs),
        )

    def contig(self, seqid: str) -> Contig:
        """Get a contig by identifier.

        Raises:
            KeyError: If the genome has no such contig.
        """
        for contig in self.contigs:
            if contig.seqid == seqid:
                return contig
        raise KeyError(f"Unknown contig '{seqid}' in genome {self.prefix}")

    def has_contig(self, seqid: str) -> bool:
        return any(contig.seqid == seqid for contig in self.contigs)

    def contigs_overlapping(self, start: int, end: int) -> Iterator[Contig]:
        """Yield contigs sharing at least one position with a global range."""
        for contig in self.contigs:
            if overlaps(contig.start, contig.end, start, end):
                yield contig


@attrs.define(frozen=True)
class MaskInterval:
    """A user-declared region excluded from output, contig-local."""

    genome: str
    contig: str
    start: int
    end: int

    def __attrs_post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Mask start ({self.start}) must not exceed end ({self.end})")

    @property
    def span(self) -> Interval:
        return Interval(self.start, self.end)


# =============================================================================
# Predictions
# =============================================================================


@attrs.define(frozen=True)
class RawPrediction:
    """A single interval reported by a detector, in contig-local coordinates."""

    contig: str
    start: int
    end: int
    method: MethodKind

    @property
    def is_valid(self) -> bool:
        return 1 <= self.start <= self.end


@attrs.define(eq=False)
class MergedPrediction:
    """A consensus interval on one contig.

    ``masked`` is the only attribute changed after construction; the
    binner sets it and later stages read it.

    Attributes:
        contig: Contig identifier.
        start: Start of the union span (1-based).
        end: End of the union span (inclusive).
        methods: Extending methods whose intervals make up the span.
        corroborating: Non-extending methods overlapping the span.
        masked: Whether the span overlaps a user mask.
        name: Identifier assigned when the prediction is catalogued.
    """

    contig: str
    start: int
    end: int
    methods: tuple[MethodKind, ...] = attrs.field(converter=sort_methods)
    corroborating: tuple[MethodKind, ...] = attrs.field(
        default=(), converter=sort_methods
    )
    masked: bool = False
    name: str | None = None

    @methods.validator
    def _check_methods(self, attribute: attrs.Attribute, value: tuple) -> None:
        if not value:
            raise ValueError("A prediction needs at least one method")

    def __attrs_post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"Prediction start ({self.start}) must not exceed end ({self.end})"
            )

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def span(self) -> Interval:
        return Interval(self.start, self.end)

    @property
    def all_methods(self) -> tuple[MethodKind, ...]:
        return self.methods + tuple(
            m for m in self.corroborating if m not in self.methods
        )

    def overlaps(self, contig: str, start: int, end: int) -> bool:
        return self.contig == contig and overlaps(self.start, self.end, start, end)


@attrs.define(eq=False)
class BinnedPrediction(MergedPrediction):
    """A merged prediction with its consensus tier."""

    tier: Tier = Tier.TIER5

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "contig": self.contig,
            "start": self.start,
            "end": self.end,
            "methods": [m.tag for m in self.methods],
            "corroborating": [m.tag for m in self.corroborating],
            "tier": self.tier.value,
            "masked": self.masked,
        }


@attrs.define(frozen=True)
class Cluster:
    """A group of predictions judged to be the same element family."""

    cluster_id: str
    members: tuple[str, ...]

    @property
    def size(self) -> int:
        return len(self.members)
