"""FASTA file handling for genome sequences.

This module provides indexed access to genome sequences stored in FASTA
format, using pyfaidx, and builds the contig layout of a genome from
its index.

Features:
    - Random access to sequences by region
    - Genome layout (contig offsets) from file order
    - Extraction of prediction sequences for similarity searches

Example:
    >>> from mgeconsensus.io.fasta import GenomeAccessor
    >>> with GenomeAccessor("ECO1.fa") as accessor:
    ...     genome = accessor.to_genome("ECO1")
    ...     seq = accessor.get_sequence("chr", 100, 250)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Iterator

import pyfaidx

from mgeconsensus.core.models import Genome, MergedPrediction

logger = logging.getLogger(__name__)

FASTA_SUFFIXES = (".fa", ".fasta", ".fna", ".fas")


# =============================================================================
# Main Accessor Class
# =============================================================================


class GenomeAccessor:
    """Indexed FASTA access using pyfaidx.

    Attributes:
        path: Path to the FASTA file.

    Example:
        >>> genome = GenomeAccessor("genome.fa")
        >>> print(f"Contigs: {genome.scaffold_order[:5]}")
        >>> seq = genome.get_sequence("chr", 1000, 2000)
    """

    def __init__(self, fasta_path: Path | str) -> None:
        """Initialize the genome accessor.

        Args:
            fasta_path: Path to FASTA file. Will create .fai index if needed.

        Raises:
            FileNotFoundError: If FASTA file doesn't exist.
        """
        self.path = Path(fasta_path)
        if not self.path.exists():
            raise FileNotFoundError(f"FASTA file not found: {self.path}")

        self._fasta: pyfaidx.Fasta | None = None
        self._scaffold_lengths: dict[str, int] | None = None
        self._scaffold_order: list[str] | None = None

        self._open()

    def _open(self) -> None:
        """Open the FASTA file with pyfaidx."""
        self._fasta = pyfaidx.Fasta(
            str(self.path),
            sequence_always_upper=True,
            read_ahead=10000,
            rebuild=False,
        )

        self._scaffold_order = list(self._fasta.keys())
        self._scaffold_lengths = {
            seqid: len(self._fasta[seqid]) for seqid in self._scaffold_order
        }

        logger.debug(
            f"Opened FASTA: {self.path.name}, "
            f"{len(self._scaffold_order)} contigs, "
            f"{self.total_length:,} bp total"
        )

    @property
    def scaffold_lengths(self) -> dict[str, int]:
        """Return {seqid: length} mapping."""
        if self._scaffold_lengths is None:
            raise RuntimeError("FASTA file not opened")
        return self._scaffold_lengths.copy()

    @property
    def scaffold_order(self) -> list[str]:
        """Return list of contig names in file order."""
        if self._scaffold_order is None:
            raise RuntimeError("FASTA file not opened")
        return self._scaffold_order.copy()

    @property
    def total_length(self) -> int:
        """Total genome size in bases."""
        if self._scaffold_lengths is None:
            raise RuntimeError("FASTA file not opened")
        return sum(self._scaffold_lengths.values())

    def __enter__(self) -> GenomeAccessor:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the FASTA file."""
        if self._fasta is not None:
            self._fasta.close()
            self._fasta = None

    def __contains__(self, seqid: str) -> bool:
        if self._scaffold_lengths is None:
            return False
        return seqid in self._scaffold_lengths

    def get_sequence(self, seqid: str, start: int, end: int) -> str:
        """Get sequence for a 1-based, inclusive region.

        Args:
            seqid: Contig name.
            start: Start position (1-based).
            end: End position (inclusive).

        Returns:
            Sequence string.

        Raises:
            KeyError: If seqid not in FASTA.
            ValueError: If coordinates are invalid.
        """
        if self._fasta is None or self._scaffold_lengths is None:
            raise RuntimeError("FASTA file not opened")

        if seqid not in self._scaffold_lengths:
            raise KeyError(f"Unknown contig: {seqid}")

        contig_length = self._scaffold_lengths[seqid]
        if start < 1:
            raise ValueError(f"Start position must be >= 1, got {start}")
        if end > contig_length:
            raise ValueError(f"End position {end} exceeds contig length {contig_length}")
        if start > end:
            raise ValueError(f"Start ({start}) must not exceed end ({end})")

        # pyfaidx slices are 0-based half-open
        return str(self._fasta[seqid][start - 1:end])

    def to_genome(self, prefix: str, name: str | None = None) -> Genome:
        """Build the genome layout from the index, in file order."""
        return Genome.from_lengths(
            prefix,
            [(seqid, self._scaffold_lengths[seqid]) for seqid in self.scaffold_order],
            name=name,
            source_format="fasta",
        )

    def iter_prediction_sequences(
        self,
        predictions: Iterable[MergedPrediction],
    ) -> Iterator[tuple[str, str]]:
        """Yield (name, sequence) for named predictions.

        Predictions on contigs missing from the file, or reaching past a
        contig end, are skipped with a warning.
        """
        for prediction in predictions:
            try:
                sequence = self.get_sequence(
                    prediction.contig, prediction.start, prediction.end
                )
            except (KeyError, ValueError) as e:
                logger.warning(f"Cannot extract {prediction.name}: {e}")
                continue
            yield prediction.name, sequence


# =============================================================================
# Convenience Functions
# =============================================================================


def genome_prefix(fasta_path: Path | str) -> str:
    """Derive a genome prefix from a FASTA file name."""
    path = Path(fasta_path)
    name = path.name
    for suffix in FASTA_SUFFIXES:
        if name.lower().endswith(suffix):
            return name[: -len(suffix)]
    return path.stem


def load_genome(fasta_path: Path | str, prefix: str | None = None) -> Genome:
    """Ingest a FASTA file into a Genome.

    Args:
        fasta_path: Path to FASTA file.
        prefix: Genome identifier (defaults to the file name stem).

    Returns:
        Genome with its contig layout.
    """
    with GenomeAccessor(fasta_path) as accessor:
        return accessor.to_genome(prefix or genome_prefix(fasta_path))
