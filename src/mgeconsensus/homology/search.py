"""Nucleotide similarity search using BLAST+.

This module wraps ``makeblastdb`` and ``blastn`` for the two searches
the pipeline needs: prediction sequences against other genomes (for
reconciliation) and all-vs-all between predictions (for clustering).

Features:
    - Build nucleotide BLAST databases
    - Run blastn with tabular output
    - Parse tabular results into structured hits
    - Write FASTA files of prediction sequences

Example:
    >>> from mgeconsensus.homology.search import SequenceSearch
    >>> searcher = SequenceSearch(threads=4)
    >>> searcher.format_database("ECO2.fa", "db/ECO2")
    >>> hits = searcher.search_and_parse("ECO1_predictions.fa")
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Iterable

import attrs

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

# blastn output format fields
BLAST_OUTFMT = [
    "qseqid", "sseqid", "pident", "length",
    "mismatch", "gapopen", "qstart", "qend",
    "sstart", "send", "evalue", "bitscore",
    "qlen", "slen",
]

DEFAULT_EVALUE = 1e-10


# =============================================================================
# Data Structures
# =============================================================================


@attrs.define(slots=True)
class SimilarityHit:
    """Single similarity search hit.

    Attributes:
        query_id: Query sequence ID.
        subject_id: Subject sequence ID.
        identity: Percent identity (0-100).
        alignment_length: Length of alignment in bases.
        mismatches: Number of mismatches.
        gap_opens: Number of gap openings.
        query_start: Start position in query (1-based).
        query_end: End position in query (1-based).
        subject_start: Start position in subject (1-based, may exceed end
            on the minus strand).
        subject_end: End position in subject (1-based).
        evalue: E-value of hit.
        bitscore: Bit score of hit.
        query_length: Total query length (if available).
        subject_length: Total subject length (if available).
    """

    query_id: str
    subject_id: str
    identity: float
    alignment_length: int
    mismatches: int = 0
    gap_opens: int = 0
    query_start: int = 1
    query_end: int = 1
    subject_start: int = 1
    subject_end: int = 1
    evalue: float = 0.0
    bitscore: float = 0.0
    query_length: int | None = None
    subject_length: int | None = None

    @property
    def subject_span(self) -> tuple[int, int]:
        """Subject coordinates ordered low to high."""
        return (
            min(self.subject_start, self.subject_end),
            max(self.subject_start, self.subject_end),
        )

    @classmethod
    def from_blast_line(cls, line: str) -> SimilarityHit:
        """Parse a blastn tabular output line.

        Expects ``-outfmt 6`` with the columns of ``BLAST_OUTFMT``; the
        trailing length columns are optional.

        Args:
            line: Tab-separated line from blastn output.

        Returns:
            SimilarityHit instance.

        Raises:
            ValueError: If the line has too few or non-numeric fields.
        """
        fields = line.strip().split("\t")
        if len(fields) < 12:
            raise ValueError(f"Expected at least 12 fields, got {len(fields)}")

        query_length = None
        subject_length = None
        if len(fields) >= 14:
            query_length = int(fields[12]) if fields[12] else None
            subject_length = int(fields[13]) if fields[13] else None

        return cls(
            query_id=fields[0],
            subject_id=fields[1],
            identity=float(fields[2]),
            alignment_length=int(fields[3]),
            mismatches=int(fields[4]),
            gap_opens=int(fields[5]),
            query_start=int(fields[6]),
            query_end=int(fields[7]),
            subject_start=int(fields[8]),
            subject_end=int(fields[9]),
            evalue=float(fields[10]),
            bitscore=float(fields[11]),
            query_length=query_length,
            subject_length=subject_length,
        )


# =============================================================================
# Search Class
# =============================================================================


class SequenceSearch:
    """Run blastn searches against nucleotide databases.

    Example:
        >>> searcher = SequenceSearch(threads=8)
        >>> db = searcher.format_database("genome.fa")
        >>> hits = searcher.search_and_parse("queries.fa", database=db)
    """

    def __init__(
        self,
        executable: str = "blastn",
        threads: int = 1,
        evalue: float = DEFAULT_EVALUE,
        tmp_dir: Path | str | None = None,
        check_tools: bool = True,
    ) -> None:
        """Initialize search.

        Args:
            executable: blastn executable name or path.
            threads: Number of threads per search.
            evalue: E-value threshold.
            tmp_dir: Directory for databases and intermediate files.
            check_tools: Verify the BLAST+ tools are on PATH.
        """
        self.executable = executable
        self.threads = threads
        self.evalue = evalue
        self.tmp_dir = Path(tmp_dir) if tmp_dir else Path(tempfile.gettempdir())

        if check_tools:
            self._check_tool_available()

    def _check_tool_available(self) -> None:
        """Verify BLAST+ is installed.

        Raises:
            RuntimeError: If a tool is not found in PATH.
        """
        for executable in (self.executable, "makeblastdb"):
            if shutil.which(executable) is None:
                raise RuntimeError(
                    f"{executable} not found in PATH. "
                    "Please install BLAST+ and ensure it's in your PATH."
                )

    def format_database(
        self,
        fasta_path: Path | str,
        output_path: Path | str | None = None,
        overwrite: bool = False,
    ) -> Path:
        """Format a nucleotide database for searching.

        Args:
            fasta_path: Input nucleotide FASTA.
            output_path: Database prefix. Defaults to a name under tmp_dir.
            overwrite: Rebuild even if the database already exists.

        Returns:
            Database prefix path.

        Raises:
            FileNotFoundError: If FASTA doesn't exist.
            RuntimeError: If formatting fails.
        """
        fasta_path = Path(fasta_path)
        if not fasta_path.exists():
            raise FileNotFoundError(f"FASTA file not found: {fasta_path}")

        if output_path is None:
            output_path = self.tmp_dir / "blastdb" / fasta_path.stem
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        existing = any(Path(f"{output_path}{ext}").exists() for ext in (".nsq", ".nal"))
        if existing and not overwrite:
            logger.debug(f"Reusing existing database {output_path}")
            return output_path

        cmd = [
            "makeblastdb",
            "-in", str(fasta_path),
            "-dbtype", "nucl",
            "-out", str(output_path),
        ]

        try:
            result = subprocess.run(cmd, check=True, capture_output=True, text=True)
            logger.debug(f"makeblastdb output: {result.stdout}")
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"Database formatting failed: {e.stderr}") from e

        logger.info(f"Database created: {output_path}")
        return output_path

    def search(
        self,
        query_fasta: Path | str,
        database: Path | str,
        output_path: Path | str | None = None,
    ) -> Path:
        """Run blastn.

        Args:
            query_fasta: Query nucleotide sequences.
            database: Database prefix from format_database().
            output_path: Output path for results. Auto-generated if None.

        Returns:
            Path to tabular output file.

        Raises:
            FileNotFoundError: If the query doesn't exist.
            RuntimeError: If the search fails.
        """
        query_fasta = Path(query_fasta)
        if not query_fasta.exists():
            raise FileNotFoundError(f"Query FASTA not found: {query_fasta}")

        database = Path(database)
        if output_path is None:
            output_path = self.tmp_dir / f"{query_fasta.stem}_vs_{database.name}.tsv"
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        cmd = [
            self.executable,
            "-query", str(query_fasta),
            "-db", str(database),
            "-out", str(output_path),
            "-outfmt", "6 " + " ".join(BLAST_OUTFMT),
            "-evalue", str(self.evalue),
            "-num_threads", str(self.threads),
        ]

        logger.debug(f"blastn command: {' '.join(cmd)}")

        try:
            subprocess.run(cmd, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"blastn search failed: {e.stderr}") from e

        return output_path

    def parse_results(self, results_path: Path | str) -> list[SimilarityHit]:
        """Parse tabular search results.

        Unparseable lines are logged and skipped.

        Args:
            results_path: Path to search output.

        Returns:
            Hits in file order.
        """
        results_path = Path(results_path)
        if not results_path.exists():
            raise FileNotFoundError(f"Results file not found: {results_path}")

        hits = []
        with open(results_path) as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                try:
                    hits.append(SimilarityHit.from_blast_line(line))
                except (ValueError, IndexError) as e:
                    logger.warning(f"Failed to parse line: {line[:50]}... ({e})")

        logger.debug(f"Parsed {len(hits)} hits from {results_path}")
        return hits

    def search_and_parse(
        self,
        query_fasta: Path | str,
        database: Path | str,
    ) -> list[SimilarityHit]:
        """Convenience method: search and parse in one call."""
        output_path = self.search(query_fasta, database)
        return self.parse_results(output_path)

    def search_fasta(
        self,
        query_fasta: Path | str,
        subject_fasta: Path | str,
    ) -> list[SimilarityHit]:
        """Search a query FASTA against a subject FASTA, rebuilding its database."""
        database = self.format_database(subject_fasta, overwrite=True)
        return self.search_and_parse(query_fasta, database)


# =============================================================================
# FASTA Helpers
# =============================================================================


def write_fasta(records: Iterable[tuple[str, str]], output_fasta: Path | str) -> int:
    """Write (id, sequence) records in 60-character lines.

    Args:
        records: (sequence_id, sequence) pairs.
        output_fasta: Output FASTA path.

    Returns:
        Number of records written.
    """
    output_fasta = Path(output_fasta)
    output_fasta.parent.mkdir(parents=True, exist_ok=True)

    n_written = 0
    with open(output_fasta, "w") as f:
        for seq_id, sequence in records:
            f.write(f">{seq_id}\n")
            for i in range(0, len(sequence), 60):
                f.write(sequence[i:i + 60] + "\n")
            n_written += 1

    return n_written
