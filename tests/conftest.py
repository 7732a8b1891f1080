"""Pytest configuration and shared fixtures for MGEConsensus tests.

This module contains fixtures that are shared across multiple test modules.
Fixtures are organized by category:

- FASTA fixtures: Synthetic genome files
- Model fixtures: Genome layouts and raw predictions
- Table fixtures: Detector tables and mask files on disk
"""

from pathlib import Path

import numpy as np
import pytest

from mgeconsensus.core.models import Genome, MethodKind, RawPrediction


def write_fasta_file(path: Path, sequences: dict[str, str]) -> Path:
    """Write sequences as FASTA with 80-character lines."""
    with open(path, "w") as f:
        for seqid, seq in sequences.items():
            f.write(f">{seqid}\n")
            for i in range(0, len(seq), 80):
                f.write(seq[i : i + 80] + "\n")
    return path


def random_sequence(length: int, seed: int) -> str:
    rng = np.random.default_rng(seed)
    return "".join(rng.choice(list("ACGT"), length))


def write_table(path: Path, rows: list[tuple]) -> Path:
    """Write tab-separated rows."""
    with open(path, "w") as f:
        for row in rows:
            f.write("\t".join(str(v) for v in row) + "\n")
    return path


# =============================================================================
# FASTA Fixtures
# =============================================================================


@pytest.fixture
def synthetic_fasta(tmp_path: Path) -> Path:
    """Create a synthetic genome FASTA.

    Creates ECO1 with two contigs:
    - chr: 5000 bp (global 1-5000)
    - p1: 800 bp (global 5001-5800)
    """
    return write_fasta_file(
        tmp_path / "ECO1.fa",
        {"chr": random_sequence(5000, 1), "p1": random_sequence(800, 2)},
    )


@pytest.fixture
def genome_pair(tmp_path: Path) -> dict[str, Path]:
    """Create two single-contig genomes of 5000 bp each."""
    genome_dir = tmp_path / "genomes"
    genome_dir.mkdir()
    return {
        "ECO1": write_fasta_file(genome_dir / "ECO1.fa", {"chr": random_sequence(5000, 11)}),
        "ECO2": write_fasta_file(genome_dir / "ECO2.fa", {"chr": random_sequence(5000, 12)}),
    }


# =============================================================================
# Model Fixtures
# =============================================================================


@pytest.fixture
def genome() -> Genome:
    """Layout matching synthetic_fasta."""
    return Genome.from_lengths("ECO1", [("chr", 5000), ("p1", 800)])


@pytest.fixture
def raw_predictions() -> list[RawPrediction]:
    """Predictions on 'chr' from several methods.

    - agent 100-200 and virsorter 150-250 overlap
    - crispr 180-190 falls inside them
    - phispy 1000-1500 stands alone
    - crispr 900-950 matches nothing
    """
    return [
        RawPrediction("chr", 100, 200, MethodKind.AGENT),
        RawPrediction("chr", 150, 250, MethodKind.VIRSORTER),
        RawPrediction("chr", 180, 190, MethodKind.CRISPR),
        RawPrediction("chr", 1000, 1500, MethodKind.PHISPY),
        RawPrediction("chr", 900, 950, MethodKind.CRISPR),
    ]


# =============================================================================
# Table Fixtures
# =============================================================================


@pytest.fixture
def predictions_dir(tmp_path: Path) -> Path:
    """Detector tables for ECO1 and ECO2."""
    directory = tmp_path / "predictions"
    directory.mkdir()
    write_table(directory / "ECO1.agent.tsv", [("chr", 1001, 2500)])
    write_table(directory / "ECO1.virsorter.tsv", [("chr", 1200, 2600)])
    write_table(directory / "ECO2.phispy.tsv", [("chr", 3001, 3500)])
    write_table(directory / "ECO2.crispr.tsv", [("chr", 4500, 4550)])
    return directory


@pytest.fixture
def mask_file(tmp_path: Path) -> Path:
    """Mask file with a valid line, comments and malformed lines."""
    path = tmp_path / "masks.tsv"
    path.write_text(
        "# genome\tstart\tend\n"
        "ECO1\t180\t210\n"
        "\n"
        "ECO1\tnot_a_number\t10\n"
        "ECO1\t5\n"
        "UNKNOWN\t1\t100\n"
        "ECO1\t4900\t5100\n"
    )
    return path
