"""Input/output handlers for MGEConsensus.

- FASTA: genome layouts and prediction sequences
- Detector tables: normalized per-method predictions
- Prediction and cluster tables
- JSON export of the final catalogue

Example:
    >>> from mgeconsensus.io import load_genome, read_predictions
    >>> genome = load_genome("ECO1.fa")
    >>> catalog = read_predictions("out/ECO1.final.tsv", "ECO1")
"""

from mgeconsensus.io.detectors import DetectorAdapter, TableDetector, collect_predictions
from mgeconsensus.io.fasta import GenomeAccessor, genome_prefix, load_genome
from mgeconsensus.io.persistence import save_catalog
from mgeconsensus.io.predictions import read_predictions, write_clusters, write_predictions

__all__: list[str] = [
    "DetectorAdapter",
    "TableDetector",
    "collect_predictions",
    "GenomeAccessor",
    "genome_prefix",
    "load_genome",
    "save_catalog",
    "read_predictions",
    "write_clusters",
    "write_predictions",
]
