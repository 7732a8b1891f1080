"""Core consensus logic for MGEConsensus.

This module contains the data structures and algorithms that turn raw
detector output into a clustered catalogue:

- Region masks
- Prediction merging
- Confidence tier binning
- Cross-genome reconciliation
- Markov clustering

Example:
    >>> from mgeconsensus.core import PredictionMerger, ConsensusBinner
"""

from mgeconsensus.core.binning import BinnedCatalog, ConsensusBinner, assign_tier
from mgeconsensus.core.cluster import ClusterEngine, build_similarity_graph, markov_cluster
from mgeconsensus.core.mask import MaskStore
from mgeconsensus.core.merge import PredictionMerger, group_by_contig, merge_predictions
from mgeconsensus.core.models import (
    BinnedPrediction,
    Cluster,
    Contig,
    Genome,
    MaskInterval,
    MergedPrediction,
    MethodKind,
    RawPrediction,
    Tier,
)
from mgeconsensus.core.reconcile import ReconcileHit, Reconciler, ReconcileThresholds

__all__: list[str] = [
    # Models
    "BinnedPrediction",
    "Cluster",
    "Contig",
    "Genome",
    "MaskInterval",
    "MergedPrediction",
    "MethodKind",
    "RawPrediction",
    "Tier",
    # Stages
    "MaskStore",
    "PredictionMerger",
    "merge_predictions",
    "group_by_contig",
    "BinnedCatalog",
    "ConsensusBinner",
    "assign_tier",
    "ReconcileHit",
    "ReconcileThresholds",
    "Reconciler",
    "ClusterEngine",
    "build_similarity_graph",
    "markov_cluster",
]
