"""Clustering of predictions into element families.

Predictions become nodes of an undirected similarity graph; an edge
joins two predictions whose alignment passes the identity and length
floors, weighted by identity times the aligned fraction of the longer
sequence. Each connected component is partitioned with Markov
clustering (MCL), and nodes without a qualifying edge form singleton
clusters.

Cluster identifiers follow decreasing cluster size. Ties go to the
cluster whose first member comes first in the input sequence. The
pipeline builds that sequence genome by genome in catalogue order (tier
order, then insertion order), so a late ``reblast`` prediction in TIER4
sorts ahead of an earlier TIER5 one. A prefix keeps identifiers of a
separate pass distinct (``S1``, ``S2``, ...).

Example:
    >>> from mgeconsensus.core.cluster import ClusterEngine
    >>> engine = ClusterEngine(min_identity=80, min_length=500)
    >>> clusters = engine.cluster(predictions, hits)
    >>> clusters[0].cluster_id, clusters[0].members
    ('1', ('ECO1_1', 'ECO2_4'))
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

import networkx as nx
import numpy as np

from mgeconsensus.core.models import BinnedPrediction, Cluster
from mgeconsensus.homology.search import SimilarityHit

logger = logging.getLogger(__name__)

# =============================================================================
# Default Parameters
# =============================================================================

DEFAULT_MIN_IDENTITY = 80.0  # percent
DEFAULT_MIN_LENGTH = 500  # aligned bases
DEFAULT_INFLATION = 2.0
DEFAULT_EXPANSION = 2
DEFAULT_MAX_ITER = 100
PRUNE_THRESHOLD = 1e-5


# =============================================================================
# Similarity Graph
# =============================================================================


def build_similarity_graph(
    predictions: Sequence[BinnedPrediction],
    hits: Iterable[SimilarityHit],
    min_identity: float = DEFAULT_MIN_IDENTITY,
    min_length: int = DEFAULT_MIN_LENGTH,
) -> nx.Graph:
    """Build the weighted similarity graph of a prediction set.

    Args:
        predictions: Predictions to cluster; names must be unique.
        hits: All-vs-all search hits between prediction sequences.
        min_identity: Minimum percent identity for an edge.
        min_length: Minimum aligned length for an edge.

    Returns:
        Graph with one node per prediction name (attribute ``order`` holds
        the input position) and ``weight`` on every edge.
    """
    graph = nx.Graph()
    lengths = {}
    for order, prediction in enumerate(predictions):
        if prediction.name in lengths:
            raise ValueError(f"Duplicate prediction name: {prediction.name}")
        lengths[prediction.name] = prediction.length
        graph.add_node(prediction.name, order=order)

    for hit in hits:
        a, b = hit.query_id, hit.subject_id
        if a == b or a not in lengths or b not in lengths:
            continue
        if hit.identity < min_identity or hit.alignment_length < min_length:
            continue

        aligned_fraction = hit.alignment_length / max(lengths[a], lengths[b])
        weight = min(1.0, hit.identity / 100.0 * aligned_fraction)
        if weight <= 0:
            continue

        if not graph.has_edge(a, b) or graph[a][b]["weight"] < weight:
            graph.add_edge(a, b, weight=weight)

    logger.debug(
        f"Similarity graph: {graph.number_of_nodes()} nodes, "
        f"{graph.number_of_edges()} edges"
    )
    return graph


# =============================================================================
# Markov Clustering
# =============================================================================


def _normalize(matrix: np.ndarray) -> np.ndarray:
    """Make a matrix column-stochastic."""
    sums = matrix.sum(axis=0)
    sums[sums == 0] = 1.0
    return matrix / sums


def markov_cluster(
    graph: nx.Graph,
    inflation: float = DEFAULT_INFLATION,
    expansion: int = DEFAULT_EXPANSION,
    max_iter: int = DEFAULT_MAX_ITER,
    tol: float = 1e-6,
) -> list[list]:
    """Partition a graph with Markov clustering.

    Each node joins every attractor still holding part of its flow in
    the converged matrix; memberships are then closed transitively
    (connected components of the node-attractor pairs), so the result
    is always a partition of the nodes.

    Args:
        graph: Weighted undirected graph.
        inflation: Inflation exponent (> 1; higher gives finer clusters).
        expansion: Expansion power (>= 2).
        max_iter: Iteration cap.
        tol: Convergence tolerance.

    Returns:
        List of clusters, each a list of nodes in graph node order.
    """
    if inflation <= 1:
        raise ValueError(f"Inflation must be > 1, got {inflation}")
    if expansion < 2:
        raise ValueError(f"Expansion must be >= 2, got {expansion}")

    nodes = list(graph.nodes())
    if not nodes:
        return []
    if len(nodes) == 1:
        return [nodes]

    matrix = nx.to_numpy_array(graph, nodelist=nodes, weight="weight")
    matrix = matrix + np.eye(len(nodes))
    matrix = _normalize(matrix)

    for _ in range(max_iter):
        previous = matrix
        matrix = np.linalg.matrix_power(matrix, expansion)
        matrix = _normalize(np.power(matrix, inflation))
        matrix[matrix < PRUNE_THRESHOLD] = 0.0
        matrix = _normalize(matrix)
        if np.allclose(matrix, previous, atol=tol):
            break

    # Join each node with every attractor its flow ends in
    flow = nx.Graph()
    flow.add_nodes_from(range(len(nodes)))
    flow.add_edges_from(
        (int(attractor), int(column)) for attractor, column in zip(*np.nonzero(matrix))
    )
    groups = sorted(sorted(component) for component in nx.connected_components(flow))
    return [[nodes[i] for i in group] for group in groups]


# =============================================================================
# Cluster Engine
# =============================================================================


class ClusterEngine:
    """Group predictions across genomes into clusters.

    Attributes:
        min_identity: Minimum percent identity for a similarity edge.
        min_length: Minimum aligned length for a similarity edge.
        inflation: MCL inflation.
        prefix: Prefix for cluster identifiers.
    """

    def __init__(
        self,
        min_identity: float = DEFAULT_MIN_IDENTITY,
        min_length: int = DEFAULT_MIN_LENGTH,
        inflation: float = DEFAULT_INFLATION,
        prefix: str = "",
    ) -> None:
        self.min_identity = min_identity
        self.min_length = min_length
        self.inflation = inflation
        self.prefix = prefix

    def cluster(
        self,
        predictions: Sequence[BinnedPrediction],
        hits: Iterable[SimilarityHit],
    ) -> list[Cluster]:
        """Cluster predictions from their pairwise search hits.

        Args:
            predictions: Unmasked predictions; their order breaks ties
                between clusters of equal size.
            hits: All-vs-all hits between prediction sequences.

        Returns:
            Clusters ordered by identifier.
        """
        graph = build_similarity_graph(
            predictions, hits, self.min_identity, self.min_length
        )

        groups: list[list[str]] = []
        for component in nx.connected_components(graph):
            ordered = sorted(component, key=lambda n: graph.nodes[n]["order"])
            if len(ordered) == 1:
                groups.append(ordered)
                continue
            subgraph = graph.subgraph(ordered).copy()
            for group in markov_cluster(subgraph, inflation=self.inflation):
                groups.append(sorted(group, key=lambda n: graph.nodes[n]["order"]))

        groups.sort(key=lambda g: (-len(g), graph.nodes[g[0]]["order"]))

        clusters = [
            Cluster(cluster_id=f"{self.prefix}{i}", members=tuple(group))
            for i, group in enumerate(groups, start=1)
        ]

        n_singletons = sum(1 for c in clusters if c.size == 1)
        logger.info(
            f"Clustered {len(predictions)} predictions into {len(clusters)} clusters "
            f"({n_singletons} singletons)"
            + (f" with prefix '{self.prefix}'" if self.prefix else "")
        )
        return clusters
