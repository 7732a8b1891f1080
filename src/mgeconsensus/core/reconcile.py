"""ReBLAST reconciliation across genomes.

A detector can miss an element in one genome that it, or another
detector, found in a homologous region of another genome. Every
genome's unmasked predictions are searched against every other genome's
sequence; a good hit at a locus the target does not already cover
becomes a new ``reblast`` prediction in the target's catalogue.

Reconciliation only adds predictions. A hit touching any existing
prediction of the target, masked or not, is dropped, which also makes a
second run over a reconciled set add nothing. Hits are applied per
target in coordinate order, so the order genome pairs were searched in
does not change the result.

Example:
    >>> from mgeconsensus.core.reconcile import Reconciler, ReconcileThresholds
    >>> reconciler = Reconciler(ReconcileThresholds(min_identity=90, min_length=500))
    >>> added = reconciler.reconcile(catalogs, hits)
    >>> len(added["ECO2"])
    1
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Mapping

import attrs

from mgeconsensus.core.binning import BinnedCatalog, assign_tier
from mgeconsensus.core.mask import MaskStore
from mgeconsensus.core.models import BinnedPrediction, Genome, MethodKind
from mgeconsensus.homology.search import SimilarityHit, write_fasta

if TYPE_CHECKING:
    from mgeconsensus.homology.search import SequenceSearch
    from mgeconsensus.parallel.executor import ParallelExecutor

logger = logging.getLogger(__name__)

# =============================================================================
# Default Thresholds
# =============================================================================

DEFAULT_MIN_IDENTITY = 90.0  # percent
DEFAULT_MIN_LENGTH = 1000  # aligned bases


# =============================================================================
# Data Structures
# =============================================================================


@attrs.define(frozen=True)
class ReconcileThresholds:
    """Acceptance thresholds for reconciliation hits.

    Attributes:
        min_identity: Minimum percent identity of the alignment.
        min_length: Minimum aligned length in bases.
    """

    min_identity: float = DEFAULT_MIN_IDENTITY
    min_length: int = DEFAULT_MIN_LENGTH


@attrs.define(frozen=True)
class ReconcileHit:
    """A query prediction aligned to a locus of another genome.

    Attributes:
        query_genome: Genome the query prediction comes from.
        query_name: Name of the query prediction.
        target_genome: Genome searched.
        contig: Target contig.
        start: Target start (1-based, contig-local).
        end: Target end (inclusive).
        identity: Percent identity.
        alignment_length: Aligned length in bases.
    """

    query_genome: str
    query_name: str
    target_genome: str
    contig: str
    start: int
    end: int
    identity: float
    alignment_length: int

    @property
    def sort_key(self) -> tuple:
        return (self.contig, self.start, self.end, self.query_genome, self.query_name)

    @classmethod
    def from_similarity_hit(
        cls,
        hit: SimilarityHit,
        query_genome: str,
        target_genome: str,
    ) -> ReconcileHit:
        """Convert a search hit whose subject is a target contig."""
        start, end = hit.subject_span
        return cls(
            query_genome=query_genome,
            query_name=hit.query_id,
            target_genome=target_genome,
            contig=hit.subject_id,
            start=start,
            end=end,
            identity=hit.identity,
            alignment_length=hit.alignment_length,
        )


# =============================================================================
# Reconciler
# =============================================================================


class Reconciler:
    """Recover predictions missed in one genome but found in another.

    Appends to a target catalogue are serialized by a per-target lock, so
    concurrent calls never both add a prediction at the same locus.
    """

    def __init__(
        self,
        thresholds: ReconcileThresholds | None = None,
        mask_store: MaskStore | None = None,
    ) -> None:
        self.thresholds = thresholds or ReconcileThresholds()
        self.mask_store = mask_store if mask_store is not None else MaskStore()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, prefix: str) -> threading.Lock:
        with self._locks_guard:
            if prefix not in self._locks:
                self._locks[prefix] = threading.Lock()
            return self._locks[prefix]

    def accepts(self, hit: ReconcileHit) -> bool:
        """Check a hit against the thresholds and the self-hit rule."""
        if hit.query_genome == hit.target_genome:
            return False
        if hit.start > hit.end:
            logger.warning(f"Dropping hit with inverted coordinates: {hit}")
            return False
        return (
            hit.identity >= self.thresholds.min_identity
            and hit.alignment_length >= self.thresholds.min_length
        )

    def apply_hits(
        self,
        catalog: BinnedCatalog,
        hits: Iterable[ReconcileHit],
    ) -> list[BinnedPrediction]:
        """Add accepted hits at uncovered loci of one target catalogue.

        The overlap check and the append happen under the target's lock.

        Args:
            catalog: Target genome catalogue.
            hits: Hits against this target.

        Returns:
            Newly created predictions.
        """
        added: list[BinnedPrediction] = []
        ordered = sorted(
            (h for h in hits if h.target_genome == catalog.prefix and self.accepts(h)),
            key=lambda h: h.sort_key,
        )

        with self._lock_for(catalog.prefix):
            for hit in ordered:
                if catalog.overlapping(hit.contig, hit.start, hit.end):
                    continue

                methods = (MethodKind.REBLAST,)
                prediction = BinnedPrediction(
                    contig=hit.contig,
                    start=hit.start,
                    end=hit.end,
                    methods=methods,
                    tier=assign_tier(methods),
                    masked=self.mask_store.is_masked(
                        catalog.prefix, hit.contig, hit.start, hit.end
                    ),
                )
                catalog.add(prediction)
                added.append(prediction)
                logger.debug(
                    f"Recovered {prediction.name} at {hit.contig}:{hit.start}-{hit.end} "
                    f"from {hit.query_name}"
                )

        return added

    def reconcile(
        self,
        catalogs: Mapping[str, BinnedCatalog],
        hits: Iterable[ReconcileHit],
        genomes: Mapping[str, Genome] | None = None,
    ) -> dict[str, list[BinnedPrediction]]:
        """Merge recovered hits into the target catalogues.

        Args:
            catalogs: Catalogues keyed by genome prefix.
            hits: Hits from any genome pair, in any order.
            genomes: If given, hits on contigs a target does not declare
                are dropped.

        Returns:
            {prefix: [new predictions]} for every catalogue.
        """
        by_target: dict[str, list[ReconcileHit]] = defaultdict(list)
        for hit in hits:
            if hit.target_genome not in catalogs:
                logger.warning(f"Dropping hit against unknown genome {hit.target_genome}")
                continue
            if genomes is not None and not genomes[hit.target_genome].has_contig(hit.contig):
                logger.warning(
                    f"Dropping hit on unknown contig {hit.contig} of {hit.target_genome}"
                )
                continue
            by_target[hit.target_genome].append(hit)

        added = {}
        for prefix in sorted(catalogs):
            added[prefix] = self.apply_hits(catalogs[prefix], by_target.get(prefix, []))

        n_added = sum(len(v) for v in added.values())
        logger.info(f"Reconciliation added {n_added} predictions")
        return added

    def run(
        self,
        catalogs: Mapping[str, BinnedCatalog],
        genomes: Mapping[str, Genome],
        fasta_paths: Mapping[str, Path],
        searcher: SequenceSearch,
        executor: ParallelExecutor,
        workdir: Path | str,
    ) -> dict[str, list[BinnedPrediction]]:
        """Search every genome's predictions against every other genome.

        A failed search for one genome pair contributes no hits.

        Args:
            catalogs: Catalogues keyed by genome prefix.
            genomes: Genome layouts keyed by prefix.
            fasta_paths: Genome FASTA files keyed by prefix.
            searcher: Similarity search backend.
            executor: Worker pool for the pairwise searches.
            workdir: Directory for query FASTA files.

        Returns:
            {prefix: [new predictions]}.
        """
        from mgeconsensus.io.fasta import GenomeAccessor

        workdir = Path(workdir)
        queries: dict[str, Path] = {}
        for prefix in sorted(catalogs):
            with GenomeAccessor(fasta_paths[prefix]) as accessor:
                records = list(
                    accessor.iter_prediction_sequences(catalogs[prefix].iter_predictions())
                )
            if records:
                queries[prefix] = workdir / f"{prefix}.queries.fa"
                write_fasta(records, queries[prefix])

        databases: dict[str, Path] = {}
        for prefix in sorted(catalogs):
            try:
                databases[prefix] = searcher.format_database(fasta_paths[prefix])
            except (RuntimeError, FileNotFoundError) as e:
                logger.warning(f"Cannot search against {prefix}: {e}")

        pairs = [
            (query, target)
            for query in sorted(queries)
            for target in sorted(databases)
            if query != target
        ]

        def search_pair(pair: tuple[str, str]) -> list[ReconcileHit]:
            query, target = pair
            similarity_hits = searcher.search_and_parse(queries[query], databases[target])
            return [
                ReconcileHit.from_similarity_hit(h, query, target) for h in similarity_hits
            ]

        results, stats = executor.map_items(
            search_pair, pairs, task_ids=[f"{q}_vs_{t}" for q, t in pairs]
        )
        logger.info(
            f"Reconciliation searches: {stats.successful}/{stats.total_tasks} succeeded"
        )

        hits = [hit for r in results if r.success for hit in r.result]
        return self.reconcile(catalogs, hits, genomes)
