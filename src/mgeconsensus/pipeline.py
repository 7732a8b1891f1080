"""End-to-end consensus pipeline.

Stages run strictly forward over a genome set::

    detector tables -> merge -> bin (+ masks) -> reconcile -> cluster

Per-genome merging and binning are independent and run on the worker
pool. Each binned genome gets two tables: the consensus table
(``<prefix>.consensus.tsv``, unmasked predictions) and a restart cache
(``<prefix>.consensus.all.tsv``) that also keeps masked predictions and
every name. The next run reloads the cache instead of the detector
tables, so reconciliation sees the same catalogue, masked loci included,
and names come out the same.

Example:
    >>> from mgeconsensus.pipeline import ConsensusPipeline
    >>> pipeline = ConsensusPipeline(config, "out/", detectors, mask_path="masks.tsv")
    >>> result = pipeline.run(["ECO1.fa", "ECO2.fa"])
    >>> result.clusters[0].members
    ('ECO1_1', 'ECO2_3')
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping, Sequence

import attrs

from mgeconsensus.config import Config, ConfigurationError
from mgeconsensus.core.binning import BinnedCatalog, ConsensusBinner
from mgeconsensus.core.cluster import ClusterEngine
from mgeconsensus.core.mask import MaskStore
from mgeconsensus.core.merge import PredictionMerger
from mgeconsensus.core.models import BinnedPrediction, Cluster, Genome, RawPrediction
from mgeconsensus.core.reconcile import Reconciler, ReconcileThresholds
from mgeconsensus.homology.search import SequenceSearch, SimilarityHit, write_fasta
from mgeconsensus.io.detectors import DetectorAdapter, collect_predictions
from mgeconsensus.io.fasta import GenomeAccessor, genome_prefix, load_genome
from mgeconsensus.io.persistence import save_catalog
from mgeconsensus.io.predictions import read_predictions, write_clusters, write_predictions
from mgeconsensus.parallel.executor import ExecutorBackend, ParallelExecutor
from mgeconsensus.utils.logging import Timer

logger = logging.getLogger(__name__)


@attrs.define
class PipelineResult:
    """Everything a run produced.

    Attributes:
        genomes: Ingested genomes keyed by prefix.
        catalogs: Final catalogues keyed by prefix.
        clusters: Primary clusters.
        small_clusters: Clusters of the separate small-element pass.
        skipped: Prefixes (or paths) excluded during ingestion.
    """

    genomes: dict[str, Genome]
    catalogs: dict[str, BinnedCatalog]
    clusters: list[Cluster] = attrs.Factory(list)
    small_clusters: list[Cluster] = attrs.Factory(list)
    skipped: list[str] = attrs.Factory(list)


def consensus_for_genome(
    genome: Genome,
    raw_by_contig: Mapping[str, list[RawPrediction]],
    proximity: int,
    mask_store: MaskStore,
) -> BinnedCatalog:
    """Merge and bin one genome's predictions.

    Module level so the process backend can pickle it.
    """
    merged = PredictionMerger(proximity).merge(raw_by_contig)
    return ConsensusBinner(mask_store).bin_genome(genome, merged, raw_by_contig)


def _consensus_task(task: tuple) -> BinnedCatalog:
    return consensus_for_genome(*task)


class ConsensusPipeline:
    """Run all consensus stages over a genome set.

    Attributes:
        config: Run configuration.
        outdir: Output directory.
        detectors: Detector adapters to pool predictions from.
        mask_path: Optional mask file.
        searcher: Similarity search backend; None skips reconciliation and
            leaves every prediction in its own cluster.
        json_path: Optional path for the persistence export.
    """

    def __init__(
        self,
        config: Config,
        outdir: Path | str,
        detectors: Sequence[DetectorAdapter],
        mask_path: Path | str | None = None,
        searcher: SequenceSearch | None = None,
        json_path: Path | str | None = None,
    ) -> None:
        self.config = config
        self.outdir = Path(outdir)
        self.detectors = list(detectors)
        self.mask_path = Path(mask_path) if mask_path else None
        self.searcher = searcher
        self.json_path = Path(json_path) if json_path else None

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------

    def consensus_path(self, prefix: str) -> Path:
        return self.outdir / f"{prefix}.consensus.tsv"

    def cache_path(self, prefix: str) -> Path:
        return self.outdir / f"{prefix}.consensus.all.tsv"

    def final_path(self, prefix: str) -> Path:
        return self.outdir / f"{prefix}.final.tsv"

    @property
    def workdir(self) -> Path:
        return self.outdir / "work"

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def validate(self, fasta_paths: Sequence[Path]) -> None:
        """Check required inputs before any stage runs.

        Raises:
            ConfigurationError: If an input is missing.
        """
        if not fasta_paths:
            raise ConfigurationError("No genome FASTA files given")
        missing = [str(p) for p in fasta_paths if not p.exists()]
        if missing:
            raise ConfigurationError(f"Genome files not found: {', '.join(missing)}")
        if self.mask_path is not None and not self.mask_path.exists():
            raise ConfigurationError(f"Mask file not found: {self.mask_path}")
        if not self.detectors:
            raise ConfigurationError("No detection methods configured")

    def ingest(
        self,
        fasta_paths: Sequence[Path],
    ) -> tuple[dict[str, Genome], dict[str, Path], list[str]]:
        """Load the genome layouts; unusable genomes are skipped.

        Returns:
            (genomes, fasta paths by prefix, skipped entries).
        """
        genomes: dict[str, Genome] = {}
        paths: dict[str, Path] = {}
        skipped: list[str] = []

        for path in fasta_paths:
            prefix = genome_prefix(path)
            if prefix in genomes:
                logger.warning(f"Skipping {path}: duplicate genome prefix {prefix}")
                skipped.append(str(path))
                continue
            try:
                genome = load_genome(path, prefix)
            except Exception as e:
                logger.warning(f"Skipping genome {path}: {e}")
                skipped.append(str(path))
                continue
            if genome.length == 0:
                logger.warning(f"Skipping genome {path}: no sequence")
                skipped.append(str(path))
                continue
            genomes[prefix] = genome
            paths[prefix] = path

        logger.info(f"Ingested {len(genomes)} genomes ({len(skipped)} skipped)")
        return genomes, paths, skipped

    def build_catalogs(
        self,
        genomes: Mapping[str, Genome],
        mask_store: MaskStore,
    ) -> dict[str, BinnedCatalog]:
        """Merge and bin every genome, reusing restart caches from a previous run."""
        catalogs: dict[str, BinnedCatalog] = {}
        pending = []

        for prefix in sorted(genomes):
            cached = self.cache_path(prefix)
            if cached.exists():
                catalog = read_predictions(cached, prefix)
                mask_store.apply(prefix, catalog)
                catalogs[prefix] = catalog
                write_predictions(catalog, self.consensus_path(prefix))
            else:
                pending.append(prefix)

        for detector in self.detectors:
            try:
                detector.run(pending)
            except Exception as e:
                logger.warning(f"{detector.method} could not run: {e}")

        tasks = [
            (
                genomes[prefix],
                collect_predictions(self.detectors, prefix),
                self.config.merge.proximity,
                mask_store,
            )
            for prefix in pending
        ]
        executor = ParallelExecutor(
            n_workers=self.config.parallel.max_workers,
            backend=self.config.parallel.backend,
        )
        results, stats = executor.map_items(_consensus_task, tasks, task_ids=pending)
        if pending:
            logger.info(
                f"Binned {stats.successful}/{stats.total_tasks} genomes "
                f"({len(catalogs)} restored from cache)"
            )

        for prefix, result in zip(pending, results):
            if result.success:
                catalog = result.result
            else:
                catalog = BinnedCatalog(prefix)
            catalogs[prefix] = catalog
            write_predictions(catalog, self.consensus_path(prefix))
            write_predictions(catalog, self.cache_path(prefix), include_masked=True)

        return catalogs

    def reconcile(
        self,
        catalogs: dict[str, BinnedCatalog],
        genomes: Mapping[str, Genome],
        fasta_paths: Mapping[str, Path],
        mask_store: MaskStore,
    ) -> None:
        """Recover predictions across genomes, in place."""
        if not self.config.reconcile.enabled:
            logger.info("Reconciliation disabled")
            return
        if self.searcher is None:
            logger.warning("No similarity search available; skipping reconciliation")
            return
        if len(catalogs) < 2:
            logger.info("Reconciliation needs at least two genomes")
            return

        reconciler = Reconciler(
            ReconcileThresholds(
                min_identity=self.config.reconcile.min_identity,
                min_length=self.config.reconcile.min_length,
            ),
            mask_store,
        )
        executor = ParallelExecutor(
            n_workers=self.config.parallel.max_workers,
            backend=ExecutorBackend.THREADS,
        )
        reconciler.run(
            catalogs, genomes, fasta_paths, self.searcher, executor, self.workdir
        )

    def similarity_hits(
        self,
        predictions: Sequence[BinnedPrediction],
        fasta_paths: Mapping[str, Path],
        label: str,
    ) -> list[SimilarityHit]:
        """All-vs-all search between prediction sequences."""
        if self.searcher is None or len(predictions) < 2:
            return []

        by_genome: dict[str, list[BinnedPrediction]] = {}
        for prediction in predictions:
            prefix = prediction.name.rpartition("_")[0]
            by_genome.setdefault(prefix, []).append(prediction)

        records = []
        for prefix in sorted(by_genome):
            with GenomeAccessor(fasta_paths[prefix]) as accessor:
                records.extend(accessor.iter_prediction_sequences(by_genome[prefix]))

        fasta = self.workdir / f"{label}.predictions.fa"
        write_fasta(records, fasta)
        try:
            return self.searcher.search_fasta(fasta, fasta)
        except (RuntimeError, FileNotFoundError) as e:
            logger.warning(f"All-vs-all search failed ({label}): {e}")
            return []

    def cluster(
        self,
        catalogs: Mapping[str, BinnedCatalog],
        fasta_paths: Mapping[str, Path],
    ) -> tuple[list[Cluster], list[Cluster]]:
        """Cluster the unmasked predictions of all genomes.

        Predictions are passed on genome by genome in catalogue order (tier
        order, then insertion order); that sequence breaks ties between
        clusters of equal size. Predictions shorter than
        ``cluster.small_max_length`` go through a separate pass whose
        identifiers carry ``cluster.small_prefix``.
        """
        settings = self.config.cluster
        predictions = [
            p for prefix in sorted(catalogs) for p in catalogs[prefix].iter_predictions()
        ]
        large = [p for p in predictions if p.length >= settings.small_max_length]
        small = [p for p in predictions if p.length < settings.small_max_length]

        engine = ClusterEngine(
            settings.min_identity, settings.min_length, settings.inflation
        )
        clusters = engine.cluster(large, self.similarity_hits(large, fasta_paths, "main"))

        small_clusters: list[Cluster] = []
        if small:
            small_engine = ClusterEngine(
                settings.min_identity,
                settings.min_length,
                settings.inflation,
                prefix=settings.small_prefix,
            )
            small_clusters = small_engine.cluster(
                small, self.similarity_hits(small, fasta_paths, "small")
            )

        return clusters, small_clusters

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def run(self, fasta_paths: Iterable[Path | str]) -> PipelineResult:
        """Run every stage and write all outputs.

        Raises:
            ConfigurationError: If required inputs are missing.
        """
        fasta_paths = [Path(p) for p in fasta_paths]
        self.validate(fasta_paths)
        self.outdir.mkdir(parents=True, exist_ok=True)

        genomes, paths, skipped = self.ingest(fasta_paths)
        mask_store = MaskStore.load(self.mask_path, genomes)

        with Timer("Consensus binning", logger):
            catalogs = self.build_catalogs(genomes, mask_store)

        with Timer("Reconciliation", logger):
            self.reconcile(catalogs, genomes, paths, mask_store)

        for prefix in sorted(catalogs):
            write_predictions(catalogs[prefix], self.final_path(prefix))

        with Timer("Clustering", logger):
            clusters, small_clusters = self.cluster(catalogs, paths)

        write_clusters(clusters, self.outdir / "clusters.tsv")
        if small_clusters:
            write_clusters(small_clusters, self.outdir / "clusters_small.tsv")

        if self.json_path is not None:
            save_catalog(self.json_path, genomes, catalogs, clusters + small_clusters)

        return PipelineResult(
            genomes=genomes,
            catalogs=catalogs,
            clusters=clusters,
            small_clusters=small_clusters,
            skipped=skipped,
        )
