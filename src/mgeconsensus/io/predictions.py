"""Tab-separated prediction and cluster tables.

Prediction tables have one unmasked prediction per line, grouped by
tier in tier order, without a header::

    ECO1_1    chr    agent,virsorter,crispr    100    250

The same writer produces the intermediate consensus tables and the
final reconciled tables. With ``include_masked`` it also writes the
restart cache: every prediction, masked ones included, with a sixth
``masked`` column (1 or 0). Reading the cache back restores the
catalogue exactly, names and all, so an interrupted run can restart
from it.

Example:
    >>> from mgeconsensus.io.predictions import read_predictions, write_predictions
    >>> write_predictions(catalog, "out/ECO1.final.tsv")
    >>> catalog = read_predictions("out/ECO1.consensus.tsv", "ECO1")
"""

from __future__ import annotations

import csv
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterable, Iterator

from mgeconsensus.core.binning import BinnedCatalog, assign_tier
from mgeconsensus.core.models import BinnedPrediction, Cluster, MethodKind

logger = logging.getLogger(__name__)

PREDICTION_COLUMNS = ["name", "contig", "methods", "start", "end"]
CLUSTER_COLUMNS = ["cluster_id", "size", "members"]


@contextmanager
def _open_destination(destination: Path | str | IO[str]) -> Iterator[IO[str]]:
    """Open a path for writing, or pass an open stream through ("-" is stdout)."""
    if destination == "-":
        yield sys.stdout
    elif isinstance(destination, (str, Path)):
        path = Path(destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", newline="") as f:
            yield f
    else:
        yield destination


# =============================================================================
# Predictions
# =============================================================================


def write_predictions(
    catalog: BinnedCatalog,
    destination: Path | str | IO[str],
    include_masked: bool = False,
) -> int:
    """Write the predictions of a catalogue, unmasked only by default.

    Args:
        catalog: Genome catalogue.
        destination: Output path, open text stream, or "-" for stdout.
        include_masked: Write every prediction with a trailing masked
            flag (the restart cache layout).

    Returns:
        Number of lines written.
    """
    n_written = 0
    with _open_destination(destination) as f:
        writer = csv.writer(f, delimiter="\t", lineterminator="\n")
        for prediction in catalog.iter_predictions(include_masked=include_masked):
            row = [
                prediction.name,
                prediction.contig,
                ",".join(m.tag for m in prediction.all_methods),
                prediction.start,
                prediction.end,
            ]
            if include_masked:
                row.append(int(prediction.masked))
            writer.writerow(row)
            n_written += 1

    logger.debug(f"Wrote {n_written} predictions for {catalog.prefix}")
    return n_written


def parse_prediction_line(line: str) -> BinnedPrediction:
    """Parse one prediction table line, re-deriving its tier.

    A sixth field, when present, is the masked flag of the restart cache.

    Raises:
        ValueError: If the line is malformed or names an unknown method.
    """
    fields = line.rstrip("\n").split("\t")
    if len(fields) < len(PREDICTION_COLUMNS):
        raise ValueError(f"Expected {len(PREDICTION_COLUMNS)} fields, got {len(fields)}")

    name, contig, methods_field, start, end = fields[:5]
    kinds = [MethodKind.parse(tag) for tag in methods_field.split(",") if tag]
    extending = [m for m in kinds if m.extending]
    corroborating = [m for m in kinds if not m.extending] if extending else []

    return BinnedPrediction(
        contig=contig,
        start=int(start),
        end=int(end),
        methods=extending or kinds,
        corroborating=corroborating,
        name=name,
        tier=assign_tier(extending or kinds),
        masked=len(fields) > 5 and fields[5].strip() == "1",
    )


def read_predictions(path: Path | str, prefix: str) -> BinnedCatalog:
    """Read a prediction table back into a catalogue.

    Malformed lines are logged and skipped.

    Args:
        path: Table written by write_predictions().
        prefix: Genome the table belongs to.

    Returns:
        BinnedCatalog holding the predictions in file order under their
        recorded names; predictions are masked only where the file says so.
    """
    catalog = BinnedCatalog(prefix)
    with open(path) as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip() or line.startswith("#"):
                continue
            try:
                prediction = parse_prediction_line(line)
            except ValueError as e:
                logger.warning(f"{path}:{line_no}: skipping malformed line ({e})")
                continue
            catalog.add(prediction)

    logger.info(f"Loaded {len(catalog)} cached predictions for {prefix} from {path}")
    return catalog


# =============================================================================
# Clusters
# =============================================================================


def write_clusters(
    clusters: Iterable[Cluster],
    destination: Path | str | IO[str],
) -> int:
    """Write a cluster table with a header row.

    Args:
        clusters: Clusters to write.
        destination: Output path, open text stream, or "-" for stdout.

    Returns:
        Number of clusters written.
    """
    n_written = 0
    with _open_destination(destination) as f:
        writer = csv.writer(f, delimiter="\t", lineterminator="\n")
        writer.writerow(CLUSTER_COLUMNS)
        for cluster in clusters:
            writer.writerow([cluster.cluster_id, cluster.size, ",".join(cluster.members)])
            n_written += 1
    return n_written
