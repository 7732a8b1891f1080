"""Detector adapters.

Each detection method is wrapped by an adapter that can trigger the tool
and normalize its output to raw predictions per contig. The consensus
stages only see that normalized shape.

``TableDetector`` reads the normalized tables other tools (or earlier
runs) left on disk, one file per genome and method::

    <directory>/<prefix>.<method>.tsv      contig  start  end

A missing or unreadable table means "no predictions" for that genome
and method; it is logged and never fatal.

Example:
    >>> from mgeconsensus.io.detectors import TableDetector
    >>> detector = TableDetector(MethodKind.VIRSORTER, "predictions/")
    >>> detector.get_predictions("ECO1")["chr"][0]
    RawPrediction(contig='chr', start=1200, end=43000, method=<MethodKind.VIRSORTER: ...>)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from pathlib import Path
from typing import Iterable

from mgeconsensus.core.models import MethodKind, RawPrediction

logger = logging.getLogger(__name__)


class DetectorAdapter(ABC):
    """Interface of a detection method."""

    method: MethodKind

    @abstractmethod
    def run(self, prefixes: Iterable[str]) -> None:
        """Trigger the detector for the given genomes."""

    @abstractmethod
    def get_predictions(self, prefix: str) -> dict[str, list[RawPrediction]]:
        """Return {seqid: [RawPrediction, ...]} for one genome."""


class TableDetector(DetectorAdapter):
    """Adapter over precomputed, normalized prediction tables.

    Attributes:
        method: Method the tables belong to.
        directory: Directory holding the tables.
    """

    def __init__(self, method: MethodKind | str, directory: Path | str) -> None:
        self.method = MethodKind.parse(method) if isinstance(method, str) else method
        self.directory = Path(directory)

    def table_path(self, prefix: str) -> Path:
        return self.directory / f"{prefix}.{self.method.tag}.tsv"

    def run(self, prefixes: Iterable[str]) -> None:
        """Report genomes without a table; the tables are produced upstream."""
        for prefix in prefixes:
            if not self.table_path(prefix).exists():
                logger.info(f"No {self.method} table for {prefix}")

    def get_predictions(self, prefix: str) -> dict[str, list[RawPrediction]]:
        path = self.table_path(prefix)
        if not path.exists():
            return {}

        predictions: dict[str, list[RawPrediction]] = defaultdict(list)
        try:
            with open(path) as f:
                for line_no, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line or line.startswith("#"):
                        continue
                    fields = line.split("\t")
                    try:
                        prediction = RawPrediction(
                            contig=fields[0],
                            start=int(fields[1]),
                            end=int(fields[2]),
                            method=self.method,
                        )
                    except (IndexError, ValueError):
                        logger.warning(f"{path}:{line_no}: skipping malformed line")
                        continue
                    if not prediction.is_valid:
                        logger.warning(f"{path}:{line_no}: dropping invalid interval")
                        continue
                    predictions[prediction.contig].append(prediction)
        except OSError as e:
            logger.warning(f"Cannot read {self.method} predictions for {prefix}: {e}")
            return {}

        return dict(predictions)


def collect_predictions(
    detectors: Iterable[DetectorAdapter],
    prefix: str,
) -> dict[str, list[RawPrediction]]:
    """Pool every detector's predictions for a genome, by contig.

    A detector that raises contributes nothing.
    """
    pooled: dict[str, list[RawPrediction]] = defaultdict(list)
    for detector in detectors:
        try:
            by_contig = detector.get_predictions(prefix)
        except Exception as e:
            logger.warning(f"{detector.method} failed for {prefix}: {e}")
            continue
        for seqid, predictions in by_contig.items():
            pooled[seqid].extend(predictions)
    return dict(pooled)
