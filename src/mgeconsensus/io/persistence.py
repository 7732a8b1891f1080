"""Export of the final catalogue for storage.

The whole in-memory result (genomes, contigs, predictions and clusters)
is written once, at the end of a run, as a single JSON document that a
loader can insert into a database. A failed export is logged and does
not touch the tables already written.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Mapping

import attrs

from mgeconsensus import __version__
from mgeconsensus.core.binning import BinnedCatalog
from mgeconsensus.core.models import Cluster, Genome

logger = logging.getLogger(__name__)


def catalog_to_dict(
    genomes: Mapping[str, Genome],
    catalogs: Mapping[str, BinnedCatalog],
    clusters: Iterable[Cluster],
) -> dict:
    """Convert the run result to plain data."""
    return {
        "version": __version__,
        "created": datetime.now().isoformat(timespec="seconds"),
        "genomes": [
            {
                **attrs.asdict(genome, filter=lambda a, _: a.name != "contigs"),
                "contigs": [attrs.asdict(c) for c in genome.contigs],
            }
            for genome in (genomes[p] for p in sorted(genomes))
        ],
        "predictions": {
            prefix: [p.to_dict() for p in catalogs[prefix]]
            for prefix in sorted(catalogs)
        },
        "clusters": [
            {"cluster_id": c.cluster_id, "members": list(c.members)} for c in clusters
        ],
    }


def save_catalog(
    path: Path | str,
    genomes: Mapping[str, Genome],
    catalogs: Mapping[str, BinnedCatalog],
    clusters: Iterable[Cluster],
) -> bool:
    """Write the run result as JSON.

    Returns:
        True on success, False if the export failed.
    """
    try:
        data = catalog_to_dict(genomes, catalogs, clusters)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Failed to save catalogue to {path}: {e}")
        return False

    logger.info(f"Catalogue saved to {path}")
    return True
