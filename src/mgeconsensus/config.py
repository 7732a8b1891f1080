"""Configuration management for MGEConsensus.

This module handles loading, validating, and providing access to
MGEConsensus settings. Configuration comes from default values, an
optional YAML file, and command-line overrides applied by the CLI.

Example:
    >>> from mgeconsensus.config import Config
    >>> config = Config.load("mgeconsensus.yaml")
    >>> config.merge.proximity
    100

A configuration file only needs the values it changes::

    merge:
      proximity: 500
    reconcile:
      min_identity: 95
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import attrs
import yaml

from mgeconsensus.core.cluster import (
    DEFAULT_INFLATION,
    DEFAULT_MIN_IDENTITY as DEFAULT_CLUSTER_MIN_IDENTITY,
    DEFAULT_MIN_LENGTH as DEFAULT_CLUSTER_MIN_LENGTH,
)
from mgeconsensus.core.reconcile import (
    DEFAULT_MIN_IDENTITY as DEFAULT_RECONCILE_MIN_IDENTITY,
    DEFAULT_MIN_LENGTH as DEFAULT_RECONCILE_MIN_LENGTH,
)
from mgeconsensus.homology.search import DEFAULT_EVALUE

# =============================================================================
# Default Configuration Values
# =============================================================================

DEFAULT_MERGE_PROXIMITY = 100  # bp bridged between neighbouring predictions
DEFAULT_SMALL_PREFIX = "S"
DEFAULT_SMALL_MAX_LENGTH = 0  # 0 disables the separate small-element pass
DEFAULT_MAX_WORKERS = 1


class ConfigurationError(ValueError):
    """Raised for invalid settings or missing required inputs."""


def _non_negative(instance: Any, attribute: attrs.Attribute, value: float) -> None:
    if value < 0:
        raise ConfigurationError(f"{attribute.name} must be >= 0, got {value}")


def _percent(instance: Any, attribute: attrs.Attribute, value: float) -> None:
    if not 0 <= value <= 100:
        raise ConfigurationError(f"{attribute.name} must be within 0-100, got {value}")


# =============================================================================
# Configuration Classes
# =============================================================================


@attrs.define
class MergeConfig:
    """Configuration for prediction merging.

    Attributes:
        proximity: Gap (bp) still bridged between neighbouring predictions.
    """

    proximity: int = attrs.field(default=DEFAULT_MERGE_PROXIMITY, validator=_non_negative)


@attrs.define
class ReconcileConfig:
    """Configuration for cross-genome reconciliation.

    Attributes:
        enabled: Whether to run reconciliation at all.
        min_identity: Minimum percent identity of an accepted hit.
        min_length: Minimum aligned length of an accepted hit.
    """

    enabled: bool = True
    min_identity: float = attrs.field(
        default=DEFAULT_RECONCILE_MIN_IDENTITY, validator=_percent
    )
    min_length: int = attrs.field(
        default=DEFAULT_RECONCILE_MIN_LENGTH, validator=_non_negative
    )


@attrs.define
class ClusterConfig:
    """Configuration for clustering.

    Attributes:
        min_identity: Minimum percent identity of a similarity edge.
        min_length: Minimum aligned length of a similarity edge.
        inflation: MCL inflation.
        small_max_length: Predictions shorter than this are clustered in
            a separate pass (0 disables it).
        small_prefix: Identifier prefix of the separate pass.
    """

    min_identity: float = attrs.field(
        default=DEFAULT_CLUSTER_MIN_IDENTITY, validator=_percent
    )
    min_length: int = attrs.field(
        default=DEFAULT_CLUSTER_MIN_LENGTH, validator=_non_negative
    )
    inflation: float = attrs.field(default=DEFAULT_INFLATION)
    small_max_length: int = attrs.field(
        default=DEFAULT_SMALL_MAX_LENGTH, validator=_non_negative
    )
    small_prefix: str = DEFAULT_SMALL_PREFIX

    @inflation.validator
    def _check_inflation(self, attribute: attrs.Attribute, value: float) -> None:
        if value <= 1:
            raise ConfigurationError(f"inflation must be > 1, got {value}")


@attrs.define
class SearchConfig:
    """Configuration for similarity searches.

    Attributes:
        blastn: blastn executable.
        evalue: E-value threshold.
        threads: Threads per search.
    """

    blastn: str = "blastn"
    evalue: float = DEFAULT_EVALUE
    threads: int = 1


@attrs.define
class ParallelConfig:
    """Configuration for parallel processing.

    Attributes:
        max_workers: Maximum number of parallel workers.
        backend: Worker backend for per-genome work.
    """

    max_workers: int = DEFAULT_MAX_WORKERS
    backend: str = attrs.field(
        default="threads",
        validator=attrs.validators.in_(["serial", "threads", "processes"]),
    )


@attrs.define
class Config:
    """Main configuration container for MGEConsensus."""

    merge: MergeConfig = attrs.Factory(MergeConfig)
    reconcile: ReconcileConfig = attrs.Factory(ReconcileConfig)
    cluster: ClusterConfig = attrs.Factory(ClusterConfig)
    search: SearchConfig = attrs.Factory(SearchConfig)
    parallel: ParallelConfig = attrs.Factory(ParallelConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Build a configuration from nested dictionaries.

        Raises:
            ConfigurationError: On unknown sections/keys or invalid values.
        """
        sections = {a.name: a for a in attrs.fields(cls)}
        kwargs = {}
        for section, values in (data or {}).items():
            if section not in sections:
                raise ConfigurationError(f"Unknown configuration section: {section}")
            if not isinstance(values, dict):
                raise ConfigurationError(f"Section '{section}' must be a mapping")
            section_class = sections[section].default.factory
            known = {a.name for a in attrs.fields(section_class)}
            unknown = set(values) - known
            if unknown:
                raise ConfigurationError(
                    f"Unknown keys in '{section}': {', '.join(sorted(unknown))}"
                )
            try:
                kwargs[section] = section_class(**values)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid '{section}' settings: {e}") from e
        return cls(**kwargs)

    @classmethod
    def load(cls, path: Path | str | None = None) -> Config:
        """Load configuration from a YAML file.

        Args:
            path: Path to configuration file. If None, returns defaults.

        Returns:
            Loaded configuration object.

        Raises:
            ConfigurationError: If the file is missing or invalid.
        """
        if path is None:
            return cls()

        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Cannot parse {path}: {e}") from e

        if data is not None and not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a mapping")
        return cls.from_dict(data or {})
