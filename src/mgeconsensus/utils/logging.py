"""Logging configuration for MGEConsensus.

This module provides logging setup for MGEConsensus, with rich console
output and an optional plain-text log file.

Example:
    >>> from mgeconsensus.utils.logging import setup_logging, Timer
    >>> setup_logging(verbosity=2)
    >>> with Timer("Binning", logger):
    ...     bin_all()
"""

import logging
import time
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

# =============================================================================
# Constants
# =============================================================================

# Default log format
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Rich console format (when using rich handler)
RICH_FORMAT = "%(message)s"

# Log levels by verbosity
VERBOSITY_LEVELS = {
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
}


# =============================================================================
# Setup Functions
# =============================================================================


def setup_logging(
    verbosity: int = 1,
    log_file: Path | str | None = None,
) -> None:
    """Configure logging for MGEConsensus.

    Args:
        verbosity: Verbosity level (0=warning, 1=info, 2=debug).
        log_file: Optional file to log to.
    """
    level = VERBOSITY_LEVELS.get(verbosity, logging.DEBUG)

    logger = logging.getLogger("mgeconsensus")
    logger.setLevel(logging.DEBUG if log_file is not None else level)
    logger.handlers.clear()

    console_handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
    )
    console_handler.setFormatter(logging.Formatter(RICH_FORMAT))

    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        file_handler.setLevel(logging.DEBUG)  # Always log debug to file
        logger.addHandler(file_handler)


# =============================================================================
# Timing Utilities
# =============================================================================


class Timer:
    """Context manager for timing operations.

    Example:
        >>> with Timer("Reconciliation", logger):
        ...     reconcile()
        # Logs: "Reconciliation completed in 1.23s"
    """

    def __init__(self, description: str, logger: logging.Logger) -> None:
        self.description = description
        self.logger = logger
        self.start_time: float = 0
        self.elapsed: float = 0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        self.elapsed = time.perf_counter() - self.start_time
        self.logger.info(f"{self.description} completed in {self.elapsed:.2f}s")
