"""Command-line interface for MGEConsensus.

This module provides the main entry point for the mgeconsensus CLI tool.
It uses Click to define commands for the consensus pipeline.

Commands:
    run: Full pipeline (merge, bin, reconcile, cluster) over a genome set
    merge: Merge and bin the predictions of a single genome
    methods: List the detection methods and their class

Example:
    $ mgeconsensus --help
    $ mgeconsensus run --genomes ECO1.fa --genomes ECO2.fa --predictions preds/ -o out/
    $ mgeconsensus merge --genome ECO1.fa --predictions preds/ -o ECO1.tsv
    $ mgeconsensus methods
"""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from mgeconsensus import __version__
from mgeconsensus.config import Config, ConfigurationError
from mgeconsensus.core.models import MethodKind, Tier
from mgeconsensus.utils.logging import setup_logging

# Initialize rich console for pretty output
console = Console()

# Methods whose predictions are read from detector tables
DETECTOR_METHODS = [m for m in MethodKind if m is not MethodKind.REBLAST]


def _build_detectors(predictions_dir: Path) -> list:
    from mgeconsensus.io.detectors import TableDetector

    return [TableDetector(method, predictions_dir) for method in DETECTOR_METHODS]


def _print_tier_counts(prefix: str, counts: dict) -> None:
    total = sum(counts.values())
    tiers = "  ".join(f"{tier.label}={counts[tier]:,}" for tier in Tier)
    console.print(f"  {prefix:<20} {total:>6,}   [dim]{tiers}[/dim]")


@click.group()
@click.version_option(version=__version__, prog_name="mgeconsensus")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output.")
@click.option("-q", "--quiet", is_flag=True, help="Suppress non-error output.")
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    help="Also write a debug log to this file.",
)
@click.pass_context
def main(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    log_file: Optional[Path],
) -> None:
    """MGEConsensus: consensus calling of mobile genetic element predictions.

    MGEConsensus pools the predictions of several detectors across a set
    of genomes, merges them into tiered consensus catalogues, recovers
    elements missed in individual genomes, and clusters the result into
    families.
    """
    # Ensure context object exists
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    verbosity = 2 if verbose else 0 if quiet else 1
    setup_logging(verbosity=verbosity, log_file=log_file)


# =============================================================================
# run command
# =============================================================================


@main.command()
@click.option(
    "--genomes",
    "-g",
    type=click.Path(path_type=Path),
    multiple=True,
    required=True,
    help="Genome FASTA file(s). Repeat for each genome.",
)
@click.option(
    "--predictions",
    "-p",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    required=True,
    help="Directory of detector tables named <prefix>.<method>.tsv.",
)
@click.option(
    "--mask",
    "-m",
    type=click.Path(path_type=Path),
    help="Mask file (genome, start, end; genome-global coordinates).",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    help="YAML configuration file.",
)
@click.option(
    "-o",
    "--outdir",
    type=click.Path(file_okay=False, path_type=Path),
    required=True,
    help="Output directory.",
)
@click.option(
    "-j",
    "--workers",
    type=int,
    help="Number of parallel workers (overrides the configuration).",
)
@click.option(
    "--no-reblast",
    is_flag=True,
    help="Skip cross-genome reconciliation.",
)
@click.option(
    "--json",
    "json_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also export the final catalogue as JSON.",
)
@click.pass_context
def run(
    ctx: click.Context,
    genomes: tuple[Path, ...],
    predictions: Path,
    mask: Optional[Path],
    config_path: Optional[Path],
    outdir: Path,
    workers: Optional[int],
    no_reblast: bool,
    json_path: Optional[Path],
) -> None:
    """Run the full consensus pipeline over a set of genomes.

    Writes <prefix>.consensus.tsv and <prefix>.final.tsv per genome, plus
    clusters.tsv (and clusters_small.tsv when the small-element pass is
    enabled). Consensus tables already in the output directory are reused.

    Example:
        $ mgeconsensus run -g ECO1.fa -g ECO2.fa -p preds/ -o out/
        $ mgeconsensus run -g ECO1.fa -g ECO2.fa -p preds/ -o out/ --mask masks.tsv -j 8
    """
    from mgeconsensus.homology.search import SequenceSearch
    from mgeconsensus.pipeline import ConsensusPipeline

    verbose = ctx.obj.get("verbose", False)
    quiet = ctx.obj.get("quiet", False)

    try:
        config = Config.load(config_path)
        if workers is not None:
            config.parallel.max_workers = workers
        if no_reblast:
            config.reconcile.enabled = False
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e

    searcher = None
    try:
        searcher = SequenceSearch(
            executable=config.search.blastn,
            threads=config.search.threads,
            evalue=config.search.evalue,
            tmp_dir=outdir / "work",
        )
    except RuntimeError as e:
        console.print(f"[yellow]Warning:[/yellow] {e}")
        console.print("[yellow]Reconciliation and clustering will run without search hits.[/yellow]")

    if not quiet:
        console.print(f"[blue]Genomes:[/blue] {len(genomes)} file(s)")
        console.print(f"[blue]Predictions:[/blue] {predictions}")
        if mask:
            console.print(f"[blue]Mask:[/blue] {mask}")
        console.print(f"[blue]Output:[/blue] {outdir}")

    pipeline = ConsensusPipeline(
        config=config,
        outdir=outdir,
        detectors=_build_detectors(predictions),
        mask_path=mask,
        searcher=searcher,
        json_path=json_path,
    )

    try:
        result = pipeline.run(genomes)
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        if verbose:
            import traceback
            traceback.print_exc()
        raise SystemExit(1)

    if not quiet:
        console.print("")
        console.print("[bold]Consensus Summary:[/bold]")
        for prefix in sorted(result.catalogs):
            _print_tier_counts(prefix, result.catalogs[prefix].counts())
        if result.skipped:
            console.print(f"  [yellow]Skipped:[/yellow] {', '.join(result.skipped)}")
        console.print(f"  Clusters:            {len(result.clusters):,}")
        if result.small_clusters:
            console.print(f"  Small clusters:      {len(result.small_clusters):,}")
        console.print("")
        console.print(f"[green]Wrote outputs to:[/green] {outdir}")


# =============================================================================
# merge command
# =============================================================================


@main.command()
@click.option(
    "--genome",
    "-g",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="Genome FASTA file.",
)
@click.option(
    "--predictions",
    "-p",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    required=True,
    help="Directory of detector tables named <prefix>.<method>.tsv.",
)
@click.option(
    "--mask",
    "-m",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Mask file (genome, start, end; genome-global coordinates).",
)
@click.option(
    "--proximity",
    type=int,
    default=None,
    help="Gap (bp) bridged when merging [default: from configuration].",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    help="YAML configuration file.",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output table (default: stdout).",
)
def merge(
    genome: Path,
    predictions: Path,
    mask: Optional[Path],
    proximity: Optional[int],
    config_path: Optional[Path],
    output: Optional[Path],
) -> None:
    """Merge and bin the predictions of a single genome.

    Example:
        $ mgeconsensus merge -g ECO1.fa -p preds/
        $ mgeconsensus merge -g ECO1.fa -p preds/ --proximity 500 -o ECO1.tsv
    """
    from mgeconsensus.core.mask import MaskStore
    from mgeconsensus.io.detectors import collect_predictions
    from mgeconsensus.io.fasta import load_genome
    from mgeconsensus.io.predictions import write_predictions
    from mgeconsensus.pipeline import consensus_for_genome

    try:
        config = Config.load(config_path)
        if proximity is not None:
            config.merge.proximity = proximity
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e

    try:
        layout = load_genome(genome)
    except Exception as e:
        console.print(f"[red]Error:[/red] Cannot read genome {genome}: {e}")
        raise SystemExit(1)

    mask_store = MaskStore.load(mask, {layout.prefix: layout})
    raw = collect_predictions(_build_detectors(predictions), layout.prefix)
    catalog = consensus_for_genome(layout, raw, config.merge.proximity, mask_store)

    if output is None:
        write_predictions(catalog, "-")
        return

    n_written = write_predictions(catalog, output)
    console.print("[bold]Consensus Summary:[/bold]")
    _print_tier_counts(layout.prefix, catalog.counts())
    console.print(f"[green]Wrote {n_written:,} predictions:[/green] {output}")


# =============================================================================
# methods command
# =============================================================================


@main.command("methods")
def list_methods() -> None:
    """List the detection methods and how they are weighed.

    Example:
        $ mgeconsensus methods
    """
    console.print("[bold]Detection Methods:[/bold]\n")
    for method in MethodKind:
        if not method.extending:
            role = "non-extending (corroborates spans, TIER5 alone)"
        elif method.primary:
            role = "extending, primary"
        else:
            role = "extending, secondary"
        console.print(f"  [blue]{method.tag:<10}[/blue] {role}")

    console.print("")
    console.print("[bold]Detector tables:[/bold] <predictions>/<prefix>.<method>.tsv")


if __name__ == "__main__":
    main()
