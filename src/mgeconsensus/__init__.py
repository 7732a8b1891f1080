"""MGEConsensus: consensus calling of mobile genetic element predictions.

MGEConsensus pools the predictions of several MGE detectors across a set
of genomes, merges them into one consensus catalogue per genome, recovers
elements missed in one genome but found in another, and clusters the
result into families.

Example:
    >>> import mgeconsensus
    >>> mgeconsensus.__version__
    '0.1.0'

Modules:
    core: Merging, binning, reconciliation and clustering
    io: FASTA access, detector tables, prediction tables and export
    homology: Nucleotide similarity search
    parallel: Local parallel execution
    utils: Intervals and logging
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
