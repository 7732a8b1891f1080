"""Nucleotide similarity search for MGEConsensus.

Example:
    >>> from mgeconsensus.homology import SequenceSearch
    >>> searcher = SequenceSearch(threads=4)
    >>> hits = searcher.search_fasta("queries.fa", "subjects.fa")
"""

from mgeconsensus.homology.search import SequenceSearch, SimilarityHit, write_fasta

__all__ = [
    "SequenceSearch",
    "SimilarityHit",
    "write_fasta",
]
