"""Approximate nearest-neighbour search with an in-memory HNSW graph index and file persistence."""

__version__ = "0.2.0"