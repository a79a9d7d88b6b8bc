"""HNSW construction and search parameters."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace


def _ml_for(m: int) -> float:
    if m < 2:
        raise ValueError("m must be at least 2")
    return 1.0 / math.log(m)


@dataclass(frozen=True)
class HnswConfig:
    """Parameters for building and searching an HNSW graph.

    The defaults balance recall and speed for 10K-100K vectors.
    """

    m: int = 16
    m_max0: int = 32
    m_max: int = 16
    ef_construction: int = 200
    ef_search: int = 50
    ml: float = 1.0 / math.log(16)
    min_vectors: int = 1000

    @classmethod
    def with_m(cls, m: int) -> HnswConfig:
        """Configuration with the given M; other limits derived from it."""
        return cls(m=m, m_max0=2 * m, m_max=m, ml=_ml_for(m))

    @classmethod
    def high_recall(cls) -> HnswConfig:
        """Targets recall above 95% with moderate build cost."""
        return cls(m=32, m_max0=64, m_max=32, ef_construction=200, ef_search=150,
                   ml=_ml_for(32))

    @classmethod
    def production(cls) -> HnswConfig:
        """Balanced settings for 100K+ vectors."""
        return cls(m=32, m_max0=64, m_max=32, ef_construction=250, ef_search=200,
                   ml=_ml_for(32))

    @classmethod
    def max_recall(cls) -> HnswConfig:
        """Highest quality graph, slower construction."""
        return cls(m=48, m_max0=96, m_max=48, ef_construction=400, ef_search=300,
                   ml=_ml_for(48))

    @classmethod
    def fast(cls) -> HnswConfig:
        """Faster build and search at lower recall."""
        return cls(m=12, m_max0=24, m_max=12, ef_construction=100, ef_search=50,
                   ml=_ml_for(12))

    @classmethod
    def high_throughput(cls) -> HnswConfig:
        """Cheap construction compensated by a wide search beam."""
        return cls(m=16, m_max0=32, m_max=16, ef_construction=100, ef_search=300,
                   ml=_ml_for(16))

    @classmethod
    def pq_optimized(cls) -> HnswConfig:
        """Wide beams to offset approximate distances during construction."""
        return cls(m=32, m_max0=64, m_max=32, ef_construction=1200, ef_search=400,
                   ml=_ml_for(32))

    def with_min_vectors(self, min_vectors: int) -> HnswConfig:
        return replace(self, min_vectors=min_vectors)

    def with_ef_search(self, ef: int) -> HnswConfig:
        return replace(self, ef_search=ef)

    def with_ef_construction(self, ef: int) -> HnswConfig:
        return replace(self, ef_construction=ef)