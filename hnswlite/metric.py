"""Distance and similarity metrics."""

from __future__ import annotations

import math
from enum import Enum
from typing import Sequence


class Metric(Enum):
    """Metric used to compare vectors."""

    COSINE = "cosine"
    DOT = "dot"
    L2 = "l2"

    def higher_is_better(self) -> bool:
        """True for similarity metrics (cosine, dot), False for L2 distance."""
        return self is not Metric.L2

    def compute(self, a: Sequence[float], b: Sequence[float]) -> float:
        """Score two vectors of equal length under this metric."""
        if len(a) != len(b):
            raise ValueError(f"dimension mismatch: {len(a)} != {len(b)}")
        if self is Metric.L2:
            return sum((x - y) * (x - y) for x, y in zip(a, b))
        dot = sum(x * y for x, y in zip(a, b))
        if self is Metric.DOT:
            return dot
        norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
        return dot / norm if norm > 0.0 else 0.0

    def worst(self) -> float:
        """The worst possible score under this metric."""
        return -math.inf if self.higher_is_better() else math.inf


def is_better(a: float, b: float, higher_is_better: bool) -> bool:
    """Return True if score ``a`` is strictly better than score ``b``."""
    return a > b if higher_is_better else a < b