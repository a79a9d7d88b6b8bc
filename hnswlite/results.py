"""Search result records and a bounded top-k collector."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any


@dataclass
class SearchResult:
    """A single hit returned by a search.

    For cosine and dot metrics a higher score is more similar; for L2 a
    lower score is more similar.
    """

    id: str
    score: float
    metadata: Any = field(default_factory=dict)


class TopK:
    """Keeps the best ``k`` ``(score, index)`` pairs seen so far, best first."""

    def __init__(self, k: int, higher_is_better: bool) -> None:
        self.k = k
        self.higher_is_better = higher_is_better
        self._results: list[tuple[float, int]] = []

    def push(self, score: float, index: int) -> bool:
        """Offer a result; return True if it was admitted to the top-k."""
        if len(self._results) >= self.k:
            if self._results:
                worst = self._results[-1][0]
            else:
                worst = -math.inf if self.higher_is_better else math.inf
            dominated = score <= worst if self.higher_is_better else score >= worst
            if dominated:
                return False

        self._results.append((score, index))
        self._results.sort(key=lambda item: item[0], reverse=self.higher_is_better)
        del self._results[self.k:]
        return True

    def worst_score(self) -> float | None:
        """Return the worst score currently kept, or None when empty."""
        return self._results[-1][0] if self._results else None

    def results(self) -> list[tuple[float, int]]:
        """Return a copy of the current ``(score, index)`` pairs, best first."""
        return list(self._results)

    def into_results(self) -> list[tuple[float, int]]:
        """Return the collected pairs and reset the collector."""
        results, self._results = self._results, []
        return results

    def __len__(self) -> int:
        return len(self._results)

    def is_empty(self) -> bool:
        return not self._results