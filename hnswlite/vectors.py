"""In-memory slot-addressed vector storage."""

from __future__ import annotations

from typing import Iterable


class VectorStore:
    """Fixed-dimension vectors addressed by integer slot numbers."""

    def __init__(self, dimensions: int) -> None:
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self.dimensions = dimensions
        self._slots: list[tuple[float, ...]] = []

    def allocate_slot(self) -> int:
        """Reserve a new zero-filled slot and return its number."""
        self._slots.append((0.0,) * self.dimensions)
        return len(self._slots) - 1

    def _check_slot(self, slot: int) -> None:
        if not 0 <= slot < len(self._slots):
            raise KeyError(slot)

    def write_slot(self, slot: int, vector: Iterable[float]) -> None:
        """Store ``vector`` in an allocated slot."""
        self._check_slot(slot)
        values = tuple(float(x) for x in vector)
        if len(values) != self.dimensions:
            raise ValueError(
                f"expected {self.dimensions} dimensions, got {len(values)}"
            )
        self._slots[slot] = values

    def read_slot(self, slot: int) -> tuple[float, ...]:
        """Return the vector held in ``slot``; KeyError if not allocated."""
        self._check_slot(slot)
        return self._slots[slot]

    def __len__(self) -> int:
        return len(self._slots)