"""Thread-safe HNSW index over a slot-addressed vector store."""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional, Sequence

from .config import HnswConfig
from .graph import HnswGraph
from .insert import insert as _insert_node
from .metric import Metric
from .persist import CorruptionError, PathLike, graph_exists, load_graph, save_graph
from .vectors import VectorStore

_log = logging.getLogger(__name__)

_INCREMENTAL_EF = 75


class HnswIndex:
    """Approximate nearest-neighbour index built on an :class:`HnswGraph`.

    Deleted slots stay in the graph until it is rebuilt but are never
    returned by :meth:`search`.
    """

    def __init__(self, config: HnswConfig, metric: Metric) -> None:
        self._graph = HnswGraph(config)
        self.metric = metric
        self._deleted: set[int] = set()
        self._lock = threading.RLock()

    @classmethod
    def _from_graph(cls, graph: HnswGraph, metric: Metric) -> HnswIndex:
        index = cls(graph.config, metric)
        index._graph = graph
        return index

    def config(self) -> HnswConfig:
        """Return the configuration of the underlying graph."""
        with self._lock:
            return self._graph.config

    def __len__(self) -> int:
        with self._lock:
            return self._graph.node_count()

    def is_empty(self) -> bool:
        with self._lock:
            return self._graph.is_empty()

    def deleted_count(self) -> int:
        """Number of slots marked as deleted."""
        with self._lock:
            return len(self._deleted)

    def insert(self, slot: int, id: str, vectors: VectorStore) -> int:
        """Insert the vector in ``slot`` and return its internal node id."""
        with self._lock:
            return _insert_node(self._graph, slot, id, vectors, self.metric)

    def insert_batch(
        self, records: Iterable[tuple[int, str]], vectors: VectorStore
    ) -> int:
        """Insert ``(slot, id)`` records not yet indexed; return how many were added.

        A narrower beam than ``ef_construction`` is used, since the existing
        graph already guides new insertions.
        """
        with self._lock:
            new_records = [
                (slot, record_id)
                for slot, record_id in records
                if self._graph.get_node_id_by_slot(slot) is None
            ]
            if not new_records:
                return 0
            ef = min(_INCREMENTAL_EF, self._graph.config.ef_construction)
            for slot, record_id in new_records:
                _insert_node(self._graph, slot, record_id, vectors, self.metric, ef)
            return len(new_records)

    def contains_slot(self, slot: int) -> bool:
        """Return True if ``slot`` is indexed and not deleted."""
        with self._lock:
            return self._graph.get_node_id_by_slot(slot) is not None

    def mark_deleted(self, slot: int) -> None:
        """Exclude ``slot`` from future search results."""
        with self._lock:
            self._deleted.add(slot)
            self._graph.mark_deleted(slot)

    def clear_deleted(self) -> None:
        """Forget the set of deleted slots (after a rebuild or compaction)."""
        with self._lock:
            self._deleted.clear()

    def search(
        self,
        query: Sequence[float],
        k: int,
        ef: Optional[int],
        vectors: VectorStore,
    ) -> list[tuple[int, int, str, float]]:
        """Return up to ``k`` ``(node_id, slot, id, score)`` tuples, best first.

        ``ef`` defaults to the configured ``ef_search`` and is never below ``k``.
        """
        with self._lock:
            beam = self._graph.config.ef_search if ef is None else ef
            beam = max(beam, k)
            found = self._graph.search(
                query, k, beam, vectors, self.metric, frozenset(self._deleted)
            )
            hits = []
            for node_id, score in found:
                node = self._graph.get_node(node_id)
                if node is not None:
                    hits.append((node_id, node.slot, node.id, score))
            return hits

    def save(self, path: PathLike) -> None:
        """Write the graph to ``path``."""
        with self._lock:
            save_graph(self._graph, path)

    @classmethod
    def load(cls, path: PathLike, config: HnswConfig, metric: Metric) -> HnswIndex:
        """Load an index from ``path``.

        The graph parameters come from the file; ``config`` is accepted for
        symmetry with :meth:`build_from_records` and is not used.
        """
        return cls._from_graph(load_graph(path), metric)

    @staticmethod
    def exists(path: PathLike) -> bool:
        """Return True if an index file exists at ``path``."""
        return graph_exists(path)

    @classmethod
    def build_from_records(
        cls,
        config: HnswConfig,
        metric: Metric,
        records: Iterable[tuple[int, str]],
        vectors: VectorStore,
    ) -> HnswIndex:
        """Build a new index from ``(slot, id)`` records."""
        index = cls(config, metric)
        for slot, record_id in records:
            _insert_node(index._graph, slot, record_id, vectors, metric)
        return index

    @classmethod
    def load_or_build(
        cls,
        path: PathLike,
        config: HnswConfig,
        metric: Metric,
        records: Iterable[tuple[int, str]],
        vectors: VectorStore,
    ) -> HnswIndex:
        """Load the index at ``path``, or build it from records and save it."""
        if cls.exists(path):
            try:
                return cls.load(path, config, metric)
            except (CorruptionError, OSError, ValueError) as exc:
                _log.warning("Failed to load HNSW index, rebuilding: %s", exc)

        index = cls.build_from_records(config, metric, records, vectors)
        try:
            index.save(path)
        except OSError as exc:
            _log.warning("Failed to save HNSW index: %s", exc)
        return index