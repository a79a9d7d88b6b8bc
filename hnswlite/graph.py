"""Layered HNSW graph structure and its search routines."""

from __future__ import annotations

import heapq
import math
import random
from dataclasses import dataclass
from typing import AbstractSet, Sequence

from .config import HnswConfig
from .metric import Metric, is_better
from .vectors import VectorStore

_MAX_RANDOM_LAYER = 32


@dataclass
class HnswNode:
    """A vector's place in the graph."""

    slot: int
    id: str
    max_layer: int


class HnswGraph:
    """Multi-layer proximity graph; layer 0 is the densest.

    ``connections[layer][node_id]`` holds the neighbour node ids of a node
    at a layer. Deleted slots stay in the structure but lose their slot
    mapping.
    """

    def __init__(self, config: HnswConfig) -> None:
        self.config = config
        self.nodes: list[HnswNode] = []
        self.slot_to_node: dict[int, int] = {}
        self.connections: list[list[list[int]]] = []
        self.entry_point: int | None = None
        self.max_layer = 0

    @classmethod
    def restore(
        cls,
        nodes: list[HnswNode],
        slot_to_node: dict[int, int],
        connections: list[list[list[int]]],
        entry_point: int | None,
        max_layer: int,
        config: HnswConfig,
    ) -> HnswGraph:
        """Rebuild a graph from previously captured state."""
        graph = cls(config)
        graph.nodes = nodes
        graph.slot_to_node = slot_to_node
        graph.connections = connections
        graph.entry_point = entry_point
        graph.max_layer = max_layer
        return graph

    def node_count(self) -> int:
        return len(self.nodes)

    def is_empty(self) -> bool:
        return not self.nodes

    def get_node(self, node_id: int) -> HnswNode | None:
        """Return the node with this internal id, or None."""
        if 0 <= node_id < len(self.nodes):
            return self.nodes[node_id]
        return None

    def get_node_id_by_slot(self, slot: int) -> int | None:
        return self.slot_to_node.get(slot)

    def _neighbors(self, layer: int, node_id: int) -> Sequence[int]:
        if 0 <= layer < len(self.connections):
            layer_conns = self.connections[layer]
            if 0 <= node_id < len(layer_conns):
                return layer_conns[node_id]
        return ()

    def get_neighbors(self, layer: int, node_id: int) -> list[int]:
        """Return a copy of a node's neighbours at a layer (empty if none)."""
        return list(self._neighbors(layer, node_id))

    def random_layer(self, rng: random.Random) -> int:
        """Draw a layer from an exponential distribution, capped at 32."""
        uniform = rng.random()
        if uniform <= 0.0:
            return _MAX_RANDOM_LAYER
        layer = math.floor(-math.log(uniform) * self.config.ml)
        return min(max(layer, 0), _MAX_RANDOM_LAYER)

    def add_node(self, slot: int, id: str, max_layer: int) -> int:
        """Append a node without connections and return its internal id."""
        node_id = len(self.nodes)
        self.nodes.append(HnswNode(slot=slot, id=id, max_layer=max_layer))
        self.slot_to_node[slot] = node_id

        while len(self.connections) <= max_layer:
            self.connections.append([])
        for layer_conns in self.connections:
            while len(layer_conns) <= node_id:
                layer_conns.append([])

        if self.entry_point is None or max_layer > self.max_layer:
            self.entry_point = node_id
            self.max_layer = max_layer
        return node_id

    def set_neighbors(self, layer: int, node_id: int, neighbors: Sequence[int]) -> None:
        """Replace a node's neighbours at a layer; ignored if out of range."""
        if 0 <= layer < len(self.connections):
            layer_conns = self.connections[layer]
            if 0 <= node_id < len(layer_conns):
                layer_conns[node_id] = list(neighbors)

    def add_connection(self, layer: int, from_node: int, to_node: int) -> None:
        """Add ``to_node`` to the neighbours of ``from_node`` if not present."""
        if 0 <= layer < len(self.connections):
            layer_conns = self.connections[layer]
            if 0 <= from_node < len(layer_conns):
                neighbors = layer_conns[from_node]
                if to_node not in neighbors:
                    neighbors.append(to_node)

    def mark_deleted(self, slot: int) -> bool:
        """Drop the slot mapping; return True if the slot was present."""
        return self.slot_to_node.pop(slot, None) is not None

    def is_slot_active(self, slot: int) -> bool:
        return slot in self.slot_to_node

    def max_connections(self, layer: int) -> int:
        return self.config.m_max0 if layer == 0 else self.config.m_max

    def compute_distance(
        self, query: Sequence[float], node_id: int, vectors: VectorStore, metric: Metric
    ) -> float:
        """Score the query against a node's vector; worst score if unreadable."""
        slot = self.nodes[node_id].slot
        try:
            vector = vectors.read_slot(slot)
        except KeyError:
            return metric.worst()
        return metric.compute(query, vector)

    def search_layer_greedy(
        self,
        query: Sequence[float],
        entry: int,
        layer: int,
        vectors: VectorStore,
        metric: Metric,
    ) -> int:
        """Walk greedily within one layer and return the closest node found."""
        higher = metric.higher_is_better()
        current = entry
        current_dist = self.compute_distance(query, current, vectors, metric)
        improved = True
        while improved:
            improved = False
            for neighbor in list(self._neighbors(layer, current)):
                dist = self.compute_distance(query, neighbor, vectors, metric)
                if is_better(dist, current_dist, higher):
                    current, current_dist = neighbor, dist
                    improved = True
        return current

    def _search_layer_ef(
        self,
        query: Sequence[float],
        entry: int,
        layer: int,
        ef: int,
        vectors: VectorStore,
        metric: Metric,
        deleted: AbstractSet[int],
    ) -> list[tuple[int, float]]:
        # Costs are always minimised: similarity scores are negated.
        sign = -1.0 if metric.higher_is_better() else 1.0

        visited = {entry}
        entry_cost = sign * self.compute_distance(query, entry, vectors, metric)
        candidates: list[tuple[float, int]] = [(entry_cost, entry)]
        # Max-heap on cost via negation: worst kept result at the top.
        results: list[tuple[float, int]] = []
        if self.nodes[entry].slot not in deleted:
            heapq.heappush(results, (-entry_cost, entry))

        while candidates:
            cost, current = heapq.heappop(candidates)
            if len(results) >= ef and cost >= -results[0][0]:
                break

            for neighbor in self._neighbors(layer, current):
                if neighbor in visited:
                    continue
                visited.add(neighbor)
                neighbor_cost = sign * self.compute_distance(query, neighbor, vectors, metric)
                if len(results) >= ef and neighbor_cost >= -results[0][0]:
                    continue
                heapq.heappush(candidates, (neighbor_cost, neighbor))
                if self.nodes[neighbor].slot not in deleted:
                    heapq.heappush(results, (-neighbor_cost, neighbor))
                    if len(results) > ef:
                        heapq.heappop(results)

        ranked = sorted(((-neg_cost, node) for neg_cost, node in results),
                        key=lambda item: item[0])
        return [(node, sign * cost) for cost, node in ranked]

    def search(
        self,
        query: Sequence[float],
        k: int,
        ef: int,
        vectors: VectorStore,
        metric: Metric,
        deleted: AbstractSet[int] = frozenset(),
    ) -> list[tuple[int, float]]:
        """Return up to ``k`` ``(node_id, score)`` pairs, best first."""
        if self.entry_point is None or k == 0:
            return []
        ef = max(ef, k)
        current = self.entry_point
        for layer in range(self.max_layer, 0, -1):
            current = self.search_layer_greedy(query, current, layer, vectors, metric)
        candidates = self._search_layer_ef(query, current, 0, ef, vectors, metric, deleted)
        return candidates[:k]