"""Insertion of vectors into an HNSW graph."""

from __future__ import annotations

import random
from typing import Iterable, Sequence

from .graph import HnswGraph
from .metric import Metric, is_better
from .vectors import VectorStore


def _rank(scored: list[tuple[int, float]], higher_is_better: bool) -> None:
    """Sort ``(node_id, score)`` pairs in place, best first."""
    scored.sort(key=lambda item: item[1], reverse=higher_is_better)


def insert(
    graph: HnswGraph,
    slot: int,
    id: str,
    vectors: VectorStore,
    metric: Metric,
    ef: int | None = None,
) -> int:
    """Insert the vector held in ``slot`` and return its internal node id.

    ``ef`` is the beam width used while connecting the node; it defaults to
    the graph's ``ef_construction``. The layer is drawn from a generator
    seeded with the slot, so insertion is deterministic.
    """
    if ef is None:
        ef = graph.config.ef_construction

    rng = random.Random(slot)
    node_layer = graph.random_layer(rng)

    if graph.entry_point is None:
        return graph.add_node(slot, id, node_layer)

    # Captured before add_node, which may promote the new node to entry point.
    entry_point = graph.entry_point
    node_id = graph.add_node(slot, id, node_layer)

    try:
        query = vectors.read_slot(slot)
    except KeyError:
        return node_id

    current_entry = entry_point
    for layer in range(graph.max_layer, node_layer, -1):
        current_entry = graph.search_layer_greedy(query, current_entry, layer, vectors, metric)

    for layer in range(node_layer, -1, -1):
        neighbors = search_layer_for_insert(
            graph, query, current_entry, layer, ef, vectors, metric
        )
        m = graph.config.m_max0 if layer == 0 else graph.config.m
        selected = select_neighbors(neighbors, m, node_id)
        graph.set_neighbors(layer, node_id, selected)

        max_conn = graph.max_connections(layer)
        for neighbor in selected:
            graph.add_connection(layer, neighbor, node_id)
            neighbor_conns = graph.get_neighbors(layer, neighbor)
            if len(neighbor_conns) > max_conn:
                pruned = prune_connections(
                    graph, neighbor, neighbor_conns, max_conn, vectors, metric
                )
                graph.set_neighbors(layer, neighbor, pruned)

        if neighbors:
            current_entry = neighbors[0][0]

    if node_layer > graph.max_layer:
        graph.entry_point = node_id
        graph.max_layer = node_layer

    return node_id


def search_layer_for_insert(
    graph: HnswGraph,
    query: Sequence[float],
    entry: int,
    layer: int,
    ef: int,
    vectors: VectorStore,
    metric: Metric,
) -> list[tuple[int, float]]:
    """Beam-search one layer and return ``(node_id, score)`` pairs, best first."""
    higher = metric.higher_is_better()
    visited = {entry}
    candidates: list[tuple[int, float]] = []

    entry_dist = graph.compute_distance(query, entry, vectors, metric)
    to_visit: list[tuple[int, float]] = [(entry, entry_dist)]
    worst_dist = entry_dist

    while to_visit:
        current, current_dist = to_visit.pop()
        if len(candidates) >= ef and not is_better(current_dist, worst_dist, higher):
            continue

        candidates.append((current, current_dist))
        if len(candidates) >= ef:
            _rank(candidates, higher)
            del candidates[ef:]
            worst_dist = candidates[-1][1]

        for neighbor in graph.get_neighbors(layer, current):
            if neighbor in visited:
                continue
            visited.add(neighbor)
            neighbor_dist = graph.compute_distance(query, neighbor, vectors, metric)
            if len(candidates) < ef or is_better(neighbor_dist, worst_dist, higher):
                to_visit.append((neighbor, neighbor_dist))

        # Best candidate last so that pop() takes it next.
        to_visit.sort(key=lambda item: item[1], reverse=not higher)

    _rank(candidates, higher)
    return candidates


def select_neighbors(
    candidates: Iterable[tuple[int, float]], m: int, exclude: int
) -> list[int]:
    """Take the first ``m`` candidate ids, skipping ``exclude``."""
    selected: list[int] = []
    for node_id, _ in candidates:
        if len(selected) >= m:
            break
        if node_id != exclude:
            selected.append(node_id)
    return selected


def prune_connections(
    graph: HnswGraph,
    node_id: int,
    neighbors: Sequence[int],
    m: int,
    vectors: VectorStore,
    metric: Metric,
) -> list[int]:
    """Keep the ``m`` neighbours closest to ``node_id``, best first."""
    try:
        node_vector = vectors.read_slot(graph.nodes[node_id].slot)
    except KeyError:
        return list(neighbors[:m])

    scored: list[tuple[int, float]] = []
    for neighbor in neighbors:
        try:
            neighbor_vector = vectors.read_slot(graph.nodes[neighbor].slot)
        except KeyError:
            continue
        scored.append((neighbor, metric.compute(node_vector, neighbor_vector)))

    _rank(scored, metric.higher_is_better())
    return [neighbor for neighbor, _ in scored[:m]]