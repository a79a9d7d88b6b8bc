"""Saving and loading HNSW graphs with a CRC32 integrity trailer.

The body is a little-endian binary record: fixed-width integers, vectors
and strings prefixed with a u64 length, and optional values prefixed with
a one-byte tag. Connections are stored per layer in compressed sparse row
form (offsets plus a flat edge list). A CRC32 of the body follows it as a
little-endian u32.
"""

from __future__ import annotations

import os
import struct
import zlib
from dataclasses import fields
from pathlib import Path
from typing import Union

from .config import HnswConfig
from .graph import HnswGraph, HnswNode

HNSW_MAGIC = 0x484E5357
HNSW_VERSION = 1

PathLike = Union[str, "os.PathLike[str]"]

_CONFIG_INT_FIELDS = ("m", "m_max0", "m_max", "ef_construction", "ef_search")


class CorruptionError(Exception):
    """Raised when an index file is damaged, truncated or of an unknown format."""


class _Writer:
    def __init__(self) -> None:
        self._parts: list[bytes] = []

    def u8(self, value: int) -> None:
        self._parts.append(struct.pack("<B", value))

    def u16(self, value: int) -> None:
        self._parts.append(struct.pack("<H", value))

    def u32(self, value: int) -> None:
        self._parts.append(struct.pack("<I", value))

    def u64(self, value: int) -> None:
        self._parts.append(struct.pack("<Q", value))

    def f64(self, value: float) -> None:
        self._parts.append(struct.pack("<d", value))

    def string(self, value: str) -> None:
        encoded = value.encode("utf-8")
        self.u64(len(encoded))
        self._parts.append(encoded)

    def u32_list(self, values: list[int]) -> None:
        self.u64(len(values))
        self._parts.append(struct.pack(f"<{len(values)}I", *values))

    def to_bytes(self) -> bytes:
        return b"".join(self._parts)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def _unpack(self, fmt: str):
        size = struct.calcsize(fmt)
        if self._pos + size > len(self._data):
            raise CorruptionError("HNSW index data truncated")
        values = struct.unpack_from(fmt, self._data, self._pos)
        self._pos += size
        return values

    def u8(self) -> int:
        return self._unpack("<B")[0]

    def u16(self) -> int:
        return self._unpack("<H")[0]

    def u32(self) -> int:
        return self._unpack("<I")[0]

    def u64(self) -> int:
        return self._unpack("<Q")[0]

    def f64(self) -> float:
        return self._unpack("<d")[0]

    def _length(self, item_size: int) -> int:
        length = self.u64()
        if length * item_size > len(self._data) - self._pos:
            raise CorruptionError("HNSW index data truncated")
        return length

    def string(self) -> str:
        length = self._length(1)
        raw = self._data[self._pos:self._pos + length]
        self._pos += length
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CorruptionError(f"invalid record id: {exc}") from exc

    def u8_list(self) -> list[int]:
        length = self._length(1)
        return list(self._unpack(f"<{length}B"))

    def u32_list(self) -> list[int]:
        length = self._length(4)
        return list(self._unpack(f"<{length}I"))

    def u64_list(self) -> list[int]:
        length = self._length(8)
        return list(self._unpack(f"<{length}Q"))


def _encode(graph: HnswGraph) -> bytes:
    writer = _Writer()
    writer.u32(HNSW_MAGIC)
    writer.u16(HNSW_VERSION)

    config = graph.config
    for name in _CONFIG_INT_FIELDS:
        writer.u64(getattr(config, name))
    writer.f64(config.ml)
    writer.u64(config.min_vectors)

    writer.u32(graph.node_count())
    writer.u8(graph.max_layer)
    if graph.entry_point is None:
        writer.u8(0)
    else:
        writer.u8(1)
        writer.u32(graph.entry_point)

    writer.u64(len(graph.nodes))
    for node in graph.nodes:
        writer.u64(node.slot)
    writer.u64(len(graph.nodes))
    for node in graph.nodes:
        writer.string(node.id)
    writer.u64(len(graph.nodes))
    for node in graph.nodes:
        writer.u8(node.max_layer)

    layer_offsets: list[list[int]] = []
    layer_edges: list[list[int]] = []
    for layer_conns in graph.connections:
        offsets = [0]
        edges: list[int] = []
        for neighbors in layer_conns:
            edges.extend(neighbors)
            offsets.append(len(edges))
        layer_offsets.append(offsets)
        layer_edges.append(edges)

    writer.u64(len(layer_offsets))
    writer.u64(len(layer_offsets))
    for offsets in layer_offsets:
        writer.u32_list(offsets)
    writer.u64(len(layer_edges))
    for edges in layer_edges:
        writer.u32_list(edges)
    return writer.to_bytes()


def _decode(data: bytes) -> HnswGraph:
    reader = _Reader(data)
    magic = reader.u32()
    if magic != HNSW_MAGIC:
        raise CorruptionError(f"Invalid HNSW magic number: {magic:08x}")
    version = reader.u16()
    if version != HNSW_VERSION:
        raise CorruptionError(
            f"Unsupported HNSW version: {version} (expected {HNSW_VERSION})"
        )

    config_values: dict[str, object] = {name: reader.u64() for name in _CONFIG_INT_FIELDS}
    config_values["ml"] = reader.f64()
    config_values["min_vectors"] = reader.u64()
    known = {f.name for f in fields(HnswConfig)}
    config = HnswConfig(**{k: v for k, v in config_values.items() if k in known})

    node_count = reader.u32()
    max_layer = reader.u8()
    tag = reader.u8()
    if tag == 0:
        entry_point = None
    elif tag == 1:
        entry_point = reader.u32()
    else:
        raise CorruptionError(f"invalid entry point tag: {tag}")

    node_slots = reader.u64_list()
    id_count = reader._length(8)
    node_ids = [reader.string() for _ in range(id_count)]
    node_max_layers = reader.u8_list()
    num_layers = reader.u64()

    offsets_count = reader._length(8)
    layer_offsets = [reader.u32_list() for _ in range(offsets_count)]
    edges_count = reader._length(8)
    layer_edges = [reader.u32_list() for _ in range(edges_count)]

    if min(len(node_slots), len(node_ids), len(node_max_layers)) < node_count:
        raise CorruptionError("HNSW node tables shorter than node count")
    if min(len(layer_offsets), len(layer_edges)) < num_layers:
        raise CorruptionError("HNSW layer tables shorter than layer count")

    nodes: list[HnswNode] = []
    slot_to_node: dict[int, int] = {}
    for node_id, (slot, record_id, layer) in enumerate(
        zip(node_slots[:node_count], node_ids[:node_count], node_max_layers[:node_count])
    ):
        nodes.append(HnswNode(slot=slot, id=record_id, max_layer=layer))
        slot_to_node[slot] = node_id

    connections: list[list[list[int]]] = []
    for offsets, edges in zip(layer_offsets[:num_layers], layer_edges[:num_layers]):
        if len(offsets) < node_count + 1:
            raise CorruptionError("HNSW layer offsets shorter than node count")
        layer_conns = []
        for start, end in zip(offsets[:node_count], offsets[1:node_count + 1]):
            if start > end or end > len(edges):
                raise CorruptionError("HNSW layer offsets out of range")
            layer_conns.append(edges[start:end])
        connections.append(layer_conns)

    return HnswGraph.restore(nodes, slot_to_node, connections, entry_point, max_layer, config)


def save_graph(graph: HnswGraph, path: PathLike) -> None:
    """Write ``graph`` to ``path``, followed by a CRC32 of the written body."""
    data = _encode(graph)
    checksum = zlib.crc32(data) & 0xFFFFFFFF
    with open(path, "wb") as handle:
        handle.write(data)
        handle.write(struct.pack("<I", checksum))


def load_graph(path: PathLike) -> HnswGraph:
    """Read a graph saved by :func:`save_graph`.

    Raises CorruptionError if the file is too small, its checksum does not
    match, or its contents are not a valid index.
    """
    with open(path, "rb") as handle:
        data = handle.read()
    if len(data) < 4:
        raise CorruptionError("HNSW index file too small")

    (stored,) = struct.unpack("<I", data[-4:])
    body = data[:-4]
    computed = zlib.crc32(body) & 0xFFFFFFFF
    if stored != computed:
        raise CorruptionError(
            f"HNSW index checksum mismatch: expected {stored:08x}, got {computed:08x}"
        )
    return _decode(body)


def graph_exists(path: PathLike) -> bool:
    """Return True if something exists at ``path``."""
    return Path(path).exists()