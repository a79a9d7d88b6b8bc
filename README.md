# hnswlite

A compact Hierarchical Navigable Small World (HNSW) index for approximate
nearest-neighbour search over embedding vectors. It uses only the standard
library.

## Install

```
pip install hnswlite
```

To run the test suite:

```
pip install "hnswlite[test]"
pytest
```

## Modules

- `hnswlite.vectors` - `VectorStore`, an in-memory store of fixed-dimension
  vectors in numbered slots (`allocate_slot`, `write_slot`, `read_slot`).
- `hnswlite.metric` - `Metric.COSINE`, `Metric.DOT` (higher is better) and
  `Metric.L2`, the squared Euclidean distance (lower is better).
- `hnswlite.config` - `HnswConfig`, a frozen dataclass of graph parameters
  (`m`, `m_max0`, `m_max`, `ef_construction`, `ef_search`, `ml`,
  `min_vectors`) with presets `with_m(m)`, `fast()`, `high_recall()`,
  `production()`, `max_recall()`, `high_throughput()` and `pq_optimized()`,
  and copy-with-change helpers `with_ef_search`, `with_ef_construction` and
  `with_min_vectors`.
- `hnswlite.graph` - `HnswGraph`, the layered graph and its search routines.
- `hnswlite.insert` - `insert(graph, slot, id, vectors, metric, ef=None)`,
  which adds a vector to a graph. A node's layer is drawn from a generator
  seeded with its slot, so building is deterministic.
- `hnswlite.persist` - `save_graph`, `load_graph`, `graph_exists` and
  `CorruptionError`.
- `hnswlite.index` - `HnswIndex`, a lock-protected wrapper that ties these
  together.
- `hnswlite.results` - `SearchResult` and `TopK`, a bounded best-k collector.

## Example

```python
from hnswlite.config import HnswConfig
from hnswlite.index import HnswIndex
from hnswlite.metric import Metric
from hnswlite.vectors import VectorStore

store = VectorStore(4)
for i in range(10):
    slot = store.allocate_slot()
    vec = [0.0] * 4
    vec[i % 4] = 1.0
    store.write_slot(slot, vec)

index = HnswIndex(HnswConfig.with_m(4), Metric.COSINE)
for slot in range(10):
    index.insert(slot, f"vec{slot}", store)

for node_id, slot, record_id, score in index.search([1.0, 0.0, 0.0, 0.0], 3, None, store):
    print(record_id, score)
```

`search` returns `(node_id, slot, id, score)` tuples, best first. Passing
`None` for `ef` uses the configured `ef_search`; the beam is never narrower
than `k`.

`insert_batch(records, vectors)` inserts the `(slot, id)` records whose slots
are not yet indexed, with a beam of at most 75, and returns how many it added.

Deleting a slot hides it from results without rebuilding the graph:

```python
index.mark_deleted(0)
index.deleted_count()   # 1
index.clear_deleted()   # forget the deleted set
```

## Persistence

An index's graph can be written to a single file and read back. The file
ends with a CRC-32 of its contents; a damaged, truncated or unrecognised
file raises `CorruptionError`.

```python
from pathlib import Path

path = Path("vectors.hnsw")
index.save(path)
loaded = HnswIndex.load(path, HnswConfig.with_m(4), Metric.COSINE)
```

The graph parameters come from the file; the `config` argument of `load` is
not used.

`HnswIndex.load_or_build(path, config, metric, records, vectors)` loads the
file if it exists and can be read; otherwise it builds an index by inserting
the `(slot, id)` records one by one, tries to save it to `path`, and returns
it. Failures to load or save are logged as warnings.

## What it does not do

- Only the graph is saved. `VectorStore` lives in memory and is not written
  to disk; keep your vectors elsewhere and refill the store before searching
  a loaded index.
- There is no record or metadata store: the index knows each vector only by
  its slot and id string.
- There is no command-line tool or server; it is a library.