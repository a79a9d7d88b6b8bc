import pytest

from hnswlite.config import HnswConfig
from hnswlite.index import HnswIndex
from hnswlite.metric import Metric
from hnswlite.persist import CorruptionError
from hnswlite.vectors import VectorStore


def make_storage(dim, count):
    storage = VectorStore(dim)
    for i in range(count):
        slot = storage.allocate_slot()
        vec = [0.0] * dim
        vec[i % dim] = 1.0
        storage.write_slot(slot, vec)
    return storage


def filled_index(dim, count):
    index = HnswIndex(HnswConfig.with_m(4), Metric.COSINE)
    vectors = make_storage(dim, count)
    for i in range(count):
        index.insert(i, f"vec{i}", vectors)
    return index, vectors


def test_hnsw_index_basic():
    index = HnswIndex(HnswConfig.with_m(4), Metric.COSINE)
    assert index.is_empty()
    assert len(index) == 0


def test_config_returned():
    config = HnswConfig.with_m(4)
    index = HnswIndex(config, Metric.COSINE)
    assert index.config() == config


def test_hnsw_insert_and_search():
    index, vectors = filled_index(8, 20)
    assert len(index) == 20

    query = [1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0]
    results = index.search(query, 5, None, vectors)

    assert len(results) == 5
    scores = [score for _, _, _, score in results]
    assert scores == sorted(scores, reverse=True)


def test_search_returns_node_details():
    index, vectors = filled_index(4, 8)
    results = index.search([1.0, 0.0, 0.0, 0.0], 1, 50, vectors)
    assert len(results) == 1
    node_id, slot, record_id, score = results[0]
    assert record_id == f"vec{slot}"
    assert slot % 4 == 0
    assert score == pytest.approx(1.0)


def test_hnsw_delete():
    index, vectors = filled_index(4, 10)
    index.mark_deleted(0)
    assert index.deleted_count() == 1
    assert not index.contains_slot(0)

    results = index.search([1.0, 0.0, 0.0, 0.0], 10, None, vectors)
    slots = [slot for _, slot, _, _ in results]
    assert len(slots) > 0
    assert 0 not in slots


def test_clear_deleted():
    index, _ = filled_index(4, 5)
    index.mark_deleted(1)
    index.mark_deleted(2)
    assert index.deleted_count() == 2
    index.clear_deleted()
    assert index.deleted_count() == 0


def test_hnsw_save_and_load(tmp_path):
    index_path = tmp_path / "hnsw.index"
    config = HnswConfig.with_m(4)
    index, vectors = filled_index(4, 10)

    index.save(index_path)
    loaded = HnswIndex.load(index_path, config, Metric.COSINE)

    assert len(loaded) == len(index)
    results = loaded.search([1.0, 0.0, 0.0, 0.0], 5, 100, vectors)
    assert len(results) >= 3


def test_exists(tmp_path):
    index_path = tmp_path / "hnsw.index"
    assert HnswIndex.exists(index_path) is False
    index, _ = filled_index(4, 3)
    index.save(index_path)
    assert HnswIndex.exists(index_path) is True


def test_load_corrupted_raises(tmp_path):
    index_path = tmp_path / "hnsw.index"
    index_path.write_bytes(b"xx")
    with pytest.raises(CorruptionError):
        HnswIndex.load(index_path, HnswConfig(), Metric.COSINE)


def test_insert_batch_skips_indexed():
    index = HnswIndex(HnswConfig.with_m(4), Metric.COSINE)
    vectors = make_storage(4, 10)
    first = index.insert_batch([(i, f"vec{i}") for i in range(5)], vectors)
    assert first == 5
    second = index.insert_batch([(i, f"vec{i}") for i in range(10)], vectors)
    assert second == 5
    assert len(index) == 10
    assert index.insert_batch([(3, "vec3")], vectors) == 0


def test_contains_slot():
    index, _ = filled_index(4, 3)
    assert index.contains_slot(2)
    assert not index.contains_slot(7)


def test_build_from_records():
    vectors = make_storage(4, 12)
    records = [(i, f"vec{i}") for i in range(12)]
    index = HnswIndex.build_from_records(HnswConfig.with_m(4), Metric.COSINE, records, vectors)
    assert len(index) == 12
    results = index.search([0.0, 1.0, 0.0, 0.0], 2, 50, vectors)
    assert [slot % 4 for _, slot, _, _ in results] == [1, 1]


def test_load_or_build_builds_and_saves(tmp_path):
    index_path = tmp_path / "hnsw.index"
    vectors = make_storage(4, 6)
    records = [(i, f"vec{i}") for i in range(6)]
    index = HnswIndex.load_or_build(
        index_path, HnswConfig.with_m(4), Metric.COSINE, records, vectors
    )
    assert len(index) == 6
    assert index_path.exists()

    reloaded = HnswIndex.load_or_build(
        index_path, HnswConfig.with_m(4), Metric.COSINE, [], vectors
    )
    assert len(reloaded) == 6


def test_load_or_build_rebuilds_corrupt_file(tmp_path):
    index_path = tmp_path / "hnsw.index"
    index_path.write_bytes(b"not an index at all")
    vectors = make_storage(4, 4)
    records = [(i, f"vec{i}") for i in range(4)]
    index = HnswIndex.load_or_build(
        index_path, HnswConfig.with_m(4), Metric.COSINE, records, vectors
    )
    assert len(index) == 4
    loaded = HnswIndex.load(index_path, HnswConfig.with_m(4), Metric.COSINE)
    assert len(loaded) == 4


def test_search_empty_index():
    index = HnswIndex(HnswConfig.with_m(4), Metric.COSINE)
    vectors = make_storage(4, 1)
    assert index.search([1.0, 0.0, 0.0, 0.0], 5, None, vectors) == []