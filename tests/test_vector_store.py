import json

import pytest

from siteqa.config import VECTOR_DB
from siteqa.core.errors import DimensionMismatchError
from siteqa.core.vector_store import (
    EmbeddedChunk,
    InMemoryVectorStore,
    MilvusVectorStore,
    cosine_similarity,
)
from siteqa.ingestion.base import Chunk


def _item(chunk_id, vector, url="https://example.com", content=None):
    chunk = Chunk(
        id=chunk_id,
        content=content or f"content {chunk_id}",
        metadata={"url": url, "title": "T", "chunk_index": 0, "total_chunks": 1},
    )
    return EmbeddedChunk.create(chunk, vector)


def test_cosine_similarity_basics():
    assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
    assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
    assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)


def test_cosine_similarity_zero_vector_is_zero():
    assert cosine_similarity([0, 0], [1, 1]) == 0.0


def test_cosine_similarity_length_mismatch():
    with pytest.raises(DimensionMismatchError):
        cosine_similarity([1, 0], [1, 0, 0])


def test_self_match_ranks_first():
    store = InMemoryVectorStore(dimensions=3)
    store.add([_item("a", [1, 0, 0]), _item("b", [0, 1, 0]), _item("c", [0.7, 0.7, 0])])
    results = store.similarity_search([0, 1, 0], k=2)
    assert [c.id for c in results] == ["b", "c"]


def test_ties_keep_insertion_order():
    store = InMemoryVectorStore(dimensions=2)
    store.add([_item("first", [1, 0]), _item("second", [1, 0]), _item("third", [1, 0])])
    assert [c.id for c in store.similarity_search([1, 0], k=3)] == ["first", "second", "third"]


def test_search_with_non_positive_k_is_empty():
    store = InMemoryVectorStore(dimensions=2)
    store.add([_item("a", [1, 0])])
    assert store.similarity_search([1, 0], k=0) == []


def test_add_rejects_wrong_dimensions_atomically():
    store = InMemoryVectorStore(dimensions=2)
    with pytest.raises(DimensionMismatchError):
        store.add([_item("ok", [1, 0]), _item("bad", [1, 0, 0])])
    assert store.count() == 0


def test_search_rejects_wrong_query_dimensions():
    store = InMemoryVectorStore(dimensions=2)
    with pytest.raises(DimensionMismatchError):
        store.similarity_search([1, 0, 0])


def test_re_adding_chunk_id_replaces_in_place():
    store = InMemoryVectorStore(dimensions=2)
    store.add([_item("a", [1, 0]), _item("b", [0, 1])])
    store.add([_item("a", [0, 1], content="updated")])

    chunks = store.get_all()
    assert [c.id for c in chunks] == ["a", "b"]
    assert chunks[0].content == "updated"
    assert store.count() == 2


def test_clear_empties_store():
    store = InMemoryVectorStore(dimensions=2)
    store.add([_item("a", [1, 0])])
    store.clear()
    assert store.get_all() == []


def test_persistence_round_trip(tmp_path):
    path = tmp_path / "store.json"
    store = InMemoryVectorStore(dimensions=2, persist_path=str(path))
    store.open()
    store.add([_item("a", [1, 0]), _item("b", [0, 1])])

    data = json.loads(path.read_text())
    assert [d["id"] for d in data["documents"]] == ["a", "b"]

    reopened = InMemoryVectorStore(dimensions=2, persist_path=str(path))
    reopened.open()
    assert [c.id for c in reopened.get_all()] == ["a", "b"]
    assert [c.id for c in reopened.similarity_search([0, 1], k=1)] == ["b"]


def test_corrupt_store_file_starts_empty(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json")
    store = InMemoryVectorStore(dimensions=2, persist_path=str(path))
    store.open()
    assert store.count() == 0


def test_persisted_dimension_mismatch_is_fatal(tmp_path):
    path = tmp_path / "store.json"
    writer = InMemoryVectorStore(dimensions=3, persist_path=str(path))
    writer.add([_item("a", [1, 0, 0])])

    with pytest.raises(DimensionMismatchError):
        InMemoryVectorStore(dimensions=2, persist_path=str(path)).open()


class _FakeQueryIterator:
    def __init__(self, rows, batch_size):
        self.rows = rows
        self.batch_size = batch_size
        self.closed = False

    def next(self):
        page, self.rows = self.rows[:self.batch_size], self.rows[self.batch_size:]
        return page

    def close(self):
        self.closed = True


class FakeMilvusClient:
    """Minimal stand-in for pymilvus.MilvusClient covering the calls the store makes."""

    def __init__(self):
        self.collections = {}
        self.iterators = []

    def has_collection(self, name):
        return name in self.collections

    def create_collection(self, collection_name, **kwargs):
        self.collections[collection_name] = {}

    def load_collection(self, name):
        pass

    def drop_collection(self, name):
        del self.collections[name]

    def upsert(self, collection_name, data):
        for row in data:
            self.collections[collection_name][row["id"]] = dict(row)

    def flush(self, collection_name):
        pass

    def search(self, collection_name, data, limit, **kwargs):
        query = data[0]
        hits = [
            {"id": row["id"], "distance": cosine_similarity(query, row["vector"]), "entity": row}
            for row in self.collections[collection_name].values()
        ]
        hits.sort(key=lambda h: -h["distance"])
        return [hits[:limit]]

    def query_iterator(self, collection_name, batch_size, **kwargs):
        iterator = _FakeQueryIterator(list(self.collections[collection_name].values()), batch_size)
        self.iterators.append(iterator)
        return iterator

    def get_collection_stats(self, name):
        return {"row_count": len(self.collections[name])}

    def close(self):
        pass


def test_milvus_store_add_search_and_clear():
    store = MilvusVectorStore(collection="test", dimensions=2, client=FakeMilvusClient())
    store.open()
    store.add([_item("a", [1, 0]), _item("b", [0, 1])])

    assert store.count() == 2
    assert [c.id for c in store.get_all()] == ["a", "b"]
    results = store.similarity_search([0, 1], k=1)
    assert [c.id for c in results] == ["b"]
    assert results[0].metadata["url"] == "https://example.com"

    store.clear()
    assert store.count() == 0


def test_milvus_store_rejects_wrong_dimensions():
    store = MilvusVectorStore(collection="test", dimensions=2, client=FakeMilvusClient())
    store.open()
    with pytest.raises(DimensionMismatchError):
        store.add([_item("a", [1, 0, 0])])


def test_milvus_get_all_reads_every_page(monkeypatch):
    monkeypatch.setitem(VECTOR_DB, "query_batch", 2)
    client = FakeMilvusClient()
    store = MilvusVectorStore(collection="test", dimensions=2, client=client)
    store.open()
    store.add([_item(f"c{i}", [1, i]) for i in range(5)])

    assert [c.id for c in store.get_all()] == [f"c{i}" for i in range(5)]
    assert client.iterators[-1].closed
