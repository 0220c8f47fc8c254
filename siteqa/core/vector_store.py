import json
import math
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Optional, Sequence, Tuple

from siteqa.config import EMBEDDING, VECTOR_DB
from siteqa.core.errors import DimensionMismatchError, StoreError
from siteqa.ingestion.base import Chunk


@dataclass(frozen=True)
class EmbeddedChunk:
    chunk: Chunk
    embedding: Tuple[float, ...]

    @classmethod
    def create(cls, chunk: Chunk, embedding: Sequence[float]) -> "EmbeddedChunk":
        return cls(chunk=chunk, embedding=tuple(float(v) for v in embedding))

    def to_dict(self) -> Dict[str, Any]:
        data = self.chunk.to_dict()
        data["embedding"] = list(self.embedding)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmbeddedChunk":
        chunk = Chunk(id=str(data["id"]), content=str(data["content"]), metadata=dict(data["metadata"]))
        return cls.create(chunk, data["embedding"])


def combine_chunks_with_embeddings(
    chunks: List[Chunk], embeddings: List[List[float]]
) -> List[EmbeddedChunk]:
    if len(chunks) != len(embeddings):
        raise ValueError("Chunks and embeddings must have the same length")
    return [EmbeddedChunk.create(chunk, emb) for chunk, emb in zip(chunks, embeddings)]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity; 0.0 when either vector has zero norm."""
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    dot = norm_a = norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


class BaseVectorStore(ABC):
    dimensions: int

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self) -> "BaseVectorStore":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @abstractmethod
    def add(self, items: List[EmbeddedChunk]) -> None:
        pass

    @abstractmethod
    def similarity_search(self, query_vector: Sequence[float], k: int = 5) -> List[Chunk]:
        """Top-k chunks by descending cosine similarity; embeddings are not returned."""
        pass

    @abstractmethod
    def get_all(self) -> List[Chunk]:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    @abstractmethod
    def count(self) -> int:
        pass

    def _check_dimensions(self, vector: Sequence[float]) -> None:
        if len(vector) != self.dimensions:
            raise DimensionMismatchError(self.dimensions, len(vector))


# ---------------------------------------------------------------------------
# In-memory store with optional JSON persistence
# ---------------------------------------------------------------------------

class InMemoryVectorStore(BaseVectorStore):
    """
    Ordered in-process vector index.

    Chunks are kept in insertion order; re-adding a chunk id replaces the
    stored entry in place. When ``persist_path`` is set the whole index is
    written as ``{"documents": [...]}`` after every add/clear and read back
    on ``open()``. All reads and writes hold the same lock.
    """

    def __init__(self, dimensions: int = EMBEDDING["dimensions"], persist_path: Optional[str] = None):
        self.dimensions = dimensions
        self.persist_path = persist_path or None
        self._documents: List[EmbeddedChunk] = []
        self._positions: Dict[str, int] = {}
        self._lock = RLock()

    def open(self) -> None:
        with self._lock:
            self._documents, self._positions = self._load()
        print(f"[VectorStore] Opened in-memory store with {len(self._documents)} chunks", flush=True)

    def add(self, items: List[EmbeddedChunk]) -> None:
        if not items:
            return
        for item in items:
            self._check_dimensions(item.embedding)

        with self._lock:
            for item in items:
                position = self._positions.get(item.chunk.id)
                if position is None:
                    self._positions[item.chunk.id] = len(self._documents)
                    self._documents.append(item)
                else:
                    self._documents[position] = item
            self._persist()
        print(f"[VectorStore] add: stored {len(items)} chunks (total {len(self._documents)})", flush=True)

    def similarity_search(self, query_vector: Sequence[float], k: int = 5) -> List[Chunk]:
        self._check_dimensions(query_vector)
        if k <= 0:
            return []

        with self._lock:
            scored = [(cosine_similarity(query_vector, doc.embedding), doc.chunk) for doc in self._documents]

        # sorted() is stable, so equal scores keep insertion order
        scored = sorted(scored, key=lambda pair: pair[0], reverse=True)
        return [chunk for _, chunk in scored[:k]]

    def get_all(self) -> List[Chunk]:
        with self._lock:
            return [doc.chunk for doc in self._documents]

    def clear(self) -> None:
        with self._lock:
            self._documents = []
            self._positions = {}
            self._persist()

    def count(self) -> int:
        with self._lock:
            return len(self._documents)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> None:
        if not self.persist_path:
            return
        path = Path(self.persist_path)
        tmp_path = path.with_name(path.name + ".tmp")
        payload = {"documents": [doc.to_dict() for doc in self._documents]}
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(payload, f)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            raise StoreError(f"Failed to write vector store to {path}: {exc}") from exc

    def _persist(self) -> None:
        try:
            self.save()
        except StoreError as e:
            # The in-memory change stands even when the write fails.
            print(f"[WARN] {e}", flush=True)

    def _load(self) -> Tuple[List[EmbeddedChunk], Dict[str, int]]:
        if not self.persist_path:
            return [], {}
        path = Path(self.persist_path)
        if not path.exists():
            return [], {}

        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            documents = [EmbeddedChunk.from_dict(raw) for raw in data["documents"]]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            print(f"[WARN] Could not load vector store from {path} ({type(e).__name__}: {e}); starting empty", flush=True)
            return [], {}

        for doc in documents:
            self._check_dimensions(doc.embedding)

        positions: Dict[str, int] = {}
        unique: List[EmbeddedChunk] = []
        for doc in documents:
            if doc.chunk.id in positions:
                unique[positions[doc.chunk.id]] = doc
            else:
                positions[doc.chunk.id] = len(unique)
                unique.append(doc)
        return unique, positions


# ---------------------------------------------------------------------------
# Milvus / Zilliz store
# ---------------------------------------------------------------------------

_MILVUS_FIELDS = ["id", "content", "url", "title", "chunk_index", "total_chunks", "seq"]


class MilvusVectorStore(BaseVectorStore):
    """
    Vector index backed by a Milvus (or Zilliz Cloud) collection.

    The chunk id is the primary key, so re-adding a chunk upserts it. Each row
    also stores an insertion sequence number used to break score ties.
    """

    def __init__(
        self,
        uri: Optional[str] = None,
        token: Optional[str] = None,
        collection: str = VECTOR_DB["collection_docs"],
        dimensions: int = EMBEDDING["dimensions"],
        client=None,
    ):
        self.uri = uri or os.getenv("ZILLIZ_URI")
        self.token = token or os.getenv("ZILLIZ_TOKEN")
        self.collection = collection
        self.dimensions = dimensions
        self.client = client

    def open(self) -> None:
        if self.client is None:
            from pymilvus import MilvusClient
            self.client = MilvusClient(uri=self.uri, token=self.token)
        self._create_collection()

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None

    def _create_collection(self) -> None:
        if not self.client.has_collection(self.collection):
            self.client.create_collection(
                collection_name=self.collection,
                dimension=self.dimensions,
                metric_type="COSINE",
                id_type="str",
                auto_id=False,
                max_length=512,
            )
        self.client.load_collection(self.collection)

    def _to_chunk(self, row: Dict[str, Any]) -> Chunk:
        return Chunk(
            id=str(row.get("id", "")),
            content=row.get("content", ""),
            metadata={
                "url": row.get("url", ""),
                "title": row.get("title", ""),
                "chunk_index": int(row.get("chunk_index", 0)),
                "total_chunks": int(row.get("total_chunks", 0)),
            },
        )

    def add(self, items: List[EmbeddedChunk]) -> None:
        if not items:
            return
        for item in items:
            self._check_dimensions(item.embedding)

        base_seq = time.time_ns()
        data = []
        for offset, item in enumerate(items):
            chunk = item.chunk
            data.append({
                "id": chunk.id,
                "vector": list(item.embedding),
                "content": chunk.content[:32000],        # Milvus varchar cap
                "url": chunk.url[:2048],
                "title": chunk.title[:512],
                "chunk_index": int(chunk.metadata.get("chunk_index", 0)),
                "total_chunks": int(chunk.metadata.get("total_chunks", 0)),
                "seq": base_seq + offset,
            })

        self.client.upsert(collection_name=self.collection, data=data)
        self.client.flush(collection_name=self.collection)
        print(f"[VectorStore] upsert: {len(data)} chunks into {self.collection}", flush=True)

    def similarity_search(self, query_vector: Sequence[float], k: int = 5) -> List[Chunk]:
        self._check_dimensions(query_vector)
        if k <= 0:
            return []

        results = self.client.search(
            collection_name=self.collection,
            data=[list(query_vector)],
            limit=k,
            anns_field="vector",
            search_params={"metric_type": "COSINE"},
            output_fields=_MILVUS_FIELDS,
        )
        hits = []
        for hit in (results[0] if results else []):
            # Milvus search hits expose fields via hit["entity"] or directly on the hit dict
            entity = hit.get("entity") if isinstance(hit.get("entity"), dict) else hit
            row = dict(entity)
            row.setdefault("id", hit.get("id"))
            hits.append((float(hit.get("distance", 0.0)), int(row.get("seq", 0)), self._to_chunk(row)))

        hits.sort(key=lambda h: (-h[0], h[1]))
        return [chunk for _, _, chunk in hits[:k]]

    def get_all(self) -> List[Chunk]:
        rows: List[Dict[str, Any]] = []
        # Offset paging is capped at offset + limit <= 16384; the iterator is not.
        iterator = self.client.query_iterator(
            collection_name=self.collection,
            batch_size=VECTOR_DB["query_batch"],
            filter='id != ""',
            output_fields=_MILVUS_FIELDS,
        )
        try:
            while True:
                page = iterator.next()
                if not page:
                    break
                rows.extend(page)
        finally:
            iterator.close()

        rows.sort(key=lambda r: int(r.get("seq", 0)))
        return [self._to_chunk(r) for r in rows]

    def clear(self) -> None:
        if self.client.has_collection(self.collection):
            self.client.drop_collection(self.collection)
        self._create_collection()

    def count(self) -> int:
        stats = self.client.get_collection_stats(self.collection)
        return int(stats.get("row_count", 0))
