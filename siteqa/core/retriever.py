from dataclasses import dataclass, field
from typing import List, Optional

from siteqa.config import NO_CONTENT_MESSAGE, RETRIEVAL
from siteqa.core.embedder import BaseEmbedder
from siteqa.core.errors import EmbeddingError, InputValidationError, NoContentError
from siteqa.core.vector_store import BaseVectorStore
from siteqa.ingestion.base import Chunk


@dataclass
class RetrievalResult:
    chunks: List[Chunk] = field(default_factory=list)
    context: str = ""


def query_terms(query: str) -> List[str]:
    return query.lower().split()


def keyword_rank(query: str, chunks: List[Chunk], limit: int = RETRIEVAL["limit"]) -> List[Chunk]:
    """
    Rank chunks by how many query terms occur (as substrings) in their content.

    Chunks matching no term are dropped; ties keep their stored order.
    """
    terms = query_terms(query)
    scored = []
    for chunk in chunks:
        content = chunk.content.lower()
        score = sum(1 for term in terms if term in content)
        if score > 0:
            scored.append((score, chunk))

    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [chunk for _, chunk in scored[:limit]]


def merge_ranked(primary: List[Chunk], secondary: List[Chunk], limit: int) -> List[Chunk]:
    """Keep ``primary`` order, then fill with unseen ``secondary`` chunks, up to ``limit``."""
    merged: List[Chunk] = []
    seen = set()
    for chunk in list(primary) + list(secondary):
        if chunk.id in seen:
            continue
        seen.add(chunk.id)
        merged.append(chunk)
    return merged[:limit]


def build_context(chunks: List[Chunk]) -> str:
    total = len(chunks)
    return "\n\n".join(
        f"[Chunk {i}/{total} from {chunk.title}]\n{chunk.content}"
        for i, chunk in enumerate(chunks, start=1)
    )


class Retriever:
    def __init__(
        self,
        embedder: BaseEmbedder,
        vector_store: BaseVectorStore,
        limit: int = RETRIEVAL["limit"],
        fallback_chunks: int = RETRIEVAL["fallback_chunks"],
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.limit = limit
        self.fallback_chunks = fallback_chunks

    def candidates(self, url: Optional[str] = None) -> List[Chunk]:
        chunks = self.vector_store.get_all()
        if url:
            chunks = [c for c in chunks if c.url == url]
        return chunks

    def vector_rank(self, query: str, url: Optional[str], limit: int) -> List[Chunk]:
        query_embedding = self.embedder.embed_query(query)
        results = self.vector_store.similarity_search(query_embedding, k=limit)
        if url:
            results = [c for c in results if c.url == url]
        return results

    def retrieve(self, query: str, url: Optional[str] = None, limit: Optional[int] = None) -> RetrievalResult:
        """Hybrid keyword-first, vector-fill retrieval with context assembly."""
        if not query or not query.strip():
            raise InputValidationError("Query is required")
        limit = self.limit if limit is None else limit

        candidates = self.candidates(url)
        if not candidates:
            raise NoContentError(NO_CONTENT_MESSAGE)
        print(f"[Retriever] Found {len(candidates)} candidate chunks for URL: {url or 'all'}", flush=True)

        keyword_chunks = keyword_rank(query, candidates, limit)

        try:
            vector_chunks = self.vector_rank(query, url, limit)
        except EmbeddingError as e:
            print(f"[WARN] Vector search unavailable, using keyword matches only: {e}", flush=True)
            vector_chunks = []

        chunks = merge_ranked(keyword_chunks, vector_chunks, limit)
        print(
            f"[Retriever] keyword={len(keyword_chunks)} vector={len(vector_chunks)} merged={len(chunks)}",
            flush=True,
        )

        if not chunks:
            print("[Retriever] No relevant chunks found, using first chunks", flush=True)
            chunks = candidates[:self.fallback_chunks]

        return RetrievalResult(chunks=chunks, context=build_context(chunks))
