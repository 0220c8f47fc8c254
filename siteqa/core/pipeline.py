"""
RAG pipeline service.

Wires crawl -> chunk -> embed -> store at ingest time and
retrieve -> assemble context -> generate at query time. Every collaborator is
passed in explicitly; ``build_pipeline()`` picks implementations from the
environment.
"""

import asyncio
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from siteqa.config import CRAWL, EMBEDDING, VECTOR_DB
from siteqa.core.embedder import BaseEmbedder, HashEmbedder, JinaEmbedder
from siteqa.core.llm import LLMWrapper, generate_answer
from siteqa.core.retriever import RetrievalResult, Retriever
from siteqa.core.vector_store import (
    BaseVectorStore,
    InMemoryVectorStore,
    MilvusVectorStore,
    combine_chunks_with_embeddings,
)
from siteqa.ingestion.base import Chunk, CrawlResult
from siteqa.ingestion.links import clamp_depth, validate_and_normalize_url
from siteqa.ingestion.website import WebsiteIngester


@dataclass
class IngestReport:
    url: str
    crawl: CrawlResult
    chunks: List[Chunk] = field(default_factory=list)


@dataclass
class ChatAnswer:
    answer: str
    chunks: List[Chunk] = field(default_factory=list)
    context: str = ""


class RAGPipeline:
    def __init__(
        self,
        embedder: BaseEmbedder,
        vector_store: BaseVectorStore,
        ingester: Optional[WebsiteIngester] = None,
        llm: Optional[LLMWrapper] = None,
    ):
        if embedder.dimensions != vector_store.dimensions:
            raise ValueError(
                f"Embedder produces {embedder.dimensions}-dim vectors but the store expects {vector_store.dimensions}"
            )
        self.embedder = embedder
        self.vector_store = vector_store
        self.ingester = ingester or WebsiteIngester()
        self.llm = llm
        self.retriever = Retriever(embedder, vector_store)

    def open(self) -> None:
        self.vector_store.open()

    def close(self) -> None:
        self.vector_store.close()
        self.embedder.close()

    async def ingest_website(self, url: str, depth: int = CRAWL["default_depth"]) -> IngestReport:
        """Crawl a site and store its chunks, tagged with the normalised root URL."""
        root_url = validate_and_normalize_url(url)
        crawl = await self.ingester.crawl(root_url, clamp_depth(depth))
        chunks = self.ingester.derive_chunks(crawl, root_url)

        if chunks:
            # Blocking calls (HTTP, back-off sleeps, file writes) run off the event loop.
            embeddings = await asyncio.to_thread(self.embedder.embed, [chunk.content for chunk in chunks])
            await asyncio.to_thread(self.vector_store.add, combine_chunks_with_embeddings(chunks, embeddings))
        else:
            print(f"[WARN] No text extracted from {root_url}", flush=True)

        return IngestReport(url=root_url, crawl=crawl, chunks=chunks)

    def query(self, query: str, url: Optional[str] = None, limit: Optional[int] = None) -> RetrievalResult:
        source = validate_and_normalize_url(url) if url else None
        return self.retriever.retrieve(query, source, limit)

    def chat(self, query: str, url: Optional[str] = None) -> ChatAnswer:
        result = self.query(query, url)
        answer = generate_answer(self.llm, query, result.context)
        return ChatAnswer(answer=answer, chunks=result.chunks, context=result.context)

    def library(self) -> List[Dict[str, object]]:
        """Stored sources with their title and chunk count, in first-ingest order."""
        sources: Dict[str, Dict[str, object]] = {}
        for chunk in self.vector_store.get_all():
            entry = sources.setdefault(chunk.url, {"url": chunk.url, "title": chunk.title, "chunks": 0})
            entry["chunks"] += 1
        return list(sources.values())

    def clear(self) -> None:
        self.vector_store.clear()


def build_pipeline() -> RAGPipeline:
    """Build a pipeline from environment configuration."""
    if os.getenv("JINA_API_KEY"):
        embedder: BaseEmbedder = JinaEmbedder()
    else:
        embedder = HashEmbedder(EMBEDDING["dimensions"])

    if os.getenv("ZILLIZ_URI"):
        vector_store: BaseVectorStore = MilvusVectorStore(dimensions=embedder.dimensions)
    else:
        store_path = os.getenv("SITEQA_STORE_PATH", VECTOR_DB["store_path"])
        vector_store = InMemoryVectorStore(dimensions=embedder.dimensions, persist_path=store_path)

    llm = LLMWrapper() if os.getenv("CLOUDFLARE_WORKER_URL") else None

    print(
        f"[DEBUG] Pipeline: embedder={type(embedder).__name__} store={type(vector_store).__name__} "
        f"llm={'on' if llm else 'off'}",
        flush=True,
    )
    return RAGPipeline(embedder=embedder, vector_store=vector_store, llm=llm)
