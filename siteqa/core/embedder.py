import hashlib
import math
import os
import random
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from threading import Lock
from typing import List, Optional

import httpx

from siteqa.config import EMBEDDING
from siteqa.core.errors import DimensionMismatchError, EmbeddingError


def normalize_for_embedding(text: str) -> str:
    return (text or "").lower().strip()


class BaseEmbedder(ABC):
    dimensions: int

    @abstractmethod
    def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed a list of documents."""
        pass

    @abstractmethod
    def embed_query(self, text: str) -> List[float]:
        """Embed a single query."""
        pass

    def close(self) -> None:
        pass


class HashEmbedder(BaseEmbedder):
    """
    Deterministic placeholder embeddings.

    The vector is a seeded pseudo-random function of the normalised text, so
    identical text always maps to the identical unit vector and unrelated
    strings are roughly decorrelated. It carries no semantic meaning.
    Vectors are memoised in an LRU cache of at most ``cache_size`` entries.
    """

    def __init__(self, dimensions: int = EMBEDDING["dimensions"], cache_size: int = EMBEDDING["cache_size"]):
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self.dimensions = dimensions
        self.cache_size = cache_size
        self._cache: "OrderedDict[str, List[float]]" = OrderedDict()
        self._lock = Lock()

    def embed(self, texts: List[str]) -> List[List[float]]:
        return [self._get_or_create(text) for text in texts]

    def embed_query(self, text: str) -> List[float]:
        return self._get_or_create(text)

    def _get_or_create(self, text: str) -> List[float]:
        key = normalize_for_embedding(text)
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                self._cache.move_to_end(key)
                return list(cached)

        cached = self._generate(key)
        with self._lock:
            self._cache[key] = cached
            self._cache.move_to_end(key)
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)
        return list(cached)

    def _generate(self, normalized: str) -> List[float]:
        seed = int.from_bytes(hashlib.sha256(normalized.encode("utf-8")).digest()[:8], "big")
        rng = random.Random(seed)
        vector = [rng.random() - 0.5 for _ in range(self.dimensions)]

        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0.0:
            vector[0], norm = 1.0, 1.0
        return [v / norm for v in vector]


class JinaEmbedder(BaseEmbedder):
    def __init__(
        self,
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        cfg = EMBEDDING["jina"]
        self._api_key = api_key or os.getenv("JINA_API_KEY")
        if not self._api_key:
            raise RuntimeError("Missing JINA_API_KEY environment variable")

        self._endpoint = endpoint or os.getenv("JINA_EMBEDDINGS_URL", "https://api.jina.ai/v1/embeddings")
        self._http = httpx.Client(timeout=httpx.Timeout(cfg["timeout"], connect=20.0), transport=transport)
        self.model = cfg["model"]
        self.task_doc = cfg["task_doc"]
        self.task_query = cfg["task_query"]
        self.batch_size = cfg["batch_size"]
        self.dimensions = cfg["dimensions"]
        self.max_retries = cfg["max_retries"]

    def close(self) -> None:
        self._http.close()

    def _get_retry_after_seconds(self, resp: httpx.Response) -> Optional[float]:
        retry_after = resp.headers.get("retry-after")
        if not retry_after:
            return None
        try:
            return float(retry_after)
        except ValueError:
            return None

    def _embed_batch(self, batch: List[str], task: str) -> List[List[float]]:
        payload = {
            "model": self.model,
            "input": batch,
            "task": task,
            "dimensions": self.dimensions,
            "embedding_type": "float",
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self._http.post(self._endpoint, headers=headers, json=payload)
            except httpx.HTTPError as exc:
                raise EmbeddingError(f"Embedding request failed: {type(exc).__name__}") from exc

            if resp.status_code == 429 and attempt <= self.max_retries:
                retry_after_s = self._get_retry_after_seconds(resp)
                backoff = retry_after_s if retry_after_s is not None else min(60.0, 2.0 ** min(attempt, 5))
                print(f"[ERROR] Jina API 429. Sleeping {backoff:.2f}s before retry...", flush=True)
                time.sleep(backoff)
                continue

            if not resp.is_success:
                raise EmbeddingError(f"Jina API returned HTTP {resp.status_code}")

            return self._extract_embeddings(resp.json())

    def _extract_embeddings(self, body: dict) -> List[List[float]]:
        data = body.get("data")
        if not isinstance(data, list):
            raise EmbeddingError("Unexpected Jina embeddings response format")

        embeddings: List[List[float]] = []
        for item in data:
            vec = item.get("embedding") if isinstance(item, dict) else None
            if not isinstance(vec, list):
                raise EmbeddingError("Unexpected Jina embeddings response format")
            if len(vec) != self.dimensions:
                raise DimensionMismatchError(self.dimensions, len(vec))
            embeddings.append([float(v) for v in vec])
        return embeddings

    def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed a list of documents in batches."""
        all_embeddings: List[List[float]] = []
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i:i + self.batch_size]
            print(f"[DEBUG] Sending batch {i // self.batch_size + 1}: {len(batch)} chunks to Jina API...", flush=True)
            embeddings = self._embed_batch(batch, task=self.task_doc)
            if len(embeddings) != len(batch):
                raise EmbeddingError(f"Expected {len(batch)} embeddings, got {len(embeddings)}")
            all_embeddings.extend(embeddings)
        return all_embeddings

    def embed_query(self, text: str) -> List[float]:
        """Embed a single query."""
        embeddings = self._embed_batch([text], task=self.task_query)
        if not embeddings:
            raise EmbeddingError("No embedding returned for query")
        return embeddings[0]
