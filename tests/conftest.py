from typing import Dict, List

import pytest

from siteqa.core.embedder import HashEmbedder
from siteqa.core.errors import FetchError
from siteqa.core.vector_store import InMemoryVectorStore
from siteqa.ingestion.fetcher import BaseFetcher, FetchResponse


class FakeFetcher(BaseFetcher):
    """Serves canned HTML by URL and records every fetch."""

    def __init__(self, pages: Dict[str, str]):
        self.pages = pages
        self.fetched: List[str] = []

    async def fetch(self, url: str) -> FetchResponse:
        self.fetched.append(url)
        if url not in self.pages:
            raise FetchError(url, "HTTP 404", status_code=404)
        return FetchResponse(url=url, status_code=200, text=self.pages[url], content_type="text/html")


def page(title: str, body: str, links=()) -> str:
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return f"<html><head><title>{title}</title></head><body><nav>{anchors}</nav><main><p>{body}</p></main></body></html>"


def sentence(word: str, length: int = 466) -> str:
    """A single sentence of exactly ``length`` characters ending in a period."""
    return ((word + " ") * length)[:length - 1] + "."


@pytest.fixture
def embedder():
    return HashEmbedder(dimensions=32)


@pytest.fixture
def store():
    s = InMemoryVectorStore(dimensions=32)
    s.open()
    return s
