from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Set


@dataclass(frozen=True)
class Chunk:
    id: str                # derived from url + chunk_index, stable across re-ingests
    content: str
    metadata: dict = field(default_factory=dict)   # url, title, chunk_index, total_chunks

    @property
    def url(self) -> str:
        return self.metadata.get("url", "")

    @property
    def title(self) -> str:
        return self.metadata.get("title", "")

    def to_dict(self) -> dict:
        return {"id": self.id, "content": self.content, "metadata": dict(self.metadata)}


@dataclass(frozen=True)
class PageContent:
    url: str
    title: str
    raw_text: str
    clean_text: str
    paragraphs: List[str] = field(default_factory=list)
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class CrawlResult:
    title: str
    content: str
    chunks: List[str] = field(default_factory=list)
    metadata: Dict[str, str] = field(default_factory=dict)
    paragraphs: List[str] = field(default_factory=list)
    crawled_urls: Set[str] = field(default_factory=set)
    pages: List[PageContent] = field(default_factory=list)
    depth: int = 0


class BaseIngester(ABC):
    @abstractmethod
    def ingest(self, source_path: str) -> List[Chunk]:
        """Ingest a source and return a list of chunks."""
        pass
