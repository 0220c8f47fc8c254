"""
Website Crawler
===============
Crawls a website from a root URL and aggregates the text of every page reached.

Strategy:
1. Fetch the root page; a failure here is fatal (nothing to aggregate)
2. Extract title, main text, paragraphs and metadata from the HTML
3. While below the depth limit, follow same-domain content links depth-first
4. Child pages that fail to fetch are logged and skipped
5. Aggregate content, per-page chunks and paragraphs in visiting order

Bounds:
- max_depth is clamped to [0, 3]; depth 0 fetches the root page only
- page_budget caps the number of distinct pages fetched across the whole crawl
- max_crawl_seconds stops scheduling new fetches once the crawl runs long

The traversal is an explicit stack of (depth, pending links) frames that visits
pages in the same order as a recursive descent would. One fetch is in flight at
a time, so the shared visited set needs no locking. Each crawl opens its own
fetcher session, so concurrent crawls share no connections.
"""

import asyncio
import concurrent.futures
import time
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Set, Tuple

from siteqa.config import CHUNKING, CRAWL
from siteqa.ingestion.base import BaseIngester, Chunk, CrawlResult, PageContent
from siteqa.ingestion.chunker import build_chunks, chunk_text
from siteqa.ingestion.extractor import extract
from siteqa.ingestion.fetcher import BaseFetcher, HttpFetcher
from siteqa.ingestion.links import clamp_depth, extract_ordered_links, normalize_url


@dataclass
class _Frame:
    depth: int
    links: Iterator[str]


class WebsiteIngester(BaseIngester):
    """Depth-limited, same-domain website crawler."""

    def __init__(
        self,
        fetcher: Optional[BaseFetcher] = None,
        page_budget: int = CRAWL["page_budget"],
        max_crawl_seconds: float = CRAWL["max_crawl_seconds"],
        chunk_size: int = CHUNKING["website"]["size"],
        clock: Callable[[], float] = time.monotonic,
    ):
        if page_budget < 1:
            raise ValueError("page_budget must be at least 1")
        self.fetcher = fetcher or HttpFetcher()
        self.page_budget = page_budget
        self.max_crawl_seconds = max_crawl_seconds
        self.chunk_size = chunk_size
        self._clock = clock

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def ingest(self, source_path: str, depth: int = CRAWL["default_depth"]) -> List[Chunk]:
        """Synchronous wrapper: crawl and return chunks tagged with the root URL."""
        url = normalize_url(source_path)

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            result = asyncio.run(self.crawl(url, depth))
        else:
            with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
                result = pool.submit(asyncio.run, self.crawl(url, depth)).result()
        return self.derive_chunks(result, url)

    def derive_chunks(self, result: CrawlResult, root_url: str) -> List[Chunk]:
        """Chunk the aggregated crawl content into records tagged with the root URL."""
        return build_chunks(root_url, result.title, result.content, self.chunk_size)

    async def crawl(
        self,
        root_url: str,
        max_depth: int = CRAWL["default_depth"],
        page_budget: Optional[int] = None,
    ) -> CrawlResult:
        max_depth = clamp_depth(max_depth)
        budget = self.page_budget if page_budget is None else page_budget
        if budget < 1:
            raise ValueError("page_budget must be at least 1")
        started = self._clock()

        print(f"[Website] Starting crawl: {root_url} | Depth: {max_depth} | Budget: {budget}", flush=True)

        visited: Set[str] = set()
        pages: List[PageContent] = []

        async with self.fetcher.session() as fetcher:
            visited.add(root_url)
            root_page, root_links = await self._fetch_page(fetcher, root_url, expand=max_depth > 0)
            pages.append(root_page)

            stack: List[_Frame] = [_Frame(depth=0, links=iter(root_links))]
            while stack:
                if self._clock() - started > self.max_crawl_seconds:
                    print(f"[WARN] Crawl time budget ({self.max_crawl_seconds}s) exhausted, stopping", flush=True)
                    break

                frame = stack[-1]
                link = next((u for u in frame.links if u not in visited), None)
                if link is None or len(visited) >= budget:
                    stack.pop()
                    continue

                visited.add(link)
                child_depth = frame.depth + 1
                print(f"[Website] Crawling: {link} (Depth: {child_depth}/{max_depth})", flush=True)
                try:
                    page, links = await self._fetch_page(fetcher, link, expand=child_depth < max_depth)
                except Exception as e:
                    print(f"[Website] ✗ FAILED : {link} ({type(e).__name__}: {e})", flush=True)
                    continue

                pages.append(page)
                if child_depth < max_depth:
                    stack.append(_Frame(depth=child_depth, links=iter(links)))

        result = self._aggregate(pages, visited, max_depth)
        print(
            f"[Website] Done! Pages visited: {len(visited)} | Extracted: {len(pages)} "
            f"| Chunks: {len(result.chunks)}",
            flush=True,
        )
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fetch_page(
        self, fetcher: BaseFetcher, url: str, expand: bool
    ) -> Tuple[PageContent, List[str]]:
        resp = await fetcher.fetch(url)
        html = resp.text
        extracted = extract(html)
        page = PageContent(
            url=url,
            title=extracted.title,
            raw_text=html,
            clean_text=extracted.main_text,
            paragraphs=extracted.paragraphs,
            metadata=extracted.metadata,
        )
        links = extract_ordered_links(html, url) if expand else []
        return page, links

    def _aggregate(self, pages: List[PageContent], visited: Set[str], max_depth: int) -> CrawlResult:
        root = pages[0]
        chunks: List[str] = []
        paragraphs: List[str] = []
        for page in pages:
            if page.clean_text:
                chunks.extend(chunk_text(page.clean_text, self.chunk_size))
            paragraphs.extend(page.paragraphs)

        return CrawlResult(
            title=root.title,
            content="\n\n".join(page.clean_text for page in pages),
            chunks=chunks,
            metadata=dict(root.metadata),
            paragraphs=paragraphs,
            crawled_urls=set(visited),
            pages=pages,
            depth=max_depth,
        )
